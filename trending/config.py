"""Application configuration with support for config files and environment variables.

Configuration loading precedence (highest to lowest):
1. Environment variables (highest priority)
2. Config file (config.toml or config.yaml)
3. Default values (lowest priority)
"""

import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

import tomli
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trending.core.cache import CacheTTL

logger = logging.getLogger(__name__)


def load_config_file(config_path: Optional[Path] = None) -> dict[str, Any]:
    """Load configuration from TOML or YAML file.

    Args:
        config_path: Optional path to config file. If None, searches for
                    config.toml or config.yaml in current directory.

    Returns:
        Dictionary with configuration values
    """
    config_data: dict[str, Any] = {}

    if config_path is None:
        possible_files = [
            Path("config.toml"),
            Path("config.yaml"),
            Path("config.yml"),
            Path("/etc/trending/config.toml"),
            Path("/etc/trending/config.yaml"),
        ]

        for file_path in possible_files:
            if file_path.exists():
                config_path = file_path
                logger.info(f"Found configuration file: {config_path}")
                break

    if config_path and config_path.exists():
        try:
            with open(config_path, "rb" if config_path.suffix == ".toml" else "r") as f:
                if config_path.suffix == ".toml":
                    config_data = tomli.load(f)
                    logger.info(f"Loaded configuration from TOML: {config_path}")
                elif config_path.suffix in [".yaml", ".yml"]:
                    config_data = yaml.safe_load(f) or {}
                    logger.info(f"Loaded configuration from YAML: {config_path}")
        except Exception as e:
            logger.error(f"Error loading config file {config_path}: {e}")
            raise

    return config_data


class Settings(BaseSettings):
    """Application settings with support for config files and environment variables.

    Configuration loading order (highest to lowest priority):
    1. Environment variables (e.g. TRENDING_STORAGE_BACKEND=sql)
    2. Config file (config.toml or config.yaml)
    3. Default values
    """

    app_name: str = Field(
        default="Trending Engine",
        description="Application name",
    )

    # Content source selection
    storage_backend: Literal["memory", "sql"] = Field(
        default="memory",
        description="Content source to use (memory or sql)",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./trending.db",
        description="SQLAlchemy async database URL for the sql backend",
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement",
    )
    seed_categories: bool = Field(
        default=True,
        description="Insert default categories on startup when none exist",
    )

    # Cache
    cache_max_size: int = Field(
        default=1000,
        description="Maximum number of cache entries (LRU eviction)",
        ge=1,
    )
    cache_sweep_interval: float = Field(
        default=600.0,
        description="Seconds between sweeps of expired cache entries",
        gt=0,
    )
    cache_ttl_trending_creators: float = Field(default=300.0, description="TTL of trending creators", gt=0)
    cache_ttl_trending_shows: float = Field(default=300.0, description="TTL of trending shows and videos", gt=0)
    cache_ttl_featured_content: float = Field(default=1800.0, description="TTL of featured content", gt=0)
    cache_ttl_categories: float = Field(default=3600.0, description="TTL of active categories", gt=0)

    # Ranking
    trending_window_days: int = Field(
        default=7,
        description="Trailing window for recent activity in days",
        ge=1,
    )
    featured_window_days: int = Field(
        default=30,
        description="Creation window for featured content in days",
        ge=1,
    )
    max_limit: int = Field(
        default=50,
        description="Largest list size accepted by the API",
        ge=1,
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        if isinstance(v, str):
            v = v.upper()
        return v

    model_config = SettingsConfigDict(
        env_prefix="TRENDING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Customize settings sources priority.

        Priority order (highest to lowest):
        1. Environment variables
        2. .env file
        3. Init settings (config file values)
        4. Default values
        """
        return (
            env_settings,
            dotenv_settings,
            init_settings,
            file_secret_settings,
        )

    @classmethod
    def from_config_file(cls, config_path: Optional[Path] = None) -> "Settings":
        """Create Settings instance from config file.

        Args:
            config_path: Optional path to config file

        Returns:
            Settings instance with values from config file and environment
        """
        config_data = load_config_file(config_path)
        return cls(**config_data)

    def cache_ttl(self) -> CacheTTL:
        """TTLs for the cached computations."""
        return CacheTTL(
            trending_creators=self.cache_ttl_trending_creators,
            trending_shows=self.cache_ttl_trending_shows,
            featured_content=self.cache_ttl_featured_content,
            categories=self.cache_ttl_categories,
        )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load application settings from config file and environment.

    Configuration precedence (highest to lowest):
    1. Environment variables (TRENDING_*)
    2. Config file (config.toml or config.yaml)
    3. Default values

    Args:
        config_path: Optional path to config file

    Returns:
        Settings instance with all configuration loaded
    """
    if config_path is None:
        config_path = os.getenv("TRENDING_CONFIG_FILE")

    path_obj = Path(config_path) if config_path else None

    settings = Settings.from_config_file(path_obj)

    logger.info("Configuration loaded successfully")
    logger.info(f"  Storage backend: {settings.storage_backend}")
    logger.info(f"  Log level: {settings.log_level}")

    return settings


# Global settings instance, loaded when the module is imported
try:
    settings = load_settings()
except Exception as e:
    logger.warning(f"Error loading config file, using defaults: {e}")
    settings = Settings()
