"""Tests for application configuration."""

import pytest

from trending.config import Settings
from trending.core.cache import CacheTTL


class TestSettings:
    """Tests for Settings class."""

    def test_default_settings(self):
        """Test that default settings are loaded correctly."""
        settings = Settings()

        assert settings.app_name == "Trending Engine"
        assert settings.storage_backend == "memory"
        assert settings.cache_max_size == 1000
        assert settings.cache_sweep_interval == 600
        assert settings.trending_window_days == 7
        assert settings.featured_window_days == 30
        assert settings.max_limit == 50
        assert settings.seed_categories is True

    def test_settings_from_env(self, monkeypatch):
        """Test that settings can be overridden by environment variables."""
        monkeypatch.setenv("TRENDING_STORAGE_BACKEND", "sql")
        monkeypatch.setenv("TRENDING_DATABASE_URL", "postgresql+asyncpg://db.example.com/trending")
        monkeypatch.setenv("TRENDING_CACHE_MAX_SIZE", "250")
        monkeypatch.setenv("TRENDING_CACHE_TTL_FEATURED_CONTENT", "60")

        settings = Settings()

        assert settings.storage_backend == "sql"
        assert settings.database_url == "postgresql+asyncpg://db.example.com/trending"
        assert settings.cache_max_size == 250
        assert settings.cache_ttl_featured_content == 60

    def test_case_insensitive_env_vars(self, monkeypatch):
        """Test that environment variables are case-insensitive."""
        monkeypatch.setenv("trending_max_limit", "20")

        settings = Settings()

        assert settings.max_limit == 20

    def test_cache_ttl_defaults(self):
        assert Settings().cache_ttl() == CacheTTL()

    def test_cache_ttl_from_fields(self):
        settings = Settings(cache_ttl_trending_creators=10, cache_ttl_categories=20)
        ttl = settings.cache_ttl()

        assert ttl.trending_creators == 10
        assert ttl.trending_shows == 300
        assert ttl.featured_content == 1800
        assert ttl.categories == 20

    @pytest.mark.parametrize(
        "field,value",
        [("cache_max_size", 0), ("cache_sweep_interval", 0), ("cache_ttl_categories", -1), ("max_limit", 0)],
    )
    def test_rejects_out_of_range_values(self, field, value):
        with pytest.raises(Exception):
            Settings(**{field: value})
