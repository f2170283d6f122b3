"""Main FastAPI application."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from trending.api import cache, categories, health, trending
from trending.config import settings
from trending.core.cache import CacheSweeper, TTLCache
from trending.core.categories import CategoriesService
from trending.core.trending import TrendingService
from trending.storage.base import ContentSource
from trending.storage.memory import MemoryContentSource
from trending.storage.sql import SqlContentSource

logging.basicConfig(level=settings.log_level)
log = logging.getLogger(__name__)


async def create_source() -> ContentSource:
    """Build the configured content source."""
    if settings.storage_backend == "sql":
        log.info("Using SQL content source")
        source = SqlContentSource(settings.database_url, echo=settings.database_echo)
        await source.connect()
        await source.create_schema()
        return source

    log.info("Using in-memory content source")
    return MemoryContentSource()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events (startup and shutdown)."""
    log.info("Starting up application...")

    source = await create_source()

    result_cache = TTLCache(max_size=settings.cache_max_size)
    sweeper = CacheSweeper(result_cache, interval_seconds=settings.cache_sweep_interval)
    await sweeper.start()
    log.info(f"Initialized result cache (max_size={settings.cache_max_size})")

    ttl = settings.cache_ttl()
    trending_service = TrendingService(
        source,
        result_cache,
        ttl=ttl,
        window_days=settings.trending_window_days,
        featured_window_days=settings.featured_window_days,
    )
    categories_service = CategoriesService(source, result_cache, ttl=ttl)

    if settings.seed_categories:
        try:
            if await categories_service.seed_default_categories():
                log.info("Seeded default categories")
        except Exception as e:
            log.error(f"Failed to seed default categories: {e}")

    # Store in app state for access in routes
    app.state.source = source
    app.state.cache = result_cache
    app.state.sweeper = sweeper
    app.state.trending_service = trending_service
    app.state.categories_service = categories_service

    # Inject dependencies into API routers
    trending.set_service(trending_service)
    categories.set_service(categories_service)
    cache.set_cache(result_cache)
    health.set_source(source)

    log.info("Application startup complete")

    yield  # Application is running

    log.info("Shutting down application...")
    await sweeper.stop()
    await source.close()
    log.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Trending creators, shows and featured content backed by a TTL result cache",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(trending.router)
app.include_router(categories.router)
app.include_router(cache.router)

# Initialize Prometheus metrics
Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler."""
    log.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": str(exc) if settings.log_level == "DEBUG" else None,
        },
    )
