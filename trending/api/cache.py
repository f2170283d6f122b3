"""Cache inspection and maintenance endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status

from trending.core.cache import TTLCache
from trending.models import CacheStatsResponse, SweepResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cache", tags=["cache"])

# Cache will be injected
_cache: Optional[TTLCache] = None


def set_cache(cache: TTLCache) -> None:
    """Set the cache inspected by these endpoints."""
    global _cache
    _cache = cache


def get_cache() -> TTLCache:
    """Get the current cache."""
    if _cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cache not initialized",
        )
    return _cache


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats() -> CacheStatsResponse:
    cache = get_cache()
    return CacheStatsResponse(max_size=cache.max_size, **cache.stats())


@router.post("/sweep", response_model=SweepResponse)
async def sweep_cache() -> SweepResponse:
    """Remove expired entries now instead of waiting for the next scheduled sweep."""
    removed = get_cache().sweep()
    logger.info(f"Manual cache sweep removed {removed} entries")
    return SweepResponse(removed=removed)
