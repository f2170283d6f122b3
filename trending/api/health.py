"""Health and readiness check endpoints."""

import datetime
from typing import Optional

from fastapi import APIRouter

from trending.models import HealthResponse, ReadinessResponse
from trending.storage.base import ContentSource

router = APIRouter(tags=["health"])

# Content source will be injected
_source: Optional[ContentSource] = None


def set_source(source: ContentSource) -> None:
    """Set the content source for health checks."""
    global _source
    _source = source


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy", timestamp=datetime.datetime.now(datetime.timezone.utc))


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check() -> ReadinessResponse:
    """Readiness check with dependency status."""
    checks = {}

    if _source is not None:
        try:
            source_health = await _source.health_check()
            checks["content_source"] = "ok" if source_health.get("status") == "healthy" else "unhealthy"
        except Exception as e:
            checks["content_source"] = f"error: {str(e)}"
    else:
        checks["content_source"] = "not_initialized"

    ready = all(status == "ok" for status in checks.values())

    return ReadinessResponse(ready=ready, checks=checks)
