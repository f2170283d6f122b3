"""Trending and featured content API endpoints."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from trending.config import settings
from trending.core.exceptions import TrendingError
from trending.core.trending import TrendingService
from trending.models import FeaturedContent, ListResponse, TrendingCreator, TrendingShow, TrendingVideo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["trending"])

# Service will be injected
_service: Optional[TrendingService] = None


def set_service(service: TrendingService) -> None:
    """Set the trending service for the trending API."""
    global _service
    _service = service


def get_service() -> TrendingService:
    """Get the current trending service."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Trending service not initialized",
        )
    return _service


def check_limit(limit: int) -> int:
    """Reject list sizes outside 1..max_limit."""
    if limit < 1 or limit > settings.max_limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Limit must be between 1 and {settings.max_limit}",
        )
    return limit


def _server_error(e: TrendingError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/trending/creators", response_model=ListResponse[TrendingCreator])
async def trending_creators(limit: int = Query(10)) -> ListResponse[TrendingCreator]:
    """Get creators ranked by recent activity."""
    service = get_service()
    try:
        creators = await service.calculate_trending_creators(check_limit(limit))
    except TrendingError as e:
        raise _server_error(e)

    return ListResponse[TrendingCreator](
        data=creators, count=len(creators), calculated_at=datetime.now(timezone.utc)
    )


@router.get("/trending/shows", response_model=ListResponse[TrendingShow])
async def trending_shows(limit: int = Query(20)) -> ListResponse[TrendingShow]:
    """Get videos and series ranked together by recent activity."""
    service = get_service()
    try:
        shows = await service.calculate_trending_shows(check_limit(limit))
    except TrendingError as e:
        raise _server_error(e)

    return ListResponse[TrendingShow](data=shows, count=len(shows), calculated_at=datetime.now(timezone.utc))


@router.get("/trending/videos", response_model=ListResponse[TrendingVideo])
async def trending_videos(limit: int = Query(10)) -> ListResponse[TrendingVideo]:
    """Get standalone videos ranked by recent activity."""
    service = get_service()
    try:
        videos = await service.get_trending_videos(check_limit(limit))
    except TrendingError as e:
        raise _server_error(e)

    return ListResponse[TrendingVideo](data=videos, count=len(videos), calculated_at=datetime.now(timezone.utc))


@router.get("/featured", response_model=ListResponse[FeaturedContent])
async def featured_content(limit: int = Query(5)) -> ListResponse[FeaturedContent]:
    """Get a shuffled selection of popular recent content."""
    service = get_service()
    try:
        featured = await service.get_featured_content(check_limit(limit))
    except TrendingError as e:
        raise _server_error(e)

    return ListResponse[FeaturedContent](
        data=featured, count=len(featured), calculated_at=datetime.now(timezone.utc)
    )
