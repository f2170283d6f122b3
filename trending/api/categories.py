"""Category API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status

from trending.core.categories import CategoriesService
from trending.core.exceptions import TrendingError
from trending.models import Category

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])

# Service will be injected
_service: Optional[CategoriesService] = None


def set_service(service: CategoriesService) -> None:
    """Set the categories service for the categories API."""
    global _service
    _service = service


def get_service() -> CategoriesService:
    """Get the current categories service."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Categories service not initialized",
        )
    return _service


@router.get("", response_model=list[Category])
async def list_categories() -> list[Category]:
    """Get active categories with their content counts."""
    service = get_service()
    try:
        return await service.get_active_categories()
    except TrendingError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.post("/refresh")
async def refresh_category_counts() -> dict[str, int]:
    """Recount category content and invalidate the cached list."""
    service = get_service()
    try:
        updated = await service.update_category_counts()
    except TrendingError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    logger.info(f"Category counts refreshed via API ({updated} categories)")
    return {"updated": updated}


@router.get("/{slug}", response_model=Category)
async def get_category(slug: str) -> Category:
    """Get a single category by slug."""
    service = get_service()
    try:
        category = await service.get_category_by_slug(slug)
    except TrendingError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Category '{slug}' not found")
    return category
