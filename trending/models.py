"""Pydantic models for ranked records and API responses."""

from datetime import datetime
from typing import Annotated, Generic, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, computed_field

T = TypeVar("T")


class TrendingCreator(BaseModel):
    """Creator ranked by recent follow, view and visit activity."""

    id: str
    username: str
    display_name: str
    avatar: Optional[str] = None
    follower_count: int = Field(..., ge=0, description="Lifetime followers")
    video_count: int = Field(..., ge=0, description="Lifetime catalog size")
    recent_followers: int = Field(..., ge=0)
    recent_views: int = Field(..., ge=0)
    recent_profile_visits: int = Field(0, ge=0)
    primary_category: str
    trending_score: int

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "6f1c2a9e-3d4b-4c55-9a1e-0b7d2f4e8c11",
                    "username": "alice",
                    "display_name": "Alice Sings",
                    "avatar": "https://cdn.example.com/avatars/alice.png",
                    "follower_count": 1520,
                    "video_count": 42,
                    "recent_followers": 35,
                    "recent_views": 1200,
                    "recent_profile_visits": 80,
                    "primary_category": "Music",
                    "trending_score": 450,
                }
            ]
        }
    }


class _TrendingShowBase(BaseModel):
    id: str
    title: str
    thumbnail_url: str = ""
    creator_name: str
    creator_id: str
    view_count: int = Field(..., ge=0, description="Lifetime view count")
    price: float
    category: str
    trending_score: int
    recent_activity_count: int = Field(..., ge=0, description="Windowed views or series views")


class TrendingVideoShow(_TrendingShowBase):
    kind: Literal["video"] = "video"
    duration_seconds: int = Field(..., ge=0)


class TrendingSeriesShow(_TrendingShowBase):
    kind: Literal["series"] = "series"
    video_count: int = Field(..., ge=0)


TrendingShow = Annotated[Union[TrendingVideoShow, TrendingSeriesShow], Field(discriminator="kind")]


class TrendingVideo(BaseModel):
    """Standalone video ranked for the landing page."""

    id: str
    title: str
    thumbnail_url: str
    duration_seconds: int
    view_count: int
    creator_name: str
    creator_avatar: str = ""
    creator_id: str
    price: float
    category: str
    href: str
    trending_score: int


class FeaturedContent(BaseModel):
    """Unscored content summary for the featured carousel."""

    id: str
    kind: Literal["video", "series"]
    title: str
    description: str = ""
    image_url: str = ""
    creator_name: str
    creator_avatar: str = ""
    category: str
    href: str


class Category(BaseModel):
    """Category with counts of its active, approved content."""

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    video_count: int = Field(0, ge=0)
    series_count: int = Field(0, ge=0)
    is_active: bool = True
    display_order: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_count(self) -> int:
        return self.video_count + self.series_count


class ListResponse(BaseModel, Generic[T]):
    """Ranked list returned by the trending endpoints."""

    data: list[T]
    count: int
    calculated_at: datetime


class CacheStatsResponse(BaseModel):
    total_items: int
    valid_items: int
    expired_items: int
    max_size: int


class SweepResponse(BaseModel):
    removed: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    version: str = "0.1.0"


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    checks: dict[str, str]
