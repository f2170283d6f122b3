"""Row models for the tables the ranking engine reads.

Field names match the column names of the relational schema in
``trending.storage.sql`` so records can be inserted into either source.
"""

from datetime import datetime, timezone
from typing import ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field

Role = Literal["creator", "member", "admin"]
ModerationStatus = Literal["pending", "approved", "rejected", "flagged"]
TransactionStatus = Literal["pending", "completed", "failed"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Platform account."""

    table: ClassVar[str] = "users"

    id: str = Field(..., description="Unique user identifier")
    username: str = Field(..., description="Username")
    role: Role = Field(default="member", description="Account role")
    avatar: Optional[str] = Field(None, description="Avatar URL")
    is_active: bool = Field(default=True, description="Whether user is active")
    is_suspended: bool = Field(default=False, description="Whether user is suspended")


class CreatorProfile(BaseModel):
    """Public profile of a creator account."""

    table: ClassVar[str] = "creator_profiles"

    user_id: str
    display_name: str
    video_count: int = Field(default=0, ge=0, description="Lifetime catalog size")


class Series(BaseModel):
    """Multi-video series."""

    table: ClassVar[str] = "series"

    id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    total_price: float = 0.0
    video_count: int = 0
    category: str
    view_count: int = Field(default=0, ge=0)
    is_active: bool = True
    moderation_status: ModerationStatus = "approved"
    created_at: datetime = Field(default_factory=_utcnow)


class Video(BaseModel):
    """Single video, optionally part of a series."""

    table: ClassVar[str] = "videos"

    id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: str = ""
    duration: int = Field(default=0, ge=0, description="Duration in seconds")
    credit_cost: float = 0.0
    category: str
    view_count: int = Field(default=0, ge=0)
    is_active: bool = True
    moderation_status: ModerationStatus = "approved"
    series_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class CreatorFollow(BaseModel):
    """A member following a creator."""

    table: ClassVar[str] = "creator_follows"

    follower_id: str
    creator_id: str
    followed_at: datetime = Field(default_factory=_utcnow)


class VideoLike(BaseModel):
    table: ClassVar[str] = "video_likes"

    user_id: str
    video_id: str
    created_at: datetime = Field(default_factory=_utcnow)


class ProfileVisit(BaseModel):
    table: ClassVar[str] = "profile_visits"

    user_id: str
    creator_id: str
    visited_at: datetime = Field(default_factory=_utcnow)


class Transaction(BaseModel):
    """Payment event. ``video_view`` and ``series_purchase`` feed the rankings."""

    table: ClassVar[str] = "transactions"

    user_id: str
    type: str
    status: TransactionStatus = "completed"
    video_id: Optional[str] = None
    series_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class CategoryRecord(BaseModel):
    """Category row including its denormalized content counts."""

    table: ClassVar[str] = "categories"

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    video_count: int = 0
    series_count: int = 0
    is_active: bool = True
    display_order: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)


Record = Union[User, CreatorProfile, Series, Video, CreatorFollow, VideoLike, ProfileVisit, Transaction, CategoryRecord]
