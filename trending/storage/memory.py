"""In-memory content source for testing and local development."""

import asyncio
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import uuid4

from trending.core.scoring import ScoreFormula
from trending.storage.base import DEFAULT_CATEGORY, ContentSource
from trending.storage.records import (
    CategoryRecord,
    CreatorFollow,
    CreatorProfile,
    ProfileVisit,
    Record,
    Series,
    Transaction,
    User,
    Video,
    VideoLike,
)


def _is_approved(item: Union[Video, Series]) -> bool:
    return item.is_active and item.moderation_status == "approved"


def _top(rows: list[dict[str, Any]], formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
    # sorted() is stable, so ties keep table order
    return sorted(rows, key=formula.raw_score, reverse=True)[:limit]


class MemoryContentSource(ContentSource):
    """Content source holding every table in process memory."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._profiles: dict[str, CreatorProfile] = {}
        self._videos: dict[str, Video] = {}
        self._series: dict[str, Series] = {}
        self._follows: list[CreatorFollow] = []
        self._likes: list[VideoLike] = []
        self._visits: list[ProfileVisit] = []
        self._transactions: list[Transaction] = []
        self._categories: dict[str, CategoryRecord] = {}
        self._lock = asyncio.Lock()

    async def ingest(self, records: Iterable[Record]) -> None:
        """Add records to their tables, replacing rows with the same key."""
        async with self._lock:
            for record in records:
                if isinstance(record, User):
                    self._users[record.id] = record
                elif isinstance(record, CreatorProfile):
                    self._profiles[record.user_id] = record
                elif isinstance(record, Video):
                    self._videos[record.id] = record
                elif isinstance(record, Series):
                    self._series[record.id] = record
                elif isinstance(record, CreatorFollow):
                    self._follows.append(record)
                elif isinstance(record, VideoLike):
                    self._likes.append(record)
                elif isinstance(record, ProfileVisit):
                    self._visits.append(record)
                elif isinstance(record, Transaction):
                    self._transactions.append(record)
                elif isinstance(record, CategoryRecord):
                    self._categories[record.id] = record
                else:
                    raise TypeError(f"Unsupported record type: {type(record).__name__}")

    def _eligible_creator(self, creator_id: str) -> Optional[tuple[User, CreatorProfile]]:
        user = self._users.get(creator_id)
        profile = self._profiles.get(creator_id)
        if user is None or profile is None or not user.is_active or user.is_suspended:
            return None
        return user, profile

    async def creator_activity(self, since: datetime, formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
        async with self._lock:
            rows = []
            for user in self._users.values():
                if user.role != "creator" or self._eligible_creator(user.id) is None:
                    continue
                profile = self._profiles[user.id]

                approved = [v for v in self._videos.values() if v.creator_id == user.id and _is_approved(v)]
                follows = [f for f in self._follows if f.creator_id == user.id]
                categories = Counter(v.category for v in approved)

                rows.append(
                    {
                        "id": user.id,
                        "username": user.username,
                        "display_name": profile.display_name,
                        "avatar": user.avatar,
                        "follower_count": len(follows),
                        "video_count": profile.video_count,
                        "recent_followers": sum(1 for f in follows if f.followed_at >= since),
                        "recent_views": sum(v.view_count for v in approved if v.created_at >= since),
                        "recent_profile_visits": sum(
                            1 for p in self._visits if p.creator_id == user.id and p.visited_at >= since
                        ),
                        "primary_category": categories.most_common(1)[0][0] if categories else DEFAULT_CATEGORY,
                    }
                )

            return _top(rows, formula, limit)

    def _completed(self, kind: str, since: datetime) -> list[Transaction]:
        return [
            t for t in self._transactions if t.type == kind and t.status == "completed" and t.created_at >= since
        ]

    async def video_activity(
        self, since: datetime, formula: ScoreFormula, limit: int, standalone_only: bool = False
    ) -> list[dict[str, Any]]:
        async with self._lock:
            views = Counter(t.video_id for t in self._completed("video_view", since))
            likes = Counter(like.video_id for like in self._likes if like.created_at >= since)

            rows = []
            for video in self._videos.values():
                owner = self._eligible_creator(video.creator_id)
                if owner is None or not _is_approved(video):
                    continue
                if standalone_only and video.series_id is not None:
                    continue
                user, profile = owner

                rows.append(
                    {
                        "id": video.id,
                        "title": video.title,
                        "thumbnail_url": video.thumbnail_url,
                        "creator_id": video.creator_id,
                        "creator_name": profile.display_name,
                        "creator_avatar": user.avatar,
                        "view_count": video.view_count,
                        "duration": video.duration,
                        "price": video.credit_cost,
                        "category": video.category,
                        "recent_views": views[video.id],
                        "recent_likes": likes[video.id],
                    }
                )

            return _top(rows, formula, limit)

    async def series_activity(self, since: datetime, formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
        async with self._lock:
            purchases = Counter(t.series_id for t in self._completed("series_purchase", since))
            series_views: Counter = Counter()
            for transaction in self._completed("video_view", since):
                video = self._videos.get(transaction.video_id or "")
                if video is not None and video.series_id is not None:
                    series_views[video.series_id] += 1

            rows = []
            for item in self._series.values():
                owner = self._eligible_creator(item.creator_id)
                if owner is None or not _is_approved(item):
                    continue
                _, profile = owner

                rows.append(
                    {
                        "id": item.id,
                        "title": item.title,
                        "thumbnail_url": item.thumbnail_url,
                        "creator_id": item.creator_id,
                        "creator_name": profile.display_name,
                        "view_count": item.view_count,
                        "video_count": item.video_count,
                        "price": item.total_price,
                        "category": item.category,
                        "recent_purchases": purchases[item.id],
                        "recent_series_views": series_views[item.id],
                    }
                )

            return _top(rows, formula, limit)

    def _recent(self, items: Iterable[Union[Video, Series]], since: datetime, limit: int) -> list[dict[str, Any]]:
        eligible = [
            item
            for item in items
            if _is_approved(item) and item.created_at >= since and self._eligible_creator(item.creator_id)
        ]
        eligible.sort(key=lambda item: (item.view_count, item.created_at), reverse=True)

        rows = []
        for item in eligible[:limit]:
            user, profile = self._users[item.creator_id], self._profiles[item.creator_id]
            rows.append(
                {
                    "id": item.id,
                    "title": item.title,
                    "description": item.description,
                    "thumbnail_url": item.thumbnail_url,
                    "creator_name": profile.display_name,
                    "creator_avatar": user.avatar,
                    "category": item.category,
                    "view_count": item.view_count,
                }
            )
        return rows

    async def recent_videos(self, since: datetime, limit: int) -> list[dict[str, Any]]:
        async with self._lock:
            return self._recent(self._videos.values(), since, limit)

    async def recent_series(self, since: datetime, limit: int) -> list[dict[str, Any]]:
        async with self._lock:
            return self._recent(self._series.values(), since, limit)

    def _live_counts(self) -> dict[str, tuple[int, int]]:
        videos = Counter(v.category for v in self._videos.values() if _is_approved(v))
        series = Counter(s.category for s in self._series.values() if _is_approved(s))
        return {name: (videos[name], series[name]) for name in set(videos) | set(series)}

    def _with_counts(self, category: CategoryRecord, counts: dict[str, tuple[int, int]]) -> dict[str, Any]:
        row = category.model_dump(exclude={"updated_at"})
        row["video_count"], row["series_count"] = counts.get(category.name, (0, 0))
        return row

    async def active_categories(self) -> list[dict[str, Any]]:
        async with self._lock:
            counts = self._live_counts()
            active = sorted(
                (c for c in self._categories.values() if c.is_active),
                key=lambda c: (c.display_order, c.name),
            )
            return [self._with_counts(c, counts) for c in active]

    async def category_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        async with self._lock:
            for category in self._categories.values():
                if category.slug == slug:
                    return self._with_counts(category, self._live_counts())
            return None

    async def list_categories(self) -> list[dict[str, Any]]:
        async with self._lock:
            return [{"id": c.id, "name": c.name} for c in self._categories.values()]

    async def content_counts_by_category(self) -> dict[str, tuple[int, int]]:
        async with self._lock:
            return self._live_counts()

    async def write_category_counts(self, counts: dict[str, tuple[int, int]], updated_at: datetime) -> None:
        async with self._lock:
            missing = set(counts) - set(self._categories)
            if missing:
                raise KeyError(f"Unknown category ids: {sorted(missing)}")

            for category_id, (video_count, series_count) in counts.items():
                self._categories[category_id] = self._categories[category_id].model_copy(
                    update={"video_count": video_count, "series_count": series_count, "updated_at": updated_at}
                )

    async def count_categories(self) -> int:
        async with self._lock:
            return len(self._categories)

    async def insert_categories(self, categories: list[dict[str, Any]]) -> None:
        async with self._lock:
            for data in categories:
                record = CategoryRecord(id=str(uuid4()), updated_at=datetime.now(timezone.utc), **data)
                self._categories[record.id] = record

    async def get_category(self, category_id: str) -> Optional[CategoryRecord]:
        """Get a stored category row, denormalized counts included."""
        async with self._lock:
            return self._categories.get(category_id)

    async def health_check(self) -> dict[str, Any]:
        """Check if source is healthy."""
        return {"status": "healthy"}

    async def close(self) -> None:
        """Close source (no-op for memory source)."""
        pass

    async def clear(self) -> None:
        """Clear all tables (for testing)."""
        async with self._lock:
            for table in (self._users, self._profiles, self._videos, self._series, self._categories):
                table.clear()
            for rows in (self._follows, self._likes, self._visits, self._transactions):
                rows.clear()
