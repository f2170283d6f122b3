"""Base content source interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from trending.core.scoring import ScoreFormula
from trending.storage.records import Record

DEFAULT_CATEGORY = "General"


class ContentSource(ABC):
    """Abstract base class for the tabular data the rankings aggregate.

    Every query is read-only except the category maintenance methods and
    :meth:`ingest`. Eligible content is active, approved, and owned by an
    active, non-suspended creator with a creator profile.
    """

    @abstractmethod
    async def creator_activity(self, since: datetime, formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
        """Get windowed activity for active creators.

        Rows carry ``id``, ``username``, ``display_name``, ``avatar``,
        ``follower_count``, ``video_count``, ``recent_followers``,
        ``recent_views``, ``recent_profile_visits`` and ``primary_category``,
        ordered by ``formula`` descending and capped at ``limit``.
        """
        pass

    @abstractmethod
    async def video_activity(
        self, since: datetime, formula: ScoreFormula, limit: int, standalone_only: bool = False
    ) -> list[dict[str, Any]]:
        """Get windowed activity for eligible videos.

        Rows carry ``id``, ``title``, ``thumbnail_url``, ``creator_id``,
        ``creator_name``, ``creator_avatar``, ``view_count``, ``duration``,
        ``price``, ``category``, ``recent_views`` and ``recent_likes``,
        ordered by ``formula`` descending and capped at ``limit``.

        Args:
            standalone_only: If True, skip videos that belong to a series
        """
        pass

    @abstractmethod
    async def series_activity(self, since: datetime, formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
        """Get windowed activity for eligible series.

        Rows carry ``id``, ``title``, ``thumbnail_url``, ``creator_id``,
        ``creator_name``, ``view_count``, ``video_count``, ``price``,
        ``category``, ``recent_purchases`` and ``recent_series_views``,
        ordered by ``formula`` descending and capped at ``limit``.
        """
        pass

    @abstractmethod
    async def recent_videos(self, since: datetime, limit: int) -> list[dict[str, Any]]:
        """Get eligible videos created since ``since``, most viewed then newest first."""
        pass

    @abstractmethod
    async def recent_series(self, since: datetime, limit: int) -> list[dict[str, Any]]:
        """Get eligible series created since ``since``, most viewed then newest first."""
        pass

    @abstractmethod
    async def active_categories(self) -> list[dict[str, Any]]:
        """Get active categories with live counts of approved videos and series.

        Ordered by ``display_order`` then ``name``.
        """
        pass

    @abstractmethod
    async def category_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        """Get a single category with live counts, or None."""
        pass

    @abstractmethod
    async def list_categories(self) -> list[dict[str, Any]]:
        """Get ``id`` and ``name`` of every category, active or not."""
        pass

    @abstractmethod
    async def content_counts_by_category(self) -> dict[str, tuple[int, int]]:
        """Count active, approved content per category name.

        Returns:
            Mapping of category name to ``(video_count, series_count)``
        """
        pass

    @abstractmethod
    async def write_category_counts(self, counts: dict[str, tuple[int, int]], updated_at: datetime) -> None:
        """Persist denormalized counts keyed by category id, all or nothing.

        Raises:
            KeyError: If any id has no category row; nothing is written
        """
        pass

    @abstractmethod
    async def count_categories(self) -> int:
        """Get the number of category rows."""
        pass

    @abstractmethod
    async def insert_categories(self, categories: list[dict[str, Any]]) -> None:
        """Insert new category rows."""
        pass

    @abstractmethod
    async def ingest(self, records: Iterable[Record]) -> None:
        """Load rows into the source (fixtures, development data)."""
        pass

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Check if the source is healthy."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close source connections."""
        pass
