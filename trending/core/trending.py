"""Trending creators, shows and featured content."""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from trending.core.cache import CacheKeys, CacheTTL, TTLCache
from trending.core.exceptions import RankingError
from trending.core.scoring import (
    CREATOR_SCORE,
    FEATURED_VIDEO_SHARE,
    FEATURED_SERIES_SHARE,
    FEATURED_WINDOW_DAYS,
    SERIES_CANDIDATE_SHARE,
    SERIES_SCORE,
    TRENDING_WINDOW_DAYS,
    VIDEO_CANDIDATE_SHARE,
    VIDEO_SCORE,
    candidate_quota,
)
from trending.models import (
    FeaturedContent,
    TrendingCreator,
    TrendingSeriesShow,
    TrendingVideo,
    TrendingVideoShow,
)
from trending.storage.base import ContentSource
from trending.utils.metrics import ranking_duration_seconds, ranking_failures_total

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")


class TrendingService:
    """Ranking pipelines served through a cache-aside layer.

    Every entry point caches its whole ranked list per ``limit``. Scores are
    recomputed in process with the same formulas the content source sorts
    by, then the lists are re-sorted stably so equal scores keep the
    source's order.
    """

    def __init__(
        self,
        source: ContentSource,
        cache: TTLCache,
        ttl: CacheTTL = CacheTTL(),
        window_days: int = TRENDING_WINDOW_DAYS,
        featured_window_days: int = FEATURED_WINDOW_DAYS,
        now: Callable[[], datetime] = _utcnow,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the trending service.

        Args:
            source: Content source to aggregate
            cache: Cache shared with the other services
            ttl: Lifetime of each cached list
            window_days: Trailing window for recent activity
            featured_window_days: Creation window for featured content
            now: Current UTC time source
            rng: Random generator for the featured shuffle
        """
        self._source = source
        self._cache = cache
        self._ttl = ttl
        self._window = timedelta(days=window_days)
        self._featured_window = timedelta(days=featured_window_days)
        self._now = now
        self._rng = rng or random.Random()

    async def calculate_trending_creators(self, limit: int = 10) -> list[TrendingCreator]:
        """Rank creators by recent followers, views, profile visits and catalog size."""
        _check_limit(limit)
        return await self._cache.get_or_set(
            CacheKeys.with_limit(CacheKeys.TRENDING_CREATORS, limit),
            lambda: self._trending_creators_from_source(limit),
            self._ttl.trending_creators,
        )

    async def calculate_trending_shows(self, limit: int = 20) -> list[Union[TrendingVideoShow, TrendingSeriesShow]]:
        """Rank videos and series together, reserving a share of the list for each kind."""
        _check_limit(limit)
        return await self._cache.get_or_set(
            CacheKeys.with_limit(CacheKeys.TRENDING_SHOWS, limit),
            lambda: self._trending_shows_from_source(limit),
            self._ttl.trending_shows,
        )

    async def get_trending_videos(self, limit: int = 10) -> list[TrendingVideo]:
        """Rank standalone videos (not part of a series)."""
        _check_limit(limit)
        return await self._cache.get_or_set(
            CacheKeys.with_limit(CacheKeys.TRENDING_VIDEOS, limit),
            lambda: self._trending_videos_from_source(limit),
            self._ttl.trending_shows,
        )

    async def get_featured_content(self, limit: int = 5) -> list[FeaturedContent]:
        """Sample popular recent videos and series in random order.

        The shuffled list is cached, so the order only changes when the
        entry expires.
        """
        _check_limit(limit)
        return await self._cache.get_or_set(
            CacheKeys.with_limit(CacheKeys.FEATURED_CONTENT, limit),
            lambda: self._featured_content_from_source(limit),
            self._ttl.featured_content,
        )

    async def _trending_creators_from_source(self, limit: int) -> list[TrendingCreator]:
        since = self._now() - self._window

        try:
            with ranking_duration_seconds.labels(pipeline="creators").time():
                rows = await self._source.creator_activity(since, CREATOR_SCORE, limit)
        except Exception as e:
            ranking_failures_total.labels(pipeline="creators").inc()
            logger.error(f"Error calculating trending creators: {e}")
            raise RankingError("Failed to calculate trending creators") from e

        creators = [
            TrendingCreator(
                id=row["id"],
                username=row["username"],
                display_name=row["display_name"],
                avatar=row["avatar"],
                follower_count=row["follower_count"],
                video_count=row["video_count"],
                recent_followers=row["recent_followers"],
                recent_views=row["recent_views"],
                recent_profile_visits=row["recent_profile_visits"],
                primary_category=row["primary_category"],
                trending_score=CREATOR_SCORE.score(row),
            )
            for row in rows
        ]
        creators.sort(key=lambda creator: creator.trending_score, reverse=True)

        logger.debug(f"Calculated {len(creators)} trending creators (limit {limit})")
        return creators[:limit]

    async def _trending_shows_from_source(self, limit: int) -> list[Union[TrendingVideoShow, TrendingSeriesShow]]:
        since = self._now() - self._window

        try:
            with ranking_duration_seconds.labels(pipeline="shows").time():
                video_rows = await self._source.video_activity(
                    since, VIDEO_SCORE, candidate_quota(limit, VIDEO_CANDIDATE_SHARE)
                )
                series_rows = await self._source.series_activity(
                    since, SERIES_SCORE, candidate_quota(limit, SERIES_CANDIDATE_SHARE)
                )
        except Exception as e:
            ranking_failures_total.labels(pipeline="shows").inc()
            logger.error(f"Error calculating trending shows: {e}")
            raise RankingError("Failed to calculate trending shows") from e

        shows: list[Union[TrendingVideoShow, TrendingSeriesShow]] = [
            TrendingVideoShow(
                duration_seconds=row["duration"],
                trending_score=VIDEO_SCORE.score(row),
                recent_activity_count=row["recent_views"],
                **self._show_fields(row),
            )
            for row in video_rows
        ]
        shows.extend(
            TrendingSeriesShow(
                video_count=row["video_count"],
                trending_score=SERIES_SCORE.score(row),
                recent_activity_count=row["recent_series_views"],
                **self._show_fields(row),
            )
            for row in series_rows
        )
        shows.sort(key=lambda show: show.trending_score, reverse=True)

        logger.debug(f"Merged {len(video_rows)} videos and {len(series_rows)} series into trending shows")
        return shows[:limit]

    @staticmethod
    def _show_fields(row: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "thumbnail_url": row["thumbnail_url"] or "",
            "creator_name": row["creator_name"],
            "creator_id": row["creator_id"],
            "view_count": row["view_count"],
            "price": float(row["price"]),
            "category": row["category"],
        }

    async def _trending_videos_from_source(self, limit: int) -> list[TrendingVideo]:
        since = self._now() - self._window

        try:
            with ranking_duration_seconds.labels(pipeline="videos").time():
                rows = await self._source.video_activity(since, VIDEO_SCORE, limit, standalone_only=True)
        except Exception as e:
            ranking_failures_total.labels(pipeline="videos").inc()
            logger.error(f"Error fetching trending videos: {e}")
            raise RankingError("Failed to fetch trending videos") from e

        videos = [
            TrendingVideo(
                id=row["id"],
                title=row["title"],
                thumbnail_url=row["thumbnail_url"],
                duration_seconds=row["duration"],
                view_count=row["view_count"],
                creator_name=row["creator_name"],
                creator_avatar=row["creator_avatar"] or "",
                creator_id=row["creator_id"],
                price=float(row["price"]),
                category=row["category"],
                href=f"/watch/{row['id']}",
                trending_score=VIDEO_SCORE.score(row),
            )
            for row in rows
        ]
        videos.sort(key=lambda video: video.trending_score, reverse=True)
        return videos

    async def _featured_content_from_source(self, limit: int) -> list[FeaturedContent]:
        since = self._now() - self._featured_window

        try:
            with ranking_duration_seconds.labels(pipeline="featured").time():
                video_rows = await self._source.recent_videos(since, candidate_quota(limit, FEATURED_VIDEO_SHARE))
                series_rows = await self._source.recent_series(since, candidate_quota(limit, FEATURED_SERIES_SHARE))
        except Exception as e:
            ranking_failures_total.labels(pipeline="featured").inc()
            logger.error(f"Error getting featured content: {e}")
            raise RankingError("Failed to get featured content") from e

        featured = [self._featured(row, "video", f"/watch/{row['id']}") for row in video_rows]
        featured.extend(self._featured(row, "series", f"/series/{row['id']}") for row in series_rows)
        self._rng.shuffle(featured)
        return featured[:limit]

    @staticmethod
    def _featured(row: dict[str, Any], kind: str, href: str) -> FeaturedContent:
        return FeaturedContent(
            id=row["id"],
            kind=kind,
            title=row["title"],
            description=row["description"] or "",
            image_url=row["thumbnail_url"] or "",
            creator_name=row["creator_name"],
            creator_avatar=row["creator_avatar"] or "",
            category=row["category"],
            href=href,
        )
