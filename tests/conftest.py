"""Shared test fixtures and utilities."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from trending.core.cache import TTLCache
from trending.core.categories import CategoriesService
from trending.core.trending import TrendingService
from trending.storage.memory import MemoryContentSource
from trending.storage.records import (
    CreatorFollow,
    CreatorProfile,
    ProfileVisit,
    Series,
    Transaction,
    User,
    Video,
    VideoLike,
)
from trending.storage.sql import SqlContentSource


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def days_ago(days: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def build_dataset() -> list:
    """A small platform snapshot with known rankings.

    Expected trending scores with the default windows:
        creators: alice 45, bob 6, carol 0 (dave is suspended)
        shows: v1 23, v3 10, s1 8, v2 5, v4 2, s2 0
    """
    records: list = [
        User(id="c1", username="alice", role="creator", avatar="https://cdn.example.com/alice.png"),
        User(id="c2", username="bob", role="creator"),
        User(id="c3", username="carol", role="creator"),
        User(id="c4", username="dave", role="creator", is_suspended=True),
        CreatorProfile(user_id="c1", display_name="Alice", video_count=4),
        CreatorProfile(user_id="c2", display_name="Bob", video_count=10),
        CreatorProfile(user_id="c3", display_name="Carol", video_count=0),
        CreatorProfile(user_id="c4", display_name="Dave", video_count=50),
    ]
    records.extend(User(id=f"m{i}", username=f"member{i}") for i in range(1, 11))

    records.extend(
        [
            Series(
                id="s1",
                creator_id="c1",
                title="Alice Live",
                description="Concert recordings",
                thumbnail_url="https://cdn.example.com/s1.png",
                total_price=12.5,
                video_count=3,
                category="Music",
                view_count=40,
                created_at=days_ago(5),
            ),
            Series(id="s2", creator_id="c2", title="Speedruns", category="Gaming", created_at=days_ago(2)),
            Series(
                id="s3",
                creator_id="c1",
                title="Outtakes",
                category="Music",
                view_count=900,
                moderation_status="rejected",
                created_at=days_ago(1),
            ),
            Video(
                id="v1",
                creator_id="c1",
                title="Acoustic Set",
                description="Live in the studio",
                thumbnail_url="https://cdn.example.com/v1.png",
                duration=240,
                credit_cost=2.0,
                category="Music",
                view_count=100,
                created_at=days_ago(2),
            ),
            Video(
                id="v2",
                creator_id="c1",
                title="Alice Live, part 1",
                duration=600,
                category="Music",
                view_count=20,
                series_id="s1",
                created_at=days_ago(3),
            ),
            Video(id="v3", creator_id="c1", title="Bloopers", category="Comedy", view_count=50, created_at=days_ago(40)),
            Video(id="v4", creator_id="c2", title="Boss Fight", category="Gaming", view_count=10, created_at=days_ago(1)),
            Video(
                id="v5",
                creator_id="c2",
                title="Unreviewed",
                category="Gaming",
                view_count=500,
                moderation_status="pending",
                created_at=days_ago(1),
            ),
            Video(id="v6", creator_id="c4", title="Highlights", category="Sports", view_count=1000, created_at=days_ago(1)),
        ]
    )

    # Follows: alice 5 recent + 2 old, bob 1 recent
    records.extend(CreatorFollow(follower_id=f"m{i}", creator_id="c1", followed_at=days_ago(1)) for i in range(1, 6))
    records.extend(CreatorFollow(follower_id=f"m{i}", creator_id="c1", followed_at=days_ago(20)) for i in range(6, 8))
    records.append(CreatorFollow(follower_id="m1", creator_id="c2", followed_at=days_ago(2)))
    records.append(CreatorFollow(follower_id="m2", creator_id="c4", followed_at=days_ago(1)))

    # Profile visits: alice 3 recent, bob 10 recent + 5 old
    records.extend(ProfileVisit(user_id="m1", creator_id="c1", visited_at=days_ago(1)) for _ in range(3))
    records.extend(ProfileVisit(user_id="m2", creator_id="c2", visited_at=days_ago(1)) for _ in range(10))
    records.extend(ProfileVisit(user_id="m3", creator_id="c2", visited_at=days_ago(15)) for _ in range(5))

    records.extend(VideoLike(user_id=f"m{i}", video_id="v1", created_at=days_ago(1)) for i in range(1, 3))
    records.append(VideoLike(user_id="m3", video_id="v4", created_at=days_ago(1)))

    # Views of v1: 4 recent completed, 1 old, 1 pending
    records.extend(
        Transaction(user_id=f"m{i}", type="video_view", video_id="v1", created_at=days_ago(1)) for i in range(1, 5)
    )
    records.append(Transaction(user_id="m5", type="video_view", video_id="v1", created_at=days_ago(10)))
    records.append(
        Transaction(user_id="m6", type="video_view", status="pending", video_id="v1", created_at=days_ago(1))
    )
    records.extend(
        Transaction(user_id=f"m{i}", type="video_view", video_id="v2", created_at=days_ago(2)) for i in range(1, 3)
    )
    records.extend(
        Transaction(user_id=f"m{i}", type="series_purchase", series_id="s1", created_at=days_ago(2))
        for i in range(1, 4)
    )
    return records


@pytest.fixture
def clock():
    """A fake monotonic clock starting at zero."""
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Create a fresh cache driven by the fake clock."""
    return TTLCache(max_size=100, clock=clock)


@pytest.fixture
async def memory_source():
    """Create an in-memory content source loaded with the test dataset."""
    source = MemoryContentSource()
    await source.ingest(build_dataset())
    yield source
    await source.clear()


@pytest.fixture
async def sql_source(tmp_path):
    """Create a SQLite-backed content source loaded with the test dataset."""
    source = SqlContentSource(f"sqlite+aiosqlite:///{tmp_path}/trending.db")
    await source.connect()
    await source.create_schema()
    await source.ingest(build_dataset())
    yield source
    await source.close()


@pytest.fixture(params=["memory", "sql"])
async def source(request, tmp_path):
    """Content source loaded with the test dataset, for each backend."""
    if request.param == "memory":
        content_source = MemoryContentSource()
    else:
        content_source = SqlContentSource(f"sqlite+aiosqlite:///{tmp_path}/trending.db")
        await content_source.connect()
        await content_source.create_schema()

    await content_source.ingest(build_dataset())
    yield content_source
    await content_source.close()


@pytest.fixture
def trending_service(source, cache):
    """Trending service over the parametrized source."""
    return TrendingService(source, cache, rng=random.Random(7))


@pytest.fixture
def categories_service(source, cache):
    """Categories service over the parametrized source."""
    return CategoriesService(source, cache)
