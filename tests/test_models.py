"""Tests for Pydantic models."""

from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from trending.models import (
    Category,
    FeaturedContent,
    ListResponse,
    TrendingCreator,
    TrendingSeriesShow,
    TrendingShow,
    TrendingVideoShow,
)
from trending.storage.records import Transaction, Video


class TestTrendingCreator:
    """Tests for TrendingCreator model."""

    def test_valid_creator(self):
        creator = TrendingCreator(
            id="c1",
            username="alice",
            display_name="Alice",
            follower_count=7,
            video_count=4,
            recent_followers=5,
            recent_views=120,
            recent_profile_visits=3,
            primary_category="Music",
            trending_score=45,
        )

        assert creator.avatar is None
        assert creator.model_dump()["trending_score"] == 45

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            TrendingCreator(
                id="c1",
                username="alice",
                display_name="Alice",
                follower_count=-1,
                video_count=0,
                recent_followers=0,
                recent_views=0,
                primary_category="General",
                trending_score=0,
            )


class TestTrendingShow:
    """Tests for the video/series show union."""

    def test_discriminates_on_kind(self):
        adapter = TypeAdapter(list[TrendingShow])
        common = {
            "title": "T",
            "creator_name": "Alice",
            "creator_id": "c1",
            "view_count": 1,
            "price": 0.0,
            "category": "Music",
            "trending_score": 1,
            "recent_activity_count": 0,
        }

        shows = adapter.validate_python(
            [
                {"kind": "video", "id": "v1", "duration_seconds": 60, **common},
                {"kind": "series", "id": "s1", "video_count": 3, **common},
            ]
        )

        assert isinstance(shows[0], TrendingVideoShow)
        assert isinstance(shows[1], TrendingSeriesShow)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(TrendingShow).validate_python({"kind": "podcast", "id": "p1"})


class TestCategory:
    def test_content_count_is_serialized(self):
        category = Category(id="1", name="Music", slug="music", video_count=2, series_count=1)

        assert category.content_count == 3
        assert category.model_dump()["content_count"] == 3


class TestFeaturedContent:
    def test_kind_must_be_video_or_series(self):
        with pytest.raises(ValidationError):
            FeaturedContent(id="x", kind="playlist", title="X", creator_name="A", category="Music", href="/x")


class TestListResponse:
    def test_generic_list(self):
        response = ListResponse[Category](
            data=[Category(id="1", name="Music", slug="music")],
            count=1,
            calculated_at=datetime.now(timezone.utc),
        )

        assert response.model_dump()["data"][0]["slug"] == "music"


class TestRecords:
    """Tests for source row models."""

    def test_video_defaults(self):
        video = Video(id="v1", creator_id="c1", title="T", category="Music")

        assert video.moderation_status == "approved"
        assert video.series_id is None
        assert video.created_at.tzinfo is not None
        assert Video.table == "videos"
        assert "table" not in video.model_dump()

    def test_invalid_moderation_status(self):
        with pytest.raises(ValidationError):
            Video(id="v1", creator_id="c1", title="T", category="Music", moderation_status="hidden")

    def test_transaction_defaults_to_completed(self):
        assert Transaction(user_id="m1", type="video_view", video_id="v1").status == "completed"
