"""Relational content source built on SQLAlchemy Core (async)."""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
    select,
    text,
    update,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from trending.core.scoring import ScoreFormula
from trending.storage.base import DEFAULT_CATEGORY, ContentSource
from trending.storage.records import Record

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(100), nullable=False, unique=True),
    Column("role", String(20), nullable=False, index=True),
    Column("avatar", Text),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_suspended", Boolean, nullable=False, default=False, index=True),
)

creator_profiles = Table(
    "creator_profiles",
    metadata,
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("display_name", String(255), nullable=False),
    Column("video_count", Integer, nullable=False, default=0),
)

series = Table(
    "series",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("creator_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("thumbnail_url", Text),
    Column("total_price", Numeric(10, 2, asdecimal=False), nullable=False, default=0),
    Column("video_count", Integer, nullable=False, default=0),
    Column("category", String(100), nullable=False, index=True),
    Column("view_count", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("moderation_status", String(20), nullable=False, default="approved"),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)

videos = Table(
    "videos",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("creator_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("thumbnail_url", Text, nullable=False),
    Column("duration", Integer, nullable=False),
    Column("credit_cost", Numeric(5, 2, asdecimal=False), nullable=False),
    Column("category", String(100), nullable=False, index=True),
    Column("view_count", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("moderation_status", String(20), nullable=False, default="approved"),
    Column("series_id", String(36), ForeignKey("series.id", ondelete="SET NULL"), index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)

creator_follows = Table(
    "creator_follows",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("follower_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("creator_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("followed_at", DateTime(timezone=True), nullable=False, index=True),
)

video_likes = Table(
    "video_likes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("video_id", String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

profile_visits = Table(
    "profile_visits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("creator_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("visited_at", DateTime(timezone=True), nullable=False, index=True),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("type", String(50), nullable=False, index=True),
    Column("status", String(20), nullable=False, default="pending", index=True),
    Column("video_id", String(36), ForeignKey("videos.id", ondelete="SET NULL"), index=True),
    Column("series_id", String(36), ForeignKey("series.id", ondelete="SET NULL"), index=True),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)

categories = Table(
    "categories",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("slug", String(100), nullable=False, unique=True),
    Column("description", Text),
    Column("icon_url", Text),
    Column("video_count", Integer, nullable=False, default=0),
    Column("series_count", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("display_order", Integer, nullable=False, default=0),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)


def _approved(table: Table) -> list:
    return [table.c.is_active.is_(True), table.c.moderation_status == "approved"]


def _eligible_creator() -> list:
    return [users.c.is_active.is_(True), users.c.is_suspended.is_(False)]


def _completed(kind: str, since: datetime) -> list:
    return [
        transactions.c.type == kind,
        transactions.c.status == "completed",
        transactions.c.created_at >= since,
    ]


def _category_counts():
    """Correlated subqueries counting approved content in the outer category."""
    video_count = (
        select(func.count())
        .select_from(videos)
        .where(videos.c.category == categories.c.name, *_approved(videos))
        .scalar_subquery()
    )
    series_count = (
        select(func.count())
        .select_from(series)
        .where(series.c.category == categories.c.name, *_approved(series))
        .scalar_subquery()
    )
    return [
        func.coalesce(video_count, 0).label("video_count"),
        func.coalesce(series_count, 0).label("series_count"),
    ]


_CATEGORY_COLUMNS = [
    categories.c.id,
    categories.c.name,
    categories.c.slug,
    categories.c.description,
    categories.c.icon_url,
    categories.c.is_active,
    categories.c.display_order,
]


class SqlContentSource(ContentSource):
    """Content source issuing aggregation queries against a relational database.

    Ranking sort keys are generated from the same ``ScoreFormula`` the
    services use to compute the returned scores.
    """

    def __init__(self, database_url: str, echo: bool = False, **engine_kwargs: Any):
        """Initialize SQL content source.

        Args:
            database_url: SQLAlchemy async URL, e.g. ``postgresql+asyncpg://...``
            echo: Log every statement
            engine_kwargs: Extra arguments for ``create_async_engine``
        """
        self.database_url = database_url
        self._echo = echo
        self._engine_kwargs = engine_kwargs
        self._engine: Optional[AsyncEngine] = None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self._engine is not None:
            return

        try:
            self._engine = create_async_engine(self.database_url, echo=self._echo, **self._engine_kwargs)
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info(f"Connected to database {self._engine.url.render_as_string(hide_password=True)}")
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            self._engine = None
            raise

    async def create_schema(self) -> None:
        """Create all tables that don't exist yet."""
        async with self._get_engine().begin() as conn:
            await conn.run_sync(metadata.create_all)

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Not connected to database")
        return self._engine

    async def _fetch(self, stmt) -> list[dict[str, Any]]:
        async with self._get_engine().connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def creator_activity(self, since: datetime, formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
        lifetime_follows = (
            select(creator_follows.c.creator_id, func.count().label("total"))
            .group_by(creator_follows.c.creator_id)
            .subquery("lf")
        )
        recent_follows = (
            select(creator_follows.c.creator_id, func.count().label("total"))
            .where(creator_follows.c.followed_at >= since)
            .group_by(creator_follows.c.creator_id)
            .subquery("rf")
        )
        recent_views = (
            select(videos.c.creator_id, func.sum(videos.c.view_count).label("total"))
            .where(videos.c.created_at >= since, *_approved(videos))
            .group_by(videos.c.creator_id)
            .subquery("rv")
        )
        recent_visits = (
            select(profile_visits.c.creator_id, func.count().label("total"))
            .where(profile_visits.c.visited_at >= since)
            .group_by(profile_visits.c.creator_id)
            .subquery("pv")
        )
        primary_category = (
            select(videos.c.category)
            .where(videos.c.creator_id == users.c.id, *_approved(videos))
            .group_by(videos.c.category)
            .order_by(func.count().desc())
            .limit(1)
            .correlate(users)
            .scalar_subquery()
        )

        signals = {
            "recent_followers": func.coalesce(recent_follows.c.total, 0),
            "recent_views": func.coalesce(recent_views.c.total, 0),
            "recent_profile_visits": func.coalesce(recent_visits.c.total, 0),
            "video_count": creator_profiles.c.video_count,
        }

        stmt = (
            select(
                users.c.id,
                users.c.username,
                creator_profiles.c.display_name,
                users.c.avatar,
                func.coalesce(lifetime_follows.c.total, 0).label("follower_count"),
                func.coalesce(primary_category, DEFAULT_CATEGORY).label("primary_category"),
                *(expr.label(name) for name, expr in signals.items()),
            )
            .select_from(
                users.join(creator_profiles, creator_profiles.c.user_id == users.c.id)
                .outerjoin(lifetime_follows, lifetime_follows.c.creator_id == users.c.id)
                .outerjoin(recent_follows, recent_follows.c.creator_id == users.c.id)
                .outerjoin(recent_views, recent_views.c.creator_id == users.c.id)
                .outerjoin(recent_visits, recent_visits.c.creator_id == users.c.id)
            )
            .where(users.c.role == "creator", *_eligible_creator())
            .order_by(formula.combine(signals.__getitem__).desc())
            .limit(limit)
        )

        try:
            return await self._fetch(stmt)
        except Exception as e:
            logger.error(f"Failed to query creator activity: {e}")
            raise

    async def video_activity(
        self, since: datetime, formula: ScoreFormula, limit: int, standalone_only: bool = False
    ) -> list[dict[str, Any]]:
        recent_views = (
            select(transactions.c.video_id, func.count().label("total"))
            .where(*_completed("video_view", since))
            .group_by(transactions.c.video_id)
            .subquery("rvv")
        )
        recent_likes = (
            select(video_likes.c.video_id, func.count().label("total"))
            .where(video_likes.c.created_at >= since)
            .group_by(video_likes.c.video_id)
            .subquery("rvl")
        )

        signals = {
            "recent_views": func.coalesce(recent_views.c.total, 0),
            "recent_likes": func.coalesce(recent_likes.c.total, 0),
            "view_count": videos.c.view_count,
        }

        conditions = [*_approved(videos), *_eligible_creator()]
        if standalone_only:
            conditions.append(videos.c.series_id.is_(None))

        stmt = (
            select(
                videos.c.id,
                videos.c.title,
                videos.c.thumbnail_url,
                videos.c.creator_id,
                creator_profiles.c.display_name.label("creator_name"),
                users.c.avatar.label("creator_avatar"),
                videos.c.duration,
                videos.c.credit_cost.label("price"),
                videos.c.category,
                *(expr.label(name) for name, expr in signals.items()),
            )
            .select_from(
                videos.join(users, videos.c.creator_id == users.c.id)
                .join(creator_profiles, creator_profiles.c.user_id == users.c.id)
                .outerjoin(recent_views, recent_views.c.video_id == videos.c.id)
                .outerjoin(recent_likes, recent_likes.c.video_id == videos.c.id)
            )
            .where(*conditions)
            .order_by(formula.combine(signals.__getitem__).desc())
            .limit(limit)
        )

        try:
            return await self._fetch(stmt)
        except Exception as e:
            logger.error(f"Failed to query video activity: {e}")
            raise

    async def series_activity(self, since: datetime, formula: ScoreFormula, limit: int) -> list[dict[str, Any]]:
        recent_purchases = (
            select(transactions.c.series_id, func.count().label("total"))
            .where(*_completed("series_purchase", since))
            .group_by(transactions.c.series_id)
            .subquery("rsp")
        )
        recent_series_views = (
            select(videos.c.series_id, func.count().label("total"))
            .select_from(transactions.join(videos, transactions.c.video_id == videos.c.id))
            .where(videos.c.series_id.is_not(None), *_completed("video_view", since))
            .group_by(videos.c.series_id)
            .subquery("rsv")
        )

        signals = {
            "recent_purchases": func.coalesce(recent_purchases.c.total, 0),
            "recent_series_views": func.coalesce(recent_series_views.c.total, 0),
            "view_count": series.c.view_count,
        }

        stmt = (
            select(
                series.c.id,
                series.c.title,
                series.c.thumbnail_url,
                series.c.creator_id,
                creator_profiles.c.display_name.label("creator_name"),
                series.c.video_count,
                series.c.total_price.label("price"),
                series.c.category,
                *(expr.label(name) for name, expr in signals.items()),
            )
            .select_from(
                series.join(users, series.c.creator_id == users.c.id)
                .join(creator_profiles, creator_profiles.c.user_id == users.c.id)
                .outerjoin(recent_purchases, recent_purchases.c.series_id == series.c.id)
                .outerjoin(recent_series_views, recent_series_views.c.series_id == series.c.id)
            )
            .where(*_approved(series), *_eligible_creator())
            .order_by(formula.combine(signals.__getitem__).desc())
            .limit(limit)
        )

        try:
            return await self._fetch(stmt)
        except Exception as e:
            logger.error(f"Failed to query series activity: {e}")
            raise

    async def _recent(self, table: Table, since: datetime, limit: int) -> list[dict[str, Any]]:
        stmt = (
            select(
                table.c.id,
                table.c.title,
                table.c.description,
                table.c.thumbnail_url,
                creator_profiles.c.display_name.label("creator_name"),
                users.c.avatar.label("creator_avatar"),
                table.c.category,
                table.c.view_count,
            )
            .select_from(
                table.join(users, table.c.creator_id == users.c.id).join(
                    creator_profiles, creator_profiles.c.user_id == users.c.id
                )
            )
            .where(table.c.created_at >= since, *_approved(table), *_eligible_creator())
            .order_by(table.c.view_count.desc(), table.c.created_at.desc())
            .limit(limit)
        )

        try:
            return await self._fetch(stmt)
        except Exception as e:
            logger.error(f"Failed to query recent {table.name}: {e}")
            raise

    async def recent_videos(self, since: datetime, limit: int) -> list[dict[str, Any]]:
        return await self._recent(videos, since, limit)

    async def recent_series(self, since: datetime, limit: int) -> list[dict[str, Any]]:
        return await self._recent(series, since, limit)

    async def active_categories(self) -> list[dict[str, Any]]:
        stmt = (
            select(*_CATEGORY_COLUMNS, *_category_counts())
            .where(categories.c.is_active.is_(True))
            .order_by(categories.c.display_order, categories.c.name)
        )
        return await self._fetch(stmt)

    async def category_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        stmt = select(*_CATEGORY_COLUMNS, *_category_counts()).where(categories.c.slug == slug).limit(1)
        rows = await self._fetch(stmt)
        return rows[0] if rows else None

    async def list_categories(self) -> list[dict[str, Any]]:
        return await self._fetch(select(categories.c.id, categories.c.name))

    async def content_counts_by_category(self) -> dict[str, tuple[int, int]]:
        video_rows = await self._fetch(
            select(videos.c.category, func.count().label("total")).where(*_approved(videos)).group_by(videos.c.category)
        )
        series_rows = await self._fetch(
            select(series.c.category, func.count().label("total")).where(*_approved(series)).group_by(series.c.category)
        )

        video_counts = {row["category"]: row["total"] for row in video_rows}
        series_counts = {row["category"]: row["total"] for row in series_rows}
        return {
            name: (video_counts.get(name, 0), series_counts.get(name, 0))
            for name in set(video_counts) | set(series_counts)
        }

    async def write_category_counts(self, counts: dict[str, tuple[int, int]], updated_at: datetime) -> None:
        # One transaction: either every row is updated or none is
        async with self._get_engine().begin() as conn:
            missing = []
            for category_id, (video_count, series_count) in counts.items():
                result = await conn.execute(
                    update(categories)
                    .where(categories.c.id == category_id)
                    .values(video_count=video_count, series_count=series_count, updated_at=updated_at)
                )
                if result.rowcount == 0:
                    missing.append(category_id)

            # Raising inside begin() rolls back the updates already issued
            if missing:
                raise KeyError(f"Unknown category ids: {sorted(missing)}")

    async def count_categories(self) -> int:
        async with self._get_engine().connect() as conn:
            result = await conn.execute(select(func.count()).select_from(categories))
            return result.scalar_one()

    async def insert_categories(self, new_categories: list[dict[str, Any]]) -> None:
        now = datetime.now(timezone.utc)
        rows = [{"id": str(uuid4()), "updated_at": now, **data} for data in new_categories]
        async with self._get_engine().begin() as conn:
            await conn.execute(categories.insert(), rows)

    async def ingest(self, records: Iterable[Record]) -> None:
        by_table: dict[str, list[dict[str, Any]]] = {}
        for record in records:
            by_table.setdefault(record.table, []).append(record.model_dump())

        async with self._get_engine().begin() as conn:
            # Parents before children
            for table in metadata.sorted_tables:
                if table.name in by_table:
                    await conn.execute(table.insert(), by_table[table.name])

    async def health_check(self) -> dict[str, Any]:
        """Check database connectivity.

        Returns:
            Dictionary with health status information
        """
        if self._engine is None:
            return {"status": "disconnected", "connected": False}

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "healthy", "connected": True}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "connected": False, "error": str(e)}

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Disconnected from database")
