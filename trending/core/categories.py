"""Category listing with cached content counts."""

import logging
from datetime import datetime, timezone
from typing import Optional

from trending.core.cache import CacheKeys, CacheTTL, TTLCache
from trending.core.exceptions import CategoryError
from trending.models import Category
from trending.storage.base import ContentSource

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Entertainment", "slug": "entertainment", "description": "Fun and entertaining content", "display_order": 1},
    {"name": "Education", "slug": "education", "description": "Educational and learning content", "display_order": 2},
    {"name": "Music", "slug": "music", "description": "Music videos and performances", "display_order": 3},
    {"name": "Comedy", "slug": "comedy", "description": "Funny and humorous content", "display_order": 4},
    {"name": "Lifestyle", "slug": "lifestyle", "description": "Lifestyle and personal content", "display_order": 5},
    {"name": "Technology", "slug": "technology", "description": "Tech reviews and tutorials", "display_order": 6},
    {"name": "Gaming", "slug": "gaming", "description": "Gaming content and streams", "display_order": 7},
    {"name": "Sports", "slug": "sports", "description": "Sports and fitness content", "display_order": 8},
]


class CategoriesService:
    """Serves active categories and maintains their denormalized counts."""

    def __init__(self, source: ContentSource, cache: TTLCache, ttl: CacheTTL = CacheTTL()):
        self._source = source
        self._cache = cache
        self._ttl = ttl

    async def get_active_categories(self) -> list[Category]:
        return await self._cache.get_or_set(
            CacheKeys.CATEGORIES, self._active_categories_from_source, self._ttl.categories
        )

    async def _active_categories_from_source(self) -> list[Category]:
        try:
            rows = await self._source.active_categories()
        except Exception as e:
            logger.error(f"Error fetching categories: {e}")
            raise CategoryError("Failed to fetch categories") from e

        return [Category.model_validate(row) for row in rows]

    async def get_category_by_slug(self, slug: str) -> Optional[Category]:
        try:
            row = await self._source.category_by_slug(slug)
        except Exception as e:
            logger.error(f"Error fetching category by slug: {e}")
            raise CategoryError("Failed to fetch category") from e

        return Category.model_validate(row) if row is not None else None

    async def update_category_counts(self) -> int:
        """Recount content for every category and invalidate the cached list.

        Counts are written in a single step after all of them are computed,
        so a failure leaves the previous counts untouched.

        Returns:
            Number of categories updated
        """
        try:
            all_categories = await self._source.list_categories()
            live_counts = await self._source.content_counts_by_category()

            counts = {category["id"]: live_counts.get(category["name"], (0, 0)) for category in all_categories}
            await self._source.write_category_counts(counts, datetime.now(timezone.utc))
        except Exception as e:
            logger.error(f"Error updating category counts: {e}")
            raise CategoryError("Failed to update category counts") from e

        self._cache.delete(CacheKeys.CATEGORIES)
        logger.info(f"Updated content counts for {len(counts)} categories")
        return len(counts)

    async def seed_default_categories(self) -> bool:
        """Insert the default categories if none exist.

        Returns:
            True if categories were inserted
        """
        try:
            if await self._source.count_categories() > 0:
                return False

            await self._source.insert_categories(DEFAULT_CATEGORIES)
        except Exception as e:
            logger.error(f"Error seeding default categories: {e}")
            raise CategoryError("Failed to seed default categories") from e

        self._cache.delete(CacheKeys.CATEGORIES)
        logger.info("Default categories seeded successfully")
        return True
