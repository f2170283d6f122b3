"""In-memory caching utilities for amortizing expensive aggregation queries."""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from trending.utils.metrics import cache_entries, cache_evictions_total, cache_requests_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class _ComputationAbandoned(Exception):
    """The task computing a shared value was cancelled before finishing."""


class CacheKeys:
    """Cache key vocabulary. Limit-suffixed keys get one slot per limit."""

    TRENDING_CREATORS = "trending:creators"
    TRENDING_SHOWS = "trending:shows"
    TRENDING_VIDEOS = "landing:trending-videos"
    FEATURED_CONTENT = "featured:content"
    CATEGORIES = "categories:active"

    @staticmethod
    def with_limit(prefix: str, limit: int) -> str:
        return f"{prefix}:{limit}"


@dataclass(frozen=True)
class CacheTTL:
    """Default time-to-live (seconds) for each cached computation."""

    trending_creators: float = 300.0
    trending_shows: float = 300.0
    featured_content: float = 1800.0
    categories: float = 3600.0


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with the time it was stored and its lifetime."""

    value: T
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at <= self.ttl


class TTLCache:
    """In-memory cache where every entry carries its own TTL.

    Entries expire lazily on read and eagerly through :meth:`sweep`. The
    cache is bounded by ``max_size``; when full, the least recently used
    entry is evicted.

    Values are returned as stored, without copying, so callers must treat
    them as read-only.
    """

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.monotonic):
        """Initialize TTL cache.

        Args:
            max_size: Maximum number of entries to store (LRU eviction)
            clock: Monotonic time source in seconds
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._inflight: dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._store)

    def _lookup(self, key: str) -> Any:
        entry = self._store.get(key)
        if entry is None:
            return _MISSING

        if not entry.is_valid(self._clock()):
            del self._store[key]
            cache_evictions_total.labels(reason="expired").inc()
            cache_entries.set(len(self._store))
            logger.debug(f"Cache entry expired: {key}")
            return _MISSING

        self._store.move_to_end(key)
        return entry.value

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Get value from cache if it exists and hasn't expired.

        Args:
            key: Cache key
            default: Value returned when the key is absent or expired

        Returns:
            Cached value or ``default``
        """
        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        """Check whether a valid entry exists, purging it if expired."""
        return self._lookup(key) is not _MISSING

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value in cache, overwriting any previous entry.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Lifetime of the entry in seconds
        """
        if key in self._store:
            del self._store[key]

        while len(self._store) >= self.max_size:
            oldest_key, _ = self._store.popitem(last=False)
            cache_evictions_total.labels(reason="capacity").inc()
            logger.debug(f"Evicted least recently used cache entry: {oldest_key}")

        self._store[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=float(ttl_seconds))
        cache_entries.set(len(self._store))

    def delete(self, key: str) -> bool:
        """Remove entry from cache.

        A computation already in flight for ``key`` is detached, so its
        result is neither stored nor shared with later callers.

        Returns:
            True if an entry was removed
        """
        self._inflight.pop(key, None)
        removed = self._store.pop(key, None) is not None
        if removed:
            cache_entries.set(len(self._store))
        return removed

    def clear(self) -> None:
        """Clear all cache entries and detach in-flight computations."""
        self._inflight.clear()
        self._store.clear()
        cache_entries.set(0)

    def stats(self) -> dict[str, int]:
        """Classify entries by expiry without modifying the store."""
        now = self._clock()
        valid = sum(1 for entry in self._store.values() if entry.is_valid(now))
        return {
            "total_items": len(self._store),
            "valid_items": valid,
            "expired_items": len(self._store) - valid,
        }

    def sweep(self) -> int:
        """Delete every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._store.items() if not entry.is_valid(now)]
        for key in expired:
            del self._store[key]

        if expired:
            cache_evictions_total.labels(reason="expired").inc(len(expired))
            cache_entries.set(len(self._store))
            logger.info(f"Cache sweep removed {len(expired)} expired entries")

        return len(expired)

    async def get_or_set(self, key: str, compute: Callable[[], Awaitable[T]], ttl_seconds: float) -> T:
        """Return the cached value for ``key``, computing and storing it on a miss.

        Concurrent misses on the same key share one in-flight computation.
        If ``compute`` raises, the error reaches every waiter and nothing is
        cached, so the next call computes again. If the computing task is
        cancelled, waiters retry instead of being cancelled with it. A
        computation detached by :meth:`delete` or :meth:`clear` still
        returns to its callers but is not stored.

        Args:
            key: Cache key
            compute: Zero-argument coroutine function producing the value
            ttl_seconds: Lifetime of the stored value in seconds

        Returns:
            Cached or freshly computed value
        """
        while True:
            value = self._lookup(key)
            if value is not _MISSING:
                cache_requests_total.labels(result="hit").inc()
                return value

            pending = self._inflight.get(key)
            if pending is None:
                break

            cache_requests_total.labels(result="shared").inc()
            try:
                return await asyncio.shield(pending)
            except _ComputationAbandoned:
                logger.debug(f"Shared computation abandoned, retrying: {key}")

        cache_requests_total.labels(result="miss").inc()
        logger.debug(f"Cache miss, computing: {key}")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await compute()
        except asyncio.CancelledError:
            future.set_exception(_ComputationAbandoned(key))
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited future does not log a warning
            future.exception()
            raise
        else:
            if self._inflight.get(key) is future:
                self.set(key, result, ttl_seconds)
            else:
                logger.debug(f"Discarding result invalidated while computing: {key}")
            future.set_result(result)
            return result
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]


class CacheSweeper:
    """Runs :meth:`TTLCache.sweep` periodically on the event loop."""

    def __init__(self, cache: TTLCache, interval_seconds: float = 600.0):
        self._cache = cache
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop in the background."""
        if self.running:
            logger.warning("CacheSweeper already running")
            return

        self._task = asyncio.create_task(self._run())
        logger.info(f"Started cache sweeper (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

        logger.info("Stopped cache sweeper")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self._cache.sweep()
