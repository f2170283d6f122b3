"""Tests for the TTL cache and its sweeper."""

import asyncio

import pytest

from trending.core.cache import CacheEntry, CacheKeys, CacheSweeper, TTLCache


class TestCacheEntry:
    """Tests for entry expiry."""

    def test_valid_up_to_and_including_ttl(self):
        entry = CacheEntry(value="x", stored_at=10.0, ttl=5.0)

        assert entry.is_valid(10.0)
        assert entry.is_valid(15.0)
        assert not entry.is_valid(15.001)


class TestCacheKeys:
    def test_with_limit(self):
        assert CacheKeys.with_limit(CacheKeys.TRENDING_CREATORS, 5) == "trending:creators:5"
        assert CacheKeys.with_limit(CacheKeys.TRENDING_VIDEOS, 10) == "landing:trending-videos:10"


class TestTTLCache:
    """Tests for TTLCache get/set/expiry."""

    def test_set_and_get(self, cache):
        cache.set("k", {"a": 1}, 60)
        assert cache.get("k") == {"a": 1}
        assert cache.has("k")

    def test_get_missing_returns_default(self, cache):
        assert cache.get("missing") is None
        assert cache.get("missing", default=0) == 0
        assert not cache.has("missing")

    def test_falsy_values_are_cached(self, cache):
        cache.set("zero", 0, 60)
        cache.set("empty", [], 60)

        assert cache.has("zero")
        assert cache.get("zero", default=-1) == 0
        assert cache.get("empty", default=None) == []

    def test_expiry_boundary(self, cache, clock):
        """Value is returned just before the TTL elapses and gone just after."""
        cache.set("k", "v", 10)

        clock.advance(10 - 1e-6)
        assert cache.get("k") == "v"

        clock.advance(2e-6)
        assert cache.get("k") is None

    def test_one_second_ttl_scenario(self, cache, clock):
        cache.set("k", 42, 1)

        clock.advance(0.5)
        assert cache.get("k") == 42

        clock.advance(1.0)
        assert cache.get("k") is None

    def test_expired_entry_is_purged_on_read(self, cache, clock):
        cache.set("k", "v", 1)
        clock.advance(2)

        assert len(cache) == 1
        assert not cache.has("k")
        assert len(cache) == 0

    def test_set_overwrites_and_restarts_ttl(self, cache, clock):
        cache.set("k", "old", 5)
        clock.advance(4)
        cache.set("k", "new", 5)
        clock.advance(4)

        assert cache.get("k") == "new"

    def test_delete(self, cache):
        cache.set("k", "v", 60)

        assert cache.delete("k") is True
        assert cache.get("k") is None
        assert cache.delete("k") is False

    def test_clear(self, cache):
        for i in range(5):
            cache.set(f"k{i}", i, 60)

        cache.clear()

        assert len(cache) == 0
        assert cache.stats()["total_items"] == 0

    def test_rejects_non_positive_max_size(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)


class TestCacheBounds:
    """Tests for least-recently-used eviction."""

    def test_evicts_least_recently_used(self, clock):
        cache = TTLCache(max_size=3, clock=clock)
        cache.set("a", 1, 60)
        cache.set("b", 2, 60)
        cache.set("c", 3, 60)

        # Reading "a" makes "b" the least recently used
        assert cache.get("a") == 1
        cache.set("d", 4, 60)

        assert len(cache) == 3
        assert not cache.has("b")
        assert cache.has("a")
        assert cache.has("c")
        assert cache.has("d")

    def test_overwrite_does_not_evict(self, clock):
        cache = TTLCache(max_size=2, clock=clock)
        cache.set("a", 1, 60)
        cache.set("b", 2, 60)
        cache.set("a", 10, 60)

        assert len(cache) == 2
        assert cache.get("a") == 10
        assert cache.get("b") == 2


class TestCacheMaintenance:
    """Tests for stats and sweep."""

    def test_stats_counts_without_mutating(self, cache, clock):
        cache.set("short", 1, 1)
        cache.set("long", 2, 100)
        clock.advance(5)

        stats = cache.stats()

        assert stats == {"total_items": 2, "valid_items": 1, "expired_items": 1}
        assert len(cache) == 2

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("short", 1, 1)
        cache.set("short2", 1, 2)
        cache.set("long", 2, 100)
        clock.advance(5)

        assert cache.sweep() == 2
        assert cache.get("long") == 2
        assert cache.stats()["expired_items"] == 0

    def test_sweep_is_idempotent(self, cache, clock):
        cache.set("k", 1, 1)
        clock.advance(2)

        assert cache.sweep() == 1
        assert cache.sweep() == 0

    def test_sweep_empty_cache(self, cache):
        assert cache.sweep() == 0


@pytest.mark.asyncio
class TestGetOrSet:
    """Tests for cache-aside get_or_set."""

    async def test_computes_once_while_valid(self, cache, clock):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            return ["alice", "bob"]

        first = await cache.get_or_set("trending:creators:5", compute, 300)
        clock.advance(0.5)
        second = await cache.get_or_set("trending:creators:5", compute, 300)

        assert calls == 1
        assert first == second == ["alice", "bob"]

    async def test_recomputes_after_expiry(self, cache, clock):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            return calls

        assert await cache.get_or_set("k", compute, 10) == 1
        clock.advance(11)
        assert await cache.get_or_set("k", compute, 10) == 2

    async def test_uses_value_from_set(self, cache):
        cache.set("k", "stored", 60)

        async def compute():
            raise AssertionError("compute should not run")

        assert await cache.get_or_set("k", compute, 60) == "stored"

    async def test_failure_is_not_cached(self, cache):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database down")
            return "ok"

        with pytest.raises(RuntimeError, match="database down"):
            await cache.get_or_set("k", compute, 60)

        assert not cache.has("k")
        assert await cache.get_or_set("k", compute, 60) == "ok"
        assert calls == 2

    async def test_concurrent_misses_share_one_computation(self, cache):
        calls = 0
        release = asyncio.Event()

        async def compute():
            nonlocal calls
            calls += 1
            await release.wait()
            return "shared"

        tasks = [asyncio.create_task(cache.get_or_set("k", compute, 60)) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert results == ["shared"] * 5

    async def test_concurrent_waiters_see_failure(self, cache):
        release = asyncio.Event()

        async def compute():
            await release.wait()
            raise ValueError("boom")

        tasks = [asyncio.create_task(cache.get_or_set("k", compute, 60)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, ValueError) for result in results)
        assert not cache.has("k")

    async def test_delete_detaches_inflight_computation(self, cache):
        release = asyncio.Event()

        async def compute_old():
            await release.wait()
            return "old"

        async def compute_new():
            return "new"

        first = asyncio.create_task(cache.get_or_set("k", compute_old, 60))
        await asyncio.sleep(0)

        cache.delete("k")
        assert await cache.get_or_set("k", compute_new, 60) == "new"

        release.set()
        assert await first == "old"
        assert cache.get("k") == "new"

    async def test_clear_discards_inflight_result(self, cache):
        release = asyncio.Event()

        async def compute():
            await release.wait()
            return "stale"

        task = asyncio.create_task(cache.get_or_set("k", compute, 60))
        await asyncio.sleep(0)

        cache.clear()
        release.set()

        assert await task == "stale"
        assert not cache.has("k")

    async def test_waiter_recomputes_when_owner_cancelled(self, cache):
        started = asyncio.Event()
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            if calls == 1:
                started.set()
                await asyncio.Event().wait()
            return "value"

        owner = asyncio.create_task(cache.get_or_set("k", compute, 60))
        await started.wait()
        waiter = asyncio.create_task(cache.get_or_set("k", compute, 60))
        await asyncio.sleep(0)

        owner.cancel()

        assert await waiter == "value"
        with pytest.raises(asyncio.CancelledError):
            await owner
        assert calls == 2
        assert cache.get("k") == "value"

    async def test_different_keys_compute_independently(self, cache):
        async def compute_a():
            return "a"

        async def compute_b():
            return "b"

        assert await cache.get_or_set("a", compute_a, 60) == "a"
        assert await cache.get_or_set("b", compute_b, 60) == "b"


@pytest.mark.asyncio
class TestCacheSweeper:
    """Tests for the background sweeper."""

    async def test_sweeps_periodically(self, cache, clock):
        cache.set("k", 1, 1)
        clock.advance(5)

        sweeper = CacheSweeper(cache, interval_seconds=0.01)
        await sweeper.start()
        try:
            for _ in range(100):
                if len(cache) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert len(cache) == 0
        assert not sweeper.running

    async def test_start_twice_and_stop_twice(self, cache):
        sweeper = CacheSweeper(cache, interval_seconds=60)

        await sweeper.start()
        await sweeper.start()
        assert sweeper.running

        await sweeper.stop()
        await sweeper.stop()
        assert not sweeper.running
