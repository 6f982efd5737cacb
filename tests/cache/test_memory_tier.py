"""Tests for MemoryCache, the in-process tier."""

import pytest

from waterfallcache.cache import Cache, CacheStats, MemoryCache


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


class TestGetPut:
    """Tests for get and put."""

    async def test_get_miss(self, cache: MemoryCache) -> None:
        assert await cache.get("nonexistent") is None

    async def test_put_and_get(self, cache: MemoryCache) -> None:
        assert await cache.put("k", "v") is True
        assert await cache.get("k", str) == "v"

    async def test_put_overwrites(self, cache: MemoryCache) -> None:
        await cache.put("k", "old")
        await cache.put("k", "new")
        assert await cache.get("k") == "new"

    async def test_returns_same_object(self, cache: MemoryCache) -> None:
        value = {"nested": [1, 2, 3]}
        await cache.put("k", value)
        assert await cache.get("k", dict) is value

    async def test_none_is_refused(self, cache: MemoryCache) -> None:
        assert await cache.put("k", None) is False
        assert await cache.get("k") is None
        assert await cache.contains("k") is False
        assert cache.size == 0


class TestContainsRemoveClear:
    """Tests for contains, remove and clear."""

    async def test_contains(self, cache: MemoryCache) -> None:
        assert await cache.contains("k") is False
        await cache.put("k", 1)
        assert await cache.contains("k") is True

    async def test_remove_existing(self, cache: MemoryCache) -> None:
        await cache.put("k", 1)
        assert await cache.remove("k") is True
        assert await cache.get("k") is None

    async def test_remove_missing_is_idempotent(self, cache: MemoryCache) -> None:
        assert await cache.remove("never-stored") is True

    async def test_clear(self, cache: MemoryCache) -> None:
        await cache.put("a", 1)
        await cache.put("b", 2)
        assert await cache.clear() is True
        assert cache.size == 0


class TestStats:
    """Tests for hit/miss statistics."""

    async def test_stats(self, cache: MemoryCache) -> None:
        await cache.put("k", "v")
        await cache.get("k")
        await cache.get("missing")
        stats = cache.stats()
        assert isinstance(stats, CacheStats)
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        assert stats.entry_count == 1

    def test_empty_stats(self, cache: MemoryCache) -> None:
        assert cache.stats().hit_rate == 0.0


def test_satisfies_cache_protocol() -> None:
    assert isinstance(MemoryCache(), Cache)
