"""
Unit Tests for the Volume Cache

Run with:
    pytest tests/unit/test_volume_cache.py -v
"""

import asyncio

import pytest

from storage.volume_cache import VolumeCache


class CountingFactory:
    def __init__(self, value="volumes", delay=0.0, error=None):
        self.value = value
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


class TestVolumeCache:

    @pytest.mark.asyncio
    async def test_hit_within_ttl(self):
        cache = VolumeCache(ttl=60)
        factory = CountingFactory()

        assert await cache.get_or_fetch("k", factory) == "volumes"
        assert await cache.get_or_fetch("k", factory) == "volumes"
        assert factory.calls == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self):
        cache = VolumeCache(ttl=60)
        factory = CountingFactory(delay=0.05)

        results = await asyncio.gather(*(cache.get_or_fetch("k", factory) for _ in range(8)))

        assert results == ["volumes"] * 8
        assert factory.calls == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        cache = VolumeCache(ttl=60)
        failing = CountingFactory(error=RuntimeError("provider down"))

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("k", failing)

        assert cache.get("k") is None
        assert await cache.get_or_fetch("k", CountingFactory(value="fresh")) == "fresh"

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_storage(self):
        cache = VolumeCache(ttl=0)
        factory = CountingFactory()

        await cache.get_or_fetch("k", factory)
        await cache.get_or_fetch("k", factory)

        assert factory.calls == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self):
        cache = VolumeCache(ttl=10)
        factory = CountingFactory()

        await cache.get_or_fetch("k", factory)
        stored_at, value = cache._entries["k"]
        cache._entries["k"] = (stored_at - 11, value)
        await cache.get_or_fetch("k", factory)

        assert factory.calls == 2

    def test_invalidate(self):
        cache = VolumeCache(ttl=60)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.invalidate()
        assert len(cache) == 0

    def test_set_purges_expired_entries(self):
        cache = VolumeCache(ttl=10)
        cache.set("old", 1)
        stored_at, value = cache._entries["old"]
        cache._entries["old"] = (stored_at - 11, value)

        cache.set("new", 2)

        assert "old" not in cache._entries
        assert len(cache) == 1
