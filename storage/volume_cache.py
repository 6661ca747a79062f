"""
Volume Cache

Short-TTL in-memory cache for provider volume results. One instance is
owned by one adapter (or the router) and injected where needed; there is
no module-level cache.

Concurrent misses for the same key share one fetch task (single flight).
A failed fetch is not cached and propagates to every waiter.

Usage:
    cache = VolumeCache(ttl=300)
    volumes = await cache.get_or_fetch(("lifi", ("24h", "7d")), lambda: fetch())
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from core.logging import get_logger

logger = get_logger(__name__)


class VolumeCache:
    """
    TTL cache with single-flight fetches.

    Args:
        ttl: Seconds an entry stays fresh (0 disables caching but keeps single flight)
    """

    def __init__(self, ttl: float = 300.0):
        self.ttl = ttl
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._in_flight: Dict[Hashable, asyncio.Task] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        """Fresh cached value for key, or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at >= self.ttl:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: Any) -> None:
        """Store a value, purging every expired entry first."""
        if self.ttl <= 0:
            return
        now = time.monotonic()
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (now, value)

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    async def get_or_fetch(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value, or run `factory` once for all concurrent callers.

        Args:
            key: Cache key
            factory: Coroutine function producing the value

        Raises:
            Whatever `factory` raises; failures are never cached
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(key, factory))
            self._in_flight[key] = task
        else:
            logger.debug(f"Joining in-flight volume fetch for {key}")

        return await asyncio.shield(task)

    async def _fetch(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await factory()
            self.set(key, value)
            return value
        finally:
            self._in_flight.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
