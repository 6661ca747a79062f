"""
Rate Limiter

Per-provider request limiter with two knobs:
    - max_concurrent: how many requests may be in flight at once
    - min_interval: minimum spacing in seconds between two dispatches

Waiting callers are suspended (asyncio), never block the event loop, and
never affect limiters owned by other providers.

Usage:
    limiter = RateLimiter(max_concurrent=5, min_interval=0.2)
    async with limiter:
        await session.get(...)
"""

import asyncio
import time
from typing import Optional


class RateLimiter:
    """
    Concurrency + spacing limiter.

    Args:
        max_concurrent: Maximum in-flight requests (>= 1)
        min_interval: Minimum seconds between successive dispatches (>= 0)
    """

    def __init__(self, max_concurrent: int = 1, min_interval: float = 0.0):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if min_interval < 0:
            raise ValueError("min_interval cannot be negative")

        self.max_concurrent = max_concurrent
        self.min_interval = min_interval
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._spacing_lock = asyncio.Lock()
        self._last_dispatch: Optional[float] = None
        self.in_flight = 0

    @classmethod
    def per_second(cls, requests_per_second: int) -> "RateLimiter":
        """Limiter allowing `requests_per_second` concurrent requests spaced 1/rps apart."""
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        return cls(max_concurrent=requests_per_second, min_interval=1.0 / requests_per_second)

    async def acquire(self) -> None:
        """Wait for a free slot, then for the spacing window."""
        await self._semaphore.acquire()
        try:
            async with self._spacing_lock:
                if self._last_dispatch is not None and self.min_interval > 0:
                    wait = self._last_dispatch + self.min_interval - time.monotonic()
                    if wait > 0:
                        await asyncio.sleep(wait)
                self._last_dispatch = time.monotonic()
        except BaseException:
            self._semaphore.release()
            raise
        self.in_flight += 1

    def release(self) -> None:
        self.in_flight -= 1
        self._semaphore.release()

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()
