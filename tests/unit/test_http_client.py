"""
Unit Tests for the Rate Limiter and Resilient HTTP Client

The aiohttp session is replaced by a fake whose get/post return scripted
responses, so retry and error paths run without network access.

Run with:
    pytest tests/unit/test_http_client.py -v
"""

import asyncio
import time

import aiohttp
import pytest

from core.errors import NonRetryableRequestError, RetryableRequestError
from core.http_client import ResilientHttpClient, serialize_params
from core.rate_limiter import RateLimiter


# ============================================
# Fakes
# ============================================

class MockResponse:
    """Minimal aiohttp response: status, json(), text() and async context."""

    def __init__(self, status, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def json(self, content_type=None):
        return self._payload

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Returns scripted responses (or raises scripted exceptions) in order."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)

    async def close(self):
        pass


def make_client(script, max_retries=3):
    client = ResilientHttpClient(
        "test",
        base_url="https://api.example.com/",
        max_retries=max_retries,
        rate_limiter=RateLimiter(max_concurrent=4),
        min_delay=0.0,
        max_delay=0.0,
    )
    client.session = FakeSession(script)
    return client


# ============================================
# Query serialization
# ============================================

class TestSerializeParams:

    def test_sorted_and_none_dropped(self):
        assert serialize_params({"to": 10, "from": 1, "skip": None}) == [("from", "1"), ("to", "10")]

    def test_bools_and_lists(self):
        assert serialize_params({"dry": True, "chains": [1, 42161]}) == [("chains", "1,42161"), ("dry", "true")]

    def test_same_params_any_order_serialize_identically(self):
        assert serialize_params({"a": 1, "b": 2}) == serialize_params({"b": 2, "a": 1})

    def test_empty(self):
        assert serialize_params(None) == []


# ============================================
# Retry policy
# ============================================

class TestRetryPolicy:

    @pytest.mark.asyncio
    async def test_two_server_errors_then_success(self):
        client = make_client([
            MockResponse(500, text="boom"),
            MockResponse(500, text="boom"),
            MockResponse(200, payload={"ok": True}),
        ])

        assert await client.get("/tokens") == {"ok": True}
        assert len(client.session.calls) == 3

    @pytest.mark.asyncio
    async def test_client_error_fails_immediately(self):
        client = make_client([MockResponse(400, text="bad request"), MockResponse(200, payload={})])

        with pytest.raises(NonRetryableRequestError) as exc_info:
            await client.get("/quote")

        assert exc_info.value.status == 400
        assert exc_info.value.body == "bad request"
        assert len(client.session.calls) == 1

    @pytest.mark.asyncio
    async def test_429_is_retried(self):
        client = make_client([MockResponse(429), MockResponse(200, payload=[1, 2])])
        assert await client.get("/tokens") == [1, 2]
        assert len(client.session.calls) == 2

    @pytest.mark.asyncio
    async def test_network_errors_and_timeouts_are_retried(self):
        client = make_client([
            aiohttp.ClientConnectionError("reset"),
            asyncio.TimeoutError(),
            MockResponse(200, payload={"ok": 1}),
        ])
        assert await client.get("/tokens") == {"ok": 1}

    @pytest.mark.asyncio
    async def test_budget_exhausted_raises_retryable(self):
        client = make_client([MockResponse(503, text="down")] * 3, max_retries=2)

        with pytest.raises(RetryableRequestError) as exc_info:
            await client.get("/tokens")

        assert exc_info.value.status == 503
        assert len(client.session.calls) == 3

    @pytest.mark.asyncio
    async def test_error_body_truncated(self):
        client = make_client([MockResponse(404, text="x" * 2000)])
        with pytest.raises(NonRetryableRequestError) as exc_info:
            await client.get("/missing")
        assert len(exc_info.value.body) == 500

    @pytest.mark.asyncio
    async def test_post_sends_json_body_and_sorted_params(self):
        client = make_client([MockResponse(200, payload={"quote": {}})])
        await client.post("/v0/quote", body={"dry": True}, params={"b": 1, "a": 2})

        method, url, kwargs = client.session.calls[0]
        assert method == "POST"
        assert url == "https://api.example.com/v0/quote"
        assert kwargs["json"] == {"dry": True}
        assert kwargs["params"] == [("a", "2"), ("b", "1")]

    @pytest.mark.asyncio
    async def test_requires_session(self):
        client = ResilientHttpClient("test", base_url="https://api.example.com")
        with pytest.raises(RuntimeError, match="async with"):
            await client.get("/tokens")

    def test_backoff_grows_and_is_capped(self):
        client = ResilientHttpClient("test", base_url="https://x", min_delay=1.0, max_delay=4.0)
        assert 1.0 <= client.backoff_delay(0) <= 2.0
        assert 2.0 <= client.backoff_delay(1) <= 4.0
        assert 4.0 <= client.backoff_delay(5) <= 8.0


# ============================================
# Rate limiter
# ============================================

class TestRateLimiter:

    @pytest.mark.asyncio
    async def test_never_exceeds_max_concurrent(self):
        limiter = RateLimiter(max_concurrent=3)
        peak = 0

        async def work():
            nonlocal peak
            async with limiter:
                peak = max(peak, limiter.in_flight)
                await asyncio.sleep(0.01)

        await asyncio.gather(*(work() for _ in range(12)))

        assert peak == 3
        assert limiter.in_flight == 0

    @pytest.mark.asyncio
    async def test_dispatches_are_spaced(self):
        limiter = RateLimiter(max_concurrent=10, min_interval=0.02)
        stamps = []

        async def work():
            async with limiter:
                stamps.append(time.monotonic())

        await asyncio.gather(*(work() for _ in range(5)))

        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert all(gap >= 0.019 for gap in gaps)

    @pytest.mark.asyncio
    async def test_limiters_are_independent(self):
        slow = RateLimiter(max_concurrent=1)
        fast = RateLimiter(max_concurrent=1)

        await slow.acquire()
        # Holding one limiter never blocks another
        await asyncio.wait_for(fast.acquire(), timeout=0.1)
        fast.release()
        slow.release()

    def test_per_second(self):
        limiter = RateLimiter.per_second(5)
        assert limiter.max_concurrent == 5
        assert limiter.min_interval == pytest.approx(0.2)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            RateLimiter(max_concurrent=0)
        with pytest.raises(ValueError):
            RateLimiter.per_second(0)
