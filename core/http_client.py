"""
Resilient HTTP Client

Shared async request executor used by every provider adapter. It handles:
- Per-provider rate limiting (max concurrent + minimum spacing)
- Absolute per-request timeouts
- Bounded retry with exponential backoff and jitter
- Deterministic query serialization (sorted keys)
- Request/response logging

Retry Policy:
    - 2xx: JSON body decoded and returned
    - 4xx other than 429: NonRetryableRequestError immediately, no retry
    - 429, 5xx, timeout, network error: retried up to max_retries times
      delay = min(max_delay, min_delay * 2**attempt) * uniform(1, 2)
    - Retry budget exhausted: RetryableRequestError

Usage:
    async with ResilientHttpClient("lifi", base_url="https://li.quest/v1") as client:
        tokens = await client.get("/tokens", params={"chains": "1,42161"})
        quote = await client.post("/quote", body={...})
"""

import asyncio
import random
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp

from core.config import settings
from core.errors import NonRetryableRequestError, RetryableRequestError
from core.logging import get_logger, log_api_request, log_api_response
from core.rate_limiter import RateLimiter


def serialize_params(params: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """
    Serialize query parameters deterministically.

    Keys are sorted, None values dropped, booleans rendered as "true"/"false"
    and lists joined with commas.

    Example:
        >>> serialize_params({"to": 10, "from": 1, "dry": True, "skip": None})
        [('dry', 'true'), ('from', '1'), ('to', '10')]
    """
    if not params:
        return []

    result = []
    for key in sorted(params):
        value = params[key]
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        result.append((key, str(value)))
    return result


class ResilientHttpClient:
    """
    Async HTTP client with rate limiting, retries and timeouts.

    One instance belongs to one provider; its rate limiter is never shared.

    Args:
        provider: Provider id used in logs
        base_url: Base URL prepended to every path
        headers: Default headers for every request
        timeout: Absolute timeout per attempt in seconds
        max_retries: Retry budget for retryable failures (attempts = max_retries + 1)
        rate_limiter: Limiter to use (defaults to settings.max_requests_per_second)
        min_delay: First backoff delay in seconds
        max_delay: Upper bound of a single backoff delay in seconds

    Example:
        >>> async with ResilientHttpClient("across", base_url="https://app.across.to/api") as client:
        ...     limits = await client.get("/limits", params={"inputToken": "0x...", ...})
    """

    def __init__(
        self,
        provider: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        rate_limiter: Optional[RateLimiter] = None,
        min_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.rate_limiter = rate_limiter or RateLimiter.per_second(settings.max_requests_per_second)
        self.min_delay = settings.retry_min_delay if min_delay is None else min_delay
        self.max_delay = settings.retry_max_delay if max_delay is None else max_delay
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """Create the HTTP session."""
        self.session = aiohttp.ClientSession()
        self.logger.debug(f"{self.provider} HTTP session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the HTTP session."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug(f"{self.provider} HTTP session closed")

    # ============================================
    # Public API
    # ============================================

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """GET `path` and return the decoded JSON body."""
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        body: Optional[Any] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """POST a JSON body to `path` and return the decoded JSON body."""
        return await self.request("POST", path, params=params, body=body)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based), with jitter."""
        base = min(self.max_delay, self.min_delay * (2 ** attempt))
        return base * random.uniform(1.0, 2.0)

    # ============================================
    # HTTP Request Handler with Retry Logic
    # ============================================

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> Any:
        """
        Execute a request with rate limiting, timeout and retries.

        Args:
            method: "GET" or "POST"
            path: Endpoint path appended to base_url ("" for the base URL itself)
            params: Optional query parameters
            body: Optional JSON body (POST only)

        Returns:
            Decoded JSON response

        Raises:
            RuntimeError: If the session was not opened with 'async with'
            NonRetryableRequestError: On HTTP 4xx other than 429
            RetryableRequestError: When the retry budget is exhausted
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        method = method.upper()
        url = f"{self.base_url}{path}"
        query = serialize_params(params)
        attempts = self.max_retries + 1
        last_status: Optional[int] = None
        last_body = ""
        last_error = ""

        for attempt in range(attempts):
            log_api_request(self.provider, method, path, dict(query) if query else None)
            started = time.monotonic()

            try:
                async with self.rate_limiter:
                    request = self.session.get if method == "GET" else self.session.post
                    kwargs: Dict[str, Any] = {
                        "params": query,
                        "headers": self.headers,
                        "timeout": aiohttp.ClientTimeout(total=self.timeout),
                    }
                    if body is not None:
                        kwargs["json"] = body

                    async with request(url, **kwargs) as resp:
                        log_api_response(self.provider, method, path, resp.status, time.monotonic() - started)

                        if 200 <= resp.status < 300:
                            return await resp.json(content_type=None)

                        text = await resp.text()

                        if 400 <= resp.status < 500 and resp.status != 429:
                            self.logger.error(f"{self.provider} HTTP {resp.status} on {method} {path}: {text[:500]}")
                            raise NonRetryableRequestError(
                                f"{self.provider} {method} {path} failed with HTTP {resp.status}",
                                status=resp.status,
                                body=text,
                            )

                        last_status, last_body = resp.status, text
                        last_error = f"HTTP {resp.status}"

            except NonRetryableRequestError:
                raise

            except asyncio.TimeoutError:
                last_status, last_body = None, ""
                last_error = f"timeout after {self.timeout}s"

            except aiohttp.ClientError as e:
                last_status, last_body = None, ""
                last_error = f"network error: {e}"

            if attempt < attempts - 1:
                delay = self.backoff_delay(attempt)
                self.logger.warning(
                    f"{self.provider} {method} {path} failed ({last_error}). "
                    f"Retrying in {delay:.2f}s... (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(delay)

        self.logger.error(f"{self.provider} {method} {path} failed after {attempts} attempts ({last_error})")
        raise RetryableRequestError(
            f"{self.provider} {method} {path} failed after {attempts} attempts: {last_error}",
            status=last_status,
            body=last_body,
        )
