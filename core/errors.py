"""
Error Taxonomy

Every failure the aggregation core reasons about has exactly one ErrorKind.
Boundaries (router, adapters, prober) decide per kind whether the item,
the request, the route or the provider is dropped.

    Kind                      Raised by                 Handled as
    ------------------------  ------------------------  ------------------------------
    UNRESOLVED_CHAIN          Chain Registry            item excluded, logged
    MALFORMED_IDENTITY        Identity Codec            item rejected, batch continues
    ASSET_CONVERSION          adapters / canonicalizer  item dropped, count logged
    NON_RETRYABLE_REQUEST     HTTP client (4xx != 429)  request aborted immediately
    RETRYABLE_REQUEST         HTTP client (429/5xx/net) retried, then operation fails
    PROBE_CONVERGENCE         Liquidity prober          route/threshold omitted
    EXTERNAL_ORCHESTRATION    scheduling collaborators  bubbles to the caller
    UNSUPPORTED_OPERATION     adapters                  operation skipped
    UNKNOWN_PROVIDER          Provider manager          caller error
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds handled by the aggregation core."""

    UNRESOLVED_CHAIN = "unresolved_chain"
    MALFORMED_IDENTITY = "malformed_identity"
    ASSET_CONVERSION = "asset_conversion"
    NON_RETRYABLE_REQUEST = "non_retryable_request"
    RETRYABLE_REQUEST = "retryable_request"
    PROBE_CONVERGENCE = "probe_convergence"
    EXTERNAL_ORCHESTRATION = "external_orchestration"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    UNKNOWN_PROVIDER = "unknown_provider"


class BridgeStatsError(Exception):
    """Base class for all errors raised by the aggregation core."""

    kind: ErrorKind


class UnresolvedChain(BridgeStatsError):
    """A chain id or slug could not be resolved, even after the directory fallback."""

    kind = ErrorKind.UNRESOLVED_CHAIN

    def __init__(self, chain):
        self.chain = chain
        super().__init__(f"Unresolved chain: {chain!r}")


class MalformedIdentity(BridgeStatsError, ValueError):
    """A canonical asset identifier failed to parse or validate."""

    kind = ErrorKind.MALFORMED_IDENTITY

    def __init__(self, asset_id: str, reason: str):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Malformed asset id {asset_id!r}: {reason}")


class AssetConversionError(BridgeStatsError):
    """An asset could not be converted between canonical and provider format."""

    kind = ErrorKind.ASSET_CONVERSION

    def __init__(self, message: str, asset=None):
        self.asset = asset
        super().__init__(message)


class RequestError(BridgeStatsError):
    """Base class for failed HTTP requests."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        self.status = status
        self.body = body[:500] if body else ""
        super().__init__(message)


class NonRetryableRequestError(RequestError):
    """HTTP 4xx other than 429. Never retried."""

    kind = ErrorKind.NON_RETRYABLE_REQUEST


class RetryableRequestError(RequestError):
    """HTTP 429, 5xx, timeout or network failure that outlived its retry budget."""

    kind = ErrorKind.RETRYABLE_REQUEST


class ProbeConvergenceFailure(BridgeStatsError):
    """The liquidity prober found no amount within any slippage threshold."""

    kind = ErrorKind.PROBE_CONVERGENCE


class ExternalOrchestrationError(BridgeStatsError):
    """A collaborator outside the core (e.g. a sync trigger) failed."""

    kind = ErrorKind.EXTERNAL_ORCHESTRATION


class UnsupportedOperation(BridgeStatsError, NotImplementedError):
    """The provider adapter does not implement the requested operation."""

    kind = ErrorKind.UNSUPPORTED_OPERATION


class UnknownProvider(BridgeStatsError, ValueError):
    """No adapter is registered under the requested provider id."""

    kind = ErrorKind.UNKNOWN_PROVIDER
