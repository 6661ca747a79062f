"""
Aggregation Router

Fans requests out to provider adapters and merges their results in the
canonical asset space.

Responsibilities:
    - canonical route -> provider route (adapter.to_provider_format on both sides)
    - provider results -> canonical results (adapter.from_provider_format per item)
    - partial success: failed items are dropped and counted, failed routes are
      skipped, a failed operation leaves only its own snapshot field empty
    - per-provider deadline so one slow provider never holds up the others

Failure handling per level:
    item      conversion error            -> item dropped, count logged
    route     transform / request error   -> route skipped (snapshot) or raised (single-route call)
    operation volumes / listed assets error -> that field left empty, logged
    provider  deadline exceeded           -> provider omitted from the snapshot, logged

Usage:
    router = AggregationRouter(ProviderManager())
    snapshot = await router.get_snapshot(
        providers=["lifi", "across"],
        routes=[route],
        notionals=["1000000"],
        windows=["24h"],
    )
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Sequence

from core.config import settings
from core.errors import UnsupportedOperation
from core.logging import get_logger, log_dropped_items
from core.provider_interface import ProviderAdapter
from core.provider_manager import ProviderManager
from core.schemas import (
    TIME_WINDOWS,
    CanonicalAsset,
    LiquidityDepth,
    PingResponse,
    ProviderSnapshot,
    RateQuote,
    Route,
    VolumeWindow,
)
from core.utils.time import current_utc_datetime
from storage.volume_cache import VolumeCache

logger = get_logger(__name__)


# ============================================
# Settle-all task group
# ============================================

class Outcome:
    """Result of one settled task: either a value or the exception it raised."""

    __slots__ = ("key", "value", "error")

    def __init__(self, key: Hashable, value: Any = None, error: Optional[BaseException] = None):
        self.key = key
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    def __repr__(self) -> str:
        state = "ok" if self.ok else f"error={self.error!r}"
        return f"<Outcome(key={self.key!r}, {state})>"


async def settle_all(
    coroutines: Dict[Hashable, Awaitable[Any]],
    timeout: Optional[float] = None,
) -> List[Outcome]:
    """
    Run every coroutine as its own task and join them all.

    One task failing or timing out never cancels its siblings. If the caller
    itself is cancelled, every spawned task is cancelled too.

    Args:
        coroutines: key -> coroutine
        timeout: Optional deadline applied to each task separately

    Returns:
        List[Outcome]: One outcome per key, in input order
    """
    async def run(coro: Awaitable[Any]) -> Any:
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=timeout)

    tasks = {key: asyncio.ensure_future(run(coro)) for key, coro in coroutines.items()}

    outcomes: List[Outcome] = []
    try:
        for key, task in tasks.items():
            try:
                outcomes.append(Outcome(key, value=await task))
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                outcomes.append(Outcome(key, error=asyncio.CancelledError()))
            except Exception as e:
                outcomes.append(Outcome(key, error=e))
    except asyncio.CancelledError:
        for task in tasks.values():
            task.cancel()
        raise

    return outcomes


async def convert_all(
    items: Sequence[Any],
    convert: Callable[[Any], Awaitable[Any]],
    provider: str,
    operation: str,
) -> List[Any]:
    """
    Convert every item, dropping (and counting) the ones that fail.

    Args:
        items: Provider-format items
        convert: Coroutine function converting one item
        provider: Provider id for logging
        operation: Operation name for logging

    Returns:
        List of converted items, in input order
    """
    results = await asyncio.gather(*(convert(item) for item in items), return_exceptions=True)

    converted = []
    dropped = 0
    for item, result in zip(items, results):
        if isinstance(result, Exception):
            dropped += 1
            logger.debug(f"{provider} {operation}: dropped {item!r}: {result}")
        elif isinstance(result, BaseException):
            raise result
        else:
            converted.append(result)

    log_dropped_items(provider, operation, dropped, len(items))
    return converted


def _validate_windows(windows: Optional[Sequence[str]]) -> List[str]:
    if not windows:
        return list(TIME_WINDOWS)
    unknown = [w for w in windows if w not in TIME_WINDOWS]
    if unknown:
        raise ValueError(f"Unknown time window(s): {', '.join(unknown)}. Valid: {', '.join(TIME_WINDOWS)}")
    return list(dict.fromkeys(windows))


# ============================================
# Aggregation Router
# ============================================

class AggregationRouter:
    """
    Provider fan-out with canonical transforms and partial-success merging.

    Args:
        manager: Provider manager holding the registered adapters
        volume_cache: Volume cache (one per router by default)
        provider_timeout: Deadline for one provider's part of a snapshot

    Example:
        >>> router = AggregationRouter(ProviderManager())
        >>> assets = await router.get_listed_assets("across")
        >>> assets[0].asset_id
        '1cs_v1:eth:erc20:0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48'
    """

    def __init__(
        self,
        manager: ProviderManager,
        volume_cache: Optional[VolumeCache] = None,
        provider_timeout: Optional[float] = None,
    ):
        self.manager = manager
        self.volume_cache = volume_cache or VolumeCache(ttl=settings.volume_cache_ttl)
        self.provider_timeout = settings.provider_timeout if provider_timeout is None else provider_timeout

    # ============================================
    # Route transforms
    # ============================================

    async def to_provider_route(self, adapter: ProviderAdapter, route: Route) -> Route:
        """
        Transform a canonical route into the adapter's asset format.

        Raises:
            Whatever to_provider_format raises for either side
        """
        source, destination = await asyncio.gather(
            adapter.to_provider_format(route.source),
            adapter.to_provider_format(route.destination),
        )
        return Route(source=source, destination=destination)

    async def _canonical_route(self, adapter: ProviderAdapter, route: Route) -> Route[CanonicalAsset]:
        source, destination = await asyncio.gather(
            adapter.from_provider_format(route.source),
            adapter.from_provider_format(route.destination),
        )
        return Route[CanonicalAsset](source=source, destination=destination)

    async def _canonical_quote(self, adapter: ProviderAdapter, quote: RateQuote) -> RateQuote[CanonicalAsset]:
        route = await self._canonical_route(adapter, quote.route)
        return RateQuote[CanonicalAsset](
            source=route.source,
            destination=route.destination,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            effective_rate=quote.effective_rate,
            total_fees_usd=quote.total_fees_usd,
            quoted_at=quote.quoted_at,
        )

    async def _canonical_depth(self, adapter: ProviderAdapter, depth: LiquidityDepth) -> LiquidityDepth[CanonicalAsset]:
        route = await self._canonical_route(adapter, depth.route)
        return LiquidityDepth[CanonicalAsset](
            route=route,
            thresholds=depth.thresholds,
            measured_at=depth.measured_at,
        )

    def _require(self, adapter: ProviderAdapter, feature: str) -> None:
        if not adapter.supports(feature):
            raise UnsupportedOperation(f"Provider '{adapter.name}' does not support {feature}")

    # ============================================
    # Single-provider operations
    # ============================================

    async def get_volumes(
        self,
        provider: str,
        windows: Optional[Sequence[str]] = None,
        route: Optional[Route[CanonicalAsset]] = None,
    ) -> List[VolumeWindow]:
        """
        Volumes of one provider, cached for volume_cache_ttl seconds.

        Raises:
            UnknownProvider / UnsupportedOperation / request errors
        """
        adapter = self.manager.get_provider(provider)
        self._require(adapter, "volumes")
        windows = _validate_windows(windows)

        provider_route = await self.to_provider_route(adapter, route) if route is not None else None
        route_key = (route.source.asset_id, route.destination.asset_id) if route is not None else None
        key = (adapter.name, tuple(windows), route_key)

        return await self.volume_cache.get_or_fetch(
            key, lambda: adapter.get_volumes(windows, provider_route)
        )

    async def get_listed_assets(self, provider: str) -> List[CanonicalAsset]:
        """Listed assets of one provider in canonical form, de-duplicated by asset id."""
        adapter = self.manager.get_provider(provider)
        self._require(adapter, "listed_assets")

        raw_assets = await adapter.get_listed_assets()
        assets = await convert_all(raw_assets, adapter.from_provider_format, adapter.name, "listed_assets")

        unique: Dict[str, CanonicalAsset] = {}
        for asset in assets:
            unique.setdefault(asset.asset_id, asset)
        return list(unique.values())

    async def get_rates(
        self,
        provider: str,
        route: Route[CanonicalAsset],
        amounts: Sequence[str],
    ) -> List[RateQuote[CanonicalAsset]]:
        """
        Quotes of one provider for one route.

        Raises:
            AssetConversionError / UnresolvedChain: If the route cannot be transformed
        """
        adapter = self.manager.get_provider(provider)
        self._require(adapter, "rates")
        if not amounts:
            raise ValueError("At least one notional amount is required")

        provider_route = await self.to_provider_route(adapter, route)
        quotes = await adapter.get_rates(provider_route, list(amounts))
        return await convert_all(quotes, lambda q: self._canonical_quote(adapter, q), adapter.name, "rates")

    async def get_liquidity_depth(
        self,
        provider: str,
        route: Route[CanonicalAsset],
    ) -> List[LiquidityDepth[CanonicalAsset]]:
        """
        Liquidity depth of one provider for one route.

        Raises:
            AssetConversionError / UnresolvedChain: If the route cannot be transformed
        """
        adapter = self.manager.get_provider(provider)
        self._require(adapter, "liquidity")

        provider_route = await self.to_provider_route(adapter, route)
        depths = await adapter.get_liquidity_depth(provider_route)
        return await convert_all(depths, lambda d: self._canonical_depth(adapter, d), adapter.name, "liquidity")

    # ============================================
    # Snapshot
    # ============================================

    async def get_snapshot(
        self,
        providers: Optional[Sequence[str]] = None,
        routes: Optional[Sequence[Route[CanonicalAsset]]] = None,
        notionals: Optional[Sequence[str]] = None,
        windows: Optional[Sequence[str]] = None,
    ) -> Dict[str, ProviderSnapshot]:
        """
        Best-effort snapshot across providers.

        Args:
            providers: Provider ids (defaults to every registered provider)
            routes: Canonical routes for rates and liquidity
            notionals: Smallest-unit amounts to quote (defaults to one whole
                       source token per route when its decimals are known)
            windows: Volume windows (defaults to all)

        Returns:
            Dict[str, ProviderSnapshot]: provider id -> snapshot. A failed
            operation leaves only its own field empty. Providers that exceeded
            provider_timeout are absent.

        Raises:
            UnknownProvider: If a requested provider id is not registered
            ValueError: On unknown windows
        """
        provider_ids = [p.lower() for p in providers] if providers else self.manager.list_providers()
        adapters = {name: self.manager.get_provider(name) for name in dict.fromkeys(provider_ids)}
        windows = _validate_windows(windows)

        outcomes = await settle_all(
            {
                name: self._provider_snapshot(adapter, routes or [], notionals, windows, bool(routes))
                for name, adapter in adapters.items()
            },
            timeout=self.provider_timeout,
        )

        snapshot: Dict[str, ProviderSnapshot] = {}
        for outcome in outcomes:
            if outcome.ok:
                snapshot[outcome.key] = outcome.value
            elif isinstance(outcome.error, asyncio.TimeoutError):
                logger.error(f"Provider {outcome.key} timed out after {self.provider_timeout}s, omitted from snapshot")
            else:
                logger.error(f"Provider {outcome.key} failed, omitted from snapshot: {outcome.error}")

        omitted = len(adapters) - len(snapshot)
        logger.info(f"Snapshot complete: {len(snapshot)}/{len(adapters)} provider(s), {omitted} omitted")
        return snapshot

    async def _provider_snapshot(
        self,
        adapter: ProviderAdapter,
        routes: Sequence[Route[CanonicalAsset]],
        notionals: Optional[Sequence[str]],
        windows: List[str],
        include_routes: bool,
    ) -> ProviderSnapshot:
        name = adapter.name

        work: Dict[Hashable, Awaitable[Any]] = {}
        if adapter.supports("volumes"):
            work[("volumes", None)] = self.get_volumes(name, windows)
        if adapter.supports("listed_assets"):
            work[("listed_assets", None)] = self.get_listed_assets(name)

        if include_routes:
            for index, route in enumerate(routes):
                if adapter.supports("rates"):
                    amounts = list(notionals) if notionals else _default_notionals(route)
                    if amounts:
                        work[("rates", index)] = self.get_rates(name, route, amounts)
                    else:
                        logger.debug(f"{name}: no notional for route {index} (unknown source decimals)")
                if adapter.supports("liquidity"):
                    work[("liquidity", index)] = self.get_liquidity_depth(name, route)

        results: Dict[str, list] = {"volumes": [], "listed_assets": [], "rates": [], "liquidity": []}
        for outcome in await settle_all(work):
            kind, index = outcome.key
            if outcome.ok:
                results[kind].extend(outcome.value)
            elif index is None:
                logger.warning(f"{name} {kind} failed, left empty in snapshot: {outcome.error}")
            else:
                route = routes[index]
                logger.warning(
                    f"{name} {kind} skipped for route {route.source.asset_id} -> "
                    f"{route.destination.asset_id}: {outcome.error}"
                )

        if not include_routes:
            return ProviderSnapshot(volumes=results["volumes"], listed_assets=results["listed_assets"])

        return ProviderSnapshot(
            volumes=results["volumes"],
            listed_assets=results["listed_assets"],
            rates=results["rates"],
            liquidity=results["liquidity"],
        )

    # ============================================
    # Liveness
    # ============================================

    async def ping(self) -> PingResponse:
        """Liveness check; never touches providers."""
        return PingResponse(status="ok", timestamp=current_utc_datetime())


def _default_notionals(route: Route[CanonicalAsset]) -> List[str]:
    decimals = route.source.decimals
    if decimals is None:
        return []
    return [str(10 ** decimals)]
