"""
Provider Interface - Abstract Contract for All Data Providers

This module defines the abstract base class that every provider adapter must implement.
By enforcing a consistent interface, we ensure:
- All providers expose the same four data operations
- New providers are added by registering an implementation, without touching core logic
- Each adapter declares its own provider asset type explicitly
- Unsupported features degrade gracefully

Design Philosophy:
    The Aggregation Router works with ProviderAdapter, not with specific
    providers. Canonical assets go in, canonical results come out; each
    adapter only knows how to talk to its own API in its own asset format.

Example:
    class LiFiProvider(ProviderAdapter[LiFiAsset]):
        name = "lifi"

        async def to_provider_format(self, asset):
            chain_id, address = self.canonicalizer.to_evm_address(asset)
            return LiFiAsset(chainId=str(chain_id), address=address, ...)
        ...

    provider = manager.get_provider("lifi")
    assets = await provider.get_listed_assets()

Capabilities System:
    Each provider declares which operations it supports via `capabilities`.

        capabilities = {
            "volumes": True,
            "listed_assets": True,
            "rates": True,
            "liquidity": True,
        }
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from core.canonicalizer import AssetCanonicalizer
from core.chain_registry import ChainRegistry
from core.config import settings
from core.errors import ProbeConvergenceFailure
from core.liquidity import LiquidityPolicy, LiquidityProber
from core.logging import get_logger
from core.schemas import (
    CanonicalAsset,
    LiquidityDepth,
    RateQuote,
    Route,
    TimeWindow,
    VolumeWindow,
)
from core.utils.time import current_utc_datetime

TAsset = TypeVar("TAsset")

logger = get_logger(__name__)


class ProviderAdapter(ABC, Generic[TAsset]):
    """
    Abstract Base Class for Provider Adapters

    Parameterized by the provider's own asset type (TAsset). Route-taking
    operations receive routes already transformed into that type by the
    Aggregation Router, and return results in that type too; the router
    transforms them back to canonical assets.

    Class Attributes:
        name: Unique provider identifier (lowercase, e.g. "lifi", "near-intents")
        capabilities: Which operations this provider supports

    Abstract Methods:
        - to_provider_format: CanonicalAsset -> TAsset
        - from_provider_format: TAsset -> CanonicalAsset
        - get_volumes: USD volume per requested window
        - get_listed_assets: Every asset the provider supports
        - get_rates: One quote per requested notional
        - get_liquidity_depth: Max input amount per slippage threshold

    Optional Methods (can be overridden):
        - initialize / shutdown: Open and close HTTP sessions
        - health_check: Cheap reachability probe
    """

    # ============================================
    # Class Attributes (must be set by subclasses)
    # ============================================

    name: str
    """Unique provider identifier (lowercase). Example: "lifi", "across" """

    capabilities: Dict[str, bool] = {
        "volumes": False,
        "listed_assets": False,
        "rates": False,
        "liquidity": False,
    }
    """Dictionary indicating which operations this provider supports"""

    def __init__(
        self,
        registry: Optional[ChainRegistry] = None,
        liquidity_policy: Optional[LiquidityPolicy] = None,
    ):
        """
        Args:
            registry: Shared Chain Registry (a private one by default)
            liquidity_policy: Prober policy (defaults come from settings)
        """
        self.registry = registry or ChainRegistry()
        self.canonicalizer = AssetCanonicalizer(self.registry)
        self.liquidity_policy = liquidity_policy or LiquidityPolicy.from_settings(settings)

    # ============================================
    # Format Transform
    # ============================================

    @abstractmethod
    async def to_provider_format(self, asset: CanonicalAsset) -> TAsset:
        """
        Convert a canonical asset into this provider's asset format.

        Raises:
            AssetConversionError: If the provider cannot represent the asset
            UnresolvedChain: If the asset's chain is unknown to the registry
        """

    @abstractmethod
    async def from_provider_format(self, asset: TAsset) -> CanonicalAsset:
        """
        Convert a provider asset into a canonical asset.

        Raises:
            AssetConversionError / UnresolvedChain / MalformedIdentity: Item is dropped by the caller
        """

    # ============================================
    # Data Operations
    # ============================================

    @abstractmethod
    async def get_volumes(
        self,
        windows: Sequence[TimeWindow],
        route: Optional[Route[TAsset]] = None,
    ) -> List[VolumeWindow]:
        """
        USD volume for each requested window.

        Windows the provider cannot measure are omitted, never reported as zero.
        Request failures propagate to the caller.
        """

    @abstractmethod
    async def get_listed_assets(self) -> List[TAsset]:
        """Every asset the provider lists, in provider format."""

    @abstractmethod
    async def get_rates(self, route: Route[TAsset], amounts: Sequence[str]) -> List[RateQuote[TAsset]]:
        """
        One quote per notional (smallest-unit amount strings).

        Notionals whose quote fails are omitted.
        """

    @abstractmethod
    async def get_liquidity_depth(self, route: Route[TAsset]) -> List[LiquidityDepth[TAsset]]:
        """Liquidity depth for the route, or [] when no threshold could be satisfied."""

    # ============================================
    # Optional Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """
        Open HTTP sessions and warm caches.

        Called by ProviderManager.initialize_all(). Should be idempotent.
        """
        pass

    async def shutdown(self) -> None:
        """
        Close HTTP sessions. Should not raise.
        """
        pass

    async def health_check(self) -> bool:
        """
        Check that the provider API is reachable.

        Returns:
            bool: True if healthy. Never raises.
        """
        return True

    # ============================================
    # Helper Methods
    # ============================================

    def supports(self, feature: str) -> bool:
        """
        Check if this provider supports a specific operation.

        Example:
            >>> if provider.supports("liquidity"):
            ...     depth = await provider.get_liquidity_depth(route)
        """
        return self.capabilities.get(feature, False)

    async def probe_liquidity(
        self,
        route: Route[TAsset],
        quote: Callable[[int], Awaitable[int]],
        source_decimals: int,
        destination_decimals: int,
        max_amount_hint: Optional[int] = None,
        test_amount: Optional[int] = None,
    ) -> List[LiquidityDepth[TAsset]]:
        """
        Run the binary-search prober for a route and wrap the result.

        Args:
            route: Route in provider format (carried into the result)
            quote: Coroutine returning amount_out for an integer amount_in
            source_decimals / destination_decimals: Token decimals
            max_amount_hint: Provider-declared maximum input, if any
            test_amount: Baseline amount (defaults to one whole source token)

        Returns:
            One LiquidityDepth, or [] when no threshold converged
        """
        prober = LiquidityProber(self.liquidity_policy)
        try:
            thresholds = await prober.probe(
                quote,
                source_decimals=source_decimals,
                destination_decimals=destination_decimals,
                max_amount_hint=max_amount_hint,
                test_amount=test_amount,
            )
        except ProbeConvergenceFailure as e:
            logger.info(f"{self.name}: no liquidity depth for route: {e}")
            return []

        return [LiquidityDepth(route=route, thresholds=thresholds, measured_at=current_utc_datetime())]

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"<{self.__class__.__name__}(name='{self.name}')>"
