"""
NEAR Intents Provider Adapter

NEAR Intents routes swaps through solvers via the 1Click API. Assets are
addressed by 1Click asset ids ("nep141:wrap.near", "nep141:eth-0xa0b8....omft.near"),
so converting a canonical asset to 1Click format needs the listed-asset index.

Endpoints Used:
    1Click:
        - GET /v0/tokens, POST /v0/quote (dry run)
    DefiLlama:
        - GET /summary/dexs/near-intents

Notes:
    - The canonical id -> 1Click asset index is loaded lazily; concurrent
      first callers share one load
    - Routes whose source and destination are the same 1Click asset are skipped
    - "cumulative" maps to DefiLlama's all-time total
"""

import asyncio
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from core.errors import AssetConversionError, UnresolvedChain
from core.logging import log_dropped_items, logger
from core.provider_interface import ProviderAdapter
from core.schemas import CanonicalAsset, LiquidityDepth, RateQuote, Route, VolumeWindow
from core.utils.decimal import effective_rate
from core.utils.time import current_utc_datetime
from .api_client import IntentsAPIClient, IntentsAsset

# Volume window -> DefiLlama DEX summary field
VOLUME_FIELDS = {
    "24h": "total24h",
    "7d": "total7d",
    "30d": "total30d",
    "cumulative": "totalAllTime",
}


class NearIntentsProvider(ProviderAdapter[IntentsAsset]):
    """
    NEAR Intents Provider Adapter

    Attributes:
        name: Provider identifier ("near-intents")
        capabilities: All four operations supported
    """

    name = "near-intents"

    capabilities = {
        "volumes": True,
        "listed_assets": True,
        "rates": True,
        "liquidity": True,
    }

    def __init__(self, registry=None, liquidity_policy=None, client: Optional[IntentsAPIClient] = None):
        super().__init__(registry=registry, liquidity_policy=liquidity_policy)
        self.client = client or IntentsAPIClient()
        self._index: Dict[str, IntentsAsset] = {}
        self._index_task: Optional[asyncio.Task] = None

    async def initialize(self) -> None:
        logger.info("Initializing NEAR Intents provider...")
        await self.client.__aenter__()
        logger.info("✓ NEAR Intents provider initialized")

    async def shutdown(self) -> None:
        if self._index_task and not self._index_task.done():
            self._index_task.cancel()
        if self.client:
            await self.client.__aexit__(None, None, None)
        logger.info("✓ NEAR Intents provider shut down")

    async def health_check(self) -> bool:
        try:
            await self.client.get_tokens()
            return True
        except Exception as e:
            logger.error(f"NEAR Intents health check failed: {e}")
            return False

    # ============================================
    # Format Transform
    # ============================================

    async def to_provider_format(self, asset: CanonicalAsset) -> IntentsAsset:
        """
        Look up the 1Click asset for a canonical asset.

        Raises:
            AssetConversionError: If 1Click does not list the asset
        """
        await self._ensure_index()
        found = self._index.get(asset.asset_id)
        if found is None:
            raise AssetConversionError("Asset not supported by 1Click", asset=asset.asset_id)
        return found

    async def from_provider_format(self, asset: IntentsAsset) -> CanonicalAsset:
        identity = self.canonicalizer.from_slug_address(asset.blockchain, asset.contractAddress)
        try:
            chain_id = self.registry.chain_id_for(identity.chain)
        except UnresolvedChain:
            chain_id = None

        canonical = self.canonicalizer.canonical_asset(
            identity, symbol=asset.symbol, decimals=asset.decimals, chain_id=chain_id
        )
        self._index.setdefault(canonical.asset_id, asset)
        return canonical

    async def _ensure_index(self) -> None:
        if self._index:
            return
        if self._index_task is None or self._index_task.done():
            self._index_task = asyncio.ensure_future(self._load_index())
        await asyncio.shield(self._index_task)

    async def _load_index(self) -> None:
        tokens = await self.client.get_tokens()
        dropped = 0
        for token in tokens:
            try:
                await self.from_provider_format(token)
            except Exception as e:
                dropped += 1
                logger.debug(f"NEAR Intents: cannot index {token.intentsAssetId}: {e}")
        log_dropped_items(self.name, "asset index", dropped, len(tokens))
        logger.info(f"NEAR Intents asset index loaded: {len(self._index)} asset(s)")

    # ============================================
    # Data Operations
    # ============================================

    async def get_volumes(
        self,
        windows: Sequence[str],
        route: Optional[Route[IntentsAsset]] = None,
    ) -> List[VolumeWindow]:
        summary = await self.client.get_dex_summary()
        measured_at = current_utc_datetime()

        volumes = []
        for window in windows:
            value = summary.get(VOLUME_FIELDS.get(window, ""))
            if not isinstance(value, (int, float)):
                logger.debug(f"NEAR Intents has no {window} volume; window omitted")
                continue
            volumes.append(VolumeWindow(window=window, volume_usd=float(value), measured_at=measured_at))
        return volumes

    async def get_listed_assets(self) -> List[IntentsAsset]:
        return await self.client.get_tokens()

    async def get_rates(self, route: Route[IntentsAsset], amounts: Sequence[str]) -> List[RateQuote[IntentsAsset]]:
        """One dry-run quote per amount; failed or unreadable quotes and same-asset routes yield nothing."""
        if route.source.intentsAssetId == route.destination.intentsAssetId:
            logger.debug(f"NEAR Intents: same-asset route {route.source.intentsAssetId} skipped")
            return []

        rates: List[RateQuote[IntentsAsset]] = []
        for amount in amounts:
            try:
                rates.append(await self._rate_quote(route, str(amount)))
            except Exception as e:
                logger.warning(
                    f"NEAR Intents quote failed for {route.source.symbol} -> "
                    f"{route.destination.symbol} amount {amount}: {e!r}"
                )

        return rates

    async def _rate_quote(self, route: Route[IntentsAsset], amount: str) -> RateQuote[IntentsAsset]:
        response = await self.client.get_quote(
            route.source.intentsAssetId, route.destination.intentsAssetId, amount
        )
        quote = response["quote"]
        amount_in, amount_out = str(quote["amountIn"]), str(quote["amountOut"])
        fees = None
        if quote.get("amountInUsd") is not None and quote.get("amountOutUsd") is not None:
            fees = float(max(Decimal(str(quote["amountInUsd"])) - Decimal(str(quote["amountOutUsd"])), Decimal(0)))

        return RateQuote(
            source=route.source,
            destination=route.destination,
            amount_in=amount_in,
            amount_out=amount_out,
            effective_rate=effective_rate(
                amount_in, amount_out, route.source.decimals, route.destination.decimals
            ),
            total_fees_usd=fees,
            quoted_at=response.get("timestamp") or current_utc_datetime(),
        )

    async def get_liquidity_depth(self, route: Route[IntentsAsset]) -> List[LiquidityDepth[IntentsAsset]]:
        if route.source.intentsAssetId == route.destination.intentsAssetId:
            return []

        async def quote_out(amount_in: int) -> int:
            response = await self.client.get_quote(
                route.source.intentsAssetId, route.destination.intentsAssetId, str(amount_in)
            )
            return int(response["quote"]["amountOut"])

        return await self.probe_liquidity(
            route,
            quote_out,
            source_decimals=route.source.decimals,
            destination_decimals=route.destination.decimals,
        )


__all__ = ["NearIntentsProvider", "IntentsAsset", "IntentsAPIClient"]
