"""
Across Protocol Provider Adapter

Across is an intent-based bridge between EVM chains. Its API quotes relay
fees rather than full swaps, so a quote is amount_out = amount - total relay fee.

Endpoints Used:
    Across:
        - GET /swap/tokens, /suggested-fees, /limits
    DefiLlama:
        - GET /bridge/19 (24h, 7d and 30d volume)

Notes:
    - "cumulative" volume is not published for Across and is omitted
    - Liquidity probing is bounded by /limits: maxDeposit is the search
      ceiling and minDeposit the baseline when it exceeds one whole token
"""

from typing import List, Optional, Sequence

from core.errors import AssetConversionError
from core.logging import logger
from core.provider_interface import ProviderAdapter
from core.schemas import CanonicalAsset, LiquidityDepth, RateQuote, Route, VolumeWindow
from core.utils.decimal import effective_rate
from core.utils.time import current_utc_datetime
from .api_client import AcrossAPIClient, AcrossAsset, AcrossLimits

# Volume window -> DefiLlama bridge stat
VOLUME_FIELDS = {
    "24h": "lastDailyVolume",
    "7d": "weeklyVolume",
    "30d": "monthlyVolume",
}


class AcrossProvider(ProviderAdapter[AcrossAsset]):
    """
    Across Provider Adapter

    Example:
        >>> provider = AcrossProvider()
        >>> await provider.initialize()
        >>> assets = await provider.get_listed_assets()
    """

    name = "across"

    capabilities = {
        "volumes": True,
        "listed_assets": True,
        "rates": True,
        "liquidity": True,
    }

    def __init__(self, registry=None, liquidity_policy=None, client: Optional[AcrossAPIClient] = None):
        super().__init__(registry=registry, liquidity_policy=liquidity_policy)
        self.client = client or AcrossAPIClient()

    async def initialize(self) -> None:
        logger.info("Initializing Across provider...")
        await self.client.__aenter__()
        logger.info("✓ Across provider initialized")

    async def shutdown(self) -> None:
        if self.client:
            await self.client.__aexit__(None, None, None)
        logger.info("✓ Across provider shut down")

    async def health_check(self) -> bool:
        try:
            await self.client.get_bridge_volumes()
            return True
        except Exception as e:
            logger.error(f"Across health check failed: {e}")
            return False

    # ============================================
    # Format Transform
    # ============================================

    async def to_provider_format(self, asset: CanonicalAsset) -> AcrossAsset:
        if asset.decimals is None:
            raise AssetConversionError("Across quotes need token decimals", asset=asset.asset_id)
        chain_id, address = self.canonicalizer.to_evm_address(asset)
        return AcrossAsset(chainId=chain_id, address=address, symbol=asset.symbol, decimals=asset.decimals)

    async def from_provider_format(self, asset: AcrossAsset) -> CanonicalAsset:
        identity = await self.canonicalizer.from_chain_address(asset.chainId, asset.address)
        return self.canonicalizer.canonical_asset(
            identity,
            symbol=asset.symbol,
            decimals=asset.decimals,
            chain_id=asset.chainId,
            icon_url=asset.logoUrl,
        )

    # ============================================
    # Data Operations
    # ============================================

    async def get_volumes(
        self,
        windows: Sequence[str],
        route: Optional[Route[AcrossAsset]] = None,
    ) -> List[VolumeWindow]:
        stats = await self.client.get_bridge_volumes()
        measured_at = current_utc_datetime()

        volumes = []
        for window in windows:
            field = VOLUME_FIELDS.get(window)
            value = stats.get(field) if field else None
            if not isinstance(value, (int, float)):
                logger.debug(f"Across has no {window} volume; window omitted")
                continue
            volumes.append(VolumeWindow(window=window, volume_usd=float(value), measured_at=measured_at))
        return volumes

    async def get_listed_assets(self) -> List[AcrossAsset]:
        return await self.client.get_tokens()

    async def get_rates(self, route: Route[AcrossAsset], amounts: Sequence[str]) -> List[RateQuote[AcrossAsset]]:
        """One fee quote per amount; failed quotes are omitted."""
        rates: List[RateQuote[AcrossAsset]] = []

        for amount in amounts:
            try:
                amount_out = await self._amount_out(route, int(amount))
                if amount_out <= 0:
                    logger.warning(f"Across fees exceed amount {amount}; quote omitted")
                    continue

                rates.append(RateQuote(
                    source=route.source,
                    destination=route.destination,
                    amount_in=str(amount),
                    amount_out=str(amount_out),
                    effective_rate=effective_rate(
                        amount, amount_out, route.source.decimals, route.destination.decimals
                    ),
                    quoted_at=current_utc_datetime(),
                ))
            except Exception as e:
                logger.warning(f"Across quote failed for amount {amount}: {e!r}")

        return rates

    async def get_liquidity_depth(self, route: Route[AcrossAsset]) -> List[LiquidityDepth[AcrossAsset]]:
        limits = await self._limits(route)
        one_unit = 10 ** route.source.decimals
        min_deposit = int(limits.minDeposit)
        test_amount = min_deposit if min_deposit > one_unit else one_unit

        async def quote_out(amount_in: int) -> int:
            return await self._amount_out(route, amount_in)

        return await self.probe_liquidity(
            route,
            quote_out,
            source_decimals=route.source.decimals,
            destination_decimals=route.destination.decimals,
            max_amount_hint=int(limits.maxDeposit),
            test_amount=test_amount,
        )

    async def _amount_out(self, route: Route[AcrossAsset], amount: int) -> int:
        fees = await self.client.get_suggested_fees(
            input_token=route.source.address,
            output_token=route.destination.address,
            origin_chain_id=route.source.chainId,
            destination_chain_id=route.destination.chainId,
            amount=str(amount),
        )
        return amount - int(fees["totalRelayFee"]["total"])

    async def _limits(self, route: Route[AcrossAsset]) -> AcrossLimits:
        return await self.client.get_limits(
            input_token=route.source.address,
            output_token=route.destination.address,
            origin_chain_id=route.source.chainId,
            destination_chain_id=route.destination.chainId,
        )


__all__ = ["AcrossProvider", "AcrossAsset", "AcrossAPIClient"]
