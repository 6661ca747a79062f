"""
Li.Fi Provider Adapter

This module implements the ProviderAdapter contract for Li.Fi, a bridge and
DEX aggregator covering most EVM chains.

Endpoints Used:
    - GET /v1/tokens                   - Listed assets
    - GET /v1/quote                    - Rate quotes (and liquidity probing)
    - GET /v2/analytics/transfers      - Completed transfers, summed per volume window

Notes:
    - Li.Fi identifies assets by (chain id, token address); the native coin
      uses the zero address
    - Volume windows are bounded: "cumulative" is not measurable and is omitted
    - Each window reads at most MAX_PAGES_PER_WINDOW pages; a failure after the
      first page keeps the partial total
    - Liquidity uses the binary-search prober without a provider ceiling
"""

import asyncio
from decimal import Decimal
from typing import List, Optional, Sequence

from core.errors import AssetConversionError
from core.logging import logger
from core.provider_interface import ProviderAdapter
from core.schemas import CanonicalAsset, LiquidityDepth, RateQuote, Route, VolumeWindow
from core.utils.decimal import effective_rate
from core.utils.time import current_utc_datetime, datetime_to_timestamp, window_start
from .api_client import LiFiAPIClient, LiFiAsset

MAX_PAGES_PER_WINDOW = 8
TRANSFERS_PER_PAGE = 1000
PAGE_DELAY_SECONDS = 0.5


def _sum_usd(costs) -> Decimal:
    total = Decimal(0)
    for cost in costs or []:
        amount = cost.get("amountUSD")
        if amount:
            total += Decimal(str(amount))
    return total


class LiFiProvider(ProviderAdapter[LiFiAsset]):
    """
    Li.Fi Provider Adapter

    Attributes:
        name: Provider identifier ("lifi")
        capabilities: All four operations supported

    Example:
        >>> provider = LiFiProvider()
        >>> await provider.initialize()
        >>> volumes = await provider.get_volumes(["24h", "7d"])
        >>> await provider.shutdown()
    """

    name = "lifi"

    capabilities = {
        "volumes": True,
        "listed_assets": True,
        "rates": True,
        "liquidity": True,
    }

    def __init__(self, registry=None, liquidity_policy=None, client: Optional[LiFiAPIClient] = None):
        super().__init__(registry=registry, liquidity_policy=liquidity_policy)
        self.client = client or LiFiAPIClient()
        self.page_delay = PAGE_DELAY_SECONDS

    async def initialize(self) -> None:
        logger.info("Initializing Li.Fi provider...")
        await self.client.__aenter__()
        logger.info("✓ Li.Fi provider initialized")

    async def shutdown(self) -> None:
        if self.client:
            await self.client.__aexit__(None, None, None)
        logger.info("✓ Li.Fi provider shut down")

    async def health_check(self) -> bool:
        try:
            return await self.client.ping()
        except Exception as e:
            logger.error(f"Li.Fi health check failed: {e}")
            return False

    # ============================================
    # Format Transform
    # ============================================

    async def to_provider_format(self, asset: CanonicalAsset) -> LiFiAsset:
        if asset.decimals is None:
            raise AssetConversionError("Li.Fi quotes need token decimals", asset=asset.asset_id)
        chain_id, address = self.canonicalizer.to_evm_address(asset)
        return LiFiAsset(chainId=str(chain_id), address=address, symbol=asset.symbol, decimals=asset.decimals)

    async def from_provider_format(self, asset: LiFiAsset) -> CanonicalAsset:
        identity = await self.canonicalizer.from_chain_address(asset.chainId, asset.address)
        return self.canonicalizer.canonical_asset(
            identity,
            symbol=asset.symbol,
            decimals=asset.decimals,
            chain_id=int(asset.chainId),
        )

    # ============================================
    # Data Operations
    # ============================================

    async def get_volumes(
        self,
        windows: Sequence[str],
        route: Optional[Route[LiFiAsset]] = None,
    ) -> List[VolumeWindow]:
        """
        Sum receiving.amountUSD of completed transfers per window.

        Raises:
            Request errors on the first page of any window
        """
        now = current_utc_datetime()
        volumes: List[VolumeWindow] = []

        for window in windows:
            if window == "cumulative":
                logger.debug("Li.Fi has no cumulative volume; window omitted")
                continue

            total = await self._window_volume(
                datetime_to_timestamp(window_start(window, now)),
                datetime_to_timestamp(now),
                window,
            )
            volumes.append(VolumeWindow(window=window, volume_usd=float(total), measured_at=now))

        return volumes

    async def _window_volume(self, from_timestamp: int, to_timestamp: int, window: str) -> Decimal:
        total = Decimal(0)
        cursor: Optional[str] = None
        pages = 0

        while pages < MAX_PAGES_PER_WINDOW:
            try:
                page = await self.client.get_transfers(
                    from_timestamp, to_timestamp, limit=TRANSFERS_PER_PAGE, cursor=cursor
                )
            except Exception as e:
                if pages == 0:
                    raise
                logger.warning(f"Li.Fi [{window}] stopped at page {pages + 1}, using partial total: {e}")
                break

            transfers = page.get("data") or page.get("transfers") or []
            for transfer in transfers:
                amount = (transfer.get("receiving") or {}).get("amountUSD")
                if amount:
                    total += Decimal(str(amount))
            pages += 1

            cursor = page.get("next")
            if page.get("hasNext") is not True or not cursor:
                break
            if pages < MAX_PAGES_PER_WINDOW:
                await asyncio.sleep(self.page_delay)

        logger.debug(f"Li.Fi [{window}] volume ${total} from {pages} page(s)")
        return total

    async def get_listed_assets(self) -> List[LiFiAsset]:
        return await self.client.get_tokens()

    async def get_rates(self, route: Route[LiFiAsset], amounts: Sequence[str]) -> List[RateQuote[LiFiAsset]]:
        """One quote per amount; failed or unreadable quotes are omitted."""
        rates: List[RateQuote[LiFiAsset]] = []

        for amount in amounts:
            try:
                rates.append(await self._rate_quote(route, str(amount)))
            except Exception as e:
                logger.warning(f"Li.Fi quote failed for amount {amount}: {e!r}")

        return rates

    async def _rate_quote(self, route: Route[LiFiAsset], amount: str) -> RateQuote[LiFiAsset]:
        estimate = (await self._quote(route, amount))["estimate"]
        amount_in = str(estimate.get("fromAmount") or amount)
        amount_out = str(estimate["toAmount"])
        fees = _sum_usd(estimate.get("feeCosts")) + _sum_usd(estimate.get("gasCosts"))

        return RateQuote(
            source=route.source,
            destination=route.destination,
            amount_in=amount_in,
            amount_out=amount_out,
            effective_rate=effective_rate(
                amount_in, amount_out, route.source.decimals, route.destination.decimals
            ),
            total_fees_usd=float(fees),
            quoted_at=current_utc_datetime(),
        )

    async def get_liquidity_depth(self, route: Route[LiFiAsset]) -> List[LiquidityDepth[LiFiAsset]]:
        async def quote_out(amount_in: int) -> int:
            quote = await self._quote(route, str(amount_in))
            return int(quote["estimate"]["toAmount"])

        return await self.probe_liquidity(
            route,
            quote_out,
            source_decimals=route.source.decimals,
            destination_decimals=route.destination.decimals,
        )

    async def _quote(self, route: Route[LiFiAsset], amount: str) -> dict:
        return await self.client.get_quote(
            from_chain=int(route.source.chainId),
            to_chain=int(route.destination.chainId),
            from_token=route.source.address,
            to_token=route.destination.address,
            from_amount=amount,
        )


__all__ = ["LiFiProvider", "LiFiAsset", "LiFiAPIClient"]
