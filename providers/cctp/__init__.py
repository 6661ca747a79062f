"""
Circle CCTP Provider Adapter

CCTP burns USDC on the source domain and mints it on the destination, so
every route is USDC -> USDC at 1:1 less Circle's minimum fee. There is no
pool and no price impact.

Endpoints Used:
    Iris:
        - GET /v2/burn/USDC/fees/{source}/{destination}, /v2/fastBurn/USDC/allowance
    DefiLlama:
        - GET /bridge/51 (24h, 7d and 30d volume)

Notes:
    - Listed assets are the native USDC contracts of the supported domains
    - Rates use the standard (finalized) transfer fee
    - Liquidity depth is the remaining Fast Transfer allowance, reported for
      every policy threshold; the binary-search prober is not used
    - "cumulative" volume is not published for CCTP and is omitted
"""

from decimal import ROUND_CEILING, Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from core.errors import AssetConversionError
from core.logging import logger
from core.provider_interface import ProviderAdapter
from core.schemas import CanonicalAsset, LiquidityDepth, LiquidityThreshold, RateQuote, Route, VolumeWindow
from core.utils.decimal import effective_rate
from core.utils.time import current_utc_datetime
from .api_client import CCTPAPIClient, CCTPAsset, CCTPFee

# Chain id -> CCTP domain id
CCTP_DOMAINS: Dict[int, int] = {
    1: 0,        # Ethereum
    43114: 1,    # Avalanche
    10: 2,       # Optimism
    42161: 3,    # Arbitrum
    8453: 6,     # Base
    137: 7,      # Polygon PoS
}

# Chain id -> native USDC contract (lowercased)
USDC_ADDRESSES: Dict[int, str] = {
    1: "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
    43114: "0xb97ef9ef8734c71904d8002f8b6bc66dd9c48a6e",
    10: "0x0b2c639c533813f4aa9d7837caf62653d097ff85",
    42161: "0xaf88d065e77c8cc2239327c5edb3a432268e5831",
    8453: "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
    137: "0x3c499c542cef5e3811e1192ce70d8cc03d5c3359",
}

USDC_DECIMALS = 6

# finalityThreshold of a standard (finalized) transfer
STANDARD_FINALITY = 2000

# Volume window -> DefiLlama bridge stat
VOLUME_FIELDS = {
    "24h": "lastDailyVolume",
    "7d": "lastWeeklyVolume",
    "30d": "lastMonthlyVolume",
}


class CCTPProvider(ProviderAdapter[CCTPAsset]):
    """
    Circle CCTP Provider Adapter

    Example:
        >>> provider = CCTPProvider()
        >>> await provider.initialize()
        >>> assets = await provider.get_listed_assets()
    """

    name = "cctp"

    capabilities = {
        "volumes": True,
        "listed_assets": True,
        "rates": True,
        "liquidity": True,
    }

    def __init__(self, registry=None, liquidity_policy=None, client: Optional[CCTPAPIClient] = None):
        super().__init__(registry=registry, liquidity_policy=liquidity_policy)
        self.client = client or CCTPAPIClient()

    async def initialize(self) -> None:
        logger.info("Initializing CCTP provider...")
        await self.client.__aenter__()
        logger.info("✓ CCTP provider initialized")

    async def shutdown(self) -> None:
        if self.client:
            await self.client.__aexit__(None, None, None)
        logger.info("✓ CCTP provider shut down")

    async def health_check(self) -> bool:
        try:
            await self.client.get_fast_allowance()
            return True
        except Exception as e:
            logger.error(f"CCTP health check failed: {e}")
            return False

    # ============================================
    # Format Transform
    # ============================================

    async def to_provider_format(self, asset: CanonicalAsset) -> CCTPAsset:
        """Only native USDC on a CCTP domain converts."""
        chain_id, address = self.canonicalizer.to_evm_address(asset)
        if USDC_ADDRESSES.get(chain_id) != address.lower():
            raise AssetConversionError("CCTP only transfers native USDC", asset=asset.asset_id)
        return CCTPAsset(chainId=chain_id, address=address, decimals=USDC_DECIMALS)

    async def from_provider_format(self, asset: CCTPAsset) -> CanonicalAsset:
        identity = await self.canonicalizer.from_chain_address(asset.chainId, asset.address)
        return self.canonicalizer.canonical_asset(
            identity,
            symbol=asset.symbol,
            decimals=asset.decimals,
            chain_id=asset.chainId,
        )

    # ============================================
    # Data Operations
    # ============================================

    async def get_volumes(
        self,
        windows: Sequence[str],
        route: Optional[Route[CCTPAsset]] = None,
    ) -> List[VolumeWindow]:
        stats = await self.client.get_bridge_volumes()
        measured_at = current_utc_datetime()

        volumes = []
        for window in windows:
            field = VOLUME_FIELDS.get(window)
            value = stats.get(field) if field else None
            if not isinstance(value, (int, float)):
                logger.debug(f"CCTP has no {window} volume; window omitted")
                continue
            volumes.append(VolumeWindow(window=window, volume_usd=float(value), measured_at=measured_at))
        return volumes

    async def get_listed_assets(self) -> List[CCTPAsset]:
        return [
            CCTPAsset(chainId=chain_id, address=address, decimals=USDC_DECIMALS)
            for chain_id, address in USDC_ADDRESSES.items()
        ]

    async def get_rates(self, route: Route[CCTPAsset], amounts: Sequence[str]) -> List[RateQuote[CCTPAsset]]:
        """Standard-transfer fee applied to each amount; a failed fee lookup yields nothing."""
        try:
            fee_bps = standard_fee_bps(await self.client.get_fees(*self._domains(route)))
        except Exception as e:
            logger.warning(f"CCTP fees unavailable for {route.source.chainId} -> {route.destination.chainId}: {e!r}")
            return []

        rates: List[RateQuote[CCTPAsset]] = []
        for amount in amounts:
            try:
                amount_in = int(amount)
                fee = fee_amount(amount_in, fee_bps)
                amount_out = amount_in - fee
                if amount_out <= 0:
                    logger.warning(f"CCTP fee exceeds amount {amount}; quote omitted")
                    continue

                rates.append(RateQuote(
                    source=route.source,
                    destination=route.destination,
                    amount_in=str(amount_in),
                    amount_out=str(amount_out),
                    effective_rate=effective_rate(
                        amount_in, amount_out, route.source.decimals, route.destination.decimals
                    ),
                    total_fees_usd=float(Decimal(fee) / 10 ** route.source.decimals),
                    quoted_at=current_utc_datetime(),
                ))
            except Exception as e:
                logger.warning(f"CCTP quote failed for amount {amount}: {e!r}")

        return rates

    async def get_liquidity_depth(self, route: Route[CCTPAsset]) -> List[LiquidityDepth[CCTPAsset]]:
        self._domains(route)
        allowance = await self.client.get_fast_allowance()
        max_amount_in = int(allowance * 10 ** route.source.decimals)
        if max_amount_in <= 0:
            logger.info("CCTP Fast Transfer allowance exhausted; no depth reported")
            return []

        return [LiquidityDepth(
            route=route,
            thresholds=[
                LiquidityThreshold(slippage_bps=bps, max_amount_in=str(max_amount_in))
                for bps in self.liquidity_policy.thresholds_bps
            ],
            measured_at=current_utc_datetime(),
        )]

    def _domains(self, route: Route[CCTPAsset]) -> Tuple[int, int]:
        source = CCTP_DOMAINS.get(route.source.chainId)
        destination = CCTP_DOMAINS.get(route.destination.chainId)
        if source is None or destination is None:
            raise ValueError(
                f"No CCTP domain for route {route.source.chainId} -> {route.destination.chainId}"
            )
        if source == destination:
            raise ValueError(f"CCTP route stays on domain {source}")
        return source, destination


def standard_fee_bps(fees: Sequence[CCTPFee]) -> Decimal:
    """
    Minimum fee of a standard transfer, in basis points.

    Raises:
        ValueError: If the fee table has no standard-finality entry
    """
    for fee in fees:
        if fee.finalityThreshold == STANDARD_FINALITY:
            return fee.minimumFee
    raise ValueError(f"No fee entry for finalityThreshold {STANDARD_FINALITY}")


def fee_amount(amount_in: int, fee_bps: Decimal) -> int:
    """
    Fee in smallest units, rounded up.

    Example:
        >>> fee_amount(1_000_000, Decimal("1.3"))
        130
    """
    if amount_in <= 0:
        raise ValueError(f"Amount must be positive, got {amount_in}")
    fee = Decimal(amount_in) * fee_bps / Decimal(10_000)
    return int(fee.to_integral_value(rounding=ROUND_CEILING))


__all__ = ["CCTPProvider", "CCTPAsset", "CCTPAPIClient"]
