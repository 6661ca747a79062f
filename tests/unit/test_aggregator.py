"""
Unit Tests for the Aggregation Router

Fake adapters stand in for real providers: their assets are already
canonical, so the router's transform and merge logic is tested on its own.

Run with:
    pytest tests/unit/test_aggregator.py -v
"""

import asyncio

import pytest

from core.aggregator import AggregationRouter, convert_all, settle_all
from core.canonicalizer import AssetCanonicalizer, build_identity
from core.chain_registry import ChainRegistry
from core.errors import AssetConversionError, UnknownProvider, UnsupportedOperation
from core.provider_interface import ProviderAdapter
from core.provider_manager import ProviderManager
from core.schemas import CanonicalAsset, LiquidityDepth, LiquidityThreshold, RateQuote, Route, VolumeWindow
from core.utils.time import current_utc_datetime
from storage.volume_cache import VolumeCache


def make_asset(chain, address=None, symbol=None, decimals=6):
    namespace, reference = ("erc20", address) if address else ("native", "coin")
    identity = build_identity(chain, namespace, reference)
    return AssetCanonicalizer.canonical_asset(identity, symbol=symbol, decimals=decimals)


USDC_ETH = make_asset("eth", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", "USDC")
USDC_ARB = make_asset("arb", "0xaf88d065e77c8cc2239327c5edb3a432268e5831", "USDC")
ETH = make_asset("eth", symbol="ETH", decimals=18)
BAD = make_asset("base", "0x0000000000000000000000000000000000000bad", "BAD")
ROUTE = Route[CanonicalAsset](source=USDC_ETH, destination=USDC_ARB)


async def _no_directory():
    return []


class FakeAdapter(ProviderAdapter[CanonicalAsset]):
    """Adapter over canonical assets with scriptable delays and failures."""

    capabilities = {"volumes": True, "listed_assets": True, "rates": True, "liquidity": True}

    def __init__(self, name, delay=0.0, fail_volumes=False, reject_chain=None, capabilities=None):
        super().__init__(registry=ChainRegistry(fetcher=_no_directory))
        self.name = name
        self.delay = delay
        self.fail_volumes = fail_volumes
        self.reject_chain = reject_chain
        if capabilities is not None:
            self.capabilities = capabilities
        self.volume_calls = 0

    async def to_provider_format(self, asset):
        if asset.chain == self.reject_chain:
            raise AssetConversionError(f"{self.name} does not support {asset.chain}", asset=asset.asset_id)
        return asset

    async def from_provider_format(self, asset):
        if asset.symbol == "BAD":
            raise AssetConversionError("unconvertible", asset=asset.asset_id)
        return asset

    async def get_volumes(self, windows, route=None):
        self.volume_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_volumes:
            raise RuntimeError("volume endpoint down")
        now = current_utc_datetime()
        return [VolumeWindow(window=w, volume_usd=1000.0, measured_at=now) for w in windows]

    async def get_listed_assets(self):
        return [USDC_ETH, USDC_ARB, USDC_ARB, BAD]

    async def get_rates(self, route, amounts):
        return [
            RateQuote(
                source=route.source,
                destination=route.destination,
                amount_in=amount,
                amount_out=str(int(amount) * 999 // 1000),
                effective_rate=0.999,
                quoted_at=current_utc_datetime(),
            )
            for amount in amounts
        ]

    async def get_liquidity_depth(self, route):
        return [LiquidityDepth(
            route=route,
            thresholds=[LiquidityThreshold(slippage_bps=50, max_amount_in="1000000000")],
            measured_at=current_utc_datetime(),
        )]


def make_router(*adapters, timeout=5.0):
    manager = ProviderManager(providers=adapters, registry=ChainRegistry(fetcher=_no_directory))
    return AggregationRouter(manager, volume_cache=VolumeCache(ttl=60), provider_timeout=timeout)


# ============================================
# Settle-all task group
# ============================================

class TestSettleAll:

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self):
        async def ok(value):
            await asyncio.sleep(0.01)
            return value

        async def boom():
            raise ValueError("boom")

        outcomes = await settle_all({"a": ok(1), "b": boom(), "c": ok(3)})

        assert [o.key for o in outcomes] == ["a", "b", "c"]
        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[2].value == 3
        assert isinstance(outcomes[1].error, ValueError)

    @pytest.mark.asyncio
    async def test_per_task_timeout(self):
        outcomes = await settle_all({"slow": asyncio.sleep(1), "fast": asyncio.sleep(0, result="x")}, timeout=0.05)

        by_key = {o.key: o for o in outcomes}
        assert isinstance(by_key["slow"].error, asyncio.TimeoutError)
        assert by_key["fast"].value == "x"

    @pytest.mark.asyncio
    async def test_convert_all_drops_failures(self):
        async def convert(item):
            if item < 0:
                raise AssetConversionError("negative")
            return item * 2

        assert await convert_all([1, -1, 2], convert, "fake", "test") == [2, 4]


# ============================================
# Snapshot partial success
# ============================================

class TestSnapshot:

    @pytest.mark.asyncio
    async def test_slow_provider_omitted_others_returned(self):
        router = make_router(FakeAdapter("alpha"), FakeAdapter("beta"), FakeAdapter("slow", delay=1.0), timeout=0.2)

        snapshot = await router.get_snapshot(windows=["24h"])

        assert set(snapshot) == {"alpha", "beta"}
        assert snapshot["alpha"].volumes[0].volume_usd == 1000.0

    @pytest.mark.asyncio
    async def test_failed_volumes_keep_rest_of_provider(self):
        router = make_router(FakeAdapter("alpha", fail_volumes=True), FakeAdapter("beta"))

        snapshot = await router.get_snapshot(routes=[ROUTE], notionals=["1000000"])

        assert set(snapshot) == {"alpha", "beta"}
        alpha = snapshot["alpha"]
        assert alpha.volumes == []
        assert [a.asset_id for a in alpha.listed_assets] == [USDC_ETH.asset_id, USDC_ARB.asset_id]
        assert [q.amount_in for q in alpha.rates] == ["1000000"]
        assert len(alpha.liquidity) == 1
        assert {v.window for v in snapshot["beta"].volumes} == {"24h", "7d", "30d", "cumulative"}

    @pytest.mark.asyncio
    async def test_listed_assets_deduplicated_and_failures_dropped(self):
        router = make_router(FakeAdapter("alpha"))

        snapshot = await router.get_snapshot(providers=["alpha"], windows=["24h"])

        ids = [a.asset_id for a in snapshot["alpha"].listed_assets]
        assert ids == [USDC_ETH.asset_id, USDC_ARB.asset_id]

    @pytest.mark.asyncio
    async def test_routes_add_rates_and_liquidity(self):
        router = make_router(FakeAdapter("alpha"))

        snapshot = await router.get_snapshot(routes=[ROUTE], notionals=["1000000", "5000000"], windows=["24h"])

        result = snapshot["alpha"]
        assert [q.amount_in for q in result.rates] == ["1000000", "5000000"]
        assert result.rates[0].source.asset_id == USDC_ETH.asset_id
        assert result.liquidity[0].thresholds[0].slippage_bps == 50

    @pytest.mark.asyncio
    async def test_default_notional_is_one_source_token(self):
        router = make_router(FakeAdapter("alpha"))
        snapshot = await router.get_snapshot(routes=[ROUTE], windows=["24h"])
        assert [q.amount_in for q in snapshot["alpha"].rates] == ["1000000"]

    @pytest.mark.asyncio
    async def test_untransformable_route_skipped_not_provider(self):
        eth_to_arb = Route[CanonicalAsset](source=ETH, destination=USDC_ARB)
        router = make_router(FakeAdapter("alpha", reject_chain="arb"))

        snapshot = await router.get_snapshot(routes=[eth_to_arb], windows=["24h"])

        assert snapshot["alpha"].rates == []
        assert snapshot["alpha"].liquidity == []
        assert snapshot["alpha"].volumes

    @pytest.mark.asyncio
    async def test_without_routes_rates_are_absent(self):
        router = make_router(FakeAdapter("alpha"))
        snapshot = await router.get_snapshot(windows=["24h"])
        assert snapshot["alpha"].rates is None

    @pytest.mark.asyncio
    async def test_unsupported_capability_yields_empty(self):
        adapter = FakeAdapter("alpha", capabilities={"volumes": False, "listed_assets": True})
        snapshot = await make_router(adapter).get_snapshot(windows=["24h"])
        assert snapshot["alpha"].volumes == []
        assert adapter.volume_calls == 0

    @pytest.mark.asyncio
    async def test_unknown_provider_raises(self):
        with pytest.raises(UnknownProvider):
            await make_router(FakeAdapter("alpha")).get_snapshot(providers=["nope"])

    @pytest.mark.asyncio
    async def test_unknown_window_raises(self):
        with pytest.raises(ValueError):
            await make_router(FakeAdapter("alpha")).get_snapshot(windows=["1y"])


# ============================================
# Single-provider operations
# ============================================

class TestOperations:

    @pytest.mark.asyncio
    async def test_volumes_cached(self):
        adapter = FakeAdapter("alpha")
        router = make_router(adapter)

        await router.get_volumes("alpha", ["24h"])
        await router.get_volumes("alpha", ["24h"])

        assert adapter.volume_calls == 1

    @pytest.mark.asyncio
    async def test_rates_need_amounts(self):
        with pytest.raises(ValueError):
            await make_router(FakeAdapter("alpha")).get_rates("alpha", ROUTE, [])

    @pytest.mark.asyncio
    async def test_rates_route_transform_error_propagates(self):
        router = make_router(FakeAdapter("alpha", reject_chain="arb"))
        with pytest.raises(AssetConversionError):
            await router.get_rates("alpha", ROUTE, ["1000000"])

    @pytest.mark.asyncio
    async def test_unsupported_operation(self):
        router = make_router(FakeAdapter("alpha", capabilities={"liquidity": False}))
        with pytest.raises(UnsupportedOperation):
            await router.get_liquidity_depth("alpha", ROUTE)

    @pytest.mark.asyncio
    async def test_ping(self):
        response = await make_router(FakeAdapter("alpha")).ping()
        assert response.status == "ok"
        assert response.timestamp.tzinfo is not None
