"""
Unit Tests for the Liquidity Depth Prober

Quotes come from a synthetic pool whose slippage grows linearly with size:
amount_out = a - a^2 / DEPTH, i.e. roughly a / DEPTH * 10000 bps of slippage.

Run with:
    pytest tests/unit/test_liquidity.py -v
"""

import pytest

from core.errors import ProbeConvergenceFailure
from core.liquidity import LiquidityPolicy, LiquidityProber
from core.utils.decimal import normalized_rate, slippage_bps

DEPTH = 10 ** 12
DECIMALS = 6
ONE_TOKEN = 10 ** DECIMALS


class SyntheticPool:
    """Monotonic quote function that records every amount it is asked for."""

    def __init__(self, fail_above=None):
        self.fail_above = fail_above
        self.tested = []

    async def __call__(self, amount_in):
        self.tested.append(amount_in)
        if self.fail_above is not None and amount_in > self.fail_above:
            raise RuntimeError("amount exceeds pool")
        return amount_in - amount_in * amount_in // DEPTH

    def slippage(self, amount_in):
        baseline = normalized_rate(ONE_TOKEN, ONE_TOKEN - ONE_TOKEN * ONE_TOKEN // DEPTH, DECIMALS, DECIMALS)
        out = amount_in - amount_in * amount_in // DEPTH
        return slippage_bps(baseline, normalized_rate(amount_in, out, DECIMALS, DECIMALS))


class TestBinarySearch:

    @pytest.mark.asyncio
    async def test_returns_largest_tested_amount_within_threshold(self):
        pool = SyntheticPool()
        prober = LiquidityProber(LiquidityPolicy(thresholds_bps=[50]))

        thresholds = await prober.probe(pool, DECIMALS, DECIMALS, max_amount_hint=100_000 * ONE_TOKEN)

        assert len(thresholds) == 1
        best = int(thresholds[0].max_amount_in)
        passing = [a for a in set(pool.tested) if pool.slippage(a) <= 50]
        assert best == max(passing)
        assert pool.slippage(best) <= 50

    @pytest.mark.asyncio
    async def test_converges_near_true_depth_with_enough_iterations(self):
        pool = SyntheticPool()
        policy = LiquidityPolicy(thresholds_bps=[50, 100], max_iterations=60, convergence_tolerance=0.001)

        thresholds = await LiquidityProber(policy).probe(pool, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)

        by_bps = {t.slippage_bps: int(t.max_amount_in) for t in thresholds}
        # 50 bps is reached near 5e9 and 100 bps near 1e10
        assert by_bps[50] == pytest.approx(5 * 10 ** 9, rel=0.01)
        assert by_bps[100] == pytest.approx(10 ** 10, rel=0.01)
        assert by_bps[50] < by_bps[100]

    @pytest.mark.asyncio
    async def test_never_exceeds_ceiling(self):
        pool = SyntheticPool()
        ceiling = 2 * 10 ** 9  # well inside 50 bps
        thresholds = await LiquidityProber().probe(pool, DECIMALS, DECIMALS, max_amount_hint=ceiling)

        assert all(int(t.max_amount_in) <= ceiling for t in thresholds)
        assert max(pool.tested) <= ceiling

    @pytest.mark.asyncio
    async def test_iteration_budget_respected(self):
        pool = SyntheticPool()
        policy = LiquidityPolicy(thresholds_bps=[50], max_iterations=3, convergence_tolerance=0.0001)
        # midpoints 5e10, 2.5e10 and 1.25e10 are all past 50 bps
        with pytest.raises(ProbeConvergenceFailure):
            await LiquidityProber(policy).probe(pool, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)

        # baseline + at most 3 search quotes
        assert len(pool.tested) <= 4

    @pytest.mark.asyncio
    async def test_quote_errors_search_lower(self):
        pool = SyntheticPool(fail_above=3 * 10 ** 9)
        policy = LiquidityPolicy(thresholds_bps=[100], max_iterations=30)

        thresholds = await LiquidityProber(policy).probe(pool, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)

        assert int(thresholds[0].max_amount_in) <= 3 * 10 ** 9

    @pytest.mark.asyncio
    async def test_quotes_are_memoized(self):
        pool = SyntheticPool()
        await LiquidityProber().probe(pool, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)
        assert len(pool.tested) == len(set(pool.tested))

    @pytest.mark.asyncio
    async def test_default_test_amount_is_one_token(self):
        pool = SyntheticPool()
        await LiquidityProber().probe(pool, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)
        assert pool.tested[0] == ONE_TOKEN


class TestFailures:

    @pytest.mark.asyncio
    async def test_baseline_failure(self):
        async def broken(amount_in):
            raise RuntimeError("no route")

        with pytest.raises(ProbeConvergenceFailure):
            await LiquidityProber().probe(broken, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)

    @pytest.mark.asyncio
    async def test_nothing_within_threshold(self):
        async def cliff(amount_in):
            # Any amount above the baseline loses half its value
            return amount_in if amount_in <= ONE_TOKEN else amount_in // 2

        with pytest.raises(ProbeConvergenceFailure):
            await LiquidityProber().probe(cliff, DECIMALS, DECIMALS, max_amount_hint=10 ** 11)

    @pytest.mark.asyncio
    async def test_ceiling_not_above_test_amount(self):
        with pytest.raises(ProbeConvergenceFailure):
            await LiquidityProber().probe(SyntheticPool(), DECIMALS, DECIMALS, max_amount_hint=ONE_TOKEN)

    @pytest.mark.asyncio
    async def test_unsatisfied_threshold_is_omitted(self):
        async def flat_loss(amount_in):
            # 0.8% loss on anything above the baseline
            if amount_in <= ONE_TOKEN:
                return amount_in
            return amount_in * 992 // 1000

        policy = LiquidityPolicy(thresholds_bps=[50, 100])
        thresholds = await LiquidityProber(policy).probe(flat_loss, DECIMALS, DECIMALS, max_amount_hint=10 ** 9)

        assert [t.slippage_bps for t in thresholds] == [100]

    @pytest.mark.asyncio
    async def test_thresholds_split_at_step(self):
        async def step(amount_in):
            # 0.8% loss above 10 tokens: within 100 bps, outside 50 bps
            if amount_in <= 10 * ONE_TOKEN:
                return amount_in
            return amount_in * 992 // 1000

        policy = LiquidityPolicy(thresholds_bps=[50, 100], max_iterations=20)
        thresholds = await LiquidityProber(policy).probe(step, DECIMALS, DECIMALS, max_amount_hint=10 ** 9)

        assert [t.slippage_bps for t in thresholds] == [50, 100]
        assert int(thresholds[0].max_amount_in) <= 10 * ONE_TOKEN
        assert int(thresholds[1].max_amount_in) > 10 * ONE_TOKEN


class TestPolicy:

    def test_thresholds_sorted_and_deduplicated(self):
        assert LiquidityPolicy(thresholds_bps=[100, 50, 100]).thresholds_bps == [50, 100]

    def test_rejects_non_positive_threshold(self):
        with pytest.raises(ValueError):
            LiquidityPolicy(thresholds_bps=[0, 50])

    def test_rejects_bad_tolerance(self):
        with pytest.raises(ValueError):
            LiquidityPolicy(convergence_tolerance=1.0)
