"""
Liquidity Depth Prober

Measures, for each slippage threshold, the largest input amount a provider
will quote while staying within that slippage of a small baseline quote.
Used by adapters whose API only offers a quote endpoint.

Algorithm (per threshold):
    1. Baseline quote at test_amount (one whole source token by default)
       -> baseline_rate, decimal-normalized
    2. Bounds: low = test_amount, high = provider max hint or default ceiling
    3. Up to max_iterations times:
         mid = (low + high) // 2, quote(mid)
         slippage(mid) <= threshold -> best = mid, low = mid
         slippage over threshold    -> high = mid
         quote error                -> high = mid
       stop once (high - low) / low < convergence_tolerance
    4. Thresholds without a best amount are omitted; if none has one,
       ProbeConvergenceFailure is raised

Iterations of one search are strictly sequential. Quotes are memoized per
probe, so thresholds that test the same amount share the request.

The result is exact with respect to the provider's quote function, not an
estimate of true market depth.
"""

from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from core.errors import ProbeConvergenceFailure
from core.logging import get_logger
from core.schemas import LiquidityThreshold
from core.utils.decimal import normalized_rate, slippage_bps

logger = get_logger(__name__)

QuoteFunction = Callable[[int], Awaitable[Union[int, str]]]


class LiquidityPolicy(BaseModel):
    """
    Business constants of the prober.

    Attributes:
        thresholds_bps: Slippage thresholds in basis points
        max_iterations: Binary search iteration budget per threshold
        convergence_tolerance: Relative bound width that ends the search early
        default_ceiling_units: Search ceiling in whole source tokens without a provider hint
    """

    thresholds_bps: List[int] = Field(default_factory=lambda: [50, 100])
    max_iterations: int = Field(default=8, ge=1)
    convergence_tolerance: float = Field(default=0.01, gt=0, lt=1)
    default_ceiling_units: int = Field(default=1_000_000, gt=0)

    @field_validator("thresholds_bps")
    @classmethod
    def sort_thresholds(cls, v: List[int]) -> List[int]:
        if any(t <= 0 for t in v):
            raise ValueError("Slippage thresholds must be positive")
        return sorted(set(v))

    @classmethod
    def from_settings(cls, config) -> "LiquidityPolicy":
        return cls(
            thresholds_bps=config.liquidity_thresholds_list,
            max_iterations=config.liquidity_max_iterations,
            convergence_tolerance=config.liquidity_convergence_tolerance,
            default_ceiling_units=config.liquidity_default_ceiling_units,
        )


class LiquidityProber:
    """
    Binary-search prober over a provider quote function.

    Args:
        policy: Thresholds, iteration budget, tolerance and default ceiling

    Example:
        >>> prober = LiquidityProber(LiquidityPolicy())
        >>> thresholds = await prober.probe(quote, source_decimals=6, destination_decimals=6)
        >>> thresholds[0].slippage_bps
        50
    """

    def __init__(self, policy: Optional[LiquidityPolicy] = None):
        self.policy = policy or LiquidityPolicy()

    async def probe(
        self,
        quote: QuoteFunction,
        source_decimals: int,
        destination_decimals: int,
        max_amount_hint: Optional[int] = None,
        test_amount: Optional[int] = None,
    ) -> List[LiquidityThreshold]:
        """
        Probe every threshold of the policy.

        Args:
            quote: Coroutine returning amount_out (smallest units) for amount_in
            source_decimals / destination_decimals: Token decimals
            max_amount_hint: Provider-declared maximum input (the search never exceeds it)
            test_amount: Baseline amount (defaults to 10**source_decimals)

        Returns:
            List[LiquidityThreshold]: One entry per satisfied threshold, ascending

        Raises:
            ProbeConvergenceFailure: If the baseline fails or no threshold is satisfied
        """
        test_amount = int(test_amount) if test_amount else 10 ** source_decimals
        ceiling = (
            int(max_amount_hint)
            if max_amount_hint
            else self.policy.default_ceiling_units * 10 ** source_decimals
        )

        if ceiling <= test_amount:
            raise ProbeConvergenceFailure(f"Search ceiling {ceiling} is not above test amount {test_amount}")

        memo: Dict[int, Optional[int]] = {}

        async def quote_once(amount: int) -> Optional[int]:
            if amount not in memo:
                try:
                    memo[amount] = int(await quote(amount))
                except Exception as e:
                    logger.debug(f"Probe quote failed at amount_in={amount}: {e}")
                    memo[amount] = None
            return memo[amount]

        baseline_out = await quote_once(test_amount)
        if not baseline_out:
            raise ProbeConvergenceFailure(f"Baseline quote failed at amount_in={test_amount}")
        baseline_rate = normalized_rate(test_amount, baseline_out, source_decimals, destination_decimals)

        results: List[LiquidityThreshold] = []
        for threshold in self.policy.thresholds_bps:
            best = await self._search(
                quote_once, threshold, test_amount, ceiling,
                baseline_rate, source_decimals, destination_decimals,
            )
            if best is None:
                logger.debug(f"No amount within {threshold}bps")
                continue
            results.append(LiquidityThreshold(slippage_bps=threshold, max_amount_in=str(best)))

        if not results:
            raise ProbeConvergenceFailure(
                f"No amount within {self.policy.thresholds_bps[0]}bps between {test_amount} and {ceiling}"
            )
        return results

    async def _search(
        self,
        quote_once: Callable[[int], Awaitable[Optional[int]]],
        threshold_bps: int,
        low: int,
        high: int,
        baseline_rate: Decimal,
        source_decimals: int,
        destination_decimals: int,
    ) -> Optional[int]:
        best: Optional[int] = None

        for iteration in range(self.policy.max_iterations):
            mid = (low + high) // 2
            if mid <= low:
                break

            amount_out = await quote_once(mid)
            if amount_out is None:
                high = mid
            else:
                rate = normalized_rate(mid, amount_out, source_decimals, destination_decimals)
                slippage = slippage_bps(baseline_rate, rate)
                logger.debug(
                    f"Probe {threshold_bps}bps iteration {iteration + 1}: "
                    f"amount_in={mid} slippage={slippage:.2f}bps"
                )
                if slippage <= threshold_bps:
                    best = mid
                    low = mid
                else:
                    high = mid

            if Decimal(high - low) / Decimal(low) < Decimal(str(self.policy.convergence_tolerance)):
                break

        return best
