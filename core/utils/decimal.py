"""
Decimal Utilities

Exact arithmetic on smallest-unit amount strings. Token amounts routinely
exceed float precision (18-decimal tokens), so all ratios are computed with
Decimal and only converted to float at the very end.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

Amount = Union[str, int, Decimal]

# Enough digits for 78-digit uint256 amounts
PRECISION = 78


def to_decimal(value: Amount) -> Decimal:
    """
    Parse an amount into a Decimal.

    Raises:
        ValueError: If the value is not a finite decimal number
    """
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a decimal amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def to_units(value: Amount, decimals: int) -> Decimal:
    """
    Convert a smallest-unit amount into whole token units.

    Example:
        >>> to_units("1500000", 6)
        Decimal('1.500000')
    """
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return to_decimal(value).scaleb(-decimals)


def normalized_rate(amount_in: Amount, amount_out: Amount, decimals_in: int, decimals_out: int) -> Decimal:
    """
    Exact decimal-normalized rate of a quote.

    rate = (amount_out / 10^decimals_out) / (amount_in / 10^decimals_in)

    Raises:
        ValueError: If amount_in is not positive or a decimals value is negative
    """
    if decimals_in < 0 or decimals_out < 0:
        raise ValueError(f"Decimals cannot be negative: {decimals_in}, {decimals_out}")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        units_in = to_units(amount_in, decimals_in)
        if units_in <= 0:
            raise ValueError(f"Input amount must be positive: {amount_in!r}")
        return to_units(amount_out, decimals_out) / units_in


def effective_rate(amount_in: Amount, amount_out: Amount, decimals_in: int, decimals_out: int) -> float:
    """
    Rate of one route quote normalized for token decimals.

    Args:
        amount_in: Input amount in smallest units of the source asset
        amount_out: Output amount in smallest units of the destination asset
        decimals_in: Source asset decimals
        decimals_out: Destination asset decimals

    Returns:
        float: Normalized rate

    Raises:
        ValueError: If amount_in is not positive or a decimals value is negative

    Example:
        >>> effective_rate("1000000", "999000000000000000", 6, 18)
        0.999
    """
    return float(normalized_rate(amount_in, amount_out, decimals_in, decimals_out))


def slippage_bps(baseline_rate: Amount, rate: Amount) -> Decimal:
    """
    Absolute deviation of `rate` from `baseline_rate`, in basis points.

    Example:
        >>> slippage_bps("1.0", "0.995")
        Decimal('50.000')
    """
    with localcontext() as ctx:
        ctx.prec = PRECISION
        baseline = to_decimal(baseline_rate)
        current = to_decimal(rate)
        if baseline <= 0:
            raise ValueError("Baseline rate must be positive")
        return abs(current - baseline) / baseline * Decimal(10000)
