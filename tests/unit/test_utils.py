"""
Unit Tests for Time and Decimal Utilities

Run with:
    pytest tests/unit/test_utils.py -v
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.utils.decimal import effective_rate, normalized_rate, slippage_bps, to_decimal, to_units
from core.utils.time import current_utc_datetime, datetime_to_timestamp, to_utc_datetime, window_start

NOON = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestTime:

    def test_seconds_and_milliseconds(self):
        assert to_utc_datetime(1704110400) == NOON
        assert to_utc_datetime(1704110400000) == NOON

    def test_negative_timestamp(self):
        with pytest.raises(ValueError):
            to_utc_datetime(-1)

    def test_datetime_to_timestamp(self):
        assert datetime_to_timestamp(NOON) == 1704110400
        assert datetime_to_timestamp(NOON, milliseconds=True) == 1704110400000
        assert datetime_to_timestamp(NOON.replace(tzinfo=None)) == 1704110400

    def test_window_start(self):
        assert window_start("24h", NOON) == datetime(2023, 12, 31, 12, 0, tzinfo=timezone.utc)
        assert window_start("30d", NOON) == datetime(2023, 12, 2, 12, 0, tzinfo=timezone.utc)

    def test_cumulative_has_no_start(self):
        with pytest.raises(ValueError):
            window_start("cumulative", NOON)

    def test_current_time_is_utc(self):
        assert current_utc_datetime().tzinfo is timezone.utc


class TestDecimal:

    def test_effective_rate_normalizes_decimals(self):
        assert effective_rate("1000000", "999000000000000000", 6, 18) == pytest.approx(0.999)

    def test_large_amounts_stay_exact(self):
        big = 10 ** 40
        # A float ratio would collapse to exactly 1
        assert normalized_rate(big, big + 1, 18, 18) > 1

    def test_zero_input_rejected(self):
        with pytest.raises(ValueError):
            effective_rate("0", "1", 6, 6)

    def test_negative_decimals_rejected(self):
        with pytest.raises(ValueError):
            effective_rate("1", "1", -1, 6)

    def test_to_units(self):
        assert to_units("1500000", 6) == Decimal("1.5")

    def test_to_decimal_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_decimal("abc")
        with pytest.raises(ValueError):
            to_decimal("NaN")

    def test_slippage_is_absolute(self):
        assert slippage_bps("1.0", "0.995") == Decimal(50)
        assert slippage_bps("1.0", "1.005") == Decimal(50)
