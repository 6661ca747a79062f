"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion and volume window bounds
    - decimal: Exact amount arithmetic (effective rates, slippage)
"""

from core.utils.time import to_utc_datetime, current_utc_datetime, window_start
from core.utils.decimal import effective_rate, slippage_bps, to_decimal

__all__ = [
    "to_utc_datetime",
    "current_utc_datetime",
    "window_start",
    "effective_rate",
    "slippage_bps",
    "to_decimal",
]
