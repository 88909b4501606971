"""
Utility functions for the market stream client.

Includes time conversion and exact decimal parsing of wire values.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any


# =============================================================================
# Time-related functions
# =============================================================================


def timestamp_to_datetime(ts: int, unit: str = "ms") -> datetime:
    """
    Convert timestamp to datetime (UTC).

    Args:
        ts: Timestamp value
        unit: "ms" for milliseconds, "s" for seconds

    Returns:
        UTC datetime object

    Example:
        >>> timestamp_to_datetime(1704067200000)
        datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if unit == "ms":
        ts = ts / 1000
    return datetime.fromtimestamp(ts, tz=timezone.utc)


# =============================================================================
# Decimal functions
# =============================================================================


def to_decimal(value: Any) -> Decimal:
    """
    Parse a wire value into an exact Decimal.

    Binance sends prices and quantities as JSON strings. Going through
    ``str`` keeps numeric literals exact as well, instead of inheriting the
    binary float representation.

    Raises:
        ValueError: If the value is missing or not a number
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a decimal value: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite decimal value: {value!r}")
    return result
