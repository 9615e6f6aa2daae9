"""
Utility functions for timestamps and decimal parsing.

These are pure functions with no dependencies on other types.
"""

from decimal import Decimal, InvalidOperation
from time import monotonic_ns, time
from typing import Any, Optional


def now_ms() -> int:
    """Get current monotonic timestamp in milliseconds."""
    return monotonic_ns() // 1_000_000


def wall_ms() -> int:
    """Get current wall clock timestamp in milliseconds."""
    return int(time() * 1000)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a feed numeric (decimal string, int or float) into a Decimal.

    Returns None for missing, empty, unparsable or non-finite values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def to_int(value: Any, default: int = 0) -> int:
    """Parse an integer field that may arrive as a string."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default
