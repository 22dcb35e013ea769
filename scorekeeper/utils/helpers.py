"""
Common utility functions used across the scoring engine.

These helpers handle edge cases from persisted documents, where numbers may
arrive as strings, nulls or garbage.
"""

import math
import time
import uuid
from typing import Any


def safe_float(value: Any, default: float = 0.0) -> float:
    """
    Safely convert value to float, handling edge cases from saved documents.

    Documents sometimes contain:
    - Empty strings "" instead of 0 or null
    - String numbers "2.5" instead of 2.5
    - None for optional fields
    - NaN/inf written by older exports

    Args:
        value: Value to convert (str, int, float, None, etc.)
        default: Default value if conversion fails

    Returns:
        Finite float value or default

    Examples:
        >>> safe_float("2.5")
        2.5
        >>> safe_float("")
        0.0
        >>> safe_float(None, default=1.0)
        1.0
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str) and not value.strip():
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def new_id() -> str:
    """Generate a short random id for derived records."""
    return uuid.uuid4().hex[:10]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
