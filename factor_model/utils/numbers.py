"""
Rounding and numeric coercion helpers.

Scores and reported percentages round half up (2.5 -> 3, -2.5 -> -2),
not to even, so stored scores stay stable when compared across systems.
"""

import math
from typing import Optional


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_score(value: float) -> int:
    """Round to the nearest integer score, halves going up."""
    return int(math.floor(value + 0.5))


def to_number(value) -> Optional[float]:
    """
    Coerce a raw cell to float, or None when it is absent.

    None, empty strings, booleans, NaN and anything float() rejects
    are all treated as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
