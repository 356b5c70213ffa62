"""Numeric coercion helpers for untrusted LLM values"""

import math
from typing import Any, Optional


def parse_float(value: Any) -> Optional[float]:
    """Parse a number from an int, float or numeric string; None when not possible"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clean_number(value: float) -> Any:
    """Return an int for integral floats so JSON output reads naturally"""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def round2(value: float) -> Any:
    return clean_number(round(float(value), 2))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
