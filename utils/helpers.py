"""Helper utilities for the draw analysis system."""

import math
import re
import logging
from typing import Tuple, Any, Optional

from config.settings import settings

logger = logging.getLogger(__name__)


def validate_number_range(number: int, min_val: int = None, max_val: int = None) -> bool:
    """Validate if number is within valid draw range."""
    min_val = settings.number_range_min if min_val is None else min_val
    max_val = settings.number_range_max if max_val is None else max_val
    return min_val <= number <= max_val


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers, returning default on division by zero."""
    if not denominator:
        return default
    return numerator / denominator


def clamp(value: float, min_val: float = 0.0, max_val: float = 1.0) -> float:
    """Clamp value between min and max; NaN and None collapse to min."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return min_val
    return max(min_val, min(max_val, value))


def digits(number: int) -> Tuple[int, int]:
    """Tens and units digit of a two-digit number."""
    return number // 10, number % 10


def mirror_number(number: int) -> int:
    """Reverse the two digits: 12 -> 21, 7 -> 70."""
    tens, units = digits(number)
    return units * 10 + tens


def complement_number(number: int) -> int:
    """Complement to one hundred: 30 -> 70, 0 -> 0."""
    return (100 - number) % 100


def is_double(number: int) -> bool:
    """00, 11, ... 99."""
    tens, units = digits(number)
    return tens == units


def coerce_int(value: Any) -> Optional[int]:
    """Integer from int/float/numeric string, None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r'[+-]?\d+', text):
            return int(text)
        if re.fullmatch(r'[+-]?\d+\.0*', text):
            return int(float(text))
    return None
