"""Coercion helpers for numbers that arrive from untrusted sources (model output, request bodies)."""

import math
from typing import Any, Optional


def finite_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None if it is not one.

    Booleans are rejected even though they are ints in Python.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "").lstrip("$")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def non_negative(value: Any) -> Optional[float]:
    """Finite and >= 0, else None."""
    number = finite_number(value)
    if number is None or number < 0:
        return None
    return number


def positive(value: Any) -> Optional[float]:
    """Finite and > 0, else None."""
    number = finite_number(value)
    if number is None or number <= 0:
        return None
    return number


def to_quantity(value: Any, default: int = 1) -> int:
    """Coerce a detected quantity to a non-negative integer."""
    number = non_negative(value)
    if number is None:
        return default
    return int(round(number))
