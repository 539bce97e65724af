from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional


def coerce_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def round_half_away(value: float, digits: int = 0) -> float:
    """Round half away from zero (2.5 -> 3, -2.5 -> -3), unlike the builtin round()."""
    try:
        quantum = Decimal(1).scaleb(-digits)
        rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0.0
    return float(rounded)


def round_count(value: float) -> int:
    return int(round_half_away(value, 0))
