from __future__ import annotations

import datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from numeric import coerce_number

NO_ADJUSTMENT = 1.0
TREND_FLOOR = 0.5
TREND_CEILING = 1.5


def _field(entry: Any, name: str) -> Any:
    if entry is None:
        return None
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


def adjustment_factor(actual_series: Optional[Sequence[Any]], forecast_series: Optional[Sequence[Any]]) -> float:
    """Return ``actual.guests / forecast.guests`` for the last entry of each series.

    Anything missing, non-numeric, or a forecast of zero or less means no
    adjustment (1.0).
    """
    if not actual_series or not forecast_series:
        return NO_ADJUSTMENT
    actual = coerce_number(_field(actual_series[-1], "guests"))
    forecast = coerce_number(_field(forecast_series[-1], "guests"))
    if actual is None or forecast is None or forecast <= 0:
        return NO_ADJUSTMENT
    factor = actual / forecast
    if factor <= 0:
        return NO_ADJUSTMENT
    return factor


def _date_key(value: Any) -> Optional[str]:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()[:10]
    if isinstance(value, str) and value.strip():
        return value.strip()[:10]
    return None


def sales_trend_factor(
    actual_series: Optional[Sequence[Any]],
    forecast_series: Optional[Sequence[Any]],
    *,
    floor: float = TREND_FLOOR,
    ceiling: float = TREND_CEILING,
) -> float:
    """Total actual sales over total forecast sales for days present in both series.

    Only days where both sides carry positive sales count. The result is
    clamped to ``[floor, ceiling]``; no overlap means 1.0.
    """
    if not actual_series or not forecast_series:
        return NO_ADJUSTMENT
    forecast_by_date: Dict[str, float] = {}
    for entry in forecast_series:
        key = _date_key(_field(entry, "date"))
        sales = coerce_number(_field(entry, "sales"))
        if key and sales is not None and sales > 0:
            forecast_by_date[key] = sales
    total_forecast = 0.0
    total_actual = 0.0
    for entry in actual_series:
        key = _date_key(_field(entry, "date"))
        sales = coerce_number(_field(entry, "sales"))
        if not key or key not in forecast_by_date or sales is None or sales <= 0:
            continue
        total_forecast += forecast_by_date[key]
        total_actual += sales
    if total_forecast <= 0:
        return NO_ADJUSTMENT
    return max(floor, min(total_actual / total_forecast, ceiling))
