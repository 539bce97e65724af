from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from numeric import coerce_number, round_half_away
from projections import DerivedDayProjection

BLANK = "____________________"


@dataclass(frozen=True)
class BriefingMetrics:
    date: Optional[str]
    am_guests: int
    pm_guests: int
    forecast_sales: float
    yesterday_forecast_sales: Optional[float]
    yesterday_actual_sales: Optional[float]
    yesterday_variance_pct: Optional[float]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def sales_variance_pct(forecast_sales: Any, actual_sales: Any) -> Optional[float]:
    """(actual - forecast) / forecast as a percentage, one decimal; None without a forecast."""
    forecast = coerce_number(forecast_sales)
    actual = coerce_number(actual_sales)
    if forecast is None or actual is None or forecast <= 0:
        return None
    return round_half_away((actual - forecast) / forecast * 100, 1)


def build_briefing_metrics(
    projection: DerivedDayProjection,
    *,
    yesterday_forecast_sales: Any = None,
    yesterday_actual_sales: Any = None,
) -> BriefingMetrics:
    return BriefingMetrics(
        date=projection.date.isoformat() if projection.date else None,
        am_guests=projection.am_guests,
        pm_guests=projection.pm_guests,
        forecast_sales=projection.sales,
        yesterday_forecast_sales=coerce_number(yesterday_forecast_sales),
        yesterday_actual_sales=coerce_number(yesterday_actual_sales),
        yesterday_variance_pct=sales_variance_pct(yesterday_forecast_sales, yesterday_actual_sales),
    )


def _money(value: Optional[float]) -> str:
    return f"${value:,.2f}" if value is not None else "N/A"


def briefing_text(metrics: BriefingMetrics, notes: Optional[Dict[str, str]] = None) -> str:
    """Plain-text briefing block handed to the print sink."""
    notes = notes or {}
    variance = "N/A" if metrics.yesterday_variance_pct is None else f"{metrics.yesterday_variance_pct:+.1f}%"
    lines = [
        "DAILY BRIEFING",
        "-" * 38,
        f"DATE: {metrics.date or BLANK}",
        f"MOD / LEAD: {notes.get('mod_lead') or BLANK}",
        f"FOCUS / PRIORITY: {notes.get('focus') or BLANK}",
        "",
        "TODAY'S FORECASTED VOLUME:",
        f"  Lunch (AM): {metrics.am_guests} guests",
        f"  Dinner (PM): {metrics.pm_guests} guests",
        f"  Forecast Sales: {_money(metrics.forecast_sales)}",
        "",
        "YESTERDAY'S FORECAST vs ACTUAL:",
        f"  Forecasted Sales: {_money(metrics.yesterday_forecast_sales)}",
        f"  Actual Sales: {_money(metrics.yesterday_actual_sales)}",
        f"  Variance: {variance}",
        "-" * 38,
        f"86'D ITEMS: {notes.get('eighty_six') or 'N/A'}",
        f"STAFFING NOTES: {notes.get('staffing') or 'N/A'}",
        f"OTHER NOTES: {notes.get('other') or 'N/A'}",
    ]
    return "\n".join(lines)
