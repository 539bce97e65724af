from __future__ import annotations

import datetime
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

from forecast_parser import ForecastRecord
from numeric import coerce_number, round_count
from ratios import RatioConfig


@dataclass(frozen=True)
class DerivedDayProjection:
    day: str
    date: Optional[datetime.date]
    pax: float
    guests: float
    am_guests: int
    pm_guests: int
    sales: float
    food: float
    bev: float
    labor: float

    def shift_guests(self, shift: str) -> int:
        return self.am_guests if shift == "am" else self.pm_guests

    def as_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["date"] = self.date.isoformat() if self.date else None
        return payload


def project_day(record: ForecastRecord, ratios: RatioConfig) -> DerivedDayProjection:
    """Derive guests, shift split, sales and cost targets for one forecast day.

    AM and PM are rounded independently, so ``am_guests + pm_guests`` can be
    one off ``round(guests)`` when both halves land on .5.
    """
    pax = coerce_number(record.pax_or_guests) or 0.0
    pax = max(0.0, pax)
    guests = pax * ratios.capture_rate
    am_guests = round_count(guests * ratios.am_split)
    pm_guests = round_count(guests * (1 - ratios.am_split))
    sales = guests * ratios.spend_per_guest
    return DerivedDayProjection(
        day=record.day,
        date=record.date,
        pax=pax,
        guests=guests,
        am_guests=am_guests,
        pm_guests=pm_guests,
        sales=sales,
        food=sales * ratios.food_cost_goal,
        bev=sales * ratios.bev_cost_goal,
        labor=sales * ratios.labor_cost_goal,
    )


def project_week(records: Iterable[ForecastRecord], ratios: RatioConfig) -> List[DerivedDayProjection]:
    return [project_day(record, ratios) for record in records]


def summarize_week(projections: List[DerivedDayProjection]) -> Dict[str, float]:
    """Build the 'Total / Avg' row shown under the weekly table."""
    totals: Dict[str, float] = {
        "days": len(projections),
        "pax": 0.0,
        "guests": 0.0,
        "am_guests": 0,
        "pm_guests": 0,
        "sales": 0.0,
        "food": 0.0,
        "bev": 0.0,
        "labor": 0.0,
    }
    for projection in projections:
        for key in ("pax", "guests", "am_guests", "pm_guests", "sales", "food", "bev", "labor"):
            totals[key] += getattr(projection, key)
    count = len(projections)
    totals["avg_guests"] = totals["guests"] / count if count else 0.0
    totals["avg_sales"] = totals["sales"] / count if count else 0.0
    return totals
