"""Parse the end-of-day POS summary pasted by a manager.

Expected shape (labels are case-insensitive, dollar signs and commas optional)::

    Date: 2024-06-03
    Total Net Sales: $12,450.00
    Food Cost: $3,800
    Beverage Cost: $1,900
    Labor Cost: $2,100
    Labor Hours: 164.5
    Guests: 92
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from forecast_parser import ParseError
from ratios import RatioConfig

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ["total net sales", "food cost", "beverage cost", "labor cost"]
_DATE = re.compile(r"date:\s*(\d{4}-\d{2}-\d{2})", re.IGNORECASE)


def _extract_amount(text: str, label: str) -> Optional[float]:
    match = re.search(rf"{re.escape(label)}:\s*\$?\s*([\d,]+(?:\.\d+)?)", text, re.IGNORECASE)
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


@dataclass(frozen=True)
class ActualsRecord:
    date: datetime.date
    sales: float
    food: float
    bev: float
    labor: float
    labor_hours: Optional[float] = None
    guests: Optional[int] = None

    def as_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload["date"] = self.date.isoformat()
        return payload


@dataclass
class CostVariance:
    category: str
    actual_pct: Optional[float]
    goal_pct: float
    variance_pts: Optional[float]
    over: bool = False


@dataclass
class ActualsReport:
    record: ActualsRecord
    variances: List[CostVariance] = field(default_factory=list)

    @property
    def alerts(self) -> List[str]:
        return [f"{variance.category.title()} Over" for variance in self.variances if variance.over]

    def as_dict(self) -> Dict[str, object]:
        return {
            "actuals": self.record.as_dict(),
            "variances": [asdict(variance) for variance in self.variances],
            "alerts": self.alerts,
        }


def parse_pos_actuals(text: str) -> ActualsRecord:
    """Parse one POS summary, raising ParseError when the date or a required amount is missing."""
    body = text or ""
    date_match = _DATE.search(body)
    if not date_match:
        raise ParseError("Date not found. Use the format 'Date: YYYY-MM-DD'.")
    try:
        date_value = datetime.date.fromisoformat(date_match.group(1))
    except ValueError as exc:
        raise ParseError(f"Invalid date {date_match.group(1)!r}.") from exc

    amounts: Dict[str, float] = {}
    for key in REQUIRED_KEYS:
        value = _extract_amount(body, key)
        if value is None:
            raise ParseError(f"'{key.title()}' field not found or invalid. Use 'Key: $X,XXX.XX'.")
        amounts[key] = value

    labor_hours = _extract_amount(body, "labor hours")
    if labor_hours is None and "labor hours:" in body.lower():
        raise ParseError("Labor Hours is present but has an invalid value.")
    guests_value = _extract_amount(body, "guests")

    record = ActualsRecord(
        date=date_value,
        sales=amounts["total net sales"],
        food=amounts["food cost"],
        bev=amounts["beverage cost"],
        labor=amounts["labor cost"],
        labor_hours=labor_hours,
        guests=int(guests_value) if guests_value is not None else None,
    )
    logger.info("Parsed POS actuals for %s", record.date.isoformat())
    return record


def cost_variance_report(record: ActualsRecord, ratios: RatioConfig) -> ActualsReport:
    """Compare actual cost percentages to the configured goals, in percentage points."""
    goals = {
        "food": (record.food, ratios.food_cost_goal),
        "bev": (record.bev, ratios.bev_cost_goal),
        "labor": (record.labor, ratios.labor_cost_goal),
    }
    variances: List[CostVariance] = []
    for category, (amount, goal) in goals.items():
        goal_pct = round(goal * 100, 1)
        if record.sales <= 0:
            variances.append(CostVariance(category, None, goal_pct, None))
            continue
        actual_pct = round(amount / record.sales * 100, 1)
        variance = round(actual_pct - goal_pct, 1)
        variances.append(CostVariance(category, actual_pct, goal_pct, variance, over=variance > 0))
    return ActualsReport(record=record, variances=variances)
