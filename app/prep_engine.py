"""Scale per-guest portions into shift-level prep quantities.

Every quantity is re-derived from the forecast, the ratios and the menu on each
call; nothing here is persisted. Bad inputs (non-numeric guests, missing
portions, unknown formulas) produce a zero line rather than an error so a prep
sheet can always be printed.
"""

from __future__ import annotations

import datetime
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from menu_catalog import MenuCatalog, MenuItem
from numeric import coerce_number, round_count, round_half_away
from portion_formulas import PortionContext, get_formula
from projections import DerivedDayProjection

OZ_PER_LB = 16
SHIFTS = ("am", "pm")
SANDWICH_SECTIONS = ("Sammies",)


@dataclass(frozen=True)
class PrepLineItem:
    name: str
    quantity: float
    unit: str

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "unit": self.unit}


@dataclass
class DayPrepSheet:
    day: str
    date: Optional[datetime.date]
    adjustment_factor: float
    shift_guests: Dict[str, int]
    sections: Dict[str, Dict[str, List[PrepLineItem]]] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "date": self.date.isoformat() if self.date else None,
            "adjustment_factor": self.adjustment_factor,
            "shift_guests": dict(self.shift_guests),
            "sections": {
                section: {shift: [line.as_dict() for line in lines] for shift, lines in shifts.items()}
                for section, shifts in self.sections.items()
            },
        }


def adjusted_shift_guests(count: Any, factor: Any) -> int:
    """``round(count * factor)``, or 0 when either side is not a number."""
    guests = coerce_number(count)
    multiplier = coerce_number(factor)
    if guests is None or multiplier is None:
        return 0
    return max(0, round_count(guests * multiplier))


def _unit_label(item: MenuItem) -> str:
    return "lbs" if item.unit == "oz" else "each"


def portion_quantity(item: MenuItem, shift_guests: Any, total_sandwich_count: Any = 0) -> PrepLineItem:
    """Prep quantity for one item and one shift."""
    guests = coerce_number(shift_guests)
    if guests is None or guests <= 0:
        return PrepLineItem(item.name, 0, _unit_label(item))

    if item.formula:
        formula = get_formula(item.formula)
        sandwiches = coerce_number(total_sandwich_count) or 0.0
        amount = None
        if formula is not None:
            amount = coerce_number(formula(PortionContext(int(guests), max(0.0, sandwiches))))
        if amount is None or amount <= 0:
            return PrepLineItem(item.name, 0, _unit_label(item))
        if item.unit == "oz":
            return PrepLineItem(item.name, round_half_away(amount / OZ_PER_LB, 1), "lbs")
        return PrepLineItem(item.name, math.ceil(amount), "each")

    if item.per_guest_oz is not None:
        ounces = coerce_number(item.per_guest_oz)
        if ounces is None or ounces <= 0:
            return PrepLineItem(item.name, 0, "lbs")
        return PrepLineItem(item.name, round_half_away((guests * ounces) / OZ_PER_LB, 1), "lbs")

    if item.each is not None:
        per_guest = coerce_number(item.each)
        if per_guest is None or per_guest <= 0:
            return PrepLineItem(item.name, 0, "each")
        return PrepLineItem(item.name, round_half_away(guests * per_guest, 2), "each")

    return PrepLineItem(item.name, 0, _unit_label(item))


def sandwich_count(catalog: MenuCatalog, shift_guests: Any, sandwich_sections: Sequence[str] = SANDWICH_SECTIONS) -> float:
    """Total unit-based sandwiches across the sandwich sections for one shift."""
    total = 0.0
    for section in sandwich_sections:
        for item in catalog.items(section):
            if item.formula or item.each is None:
                continue
            total += portion_quantity(item, shift_guests).quantity
    return total


def build_shift_prep(
    catalog: Any,
    projection: DerivedDayProjection,
    factor: Any,
    *,
    sandwich_sections: Sequence[str] = SANDWICH_SECTIONS,
) -> Dict[str, Dict[str, List[PrepLineItem]]]:
    """Section -> shift ('am', 'pm') -> prep lines for one day, in catalog order."""
    menu = MenuCatalog.coerce(catalog)
    guests_by_shift = {
        shift: adjusted_shift_guests(projection.shift_guests(shift), factor) for shift in SHIFTS
    }
    sandwiches_by_shift = {
        shift: sandwich_count(menu, guests, sandwich_sections) for shift, guests in guests_by_shift.items()
    }
    result: Dict[str, Dict[str, List[PrepLineItem]]] = {}
    for section, items in menu:
        result[section] = {
            shift: [
                portion_quantity(item, guests_by_shift[shift], sandwiches_by_shift[shift])
                for item in items
            ]
            for shift in SHIFTS
        }
    return result


def build_daily_prep(
    catalog: Any,
    projections: Iterable[DerivedDayProjection],
    factor: Any,
    *,
    sandwich_sections: Sequence[str] = SANDWICH_SECTIONS,
) -> List[DayPrepSheet]:
    menu = MenuCatalog.coerce(catalog)
    multiplier = coerce_number(factor)
    sheets: List[DayPrepSheet] = []
    for projection in projections:
        sheets.append(
            DayPrepSheet(
                day=projection.day,
                date=projection.date,
                adjustment_factor=multiplier if multiplier is not None else 0.0,
                shift_guests={
                    shift: adjusted_shift_guests(projection.shift_guests(shift), factor) for shift in SHIFTS
                },
                sections=build_shift_prep(menu, projection, factor, sandwich_sections=sandwich_sections),
            )
        )
    return sheets


def build_weekly_prep(
    catalog: Any,
    projections: Iterable[DerivedDayProjection],
    factor: Any,
    *,
    sandwich_sections: Sequence[str] = SANDWICH_SECTIONS,
) -> Dict[str, List[PrepLineItem]]:
    """Section -> one line per item, summed over every day and both shifts."""
    menu = MenuCatalog.coerce(catalog)
    totals: Dict[str, Dict[str, float]] = {section: {} for section in menu.sections()}
    units: Dict[str, Dict[str, str]] = {section: {} for section in menu.sections()}
    for sheet in build_daily_prep(menu, projections, factor, sandwich_sections=sandwich_sections):
        for section, shifts in sheet.sections.items():
            for shift in SHIFTS:
                for line in shifts.get(shift, []):
                    totals[section][line.name] = totals[section].get(line.name, 0) + line.quantity
                    units[section][line.name] = line.unit

    weekly: Dict[str, List[PrepLineItem]] = {}
    for section, items in menu:
        lines: List[PrepLineItem] = []
        for item in items:
            unit = units[section].get(item.name, _unit_label(item))
            digits = 1 if unit == "lbs" else 2
            lines.append(PrepLineItem(item.name, round_half_away(totals[section].get(item.name, 0), digits), unit))
        weekly[section] = lines
    return weekly
