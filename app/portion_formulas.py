from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class PortionContext:
    """Guest-derived quantities a composite item can draw on for one shift."""

    shift_guests: int
    total_sandwich_count: float


PortionFormula = Callable[[PortionContext], float]

FORMULAS: Dict[str, PortionFormula] = {}


def register_formula(name: str) -> Callable[[PortionFormula], PortionFormula]:
    def decorator(func: PortionFormula) -> PortionFormula:
        FORMULAS[name.strip().lower()] = func
        return func

    return decorator


def get_formula(name: Optional[str]) -> Optional[PortionFormula]:
    if not name:
        return None
    return FORMULAS.get(name.strip().lower())


def formula_names() -> List[str]:
    return sorted(FORMULAS)


# Formulas return ounces for "oz" items and a unit count for "each" items.


@register_formula("slaw")
def slaw(ctx: PortionContext) -> float:
    # 1.5 oz topping per sandwich plus a 3 oz side per guest.
    return ctx.total_sandwich_count * 1.5 + ctx.shift_guests * 3.0


@register_formula("bbq_sauce")
def bbq_sauce(ctx: PortionContext) -> float:
    return ctx.total_sandwich_count * 1.0 + ctx.shift_guests * 0.5


@register_formula("pickle_spears")
def pickle_spears(ctx: PortionContext) -> float:
    # Two spears per sandwich, one for every other plate.
    return ctx.total_sandwich_count * 2 + ctx.shift_guests * 0.5
