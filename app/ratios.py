from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from database import get_ratio_settings, upsert_ratio_settings
from numeric import coerce_number

logger = logging.getLogger(__name__)

DEFAULT_RATIO_NAME = "Baseline Ratios"

RATIO_DEFAULTS: Dict[str, float] = {
    "capture_rate": 0.08,
    "spend_per_guest": 40.0,
    "am_split": 0.6,
    "food_cost_goal": 0.3,
    "bev_cost_goal": 0.2,
    "labor_cost_goal": 0.14,
}

# Keys stored as fractions; a value above 1 is read as a percentage (60 -> 0.6).
FRACTION_KEYS = {"capture_rate", "am_split", "food_cost_goal", "bev_cost_goal", "labor_cost_goal"}

# Older payloads used camelCase keys.
_KEY_ALIASES = {
    "captureRate": "capture_rate",
    "spendPerGuest": "spend_per_guest",
    "amSplit": "am_split",
    "foodCostGoal": "food_cost_goal",
    "bevCostGoal": "bev_cost_goal",
    "laborCostGoal": "labor_cost_goal",
}


@dataclass(frozen=True)
class RatioConfig:
    capture_rate: float = RATIO_DEFAULTS["capture_rate"]
    spend_per_guest: float = RATIO_DEFAULTS["spend_per_guest"]
    am_split: float = RATIO_DEFAULTS["am_split"]
    food_cost_goal: float = RATIO_DEFAULTS["food_cost_goal"]
    bev_cost_goal: float = RATIO_DEFAULTS["bev_cost_goal"]
    labor_cost_goal: float = RATIO_DEFAULTS["labor_cost_goal"]

    def __post_init__(self) -> None:
        # Fractions must lie in [0, 1]; anything else falls back to its default.
        for key, default in RATIO_DEFAULTS.items():
            raw = getattr(self, key)
            value = coerce_number(raw)
            if value is None or value < 0 or (key in FRACTION_KEYS and value > 1.0):
                logger.warning("Invalid %s=%r; using default %s", key, raw, default)
                value = default
            object.__setattr__(self, key, value)

    @property
    def pm_split(self) -> float:
        return 1.0 - self.am_split

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def _normalize_value(key: str, raw: Any) -> Optional[float]:
    value = coerce_number(raw)
    if value is None or value < 0:
        return None
    if key in FRACTION_KEYS:
        if value > 1.0:
            value /= 100.0
        if value > 1.0:
            return None
    return value


def build_ratio_config(overrides: Optional[Mapping[str, Any]] = None) -> RatioConfig:
    """Merge ``overrides`` over the default table, one key at a time.

    Missing or invalid values fall back to their default instead of failing.
    """
    values = copy.deepcopy(RATIO_DEFAULTS)
    for raw_key, raw_value in (overrides or {}).items():
        key = _KEY_ALIASES.get(raw_key, raw_key)
        if key not in RATIO_DEFAULTS:
            continue
        if raw_value is None or raw_value == "":
            continue
        value = _normalize_value(key, raw_value)
        if value is None:
            logger.warning("Invalid %s=%r; using default %s", key, raw_value, RATIO_DEFAULTS[key])
            continue
        values[key] = value
    return RatioConfig(**values)


def load_ratio_config(conn) -> RatioConfig:
    """Return the stored ratio settings, with defaults for anything unset."""
    if conn is None:
        return RatioConfig()
    if callable(conn):
        with conn() as session:
            settings = get_ratio_settings(session)
            return build_ratio_config(settings.params_dict() if settings else {})
    settings = get_ratio_settings(conn)
    return build_ratio_config(settings.params_dict() if settings else {})


def save_ratio_config(session, config: RatioConfig, *, edited_by: str = "system", name: str = DEFAULT_RATIO_NAME):
    return upsert_ratio_settings(session, name, config.as_dict(), edited_by=edited_by)


def ensure_default_ratios(session_factory) -> None:
    """Seed the baseline ratio table exactly once."""
    with session_factory() as session:
        if get_ratio_settings(session):
            return
        save_ratio_config(session, RatioConfig(), edited_by="system")
