"""Editable menu catalog: ordered sections of per-guest portion definitions."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from database import delete_menu_item_row, get_menu_rows, replace_menu_rows, upsert_menu_item_row
from numeric import coerce_number
from portion_formulas import get_formula

VALID_UNITS = {"oz", "each"}
DEFAULT_SECTIONS = ["BBQ Meats", "Sammies", "Sides", "Desserts", "Other"]


class MenuValidationError(ValueError):
    """Raised when a catalog edit carries an unusable portion definition."""


@dataclass(frozen=True)
class MenuItem:
    name: str
    unit: str
    per_guest_oz: Optional[float] = None
    each: Optional[float] = None
    formula: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MenuItem":
        """Lenient constructor; unusable numbers are kept so the engine can zero-fill them."""
        unit = str(payload.get("unit") or "").strip().lower()
        per_guest_oz = payload.get("per_guest_oz", payload.get("perGuestOz"))
        each = payload.get("each")
        if not unit:
            unit = "oz" if per_guest_oz is not None else "each"
        return cls(
            name=str(payload.get("name") or "").strip(),
            unit=unit,
            per_guest_oz=per_guest_oz,
            each=each,
            formula=(payload.get("formula") or None),
        )

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "unit": self.unit}
        if self.per_guest_oz is not None:
            payload["per_guest_oz"] = self.per_guest_oz
        if self.each is not None:
            payload["each"] = self.each
        if self.formula:
            payload["formula"] = self.formula
        return payload


def validate_menu_item(item: MenuItem) -> MenuItem:
    """Return a normalised copy of ``item`` or raise MenuValidationError."""
    name = (item.name or "").strip()
    if not name:
        raise MenuValidationError("Item name is required.")
    unit = (item.unit or "").strip().lower()
    if unit not in VALID_UNITS:
        raise MenuValidationError(f"Unit must be 'oz' or 'each', got {item.unit!r}.")
    if item.formula:
        if get_formula(item.formula) is None:
            raise MenuValidationError(f"Unknown portion formula {item.formula!r}.")
        return MenuItem(name=name, unit=unit, formula=item.formula.strip().lower())
    field = "per_guest_oz" if unit == "oz" else "each"
    value = coerce_number(getattr(item, field))
    if value is None or value <= 0:
        raise MenuValidationError(f"{name}: portion value must be a positive number.")
    if unit == "oz":
        return MenuItem(name=name, unit=unit, per_guest_oz=value)
    return MenuItem(name=name, unit=unit, each=value)


DEFAULT_MENU: Dict[str, List[MenuItem]] = {
    "BBQ Meats": [
        MenuItem("Pulled Pork", "oz", per_guest_oz=6),
        MenuItem("Chopped Brisket", "oz", per_guest_oz=6),
        MenuItem("Brisket (Sliced)", "oz", per_guest_oz=6),
        MenuItem("Bone-In Short Rib", "oz", per_guest_oz=8),
        MenuItem("Half Chicken", "each", each=0.2),
        MenuItem("St. Louis Ribs (1/2 rack)", "each", each=0.25),
    ],
    "Sammies": [
        MenuItem("Pulled Pork Sammie", "each", each=0.2),
        MenuItem("Chopped Brisket Sammie", "each", each=0.15),
        MenuItem("Chopped Chicken Sammie", "each", each=0.1),
    ],
    "Sides": [
        MenuItem("Baked Beans", "oz", per_guest_oz=4),
        MenuItem("Mac 'n' Cheese", "oz", per_guest_oz=4),
        MenuItem("Collard Greens", "oz", per_guest_oz=4),
        MenuItem("Coleslaw", "oz", formula="slaw"),
        MenuItem("Corn Casserole", "oz", per_guest_oz=4),
        MenuItem("Corn Muffin", "each", each=1),
    ],
    "Desserts": [
        MenuItem("Banana Pudding", "each", each=0.3),
        MenuItem("Hummingbird Cake", "each", each=0.15),
        MenuItem("Key Lime Pie", "each", each=0.15),
    ],
    "Other": [
        MenuItem("BBQ Sauce", "oz", formula="bbq_sauce"),
        MenuItem("Pickle Spears", "each", formula="pickle_spears"),
    ],
}


class MenuCatalog:
    """Section name -> ordered item list, kept in insertion order."""

    def __init__(self, sections: Optional[Mapping[str, Iterable[Any]]] = None) -> None:
        self._sections: Dict[str, List[MenuItem]] = {}
        for section, items in (sections or {}).items():
            bucket = self._sections.setdefault(str(section), [])
            for entry in items or []:
                bucket.append(entry if isinstance(entry, MenuItem) else MenuItem.from_dict(entry))

    @classmethod
    def default(cls) -> "MenuCatalog":
        return cls(copy.deepcopy(DEFAULT_MENU))

    @classmethod
    def coerce(cls, catalog: Any) -> "MenuCatalog":
        if isinstance(catalog, MenuCatalog):
            return catalog
        if isinstance(catalog, Mapping):
            return cls(catalog)
        return cls()

    def __iter__(self) -> Iterator[Tuple[str, List[MenuItem]]]:
        for section, items in self._sections.items():
            yield section, list(items)

    def __len__(self) -> int:
        return len(self._sections)

    def __contains__(self, section: object) -> bool:
        return section in self._sections

    def sections(self) -> List[str]:
        return list(self._sections)

    def items(self, section: str) -> List[MenuItem]:
        return list(self._sections.get(section, []))

    def get_item(self, section: str, name: str) -> Optional[MenuItem]:
        key = name.strip().lower()
        for item in self._sections.get(section, []):
            if item.name.lower() == key:
                return item
        return None

    def add_section(self, section: str) -> None:
        section = (section or "").strip()
        if not section:
            raise MenuValidationError("Section name is required.")
        self._sections.setdefault(section, [])

    def upsert_item(self, section: str, item: MenuItem) -> MenuItem:
        """Add ``item`` to ``section`` or replace the same-named item in place."""
        clean = validate_menu_item(item)
        self.add_section(section)
        bucket = self._sections[section.strip()]
        key = clean.name.lower()
        for index, existing in enumerate(bucket):
            if existing.name.lower() == key:
                bucket[index] = clean
                return clean
        bucket.append(clean)
        return clean

    def remove_item(self, section: str, name: str) -> bool:
        bucket = self._sections.get(section)
        if not bucket:
            return False
        key = name.strip().lower()
        kept = [item for item in bucket if item.name.lower() != key]
        removed = len(kept) != len(bucket)
        self._sections[section] = kept
        return removed

    def remove_section(self, section: str) -> bool:
        return self._sections.pop(section, None) is not None

    def as_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {section: [item.as_dict() for item in items] for section, items in self._sections.items()}

    def snapshot(self) -> "MenuCatalog":
        return MenuCatalog(copy.deepcopy(self._sections))


# ---------------------------------------------------------------------------
# Persistence


def load_menu_catalog(session) -> MenuCatalog:
    """Rebuild the catalog from stored rows, preserving section and item order."""
    sections: Dict[str, List[MenuItem]] = {}
    section_names, rows = get_menu_rows(session)
    for name in section_names:
        sections.setdefault(name, [])
    for row in rows:
        sections.setdefault(row.section, []).append(
            MenuItem(
                name=row.name,
                unit=row.unit,
                per_guest_oz=row.per_guest_oz,
                each=row.each,
                formula=row.formula or None,
            )
        )
    return MenuCatalog(sections)


def save_menu_catalog(session, catalog: MenuCatalog) -> int:
    payload = [(section, [item.as_dict() for item in items]) for section, items in catalog]
    return replace_menu_rows(session, payload)


def save_menu_item(session, section: str, item: MenuItem) -> MenuItem:
    clean = validate_menu_item(item)
    upsert_menu_item_row(session, section.strip(), clean.as_dict())
    return clean


def delete_menu_item(session, section: str, name: str) -> bool:
    return delete_menu_item_row(session, section, name)


def ensure_default_menu(session_factory) -> None:
    """Seed the starter catalog the first time the database is opened."""
    with session_factory() as session:
        section_names, _ = get_menu_rows(session)
        if section_names:
            return
        save_menu_catalog(session, MenuCatalog.default())
