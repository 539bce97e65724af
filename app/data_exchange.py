from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from database import DATA_DIR, get_forecast_series, get_ratio_settings, save_forecast_entries
from menu_catalog import MenuCatalog, MenuItem, MenuValidationError, load_menu_catalog, save_menu_catalog, validate_menu_item
from ratios import DEFAULT_RATIO_NAME, build_ratio_config, save_ratio_config

EXPORT_DIR = DATA_DIR / "exports"
EXPORT_DIR.mkdir(parents=True, exist_ok=True)


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def _read_json(file_path: Path) -> Any:
    return json.loads(Path(file_path).read_text(encoding="utf-8"))


def _write_json(filename: Path, payload: Dict[str, Any]) -> Path:
    filename.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return filename


# ---------------------------------------------------------------------------
# Menu catalog import/export


def export_menu_catalog(session, *, export_dir: Optional[Path] = None) -> Path:
    catalog = load_menu_catalog(session)
    target = (export_dir or EXPORT_DIR) / f"menu_{_timestamp()}.json"
    return _write_json(
        target,
        {
            "generated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "sections": [
                {"name": section, "items": [item.as_dict() for item in items]} for section, items in catalog
            ],
        },
    )


def import_menu_catalog(session, file_path: Path) -> Tuple[int, List[str]]:
    """Replace the stored menu with the file contents.

    Returns (items imported, skipped item descriptions). Items that fail
    validation are skipped rather than aborting the whole import.
    """
    data = _read_json(file_path)
    sections = data.get("sections") if isinstance(data, dict) else None
    if not isinstance(sections, list):
        raise ValueError("Menu file must contain a 'sections' list.")
    catalog = MenuCatalog()
    skipped: List[str] = []
    for entry in sections:
        if not isinstance(entry, dict) or not (entry.get("name") or "").strip():
            continue
        section = entry["name"].strip()
        catalog.add_section(section)
        for raw_item in entry.get("items") or []:
            if not isinstance(raw_item, dict):
                continue
            try:
                catalog.upsert_item(section, validate_menu_item(MenuItem.from_dict(raw_item)))
            except MenuValidationError as exc:
                skipped.append(f"{section}: {exc}")
    imported = save_menu_catalog(session, catalog)
    return imported, skipped


# ---------------------------------------------------------------------------
# Ratio settings import/export


def export_ratio_settings(session, *, export_dir: Optional[Path] = None) -> Path:
    settings = get_ratio_settings(session)
    if not settings:
        raise ValueError("No ratio settings found to export.")
    target = (export_dir or EXPORT_DIR) / f"ratios_{_timestamp()}.json"
    return _write_json(target, {"name": settings.name, "params": build_ratio_config(settings.params_dict()).as_dict()})


def import_ratio_settings(session, file_path: Path, *, edited_by: str = "import"):
    data = _read_json(file_path)
    if not isinstance(data, dict):
        raise ValueError("Ratio file must be a JSON object.")
    params = data.get("params") if isinstance(data.get("params"), dict) else None
    if params is None:
        params = {key: value for key, value in data.items() if key != "name"}
    name = data.get("name") or DEFAULT_RATIO_NAME
    return save_ratio_config(session, build_ratio_config(params), edited_by=edited_by, name=name)


# ---------------------------------------------------------------------------
# Forecast history import/export


def export_forecast_history(
    session,
    *,
    end_date: Optional[datetime.date] = None,
    export_dir: Optional[Path] = None,
) -> Path:
    rows = get_forecast_series(session, end_date=end_date)
    payload = [
        {
            "date": row.date.isoformat(),
            "day": row.day,
            "pax": row.pax,
            "guests": row.guests,
            "sales": row.sales,
            "source": row.source,
        }
        for row in rows
    ]
    target = (export_dir or EXPORT_DIR) / f"forecasts_{_timestamp()}.json"
    return _write_json(target, {"forecasts": payload})


def import_forecast_history(session, file_path: Path) -> int:
    data = _read_json(file_path)
    entries = data.get("forecasts", []) if isinstance(data, dict) else []
    return save_forecast_entries(session, [entry for entry in entries if isinstance(entry, dict)], source="import")
