from __future__ import annotations

import datetime
import json
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database as db  # noqa: E402
from database import Base, ForecastBase, get_forecast_series, save_forecast_entries  # noqa: E402
from data_exchange import (  # noqa: E402
    export_forecast_history,
    export_menu_catalog,
    export_ratio_settings,
    import_forecast_history,
    import_menu_catalog,
    import_ratio_settings,
)
from menu_catalog import MenuCatalog, load_menu_catalog, save_menu_catalog  # noqa: E402
from ratios import build_ratio_config, load_ratio_config, save_ratio_config  # noqa: E402


def _engine():
    return create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def memory_db(monkeypatch):
    """Separate in-memory engines for console and forecast tables, as in production."""
    console_engine = _engine()
    forecast_engine = _engine()
    Session = sessionmaker(bind=console_engine, expire_on_commit=False, future=True)
    ForecastSession = sessionmaker(bind=forecast_engine, expire_on_commit=False, future=True)

    # Point the database module at the in-memory engines so helper functions use them.
    monkeypatch.setattr(db, "console_engine", console_engine)
    monkeypatch.setattr(db, "forecast_engine", forecast_engine)
    monkeypatch.setattr(db, "SessionLocal", Session)
    monkeypatch.setattr(db, "ForecastSessionLocal", ForecastSession)

    Base.metadata.create_all(console_engine)
    ForecastBase.metadata.create_all(forecast_engine)
    yield Session
    console_engine.dispose()
    forecast_engine.dispose()


def test_menu_export_import_round_trip(memory_db, tmp_path):
    with memory_db() as session:
        save_menu_catalog(session, MenuCatalog.default())
        path = export_menu_catalog(session, export_dir=tmp_path)
        save_menu_catalog(session, MenuCatalog())
        imported, skipped = import_menu_catalog(session, path)
        catalog = load_menu_catalog(session)
    assert path.parent == tmp_path
    assert skipped == []
    assert imported == sum(len(items) for _, items in MenuCatalog.default())
    assert catalog.as_dict() == MenuCatalog.default().as_dict()


def test_menu_import_skips_invalid_items(memory_db, tmp_path):
    path = tmp_path / "menu.json"
    path.write_text(
        json.dumps(
            {
                "sections": [
                    {
                        "name": "Sides",
                        "items": [
                            {"name": "Beans", "unit": "oz", "per_guest_oz": 4},
                            {"name": "Mystery", "unit": "kg", "per_guest_oz": 4},
                        ],
                    },
                    {"name": "", "items": []},
                ]
            }
        ),
        encoding="utf-8",
    )
    with memory_db() as session:
        imported, skipped = import_menu_catalog(session, path)
        catalog = load_menu_catalog(session)
    assert imported == 1
    assert len(skipped) == 1 and skipped[0].startswith("Sides:")
    assert catalog.sections() == ["Sides"]


def test_menu_import_requires_sections(memory_db, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"menu": {}}), encoding="utf-8")
    with memory_db() as session:
        with pytest.raises(ValueError):
            import_menu_catalog(session, path)


def test_ratio_export_import(memory_db, tmp_path):
    with memory_db() as session:
        with pytest.raises(ValueError):
            export_ratio_settings(session, export_dir=tmp_path)
        save_ratio_config(session, build_ratio_config({"capture_rate": 0.11}), edited_by="gm")
        path = export_ratio_settings(session, export_dir=tmp_path)
        save_ratio_config(session, build_ratio_config(), edited_by="gm")
        settings = import_ratio_settings(session, path, edited_by="import")
        loaded = load_ratio_config(session)
    assert json.loads(path.read_text(encoding="utf-8"))["params"]["capture_rate"] == 0.11
    assert settings.lastEditedBy == "import"
    assert loaded.capture_rate == 0.11


def test_ratio_import_accepts_flat_payload(memory_db, tmp_path):
    path = tmp_path / "ratios.json"
    path.write_text(json.dumps({"name": "Summer", "amSplit": 65, "spend_per_guest": 48}), encoding="utf-8")
    with memory_db() as session:
        settings = import_ratio_settings(session, path)
        loaded = load_ratio_config(session)
    assert settings.name == "Summer"
    assert loaded.am_split == pytest.approx(0.65)
    assert loaded.spend_per_guest == 48.0


def test_forecast_history_round_trip(memory_db, tmp_path):
    with memory_db() as session:
        save_forecast_entries(
            session,
            [
                {"date": "2024-06-03", "day": "Monday", "pax": 1000, "guests": 80, "sales": 3200},
                {"date": None, "day": "Tuesday", "pax": 900},
            ],
        )
        path = export_forecast_history(session, export_dir=tmp_path)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert len(payload["forecasts"]) == 1
    payload["forecasts"].append({"date": "2024-06-04", "day": "Tuesday", "pax": 900, "guests": 72, "sales": 2880})
    path.write_text(json.dumps(payload), encoding="utf-8")

    with memory_db() as session:
        assert import_forecast_history(session, path) == 2
        rows = get_forecast_series(session)
    assert [row.date for row in rows] == [datetime.date(2024, 6, 3), datetime.date(2024, 6, 4)]
    assert {row.source for row in rows} == {"import"}
