from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database as db  # noqa: E402
from database import AuditLog  # noqa: E402
import api  # noqa: E402

WEEK_TEXT = "Date: 2024-06-03\nMonday: 1000\nTuesday: 1200"
POS_TEXT = (
    "Date: 2024-06-03\nTotal Net Sales: $3,680\nFood Cost: $1,200\n"
    "Beverage Cost: $500\nLabor Cost: $515\nGuests: 92"
)


@pytest.fixture()
def client(monkeypatch):
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Session = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    monkeypatch.setattr(db, "console_engine", engine)
    monkeypatch.setattr(db, "forecast_engine", engine)
    monkeypatch.setattr(db, "SessionLocal", Session)
    monkeypatch.setattr(db, "ForecastSessionLocal", Session)
    with TestClient(api.app) as test_client:
        test_client.session_factory = Session
        yield test_client
    engine.dispose()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_parse_forecast_projects_with_stored_ratios(client):
    response = client.post("/api/v1/forecast/parse", json={"text": WEEK_TEXT})
    assert response.status_code == 200
    body = response.json()
    assert [record["date"] for record in body["records"]] == ["2024-06-03", "2024-06-04"]
    assert body["projections"][0]["guests"] == pytest.approx(80)
    assert body["projections"][0]["am_guests"] == 48
    assert body["summary"]["days"] == 2


def test_parse_errors_map_to_422(client):
    assert client.post("/api/v1/forecast/parse", json={"text": "not a forecast"}).status_code == 422
    response = client.post("/api/v1/forecast/email", json={"text": "hello", "min_entries": 1})
    assert response.status_code == 422


def test_email_forecast(client):
    response = client.post("/api/v1/forecast/email", json={"text": "Mon 06/03/2024 - 1,250 guests"})
    assert response.status_code == 200
    assert response.json()["entries"] == [{"day": "Mon", "date": "2024-06-03", "guests": 1250}]


def test_ratios_get_and_put(client):
    body = client.get("/api/v1/ratios").json()
    assert body["params"]["capture_rate"] == 0.08
    response = client.put("/api/v1/ratios", json={"params": {"am_split": 55}, "actor": "gm"})
    assert response.status_code == 200
    updated = response.json()
    assert updated["params"]["am_split"] == pytest.approx(0.55)
    assert updated["params"]["capture_rate"] == 0.08
    assert updated["lastEditedBy"] == "gm"
    assert client.put("/api/v1/ratios", json={"params": "nope"}).status_code == 400


def test_menu_edit_cycle(client):
    menu = client.get("/api/v1/menu").json()
    assert menu["sections"] == ["BBQ Meats", "Sammies", "Sides", "Desserts", "Other"]

    response = client.put("/api/v1/menu/Sides/Baked%20Beans", json={"unit": "oz", "per_guest_oz": 5})
    assert response.status_code == 200
    assert response.json()["item"] == {"name": "Baked Beans", "unit": "oz", "per_guest_oz": 5.0}

    bad = client.put("/api/v1/menu/Sides/Baked%20Beans", json={"unit": "kg", "per_guest_oz": 5})
    assert bad.status_code == 400

    assert client.delete("/api/v1/menu/Desserts/Key%20Lime%20Pie").status_code == 200
    assert client.delete("/api/v1/menu/Desserts/Key%20Lime%20Pie").status_code == 404
    names = [item["name"] for item in client.get("/api/v1/menu").json()["menu"]["Desserts"]]
    assert "Key Lime Pie" not in names


def test_actuals_report_variances(client):
    response = client.post("/api/v1/actuals", json={"text": POS_TEXT})
    assert response.status_code == 200
    body = response.json()
    assert body["actuals"]["guests"] == 92
    assert {variance["category"] for variance in body["variances"]} == {"food", "bev", "labor"}
    assert "Food Over" in body["alerts"]
    assert client.post("/api/v1/actuals", json={"text": "Date: 2024-06-03"}).status_code == 422


def test_prep_guide_then_adjustment_factor(client):
    assert client.get("/api/v1/adjustment-factor").json()["adjustment_factor"] == 1.0

    response = client.post("/api/v1/prep-guide", json={"text": WEEK_TEXT, "actor": "chef"})
    assert response.status_code == 200
    report = response.json()
    assert report["adjustment_factor"] == 1.0
    assert len(report["daily_prep"]) == 2
    assert "Sides" in report["weekly_prep"]

    client.post("/api/v1/actuals", json={"text": POS_TEXT})
    factor = client.get("/api/v1/adjustment-factor").json()
    assert factor["adjustment_factor"] == pytest.approx(1.15)
    assert factor["based_on"] == "2024-06-03"
    assert client.get("/api/v1/adjustment-factor", params={"endDate": "2024-06-02"}).json()["days_compared"] == 0
    assert client.get("/api/v1/adjustment-factor", params={"endDate": "June"}).status_code == 400


def test_prep_guide_with_briefing(client):
    response = client.post(
        "/api/v1/prep-guide",
        json={
            "text": WEEK_TEXT,
            "persist": False,
            "briefing": True,
            "yesterday_forecast_sales": 3000,
            "yesterday_actual_sales": 3300,
            "notes": {"mod_lead": "Sam"},
        },
    )
    assert response.status_code == 200
    briefing = response.json()["briefing"]
    assert briefing["metrics"]["yesterday_variance_pct"] == 10.0
    assert "MOD / LEAD: Sam" in briefing["text"]


def test_prep_guide_errors(client):
    assert client.post("/api/v1/prep-guide", json={"text": "not a forecast"}).status_code == 422
    assert client.post("/api/v1/prep-guide", json={"text": WEEK_TEXT, "format": "csv"}).status_code == 400


def test_mutations_are_audited(client):
    client.put("/api/v1/ratios", json={"params": {"capture_rate": 0.1}, "actor": "gm"})
    client.post("/api/v1/prep-guide", json={"text": WEEK_TEXT, "actor": "chef", "persist": False})
    with client.session_factory() as session:
        actions = [(row.user_id, row.action) for row in session.scalars(select(AuditLog).order_by(AuditLog.id))]
    assert ("gm", "RATIOS_EDIT") in actions
    assert ("chef", "PREP_GUIDE") in actions


def test_prep_guide_reads_string_flags(client):
    response = client.post(
        "/api/v1/prep-guide",
        json={"text": WEEK_TEXT, "persist": "false", "briefing": "false"},
    )
    assert response.status_code == 200
    assert "briefing" not in response.json()
    with client.session_factory() as session:
        assert session.scalars(select(db.ForecastEntry)).all() == []

    response = client.post("/api/v1/prep-guide", json={"text": WEEK_TEXT, "persist": "no", "briefing": "true"})
    assert "briefing" in response.json()
