"""FastAPI surface over the prep console database and projection pipeline.

Request bodies are plain dicts, mirroring how the console front end posts
them; responses are JSON-encoded dataclass dicts.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Modules import each other by bare name ("import database").
APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import database  # noqa: E402
from actuals_parser import cost_variance_report, parse_pos_actuals  # noqa: E402
from adjustment import adjustment_factor, sales_trend_factor  # noqa: E402
from briefing import briefing_text, build_briefing_metrics  # noqa: E402
from database import get_comparable_series, get_ratio_settings, init_database, record_audit_log, upsert_actual_entry  # noqa: E402
from forecast_parser import ParseError, parse_forecast_email, parse_weekly_forecast  # noqa: E402
from menu_catalog import (  # noqa: E402
    MenuItem,
    MenuValidationError,
    delete_menu_item,
    ensure_default_menu,
    load_menu_catalog,
    save_menu_item,
)
from pipeline import INPUT_FORMATS, generate_projection_report  # noqa: E402
from projections import project_week, summarize_week  # noqa: E402
from ratios import build_ratio_config, ensure_default_ratios, load_ratio_config, save_ratio_config  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    ensure_default_ratios(database.SessionLocal)
    ensure_default_menu(database.SessionLocal)
    yield


app = FastAPI(title="Prep Console API", version="0.1", lifespan=lifespan)


def get_db():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _parse_date(value: Optional[str], field: str = "date") -> Optional[datetime.date]:
    if value is None or value == "":
        return None
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD")


_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _actor(payload: Optional[Dict[str, Any]]) -> str:
    return (str((payload or {}).get("actor") or "api")).strip() or "api"


def _audit(db: Session, actor: str, action: str, target: Optional[str], payload: Optional[Dict[str, Any]] = None) -> None:
    record_audit_log(db, user_id=actor, action=action, target_type="API", target_id=target, payload=payload)


def _ratios_payload(db: Session) -> Dict[str, Any]:
    settings = get_ratio_settings(db)
    return {
        "name": settings.name if settings else None,
        "params": load_ratio_config(db).as_dict(),
        "lastEditedBy": settings.lastEditedBy if settings else None,
        "lastEditedAt": settings.lastEditedAt.isoformat() if settings and settings.lastEditedAt else None,
    }


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/api/v1/forecast/parse")
def parse_forecast(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    text = payload.get("text") or ""
    try:
        records = parse_weekly_forecast(text)
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    projections = project_week(records, load_ratio_config(db))
    return JSONResponse(
        content=jsonable_encoder(
            {
                "records": [record.as_dict() for record in records],
                "projections": [projection.as_dict() for projection in projections],
                "summary": summarize_week(projections),
            }
        )
    )


@app.post("/api/v1/forecast/email")
def parse_email(payload: Dict[str, Any]) -> JSONResponse:
    text = payload.get("text") or ""
    try:
        min_entries = int(payload.get("min_entries") or 0)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="min_entries must be an integer")
    try:
        entries = parse_forecast_email(text, min_entries=min_entries)
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return JSONResponse(content=jsonable_encoder({"entries": [entry.as_dict() for entry in entries]}))


@app.get("/api/v1/ratios")
def get_ratios(db=Depends(get_db)) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(_ratios_payload(db)))


@app.put("/api/v1/ratios")
def put_ratios(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    params = payload.get("params")
    if not isinstance(params, dict):
        raise HTTPException(status_code=400, detail="params must be an object")
    actor = _actor(payload)
    merged = dict(load_ratio_config(db).as_dict())
    merged.update(params)
    config = build_ratio_config(merged)
    settings = save_ratio_config(db, config, edited_by=actor)
    _audit(db, actor=actor, action="RATIOS_EDIT", target=str(settings.id), payload=config.as_dict())
    return JSONResponse(content=jsonable_encoder(_ratios_payload(db)))


@app.get("/api/v1/menu")
def get_menu(db=Depends(get_db)) -> JSONResponse:
    catalog = load_menu_catalog(db)
    return JSONResponse(content=jsonable_encoder({"sections": catalog.sections(), "menu": catalog.as_dict()}))


@app.put("/api/v1/menu/{section}/{name}")
def put_menu_item(section: str, name: str, payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    body = dict(payload)
    body["name"] = name
    try:
        item = save_menu_item(db, section, MenuItem.from_dict(body))
    except MenuValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    _audit(db, actor=_actor(payload), action="MENU_ITEM_SAVE", target=f"{section}/{item.name}", payload=item.as_dict())
    return JSONResponse(content=jsonable_encoder({"section": section, "item": item.as_dict()}))


@app.delete("/api/v1/menu/{section}/{name}")
def remove_menu_item(section: str, name: str, actor: str = Query("api"), db=Depends(get_db)) -> JSONResponse:
    if not delete_menu_item(db, section, name):
        raise HTTPException(status_code=404, detail="Menu item not found")
    _audit(db, actor=actor, action="MENU_ITEM_DELETE", target=f"{section}/{name}", payload={})
    return JSONResponse(content=jsonable_encoder({"section": section, "name": name, "deleted": True}))


@app.post("/api/v1/actuals")
def post_actuals(payload: Dict[str, Any], db=Depends(get_db)) -> JSONResponse:
    try:
        record = parse_pos_actuals(payload.get("text") or "")
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    upsert_actual_entry(db, record.as_dict())
    report = cost_variance_report(record, load_ratio_config(db))
    _audit(db, actor=_actor(payload), action="ACTUALS_SAVE", target=record.date.isoformat(), payload={})
    return JSONResponse(content=jsonable_encoder(report.as_dict()))


@app.get("/api/v1/adjustment-factor")
def get_adjustment_factor(
    end_date: Optional[str] = Query(None, alias="endDate"),
    db=Depends(get_db),
) -> JSONResponse:
    cutoff = _parse_date(end_date, "endDate")
    actual_series, forecast_series = get_comparable_series(db, end_date=cutoff)
    latest = actual_series[-1].date.isoformat() if actual_series else None
    return JSONResponse(
        content=jsonable_encoder(
            {
                "adjustment_factor": adjustment_factor(actual_series, forecast_series),
                "sales_trend_factor": sales_trend_factor(actual_series, forecast_series),
                "based_on": latest,
                "days_compared": len(actual_series),
            }
        )
    )


@app.post("/api/v1/prep-guide")
def prep_guide(payload: Dict[str, Any]) -> JSONResponse:
    input_format = payload.get("format") or "weekly"
    if input_format not in INPUT_FORMATS:
        raise HTTPException(status_code=400, detail=f"format must be one of {', '.join(INPUT_FORMATS)}")
    actor = _actor(payload)
    try:
        report = generate_projection_report(
            database.SessionLocal,
            payload.get("text") or "",
            actor,
            input_format=input_format,
            persist=_as_bool(payload.get("persist"), default=True),
        )
    except ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    content = report.as_dict()
    if report.projections and _as_bool(payload.get("briefing"), default=False):
        notes = payload.get("notes") if isinstance(payload.get("notes"), dict) else {}
        metrics = build_briefing_metrics(
            report.projections[0],
            yesterday_forecast_sales=payload.get("yesterday_forecast_sales"),
            yesterday_actual_sales=payload.get("yesterday_actual_sales"),
        )
        content["briefing"] = {"metrics": metrics.as_dict(), "text": briefing_text(metrics, notes)}
    with database.SessionLocal() as db:
        _audit(db, actor=actor, action="PREP_GUIDE", target=None, payload={"days": len(report.projections)})
    return JSONResponse(content=jsonable_encoder(content))
