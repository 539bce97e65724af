from __future__ import annotations

import datetime
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker


DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)
CONSOLE_DATABASE_URL = f"sqlite:///{(DATA_DIR / 'console.db').as_posix()}"
FORECAST_DATABASE_URL = f"sqlite:///{(DATA_DIR / 'forecasts.db').as_posix()}"
FORECAST_SOURCES = {"weekly_text", "email", "import", "api"}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    """Metadata for menu/settings/audit tables living in console.db."""

    pass


class ForecastBase(DeclarativeBase):
    """Standalone metadata for forecast and actuals history living in forecasts.db."""

    pass


class ForecastEntry(ForecastBase):
    __tablename__ = "forecast_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    day: Mapped[str] = mapped_column(String(12), nullable=False)
    pax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    guests: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sales: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="weekly_text")
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (UniqueConstraint("date", name="uq_forecast_entries_date"),)


class ActualEntry(ForecastBase):
    __tablename__ = "actual_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    guests: Mapped[float | None] = mapped_column(Float, nullable=True)
    sales: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    food_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    beverage_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    labor_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    labor_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (UniqueConstraint("date", name="uq_actual_entries_date"),)


class MenuSectionRow(Base):
    __tablename__ = "menu_sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class MenuItemRow(Base):
    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section: Mapped[str] = mapped_column(String(80), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    unit: Mapped[str] = mapped_column(String(8), nullable=False, default="oz")
    per_guest_oz: Mapped[float | None] = mapped_column(Float, nullable=True)
    each: Mapped[float | None] = mapped_column(Float, nullable=True)
    formula: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (UniqueConstraint("section", "name", name="uq_menu_items_section_name"),)


class RatioSettings(Base):
    __tablename__ = "ratio_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    paramsJSON: Mapped[str] = mapped_column(String(2000), nullable=False, default="{}")
    lastEditedBy: Mapped[str] = mapped_column(String(60), nullable=False, default="system")
    lastEditedAt: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (UniqueConstraint("name", name="uq_ratio_settings_name"),)

    def params_dict(self) -> Dict:
        try:
            value = json.loads(self.paramsJSON or "{}")
            if isinstance(value, dict):
                return value
        except json.JSONDecodeError:
            pass
        return {}


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(60), nullable=False)
    action: Mapped[str] = mapped_column(String(60), nullable=False)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="Menu")
    target_id: Mapped[str | None] = mapped_column(String(160), nullable=True)
    payloadJSON: Mapped[str] = mapped_column(String(2000), nullable=False, default="{}")
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


console_engine = create_engine(
    CONSOLE_DATABASE_URL,
    echo=False,
    future=True,
)
forecast_engine = create_engine(
    FORECAST_DATABASE_URL,
    echo=False,
    future=True,
)
SessionLocal = sessionmaker(bind=console_engine, expire_on_commit=False, future=True)
ForecastSessionLocal = sessionmaker(bind=forecast_engine, expire_on_commit=False, future=True)


def init_database() -> None:
    Base.metadata.create_all(console_engine)
    ForecastBase.metadata.create_all(forecast_engine)


def _coerce_forecast_session(session):
    """Return (forecast_session, should_close) scoped to the forecasts database."""
    if session is None:
        ForecastBase.metadata.create_all(forecast_engine)
        return ForecastSessionLocal(), True
    bind = getattr(session, "bind", None)
    if bind is console_engine:
        ForecastBase.metadata.create_all(forecast_engine)
        return ForecastSessionLocal(), True
    return session, False


def _as_date(value: Any) -> Optional[datetime.date]:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# Forecast & actuals history


def save_forecast_entries(session, entries: Iterable[Dict[str, Any]], *, source: str = "weekly_text") -> int:
    """Upsert forecast rows keyed by date. Rows without a usable date are skipped."""
    forecast_session, close_session = _coerce_forecast_session(session)
    source = source if source in FORECAST_SOURCES else "api"
    saved = 0
    try:
        for entry in entries:
            date_value = _as_date(entry.get("date"))
            if date_value is None:
                continue
            row = forecast_session.scalars(select(ForecastEntry).where(ForecastEntry.date == date_value)).first()
            if row is None:
                row = ForecastEntry(date=date_value, day=entry.get("day") or date_value.strftime("%A"))
                forecast_session.add(row)
            row.day = entry.get("day") or row.day
            row.pax = float(entry.get("pax") or 0.0)
            row.guests = float(entry.get("guests") or 0.0)
            row.sales = float(entry.get("sales") or 0.0)
            row.source = source
            saved += 1
        forecast_session.commit()
        return saved
    finally:
        if close_session:
            forecast_session.close()


def get_forecast_series(session, *, end_date: Optional[datetime.date] = None) -> List[ForecastEntry]:
    forecast_session, close_session = _coerce_forecast_session(session)
    try:
        stmt = select(ForecastEntry).order_by(ForecastEntry.date.asc())
        if end_date is not None:
            stmt = stmt.where(ForecastEntry.date <= end_date)
        return list(forecast_session.scalars(stmt))
    finally:
        if close_session:
            forecast_session.close()


def upsert_actual_entry(session, values: Dict[str, Any]) -> ActualEntry:
    forecast_session, close_session = _coerce_forecast_session(session)
    try:
        date_value = _as_date(values.get("date"))
        if date_value is None:
            raise ValueError("Actuals require a date.")
        row = forecast_session.scalars(select(ActualEntry).where(ActualEntry.date == date_value)).first()
        if row is None:
            row = ActualEntry(date=date_value)
            forecast_session.add(row)
        row.guests = values.get("guests")
        row.sales = float(values.get("sales") or 0.0)
        row.food_cost = float(values.get("food") or 0.0)
        row.beverage_cost = float(values.get("bev") or 0.0)
        row.labor_cost = float(values.get("labor") or 0.0)
        row.labor_hours = values.get("labor_hours")
        forecast_session.commit()
        forecast_session.refresh(row)
        return row
    finally:
        if close_session:
            forecast_session.close()


def get_actual_series(session, *, end_date: Optional[datetime.date] = None) -> List[ActualEntry]:
    forecast_session, close_session = _coerce_forecast_session(session)
    try:
        stmt = select(ActualEntry).order_by(ActualEntry.date.asc())
        if end_date is not None:
            stmt = stmt.where(ActualEntry.date <= end_date)
        return list(forecast_session.scalars(stmt))
    finally:
        if close_session:
            forecast_session.close()


def get_comparable_series(
    session, *, end_date: Optional[datetime.date] = None
) -> Tuple[List[ActualEntry], List[ForecastEntry]]:
    """Actual and forecast rows for the dates both sides recorded guests on, oldest first."""
    actuals = [row for row in get_actual_series(session, end_date=end_date) if row.guests is not None]
    forecasts = {row.date: row for row in get_forecast_series(session, end_date=end_date)}
    paired_actuals: List[ActualEntry] = []
    paired_forecasts: List[ForecastEntry] = []
    for actual in actuals:
        forecast = forecasts.get(actual.date)
        if forecast is None:
            continue
        paired_actuals.append(actual)
        paired_forecasts.append(forecast)
    return paired_actuals, paired_forecasts


# ---------------------------------------------------------------------------
# Ratio settings


def get_ratio_settings(session) -> Optional[RatioSettings]:
    stmt = select(RatioSettings).order_by(RatioSettings.lastEditedAt.desc(), RatioSettings.id.desc())
    return session.scalars(stmt).first()


def upsert_ratio_settings(session, name: str, params_dict: Dict, *, edited_by: str = "system") -> RatioSettings:
    existing: Optional[RatioSettings] = session.scalars(
        select(RatioSettings).where(RatioSettings.name == name)
    ).first()
    payload = params_dict if isinstance(params_dict, dict) else {}
    if existing:
        existing.paramsJSON = json.dumps(payload)
        existing.lastEditedBy = edited_by
        existing.lastEditedAt = _utcnow()
        session.commit()
        session.refresh(existing)
        return existing
    settings = RatioSettings(
        name=name,
        paramsJSON=json.dumps(payload),
        lastEditedBy=edited_by,
        lastEditedAt=_utcnow(),
    )
    session.add(settings)
    session.commit()
    session.refresh(settings)
    return settings


# ---------------------------------------------------------------------------
# Menu catalog


def get_menu_rows(session) -> Tuple[List[str], List[MenuItemRow]]:
    """Return (section names, item rows), both in display order."""
    sections = list(session.scalars(select(MenuSectionRow.name).order_by(MenuSectionRow.position, MenuSectionRow.id)))
    positions = {name: index for index, name in enumerate(sections)}
    rows = list(session.scalars(select(MenuItemRow).order_by(MenuItemRow.position, MenuItemRow.id)))
    rows.sort(key=lambda row: (positions.get(row.section, len(positions)), row.position, row.id))
    return sections, rows


def _ensure_section(session, section: str) -> MenuSectionRow:
    row = session.scalars(select(MenuSectionRow).where(MenuSectionRow.name == section)).first()
    if row:
        return row
    next_position = session.scalar(select(func.coalesce(func.max(MenuSectionRow.position), -1))) + 1
    row = MenuSectionRow(name=section, position=next_position)
    session.add(row)
    session.flush()
    return row


def _apply_item_values(row: MenuItemRow, item: Dict[str, Any]) -> None:
    row.unit = item.get("unit") or "oz"
    row.per_guest_oz = item.get("per_guest_oz")
    row.each = item.get("each")
    row.formula = item.get("formula") or ""


def replace_menu_rows(session, payload: Sequence[Tuple[str, Sequence[Dict[str, Any]]]]) -> int:
    """Replace the whole stored catalog with ``payload`` (section, items) pairs."""
    session.execute(delete(MenuItemRow))
    session.execute(delete(MenuSectionRow))
    count = 0
    for section_index, (section, items) in enumerate(payload):
        session.add(MenuSectionRow(name=section, position=section_index))
        for item_index, item in enumerate(items):
            row = MenuItemRow(section=section, name=item["name"], position=item_index)
            _apply_item_values(row, item)
            session.add(row)
            count += 1
    session.commit()
    return count


def upsert_menu_item_row(session, section: str, item: Dict[str, Any]) -> MenuItemRow:
    _ensure_section(session, section)
    rows = list(session.scalars(select(MenuItemRow).where(MenuItemRow.section == section)))
    key = item["name"].strip().lower()
    row = next((existing for existing in rows if existing.name.lower() == key), None)
    if row is None:
        row = MenuItemRow(
            section=section,
            name=item["name"],
            position=max((existing.position for existing in rows), default=-1) + 1,
        )
        session.add(row)
    row.name = item["name"]
    _apply_item_values(row, item)
    session.commit()
    session.refresh(row)
    return row


def delete_menu_item_row(session, section: str, name: str) -> bool:
    key = name.strip().lower()
    rows = session.scalars(select(MenuItemRow).where(MenuItemRow.section == section)).all()
    removed = False
    for row in rows:
        if row.name.lower() == key:
            session.delete(row)
            removed = True
    session.commit()
    return removed


def record_audit_log(
    session,
    user_id: str,
    action: str,
    target_type: str = "Menu",
    target_id: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payloadJSON=json.dumps(payload or {}),
    )
    session.add(log)
    session.commit()
    return log
