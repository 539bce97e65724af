from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from adjustment import adjustment_factor, sales_trend_factor
from database import (
    SessionLocal,
    get_comparable_series,
    save_forecast_entries,
)
from forecast_parser import ForecastRecord, parse_forecast_email, parse_weekly_forecast, records_from_email
from menu_catalog import MenuCatalog, load_menu_catalog
from prep_engine import DayPrepSheet, PrepLineItem, build_daily_prep, build_weekly_prep
from projections import DerivedDayProjection, project_week, summarize_week
from ratios import RatioConfig, load_ratio_config

logger = logging.getLogger(__name__)

INPUT_FORMATS = ("weekly", "email")


@dataclass
class ProjectionReport:
    records: List[ForecastRecord]
    projections: List[DerivedDayProjection]
    summary: Dict[str, float]
    adjustment_factor: float
    sales_trend_factor: float
    daily_prep: List[DayPrepSheet] = field(default_factory=list)
    weekly_prep: Dict[str, List[PrepLineItem]] = field(default_factory=dict)
    ratios: Optional[RatioConfig] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "records": [record.as_dict() for record in self.records],
            "projections": [projection.as_dict() for projection in self.projections],
            "summary": dict(self.summary),
            "adjustment_factor": self.adjustment_factor,
            "sales_trend_factor": self.sales_trend_factor,
            "daily_prep": [sheet.as_dict() for sheet in self.daily_prep],
            "weekly_prep": {
                section: [line.as_dict() for line in lines] for section, lines in self.weekly_prep.items()
            },
            "ratios": self.ratios.as_dict() if self.ratios else None,
        }


def parse_forecast_text(text: str, input_format: str = "weekly") -> List[ForecastRecord]:
    if input_format not in INPUT_FORMATS:
        raise ValueError(f"input_format must be one of {', '.join(INPUT_FORMATS)}.")
    if input_format == "email":
        return records_from_email(parse_forecast_email(text, min_entries=1))
    return parse_weekly_forecast(text)


def project_records(
    records: Sequence[ForecastRecord],
    ratios: RatioConfig,
    catalog: Any,
    actual_series: Optional[Sequence[Any]] = None,
    forecast_series: Optional[Sequence[Any]] = None,
) -> ProjectionReport:
    """Derive projections plus adjusted prep quantities from parsed records.

    Pure: the catalog is copied before use and nothing is persisted, so the same
    inputs always serialize to the same report.
    """
    menu = MenuCatalog.coerce(catalog).snapshot()
    projections = project_week(records, ratios)
    factor = adjustment_factor(actual_series, forecast_series)
    trend = sales_trend_factor(actual_series, forecast_series)
    return ProjectionReport(
        records=list(records),
        projections=projections,
        summary=summarize_week(projections),
        adjustment_factor=factor,
        sales_trend_factor=trend,
        daily_prep=build_daily_prep(menu, projections, factor),
        weekly_prep=build_weekly_prep(menu, projections, factor),
        ratios=ratios,
    )


def run_projection_pipeline(
    text: str,
    ratios: RatioConfig,
    catalog: Any,
    actual_series: Optional[Sequence[Any]] = None,
    forecast_series: Optional[Sequence[Any]] = None,
    *,
    input_format: str = "weekly",
) -> ProjectionReport:
    """Parse ``text`` and hand the records to :func:`project_records`."""
    records = parse_forecast_text(text, input_format)
    return project_records(records, ratios, catalog, actual_series, forecast_series)


def _history_cutoff(records: Sequence[ForecastRecord]) -> Optional[datetime.date]:
    """History used for the factor must end before the first projected day."""
    dates = [record.date for record in records if record.date is not None]
    if not dates:
        return None
    return min(dates) - datetime.timedelta(days=1)


def generate_projection_report(
    session_factory: Callable = SessionLocal,
    text: str = "",
    actor: str = "system",
    *,
    input_format: str = "weekly",
    persist: bool = True,
) -> ProjectionReport:
    """Load ratios, menu and history from storage, run the pipeline and store the forecast rows."""
    records = parse_forecast_text(text, input_format)
    cutoff = _history_cutoff(records)
    with session_factory() as session:
        ratios = load_ratio_config(session)
        catalog = load_menu_catalog(session)
        actual_series, forecast_series = get_comparable_series(session, end_date=cutoff)
        report = project_records(records, ratios, catalog, actual_series, forecast_series)
        if persist:
            entries = [
                {
                    "date": projection.date,
                    "day": projection.day,
                    "pax": projection.pax,
                    "guests": projection.guests,
                    "sales": projection.sales,
                }
                for projection in report.projections
            ]
            saved = save_forecast_entries(
                session,
                entries,
                source="email" if input_format == "email" else "weekly_text",
            )
            logger.info("%s stored %d forecast days", actor or "system", saved)
    logger.info(
        "Projection for %d days: factor %.3f, trend %.3f",
        len(report.projections),
        report.adjustment_factor,
        report.sales_trend_factor,
    )
    return report

