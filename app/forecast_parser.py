"""Turn pasted weekly forecast text into structured per-day records.

Two input shapes are understood:

* the weekly throughput block::

      Date: 2024-06-03
      Monday: 15000
      Tuesday: 16000

* the forecast email digest::

      Mon 06/03/2024 - 1,250 guests
      Tue 06/04/2024 - 1,310 guests
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DAY_ORDER = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DAY_TOKENS = [day[:3] for day in DAY_ORDER]

_DATE_LINE = re.compile(r"^date\s*:\s*(\S+)$", re.IGNORECASE)
_DAY_LINE = re.compile(
    r"^(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\s*:\s*(.+)$",
    re.IGNORECASE,
)
_INTEGER = re.compile(r"^(?:\d{1,3}(?:,\d{3})+|\d+)$")
_EMAIL_LINE = re.compile(
    r"^(mon|tue|wed|thu|fri|sat|sun)\w*\s+(\d{1,2}/\d{1,2}/\d{4})\s*[-–—]\s*([\d,]+)\s+guests?\b",
    re.IGNORECASE,
)


class ParseError(ValueError):
    """Raised when an entire input produced no structured records."""

    def __init__(self, message: str, *, lines_seen: int = 0) -> None:
        super().__init__(message)
        self.lines_seen = lines_seen


@dataclass(frozen=True)
class ForecastRecord:
    day: str
    date: Optional[datetime.date]
    pax_or_guests: int

    def as_dict(self) -> Dict[str, object]:
        return {
            "day": self.day,
            "date": self.date.isoformat() if self.date else None,
            "pax_or_guests": self.pax_or_guests,
        }


@dataclass(frozen=True)
class EmailForecastEntry:
    day: str
    date: datetime.date
    guests: int

    def as_dict(self) -> Dict[str, object]:
        return {"day": self.day, "date": self.date.isoformat(), "guests": self.guests}


def canonical_day(token: str) -> Optional[str]:
    """Map 'mon', 'MONDAY', 'Mon.' etc. to the full weekday name."""
    short = (token or "").strip()[:3].lower()
    for day in DAY_ORDER:
        if day[:3].lower() == short:
            return day
    return None


def parse_weekly_forecast(text: str) -> List[ForecastRecord]:
    """Parse the weekly throughput block into ForecastRecords, in input order.

    A ``Date:`` line sets the running date; every matched day line takes the
    running date and moves it forward one day. Unmatched lines are skipped.
    Raises ParseError when nothing matched.
    """
    records: List[ForecastRecord] = []
    running_date: Optional[datetime.date] = None
    lines_seen = 0
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        lines_seen += 1

        date_match = _DATE_LINE.match(line)
        if date_match:
            try:
                running_date = datetime.date.fromisoformat(date_match.group(1))
            except ValueError:
                logger.warning("Ignoring invalid base date %r", date_match.group(1))
            continue

        day_match = _DAY_LINE.match(line)
        if not day_match:
            logger.debug("Skipping unmatched forecast line %r", line)
            continue
        count_text = day_match.group(2).strip()
        if not _INTEGER.match(count_text):
            logger.debug("Skipping day line with non-integer count %r", line)
            continue

        records.append(
            ForecastRecord(
                day=canonical_day(day_match.group(1)),
                date=running_date,
                pax_or_guests=int(count_text.replace(",", "")),
            )
        )
        if running_date is not None:
            running_date += datetime.timedelta(days=1)

    if not records:
        raise ParseError(
            "No valid day data found. Expected lines like 'Monday: 15000'.",
            lines_seen=lines_seen,
        )
    logger.info("Parsed %d forecast records from %d lines", len(records), lines_seen)
    return records


def parse_forecast_email(text: str, *, min_entries: int = 0) -> List[EmailForecastEntry]:
    """Parse 'Mon 06/03/2024 - 1,250 guests' lines.

    Never raises on its own; pass ``min_entries`` to require a minimum count.
    """
    entries: List[EmailForecastEntry] = []
    lines_seen = 0
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        lines_seen += 1
        match = _EMAIL_LINE.match(line)
        if not match:
            logger.debug("Skipping unmatched email line %r", line)
            continue
        try:
            date_value = datetime.datetime.strptime(match.group(2), "%m/%d/%Y").date()
        except ValueError:
            logger.debug("Skipping email line with invalid date %r", line)
            continue
        guests = int(match.group(3).replace(",", ""))
        entries.append(EmailForecastEntry(day=match.group(1).title(), date=date_value, guests=guests))

    if len(entries) < min_entries:
        raise ParseError(
            f"Found {len(entries)} forecast rows, expected at least {min_entries}.",
            lines_seen=lines_seen,
        )
    return entries


def records_from_email(entries: List[EmailForecastEntry]) -> List[ForecastRecord]:
    return [
        ForecastRecord(day=canonical_day(entry.day), date=entry.date, pax_or_guests=entry.guests)
        for entry in entries
    ]
