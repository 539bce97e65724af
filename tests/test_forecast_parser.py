from __future__ import annotations

import datetime
import sys
import unittest
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from forecast_parser import (  # noqa: E402
    ParseError,
    canonical_day,
    parse_forecast_email,
    parse_weekly_forecast,
    records_from_email,
)


class WeeklyForecastParserTests(unittest.TestCase):
    def test_date_line_seeds_consecutive_dates(self) -> None:
        records = parse_weekly_forecast("Date: 2024-06-03\nMonday: 100\nTuesday: 120")
        self.assertEqual([r.day for r in records], ["Monday", "Tuesday"])
        self.assertEqual([r.pax_or_guests for r in records], [100, 120])
        self.assertEqual(records[0].date, datetime.date(2024, 6, 3))
        self.assertEqual(records[1].date, datetime.date(2024, 6, 4))

    def test_dates_stay_empty_without_date_line(self) -> None:
        records = parse_weekly_forecast("Monday: 15000\nTuesday: 16000")
        self.assertEqual(len(records), 2)
        self.assertTrue(all(record.date is None for record in records))

    def test_second_date_line_resets_running_date(self) -> None:
        text = "Date: 2024-06-03\nMonday: 1\nDate: 2024-07-01\nMonday: 2\nTuesday: 3"
        dates = [record.date for record in parse_weekly_forecast(text)]
        self.assertEqual(
            dates,
            [datetime.date(2024, 6, 3), datetime.date(2024, 7, 1), datetime.date(2024, 7, 2)],
        )

    def test_case_and_whitespace_are_ignored(self) -> None:
        records = parse_weekly_forecast("   FRIDAY :  250  \n\n  sunday:7")
        self.assertEqual([(r.day, r.pax_or_guests) for r in records], [("Friday", 250), ("Sunday", 7)])

    def test_non_integer_and_unknown_lines_are_skipped(self) -> None:
        text = "Weekly forecast\nMonday: lots\nTuesday: 12.5\nWednesday: 40\nFunday: 9"
        records = parse_weekly_forecast(text)
        self.assertEqual([(r.day, r.pax_or_guests) for r in records], [("Wednesday", 40)])

    def test_thousands_separators_keep_dates_in_step(self) -> None:
        records = parse_weekly_forecast("Date: 2025-05-13\nMonday: 15,000\nTuesday: 16000\nWednesday: 1,250,000")
        self.assertEqual(
            [(r.day, r.date, r.pax_or_guests) for r in records],
            [
                ("Monday", datetime.date(2025, 5, 13), 15000),
                ("Tuesday", datetime.date(2025, 5, 14), 16000),
                ("Wednesday", datetime.date(2025, 5, 15), 1250000),
            ],
        )

    def test_malformed_separators_are_rejected(self) -> None:
        records = parse_weekly_forecast("Monday: 15,00\nTuesday: ,500\nWednesday: 1,000.5\nThursday: 7")
        self.assertEqual([(r.day, r.pax_or_guests) for r in records], [("Thursday", 7)])

    def test_invalid_base_date_is_logged_and_ignored(self) -> None:
        with self.assertLogs("forecast_parser", level="WARNING"):
            records = parse_weekly_forecast("Date: 2024-13-40\nMonday: 5")
        self.assertIsNone(records[0].date)

    def test_invalid_date_keeps_previous_running_date(self) -> None:
        text = "Date: 2024-06-03\nMonday: 5\nDate: nope\nTuesday: 6"
        records = parse_weekly_forecast(text)
        self.assertEqual(records[1].date, datetime.date(2024, 6, 4))

    def test_no_matches_raises_parse_error(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_weekly_forecast("not a forecast")
        self.assertEqual(ctx.exception.lines_seen, 1)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_empty_input_raises_parse_error(self) -> None:
        with self.assertRaises(ParseError):
            parse_weekly_forecast("")

    def test_canonical_day(self) -> None:
        self.assertEqual(canonical_day("thu"), "Thursday")
        self.assertEqual(canonical_day("SATURDAY"), "Saturday")
        self.assertIsNone(canonical_day("xyz"))


class EmailForecastParserTests(unittest.TestCase):
    def test_parses_thousands_and_any_dash(self) -> None:
        text = "Mon 06/03/2024 - 1,250 guests\nTue 06/04/2024 – 1,310 guests\nWed 06/05/2024 — 980 guests"
        entries = parse_forecast_email(text)
        self.assertEqual([e.day for e in entries], ["Mon", "Tue", "Wed"])
        self.assertEqual([e.guests for e in entries], [1250, 1310, 980])
        self.assertEqual(entries[0].date, datetime.date(2024, 6, 3))

    def test_mismatches_are_skipped_without_raising(self) -> None:
        entries = parse_forecast_email("Hi team,\nMon 6/3/2024 - 50 guests\nThanks!")
        self.assertEqual(len(entries), 1)
        self.assertEqual(parse_forecast_email("nothing useful"), [])

    def test_min_entries_raises_when_short(self) -> None:
        with self.assertRaises(ParseError):
            parse_forecast_email("Mon 06/03/2024 - 10 guests", min_entries=2)

    def test_records_from_email_use_full_day_names(self) -> None:
        entries = parse_forecast_email("Sat 06/08/2024 - 2,000 guests")
        record = records_from_email(entries)[0]
        self.assertEqual(record.day, "Saturday")
        self.assertEqual(record.pax_or_guests, 2000)
        self.assertEqual(record.as_dict()["date"], "2024-06-08")


if __name__ == "__main__":
    unittest.main()
