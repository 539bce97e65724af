from __future__ import annotations

import datetime
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from adjustment import adjustment_factor, sales_trend_factor  # noqa: E402


def test_empty_or_missing_series_means_no_adjustment():
    assert adjustment_factor([{"guests": 92}], []) == 1.0
    assert adjustment_factor(None, [{"guests": 80}]) == 1.0
    assert adjustment_factor([], []) == 1.0


def test_last_entries_are_compared():
    actual = [{"guests": 10}, {"guests": 92}]
    forecast = [{"guests": 50}, {"guests": 80}]
    assert adjustment_factor(actual, forecast) == pytest.approx(1.15)


def test_objects_with_guest_attribute_are_accepted():
    actual = [SimpleNamespace(guests=45, date=datetime.date(2024, 6, 2))]
    forecast = [SimpleNamespace(guests=50, date=datetime.date(2024, 6, 2))]
    assert adjustment_factor(actual, forecast) == pytest.approx(0.9)


@pytest.mark.parametrize(
    "actual, forecast",
    [
        ({"guests": 90}, {"guests": 0}),
        ({"guests": 90}, {"guests": -5}),
        ({"guests": "many"}, {"guests": 80}),
        ({"guests": 90}, {}),
        ({"guests": 0}, {"guests": 80}),
    ],
)
def test_unusable_values_fall_back_to_one(actual, forecast):
    assert adjustment_factor([actual], [forecast]) == 1.0


def test_sales_trend_matches_dates():
    actual = [
        {"date": "2024-06-01", "sales": 1200},
        {"date": "2024-06-02", "sales": 999},
    ]
    forecast = [
        {"date": datetime.date(2024, 6, 1), "sales": 1000},
        {"date": "2024-06-05", "sales": 5000},
    ]
    assert sales_trend_factor(actual, forecast) == pytest.approx(1.2)


def test_sales_trend_is_clamped():
    actual = [{"date": "2024-06-01", "sales": 3000}]
    forecast = [{"date": "2024-06-01", "sales": 1000}]
    assert sales_trend_factor(actual, forecast) == 1.5
    actual = [{"date": "2024-06-01", "sales": 100}]
    assert sales_trend_factor(actual, forecast) == 0.5


def test_sales_trend_without_overlap():
    actual = [{"date": "2024-06-01", "sales": 3000}]
    forecast = [{"date": "2024-06-02", "sales": 1000}]
    assert sales_trend_factor(actual, forecast) == 1.0
    assert sales_trend_factor([], forecast) == 1.0
