"""Tests for report period resolution."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.domain.finance.period import ReportPeriod, previous_period, resolve_period

TODAY = date(2025, 5, 17)


def test_explicit_range_wins_over_period_type():
    period = resolve_period(date(2025, 1, 1), date(2025, 1, 10), "year", today=TODAY)
    assert (period.start, period.end) == (date(2025, 1, 1), date(2025, 1, 10))
    assert period.days == 10
    assert period.name == "2025-01-01 - 2025-01-10"


@pytest.mark.parametrize(
    ("period_type", "start", "end", "name"),
    [
        ("month", date(2025, 5, 1), date(2025, 5, 31), "May 2025"),
        ("quarter", date(2025, 4, 1), date(2025, 6, 30), "Q2 2025"),
        ("year", date(2025, 1, 1), date(2025, 12, 31), "2025"),
    ],
)
def test_period_types_relative_to_today(period_type, start, end, name):
    period = resolve_period(period_type=period_type, today=TODAY)
    assert (period.start, period.end, period.name) == (start, end, name)


def test_february_month_end():
    period = resolve_period(today=date(2024, 2, 3))
    assert period.end == date(2024, 2, 29)


def test_start_after_end_is_rejected():
    with pytest.raises(ValueError, match="after"):
        resolve_period(date(2025, 2, 1), date(2025, 1, 1))


def test_single_bound_is_rejected():
    with pytest.raises(ValueError, match="together"):
        resolve_period(start=date(2025, 2, 1))


def test_unknown_period_type_is_rejected():
    with pytest.raises(ValueError, match="Unknown period type"):
        resolve_period(period_type="week", today=TODAY)


def test_bounds_cover_whole_end_day():
    period = ReportPeriod(start=date(2025, 1, 1), end=date(2025, 1, 31), name="January 2025")
    start, end = period.bounds()
    assert start == datetime(2025, 1, 1)
    assert end == datetime(2025, 2, 1)
    assert period.contains(datetime(2025, 1, 31, 23, 59))
    assert not period.contains(datetime(2025, 2, 1))


def test_previous_period_has_same_length():
    period = ReportPeriod(start=date(2025, 3, 1), end=date(2025, 3, 31), name="March 2025")
    prev = previous_period(period)
    assert prev.end == date(2025, 2, 28)
    assert prev.days == 31
    assert prev.start == date(2025, 1, 29)
