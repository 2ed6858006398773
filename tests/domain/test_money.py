"""Tests for rounding and safe-division helpers."""

from __future__ import annotations

import pytest

from app.domain.finance.money import (
    round_currency,
    round_pct,
    round_ratio,
    safe_change_pct,
    safe_div,
    safe_margin,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.675, 2.68), (19.3125, 19.31), (0.005, 0.01), (-1.005, -1.01), (10.0, 10.0)],
)
def test_round_currency_half_up(value, expected):
    assert round_currency(value) == expected


def test_round_pct_and_ratio():
    assert round_pct(55.55) == 55.6
    assert round_pct(44.15) == 44.2
    assert round_ratio(3.14159) == 3.14


def test_margin_is_zero_without_revenue():
    assert safe_margin(-100.0, 0.0) == 0.0
    assert safe_margin(100.0, -5.0) == 0.0
    assert safe_margin(25.0, 100.0) == 25.0


def test_change_pct_and_division_guard_zero():
    assert safe_change_pct(150.0, 100.0) == 50.0
    assert safe_change_pct(150.0, 0.0) == 0.0
    assert safe_div(1.0, 0.0) == 0.0
    assert safe_div(9.0, 3.0) == 3.0
