"""Tests for payment gateway fee resolution."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.domain.finance.fees import (
    DEFAULT_FEE_SCHEDULE,
    build_fee_schedules,
    gateway_key,
    normalize_gateway_name,
    resolve_fee,
)
from app.domain.finance.types import FeeSchedule

CONFIGS = {
    "klarna": FeeSchedule(percentage_fee=3.29, fixed_fee=0.0),
    "paypal": FeeSchedule(percentage_fee=3.4, fixed_fee=3.5),
}


def test_platform_calculated_fee_wins():
    fee = resolve_fee("klarna", 1000.0, CONFIGS, platform_fee=12.0, fee_calculated=True)
    assert fee == 12.0


def test_zero_platform_fee_falls_back_to_schedule():
    fee = resolve_fee("klarna", 1000.0, CONFIGS, platform_fee=0.0, fee_calculated=True)
    assert fee == pytest.approx(32.9)


def test_uncalculated_platform_fee_is_ignored():
    fee = resolve_fee("paypal", 100.0, CONFIGS, platform_fee=99.0, fee_calculated=False)
    assert fee == pytest.approx(6.9)


def test_gateway_lookup_is_case_insensitive():
    assert resolve_fee(" PayPal ", 100.0, CONFIGS) == pytest.approx(6.9)


def test_unknown_gateway_uses_default_schedule():
    assert resolve_fee("stripe", 562.5, CONFIGS) == pytest.approx(562.5 * 0.029 + 3.0)
    assert resolve_fee(None, 100.0, {}) == pytest.approx(5.9)


def test_custom_default_schedule():
    default = FeeSchedule(percentage_fee=1.0, fixed_fee=0.0)
    assert resolve_fee("stripe", 200.0, {}, default) == pytest.approx(2.0)


def test_default_schedule_values():
    assert DEFAULT_FEE_SCHEDULE == FeeSchedule(percentage_fee=2.9, fixed_fee=3.0)


def test_gateway_key_and_display_names():
    assert gateway_key("") == "other"
    assert gateway_key("  ") == "other"
    assert gateway_key("Shopify_Payments") == "shopify_payments"
    assert normalize_gateway_name("shopify_payments") == "Shopify Payments"
    assert normalize_gateway_name("PAYPAL") == "PayPal"
    assert normalize_gateway_name(None) == "Other"
    assert normalize_gateway_name("swish") == "Swish"


def test_build_fee_schedules_skips_inactive_rows():
    rows = [
        SimpleNamespace(gateway="Klarna", percentage_fee=3.29, fixed_fee=0, is_active=True),
        SimpleNamespace(gateway="paypal", percentage_fee=3.4, fixed_fee=3.5, is_active=False),
        SimpleNamespace(gateway="swish", percentage_fee=0, fixed_fee=2),
    ]
    schedules = build_fee_schedules(rows)
    assert set(schedules) == {"klarna", "swish"}
    assert schedules["swish"] == FeeSchedule(percentage_fee=0.0, fixed_fee=2.0)
