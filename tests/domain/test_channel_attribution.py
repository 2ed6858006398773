"""Tests for per-platform ad attribution."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.domain.finance.channels import channel_attribution, platform_display_name
from app.domain.finance.period import ReportPeriod
from app.domain.finance.pnl import PnLInput, compute_pnl
from app.domain.finance.types import AdSpendRow, CostEntry, LineItem, Order, ShippingTier, Transaction

JANUARY = ReportPeriod(start=date(2025, 1, 1), end=date(2025, 1, 31), name="January 2025")
TIERS = {1: [ShippingTier(1, 2, 32.0), ShippingTier(3, None, 45.0, 5.0)]}
COSTS = (CostEntry(cost_price=100.0, effective_from=datetime(2024, 12, 1)),)


def _report(orders=None):
    if orders is None:
        orders = [
            Order(
                id=1,
                store_id=1,
                processed_at=datetime(2025, 1, 15, 12, 0),
                subtotal_price=400.0,
                total_shipping_price=50.0,
                total_tax=112.5,
                line_items=(LineItem(quantity=2, price=200.0, variant_id=7, cost_history=COSTS),),
                transactions=(Transaction(gateway="stripe", amount=562.5),),
            )
        ]
    return compute_pnl(PnLInput(period=JANUARY, orders=orders, shipping_tiers=TIERS))


def _row(platform, spend, revenue, day=12, **extra):
    return AdSpendRow(platform=platform, spend_date=date(2025, 1, day), spend=spend, revenue=revenue, **extra)


def test_channels_are_judged_against_pnl_break_even():
    ad_spend = [
        _row("GOOGLE", 60.0, 180.0, impressions=6000, clicks=120, conversions=6),
        _row("GOOGLE", 40.0, 120.0, day=13, impressions=4000, clicks=80, conversions=4),
        _row("META", 150.0, 200.0),
    ]

    data = channel_attribution(_report(), ad_spend).to_dict()

    assert data["break_even_roas"] == 2.26
    assert data["variable_cost_ratio"] == 0.56
    assert [c["platform"] for c in data["channels"]] == ["META", "GOOGLE"]

    meta, google = data["channels"]
    assert google["name"] == "Google Ads"
    assert google["spend"] == 100.0
    assert google["roas"] == 3.0
    assert google["is_profitable"] is True
    assert google["profit"] == 32.46
    assert google["cpc"] == 0.5
    assert google["cpm"] == 10.0
    assert google["ctr"] == 2.0
    assert google["conversion_rate"] == 5.0

    assert meta["roas"] == 1.33
    assert meta["is_profitable"] is False
    assert meta["profit"] == -61.69

    assert data["totals"]["spend"] == 250.0
    assert data["totals"]["roas"] == 2.0
    assert data["totals"]["is_profitable"] is False


def test_no_revenue_means_no_break_even_and_nothing_profitable():
    attribution = channel_attribution(_report(orders=[]), [_row("GOOGLE", 10.0, 100.0)])

    assert attribution.break_even_roas is None
    assert attribution.variable_cost_ratio == 0.0
    assert attribution.is_profitable(attribution.channels[0]) is False
    assert attribution.to_dict()["break_even_roas"] is None


def test_without_ad_spend_totals_are_zero():
    data = channel_attribution(_report(), []).to_dict()

    assert data["channels"] == []
    assert data["totals"]["spend"] == 0.0
    assert data["totals"]["roas"] == 0.0
    assert data["totals"]["is_profitable"] is False


@pytest.mark.parametrize(
    ("platform", "expected"),
    [("FACEBOOK", "Facebook Ads"), ("tiktok", "TikTok Ads"), ("LINKEDIN", "LINKEDIN")],
)
def test_platform_display_name(platform, expected):
    assert platform_display_name(platform) == expected
