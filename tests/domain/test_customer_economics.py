"""Tests for customer economics (LTV, CAC, repeat rate, break-even ROAS)."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.domain.finance.customers import (
    break_even_roas,
    compute_customer_metrics,
    customer_key,
    generate_insights,
    is_customer_order,
)
from app.domain.finance.period import ReportPeriod
from app.domain.finance.pnl import order_revenue_ex_vat
from app.domain.finance.types import AdSpendRow, CostEntry, LineItem, Order, Refund

JANUARY = ReportPeriod(start=date(2025, 1, 1), end=date(2025, 1, 31), name="January 2025")


def _order(order_id: int, email: str | None, processed_at: datetime, subtotal: float, **kwargs) -> Order:
    return Order(
        id=order_id,
        store_id=1,
        processed_at=processed_at,
        subtotal_price=subtotal,
        customer_email=email,
        **kwargs,
    )


def test_ltv_cac_scenario():
    returning = _order(1, "old@example.com", datetime(2024, 6, 1), 1000.0)
    new = _order(2, "new@example.com", datetime(2025, 1, 10), 3000.0)
    ad_spend = [AdSpendRow(platform="meta", spend_date=date(2025, 1, 5), spend=500.0, revenue=1500.0)]

    metrics = compute_customer_metrics([returning, new], [new], JANUARY, ad_spend)

    assert metrics.total_customers_all_time == 2
    assert metrics.new_customers == 1
    assert metrics.returning_customers == 0
    assert metrics.ltv == pytest.approx(2000.0)
    assert metrics.cac == pytest.approx(500.0)
    assert metrics.ltv_cac_ratio == pytest.approx(4.0)
    assert metrics.current_roas == pytest.approx(3.0)

    data = metrics.to_dict()
    assert data["metrics"]["ltv_cac_ratio"] == 4.0
    assert data["period"] == {"start": "2025-01-01", "end": "2025-01-31"}
    assert data["insights"][0]["type"] == "success"


def test_customers_are_matched_case_insensitively():
    first = _order(1, "Alice@Example.com", datetime(2024, 12, 20), 100.0)
    second = _order(2, " alice@example.com", datetime(2025, 1, 5), 200.0)

    metrics = compute_customer_metrics([second, first], [second], JANUARY, [])

    assert metrics.total_customers_all_time == 1
    assert metrics.customers_with_multiple_orders == 1
    assert metrics.repeat_rate == 100.0
    assert metrics.returning_customers == 1
    assert metrics.new_customers == 0
    assert metrics.avg_orders_per_customer == 2.0
    assert metrics.aov == pytest.approx(150.0)


def test_orders_without_email_are_ignored():
    anonymous = _order(1, None, datetime(2025, 1, 5), 100.0)
    metrics = compute_customer_metrics([anonymous], [anonymous], JANUARY, [])
    assert metrics.total_customers_all_time == 0
    assert metrics.ltv == 0.0


def test_cac_is_zero_without_new_customers():
    metrics = compute_customer_metrics(
        [], [], JANUARY, [AdSpendRow(platform="google", spend_date=date(2025, 1, 2), spend=250.0)]
    )
    assert metrics.cac == 0.0
    assert metrics.ltv_cac_ratio == 0.0
    assert metrics.ad_spend == 250.0


def test_customer_revenue_uses_pnl_revenue_formula():
    order = _order(
        1,
        "a@example.com",
        datetime(2025, 1, 5),
        400.0,
        total_shipping_price=50.0,
        total_discounts=20.0,
        total_tax=107.5,
        refunds=(Refund(amount=30.0),),
    )
    metrics = compute_customer_metrics([order], [order], JANUARY, [])
    assert metrics.total_revenue_all_time == pytest.approx(order_revenue_ex_vat(order))
    assert metrics.period_revenue == pytest.approx(400.0)


def test_break_even_roas_from_contribution_margin():
    costs = (CostEntry(cost_price=40.0, effective_from=datetime(2024, 1, 1)),)
    order = _order(
        1,
        "a@example.com",
        datetime(2025, 1, 5),
        100.0,
        line_items=(LineItem(quantity=1, price=100.0, variant_id=1, cost_history=costs),),
    )
    # variable cost ratio = (40 + 3 + 5) / 100
    assert break_even_roas([order]) == pytest.approx(1 / 0.52)


def test_break_even_roas_defaults_when_not_computable():
    assert break_even_roas([]) == 2.0
    costs = (CostEntry(cost_price=500.0, effective_from=datetime(2024, 1, 1)),)
    loss = _order(
        1,
        "a@example.com",
        datetime(2025, 1, 5),
        100.0,
        line_items=(LineItem(quantity=1, price=100.0, variant_id=1, cost_history=costs),),
    )
    assert break_even_roas([loss]) == 2.0
    assert break_even_roas([loss], default=3.5) == 3.5


def test_insights_thresholds():
    low = generate_insights(ltv_cac_ratio=0.5, repeat_rate=10.0, cac=100.0, new_customers=3, avg_orders_per_customer=1.1)
    assert [i.type for i in low] == ["warning", "info"]
    assert "below 1" in low[0].message

    mid = generate_insights(ltv_cac_ratio=2.0, repeat_rate=35.0, cac=50.0, new_customers=2, avg_orders_per_customer=2.0)
    assert [i.type for i in mid] == ["warning", "success"]

    idle = generate_insights(ltv_cac_ratio=0.0, repeat_rate=20.0, cac=0.0, new_customers=0, avg_orders_per_customer=1.0)
    assert [i.message for i in idle] == ["No new customers this period. Consider increasing the ad budget."]


def test_customer_order_filter_and_key():
    assert is_customer_order(_order(1, "a@x.se", datetime(2025, 1, 1), 1.0))
    assert not is_customer_order(_order(1, "a@x.se", datetime(2025, 1, 1), 1.0, financial_status="refunded"))
    assert not is_customer_order(
        _order(1, "a@x.se", datetime(2025, 1, 1), 1.0, cancelled_at=datetime(2025, 1, 2))
    )
    assert customer_key("  Bob@Shop.SE ") == "bob@shop.se"
    assert customer_key("   ") is None


def test_voided_and_cancelled_orders_do_not_count_as_customers():
    kept = _order(1, "a@x.se", datetime(2025, 1, 3), 100.0)
    voided = _order(2, "b@x.se", datetime(2025, 1, 4), 900.0, financial_status="voided")
    cancelled = _order(3, "c@x.se", datetime(2025, 1, 5), 900.0, cancelled_at=datetime(2025, 1, 6))
    orders = [kept, voided, cancelled]

    metrics = compute_customer_metrics(orders, orders, JANUARY, [])

    assert metrics.total_customers_all_time == 1
    assert metrics.customers_in_period == 1
    assert metrics.period_revenue == pytest.approx(100.0)
