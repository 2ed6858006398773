"""Tests for product-level profitability."""

from __future__ import annotations

from datetime import datetime

from app.domain.finance.products import product_detail, product_profitability
from app.domain.finance.types import CostEntry, LineItem, Order, Refund, Transaction

COSTS = (CostEntry(cost_price=100.0, effective_from=datetime(2024, 12, 1)),)


def _shirt(quantity=2, price=200.0, variant_id=7, variant_title="Small"):
    return LineItem(
        quantity=quantity,
        price=price,
        variant_id=variant_id,
        title="T-shirt",
        sku="TS-1",
        product_id=10,
        product_title="T-shirt",
        variant_title=variant_title,
        cost_history=COSTS,
    )


MUG = LineItem(quantity=1, price=100.0, variant_id=8, title="Mug", product_id=20, product_title="Mug")


def _order(order_id, items, day=15, **overrides):
    values = dict(
        id=order_id,
        store_id=1,
        processed_at=datetime(2025, 1, day, 12, 0),
        line_items=tuple(items),
    )
    values.update(overrides)
    return Order(**values)


def test_order_amounts_are_allocated_by_line_revenue_share():
    order = _order(
        1,
        [_shirt(), MUG],
        refunds=(Refund(amount=50.0),),
        transactions=(Transaction(gateway="stripe", amount=600.0),),
    )

    shirt, mug = product_profitability([order], {})

    assert shirt.product_id == 10
    assert shirt.to_dict() == {
        "product_id": 10,
        "name": "T-shirt",
        "sku": "TS-1",
        "revenue": 400.0,
        "refunds": 40.0,
        "cogs": 200.0,
        "payment_fees": 16.32,
        "profit": 143.68,
        "margin": 35.9,
        "orders": 1,
        "quantity": 2,
        "cogs_complete": True,
    }
    assert mug.to_dict()["payment_fees"] == 4.08
    assert mug.to_dict()["profit"] == 85.92


def test_margin_is_unknown_while_a_line_lacks_cost():
    (mug,) = product_profitability([_order(1, [MUG])], {})

    assert mug.cogs_complete is False
    assert mug.margin is None
    assert mug.to_dict()["margin"] is None


def test_ranking_skips_custom_lines_and_non_reportable_orders():
    custom = LineItem(quantity=1, price=999.0, title="Custom item")
    orders = [
        _order(1, [_shirt(), custom]),
        _order(2, [MUG]),
        _order(3, [_shirt(quantity=5)], cancelled_at=datetime(2025, 1, 16)),
        _order(4, [MUG], financial_status="pending"),
    ]

    ranked = product_profitability(orders, {})

    assert [p.product_id for p in ranked] == [10, 20]
    assert ranked[0].quantity == 2
    assert ranked[1].to_dict()["orders"] == 1
    assert [p.product_id for p in product_profitability(orders, {}, limit=1)] == [10]


def test_reversed_cogs_reduce_product_cost():
    order = _order(1, [_shirt()], refunds=(Refund(amount=200.0, cogs_reversed=100.0),))

    (shirt,) = product_profitability([order], {})

    assert shirt.cogs == 100.0
    assert shirt.profit == 100.0


def test_product_detail_breaks_down_variants_and_days():
    orders = [
        _order(1, [_shirt(), MUG]),
        _order(
            2,
            [_shirt(quantity=1, price=300.0, variant_id=9, variant_title="Large")],
            day=16,
            refunds=(Refund(amount=70.0),),
        ),
    ]

    data = product_detail(10, orders, {}).to_dict()

    assert data["name"] == "T-shirt"
    assert data["revenue"] == 700.0
    assert data["quantity"] == 3
    assert data["orders"] == 2
    assert data["avg_price"] == 233.33
    assert data["refund_rate"] == 10.0
    assert [(v["variant_id"], v["name"], v["revenue"]) for v in data["variants"]] == [
        (7, "Small", 400.0),
        (9, "Large", 300.0),
    ]
    assert data["daily"] == [
        {"date": "2025-01-15", "revenue": 400.0, "profit": 200.0, "orders": 1},
        {"date": "2025-01-16", "revenue": 300.0, "profit": 130.0, "orders": 1},
    ]


def test_product_detail_without_sales_is_empty():
    data = product_detail(99, [_order(1, [MUG])], {}).to_dict()

    assert data["revenue"] == 0.0
    assert data["avg_price"] == 0.0
    assert data["variants"] == []
    assert data["daily"] == []
