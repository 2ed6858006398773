"""Tests for historical cost attribution (pure functions)."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from app.domain.finance.cogs import (
    CostHistory,
    as_utc_datetime,
    cogs_coverage,
    resolve_cost_at_date,
    resolve_line_cost,
)
from app.domain.finance.types import CostEntry, LineItem, Order

HISTORY = (
    CostEntry(cost_price=90.0, effective_from=datetime(2025, 3, 1), effective_to=None),
    CostEntry(cost_price=70.0, effective_from=datetime(2025, 1, 1), effective_to=datetime(2025, 2, 1)),
    CostEntry(cost_price=80.0, effective_from=datetime(2025, 2, 1), effective_to=datetime(2025, 3, 1)),
)


def test_resolves_latest_entry_not_after_date():
    assert resolve_cost_at_date(HISTORY, datetime(2025, 1, 15)) == 70.0
    assert resolve_cost_at_date(HISTORY, datetime(2025, 2, 20)) == 80.0
    assert resolve_cost_at_date(HISTORY, datetime(2025, 6, 1)) == 90.0


def test_entry_effective_exactly_at_date_applies():
    assert resolve_cost_at_date(HISTORY, datetime(2025, 2, 1)) == 80.0


def test_date_before_first_entry_has_no_cost():
    assert resolve_cost_at_date(HISTORY, datetime(2024, 12, 31)) is None


def test_empty_history_has_no_cost():
    assert resolve_cost_at_date((), datetime(2025, 1, 1)) is None


def test_input_order_does_not_matter():
    reversed_history = tuple(reversed(HISTORY))
    for day in range(0, 120, 7):
        target = datetime(2025, 1, 1) + timedelta(days=day)
        assert resolve_cost_at_date(reversed_history, target) == resolve_cost_at_date(HISTORY, target)


def test_tie_on_effective_from_prefers_open_entry():
    start = datetime(2025, 1, 1)
    history = (
        CostEntry(cost_price=50.0, effective_from=start, effective_to=None),
        CostEntry(cost_price=40.0, effective_from=start, effective_to=datetime(2025, 1, 10)),
    )
    assert resolve_cost_at_date(history, datetime(2025, 1, 5)) == 50.0
    assert resolve_cost_at_date(tuple(reversed(history)), datetime(2025, 1, 5)) == 50.0


def test_plain_dates_and_aware_datetimes_are_normalized():
    history = (CostEntry(cost_price=10.0, effective_from=date(2025, 1, 1)),)
    assert resolve_cost_at_date(history, date(2025, 1, 1)) == 10.0
    aware = datetime(2025, 1, 1, 0, 30, tzinfo=timezone(timedelta(hours=2)))  # 2024-12-31 22:30 UTC
    assert as_utc_datetime(aware) == datetime(2024, 12, 31, 22, 30)
    assert resolve_cost_at_date(history, aware) is None


def test_cost_history_entry_lookup():
    lookup = CostHistory(HISTORY)
    assert len(lookup) == 3
    assert lookup.entry_at(datetime(2025, 2, 2)).cost_price == 80.0
    assert lookup.cost_at(datetime(2020, 1, 1)) is None


def test_line_cost_multiplies_by_quantity():
    item = LineItem(quantity=3, price=200.0, variant_id=1, cost_history=HISTORY)
    cost = resolve_line_cost(item, datetime(2025, 1, 20))
    assert cost.matched
    assert cost.unit_cost == 70.0
    assert cost.total_cost == 210.0


def test_line_without_variant_or_cost_is_unmatched():
    no_variant = LineItem(quantity=1, price=100.0)
    too_early = LineItem(quantity=1, price=100.0, variant_id=1, cost_history=HISTORY)

    assert resolve_line_cost(no_variant, datetime(2025, 1, 20)).matched is False
    missing = resolve_line_cost(too_early, datetime(2024, 6, 1))
    assert missing.matched is False
    assert missing.total_cost == 0.0


def test_cogs_coverage_reports_missing_variants_and_revenue_share():
    order = Order(
        id=1,
        store_id=1,
        processed_at=datetime(2025, 1, 20),
        line_items=(
            LineItem(quantity=1, price=300.0, variant_id=1, cost_history=HISTORY, sku="A"),
            LineItem(quantity=1, price=100.0, variant_id=2, sku="B", title="Mug"),
        ),
    )
    second = Order(
        id=2,
        store_id=1,
        processed_at=datetime(2025, 1, 21),
        line_items=(LineItem(quantity=2, price=50.0, variant_id=2, sku="B", title="Mug"),),
    )

    coverage = cogs_coverage([order, second])

    assert coverage.total_lines == 3
    assert coverage.matched_lines == 1
    assert coverage.missing_lines == 2
    assert coverage.match_rate == 33.3
    assert coverage.revenue_with_cogs_pct == 60.0  # 300 of 500
    assert [(v.variant_id, v.sku, v.line_count) for v in coverage.missing_variants] == [(2, "B", 2)]


def test_cogs_coverage_without_lines_is_complete():
    coverage = cogs_coverage([])
    assert coverage.match_rate == 100.0
    assert coverage.missing_variants == []
