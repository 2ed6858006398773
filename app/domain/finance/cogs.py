"""Cost of goods sold: time-versioned cost attribution and COGS coverage.

Business logic for:
- Resolving the cost price effective at an order date
- Per-line COGS with matched/missing flags
- Data completeness (share of revenue with known COGS)

NO DATA ACCESS - pure functions only. Cost history is supplied by the caller.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from functools import lru_cache

from app.domain.finance.money import round_pct, safe_div
from app.domain.finance.types import CostEntry, LineItem, Order


def as_utc_datetime(value: date | datetime) -> datetime:
    """Normalize a date or datetime to a naive UTC datetime.

    Plain dates map to midnight. Aware datetimes are converted to UTC first.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


class CostHistory:
    """Sorted cost versions of one variant with binary-search lookup.

    Entries are ordered by effective_from; among equal effective_from the open
    entry (no effective_to) sorts last so it wins the lookup.
    """

    def __init__(self, entries: Iterable[CostEntry]):
        self._entries = sorted(
            entries,
            key=lambda e: (as_utc_datetime(e.effective_from), e.effective_to is None),
        )
        self._starts = [as_utc_datetime(e.effective_from) for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def entry_at(self, target: date | datetime) -> CostEntry | None:
        """Entry with the latest effective_from <= target, or None."""
        idx = bisect_right(self._starts, as_utc_datetime(target))
        if idx == 0:
            return None
        return self._entries[idx - 1]

    def cost_at(self, target: date | datetime) -> float | None:
        entry = self.entry_at(target)
        return entry.cost_price if entry is not None else None


@lru_cache(maxsize=4096)
def _history(entries: tuple[CostEntry, ...]) -> CostHistory:
    return CostHistory(entries)


def resolve_cost_at_date(
    cost_history: Iterable[CostEntry], target: date | datetime
) -> float | None:
    """Resolve the cost price effective at target.

    Args:
        cost_history: Cost entries of one variant, in any order
        target: Order date

    Returns:
        Cost price of the entry with the latest effective_from <= target,
        or None when no entry qualifies (no cost known at that date).

    """
    entries = tuple(cost_history)
    if not entries:
        return None
    return _history(entries).cost_at(target)


@dataclass(frozen=True)
class LineCost:
    unit_cost: float
    total_cost: float
    matched: bool


def resolve_line_cost(item: LineItem, order_date: date | datetime) -> LineCost:
    """COGS of one line item at the order date (0 when no cost is known)."""
    if item.variant_id is None:
        return LineCost(unit_cost=0.0, total_cost=0.0, matched=False)

    unit = resolve_cost_at_date(item.cost_history, order_date)
    if unit is None:
        return LineCost(unit_cost=0.0, total_cost=0.0, matched=False)
    return LineCost(unit_cost=unit, total_cost=unit * item.quantity, matched=True)


@dataclass
class MissingCostVariant:
    variant_id: int | None
    title: str
    sku: str | None
    line_count: int = 0


@dataclass
class CogsCoverage:
    """Data completeness of COGS over a set of orders."""

    total_lines: int = 0
    matched_lines: int = 0
    missing_lines: int = 0
    match_rate: float = 100.0
    revenue_with_cogs_pct: float = 100.0
    missing_variants: list[MissingCostVariant] = field(default_factory=list)


def cogs_coverage(orders: Iterable[Order]) -> CogsCoverage:
    """Compute COGS coverage for orders.

    Lines without a variant or without a cost at the order date count as
    missing. Revenue coverage weighs lines by their discounted line value.
    """
    total_lines = 0
    matched_lines = 0
    line_revenue_total = 0.0
    line_revenue_known = 0.0
    missing: dict[tuple[int | None, str], MissingCostVariant] = {}

    for order in orders:
        for item in order.line_items:
            total_lines += 1
            revenue = item.line_revenue
            line_revenue_total += revenue

            if resolve_line_cost(item, order.processed_at).matched:
                matched_lines += 1
                line_revenue_known += revenue
                continue

            key = (item.variant_id, item.title if item.variant_id is None else "")
            info = missing.get(key)
            if info is None:
                info = MissingCostVariant(variant_id=item.variant_id, title=item.title, sku=item.sku)
                missing[key] = info
            info.line_count += 1

    if total_lines == 0:
        return CogsCoverage()

    revenue_pct = (
        safe_div(line_revenue_known, line_revenue_total) * 100.0 if line_revenue_total > 0 else 100.0
    )

    return CogsCoverage(
        total_lines=total_lines,
        matched_lines=matched_lines,
        missing_lines=total_lines - matched_lines,
        match_rate=round_pct(matched_lines / total_lines * 100.0),
        revenue_with_cogs_pct=round_pct(revenue_pct),
        missing_variants=sorted(missing.values(), key=lambda v: -v.line_count),
    )
