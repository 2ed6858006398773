"""Product-level profitability.

Each line is charged its own historical cost. Order-level refunds, reversed
COGS and payment fees are spread over the order's lines by their share of
the order's line revenue, so per-product figures add up to the order.
Shipping revenue, order discounts and carrier cost stay at order level and
are not attributed to products.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from app.domain.finance.cogs import resolve_line_cost
from app.domain.finance.fees import DEFAULT_FEE_SCHEDULE
from app.domain.finance.money import round_currency, round_pct, safe_div, safe_margin
from app.domain.finance.pnl import is_pnl_order, order_economics
from app.domain.finance.types import FeeSchedule, LineItem, Order


@dataclass
class ProfitStats:
    revenue: float = 0.0
    refunds: float = 0.0
    cogs: float = 0.0
    payment_fees: float = 0.0
    quantity: int = 0
    lines_total: int = 0
    lines_missing_cost: int = 0
    order_ids: set[int] = field(default_factory=set)

    @property
    def profit(self) -> float:
        return self.revenue - self.refunds - self.cogs - self.payment_fees

    @property
    def cogs_complete(self) -> bool:
        return self.lines_missing_cost == 0

    @property
    def margin(self) -> float | None:
        """Profit margin in percent; None while any line lacks a cost."""
        if not self.cogs_complete:
            return None
        return safe_margin(self.profit, self.revenue)

    def add(self, line: _LineShare) -> None:
        self.revenue += line.revenue
        self.refunds += line.refunds
        self.cogs += line.cogs
        self.payment_fees += line.payment_fees
        self.quantity += line.item.quantity
        self.lines_total += 1
        if not line.cost_matched:
            self.lines_missing_cost += 1
        self.order_ids.add(line.order_id)

    def to_dict(self) -> dict[str, Any]:
        margin = self.margin
        return {
            "revenue": round_currency(self.revenue),
            "refunds": round_currency(self.refunds),
            "cogs": round_currency(self.cogs),
            "payment_fees": round_currency(self.payment_fees),
            "profit": round_currency(self.profit),
            "margin": round_pct(margin) if margin is not None else None,
            "orders": len(self.order_ids),
            "quantity": self.quantity,
            "cogs_complete": self.cogs_complete,
        }


@dataclass
class ProductProfit(ProfitStats):
    product_id: int = 0
    name: str = ""
    sku: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"product_id": self.product_id, "name": self.name, "sku": self.sku, **super().to_dict()}


@dataclass
class VariantProfit(ProfitStats):
    variant_id: int | None = None
    name: str = "Standard"
    sku: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"variant_id": self.variant_id, "name": self.name, "sku": self.sku, **super().to_dict()}


@dataclass
class ProductDetail:
    product: ProductProfit
    variants: list[VariantProfit] = field(default_factory=list)
    daily: dict[date, ProfitStats] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        p = self.product
        data = p.to_dict()
        data["avg_price"] = round_currency(safe_div(p.revenue, p.quantity))
        data["refund_rate"] = round_pct(safe_div(p.refunds, p.revenue) * 100.0)
        data["variants"] = [v.to_dict() for v in self.variants]
        data["daily"] = [
            {
                "date": day.isoformat(),
                "revenue": round_currency(stats.revenue),
                "profit": round_currency(stats.profit),
                "orders": len(stats.order_ids),
            }
            for day, stats in sorted(self.daily.items())
        ]
        return data


@dataclass(frozen=True)
class _LineShare:
    order_id: int
    day: date
    item: LineItem
    revenue: float
    refunds: float
    cogs: float
    payment_fees: float
    cost_matched: bool


def _line_shares(
    orders: Iterable[Order],
    fee_schedules: Mapping[int, Mapping[str, FeeSchedule]],
    default_fee: FeeSchedule,
) -> Iterator[_LineShare]:
    """Yield every product line of reportable orders with its allocated amounts."""
    for order in orders:
        if not is_pnl_order(order) or not order.line_items:
            continue
        econ = order_economics(order, (), fee_schedules.get(order.store_id, {}), default_fee)
        lines_revenue = sum(item.line_revenue for item in order.line_items)

        for item in order.line_items:
            if item.product_id is None:
                continue
            share = safe_div(item.line_revenue, lines_revenue)
            cost = resolve_line_cost(item, order.processed_at)
            yield _LineShare(
                order_id=order.id,
                day=order.processed_at.date(),
                item=item,
                revenue=item.line_revenue,
                refunds=econ.refunds * share,
                cogs=cost.total_cost - econ.cogs_reversed * share,
                payment_fees=econ.total_payment_fees * share,
                cost_matched=cost.matched,
            )


def product_profitability(
    orders: Iterable[Order],
    fee_schedules: Mapping[int, Mapping[str, FeeSchedule]],
    default_fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    *,
    limit: int | None = None,
) -> list[ProductProfit]:
    """Rank products by profit.

    Args:
        orders: Orders of the period; non-reportable ones are skipped
        fee_schedules: Fee schedules keyed by store id, then gateway
        default_fee: Schedule for gateways without a merchant config
        limit: Keep only the first `limit` products

    Returns:
        Products sorted by profit, highest first. Lines without a product
        (custom items, deleted variants) are not attributed.

    """
    products: dict[int, ProductProfit] = {}
    for line in _line_shares(orders, fee_schedules, default_fee):
        item = line.item
        product = products.get(item.product_id)
        if product is None:
            product = products[item.product_id] = ProductProfit(
                product_id=item.product_id,
                name=item.product_title or item.title,
            )
        if product.sku is None and item.sku:
            product.sku = item.sku
        product.add(line)

    ranked = sorted(products.values(), key=lambda p: (-p.profit, p.product_id))
    return ranked[:limit] if limit is not None else ranked


def product_detail(
    product_id: int,
    orders: Iterable[Order],
    fee_schedules: Mapping[int, Mapping[str, FeeSchedule]],
    default_fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> ProductDetail:
    """Profit of one product with per-variant and per-day breakdowns.

    Variants are sorted by revenue, highest first.
    """
    product = ProductProfit(product_id=product_id)
    variants: dict[int | None, VariantProfit] = {}
    daily: dict[date, ProfitStats] = {}

    for line in _line_shares(orders, fee_schedules, default_fee):
        item = line.item
        if item.product_id != product_id:
            continue
        if not product.name:
            product.name = item.product_title or item.title
        if product.sku is None and item.sku:
            product.sku = item.sku
        product.add(line)

        variant = variants.get(item.variant_id)
        if variant is None:
            variant = variants[item.variant_id] = VariantProfit(
                variant_id=item.variant_id,
                name=item.variant_title or item.title or "Standard",
                sku=item.sku,
            )
        variant.add(line)
        daily.setdefault(line.day, ProfitStats()).add(line)

    return ProductDetail(
        product=product,
        variants=sorted(variants.values(), key=lambda v: -v.revenue),
        daily=daily,
    )
