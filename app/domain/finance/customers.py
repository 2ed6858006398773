"""Customer economics: LTV, CAC, repeat rate, break-even ROAS.

Customers are identified by lower-cased email. Per-order revenue uses
order_revenue_ex_vat, the same function the P&L uses.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from app.domain.finance.cogs import resolve_line_cost
from app.domain.finance.money import round_currency, round_pct, round_ratio, safe_div
from app.domain.finance.period import ReportPeriod
from app.domain.finance.pnl import order_revenue_ex_vat
from app.domain.finance.types import AdSpendRow, Order

# Statuses excluded from customer analysis
EXCLUDED_CUSTOMER_STATUSES = frozenset({"refunded", "voided"})

DEFAULT_FEE_ESTIMATE_PCT = 0.03
DEFAULT_SHIPPING_ESTIMATE_PCT = 0.05
DEFAULT_BREAK_EVEN_ROAS = 2.0


def is_customer_order(order: Order) -> bool:
    return order.cancelled_at is None and order.financial_status not in EXCLUDED_CUSTOMER_STATUSES


def customer_key(email: str | None) -> str | None:
    if not email:
        return None
    key = email.strip().lower()
    return key or None


@dataclass
class _CustomerStats:
    first_order_at: datetime
    orders: int = 0
    revenue: float = 0.0


@dataclass(frozen=True)
class Insight:
    type: str  # success | warning | info
    message: str


@dataclass
class CustomerMetrics:
    period: ReportPeriod
    total_customers_all_time: int = 0
    customers_in_period: int = 0
    new_customers: int = 0
    returning_customers: int = 0
    customers_with_multiple_orders: int = 0
    repeat_rate: float = 0.0
    new_vs_returning_ratio: float = 0.0
    avg_orders_per_customer: float = 0.0
    aov: float = 0.0
    cac: float = 0.0
    ad_spend: float = 0.0
    ad_revenue: float = 0.0
    ltv: float = 0.0
    ltv_cac_ratio: float = 0.0
    total_revenue_all_time: float = 0.0
    period_revenue: float = 0.0
    break_even_roas_new_customers: float = DEFAULT_BREAK_EVEN_ROAS
    current_roas: float = 0.0
    insights: list[Insight] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": {
                "total_customers_all_time": self.total_customers_all_time,
                "customers_in_period": self.customers_in_period,
                "new_customers": self.new_customers,
                "returning_customers": self.returning_customers,
                "customers_with_multiple_orders": self.customers_with_multiple_orders,
                "repeat_rate": round_pct(self.repeat_rate),
                "new_vs_returning_ratio": round_pct(self.new_vs_returning_ratio),
                "avg_orders_per_customer": round_ratio(self.avg_orders_per_customer),
                "aov": round_currency(self.aov),
                "cac": round_currency(self.cac),
                "ad_spend": round_currency(self.ad_spend),
                "ltv": round_currency(self.ltv),
                "ltv_cac_ratio": round_ratio(self.ltv_cac_ratio),
                "total_revenue_all_time": round_currency(self.total_revenue_all_time),
                "period_revenue": round_currency(self.period_revenue),
                "break_even_roas_new_customers": round_ratio(self.break_even_roas_new_customers),
                "current_roas": round_ratio(self.current_roas),
                "ad_revenue": round_currency(self.ad_revenue),
            },
            "period": {
                "start": self.period.start.isoformat(),
                "end": self.period.end.isoformat(),
            },
            "insights": [{"type": i.type, "message": i.message} for i in self.insights],
        }


def break_even_roas(
    period_orders: Iterable[Order],
    *,
    fee_estimate_pct: float = DEFAULT_FEE_ESTIMATE_PCT,
    shipping_estimate_pct: float = DEFAULT_SHIPPING_ESTIMATE_PCT,
    default: float = DEFAULT_BREAK_EVEN_ROAS,
) -> float:
    """Break-even ROAS from the contribution margin ratio of period orders.

    variable cost ratio = (COGS + estimated fees + estimated shipping) / revenue ex VAT
    break-even ROAS = 1 / (1 - variable cost ratio)

    Fees and shipping are estimated as shares of revenue ex VAT. Returns
    default when revenue is not positive or the margin ratio is not positive.
    """
    revenue = 0.0
    cogs = 0.0
    for order in period_orders:
        revenue += order_revenue_ex_vat(order)
        cogs += sum(resolve_line_cost(item, order.processed_at).total_cost for item in order.line_items)
        cogs -= sum(r.cogs_reversed for r in order.refunds)

    if revenue <= 0:
        return default

    variable_costs = cogs + revenue * fee_estimate_pct + revenue * shipping_estimate_pct
    margin_ratio = 1.0 - variable_costs / revenue
    if margin_ratio <= 0:
        return default
    return 1.0 / margin_ratio


def generate_insights(
    *, ltv_cac_ratio: float, repeat_rate: float, cac: float, new_customers: int, avg_orders_per_customer: float
) -> list[Insight]:
    """Presentation hints from categorical thresholds."""
    insights: list[Insight] = []

    if ltv_cac_ratio >= 3:
        insights.append(
            Insight(
                "success",
                f"Excellent LTV:CAC ratio ({ltv_cac_ratio:.1f}:1). Customers are worth "
                f"{ltv_cac_ratio:.1f}x what it costs to acquire them.",
            )
        )
    elif ltv_cac_ratio >= 1:
        insights.append(
            Insight("warning", f"LTV:CAC ratio is {ltv_cac_ratio:.1f}:1. Aim for at least 3:1 for sustainable growth.")
        )
    elif ltv_cac_ratio > 0:
        insights.append(
            Insight(
                "warning",
                f"LTV:CAC ratio below 1 ({ltv_cac_ratio:.2f}:1). Every new customer loses money.",
            )
        )

    if repeat_rate >= 30:
        insights.append(Insight("success", f"Strong repeat purchase rate ({repeat_rate:.0f}%). Customers come back."))
    elif repeat_rate < 15 and avg_orders_per_customer < 1.5:
        insights.append(
            Insight(
                "info",
                f"Low repeat purchase rate ({repeat_rate:.0f}%). Consider email marketing or a loyalty program.",
            )
        )

    if new_customers == 0 and cac == 0:
        insights.append(Insight("info", "No new customers this period. Consider increasing the ad budget."))

    return insights


def compute_customer_metrics(
    all_time_orders: Sequence[Order],
    period_orders: Sequence[Order],
    period: ReportPeriod,
    ad_spend_rows: Iterable[AdSpendRow],
    *,
    fee_estimate_pct: float = DEFAULT_FEE_ESTIMATE_PCT,
    shipping_estimate_pct: float = DEFAULT_SHIPPING_ESTIMATE_PCT,
    default_break_even_roas: float = DEFAULT_BREAK_EVEN_ROAS,
) -> CustomerMetrics:
    """Compute customer acquisition and lifetime value metrics.

    Args:
        all_time_orders: Every customer order of the team (for LTV and first orders)
        period_orders: Customer orders processed inside period
        period: Report period
        ad_spend_rows: Ad spend rows inside period

    Returns:
        CustomerMetrics with unrounded figures; to_dict() rounds

    Notes:
        - LTV = all-time revenue ex VAT / all-time distinct customers
        - CAC = period ad spend / new customers (0 without new customers)
        - A customer is new when their globally first order falls in period
        - Orders failing is_customer_order are skipped in both lists

    """
    all_time_orders = [o for o in all_time_orders if is_customer_order(o)]
    period_orders = [o for o in period_orders if is_customer_order(o)]

    customers: dict[str, _CustomerStats] = {}
    for order in all_time_orders:
        key = customer_key(order.customer_email)
        if key is None:
            continue
        stats = customers.get(key)
        if stats is None:
            stats = _CustomerStats(first_order_at=order.processed_at)
            customers[key] = stats
        elif order.processed_at < stats.first_order_at:
            stats.first_order_at = order.processed_at
        stats.orders += 1
        stats.revenue += order_revenue_ex_vat(order)

    period_customers: set[str] = set()
    new_customers: set[str] = set()
    returning_customers: set[str] = set()
    period_revenue = 0.0

    for order in period_orders:
        key = customer_key(order.customer_email)
        if key is None:
            continue
        period_customers.add(key)
        period_revenue += order_revenue_ex_vat(order)
        stats = customers.get(key)
        if stats is None:
            continue
        if period.contains(stats.first_order_at):
            new_customers.add(key)
        else:
            returning_customers.add(key)

    ad_spend = 0.0
    ad_revenue = 0.0
    for row in ad_spend_rows:
        ad_spend += row.spend
        ad_revenue += row.revenue

    total_customers = len(customers)
    total_orders = sum(s.orders for s in customers.values())
    total_revenue = sum(s.revenue for s in customers.values())
    repeaters = sum(1 for s in customers.values() if s.orders > 1)

    repeat_rate = safe_div(repeaters, total_customers) * 100.0
    avg_orders = safe_div(total_orders, total_customers)
    ltv = safe_div(total_revenue, total_customers)
    cac = safe_div(ad_spend, len(new_customers))
    ltv_cac = safe_div(ltv, cac)

    return CustomerMetrics(
        period=period,
        total_customers_all_time=total_customers,
        customers_in_period=len(period_customers),
        new_customers=len(new_customers),
        returning_customers=len(returning_customers),
        customers_with_multiple_orders=repeaters,
        repeat_rate=repeat_rate,
        new_vs_returning_ratio=safe_div(len(new_customers), len(period_customers)) * 100.0,
        avg_orders_per_customer=avg_orders,
        aov=safe_div(total_revenue, total_orders),
        cac=cac,
        ad_spend=ad_spend,
        ad_revenue=ad_revenue,
        ltv=ltv,
        ltv_cac_ratio=ltv_cac,
        total_revenue_all_time=total_revenue,
        period_revenue=period_revenue,
        break_even_roas_new_customers=break_even_roas(
            period_orders,
            fee_estimate_pct=fee_estimate_pct,
            shipping_estimate_pct=shipping_estimate_pct,
            default=default_break_even_roas,
        ),
        current_roas=safe_div(ad_revenue, ad_spend),
        insights=generate_insights(
            ltv_cac_ratio=ltv_cac,
            repeat_rate=repeat_rate,
            cac=cac,
            new_customers=len(new_customers),
            avg_orders_per_customer=avg_orders,
        ),
    )
