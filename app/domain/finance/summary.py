"""Dashboard summary derived from P&L reports.

The summary never recomputes revenue or costs on its own: headline figures
come from a PnLReport so the dashboard and the P&L statement always agree.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from app.domain.finance.money import round_currency, round_pct, round_ratio, safe_change_pct, safe_div
from app.domain.finance.period import ReportPeriod
from app.domain.finance.pnl import (
    PnLReport,
    coverage_to_dict,
    order_refund_total,
    order_revenue_ex_vat,
    warning_to_dict,
)
from app.domain.finance.types import Order


@dataclass
class DailyPoint:
    day: date
    revenue_ex_vat: float = 0.0
    orders: int = 0
    refunds: float = 0.0


@dataclass(frozen=True)
class Trends:
    revenue_change: float
    profit_change: float
    order_count_change: float
    margin_change: float


@dataclass
class DashboardSummary:
    report: PnLReport
    daily: list[DailyPoint] = field(default_factory=list)
    previous: PnLReport | None = None
    trends: Trends | None = None

    @property
    def roas(self) -> float:
        return safe_div(self.report.opex.ad_revenue, self.report.opex.ad_spend)

    @property
    def break_even_roas(self) -> float | None:
        return break_even_roas(self.report)

    @property
    def is_ads_profitable(self) -> bool:
        threshold = self.break_even_roas
        return self.report.opex.ad_spend > 0 and threshold is not None and self.roas >= threshold

    def to_dict(self) -> dict[str, Any]:
        r = self.report
        break_even = self.break_even_roas
        data: dict[str, Any] = {
            "period": r.period.name,
            "date_range": {"start": r.period.start.isoformat(), "end": r.period.end.isoformat()},
            "revenue": {
                "gross_revenue": round_currency(r.revenue.gross_revenue),
                "revenue_ex_vat": round_currency(r.revenue_ex_vat),
                "discounts": round_currency(r.revenue.discounts),
                "refunds": round_currency(r.revenue.refunds),
                "tax": round_currency(r.revenue.tax),
                "shipping_revenue": round_currency(r.revenue.shipping_revenue),
            },
            "costs": {
                "product_costs": round_currency(r.cogs.product_costs),
                "shipping_costs": round_currency(r.opex.shipping_costs),
                "payment_fees": round_currency(r.opex.payment_fees),
                "ad_spend": round_currency(r.opex.ad_spend),
                "custom_costs": round_currency(r.opex.fixed + r.opex.salaries + r.opex.variable + r.opex.one_time),
                "total_costs": round_currency(r.total_costs),
            },
            "profit": {
                "gross_profit": round_currency(r.gross_profit),
                "gross_margin": round_pct(r.gross_margin),
                "net_profit": round_currency(r.net_profit),
                "net_margin": round_pct(r.net_margin),
            },
            "order_count": r.order_count,
            "average_order_value": round_currency(safe_div(r.revenue_ex_vat, r.order_count)),
            "ads": {
                "spend": round_currency(r.opex.ad_spend),
                "revenue": round_currency(r.opex.ad_revenue),
                "roas": round_ratio(self.roas),
                "break_even_roas": round_ratio(break_even) if break_even is not None else None,
                "is_profitable": self.is_ads_profitable,
            },
            "cost_breakdown": cost_breakdown(r),
            "daily": [
                {
                    "date": p.day.isoformat(),
                    "revenue_ex_vat": round_currency(p.revenue_ex_vat),
                    "orders": p.orders,
                    "refunds": round_currency(p.refunds),
                }
                for p in self.daily
            ],
            "data_completeness": coverage_to_dict(r.completeness),
            "warnings": [warning_to_dict(w) for w in r.warnings],
            "previous_period": None,
            "trends": None,
        }
        if self.previous is not None:
            p = self.previous
            data["previous_period"] = {
                "period": p.period.name,
                "revenue_ex_vat": round_currency(p.revenue_ex_vat),
                "net_profit": round_currency(p.net_profit),
                "net_margin": round_pct(p.net_margin),
                "order_count": p.order_count,
            }
        if self.trends is not None:
            t = self.trends
            data["trends"] = {
                "revenue_change": round_pct(t.revenue_change),
                "profit_change": round_pct(t.profit_change),
                "order_count_change": round_pct(t.order_count_change),
                "margin_change": round_pct(t.margin_change),
            }
        return data


def variable_cost_ratio(report: PnLReport) -> float:
    """Share of revenue ex VAT spent on product costs, payment fees and carrier shipping.

    0.0 when revenue is not positive.
    """
    revenue = report.revenue_ex_vat
    if revenue <= 0:
        return 0.0
    return (report.cogs.product_costs + report.opex.payment_fees + report.opex.shipping_costs) / revenue


def break_even_roas(report: PnLReport) -> float | None:
    """Break-even ROAS = 1 / contribution margin ratio.

    Variable costs are those of variable_cost_ratio. None when revenue or
    contribution margin is not positive.
    """
    if report.revenue_ex_vat <= 0:
        return None
    margin_ratio = 1.0 - variable_cost_ratio(report)
    if margin_ratio <= 0:
        return None
    return 1.0 / margin_ratio


def cost_breakdown(report: PnLReport) -> list[dict[str, Any]]:
    """Non-zero cost categories, largest first."""
    opex = report.opex
    categories = [
        ("product_costs", "Product costs", report.cogs.product_costs),
        ("shipping", "Shipping", opex.shipping_costs),
        ("payment_fees", "Payment fees", opex.payment_fees),
        ("marketing", "Marketing", opex.ad_spend),
        ("fixed", "Fixed costs", opex.fixed),
        ("salaries", "Salaries", opex.salaries),
        ("variable", "Variable costs", opex.variable),
        ("one_time", "One-time costs", opex.one_time),
    ]
    total = report.total_costs
    items = [
        {
            "category": key,
            "label": label,
            "amount": round_currency(amount),
            "share_pct": round_pct(safe_div(amount, total) * 100.0),
        }
        for key, label, amount in categories
        if round_currency(amount) != 0
    ]
    return sorted(items, key=lambda item: -item["amount"])


def daily_series(orders: Iterable[Order], period: ReportPeriod) -> list[DailyPoint]:
    """Per-day revenue ex VAT, order count and refunds, one point per day of period."""
    points = {
        period.start + timedelta(days=offset): DailyPoint(day=period.start + timedelta(days=offset))
        for offset in range(period.days)
    }
    for order in orders:
        point = points.get(order.processed_at.date())
        if point is None:
            continue
        point.orders += 1
        point.revenue_ex_vat += order_revenue_ex_vat(order)
        point.refunds += order_refund_total(order)
    return [points[day] for day in sorted(points)]


def compute_trends(current: PnLReport, previous: PnLReport) -> Trends:
    """Period-over-period changes.

    Profit change is measured against |previous profit| (or 1 when it is 0)
    so a move from loss to profit reads as positive.
    """
    prev_profit = previous.net_profit
    return Trends(
        revenue_change=safe_change_pct(current.revenue_ex_vat, previous.revenue_ex_vat),
        profit_change=(current.net_profit - prev_profit) / (abs(prev_profit) or 1.0) * 100.0,
        order_count_change=safe_change_pct(current.order_count, previous.order_count),
        margin_change=current.net_margin - previous.net_margin,
    )


def build_dashboard_summary(
    report: PnLReport, orders: Iterable[Order], previous: PnLReport | None = None
) -> DashboardSummary:
    """Assemble the dashboard summary.

    Args:
        report: P&L report of the current period
        orders: Orders that fed report (for the daily series)
        previous: P&L report of the preceding period of equal length, if any

    Returns:
        DashboardSummary; trends only when the previous period has orders

    """
    trends = None
    if previous is not None and previous.order_count > 0:
        trends = compute_trends(report, previous)
    return DashboardSummary(
        report=report,
        daily=daily_series(orders, report.period),
        previous=previous,
        trends=trends,
    )
