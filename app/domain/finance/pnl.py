"""P&L (Profit & Loss) calculation logic.

Business logic for calculating:
- Revenue (gross for platform reconciliation, ex VAT for profit)
- COGS (historical product cost, net of reversed COGS on refunds)
- Operating expenses (fulfillment, marketing, payment fees, custom costs)
- Gross / operating / net profit and margins
- Order-level contribution profit

Accounting convention (applied on every report surface):
- subtotal_price is already VAT-exclusive; tax is pass-through and never a cost
- COGS = product costs only; carrier shipping cost is an operating expense
- corporate tax is informational and never subtracted from net profit

NO DATA ACCESS - pure functions only. Data access happens in services layer.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.domain.finance.cogs import CogsCoverage, cogs_coverage, resolve_line_cost
from app.domain.finance.fees import DEFAULT_FEE_SCHEDULE, normalize_gateway_name, resolve_fee
from app.domain.finance.money import round_currency, round_pct, safe_div, safe_margin
from app.domain.finance.period import ReportPeriod
from app.domain.finance.recurring import distribute_recurring
from app.domain.finance.shipping import calculate_shipping_cost, physical_item_count
from app.domain.finance.types import (
    AdSpendRow,
    CostPosting,
    CostType,
    FeeSchedule,
    Order,
    RecurringCost,
    ReportWarning,
    ShippingTier,
)

# Financial statuses counted as revenue in the P&L
PNL_FINANCIAL_STATUSES = frozenset({"paid", "partially_paid", "partially_refunded"})

DEFAULT_CORPORATE_TAX_RATE = 0.206


def is_pnl_order(order: Order) -> bool:
    """Whether an order counts towards the P&L (status and not cancelled)."""
    return order.cancelled_at is None and order.financial_status in PNL_FINANCIAL_STATUSES


def calc_gross_revenue(subtotal: float, shipping_revenue: float, tax: float) -> float:
    """Gross revenue as displayed by the storefront platform.

    Gross Revenue = Subtotal + Shipping Revenue + Tax
    """
    return subtotal + shipping_revenue + tax


def calc_revenue_ex_vat(
    subtotal: float, shipping_revenue: float, discounts: float, refunds: float
) -> float:
    """Calculate revenue excluding VAT.

    Revenue ex VAT = Subtotal + Shipping Revenue - Discounts - Refunds

    Args:
        subtotal: Order subtotal, already VAT-exclusive
        shipping_revenue: Shipping paid by the customer
        discounts: Order-level discounts
        refunds: Refunded amount

    Returns:
        Revenue ex VAT (can be negative for heavily refunded orders)

    """
    return subtotal + shipping_revenue - discounts - refunds


def order_refund_total(order: Order) -> float:
    """Refund amount of an order.

    Sum of refund records when any exist, otherwise the order's own
    total_refund_amount.
    """
    if order.refunds:
        return sum(r.amount for r in order.refunds)
    return order.total_refund_amount


def order_revenue_ex_vat(order: Order) -> float:
    """Revenue ex VAT of one order. Shared by the P&L and customer metrics."""
    return calc_revenue_ex_vat(
        order.subtotal_price,
        order.total_shipping_price,
        order.total_discounts,
        order_refund_total(order),
    )


@dataclass(frozen=True)
class OrderEconomics:
    """Unrounded per-order figures feeding both the P&L and order profit."""

    refunds: float
    revenue_ex_vat: float
    line_costs: float
    cogs_reversed: float
    shipping_cost: float
    payment_fees: dict[str, float]
    physical_items: int
    lines_total: int
    lines_missing_cost: int

    @property
    def product_costs(self) -> float:
        return self.line_costs - self.cogs_reversed

    @property
    def total_payment_fees(self) -> float:
        return sum(self.payment_fees.values())


def order_economics(
    order: Order,
    tiers: Sequence[ShippingTier],
    fee_schedules: Mapping[str, FeeSchedule],
    default_fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> OrderEconomics:
    """Compute COGS, carrier shipping cost and payment fees of one order.

    Args:
        order: Order snapshot with line items, refunds and transactions
        tiers: Active shipping tiers of the order's store (empty = no shipping cost);
            zones are not applied, every active tier of the store is eligible
        fee_schedules: Merchant fee schedules keyed by lower-cased gateway
        default_fee: Schedule for gateways without a merchant config

    Returns:
        OrderEconomics with unrounded amounts

    """
    line_costs = 0.0
    missing = 0
    for item in order.line_items:
        cost = resolve_line_cost(item, order.processed_at)
        line_costs += cost.total_cost
        if not cost.matched:
            missing += 1

    items = physical_item_count(order.line_items)
    shipping_cost = calculate_shipping_cost(items, tiers) if tiers else 0.0

    fees: dict[str, float] = defaultdict(float)
    for tx in order.transactions:
        fee = resolve_fee(
            tx.gateway,
            tx.amount,
            fee_schedules,
            default_fee,
            platform_fee=tx.payment_fee,
            fee_calculated=tx.fee_calculated,
        )
        fees[normalize_gateway_name(tx.gateway)] += fee

    return OrderEconomics(
        refunds=order_refund_total(order),
        revenue_ex_vat=order_revenue_ex_vat(order),
        line_costs=line_costs,
        cogs_reversed=sum(r.cogs_reversed for r in order.refunds),
        shipping_cost=shipping_cost,
        payment_fees=dict(fees),
        physical_items=items,
        lines_total=len(order.line_items),
        lines_missing_cost=missing,
    )


@dataclass(frozen=True)
class OrderProfit:
    order_id: int
    revenue_ex_vat: float
    product_costs: float
    shipping_cost: float
    payment_fees: float
    contribution_profit: float
    contribution_margin: float
    cogs_complete: bool
    lines_missing_cost: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "revenue_ex_vat": round_currency(self.revenue_ex_vat),
            "product_costs": round_currency(self.product_costs),
            "shipping_cost": round_currency(self.shipping_cost),
            "payment_fees": round_currency(self.payment_fees),
            "contribution_profit": round_currency(self.contribution_profit),
            "contribution_margin": round_pct(self.contribution_margin),
            "cogs_complete": self.cogs_complete,
            "lines_missing_cost": self.lines_missing_cost,
        }


def order_profit(
    order: Order,
    tiers: Sequence[ShippingTier],
    fee_schedules: Mapping[str, FeeSchedule],
    default_fee: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> OrderProfit:
    """Contribution profit of one order (before ad spend and custom costs).

    Contribution Profit = Revenue ex VAT - Product Costs - Shipping Cost - Payment Fees
    """
    econ = order_economics(order, tiers, fee_schedules, default_fee)
    profit = econ.revenue_ex_vat - econ.product_costs - econ.shipping_cost - econ.total_payment_fees
    return OrderProfit(
        order_id=order.id,
        revenue_ex_vat=econ.revenue_ex_vat,
        product_costs=econ.product_costs,
        shipping_cost=econ.shipping_cost,
        payment_fees=econ.total_payment_fees,
        contribution_profit=profit,
        contribution_margin=safe_margin(profit, econ.revenue_ex_vat),
        cogs_complete=econ.lines_missing_cost == 0,
        lines_missing_cost=econ.lines_missing_cost,
    )


@dataclass
class PnLInput:
    """Everything compute_pnl needs, already scoped to one team and period.

    shipping_tiers and fee_schedules are keyed by store id. Cost postings must
    not include postings of monthly FIXED/SALARY costs, which are distributed
    from recurring_costs instead.
    """

    period: ReportPeriod
    orders: Sequence[Order]
    shipping_tiers: Mapping[int, Sequence[ShippingTier]] = field(default_factory=dict)
    fee_schedules: Mapping[int, Mapping[str, FeeSchedule]] = field(default_factory=dict)
    default_fee: FeeSchedule = DEFAULT_FEE_SCHEDULE
    ad_spend: Sequence[AdSpendRow] = ()
    cost_postings: Sequence[CostPosting] = ()
    recurring_costs: Sequence[RecurringCost] = ()
    tax_rate: float = DEFAULT_CORPORATE_TAX_RATE
    cogs_error_threshold_pct: float = 80.0


@dataclass
class RevenueSection:
    subtotal: float = 0.0
    shipping_revenue: float = 0.0
    tax: float = 0.0
    discounts: float = 0.0
    refunds: float = 0.0

    @property
    def product_sales_incl_vat(self) -> float:
        """Merchandise sales including VAT, before shipping and discounts.

        Display line only; it is not a revenue figure and excludes shipping
        revenue. Profit is always derived from revenue_ex_vat.
        """
        return self.subtotal + self.tax

    @property
    def gross_revenue(self) -> float:
        return calc_gross_revenue(self.subtotal, self.shipping_revenue, self.tax)

    @property
    def revenue_ex_vat(self) -> float:
        return calc_revenue_ex_vat(self.subtotal, self.shipping_revenue, self.discounts, self.refunds)


@dataclass
class CogsSection:
    line_costs: float = 0.0
    cogs_reversed: float = 0.0

    @property
    def product_costs(self) -> float:
        return self.line_costs - self.cogs_reversed

    @property
    def total(self) -> float:
        return self.product_costs


@dataclass
class OperatingExpenses:
    shipping_costs: float = 0.0
    ad_spend_by_platform: dict[str, float] = field(default_factory=dict)
    ad_revenue: float = 0.0
    payment_fees_by_gateway: dict[str, float] = field(default_factory=dict)
    fixed_by_name: dict[str, float] = field(default_factory=dict)
    fixed_distributed: float = 0.0
    salaries: float = 0.0
    salaries_distributed: float = 0.0
    variable_by_name: dict[str, float] = field(default_factory=dict)
    one_time: float = 0.0

    @property
    def ad_spend(self) -> float:
        return sum(self.ad_spend_by_platform.values())

    @property
    def payment_fees(self) -> float:
        return sum(self.payment_fees_by_gateway.values())

    @property
    def fixed(self) -> float:
        return sum(self.fixed_by_name.values())

    @property
    def variable(self) -> float:
        return sum(self.variable_by_name.values())

    @property
    def total(self) -> float:
        return (
            self.ad_spend
            + self.payment_fees
            + self.shipping_costs
            + self.fixed
            + self.variable
            + self.salaries
            + self.one_time
        )


@dataclass
class PnLReport:
    period: ReportPeriod
    order_count: int
    revenue: RevenueSection
    cogs: CogsSection
    opex: OperatingExpenses
    tax_rate: float
    completeness: CogsCoverage
    warnings: list[ReportWarning] = field(default_factory=list)

    @property
    def revenue_ex_vat(self) -> float:
        return self.revenue.revenue_ex_vat

    @property
    def gross_profit(self) -> float:
        return self.revenue_ex_vat - self.cogs.product_costs

    @property
    def gross_margin(self) -> float:
        return safe_margin(self.gross_profit, self.revenue_ex_vat)

    @property
    def operating_profit(self) -> float:
        return self.gross_profit - self.opex.total

    @property
    def operating_margin(self) -> float:
        return safe_margin(self.operating_profit, self.revenue_ex_vat)

    @property
    def total_costs(self) -> float:
        return self.cogs.product_costs + self.opex.total

    @property
    def net_profit(self) -> float:
        return self.revenue_ex_vat - self.total_costs

    @property
    def net_margin(self) -> float:
        return safe_margin(self.net_profit, self.revenue_ex_vat)

    @property
    def estimated_corporate_tax(self) -> float:
        return self.net_profit * self.tax_rate if self.net_profit > 0 else 0.0

    @property
    def days_in_period(self) -> int:
        return self.period.days

    def to_dict(self) -> dict[str, Any]:
        """Rounded JSON-ready representation."""
        rev = self.revenue
        opex = self.opex
        n = self.order_count
        return {
            "period": self.period.name,
            "date_range": {"start": self.period.start.isoformat(), "end": self.period.end.isoformat()},
            "revenue": {
                "product_sales_incl_vat": round_currency(rev.product_sales_incl_vat),
                "shipping_revenue": round_currency(rev.shipping_revenue),
                "gross_revenue": round_currency(rev.gross_revenue),
                "discounts": round_currency(-rev.discounts),
                "returns": round_currency(-rev.refunds),
                "vat": round_currency(-rev.tax),
                "net_revenue": round_currency(rev.revenue_ex_vat),
            },
            "cogs": {
                "product_costs": round_currency(self.cogs.product_costs),
                "cogs_reversed": round_currency(self.cogs.cogs_reversed),
                "total_cogs": round_currency(self.cogs.total),
            },
            "gross_profit": round_currency(self.gross_profit),
            "gross_margin": round_pct(self.gross_margin),
            "operating_expenses": {
                "fulfillment": {
                    "shipping_costs": round_currency(opex.shipping_costs),
                    "total": round_currency(opex.shipping_costs),
                },
                "marketing": {
                    "by_platform": _round_map(opex.ad_spend_by_platform),
                    "total": round_currency(opex.ad_spend),
                },
                "payment_fees": {
                    "by_gateway": _round_map(opex.payment_fees_by_gateway),
                    "total": round_currency(opex.payment_fees),
                },
                "fixed": {
                    "by_name": _round_map(opex.fixed_by_name),
                    "distributed": round_currency(opex.fixed_distributed),
                    "salaries": round_currency(opex.salaries),
                    "total": round_currency(opex.fixed + opex.salaries),
                },
                "variable": {
                    "by_name": _round_map(opex.variable_by_name),
                    "total": round_currency(opex.variable),
                },
                "one_time": round_currency(opex.one_time),
                "total_opex": round_currency(opex.total),
            },
            "operating_profit": round_currency(self.operating_profit),
            "operating_margin": round_pct(self.operating_margin),
            "total_costs": round_currency(self.total_costs),
            "net_profit": round_currency(self.net_profit),
            "net_margin": round_pct(self.net_margin),
            "tax_estimate": {
                "rate": round_pct(self.tax_rate * 100),
                "amount": round_currency(self.estimated_corporate_tax),
                "profit_after_tax": round_currency(self.net_profit - self.estimated_corporate_tax),
            },
            "metrics": {
                "order_count": n,
                "avg_order_value": round_currency(safe_div(self.revenue_ex_vat, n)),
                "profit_per_order": round_currency(safe_div(self.net_profit, n)),
                "days_in_period": self.days_in_period,
                "daily_avg_revenue": round_currency(self.revenue_ex_vat / self.days_in_period),
                "daily_avg_profit": round_currency(self.net_profit / self.days_in_period),
            },
            "data_completeness": coverage_to_dict(self.completeness),
            "warnings": [warning_to_dict(w) for w in self.warnings],
        }


def _round_map(values: Mapping[str, float]) -> dict[str, float]:
    return {k: round_currency(v) for k, v in sorted(values.items())}


def coverage_to_dict(coverage: CogsCoverage) -> dict[str, Any]:
    return {
        "total_line_items": coverage.total_lines,
        "matched_line_items": coverage.matched_lines,
        "missing_line_items": coverage.missing_lines,
        "cogs_match_rate": coverage.match_rate,
        "revenue_with_cogs_pct": coverage.revenue_with_cogs_pct,
        "missing_variants": [
            {
                "variant_id": v.variant_id,
                "title": v.title,
                "sku": v.sku,
                "line_count": v.line_count,
            }
            for v in coverage.missing_variants
        ],
    }


def warning_to_dict(warning: ReportWarning) -> dict[str, Any]:
    return {
        "code": warning.code,
        "message": warning.message,
        "severity": warning.severity,
        "affected": list(warning.affected),
    }


def _aggregate_custom_costs(inputs: PnLInput, opex: OperatingExpenses) -> None:
    """Add discrete postings and distributed monthly costs to opex."""
    fixed: dict[str, float] = defaultdict(float)
    variable: dict[str, float] = defaultdict(float)

    for posting in inputs.cost_postings:
        if posting.cost_type == CostType.FIXED:
            fixed[posting.name] += posting.amount
        elif posting.cost_type == CostType.VARIABLE:
            variable[posting.name] += posting.amount
        elif posting.cost_type == CostType.SALARY:
            opex.salaries += posting.amount
        elif posting.cost_type == CostType.ONE_TIME:
            opex.one_time += posting.amount

    distributed = distribute_recurring(inputs.recurring_costs, inputs.period.start, inputs.period.end)
    for name, amount in distributed[CostType.FIXED].items():
        fixed[name] += amount
        opex.fixed_distributed += amount
    for amount in distributed[CostType.SALARY].values():
        opex.salaries += amount
        opex.salaries_distributed += amount

    opex.fixed_by_name = dict(fixed)
    opex.variable_by_name = dict(variable)


def _build_warnings(
    coverage: CogsCoverage, stores_without_tiers: set[int], error_threshold_pct: float
) -> list[ReportWarning]:
    warnings: list[ReportWarning] = []

    if coverage.missing_lines > 0:
        severity = "error" if coverage.match_rate < error_threshold_pct else "warning"
        warnings.append(
            ReportWarning(
                code="INCOMPLETE_COGS",
                message=(
                    f"{coverage.missing_lines} of {coverage.total_lines} line items have no cost "
                    f"at order date (match rate {coverage.match_rate}%)"
                ),
                severity=severity,
                affected=[v.sku or v.title or str(v.variant_id) for v in coverage.missing_variants[:10]],
            )
        )

    if stores_without_tiers:
        warnings.append(
            ReportWarning(
                code="NO_SHIPPING_TIERS",
                message="Orders from stores without active shipping tiers have no shipping cost",
                severity="info",
                affected=[str(store_id) for store_id in sorted(stores_without_tiers)],
            )
        )

    return warnings


def compute_pnl(inputs: PnLInput) -> PnLReport:
    """Compute the Profit & Loss statement for a period.

    Args:
        inputs: Orders of the period plus tiers, fee schedules, ad spend and
            custom costs of the team. Orders failing is_pnl_order (status or
            cancellation) are skipped.

    Returns:
        PnLReport with unrounded figures; use PnLReport.to_dict() for output

    Notes:
        - Net Profit = Revenue ex VAT - Product Costs - Operating Expenses
        - Missing costs, tiers or fee configs degrade to 0 / defaults with
          warnings, never exceptions

    """
    revenue = RevenueSection()
    cogs = CogsSection()
    opex = OperatingExpenses()
    fees_by_gateway: dict[str, float] = defaultdict(float)
    stores_without_tiers: set[int] = set()

    orders = [order for order in inputs.orders if is_pnl_order(order)]
    for order in orders:
        tiers = inputs.shipping_tiers.get(order.store_id, ())
        if not tiers:
            stores_without_tiers.add(order.store_id)

        econ = order_economics(
            order, tiers, inputs.fee_schedules.get(order.store_id, {}), inputs.default_fee
        )

        revenue.subtotal += order.subtotal_price
        revenue.shipping_revenue += order.total_shipping_price
        revenue.tax += order.total_tax
        revenue.discounts += order.total_discounts
        revenue.refunds += econ.refunds

        cogs.line_costs += econ.line_costs
        cogs.cogs_reversed += econ.cogs_reversed

        opex.shipping_costs += econ.shipping_cost
        for gateway, fee in econ.payment_fees.items():
            fees_by_gateway[gateway] += fee

    opex.payment_fees_by_gateway = dict(fees_by_gateway)

    ad_by_platform: dict[str, float] = defaultdict(float)
    for row in inputs.ad_spend:
        ad_by_platform[row.platform] += row.spend
        opex.ad_revenue += row.revenue
    opex.ad_spend_by_platform = dict(ad_by_platform)

    _aggregate_custom_costs(inputs, opex)

    coverage = cogs_coverage(orders)

    return PnLReport(
        period=inputs.period,
        order_count=len(orders),
        revenue=revenue,
        cogs=cogs,
        opex=opex,
        tax_rate=inputs.tax_rate,
        completeness=coverage,
        warnings=_build_warnings(coverage, stores_without_tiers, inputs.cogs_error_threshold_pct),
    )
