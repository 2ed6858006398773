"""Report service facade.

Loads team-scoped snapshots from the read model, runs the pure finance
calculations and returns JSON-ready dicts. Every query filters on team_id
(directly or through the team's stores / ad accounts).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import select

from app.core.cache import report_cache, report_cache_key, team_prefixes
from app.core.config import get_settings
from app.core.metrics import (
    cogs_missing_line_items_total,
    report_compute_duration_seconds,
    report_orders_processed_total,
    reports_computed_total,
    tenant_unscoped_query_total,
)
from app.db import models
from app.domain.finance.channels import channel_attribution
from app.domain.finance.customers import EXCLUDED_CUSTOMER_STATUSES, compute_customer_metrics
from app.domain.finance.fees import build_fee_schedules
from app.domain.finance.period import ReportPeriod, previous_period
from app.domain.finance.pnl import PNL_FINANCIAL_STATUSES, PnLInput, PnLReport, compute_pnl, order_profit
from app.domain.finance.products import product_detail, product_profitability
from app.domain.finance.summary import build_dashboard_summary
from app.domain.finance.types import (
    AdSpendRow,
    CostEntry,
    CostPosting,
    CostType,
    FeeSchedule,
    LineItem,
    Order,
    RecurrenceType,
    RecurringCost,
    Refund,
    ShippingTier,
    Transaction,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

REPORT_PNL = "pnl"
REPORT_DASHBOARD = "dashboard"
REPORT_CUSTOMERS = "customers"
REPORT_PRODUCTS = "products"
REPORT_PRODUCT_DETAIL = "product_detail"
REPORT_CHANNELS = "channels"
REPORT_ORDER_PROFIT = "order_profit"

CACHED_REPORTS = (REPORT_PNL, REPORT_DASHBOARD, REPORT_CUSTOMERS, REPORT_PRODUCTS, REPORT_CHANNELS)


class StoreNotFoundError(LookupError):
    """Store does not exist or belongs to another team."""


class OrderNotFoundError(LookupError):
    """Order does not exist or belongs to another team."""


class ProductNotFoundError(LookupError):
    """Product does not exist or belongs to another team."""


# =============================================================================
# Loaders (ORM -> snapshot)
# =============================================================================


def team_store_ids(db: Session, team_id: int, store_id: int | None = None) -> list[int]:
    """Store ids of the team, optionally narrowed to one store.

    Raises:
        StoreNotFoundError: store_id is not a store of the team

    """
    ids = list(db.execute(select(models.Store.id).where(models.Store.team_id == team_id)).scalars())
    if store_id is None:
        return ids
    if store_id not in ids:
        tenant_unscoped_query_total.labels(error_type="foreign_store").inc()
        raise StoreNotFoundError(f"Store {store_id} not found")
    return [store_id]


def _load_cost_histories(db: Session, variant_ids: Iterable[int]) -> dict[int, tuple[CostEntry, ...]]:
    ids = set(variant_ids)
    if not ids:
        return {}
    stmt = (
        select(models.CostEntry)
        .where(models.CostEntry.variant_id.in_(ids))
        .order_by(models.CostEntry.variant_id, models.CostEntry.id)
    )
    histories: dict[int, list[CostEntry]] = defaultdict(list)
    for row in db.execute(stmt).scalars():
        histories[row.variant_id].append(
            CostEntry(
                cost_price=float(row.cost_price),
                effective_from=row.effective_from,
                effective_to=row.effective_to,
            )
        )
    return {vid: tuple(entries) for vid, entries in histories.items()}


def _load_line_items(db: Session, order_ids: list[int]) -> dict[int, list[LineItem]]:
    stmt = (
        select(
            models.OrderLineItem,
            models.ProductVariant.title,
            models.Product.id,
            models.Product.title,
            models.Product.is_shipping_exempt,
        )
        .outerjoin(models.ProductVariant, models.OrderLineItem.variant_id == models.ProductVariant.id)
        .outerjoin(models.Product, models.ProductVariant.product_id == models.Product.id)
        .where(models.OrderLineItem.order_id.in_(order_ids))
        .order_by(models.OrderLineItem.id)
    )
    rows = db.execute(stmt).all()
    histories = _load_cost_histories(db, (row[0].variant_id for row in rows if row[0].variant_id is not None))

    items: dict[int, list[LineItem]] = defaultdict(list)
    for li, variant_title, product_id, product_title, exempt in rows:
        items[li.order_id].append(
            LineItem(
                quantity=li.quantity,
                price=float(li.price),
                total_discount=float(li.total_discount),
                variant_id=li.variant_id,
                title=li.title,
                sku=li.sku,
                product_id=product_id,
                product_title=product_title,
                variant_title=variant_title or None,
                cost_history=histories.get(li.variant_id, ()) if li.variant_id is not None else (),
                shipping_exempt=bool(exempt),
            )
        )
    return items


def _load_refunds(db: Session, order_ids: list[int]) -> dict[int, list[Refund]]:
    stmt = select(models.OrderRefund).where(models.OrderRefund.order_id.in_(order_ids))
    refunds: dict[int, list[Refund]] = defaultdict(list)
    for row in db.execute(stmt).scalars():
        refunds[row.order_id].append(
            Refund(amount=float(row.amount), cogs_reversed=float(row.total_cogs_reversed))
        )
    return refunds


def _load_transactions(db: Session, order_ids: list[int]) -> dict[int, list[Transaction]]:
    stmt = select(models.OrderTransaction).where(models.OrderTransaction.order_id.in_(order_ids))
    transactions: dict[int, list[Transaction]] = defaultdict(list)
    for row in db.execute(stmt).scalars():
        transactions[row.order_id].append(
            Transaction(
                gateway=row.gateway or "",
                amount=float(row.amount),
                payment_fee=float(row.payment_fee),
                fee_calculated=bool(row.payment_fee_calculated),
            )
        )
    return transactions


def _to_snapshots(db: Session, rows: Sequence[models.Order], *, with_children: bool = True) -> list[Order]:
    order_ids = [row.id for row in rows]
    items: dict[int, list[LineItem]] = {}
    refunds: dict[int, list[Refund]] = {}
    transactions: dict[int, list[Transaction]] = {}
    if order_ids:
        refunds = _load_refunds(db, order_ids)
        if with_children:
            items = _load_line_items(db, order_ids)
            transactions = _load_transactions(db, order_ids)

    return [
        Order(
            id=row.id,
            store_id=row.store_id,
            processed_at=row.processed_at or row.created_at,
            subtotal_price=float(row.subtotal_price),
            total_shipping_price=float(row.total_shipping_price),
            total_tax=float(row.total_tax),
            total_discounts=float(row.total_discounts),
            total_price=float(row.total_price),
            total_refund_amount=float(row.total_refund_amount),
            financial_status=row.financial_status,
            cancelled_at=row.cancelled_at,
            currency=row.currency,
            customer_email=row.customer_email,
            line_items=tuple(items.get(row.id, ())),
            refunds=tuple(refunds.get(row.id, ())),
            transactions=tuple(transactions.get(row.id, ())),
        )
        for row in rows
    ]


def load_pnl_orders(db: Session, store_ids: list[int], period: ReportPeriod) -> list[Order]:
    """Paid, non-cancelled orders of the stores processed inside period."""
    if not store_ids:
        return []
    start, end_exclusive = period.bounds()
    stmt = (
        select(models.Order)
        .where(
            models.Order.store_id.in_(store_ids),
            models.Order.processed_at >= start,
            models.Order.processed_at < end_exclusive,
            models.Order.financial_status.in_(sorted(PNL_FINANCIAL_STATUSES)),
            models.Order.cancelled_at.is_(None),
        )
        .order_by(models.Order.processed_at, models.Order.id)
    )
    return _to_snapshots(db, db.execute(stmt).scalars().all())


def load_customer_orders(
    db: Session, store_ids: list[int], period: ReportPeriod | None = None, *, with_children: bool = True
) -> list[Order]:
    """Non-cancelled orders not refunded/voided, all-time or inside period."""
    if not store_ids:
        return []
    stmt = select(models.Order).where(
        models.Order.store_id.in_(store_ids),
        models.Order.cancelled_at.is_(None),
        (models.Order.financial_status.is_(None))
        | (models.Order.financial_status.not_in(sorted(EXCLUDED_CUSTOMER_STATUSES))),
    )
    if period is not None:
        start, end_exclusive = period.bounds()
        stmt = stmt.where(models.Order.processed_at >= start, models.Order.processed_at < end_exclusive)
    stmt = stmt.order_by(models.Order.processed_at, models.Order.id)
    return _to_snapshots(db, db.execute(stmt).scalars().all(), with_children=with_children)


def load_shipping_tiers(db: Session, store_ids: list[int]) -> dict[int, list[ShippingTier]]:
    """Active shipping tiers keyed by store id."""
    if not store_ids:
        return {}
    stmt = (
        select(models.ShippingCostTier)
        .where(
            models.ShippingCostTier.store_id.in_(store_ids),
            models.ShippingCostTier.is_active.is_(True),
        )
        .order_by(models.ShippingCostTier.store_id, models.ShippingCostTier.min_items)
    )
    tiers: dict[int, list[ShippingTier]] = defaultdict(list)
    for row in db.execute(stmt).scalars():
        tiers[row.store_id].append(
            ShippingTier(
                min_items=row.min_items,
                max_items=row.max_items,
                cost=float(row.cost),
                cost_per_additional_item=float(row.cost_per_additional_item),
                shipping_zone=row.shipping_zone,
            )
        )
    return dict(tiers)


def load_fee_schedules(db: Session, store_ids: list[int]) -> dict[int, dict[str, FeeSchedule]]:
    """Active payment fee schedules keyed by store id, then lower-cased gateway."""
    if not store_ids:
        return {}
    stmt = select(models.PaymentFeeConfig).where(
        models.PaymentFeeConfig.store_id.in_(store_ids),
        models.PaymentFeeConfig.is_active.is_(True),
    )
    by_store: dict[int, list[models.PaymentFeeConfig]] = defaultdict(list)
    for row in db.execute(stmt).scalars():
        by_store[row.store_id].append(row)
    return {store_id: build_fee_schedules(rows) for store_id, rows in by_store.items()}


def load_ad_spend(db: Session, team_id: int, period: ReportPeriod) -> list[AdSpendRow]:
    """Ad spend of all team ad accounts inside period (not store-specific)."""
    stmt = (
        select(models.AdSpend, models.AdAccount.platform)
        .join(models.AdAccount, models.AdSpend.ad_account_id == models.AdAccount.id)
        .where(
            models.AdAccount.team_id == team_id,
            models.AdSpend.date >= period.start,
            models.AdSpend.date <= period.end,
        )
    )
    return [
        AdSpendRow(
            platform=platform,
            spend_date=row.date,
            spend=float(row.spend),
            revenue=float(row.revenue),
            impressions=row.impressions,
            clicks=row.clicks,
            conversions=row.conversions,
            campaign_name=row.campaign_name,
        )
        for row, platform in db.execute(stmt).all()
    ]


def _is_distributed(cost_type: str, recurrence_type: str) -> bool:
    return recurrence_type == RecurrenceType.MONTHLY.value and cost_type in (
        CostType.FIXED.value,
        CostType.SALARY.value,
    )


def load_custom_costs(
    db: Session, team_id: int, period: ReportPeriod
) -> tuple[list[CostPosting], list[RecurringCost]]:
    """Discrete postings inside period and monthly recurring costs of the team.

    Postings against monthly FIXED/SALARY costs are skipped: those costs are
    distributed from their monthly amount instead.
    """
    costs = db.execute(
        select(models.CustomCost).where(
            models.CustomCost.team_id == team_id,
            models.CustomCost.is_active.is_(True),
        )
    ).scalars().all()

    recurring = [
        RecurringCost(cost_type=CostType(c.cost_type), name=c.name, monthly_amount=float(c.amount))
        for c in costs
        if _is_distributed(c.cost_type, c.recurrence_type)
    ]

    booked = {c.id: c for c in costs if not _is_distributed(c.cost_type, c.recurrence_type)}
    postings: list[CostPosting] = []
    if booked:
        stmt = select(models.CustomCostEntry).where(
            models.CustomCostEntry.cost_id.in_(list(booked)),
            models.CustomCostEntry.date >= period.start,
            models.CustomCostEntry.date <= period.end,
        )
        for entry in db.execute(stmt).scalars():
            cost = booked[entry.cost_id]
            postings.append(
                CostPosting(
                    cost_type=CostType(cost.cost_type),
                    name=cost.name,
                    amount=float(entry.amount),
                    posted_on=entry.date,
                )
            )

    return postings, recurring


# =============================================================================
# Report computation
# =============================================================================


def _default_fee() -> FeeSchedule:
    settings = get_settings()
    return FeeSchedule(
        percentage_fee=settings.default_payment_fee_pct,
        fixed_fee=settings.default_payment_fee_fixed,
    )


def build_pnl_input(
    db: Session, *, team_id: int, period: ReportPeriod, store_ids: list[int]
) -> PnLInput:
    """Load everything compute_pnl needs for the team and period."""
    settings = get_settings()
    postings, recurring = load_custom_costs(db, team_id, period)
    return PnLInput(
        period=period,
        orders=load_pnl_orders(db, store_ids, period),
        shipping_tiers=load_shipping_tiers(db, store_ids),
        fee_schedules=load_fee_schedules(db, store_ids),
        default_fee=_default_fee(),
        ad_spend=load_ad_spend(db, team_id, period),
        cost_postings=postings,
        recurring_costs=recurring,
        tax_rate=settings.corporate_tax_rate,
        cogs_error_threshold_pct=settings.cogs_warning_threshold_pct,
    )


def _record_pnl(report_name: str, report: PnLReport, team_id: int) -> None:
    reports_computed_total.labels(report=report_name).inc()
    report_orders_processed_total.labels(report=report_name).inc(report.order_count)
    if report.completeness.missing_lines:
        cogs_missing_line_items_total.inc(report.completeness.missing_lines)
    for warning in report.warnings:
        logger.warning(
            "report_data_quality_warning",
            extra={
                "report": report_name,
                "team_id": team_id,
                "code": warning.code,
                "severity": warning.severity,
                "affected": warning.affected,
            },
        )


def _cached(report: str, key: str, ttl: int, compute: Callable[[], T]) -> T:
    if not get_settings().report_cache_enabled:
        return compute()
    return report_cache.get_or_compute(key, ttl, compute, report=report)


def compute_pnl_report(
    db: Session, *, team_id: int, period: ReportPeriod, store_id: int | None = None
) -> PnLReport:
    """Compute (uncached) P&L report object for the team."""
    store_ids = team_store_ids(db, team_id, store_id)
    with report_compute_duration_seconds.labels(report=REPORT_PNL).time():
        report = compute_pnl(build_pnl_input(db, team_id=team_id, period=period, store_ids=store_ids))
    _record_pnl(REPORT_PNL, report, team_id)
    return report


def get_pnl_report(
    db: Session, *, team_id: int, period: ReportPeriod, store_id: int | None = None
) -> dict[str, Any]:
    """P&L statement for the team and period (scoped to team)."""

    def compute() -> dict[str, Any]:
        report = compute_pnl_report(db, team_id=team_id, period=period, store_id=store_id)
        logger.info(
            "pnl_report_computed",
            extra={
                "team_id": team_id,
                "store_id": store_id,
                "period_start": period.start.isoformat(),
                "period_end": period.end.isoformat(),
                "orders": report.order_count,
            },
        )
        return report.to_dict()

    key = report_cache_key(REPORT_PNL, team_id, period.start, period.end, store_id)
    return _cached(REPORT_PNL, key, get_settings().cache_ttl_pnl_sec, compute)


def get_dashboard_summary(
    db: Session, *, team_id: int, period: ReportPeriod, store_id: int | None = None
) -> dict[str, Any]:
    """Dashboard summary with previous-period trends (scoped to team)."""

    def compute() -> dict[str, Any]:
        store_ids = team_store_ids(db, team_id, store_id)
        prev = previous_period(period)
        with report_compute_duration_seconds.labels(report=REPORT_DASHBOARD).time():
            current_input = build_pnl_input(db, team_id=team_id, period=period, store_ids=store_ids)
            current = compute_pnl(current_input)
            previous = compute_pnl(build_pnl_input(db, team_id=team_id, period=prev, store_ids=store_ids))
            summary = build_dashboard_summary(current, current_input.orders, previous)
        _record_pnl(REPORT_DASHBOARD, current, team_id)
        logger.info(
            "dashboard_summary_computed",
            extra={
                "team_id": team_id,
                "store_id": store_id,
                "period_start": period.start.isoformat(),
                "period_end": period.end.isoformat(),
                "orders": current.order_count,
                "previous_orders": previous.order_count,
            },
        )
        return summary.to_dict()

    key = report_cache_key(REPORT_DASHBOARD, team_id, period.start, period.end, store_id)
    return _cached(REPORT_DASHBOARD, key, get_settings().cache_ttl_dashboard_sec, compute)


def get_customer_metrics(
    db: Session, *, team_id: int, period: ReportPeriod, store_id: int | None = None
) -> dict[str, Any]:
    """Customer LTV / CAC / repeat metrics (scoped to team)."""

    def compute() -> dict[str, Any]:
        settings = get_settings()
        store_ids = team_store_ids(db, team_id, store_id)
        with report_compute_duration_seconds.labels(report=REPORT_CUSTOMERS).time():
            all_time = load_customer_orders(db, store_ids, with_children=False)
            in_period = load_customer_orders(db, store_ids, period)
            metrics = compute_customer_metrics(
                all_time,
                in_period,
                period,
                load_ad_spend(db, team_id, period),
                fee_estimate_pct=settings.breakeven_fee_estimate_pct,
                shipping_estimate_pct=settings.breakeven_shipping_estimate_pct,
                default_break_even_roas=settings.breakeven_roas_default,
            )
        reports_computed_total.labels(report=REPORT_CUSTOMERS).inc()
        report_orders_processed_total.labels(report=REPORT_CUSTOMERS).inc(len(all_time))
        logger.info(
            "customer_metrics_computed",
            extra={
                "team_id": team_id,
                "store_id": store_id,
                "customers": metrics.total_customers_all_time,
                "new_customers": metrics.new_customers,
            },
        )
        return metrics.to_dict()

    key = report_cache_key(REPORT_CUSTOMERS, team_id, period.start, period.end, store_id)
    return _cached(REPORT_CUSTOMERS, key, get_settings().cache_ttl_customers_sec, compute)


def get_product_profitability(
    db: Session, *, team_id: int, period: ReportPeriod, store_id: int | None = None, limit: int = 10
) -> list[dict[str, Any]]:
    """Products ranked by profit for the team and period.

    The full ranking is cached once per period; limit only slices it.
    """

    def compute() -> list[dict[str, Any]]:
        store_ids = team_store_ids(db, team_id, store_id)
        with report_compute_duration_seconds.labels(report=REPORT_PRODUCTS).time():
            orders = load_pnl_orders(db, store_ids, period)
            ranked = product_profitability(orders, load_fee_schedules(db, store_ids), _default_fee())
        reports_computed_total.labels(report=REPORT_PRODUCTS).inc()
        report_orders_processed_total.labels(report=REPORT_PRODUCTS).inc(len(orders))
        logger.info(
            "product_profitability_computed",
            extra={"team_id": team_id, "store_id": store_id, "products": len(ranked), "orders": len(orders)},
        )
        return [product.to_dict() for product in ranked]

    key = report_cache_key(REPORT_PRODUCTS, team_id, period.start, period.end, store_id)
    return _cached(REPORT_PRODUCTS, key, get_settings().cache_ttl_products_sec, compute)[:limit]


def get_product_detail(db: Session, *, team_id: int, product_id: int, period: ReportPeriod) -> dict[str, Any]:
    """Profit of one product with variant and daily breakdowns (scoped to team).

    Raises:
        ProductNotFoundError: product missing or owned by another team

    """
    stmt = (
        select(models.Product)
        .join(models.Store, models.Product.store_id == models.Store.id)
        .where(models.Product.id == product_id, models.Store.team_id == team_id)
    )
    product = db.execute(stmt).scalar_one_or_none()
    if product is None:
        if db.get(models.Product, product_id) is not None:
            tenant_unscoped_query_total.labels(error_type="foreign_product").inc()
        raise ProductNotFoundError(f"Product {product_id} not found")

    with report_compute_duration_seconds.labels(report=REPORT_PRODUCT_DETAIL).time():
        orders = load_pnl_orders(db, [product.store_id], period)
        detail = product_detail(product_id, orders, load_fee_schedules(db, [product.store_id]), _default_fee())
    reports_computed_total.labels(report=REPORT_PRODUCT_DETAIL).inc()

    if not detail.product.name:
        detail.product.name = product.title
    result = detail.to_dict()
    result["store_id"] = product.store_id
    result["period"] = {"start": period.start.isoformat(), "end": period.end.isoformat()}
    return result


def get_channel_attribution(
    db: Session, *, team_id: int, period: ReportPeriod, store_id: int | None = None
) -> dict[str, Any]:
    """Ad spend, platform revenue and ROAS per ad platform (scoped to team)."""

    def compute() -> dict[str, Any]:
        store_ids = team_store_ids(db, team_id, store_id)
        with report_compute_duration_seconds.labels(report=REPORT_CHANNELS).time():
            inputs = build_pnl_input(db, team_id=team_id, period=period, store_ids=store_ids)
            attribution = channel_attribution(compute_pnl(inputs), inputs.ad_spend)
        reports_computed_total.labels(report=REPORT_CHANNELS).inc()
        logger.info(
            "channel_attribution_computed",
            extra={"team_id": team_id, "store_id": store_id, "channels": len(attribution.channels)},
        )
        return attribution.to_dict()

    key = report_cache_key(REPORT_CHANNELS, team_id, period.start, period.end, store_id)
    return _cached(REPORT_CHANNELS, key, get_settings().cache_ttl_channels_sec, compute)


def get_order_profit(db: Session, *, team_id: int, order_id: int) -> dict[str, Any]:
    """Contribution profit of a single order (scoped to team).

    Raises:
        OrderNotFoundError: order missing or owned by another team

    """
    stmt = (
        select(models.Order)
        .join(models.Store, models.Order.store_id == models.Store.id)
        .where(models.Order.id == order_id, models.Store.team_id == team_id)
    )
    row = db.execute(stmt).scalar_one_or_none()
    if row is None:
        exists = db.get(models.Order, order_id) is not None
        if exists:
            tenant_unscoped_query_total.labels(error_type="foreign_order").inc()
        raise OrderNotFoundError(f"Order {order_id} not found")

    with report_compute_duration_seconds.labels(report=REPORT_ORDER_PROFIT).time():
        (order,) = _to_snapshots(db, [row])
        tiers = load_shipping_tiers(db, [row.store_id]).get(row.store_id, [])
        fees = load_fee_schedules(db, [row.store_id]).get(row.store_id, {})
        profit = order_profit(order, tiers, fees, _default_fee())
    reports_computed_total.labels(report=REPORT_ORDER_PROFIT).inc()

    result = profit.to_dict()
    result["store_id"] = row.store_id
    result["order_number"] = row.order_number
    result["processed_at"] = order.processed_at.isoformat()
    result["financial_status"] = row.financial_status
    return result


def invalidate_team_reports(team_id: int) -> int:
    """Drop every cached report of the team. Returns number of entries removed."""
    removed = sum(report_cache.delete_prefix(prefix) for prefix in team_prefixes(team_id, CACHED_REPORTS))
    logger.info("team_reports_invalidated", extra={"team_id": team_id, "removed": removed})
    return removed
