"""Payment gateway fee resolution.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from app.domain.finance.types import FeeSchedule

DEFAULT_FEE_SCHEDULE = FeeSchedule(percentage_fee=2.9, fixed_fee=3.0)

OTHER_GATEWAY = "other"

_GATEWAY_DISPLAY_NAMES = {
    "stripe": "Stripe",
    "klarna": "Klarna",
    "paypal": "PayPal",
    "shopify_payments": "Shopify Payments",
    "manual": "Manual",
    "cash": "Cash",
    "bank_transfer": "Bank Transfer",
}


def gateway_key(gateway: str | None) -> str:
    """Lookup key for fee schedules: lower-cased raw gateway, 'other' if empty."""
    if not gateway:
        return OTHER_GATEWAY
    return gateway.strip().lower() or OTHER_GATEWAY


def resolve_fee(
    gateway: str | None,
    amount: float,
    configs: Mapping[str, FeeSchedule],
    default: FeeSchedule = DEFAULT_FEE_SCHEDULE,
    *,
    platform_fee: float = 0.0,
    fee_calculated: bool = False,
) -> float:
    """Processing fee of one transaction.

    A positive fee already calculated by the platform is used verbatim.
    Otherwise the merchant schedule for the gateway applies (default when
    absent): amount * percentage_fee / 100 + fixed_fee.

    Args:
        gateway: Raw gateway name from the transaction
        amount: Transaction amount
        configs: Schedules keyed by lower-cased gateway
        default: Schedule for gateways without a merchant config
        platform_fee: Fee reported by the platform
        fee_calculated: Whether platform_fee was calculated upstream

    Returns:
        Fee (unrounded)

    """
    if fee_calculated and platform_fee > 0:
        return platform_fee

    schedule = configs.get(gateway_key(gateway), default)
    return amount * schedule.percentage_fee / 100.0 + schedule.fixed_fee


def normalize_gateway_name(gateway: str | None) -> str:
    """Display name used to group fees in reports."""
    key = gateway_key(gateway)
    if key in _GATEWAY_DISPLAY_NAMES:
        return _GATEWAY_DISPLAY_NAMES[key]
    return key[0].upper() + key[1:]


def build_fee_schedules(rows: Iterable[Any]) -> dict[str, FeeSchedule]:
    """Map active fee config rows to schedules keyed by lower-cased gateway.

    Rows need `gateway`, `percentage_fee`, `fixed_fee` and optionally
    `is_active` attributes (ORM objects or any namespace).
    """
    schedules: dict[str, FeeSchedule] = {}
    for row in rows:
        if not getattr(row, "is_active", True):
            continue
        schedules[gateway_key(row.gateway)] = FeeSchedule(
            percentage_fee=float(row.percentage_fee),
            fixed_fee=float(row.fixed_fee),
        )
    return schedules
