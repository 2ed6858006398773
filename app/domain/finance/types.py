"""Read-only snapshot types consumed by the calculation core.

The service layer maps ORM rows onto these; domain functions never touch the
database. Amounts are plain floats in the store currency, timestamps are
naive UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class CostType(str, Enum):
    FIXED = "FIXED"
    VARIABLE = "VARIABLE"
    SALARY = "SALARY"
    ONE_TIME = "ONE_TIME"


class RecurrenceType(str, Enum):
    NONE = "NONE"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class CostEntry:
    """One version of a variant's cost price."""

    cost_price: float
    effective_from: date | datetime
    effective_to: date | datetime | None = None


@dataclass(frozen=True)
class LineItem:
    quantity: int
    price: float
    total_discount: float = 0.0
    variant_id: int | None = None
    title: str = ""
    sku: str | None = None
    product_id: int | None = None
    product_title: str | None = None
    variant_title: str | None = None
    cost_history: tuple[CostEntry, ...] = ()
    shipping_exempt: bool = False

    @property
    def line_revenue(self) -> float:
        """Line value after line discounts (ex VAT)."""
        return self.price * self.quantity - self.total_discount


@dataclass(frozen=True)
class Refund:
    amount: float
    cogs_reversed: float = 0.0


@dataclass(frozen=True)
class Transaction:
    gateway: str
    amount: float
    payment_fee: float = 0.0
    fee_calculated: bool = False


@dataclass(frozen=True)
class Order:
    """Order snapshot. `subtotal_price` is already VAT-exclusive."""

    id: int
    store_id: int
    processed_at: datetime
    subtotal_price: float = 0.0
    total_shipping_price: float = 0.0
    total_tax: float = 0.0
    total_discounts: float = 0.0
    total_price: float = 0.0
    total_refund_amount: float = 0.0
    financial_status: str | None = "paid"
    cancelled_at: datetime | None = None
    currency: str = "SEK"
    customer_email: str | None = None
    line_items: tuple[LineItem, ...] = ()
    refunds: tuple[Refund, ...] = ()
    transactions: tuple[Transaction, ...] = ()


@dataclass(frozen=True)
class ShippingTier:
    min_items: int
    max_items: int | None
    cost: float
    cost_per_additional_item: float = 0.0
    shipping_zone: str | None = None


@dataclass(frozen=True)
class FeeSchedule:
    """Gateway fee schedule; percentage_fee in percent units (2.9 = 2.9%)."""

    percentage_fee: float
    fixed_fee: float


@dataclass(frozen=True)
class CostPosting:
    """Discrete dated posting against a custom cost."""

    cost_type: CostType
    name: str
    amount: float
    posted_on: date


@dataclass(frozen=True)
class RecurringCost:
    """Monthly recurring custom cost, distributed pro-rata over a period."""

    cost_type: CostType
    name: str
    monthly_amount: float


@dataclass(frozen=True)
class AdSpendRow:
    platform: str
    spend_date: date
    spend: float
    revenue: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    campaign_name: str | None = None


@dataclass
class ReportWarning:
    """Data-quality warning attached to a report."""

    code: str
    message: str
    severity: str  # info | warning | error
    affected: list[str] = field(default_factory=list)
