"""SQLAlchemy ORM models for the profit dashboard.

This module defines the read model the report engine consumes:
- Tenancy (Teams, Stores)
- Catalog and cost history (Products, Variants, Cost Entries)
- Orders (Line Items, Refunds, Transactions)
- Merchant configuration (Shipping Tiers, Payment Fee Configs, Custom Costs)
- Advertising (Ad Accounts, Ad Spend)

Rows are written by the ingestion collaborators; the engine only reads them.
All datetimes are naive UTC.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Tenancy
# =============================================================================


class Team(Base):
    """Tenant boundary. Every report is scoped to exactly one team."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Store(Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), index=True)
    platform: Mapped[str] = mapped_column(String(20), default="SHOPIFY")
    name: Mapped[str] = mapped_column(String(200))
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="SEK")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# =============================================================================
# Catalog & Cost History
# =============================================================================


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    platform_product_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    is_shipping_exempt: Mapped[bool] = mapped_column(Boolean, default=False)  # digital goods, gift cards


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), index=True)
    platform_variant_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    price: Mapped[float] = mapped_column(Float, default=0.0)


class CostEntry(Base):
    """Time-versioned cost price of a variant.

    Cost at date D is the entry with the latest effective_from <= D.
    At most one entry per variant is open (effective_to is NULL).
    """

    __tablename__ = "cost_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    variant_id: Mapped[int] = mapped_column(
        ForeignKey("product_variants.id", ondelete="CASCADE"), index=True
    )
    cost_price: Mapped[float] = mapped_column(Float)
    effective_from: Mapped[datetime] = mapped_column(DateTime)
    effective_to: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    source: Mapped[str] = mapped_column(String(20), default="MANUAL")  # MANUAL | CSV_IMPORT | SHOPIFY_COST | API

    __table_args__ = (Index("ix_cost_entries_variant_from", "variant_id", "effective_from"),)


# =============================================================================
# Orders
# =============================================================================


class Order(Base):
    """Order as synced from the storefront. subtotal_price is VAT-exclusive."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    platform_order_id: Mapped[str] = mapped_column(String(64))
    order_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    subtotal_price: Mapped[float] = mapped_column(Float, default=0.0)
    total_shipping_price: Mapped[float] = mapped_column(Float, default=0.0)
    total_tax: Mapped[float] = mapped_column(Float, default=0.0)
    total_discounts: Mapped[float] = mapped_column(Float, default=0.0)
    total_price: Mapped[float] = mapped_column(Float, default=0.0)
    total_refund_amount: Mapped[float] = mapped_column(Float, default=0.0)

    financial_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="SEK")
    shipping_country: Mapped[str | None] = mapped_column(String(2), nullable=True)

    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("store_id", "platform_order_id", name="uq_order_platform_id"),
        Index("ix_orders_store_processed", "store_id", "processed_at"),
    )


class OrderLineItem(Base):
    __tablename__ = "order_line_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    variant_id: Mapped[int | None] = mapped_column(
        ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), default="")
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    price: Mapped[float] = mapped_column(Float, default=0.0)  # unit price
    total_discount: Mapped[float] = mapped_column(Float, default=0.0)
    tax_amount: Mapped[float] = mapped_column(Float, default=0.0)


class OrderRefund(Base):
    __tablename__ = "order_refunds"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    total_cogs_reversed: Mapped[float] = mapped_column(Float, default=0.0)  # COGS of restocked items
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class OrderTransaction(Base):
    __tablename__ = "order_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    kind: Mapped[str] = mapped_column(String(20), default="sale")  # sale | capture | refund
    status: Mapped[str] = mapped_column(String(20), default="success")
    gateway: Mapped[str | None] = mapped_column(String(50), nullable=True)
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    payment_fee: Mapped[float] = mapped_column(Float, default=0.0)
    payment_fee_calculated: Mapped[bool] = mapped_column(Boolean, default=False)


# =============================================================================
# Merchant Configuration
# =============================================================================


class ShippingCostTier(Base):
    """Carrier cost by item count. max_items NULL = unbounded."""

    __tablename__ = "shipping_cost_tiers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(100), default="")
    min_items: Mapped[int] = mapped_column(Integer)
    max_items: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cost: Mapped[float] = mapped_column(Float)
    cost_per_additional_item: Mapped[float] = mapped_column(Float, default=0.0)
    shipping_zone: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class PaymentFeeConfig(Base):
    __tablename__ = "payment_fee_configs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id", ondelete="CASCADE"), index=True)
    gateway: Mapped[str] = mapped_column(String(50))  # matched case-insensitively
    percentage_fee: Mapped[float] = mapped_column(Float)  # percent units, 2.9 = 2.9%
    fixed_fee: Mapped[float] = mapped_column(Float, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (UniqueConstraint("store_id", "gateway", name="uq_fee_store_gateway"),)


class CustomCost(Base):
    """Named custom cost: FIXED | VARIABLE | SALARY | ONE_TIME.

    MONTHLY FIXED/SALARY costs are distributed pro-rata over report periods
    using `amount` as the monthly figure; others are booked via entries.
    """

    __tablename__ = "custom_costs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    cost_type: Mapped[str] = mapped_column(String(20))
    recurrence_type: Mapped[str] = mapped_column(String(20), default="NONE")
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class CustomCostEntry(Base):
    __tablename__ = "custom_cost_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    cost_id: Mapped[int] = mapped_column(ForeignKey("custom_costs.id", ondelete="CASCADE"), index=True)
    amount: Mapped[float] = mapped_column(Float)
    date: Mapped[date] = mapped_column(Date, index=True)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)


# =============================================================================
# Advertising
# =============================================================================


class AdAccount(Base):
    __tablename__ = "ad_accounts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), index=True)
    platform: Mapped[str] = mapped_column(String(20))  # FACEBOOK | GOOGLE | TIKTOK
    platform_account_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(200), default="")
    currency: Mapped[str] = mapped_column(String(3), default="SEK")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class AdSpend(Base):
    """Daily ad spend row. Unique per account/date/campaign/ad set so re-syncs upsert."""

    __tablename__ = "ad_spend"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ad_account_id: Mapped[int] = mapped_column(
        ForeignKey("ad_accounts.id", ondelete="CASCADE"), index=True
    )
    date: Mapped[date] = mapped_column(Date, index=True)
    campaign_id: Mapped[str] = mapped_column(String(64), default="")
    campaign_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    adset_id: Mapped[str] = mapped_column(String(64), default="")
    adset_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    spend: Mapped[float] = mapped_column(Float, default=0.0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    conversions: Mapped[int] = mapped_column(Integer, default=0)
    revenue: Mapped[float] = mapped_column(Float, default=0.0)  # platform-attributed
    currency: Mapped[str] = mapped_column(String(3), default="SEK")

    __table_args__ = (
        UniqueConstraint(
            "ad_account_id", "date", "campaign_id", "adset_id", name="uq_ad_spend_account_date_campaign"
        ),
    )
