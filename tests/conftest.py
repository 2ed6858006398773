"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import os
from datetime import date, datetime

# Must be set before app.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.core.cache import report_cache
from app.core.config import get_settings
from app.db.models import (
    AdAccount,
    AdSpend,
    Base,
    CostEntry,
    CustomCost,
    CustomCostEntry,
    Order,
    OrderLineItem,
    OrderRefund,
    OrderTransaction,
    PaymentFeeConfig,
    Product,
    ProductVariant,
    ShippingCostTier,
    Store,
    Team,
)


@pytest.fixture
def db() -> Session:
    """Create in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    session = Session(engine)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture(autouse=True)
def _reset_report_cache(redis_server):
    """Every test gets an empty in-memory Redis for the report cache and fresh settings."""
    report_cache.use_client(fakeredis.FakeRedis(server=redis_server, decode_responses=True))
    get_settings.cache_clear()
    yield
    report_cache.use_client(None)
    get_settings.cache_clear()


class Seeder:
    """Writes read-model rows the way the ingestion jobs would."""

    def __init__(self, db: Session):
        self.db = db
        self._order_seq = 0

    def _add(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def team(self, name: str = "Acme") -> Team:
        return self._add(Team(name=name))

    def store(self, team: Team, name: str = "Acme Shop", currency: str = "SEK") -> Store:
        return self._add(Store(team_id=team.id, name=name, currency=currency))

    def variant(
        self,
        store: Store,
        *,
        costs: tuple = (),
        title: str = "T-shirt",
        sku: str | None = None,
        shipping_exempt: bool = False,
    ) -> ProductVariant:
        """Create product + variant. costs: (cost_price, effective_from[, effective_to]) tuples."""
        product = self._add(Product(store_id=store.id, title=title, is_shipping_exempt=shipping_exempt))
        variant = self._add(ProductVariant(product_id=product.id, title=title, sku=sku))
        for cost in costs:
            cost_price, effective_from, *rest = cost
            self._add(
                CostEntry(
                    variant_id=variant.id,
                    cost_price=cost_price,
                    effective_from=effective_from,
                    effective_to=rest[0] if rest else None,
                )
            )
        return variant

    def order(
        self,
        store: Store,
        *,
        processed_at: datetime,
        subtotal: float = 0.0,
        shipping: float = 0.0,
        tax: float = 0.0,
        discounts: float = 0.0,
        refund_amount: float = 0.0,
        status: str | None = "paid",
        cancelled_at: datetime | None = None,
        email: str | None = None,
        country: str | None = None,
        items: tuple = (),
        refunds: tuple = (),
        transactions: tuple = (),
    ) -> Order:
        """Create an order.

        items: (variant or None, quantity, unit price) tuples
        refunds: (amount, cogs_reversed) tuples
        transactions: (gateway, amount) or (gateway, amount, fee, fee_calculated) tuples
        """
        self._order_seq += 1
        order = self._add(
            Order(
                store_id=store.id,
                platform_order_id=f"gid-{self._order_seq}",
                order_number=f"#{1000 + self._order_seq}",
                customer_email=email,
                subtotal_price=subtotal,
                total_shipping_price=shipping,
                total_tax=tax,
                total_discounts=discounts,
                total_price=subtotal + shipping + tax - discounts,
                total_refund_amount=refund_amount,
                financial_status=status,
                shipping_country=country,
                processed_at=processed_at,
                created_at=processed_at,
                cancelled_at=cancelled_at,
            )
        )
        for variant, quantity, price in items:
            self._add(
                OrderLineItem(
                    order_id=order.id,
                    variant_id=variant.id if variant is not None else None,
                    title=variant.title if variant is not None else "Custom item",
                    sku=variant.sku if variant is not None else None,
                    quantity=quantity,
                    price=price,
                )
            )
        for amount, cogs_reversed in refunds:
            self._add(OrderRefund(order_id=order.id, amount=amount, total_cogs_reversed=cogs_reversed))
        for tx in transactions:
            gateway, amount, *rest = tx
            fee, calculated = rest if rest else (0.0, False)
            self._add(
                OrderTransaction(
                    order_id=order.id,
                    gateway=gateway,
                    amount=amount,
                    payment_fee=fee,
                    payment_fee_calculated=calculated,
                )
            )
        return order

    def tiers(self, store: Store, tiers: tuple) -> None:
        """tiers: (min_items, max_items, cost, cost_per_additional_item[, zone]) tuples."""
        for min_items, max_items, cost, per_item, *zone in tiers:
            self._add(
                ShippingCostTier(
                    store_id=store.id,
                    min_items=min_items,
                    max_items=max_items,
                    cost=cost,
                    cost_per_additional_item=per_item,
                    shipping_zone=zone[0] if zone else None,
                )
            )

    def fee_config(self, store: Store, gateway: str, percentage_fee: float, fixed_fee: float) -> None:
        self._add(
            PaymentFeeConfig(
                store_id=store.id, gateway=gateway, percentage_fee=percentage_fee, fixed_fee=fixed_fee
            )
        )

    def custom_cost(
        self,
        team: Team,
        name: str,
        cost_type: str,
        *,
        recurrence: str = "NONE",
        amount: float = 0.0,
        entries: tuple = (),
    ) -> CustomCost:
        """entries: (amount, date) tuples."""
        cost = self._add(
            CustomCost(
                team_id=team.id, name=name, cost_type=cost_type, recurrence_type=recurrence, amount=amount
            )
        )
        for entry_amount, day in entries:
            self._add(CustomCostEntry(cost_id=cost.id, amount=entry_amount, date=day))
        return cost

    def ad_spend(
        self,
        team: Team,
        platform: str,
        day: date,
        spend: float,
        revenue: float = 0.0,
        campaign_id: str = "cmp-1",
    ) -> AdSpend:
        account = self.db.query(AdAccount).filter_by(team_id=team.id, platform=platform).first()
        if account is None:
            account = self._add(AdAccount(team_id=team.id, platform=platform, name=f"{platform} account"))
        return self._add(
            AdSpend(ad_account_id=account.id, date=day, campaign_id=campaign_id, spend=spend, revenue=revenue)
        )


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture
def jan_shop(db, seed):
    """Team with one store and the reference January 2025 order.

    Order: subtotal 400, shipping 50, tax 112.5 (25% VAT), two units with
    cost 100 each, paid 562.5 via Stripe (default fee schedule). Shipping
    tiers cost 32 for up to two items.
    """
    team = seed.team()
    store = seed.store(team)
    seed.tiers(store, ((1, 2, 32.0, 0.0), (3, None, 45.0, 5.0)))
    variant = seed.variant(store, costs=((100.0, datetime(2024, 12, 1)),), sku="TS-1")
    order = seed.order(
        store,
        processed_at=datetime(2025, 1, 15, 12, 0),
        subtotal=400.0,
        shipping=50.0,
        tax=112.5,
        email="Alice@Example.com",
        items=((variant, 2, 200.0),),
        transactions=(("stripe", 562.5),),
    )
    db.commit()
    return {"team": team, "store": store, "variant": variant, "order": order}
