"""Pydantic schemas for API requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.domain.finance.types import ShippingTier


# Shipping schemas
class ShippingTierIn(BaseModel):
    """Shipping tier as configured by the merchant."""

    min_items: int = Field(..., description="First item count covered by the tier")
    max_items: int | None = Field(None, description="Last item count covered (None = unbounded)")
    cost: float = Field(..., description="Base carrier cost")
    cost_per_additional_item: float = Field(0.0, description="Cost per item above min_items")
    shipping_zone: str | None = Field(None, description="Zone the tier applies to (None = all)")

    def to_domain(self) -> ShippingTier:
        return ShippingTier(
            min_items=self.min_items,
            max_items=self.max_items,
            cost=self.cost,
            cost_per_additional_item=self.cost_per_additional_item,
            shipping_zone=self.shipping_zone,
        )


class ShippingValidateRequest(BaseModel):
    tiers: list[ShippingTierIn] = Field(default_factory=list)


class ShippingValidationResult(BaseModel):
    valid: bool
    errors: list[str]


class ShippingQuoteRequest(BaseModel):
    """Shipping quote input.

    Tiers come from the request, else from the store's active tiers, else
    the default Swedish tier set.
    """

    item_count: int = Field(..., ge=0, description="Physical items in the order")
    tiers: list[ShippingTierIn] | None = None
    store_id: int | None = Field(None, description="Use this store's configured tiers")
    zone: str | None = None
    per_item_cost: float | None = Field(None, description="Unbundled cost per item for savings")


class ShippingQuote(BaseModel):
    item_count: int
    shipping_cost: float
    unbundled_cost: float
    savings: float
    savings_pct: float
    tier_source: str = Field(..., description="request | store | default")
    zone_matched: bool = Field(True, description="False when no tier applies to the requested zone")


# Cache schemas
class InvalidateResult(BaseModel):
    team_id: int
    removed: int
