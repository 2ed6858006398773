"""Shipping configuration API endpoints (tier validation and quotes)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from app.domain.finance.shipping import (
    calculate_shipping_cost,
    calculate_shipping_savings,
    default_shipping_tiers,
    tiers_for_zone,
    validate_shipping_tiers,
)
from app.services.reports import StoreNotFoundError, load_shipping_tiers, team_store_ids
from app.web.deps import DBSession, TeamScope
from app.web.schemas import (
    ShippingQuote,
    ShippingQuoteRequest,
    ShippingValidateRequest,
    ShippingValidationResult,
)

router = APIRouter()


@router.post("/validate", response_model=ShippingValidationResult)
def validate_tiers(body: ShippingValidateRequest, team_id: TeamScope) -> ShippingValidationResult:
    """Validate a tier configuration before saving it.

    Reports gaps, overlaps, a first tier not starting at 1 and negative costs.
    The tiers are not modified.
    """
    errors = validate_shipping_tiers([t.to_domain() for t in body.tiers])
    return ShippingValidationResult(valid=not errors, errors=errors)


@router.post("/quote", response_model=ShippingQuote)
def quote(body: ShippingQuoteRequest, db: DBSession, team_id: TeamScope) -> ShippingQuote:
    """Carrier shipping cost for an item count, with bundling savings.

    zone_matched is False when the store has tiers but none applies to the
    requested zone; the cost is then 0.
    """
    if body.tiers is not None:
        tiers = [t.to_domain() for t in body.tiers]
        source = "request"
    elif body.store_id is not None:
        try:
            store_ids = team_store_ids(db, team_id, body.store_id)
        except StoreNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
        tiers = load_shipping_tiers(db, store_ids).get(body.store_id, [])
        source = "store"
    else:
        tiers = default_shipping_tiers()
        source = "default"

    savings = calculate_shipping_savings(body.item_count, tiers, body.per_item_cost, zone=body.zone)
    return ShippingQuote(
        item_count=body.item_count,
        shipping_cost=calculate_shipping_cost(body.item_count, tiers, body.zone),
        unbundled_cost=savings.unbundled_cost,
        savings=savings.savings,
        savings_pct=savings.savings_pct,
        tier_source=source,
        zone_matched=not tiers or bool(tiers_for_zone(tiers, body.zone)),
    )
