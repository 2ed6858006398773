"""Tiered (bundled) shipping cost calculation.

Shipping cost here is what the merchant pays the carrier, not what the
customer paid. Tiers map an item count to a base cost plus an optional
per-additional-item cost.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from app.domain.finance.money import round_currency, round_pct
from app.domain.finance.types import LineItem, ShippingTier


def _select_tier(item_count: int, tiers: Sequence[ShippingTier]) -> ShippingTier:
    """Pick the tier covering item_count from tiers sorted by min_items.

    Falls back to the tier with the highest min_items when nothing covers
    the count (bounded top tier exceeded).
    """
    for tier in tiers:
        if item_count >= tier.min_items and (tier.max_items is None or item_count <= tier.max_items):
            return tier
    return tiers[-1]


def tiers_for_zone(tiers: Iterable[ShippingTier], zone: str | None) -> list[ShippingTier]:
    """Tiers usable for zone: unrestricted ones plus those of the same zone.

    Zones compare case-insensitively ("se" matches "SE"). Without a zone every
    tier is returned.
    """
    tier_list = list(tiers)
    wanted = (zone or "").strip().upper()
    if not wanted:
        return tier_list
    return [t for t in tier_list if not t.shipping_zone or t.shipping_zone.strip().upper() == wanted]


def calculate_shipping_cost(
    item_count: int,
    tiers: Iterable[ShippingTier],
    zone: str | None = None,
) -> float:
    """Calculate carrier shipping cost for an order.

    Args:
        item_count: Physical (non-exempt) items in the order
        tiers: Active tiers of the store, in any order
        zone: Optional shipping zone; tiers bound to another zone are ignored
            (see tiers_for_zone)

    Returns:
        Shipping cost rounded to 2 decimals (0 for no items or no tiers)

    Example:
        >>> tiers = [ShippingTier(1, 1, 32), ShippingTier(2, 2, 42), ShippingTier(3, None, 52, 5)]
        >>> calculate_shipping_cost(5, tiers)
        62.0

    """
    tier_list = tiers_for_zone(tiers, zone)
    if item_count <= 0 or not tier_list:
        return 0.0

    tier = _select_tier(item_count, sorted(tier_list, key=lambda t: t.min_items))

    cost = tier.cost
    if tier.cost_per_additional_item > 0 and item_count > tier.min_items:
        cost += (item_count - tier.min_items) * tier.cost_per_additional_item

    return round_currency(cost)


def physical_item_count(line_items: Iterable[LineItem]) -> int:
    """Count items that actually ship (excludes shipping-exempt products)."""
    return sum(item.quantity for item in line_items if not item.shipping_exempt)


def validate_shipping_tiers(tiers: Sequence[ShippingTier]) -> list[str]:
    """Check a tier configuration without modifying it.

    Returns:
        Human-readable problems, empty when the configuration is valid

    """
    errors: list[str] = []
    if not tiers:
        errors.append("At least one shipping tier is required")
        return errors

    ordered = sorted(tiers, key=lambda t: t.min_items)

    if ordered[0].min_items != 1:
        errors.append("First tier must start at 1 item")

    for i, (current, nxt) in enumerate(zip(ordered, ordered[1:]), start=1):
        if current.max_items is None:
            errors.append(
                f"Overlap between tier {i} (unbounded) and tier {i + 1} (min: {nxt.min_items})"
            )
        elif current.max_items + 1 != nxt.min_items:
            errors.append(
                f"Gap or overlap between tier {i} (max: {current.max_items}) "
                f"and tier {i + 1} (min: {nxt.min_items})"
            )

    for tier in ordered:
        if tier.max_items is not None and tier.max_items < tier.min_items:
            errors.append(f"Tier with minItems={tier.min_items} has maxItems below minItems")
        if tier.cost < 0:
            errors.append(f"Tier with minItems={tier.min_items} has negative cost")
        if tier.cost_per_additional_item < 0:
            errors.append(f"Tier with minItems={tier.min_items} has negative per-item cost")

    return errors


@dataclass(frozen=True)
class ShippingSavings:
    bundled_cost: float
    unbundled_cost: float
    savings: float
    savings_pct: float


def calculate_shipping_savings(
    item_count: int,
    tiers: Sequence[ShippingTier],
    per_item_cost: float | None = None,
    zone: str | None = None,
) -> ShippingSavings:
    """Compare bundled tier cost against shipping every item separately.

    per_item_cost defaults to the cost of the lowest tier applicable to zone.
    """
    tiers = tiers_for_zone(tiers, zone)
    bundled = calculate_shipping_cost(item_count, tiers)

    if per_item_cost is None:
        ordered = sorted(tiers, key=lambda t: t.min_items)
        per_item_cost = ordered[0].cost if ordered else 0.0
    unbundled = per_item_cost * max(item_count, 0)

    savings = unbundled - bundled
    savings_pct = savings / unbundled * 100.0 if unbundled > 0 else 0.0

    return ShippingSavings(
        bundled_cost=bundled,
        unbundled_cost=round_currency(unbundled),
        savings=round_currency(savings),
        savings_pct=round_pct(savings_pct),
    )


def default_shipping_tiers() -> list[ShippingTier]:
    """Typical Swedish carrier rates (PostNord/DHL style)."""
    return [
        ShippingTier(min_items=1, max_items=1, cost=32.0, shipping_zone="SE"),
        ShippingTier(min_items=2, max_items=2, cost=42.0, shipping_zone="SE"),
        ShippingTier(min_items=3, max_items=5, cost=52.0, cost_per_additional_item=5.0, shipping_zone="SE"),
        ShippingTier(min_items=6, max_items=None, cost=72.0, cost_per_additional_item=3.0, shipping_zone="SE"),
    ]
