"""Dashboard API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from app.services.reports import (
    ProductNotFoundError,
    StoreNotFoundError,
    get_channel_attribution,
    get_customer_metrics,
    get_dashboard_summary,
    get_product_detail,
    get_product_profitability,
)
from app.web.deps import DBSession, Period, TeamScope

router = APIRouter()


@router.get("/summary")
def dashboard_summary(
    db: DBSession,
    team_id: TeamScope,
    period: Period,
    store_id: int | None = Query(None, description="Limit to one store of the team"),
) -> dict:
    """Get dashboard summary for a period.

    Returns headline revenue, costs and profit (identical to the P&L),
    ROAS vs break-even ROAS, cost breakdown, daily series and trends
    against the preceding period of equal length.
    """
    try:
        return get_dashboard_summary(db, team_id=team_id, period=period, store_id=store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/customer-metrics")
def customer_metrics(
    db: DBSession,
    team_id: TeamScope,
    period: Period,
    store_id: int | None = Query(None, description="Limit to one store of the team"),
) -> dict:
    """Get customer acquisition and lifetime value metrics."""
    try:
        return get_customer_metrics(db, team_id=team_id, period=period, store_id=store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/top-products")
def top_products(
    db: DBSession,
    team_id: TeamScope,
    period: Period,
    store_id: int | None = Query(None, description="Limit to one store of the team"),
    limit: int = Query(5, ge=1, le=100, description="Number of products"),
) -> dict:
    """Get the most profitable products of the period.

    Product profit = line revenue - allocated refunds - COGS - allocated
    payment fees. Margin is null for products with uncosted lines.
    """
    try:
        products = get_product_profitability(db, team_id=team_id, period=period, store_id=store_id, limit=limit)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return {
        "products": products,
        "period": {"start": period.start.isoformat(), "end": period.end.isoformat()},
    }


@router.get("/products/{product_id}")
def product_details(product_id: int, db: DBSession, team_id: TeamScope, period: Period) -> dict:
    """Get profit of one product with variant and daily breakdowns."""
    try:
        return get_product_detail(db, team_id=team_id, product_id=product_id, period=period)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.get("/channel-attribution")
def channel_attribution(
    db: DBSession,
    team_id: TeamScope,
    period: Period,
    store_id: int | None = Query(None, description="Limit to one store of the team"),
) -> dict:
    """Get spend, platform revenue and ROAS per ad platform.

    Each channel is flagged profitable when its ROAS reaches the break-even
    ROAS of the period's P&L.
    """
    try:
        return get_channel_attribution(db, team_id=team_id, period=period, store_id=store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
