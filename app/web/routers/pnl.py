"""P&L report API endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from app.services.reports import StoreNotFoundError, get_pnl_report
from app.web.deps import DBSession, Period, TeamScope

router = APIRouter()


@router.get("")
def pnl_report(
    db: DBSession,
    team_id: TeamScope,
    period: Period,
    store_id: int | None = Query(None, description="Limit to one store of the team"),
) -> dict:
    """Get the Profit & Loss statement for a period.

    Revenue is reported both as the platform's gross figure (subtotal +
    shipping + tax) and ex VAT. Shipping cost is an operating expense and
    the corporate tax estimate is informational.
    """
    try:
        return get_pnl_report(db, team_id=team_id, period=period, store_id=store_id)
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
