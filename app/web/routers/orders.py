"""Order-level profit API endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from app.services.reports import OrderNotFoundError, get_order_profit
from app.web.deps import DBSession, TeamScope

router = APIRouter()


@router.get("/{order_id}/profit")
def order_profit(order_id: int, db: DBSession, team_id: TeamScope) -> dict:
    """Get contribution profit of one order (before ad spend and custom costs)."""
    try:
        return get_order_profit(db, team_id=team_id, order_id=order_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
