"""Report cache management endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from app.services.reports import invalidate_team_reports
from app.web.deps import TeamScope
from app.web.schemas import InvalidateResult

router = APIRouter()


@router.post("/invalidate", response_model=InvalidateResult)
def invalidate(team_id: TeamScope) -> InvalidateResult:
    """Drop cached reports of the team, e.g. after a data sync finished."""
    return InvalidateResult(team_id=team_id, removed=invalidate_team_reports(team_id))
