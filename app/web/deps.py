"""FastAPI dependencies for database sessions, team scope and report periods."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.metrics import tenant_unscoped_query_total
from app.db.session import get_db
from app.domain.finance.period import ReportPeriod, resolve_period


def get_team_scope(x_team_id: Annotated[int | None, Header()] = None) -> int:
    """Get team_id for scoping queries.

    The upstream auth collaborator sets X-Team-Id after resolving the
    session's team membership.

    Raises:
        HTTPException: 403 if the header is missing

    Usage:
        >>> @router.get("/pnl")
        >>> def pnl(team_id: TeamScope):
        >>>     # team_id is guaranteed to be present

    """
    if x_team_id is None:
        tenant_unscoped_query_total.labels(error_type="missing_team_id").inc()
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No team scope. Requests must carry X-Team-Id.",
        )
    return x_team_id


def get_report_period(
    start_date: date | None = Query(None, description="Period start (YYYY-MM-DD), inclusive"),
    end_date: date | None = Query(None, description="Period end (YYYY-MM-DD), inclusive"),
    period_type: str = Query(
        "month", pattern="^(month|quarter|year)$", description="Used when no explicit range is given"
    ),
) -> ReportPeriod:
    """Resolve the report period from query parameters.

    Raises:
        HTTPException: 422 for an invalid range

    """
    try:
        return resolve_period(start_date, end_date, period_type)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


# Type aliases for cleaner endpoints
DBSession = Annotated[Session, Depends(get_db)]
TeamScope = Annotated[int, Depends(get_team_scope)]
Period = Annotated[ReportPeriod, Depends(get_report_period)]
