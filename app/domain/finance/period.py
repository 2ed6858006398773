"""Report period resolution.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

PERIOD_TYPES = ("month", "quarter", "year")


@dataclass(frozen=True)
class ReportPeriod:
    """Inclusive calendar-day range [start, end] with a display name."""

    start: date
    end: date
    name: str

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def bounds(self) -> tuple[datetime, datetime]:
        """Datetime bounds [start 00:00, day after end 00:00) for querying."""
        return (
            datetime.combine(self.start, time.min),
            datetime.combine(self.end + timedelta(days=1), time.min),
        )

    def contains(self, moment: date | datetime) -> bool:
        day = moment.date() if isinstance(moment, datetime) else moment
        return self.start <= day <= self.end


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def resolve_period(
    start: date | None = None,
    end: date | None = None,
    period_type: str = "month",
    today: date | None = None,
) -> ReportPeriod:
    """Resolve the report period from an explicit range or a period type.

    An explicit start/end pair wins. Otherwise the current month, quarter or
    year (relative to today) is used.

    Raises:
        ValueError: start after end, only one bound given, or unknown period type

    """
    if start is not None or end is not None:
        if start is None or end is None:
            raise ValueError("start and end must be given together")
        if start > end:
            raise ValueError(f"start {start.isoformat()} is after end {end.isoformat()}")
        return ReportPeriod(start=start, end=end, name=f"{start.isoformat()} - {end.isoformat()}")

    today = today or date.today()

    if period_type == "month":
        return ReportPeriod(
            start=date(today.year, today.month, 1),
            end=_month_end(today.year, today.month),
            name=f"{calendar.month_name[today.month]} {today.year}",
        )
    if period_type == "quarter":
        quarter = (today.month - 1) // 3
        first_month = quarter * 3 + 1
        return ReportPeriod(
            start=date(today.year, first_month, 1),
            end=_month_end(today.year, first_month + 2),
            name=f"Q{quarter + 1} {today.year}",
        )
    if period_type == "year":
        return ReportPeriod(
            start=date(today.year, 1, 1),
            end=date(today.year, 12, 31),
            name=str(today.year),
        )

    raise ValueError(f"Unknown period type: {period_type!r} (expected one of {', '.join(PERIOD_TYPES)})")


def previous_period(period: ReportPeriod) -> ReportPeriod:
    """Period of the same length ending the day before period.start."""
    end = period.start - timedelta(days=1)
    start = end - timedelta(days=period.days - 1)
    return ReportPeriod(start=start, end=end, name=f"{start.isoformat()} - {end.isoformat()}")
