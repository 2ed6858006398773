"""Pro-rata distribution of monthly recurring costs over a report period.

Proration is linear by day against the calendar month containing the period
start. A period spanning several months is still prorated against that one
month's day count.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date, datetime

from app.domain.finance.types import CostType, RecurringCost

DISTRIBUTED_COST_TYPES = frozenset({CostType.FIXED, CostType.SALARY})


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def days_in_period(start: date | datetime, end: date | datetime) -> int:
    """Inclusive day count of [start, end], never below 1."""
    return max(1, (_as_date(end) - _as_date(start)).days + 1)


def days_in_month(day: date | datetime) -> int:
    d = _as_date(day)
    return calendar.monthrange(d.year, d.month)[1]


def distribution_factor(start: date | datetime, end: date | datetime) -> float:
    """Share of one month covered by the period: days in period / days in start month."""
    return days_in_period(start, end) / days_in_month(start)


def distribute(monthly_amount: float, start: date | datetime, end: date | datetime) -> float:
    """Portion of a monthly amount attributable to [start, end].

    Example:
        >>> distribute(3000, date(2025, 1, 1), date(2025, 1, 10))  # 3000 * 10 / 31
        967.741935483871

    """
    return monthly_amount * distribution_factor(start, end)


def distribute_recurring(
    costs: Iterable[RecurringCost], start: date | datetime, end: date | datetime
) -> dict[CostType, dict[str, float]]:
    """Distribute monthly FIXED and SALARY costs, grouped by type then name.

    Other cost types are not distributed and are skipped.
    """
    factor = distribution_factor(start, end)
    result: dict[CostType, dict[str, float]] = {t: {} for t in DISTRIBUTED_COST_TYPES}
    for cost in costs:
        if cost.cost_type not in DISTRIBUTED_COST_TYPES:
            continue
        by_name = result[cost.cost_type]
        by_name[cost.name] = by_name.get(cost.name, 0.0) + cost.monthly_amount * factor
    return result
