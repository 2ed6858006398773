"""Rounding and safe-division helpers shared by all finance calculations.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")
_TENTH = Decimal("0.1")


def _quantize(value: float, step: Decimal) -> float:
    # str() avoids binary artefacts, e.g. 2.675 stays 2.675 before rounding
    return float(Decimal(str(value)).quantize(step, rounding=ROUND_HALF_UP))


def round_currency(value: float) -> float:
    """Round to currency minor units (2 decimals, half-up)."""
    return _quantize(value, _CENT)


def round_pct(value: float) -> float:
    """Round a percentage to 1 decimal (half-up)."""
    return _quantize(value, _TENTH)


def round_ratio(value: float) -> float:
    """Round a ratio (ROAS, LTV:CAC) to 2 decimals."""
    return _quantize(value, _CENT)


def safe_margin(profit: float, revenue: float) -> float:
    """Margin percentage = profit / revenue * 100.

    Returns 0.0 when revenue is 0 or negative, whatever the sign of profit.
    """
    if revenue <= 0:
        return 0.0
    return (profit / revenue) * 100.0


def safe_change_pct(current: float, previous: float) -> float:
    """Relative change in percent; 0.0 when previous is 0."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100.0


def safe_div(numerator: float, denominator: float) -> float:
    """Plain division returning 0.0 for a zero denominator."""
    if denominator == 0:
        return 0.0
    return numerator / denominator
