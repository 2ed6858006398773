"""Ad channel attribution: spend, platform-reported revenue and ROAS per platform.

Each platform's ROAS is judged against the break-even ROAS of the same P&L
report the dashboard shows, so a channel is "profitable" here exactly when
it would be on the dashboard.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from app.domain.finance.money import round_currency, round_pct, round_ratio, safe_div
from app.domain.finance.period import ReportPeriod
from app.domain.finance.pnl import PnLReport
from app.domain.finance.summary import break_even_roas, variable_cost_ratio
from app.domain.finance.types import AdSpendRow

PLATFORM_NAMES = {
    "FACEBOOK": "Facebook Ads",
    "META": "Meta Ads",
    "GOOGLE": "Google Ads",
    "TIKTOK": "TikTok Ads",
    "SNAPCHAT": "Snapchat Ads",
    "PINTEREST": "Pinterest Ads",
}


def platform_display_name(platform: str) -> str:
    return PLATFORM_NAMES.get(platform.upper(), platform)


@dataclass
class ChannelStats:
    platform: str
    spend: float = 0.0
    revenue: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0

    @property
    def roas(self) -> float:
        return safe_div(self.revenue, self.spend)

    @property
    def cpc(self) -> float:
        return safe_div(self.spend, self.clicks)

    @property
    def cpm(self) -> float:
        return safe_div(self.spend, self.impressions) * 1000.0

    @property
    def ctr(self) -> float:
        return safe_div(self.clicks, self.impressions) * 100.0

    @property
    def conversion_rate(self) -> float:
        return safe_div(self.conversions, self.clicks) * 100.0

    def add(self, row: AdSpendRow) -> None:
        self.spend += row.spend
        self.revenue += row.revenue
        self.impressions += row.impressions
        self.clicks += row.clicks
        self.conversions += row.conversions

    def profit(self, cost_ratio: float) -> float:
        """Attributed revenue after variable costs, minus spend."""
        return self.revenue * (1.0 - cost_ratio) - self.spend


@dataclass
class ChannelAttribution:
    period: ReportPeriod
    variable_cost_ratio: float
    break_even_roas: float | None
    channels: list[ChannelStats] = field(default_factory=list)

    @property
    def totals(self) -> ChannelStats:
        total = ChannelStats(platform="ALL")
        for channel in self.channels:
            total.spend += channel.spend
            total.revenue += channel.revenue
            total.impressions += channel.impressions
            total.clicks += channel.clicks
            total.conversions += channel.conversions
        return total

    def is_profitable(self, stats: ChannelStats) -> bool:
        return stats.spend > 0 and self.break_even_roas is not None and stats.roas >= self.break_even_roas

    def _stats_to_dict(self, stats: ChannelStats) -> dict[str, Any]:
        return {
            "spend": round_currency(stats.spend),
            "revenue": round_currency(stats.revenue),
            "profit": round_currency(stats.profit(self.variable_cost_ratio)),
            "roas": round_ratio(stats.roas),
            "is_profitable": self.is_profitable(stats),
            "impressions": stats.impressions,
            "clicks": stats.clicks,
            "conversions": stats.conversions,
            "cpc": round_currency(stats.cpc),
            "cpm": round_currency(stats.cpm),
            "ctr": round_pct(stats.ctr),
            "conversion_rate": round_pct(stats.conversion_rate),
        }

    def to_dict(self) -> dict[str, Any]:
        break_even = round_ratio(self.break_even_roas) if self.break_even_roas is not None else None
        return {
            "period": self.period.name,
            "date_range": {"start": self.period.start.isoformat(), "end": self.period.end.isoformat()},
            "break_even_roas": break_even,
            "variable_cost_ratio": round_ratio(self.variable_cost_ratio),
            "channels": [
                {"platform": c.platform, "name": platform_display_name(c.platform), **self._stats_to_dict(c)}
                for c in self.channels
            ],
            "totals": self._stats_to_dict(self.totals),
        }


def channel_attribution(report: PnLReport, ad_spend: Iterable[AdSpendRow]) -> ChannelAttribution:
    """Group ad spend by platform and judge each platform's ROAS.

    Args:
        report: P&L report of the period (source of the variable cost ratio)
        ad_spend: Ad spend rows of the period

    Returns:
        ChannelAttribution with channels sorted by spend, highest first

    Notes:
        - Channel profit = platform revenue x (1 - variable cost ratio) - spend
        - Platform revenue is what the ad platform attributes to itself and
          is never added to P&L revenue

    """
    by_platform: dict[str, ChannelStats] = {}
    for row in ad_spend:
        stats = by_platform.get(row.platform)
        if stats is None:
            stats = by_platform[row.platform] = ChannelStats(platform=row.platform)
        stats.add(row)

    return ChannelAttribution(
        period=report.period,
        variable_cost_ratio=variable_cost_ratio(report),
        break_even_roas=break_even_roas(report),
        channels=sorted(by_platform.values(), key=lambda c: (-c.spend, c.platform)),
    )
