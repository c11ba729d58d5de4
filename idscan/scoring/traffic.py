"""
Traffic Estimation

Converts a Tranco rank into pageview and impression estimates using a
power-law fit against panel data (R² = 0.992):

    pageviews_annual = 7.73 × 10^12 × rank^(-1.06)

Also classifies the 30-day rank trend from a newest-first rank history.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from idscan.models import RankHistoryEntry, RankTrend, TrafficConfidence

logger = logging.getLogger(__name__)


PAGEVIEW_COEFFICIENT = 7.73e12
PAGEVIEW_EXPONENT = -1.06
DEFAULT_ADS_PER_PAGE = 4

# Confidence bands
HIGH_CONFIDENCE_MAX_RANK = 100_000
MEDIUM_CONFIDENCE_MAX_RANK = 1_000_000

# Rank positions gained or lost over the window before a trend is called
TREND_THRESHOLD = 1000


@dataclass(frozen=True)
class TrafficEstimate:
    """Traffic estimate derived from a single rank."""
    rank: Optional[int]
    annual_pageviews: int
    monthly_pageviews: int
    monthly_impressions: int
    confidence: Optional[TrafficConfidence]


@dataclass(frozen=True)
class RankTrendAnalysis:
    """Rank movement over the history window (positive = improved)."""
    trend: RankTrend
    change: int


def estimate_annual_pageviews(rank: Optional[int]) -> int:
    """
    Estimate annual pageviews from Tranco rank.

    Args:
        rank: Tranco rank (1 = most popular)

    Returns:
        Estimated annual pageviews, 0 for an unknown or invalid rank
    """
    if not rank or rank <= 0:
        return 0
    return round(PAGEVIEW_COEFFICIENT * (rank ** PAGEVIEW_EXPONENT))


def estimate_monthly_pageviews(rank: Optional[int]) -> int:
    """Estimate monthly pageviews from Tranco rank."""
    return round(estimate_annual_pageviews(rank) / 12)


def estimate_monthly_impressions(
    monthly_pageviews: int,
    ads_per_page: int = DEFAULT_ADS_PER_PAGE,
) -> int:
    """Estimate monthly ad impressions, assuming ``ads_per_page`` slots."""
    return monthly_pageviews * ads_per_page


def get_traffic_confidence(rank: int) -> TrafficConfidence:
    """
    Get traffic confidence level for a Tranco rank.

    - High: Top 100K (well-tracked, reliable data)
    - Medium: 100K-1M (reasonable estimate)
    - Low: Beyond 1M (extrapolated)
    """
    if rank <= HIGH_CONFIDENCE_MAX_RANK:
        return TrafficConfidence.HIGH
    if rank <= MEDIUM_CONFIDENCE_MAX_RANK:
        return TrafficConfidence.MEDIUM
    return TrafficConfidence.LOW


def estimate_traffic(
    rank: Optional[int],
    ads_per_page: int = DEFAULT_ADS_PER_PAGE,
) -> TrafficEstimate:
    """
    Full traffic estimate for a rank.

    An unknown rank degrades to a zero estimate with no confidence.
    """
    if not rank or rank <= 0:
        return TrafficEstimate(
            rank=None,
            annual_pageviews=0,
            monthly_pageviews=0,
            monthly_impressions=0,
            confidence=None,
        )

    monthly = estimate_monthly_pageviews(rank)
    return TrafficEstimate(
        rank=rank,
        annual_pageviews=estimate_annual_pageviews(rank),
        monthly_pageviews=monthly,
        monthly_impressions=estimate_monthly_impressions(monthly, ads_per_page),
        confidence=get_traffic_confidence(rank),
    )


def classify_rank_trend(history: Sequence[RankHistoryEntry]) -> RankTrendAnalysis:
    """
    Classify rank direction from a newest-first history.

    Lower rank is better, so ``oldest - newest`` is positive when the
    domain climbed.

    Args:
        history: Rank entries ordered newest first

    Returns:
        RankTrendAnalysis; fewer than two points is stable with change 0
    """
    if len(history) < 2:
        return RankTrendAnalysis(trend=RankTrend.STABLE, change=0)

    change = history[-1].rank - history[0].rank

    if change > TREND_THRESHOLD:
        trend = RankTrend.GROWING
    elif change < -TREND_THRESHOLD:
        trend = RankTrend.DECLINING
    else:
        trend = RankTrend.STABLE

    return RankTrendAnalysis(trend=trend, change=change)


def format_traffic_number(num: float) -> str:
    """Format large numbers for display (1.2B, 3.4M, 5.6K)."""
    if num >= 1e9:
        return f"{num / 1e9:.1f}B"
    if num >= 1e6:
        return f"{num / 1e6:.1f}M"
    if num >= 1e3:
        return f"{num / 1e3:.1f}K"
    return str(int(num))
