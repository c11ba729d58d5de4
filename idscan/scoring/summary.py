"""
Scan Summary Builder

Rebuilds the portfolio view from a scan's full result set:
- Worst-case labels across successful domains
- Pain points (top 3) and opportunities
- Readiness grade for the portfolio
- Traffic/trend rollup and industry benchmark comparison

Usage:
    from idscan.scoring import SummaryBuilder

    builder = SummaryBuilder()
    summary = builder.build(records, context)
    print(summary.readiness_grade, summary.total_revenue_loss)
"""

import logging
from typing import List, Optional, Sequence, Tuple

from idscan.models import (
    Capability,
    DomainRecord,
    PortfolioTrendSummary,
    PublisherContext,
    RankTrend,
    RevenueImpact,
    ScanSummary,
    BenchmarkComparison,
)

from .classifier import calculate_readiness_grade, score_record
from .helpers import (
    BENCHMARKS,
    ID_BLOAT_ORDER,
    POSITION_ORDER,
    PRIVACY_RISK_ORDER,
    average,
    calculate_monthly_revenue_loss,
    resolve_cpm,
    round_half_up,
    worst_of,
)
from .impact import (
    average_addressability_gap,
    generate_opportunities,
    generate_pain_points,
    successful_records,
)
from .traffic import DEFAULT_ADS_PER_PAGE, format_traffic_number

logger = logging.getLogger(__name__)


TOP_PAIN_POINTS = 3

# Typical gap is half the Safari/Firefox share
TYPICAL_ADDRESSABILITY_GAP = BENCHMARKS["safari_market_share"] * 100 * 0.5

ID_SOLUTION_CAPABILITIES = frozenset({
    Capability.LIVERAMP,
    Capability.ID5,
    Capability.TRADE_DESK,
    Capability.PPID,
})


def _score_all(records: Sequence[DomainRecord], ads_per_page: int) -> List[DomainRecord]:
    return [score_record(r, ads_per_page) for r in records]


# =============================================================================
# SCAN SUMMARY
# =============================================================================

def generate_scan_summary(
    records: Sequence[DomainRecord],
    context: Optional[PublisherContext] = None,
    ads_per_page: int = DEFAULT_ADS_PER_PAGE,
) -> ScanSummary:
    """
    Build the portfolio summary for a result set.

    Records are scored first, so raw backend rows can be passed directly.
    An empty or all-failed result set yields a zero-loss summary with
    best-case labels.

    Args:
        records: Domain records in arrival order
        context: Optional publisher context
        ads_per_page: Ad slots per page for traffic estimates

    Returns:
        ScanSummary
    """
    scored = _score_all(records, ads_per_page)
    successful = successful_records(scored)

    pain_points = generate_pain_points(scored, context)
    opportunities = generate_opportunities(scored, context)

    worst_bloat = worst_of((r.id_bloat_severity for r in successful), ID_BLOAT_ORDER)
    worst_risk = worst_of((r.privacy_risk_level for r in successful), PRIVACY_RISK_ORDER)
    worst_position = worst_of((r.competitive_position for r in successful), POSITION_ORDER)

    readiness_grade = calculate_readiness_grade(
        worst_position,
        worst_risk,
        any(r.has_conversion_api for r in successful),
        any(r.has_owned_id for r in successful),
    )

    total_loss = sum(p.estimated_loss or 0 for p in pain_points)

    return ScanSummary(
        total_revenue_loss=total_loss,
        avg_addressability_gap=average_addressability_gap(scored),
        worst_id_bloat_severity=worst_bloat,
        overall_privacy_risk=worst_risk,
        overall_position=worst_position,
        readiness_grade=readiness_grade,
        pain_points=tuple(pain_points[:TOP_PAIN_POINTS]),
        opportunities=tuple(opportunities),
        portfolio_trend=generate_portfolio_trend_summary(scored, context),
    )


def revenue_impact_from_summary(summary: ScanSummary) -> RevenueImpact:
    """Executive headline view of an existing summary."""
    if summary.total_revenue_loss > 0:
        headline = f"You're Leaving ${summary.total_revenue_loss:,}/Year on the Table"
    else:
        headline = f"Your 2026 Readiness Grade: {summary.readiness_grade}"

    impressions_label = None
    trend = summary.portfolio_trend
    if trend and trend.total_monthly_impressions > 0:
        impressions_label = f"{format_traffic_number(trend.total_monthly_impressions)} impressions/mo"

    return RevenueImpact(
        headline=headline,
        impressions_label=impressions_label,
        total_monthly_loss=round_half_up(summary.total_revenue_loss / 12),
        strategic_position=summary.overall_position,
        readiness_grade=summary.readiness_grade,
        pain_points=summary.pain_points,
        opportunities=summary.opportunities,
    )


def generate_revenue_impact(
    records: Sequence[DomainRecord],
    context: Optional[PublisherContext] = None,
    ads_per_page: int = DEFAULT_ADS_PER_PAGE,
) -> RevenueImpact:
    """Headline revenue impact for a result set."""
    return revenue_impact_from_summary(generate_scan_summary(records, context, ads_per_page))


# =============================================================================
# PORTFOLIO TRAFFIC
# =============================================================================

def generate_portfolio_trend_summary(
    records: Sequence[DomainRecord],
    context: Optional[PublisherContext] = None,
) -> PortfolioTrendSummary:
    """
    Traffic and trend rollup from Tranco estimates.

    Impressions are the sum of per-domain estimates regardless of scan
    status; the loss uses the average gap of successful domains only.
    """
    cpm = resolve_cpm(context)
    total_impressions = sum(r.estimated_monthly_impressions or 0 for r in records)
    avg_gap = average_addressability_gap(records)

    monthly_loss = 0
    if total_impressions > 0 and avg_gap > 0:
        monthly_loss = calculate_monthly_revenue_loss(total_impressions, avg_gap, cpm)

    ranks = [r.tranco_rank for r in records if r.tranco_rank]
    avg_rank = round_half_up(average(ranks)) if ranks else None

    return PortfolioTrendSummary(
        growing_domains=sum(1 for r in records if r.rank_trend == RankTrend.GROWING),
        stable_domains=sum(1 for r in records if r.rank_trend == RankTrend.STABLE),
        declining_domains=sum(1 for r in records if r.rank_trend == RankTrend.DECLINING),
        avg_rank=avg_rank,
        total_monthly_impressions=total_impressions,
        estimated_monthly_revenue=round_half_up((total_impressions / 1000) * cpm),
        estimated_annual_loss=monthly_loss * 12,
    )


# =============================================================================
# BENCHMARKS
# =============================================================================

def compare_to_benchmarks(records: Sequence[DomainRecord]) -> List[BenchmarkComparison]:
    """
    Compare successful domains against industry benchmarks.

    Returns:
        One comparison per metric; empty when no domain scanned successfully
    """
    successful = successful_records(records)
    if not successful:
        return []

    def rate(predicate) -> float:
        return sum(1 for r in successful if predicate(r)) / len(successful) * 100

    return [
        BenchmarkComparison(
            metric="cookies_per_domain",
            label="Cookies per Domain",
            your_value=float(round_half_up(average([r.total_cookies for r in successful]))),
            industry_value=BENCHMARKS["avg_publisher_cookies"],
            lower_is_better=True,
        ),
        BenchmarkComparison(
            metric="third_party_ratio",
            label="Third-Party Cookie Ratio",
            your_value=average([r.third_party_ratio for r in successful]) * 100,
            industry_value=BENCHMARKS["avg_third_party_ratio"] * 100,
            lower_is_better=True,
            unit="%",
        ),
        BenchmarkComparison(
            metric="cmp_adoption",
            label="CMP Adoption",
            your_value=rate(lambda r: bool(r.cmp_vendor)),
            industry_value=BENCHMARKS["cmp_adoption"] * 100,
            unit="%",
        ),
        BenchmarkComparison(
            metric="tcf_compliance",
            label="TCF 2.0 Compliance",
            your_value=rate(lambda r: r.tcf_compliant),
            industry_value=BENCHMARKS["tcf_compliant_rate"] * 100,
            unit="%",
        ),
        BenchmarkComparison(
            metric="id_solution_adoption",
            label="ID Solution Adoption",
            your_value=rate(lambda r: bool(r.capabilities & ID_SOLUTION_CAPABILITIES)),
            industry_value=BENCHMARKS["id_solution_adoption"] * 100,
            unit="%",
        ),
        BenchmarkComparison(
            metric="addressability_gap",
            label="Safari Addressability Gap",
            your_value=average_addressability_gap(successful),
            industry_value=TYPICAL_ADDRESSABILITY_GAP,
            lower_is_better=True,
            unit="%",
        ),
    ]


# =============================================================================
# CACHING BUILDER
# =============================================================================

class SummaryBuilder:
    """
    Memoizes the summary for the last result set seen.

    The cache key is the ordered record ids plus the publisher context, so
    a new result (or a different context) triggers a full rebuild while
    redundant calls return the same object.
    """

    def __init__(self, ads_per_page: int = DEFAULT_ADS_PER_PAGE):
        self.ads_per_page = ads_per_page
        self._key: Optional[Tuple] = None
        self._summary: Optional[ScanSummary] = None

    def build(
        self,
        records: Sequence[DomainRecord],
        context: Optional[PublisherContext] = None,
    ) -> ScanSummary:
        key = (tuple(r.id for r in records), context)
        if self._summary is not None and key == self._key:
            return self._summary

        logger.debug(f"Rebuilding summary for {len(records)} results")
        self._summary = generate_scan_summary(records, context, self.ads_per_page)
        self._key = key
        return self._summary

    def invalidate(self):
        self._key = None
        self._summary = None
