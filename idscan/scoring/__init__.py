"""
Scoring Module for the IdScan Revenue Impact Engine

This module turns raw scan telemetry into executive signals:

1. **Traffic Estimate**
   Tranco rank to pageviews and impressions via a power-law fit.
   Rank history classified as growing / stable / declining.

2. **Domain Classification**
   ID bloat, privacy risk, competitive position, addressability gap
   and readiness grade for each successfully scanned domain.

3. **Revenue Impact**
   Portfolio pain points and opportunities with dollar estimates,
   rolled up into a ScanSummary.

Example Usage:
    from idscan.scoring import (
        generate_scan_summary,
        generate_revenue_impact,
        estimate_traffic,
    )

    summary = generate_scan_summary(records, context)
    print(f"Readiness: {summary.readiness_grade}")
    print(f"Annual loss: ${summary.total_revenue_loss:,}")

    impact = generate_revenue_impact(records, context)
    print(impact.headline)
"""

# Helper utilities and constants
from .helpers import (
    # Benchmarks
    BENCHMARKS,
    VERTICAL_CPMS,
    get_cpm_for_vertical,
    resolve_cpm,

    # Orderings
    ID_BLOAT_ORDER,
    POSITION_ORDER,
    PRIVACY_RISK_ORDER,
    worst_of,

    # Revenue formulas
    annual_inventory_value,
    calculate_monthly_revenue_loss,
    round_half_up,
)

# Traffic estimation
from .traffic import (
    DEFAULT_ADS_PER_PAGE,
    RankTrendAnalysis,
    TrafficEstimate,
    classify_rank_trend,
    estimate_annual_pageviews,
    estimate_monthly_impressions,
    estimate_monthly_pageviews,
    estimate_traffic,
    format_traffic_number,
    get_traffic_confidence,
)

# Per-domain classification
from .classifier import (
    calculate_addressability_gap_pct,
    calculate_competitive_position,
    calculate_id_bloat_severity,
    calculate_privacy_risk_level,
    calculate_readiness_grade,
    calculate_readiness_score,
    calculate_safari_loss_pct,
    describe_record,
    get_competitive_position_message,
    get_id_bloat_message,
    get_privacy_risk_message,
    grade_for_score,
    score_record,
)

# Portfolio impact
from .impact import (
    generate_opportunities,
    generate_pain_points,
    resolve_monthly_impressions,
)

# Summaries
from .summary import (
    SummaryBuilder,
    compare_to_benchmarks,
    generate_portfolio_trend_summary,
    generate_revenue_impact,
    generate_scan_summary,
    revenue_impact_from_summary,
)

__all__ = [
    # Helpers
    "BENCHMARKS",
    "VERTICAL_CPMS",
    "get_cpm_for_vertical",
    "resolve_cpm",
    "ID_BLOAT_ORDER",
    "POSITION_ORDER",
    "PRIVACY_RISK_ORDER",
    "worst_of",
    "annual_inventory_value",
    "calculate_monthly_revenue_loss",
    "round_half_up",

    # Traffic
    "DEFAULT_ADS_PER_PAGE",
    "RankTrendAnalysis",
    "TrafficEstimate",
    "classify_rank_trend",
    "estimate_annual_pageviews",
    "estimate_monthly_impressions",
    "estimate_monthly_pageviews",
    "estimate_traffic",
    "format_traffic_number",
    "get_traffic_confidence",

    # Classification
    "calculate_addressability_gap_pct",
    "calculate_competitive_position",
    "calculate_id_bloat_severity",
    "calculate_privacy_risk_level",
    "calculate_readiness_grade",
    "calculate_readiness_score",
    "calculate_safari_loss_pct",
    "describe_record",
    "get_competitive_position_message",
    "get_id_bloat_message",
    "get_privacy_risk_message",
    "grade_for_score",
    "score_record",

    # Impact
    "generate_opportunities",
    "generate_pain_points",
    "resolve_monthly_impressions",

    # Summaries
    "SummaryBuilder",
    "compare_to_benchmarks",
    "generate_portfolio_trend_summary",
    "generate_revenue_impact",
    "generate_scan_summary",
    "revenue_impact_from_summary",
]
