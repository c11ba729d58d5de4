"""
Scoring Helper Functions and Constants

Contains industry benchmarks, vertical CPMs, label orderings and the
revenue-loss formula shared by pain points and opportunities.
"""

import math
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from idscan.models import (
    CompetitivePosition,
    IdBloatSeverity,
    PrivacyRiskLevel,
    PublisherContext,
    PublisherVertical,
    Severity,
)


# ============================================================================
# INDUSTRY BENCHMARKS (2026)
# ============================================================================

BENCHMARKS: Dict[str, float] = {
    "avg_publisher_cookies": 47,
    "avg_third_party_ratio": 0.58,
    "safari_market_share": 0.52,          # Safari + Firefox combined
    "id_solution_adoption": 0.62,
    "cmp_adoption": 0.78,
    "tcf_compliant_rate": 0.34,
    "cpm_uplift_addressable": 0.45,       # CPM lift, addressable vs contextual
    "safari_cpm_penalty": 0.30,           # Lower CPM on unaddressable traffic
    "conversion_api_budget_capture": 0.61,  # Spend captured by walled gardens via CAPI
    "id_graph_tech_tax": 0.35,            # Margin lost to ID graph middlemen
}

SAFARI_MARKET_SHARE = BENCHMARKS["safari_market_share"]
SAFARI_CPM_PENALTY = BENCHMARKS["safari_cpm_penalty"]
CONVERSION_API_BUDGET_CAPTURE = BENCHMARKS["conversion_api_budget_capture"]
ID_GRAPH_TECH_TAX = BENCHMARKS["id_graph_tech_tax"]

# Share of spend recoverable once a Conversion API is live
CAPI_RECOVERABLE_SHARE = 0.25

# Premium uplift from verified cross-domain reach
DEDUPLICATION_UPLIFT = 0.15


# ============================================================================
# CPM BENCHMARKS BY VERTICAL
# ============================================================================

VERTICAL_CPMS: Dict[str, float] = {
    "news": 3.50,
    "entertainment": 4.00,
    "auto": 8.00,
    "finance": 12.00,
    "lifestyle": 5.00,
    "other": 4.50,
}


def get_cpm_for_vertical(vertical: Optional[PublisherVertical]) -> float:
    """
    Get benchmark CPM for a publisher vertical.

    Args:
        vertical: Publisher vertical (None for generic)

    Returns:
        CPM in dollars
    """
    if vertical is None:
        return VERTICAL_CPMS["other"]
    return VERTICAL_CPMS.get(vertical.value, VERTICAL_CPMS["other"])


def resolve_cpm(context: Optional[PublisherContext]) -> float:
    """CPM for the publisher context, generic default when absent."""
    return get_cpm_for_vertical(context.publisher_vertical if context else None)


# ============================================================================
# LABEL ORDERINGS (best -> worst)
# ============================================================================

ID_BLOAT_ORDER: List[IdBloatSeverity] = [
    IdBloatSeverity.LOW,
    IdBloatSeverity.MEDIUM,
    IdBloatSeverity.HIGH,
    IdBloatSeverity.CRITICAL,
]

PRIVACY_RISK_ORDER: List[PrivacyRiskLevel] = [
    PrivacyRiskLevel.COMPLIANT,
    PrivacyRiskLevel.MODERATE,
    PrivacyRiskLevel.HIGH_RISK,
]

POSITION_ORDER: List[CompetitivePosition] = [
    CompetitivePosition.WALLED_GARDEN_PARITY,
    CompetitivePosition.MIDDLE_PACK,
    CompetitivePosition.AT_RISK,
    CompetitivePosition.COMMODITIZED,
]

SEVERITY_RANK: Dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}

T = TypeVar("T")


def worst_of(values: Iterable[Optional[T]], order: Sequence[T]) -> T:
    """
    Worst label present, by ordinal position in ``order``.

    None entries are skipped; an empty input yields the best label.
    """
    worst = order[0]
    for value in values:
        if value is not None and order.index(value) > order.index(worst):
            worst = value
    return worst


# ============================================================================
# REVENUE FORMULAS
# ============================================================================

def calculate_monthly_revenue_loss(
    monthly_impressions: float,
    addressability_gap_pct: float,
    cpm: float,
) -> int:
    """
    Estimate monthly revenue lost to unaddressable inventory.

    Unaddressable impressions are discounted twice: by the gap share and by
    the Safari CPM penalty, since that inventory still sells, just cheaper.

    Args:
        monthly_impressions: Monthly ad impressions
        addressability_gap_pct: Unaddressable share (0-100)
        cpm: Benchmark CPM

    Returns:
        Monthly loss in dollars, rounded
    """
    lost_impressions = (monthly_impressions or 0) * ((addressability_gap_pct or 0) / 100)
    revenue_loss = (lost_impressions / 1000) * cpm * SAFARI_CPM_PENALTY
    return round_half_up(revenue_loss)


def annual_inventory_value(monthly_impressions: float, cpm: float, share: float) -> int:
    """Annual value of ``share`` of monthly inventory at ``cpm``."""
    return round_half_up((monthly_impressions / 1000) * cpm * share * 12)


def average(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (dollar figures)."""
    return int(math.floor(value + 0.5))
