"""
Domain Classifier

Stateless per-record classification of scan telemetry:

1. **ID Bloat Severity** - banded on total cookie count
2. **Privacy Risk** - consent timing and CMP/TCF presence
3. **Competitive Position** - owned identity vs rented identity graphs
4. **Addressability Gap** - share of inventory invisible on Safari/Firefox
5. **Readiness Grade** - 0-100 points mapped to a letter grade

Every function is total over well-formed input and never raises.
"""

import dataclasses
import logging
from typing import Dict, List, Optional, Tuple

from idscan.models import (
    CompetitivePosition,
    DomainRecord,
    IdBloatSeverity,
    PrivacyRiskLevel,
)

from .helpers import SAFARI_MARKET_SHARE
from .traffic import (
    DEFAULT_ADS_PER_PAGE,
    classify_rank_trend,
    estimate_traffic,
    format_traffic_number,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ID BLOAT
# =============================================================================

def calculate_id_bloat_severity(total_cookies: int) -> IdBloatSeverity:
    """
    Classify cookie count into a bloat severity.

    Args:
        total_cookies: Cookies set on the page

    Returns:
        IdBloatSeverity (>100 critical, >70 high, >40 medium)
    """
    if total_cookies > 100:
        return IdBloatSeverity.CRITICAL
    if total_cookies > 70:
        return IdBloatSeverity.HIGH
    if total_cookies > 40:
        return IdBloatSeverity.MEDIUM
    return IdBloatSeverity.LOW


ID_BLOAT_MESSAGES: Dict[IdBloatSeverity, str] = {
    IdBloatSeverity.CRITICAL: (
        "Cookie bloat is inflating your CDP costs by 40-60%. Your tech stack is working against you."
    ),
    IdBloatSeverity.HIGH: "ID bloat is costing you 25-40% more in CDP and analytics fees than necessary.",
    IdBloatSeverity.MEDIUM: "Moderate cookie overhead detected. Optimization opportunity exists.",
    IdBloatSeverity.LOW: "Cookie footprint is within industry norms.",
}


def get_id_bloat_message(severity: IdBloatSeverity) -> str:
    return ID_BLOAT_MESSAGES[severity]


# =============================================================================
# PRIVACY RISK
# =============================================================================

def calculate_privacy_risk_level(
    loads_pre_consent: bool,
    cmp_vendor: Optional[str],
    tcf_compliant: bool,
) -> PrivacyRiskLevel:
    """
    Classify consent compliance.

    Pre-consent loading is checked first: the violation has already
    happened even if a compliant CMP is present.

    Args:
        loads_pre_consent: Tracking fires before consent is given
        cmp_vendor: Detected CMP name (None if no CMP)
        tcf_compliant: CMP implements IAB TCF

    Returns:
        PrivacyRiskLevel
    """
    if loads_pre_consent or not cmp_vendor:
        return PrivacyRiskLevel.HIGH_RISK
    if not tcf_compliant:
        return PrivacyRiskLevel.MODERATE
    return PrivacyRiskLevel.COMPLIANT


PRIVACY_RISK_MESSAGES: Dict[PrivacyRiskLevel, str] = {
    PrivacyRiskLevel.HIGH_RISK: (
        "This is a board-level risk. Pre-consent tracking exposes you to regulatory fines "
        "and advertiser blacklists."
    ),
    PrivacyRiskLevel.MODERATE: "CMP present but not fully compliant. Regulatory exposure exists.",
    PrivacyRiskLevel.COMPLIANT: "Privacy compliance in good standing.",
}


def get_privacy_risk_message(level: PrivacyRiskLevel) -> str:
    return PRIVACY_RISK_MESSAGES[level]


# =============================================================================
# COMPETITIVE POSITION
# =============================================================================

def calculate_competitive_position(
    has_conversion_api: bool,
    has_owned_id: bool,
    has_identity_graph: bool,
    third_party_ratio: float,
) -> CompetitivePosition:
    """
    Classify identity strategy against walled-garden capabilities.

    Rules are evaluated in order; anything unmatched (e.g. identity graph
    plus owned ID without a Conversion API) falls back to middle-pack.

    Args:
        has_conversion_api: Server-side conversion reporting present
        has_owned_id: Publisher-provided ID (PPID) present
        has_identity_graph: LiveRamp / ID5 / Trade Desk present
        third_party_ratio: Third-party cookies / total cookies

    Returns:
        CompetitivePosition
    """
    if has_conversion_api and has_owned_id:
        return CompetitivePosition.WALLED_GARDEN_PARITY

    # Renting identity from graphs
    if has_identity_graph and not has_owned_id:
        return CompetitivePosition.MIDDLE_PACK

    # Heavy third-party dependency without owned identity
    if third_party_ratio > 0.6 and not has_owned_id:
        return CompetitivePosition.AT_RISK

    if not has_identity_graph and not has_owned_id and not has_conversion_api:
        return CompetitivePosition.COMMODITIZED

    return CompetitivePosition.MIDDLE_PACK


POSITION_MESSAGES: Dict[CompetitivePosition, str] = {
    CompetitivePosition.WALLED_GARDEN_PARITY: (
        "Strong foundation with conversion API and owned identity. "
        "Positioned to compete for premium budgets."
    ),
    CompetitivePosition.MIDDLE_PACK: (
        "Renting identity from ID graphs. Losing 30-50% margin to middlemen. "
        "Time to build your own moat."
    ),
    CompetitivePosition.AT_RISK: (
        "Your identity foundation is collapsing. 70%+ of your IDs are third-party cookies "
        "on the way out."
    ),
    CompetitivePosition.COMMODITIZED: (
        "Contextual-only = middle-pack pricing. You're in a race to the bottom on open exchanges."
    ),
}


def get_competitive_position_message(position: CompetitivePosition) -> str:
    return POSITION_MESSAGES[position]


# =============================================================================
# ADDRESSABILITY
# =============================================================================

def calculate_addressability_gap_pct(safari_blocked_cookies: int, total_cookies: int) -> float:
    """
    Percentage of inventory unaddressable on Safari/Firefox.

    Formula: (safari_blocked / total) × safari_market_share × 100

    Returns:
        Gap percentage (0-52); 0.0 when no cookies were observed
    """
    if total_cookies <= 0:
        return 0.0
    blocked_pct = safari_blocked_cookies / total_cookies
    return blocked_pct * SAFARI_MARKET_SHARE * 100


def calculate_safari_loss_pct(safari_blocked_cookies: int, total_cookies: int) -> float:
    """Estimated Safari loss; currently the same metric as the addressability gap."""
    return calculate_addressability_gap_pct(safari_blocked_cookies, total_cookies)


# =============================================================================
# READINESS GRADE
# =============================================================================

POSITION_POINTS: Dict[CompetitivePosition, int] = {
    CompetitivePosition.WALLED_GARDEN_PARITY: 40,
    CompetitivePosition.MIDDLE_PACK: 25,
    CompetitivePosition.AT_RISK: 10,
    CompetitivePosition.COMMODITIZED: 0,
}

PRIVACY_POINTS: Dict[PrivacyRiskLevel, int] = {
    PrivacyRiskLevel.COMPLIANT: 20,
    PrivacyRiskLevel.MODERATE: 10,
    PrivacyRiskLevel.HIGH_RISK: 0,
}

CONVERSION_API_POINTS = 25
OWNED_ID_POINTS = 15

# (minimum score, grade), highest first
GRADE_BANDS: List[Tuple[int, str]] = [
    (90, "A"),
    (80, "B+"),
    (70, "B"),
    (60, "C+"),
    (50, "C"),
    (40, "D"),
]


def calculate_readiness_score(
    position: CompetitivePosition,
    privacy_risk: PrivacyRiskLevel,
    has_conversion_api: bool,
    has_owned_id: bool,
) -> int:
    """
    Score identity readiness (0-100).

    Components:
        Position (0-40), Privacy (0-20), Conversion API (25), Owned ID (15)
    """
    score = POSITION_POINTS[position] + PRIVACY_POINTS[privacy_risk]
    if has_conversion_api:
        score += CONVERSION_API_POINTS
    if has_owned_id:
        score += OWNED_ID_POINTS
    return score


def grade_for_score(score: int) -> str:
    """Map a 0-100 readiness score to a letter grade."""
    for minimum, grade in GRADE_BANDS:
        if score >= minimum:
            return grade
    return "F"


def calculate_readiness_grade(
    position: CompetitivePosition,
    privacy_risk: PrivacyRiskLevel,
    has_conversion_api: bool,
    has_owned_id: bool,
) -> str:
    """Letter grade for identity readiness."""
    return grade_for_score(
        calculate_readiness_score(position, privacy_risk, has_conversion_api, has_owned_id)
    )


# =============================================================================
# RECORD SCORING
# =============================================================================

def score_record(
    record: DomainRecord,
    ads_per_page: int = DEFAULT_ADS_PER_PAGE,
    overwrite: bool = False,
) -> DomainRecord:
    """
    Return a copy of ``record`` with every computed field populated.

    Successful records keep scores the backend already supplied and get
    the missing ones derived from raw measurements (all of them when
    ``overwrite`` is set); a missing traffic estimate or trend is filled
    from the rank fields. Any other status gets all scores cleared.

    Args:
        record: Record as delivered by the scan backend
        ads_per_page: Ad slots per page for impression estimates
        overwrite: Recompute scores even when already present

    Returns:
        Scored DomainRecord
    """
    if not record.is_success:
        return dataclasses.replace(
            record,
            addressability_gap_pct=None,
            estimated_safari_loss_pct=None,
            id_bloat_severity=None,
            privacy_risk_level=None,
            competitive_position=None,
        )

    derived = {
        "addressability_gap_pct": lambda: calculate_addressability_gap_pct(
            record.safari_blocked_cookies, record.total_cookies
        ),
        "estimated_safari_loss_pct": lambda: calculate_safari_loss_pct(
            record.safari_blocked_cookies, record.total_cookies
        ),
        "id_bloat_severity": lambda: calculate_id_bloat_severity(record.total_cookies),
        "privacy_risk_level": lambda: calculate_privacy_risk_level(
            record.loads_pre_consent, record.cmp_vendor, record.tcf_compliant
        ),
        "competitive_position": lambda: calculate_competitive_position(
            record.has_conversion_api,
            record.has_owned_id,
            record.has_identity_graph,
            record.third_party_ratio,
        ),
    }
    updates = {
        name: compute()
        for name, compute in derived.items()
        if overwrite or getattr(record, name) is None
    }

    if record.tranco_rank and record.estimated_monthly_impressions is None:
        estimate = estimate_traffic(record.tranco_rank, ads_per_page)
        updates["estimated_monthly_pageviews"] = estimate.monthly_pageviews
        updates["estimated_monthly_impressions"] = estimate.monthly_impressions
        updates["traffic_confidence"] = estimate.confidence

    if record.rank_history and record.rank_trend is None:
        analysis = classify_rank_trend(record.rank_history)
        updates["rank_trend"] = analysis.trend
        updates["rank_change_30d"] = analysis.change

    if not updates:
        return record
    return dataclasses.replace(record, **updates)


def describe_record(record: DomainRecord) -> Dict[str, Optional[str]]:
    """
    Display text for a scored record.

    Messages are None when the matching label is missing (failed scans).
    """
    impressions = record.estimated_monthly_impressions
    return {
        "id_bloat": (
            get_id_bloat_message(record.id_bloat_severity) if record.id_bloat_severity else None
        ),
        "privacy_risk": (
            get_privacy_risk_message(record.privacy_risk_level) if record.privacy_risk_level else None
        ),
        "competitive_position": (
            get_competitive_position_message(record.competitive_position)
            if record.competitive_position else None
        ),
        "monthly_impressions": f"{format_traffic_number(impressions)}/mo" if impressions else None,
    }
