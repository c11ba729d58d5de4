"""
Revenue Impact Aggregator

Folds classified domain records into executive-level pain points and
opportunities with dollar estimates.

Pain points (independent rules, in this order, then sorted by severity):
1. Safari/Firefox blindness    - any domain with Safari-blocked cookies
2. Locked out of performance   - any domain without a Conversion API
3. Cookie bloat tax            - any domain with high/critical ID bloat
4. Identity tech tax           - identity graph without an owned ID
5. Regulatory exposure         - any high-risk privacy domain
6. Cross-domain deduplication  - several owned domains, some without owned ID

Opportunities mirror the pain points with a positive annual gain and are
ordered by explicit priority.

Only successful scans participate; failed, timed-out and blocked domains
carry no scores and never skew the portfolio.
"""

import logging
from typing import List, Optional, Sequence

from idscan.models import (
    DomainRecord,
    IdBloatSeverity,
    Opportunity,
    PainPoint,
    PrivacyRiskLevel,
    PublisherContext,
    Severity,
)

from .helpers import (
    CAPI_RECOVERABLE_SHARE,
    CONVERSION_API_BUDGET_CAPTURE,
    DEDUPLICATION_UPLIFT,
    ID_GRAPH_TECH_TAX,
    SEVERITY_RANK,
    annual_inventory_value,
    average,
    calculate_monthly_revenue_loss,
    resolve_cpm,
    round_half_up,
)

logger = logging.getLogger(__name__)


# Average gap above which Safari recovery is worth pitching
SAFARI_RECOVERY_MIN_GAP = 10


# =============================================================================
# INPUT RESOLUTION
# =============================================================================

def resolve_monthly_impressions(
    records: Sequence[DomainRecord],
    context: Optional[PublisherContext] = None,
) -> int:
    """
    Effective monthly impressions for the portfolio.

    Caller-declared impressions take precedence; otherwise the per-domain
    Tranco estimates are summed (missing estimates count as zero).
    """
    if context and context.monthly_impressions:
        return context.monthly_impressions
    return sum(r.estimated_monthly_impressions or 0 for r in records)


def successful_records(records: Sequence[DomainRecord]) -> List[DomainRecord]:
    """Records that completed scanning and carry scores."""
    return [r for r in records if r.is_success]


def average_addressability_gap(records: Sequence[DomainRecord]) -> float:
    """Mean addressability gap over scored records only."""
    return average([
        r.addressability_gap_pct for r in records
        if r.is_success and r.addressability_gap_pct is not None
    ])


def _domains(records: Sequence[DomainRecord]) -> tuple:
    return tuple(r.domain for r in records)


def _is_renting_identity(record: DomainRecord) -> bool:
    return record.has_identity_graph and not record.has_owned_id


# =============================================================================
# PAIN POINTS
# =============================================================================

def generate_pain_points(
    records: Sequence[DomainRecord],
    context: Optional[PublisherContext] = None,
) -> List[PainPoint]:
    """
    Generate pain points for a portfolio.

    Args:
        records: Scored domain records (any status)
        context: Optional publisher context

    Returns:
        Pain points sorted by severity (critical first), stable otherwise
    """
    scored = successful_records(records)
    cpm = resolve_cpm(context)
    impressions = resolve_monthly_impressions(records, context)
    pain_points: List[PainPoint] = []

    # Safari blindness
    safari_affected = [r for r in scored if r.safari_blocked_cookies > 0]
    if safari_affected:
        avg_gap = average([r.addressability_gap_pct or 0 for r in safari_affected])
        if avg_gap > 30:
            severity = Severity.CRITICAL
        elif avg_gap > 20:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        pain_points.append(PainPoint(
            id="safari-blindness",
            title="Safari/Firefox Blindness",
            description=(
                f"{round_half_up(avg_gap)}% of your inventory is invisible to advertisers "
                f"on Safari & Firefox."
            ),
            severity=severity,
            estimated_loss=(
                calculate_monthly_revenue_loss(impressions, avg_gap, cpm) * 12
                if impressions > 0 else None
            ),
            affected_domains=_domains(safari_affected),
        ))

    # No Conversion API
    no_capi = [r for r in scored if not r.has_conversion_api]
    if no_capi:
        pain_points.append(PainPoint(
            id="no-capi",
            title="Locked Out of Performance Budgets",
            description=(
                "Without Conversion API, you can't compete for performance advertising "
                "budgets that Meta/Google capture."
            ),
            severity=Severity.CRITICAL,
            estimated_loss=(
                annual_inventory_value(impressions, cpm, CONVERSION_API_BUDGET_CAPTURE)
                if impressions > 0 else None
            ),
            affected_domains=_domains(no_capi),
        ))

    # ID bloat
    bloated = [
        r for r in scored
        if r.id_bloat_severity in (IdBloatSeverity.HIGH, IdBloatSeverity.CRITICAL)
    ]
    if bloated:
        any_critical = any(r.id_bloat_severity == IdBloatSeverity.CRITICAL for r in bloated)
        pain_points.append(PainPoint(
            id="id-bloat",
            title="Cookie Bloat Tax",
            description="Excessive cookies are inflating CDP costs and crushing campaign performance.",
            severity=Severity.HIGH if any_critical else Severity.MEDIUM,
            affected_domains=_domains(bloated),
        ))

    # Tech tax: renting identity without an owned ID
    renting = [r for r in scored if _is_renting_identity(r)]
    if renting:
        pain_points.append(PainPoint(
            id="tech-tax",
            title="Renting Identity = Margin Hemorrhage",
            description=(
                "You're losing 30-50% margin to ID graph middlemen instead of building "
                "your own moat."
            ),
            severity=Severity.HIGH,
            estimated_loss=(
                annual_inventory_value(impressions, cpm, ID_GRAPH_TECH_TAX)
                if impressions > 0 else None
            ),
            affected_domains=_domains(renting),
        ))

    # Regulatory exposure
    high_risk = [r for r in scored if r.privacy_risk_level == PrivacyRiskLevel.HIGH_RISK]
    if high_risk:
        pain_points.append(PainPoint(
            id="privacy-risk",
            title="Board-Level Regulatory Exposure",
            description="Pre-consent tracking exposes you to regulatory fines and advertiser blacklists.",
            severity=Severity.CRITICAL,
            affected_domains=_domains(high_risk),
        ))

    # Cross-domain deduplication
    if context and context.owned_domains_count and context.owned_domains_count > 1:
        no_owned_id = [r for r in scored if not r.has_owned_id]
        if no_owned_id:
            pain_points.append(PainPoint(
                id="cross-domain",
                title="Cross-Domain Deduplication Impossible",
                description=(
                    "You're overcounting reach across properties. Advertisers don't trust "
                    "your numbers."
                ),
                severity=Severity.HIGH,
                affected_domains=_domains(no_owned_id),
            ))

    logger.debug(f"Detected {len(pain_points)} pain points across {len(scored)} domains")

    # sorted() is stable, so rule order breaks ties
    return sorted(pain_points, key=lambda p: SEVERITY_RANK[p.severity])


# =============================================================================
# OPPORTUNITIES
# =============================================================================

def generate_opportunities(
    records: Sequence[DomainRecord],
    context: Optional[PublisherContext] = None,
) -> List[Opportunity]:
    """
    Generate remediation opportunities for a portfolio.

    Zero-gain opportunities (compliance fixes) are still returned.

    Args:
        records: Scored domain records (any status)
        context: Optional publisher context

    Returns:
        Opportunities sorted by priority (1 first)
    """
    scored = successful_records(records)
    cpm = resolve_cpm(context)
    impressions = resolve_monthly_impressions(records, context)
    opportunities: List[Opportunity] = []

    # Safari recovery
    avg_gap = average_addressability_gap(records)
    if avg_gap > SAFARI_RECOVERY_MIN_GAP and impressions > 0:
        monthly_gain = calculate_monthly_revenue_loss(impressions, avg_gap, cpm)
        opportunities.append(Opportunity(
            id="safari-recovery",
            title="Recover Safari/Firefox Traffic",
            description="Deploy server-side first-party ID to make Safari/Firefox traffic addressable.",
            estimated_gain=monthly_gain * 12,
            timeline="2 weeks to deployment, 60 days to full realization",
            roi="140% lift from Safari addressability recovery",
            priority=1,
            product="AFxID",
        ))

    # Conversion API
    if any(not r.has_conversion_api for r in scored) and impressions > 0:
        opportunities.append(Opportunity(
            id="capi-unlock",
            title="Unlock Performance Budget Access",
            description="Implement Conversion API to compete for performance advertising budgets.",
            estimated_gain=annual_inventory_value(impressions, cpm, CAPI_RECOVERABLE_SHARE),
            timeline="4 weeks technical setup, 90 days to first retained deals",
            roi="3x addressable impressions, 2x CTR vs contextual",
            priority=2,
            product="AFxID Conversion Bridge",
        ))

    # Tech tax elimination
    if any(_is_renting_identity(r) for r in scored) and impressions > 0:
        annual_savings = annual_inventory_value(impressions, cpm, ID_GRAPH_TECH_TAX)
        opportunities.append(Opportunity(
            id="tech-tax-elimination",
            title="Eliminate Tech Tax",
            description="Replace rented ID graphs with owned PPID infrastructure.",
            estimated_gain=annual_savings,
            timeline="6 weeks federated deployment",
            roi=f"${round_half_up(annual_savings / 12):,}/month saved on ID graph fees",
            priority=3,
            product="AFxID Publisher Suite",
        ))

    # Cross-domain deduplication
    if context and context.owned_domains_count and context.owned_domains_count > 1:
        opportunities.append(Opportunity(
            id="deduplication",
            title="Cross-Domain Deduplication",
            description="Deploy federated identity across owned properties for accurate reach metrics.",
            estimated_gain=(
                annual_inventory_value(impressions, cpm, DEDUPLICATION_UPLIFT)
                if impressions > 0 else 0
            ),
            timeline="4 weeks technical, immediate reach accuracy improvement",
            roi="Premium deal flow restoration from verified reach metrics",
            priority=4,
            product="AFxID Federated",
        ))

    # Privacy compliance (risk reduction, not revenue)
    if any(r.privacy_risk_level == PrivacyRiskLevel.HIGH_RISK for r in scored):
        opportunities.append(Opportunity(
            id="privacy-fix",
            title="Regulatory Risk Mitigation",
            description="Fix pre-consent tracking and deploy TCF 2.0 compliant CMP.",
            estimated_gain=0,
            timeline="2 weeks compliance update",
            roi="Eliminates regulatory fines + advertiser blacklist exposure",
            priority=5,
            product="AFxID Privacy-First",
        ))

    return sorted(opportunities, key=lambda o: o.priority)
