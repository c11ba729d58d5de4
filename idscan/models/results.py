"""
Scan Result Models

Derived outputs of the scoring engine. These are rebuilt from scratch on
every result-set change and never mutated in place.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .domain import CompetitivePosition, IdBloatSeverity, PrivacyRiskLevel


class Severity(Enum):
    """Pain point severity."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class PainPoint:
    """A business problem detected across the portfolio."""
    id: str
    title: str
    description: str
    severity: Severity
    affected_domains: Tuple[str, ...] = ()
    estimated_loss: Optional[int] = None  # Annual, None when not quantifiable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "estimated_loss": self.estimated_loss,
            "affected_domains": list(self.affected_domains),
        }


@dataclass(frozen=True)
class Opportunity:
    """A remediation with a quantified annual gain."""
    id: str
    title: str
    description: str
    estimated_gain: int
    timeline: str
    roi: str
    priority: int  # 1 = highest
    product: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "estimated_gain": self.estimated_gain,
            "timeline": self.timeline,
            "roi": self.roi,
            "priority": self.priority,
            "product": self.product,
        }


@dataclass(frozen=True)
class PortfolioTrendSummary:
    """Traffic and rank-trend rollup for the scanned portfolio."""
    growing_domains: int
    stable_domains: int
    declining_domains: int
    avg_rank: Optional[int]
    total_monthly_impressions: int
    estimated_monthly_revenue: int
    estimated_annual_loss: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "growing_domains": self.growing_domains,
            "stable_domains": self.stable_domains,
            "declining_domains": self.declining_domains,
            "avg_rank": self.avg_rank,
            "total_monthly_impressions": self.total_monthly_impressions,
            "estimated_monthly_revenue": self.estimated_monthly_revenue,
            "estimated_annual_loss": self.estimated_annual_loss,
        }


@dataclass(frozen=True)
class ScanSummary:
    """Portfolio-level scoring of a scan's result set."""
    total_revenue_loss: int
    avg_addressability_gap: float
    worst_id_bloat_severity: IdBloatSeverity
    overall_privacy_risk: PrivacyRiskLevel
    overall_position: CompetitivePosition
    readiness_grade: str
    pain_points: Tuple[PainPoint, ...] = ()
    opportunities: Tuple[Opportunity, ...] = ()
    portfolio_trend: Optional[PortfolioTrendSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_revenue_loss": self.total_revenue_loss,
            "avg_addressability_gap": self.avg_addressability_gap,
            "worst_id_bloat_severity": self.worst_id_bloat_severity.value,
            "overall_privacy_risk": self.overall_privacy_risk.value,
            "overall_position": self.overall_position.value,
            "readiness_grade": self.readiness_grade,
            "pain_points": [p.to_dict() for p in self.pain_points],
            "opportunities": [o.to_dict() for o in self.opportunities],
            "portfolio_trend": self.portfolio_trend.to_dict() if self.portfolio_trend else None,
        }


@dataclass(frozen=True)
class RevenueImpact:
    """Executive headline view of a scan summary."""
    headline: str
    total_monthly_loss: int
    strategic_position: CompetitivePosition
    readiness_grade: str
    pain_points: Tuple[PainPoint, ...] = ()
    opportunities: Tuple[Opportunity, ...] = ()
    impressions_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "impressions_label": self.impressions_label,
            "total_monthly_loss": self.total_monthly_loss,
            "strategic_position": self.strategic_position.value,
            "readiness_grade": self.readiness_grade,
            "pain_points": [p.to_dict() for p in self.pain_points],
            "opportunities": [o.to_dict() for o in self.opportunities],
        }


@dataclass(frozen=True)
class BenchmarkComparison:
    """One portfolio metric against its industry benchmark."""
    metric: str
    label: str
    your_value: float
    industry_value: float
    lower_is_better: bool = False
    unit: str = ""

    @property
    def is_better(self) -> bool:
        if self.lower_is_better:
            return self.your_value <= self.industry_value
        return self.your_value >= self.industry_value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "label": self.label,
            "your_value": self.your_value,
            "industry_value": self.industry_value,
            "lower_is_better": self.lower_is_better,
            "is_better": self.is_better,
            "unit": self.unit,
        }
