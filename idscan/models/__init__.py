"""
IdScan - Data Models

Shared data models used across the scoring engine and the scan synchronizer.
"""

from .domain import (
    Capability,
    CAPABILITY_COLUMNS,
    CompetitivePosition,
    DomainRecord,
    DomainStatus,
    IDENTITY_GRAPH_CAPABILITIES,
    IdBloatSeverity,
    PrivacyRiskLevel,
    PublisherContext,
    PublisherVertical,
    RankHistoryEntry,
    RankTrend,
    Scan,
    ScanStatus,
    TrafficConfidence,
    parse_enum,
)
from .results import (
    BenchmarkComparison,
    Opportunity,
    PainPoint,
    PortfolioTrendSummary,
    RevenueImpact,
    ScanSummary,
    Severity,
)

__all__ = [
    # Enums
    "Capability",
    "CAPABILITY_COLUMNS",
    "CompetitivePosition",
    "DomainStatus",
    "IDENTITY_GRAPH_CAPABILITIES",
    "IdBloatSeverity",
    "PrivacyRiskLevel",
    "PublisherVertical",
    "RankTrend",
    "ScanStatus",
    "Severity",
    "TrafficConfidence",
    "parse_enum",

    # Records
    "DomainRecord",
    "PublisherContext",
    "RankHistoryEntry",
    "Scan",

    # Derived results
    "BenchmarkComparison",
    "Opportunity",
    "PainPoint",
    "PortfolioTrendSummary",
    "RevenueImpact",
    "ScanSummary",
]
