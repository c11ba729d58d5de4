"""
Scan Domain Models

Core records exchanged with the scan backend:
- DomainRecord: per-domain telemetry plus computed scores
- Scan: lifecycle and progress of one multi-domain scan
- PublisherContext: caller-supplied business context for a scan

Labels are Enums whose values are the strings stored by the backend.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Type, TypeVar


# =============================================================================
# ENUMS
# =============================================================================

class ScanStatus(Enum):
    """Scan lifecycle states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED)


class DomainStatus(Enum):
    """Outcome of scanning a single domain."""
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    BLOCKED = "blocked"


class IdBloatSeverity(Enum):
    """Cookie count severity bands."""
    LOW = "low"             # <= 40 cookies
    MEDIUM = "medium"       # 41-70
    HIGH = "high"           # 71-100
    CRITICAL = "critical"   # > 100


class PrivacyRiskLevel(Enum):
    """Consent compliance levels."""
    COMPLIANT = "compliant"
    MODERATE = "moderate"
    HIGH_RISK = "high-risk"


class CompetitivePosition(Enum):
    """Identity strategy position versus walled gardens."""
    WALLED_GARDEN_PARITY = "walled-garden-parity"
    MIDDLE_PACK = "middle-pack"
    AT_RISK = "at-risk"
    COMMODITIZED = "commoditized"


class TrafficConfidence(Enum):
    """Reliability of a rank-based traffic estimate."""
    HIGH = "high"       # Top 100K
    MEDIUM = "medium"   # 100K-1M
    LOW = "low"         # Beyond 1M


class RankTrend(Enum):
    """30-day traffic rank direction."""
    GROWING = "growing"
    STABLE = "stable"
    DECLINING = "declining"


class PublisherVertical(Enum):
    """Publisher verticals with distinct CPM benchmarks."""
    NEWS = "news"
    ENTERTAINMENT = "entertainment"
    AUTO = "auto"
    FINANCE = "finance"
    LIFESTYLE = "lifestyle"
    OTHER = "other"


class Capability(Enum):
    """Ad-tech and identity capabilities detected on a domain."""
    GOOGLE_ANALYTICS = "google_analytics"
    TAG_MANAGER = "gtm"
    CONSENT_MODE = "gcm"
    META_PIXEL = "meta_pixel"
    META_CAPI = "meta_capi"
    CONVERSION_API = "conversion_api"
    TRADE_DESK = "ttd"
    LIVERAMP = "liveramp"
    ID5 = "id5"
    CRITEO = "criteo"
    PPID = "ppid"
    PREBID = "prebid"
    HEADER_BIDDING = "header_bidding"


# Third-party identity graphs (rented identity)
IDENTITY_GRAPH_CAPABILITIES: FrozenSet[Capability] = frozenset({
    Capability.LIVERAMP,
    Capability.ID5,
    Capability.TRADE_DESK,
})

# Backend boolean columns -> capability
CAPABILITY_COLUMNS: Dict[str, Capability] = {
    "has_google_analytics": Capability.GOOGLE_ANALYTICS,
    "has_gtm": Capability.TAG_MANAGER,
    "has_gcm": Capability.CONSENT_MODE,
    "has_meta_pixel": Capability.META_PIXEL,
    "has_meta_capi": Capability.META_CAPI,
    "has_conversion_api": Capability.CONVERSION_API,
    "has_ttd": Capability.TRADE_DESK,
    "has_liveramp": Capability.LIVERAMP,
    "has_id5": Capability.ID5,
    "has_criteo": Capability.CRITEO,
    "has_ppid": Capability.PPID,
    "has_prebid": Capability.PREBID,
    "has_header_bidding": Capability.HEADER_BIDDING,
}

# Older scan-domain deployments wrote a four-level privacy scale
_LEGACY_PRIVACY_LABELS: Dict[str, PrivacyRiskLevel] = {
    "low": PrivacyRiskLevel.COMPLIANT,
    "high": PrivacyRiskLevel.HIGH_RISK,
    "critical": PrivacyRiskLevel.HIGH_RISK,
}

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, default: Optional[E] = None) -> Optional[E]:
    """Parse a stored label into an enum member, falling back to default."""
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# =============================================================================
# PUBLISHER CONTEXT
# =============================================================================

@dataclass(frozen=True)
class PublisherContext:
    """Business context declared by the caller when a scan is created."""
    monthly_impressions: Optional[int] = None
    publisher_vertical: Optional[PublisherVertical] = None
    owned_domains_count: Optional[int] = None

    @classmethod
    def from_scan(cls, scan: "Scan") -> Optional["PublisherContext"]:
        """Rebuild the context a scan persisted at creation time."""
        if not (scan.monthly_impressions or scan.publisher_vertical or scan.owned_domains_count):
            return None
        return cls(
            monthly_impressions=scan.monthly_impressions,
            publisher_vertical=scan.publisher_vertical,
            owned_domains_count=scan.owned_domains_count,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Scan-creation body fields (camelCase, as the edge function expects)."""
        payload: Dict[str, Any] = {}
        if self.monthly_impressions is not None:
            payload["monthlyImpressions"] = self.monthly_impressions
        if self.publisher_vertical is not None:
            payload["publisherVertical"] = self.publisher_vertical.value
        if self.owned_domains_count is not None:
            payload["ownedDomainsCount"] = self.owned_domains_count
        return payload


# =============================================================================
# SCAN
# =============================================================================

@dataclass(frozen=True)
class Scan:
    """One multi-domain scan invocation."""
    id: str
    status: ScanStatus
    total_domains: int = 0
    completed_domains: int = 0
    created_at: Optional[str] = None

    # Echo of the PublisherContext stored at creation
    monthly_impressions: Optional[int] = None
    publisher_vertical: Optional[PublisherVertical] = None
    owned_domains_count: Optional[int] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Scan":
        return cls(
            id=str(row["id"]),
            status=parse_enum(ScanStatus, row.get("status"), ScanStatus.PENDING),
            total_domains=_as_int(row.get("total_domains")),
            completed_domains=_as_int(row.get("completed_domains")),
            created_at=row.get("created_at"),
            monthly_impressions=_as_optional_int(row.get("monthly_impressions")),
            publisher_vertical=parse_enum(PublisherVertical, row.get("publisher_vertical")),
            owned_domains_count=_as_optional_int(row.get("owned_domains_count")),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress_percent(self) -> int:
        if self.total_domains <= 0:
            return 100 if self.status == ScanStatus.COMPLETED else 0
        return min(100, round(self.completed_domains / self.total_domains * 100))

    def differs_from(self, other: Optional["Scan"]) -> bool:
        """Structural diff on the fields that move during a scan."""
        if other is None:
            return True
        return (
            self.status != other.status
            or self.completed_domains != other.completed_domains
            or self.total_domains != other.total_domains
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "total_domains": self.total_domains,
            "completed_domains": self.completed_domains,
            "created_at": self.created_at,
            "monthly_impressions": self.monthly_impressions,
            "publisher_vertical": self.publisher_vertical.value if self.publisher_vertical else None,
            "owned_domains_count": self.owned_domains_count,
        }


# =============================================================================
# DOMAIN RECORD
# =============================================================================

@dataclass(frozen=True)
class RankHistoryEntry:
    """One day of traffic rank history."""
    date: str
    rank: int


@dataclass(frozen=True)
class DomainRecord:
    """
    Telemetry and scores for one scanned domain.

    Computed score fields are all set for successful scans and all None
    otherwise, so failed domains never enter portfolio averages.
    """
    id: str
    scan_id: str
    domain: str
    status: DomainStatus = DomainStatus.SUCCESS
    scanned_at: Optional[str] = None
    error_message: Optional[str] = None

    # Cookies
    total_cookies: int = 0
    first_party_cookies: int = 0
    third_party_cookies: int = 0
    safari_blocked_cookies: int = 0
    session_cookies: int = 0
    persistent_cookies: int = 0
    max_cookie_duration_days: int = 0

    # Vendors
    capabilities: FrozenSet[Capability] = frozenset()
    detected_ssps: Tuple[str, ...] = ()

    # Consent
    cmp_vendor: Optional[str] = None
    tcf_compliant: bool = False
    loads_pre_consent: bool = False

    # Traffic (Tranco)
    tranco_rank: Optional[int] = None
    estimated_monthly_pageviews: Optional[int] = None
    estimated_monthly_impressions: Optional[int] = None
    traffic_confidence: Optional[TrafficConfidence] = None
    rank_history: Tuple[RankHistoryEntry, ...] = field(default_factory=tuple)
    rank_trend: Optional[RankTrend] = None
    rank_change_30d: Optional[int] = None

    # Computed scores
    addressability_gap_pct: Optional[float] = None
    estimated_safari_loss_pct: Optional[float] = None
    id_bloat_severity: Optional[IdBloatSeverity] = None
    privacy_risk_level: Optional[PrivacyRiskLevel] = None
    competitive_position: Optional[CompetitivePosition] = None

    @property
    def is_success(self) -> bool:
        return self.status == DomainStatus.SUCCESS

    @property
    def has_conversion_api(self) -> bool:
        return Capability.CONVERSION_API in self.capabilities

    @property
    def has_owned_id(self) -> bool:
        return Capability.PPID in self.capabilities

    @property
    def has_identity_graph(self) -> bool:
        return bool(self.capabilities & IDENTITY_GRAPH_CAPABILITIES)

    @property
    def third_party_ratio(self) -> float:
        if self.total_cookies <= 0:
            return 0.0
        return self.third_party_cookies / self.total_cookies

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DomainRecord":
        """
        Parse a domain_results row.

        Missing counters coalesce to 0 and unknown labels to None so that
        a partially populated row never raises during aggregation.
        """
        raw_status = str(row.get("status") or "").lower()
        # scan-domain writes "completed" for a successful domain
        if raw_status == "completed":
            raw_status = DomainStatus.SUCCESS.value
        status = parse_enum(DomainStatus, raw_status, DomainStatus.FAILED)
        success = status == DomainStatus.SUCCESS

        capabilities = frozenset(
            capability for column, capability in CAPABILITY_COLUMNS.items() if row.get(column)
        )

        history = tuple(
            RankHistoryEntry(date=str(entry.get("date", "")), rank=_as_int(entry.get("rank")))
            for entry in (row.get("tranco_rank_history") or [])
            if isinstance(entry, dict)
        )

        privacy_label = row.get("privacy_risk_level")
        privacy = _LEGACY_PRIVACY_LABELS.get(str(privacy_label).lower()) if privacy_label else None
        if privacy is None:
            privacy = parse_enum(PrivacyRiskLevel, privacy_label)

        return cls(
            id=str(row["id"]),
            scan_id=str(row.get("scan_id", "")),
            domain=str(row.get("domain", "")),
            status=status,
            scanned_at=row.get("scanned_at"),
            error_message=row.get("error_message"),
            total_cookies=_as_int(row.get("total_cookies")),
            first_party_cookies=_as_int(row.get("first_party_cookies")),
            third_party_cookies=_as_int(row.get("third_party_cookies")),
            safari_blocked_cookies=_as_int(row.get("safari_blocked_cookies")),
            session_cookies=_as_int(row.get("session_cookies")),
            persistent_cookies=_as_int(row.get("persistent_cookies")),
            max_cookie_duration_days=_as_int(row.get("max_cookie_duration_days")),
            capabilities=capabilities,
            detected_ssps=tuple(row.get("detected_ssps") or ()),
            cmp_vendor=row.get("cmp_vendor") or None,
            tcf_compliant=bool(row.get("tcf_compliant")),
            loads_pre_consent=bool(row.get("loads_pre_consent")),
            tranco_rank=_as_optional_int(row.get("tranco_rank")),
            estimated_monthly_pageviews=_as_optional_int(row.get("estimated_monthly_pageviews")),
            estimated_monthly_impressions=_as_optional_int(row.get("estimated_monthly_impressions")),
            traffic_confidence=parse_enum(TrafficConfidence, row.get("traffic_confidence")),
            rank_history=history,
            rank_trend=parse_enum(RankTrend, row.get("rank_trend")),
            rank_change_30d=_as_optional_int(row.get("rank_change_30d")),
            addressability_gap_pct=_as_optional_float(row.get("addressability_gap_pct")) if success else None,
            estimated_safari_loss_pct=_as_optional_float(row.get("estimated_safari_loss_pct")) if success else None,
            id_bloat_severity=parse_enum(IdBloatSeverity, row.get("id_bloat_severity")) if success else None,
            privacy_risk_level=privacy if success else None,
            competitive_position=(
                parse_enum(CompetitivePosition, row.get("competitive_positioning")) if success else None
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export fields, using the backend column names."""
        row: Dict[str, Any] = {
            "id": self.id,
            "scan_id": self.scan_id,
            "domain": self.domain,
            "status": self.status.value,
            "scanned_at": self.scanned_at,
            "error_message": self.error_message,
            "total_cookies": self.total_cookies,
            "first_party_cookies": self.first_party_cookies,
            "third_party_cookies": self.third_party_cookies,
            "safari_blocked_cookies": self.safari_blocked_cookies,
            "session_cookies": self.session_cookies,
            "persistent_cookies": self.persistent_cookies,
            "max_cookie_duration_days": self.max_cookie_duration_days,
        }
        for column, capability in CAPABILITY_COLUMNS.items():
            row[column] = capability in self.capabilities
        row.update({
            "detected_ssps": list(self.detected_ssps),
            "cmp_vendor": self.cmp_vendor,
            "tcf_compliant": self.tcf_compliant,
            "loads_pre_consent": self.loads_pre_consent,
            "tranco_rank": self.tranco_rank,
            "estimated_monthly_pageviews": self.estimated_monthly_pageviews,
            "estimated_monthly_impressions": self.estimated_monthly_impressions,
            "traffic_confidence": self.traffic_confidence.value if self.traffic_confidence else None,
            "tranco_rank_history": [{"date": e.date, "rank": e.rank} for e in self.rank_history],
            "rank_trend": self.rank_trend.value if self.rank_trend else None,
            "rank_change_30d": self.rank_change_30d,
            "addressability_gap_pct": self.addressability_gap_pct,
            "estimated_safari_loss_pct": self.estimated_safari_loss_pct,
            "id_bloat_severity": self.id_bloat_severity.value if self.id_bloat_severity else None,
            "privacy_risk_level": self.privacy_risk_level.value if self.privacy_risk_level else None,
            "competitive_positioning": (
                self.competitive_position.value if self.competitive_position else None
            ),
        })
        return row
