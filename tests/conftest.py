"""
Pytest Configuration and Shared Fixtures

Provides record/scan factories and an in-memory scan backend.
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from idscan.models import (
    Capability,
    DomainRecord,
    DomainStatus,
    PublisherContext,
    PublisherVertical,
    Scan,
    ScanStatus,
)


# ============================================================================
# Factories
# ============================================================================

_ids = itertools.count(1)


def make_record(
    domain: str = "example.com",
    scan_id: str = "scan-1",
    record_id: Optional[str] = None,
    capabilities: Sequence[Capability] = (),
    **overrides: Any,
) -> DomainRecord:
    """Successful, unscored domain record with sensible telemetry."""
    fields: Dict[str, Any] = {
        "id": record_id or f"result-{next(_ids)}",
        "scan_id": scan_id,
        "domain": domain,
        "status": DomainStatus.SUCCESS,
        "scanned_at": "2026-01-07T10:00:00Z",
        "total_cookies": 50,
        "first_party_cookies": 20,
        "third_party_cookies": 30,
        "safari_blocked_cookies": 25,
        "cmp_vendor": "OneTrust",
        "tcf_compliant": True,
        "loads_pre_consent": False,
        "capabilities": frozenset(capabilities),
    }
    fields.update(overrides)
    return DomainRecord(**fields)


def make_scan(
    scan_id: str = "scan-1",
    status: ScanStatus = ScanStatus.PROCESSING,
    total: int = 2,
    completed: int = 0,
    **overrides: Any,
) -> Scan:
    return Scan(
        id=scan_id,
        status=status,
        total_domains=total,
        completed_domains=completed,
        created_at="2026-01-07T09:59:00Z",
        **overrides,
    )


def make_result_row(domain: str = "example.com", **overrides: Any) -> Dict[str, Any]:
    """Raw domain_results row as the backend returns it."""
    row: Dict[str, Any] = {
        "id": f"row-{next(_ids)}",
        "scan_id": "scan-1",
        "domain": domain,
        "status": "success",
        "scanned_at": "2026-01-07T10:00:00Z",
        "total_cookies": 80,
        "first_party_cookies": 30,
        "third_party_cookies": 50,
        "safari_blocked_cookies": 40,
        "has_google_analytics": True,
        "has_gtm": True,
        "has_conversion_api": False,
        "has_ppid": False,
        "has_liveramp": True,
        "cmp_vendor": "Didomi",
        "tcf_compliant": True,
        "loads_pre_consent": False,
        "tranco_rank": 5000,
        "tranco_rank_history": [
            {"date": "2026-01-07", "rank": 5000},
            {"date": "2025-12-08", "rank": 8000},
        ],
        "detected_ssps": ["rubicon", "pubmatic"],
    }
    row.update(overrides)
    return row


@pytest.fixture
def news_context() -> PublisherContext:
    return PublisherContext(
        monthly_impressions=10_000_000,
        publisher_vertical=PublisherVertical.NEWS,
        owned_domains_count=3,
    )


# ============================================================================
# Fake backend
# ============================================================================

class FakeBackend:
    """In-memory ScanBackend with controllable push channels."""

    def __init__(self):
        self.scans: Dict[str, Scan] = {}
        self.results: Dict[str, List[DomainRecord]] = {}
        self.created: List[Dict[str, Any]] = []

        self.scan_handlers: Dict[str, Any] = {}
        self.result_handlers: Dict[str, Any] = {}
        self.unsubscribe_scan = AsyncMock()
        self.unsubscribe_results = AsyncMock()

        self.subscribe_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.fetch_delay: float = 0.0
        self.fetch_calls = 0

    async def create_scan(self, domains, context=None) -> str:
        scan_id = f"scan-{len(self.created) + 1}"
        self.created.append({"domains": list(domains), "context": context})
        self.scans[scan_id] = make_scan(scan_id, ScanStatus.PENDING, total=len(domains))
        self.results.setdefault(scan_id, [])
        return scan_id

    async def fetch_scan_snapshot(self, scan_id: str) -> Optional[Scan]:
        self.fetch_calls += 1
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.scans.get(scan_id)

    async def fetch_result_set(self, scan_id: str) -> List[DomainRecord]:
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.results.get(scan_id, []))

    async def subscribe_scan_updates(self, scan_id, on_update):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.scan_handlers[scan_id] = on_update
        return self.unsubscribe_scan

    async def subscribe_result_inserts(self, scan_id, on_insert):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.result_handlers[scan_id] = on_insert
        return self.unsubscribe_results

    def push_scan(self, scan: Scan):
        self.scans[scan.id] = scan
        self.scan_handlers[scan.id](scan)

    def push_result(self, record: DomainRecord):
        self.results.setdefault(record.scan_id, []).append(record)
        self.result_handlers[record.scan_id](record)

    async def close(self):
        pass


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
