"""
Test Suite for the Scan Service

Runs the full workflow against the in-memory backend.
"""

from unittest.mock import AsyncMock

import pytest

from conftest import make_record, make_scan
from idscan.collector import ScanNotFoundError, ScanTransportError, ScanValidationError
from idscan.models import IdBloatSeverity, PublisherVertical, ScanStatus
from idscan.services import ScanService
from idscan.sync import SyncConfig
from idscan.utils import load_settings


@pytest.fixture
def service(backend):
    return ScanService(backend, SyncConfig(poll_interval=60.0, poll_timeout=1.0))


@pytest.mark.asyncio
class TestStartScan:
    """Test scan creation and live updates."""

    async def test_full_workflow(self, service, backend, news_context):
        scan = await service.start_scan(["https://www.A.com/", "b.com"], news_context)

        assert backend.created[0]["domains"] == ["a.com", "b.com"]
        assert backend.created[0]["context"] == news_context
        assert scan.status == ScanStatus.PENDING
        assert service.summary() is None
        assert service.revenue_impact() is None

        backend.push_result(make_record("a.com", record_id="r1"))
        backend.push_result(make_record(
            "b.com",
            record_id="r2",
            total_cookies=120,
            third_party_cookies=80,
            safari_blocked_cookies=60,
            loads_pre_consent=True,
        ))
        backend.push_scan(make_scan(status=ScanStatus.COMPLETED, total=2, completed=2))
        state = await service.wait_until_complete(timeout=1.0)

        assert state.scan.status == ScanStatus.COMPLETED
        assert service.summary().total_revenue_loss > 0
        assert service.revenue_impact().headline.startswith("You're Leaving $")
        assert len(service.benchmarks()) == 6
        assert all(r.addressability_gap_pct is not None for r in service.scored_results())
        await service.close()

    async def test_summary_is_cached_between_reads(self, service, backend):
        await service.start_scan(["a.com"])
        backend.push_result(make_record(record_id="r1"))

        assert service.summary() is service.summary()
        await service.close()

    async def test_unreadable_scan_row_uses_placeholder(self, service, backend):
        backend.fetch_scan_snapshot = AsyncMock(return_value=None)
        scan = await service.start_scan(["a.com", "b.com"])

        assert scan.status == ScanStatus.PENDING
        assert scan.total_domains == 2
        assert service.scan == scan
        await service.close()

    async def test_failed_initial_snapshot_keeps_created_scan(self, service, backend):
        backend.fetch_scan_snapshot = AsyncMock(side_effect=ScanTransportError("blip"))

        scan = await service.start_scan(["example.com"])

        assert len(backend.created) == 1
        assert scan.id == "scan-1"
        assert scan.status == ScanStatus.PENDING
        assert service.synchronizer is not None
        assert "scan-1" in backend.scan_handlers
        await service.close()

    async def test_summary_rebuilt_on_each_new_result(self, service, backend):
        summaries = []
        service.add_summary_listener(summaries.append)
        await service.start_scan(["a.com", "b.com"])

        backend.push_result(make_record("a.com", record_id="r1"))
        backend.push_result(make_record("b.com", record_id="r2", total_cookies=120))
        backend.push_result(make_record("b.com", record_id="r2", total_cookies=120))

        assert len(summaries) == 2
        assert summaries[0].worst_id_bloat_severity == IdBloatSeverity.MEDIUM
        assert summaries[-1].worst_id_bloat_severity == IdBloatSeverity.CRITICAL
        assert summaries[-1] is service.summary()
        await service.close()

    async def test_result_rows_carry_insights(self, service, backend):
        await service.start_scan(["a.com"])
        backend.push_result(make_record("a.com", estimated_monthly_impressions=2_500_000))

        [row] = service.result_rows()

        assert row["domain"] == "a.com"
        assert row["addressability_gap_pct"] == pytest.approx(26.0)
        assert row["insights"]["id_bloat"].startswith("Moderate cookie overhead")
        assert row["insights"]["monthly_impressions"] == "2.5M/mo"
        await service.close()

    async def test_switching_scans_tears_down_previous(self, service, backend):
        await service.start_scan(["a.com"])
        first = service.synchronizer

        await service.start_scan(["b.com"])

        assert first.is_closed
        assert service.synchronizer is not first
        assert service.scan.id == "scan-2"
        backend.unsubscribe_scan.assert_awaited_once()
        await service.close()


class TestDomainValidation:

    @pytest.mark.asyncio
    async def test_no_usable_domains(self, service, backend):
        with pytest.raises(ScanValidationError):
            await service.start_scan(["  ", ""])
        assert backend.created == []

    def test_domain_cap(self, backend):
        service = ScanService(backend, max_domains=2)
        assert service.normalize_domains(["a.com", "b.com", "c.com"]) == ["a.com", "b.com"]


@pytest.mark.asyncio
class TestLoadScan:
    """Test restoring an existing scan."""

    async def test_not_found(self, service):
        with pytest.raises(ScanNotFoundError) as exc_info:
            await service.load_scan("missing")

        assert exc_info.value.status_code == 404
        assert 'The scan ID "missing"' in exc_info.value.message

    async def test_restores_context_and_results(self, service, backend):
        backend.scans["scan-9"] = make_scan(
            "scan-9",
            status=ScanStatus.COMPLETED,
            completed=2,
            monthly_impressions=10_000_000,
            publisher_vertical=PublisherVertical.NEWS,
        )
        backend.results["scan-9"] = [
            make_record("a.com", scan_id="scan-9"),
            make_record("b.com", scan_id="scan-9"),
        ]

        scan = await service.load_scan("scan-9")

        assert scan.is_terminal
        assert service.context.monthly_impressions == 10_000_000
        assert service.context.publisher_vertical == PublisherVertical.NEWS
        assert [r.domain for r in service.results] == ["a.com", "b.com"]
        assert service.synchronizer.is_closed
        assert backend.scan_handlers == {}
        assert service.summary().total_revenue_loss > 0

    async def test_running_scan_resumes_sync(self, service, backend):
        backend.scans["scan-9"] = make_scan("scan-9")
        await service.load_scan("scan-9")

        assert "scan-9" in backend.scan_handlers
        assert service.context is None
        await service.close()


@pytest.mark.asyncio
class TestLifecycle:

    async def test_wait_without_scan(self, service):
        with pytest.raises(ScanValidationError):
            await service.wait_until_complete()

    async def test_injected_backend_is_not_closed(self, backend):
        backend.close = AsyncMock()
        settings = load_settings(_env_file=None, POLL_INTERVAL_SECONDS=60)

        async with ScanService.from_settings(settings, backend=backend) as service:
            await service.start_scan(["a.com"])

        backend.close.assert_not_awaited()
        assert service.synchronizer.is_closed
