"""
Test Suite for the Scans API

Drives the FastAPI app in-process through httpx.ASGITransport with the
registry bound to the in-memory backend.
"""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from fastapi import HTTPException

from api import scans
from api.scans import ScanRegistry, app, get_registry
from conftest import make_record, make_scan
from idscan.collector import (
    ScanConfigurationError,
    ScanNotFoundError,
    ScannerAPIError,
    ScanTransportError,
)
from idscan.models import PublisherVertical, ScanStatus
from idscan.utils import load_settings


@pytest_asyncio.fixture
async def registry(backend):
    settings = load_settings(_env_file=None, POLL_INTERVAL_SECONDS=60)
    registry = ScanRegistry(settings, backend=backend)
    app.dependency_overrides[get_registry] = lambda: registry
    yield registry
    await registry.close()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(registry):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def completed_scan(backend, scan_id="scan-9"):
    backend.scans[scan_id] = make_scan(
        scan_id,
        status=ScanStatus.COMPLETED,
        completed=2,
        monthly_impressions=10_000_000,
        publisher_vertical=PublisherVertical.NEWS,
    )
    backend.results[scan_id] = [
        make_record("a.com", scan_id=scan_id, estimated_monthly_impressions=1_200_000),
        make_record(
            "b.com",
            scan_id=scan_id,
            total_cookies=120,
            safari_blocked_cookies=60,
            estimated_monthly_impressions=800_000,
        ),
    ]


@pytest.mark.asyncio
class TestStartScan:
    """Test POST /api/scans."""

    async def test_created(self, client, backend):
        response = await client.post("/api/scans", json={
            "domains": ["https://www.a.com/", "b.com"],
            "context": {"monthly_impressions": 1_000_000, "publisher_vertical": "news"},
        })

        assert response.status_code == 201
        data = response.json()
        assert data["scan"]["id"] == "scan-1"
        assert data["progress_percent"] == 0
        assert data["is_terminal"] is False
        assert data["results"] == []
        assert data["sync"]["push_enabled"] is True
        assert backend.created[0]["domains"] == ["a.com", "b.com"]

    async def test_no_domains(self, client):
        response = await client.post("/api/scans", json={"domains": ["  "]})

        assert response.status_code == 400
        assert response.json()["detail"] == "At least one valid domain is required"

    async def test_unknown_vertical(self, client):
        response = await client.post("/api/scans", json={
            "domains": ["a.com"],
            "context": {"publisher_vertical": "sports"},
        })
        assert response.status_code == 422

    @pytest.mark.parametrize("error,status", [
        (ScannerAPIError("Scan request failed: 500", status_code=500), 502),
        (ScanTransportError("Failed to connect to scanner service"), 503),
        (ScanConfigurationError("Scanner Supabase key is not configured"), 503),
    ])
    async def test_backend_errors(self, client, backend, error, status):
        backend.create_scan = AsyncMock(side_effect=error)

        response = await client.post("/api/scans", json={"domains": ["a.com"]})

        assert response.status_code == status
        assert response.json()["detail"] == error.message


@pytest.mark.asyncio
class TestGetScan:
    """Test GET /api/scans/{id}."""

    async def test_unknown_scan(self, client):
        response = await client.get("/api/scans/missing")

        assert response.status_code == 404
        assert 'The scan ID "missing"' in response.json()["detail"]

    async def test_loaded_scan_has_scored_results(self, client, backend):
        completed_scan(backend)

        response = await client.get("/api/scans/scan-9")

        assert response.status_code == 200
        data = response.json()
        assert data["is_terminal"] is True
        assert data["progress_percent"] == 100
        assert [r["domain"] for r in data["results"]] == ["a.com", "b.com"]
        assert data["results"][0]["addressability_gap_pct"] == pytest.approx(26.0)
        assert data["results"][1]["insights"]["id_bloat"].startswith("Cookie bloat is inflating")
        assert data["results"][0]["insights"]["privacy_risk"] == "Privacy compliance in good standing."
        assert data["sync"]["closed"] is True

    async def test_live_results_show_up(self, client, backend):
        await client.post("/api/scans", json={"domains": ["a.com"]})
        backend.push_result(make_record("a.com"))

        data = (await client.get("/api/scans/scan-1")).json()

        assert len(data["results"]) == 1


@pytest.mark.asyncio
class TestSummary:
    """Test GET /api/scans/{id}/summary."""

    async def test_summary(self, client, backend):
        completed_scan(backend)

        response = await client.get("/api/scans/scan-9/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["summary"]["worst_id_bloat_severity"] == "critical"
        assert data["revenue_impact"]["headline"].startswith("You're Leaving $")
        assert data["revenue_impact"]["impressions_label"] == "2.0M impressions/mo"
        assert len(data["benchmarks"]) == 6

    async def test_summary_before_results(self, client):
        await client.post("/api/scans", json={"domains": ["a.com"]})

        data = (await client.get("/api/scans/scan-1/summary")).json()

        assert data["status"] == "pending"
        assert data["summary"] is None
        assert data["revenue_impact"] is None
        assert data["benchmarks"] == []


@pytest.mark.asyncio
class TestStopScan:
    """Test DELETE /api/scans/{id}."""

    async def test_stop_tracked_scan(self, client, backend):
        await client.post("/api/scans", json={"domains": ["a.com"]})

        response = await client.delete("/api/scans/scan-1")

        assert response.status_code == 200
        assert response.json() == {"scan_id": "scan-1", "stopped": True}
        backend.unsubscribe_scan.assert_awaited_once()

    async def test_stop_untracked_scan(self, client):
        response = await client.delete("/api/scans/nope")
        assert response.status_code == 404


class TestRegistryConfiguration:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json()["status"] == "ok"

    def test_missing_configuration_is_503(self, monkeypatch):
        monkeypatch.setattr(scans, "_registry", None)
        monkeypatch.setattr(
            scans, "load_settings", lambda: load_settings(_env_file=None, SCANNER_SUPABASE_URL="")
        )

        with pytest.raises(HTTPException) as exc_info:
            get_registry()

        assert exc_info.value.status_code == 503


@pytest.mark.asyncio
class TestScanRegistry:
    """Test service tracking behind the endpoints."""

    async def test_concurrent_gets_share_one_service(self, registry, backend):
        backend.scans["scan-9"] = make_scan("scan-9")
        backend.fetch_delay = 0.01

        first, second = await asyncio.gather(registry.get("scan-9"), registry.get("scan-9"))

        assert first is second
        assert len(registry) == 1
        assert await registry.remove("scan-9")
        assert first.synchronizer.is_closed
        backend.unsubscribe_scan.assert_awaited_once()

    async def test_failed_load_is_not_tracked(self, registry):
        with pytest.raises(ScanNotFoundError):
            await registry.get("missing")
        assert "missing" not in registry

    async def test_finished_scans_evicted_over_cap(self, backend):
        settings = load_settings(_env_file=None, POLL_INTERVAL_SECONDS=60, MAX_TRACKED_SCANS=1)
        registry = ScanRegistry(settings, backend=backend)
        completed_scan(backend)

        await registry.get("scan-9")
        await registry.start(["a.com"], None)

        assert "scan-9" not in registry
        assert "scan-1" in registry
        await registry.close()

    async def test_running_scans_are_never_evicted(self, backend):
        settings = load_settings(_env_file=None, POLL_INTERVAL_SECONDS=60, MAX_TRACKED_SCANS=1)
        registry = ScanRegistry(settings, backend=backend)

        await registry.start(["a.com"], None)
        await registry.start(["b.com"], None)

        assert len(registry) == 2
        await registry.close()
