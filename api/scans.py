"""
API Endpoints for Domain Scans

FastAPI app that:
1. Starts multi-domain identity scans
2. Reports live scan progress and per-domain results
3. Serves the revenue impact summary for a scan
4. Stops synchronization of a scan on request
"""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from idscan import __version__
from idscan.collector import (
    ScanBackend,
    ScanConfigurationError,
    ScanNotFoundError,
    ScanTransportError,
    ScanValidationError,
    ScannerAPIError,
    ScannerError,
)
from idscan.models import PublisherContext, PublisherVertical
from idscan.services import ScanService
from idscan.utils.config import Settings, create_scanner_client, load_settings

# Configure logging to stdout
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# SCAN REGISTRY
# =============================================================================

class ScanRegistry:
    """
    One ScanService per tracked scan id, sharing a single backend.

    Loads of unknown ids are serialized so concurrent requests for the
    same scan share one service. Past ``MAX_TRACKED_SCANS`` the oldest
    scans whose synchronizer has closed are evicted; running scans stay.
    """

    def __init__(self, settings: Settings, backend: Optional[ScanBackend] = None):
        self.settings = settings
        self.max_tracked = settings.MAX_TRACKED_SCANS
        self._owns_backend = backend is None
        self.backend = backend or create_scanner_client(settings)
        self._services: Dict[str, ScanService] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, scan_id: str) -> bool:
        return scan_id in self._services

    def _new_service(self) -> ScanService:
        return ScanService.from_settings(self.settings, backend=self.backend)

    async def start(self, domains: List[str], context: Optional[PublisherContext]) -> ScanService:
        service = self._new_service()
        scan = await service.start_scan(domains, context)
        async with self._lock:
            previous = self._services.pop(scan.id, None)
            self._services[scan.id] = service
        if previous is not None:
            await previous.close()
        await self._evict()
        return service

    async def get(self, scan_id: str) -> ScanService:
        """Tracked service for a scan, loading it from the backend if unknown."""
        service = self._services.get(scan_id)
        if service is not None:
            return service

        async with self._lock:
            # Another request may have loaded it while we waited
            service = self._services.get(scan_id)
            if service is None:
                service = self._new_service()
                await service.load_scan(scan_id)
                self._services[scan_id] = service
        await self._evict()
        return service

    async def remove(self, scan_id: str) -> bool:
        service = self._services.pop(scan_id, None)
        if service is None:
            return False
        await service.close()
        return True

    async def _evict(self):
        excess = len(self._services) - self.max_tracked
        if excess <= 0:
            return
        finished = [
            scan_id for scan_id, service in self._services.items()
            if service.state is None or service.state.closed
        ]
        for scan_id in finished[:excess]:
            logger.info(f"Evicting finished scan {scan_id} ({len(self._services)} tracked)")
            await self.remove(scan_id)

    async def close(self):
        for scan_id in list(self._services):
            await self.remove(scan_id)
        if self._owns_backend:
            await self.backend.close()


_registry: Optional[ScanRegistry] = None


def get_registry() -> ScanRegistry:
    """Lazily build the registry from environment settings."""
    global _registry
    if _registry is None:
        try:
            _registry = ScanRegistry(load_settings())
        except ScanConfigurationError as e:
            logger.error(f"Scanner not configured: {e}")
            raise HTTPException(status_code=503, detail=str(e))
    return _registry


def scanner_http_error(error: ScannerError) -> HTTPException:
    """Map scanner errors onto HTTP status codes."""
    if isinstance(error, ScanNotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, ScanValidationError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, (ScanConfigurationError, ScanTransportError)):
        return HTTPException(status_code=503, detail=error.message)
    if isinstance(error, ScannerAPIError):
        return HTTPException(status_code=502, detail=error.message)
    return HTTPException(status_code=500, detail=str(error))


router = APIRouter(
    prefix="/api/scans",
    tags=["Scans"],
)


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class PublisherContextRequest(BaseModel):
    """Optional business context used for dollar estimates."""
    monthly_impressions: Optional[int] = Field(default=None, ge=0)
    publisher_vertical: Optional[
        Literal["news", "entertainment", "auto", "finance", "lifestyle", "other"]
    ] = None
    owned_domains_count: Optional[int] = Field(default=None, ge=0)

    def to_context(self) -> PublisherContext:
        return PublisherContext(
            monthly_impressions=self.monthly_impressions,
            publisher_vertical=(
                PublisherVertical(self.publisher_vertical) if self.publisher_vertical else None
            ),
            owned_domains_count=self.owned_domains_count,
        )


class StartScanRequest(BaseModel):
    """Request to start a scan."""
    domains: List[str] = Field(description="Domains or URLs to scan (max 20)")
    context: Optional[PublisherContextRequest] = None


class ScanResponse(BaseModel):
    """Scan state with its per-domain results."""
    scan: Dict[str, Any]
    progress_percent: int
    is_terminal: bool
    results: List[Dict[str, Any]]
    sync: Dict[str, Any]


class SummaryResponse(BaseModel):
    """Revenue impact view of a scan."""
    scan_id: str
    status: str
    summary: Optional[Dict[str, Any]] = None
    revenue_impact: Optional[Dict[str, Any]] = None
    benchmarks: List[Dict[str, Any]] = Field(default_factory=list)


def service_to_response(service: ScanService) -> ScanResponse:
    scan = service.scan
    stats = service.synchronizer.stats if service.synchronizer else None
    return ScanResponse(
        scan=scan.to_dict(),
        progress_percent=scan.progress_percent,
        is_terminal=scan.is_terminal,
        results=service.result_rows(),
        sync={
            "closed": service.state.closed,
            "push_enabled": stats.push_enabled if stats else False,
            "polls": stats.polls if stats else 0,
            "poll_failures": stats.poll_failures if stats else 0,
            "last_error": stats.last_error if stats else None,
        },
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", response_model=ScanResponse, status_code=201)
async def start_scan(
    request: StartScanRequest,
    registry: ScanRegistry = Depends(get_registry),
):
    """
    Start a scan and begin synchronizing it.

    Domains are normalized (no protocol/www/path), deduplicated and capped.
    """
    context = request.context.to_context() if request.context else None
    try:
        service = await registry.start(request.domains, context)
    except ScannerError as e:
        logger.warning(f"Scan creation failed: {e}")
        raise scanner_http_error(e)

    return service_to_response(service)


@router.get("/{scan_id}", response_model=ScanResponse)
async def get_scan(
    scan_id: str,
    registry: ScanRegistry = Depends(get_registry),
):
    """Current scan state and results."""
    try:
        service = await registry.get(scan_id)
    except ScannerError as e:
        raise scanner_http_error(e)

    return service_to_response(service)


@router.get("/{scan_id}/summary", response_model=SummaryResponse)
async def get_scan_summary(
    scan_id: str,
    registry: ScanRegistry = Depends(get_registry),
):
    """
    Revenue impact summary for a scan.

    Summary fields are null until the first domain result arrives.
    """
    try:
        service = await registry.get(scan_id)
    except ScannerError as e:
        raise scanner_http_error(e)

    summary = service.summary()
    impact = service.revenue_impact()
    return SummaryResponse(
        scan_id=scan_id,
        status=service.scan.status.value,
        summary=summary.to_dict() if summary else None,
        revenue_impact=impact.to_dict() if impact else None,
        benchmarks=[b.to_dict() for b in service.benchmarks()],
    )


@router.delete("/{scan_id}")
async def stop_scan(
    scan_id: str,
    registry: ScanRegistry = Depends(get_registry),
):
    """Stop synchronizing a scan and forget it."""
    if not await registry.remove(scan_id):
        raise HTTPException(status_code=404, detail="Scan not tracked")
    return {"scan_id": scan_id, "stopped": True}


# =============================================================================
# APP
# =============================================================================

app = FastAPI(
    title="IdScan Revenue Impact API",
    description="Publisher identity scans with live sync and revenue impact scoring",
    version=__version__,
)
app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.on_event("shutdown")
async def shutdown_event():
    """Stop all synchronizers and close the backend."""
    global _registry
    if _registry is not None:
        await _registry.close()
        _registry = None
