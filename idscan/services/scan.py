"""
Scan Service

Orchestrates the scan workflow for one active scan at a time:
1. Domain normalization and scan creation
2. Initial snapshot (or restore of an existing scan by id)
3. Live synchronization until the scan is terminal
4. Portfolio summary rebuilt whenever the result set grows

Switching to another scan tears down the previous synchronizer first.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from idscan.collector import ScanBackend, ScanNotFoundError, ScannerError, ScanValidationError
from idscan.models import (
    BenchmarkComparison,
    DomainRecord,
    PublisherContext,
    RevenueImpact,
    Scan,
    ScanStatus,
    ScanSummary,
)
from idscan.scoring import (
    DEFAULT_ADS_PER_PAGE,
    SummaryBuilder,
    compare_to_benchmarks,
    describe_record,
    revenue_impact_from_summary,
    score_record,
)
from idscan.sync import MergeOutcome, ScanSynchronizer, SyncConfig, SyncState
from idscan.utils.config import Settings, create_scanner_client
from idscan.utils.domains import DEFAULT_DOMAIN_LIMIT, parse_domains

logger = logging.getLogger(__name__)


class ScanService:
    """
    Service for running and observing domain scans.

    Usage:
        service = ScanService.from_settings(load_settings())
        await service.start_scan(["example.com", "news.example"], context)
        await service.wait_until_complete(timeout=300)
        print(service.revenue_impact().headline)
        await service.close()
    """

    def __init__(
        self,
        backend: ScanBackend,
        sync_config: Optional[SyncConfig] = None,
        ads_per_page: int = DEFAULT_ADS_PER_PAGE,
        max_domains: int = DEFAULT_DOMAIN_LIMIT,
        owns_backend: bool = False,
    ):
        self.backend = backend
        self.sync_config = sync_config or SyncConfig()
        self.max_domains = max_domains
        self._owns_backend = owns_backend
        self._builder = SummaryBuilder(ads_per_page)
        self._synchronizer: Optional[ScanSynchronizer] = None
        self._context: Optional[PublisherContext] = None
        self._summary_listeners: List[Callable[[ScanSummary], None]] = []

    @classmethod
    def from_settings(cls, settings: Settings, backend: Optional[ScanBackend] = None) -> "ScanService":
        """Build a service from settings, creating the Supabase client if none is given."""
        owns_backend = backend is None
        return cls(
            backend=backend or create_scanner_client(settings),
            sync_config=settings.sync_config(),
            ads_per_page=settings.ADS_PER_PAGE,
            max_domains=settings.MAX_DOMAINS,
            owns_backend=owns_backend,
        )

    # ========================================================================
    # CURRENT STATE
    # ========================================================================

    @property
    def state(self) -> Optional[SyncState]:
        return self._synchronizer.state if self._synchronizer else None

    @property
    def scan(self) -> Optional[Scan]:
        state = self.state
        return state.scan if state else None

    @property
    def results(self) -> Tuple[DomainRecord, ...]:
        state = self.state
        return state.results if state else ()

    @property
    def context(self) -> Optional[PublisherContext]:
        return self._context

    @property
    def synchronizer(self) -> Optional[ScanSynchronizer]:
        return self._synchronizer

    def scored_results(self) -> List[DomainRecord]:
        """Current results with computed fields populated."""
        return [score_record(r, self._builder.ads_per_page) for r in self.results]

    def result_rows(self) -> List[Dict[str, Any]]:
        """Scored results as dicts, each with its display messages under ``insights``."""
        return [{**r.to_dict(), "insights": describe_record(r)} for r in self.scored_results()]

    def summary(self) -> Optional[ScanSummary]:
        """Portfolio summary of the current results, None until a result arrives."""
        results = self.results
        if not results:
            return None
        return self._builder.build(results, self._context)

    def revenue_impact(self) -> Optional[RevenueImpact]:
        summary = self.summary()
        return revenue_impact_from_summary(summary) if summary else None

    def benchmarks(self) -> List[BenchmarkComparison]:
        return compare_to_benchmarks(self.results)

    def add_summary_listener(self, listener: Callable[[ScanSummary], None]):
        """Call ``listener`` with the rebuilt summary whenever the result set changes."""
        self._summary_listeners.append(listener)

    # ========================================================================
    # SCAN LIFECYCLE
    # ========================================================================

    def normalize_domains(self, domains: Sequence[str]) -> List[str]:
        """
        Normalize requested domains.

        Raises:
            ScanValidationError: If nothing usable remains
        """
        normalized = parse_domains("\n".join(domains), limit=len(domains) or 1)
        if not normalized:
            raise ScanValidationError("At least one valid domain is required")
        if len(normalized) > self.max_domains:
            logger.warning(
                f"Scan limited to {self.max_domains} domains ({len(normalized)} requested)"
            )
            normalized = normalized[:self.max_domains]
        return normalized

    async def start_scan(
        self,
        domains: Sequence[str],
        context: Optional[PublisherContext] = None,
    ) -> Scan:
        """
        Create a scan and begin synchronizing it.

        Args:
            domains: Domains or URLs to scan
            context: Optional publisher context

        Returns:
            The scan as first seen after creation
        """
        normalized = self.normalize_domains(domains)
        await self._reset()

        scan_id = await self.backend.create_scan(normalized, context)
        try:
            scan = await self.backend.fetch_scan_snapshot(scan_id)
        except ScannerError as e:
            logger.warning(f"Initial snapshot of scan {scan_id} failed, polling will catch up: {e}")
            scan = None
        if scan is None:
            # Row not readable yet; polling picks it up
            scan = Scan(id=scan_id, status=ScanStatus.PENDING, total_domains=len(normalized))

        self._context = context
        await self._attach(scan, [])
        return scan

    async def load_scan(self, scan_id: str) -> Scan:
        """
        Restore an existing scan by id.

        The publisher context is rebuilt from what the scan stored at
        creation. Synchronization resumes if the scan is still running.

        Raises:
            ScanNotFoundError: If no scan has this id
        """
        await self._reset()

        scan, records = await asyncio.gather(
            self.backend.fetch_scan_snapshot(scan_id),
            self.backend.fetch_result_set(scan_id),
        )
        if scan is None:
            raise ScanNotFoundError(scan_id)

        self._context = PublisherContext.from_scan(scan)
        await self._attach(scan, records)
        logger.info(f"Loaded scan {scan_id} ({scan.status.value}, {len(records)} results)")
        return scan

    async def wait_until_complete(self, timeout: Optional[float] = None) -> SyncState:
        """
        Wait for the current scan to finish.

        Raises:
            ScanValidationError: If no scan is active
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        if self._synchronizer is None:
            raise ScanValidationError("No scan is active")
        return await self._synchronizer.wait_until_terminal(timeout)

    async def stop(self):
        """Stop synchronizing the current scan, keeping its last state."""
        if self._synchronizer is not None:
            await self._synchronizer.stop()

    async def close(self):
        """Stop synchronization and release the backend if this service created it."""
        await self.stop()
        if self._owns_backend:
            await self.backend.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _reset(self):
        if self._synchronizer is not None:
            await self._synchronizer.stop()
        self._synchronizer = None
        self._context = None
        self._builder.invalidate()

    async def _attach(self, scan: Scan, records: Sequence[DomainRecord]):
        self._synchronizer = ScanSynchronizer(
            self.backend,
            scan.id,
            self.sync_config,
            initial_scan=scan,
            initial_results=records,
            listeners=[self._log_progress, self._rebuild_summary],
        )
        await self._synchronizer.start()

    def _rebuild_summary(self, state: SyncState, outcome: MergeOutcome):
        if not outcome.added or not state.results:
            return
        summary = self._builder.build(state.results, self._context)
        for listener in list(self._summary_listeners):
            listener(summary)

    def _log_progress(self, state: SyncState, outcome: MergeOutcome):
        scan = state.scan
        if scan is None:
            return
        if outcome.added:
            logger.info(
                f"Scan {scan.id}: {len(state.results)}/{scan.total_domains} domains "
                f"({', '.join(r.domain for r in outcome.added)})"
            )
        if scan.is_terminal:
            logger.info(f"Scan {scan.id} {scan.status.value} with {len(state.results)} results")
