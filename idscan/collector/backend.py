"""
Scan Backend Interface

The contract the synchronizer and service layer depend on. The Supabase
client implements it; tests substitute in-memory fakes.
"""

from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from idscan.models import DomainRecord, PublisherContext, Scan


# Async zero-argument teardown handle returned by every subscription
Unsubscribe = Callable[[], Awaitable[None]]

ScanUpdateHandler = Callable[[Scan], None]
ResultInsertHandler = Callable[[DomainRecord], None]


class ScanBackend(Protocol):
    """Remote scan service: creation, snapshot reads and push subscriptions."""

    async def create_scan(
        self,
        domains: Sequence[str],
        context: Optional[PublisherContext] = None,
    ) -> str:
        """Submit domains for scanning and return the new scan id."""
        ...

    async def fetch_scan_snapshot(self, scan_id: str) -> Optional[Scan]:
        """Current scan row, or None when the id is unknown."""
        ...

    async def fetch_result_set(self, scan_id: str) -> List[DomainRecord]:
        """All results for a scan, ordered by scan time ascending."""
        ...

    async def subscribe_scan_updates(
        self,
        scan_id: str,
        on_update: ScanUpdateHandler,
    ) -> Unsubscribe:
        ...

    async def subscribe_result_inserts(
        self,
        scan_id: str,
        on_insert: ResultInsertHandler,
    ) -> Unsubscribe:
        ...
