"""
Scan Synchronizer

Keeps a local SyncState converged with the backend while a scan runs.

Two channels feed the same pure merge:
1. Push: realtime UPDATE on the scan row and INSERT on results
2. Poll: full snapshot + result set every ``poll_interval`` seconds

Push alone is lossy (missed events during reconnects), poll alone is
slow, so both run and the merge deduplicates. Reaching a terminal
status, or ``stop()``, tears everything down exactly once.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from idscan.collector.backend import ScanBackend, Unsubscribe
from idscan.models import DomainRecord, Scan

from .state import (
    EventSource,
    MergeOutcome,
    ResultBatchEvent,
    ResultInsertEvent,
    ScanSnapshotEvent,
    SyncEvent,
    SyncState,
    merge,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncConfig:
    """Polling cadence for a synchronizer."""
    poll_interval: float = 2.5
    poll_timeout: float = 10.0


@dataclass(frozen=True)
class PollFailure:
    """A poll that raised or timed out."""
    scan_id: str
    error_type: str
    message: str
    consecutive_failures: int
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SyncStats:
    """Counters for one synchronizer."""
    polls: int = 0
    poll_failures: int = 0
    consecutive_poll_failures: int = 0
    push_events: int = 0
    duplicates_dropped: int = 0
    push_enabled: bool = False
    last_error: Optional[str] = None


StateListener = Callable[[SyncState, MergeOutcome], None]
PollFailureObserver = Callable[[PollFailure], None]


class ScanSynchronizer:
    """
    Converges one scan over push and poll until it is terminal.

    Usage:
        async with ScanSynchronizer(backend, scan_id, SyncConfig()) as sync:
            state = await sync.wait_until_terminal(timeout=300)
            print(state.scan.status, len(state.results))

    All merges happen synchronously on the event loop, so listeners and
    readers of ``state`` always see a consistent snapshot.
    """

    def __init__(
        self,
        backend: ScanBackend,
        scan_id: str,
        config: Optional[SyncConfig] = None,
        initial_scan: Optional[Scan] = None,
        initial_results: Sequence[DomainRecord] = (),
        listeners: Optional[List[StateListener]] = None,
        on_poll_failure: Optional[PollFailureObserver] = None,
    ):
        self.backend = backend
        self.scan_id = scan_id
        self.config = config or SyncConfig()
        self._listeners: List[StateListener] = list(listeners or [])
        self._on_poll_failure = on_poll_failure

        self._state = SyncState.initial(initial_scan, initial_results)
        self._stats = SyncStats()
        self._unsubscribers: List[Unsubscribe] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._teardown_task: Optional[asyncio.Task] = None
        self._started = False
        self._done = asyncio.Event()

    # ========================================================================
    # READ ACCESS
    # ========================================================================

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def stats(self) -> SyncStats:
        return self._stats

    @property
    def is_closed(self) -> bool:
        return self._state.closed

    def add_listener(self, listener: StateListener):
        self._listeners.append(listener)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self):
        """
        Open push subscriptions and start polling.

        A subscription that cannot be opened is logged and skipped; the
        poll loop alone then keeps the state converging.
        """
        if self._started:
            logger.warning(f"Synchronizer for scan {self.scan_id} already started")
            return
        self._started = True

        if self._state.closed or self._state.is_terminal:
            self._begin_teardown("already terminal")
            return

        for subscribe, handler in (
            (self.backend.subscribe_scan_updates, self._on_push_scan),
            (self.backend.subscribe_result_inserts, self._on_push_result),
        ):
            try:
                unsubscribe = await subscribe(self.scan_id, handler)
            except Exception as e:
                logger.warning(
                    f"Push subscription failed for scan {self.scan_id}, continuing with polling only: {e}"
                )
                continue

            if self._teardown_task is not None:
                # Terminal arrived while subscribing
                await self._safe_unsubscribe(unsubscribe)
                continue
            self._unsubscribers.append(unsubscribe)

        self._stats.push_enabled = bool(self._unsubscribers)

        if self._teardown_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop())
            logger.info(
                f"Synchronizer started for scan {self.scan_id} "
                f"(push: {self._stats.push_enabled}, poll every {self.config.poll_interval}s)"
            )

    async def stop(self):
        """Tear down subscriptions and polling. Safe to call repeatedly."""
        await self._begin_teardown("stopped")

    async def wait_until_terminal(self, timeout: Optional[float] = None) -> SyncState:
        """
        Wait until the scan is terminal or the synchronizer is stopped.

        Raises:
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        await asyncio.wait_for(self._done.wait(), timeout)
        if self._teardown_task is not None:
            await self._teardown_task
        return self._state

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # ========================================================================
    # MERGING
    # ========================================================================

    def apply(self, event: SyncEvent) -> MergeOutcome:
        """Fold one event into the state and notify listeners on change."""
        outcome = merge(self._state, event)
        self._stats.duplicates_dropped += outcome.duplicates
        if not outcome.changed:
            return outcome

        self._state = outcome.state
        logger.debug(
            f"Scan {self.scan_id} merged {event.source.value} event: "
            f"{len(outcome.added)} new results, {len(self._state.results)} total"
        )

        for listener in list(self._listeners):
            try:
                listener(self._state, outcome)
            except Exception as e:
                logger.error(f"Sync listener failed for scan {self.scan_id}: {e}")

        if self._state.is_terminal:
            self._begin_teardown(f"scan {self._state.scan.status.value}")

        return outcome

    def _on_push_scan(self, scan: Scan):
        self._stats.push_events += 1
        self.apply(ScanSnapshotEvent(scan, EventSource.PUSH))

    def _on_push_result(self, record: DomainRecord):
        self._stats.push_events += 1
        self.apply(ResultInsertEvent(record, EventSource.PUSH))

    # ========================================================================
    # POLLING
    # ========================================================================

    async def poll_once(self) -> bool:
        """
        Fetch snapshot and results once and merge them.

        Results merge before the scan so a terminal snapshot never closes
        the state ahead of the final rows.

        Returns:
            True if the poll completed, False if it failed
        """
        self._stats.polls += 1
        try:
            scan, records = await asyncio.wait_for(
                asyncio.gather(
                    self.backend.fetch_scan_snapshot(self.scan_id),
                    self.backend.fetch_result_set(self.scan_id),
                ),
                timeout=self.config.poll_timeout,
            )
        except Exception as e:
            self._record_poll_failure(e)
            return False

        self._stats.consecutive_poll_failures = 0

        if self._state.closed:
            logger.debug(f"Discarding late poll response for scan {self.scan_id}")
            return True

        if records:
            self.apply(ResultBatchEvent(tuple(records), EventSource.POLL))
        if scan is not None:
            self.apply(ScanSnapshotEvent(scan, EventSource.POLL))
        return True

    async def _poll_loop(self):
        while not self._state.closed:
            await asyncio.sleep(self.config.poll_interval)
            if self._state.closed:
                break
            await self.poll_once()

    def _record_poll_failure(self, error: Exception):
        self._stats.poll_failures += 1
        self._stats.consecutive_poll_failures += 1
        message = str(error) or type(error).__name__
        self._stats.last_error = message

        logger.warning(
            f"Poll failed for scan {self.scan_id} "
            f"({self._stats.consecutive_poll_failures} consecutive): {message}"
        )

        if self._on_poll_failure is None:
            return
        failure = PollFailure(
            scan_id=self.scan_id,
            error_type=type(error).__name__,
            message=message,
            consecutive_failures=self._stats.consecutive_poll_failures,
        )
        try:
            self._on_poll_failure(failure)
        except Exception as e:
            logger.error(f"Poll failure observer raised for scan {self.scan_id}: {e}")

    # ========================================================================
    # TEARDOWN
    # ========================================================================

    def _begin_teardown(self, reason: str) -> asyncio.Task:
        if self._teardown_task is None:
            self._state = self._state.close()
            self._done.set()
            self._teardown_task = asyncio.ensure_future(self._teardown(reason))
        return self._teardown_task

    async def _teardown(self, reason: str):
        logger.info(f"Stopping synchronizer for scan {self.scan_id}: {reason}")

        task, self._poll_task = self._poll_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            await self._safe_unsubscribe(unsubscribe)

    async def _safe_unsubscribe(self, unsubscribe: Unsubscribe):
        try:
            await unsubscribe()
        except Exception as e:
            logger.warning(f"Unsubscribe failed for scan {self.scan_id}: {e}")
