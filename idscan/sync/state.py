"""
Scan Sync State

Immutable view of one scan as reconciled from push and poll channels,
plus the pure ``merge`` that folds a single event into it.

Rules:
- The scan is replaced only when status or progress counters differ
- A terminal scan is never replaced
- A result is appended only if its id has not been seen (arrival order kept)
- A closed state ignores every event
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple, Union

from idscan.models import DomainRecord, Scan


class EventSource(Enum):
    """Channel an event arrived on."""
    INITIAL = "initial"
    PUSH = "push"
    POLL = "poll"


@dataclass(frozen=True)
class SyncState:
    """Reconciled scan and result set. Never mutated; merges return new states."""
    scan: Optional[Scan] = None
    results: Tuple[DomainRecord, ...] = ()
    result_ids: FrozenSet[str] = field(default_factory=frozenset)
    closed: bool = False

    @classmethod
    def initial(
        cls,
        scan: Optional[Scan] = None,
        results: Iterable[DomainRecord] = (),
    ) -> "SyncState":
        """Seed a state, dropping duplicate results."""
        state = cls(scan=scan)
        return merge(state, ResultBatchEvent(tuple(results), EventSource.INITIAL)).state

    @property
    def is_terminal(self) -> bool:
        return self.scan is not None and self.scan.is_terminal

    def close(self) -> "SyncState":
        if self.closed:
            return self
        return replace(self, closed=True)


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class ScanSnapshotEvent:
    """A scan row seen on either channel."""
    scan: Scan
    source: EventSource = EventSource.POLL


@dataclass(frozen=True)
class ResultInsertEvent:
    """A single new result pushed by the backend."""
    record: DomainRecord
    source: EventSource = EventSource.PUSH


@dataclass(frozen=True)
class ResultBatchEvent:
    """A full or partial result set read by a poll."""
    records: Tuple[DomainRecord, ...]
    source: EventSource = EventSource.POLL


SyncEvent = Union[ScanSnapshotEvent, ResultInsertEvent, ResultBatchEvent]


@dataclass(frozen=True)
class MergeOutcome:
    """Result of folding one event into a state."""
    state: SyncState
    changed: bool = False
    added: Tuple[DomainRecord, ...] = ()
    duplicates: int = 0


# =============================================================================
# MERGE
# =============================================================================

def _merge_scan(state: SyncState, scan: Scan) -> MergeOutcome:
    current = state.scan
    if current is not None:
        if current.id != scan.id or current.is_terminal:
            return MergeOutcome(state=state)
    if not scan.differs_from(current):
        return MergeOutcome(state=state)
    return MergeOutcome(state=replace(state, scan=scan), changed=True)


def _merge_records(state: SyncState, records: Iterable[DomainRecord]) -> MergeOutcome:
    seen = set(state.result_ids)
    added = []
    duplicates = 0

    for record in records:
        if record.id in seen:
            duplicates += 1
            continue
        seen.add(record.id)
        added.append(record)

    if not added:
        return MergeOutcome(state=state, duplicates=duplicates)

    new_state = replace(
        state,
        results=state.results + tuple(added),
        result_ids=frozenset(seen),
    )
    return MergeOutcome(state=new_state, changed=True, added=tuple(added), duplicates=duplicates)


def merge(state: SyncState, event: SyncEvent) -> MergeOutcome:
    """
    Fold one event into a state.

    Pure and total: unknown or late events yield an unchanged outcome.

    Args:
        state: Current state
        event: Scan snapshot, single insert or result batch

    Returns:
        MergeOutcome with the new state and what changed
    """
    if state.closed:
        return MergeOutcome(state=state)

    if isinstance(event, ScanSnapshotEvent):
        return _merge_scan(state, event.scan)
    if isinstance(event, ResultInsertEvent):
        return _merge_records(state, (event.record,))
    if isinstance(event, ResultBatchEvent):
        return _merge_records(state, event.records)

    return MergeOutcome(state=state)
