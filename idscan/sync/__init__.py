"""
IdScan - Scan Synchronization Package

Pure state merging plus the asyncio driver that feeds it from the
backend's push and poll channels.
"""

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
from .synchronizer import (
    PollFailure,
    PollFailureObserver,
    ScanSynchronizer,
    StateListener,
    SyncConfig,
    SyncStats,
)

__all__ = [
    # State
    "EventSource",
    "MergeOutcome",
    "ResultBatchEvent",
    "ResultInsertEvent",
    "ScanSnapshotEvent",
    "SyncEvent",
    "SyncState",
    "merge",

    # Driver
    "PollFailure",
    "PollFailureObserver",
    "ScanSynchronizer",
    "StateListener",
    "SyncConfig",
    "SyncStats",
]
