"""Sync state tracking, conflict detection and resolution."""

from timeline_sync.sync.conflict_detector import (
    ConflictDetector,
    conflict_stats,
    detect_conflicting_fields,
)
from timeline_sync.sync.conflict_resolver import ConflictResolver, automatic_merge, merge_rows
from timeline_sync.sync.coordinator import SyncCoordinator, SyncRunResult
from timeline_sync.sync.protocol import PushOutcome, SyncTransport
from timeline_sync.sync.record_store import SyncRecordStore
from timeline_sync.sync.session_tracker import SyncSessionTracker

__all__ = [
    "ConflictDetector",
    "ConflictResolver",
    "PushOutcome",
    "SyncCoordinator",
    "SyncRecordStore",
    "SyncRunResult",
    "SyncSessionTracker",
    "SyncTransport",
    "automatic_merge",
    "conflict_stats",
    "detect_conflicting_fields",
    "merge_rows",
]
