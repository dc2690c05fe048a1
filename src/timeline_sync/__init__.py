"""Timeline sync - offline-first sync state, conflict resolution and event clustering."""

from timeline_sync.core.events import ChangeEvent, ChangeEventType, ChangeNotifier
from timeline_sync.core.fuzzy_date import FuzzyDate, FuzzyDateGranularity, Season
from timeline_sync.core.geo import GeoLocation, haversine_distance
from timeline_sync.core.media_asset import MediaAsset, MediaType
from timeline_sync.core.sync_conflict import ResolutionStrategy, SyncConflict
from timeline_sync.core.sync_record import SyncOperation, SyncRecord, SyncStatus
from timeline_sync.core.sync_session import SyncSession
from timeline_sync.media.cache_policy import EvictionPlan, MediaCachePolicy, MediaCacheRegistry
from timeline_sync.media.clustering import (
    ClusteringConfiguration,
    EventCluster,
    EventClusteringEngine,
)
from timeline_sync.sync.conflict_detector import ConflictDetector, detect_conflicting_fields
from timeline_sync.sync.conflict_resolver import ConflictResolver
from timeline_sync.sync.coordinator import SyncCoordinator
from timeline_sync.sync.record_store import SyncRecordStore
from timeline_sync.sync.session_tracker import SyncSessionTracker
from timeline_sync.utils.cancellation import CancellationToken

__version__ = "0.1.0"

__all__ = [
    # Core models
    "FuzzyDate",
    "FuzzyDateGranularity",
    "GeoLocation",
    "MediaAsset",
    "MediaType",
    "ResolutionStrategy",
    "Season",
    "SyncConflict",
    "SyncOperation",
    "SyncRecord",
    "SyncSession",
    "SyncStatus",
    "haversine_distance",
    # Change notification
    "ChangeEvent",
    "ChangeEventType",
    "ChangeNotifier",
    # Sync
    "ConflictDetector",
    "ConflictResolver",
    "SyncCoordinator",
    "SyncRecordStore",
    "SyncSessionTracker",
    "detect_conflicting_fields",
    # Media
    "ClusteringConfiguration",
    "EventCluster",
    "EventClusteringEngine",
    "EvictionPlan",
    "MediaCachePolicy",
    "MediaCacheRegistry",
    # Utilities
    "CancellationToken",
    # Version
    "__version__",
]
