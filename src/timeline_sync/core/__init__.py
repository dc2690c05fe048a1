"""Core data models for timeline sync."""

from timeline_sync.core.cache_entry import CachePriority, MediaFileMetadata
from timeline_sync.core.context import ContextType
from timeline_sync.core.events import ChangeEvent, ChangeEventType, ChangeNotifier
from timeline_sync.core.fuzzy_date import (
    FuzzyDate,
    FuzzyDateGranularity,
    Season,
    is_valid_fuzzy_date_input,
    sort_fuzzy_dates,
)
from timeline_sync.core.geo import GeoLocation, centroid, haversine_distance
from timeline_sync.core.media_asset import MediaAsset, MediaType
from timeline_sync.core.sync_conflict import ResolutionStrategy, SyncConflict
from timeline_sync.core.sync_record import SyncOperation, SyncRecord, SyncStatus
from timeline_sync.core.sync_session import SyncSession

__all__ = [
    "CachePriority",
    "ChangeEvent",
    "ChangeEventType",
    "ChangeNotifier",
    "ContextType",
    "FuzzyDate",
    "FuzzyDateGranularity",
    "GeoLocation",
    "MediaAsset",
    "MediaFileMetadata",
    "MediaType",
    "ResolutionStrategy",
    "Season",
    "SyncConflict",
    "SyncOperation",
    "SyncRecord",
    "SyncSession",
    "SyncStatus",
    "centroid",
    "haversine_distance",
    "is_valid_fuzzy_date_input",
    "sort_fuzzy_dates",
]
