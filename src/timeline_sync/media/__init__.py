"""Media caching policy and event clustering."""

from timeline_sync.media.cache_policy import EvictionPlan, MediaCachePolicy, MediaCacheRegistry
from timeline_sync.media.clustering import (
    ClusteringConfiguration,
    EventCluster,
    EventClusteringEngine,
    SuggestedEventType,
)

__all__ = [
    "ClusteringConfiguration",
    "EventCluster",
    "EventClusteringEngine",
    "EvictionPlan",
    "MediaCachePolicy",
    "MediaCacheRegistry",
    "SuggestedEventType",
]
