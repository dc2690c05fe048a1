"""Temporal/spatial event clustering of media assets.

Assets are ordered by (timestamp, id) and swept once. A candidate joins
the open cluster when it follows the most recent member within the
temporal threshold and, if it carries a location, lies within the
spatial threshold of every located member. Unlocated assets are gated
by time only.

Bursts (rapid runs of captures) only tag clusters; they never split them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from timeline_sync.config_presets import DEFAULT_CLUSTERING, get_clustering_preset
from timeline_sync.core.context import ContextType
from timeline_sync.core.geo import GeoLocation, centroid, haversine_distance
from timeline_sync.core.media_asset import MediaAsset
from timeline_sync.errors import ValidationError
from timeline_sync.utils.cancellation import CancellationToken
from timeline_sync.utils.timeutils import parse_timestamp

logger = logging.getLogger(__name__)

# Slack for floating point when comparing distances to the spatial threshold
DISTANCE_EPSILON_METERS = 1e-6

# Clusters larger than this become collections
COLLECTION_MIN_SIZE = 11


class SuggestedEventType(StrEnum):
    """Timeline event kind suggested for a cluster."""

    PHOTO = "photo"
    PHOTO_BURST = "photo_burst"
    PHOTO_COLLECTION = "photo_collection"


@dataclass(frozen=True)
class ClusteringConfiguration:
    """Thresholds for grouping assets.

    Attributes:
        temporal_threshold_minutes: Max gap from the previous member
        spatial_threshold_meters: Max distance between located members
        burst_threshold_seconds: Max gap inside a burst run
        min_burst_size: Shortest run that counts as a burst
        max_burst_size: Longest burst run; longer runs are split
    """

    temporal_threshold_minutes: float = DEFAULT_CLUSTERING["temporal_threshold_minutes"]
    spatial_threshold_meters: float = DEFAULT_CLUSTERING["spatial_threshold_meters"]
    burst_threshold_seconds: float = DEFAULT_CLUSTERING["burst_threshold_seconds"]
    min_burst_size: int = DEFAULT_CLUSTERING["min_burst_size"]
    max_burst_size: int = DEFAULT_CLUSTERING["max_burst_size"]

    def __post_init__(self) -> None:
        if self.temporal_threshold_minutes < 0:
            raise ValidationError("temporal_threshold_minutes must be non-negative")
        if self.spatial_threshold_meters < 0:
            raise ValidationError("spatial_threshold_meters must be non-negative")
        if self.burst_threshold_seconds < 0:
            raise ValidationError("burst_threshold_seconds must be non-negative")
        if self.min_burst_size < 1:
            raise ValidationError("min_burst_size must be at least 1")
        if self.max_burst_size < self.min_burst_size:
            raise ValidationError("max_burst_size must not be below min_burst_size")

    @classmethod
    def for_context(cls, context_type: ContextType | str) -> ClusteringConfiguration:
        return cls(**get_clustering_preset(context_type))

    @property
    def temporal_threshold(self) -> timedelta:
        return timedelta(minutes=self.temporal_threshold_minutes)

    @property
    def burst_threshold(self) -> timedelta:
        return timedelta(seconds=self.burst_threshold_seconds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "temporal_threshold_minutes": self.temporal_threshold_minutes,
            "spatial_threshold_meters": self.spatial_threshold_meters,
            "burst_threshold_seconds": self.burst_threshold_seconds,
            "min_burst_size": self.min_burst_size,
            "max_burst_size": self.max_burst_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClusteringConfiguration:
        return cls(**{**DEFAULT_CLUSTERING, **data})


@dataclass(frozen=True)
class EventCluster:
    """A group of assets believed to belong to one event.

    Attributes:
        assets: Members in (timestamp, id) order
        start_time: Earliest member timestamp
        end_time: Latest member timestamp
        center_location: Mean coordinate of located members, if any
        is_burst: At least one burst run was found
        burst_runs: Member ID runs that qualify as bursts
        key_asset_id: Member closest to the temporal center (located preferred)
        suggested_event_type: Suggested timeline event kind
    """

    assets: tuple[MediaAsset, ...]
    start_time: datetime
    end_time: datetime
    center_location: GeoLocation | None
    is_burst: bool
    burst_runs: tuple[tuple[str, ...], ...]
    key_asset_id: str
    suggested_event_type: SuggestedEventType

    @property
    def asset_ids(self) -> list[str]:
        return [asset.id for asset in self.assets]

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    def __len__(self) -> int:
        return len(self.assets)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assets": [asset.to_dict() for asset in self.assets],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "center_location": (
                self.center_location.to_dict() if self.center_location is not None else None
            ),
            "is_burst": self.is_burst,
            "burst_runs": [list(run) for run in self.burst_runs],
            "key_asset_id": self.key_asset_id,
            "suggested_event_type": self.suggested_event_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventCluster:
        center = data.get("center_location")
        return cls(
            assets=tuple(MediaAsset.from_dict(a) for a in data["assets"]),
            start_time=parse_timestamp(data["start_time"]),
            end_time=parse_timestamp(data["end_time"]),
            center_location=GeoLocation.from_dict(center) if center is not None else None,
            is_burst=bool(data["is_burst"]),
            burst_runs=tuple(tuple(run) for run in data.get("burst_runs", [])),
            key_asset_id=str(data["key_asset_id"]),
            suggested_event_type=SuggestedEventType(data["suggested_event_type"]),
        )


def _sort_key(asset: MediaAsset) -> tuple[datetime, str]:
    return (asset.timestamp, asset.id)


class _Sweep:
    """Incremental single-pass grouping over time-ordered assets."""

    def __init__(self, config: ClusteringConfiguration) -> None:
        self._gap = config.temporal_threshold
        self._radius = config.spatial_threshold_meters + DISTANCE_EPSILON_METERS
        self.groups: list[list[MediaAsset]] = []

    def feed(self, asset: MediaAsset) -> bool:
        """Place one asset; returns True when it opened a new group."""
        if self.groups and self._joins(self.groups[-1], asset):
            self.groups[-1].append(asset)
            return False
        self.groups.append([asset])
        return True

    def _joins(self, group: list[MediaAsset], asset: MediaAsset) -> bool:
        if asset.timestamp - group[-1].timestamp > self._gap:
            return False
        if asset.location is None:
            return True
        return all(
            haversine_distance(asset.location, member.location) <= self._radius
            for member in group
            if member.location is not None
        )


class EventClusteringEngine:
    """Groups media assets into event clusters.

    Args:
        config: Thresholds; defaults to ClusteringConfiguration().
    """

    def __init__(self, config: ClusteringConfiguration | None = None) -> None:
        self._config = config or ClusteringConfiguration()

    @property
    def config(self) -> ClusteringConfiguration:
        return self._config

    def cluster_assets(
        self,
        assets: Iterable[MediaAsset],
        cancel_token: CancellationToken | None = None,
    ) -> list[EventCluster]:
        """Partition assets into clusters ordered by earliest member.

        Raises:
            OperationCancelledError: The token was cancelled mid-run; no
                partial result is returned.
        """
        ordered = sorted(assets, key=_sort_key)
        sweep = _Sweep(self._config)
        for asset in ordered:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            sweep.feed(asset)

        clusters = [self._build_cluster(group) for group in sweep.groups]
        logger.debug("Clustered %d assets into %d clusters", len(ordered), len(clusters))
        return clusters

    def cluster_in_chunks(
        self,
        assets: Iterable[MediaAsset],
        chunk_size: int,
        cancel_token: CancellationToken | None = None,
    ) -> list[EventCluster]:
        """Cluster fixed-size chunks independently, then stitch boundaries.

        Produces the same partition as cluster_assets. At each boundary the
        last open group on the left is re-swept into the right chunk until
        the re-sweep opens a group exactly where the right chunk's own
        clustering opened one; from there on both sweeps agree.
        """
        if chunk_size < 1:
            raise ValidationError(f"chunk_size must be at least 1, got {chunk_size}")

        ordered = sorted(assets, key=_sort_key)
        chunks = [ordered[i : i + chunk_size] for i in range(0, len(ordered), chunk_size)]

        groups: list[list[MediaAsset]] = []
        for chunk in chunks:
            right = self._sweep_groups(chunk, cancel_token)
            if not groups:
                groups = right
                continue
            groups = self._stitch(groups, chunk, right)

        clusters = [self._build_cluster(group) for group in groups]
        logger.debug(
            "Clustered %d assets in %d chunks into %d clusters",
            len(ordered),
            len(chunks),
            len(clusters),
        )
        return clusters

    # ── Internals ─────────────────────────────────────────

    def _sweep_groups(
        self,
        ordered: Sequence[MediaAsset],
        cancel_token: CancellationToken | None,
    ) -> list[list[MediaAsset]]:
        sweep = _Sweep(self._config)
        for asset in ordered:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            sweep.feed(asset)
        return sweep.groups

    def _stitch(
        self,
        left: list[list[MediaAsset]],
        chunk: Sequence[MediaAsset],
        right: list[list[MediaAsset]],
    ) -> list[list[MediaAsset]]:
        right_starts: dict[int, int] = {}
        offset = 0
        for index, group in enumerate(right):
            right_starts[offset] = index
            offset += len(group)

        sweep = _Sweep(self._config)
        for asset in left[-1]:
            sweep.feed(asset)

        for position, asset in enumerate(chunk):
            opened = sweep.feed(asset)
            if opened and position in right_starts:
                # Sweeps agree from a shared group start onwards.
                settled = sweep.groups[:-1]
                return left[:-1] + settled + right[right_starts[position] :]
        return left[:-1] + sweep.groups

    def _build_cluster(self, members: list[MediaAsset]) -> EventCluster:
        start = members[0].timestamp
        end = members[-1].timestamp
        burst_runs = self._burst_runs(members)
        is_burst = bool(burst_runs)

        if is_burst:
            event_type = SuggestedEventType.PHOTO_BURST
        elif len(members) >= COLLECTION_MIN_SIZE:
            event_type = SuggestedEventType.PHOTO_COLLECTION
        else:
            event_type = SuggestedEventType.PHOTO

        return EventCluster(
            assets=tuple(members),
            start_time=start,
            end_time=end,
            center_location=centroid(m.location for m in members if m.location is not None),
            is_burst=is_burst,
            burst_runs=burst_runs,
            key_asset_id=self._key_asset(members, start, end).id,
            suggested_event_type=event_type,
        )

    def _burst_runs(self, members: list[MediaAsset]) -> tuple[tuple[str, ...], ...]:
        """Runs of rapid captures; a run reaching max_burst_size is closed."""
        config = self._config
        threshold = config.burst_threshold
        runs: list[tuple[str, ...]] = []
        current: list[MediaAsset] = []

        for asset in members:
            if current and asset.timestamp - current[-1].timestamp <= threshold:
                current.append(asset)
                if len(current) >= config.max_burst_size:
                    runs.append(tuple(a.id for a in current))
                    current = []
                continue
            if len(current) >= config.min_burst_size:
                runs.append(tuple(a.id for a in current))
            current = [asset]

        if len(current) >= config.min_burst_size:
            runs.append(tuple(a.id for a in current))
        return tuple(runs)

    @staticmethod
    def _key_asset(members: list[MediaAsset], start: datetime, end: datetime) -> MediaAsset:
        center = start + (end - start) / 2
        located = [m for m in members if m.location is not None]
        candidates = located or members
        return min(candidates, key=lambda m: (abs(m.timestamp - center), m.timestamp, m.id))
