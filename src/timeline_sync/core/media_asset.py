"""Media assets: the immutable input to event clustering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from timeline_sync.core.geo import GeoLocation
from timeline_sync.utils.timeutils import parse_timestamp, to_naive_utc


class MediaType(StrEnum):
    """Kinds of timeline media."""

    PHOTO = "photo"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


@dataclass(frozen=True)
class MediaAsset:
    """A timestamped, optionally geotagged content item.

    Attributes:
        id: Unique asset ID
        type: Media kind
        timestamp: Capture instant, normalized to naive UTC
        location: Capture coordinate, if known
    """

    id: str
    type: MediaType
    timestamp: datetime
    location: GeoLocation | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", to_naive_utc(self.timestamp))

    @property
    def has_location(self) -> bool:
        return self.location is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "location": self.location.to_dict() if self.location is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaAsset:
        location = data.get("location")
        return cls(
            id=str(data["id"]),
            type=MediaType(data.get("type", MediaType.PHOTO.value)),
            timestamp=parse_timestamp(data["timestamp"]),
            location=GeoLocation.from_dict(location) if location else None,
        )
