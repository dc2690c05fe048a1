"""Metadata for cached remote media files."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from timeline_sync.errors import ValidationError
from timeline_sync.utils.timeutils import parse_timestamp, utcnow


class CachePriority(StrEnum):
    """Keep-priority tier of a cached file."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class MediaFileMetadata:
    """Tracks one cached remote media file.

    Attributes:
        url: Remote URL (identity)
        file_type: Lower-case extension without the dot
        file_size: Size in bytes
        priority: Keep-priority tier
        last_accessed: Last read time
        access_count: Number of reads
        is_essential: Exempt from eviction
    """

    url: str
    file_type: str
    file_size: int
    priority: CachePriority = CachePriority.MEDIUM
    last_accessed: datetime = field(default_factory=utcnow)
    access_count: int = 0
    is_essential: bool = False

    def __post_init__(self) -> None:
        if self.file_size < 0:
            raise ValidationError(f"file_size must be non-negative, got {self.file_size}")
        if self.access_count < 0:
            raise ValidationError(f"access_count must be non-negative, got {self.access_count}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "priority": self.priority.value,
            "last_accessed": self.last_accessed.isoformat(),
            "access_count": self.access_count,
            "is_essential": self.is_essential,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaFileMetadata:
        return cls(
            url=str(data["url"]),
            file_type=str(data.get("file_type", "")),
            file_size=int(data["file_size"]),
            priority=CachePriority(data.get("priority", CachePriority.MEDIUM.value)),
            last_accessed=parse_timestamp(data["last_accessed"]),
            access_count=int(data.get("access_count", 0)),
            is_essential=bool(data.get("is_essential", False)),
        )
