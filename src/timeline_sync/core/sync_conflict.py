"""Sync conflicts between divergent local and remote copies of a row."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from timeline_sync.utils.timeutils import (
    format_optional_timestamp,
    parse_optional_timestamp,
    parse_timestamp,
    utcnow,
)


class ResolutionStrategy(StrEnum):
    """How a detected conflict is settled."""

    LOCAL_WINS = "local_wins"
    REMOTE_WINS = "remote_wins"
    MANUAL_MERGE = "manual_merge"
    AUTOMATIC_MERGE = "automatic_merge"
    DEFER = "defer"


@dataclass(frozen=True)
class SyncConflict:
    """A disagreement over one logical row.

    A conflict is resolved exactly once; ``is_resolved`` follows
    ``resolved_at``. Deferral leaves the conflict open and only stamps
    ``last_deferred_at``.

    Attributes:
        id: Conflict ID
        table_name: Logical collection of the row
        record_id: Row identity
        local_data: Local copy of the row's fields
        remote_data: Remote copy of the row's fields
        base_data: Last common ancestor (empty when unknown)
        conflicting_fields: Fields both sides changed differently
        detected_at: Detection time
        description: Human-readable summary
        resolution_strategy: Strategy applied (also set by a deferral)
        resolved_at: Terminal resolution time
        resolved_data: Merged row, present once resolved
        resolved_by: Actor who resolved or deferred
        resolution_note: Free-form audit note
        last_deferred_at: Most recent deferral time
    """

    id: str
    table_name: str
    record_id: str
    local_data: dict[str, Any]
    remote_data: dict[str, Any]
    base_data: dict[str, Any] = field(default_factory=dict)
    conflicting_fields: list[str] = field(default_factory=list)
    detected_at: datetime = field(default_factory=utcnow)
    description: str | None = None
    resolution_strategy: ResolutionStrategy | None = None
    resolved_at: datetime | None = None
    resolved_data: dict[str, Any] | None = None
    resolved_by: str | None = None
    resolution_note: str | None = None
    last_deferred_at: datetime | None = None

    @classmethod
    def create(
        cls,
        table_name: str,
        record_id: str,
        local_data: dict[str, Any],
        remote_data: dict[str, Any],
        base_data: dict[str, Any] | None,
        conflicting_fields: list[str],
        conflict_id: str | None = None,
    ) -> SyncConflict:
        return cls(
            id=conflict_id or str(uuid4()),
            table_name=table_name,
            record_id=record_id,
            local_data=dict(local_data),
            remote_data=dict(remote_data),
            base_data=dict(base_data or {}),
            conflicting_fields=list(conflicting_fields),
            detected_at=utcnow(),
            description=f"Conflict detected in {', '.join(conflicting_fields)}",
        )

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    @property
    def is_deferred(self) -> bool:
        return not self.is_resolved and self.last_deferred_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "local_data": self.local_data,
            "remote_data": self.remote_data,
            "base_data": self.base_data,
            "conflicting_fields": list(self.conflicting_fields),
            "detected_at": self.detected_at.isoformat(),
            "description": self.description,
            "resolution_strategy": (
                self.resolution_strategy.value if self.resolution_strategy is not None else None
            ),
            "resolved_at": format_optional_timestamp(self.resolved_at),
            "resolved_data": self.resolved_data,
            "resolved_by": self.resolved_by,
            "resolution_note": self.resolution_note,
            "last_deferred_at": format_optional_timestamp(self.last_deferred_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConflict:
        strategy = data.get("resolution_strategy")
        return cls(
            id=str(data["id"]),
            table_name=str(data["table_name"]),
            record_id=str(data["record_id"]),
            local_data=dict(data.get("local_data") or {}),
            remote_data=dict(data.get("remote_data") or {}),
            base_data=dict(data.get("base_data") or {}),
            conflicting_fields=list(data.get("conflicting_fields") or []),
            detected_at=parse_timestamp(data["detected_at"]),
            description=data.get("description"),
            resolution_strategy=ResolutionStrategy(strategy) if strategy else None,
            resolved_at=parse_optional_timestamp(data.get("resolved_at")),
            resolved_data=data.get("resolved_data"),
            resolved_by=data.get("resolved_by"),
            resolution_note=data.get("resolution_note"),
            last_deferred_at=parse_optional_timestamp(data.get("last_deferred_at")),
        )
