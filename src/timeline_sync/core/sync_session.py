"""Sync session: progress of one batch synchronization run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from timeline_sync.core.sync_record import SyncStatus
from timeline_sync.utils.timeutils import (
    format_optional_timestamp,
    parse_optional_timestamp,
    parse_timestamp,
    utcnow,
)


@dataclass(frozen=True)
class SyncSession:
    """One batch synchronization attempt.

    Attributes:
        id: Session ID
        started_at: Start time
        completed_at: Finish time, once finalized
        status: SYNCING while running, then SYNCED or FAILED
        records_total: Records in the batch
        records_processed: Records handled so far (never above the total)
        conflicts_detected: Conflicts flagged during the run
        errors_encountered: Records that failed during the run
        error_messages: Failure messages collected during the run
    """

    id: str
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    status: SyncStatus = SyncStatus.SYNCING
    records_total: int = 0
    records_processed: int = 0
    conflicts_detected: int = 0
    errors_encountered: int = 0
    error_messages: tuple[str, ...] = ()

    @property
    def progress(self) -> float:
        """Fraction processed, clamped to [0, 1]; 0.0 for an empty batch."""
        if self.records_total <= 0:
            return 0.0
        return max(0.0, min(1.0, self.records_processed / self.records_total))

    @property
    def is_active(self) -> bool:
        return self.status == SyncStatus.SYNCING and self.completed_at is None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def has_errors(self) -> bool:
        return self.errors_encountered > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "completed_at": format_optional_timestamp(self.completed_at),
            "status": self.status.value,
            "records_total": self.records_total,
            "records_processed": self.records_processed,
            "conflicts_detected": self.conflicts_detected,
            "errors_encountered": self.errors_encountered,
            "error_messages": list(self.error_messages),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSession:
        return cls(
            id=str(data["id"]),
            started_at=parse_timestamp(data["started_at"]),
            completed_at=parse_optional_timestamp(data.get("completed_at")),
            status=SyncStatus(data["status"]),
            records_total=int(data.get("records_total", 0)),
            records_processed=int(data.get("records_processed", 0)),
            conflicts_detected=int(data.get("conflicts_detected", 0)),
            errors_encountered=int(data.get("errors_encountered", 0)),
            error_messages=tuple(data.get("error_messages") or ()),
        )
