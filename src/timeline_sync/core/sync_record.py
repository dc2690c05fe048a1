"""Sync record: the tracked state of one local mutation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from timeline_sync.errors import ValidationError
from timeline_sync.utils.timeutils import (
    format_optional_timestamp,
    parse_optional_timestamp,
    parse_timestamp,
    utcnow,
)


class SyncStatus(StrEnum):
    """Sync state of a record or session."""

    SYNCED = "synced"
    PENDING_UPLOAD = "pending_upload"
    PENDING_DOWNLOAD = "pending_download"
    CONFLICT = "conflict"
    OFFLINE_ONLY = "offline_only"
    SYNCING = "syncing"
    FAILED = "failed"


class SyncOperation(StrEnum):
    """Kind of mutation a record carries."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


NEEDS_SYNC_STATUSES: frozenset[SyncStatus] = frozenset(
    {SyncStatus.PENDING_UPLOAD, SyncStatus.PENDING_DOWNLOAD, SyncStatus.FAILED}
)


@dataclass(frozen=True)
class SyncRecord:
    """One tracked mutation of a logical row.

    Records are never removed; a deletion is itself a record whose
    operation is DELETE.

    Attributes:
        id: Opaque record token
        table_name: Logical collection of the mutated row
        record_id: Identity of the row within its collection
        data: Working snapshot of the row's fields (JSON-compatible values)
        sync_status: Current sync state
        operation: Mutation kind
        created_at: First local mutation time
        last_modified: Most recent local mutation time
        last_sync_attempt: When the transport last picked the record up
        error_message: Last transport failure, if any
        retry_count: Failed attempts since the last successful sync
        metadata: Free-form bookkeeping
    """

    id: str
    table_name: str
    record_id: str
    data: dict[str, Any]
    sync_status: SyncStatus
    operation: SyncOperation
    created_at: datetime = field(default_factory=utcnow)
    last_modified: datetime = field(default_factory=utcnow)
    last_sync_attempt: datetime | None = None
    error_message: str | None = None
    retry_count: int = 0
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ValidationError(f"retry_count must be non-negative, got {self.retry_count}")

    @classmethod
    def create(
        cls,
        table_name: str,
        record_id: str,
        data: dict[str, Any],
        operation: SyncOperation = SyncOperation.CREATE,
        offline_only: bool = False,
        metadata: dict[str, Any] | None = None,
        record_token: str | None = None,
    ) -> SyncRecord:
        """Create a record for a first local mutation."""
        now = utcnow()
        return cls(
            id=record_token or str(uuid4()),
            table_name=table_name,
            record_id=record_id,
            data=dict(data),
            sync_status=SyncStatus.OFFLINE_ONLY if offline_only else SyncStatus.PENDING_UPLOAD,
            operation=operation,
            created_at=now,
            last_modified=now,
            metadata=metadata,
        )

    @property
    def needs_sync(self) -> bool:
        return self.sync_status in NEEDS_SYNC_STATUSES

    @property
    def has_error(self) -> bool:
        return bool(self.error_message)

    def with_status(self, status: SyncStatus, **changes: Any) -> SyncRecord:
        return replace(self, sync_status=status, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "data": self.data,
            "sync_status": self.sync_status.value,
            "operation": self.operation.value,
            "created_at": self.created_at.isoformat(),
            "last_modified": self.last_modified.isoformat(),
            "last_sync_attempt": format_optional_timestamp(self.last_sync_attempt),
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncRecord:
        return cls(
            id=str(data["id"]),
            table_name=str(data["table_name"]),
            record_id=str(data["record_id"]),
            data=dict(data.get("data") or {}),
            sync_status=SyncStatus(data["sync_status"]),
            operation=SyncOperation(data["operation"]),
            created_at=parse_timestamp(data["created_at"]),
            last_modified=parse_timestamp(data["last_modified"]),
            last_sync_attempt=parse_optional_timestamp(data.get("last_sync_attempt")),
            error_message=data.get("error_message"),
            retry_count=int(data.get("retry_count", 0)),
            metadata=data.get("metadata"),
        )
