"""In-memory sync record state machine.

Transitions::

    offline_only ─┐
                  ├─> pending_upload ─> syncing ─> synced | failed | conflict
    failed ───────┘   (retry)
    syncing ─> pending_upload             (diverged remote merged without conflicts)
    conflict ─> pending_upload | synced   (after external resolution)

Every transition on one record runs under that record's own lock, so two
transitions for the same record never interleave while different records
progress concurrently. Storage is written before the in-memory copy, so a
failed write leaves both at the previous state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from timeline_sync.core.events import ChangeEventType, ChangeNotifier
from timeline_sync.core.sync_record import SyncOperation, SyncRecord, SyncStatus
from timeline_sync.errors import InvalidStateError
from timeline_sync.storage.base import SyncStorage
from timeline_sync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

_BEGINNABLE_STATUSES = frozenset({SyncStatus.PENDING_UPLOAD, SyncStatus.PENDING_DOWNLOAD})


class SyncRecordStore:
    """Holds SyncRecords by token and applies state transitions.

    Args:
        notifier: Optional change bus; every transition emits one event.
        storage: Optional persistence; records are saved after each transition.
    """

    def __init__(
        self,
        notifier: ChangeNotifier | None = None,
        storage: SyncStorage | None = None,
    ) -> None:
        self._records: dict[str, SyncRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._notifier = notifier
        self._storage = storage

    def _lock_for(self, record_token: str) -> asyncio.Lock:
        lock = self._locks.get(record_token)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[record_token] = lock
        return lock

    async def load(self) -> int:
        """Populate the store from storage; returns the number of records loaded."""
        if self._storage is None:
            return 0
        records = await self._storage.list_records()
        for record in records:
            self._records[record.id] = record
        logger.debug("Loaded %d sync records from storage", len(records))
        return len(records)

    # ── Creation ──────────────────────────────────────────

    async def create(
        self,
        table_name: str,
        record_id: str,
        data: dict[str, Any],
        operation: SyncOperation = SyncOperation.CREATE,
        offline_only: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> SyncRecord:
        record = SyncRecord.create(
            table_name=table_name,
            record_id=record_id,
            data=data,
            operation=operation,
            offline_only=offline_only,
            metadata=metadata,
        )
        async with self._lock_for(record.id):
            await self._persist(record)
            self._records[record.id] = record
        logger.debug(
            "Created sync record %s for %s/%s (%s)",
            record.id,
            table_name,
            record_id,
            record.sync_status,
        )
        self._emit(ChangeEventType.RECORD_CREATED, record, previous_status=None)
        return record

    # ── Transitions ───────────────────────────────────────

    async def mark_dirty(
        self,
        record_token: str,
        data: dict[str, Any] | None = None,
        operation: SyncOperation | None = None,
    ) -> SyncRecord:
        """Record a local edit: any state moves to pending_upload."""

        def _apply(record: SyncRecord) -> SyncRecord:
            new_operation = operation
            if new_operation is None:
                unsynced_create = (
                    record.operation == SyncOperation.CREATE
                    and record.sync_status != SyncStatus.SYNCED
                )
                new_operation = SyncOperation.CREATE if unsynced_create else SyncOperation.UPDATE
            return record.with_status(
                SyncStatus.PENDING_UPLOAD,
                data=dict(data) if data is not None else record.data,
                operation=new_operation,
                last_modified=utcnow(),
                error_message=None,
            )

        return await self._transition(
            record_token, _apply, event_type=ChangeEventType.RECORD_UPDATED
        )

    async def begin_sync(self, record_token: str) -> SyncRecord:
        def _apply(record: SyncRecord) -> SyncRecord:
            self._require(record, _BEGINNABLE_STATUSES, "begin sync")
            return record.with_status(SyncStatus.SYNCING, last_sync_attempt=utcnow())

        return await self._transition(record_token, _apply)

    async def complete_sync(self, record_token: str) -> SyncRecord:
        def _apply(record: SyncRecord) -> SyncRecord:
            self._require(record, {SyncStatus.SYNCING}, "complete sync")
            return record.with_status(SyncStatus.SYNCED, retry_count=0, error_message=None)

        return await self._transition(record_token, _apply)

    async def fail_sync(self, record_token: str, reason: str) -> SyncRecord:
        def _apply(record: SyncRecord) -> SyncRecord:
            self._require(record, {SyncStatus.SYNCING}, "fail sync")
            return record.with_status(
                SyncStatus.FAILED,
                retry_count=record.retry_count + 1,
                error_message=reason,
            )

        updated = await self._transition(record_token, _apply)
        logger.warning(
            "Sync failed for record %s (attempt %d): %s",
            record_token,
            updated.retry_count,
            reason,
        )
        return updated

    async def flag_conflict(self, record_token: str) -> SyncRecord:
        def _apply(record: SyncRecord) -> SyncRecord:
            self._require(record, {SyncStatus.SYNCING}, "flag conflict")
            return record.with_status(SyncStatus.CONFLICT)

        return await self._transition(
            record_token, _apply, event_type=ChangeEventType.CONFLICT_FLAGGED
        )

    async def reconcile_sync(
        self,
        record_token: str,
        data: dict[str, Any],
        synced: bool,
    ) -> SyncRecord:
        """Take a merged row after the remote side diverged without conflicts.

        With ``synced`` the remote copy already holds the merged content;
        otherwise the merged row is queued for upload.
        """

        def _apply(record: SyncRecord) -> SyncRecord:
            self._require(record, {SyncStatus.SYNCING}, "reconcile sync")
            if synced:
                return record.with_status(
                    SyncStatus.SYNCED, data=dict(data), retry_count=0, error_message=None
                )
            return record.with_status(
                SyncStatus.PENDING_UPLOAD,
                data=dict(data),
                last_modified=utcnow(),
                error_message=None,
            )

        return await self._transition(record_token, _apply)

    async def settle_conflict(
        self,
        record_token: str,
        data: dict[str, Any] | None = None,
        synced: bool = False,
    ) -> SyncRecord:
        """Leave the conflict state once the conflict has been resolved elsewhere.

        With ``synced`` the resolved row is already on the remote side;
        otherwise it is queued for upload.
        """

        def _apply(record: SyncRecord) -> SyncRecord:
            self._require(record, {SyncStatus.CONFLICT}, "settle conflict")
            changes: dict[str, Any] = {"error_message": None}
            if data is not None:
                changes["data"] = dict(data)
                changes["last_modified"] = utcnow()
            status = SyncStatus.SYNCED if synced else SyncStatus.PENDING_UPLOAD
            return record.with_status(status, **changes)

        return await self._transition(record_token, _apply)

    async def mark_deleted(self, record_token: str) -> SyncRecord:
        def _apply(record: SyncRecord) -> SyncRecord:
            return record.with_status(
                SyncStatus.PENDING_UPLOAD,
                operation=SyncOperation.DELETE,
                last_modified=utcnow(),
                error_message=None,
            )

        return await self._transition(record_token, _apply)

    async def retry_failed(self, max_retries: int) -> list[SyncRecord]:
        """Queue failed records with retry_count below ``max_retries`` again."""

        def _apply(record: SyncRecord) -> SyncRecord | None:
            if record.sync_status != SyncStatus.FAILED or record.retry_count >= max_retries:
                return None
            return record.with_status(SyncStatus.PENDING_UPLOAD)

        retried: list[SyncRecord] = []
        failed = [r.id for r in self._records.values() if r.sync_status == SyncStatus.FAILED]
        for token in failed:
            updated = await self._transition(token, _apply)
            if updated.sync_status == SyncStatus.PENDING_UPLOAD:
                retried.append(updated)

        if retried:
            logger.debug("Re-queued %d failed records", len(retried))
        return retried

    # ── Queries ───────────────────────────────────────────

    async def get(self, record_token: str) -> SyncRecord:
        """Return a record by token.

        Raises:
            KeyError: Unknown record token.
        """
        return self._records[record_token]

    async def pending_records(
        self,
        statuses: Iterable[SyncStatus] | None = None,
    ) -> list[SyncRecord]:
        """Records that still need a round trip, oldest edit first."""
        if statuses is None:
            selected = [r for r in self._records.values() if r.needs_sync]
        else:
            wanted = frozenset(statuses)
            selected = [r for r in self._records.values() if r.sync_status in wanted]
        return sorted(selected, key=lambda r: (r.last_modified, r.id))

    async def records_for_table(self, table_name: str) -> list[SyncRecord]:
        return sorted(
            (r for r in self._records.values() if r.table_name == table_name),
            key=lambda r: (r.created_at, r.id),
        )

    async def stats(self) -> dict[str, Any]:
        by_status = {status.value: 0 for status in SyncStatus}
        with_errors = 0
        for record in self._records.values():
            by_status[record.sync_status.value] += 1
            if record.has_error:
                with_errors += 1
        return {
            "total": len(self._records),
            "needs_sync": sum(1 for r in self._records.values() if r.needs_sync),
            "with_errors": with_errors,
            "by_status": by_status,
        }

    def __len__(self) -> int:
        return len(self._records)

    # ── Internals ─────────────────────────────────────────

    async def _transition(
        self,
        record_token: str,
        apply: Callable[[SyncRecord], SyncRecord | None],
        event_type: ChangeEventType = ChangeEventType.RECORD_STATUS_CHANGED,
    ) -> SyncRecord:
        if record_token not in self._records:
            raise KeyError(record_token)

        async with self._lock_for(record_token):
            current = self._records[record_token]
            updated = apply(current)
            if updated is None:
                return current
            await self._persist(updated)
            self._records[record_token] = updated

        logger.debug(
            "Record %s: %s -> %s",
            record_token,
            current.sync_status,
            updated.sync_status,
        )
        self._emit(event_type, updated, previous_status=current.sync_status)
        return updated

    @staticmethod
    def _require(record: SyncRecord, allowed: Iterable[SyncStatus], action: str) -> None:
        if record.sync_status not in allowed:
            raise InvalidStateError(
                f"Cannot {action} for record {record.id} in state {record.sync_status}",
                current_state=record.sync_status.value,
            )

    async def _persist(self, record: SyncRecord) -> None:
        if self._storage is not None:
            await self._storage.save_record(record)

    def _emit(
        self,
        event_type: ChangeEventType,
        record: SyncRecord,
        previous_status: SyncStatus | None,
    ) -> None:
        if self._notifier is None:
            return
        self._notifier.emit(
            event_type,
            record.id,
            table_name=record.table_name,
            record_id=record.record_id,
            previous_status=previous_status,
            status=record.sync_status,
        )
