"""Batch sync orchestration over an injected transport."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from timeline_sync.core.sync_conflict import ResolutionStrategy, SyncConflict
from timeline_sync.core.sync_record import SyncRecord, SyncStatus
from timeline_sync.core.sync_session import SyncSession
from timeline_sync.errors import InvalidStateError
from timeline_sync.sync.conflict_detector import ConflictDetector, strip_bookkeeping
from timeline_sync.sync.conflict_resolver import ConflictResolver, merge_rows
from timeline_sync.sync.protocol import PushOutcome, SyncTransport
from timeline_sync.unified_config import SyncSettings

if TYPE_CHECKING:
    from timeline_sync.storage.base import SyncStorage
    from timeline_sync.sync.record_store import SyncRecordStore
    from timeline_sync.sync.session_tracker import SyncSessionTracker
    from timeline_sync.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)

COORDINATOR_ACTOR = "sync-coordinator"

_UPLOADABLE = (SyncStatus.PENDING_UPLOAD, SyncStatus.PENDING_DOWNLOAD)


@dataclass
class SyncRunResult:
    """Outcome of one coordinator run.

    ``requeued`` holds records whose row absorbed non-conflicting remote
    changes and was queued for upload again.
    """

    session: SyncSession
    synced: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    conflicts: list[SyncConflict] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    requeued: list[str] = field(default_factory=list)
    cancelled: bool = False


class SyncCoordinator:
    """Drives pending records through one sync session.

    Lifecycle per record:
    1. begin_sync
    2. transport.push
    3. complete_sync, fail_sync, reconcile_sync (remote diverged without
       conflicts), or flag_conflict (with optional auto-resolution)
    4. advance the session
    """

    def __init__(
        self,
        store: SyncRecordStore,
        tracker: SyncSessionTracker,
        detector: ConflictDetector | None = None,
        resolver: ConflictResolver | None = None,
        storage: SyncStorage | None = None,
        settings: SyncSettings | None = None,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._detector = detector or ConflictDetector()
        self._resolver = resolver or ConflictResolver()
        self._storage = storage
        self._settings = settings or SyncSettings()

    async def run(
        self,
        transport: SyncTransport,
        cancel_token: CancellationToken | None = None,
    ) -> SyncRunResult:
        """Sync every pending record once.

        Failed records under the retry limit are re-queued first. A
        cancellation stops records that have not started yet; the session
        then finishes as failed while processed records keep their state.
        """
        await self._store.retry_failed(self._settings.max_sync_retries)
        pending = await self._store.pending_records(_UPLOADABLE)

        session = self._tracker.start(len(pending))
        await self._save_session(session)
        result = SyncRunResult(session=session)

        semaphore = asyncio.Semaphore(self._settings.max_concurrent_records)

        async def _guarded(record: SyncRecord) -> None:
            async with semaphore:
                if cancel_token is not None and cancel_token.is_cancelled:
                    result.skipped.append(record.id)
                    return
                await self._sync_one(record, transport, result)

        tasks = [asyncio.create_task(_guarded(record)) for record in pending]
        try:
            await asyncio.gather(*tasks)
        except Exception:
            # Unexpected failure outside the transport: stop siblings, then close the session.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if self._tracker.current is not None and self._tracker.current.is_active:
                result.session = self._tracker.finish(SyncStatus.FAILED)
                await self._save_session(result.session)
            raise

        result.cancelled = cancel_token is not None and cancel_token.is_cancelled
        final_status = (
            SyncStatus.FAILED if result.cancelled or result.failed else SyncStatus.SYNCED
        )
        result.session = self._tracker.finish(final_status)
        await self._save_session(result.session)

        if result.cancelled:
            logger.warning(
                "Sync session %s cancelled: %d records skipped",
                session.id,
                len(result.skipped),
            )
        return result

    async def _sync_one(
        self,
        record: SyncRecord,
        transport: SyncTransport,
        result: SyncRunResult,
    ) -> None:
        try:
            record = await self._store.begin_sync(record.id)
        except InvalidStateError as e:
            # Record moved on (e.g. edited again) between listing and start.
            self._skip(record, result, e)
            return

        try:
            await self._push_one(record, transport, result)
        except InvalidStateError as e:
            # Edited again while the push was in flight; stays pending for the next run.
            self._skip(record, result, e)
        except asyncio.CancelledError:
            # Run aborted mid-push: release the record so the next run retries it.
            current = await self._store.get(record.id)
            if current.sync_status == SyncStatus.SYNCING:
                await self._store.fail_sync(record.id, "sync run aborted")
            raise

    async def _push_one(
        self,
        record: SyncRecord,
        transport: SyncTransport,
        result: SyncRunResult,
    ) -> None:
        try:
            outcome = await transport.push(record)
        except Exception as e:
            message = f"{record.table_name}/{record.record_id}: {e}"
            await self._store.fail_sync(record.id, str(e))
            result.failed.append(record.id)
            self._tracker.advance(errors=1, error_messages=[message])
            return

        if outcome.remote_data is not None:
            await self._handle_divergence(record, outcome, result)
            return

        if outcome.accepted:
            await self._store.complete_sync(record.id)
            result.synced.append(record.id)
            self._tracker.advance()
            return

        reason = outcome.error or "rejected by transport"
        await self._store.fail_sync(record.id, reason)
        result.failed.append(record.id)
        self._tracker.advance(
            errors=1,
            error_messages=[f"{record.table_name}/{record.record_id}: {reason}"],
        )

    async def _handle_divergence(
        self,
        record: SyncRecord,
        outcome: PushOutcome,
        result: SyncRunResult,
    ) -> None:
        remote = outcome.remote_data or {}
        conflict = self._detector.analyze_record(
            record.table_name,
            record.record_id,
            record.data,
            remote,
            outcome.base_data,
        )
        if conflict is None:
            await self._merge_divergence(record, remote, outcome.base_data, result)
            return

        await self._store.flag_conflict(record.id)

        strategy = self._settings.default_strategy
        if strategy is not None and strategy != ResolutionStrategy.MANUAL_MERGE:
            conflict = self._resolver.resolve(conflict, strategy, resolved_by=COORDINATOR_ACTOR)
            if conflict.is_resolved:
                # Remote already holds the remote-wins row; anything else is uploaded.
                await self._store.settle_conflict(
                    record.id,
                    data=conflict.resolved_data,
                    synced=strategy == ResolutionStrategy.REMOTE_WINS,
                )

        await self._save_conflict(conflict)
        result.conflicts.append(conflict)
        self._tracker.advance(conflicts=1)

    async def _merge_divergence(
        self,
        record: SyncRecord,
        remote: dict[str, Any],
        base: dict[str, Any] | None,
        result: SyncRunResult,
    ) -> None:
        """Fold non-conflicting remote changes into the local row.

        The push was not applied, so the record is only synced when the
        merged content already matches the remote copy.
        """
        merged = merge_rows(record.data, remote, base)
        if strip_bookkeeping(merged) == strip_bookkeeping(remote):
            await self._store.reconcile_sync(record.id, remote, synced=True)
            result.synced.append(record.id)
        else:
            await self._store.reconcile_sync(record.id, merged, synced=False)
            result.requeued.append(record.id)
        self._tracker.advance()

    def _skip(self, record: SyncRecord, result: SyncRunResult, error: InvalidStateError) -> None:
        logger.debug("Skipping record %s: %s", record.id, error)
        result.skipped.append(record.id)
        self._tracker.advance()

    async def _save_conflict(self, conflict: SyncConflict) -> None:
        if self._storage is not None:
            await self._storage.save_conflict(conflict)

    async def _save_session(self, session: SyncSession) -> None:
        if self._storage is not None:
            await self._storage.save_session(session)
