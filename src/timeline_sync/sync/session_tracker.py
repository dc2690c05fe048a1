"""Tracks progress of batch sync sessions."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import replace
from uuid import uuid4

from timeline_sync.core.events import ChangeEventType, ChangeNotifier
from timeline_sync.core.sync_record import SyncStatus
from timeline_sync.core.sync_session import SyncSession
from timeline_sync.errors import AlreadyCompletedError, InvalidStateError, ValidationError
from timeline_sync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

_FINAL_STATUSES = frozenset({SyncStatus.SYNCED, SyncStatus.FAILED})


class SyncSessionTracker:
    """Owns the current sync session and a bounded history of finished ones.

    Only one session is active at a time. A finished session stays
    ``current`` until the next ``start``.
    """

    def __init__(
        self,
        notifier: ChangeNotifier | None = None,
        history_limit: int = 50,
    ) -> None:
        self._notifier = notifier
        self._current: SyncSession | None = None
        self._history: deque[SyncSession] = deque(maxlen=history_limit)

    @property
    def current(self) -> SyncSession | None:
        return self._current

    def start(self, records_total: int) -> SyncSession:
        if records_total < 0:
            raise ValidationError(f"records_total must be non-negative, got {records_total}")
        if self._current is not None and self._current.is_active:
            raise InvalidStateError(
                f"Sync session {self._current.id} is still active",
                current_state=self._current.status.value,
            )

        session = SyncSession(id=str(uuid4()), started_at=utcnow(), records_total=records_total)
        self._current = session
        logger.info("Started sync session %s over %d records", session.id, records_total)
        self._emit(ChangeEventType.SESSION_STARTED, session)
        return session

    def advance(
        self,
        n: int = 1,
        conflicts: int = 0,
        errors: int = 0,
        error_messages: Iterable[str] = (),
    ) -> SyncSession:
        """Count ``n`` more processed records; processed never exceeds the total."""
        session = self._require_open("advance")
        if n < 0 or conflicts < 0 or errors < 0:
            raise ValidationError("advance counts must be non-negative")

        updated = replace(
            session,
            records_processed=min(session.records_total, session.records_processed + n),
            conflicts_detected=session.conflicts_detected + conflicts,
            errors_encountered=session.errors_encountered + errors,
            error_messages=session.error_messages + tuple(error_messages),
        )
        self._current = updated
        self._emit(ChangeEventType.SESSION_PROGRESS, updated)
        return updated

    def finish(self, status: SyncStatus | str) -> SyncSession:
        session = self._require_open("finish")
        status = SyncStatus(status)
        if status not in _FINAL_STATUSES:
            raise ValidationError(f"A session can only finish as synced or failed, got {status}")

        finished = replace(session, status=status, completed_at=utcnow())
        self._current = finished
        self._history.append(finished)
        logger.info(
            "Finished sync session %s as %s: %d/%d processed, %d conflicts, %d errors",
            finished.id,
            status,
            finished.records_processed,
            finished.records_total,
            finished.conflicts_detected,
            finished.errors_encountered,
        )
        self._emit(ChangeEventType.SESSION_FINISHED, finished)
        return finished

    def recent_sessions(self, limit: int = 10) -> list[SyncSession]:
        """Finished sessions, newest first."""
        return list(reversed(self._history))[:limit]

    def _require_open(self, action: str) -> SyncSession:
        session = self._current
        if session is None:
            raise InvalidStateError(f"Cannot {action}: no sync session has been started")
        if session.is_completed:
            raise AlreadyCompletedError(f"Cannot {action}: sync session {session.id} is finished")
        return session

    def _emit(self, event_type: ChangeEventType, session: SyncSession) -> None:
        if self._notifier is None:
            return
        self._notifier.emit(
            event_type,
            session.id,
            status=session.status,
            progress=session.progress,
        )
