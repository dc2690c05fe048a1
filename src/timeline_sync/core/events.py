"""Change notifications emitted by the record store and session tracker."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from timeline_sync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class ChangeEventType(StrEnum):
    """Kind of state change being announced."""

    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_STATUS_CHANGED = "record_status_changed"
    CONFLICT_FLAGGED = "conflict_flagged"
    CONFLICT_RESOLVED = "conflict_resolved"
    CONFLICT_DEFERRED = "conflict_deferred"
    SESSION_STARTED = "session_started"
    SESSION_PROGRESS = "session_progress"
    SESSION_FINISHED = "session_finished"


@dataclass(frozen=True)
class ChangeEvent:
    """A single state change.

    Attributes:
        event_type: What happened
        subject_id: Record ID or session ID the event is about
        occurred_at: Emission time
        payload: Event-specific details (e.g. previous and new status)
    """

    event_type: ChangeEventType
    subject_id: str
    occurred_at: datetime = field(default_factory=utcnow)
    payload: dict[str, Any] = field(default_factory=dict)


ChangeListener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Fan-out of change events to subscribed callbacks.

    Listeners run synchronously in subscription order. A failing listener
    is logged and does not prevent delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(
        self,
        event_type: ChangeEventType,
        subject_id: str,
        **payload: Any,
    ) -> ChangeEvent:
        event = ChangeEvent(event_type=event_type, subject_id=subject_id, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(
                    "Change listener failed for %s on %s",
                    event_type,
                    subject_id,
                    exc_info=True,
                )
        return event
