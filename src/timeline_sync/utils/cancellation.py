"""Cooperative cancellation for long-running batch operations."""

from __future__ import annotations

import threading

from timeline_sync.errors import OperationCancelledError


class CancellationToken:
    """Flag checked between per-item iterations of a batch run.

    Safe to cancel from another thread or from another coroutine.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancel() has been called."""
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "cancelled")
