"""Exception taxonomy for the sync and clustering core.

Every error here is raised synchronously and is scoped to a single
record, conflict, session or clustering run.
"""

from __future__ import annotations


class SyncCoreError(Exception):
    """Base class for all timeline_sync errors."""


class ValidationError(SyncCoreError, ValueError):
    """Malformed input: bad fuzzy date, coordinate, file size, etc."""


class InvalidStateError(SyncCoreError):
    """A state transition was attempted from an incompatible state."""

    def __init__(self, message: str, current_state: str | None = None) -> None:
        super().__init__(message)
        self.current_state = current_state


class AlreadyResolvedError(SyncCoreError):
    """A conflict that already has a terminal resolution was resolved again."""


class AlreadyCompletedError(SyncCoreError):
    """A finished sync session was finished or advanced again."""


class MissingResolutionDataError(SyncCoreError):
    """Manual merge was requested without caller-supplied data."""


class OperationCancelledError(SyncCoreError):
    """A long-running batch operation observed a cancellation request."""
