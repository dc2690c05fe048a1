"""Transport seam used by the sync coordinator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from timeline_sync.core.sync_record import SyncRecord


@dataclass(frozen=True)
class PushOutcome:
    """Result of pushing one record to the remote side.

    Attributes:
        accepted: Remote side applied the mutation
        remote_data: Remote copy of the row when it diverged; presence
            means the push was not applied and must be reconciled
        base_data: Last agreed snapshot of the row, if the remote knows it
        error: Failure message when the push was rejected
    """

    accepted: bool = True
    remote_data: dict[str, Any] | None = None
    base_data: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def ok(cls) -> PushOutcome:
        return cls(accepted=True)

    @classmethod
    def diverged(
        cls,
        remote_data: dict[str, Any],
        base_data: dict[str, Any] | None = None,
    ) -> PushOutcome:
        return cls(accepted=False, remote_data=remote_data, base_data=base_data)

    @classmethod
    def rejected(cls, error: str) -> PushOutcome:
        return cls(accepted=False, error=error)


class SyncTransport(Protocol):
    """Anything that can deliver a record to the remote side."""

    async def push(self, record: SyncRecord) -> PushOutcome: ...
