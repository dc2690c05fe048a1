"""Abstract base class for sync storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from timeline_sync.core.cache_entry import MediaFileMetadata
    from timeline_sync.core.sync_conflict import SyncConflict
    from timeline_sync.core.sync_record import SyncRecord, SyncStatus
    from timeline_sync.core.sync_session import SyncSession


class SyncStorage(ABC):
    """
    Abstract interface for persisting sync state.

    Implementations store records, conflicts, sessions and cache
    metadata. Saving an entity with an existing identity replaces it.
    """

    async def initialize(self) -> None:  # noqa: B027
        """Prepare the backend. No-op by default."""

    async def close(self) -> None:  # noqa: B027
        """Release backend resources. No-op by default."""

    # ========== Sync Records ==========

    @abstractmethod
    async def save_record(self, record: SyncRecord) -> None:
        """Insert or replace a sync record (keyed by its token)."""
        ...

    @abstractmethod
    async def get_record(self, record_token: str) -> SyncRecord | None:
        ...

    @abstractmethod
    async def list_records(
        self,
        status: SyncStatus | None = None,
        table_name: str | None = None,
    ) -> list[SyncRecord]:
        """
        List records, optionally filtered.

        Args:
            status: Only records in this sync state
            table_name: Only records of this collection

        Returns:
            Records ordered by creation time, then token
        """
        ...

    # ========== Conflicts ==========

    @abstractmethod
    async def save_conflict(self, conflict: SyncConflict) -> None:
        ...

    @abstractmethod
    async def get_conflict(self, conflict_id: str) -> SyncConflict | None:
        ...

    @abstractmethod
    async def list_unresolved_conflicts(
        self,
        table_name: str | None = None,
    ) -> list[SyncConflict]:
        """Open conflicts (deferred included), oldest detection first."""
        ...

    # ========== Sessions ==========

    @abstractmethod
    async def save_session(self, session: SyncSession) -> None:
        ...

    @abstractmethod
    async def list_recent_sessions(self, limit: int = 10) -> list[SyncSession]:
        """Sessions ordered newest start first."""
        ...

    # ========== Media Cache ==========

    @abstractmethod
    async def save_cache_entry(self, entry: MediaFileMetadata) -> None:
        ...

    @abstractmethod
    async def get_cache_entry(self, url: str) -> MediaFileMetadata | None:
        ...

    @abstractmethod
    async def list_cache_entries(self) -> list[MediaFileMetadata]:
        ...

    @abstractmethod
    async def delete_cache_entry(self, url: str) -> bool:
        """Remove a cache entry; returns False if it was not stored."""
        ...
