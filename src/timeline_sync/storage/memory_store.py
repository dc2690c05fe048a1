"""In-memory sync storage, for tests and ephemeral sessions."""

from __future__ import annotations

from timeline_sync.core.cache_entry import MediaFileMetadata
from timeline_sync.core.sync_conflict import SyncConflict
from timeline_sync.core.sync_record import SyncRecord, SyncStatus
from timeline_sync.core.sync_session import SyncSession
from timeline_sync.storage.base import SyncStorage


class InMemorySyncStorage(SyncStorage):
    """Dict-backed storage. Entities are immutable, so they are stored as-is."""

    def __init__(self) -> None:
        self._records: dict[str, SyncRecord] = {}
        self._conflicts: dict[str, SyncConflict] = {}
        self._sessions: dict[str, SyncSession] = {}
        self._cache_entries: dict[str, MediaFileMetadata] = {}

    # ========== Sync Records ==========

    async def save_record(self, record: SyncRecord) -> None:
        self._records[record.id] = record

    async def get_record(self, record_token: str) -> SyncRecord | None:
        return self._records.get(record_token)

    async def list_records(
        self,
        status: SyncStatus | None = None,
        table_name: str | None = None,
    ) -> list[SyncRecord]:
        records = [
            r
            for r in self._records.values()
            if (status is None or r.sync_status == status)
            and (table_name is None or r.table_name == table_name)
        ]
        return sorted(records, key=lambda r: (r.created_at, r.id))

    # ========== Conflicts ==========

    async def save_conflict(self, conflict: SyncConflict) -> None:
        self._conflicts[conflict.id] = conflict

    async def get_conflict(self, conflict_id: str) -> SyncConflict | None:
        return self._conflicts.get(conflict_id)

    async def list_unresolved_conflicts(
        self,
        table_name: str | None = None,
    ) -> list[SyncConflict]:
        conflicts = [
            c
            for c in self._conflicts.values()
            if not c.is_resolved and (table_name is None or c.table_name == table_name)
        ]
        return sorted(conflicts, key=lambda c: (c.detected_at, c.id))

    # ========== Sessions ==========

    async def save_session(self, session: SyncSession) -> None:
        self._sessions[session.id] = session

    async def list_recent_sessions(self, limit: int = 10) -> list[SyncSession]:
        sessions = sorted(
            self._sessions.values(),
            key=lambda s: (s.started_at, s.id),
            reverse=True,
        )
        return sessions[:limit]

    # ========== Media Cache ==========

    async def save_cache_entry(self, entry: MediaFileMetadata) -> None:
        self._cache_entries[entry.url] = entry

    async def get_cache_entry(self, url: str) -> MediaFileMetadata | None:
        return self._cache_entries.get(url)

    async def list_cache_entries(self) -> list[MediaFileMetadata]:
        return sorted(self._cache_entries.values(), key=lambda e: e.url)

    async def delete_cache_entry(self, url: str) -> bool:
        return self._cache_entries.pop(url, None) is not None
