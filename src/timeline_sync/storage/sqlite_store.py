"""SQLite storage backend for persistent sync state."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from timeline_sync.core.cache_entry import MediaFileMetadata
from timeline_sync.core.sync_conflict import SyncConflict
from timeline_sync.core.sync_record import SyncRecord, SyncStatus
from timeline_sync.core.sync_session import SyncSession
from timeline_sync.storage.base import SyncStorage
from timeline_sync.storage.sqlite_schema import SCHEMA, SCHEMA_VERSION, run_migrations
from timeline_sync.utils.timeutils import format_optional_timestamp

logger = logging.getLogger(__name__)


def _dump(payload: dict[str, Any]) -> str:
    """Serialize an entity payload.

    Row data must be JSON-compatible (str, numbers, bools, None, lists and
    str-keyed dicts); anything else raises TypeError before the write.
    """
    return json.dumps(payload, ensure_ascii=False, sort_keys=False)


class SQLiteSyncStorage(SyncStorage):
    """SQLite-based storage for sync records, conflicts, sessions and cache metadata.

    Data persists to disk and survives restarts. Use ``":memory:"`` as the
    path for a throwaway database.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = db_path if db_path == ":memory:" else Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection, migrate older databases, then apply the schema."""
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")

        await self._conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"
        )
        await self._conn.commit()

        async with self._conn.execute("SELECT version FROM schema_version") as cursor:
            row = await cursor.fetchone()

        if row is not None and row["version"] < SCHEMA_VERSION:
            await run_migrations(self._conn, row["version"])

        await self._conn.executescript(SCHEMA)

        if row is None:
            await self._conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
        await self._conn.commit()
        logger.debug("Sync storage ready at %s (schema v%d)", self._db_path, SCHEMA_VERSION)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def _fetch_payloads(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        conn = self._ensure_conn()
        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [json.loads(row["payload"]) for row in rows]

    # ========== Sync Records ==========

    async def save_record(self, record: SyncRecord) -> None:
        conn = self._ensure_conn()
        await conn.execute(
            """INSERT OR REPLACE INTO sync_records
               (id, table_name, record_id, sync_status, created_at, payload)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                record.id,
                record.table_name,
                record.record_id,
                record.sync_status.value,
                record.created_at.isoformat(),
                _dump(record.to_dict()),
            ),
        )
        await conn.commit()

    async def get_record(self, record_token: str) -> SyncRecord | None:
        payloads = await self._fetch_payloads(
            "SELECT payload FROM sync_records WHERE id = ?", (record_token,)
        )
        return SyncRecord.from_dict(payloads[0]) if payloads else None

    async def list_records(
        self,
        status: SyncStatus | None = None,
        table_name: str | None = None,
    ) -> list[SyncRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            clauses.append("sync_status = ?")
            params.append(SyncStatus(status).value)
        if table_name is not None:
            clauses.append("table_name = ?")
            params.append(table_name)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        payloads = await self._fetch_payloads(
            f"SELECT payload FROM sync_records {where} ORDER BY created_at, id",  # noqa: S608
            tuple(params),
        )
        return [SyncRecord.from_dict(p) for p in payloads]

    # ========== Conflicts ==========

    async def save_conflict(self, conflict: SyncConflict) -> None:
        conn = self._ensure_conn()
        await conn.execute(
            """INSERT OR REPLACE INTO sync_conflicts
               (id, table_name, record_id, detected_at, resolved_at, last_deferred_at, payload)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                conflict.id,
                conflict.table_name,
                conflict.record_id,
                conflict.detected_at.isoformat(),
                format_optional_timestamp(conflict.resolved_at),
                format_optional_timestamp(conflict.last_deferred_at),
                _dump(conflict.to_dict()),
            ),
        )
        await conn.commit()

    async def get_conflict(self, conflict_id: str) -> SyncConflict | None:
        payloads = await self._fetch_payloads(
            "SELECT payload FROM sync_conflicts WHERE id = ?", (conflict_id,)
        )
        return SyncConflict.from_dict(payloads[0]) if payloads else None

    async def list_unresolved_conflicts(
        self,
        table_name: str | None = None,
    ) -> list[SyncConflict]:
        if table_name is None:
            payloads = await self._fetch_payloads(
                """SELECT payload FROM sync_conflicts
                   WHERE resolved_at IS NULL ORDER BY detected_at, id"""
            )
        else:
            payloads = await self._fetch_payloads(
                """SELECT payload FROM sync_conflicts
                   WHERE resolved_at IS NULL AND table_name = ?
                   ORDER BY detected_at, id""",
                (table_name,),
            )
        return [SyncConflict.from_dict(p) for p in payloads]

    # ========== Sessions ==========

    async def save_session(self, session: SyncSession) -> None:
        conn = self._ensure_conn()
        await conn.execute(
            """INSERT OR REPLACE INTO sync_sessions (id, started_at, status, payload)
               VALUES (?, ?, ?, ?)""",
            (
                session.id,
                session.started_at.isoformat(),
                session.status.value,
                _dump(session.to_dict()),
            ),
        )
        await conn.commit()

    async def list_recent_sessions(self, limit: int = 10) -> list[SyncSession]:
        payloads = await self._fetch_payloads(
            "SELECT payload FROM sync_sessions ORDER BY started_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [SyncSession.from_dict(p) for p in payloads]

    # ========== Media Cache ==========

    async def save_cache_entry(self, entry: MediaFileMetadata) -> None:
        conn = self._ensure_conn()
        await conn.execute(
            """INSERT OR REPLACE INTO media_cache_entries (url, priority, is_essential, payload)
               VALUES (?, ?, ?, ?)""",
            (entry.url, entry.priority.value, int(entry.is_essential), _dump(entry.to_dict())),
        )
        await conn.commit()

    async def get_cache_entry(self, url: str) -> MediaFileMetadata | None:
        payloads = await self._fetch_payloads(
            "SELECT payload FROM media_cache_entries WHERE url = ?", (url,)
        )
        return MediaFileMetadata.from_dict(payloads[0]) if payloads else None

    async def list_cache_entries(self) -> list[MediaFileMetadata]:
        payloads = await self._fetch_payloads(
            "SELECT payload FROM media_cache_entries ORDER BY url"
        )
        return [MediaFileMetadata.from_dict(p) for p in payloads]

    async def delete_cache_entry(self, url: str) -> bool:
        conn = self._ensure_conn()
        cursor = await conn.execute("DELETE FROM media_cache_entries WHERE url = ?", (url,))
        await conn.commit()
        return cursor.rowcount > 0
