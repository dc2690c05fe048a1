"""SQLite schema definition for sync storage."""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

# ── Migrations ──────────────────────────────────────────────────────
# Each entry maps (from_version -> to_version) with a list of SQL statements.

MIGRATIONS: dict[tuple[int, int], list[str]] = {}

# Entities are stored as their to_dict() JSON in `payload`; the other
# columns duplicate fields used for filtering and ordering.
SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_records (
    id TEXT PRIMARY KEY,
    table_name TEXT NOT NULL,
    record_id TEXT NOT NULL,
    sync_status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_records_status ON sync_records(sync_status);
CREATE INDEX IF NOT EXISTS idx_records_table ON sync_records(table_name, record_id);

CREATE TABLE IF NOT EXISTS sync_conflicts (
    id TEXT PRIMARY KEY,
    table_name TEXT NOT NULL,
    record_id TEXT NOT NULL,
    detected_at TEXT NOT NULL,
    resolved_at TEXT,
    last_deferred_at TEXT,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_conflicts_open ON sync_conflicts(resolved_at, detected_at);

CREATE TABLE IF NOT EXISTS sync_sessions (
    id TEXT PRIMARY KEY,
    started_at TEXT NOT NULL,
    status TEXT NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sessions_started ON sync_sessions(started_at);

CREATE TABLE IF NOT EXISTS media_cache_entries (
    url TEXT PRIMARY KEY,
    priority TEXT NOT NULL,
    is_essential INTEGER NOT NULL DEFAULT 0,
    payload TEXT NOT NULL
);
"""


async def run_migrations(conn: aiosqlite.Connection, current_version: int) -> int:
    """Apply all pending migrations from current_version to SCHEMA_VERSION.

    Returns the final schema version after all migrations.
    """
    version = current_version

    while version < SCHEMA_VERSION:
        next_version = version + 1
        for sql in MIGRATIONS.get((version, next_version), []):
            try:
                await conn.execute(sql)
            except sqlite3.OperationalError as e:
                # Column/index may already exist from a partial migration.
                message = str(e).lower()
                if "duplicate column" in message or "already exists" in message:
                    logger.debug("Migration already applied: %s", e)
                else:
                    raise
        version = next_version

    await conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
    await conn.commit()

    return version
