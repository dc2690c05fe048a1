"""Tests for the sync storage backends."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from timeline_sync.core.cache_entry import CachePriority, MediaFileMetadata
from timeline_sync.core.sync_conflict import ResolutionStrategy, SyncConflict
from timeline_sync.core.sync_record import SyncOperation, SyncRecord, SyncStatus
from timeline_sync.core.sync_session import SyncSession
from timeline_sync.storage import sqlite_schema, sqlite_store
from timeline_sync.storage.base import SyncStorage
from timeline_sync.storage.memory_store import InMemorySyncStorage
from timeline_sync.storage.sqlite_schema import SCHEMA_VERSION, run_migrations
from timeline_sync.storage.sqlite_store import SQLiteSyncStorage

BASE_TIME = datetime(2024, 5, 1, 9, 0, 0)


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def storage(
    request: pytest.FixtureRequest, tmp_path: Path
) -> AsyncGenerator[SyncStorage, None]:
    """Each storage backend in turn."""
    backend: SyncStorage
    if request.param == "memory":
        backend = InMemorySyncStorage()
    else:
        backend = SQLiteSyncStorage(tmp_path / "sync.db")
    await backend.initialize()
    yield backend
    await backend.close()


def _make_record(token: str, table: str = "stories", minutes: int = 0) -> SyncRecord:
    created = BASE_TIME + timedelta(minutes=minutes)
    return SyncRecord(
        id=token,
        table_name=table,
        record_id=f"row-{token}",
        data={"title": token, "tags": ["a"]},
        sync_status=SyncStatus.PENDING_UPLOAD,
        operation=SyncOperation.CREATE,
        created_at=created,
        last_modified=created,
    )


def _make_conflict(conflict_id: str, table: str = "stories", minutes: int = 0) -> SyncConflict:
    conflict = SyncConflict.create(
        table,
        f"row-{conflict_id}",
        {"title": "local"},
        {"title": "remote"},
        {"title": "base"},
        ["title"],
        conflict_id=conflict_id,
    )
    return replace(conflict, detected_at=BASE_TIME + timedelta(minutes=minutes))


class TestRecords:
    """Record persistence."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, storage: SyncStorage) -> None:
        record = _make_record("r1")
        await storage.save_record(record)

        assert await storage.get_record("r1") == record
        assert await storage.get_record("missing") is None

    @pytest.mark.asyncio
    async def test_save_replaces(self, storage: SyncStorage) -> None:
        record = _make_record("r1")
        await storage.save_record(record)
        await storage.save_record(record.with_status(SyncStatus.SYNCED))

        records = await storage.list_records()
        assert len(records) == 1
        assert records[0].sync_status == SyncStatus.SYNCED

    @pytest.mark.asyncio
    async def test_list_filters(self, storage: SyncStorage) -> None:
        await storage.save_record(_make_record("r1", "stories", minutes=2))
        await storage.save_record(_make_record("r2", "media", minutes=1))
        failed = _make_record("r3", "stories", minutes=0).with_status(SyncStatus.FAILED)
        await storage.save_record(failed)

        assert [r.id for r in await storage.list_records()] == ["r3", "r2", "r1"]
        assert [r.id for r in await storage.list_records(table_name="stories")] == ["r3", "r1"]
        assert [r.id for r in await storage.list_records(status=SyncStatus.FAILED)] == ["r3"]
        assert await storage.list_records(status=SyncStatus.FAILED, table_name="media") == []


class TestConflicts:
    """Conflict persistence."""

    @pytest.mark.asyncio
    async def test_unresolved_listing(self, storage: SyncStorage) -> None:
        open_one = _make_conflict("c1", minutes=1)
        other_table = _make_conflict("c2", table="media", minutes=0)
        resolved = replace(
            _make_conflict("c3"),
            resolution_strategy=ResolutionStrategy.LOCAL_WINS,
            resolved_at=BASE_TIME,
            resolved_data={"title": "local"},
            resolved_by="user-1",
        )
        for conflict in (open_one, other_table, resolved):
            await storage.save_conflict(conflict)

        assert [c.id for c in await storage.list_unresolved_conflicts()] == ["c2", "c1"]
        assert [c.id for c in await storage.list_unresolved_conflicts("stories")] == ["c1"]
        assert await storage.get_conflict("c3") == resolved

    @pytest.mark.asyncio
    async def test_deferred_conflict_stays_unresolved(self, storage: SyncStorage) -> None:
        deferred = replace(
            _make_conflict("c1"),
            resolution_strategy=ResolutionStrategy.DEFER,
            last_deferred_at=BASE_TIME,
            resolved_by="user-1",
        )
        await storage.save_conflict(deferred)

        unresolved = await storage.list_unresolved_conflicts()
        assert [c.id for c in unresolved] == ["c1"]
        assert unresolved[0].is_deferred


class TestSessions:
    """Session history."""

    @pytest.mark.asyncio
    async def test_recent_sessions_newest_first(self, storage: SyncStorage) -> None:
        for i in range(4):
            await storage.save_session(
                SyncSession(id=f"s{i}", started_at=BASE_TIME + timedelta(minutes=i), records_total=i)
            )

        recent = await storage.list_recent_sessions(limit=2)

        assert [s.id for s in recent] == ["s3", "s2"]
        assert recent[0].records_total == 3

    @pytest.mark.asyncio
    async def test_session_update_replaces(self, storage: SyncStorage) -> None:
        session = SyncSession(id="s1", started_at=BASE_TIME, records_total=2)
        await storage.save_session(session)
        finished = replace(
            session,
            status=SyncStatus.FAILED,
            completed_at=BASE_TIME + timedelta(minutes=1),
            records_processed=2,
            errors_encountered=1,
            error_messages=("stories/a: boom",),
        )
        await storage.save_session(finished)

        assert await storage.list_recent_sessions() == [finished]


class TestCacheEntries:
    """Media cache metadata."""

    @pytest.mark.asyncio
    async def test_save_list_delete(self, storage: SyncStorage) -> None:
        entry = MediaFileMetadata(
            url="https://cdn.example.com/b.jpg",
            file_type="jpg",
            file_size=2048,
            priority=CachePriority.HIGH,
            last_accessed=BASE_TIME,
            access_count=3,
            is_essential=True,
        )
        other = MediaFileMetadata(
            url="https://cdn.example.com/a.mp4",
            file_type="mp4",
            file_size=10,
            last_accessed=BASE_TIME,
        )
        await storage.save_cache_entry(entry)
        await storage.save_cache_entry(other)

        assert await storage.get_cache_entry(entry.url) == entry
        assert [e.url for e in await storage.list_cache_entries()] == [other.url, entry.url]
        assert await storage.delete_cache_entry(other.url) is True
        assert await storage.delete_cache_entry(other.url) is False
        assert await storage.list_cache_entries() == [entry]


class TestSQLiteLifecycle:
    """Schema setup and migration."""

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "sync.db"
        first = SQLiteSyncStorage(db_path)
        await first.initialize()
        await first.save_record(_make_record("r1"))
        await first.close()

        second = SQLiteSyncStorage(db_path)
        await second.initialize()
        try:
            assert [r.id for r in await second.list_records()] == ["r1"]
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_new_database_stamped_with_current_version(self, tmp_path: Path) -> None:
        db_path = tmp_path / "sync.db"
        storage = SQLiteSyncStorage(db_path)
        await storage.initialize()
        await storage.close()

        async with aiosqlite.connect(db_path) as conn:
            async with conn.execute("SELECT version FROM schema_version") as cursor:
                rows = await cursor.fetchall()
        assert [row[0] for row in rows] == [SCHEMA_VERSION]

    @pytest.mark.asyncio
    async def test_older_database_is_migrated(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        db_path = tmp_path / "sync.db"
        old = SQLiteSyncStorage(db_path)
        await old.initialize()
        await old.save_session(SyncSession(id="s1", started_at=BASE_TIME))
        await old.close()

        next_version = SCHEMA_VERSION + 1
        monkeypatch.setattr(sqlite_schema, "SCHEMA_VERSION", next_version)
        monkeypatch.setattr(sqlite_store, "SCHEMA_VERSION", next_version)
        monkeypatch.setattr(
            sqlite_schema,
            "MIGRATIONS",
            {(SCHEMA_VERSION, next_version): ["ALTER TABLE sync_sessions ADD COLUMN device_id TEXT"]},
        )

        storage = SQLiteSyncStorage(db_path)
        await storage.initialize()
        try:
            assert [s.id for s in await storage.list_recent_sessions()] == ["s1"]
        finally:
            await storage.close()

        async with aiosqlite.connect(db_path) as conn:
            async with conn.execute("SELECT version FROM schema_version") as cursor:
                version_row = await cursor.fetchone()
            async with conn.execute("PRAGMA table_info(sync_sessions)") as cursor:
                columns = [row[1] for row in await cursor.fetchall()]
            # Re-running an applied migration is tolerated.
            assert await run_migrations(conn, SCHEMA_VERSION) == next_version
        assert version_row is not None
        assert version_row[0] == next_version
        assert "device_id" in columns

    @pytest.mark.asyncio
    async def test_non_json_row_data_rejected(self, tmp_path: Path) -> None:
        storage = SQLiteSyncStorage(tmp_path / "sync.db")
        await storage.initialize()
        record = replace(_make_record("r1"), data={"taken_at": BASE_TIME})
        try:
            with pytest.raises(TypeError):
                await storage.save_record(record)
            assert await storage.get_record("r1") is None
        finally:
            await storage.close()

    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self, tmp_path: Path) -> None:
        storage = SQLiteSyncStorage(tmp_path / "sync.db")

        with pytest.raises(RuntimeError):
            await storage.list_records()
