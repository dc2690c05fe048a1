"""Storage backends for sync state."""

from timeline_sync.storage.base import SyncStorage
from timeline_sync.storage.memory_store import InMemorySyncStorage
from timeline_sync.storage.sqlite_store import SQLiteSyncStorage

__all__ = ["InMemorySyncStorage", "SQLiteSyncStorage", "SyncStorage"]
