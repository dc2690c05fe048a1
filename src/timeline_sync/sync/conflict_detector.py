"""Three-way field-level conflict detection."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from timeline_sync.core.sync_conflict import SyncConflict

logger = logging.getLogger(__name__)

# Keys maintained by the storage layer, never compared as row content.
BOOKKEEPING_FIELDS: frozenset[str] = frozenset(
    {"id", "version", "created_at", "updated_at", "sync_status", "synced_at"}
)

BaseFetcher = Callable[[str, str], Awaitable[dict[str, Any] | None]]


class _Absent:
    """Marker for a field missing from one side of a comparison."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<absent>"


ABSENT: Any = _Absent()


def detect_conflicting_fields(
    local: dict[str, Any],
    remote: dict[str, Any],
    base: dict[str, Any] | None = None,
) -> list[str]:
    """Return fields that both sides changed to different values.

    A field conflicts when local, remote and base are pairwise distinct.
    Missing values compare as a distinct ABSENT marker, so with no base
    every field present on both sides with different values is reported.

    Fields are reported in first-seen order across local, remote, base.
    """
    base = base or {}
    ordered: dict[str, None] = {}
    for source in (local, remote, base):
        for key in source:
            ordered.setdefault(key, None)

    conflicting: list[str] = []
    for key in ordered:
        local_value = local.get(key, ABSENT)
        remote_value = remote.get(key, ABSENT)
        base_value = base.get(key, ABSENT)
        if (
            local_value != remote_value
            and local_value != base_value
            and remote_value != base_value
        ):
            conflicting.append(key)
    return conflicting


def strip_bookkeeping(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``data`` without storage bookkeeping keys."""
    return {k: v for k, v in data.items() if k not in BOOKKEEPING_FIELDS}


class ConflictDetector:
    """Detects conflicts between local and remote row snapshots.

    Args:
        base_fetcher: Optional async callable ``(table, record_id)`` returning
            the last agreed snapshot of a row, or None when unknown.
    """

    def __init__(self, base_fetcher: BaseFetcher | None = None) -> None:
        self._base_fetcher = base_fetcher

    def analyze_record(
        self,
        table_name: str,
        record_id: str,
        local: dict[str, Any],
        remote: dict[str, Any],
        base: dict[str, Any] | None = None,
    ) -> SyncConflict | None:
        """Build a SyncConflict for one row, or None if the sides agree."""
        local_content = strip_bookkeeping(local)
        remote_content = strip_bookkeeping(remote)
        base_content = strip_bookkeeping(base or {})

        fields = detect_conflicting_fields(local_content, remote_content, base_content)
        if not fields:
            return None

        logger.debug(
            "Conflict on %s/%s in fields %s",
            table_name,
            record_id,
            ", ".join(fields),
        )
        return SyncConflict.create(
            table_name=table_name,
            record_id=record_id,
            local_data=local_content,
            remote_data=remote_content,
            base_data=base_content,
            conflicting_fields=fields,
        )

    async def detect_conflicts(
        self,
        table_name: str,
        local_records: Iterable[dict[str, Any]],
        remote_records: Iterable[dict[str, Any]],
    ) -> list[SyncConflict]:
        """Pair rows by ``id`` and analyze those whose ``version`` differs."""
        remote_by_id: dict[str, dict[str, Any]] = {}
        for remote in remote_records:
            remote_id = remote.get("id")
            if remote_id is not None:
                remote_by_id[str(remote_id)] = remote

        conflicts: list[SyncConflict] = []
        for local in local_records:
            local_id = local.get("id")
            if local_id is None:
                continue
            remote = remote_by_id.get(str(local_id))
            if remote is None:
                continue
            if local.get("version") == remote.get("version"):
                continue

            base = None
            if self._base_fetcher is not None:
                base = await self._base_fetcher(table_name, str(local_id))

            conflict = self.analyze_record(table_name, str(local_id), local, remote, base)
            if conflict is not None:
                conflicts.append(conflict)

        if conflicts:
            logger.info("Detected %d conflicts in %s", len(conflicts), table_name)
        return conflicts


def conflict_stats(conflicts: Iterable[SyncConflict]) -> dict[str, Any]:
    """Summarize conflicts: totals plus unresolved counts per table."""
    total = 0
    resolved = 0
    deferred = 0
    unresolved_by_table: dict[str, int] = {}
    for conflict in conflicts:
        total += 1
        if conflict.is_resolved:
            resolved += 1
            continue
        if conflict.is_deferred:
            deferred += 1
        unresolved_by_table[conflict.table_name] = (
            unresolved_by_table.get(conflict.table_name, 0) + 1
        )
    return {
        "total": total,
        "resolved": resolved,
        "unresolved": total - resolved,
        "deferred": deferred,
        "unresolved_by_table": unresolved_by_table,
    }
