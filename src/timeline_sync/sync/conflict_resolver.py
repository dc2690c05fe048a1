"""Conflict resolution strategies.

Each ResolutionStrategy maps to one handler in ``_HANDLERS``. Terminal
strategies produce the merged row; DEFER only stamps an audit trail and
leaves the conflict open.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from timeline_sync.core.events import ChangeEventType, ChangeNotifier
from timeline_sync.core.sync_conflict import ResolutionStrategy, SyncConflict
from timeline_sync.errors import AlreadyResolvedError, MissingResolutionDataError
from timeline_sync.sync.conflict_detector import ABSENT
from timeline_sync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

StrategyHandler = Callable[[SyncConflict, dict[str, Any] | None], dict[str, Any]]


# ── Automatic merge rules ─────────────────────────────────


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _union_lists(*lists: list[Any]) -> list[Any]:
    """Order-preserving union; items are compared by equality."""
    merged: list[Any] = []
    for items in lists:
        for item in items:
            if item not in merged:
                merged.append(item)
    return merged


def _merge_maps(
    base: dict[str, Any],
    local: dict[str, Any],
    remote: dict[str, Any],
) -> dict[str, Any]:
    """Recursive three-way merge of nested maps; local wins leaf conflicts."""
    keys: dict[str, None] = {}
    for source in (base, remote, local):
        for key in source:
            keys.setdefault(key, None)

    merged: dict[str, Any] = {}
    for key in keys:
        local_value = local.get(key, ABSENT)
        remote_value = remote.get(key, ABSENT)
        base_value = base.get(key, ABSENT)

        if isinstance(local_value, dict) and isinstance(remote_value, dict):
            nested_base = base_value if isinstance(base_value, dict) else {}
            merged[key] = _merge_maps(nested_base, local_value, remote_value)
            continue

        if local_value == remote_value or remote_value == base_value:
            value = local_value
        elif local_value == base_value:
            value = remote_value
        else:
            value = local_value
        if value is not ABSENT:
            merged[key] = value
    return merged


def merge_field_values(local_value: Any, remote_value: Any, base_value: Any = ABSENT) -> Any:
    """Merge one conflicting field.

    Strings: longer wins, ties go to local. Numbers: arithmetic mean.
    Lists: union in base, local, remote order. Maps: recursive merge.
    Anything else (booleans, mismatched types, one side missing or null)
    keeps the local value, which may be ABSENT.
    """
    if isinstance(local_value, str) and isinstance(remote_value, str):
        return remote_value if len(remote_value) > len(local_value) else local_value

    if _is_number(local_value) and _is_number(remote_value):
        return (local_value + remote_value) / 2

    if isinstance(local_value, list) and isinstance(remote_value, list):
        base_list = base_value if isinstance(base_value, list) else []
        return _union_lists(base_list, local_value, remote_value)

    if isinstance(local_value, dict) and isinstance(remote_value, dict):
        base_map = base_value if isinstance(base_value, dict) else {}
        return _merge_maps(base_map, local_value, remote_value)

    return local_value


def merge_rows(
    local: dict[str, Any],
    remote: dict[str, Any],
    base: dict[str, Any] | None = None,
    conflicting_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """Field-level three-way merge of two row snapshots.

    Fields in ``conflicting_fields`` go through merge_field_values. Every
    other field takes the side that changed against base, local first.
    """
    base = base or {}
    conflicting = set(conflicting_fields)

    keys: dict[str, None] = {}
    for source in (local, remote, base):
        for key in source:
            keys.setdefault(key, None)

    merged: dict[str, Any] = {}
    for key in keys:
        local_value = local.get(key, ABSENT)
        remote_value = remote.get(key, ABSENT)
        base_value = base.get(key, ABSENT)

        if key in conflicting:
            value = merge_field_values(local_value, remote_value, base_value)
        elif local_value != base_value:
            value = local_value
        elif remote_value != base_value:
            value = remote_value
        else:
            value = base_value

        if value is not ABSENT:
            merged[key] = value
    return merged


def automatic_merge(conflict: SyncConflict) -> dict[str, Any]:
    """Field-level three-way merge of a conflict's local and remote rows."""
    return merge_rows(
        conflict.local_data,
        conflict.remote_data,
        conflict.base_data,
        conflict.conflicting_fields,
    )


# ── Strategy handlers ─────────────────────────────────────


def _local_wins(conflict: SyncConflict, _data: dict[str, Any] | None) -> dict[str, Any]:
    return dict(conflict.local_data)


def _remote_wins(conflict: SyncConflict, _data: dict[str, Any] | None) -> dict[str, Any]:
    return dict(conflict.remote_data)


def _manual_merge(conflict: SyncConflict, data: dict[str, Any] | None) -> dict[str, Any]:
    if data is None:
        raise MissingResolutionDataError(
            f"Manual merge of conflict {conflict.id} requires resolution data"
        )
    return dict(data)


def _automatic_merge(conflict: SyncConflict, _data: dict[str, Any] | None) -> dict[str, Any]:
    return automatic_merge(conflict)


_HANDLERS: dict[ResolutionStrategy, StrategyHandler] = {
    ResolutionStrategy.LOCAL_WINS: _local_wins,
    ResolutionStrategy.REMOTE_WINS: _remote_wins,
    ResolutionStrategy.MANUAL_MERGE: _manual_merge,
    ResolutionStrategy.AUTOMATIC_MERGE: _automatic_merge,
}


class ConflictResolver:
    """Applies resolution strategies to conflicts.

    Args:
        notifier: Optional change bus; every resolution or deferral is
            announced on it.
    """

    def __init__(self, notifier: ChangeNotifier | None = None) -> None:
        self._notifier = notifier

    def resolve(
        self,
        conflict: SyncConflict,
        strategy: ResolutionStrategy | str,
        resolved_by: str,
        note: str | None = None,
        resolution_data: dict[str, Any] | None = None,
    ) -> SyncConflict:
        """Resolve or defer a conflict, returning the updated conflict.

        Raises:
            AlreadyResolvedError: The conflict already has a terminal resolution.
            MissingResolutionDataError: MANUAL_MERGE without resolution_data.
        """
        if conflict.is_resolved:
            raise AlreadyResolvedError(
                f"Conflict {conflict.id} was already resolved "
                f"with {conflict.resolution_strategy}"
            )

        strategy = ResolutionStrategy(strategy)
        now = utcnow()

        if strategy == ResolutionStrategy.DEFER:
            updated = replace(
                conflict,
                resolution_strategy=strategy,
                resolved_by=resolved_by,
                resolution_note=note,
                last_deferred_at=now,
            )
            logger.debug("Deferred conflict %s by %s", conflict.id, resolved_by)
            self._emit(ChangeEventType.CONFLICT_DEFERRED, updated)
            return updated

        resolved_data = _HANDLERS[strategy](conflict, resolution_data)
        updated = replace(
            conflict,
            resolution_strategy=strategy,
            resolved_at=now,
            resolved_data=resolved_data,
            resolved_by=resolved_by,
            resolution_note=note,
        )
        logger.debug(
            "Resolved conflict %s on %s/%s with %s",
            conflict.id,
            conflict.table_name,
            conflict.record_id,
            strategy,
        )
        self._emit(ChangeEventType.CONFLICT_RESOLVED, updated)
        return updated

    def _emit(self, event_type: ChangeEventType, conflict: SyncConflict) -> None:
        if self._notifier is None:
            return
        self._notifier.emit(
            event_type,
            conflict.id,
            record_id=conflict.record_id,
            table_name=conflict.table_name,
            strategy=conflict.resolution_strategy,
        )
