"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from timeline_sync.core.events import ChangeEvent, ChangeNotifier
from timeline_sync.sync.record_store import SyncRecordStore
from timeline_sync.sync.session_tracker import SyncSessionTracker


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def captured_events(notifier: ChangeNotifier) -> list[ChangeEvent]:
    """Every event emitted on the ``notifier`` fixture."""
    events: list[ChangeEvent] = []
    notifier.subscribe(events.append)
    return events


@pytest.fixture
def record_store(notifier: ChangeNotifier) -> SyncRecordStore:
    return SyncRecordStore(notifier=notifier)


@pytest.fixture
def tracker(notifier: ChangeNotifier) -> SyncSessionTracker:
    return SyncSessionTracker(notifier=notifier)
