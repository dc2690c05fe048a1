"""Tests for the change notification bus."""

from __future__ import annotations

import logging

import pytest

from timeline_sync.core.events import ChangeEvent, ChangeEventType, ChangeNotifier


class TestChangeNotifier:
    """Subscription and delivery."""

    def test_delivers_in_subscription_order(self) -> None:
        notifier = ChangeNotifier()
        seen: list[str] = []
        notifier.subscribe(lambda e: seen.append(f"first:{e.subject_id}"))
        notifier.subscribe(lambda e: seen.append(f"second:{e.subject_id}"))

        notifier.emit(ChangeEventType.RECORD_CREATED, "r-1")

        assert seen == ["first:r-1", "second:r-1"]

    def test_unsubscribe(self) -> None:
        notifier = ChangeNotifier()
        seen: list[ChangeEvent] = []
        unsubscribe = notifier.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        notifier.emit(ChangeEventType.RECORD_CREATED, "r-1")

        assert seen == []
        assert notifier.listener_count == 0

    def test_failing_listener_is_logged_and_isolated(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        notifier = ChangeNotifier()
        seen: list[ChangeEvent] = []

        def _broken(event: ChangeEvent) -> None:
            raise RuntimeError("listener bug")

        notifier.subscribe(_broken)
        notifier.subscribe(seen.append)

        with caplog.at_level(logging.WARNING, logger="timeline_sync.core.events"):
            event = notifier.emit(ChangeEventType.SESSION_STARTED, "s-1", progress=0.0)

        assert seen == [event]
        assert event.payload == {"progress": 0.0}
        assert "Change listener failed" in caplog.text
