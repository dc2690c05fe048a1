"""Tests for media cache scoring, eviction and sync selection."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

import pytest

from timeline_sync.core.cache_entry import CachePriority, MediaFileMetadata
from timeline_sync.errors import ValidationError
from timeline_sync.media.cache_policy import (
    EvictionPlan,
    MediaCachePolicy,
    MediaCacheRegistry,
    file_type_of,
)
from timeline_sync.storage.memory_store import InMemorySyncStorage
from timeline_sync.unified_config import MediaCacheConfig

NOW = datetime(2024, 6, 1, 12, 0, 0)
MB = 1024 * 1024


def _make_entry(
    url: str,
    size: int = 1000,
    priority: CachePriority = CachePriority.MEDIUM,
    days_ago: float = 0.0,
    access_count: int = 0,
    is_essential: bool = False,
) -> MediaFileMetadata:
    return MediaFileMetadata(
        url=url,
        file_type=file_type_of(url),
        file_size=size,
        priority=priority,
        last_accessed=NOW - timedelta(days=days_ago),
        access_count=access_count,
        is_essential=is_essential,
    )


class TestMetadataValidation:
    """Negative sizes and counts."""

    def test_negative_size(self) -> None:
        with pytest.raises(ValidationError):
            _make_entry("https://cdn/x.jpg", size=-1)

    def test_negative_access_count(self) -> None:
        with pytest.raises(ValidationError):
            _make_entry("https://cdn/x.jpg", access_count=-2)


class TestClassification:
    """Priority and essential detection from URLs."""

    def test_priority_from_extension(self) -> None:
        policy = MediaCachePolicy()
        assert policy.determine_priority("https://cdn/a/photo.JPG?w=200") == CachePriority.HIGH
        assert policy.determine_priority("https://cdn/a/anim.gif") == CachePriority.LOW
        assert policy.determine_priority("https://cdn/a/clip.mp4") == CachePriority.MEDIUM
        assert policy.determine_priority("https://cdn/a/noext") == CachePriority.MEDIUM

    def test_essential_markers(self) -> None:
        policy = MediaCachePolicy()
        assert policy.is_essential_url("https://cdn/users/1/profile/me.png")
        assert policy.is_essential_url("https://cdn/stories/cover/c.jpg")
        assert not policy.is_essential_url("https://cdn/stories/page/p.jpg")

    def test_build_entry(self) -> None:
        entry = MediaCachePolicy().build_entry("https://cdn/profile/me.webp", 10, NOW)
        assert entry.file_type == "webp"
        assert entry.priority == CachePriority.HIGH
        assert entry.is_essential
        assert entry.last_accessed == NOW


class TestPriorityScore:
    """Tier + recency + frequency."""

    def test_fresh_high_never_accessed(self) -> None:
        entry = _make_entry("a.jpg", priority=CachePriority.HIGH)
        score = MediaCachePolicy().priority_score(entry, NOW)
        assert score == pytest.approx(130.0)

    def test_recency_decays_to_zero(self) -> None:
        policy = MediaCachePolicy()
        assert policy.priority_score(_make_entry("a", days_ago=10), NOW) == pytest.approx(70.0)
        assert policy.priority_score(_make_entry("a", days_ago=45), NOW) == pytest.approx(50.0)

    def test_frequency_bonus(self) -> None:
        entry = _make_entry("a", priority=CachePriority.LOW, days_ago=40, access_count=3)
        expected = 10.0 + 10.0 * math.log2(4)
        assert MediaCachePolicy().priority_score(entry, NOW) == pytest.approx(expected)

    def test_essential_does_not_change_score(self) -> None:
        policy = MediaCachePolicy()
        plain = _make_entry("a", days_ago=3)
        essential = _make_entry("a", days_ago=3, is_essential=True)
        assert policy.priority_score(plain, NOW) == policy.priority_score(essential, NOW)


class TestEviction:
    """Eviction planning."""

    def test_lowest_scores_first(self) -> None:
        entries = [
            _make_entry("keep", priority=CachePriority.HIGH, size=500),
            _make_entry("old", priority=CachePriority.LOW, days_ago=60, size=300),
            _make_entry("mid", priority=CachePriority.MEDIUM, days_ago=60, size=300),
        ]
        plan = MediaCachePolicy().select_for_eviction(entries, 400, NOW)
        assert plan.urls == ("old", "mid")
        assert plan.freed_bytes == 600
        assert plan.satisfied

    def test_essential_never_evicted(self) -> None:
        entries = [
            _make_entry("essential", priority=CachePriority.LOW, days_ago=90, is_essential=True),
            _make_entry("other", priority=CachePriority.HIGH, access_count=50),
        ]
        plan = MediaCachePolicy().select_for_eviction(entries, 10_000, NOW)
        assert "essential" not in plan.urls
        assert plan.urls == ("other",)
        assert plan.shortfall_bytes == 9000

    def test_ties_broken_by_url(self) -> None:
        entries = [_make_entry("b"), _make_entry("a"), _make_entry("c")]
        plan = MediaCachePolicy().select_for_eviction(entries, 1500, NOW)
        assert plan.urls == ("a", "b")

    def test_nothing_needed(self) -> None:
        assert MediaCachePolicy().select_for_eviction([_make_entry("a")], 0, NOW) == EvictionPlan()


class TestSyncSelection:
    """Which files to download."""

    def test_essentials_first_then_by_score(self) -> None:
        entries = [
            _make_entry("low", priority=CachePriority.LOW, size=400),
            _make_entry("high", priority=CachePriority.HIGH, size=400),
            _make_entry("ess", priority=CachePriority.LOW, size=500, is_essential=True),
        ]
        selected = MediaCachePolicy().select_for_sync(entries, available_space=1000, now=NOW)
        assert [e.url for e in selected] == ["ess", "high"]

    def test_skips_oversized_and_keeps_going(self) -> None:
        entries = [
            _make_entry("big-high", priority=CachePriority.HIGH, size=900),
            _make_entry("small-low", priority=CachePriority.LOW, size=100),
        ]
        selected = MediaCachePolicy().select_for_sync(entries, available_space=500, now=NOW)
        assert [e.url for e in selected] == ["small-low"]

    def test_cellular_skips_large_files(self) -> None:
        entries = [
            _make_entry("video", priority=CachePriority.HIGH, size=20 * MB),
            _make_entry("thumb", priority=CachePriority.LOW, size=MB),
        ]
        policy = MediaCachePolicy()
        on_cellular = policy.select_for_sync(entries, 100 * MB, wifi_connected=False, now=NOW)
        on_wifi = policy.select_for_sync(entries, 100 * MB, wifi_connected=True, now=NOW)
        assert [e.url for e in on_cellular] == ["thumb"]
        assert [e.url for e in on_wifi] == ["video", "thumb"]


class TestAdmissionAndExpiry:
    """Budget enforcement and expiry."""

    def test_rejects_oversized_file(self) -> None:
        policy = MediaCachePolicy(MediaCacheConfig(max_file_size_mb=1))
        with pytest.raises(ValidationError):
            policy.plan_admission([], 2 * MB, NOW)

    def test_makes_room_under_budget(self) -> None:
        policy = MediaCachePolicy(MediaCacheConfig(max_cache_size_mb=2, max_file_size_mb=2))
        entries = [
            _make_entry("old", size=MB, days_ago=50, priority=CachePriority.LOW),
            _make_entry("new", size=MB, priority=CachePriority.HIGH),
        ]
        plan = policy.plan_admission(entries, MB // 2, NOW)
        assert plan.urls == ("old",)

    def test_fits_without_eviction(self) -> None:
        policy = MediaCachePolicy(MediaCacheConfig(max_cache_size_mb=10))
        assert policy.plan_admission([_make_entry("a", size=MB)], MB, NOW).urls == ()

    def test_expired_urls(self) -> None:
        entries = [
            _make_entry("stale", days_ago=31),
            _make_entry("stale-essential", days_ago=400, is_essential=True),
            _make_entry("fresh", days_ago=1),
        ]
        assert MediaCachePolicy().expired_urls(entries, NOW) == ["stale"]


class TestRegistry:
    """Metadata registry with write-through storage."""

    @pytest.mark.asyncio
    async def test_write_access_and_evict(self) -> None:
        storage = InMemorySyncStorage()
        config = MediaCacheConfig(max_cache_size_mb=2, max_file_size_mb=2)
        registry = MediaCacheRegistry(MediaCachePolicy(config), storage=storage)

        await registry.record_write("https://cdn/a.gif", MB, now=NOW - timedelta(days=40))
        await registry.record_write("https://cdn/b.jpg", MB, now=NOW)
        accessed = await registry.record_access("https://cdn/b.jpg", now=NOW)
        assert accessed.access_count == 1

        plan = await registry.record_write("https://cdn/c.png", MB, now=NOW)

        assert plan.urls == ("https://cdn/a.gif",)
        assert registry.get("https://cdn/a.gif") is None
        assert await storage.get_cache_entry("https://cdn/a.gif") is None
        assert registry.total_bytes == 2 * MB
        assert [e.url for e in await storage.list_cache_entries()] == [
            "https://cdn/b.jpg",
            "https://cdn/c.png",
        ]

    @pytest.mark.asyncio
    async def test_rewrite_keeps_access_count(self) -> None:
        registry = MediaCacheRegistry()
        await registry.record_write("https://cdn/a.jpg", 10, now=NOW)
        await registry.record_access("https://cdn/a.jpg", now=NOW)
        await registry.record_write("https://cdn/a.jpg", 20, now=NOW)
        entry = registry.get("https://cdn/a.jpg")
        assert entry is not None
        assert entry.access_count == 1
        assert entry.file_size == 20

    @pytest.mark.asyncio
    async def test_access_unknown_url(self) -> None:
        with pytest.raises(KeyError):
            await MediaCacheRegistry().record_access("https://cdn/missing.jpg")

    @pytest.mark.asyncio
    async def test_invalidate_and_stats(self) -> None:
        registry = MediaCacheRegistry()
        await registry.record_write("https://cdn/profile/me.jpg", 100, now=NOW)
        await registry.record_write("https://cdn/x.bmp", 50, now=NOW)

        assert await registry.invalidate("https://cdn/x.bmp")
        assert not await registry.invalidate("https://cdn/x.bmp")

        stats = registry.stats(now=NOW)
        assert stats["entries"] == 1
        assert stats["essential"] == 1
        assert stats["total_bytes"] == 100
        assert stats["by_priority"]["high"] == 1

    @pytest.mark.asyncio
    async def test_explicit_evict_and_purge(self) -> None:
        registry = MediaCacheRegistry()
        await registry.record_write("https://cdn/old.jpg", 100, now=NOW - timedelta(days=60))
        await registry.record_write("https://cdn/new.jpg", 100, now=NOW)

        assert await registry.purge_expired(now=NOW) == ["https://cdn/old.jpg"]
        plan = await registry.evict(50, now=NOW)
        assert plan.urls == ("https://cdn/new.jpg",)
        assert registry.entries() == []

    @pytest.mark.asyncio
    async def test_load_from_storage(self) -> None:
        storage = InMemorySyncStorage()
        await storage.save_cache_entry(_make_entry("https://cdn/a.jpg"))
        registry = MediaCacheRegistry(storage=storage)
        assert await registry.load() == 1
        assert registry.get("https://cdn/a.jpg") is not None
