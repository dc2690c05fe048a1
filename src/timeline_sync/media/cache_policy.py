"""Media cache scoring, eviction and sync selection.

Priority score = tier base (high 100, medium 50, low 10)
               + recency bonus max(0, 30 - days since last access)
               + frequency bonus 10 * log2(1 + access_count)

Essential entries (profile and cover images) are never evicted, and
are always admitted first when choosing what to sync.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from timeline_sync.core.cache_entry import CachePriority, MediaFileMetadata
from timeline_sync.errors import ValidationError
from timeline_sync.unified_config import MediaCacheConfig
from timeline_sync.utils.timeutils import utcnow

if TYPE_CHECKING:
    from timeline_sync.storage.base import SyncStorage

logger = logging.getLogger(__name__)

TIER_BASE_SCORES: dict[CachePriority, float] = {
    CachePriority.HIGH: 100.0,
    CachePriority.MEDIUM: 50.0,
    CachePriority.LOW: 10.0,
}
RECENCY_WINDOW_DAYS = 30.0
FREQUENCY_WEIGHT = 10.0


@dataclass(frozen=True)
class EvictionPlan:
    """Entries chosen for eviction.

    Attributes:
        urls: URLs to evict, lowest score first
        freed_bytes: Total size of the chosen entries
        shortfall_bytes: Space still missing after evicting everything allowed
    """

    urls: tuple[str, ...] = ()
    freed_bytes: int = 0
    shortfall_bytes: int = 0

    @property
    def satisfied(self) -> bool:
        return self.shortfall_bytes == 0


def file_type_of(url: str) -> str:
    """Lower-case file extension of a URL's path, without query or fragment."""
    path = urlparse(url).path
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


class MediaCachePolicy:
    """Pure scoring and selection rules over cache metadata."""

    def __init__(self, config: MediaCacheConfig | None = None) -> None:
        self._config = config or MediaCacheConfig()
        self._priority_types = {t.lower() for t in self._config.priority_file_types}
        self._low_priority_types = {t.lower() for t in self._config.low_priority_file_types}

    @property
    def config(self) -> MediaCacheConfig:
        return self._config

    # ── Classification ────────────────────────────────────

    def determine_priority(self, url: str) -> CachePriority:
        file_type = file_type_of(url)
        if file_type in self._priority_types:
            return CachePriority.HIGH
        if file_type in self._low_priority_types:
            return CachePriority.LOW
        return CachePriority.MEDIUM

    def is_essential_url(self, url: str) -> bool:
        return any(marker in url for marker in self._config.essential_url_markers)

    def build_entry(
        self,
        url: str,
        file_size: int,
        now: datetime | None = None,
    ) -> MediaFileMetadata:
        """Metadata for a freshly downloaded file."""
        return MediaFileMetadata(
            url=url,
            file_type=file_type_of(url),
            file_size=file_size,
            priority=self.determine_priority(url),
            last_accessed=now or utcnow(),
            access_count=0,
            is_essential=self.is_essential_url(url),
        )

    # ── Scoring ───────────────────────────────────────────

    def priority_score(self, entry: MediaFileMetadata, now: datetime | None = None) -> float:
        now = now or utcnow()
        days_since_access = (now - entry.last_accessed).total_seconds() / 86400.0
        recency = max(0.0, RECENCY_WINDOW_DAYS - days_since_access)
        frequency = FREQUENCY_WEIGHT * math.log2(1 + entry.access_count)
        return TIER_BASE_SCORES[entry.priority] + recency + frequency

    # ── Selection ─────────────────────────────────────────

    def select_for_eviction(
        self,
        entries: Iterable[MediaFileMetadata],
        space_needed: int,
        now: datetime | None = None,
    ) -> EvictionPlan:
        """Lowest-scoring non-essential entries until ``space_needed`` is freed.

        If every evictable entry together is not enough, the plan evicts
        all of them and reports the remainder as ``shortfall_bytes``.
        """
        if space_needed <= 0:
            return EvictionPlan()

        now = now or utcnow()
        candidates = sorted(
            (e for e in entries if not e.is_essential),
            key=lambda e: (self.priority_score(e, now), e.url),
        )

        urls: list[str] = []
        freed = 0
        for entry in candidates:
            if freed >= space_needed:
                break
            urls.append(entry.url)
            freed += entry.file_size

        return EvictionPlan(
            urls=tuple(urls),
            freed_bytes=freed,
            shortfall_bytes=max(0, space_needed - freed),
        )

    def select_for_sync(
        self,
        entries: Iterable[MediaFileMetadata],
        available_space: int,
        wifi_connected: bool = True,
        now: datetime | None = None,
    ) -> list[MediaFileMetadata]:
        """Choose which files to download.

        Essentials are taken first, unconditionally. The rest are taken
        greedily by descending score while they fit in the remaining space;
        an entry that does not fit is skipped and smaller ones are still
        considered. Without wifi, files above the cellular size cap are skipped.
        """
        now = now or utcnow()
        pool = list(entries)
        essentials = [e for e in pool if e.is_essential]
        others = sorted(
            (e for e in pool if not e.is_essential),
            key=lambda e: (-self.priority_score(e, now), e.url),
        )

        selected = list(essentials)
        used = sum(e.file_size for e in essentials)
        cellular_cap = self._config.cellular_max_file_size_bytes

        for entry in others:
            if not wifi_connected and entry.file_size > cellular_cap:
                continue
            if used + entry.file_size > available_space:
                continue
            selected.append(entry)
            used += entry.file_size
        return selected

    def plan_admission(
        self,
        entries: Iterable[MediaFileMetadata],
        incoming_size: int,
        now: datetime | None = None,
    ) -> EvictionPlan:
        """Evictions needed to fit a new file under the cache budget.

        Raises:
            ValidationError: The file exceeds the per-file size limit or is negative.
        """
        if incoming_size < 0:
            raise ValidationError(f"incoming_size must be non-negative, got {incoming_size}")
        if incoming_size > self._config.max_file_size_bytes:
            raise ValidationError(
                f"File of {incoming_size} bytes exceeds the "
                f"{self._config.max_file_size_mb} MB per-file limit"
            )
        pool = list(entries)
        used = sum(e.file_size for e in pool)
        overflow = used + incoming_size - self._config.max_cache_size_bytes
        return self.select_for_eviction(pool, overflow, now)

    def expired_urls(
        self,
        entries: Iterable[MediaFileMetadata],
        now: datetime | None = None,
    ) -> list[str]:
        """Non-essential entries not accessed within the expiration window."""
        now = now or utcnow()
        cutoff = now - timedelta(days=self._config.cache_expiration_days)
        return sorted(e.url for e in entries if not e.is_essential and e.last_accessed < cutoff)


class MediaCacheRegistry:
    """Cache metadata by URL, applying a MediaCachePolicy.

    Tracks metadata only; deleting the cached bytes is left to the caller,
    which receives the evicted URLs from every mutating call.

    Args:
        policy: Scoring and budget rules.
        storage: Optional persistence for the metadata.
    """

    def __init__(
        self,
        policy: MediaCachePolicy | None = None,
        storage: SyncStorage | None = None,
    ) -> None:
        self._policy = policy or MediaCachePolicy()
        self._storage = storage
        self._entries: dict[str, MediaFileMetadata] = {}

    @property
    def policy(self) -> MediaCachePolicy:
        return self._policy

    async def load(self) -> int:
        if self._storage is None:
            return 0
        entries = await self._storage.list_cache_entries()
        self._entries = {e.url: e for e in entries}
        return len(entries)

    def get(self, url: str) -> MediaFileMetadata | None:
        return self._entries.get(url)

    def entries(self) -> list[MediaFileMetadata]:
        return sorted(self._entries.values(), key=lambda e: e.url)

    @property
    def total_bytes(self) -> int:
        return sum(e.file_size for e in self._entries.values())

    async def record_write(
        self,
        url: str,
        file_size: int,
        now: datetime | None = None,
    ) -> EvictionPlan:
        """Register a downloaded file, evicting others to stay under budget.

        Returns the eviction carried out to make room. A rewrite of a known
        URL keeps its access history.

        Raises:
            ValidationError: The file exceeds the per-file size limit.
        """
        now = now or utcnow()
        existing = self._entries.get(url)
        others = [e for e in self._entries.values() if e.url != url]
        plan = self._policy.plan_admission(others, file_size, now)

        for evicted_url in plan.urls:
            await self._remove(evicted_url)

        entry = self._policy.build_entry(url, file_size, now)
        if existing is not None:
            entry = replace(entry, access_count=existing.access_count)
        self._entries[url] = entry
        if self._storage is not None:
            await self._storage.save_cache_entry(entry)

        if plan.urls:
            logger.debug("Evicted %d entries to admit %s", len(plan.urls), url)
        if not plan.satisfied:
            logger.warning(
                "Cache over budget by %d bytes after admitting %s",
                plan.shortfall_bytes,
                url,
            )
        return plan

    async def record_access(self, url: str, now: datetime | None = None) -> MediaFileMetadata:
        """Bump access count and time.

        Raises:
            KeyError: URL is not cached.
        """
        entry = self._entries[url]
        updated = replace(
            entry,
            last_accessed=now or utcnow(),
            access_count=entry.access_count + 1,
        )
        self._entries[url] = updated
        if self._storage is not None:
            await self._storage.save_cache_entry(updated)
        return updated

    async def invalidate(self, url: str) -> bool:
        if url not in self._entries:
            return False
        await self._remove(url)
        return True

    async def evict(self, space_needed: int, now: datetime | None = None) -> EvictionPlan:
        plan = self._policy.select_for_eviction(self._entries.values(), space_needed, now)
        for url in plan.urls:
            await self._remove(url)
        return plan

    async def purge_expired(self, now: datetime | None = None) -> list[str]:
        expired = self._policy.expired_urls(self._entries.values(), now)
        for url in expired:
            await self._remove(url)
        return expired

    def stats(self, now: datetime | None = None) -> dict[str, Any]:
        capacity = self._policy.config.max_cache_size_bytes
        total = self.total_bytes
        by_priority = {p.value: 0 for p in CachePriority}
        for entry in self._entries.values():
            by_priority[entry.priority.value] += 1
        scores = [self._policy.priority_score(e, now) for e in self._entries.values()]
        return {
            "entries": len(self._entries),
            "total_bytes": total,
            "capacity_bytes": capacity,
            "usage_ratio": total / capacity if capacity else 0.0,
            "essential": sum(1 for e in self._entries.values() if e.is_essential),
            "by_priority": by_priority,
            "average_score": sum(scores) / len(scores) if scores else 0.0,
        }

    async def _remove(self, url: str) -> None:
        self._entries.pop(url, None)
        if self._storage is not None:
            await self._storage.delete_cache_entry(url)
