"""Unified configuration for timeline sync.

Configuration is stored in ~/.timelinesync/config.toml (or under the
directory named by TIMELINE_SYNC_DIR). Missing files or sections fall
back to defaults; unknown keys are ignored.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from timeline_sync.core.context import ContextType
from timeline_sync.core.sync_conflict import ResolutionStrategy
from timeline_sync.errors import ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.toml"


def get_timeline_sync_dir() -> Path:
    """Get timeline sync data directory.

    Priority:
    1. TIMELINE_SYNC_DIR environment variable
    2. ~/.timelinesync/
    """
    env_dir = os.environ.get("TIMELINE_SYNC_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".timelinesync"


@dataclass
class SyncSettings:
    """Sync retry, concurrency and auto-resolution settings."""

    max_sync_retries: int = 3
    sync_retry_interval_seconds: int = 300
    max_concurrent_records: int = 4
    default_strategy: ResolutionStrategy | None = None
    cached_tables: list[str] = field(
        default_factory=lambda: ["timeline_events", "stories", "media"]
    )

    def __post_init__(self) -> None:
        if self.max_sync_retries < 0:
            raise ValidationError("max_sync_retries must be non-negative")
        if self.max_concurrent_records < 1:
            raise ValidationError("max_concurrent_records must be at least 1")

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_sync_retries": self.max_sync_retries,
            "sync_retry_interval_seconds": self.sync_retry_interval_seconds,
            "max_concurrent_records": self.max_concurrent_records,
            "default_strategy": self.default_strategy.value if self.default_strategy else "",
            "cached_tables": list(self.cached_tables),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncSettings:
        strategy = data.get("default_strategy") or None
        return cls(
            max_sync_retries=int(data.get("max_sync_retries", 3)),
            sync_retry_interval_seconds=int(data.get("sync_retry_interval_seconds", 300)),
            max_concurrent_records=int(data.get("max_concurrent_records", 4)),
            default_strategy=ResolutionStrategy(strategy) if strategy else None,
            cached_tables=list(data.get("cached_tables", ["timeline_events", "stories", "media"])),
        )


@dataclass
class MediaCacheConfig:
    """Media cache budget and priority rules."""

    max_cache_size_mb: int = 1000
    max_file_size_mb: int = 50
    cache_expiration_days: int = 30
    priority_file_types: list[str] = field(default_factory=lambda: ["jpg", "jpeg", "png", "webp"])
    low_priority_file_types: list[str] = field(default_factory=lambda: ["gif", "bmp", "tiff"])
    essential_url_markers: list[str] = field(default_factory=lambda: ["/profile/", "/cover/"])
    cellular_max_file_size_mb: int = 10

    @property
    def max_cache_size_bytes(self) -> int:
        return self.max_cache_size_mb * 1024 * 1024

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cellular_max_file_size_bytes(self) -> int:
        return self.cellular_max_file_size_mb * 1024 * 1024

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_cache_size_mb": self.max_cache_size_mb,
            "max_file_size_mb": self.max_file_size_mb,
            "cache_expiration_days": self.cache_expiration_days,
            "priority_file_types": list(self.priority_file_types),
            "low_priority_file_types": list(self.low_priority_file_types),
            "essential_url_markers": list(self.essential_url_markers),
            "cellular_max_file_size_mb": self.cellular_max_file_size_mb,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaCacheConfig:
        defaults = cls()
        return cls(
            max_cache_size_mb=int(data.get("max_cache_size_mb", 1000)),
            max_file_size_mb=int(data.get("max_file_size_mb", 50)),
            cache_expiration_days=int(data.get("cache_expiration_days", 30)),
            priority_file_types=list(
                data.get("priority_file_types", defaults.priority_file_types)
            ),
            low_priority_file_types=list(
                data.get("low_priority_file_types", defaults.low_priority_file_types)
            ),
            essential_url_markers=list(
                data.get("essential_url_markers", defaults.essential_url_markers)
            ),
            cellular_max_file_size_mb=int(data.get("cellular_max_file_size_mb", 10)),
        )


@dataclass
class ClusteringSettings:
    """Which context's clustering preset applies when none is given."""

    default_context: ContextType = ContextType.PERSON

    def to_dict(self) -> dict[str, Any]:
        return {"default_context": self.default_context.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClusteringSettings:
        return cls(
            default_context=ContextType(data.get("default_context", ContextType.PERSON.value)),
        )


@dataclass
class UnifiedConfig:
    """Unified configuration for timeline sync.

    Storage location: ~/.timelinesync/config.toml
    Database location: ~/.timelinesync/sync.db (SQLite)
    """

    # Base directory for all timeline sync data
    data_dir: Path = field(default_factory=get_timeline_sync_dir)

    sync: SyncSettings = field(default_factory=SyncSettings)
    media_cache: MediaCacheConfig = field(default_factory=MediaCacheConfig)
    clustering: ClusteringSettings = field(default_factory=ClusteringSettings)

    # Metadata
    version: str = "1.0"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "sync.db"

    @classmethod
    def load(cls, config_path: Path | None = None) -> UnifiedConfig:
        """Load configuration from file, or create default if doesn't exist."""
        if config_path is None:
            data_dir = get_timeline_sync_dir()
            config_path = data_dir / CONFIG_FILENAME
        else:
            data_dir = config_path.parent

        if not config_path.exists():
            config = cls(data_dir=data_dir)
            config.save()
            logger.info("Created default configuration at %s", config_path)
            return config

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        return cls(
            data_dir=data_dir,
            sync=SyncSettings.from_dict(data.get("sync", {})),
            media_cache=MediaCacheConfig.from_dict(data.get("media_cache", {})),
            clustering=ClusteringSettings.from_dict(data.get("clustering", {})),
            version=data.get("version", "1.0"),
        )

    def save(self) -> None:
        """Save configuration to TOML file (atomic write via temp+rename)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.data_dir / CONFIG_FILENAME

        sync = self.sync.to_dict()
        cache = self.media_cache

        # Build TOML content manually (no toml write dependency)
        lines = [
            "# Timeline sync configuration",
            "",
            f'version = "{self.version}"',
            "",
            "# Sync retries, concurrency and conflict auto-resolution",
            "[sync]",
            f"max_sync_retries = {self.sync.max_sync_retries}",
            f"sync_retry_interval_seconds = {self.sync.sync_retry_interval_seconds}",
            f"max_concurrent_records = {self.sync.max_concurrent_records}",
            f'default_strategy = "{sync["default_strategy"]}"',
            f"cached_tables = {json.dumps(sync['cached_tables'])}",
            "",
            "# Media cache budget and priorities",
            "[media_cache]",
            f"max_cache_size_mb = {cache.max_cache_size_mb}",
            f"max_file_size_mb = {cache.max_file_size_mb}",
            f"cache_expiration_days = {cache.cache_expiration_days}",
            f"priority_file_types = {json.dumps(list(cache.priority_file_types))}",
            f"low_priority_file_types = {json.dumps(list(cache.low_priority_file_types))}",
            f"essential_url_markers = {json.dumps(list(cache.essential_url_markers))}",
            f"cellular_max_file_size_mb = {cache.cellular_max_file_size_mb}",
            "",
            "# Event clustering",
            "[clustering]",
            f'default_context = "{self.clustering.default_context.value}"',
        ]

        # Atomic write: write to temp file, then rename
        content = "\n".join(lines) + "\n"
        fd, tmp_path = tempfile.mkstemp(dir=str(self.data_dir), suffix=".toml.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            Path(tmp_path).replace(config_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise
