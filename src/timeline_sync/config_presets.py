"""Static per-context presets for timeline sync.

Each timeline context (person, pet, project, business) gets its own
clustering thresholds and set of allowed fuzzy date granularities.
Presets are static dicts (not a plugin system).

Usage:
    from timeline_sync.config_presets import available_granularities, get_clustering_preset

    thresholds = get_clustering_preset("pet")
    granularities = available_granularities("business")
"""

from __future__ import annotations

from typing import Any

from timeline_sync.core.context import ContextType
from timeline_sync.core.fuzzy_date import FuzzyDateGranularity

# ── Clustering thresholds ─────────────────────────────────────────

DEFAULT_CLUSTERING: dict[str, Any] = {
    "temporal_threshold_minutes": 60,
    "spatial_threshold_meters": 1000.0,
    "burst_threshold_seconds": 30,
    "min_burst_size": 3,
    "max_burst_size": 50,
}

CLUSTERING_PRESETS: dict[ContextType, dict[str, Any]] = {
    ContextType.PERSON: {
        "temporal_threshold_minutes": 120,
        "spatial_threshold_meters": 500.0,
        "burst_threshold_seconds": 60,
    },
    ContextType.PET: {
        "temporal_threshold_minutes": 30,
        "spatial_threshold_meters": 100.0,
        "burst_threshold_seconds": 15,
    },
    ContextType.PROJECT: {
        "temporal_threshold_minutes": 240,
        "spatial_threshold_meters": 50.0,
        "burst_threshold_seconds": 30,
    },
    ContextType.BUSINESS: {
        "temporal_threshold_minutes": 480,
        "spatial_threshold_meters": 1000.0,
        "burst_threshold_seconds": 120,
    },
}

# ── Fuzzy date granularities ──────────────────────────────────────

GRANULARITY_PRESETS: dict[ContextType, tuple[FuzzyDateGranularity, ...]] = {
    ContextType.PERSON: (
        FuzzyDateGranularity.DAY,
        FuzzyDateGranularity.MONTH,
        FuzzyDateGranularity.SEASON,
        FuzzyDateGranularity.YEAR,
    ),
    ContextType.PET: (
        FuzzyDateGranularity.DAY,
        FuzzyDateGranularity.MONTH,
        FuzzyDateGranularity.YEAR,
    ),
    ContextType.PROJECT: (
        FuzzyDateGranularity.DAY,
        FuzzyDateGranularity.MONTH,
        FuzzyDateGranularity.YEAR,
    ),
    ContextType.BUSINESS: (
        FuzzyDateGranularity.YEAR,
        FuzzyDateGranularity.SEASON,
    ),
}

_DESCRIPTIONS: dict[ContextType, str] = {
    ContextType.PERSON: "Life events: long gaps, neighbourhood-sized places",
    ContextType.PET: "Short outings close to home",
    ContextType.PROJECT: "Work sessions at a single site",
    ContextType.BUSINESS: "Day-long events across a venue",
}


# ── Public API ────────────────────────────────────────────────────


def list_presets() -> list[dict[str, str]]:
    """Return the available contexts with descriptions."""
    return [{"name": context.value, "description": _DESCRIPTIONS[context]} for context in ContextType]


def get_clustering_preset(context_type: ContextType | str) -> dict[str, Any]:
    """Full clustering thresholds for a context (defaults filled in).

    Raises:
        ValueError: Unknown context name.
    """
    context = ContextType(context_type)
    return {**DEFAULT_CLUSTERING, **CLUSTERING_PRESETS[context]}


def available_granularities(context_type: ContextType | str) -> list[FuzzyDateGranularity]:
    """Granularities a user may pick for dates in this context."""
    return list(GRANULARITY_PRESETS[ContextType(context_type)])
