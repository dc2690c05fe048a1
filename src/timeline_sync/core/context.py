"""Timeline context types."""

from __future__ import annotations

from enum import StrEnum


class ContextType(StrEnum):
    """The kind of subject a timeline is about.

    Context type selects static presets (clustering thresholds, fuzzy
    date granularities); it never changes algorithm behavior directly.
    """

    PERSON = "person"
    PET = "pet"
    PROJECT = "project"
    BUSINESS = "business"
