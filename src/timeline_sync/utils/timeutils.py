"""Time helpers.

All timestamps inside timeline_sync are naive datetimes in UTC. Aware
inputs are converted once at the boundary so comparisons never mix the two.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC (naive inputs are assumed UTC)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO timestamp (``Z`` suffix allowed) into naive UTC."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def parse_optional_timestamp(value: str | datetime | None) -> datetime | None:
    if value is None or value == "":
        return None
    return parse_timestamp(value)


def format_optional_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
