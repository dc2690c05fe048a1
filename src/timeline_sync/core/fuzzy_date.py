"""Fuzzy dates: dates known only to day, month, season, year or decade.

A fuzzy date carries exactly the fields its granularity needs. Its
``approximate_datetime`` is a synthetic instant used for ordering only;
it is never presented as a real capture time.

Approximation rules:
- DAY: the day itself
- MONTH: the 15th of the month
- SEASON: the 15th of the season's middle month (Apr, Jul, Oct, Jan)
- YEAR: 15 June
- DECADE: 1 January of the decade start
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from timeline_sync.errors import ValidationError
from timeline_sync.utils.timeutils import utcnow

MIN_YEAR = 1900
MAX_YEARS_AHEAD = 10

_MONTH_NAMES = (
    "",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class FuzzyDateGranularity(StrEnum):
    """Precision at which a date is known."""

    DAY = "day"
    MONTH = "month"
    SEASON = "season"
    YEAR = "year"
    DECADE = "decade"


class Season(StrEnum):
    """Meteorological seasons (northern hemisphere month grouping)."""

    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


_SEASON_MID_MONTH: dict[Season, int] = {
    Season.SPRING: 4,
    Season.SUMMER: 7,
    Season.FALL: 10,
    Season.WINTER: 1,
}

_MONTH_SEASON: dict[int, Season] = {
    12: Season.WINTER,
    1: Season.WINTER,
    2: Season.WINTER,
    3: Season.SPRING,
    4: Season.SPRING,
    5: Season.SPRING,
    6: Season.SUMMER,
    7: Season.SUMMER,
    8: Season.SUMMER,
    9: Season.FALL,
    10: Season.FALL,
    11: Season.FALL,
}

_GRANULARITY_DISPLAY_NAMES: dict[FuzzyDateGranularity, str] = {
    FuzzyDateGranularity.DAY: "Specific Date",
    FuzzyDateGranularity.MONTH: "Month & Year",
    FuzzyDateGranularity.SEASON: "Season & Year",
    FuzzyDateGranularity.YEAR: "Year Only",
    FuzzyDateGranularity.DECADE: "Decade",
}


@dataclass(frozen=True)
class FuzzyDate:
    """An approximate date of known precision.

    Use ``FuzzyDate.create`` to build validated instances; the plain
    constructor is reserved for deserialization.

    Attributes:
        granularity: Precision of the date
        year: Year (decade start for DECADE)
        month: Month 1-12 (DAY, MONTH)
        day: Day of month (DAY)
        season: Season (SEASON)
        display_text: Human-readable rendering
    """

    granularity: FuzzyDateGranularity
    year: int | None = None
    month: int | None = None
    day: int | None = None
    season: Season | None = None
    display_text: str | None = None

    @classmethod
    def create(
        cls,
        granularity: FuzzyDateGranularity | str,
        year: int | None = None,
        month: int | None = None,
        day: int | None = None,
        season: Season | str | None = None,
        *,
        current_year: int | None = None,
    ) -> FuzzyDate:
        """Create a validated fuzzy date.

        Fields not used by the granularity are ignored and not stored.

        Raises:
            ValidationError: If a required field is missing or out of range
        """
        gran = _coerce_granularity(granularity)
        season_value = _coerce_season(season) if gran == FuzzyDateGranularity.SEASON else None
        problem = _validation_problem(gran, year, month, day, season_value, current_year)
        if problem is not None:
            raise ValidationError(problem)

        if gran == FuzzyDateGranularity.DAY:
            return cls(
                granularity=gran,
                year=year,
                month=month,
                day=day,
                display_text=f"{_MONTH_NAMES[month]} {day}, {year}",
            )
        if gran == FuzzyDateGranularity.MONTH:
            return cls(
                granularity=gran,
                year=year,
                month=month,
                display_text=f"{_MONTH_NAMES[month]} {year}",
            )
        if gran == FuzzyDateGranularity.SEASON:
            return cls(
                granularity=gran,
                year=year,
                season=season_value,
                display_text=f"{season_value.display_name} {year}",
            )
        if gran == FuzzyDateGranularity.YEAR:
            return cls(granularity=gran, year=year, display_text=str(year))

        decade_start = (year // 10) * 10
        return cls(granularity=gran, year=decade_start, display_text=f"{decade_start}s")

    @classmethod
    def from_datetime(
        cls,
        value: datetime,
        granularity: FuzzyDateGranularity | str,
    ) -> FuzzyDate:
        """Reduce a precise datetime to a fuzzy date of the given granularity."""
        gran = _coerce_granularity(granularity)
        return cls.create(
            gran,
            year=value.year,
            month=value.month,
            day=value.day,
            season=_MONTH_SEASON[value.month],
        )

    @property
    def approximate_datetime(self) -> datetime:
        """Synthetic instant used for ordering."""
        year = self.year if self.year is not None else 1970
        if self.granularity == FuzzyDateGranularity.DAY:
            return datetime(year, self.month or 1, self.day or 1)
        if self.granularity == FuzzyDateGranularity.MONTH:
            return datetime(year, self.month or 1, 15)
        if self.granularity == FuzzyDateGranularity.SEASON:
            mid_month = _SEASON_MID_MONTH[self.season] if self.season else 7
            return datetime(year, mid_month, 15)
        if self.granularity == FuzzyDateGranularity.YEAR:
            return datetime(year, 6, 15)
        return datetime(year, 1, 1)

    def __str__(self) -> str:
        return self.display_text or "Unknown date"

    def to_dict(self) -> dict[str, Any]:
        return {
            "granularity": self.granularity.value,
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "season": self.season.value if self.season is not None else None,
            "display_text": self.display_text,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FuzzyDate:
        season = data.get("season")
        return cls(
            granularity=FuzzyDateGranularity(data["granularity"]),
            year=data.get("year"),
            month=data.get("month"),
            day=data.get("day"),
            season=Season(season) if season is not None else None,
            display_text=data.get("display_text"),
        )


def _coerce_granularity(value: FuzzyDateGranularity | str) -> FuzzyDateGranularity:
    try:
        return FuzzyDateGranularity(value)
    except ValueError as e:
        raise ValidationError(f"Unknown granularity: {value!r}") from e


def _coerce_season(value: Season | str | None) -> Season | None:
    if value is None:
        return None
    try:
        return Season(value)
    except ValueError as e:
        raise ValidationError(f"Unknown season: {value!r}") from e


def _validation_problem(
    granularity: FuzzyDateGranularity,
    year: int | None,
    month: int | None,
    day: int | None,
    season: Season | None,
    current_year: int | None,
) -> str | None:
    """Return a description of the first problem, or None if valid."""
    if year is None:
        return f"Year is required for {granularity.value} granularity"
    max_year = (current_year if current_year is not None else utcnow().year) + MAX_YEARS_AHEAD
    if not MIN_YEAR <= year <= max_year:
        return f"Year {year} outside [{MIN_YEAR}, {max_year}]"

    if granularity == FuzzyDateGranularity.SEASON and season is None:
        return "Season is required for season granularity"

    if granularity in (FuzzyDateGranularity.MONTH, FuzzyDateGranularity.DAY):
        if month is None:
            return f"Month is required for {granularity.value} granularity"
        if not 1 <= month <= 12:
            return f"Month {month} outside [1, 12]"

    if granularity == FuzzyDateGranularity.DAY:
        if day is None:
            return "Day is required for day granularity"
        days_in_month = calendar.monthrange(year, month)[1]
        if not 1 <= day <= days_in_month:
            return f"Day {day} invalid for {year}-{month:02d} ({days_in_month} days)"

    return None


def is_valid_fuzzy_date_input(
    granularity: FuzzyDateGranularity | str,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    season: Season | str | None = None,
    *,
    current_year: int | None = None,
) -> bool:
    """Non-throwing check with the same rules as ``FuzzyDate.create``."""
    try:
        gran = _coerce_granularity(granularity)
        season_value = _coerce_season(season) if gran == FuzzyDateGranularity.SEASON else None
    except ValidationError:
        return False
    return _validation_problem(gran, year, month, day, season_value, current_year) is None


def sort_fuzzy_dates(dates: Iterable[FuzzyDate]) -> list[FuzzyDate]:
    """Sort ascending by approximate datetime; ties keep input order."""
    return sorted(dates, key=lambda d: d.approximate_datetime)


def is_within_range(fuzzy_date: FuzzyDate, start: datetime, end: datetime) -> bool:
    """Whether the approximate instant lies strictly inside (start - 1 day, end + 1 day)."""
    approx = fuzzy_date.approximate_datetime
    return start - timedelta(days=1) < approx < end + timedelta(days=1)


def granularity_display_name(granularity: FuzzyDateGranularity | str) -> str:
    return _GRANULARITY_DISPLAY_NAMES[_coerce_granularity(granularity)]
