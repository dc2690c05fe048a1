"""Tests for fuzzy dates."""

from __future__ import annotations

from datetime import datetime

import pytest

from timeline_sync.config_presets import available_granularities
from timeline_sync.core.context import ContextType
from timeline_sync.core.fuzzy_date import (
    FuzzyDate,
    FuzzyDateGranularity,
    Season,
    granularity_display_name,
    is_valid_fuzzy_date_input,
    is_within_range,
    sort_fuzzy_dates,
)
from timeline_sync.errors import ValidationError

CURRENT_YEAR = 2025


class TestValidationBoundaries:
    """Year, month and day boundaries."""

    def test_year_bounds(self) -> None:
        assert not is_valid_fuzzy_date_input("year", year=1899, current_year=CURRENT_YEAR)
        assert is_valid_fuzzy_date_input("year", year=1900, current_year=CURRENT_YEAR)
        assert is_valid_fuzzy_date_input("year", year=CURRENT_YEAR + 10, current_year=CURRENT_YEAR)
        assert not is_valid_fuzzy_date_input(
            "year", year=CURRENT_YEAR + 11, current_year=CURRENT_YEAR
        )

    def test_month_bounds(self) -> None:
        assert not is_valid_fuzzy_date_input("month", year=2020, month=0)
        assert not is_valid_fuzzy_date_input("month", year=2020, month=13)
        assert is_valid_fuzzy_date_input("month", year=2020, month=12)

    def test_leap_years(self) -> None:
        assert not is_valid_fuzzy_date_input("day", year=2023, month=2, day=29)
        assert not is_valid_fuzzy_date_input("day", year=2023, month=2, day=30)
        assert is_valid_fuzzy_date_input("day", year=2024, month=2, day=29)
        assert not is_valid_fuzzy_date_input("day", year=1900, month=2, day=29)
        assert is_valid_fuzzy_date_input("day", year=2000, month=2, day=29)

    def test_missing_required_fields(self) -> None:
        assert not is_valid_fuzzy_date_input("day", year=2020, month=5)
        assert not is_valid_fuzzy_date_input("season", year=2020)
        assert not is_valid_fuzzy_date_input("month", month=5)

    def test_unused_fields_ignored(self) -> None:
        """A year-granularity date does not care about a bogus month."""
        assert is_valid_fuzzy_date_input("year", year=2020, month=42, day=99)

    def test_unknown_granularity_or_season(self) -> None:
        assert not is_valid_fuzzy_date_input("week", year=2020)
        assert not is_valid_fuzzy_date_input("season", year=2020, season="monsoon")

    def test_create_raises(self) -> None:
        with pytest.raises(ValidationError):
            FuzzyDate.create(FuzzyDateGranularity.DAY, year=2023, month=2, day=30)


class TestCreate:
    """Construction and display text."""

    def test_day(self) -> None:
        d = FuzzyDate.create("day", year=2021, month=3, day=4)
        assert d.display_text == "March 4, 2021"
        assert d.approximate_datetime == datetime(2021, 3, 4)

    def test_month(self) -> None:
        d = FuzzyDate.create("month", year=2021, month=3, day=31)
        assert d.day is None
        assert str(d) == "March 2021"
        assert d.approximate_datetime == datetime(2021, 3, 15)

    def test_season(self) -> None:
        d = FuzzyDate.create("season", year=2021, season=Season.SUMMER)
        assert d.display_text == "Summer 2021"
        assert d.approximate_datetime == datetime(2021, 7, 15)

    def test_winter_uses_january(self) -> None:
        d = FuzzyDate.create("season", year=2021, season="winter")
        assert d.approximate_datetime == datetime(2021, 1, 15)

    def test_year(self) -> None:
        d = FuzzyDate.create("year", year=2021)
        assert d.display_text == "2021"
        assert d.approximate_datetime == datetime(2021, 6, 15)

    def test_decade_rounds_down(self) -> None:
        d = FuzzyDate.create("decade", year=1994)
        assert d.year == 1990
        assert d.display_text == "1990s"
        assert d.approximate_datetime == datetime(1990, 1, 1)

    def test_from_datetime_season(self) -> None:
        d = FuzzyDate.from_datetime(datetime(2020, 11, 3, 8, 30), "season")
        assert d.season == Season.FALL
        assert d.year == 2020

    def test_from_datetime_rejects_far_future_year(self) -> None:
        assert not is_valid_fuzzy_date_input("year", year=2150)
        with pytest.raises(ValidationError):
            FuzzyDate.from_datetime(datetime(2150, 5, 1), "year")

    def test_dict_round_trip(self) -> None:
        d = FuzzyDate.create("season", year=2019, season="spring")
        assert FuzzyDate.from_dict(d.to_dict()) == d


class TestOrdering:
    """Sorting and range checks."""

    def test_mixed_granularities_sort_non_decreasing(self) -> None:
        dates = [
            FuzzyDate.create("year", year=2021),
            FuzzyDate.create("decade", year=2015),
            FuzzyDate.create("day", year=2021, month=1, day=2),
            FuzzyDate.create("season", year=2021, season="fall"),
            FuzzyDate.create("month", year=2021, month=6),
        ]
        ordered = sort_fuzzy_dates(dates)
        instants = [d.approximate_datetime for d in ordered]
        assert instants == sorted(instants)
        assert ordered[0].granularity == FuzzyDateGranularity.DECADE

    def test_sort_is_stable(self) -> None:
        """Equal approximations keep input order."""
        month = FuzzyDate.create("month", year=2021, month=6, day=15)
        day = FuzzyDate.create("day", year=2021, month=6, day=15)
        assert sort_fuzzy_dates([day, month]) == [day, month]
        assert sort_fuzzy_dates([month, day]) == [month, day]

    def test_within_range_tolerance(self) -> None:
        d = FuzzyDate.create("day", year=2021, month=3, day=4)
        assert is_within_range(d, datetime(2021, 3, 4, 12), datetime(2021, 3, 10))
        assert not is_within_range(d, datetime(2021, 3, 6), datetime(2021, 3, 10))


class TestGranularityTables:
    """Per-context granularity presets."""

    def test_person(self) -> None:
        assert available_granularities(ContextType.PERSON) == [
            FuzzyDateGranularity.DAY,
            FuzzyDateGranularity.MONTH,
            FuzzyDateGranularity.SEASON,
            FuzzyDateGranularity.YEAR,
        ]

    def test_business_has_no_day(self) -> None:
        granularities = available_granularities("business")
        assert set(granularities) == {FuzzyDateGranularity.YEAR, FuzzyDateGranularity.SEASON}

    def test_pet_and_project(self) -> None:
        expected = [
            FuzzyDateGranularity.DAY,
            FuzzyDateGranularity.MONTH,
            FuzzyDateGranularity.YEAR,
        ]
        assert available_granularities("pet") == expected
        assert available_granularities("project") == expected

    def test_display_name(self) -> None:
        assert granularity_display_name("season") == "Season & Year"
