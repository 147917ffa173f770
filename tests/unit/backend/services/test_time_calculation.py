"""
Unit Tests for Time Calculation Helpers.
"""

from datetime import date, datetime

import pytest

from accounting.backend.models.enums import RoundingMethod
from accounting.backend.services.time_calculation import (
    calculate_duration,
    calculate_total_amount,
    check_overlap,
    format_duration,
    format_duration_human,
    get_day_bounds,
    get_effective_hourly_rate,
    get_month_bounds,
    get_week_bounds,
    round_duration,
)


class TestCalculateDuration:
    def test_whole_minutes_are_floored(self):
        start = datetime(2024, 5, 6, 9, 0, 0)
        end = datetime(2024, 5, 6, 10, 30, 59)

        assert calculate_duration(start, end) == 90

    def test_end_before_start_is_zero(self):
        start = datetime(2024, 5, 6, 10, 0)
        end = datetime(2024, 5, 6, 9, 0)

        assert calculate_duration(start, end) == 0


class TestRoundDuration:
    @pytest.mark.parametrize(
        ("minutes", "method", "expected"),
        [
            (7, RoundingMethod.UP, 15),
            (15, RoundingMethod.UP, 15),
            (16, RoundingMethod.DOWN, 15),
            (7, RoundingMethod.NEAREST, 0),
            (8, RoundingMethod.NEAREST, 15),
            (7, RoundingMethod.NONE, 7),
        ],
    )
    def test_rounding_methods(self, minutes, method, expected):
        assert round_duration(minutes, method, 15) == expected

    def test_accepts_string_method(self):
        assert round_duration(31, "up", 30) == 60

    def test_non_positive_interval_leaves_minutes_untouched(self):
        assert round_duration(31, RoundingMethod.UP, 0) == 31


class TestAmounts:
    def test_total_amount_from_minutes_and_rate(self):
        assert calculate_total_amount(90, 200.0) == 300.0

    def test_total_amount_is_rounded_to_cents(self):
        assert calculate_total_amount(10, 100.0) == 16.67

    def test_total_amount_without_rate_is_none(self):
        assert calculate_total_amount(60, None) is None

    def test_entry_rate_wins_over_default(self):
        assert get_effective_hourly_rate(150.0, 100.0) == 150.0
        assert get_effective_hourly_rate(None, 100.0) == 100.0
        assert get_effective_hourly_rate(0.0, 100.0) == 0.0


class TestFormatting:
    def test_clock_format(self):
        assert format_duration(90) == "01:30"
        assert format_duration(-5) == "00:00"

    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(90, "1h 30m"), (120, "2h"), (30, "30m"), (0, "0m")],
    )
    def test_human_format(self, minutes, expected):
        assert format_duration_human(minutes) == expected


class TestCheckOverlap:
    def test_adjacent_intervals_do_not_overlap(self):
        a_start, a_end = datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 10)
        b_start, b_end = datetime(2024, 1, 1, 10), datetime(2024, 1, 1, 11)

        assert check_overlap(a_start, a_end, b_start, b_end) is False

    def test_intersecting_intervals_overlap(self):
        assert check_overlap(
            datetime(2024, 1, 1, 9),
            datetime(2024, 1, 1, 11),
            datetime(2024, 1, 1, 10),
            datetime(2024, 1, 1, 12),
        )

    def test_running_entry_overlaps_everything_after_its_start(self):
        assert check_overlap(
            datetime(2024, 1, 1, 9),
            None,
            datetime(2024, 1, 2, 9),
            datetime(2024, 1, 2, 10),
        )


class TestCalendarBounds:
    def test_day_bounds(self):
        start, end = get_day_bounds(date(2024, 2, 29))

        assert start == datetime(2024, 2, 29)
        assert end == datetime(2024, 3, 1)

    def test_week_starts_on_monday_by_default(self):
        start, end = get_week_bounds(date(2024, 1, 3))

        assert start == datetime(2024, 1, 1)
        assert end == datetime(2024, 1, 8)

    def test_week_can_start_on_sunday(self):
        start, _ = get_week_bounds(datetime(2024, 1, 3, 15, 0), week_start_day=0)

        assert start == datetime(2023, 12, 31)

    def test_december_month_bounds_roll_over_year(self):
        start, end = get_month_bounds(date(2024, 12, 15))

        assert start == datetime(2024, 12, 1)
        assert end == datetime(2025, 1, 1)
