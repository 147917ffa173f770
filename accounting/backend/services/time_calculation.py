"""
Time Calculation.

Pure helpers for durations, rounding, amounts and calendar ranges used by
time tracking. Ranges are half-open: [start, end).
"""

import math
from datetime import date, datetime, time, timedelta

from accounting.backend.core.utils import round_money
from accounting.backend.models.enums import RoundingMethod


def calculate_duration(start: datetime, end: datetime) -> int:
    """Whole minutes between start and end (floored, never negative)."""
    seconds = (end - start).total_seconds()
    return max(0, math.floor(seconds / 60))


def round_duration(
    minutes: int,
    method: RoundingMethod | str,
    interval: int = 15,
) -> int:
    """
    Round minutes to a multiple of interval.

    Examples:
        round_duration(7, RoundingMethod.UP, 15)       -> 15
        round_duration(7, RoundingMethod.NEAREST, 15)  -> 0
        round_duration(8, RoundingMethod.NEAREST, 15)  -> 15
    """
    method = RoundingMethod(method)
    if interval <= 0 or method == RoundingMethod.NONE:
        return minutes
    if method == RoundingMethod.UP:
        return math.ceil(minutes / interval) * interval
    if method == RoundingMethod.DOWN:
        return math.floor(minutes / interval) * interval
    # half rounds up
    return math.floor(minutes / interval + 0.5) * interval


def calculate_total_amount(minutes: int, hourly_rate: float | None) -> float | None:
    if hourly_rate is None:
        return None
    return round_money(minutes / 60 * hourly_rate)


def get_effective_hourly_rate(entry_rate: float | None, default_rate: float | None) -> float | None:
    return entry_rate if entry_rate is not None else default_rate


def format_duration(minutes: int) -> str:
    """90 -> '01:30'"""
    minutes = max(0, minutes)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_duration_human(minutes: int) -> str:
    """90 -> '1h 30m', 120 -> '2h', 30 -> '30m', 0 -> '0m'"""
    minutes = max(0, minutes)
    hours, rest = divmod(minutes, 60)
    if hours and rest:
        return f"{hours}h {rest}m"
    if hours:
        return f"{hours}h"
    return f"{rest}m"


def check_overlap(
    start1: datetime,
    end1: datetime | None,
    start2: datetime,
    end2: datetime | None,
) -> bool:
    """True when two intervals intersect. A missing end means still running."""
    first_before_second_ends = end2 is None or start1 < end2
    second_before_first_ends = end1 is None or start2 < end1
    return first_before_second_ends and second_before_first_ends


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def get_day_bounds(value: date | datetime) -> tuple[datetime, datetime]:
    day = _as_date(value)
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def get_week_bounds(value: date | datetime, week_start_day: int = 1) -> tuple[datetime, datetime]:
    """
    Week containing the given day.

    week_start_day counts from Sunday: 0 = Sunday, 1 = Monday, ... 6 = Saturday.
    """
    day = _as_date(value)
    sunday_based = (day.weekday() + 1) % 7
    start_day = day - timedelta(days=(sunday_based - week_start_day) % 7)
    start = datetime.combine(start_day, time.min)
    return start, start + timedelta(days=7)


def get_month_bounds(value: date | datetime) -> tuple[datetime, datetime]:
    day = _as_date(value)
    start = datetime(day.year, day.month, 1)
    if day.month == 12:
        end = datetime(day.year + 1, 1, 1)
    else:
        end = datetime(day.year, day.month + 1, 1)
    return start, end
