"""
Domain calculators — pure functions with no side effects.

Provides target determination, time-of-day arithmetic, efficiency
percentages and rating suggestions. None of these raise for zero or
empty input; only malformed time values and inverted ranges raise.
"""

import math
import re

from .config import (
    FLOOR_LABEL,
    FLOOR_RATING,
    MINUTES_PER_DAY,
    RATING_BANDS,
    TARGET_LIFTS_PER_HOUR,
)
from .errors import InvalidRangeError, ValidationError


_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (25.5 -> 26)."""
    return int(math.floor(value + 0.5))


def compute_target_met(lifts_count: int) -> bool:
    """Return True when an hour's lifts reach the fixed target."""
    return lifts_count >= TARGET_LIFTS_PER_HOUR


def lifts_remaining(lifts_count: int) -> int:
    """Lifts still needed this hour to meet target (0 once met)."""
    return max(TARGET_LIFTS_PER_HOUR - lifts_count, 0)


def parse_time_of_day(value: str) -> int:
    """Convert ``HH:MM`` or ``HH:MM:SS`` to minutes since midnight.

    Seconds are accepted (the store returns ``time`` columns with them)
    but ignored.
    """
    match = _TIME_OF_DAY.match(str(value).strip()) if value is not None else None
    if match is None:
        raise ValidationError(f"Invalid time of day: {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def normalise_hour_slot(value: str) -> str:
    """Return an hour slot as zero-padded ``HH:MM``."""
    minutes = parse_time_of_day(value)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def compute_duration_minutes(start: str, end: str) -> int:
    """Return minutes between two same-day times.

    Raises
    ------
    InvalidRangeError if ``end`` is not strictly after ``start``.
    """
    start_minutes = parse_time_of_day(start)
    end_minutes = parse_time_of_day(end)
    if end_minutes <= start_minutes:
        raise InvalidRangeError("End time must be after start time.")
    return end_minutes - start_minutes


def compute_shift_minutes(start: str, end: str, allow_overnight: bool = True) -> int:
    """Return the length of a work shift in minutes.

    With ``allow_overnight`` an end earlier than the start is read as the
    next day (22:00 -> 06:00 is 480 minutes). A zero-length shift is
    always rejected.
    """
    start_minutes = parse_time_of_day(start)
    end_minutes = parse_time_of_day(end)
    if end_minutes == start_minutes:
        raise InvalidRangeError("End time must differ from start time.")
    if end_minutes < start_minutes:
        if not allow_overnight:
            raise InvalidRangeError("End time must be after start time.")
        end_minutes += MINUTES_PER_DAY
    return end_minutes - start_minutes


def compute_efficiency_percent(avg_lifts: float, target: float = TARGET_LIFTS_PER_HOUR) -> int:
    """Return ``round(100 * avg_lifts / target)`` clamped at 0.

    No upper clamp: an operator averaging 30 lifts is at 125%.
    A non-positive target yields 0.
    """
    if target <= 0:
        return 0
    return max(round_half_up(100 * avg_lifts / target), 0)


def compute_share_percent(part: int, whole: int) -> int:
    """Rounded percentage of ``part`` in ``whole``; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(100 * part / whole)


def compute_average(total: float, count: int) -> float:
    """Mean that reports 0 instead of dividing by zero."""
    if count <= 0:
        return 0.0
    return total / count


def suggest_rating(avg_lifts_per_hour: float) -> int:
    """Suggest a 1-5 rating from average lifts/hour.

    Step function: >=28 -> 5, >=26 -> 4, >=24 -> 3, >=20 -> 2, else 1.
    A heuristic for supervisors, who may override it.
    """
    for threshold, rating, _ in RATING_BANDS:
        if avg_lifts_per_hour >= threshold:
            return rating
    return FLOOR_RATING


def performance_label(avg_lifts_per_hour: float) -> str:
    """Return the display label for the rating band of an average."""
    for threshold, _, label in RATING_BANDS:
        if avg_lifts_per_hour >= threshold:
            return label
    return FLOOR_LABEL


def format_duration(minutes: int) -> str:
    """Format a duration for display: ``"1h 5m"`` or ``"45m"``."""
    hours, remainder = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h {remainder}m"
    return f"{remainder}m"
