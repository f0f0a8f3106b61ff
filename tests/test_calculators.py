import pytest

from crane_metrics.calculators import (
    compute_average,
    compute_duration_minutes,
    compute_efficiency_percent,
    compute_shift_minutes,
    compute_share_percent,
    compute_target_met,
    format_duration,
    lifts_remaining,
    normalise_hour_slot,
    parse_time_of_day,
    performance_label,
    suggest_rating,
)
from crane_metrics.errors import InvalidRangeError, ValidationError


def test_target_met_boundary():
    assert compute_target_met(23) is False
    assert compute_target_met(24) is True
    assert all(compute_target_met(n) == (n >= 24) for n in range(0, 101))


def test_lifts_remaining():
    assert lifts_remaining(20) == 4
    assert lifts_remaining(30) == 0


def test_parse_time_of_day_accepts_seconds():
    assert parse_time_of_day("08:30") == 510
    assert parse_time_of_day("08:30:00") == 510
    assert normalise_hour_slot("8:00") == "08:00"


@pytest.mark.parametrize("value", ["", "25:00", "12:60", "noon", None])
def test_parse_time_of_day_rejects_malformed(value):
    with pytest.raises(ValidationError):
        parse_time_of_day(value)


def test_duration_minutes():
    assert compute_duration_minutes("10:00", "10:15") == 15
    assert compute_duration_minutes("09:45", "11:05") == 80


@pytest.mark.parametrize("start,end", [("10:15", "10:00"), ("10:00", "10:00")])
def test_duration_rejects_non_positive_range(start, end):
    with pytest.raises(InvalidRangeError):
        compute_duration_minutes(start, end)
    # InvalidRangeError is a ValidationError for callers of the gate
    with pytest.raises(ValidationError):
        compute_duration_minutes(start, end)


def test_shift_minutes_wraps_overnight():
    assert compute_shift_minutes("06:00", "14:00") == 480
    assert compute_shift_minutes("22:00", "06:00") == 480
    with pytest.raises(InvalidRangeError):
        compute_shift_minutes("22:00", "06:00", allow_overnight=False)
    with pytest.raises(InvalidRangeError):
        compute_shift_minutes("08:00", "08:00")


def test_efficiency_percent():
    assert compute_efficiency_percent(24) == 100
    assert compute_efficiency_percent(25) == 104
    assert compute_efficiency_percent(30) == 125
    assert compute_efficiency_percent(0) == 0
    assert compute_efficiency_percent(-5) == 0
    assert compute_efficiency_percent(10, target=0) == 0


def test_share_and_average_never_divide_by_zero():
    assert compute_share_percent(0, 0) == 0
    assert compute_share_percent(1, 2) == 50
    assert compute_average(0, 0) == 0.0


def test_suggest_rating_bands():
    assert suggest_rating(27) == 4
    assert suggest_rating(24) == 3
    assert suggest_rating(19) == 1
    assert suggest_rating(28) == 5
    assert suggest_rating(20) == 2
    assert performance_label(26) == "Excellent"
    assert performance_label(0) == "Needs Improvement"


def test_format_duration():
    assert format_duration(45) == "45m"
    assert format_duration(65) == "1h 5m"
