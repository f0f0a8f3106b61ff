import itertools

import pytest

from crane_metrics.calculators import compute_duration_minutes, compute_target_met
from crane_metrics.records import DelayRecord, LiftLog, Profile

_ids = itertools.count(1)


def make_lift(operator_id, day, hour_slot, lifts_count, record_id=None):
    return LiftLog(
        id=record_id or f"lift-{next(_ids)}",
        operator_id=operator_id,
        log_date=day,
        hour_slot=hour_slot,
        lifts_count=lifts_count,
        target_met=compute_target_met(lifts_count),
    )


def make_delay(operator_id, day, start, end, reason, record_id=None):
    return DelayRecord(
        id=record_id or f"delay-{next(_ids)}",
        operator_id=operator_id,
        delay_date=day,
        delay_start=start,
        delay_end=end,
        reason=reason,
        duration_minutes=compute_duration_minutes(start, end),
    )


@pytest.fixture
def operators():
    return [
        Profile(id="op-a", full_name="Alice Moyo", employee_id="CO-1"),
        Profile(id="op-b", full_name="Ben Sato", employee_id="CO-2"),
    ]
