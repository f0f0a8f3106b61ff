"""
Simulated data generator for the crane productivity engine.

Generates realistic terminal activity: operators on day shifts logging
hourly lifts around the target, occasional delays, supervisor ratings
and a small vehicle fleet. All values are synthetic.

Rows are plain dicts in the record store's column layout, ready for
InMemoryRecordStore.load().
"""

import numpy as np
import pandas as pd

from .config import (
    DEFAULT_VEHICLE_STATUS,
    DELAY_REASON_REGISTRY,
    DELAY_RECORDS,
    LIFT_LOGS,
    PERFORMANCE_RATINGS,
    PROFILES,
    ROLE_CRANE_OPERATOR,
    ROLE_SUPERVISOR,
    TARGET_LIFTS_PER_HOUR,
    USER_ROLES,
    VEHICLE_STATUS_REGISTRY,
    VEHICLE_TYPES,
    VEHICLES,
    WORK_SHIFTS,
)

# ---------------------------------------------------------------------------
# Typical terminal parameters
# ---------------------------------------------------------------------------
_OPERATORS = [
    # (id, name, employee id, mean lifts/hour)
    ("op-01", "Amani Njoroge", "CO-1001", 27.5),
    ("op-02", "Bruno Costa", "CO-1002", 24.5),
    ("op-03", "Chen Wei", "CO-1003", 22.0),
    ("op-04", "Dina Haddad", "CO-1004", 29.0),
    ("op-05", "Emeka Obi", "CO-1005", 19.5),
]

_SUPERVISORS = [
    ("sv-01", "Farah Mensah", "SV-2001"),
]

_SHIFT_HOURS = range(6, 14)  # Morning preset, 06:00-14:00
_LIFT_STD = 3.0
_DELAY_PROBABILITY = 0.12  # per operator-hour
_DELAY_MINUTES = (5, 45)


def generate_profiles() -> dict[str, list[dict]]:
    """Profiles and roles for the simulated crew."""
    profiles = []
    roles = []
    for op_id, name, employee_id, _ in _OPERATORS:
        profiles.append({"id": op_id, "full_name": name, "employee_id": employee_id})
        roles.append({"user_id": op_id, "role": ROLE_CRANE_OPERATOR})
    for sv_id, name, employee_id in _SUPERVISORS:
        profiles.append({"id": sv_id, "full_name": name, "employee_id": employee_id})
        roles.append({"user_id": sv_id, "role": ROLE_SUPERVISOR})
    return {PROFILES: profiles, USER_ROLES: roles}


def generate_activity(
    end_date: str,
    days: int = 14,
    seed: int = 42,
) -> dict[str, list[dict]]:
    """Generate shifts, hourly lift logs and delays for ``days`` days ending at ``end_date``."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range(end=end_date, periods=days, freq="D")

    shifts, lifts, delays = [], [], []
    for day in dates:
        iso_day = day.strftime("%Y-%m-%d")
        # Weekends run lighter
        weekend_factor = 0.9 if day.dayofweek >= 5 else 1.0

        for op_id, _, _, mean_lifts in _OPERATORS:
            shift_id = f"shift-{op_id}-{iso_day}"
            shifts.append({
                "id": shift_id,
                "operator_id": op_id,
                "shift_date": iso_day,
                "start_time": "06:00",
                "end_time": "14:00",
            })
            for hour in _SHIFT_HOURS:
                count = int(round(rng.normal(mean_lifts * weekend_factor, _LIFT_STD)))
                count = min(max(count, 0), 60)
                slot = f"{hour:02d}:00"
                lifts.append({
                    "id": f"lift-{op_id}-{iso_day}-{hour:02d}",
                    "operator_id": op_id,
                    "shift_id": shift_id,
                    "log_date": iso_day,
                    "hour_slot": slot,
                    "lifts_count": count,
                    "target_met": count >= TARGET_LIFTS_PER_HOUR,
                })

                if rng.uniform() < _DELAY_PROBABILITY:
                    start_minute = int(rng.integers(0, 15))
                    duration = int(rng.integers(*_DELAY_MINUTES))
                    end_minute = start_minute + duration
                    reason = str(rng.choice(list(DELAY_REASON_REGISTRY)))
                    delays.append({
                        "id": f"delay-{op_id}-{iso_day}-{hour:02d}",
                        "operator_id": op_id,
                        "shift_id": shift_id,
                        "delay_date": iso_day,
                        "delay_start": f"{hour:02d}:{start_minute:02d}",
                        "delay_end": f"{hour + end_minute // 60:02d}:{end_minute % 60:02d}",
                        "reason": reason,
                        "notes": None,
                        "duration_minutes": duration,
                    })

    return {WORK_SHIFTS: shifts, LIFT_LOGS: lifts, DELAY_RECORDS: delays}


def generate_ratings(end_date: str, weeks: int = 4, seed: int = 7) -> list[dict]:
    """Weekly supervisor ratings that loosely track each operator's pace."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range(end=end_date, periods=weeks, freq="7D")
    rater = _SUPERVISORS[0][0]

    rows = []
    for day in dates:
        for op_id, _, _, mean_lifts in _OPERATORS:
            base = 1 + (mean_lifts - 18) / 3
            rating = int(np.clip(round(base + rng.normal(0, 0.6)), 1, 5))
            rows.append({
                "id": f"rating-{op_id}-{day:%Y%m%d}",
                "operator_id": op_id,
                "rated_by": rater,
                "rating": rating,
                "rating_date": day.strftime("%Y-%m-%d"),
                "comments": None,
            })
    return rows


def generate_vehicles(count: int = 8, seed: int = 3) -> list[dict]:
    """A mixed fleet, mostly available."""
    rng = np.random.default_rng(seed)
    statuses = list(VEHICLE_STATUS_REGISTRY)
    weights = [0.55, 0.25, 0.12, 0.08]

    rows = []
    for i in range(count):
        vehicle_type = VEHICLE_TYPES[i % len(VEHICLE_TYPES)]
        status = str(rng.choice(statuses, p=weights)) if i else DEFAULT_VEHICLE_STATUS
        rows.append({
            "id": f"veh-{i + 1:03d}",
            "vehicle_number": f"{vehicle_type[:3].upper()}-{i + 1:03d}",
            "vehicle_type": vehicle_type,
            "status": status,
            "assigned_to": None,
        })
    return rows


def generate_terminal(end_date: str, days: int = 14) -> dict[str, list[dict]]:
    """Every collection's rows for a simulated terminal."""
    data = generate_profiles()
    data.update(generate_activity(end_date, days))
    data[PERFORMANCE_RATINGS] = generate_ratings(end_date)
    data[VEHICLES] = generate_vehicles()
    return data
