"""
Data transforms: turn raw record lists into typed pandas frames and cut
them to calendar-date windows.

Every frame is sorted on a full key before it is returned so that the
reducers downstream see the same row order whatever order the store
returned the records in.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

import pandas as pd

from . import config
from .calculators import compute_duration_minutes
from .config import DATE_FORMAT
from .errors import ValidationError
from .records import DelayRecord, LiftLog, PerformanceRating, WorkShift

logger = logging.getLogger(__name__)

LIFT_COLUMNS = ["id", "operator_id", "log_date", "hour_slot", "lifts_count", "target_met"]
DELAY_COLUMNS = [
    "id", "operator_id", "delay_date", "delay_start", "delay_end",
    "reason", "duration_minutes",
]
RATING_COLUMNS = ["id", "operator_id", "rating", "rating_date"]
SHIFT_COLUMNS = ["id", "operator_id", "shift_date", "start_time", "end_time"]

_DTYPES = {
    "lifts_count": "int64",
    "target_met": "bool",
    "duration_minutes": "int64",
    "rating": "int64",
}


def _frame(rows: list[dict], columns: list[str], sort_by: list[str]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=columns)
    for col in columns:
        if col in _DTYPES:
            df[col] = df[col].astype(_DTYPES[col])
    if df.empty:
        return df
    return df.sort_values(sort_by, kind="mergesort").reset_index(drop=True)


def build_lift_frame(lift_logs: Iterable[LiftLog]) -> pd.DataFrame:
    """Build the lift-log frame.

    Returns
    -------
    DataFrame with columns:
        id, operator_id, log_date, hour_slot, lifts_count, target_met
    """
    rows = [
        {
            "id": log.id,
            "operator_id": log.operator_id,
            "log_date": log.log_date,
            "hour_slot": log.hour_slot,
            "lifts_count": log.lifts_count,
            "target_met": log.target_met,
        }
        for log in lift_logs
    ]
    return _frame(rows, LIFT_COLUMNS, ["log_date", "hour_slot", "operator_id", "id"])


def build_delay_frame(
    delays: Iterable[DelayRecord],
    recompute_duration: Optional[bool] = None,
) -> pd.DataFrame:
    """Build the delay frame.

    Parameters
    ----------
    delays : Delay records as fetched.
    recompute_duration : Re-derive ``duration_minutes`` from start/end
        rather than trusting the stored value. Disagreements are logged;
        records whose range cannot be parsed keep their stored value.
        Defaults to ``config.RECOMPUTE_DELAY_DURATIONS`` at call time.

    Returns
    -------
    DataFrame with columns:
        id, operator_id, delay_date, delay_start, delay_end, reason,
        duration_minutes
    """
    if recompute_duration is None:
        recompute_duration = config.RECOMPUTE_DELAY_DURATIONS

    rows = []
    for record in delays:
        minutes = record.duration_minutes
        if recompute_duration:
            try:
                derived = compute_duration_minutes(record.delay_start, record.delay_end)
            except ValidationError:
                logger.warning("Delay %s has an invalid range; keeping stored duration", record.id)
            else:
                if derived != minutes:
                    logger.warning(
                        "Delay %s stored %d minutes but spans %d; using %d",
                        record.id, minutes, derived, derived,
                    )
                minutes = derived
        rows.append({
            "id": record.id,
            "operator_id": record.operator_id,
            "delay_date": record.delay_date,
            "delay_start": record.delay_start,
            "delay_end": record.delay_end,
            "reason": record.reason,
            "duration_minutes": minutes,
        })
    return _frame(rows, DELAY_COLUMNS, ["delay_date", "delay_start", "operator_id", "id"])


def build_rating_frame(ratings: Iterable[PerformanceRating]) -> pd.DataFrame:
    rows = [
        {
            "id": r.id,
            "operator_id": r.operator_id,
            "rating": r.rating,
            "rating_date": r.rating_date,
        }
        for r in ratings
    ]
    return _frame(rows, RATING_COLUMNS, ["rating_date", "operator_id", "id"])


def build_shift_frame(shifts: Iterable[WorkShift]) -> pd.DataFrame:
    rows = [
        {
            "id": s.id,
            "operator_id": s.operator_id,
            "shift_date": s.shift_date,
            "start_time": s.start_time,
            "end_time": s.end_time,
        }
        for s in shifts
    ]
    return _frame(rows, SHIFT_COLUMNS, ["shift_date", "start_time", "operator_id", "id"])


def filter_window(df: pd.DataFrame, date_col: str, start: str, end: str) -> pd.DataFrame:
    """Keep rows whose ``date_col`` lies in ``[start, end]`` inclusive.

    Dates are compared as ``YYYY-MM-DD`` strings; no timezone handling.
    """
    if df.empty:
        return df
    mask = (df[date_col] >= start) & (df[date_col] <= end)
    return df[mask].reset_index(drop=True)


def window_ending(today: date, days_back: int) -> tuple[str, str]:
    """Return the inclusive window ``[today - days_back, today]`` as strings."""
    start = today - timedelta(days=days_back)
    return start.strftime(DATE_FORMAT), today.strftime(DATE_FORMAT)
