"""
Aggregation engine: reduce lift-log and delay frames to KPI view models.

Every function is pure and deterministic. Reducers are sums and counts
over groups, so record order never changes the output, and an empty
frame always yields the identity view (zeros, empty mappings) rather
than an error.

Frames come from transforms.build_*_frame(); callers cut them to a date
window with transforms.filter_window() first.
"""

import logging
from typing import Iterable, Optional

import pandas as pd

from . import config
from .calculators import (
    compute_average,
    compute_efficiency_percent,
    compute_shift_minutes,
    compute_share_percent,
    performance_label,
    round_half_up,
    suggest_rating,
)
from .config import (
    DELAY_REASON_REGISTRY,
    TARGET_LIFTS_PER_HOUR,
    VEHICLE_STATUS_REGISTRY,
)
from .errors import ValidationError
from .models import (
    DelayBreakdown,
    DelayTrend,
    DelayTrendPoint,
    FleetSummary,
    HourlyLifts,
    HourlyPoint,
    OperatorDaySummary,
    OperatorRankingEntry,
    OperatorStatus,
    ProductivityTrend,
    TrendPoint,
    VehicleAvailability,
    frozen_mapping,
)
from .records import Profile, Vehicle

logger = logging.getLogger(__name__)

_LIFT_AGG = {
    "total_lifts": ("lifts_count", "sum"),
    "hours_logged": ("lifts_count", "size"),
    "targets_met_count": ("target_met", "sum"),
}


def _group_totals(df: pd.DataFrame, keys: list[str], agg: dict) -> pd.DataFrame:
    """Named aggregation over ``keys``, sorted by key; empty in -> empty out."""
    if df.empty:
        return pd.DataFrame(columns=keys + list(agg))
    return df.groupby(keys, sort=True).agg(**agg).reset_index()


def _int(value) -> int:
    return 0 if pd.isna(value) else int(value)


def _avg(total: int, hours: int) -> float:
    return round(compute_average(total, hours), 1)


# ---------------------------------------------------------------------------
# Per-operator day summaries
# ---------------------------------------------------------------------------
def summarise_operator_days(
    lift_df: pd.DataFrame,
    delay_df: pd.DataFrame,
) -> list[OperatorDaySummary]:
    """One summary per (operator, date) seen in either frame.

    ``hours_logged`` counts lift-log entries; duplicate entries for the
    same hour slot are summed, not merged.

    Returns
    -------
    Summaries ordered by (date, operator_id).
    """
    lift_days = _group_totals(
        lift_df.rename(columns={"log_date": "date"}), ["operator_id", "date"], _LIFT_AGG
    )
    delay_days = _group_totals(
        delay_df.rename(columns={"delay_date": "date"}),
        ["operator_id", "date"],
        {"total_delay_minutes": ("duration_minutes", "sum")},
    )

    merged = lift_days.merge(delay_days, on=["operator_id", "date"], how="outer")
    if merged.empty:
        return []
    merged = merged.sort_values(["date", "operator_id"], kind="mergesort")

    summaries = []
    for row in merged.itertuples(index=False):
        total = _int(row.total_lifts)
        hours = _int(row.hours_logged)
        summaries.append(OperatorDaySummary(
            operator_id=row.operator_id,
            date=row.date,
            total_lifts=total,
            hours_logged=hours,
            avg_lifts_per_hour=_avg(total, hours),
            targets_met_count=_int(row.targets_met_count),
            total_delay_minutes=_int(row.total_delay_minutes),
        ))

    logger.debug("Summarised %d operator-days", len(summaries))
    return summaries


def summarise_operator_day(
    lift_df: pd.DataFrame,
    delay_df: pd.DataFrame,
    operator_id: str,
    day: str,
) -> OperatorDaySummary:
    """Summary for one operator on one date; all zeros when nothing was logged."""
    lifts = lift_df[(lift_df["operator_id"] == operator_id) & (lift_df["log_date"] == day)]
    delays = delay_df[(delay_df["operator_id"] == operator_id) & (delay_df["delay_date"] == day)]
    for summary in summarise_operator_days(lifts, delays):
        return summary
    return OperatorDaySummary(operator_id=operator_id, date=day)


# ---------------------------------------------------------------------------
# Fleet-wide series
# ---------------------------------------------------------------------------
def delay_breakdown(delay_df: pd.DataFrame) -> DelayBreakdown:
    """Summed minutes per reason, only reasons that occurred, registry order."""
    if delay_df.empty:
        return DelayBreakdown()

    totals = delay_df.groupby("reason")["duration_minutes"].sum()
    by_reason = {
        reason: int(totals[reason])
        for reason in DELAY_REASON_REGISTRY
        if reason in totals.index
    }
    unknown = set(totals.index) - set(DELAY_REASON_REGISTRY)
    if unknown:
        raise ValueError(f"Delay frame contains unknown reasons: {sorted(unknown)}")
    return DelayBreakdown(by_reason=frozen_mapping(by_reason))


def productivity_trend(
    lift_df: pd.DataFrame,
    target: int = TARGET_LIFTS_PER_HOUR,
) -> ProductivityTrend:
    """Daily total lifts and efficiency, ascending by date.

    efficiency_percent compares the day's average lifts/hour to target;
    targets_met_percent is the share of hour slots that met target.
    """
    daily = _group_totals(lift_df, ["log_date"], _LIFT_AGG)

    points = []
    for row in daily.itertuples(index=False):
        total = _int(row.total_lifts)
        hours = _int(row.hours_logged)
        points.append(TrendPoint(
            date=row.log_date,
            total_lifts=total,
            efficiency_percent=compute_efficiency_percent(compute_average(total, hours), target),
            targets_met_percent=compute_share_percent(_int(row.targets_met_count), hours),
        ))
    return ProductivityTrend(points=tuple(points))


def hourly_lifts(lift_df: pd.DataFrame) -> HourlyLifts:
    """Lifts summed per hour slot across all operators, slots ascending."""
    hourly = _group_totals(lift_df, ["hour_slot"], {"lifts": ("lifts_count", "sum")})
    return HourlyLifts(points=tuple(
        HourlyPoint(hour=row.hour_slot, lifts=_int(row.lifts))
        for row in hourly.itertuples(index=False)
    ))


def delay_trend(delay_df: pd.DataFrame) -> DelayTrend:
    """Delay minutes per date, ascending."""
    daily = _group_totals(delay_df, ["delay_date"], {"minutes": ("duration_minutes", "sum")})
    return DelayTrend(points=tuple(
        DelayTrendPoint(date=row.delay_date, minutes=_int(row.minutes))
        for row in daily.itertuples(index=False)
    ))


def targets_met_percent(lift_df: pd.DataFrame) -> int:
    """Share of all hour slots in the frame that met target."""
    if lift_df.empty:
        return 0
    return compute_share_percent(int(lift_df["target_met"].sum()), len(lift_df))


def active_operator_ids(lift_df: pd.DataFrame, day: str) -> set[str]:
    """Operators with at least one lift log on ``day``.

    A proxy for "online", not a session signal.
    """
    if lift_df.empty:
        return set()
    return set(lift_df.loc[lift_df["log_date"] == day, "operator_id"])


def fleet_summary(
    lift_df: pd.DataFrame,
    delay_df: pd.DataFrame,
    day: str,
    operator_ids: Optional[Iterable[str]] = None,
) -> FleetSummary:
    """Fleet totals for the frames plus operator activity on ``day``.

    When ``operator_ids`` is given, only those operators count towards
    ``active_operators`` and ``operator_count``.
    """
    active = active_operator_ids(lift_df, day)
    if operator_ids is not None:
        roster = set(operator_ids)
        active &= roster
        operator_count = len(roster)
    else:
        operator_count = len(set(lift_df["operator_id"])) if not lift_df.empty else 0

    return FleetSummary(
        total_lifts=int(lift_df["lifts_count"].sum()) if not lift_df.empty else 0,
        total_delay_minutes=int(delay_df["duration_minutes"].sum()) if not delay_df.empty else 0,
        active_operators=len(active),
        operator_count=operator_count,
        targets_met_percent=targets_met_percent(lift_df),
    )


# ---------------------------------------------------------------------------
# Per-operator views
# ---------------------------------------------------------------------------
def _by_operator(df: pd.DataFrame, agg: dict) -> dict[str, tuple]:
    totals = _group_totals(df, ["operator_id"], agg)
    return {
        row[0]: tuple(row[1:])
        for row in totals.itertuples(index=False, name=None)
    }


def operator_statuses(
    profiles: Iterable[Profile],
    lift_df: pd.DataFrame,
    delay_df: pd.DataFrame,
    day: str,
) -> list[OperatorStatus]:
    """Status card per operator over the frames' window.

    ``is_active`` reflects lift logs on ``day`` only. Ordered by
    (full_name, operator_id).
    """
    lifts = _by_operator(lift_df, {"total": ("lifts_count", "sum"), "hours": ("lifts_count", "size")})
    delays = _by_operator(delay_df, {"minutes": ("duration_minutes", "sum")})
    active = active_operator_ids(lift_df, day)

    statuses = []
    for profile in sorted(profiles, key=lambda p: (p.full_name, p.id)):
        total, hours = lifts.get(profile.id, (0, 0))
        avg = compute_average(int(total), int(hours))
        statuses.append(OperatorStatus(
            operator_id=profile.id,
            full_name=profile.full_name,
            employee_id=profile.employee_id,
            total_lifts=int(total),
            total_delay_minutes=int(delays.get(profile.id, (0,))[0]),
            avg_lifts_per_hour=round(avg, 1),
            efficiency_percent=compute_efficiency_percent(avg),
            is_active=profile.id in active,
        ))
    return statuses


def operator_rankings(
    profiles: Iterable[Profile],
    lift_df: pd.DataFrame,
    rating_df: pd.DataFrame,
) -> list[OperatorRankingEntry]:
    """Rank operators by average lifts/hour, highest first.

    The suggested rating and label use the average rounded to a whole
    number of lifts (25.5 -> 26 -> rating 4). Historical rating is the
    mean of all ratings in ``rating_df``, one decimal; 0 when unrated.
    """
    lifts = _by_operator(lift_df, {"total": ("lifts_count", "sum"), "hours": ("lifts_count", "size")})
    ratings = _by_operator(rating_df, {"total": ("rating", "sum"), "count": ("rating", "size")})

    entries = []
    for profile in profiles:
        total, hours = lifts.get(profile.id, (0, 0))
        avg = compute_average(int(total), int(hours))
        rating_total, rating_count = ratings.get(profile.id, (0, 0))
        whole_avg = round_half_up(avg)
        entries.append(OperatorRankingEntry(
            operator_id=profile.id,
            full_name=profile.full_name,
            avg_lifts_per_hour=round(avg, 1),
            suggested_rating=suggest_rating(whole_avg),
            performance_label=performance_label(whole_avg),
            avg_historical_rating=round(compute_average(int(rating_total), int(rating_count)), 1),
            rating_count=int(rating_count),
        ))

    entries.sort(key=lambda e: (-e.avg_lifts_per_hour, e.operator_id))
    return entries


def scheduled_minutes(shift_df: pd.DataFrame, allow_overnight: Optional[bool] = None) -> dict[str, int]:
    """Total scheduled shift minutes per operator.

    Stored shifts with an unusable range count as 0 and are logged.
    ``allow_overnight`` defaults to ``config.ALLOW_OVERNIGHT_SHIFTS``.
    """
    if allow_overnight is None:
        allow_overnight = config.ALLOW_OVERNIGHT_SHIFTS
    totals: dict[str, int] = {}
    for row in shift_df.itertuples(index=False):
        try:
            minutes = compute_shift_minutes(row.start_time, row.end_time, allow_overnight)
        except ValidationError as exc:
            logger.warning("Shift %s has an unusable range (%s); counting 0 minutes", row.id, exc)
            minutes = 0
        totals[row.operator_id] = totals.get(row.operator_id, 0) + minutes
    return totals


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------
def vehicle_availability(vehicles: Iterable[Vehicle]) -> VehicleAvailability:
    """Vehicle numbers grouped by status; every status key is present."""
    grouped: dict[str, list[str]] = {status: [] for status in VEHICLE_STATUS_REGISTRY}
    for vehicle in vehicles:
        grouped[vehicle.status].append(vehicle.vehicle_number)

    return VehicleAvailability(
        by_status=frozen_mapping({s: tuple(sorted(nums)) for s, nums in grouped.items()}),
        counts=frozen_mapping({s: len(nums) for s, nums in grouped.items()}),
    )
