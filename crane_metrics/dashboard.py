"""
Dashboard view definitions.

These are the primary entry points for a presentation layer. Each
factory returns a ViewDefinition naming the collections it depends on,
how to fetch its full window from the record store, and the pure
compute step producing its payload. Hand one to LiveViewSynchronizer to
keep it live, or call ``await view.build(store)`` for a one-off read.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from .aggregation import (
    delay_breakdown,
    delay_trend,
    fleet_summary,
    hourly_lifts,
    operator_rankings,
    operator_statuses,
    productivity_trend,
    scheduled_minutes,
    summarise_operator_day,
    summarise_operator_days,
    targets_met_percent,
    vehicle_availability,
)
from .config import (
    ANALYTICS_RANGES,
    DATE_FORMAT,
    DELAY_RECORDS,
    LIFT_LOGS,
    OPERATOR_DETAIL_DAYS,
    PERFORMANCE_RATINGS,
    PROFILES,
    RANKING_WINDOW_DAYS,
    ROLE_CRANE_OPERATOR,
    USER_ROLES,
    VEHICLES,
    WORK_SHIFTS,
)
from .models import (
    AnalyticsView,
    OperatorDashboard,
    OperatorDetail,
    OperatorDetailsView,
    RatingsView,
    SupervisorDashboard,
    VehicleBoard,
)
from .records import (
    DelayRecord,
    LiftLog,
    PerformanceRating,
    Profile,
    UserRole,
    Vehicle,
    WorkShift,
)
from .store import Filter, RecordStore, between, eq, in_
from .sync import ViewDefinition
from .transforms import (
    build_delay_frame,
    build_lift_frame,
    build_rating_frame,
    build_shift_frame,
    filter_window,
    window_ending,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordSet:
    """Everything one fetch returned for a view, plus the window it covers."""

    start: str
    end: str
    lift_logs: tuple[LiftLog, ...] = ()
    delay_records: tuple[DelayRecord, ...] = ()
    work_shifts: tuple[WorkShift, ...] = ()
    ratings: tuple[PerformanceRating, ...] = ()
    profiles: tuple[Profile, ...] = ()
    vehicles: tuple[Vehicle, ...] = ()


async def fetch_records(
    store: RecordStore,
    collection: str,
    parse: Callable,
    filters: Optional[Sequence[Filter]] = None,
    order_by: Optional[Sequence[tuple[str, bool]]] = None,
) -> tuple:
    """Query a collection and parse each row into its record type."""
    rows = await store.query(collection, filters, order_by)
    return tuple(parse(row) for row in rows)


async def fetch_operator_profiles(store: RecordStore) -> tuple[Profile, ...]:
    """Profiles of every user holding the crane_operator role."""
    roles = await fetch_records(
        store, USER_ROLES, UserRole.from_dict, [eq("role", ROLE_CRANE_OPERATOR)]
    )
    operator_ids = [r.user_id for r in roles]
    if not operator_ids:
        return ()
    return await fetch_records(store, PROFILES, Profile.from_dict, [in_("id", operator_ids)])


def _iso(day: date) -> str:
    return day.strftime(DATE_FORMAT)


# ---------------------------------------------------------------------------
# Operator dashboard
# ---------------------------------------------------------------------------
def operator_dashboard_view(operator_id: str, day: date) -> ViewDefinition:
    """One operator's lifts and delays for a single day."""
    iso_day = _iso(day)

    async def fetch(store: RecordStore) -> RecordSet:
        lifts = await fetch_records(
            store, LIFT_LOGS, LiftLog.from_dict,
            [eq("operator_id", operator_id), eq("log_date", iso_day)],
            [("hour_slot", True)],
        )
        delays = await fetch_records(
            store, DELAY_RECORDS, DelayRecord.from_dict,
            [eq("operator_id", operator_id), eq("delay_date", iso_day)],
            [("delay_start", True)],
        )
        return RecordSet(start=iso_day, end=iso_day, lift_logs=lifts, delay_records=delays)

    def compute(records: RecordSet) -> OperatorDashboard:
        lift_df = filter_window(build_lift_frame(records.lift_logs), "log_date", iso_day, iso_day)
        delay_df = filter_window(build_delay_frame(records.delay_records), "delay_date", iso_day, iso_day)
        return OperatorDashboard(
            summary=summarise_operator_day(lift_df, delay_df, operator_id, iso_day),
            lift_logs=tuple(sorted(
                (log for log in records.lift_logs if log.log_date == iso_day),
                key=lambda log: (log.hour_slot, log.id),
            )),
            delays=tuple(sorted(
                (d for d in records.delay_records if d.delay_date == iso_day),
                key=lambda d: (d.delay_start, d.id),
            )),
            breakdown=delay_breakdown(delay_df),
        )

    return ViewDefinition(
        name=f"operator-dashboard:{operator_id}:{iso_day}",
        collections=(LIFT_LOGS, DELAY_RECORDS),
        fetch=fetch,
        compute=compute,
        # Updates are matched on the old row too, so a log moved away still refreshes
        predicate=lambda row: row.get("operator_id") == operator_id,
    )


# ---------------------------------------------------------------------------
# Supervisor dashboard
# ---------------------------------------------------------------------------
def supervisor_dashboard_view(day: date) -> ViewDefinition:
    """Fleet-wide picture of one day: totals, hourly lifts, delays, operators."""
    iso_day = _iso(day)

    async def fetch(store: RecordStore) -> RecordSet:
        profiles = await fetch_operator_profiles(store)
        lifts = await fetch_records(store, LIFT_LOGS, LiftLog.from_dict, [eq("log_date", iso_day)])
        delays = await fetch_records(
            store, DELAY_RECORDS, DelayRecord.from_dict, [eq("delay_date", iso_day)]
        )
        return RecordSet(
            start=iso_day, end=iso_day, lift_logs=lifts, delay_records=delays, profiles=profiles
        )

    def compute(records: RecordSet) -> SupervisorDashboard:
        lift_df = filter_window(build_lift_frame(records.lift_logs), "log_date", iso_day, iso_day)
        delay_df = filter_window(build_delay_frame(records.delay_records), "delay_date", iso_day, iso_day)
        return SupervisorDashboard(
            date=iso_day,
            fleet=fleet_summary(lift_df, delay_df, iso_day, [p.id for p in records.profiles]),
            hourly=hourly_lifts(lift_df),
            breakdown=delay_breakdown(delay_df),
            operators=tuple(operator_statuses(records.profiles, lift_df, delay_df, iso_day)),
        )

    return ViewDefinition(
        name=f"supervisor-dashboard:{iso_day}",
        collections=(PROFILES, USER_ROLES, LIFT_LOGS, DELAY_RECORDS),
        fetch=fetch,
        compute=compute,
    )


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------
def analytics_view(range_key: str, today: date) -> ViewDefinition:
    """Trend and delay analysis over the last 7, 30 or 90 days."""
    if range_key not in ANALYTICS_RANGES:
        raise ValueError(f"Unknown analytics range {range_key!r}; expected one of {list(ANALYTICS_RANGES)}")
    start, end = window_ending(today, ANALYTICS_RANGES[range_key])

    async def fetch(store: RecordStore) -> RecordSet:
        lifts = await fetch_records(
            store, LIFT_LOGS, LiftLog.from_dict, between("log_date", start, end), [("log_date", True)]
        )
        delays = await fetch_records(
            store, DELAY_RECORDS, DelayRecord.from_dict,
            between("delay_date", start, end), [("delay_date", True)],
        )
        return RecordSet(start=start, end=end, lift_logs=lifts, delay_records=delays)

    def compute(records: RecordSet) -> AnalyticsView:
        lift_df = filter_window(build_lift_frame(records.lift_logs), "log_date", start, end)
        delay_df = filter_window(build_delay_frame(records.delay_records), "delay_date", start, end)
        if lift_df.empty and delay_df.empty:
            logger.warning("No lift or delay records between %s and %s", start, end)
        breakdown = delay_breakdown(delay_df)
        return AnalyticsView(
            start=start,
            end=end,
            total_lifts=int(lift_df["lifts_count"].sum()) if not lift_df.empty else 0,
            total_delay_minutes=breakdown.total_minutes,
            targets_met_percent=targets_met_percent(lift_df),
            trend=productivity_trend(lift_df),
            breakdown=breakdown,
            delay_trend=delay_trend(delay_df),
        )

    return ViewDefinition(
        name=f"analytics:{range_key}:{end}",
        collections=(LIFT_LOGS, DELAY_RECORDS),
        fetch=fetch,
        compute=compute,
    )


# ---------------------------------------------------------------------------
# Operator details (last week per operator)
# ---------------------------------------------------------------------------
def operator_details_view(today: date, days_back: int = OPERATOR_DETAIL_DAYS) -> ViewDefinition:
    """Per-operator shifts, day summaries and status over the recent window."""
    start, end = window_ending(today, days_back)

    async def fetch(store: RecordStore) -> RecordSet:
        profiles = await fetch_operator_profiles(store)
        ids = [p.id for p in profiles]
        if not ids:
            return RecordSet(start=start, end=end)
        shifts = await fetch_records(
            store, WORK_SHIFTS, WorkShift.from_dict,
            [in_("operator_id", ids), *between("shift_date", start, end)],
            [("shift_date", False), ("start_time", False)],
        )
        lifts = await fetch_records(
            store, LIFT_LOGS, LiftLog.from_dict,
            [in_("operator_id", ids), *between("log_date", start, end)],
        )
        delays = await fetch_records(
            store, DELAY_RECORDS, DelayRecord.from_dict,
            [in_("operator_id", ids), *between("delay_date", start, end)],
        )
        return RecordSet(
            start=start, end=end, lift_logs=lifts, delay_records=delays,
            work_shifts=shifts, profiles=profiles,
        )

    def compute(records: RecordSet) -> OperatorDetailsView:
        lift_df = filter_window(build_lift_frame(records.lift_logs), "log_date", start, end)
        delay_df = filter_window(build_delay_frame(records.delay_records), "delay_date", start, end)
        shift_df = filter_window(build_shift_frame(records.work_shifts), "shift_date", start, end)

        minutes = scheduled_minutes(shift_df)
        days = summarise_operator_days(lift_df, delay_df)
        details = []
        for status in operator_statuses(records.profiles, lift_df, delay_df, end):
            op_id = status.operator_id
            details.append(OperatorDetail(
                status=status,
                scheduled_minutes=minutes.get(op_id, 0),
                shifts=tuple(sorted(
                    (s for s in records.work_shifts if s.operator_id == op_id and start <= s.shift_date <= end),
                    key=lambda s: (s.shift_date, s.start_time, s.id),
                    reverse=True,
                )),
                days=tuple(d for d in days if d.operator_id == op_id),
            ))
        return OperatorDetailsView(start=start, end=end, operators=tuple(details))

    return ViewDefinition(
        name=f"operator-details:{end}",
        collections=(PROFILES, USER_ROLES, WORK_SHIFTS, LIFT_LOGS, DELAY_RECORDS),
        fetch=fetch,
        compute=compute,
    )


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------
def ratings_view(today: date, days_back: int = RANKING_WINDOW_DAYS) -> ViewDefinition:
    """Operator ranking on rolling average lifts/hour with suggested ratings."""
    start, end = window_ending(today, days_back)

    async def fetch(store: RecordStore) -> RecordSet:
        profiles = await fetch_operator_profiles(store)
        ids = [p.id for p in profiles]
        if not ids:
            return RecordSet(start=start, end=end)
        lifts = await fetch_records(
            store, LIFT_LOGS, LiftLog.from_dict,
            [in_("operator_id", ids), *between("log_date", start, end)],
        )
        ratings = await fetch_records(
            store, PERFORMANCE_RATINGS, PerformanceRating.from_dict,
            [in_("operator_id", ids)], [("rating_date", False)],
        )
        return RecordSet(start=start, end=end, lift_logs=lifts, ratings=ratings, profiles=profiles)

    def compute(records: RecordSet) -> RatingsView:
        lift_df = filter_window(build_lift_frame(records.lift_logs), "log_date", start, end)
        # Historical rating covers every rating ever given, not just the window
        rating_df = build_rating_frame(records.ratings)
        return RatingsView(
            start=start,
            end=end,
            rankings=tuple(operator_rankings(records.profiles, lift_df, rating_df)),
        )

    return ViewDefinition(
        name=f"ratings:{end}",
        collections=(PROFILES, USER_ROLES, LIFT_LOGS, PERFORMANCE_RATINGS),
        fetch=fetch,
        compute=compute,
    )


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------
def vehicle_board_view() -> ViewDefinition:
    """Fleet vehicles grouped by availability status."""

    async def fetch(store: RecordStore) -> RecordSet:
        vehicles = await fetch_records(store, VEHICLES, Vehicle.from_dict)
        return RecordSet(start="", end="", vehicles=vehicles)

    def compute(records: RecordSet) -> VehicleBoard:
        return VehicleBoard(
            availability=vehicle_availability(records.vehicles),
            vehicles=tuple(sorted(records.vehicles, key=lambda v: (v.vehicle_number, v.id))),
        )

    return ViewDefinition(
        name="vehicle-board",
        collections=(VEHICLES,),
        fetch=fetch,
        compute=compute,
    )
