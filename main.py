"""
Crane Metrics — End-to-end live dashboard run.

Seeds an in-memory record store with simulated terminal activity, opens
the operator, supervisor, analytics, ratings and vehicle views, then
plays a burst of concurrent writes and prints the refreshed snapshots.

Usage:
    python main.py
"""

import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from crane_metrics.calculators import format_duration
from crane_metrics.config import DELAY_REASON_REGISTRY
from crane_metrics.dashboard import (
    analytics_view,
    operator_dashboard_view,
    operator_details_view,
    ratings_view,
    supervisor_dashboard_view,
    vehicle_board_view,
)
from crane_metrics.errors import StoreError, ValidationError
from crane_metrics.simulator import generate_terminal
from crane_metrics.store import InMemoryRecordStore
from crane_metrics.submission import DelayEntryForm, LiftEntryForm, RatingForm
from crane_metrics.sync import LiveViewSynchronizer

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

OPERATOR_ID = "op-02"
SUPERVISOR_ID = "sv-01"


async def run(today: date) -> None:
    """Seed, open every view, write a burst, print the results."""

    print("=" * 70)
    print("  CRANE METRICS — Live Dashboard Smoke Run")
    print("=" * 70)

    # ------------------------------------------------------------------
    # 1. Seed the record store
    # ------------------------------------------------------------------
    print("\n[ 1 ] SEEDING RECORD STORE")
    print("-" * 40)
    store = InMemoryRecordStore()
    for collection, rows in generate_terminal(today.isoformat(), days=14).items():
        count = store.load(collection, rows)
        print(f"  {collection:20s} {count:5d} rows")

    # ------------------------------------------------------------------
    # 2. Open views
    # ------------------------------------------------------------------
    print("\n[ 2 ] OPENING VIEWS")
    print("-" * 40)
    views = [
        operator_dashboard_view(OPERATOR_ID, today),
        supervisor_dashboard_view(today),
        analytics_view("7d", today),
        operator_details_view(today),
        ratings_view(today),
        vehicle_board_view(),
    ]
    syncs = [LiveViewSynchronizer(store, view) for view in views]
    for sync in syncs:
        await sync.start()
    await asyncio.gather(*(sync.wait_idle() for sync in syncs))
    print(f"  {len(syncs)} views live, {store.subscription_count} subscriptions held")

    operator_sync, supervisor_sync, analytics_sync, _, ratings_sync, vehicle_sync = syncs

    # ------------------------------------------------------------------
    # 3. Concurrent writes
    # ------------------------------------------------------------------
    print("\n[ 3 ] WRITE BURST")
    print("-" * 40)
    before = {sync.view.name: sync.recompute_count for sync in syncs}

    lift_form = LiftEntryForm(store, OPERATOR_ID, clock=lambda: today)
    lift_form.set(hour_slot="14:00", lifts_count="31")
    delay_form = DelayEntryForm(store, OPERATOR_ID, clock=lambda: today)
    delay_form.set(delay_start="14:20", delay_end="14:35", reason="weather_conditions")
    rating_form = RatingForm(store, SUPERVISOR_ID, clock=lambda: today)
    rating_form.set(operator_id=OPERATOR_ID, rating="4", comments="Strong finish")

    await asyncio.gather(lift_form.submit(), delay_form.submit(), rating_form.submit())

    bad_delay = DelayEntryForm(store, OPERATOR_ID, clock=lambda: today)
    bad_delay.set(delay_start="15:00", delay_end="14:00", reason="operator_break")
    try:
        await bad_delay.submit()
    except ValidationError as exc:
        print(f"  Rejected delay ({bad_delay.state.value}): {exc}")

    # Let the views settle so the injected failure hits the form's insert
    await asyncio.gather(*(sync.wait_idle() for sync in syncs))
    store.fail_next("connection reset by peer", collection="lift_logs")
    retry_form = LiftEntryForm(store, OPERATOR_ID, clock=lambda: today)
    retry_form.set(hour_slot="15:00", lifts_count="22")
    try:
        await retry_form.submit()
    except StoreError as exc:
        print(f"  Store refused lift log ({retry_form.state.value}, input kept "
              f"{retry_form.values['lifts_count']}): {exc}")

    await asyncio.gather(*(sync.wait_idle() for sync in syncs))
    for sync in syncs:
        delta = sync.recompute_count - before[sync.view.name]
        print(f"  {sync.view.name:40s} +{delta} recompute(s) -> v{sync.snapshot.version}")

    # ------------------------------------------------------------------
    # 4. Snapshots
    # ------------------------------------------------------------------
    print("\n[ 4 ] SNAPSHOTS")
    print("-" * 40)

    summary = operator_sync.snapshot.payload.summary
    print(f"\nOperator {OPERATOR_ID} on {summary.date}:")
    print(f"  lifts={summary.total_lifts} hours={summary.hours_logged} "
          f"avg={summary.avg_lifts_per_hour} targets_met={summary.targets_met_count}/"
          f"{summary.hours_logged} delay={format_duration(summary.total_delay_minutes)}")

    fleet = supervisor_sync.snapshot.payload.fleet
    print(f"\nFleet today: {fleet.total_lifts} lifts, {fleet.active_operators}/"
          f"{fleet.operator_count} operators active, {fleet.targets_met_percent}% hours on target")

    analytics = analytics_sync.snapshot.payload
    print(f"\nAnalytics {analytics.start} .. {analytics.end}:")
    for point in analytics.trend.points:
        print(f"  {point.date}  lifts={point.total_lifts:4d}  "
              f"efficiency={point.efficiency_percent:3d}%  on-target={point.targets_met_percent:3d}%")
    print("  Delay breakdown:")
    for reason, minutes in analytics.breakdown.by_reason.items():
        print(f"    {DELAY_REASON_REGISTRY[reason]:24s} {minutes:4d}m")

    print("\nRatings (30-day):")
    for rank, entry in enumerate(ratings_sync.snapshot.payload.rankings, start=1):
        print(f"  #{rank} {entry.full_name:16s} avg={entry.avg_lifts_per_hour:5.1f} "
              f"suggest={entry.suggested_rating} ({entry.performance_label}) "
              f"history={entry.avg_historical_rating}/5 over {entry.rating_count}")

    print(f"\nVehicles: {dict(vehicle_sync.snapshot.payload.availability.counts)}")

    # ------------------------------------------------------------------
    # 5. Teardown
    # ------------------------------------------------------------------
    for sync in syncs:
        await sync.close()
    print(f"\nViews closed, {store.subscription_count} subscriptions left")

    print("\n" + "=" * 70)
    print("  Run complete.")
    print("=" * 70)


def main() -> None:
    asyncio.run(run(date.today()))


if __name__ == "__main__":
    main()
