import asyncio
from datetime import date

import pytest

from crane_metrics.config import DELAY_RECORDS, LIFT_LOGS, VEHICLES
from crane_metrics.dashboard import operator_dashboard_view, vehicle_board_view
from crane_metrics.errors import ValidationError
from crane_metrics.store import InMemoryRecordStore
from crane_metrics.sync import LiveViewSynchronizer

DAY = date(2026, 3, 2)


class GatedStore(InMemoryRecordStore):
    """Queries block on ``gate`` until the test releases them."""

    def __init__(self):
        super().__init__()
        self.gate = None
        self.entered = None

    async def query(self, collection, filters=None, order_by=None):
        if self.gate is not None and not self.gate.is_set():
            self.entered.set()
            await self.gate.wait()
        return await super().query(collection, filters, order_by)


class LegacyRowStore(InMemoryRecordStore):
    """Also serves delay rows written before the reason check existed."""

    def __init__(self):
        super().__init__()
        self.legacy_delays = []

    async def query(self, collection, filters=None, order_by=None):
        rows = await super().query(collection, filters, order_by)
        if collection == DELAY_RECORDS:
            rows.extend(dict(row) for row in self.legacy_delays)
        return rows


def vehicle(number):
    return {"vehicle_number": number, "vehicle_type": "Truck", "status": "available"}


def lift(operator_id, slot, count):
    return {"operator_id": operator_id, "log_date": "2026-03-02", "hour_slot": slot, "lifts_count": count}


def test_initial_snapshot_published():
    async def runner():
        store = InMemoryRecordStore()
        store.load(VEHICLES, [vehicle("TRK-001")])
        sync = LiveViewSynchronizer(store, vehicle_board_view())
        assert sync.snapshot is None
        await sync.start()
        await sync.wait_idle()
        result = (sync.snapshot, sync.recompute_count, sync.running)
        await sync.close()
        return result

    snapshot, count, running = asyncio.run(runner())
    assert count == 1
    assert running
    assert snapshot.version == 1
    assert snapshot.view == "vehicle-board"
    assert len(snapshot.payload.vehicles) == 1


def test_burst_of_writes_coalesces_into_one_recompute():
    async def runner():
        store = InMemoryRecordStore()
        sync = LiveViewSynchronizer(store, vehicle_board_view())
        await sync.start()
        await sync.wait_idle()
        for i in range(5):
            await store.insert(VEHICLES, vehicle(f"TRK-{i:03d}"))
        await sync.wait_idle()
        await sync.close()
        return sync

    sync = asyncio.run(runner())
    assert sync.recompute_count == 2
    assert sync.snapshot.version == 2
    assert sync.snapshot.payload.availability.counts["available"] == 5


def test_debounce_absorbs_writes_arriving_while_waiting():
    async def runner():
        store = InMemoryRecordStore()
        sync = LiveViewSynchronizer(store, vehicle_board_view(), debounce=0.05)
        await sync.start()
        await sync.wait_idle()
        await store.insert(VEHICLES, vehicle("TRK-001"))
        await asyncio.sleep(0.01)
        await store.insert(VEHICLES, vehicle("TRK-002"))
        await sync.wait_idle()
        await sync.close()
        return sync

    sync = asyncio.run(runner())
    assert sync.recompute_count == 2
    assert len(sync.snapshot.payload.vehicles) == 2


def test_changes_during_recompute_trigger_exactly_one_more():
    async def runner():
        store = GatedStore()
        store.gate = asyncio.Event()
        store.entered = asyncio.Event()
        sync = LiveViewSynchronizer(store, vehicle_board_view())
        await sync.start()
        await store.entered.wait()
        for i in range(3):
            await store.insert(VEHICLES, vehicle(f"TRK-{i:03d}"))
        store.gate.set()
        await sync.wait_idle()
        await sync.close()
        return sync

    sync = asyncio.run(runner())
    assert sync.recompute_count == 2
    assert sync.snapshot.version == 2
    assert len(sync.snapshot.payload.vehicles) == 3


def test_published_snapshots_are_never_mutated():
    async def runner():
        store = InMemoryRecordStore()
        store.load(VEHICLES, [vehicle("TRK-001")])
        sync = LiveViewSynchronizer(store, vehicle_board_view())
        await sync.start()
        await sync.wait_idle()
        first = sync.snapshot
        first_json = first.payload_json()
        await store.insert(VEHICLES, vehicle("TRK-002"))
        await sync.wait_idle()
        await sync.close()
        return first, first_json, sync.snapshot

    first, first_json, latest = asyncio.run(runner())
    assert first.version == 1
    assert first.payload_json() == first_json
    assert len(first.payload.vehicles) == 1
    assert latest.version == 2
    assert len(latest.payload.vehicles) == 2


def test_close_cancels_in_flight_fetch_and_releases_subscriptions():
    async def runner():
        store = GatedStore()
        store.gate = asyncio.Event()
        store.entered = asyncio.Event()
        sync = LiveViewSynchronizer(store, vehicle_board_view())
        await sync.start()
        await store.entered.wait()
        held = store.subscription_count
        await sync.close()
        store.gate.set()
        await store.insert(VEHICLES, vehicle("TRK-001"))
        await asyncio.sleep(0)
        return sync, held, store.subscription_count

    sync, held, left = asyncio.run(runner())
    assert held == 1
    assert left == 0
    assert sync.snapshot is None
    assert not sync.running


def test_closed_view_cannot_restart():
    async def runner():
        sync = LiveViewSynchronizer(InMemoryRecordStore(), vehicle_board_view())
        await sync.start()
        await sync.close()
        await sync.close()
        await sync.start()

    with pytest.raises(RuntimeError):
        asyncio.run(runner())


def test_store_failure_keeps_previous_snapshot():
    async def runner():
        store = InMemoryRecordStore()
        sync = LiveViewSynchronizer(store, vehicle_board_view())
        await sync.start()
        await sync.wait_idle()

        await store.insert(VEHICLES, vehicle("TRK-001"))
        store.fail_next("connection reset", collection=VEHICLES)
        await sync.wait_idle()
        failed = (sync.snapshot.version, str(sync.last_error), len(sync.snapshot.payload.vehicles))

        await store.insert(VEHICLES, vehicle("TRK-002"))
        await sync.wait_idle()
        await sync.close()
        return failed, sync

    failed, sync = asyncio.run(runner())
    assert failed == (1, "connection reset", 0)
    assert sync.last_error is None
    assert sync.snapshot.version == 2
    assert len(sync.snapshot.payload.vehicles) == 2


def test_listeners_receive_each_snapshot():
    seen = []

    async def runner():
        store = InMemoryRecordStore()
        async with LiveViewSynchronizer(store, vehicle_board_view()) as sync:
            remove = sync.add_listener(lambda snap: seen.append(snap.version))
            sync.add_listener(lambda snap: 1 / 0)
            await sync.wait_idle()
            await store.insert(VEHICLES, vehicle("TRK-001"))
            await sync.wait_idle()
            remove()
            await store.insert(VEHICLES, vehicle("TRK-002"))
            await sync.wait_idle()
        return store.subscription_count

    assert asyncio.run(runner()) == 0
    assert seen == [1, 2]


def test_operator_view_ignores_other_operators_writes():
    async def runner():
        store = InMemoryRecordStore()
        sync = LiveViewSynchronizer(store, operator_dashboard_view("op-a", DAY))
        await sync.start()
        await sync.wait_idle()
        await store.insert(LIFT_LOGS, lift("op-b", "08:00", 30))
        await sync.wait_idle()
        ignored = sync.recompute_count
        await store.insert(LIFT_LOGS, lift("op-a", "08:00", 25))
        await sync.wait_idle()
        await sync.close()
        return ignored, sync

    ignored, sync = asyncio.run(runner())
    assert ignored == 1
    assert sync.recompute_count == 2
    summary = sync.snapshot.payload.summary
    assert (summary.total_lifts, summary.hours_logged, summary.targets_met_count) == (25, 1, 1)


def test_unparseable_stored_row_keeps_view_serving(caplog):
    async def runner():
        store = LegacyRowStore()
        sync = LiveViewSynchronizer(store, operator_dashboard_view("op-a", DAY))
        await sync.start()
        await sync.wait_idle()

        store.legacy_delays.append({
            "id": "legacy-1", "operator_id": "op-a", "delay_date": "2026-03-02",
            "delay_start": "10:00", "delay_end": "10:20", "reason": "lunch", "duration_minutes": 20,
        })
        await store.insert(LIFT_LOGS, lift("op-a", "08:00", 30))
        await sync.wait_idle()
        failed = (sync.running, sync.snapshot.version, sync.last_error)

        store.legacy_delays.clear()
        await store.insert(LIFT_LOGS, lift("op-a", "09:00", 25))
        await sync.wait_idle()
        await sync.close()
        return failed, sync

    (running, version, error), sync = asyncio.run(runner())
    assert running
    assert version == 1
    assert isinstance(error, ValidationError)
    assert "recompute failed" in caplog.text
    assert sync.last_error is None
    assert sync.snapshot.version == 2
    assert sync.snapshot.payload.summary.total_lifts == 55


def test_operator_view_refreshes_when_log_moves_to_another_operator():
    async def runner():
        store = InMemoryRecordStore()
        sync = LiveViewSynchronizer(store, operator_dashboard_view("op-a", DAY))
        await sync.start()
        row = await store.insert(LIFT_LOGS, lift("op-a", "08:00", 30))
        await sync.wait_idle()
        before = (sync.recompute_count, sync.snapshot.payload.summary.total_lifts)
        await store.update(LIFT_LOGS, row["id"], {"operator_id": "op-b"})
        await sync.wait_idle()
        await sync.close()
        return before, sync

    before, sync = asyncio.run(runner())
    assert before == (1, 30)
    assert sync.recompute_count == 2
    assert sync.snapshot.payload.summary.total_lifts == 0
