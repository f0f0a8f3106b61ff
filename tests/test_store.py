import asyncio

import pytest

from crane_metrics.errors import StoreError
from crane_metrics.store import InMemoryRecordStore, between, eq, in_


def test_insert_fills_write_time_columns():
    async def runner():
        store = InMemoryRecordStore()
        lift = await store.insert("lift_logs", {
            "operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": 24,
        })
        delay = await store.insert("delay_records", {
            "operator_id": "op-a", "delay_date": "2026-03-02", "delay_start": "10:00",
            "delay_end": "10:40", "reason": "operator_break",
        })
        return lift, delay

    lift, delay = asyncio.run(runner())
    assert lift["target_met"] is True
    assert lift["id"]
    assert delay["duration_minutes"] == 40


def test_inverted_delay_violates_constraint():
    async def runner():
        store = InMemoryRecordStore()
        await store.insert("delay_records", {
            "operator_id": "op-a", "delay_date": "2026-03-02", "delay_start": "11:00",
            "delay_end": "10:00", "reason": "operator_break",
        })

    with pytest.raises(StoreError):
        asyncio.run(runner())


def test_query_filters_and_ordering():
    async def runner():
        store = InMemoryRecordStore()
        store.load("lift_logs", [
            {"id": "1", "operator_id": "op-a", "log_date": "2026-03-01", "hour_slot": "09:00", "lifts_count": 10},
            {"id": "2", "operator_id": "op-b", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": 30},
            {"id": "3", "operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "10:00", "lifts_count": 20},
            {"id": "4", "operator_id": "op-c", "log_date": "2026-03-04", "hour_slot": "07:00", "lifts_count": 25},
        ])
        ranged = await store.query(
            "lift_logs",
            [in_("operator_id", ["op-a", "op-b"]), *between("log_date", "2026-03-01", "2026-03-02")],
            [("log_date", False), ("hour_slot", True)],
        )
        single = await store.query("lift_logs", [eq("operator_id", "op-c")])
        return ranged, single

    ranged, single = asyncio.run(runner())
    assert [r["id"] for r in ranged] == ["2", "3", "1"]
    assert [r["id"] for r in single] == ["4"]
    assert single[0]["target_met"] is True


def test_subscribers_notified_with_predicate_and_released():
    seen = []

    async def runner():
        store = InMemoryRecordStore()
        handle = store.subscribe("lift_logs", seen.append, lambda row: row["operator_id"] == "op-a")
        other = store.subscribe("delay_records", seen.append)
        await store.insert("lift_logs", {"operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": 1})
        await store.insert("lift_logs", {"operator_id": "op-b", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": 1})
        assert store.subscription_count == 2
        store.unsubscribe(handle)
        store.unsubscribe(other)
        store.unsubscribe(other)
        await store.insert("lift_logs", {"operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "09:00", "lifts_count": 1})
        return store.subscription_count

    assert asyncio.run(runner()) == 0
    assert [(e.collection, e.kind, e.record["operator_id"]) for e in seen] == [("lift_logs", "insert", "op-a")]


def test_update_and_injected_failures():
    async def runner():
        store = InMemoryRecordStore()
        vehicle = await store.insert("vehicles", {"vehicle_number": "TRK-1", "vehicle_type": "Truck", "status": "available"})
        updated = await store.update("vehicles", vehicle["id"], {"status": "maintenance"})
        store.fail_next("permission denied", collection="vehicles")
        with pytest.raises(StoreError, match="permission denied"):
            await store.query("vehicles")
        with pytest.raises(StoreError):
            await store.update("vehicles", "missing", {"status": "available"})
        rows = await store.query("vehicles")
        return updated, rows

    updated, rows = asyncio.run(runner())
    assert updated["status"] == "maintenance"
    assert rows[0]["status"] == "maintenance"


@pytest.mark.parametrize("collection, row", [
    ("lift_logs", {"operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": 101}),
    ("lift_logs", {"operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": -1}),
    ("delay_records", {"operator_id": "op-a", "delay_date": "2026-03-02", "delay_start": "10:00",
                       "delay_end": "10:20", "reason": "lunch"}),
    ("vehicles", {"vehicle_number": "TRK-1", "vehicle_type": "Truck", "status": "parked"}),
])
def test_rows_breaking_column_checks_are_refused(collection, row):
    store = InMemoryRecordStore()
    with pytest.raises(StoreError, match="violates check constraint"):
        asyncio.run(store.insert(collection, row))
    with pytest.raises(StoreError):
        store.load(collection, [row])
    assert asyncio.run(store.query(collection)) == []


def test_status_update_to_unknown_value_is_refused():
    async def runner():
        store = InMemoryRecordStore()
        vehicle = await store.insert("vehicles", {"vehicle_number": "TRK-1", "vehicle_type": "Truck", "status": "available"})
        with pytest.raises(StoreError, match="violates check constraint"):
            await store.update("vehicles", vehicle["id"], {"status": "parked"})
        return await store.query("vehicles")

    assert asyncio.run(runner())[0]["status"] == "available"


def test_update_moving_row_away_reaches_old_owner():
    seen = []

    async def runner():
        store = InMemoryRecordStore()
        row = await store.insert("lift_logs", {"operator_id": "op-a", "log_date": "2026-03-02", "hour_slot": "08:00", "lifts_count": 20})
        store.subscribe("lift_logs", seen.append, lambda r: r["operator_id"] == "op-a")
        await store.update("lift_logs", row["id"], {"operator_id": "op-b"})

    asyncio.run(runner())
    assert len(seen) == 1
    assert seen[0].kind == "update"
    assert seen[0].record["operator_id"] == "op-b"
    assert seen[0].previous["operator_id"] == "op-a"
