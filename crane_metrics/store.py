"""
Record store adapter: fetch-by-filter, insert/update and change
notification over the entity collections.

RecordStore is the interface the rest of the package consumes.
InMemoryRecordStore is a reference implementation that behaves like the
hosted store: it assigns ids, rejects rows that break the hosted
column checks (reason and status enums, lifts_count range, delay range),
fills write-time derived columns (``target_met``, ``duration_minutes``)
and notifies subscribers after every successful write.

To back the engine with a real database:
    Subclass RecordStore, translate Filter objects into the backend's
    query language, and bridge its change feed to ``_notify``-style
    callbacks. Nothing downstream changes.
"""

from __future__ import annotations

import abc
import asyncio
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Sequence

from .calculators import compute_duration_minutes, compute_target_met
from .config import (
    COLLECTIONS,
    DELAY_RECORDS,
    DELAY_REASON_REGISTRY,
    LIFT_LOGS,
    MAX_LIFTS_PER_HOUR,
    MIN_LIFTS_PER_HOUR,
    VEHICLE_STATUS_REGISTRY,
    VEHICLES,
)
from .errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

_FILTER_OPS = ("eq", "gte", "lte", "in")


@dataclass(frozen=True)
class Filter:
    """One query predicate: equality, inclusive range bound, or in-set."""

    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _FILTER_OPS:
            raise ValueError(f"Unsupported filter op {self.op!r}; expected one of {_FILTER_OPS}")

    def matches(self, row: dict) -> bool:
        actual = row.get(self.field)
        if self.op == "eq":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "gte":
            return actual >= self.value
        return actual <= self.value


def eq(field_name: str, value: Any) -> Filter:
    return Filter(field_name, "eq", value)


def gte(field_name: str, value: Any) -> Filter:
    return Filter(field_name, "gte", value)


def lte(field_name: str, value: Any) -> Filter:
    return Filter(field_name, "lte", value)


def in_(field_name: str, values: Iterable[Any]) -> Filter:
    return Filter(field_name, "in", frozenset(values))


def between(field_name: str, start: Any, end: Any) -> list[Filter]:
    """Inclusive ``[start, end]`` range as a pair of filters."""
    return [gte(field_name, start), lte(field_name, end)]


@dataclass(frozen=True)
class ChangeEvent:
    """Delivered to subscribers after a write lands in a collection."""

    collection: str
    kind: str  # "insert" or "update"
    record: dict = field(compare=False)
    previous: Optional[dict] = field(default=None, compare=False)

    def concerns(self, predicate: Callable[[dict], bool]) -> bool:
        """True when the row matches ``predicate`` after the write or matched it before."""
        if predicate(self.record):
            return True
        return self.previous is not None and predicate(self.previous)


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int
    collection: str


OnChange = Callable[[ChangeEvent], None]
Predicate = Callable[[dict], bool]


class RecordStore(abc.ABC):
    """Async record store interface consumed by the engine."""

    @abc.abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[Sequence[tuple[str, bool]]] = None,
    ) -> list[dict]:
        """Return matching rows. ``order_by`` is a list of (field, ascending)."""

    @abc.abstractmethod
    async def insert(self, collection: str, record: dict) -> dict:
        """Insert a row and return it as stored. Raises StoreError."""

    @abc.abstractmethod
    async def update(self, collection: str, record_id: str, patch: dict) -> dict:
        """Patch a row by id and return it as stored. Raises StoreError."""

    @abc.abstractmethod
    def subscribe(
        self,
        collection: str,
        on_change: OnChange,
        predicate: Optional[Predicate] = None,
    ) -> SubscriptionHandle:
        """Register ``on_change`` for writes to ``collection``.

        With ``predicate``, only writes whose row matches it, before or
        after the write, are delivered.
        """

    @abc.abstractmethod
    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Release a subscription. Unknown handles are ignored."""


@dataclass
class _Subscription:
    handle: SubscriptionHandle
    on_change: OnChange
    predicate: Optional[Predicate]


class InMemoryRecordStore(RecordStore):
    """Dict-backed store with the hosted store's write-time behaviour.

    Parameters
    ----------
    latency : Seconds every call waits before touching data. 0 means the
              call completes without yielding to the event loop.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._tables: dict[str, dict[str, dict]] = {name: {} for name in COLLECTIONS}
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count(1)
        self._failures: list[tuple[Optional[str], str]] = []

    # ------------------------------------------------------------------
    # Test hooks
    # ------------------------------------------------------------------
    def fail_next(self, message: str, collection: Optional[str] = None) -> None:
        """Make the next call (optionally only for ``collection``) raise StoreError."""
        self._failures.append((collection, message))

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def load(self, collection: str, rows: Iterable[dict]) -> int:
        """Bulk-load rows as stored, without notifying subscribers."""
        table = self._table(collection)
        count = 0
        for row in rows:
            stored = self._with_derived(collection, {"id": str(uuid.uuid4()), **row})
            table[stored["id"]] = stored
            count += 1
        logger.info("Loaded %d rows into %s", count, collection)
        return count

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------
    async def query(self, collection, filters=None, order_by=None):
        await self._io(collection)
        rows = [
            dict(row)
            for row in self._table(collection).values()
            if all(f.matches(row) for f in (filters or ()))
        ]
        # Stable sorts applied last key first give a multi-key ordering
        for field_name, ascending in reversed(list(order_by or ())):
            rows.sort(key=lambda r: (r.get(field_name) is None, r.get(field_name)), reverse=not ascending)
        return rows

    async def insert(self, collection, record):
        await self._io(collection)
        table = self._table(collection)
        now = _utc_now()
        row = {"id": str(uuid.uuid4()), **record, "created_at": now, "updated_at": now}
        if row["id"] in table:
            raise StoreError(f"duplicate key value violates unique constraint on {collection}.id", collection)
        row = self._with_derived(collection, row)
        table[row["id"]] = row
        self._notify(ChangeEvent(collection, "insert", dict(row)))
        return dict(row)

    async def update(self, collection, record_id, patch):
        await self._io(collection)
        table = self._table(collection)
        if record_id not in table:
            raise StoreError(f"No row in {collection} with id {record_id!r}", collection)
        previous = table[record_id]
        row = {**previous, **patch, "id": record_id, "updated_at": _utc_now()}
        row = self._with_derived(collection, row)
        table[record_id] = row
        self._notify(ChangeEvent(collection, "update", dict(row), dict(previous)))
        return dict(row)

    def subscribe(self, collection, on_change, predicate=None):
        self._table(collection)
        handle = SubscriptionHandle(next(self._ids), collection)
        self._subscriptions[handle.id] = _Subscription(handle, on_change, predicate)
        logger.debug("Subscribed %d to %s", handle.id, collection)
        return handle

    def unsubscribe(self, handle):
        if self._subscriptions.pop(handle.id, None) is not None:
            logger.debug("Unsubscribed %d from %s", handle.id, handle.collection)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _table(self, collection: str) -> dict[str, dict]:
        try:
            return self._tables[collection]
        except KeyError:
            raise StoreError(f"Unknown collection: {collection}", collection) from None

    async def _io(self, collection: str) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        for i, (target, message) in enumerate(self._failures):
            if target is None or target == collection:
                del self._failures[i]
                raise StoreError(message, collection)

    def _with_derived(self, collection: str, row: dict) -> dict:
        """Enforce the hosted store's column checks and fill write-time columns."""
        try:
            if collection == LIFT_LOGS and "lifts_count" in row:
                lifts = int(row["lifts_count"])
                if not MIN_LIFTS_PER_HOUR <= lifts <= MAX_LIFTS_PER_HOUR:
                    raise ValueError(f"lifts_count {lifts} outside {MIN_LIFTS_PER_HOUR}..{MAX_LIFTS_PER_HOUR}")
                row["target_met"] = compute_target_met(lifts)
            elif collection == DELAY_RECORDS:
                if "reason" in row and row["reason"] not in DELAY_REASON_REGISTRY:
                    raise ValueError(f"invalid delay_reason {row['reason']!r}")
                if row.get("delay_start") and row.get("delay_end"):
                    row["duration_minutes"] = compute_duration_minutes(row["delay_start"], row["delay_end"])
            elif collection == VEHICLES:
                if "status" in row and row["status"] not in VEHICLE_STATUS_REGISTRY:
                    raise ValueError(f"invalid vehicle_status {row['status']!r}")
        except (ValidationError, TypeError, ValueError) as exc:
            raise StoreError(f"new row for {collection} violates check constraint: {exc}", collection) from exc
        return row

    def _notify(self, event: ChangeEvent) -> None:
        for sub in list(self._subscriptions.values()):
            if sub.handle.collection != event.collection:
                continue
            if sub.predicate is not None and not event.concerns(sub.predicate):
                continue
            try:
                sub.on_change(event)
            except Exception:
                # A broken subscriber must not fail the writer's insert
                logger.exception("Subscriber %d raised on %s change", sub.handle.id, event.collection)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
