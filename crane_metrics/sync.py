"""
Live view synchronizer: keep one dashboard view's snapshot fresh while
the record store changes underneath it.

Store change callbacks only push the collection name onto a queue. A
single consumer task drains that queue: it waits for the first change,
yields for the debounce interval, takes everything queued since, and
runs one full recompute (fresh fetch + pure compute). Changes that land
while a recompute is in flight stay queued and produce exactly one
follow-up recompute. The new Snapshot replaces the old one in a single
assignment, so readers see either the old view or the new one.

A recompute that fails, whether the store refuses the fetch or a stored
row will not parse, keeps the previous snapshot and records the error
in ``last_error``. The loop keeps serving the queue and the next change
retries.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from . import config
from .errors import StoreError
from .models import Snapshot, ViewModel
from .store import ChangeEvent, RecordStore, SubscriptionHandle

logger = logging.getLogger(__name__)

Listener = Callable[[Snapshot], None]


@dataclass(frozen=True)
class ViewDefinition:
    """What a view reads and how it turns records into a payload.

    Attributes
    ----------
    name : Identifies the view in logs and snapshots.
    collections : Collections whose changes make the view stale.
    fetch : Queries the store for the view's full window.
    compute : Pure function from fetched records to the view payload.
    predicate : Optional per-record filter applied to change events.
    """

    name: str
    collections: tuple[str, ...]
    fetch: Callable[[RecordStore], Awaitable[Any]]
    compute: Callable[[Any], ViewModel]
    predicate: Optional[Callable[[dict], bool]] = field(default=None, compare=False)

    async def build(self, store: RecordStore) -> ViewModel:
        records = await self.fetch(store)
        return self.compute(records)


class LiveViewSynchronizer:
    """Owns the subscriptions, recompute loop and current snapshot of one view."""

    def __init__(
        self,
        store: RecordStore,
        view: ViewDefinition,
        debounce: Optional[float] = None,
    ):
        self._store = store
        self._view = view
        self._debounce = config.SYNC_DEBOUNCE_SECONDS if debounce is None else debounce
        self._changes: asyncio.Queue[str] = asyncio.Queue()
        self._handles: list[SubscriptionHandle] = []
        self._listeners: list[Listener] = []
        self._task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._closed = False
        self._snapshot: Optional[Snapshot] = None
        self._version = 0
        self.recompute_count = 0
        self.last_error: Optional[Exception] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def view(self) -> ViewDefinition:
        return self._view

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """Latest published snapshot, or None before the first recompute."""
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot; returns a remover."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    async def start(self) -> None:
        """Subscribe to every collection and schedule the initial recompute."""
        if self._closed:
            raise RuntimeError(f"View {self._view.name!r} was closed and cannot restart")
        if self._task is not None:
            return

        for collection in self._view.collections:
            handle = self._store.subscribe(collection, self._on_change, self._view.predicate)
            self._handles.append(handle)

        self._task = asyncio.create_task(self._run(), name=f"sync-{self._view.name}")
        self._request("initial")
        logger.info(
            "View %s started with %d subscriptions", self._view.name, len(self._handles)
        )

    async def close(self) -> None:
        """Release subscriptions and cancel pending work.

        An in-flight fetch is cancelled and its result is never published.
        """
        if self._closed:
            return
        self._closed = True

        for handle in self._handles:
            self._store.unsubscribe(handle)
        self._handles.clear()

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._idle.set()
        logger.info("View %s closed", self._view.name)

    async def wait_idle(self) -> None:
        """Return once no change is queued and no recompute is running."""
        if self._task is None:
            return
        idle = asyncio.ensure_future(self._idle.wait())
        try:
            await asyncio.wait({idle, self._task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            idle.cancel()
        # Surface a crashed recompute loop instead of waiting forever
        if self._task.done() and not self._task.cancelled():
            self._task.result()

    async def __aenter__(self) -> LiveViewSynchronizer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_change(self, event: ChangeEvent) -> None:
        self._request(event.collection)

    def _request(self, reason: str) -> None:
        if self._closed:
            return
        self._idle.clear()
        self._changes.put_nowait(reason)

    def _drain(self, first: str) -> set[str]:
        batch = {first}
        while True:
            try:
                batch.add(self._changes.get_nowait())
            except asyncio.QueueEmpty:
                return batch

    async def _run(self) -> None:
        while True:
            first = await self._changes.get()
            # Let the rest of a write burst land before refetching
            await asyncio.sleep(self._debounce)
            batch = self._drain(first)
            logger.debug("View %s recomputing for %s", self._view.name, sorted(batch))

            await self._recompute()

            if self._changes.empty():
                self._idle.set()

    async def _recompute(self) -> None:
        self.recompute_count += 1
        try:
            payload = await self._view.build(self._store)
        except StoreError as exc:
            self.last_error = exc
            logger.warning(
                "View %s kept its previous snapshot; store failed: %s", self._view.name, exc
            )
            return
        except Exception as exc:
            # Typically a stored row that no longer parses
            self.last_error = exc
            logger.exception("View %s kept its previous snapshot; recompute failed", self._view.name)
            return

        if self._closed:
            logger.warning("View %s discarded a result computed after close", self._view.name)
            return

        self._version += 1
        self.last_error = None
        self._snapshot = Snapshot(view=self._view.name, version=self._version, payload=payload)
        logger.info("View %s published snapshot v%d", self._view.name, self._version)

        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Listener on view %s failed", self._view.name)
