# src/tasksync/tasks/reconciler.py

from __future__ import annotations

"""
Change-feed reconciler.

Listens to a payload-less change feed and, on every signal:
- issues a full refetch through the store's persistence port,
- applies the result only if it is still the most recently issued refetch
  (last-issued-wins; a slow older response never overwrites a newer one),
- replaces the store's collection wholesale.

A failed refetch is logged and emitted as ReconcileFailed; the store keeps its
last known-good collection. stop() is idempotent and guarantees that no
response arriving afterwards touches the store.
"""

import asyncio
import logging

from ..core.events import ReconcileFailed
from ..core.ports import ChangeFeedPort, Unsubscribe
from .entity_store import EntityStore

logger = logging.getLogger(__name__)


class ChangeFeedReconciler:
    def __init__(self, store: EntityStore, feed: ChangeFeedPort) -> None:
        self._store = store
        self._feed = feed
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._stopped = False

        self._issued = 0
        self._inflight: set[asyncio.Task[bool]] = set()

        self.last_error: BaseException | None = None
        self.applied_count = 0

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def issued_count(self) -> int:
        return self._issued

    def start(self) -> None:
        """Subscribe to the feed. Must be called from inside the running loop."""
        if self._unsubscribe is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._stopped = False
        self._unsubscribe = self._feed.subscribe(self._on_signal)
        logger.info("Reconciler started for %s", self._store.collection)

    def stop(self) -> None:
        if self._stopped and self._unsubscribe is None:
            return
        self._stopped = True

        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            try:
                unsubscribe()
            except Exception:
                logger.exception("Feed unsubscribe failed for %s", self._store.collection)

        for task in list(self._inflight):
            task.cancel()
        logger.info("Reconciler stopped for %s", self._store.collection)

    def _on_signal(self) -> None:
        loop = self._loop
        if loop is None or self._stopped:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._issue()
        else:
            # Feeds may call back from worker threads.
            loop.call_soon_threadsafe(self._issue)

    def _issue(self) -> asyncio.Task[bool] | None:
        if self._stopped:
            return None

        self._issued += 1
        token = self._issued
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._refetch(token))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        logger.debug("%s refetch issued token=%s", self._store.collection, token)
        return task

    async def refresh(self) -> bool:
        """Issue a refetch now and wait for it. True if its result was applied."""
        task = self._issue()
        if task is None:
            return False
        await asyncio.wait({task})
        return not task.cancelled() and task.result()

    async def _refetch(self, token: int) -> bool:
        collection = self._store.collection
        try:
            items = await self._store.port.fetch_all()
        except Exception as e:
            logger.exception("%s refetch failed token=%s; keeping current state", collection, token)
            self.last_error = e
            if not self._stopped:
                self._store.bus.emit(ReconcileFailed(collection=collection, error=e))
            return False

        if self._stopped:
            logger.debug("%s refetch token=%s arrived after stop; discarded", collection, token)
            return False

        if token != self._issued:
            logger.debug(
                "%s refetch token=%s superseded by token=%s; discarded",
                collection,
                token,
                self._issued,
            )
            return False

        self._store.replace_all(items)
        self.last_error = None
        self.applied_count += 1
        logger.debug("%s reconciled: %d items (token=%s)", collection, len(items), token)
        return True
