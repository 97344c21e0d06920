# src/tasksync/tasks/entity_store.py

from __future__ import annotations

"""
Optimistic in-memory mirror of one remote table.

Every mutation follows the same protocol:
- validate locally (ValidationError is raised, nothing else is),
- apply the change to the local collection immediately and publish,
- await the persistence port,
- on success confirm (placeholder -> server entity, patched -> server entity),
- on failure roll back to the snapshot captured when the mutation was issued,
  record last_error, emit MutationFailed and return a failed MutationResult.

Per entity id the store keeps the chain of in-flight mutations. A failure only
restores its snapshot when no later mutation for that id is still in flight;
otherwise it hands the snapshot down the chain, so an older rollback never
clobbers a newer optimistic edit and a run of failures unwinds to the state
before the first one. A confirmed mutation rebases the ones issued before it,
so their late failures land on the confirmed state.
"""

import asyncio
import itertools
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from ..core.errors import NotFoundError, PendingEntityError, PersistenceError
from ..core.events import EventBus, MutationFailed, MutationKind, StoreUpdated
from ..core.ports import PersistencePort
from .task_models import Pending

logger = logging.getLogger(__name__)

E = TypeVar("E")


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True, slots=True)
class MutationResult(Generic[E]):
    ok: bool
    kind: MutationKind
    entity_id: str
    entity: E | None = None
    error: BaseException | None = None


@dataclass(slots=True, eq=False)
class _InFlight:
    token: int
    entity_id: str
    kind: MutationKind
    snapshot: Any
    index: int = 0


class EntityStore(Generic[E]):
    """
    Single source of truth for one entity collection.

    Only the methods of this class write the collection. Readers get tuple
    snapshots (get_all) so nothing they hold can change under them.
    """

    collection = "entities"

    def __init__(
        self,
        port: PersistencePort[E],
        *,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        temp_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._port = port
        self._bus = bus or EventBus()
        self._clock = clock or local_now
        self._new_temp_id = temp_id_factory or (lambda: uuid.uuid4().hex)

        self._items: list[Any] = []
        self._inflight: dict[str, list[_InFlight]] = {}
        self._tokens = itertools.count(1)
        self._submitting = 0

        self.is_loading = False
        self.last_error: BaseException | None = None

    # ---- accessors ----

    @property
    def port(self) -> PersistencePort[E]:
        return self._port

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def is_submitting(self) -> bool:
        return self._submitting > 0

    def has_inflight(self, entity_id: str) -> bool:
        return bool(self._inflight.get(entity_id))

    def get_all(self) -> tuple[E, ...]:
        return tuple(self._items)

    def get_by_id(self, entity_id: str) -> E | None:
        idx = self._index_of(entity_id)
        return self._items[idx] if idx != -1 else None

    def __len__(self) -> int:
        return len(self._items)

    def clear_error(self) -> None:
        self.last_error = None

    # ---- low-level helpers ----

    def _index_of(self, entity_id: str) -> int:
        for i, item in enumerate(self._items):
            if item.id == entity_id:
                return i
        return -1

    def _index_of_ref(self, ref: Any) -> int:
        for i, item in enumerate(self._items):
            if item.ref == ref:
                return i
        return -1

    def _index_of_confirmed(self, entity_id: str) -> int:
        for i, item in enumerate(self._items):
            if not item.is_pending and item.id == entity_id:
                return i
        return -1

    def _publish(self) -> None:
        self._bus.emit(StoreUpdated(collection=self.collection, items=tuple(self._items)))

    def _fail(self, kind: MutationKind, entity_id: str, error: BaseException) -> MutationResult[E]:
        self.last_error = error
        logger.warning("%s %s failed id=%s: %s", self.collection, kind.value, entity_id, error)
        self._bus.emit(
            MutationFailed(collection=self.collection, entity_id=entity_id, kind=kind, error=error)
        )
        return MutationResult(ok=False, kind=kind, entity_id=entity_id, error=error)

    def _begin(self, entity_id: str, kind: MutationKind, snapshot: Any, index: int) -> _InFlight:
        flight = _InFlight(
            token=next(self._tokens),
            entity_id=entity_id,
            kind=kind,
            snapshot=snapshot,
            index=index,
        )
        self._inflight.setdefault(entity_id, []).append(flight)
        self._submitting += 1
        return flight

    def _settle(self, flight: _InFlight) -> _InFlight | None:
        """
        Remove a finished mutation from its id's chain.

        Returns the next in-flight mutation for the same id, or None if this one
        was the latest.
        """
        self._submitting -= 1
        chain = self._inflight.get(flight.entity_id, [])
        pos = chain.index(flight)
        successor = chain[pos + 1] if pos + 1 < len(chain) else None
        del chain[pos]
        if not chain:
            self._inflight.pop(flight.entity_id, None)
        return successor

    def _confirm_earlier(self, flight: _InFlight, confirmed: Any) -> None:
        """
        Rebase mutations issued before a confirmed one onto the server result.

        A delete passes None so an earlier failure doesn't re-insert the row.
        """
        chain = self._inflight.get(flight.entity_id, [])
        for earlier in chain[: chain.index(flight)]:
            earlier.snapshot = confirmed

    def _rollback(self, flight: _InFlight) -> None:
        successor = self._settle(flight)
        if successor is not None:
            # A newer edit owns the visible state; it now rolls back to our base.
            successor.snapshot = flight.snapshot
            successor.index = flight.index
            logger.debug(
                "%s %s rollback superseded id=%s token=%s -> token=%s",
                self.collection,
                flight.kind.value,
                flight.entity_id,
                flight.token,
                successor.token,
            )
            return

        idx = self._index_of_confirmed(flight.entity_id)
        if flight.snapshot is None:
            # A later delete already committed.
            logger.debug("%s rollback skipped, id=%s deleted meanwhile", self.collection, flight.entity_id)
            if idx != -1:
                del self._items[idx]
        elif flight.kind is MutationKind.DELETE:
            if idx == -1:
                self._items.insert(min(flight.index, len(self._items)), flight.snapshot)
        elif idx != -1:
            self._items[idx] = flight.snapshot
        else:
            # Removed remotely meanwhile (reconciled away): nothing to restore into.
            logger.debug("%s rollback skipped, id=%s no longer present", self.collection, flight.entity_id)

        self._publish()

    # ---- hooks for subclasses ----

    def _on_created(self, entity: E) -> None:
        return

    def _on_deleted(self, entity_id: str) -> None:
        return

    # ---- public API ----

    async def load(self) -> list[E]:
        """
        Fetch the whole collection and replace local state.

        On failure the current collection is kept (stale beats empty).
        """
        self.is_loading = True
        try:
            items = await self._port.fetch_all()
        except Exception as e:
            logger.exception("%s fetch_all failed", self.collection)
            self.last_error = e
            return list(self._items)
        finally:
            self.is_loading = False

        self.replace_all(items)
        logger.info("%s loaded: %d items", self.collection, len(items))
        return list(self._items)

    def replace_all(self, items: Iterable[E]) -> None:
        """
        Replace the confirmed part of the collection wholesale.

        Placeholders of creates still in flight stay at the head so they don't
        flicker out; their own mutation removes or confirms them.
        """
        fresh = list(items)
        placeholders = [item for item in self._items if item.is_pending]
        self._items = placeholders + fresh
        self._publish()

    async def create(self, draft: Any) -> MutationResult[E]:
        draft.validate()

        temp = Pending(self._new_temp_id())
        placeholder = draft.to_entity(temp, self._clock())
        self._items.insert(0, placeholder)
        self._submitting += 1
        self._publish()
        logger.debug("%s create optimistic temp_id=%s", self.collection, temp.temp_id)

        try:
            confirmed = await self._port.create(draft)
            if confirmed is None or confirmed.is_pending:
                raise PersistenceError("create returned no confirmed entity")
        except asyncio.CancelledError:
            self._drop_placeholder(temp)
            raise
        except Exception as e:
            self._drop_placeholder(temp)
            return self._fail(MutationKind.CREATE, temp.temp_id, e)
        finally:
            self._submitting -= 1

        pos = self._index_of_ref(temp)
        existing = self._index_of_confirmed(confirmed.id)
        if existing != -1:
            # A refetch already delivered the new row; keep one copy.
            self._items[existing] = confirmed
            if pos != -1:
                del self._items[pos]
        elif pos != -1:
            self._items[pos] = confirmed
        else:
            self._items.insert(0, confirmed)

        self._on_created(confirmed)
        self._publish()
        logger.info("%s created id=%s (temp_id=%s)", self.collection, confirmed.id, temp.temp_id)
        return MutationResult(ok=True, kind=MutationKind.CREATE, entity_id=confirmed.id, entity=confirmed)

    def _drop_placeholder(self, temp: Pending) -> None:
        pos = self._index_of_ref(temp)
        if pos != -1:
            del self._items[pos]
        self._publish()

    def _target(self, kind: MutationKind, entity_id: str) -> tuple[int, Any] | MutationResult[E]:
        idx = self._index_of(entity_id)
        if idx == -1:
            return self._fail(kind, entity_id, NotFoundError(entity_id, self.collection))
        current = self._items[idx]
        if current.is_pending:
            return self._fail(kind, entity_id, PendingEntityError(entity_id))
        return idx, current

    async def update(self, patch: Any) -> MutationResult[E]:
        patch.validate()
        entity_id = patch.id

        target = self._target(MutationKind.UPDATE, entity_id)
        if isinstance(target, MutationResult):
            return target
        idx, current = target

        flight = self._begin(entity_id, MutationKind.UPDATE, current, idx)
        self._items[idx] = patch.apply(current, self._clock())
        self._publish()
        logger.debug("%s update optimistic id=%s token=%s", self.collection, entity_id, flight.token)

        try:
            confirmed = await self._port.update(entity_id, patch)
            if confirmed is None:
                raise PersistenceError("update returned no entity")
        except asyncio.CancelledError:
            self._rollback(flight)
            raise
        except Exception as e:
            self._rollback(flight)
            return self._fail(MutationKind.UPDATE, entity_id, e)

        self._confirm_earlier(flight, confirmed)
        successor = self._settle(flight)
        if successor is None:
            i = self._index_of_confirmed(entity_id)
            if i != -1:
                self._items[i] = confirmed
                self._publish()
        return MutationResult(ok=True, kind=MutationKind.UPDATE, entity_id=entity_id, entity=confirmed)

    async def delete(self, entity_id: str) -> MutationResult[E]:
        target = self._target(MutationKind.DELETE, entity_id)
        if isinstance(target, MutationResult):
            return target
        idx, current = target

        flight = self._begin(entity_id, MutationKind.DELETE, current, idx)
        del self._items[idx]
        self._publish()
        logger.debug("%s delete optimistic id=%s token=%s", self.collection, entity_id, flight.token)

        try:
            await self._port.delete(entity_id)
        except asyncio.CancelledError:
            self._rollback(flight)
            raise
        except Exception as e:
            self._rollback(flight)
            return self._fail(MutationKind.DELETE, entity_id, e)

        self._confirm_earlier(flight, None)
        if self._settle(flight) is None:
            # A refetch issued before the delete committed may have brought it back.
            i = self._index_of_confirmed(entity_id)
            if i != -1:
                del self._items[i]
                self._publish()

        self._on_deleted(entity_id)
        logger.info("%s deleted id=%s", self.collection, entity_id)
        return MutationResult(ok=True, kind=MutationKind.DELETE, entity_id=entity_id)
