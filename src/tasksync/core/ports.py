# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
The remote data service and its realtime feed are collaborators: the stores
only know these two shapes, which keeps backends swappable and makes testing easy.
"""

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

E = TypeVar("E")

ChangeSignal = Callable[[], None]
# Payload-less "something changed" callback.

Unsubscribe = Callable[[], None]


class PersistencePort(Protocol[E]):
    """
    Remote CRUD over one table.

    Every call may fail; failures are raised (PersistenceError or anything else)
    and converted by the store at its mutation boundary.
    """

    async def fetch_all(self) -> list[E]: ...

    async def create(self, draft: Any) -> E: ...

    async def update(self, entity_id: str, patch: Any) -> E: ...

    async def delete(self, entity_id: str) -> None: ...


class ChangeFeedPort(Protocol):
    """
    Realtime change notifications for one table.

    The signal carries no payload; several may fire in rapid succession and each
    only means "local state may now be stale". It may be invoked from another thread.
    """

    def subscribe(self, on_change: ChangeSignal) -> Unsubscribe: ...
