# src/tasksync/core/errors.py

"""
Exception hierarchy for the sync core.

Only ValidationError is meant to reach callers directly. Everything raised by a
persistence port is caught at the store's mutation boundary and turned into a
failed MutationResult.
"""

from __future__ import annotations


class TaskSyncError(Exception):
    """Base class for all tasksync errors."""


class ValidationError(TaskSyncError, ValueError):
    """Draft or patch rejected locally, before any state change or network call."""


class PersistenceError(TaskSyncError):
    """A persistence port call failed (network, remote rejection, ...)."""


class NotFoundError(PersistenceError):
    def __init__(self, entity_id: str, kind: str = "entity") -> None:
        super().__init__(f"{kind} {entity_id!r} not found")
        self.entity_id = entity_id
        self.kind = kind


class PendingEntityError(TaskSyncError):
    """Mutation targeted a placeholder whose creation is still in flight."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"{entity_id!r} is still being created")
        self.entity_id = entity_id
