from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Any, Dict, List, Mapping, Sequence, Tuple
from uuid import UUID, uuid4

from .errors import TaskNotFoundError
from .models import TaskRow
from .schemas import TaskDraft
from .settings import get_settings

logger = logging.getLogger(__name__)

# Columns a partial update may touch. id, owner_id and created_at are immutable.
UPDATABLE_FIELDS = frozenset({"title", "completed", "due_at", "remind", "reminded", "tags", "order"})


# PUBLIC_INTERFACE
class TaskGateway(ABC):
    """
    Abstract contract for the remote task collection.

    Every call is scoped to one owner; rows of other owners are invisible and
    addressing them behaves exactly like addressing a missing row.
    """

    @abstractmethod
    async def list(self, owner_id: str) -> List[TaskRow]:
        """Return all rows of the owner, in any order."""

    @abstractmethod
    async def insert(self, owner_id: str, draft: TaskDraft) -> TaskRow:
        """Create a row from a validated draft. The gateway assigns id, created_at and order."""

    @abstractmethod
    async def update(self, owner_id: str, task_id: UUID, fields: Mapping[str, Any]) -> TaskRow:
        """Update the given columns of one row and return it. Raise TaskNotFoundError if missing."""

    @abstractmethod
    async def bulk_update_order(self, owner_id: str, orders: Sequence[Tuple[UUID, int]]) -> None:
        """Write several order values in one call. Raise TaskNotFoundError if any id is missing."""

    @abstractmethod
    async def delete(self, owner_id: str, task_id: UUID) -> None:
        """Delete one row. Raise TaskNotFoundError if missing."""


class InMemoryGateway(TaskGateway):
    """
    Thread-safe in-memory gateway suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[UUID, TaskRow] = {}

    def _now(self) -> datetime:
        return datetime.now()

    def _owned(self, owner_id: str, task_id: UUID) -> TaskRow:
        item = self._items.get(task_id)
        if item is None or item["owner_id"] != owner_id:
            raise TaskNotFoundError(task_id)
        return item

    async def list(self, owner_id: str) -> List[TaskRow]:
        with self._lock:
            # Return copies to avoid external mutation
            return [_copy_row(t) for t in self._items.values() if t["owner_id"] == owner_id]

    async def insert(self, owner_id: str, draft: TaskDraft) -> TaskRow:
        row: TaskRow = {
            "id": uuid4(),
            "title": draft.title,
            "completed": False,
            "created_at": self._now(),
            "owner_id": owner_id,
            "due_at": draft.due_at,
            "remind": draft.remind,
            "reminded": False,
            "tags": list(draft.tags),
            "order": 0,
        }
        with self._lock:
            self._items[row["id"]] = row
        logger.debug("insert owner=%s id=%s", owner_id, row["id"])
        return _copy_row(row)

    async def update(self, owner_id: str, task_id: UUID, fields: Mapping[str, Any]) -> TaskRow:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        with self._lock:
            existing = self._owned(owner_id, task_id)
            updated = _copy_row(existing)
            for key, value in fields.items():
                updated[key] = list(value) if key == "tags" and value is not None else value  # type: ignore[literal-required]
            self._items[task_id] = updated
            return _copy_row(updated)

    async def bulk_update_order(self, owner_id: str, orders: Sequence[Tuple[UUID, int]]) -> None:
        with self._lock:
            # Check every id first so the batch applies entirely or not at all
            for task_id, _ in orders:
                self._owned(owner_id, task_id)
            for task_id, order in orders:
                self._items[task_id]["order"] = order

    async def delete(self, owner_id: str, task_id: UUID) -> None:
        with self._lock:
            self._owned(owner_id, task_id)
            del self._items[task_id]


def _copy_row(row: TaskRow) -> TaskRow:
    copied = row.copy()
    copied["tags"] = list(row["tags"]) if row["tags"] is not None else None
    return copied


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_gateway() -> TaskGateway:
    """
    Factory returning the configured gateway based on settings.
    - memory: InMemoryGateway
    - sqlite: SQLiteGateway

    The instance is cached so every request shares the same collection.
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteGateway

        logger.info("Using SQLite gateway at %s", settings.sqlite_db_path)
        return SQLiteGateway(settings.sqlite_db_path)
    logger.info("Using in-memory gateway")
    return InMemoryGateway()
