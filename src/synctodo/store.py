"""
Synchronized collection store.

The store owns exactly one snapshot per owner. Each owner also has a version
stamp that is bumped on every successful local write; a snapshot is served
only while its version matches, so a read issued after a write never sees
pre-write state. Writes are not serialized against each other: two racing
writes to the same task resolve last-write-wins per field.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union
from uuid import UUID

import pydantic

from .errors import GatewayError, NotAuthenticated, TaskNotFoundError, ValidationError
from .filters import sort_tasks
from .models import TaskRow
from .ordering import plan_drag, reorder_within
from .repositories import TaskGateway, get_gateway
from .schemas import DragEvent, OrderUpdate, Task, TaskDraft, TaskUpdate

logger = logging.getLogger(__name__)

R = TypeVar("R")

PrincipalProvider = Callable[[], Optional[str]]
OrderInput = Union[OrderUpdate, Tuple[Any, Any], Mapping[str, Any]]


@dataclass(frozen=True)
class Snapshot:
    owner_id: str
    version: int
    tasks: Tuple[Task, ...]
    fetched_at: datetime


@dataclass(frozen=True)
class StoreChange:
    """Emitted to subscribers after a successful mutation."""
    owner_id: str
    version: int
    kind: str  # create | update | completion | delete | order
    task_ids: Tuple[UUID, ...]


Listener = Callable[[StoreChange], None]


@dataclass
class _OwnerState:
    version: int = 0
    snapshot: Optional[Snapshot] = None


def coerce_id(value: Any, field_name: str = "id") -> UUID:
    """Parse a task identifier, raising ValidationError for anything but a UUID."""
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be a valid UUID", field=field_name)


def _validate(model: type, data: Any) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError.from_pydantic(e) from e


# PUBLIC_INTERFACE
class TaskStore:
    """
    Holds the last-known server-consistent snapshot of the current owner's
    tasks and exposes the mutation entry points.

    Validation and principal resolution happen before any gateway call.
    """

    def __init__(self, gateway: TaskGateway, principal: PrincipalProvider) -> None:
        self._gateway = gateway
        self._principal = principal
        self._states: Dict[str, _OwnerState] = {}
        self._listeners: List[Listener] = []
        self._lock = RLock()

    # ---- principal / state ----

    def _owner(self) -> str:
        owner = self._principal()
        if not owner:
            raise NotAuthenticated()
        return owner

    def _state(self, owner: str) -> _OwnerState:
        with self._lock:
            return self._states.setdefault(owner, _OwnerState())

    def version(self) -> int:
        """Current write version of the owner's collection."""
        return self._state(self._owner()).version

    # ---- reads ----

    async def snapshot(self) -> Snapshot:
        owner = self._owner()
        state = self._state(owner)
        while True:
            snap = state.snapshot
            if snap is not None and snap.version == state.version:
                return snap
            await self._fetch(owner, state)

    async def read(self) -> Tuple[Task, ...]:
        """The owner's tasks sorted by order asc, created_at desc."""
        return (await self.snapshot()).tasks

    async def get(self, task_id: Any) -> Task:
        tid = coerce_id(task_id)
        for task in await self.read():
            if task.id == tid:
                return task
        raise TaskNotFoundError(tid)

    async def refresh(self) -> Snapshot:
        owner = self._owner()
        state = self._state(owner)
        state.snapshot = None
        return await self.snapshot()

    async def _fetch(self, owner: str, state: _OwnerState) -> None:
        started_at = state.version
        rows = await self._gateway.list(owner)
        tasks = tuple(sort_tasks(self._to_task(r) for r in rows))
        if state.version != started_at:
            # A write landed while we were fetching; this result may predate it
            logger.debug("Discarding fetch for owner=%s (version %s -> %s)", owner, started_at, state.version)
            return
        state.snapshot = Snapshot(owner_id=owner, version=started_at, tasks=tasks, fetched_at=datetime.now())
        logger.debug("Snapshot owner=%s version=%s size=%d", owner, started_at, len(tasks))

    @staticmethod
    def _to_task(row: TaskRow) -> Task:
        try:
            return Task.model_validate(row)
        except pydantic.ValidationError as e:
            raise GatewayError(f"Malformed task record from gateway: {e}") from e

    # ---- writes ----

    async def _write(self, owner: str, call: Awaitable[R]) -> R:
        try:
            return await call
        except Exception:
            # Remote state is unknown now; force the next read to refetch
            self._state(owner).snapshot = None
            raise

    async def _after_write(self, owner: str, kind: str, task_ids: Iterable[UUID]) -> None:
        state = self._state(owner)
        state.version += 1
        version = state.version
        ids = tuple(task_ids)
        logger.info("Write owner=%s kind=%s tasks=%d version=%s", owner, kind, len(ids), version)
        try:
            await self._fetch(owner, state)
        except GatewayError as e:
            logger.warning("Refetch after %s failed for owner=%s: %s", kind, owner, e)
        self._notify(StoreChange(owner_id=owner, version=version, kind=kind, task_ids=ids))

    async def create(self, draft: Union[TaskDraft, Mapping[str, Any]]) -> Task:
        validated: TaskDraft = _validate(TaskDraft, draft)
        owner = self._owner()
        row = await self._write(owner, self._gateway.insert(owner, validated))
        task = self._to_task(row)
        await self._after_write(owner, "create", (task.id,))
        return task

    async def update(self, task_id: Any, partial: Union[TaskUpdate, Mapping[str, Any]]) -> Task:
        tid = coerce_id(task_id)
        validated: TaskUpdate = _validate(TaskUpdate, partial)
        owner = self._owner()
        changes = validated.changes()
        if not changes:
            return await self.get(tid)
        row = await self._write(owner, self._gateway.update(owner, tid, changes))
        await self._after_write(owner, "update", (tid,))
        return self._to_task(row)

    async def set_completed(self, task_id: Any, completed: bool) -> Task:
        tid = coerce_id(task_id)
        if not isinstance(completed, bool):
            raise ValidationError("completed must be a boolean", field="completed")
        owner = self._owner()
        row = await self._write(owner, self._gateway.update(owner, tid, {"completed": completed}))
        await self._after_write(owner, "completion", (tid,))
        return self._to_task(row)

    async def delete(self, task_id: Any) -> None:
        tid = coerce_id(task_id)
        owner = self._owner()
        await self._write(owner, self._gateway.delete(owner, tid))
        await self._after_write(owner, "delete", (tid,))

    async def bulk_set_order(self, orders: Iterable[OrderInput]) -> List[OrderUpdate]:
        """Write several order values in a single gateway call. Empty input is a no-op."""
        updates = [self._order_update(o) for o in orders]
        seen = set()
        for u in updates:
            if u.id in seen:
                raise ValidationError(f"Duplicate id in order update: {u.id}", field="id")
            seen.add(u.id)
        owner = self._owner()
        if not updates:
            return []
        pairs = [(u.id, u.order) for u in updates]
        await self._write(owner, self._gateway.bulk_update_order(owner, pairs))
        await self._after_write(owner, "order", (u.id for u in updates))
        return updates

    @staticmethod
    def _order_update(value: OrderInput) -> OrderUpdate:
        if isinstance(value, OrderUpdate):
            return value
        if isinstance(value, tuple):
            if len(value) != 2:
                raise ValidationError("order update must be an (id, order) pair", field="order")
            task_id, order = value
            value = {"id": task_id, "order": order}
        data = dict(value)
        data["id"] = coerce_id(data.get("id"))
        order = data.get("order")
        if isinstance(order, bool) or not isinstance(order, int):
            raise ValidationError("order must be an integer", field="order")
        return _validate(OrderUpdate, data)

    # ---- reorder entry points ----

    async def move(self, view: Sequence[Task], task_id: Any, target_index: int) -> List[OrderUpdate]:
        """Relocate one task of a view (keyboard reorder); one bulk write, none for a no-op."""
        tid = coerce_id(task_id)
        collection = await self.read()
        updates = reorder_within(collection, view, tid, target_index)
        if not updates:
            return []
        return await self.bulk_set_order(updates)

    async def apply_drag(self, view: Sequence[Task], event: DragEvent) -> List[OrderUpdate]:
        """Apply a drag gesture; only a completed drop over another task writes."""
        collection = await self.read()
        updates = plan_drag(collection, view, event)
        if not updates:
            return []
        return await self.bulk_set_order(updates)

    # ---- subscriptions ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, change: StoreChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("Store listener failed for %s", change.kind)


# PUBLIC_INTERFACE
class StoreRegistry:
    """
    One TaskStore per owner, sharing a gateway, so each owner keeps a single
    authoritative snapshot across requests.
    """

    def __init__(self, gateway: TaskGateway) -> None:
        self._gateway = gateway
        self._stores: Dict[str, TaskStore] = {}
        self._lock = RLock()

    @property
    def gateway(self) -> TaskGateway:
        return self._gateway

    def for_owner(self, owner_id: Optional[str]) -> TaskStore:
        if not owner_id:
            # Unauthenticated callers get a store that refuses every operation
            return TaskStore(self._gateway, lambda: None)
        with self._lock:
            store = self._stores.get(owner_id)
            if store is None:
                store = TaskStore(self._gateway, lambda: owner_id)
                self._stores[owner_id] = store
            return store


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_registry() -> StoreRegistry:
    """Process-wide registry over the configured gateway."""
    return StoreRegistry(get_gateway())
