from __future__ import annotations

from datetime import date
from typing import Dict, List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ..auth import get_current_owner
from ..filters import FilterCriteria, apply_filters, collect_tags, due_labels, summarize
from ..schemas import DragEvent, OrderUpdate, Task, TaskDraft, TaskUpdate
from ..store import StoreRegistry, TaskStore, get_registry
from ..utils import view_envelope

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


class ViewEnvelope(BaseModel):
    """
    Envelope for list responses.
    """
    items: List[Task] = Field(..., description="Tasks of the filtered view, in display order")
    total: int = Field(..., description="Number of tasks in the collection")
    active: int = Field(..., description="Number of incomplete tasks in the collection")
    completed: int = Field(..., description="Number of completed tasks in the collection")
    tags: List[str] = Field(..., description="All tags used in the collection")
    version: int = Field(..., description="Snapshot version the view was derived from")
    due_labels: Dict[UUID, str] = Field(
        default_factory=dict,
        description="overdue / today / tomorrow label per task id of the view; tasks without one are omitted",
    )


class ViewFilters(BaseModel):
    """Filters describing the view a reorder gesture happened in."""
    status: Literal["all", "active", "completed"] = "all"
    search: Optional[str] = None
    tag: Optional[str] = None

    def criteria(self) -> FilterCriteria:
        return FilterCriteria(status=self.status, search=self.search, tag=self.tag)


class CompletedBody(BaseModel):
    completed: bool


class MoveRequest(BaseModel):
    id: str = Field(..., description="Task to move")
    position: int = Field(..., description="Target index within the filtered view")
    filters: ViewFilters = Field(default_factory=ViewFilters)


class DragRequest(BaseModel):
    event: DragEvent
    filters: ViewFilters = Field(default_factory=ViewFilters)


class ReorderResult(BaseModel):
    moved: bool = Field(..., description="Whether any order value was written")
    updates: List[OrderUpdate] = Field(default_factory=list)


def get_store(
    owner_id: Optional[str] = Depends(get_current_owner),
    registry: StoreRegistry = Depends(get_registry),
) -> TaskStore:
    """
    Dependency resolving the store of the current owner.
    """
    return registry.for_owner(owner_id)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=ViewEnvelope,
    summary="List Tasks",
    description=(
        "Return the owner's tasks as a filtered view.\n\n"
        "Query parameters:\n"
        "- status: all, active or completed\n"
        "- q: case-insensitive title search (substring match)\n"
        "- tag: only tasks carrying this tag\n"
        "- refresh: refetch the collection instead of serving the cached snapshot\n\n"
        "Items are ordered by order ascending, newest first on ties."
    ),
)
async def list_tasks(
    status_filter: Literal["all", "active", "completed"] = Query("all", alias="status"),
    q: Optional[str] = Query(None, description="Search text for the title"),
    tag: Optional[str] = Query(None, description="Tag to filter by"),
    refresh: bool = Query(False, description="Force a refetch of the collection"),
    store: TaskStore = Depends(get_store),
) -> ViewEnvelope:
    snapshot = await store.refresh() if refresh else await store.snapshot()
    view = apply_filters(snapshot.tasks, FilterCriteria(status=status_filter, search=q, tag=tag))
    envelope = view_envelope(
        items=view,
        summary=summarize(snapshot.tasks),
        tags=collect_tags(snapshot.tasks),
        version=snapshot.version,
        due_labels=due_labels(view, date.today()),
    )
    return ViewEnvelope(**envelope)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=Task,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    responses={422: {"description": "Validation error"}},
)
async def create_task(payload: TaskDraft, store: TaskStore = Depends(get_store)) -> Task:
    return await store.create(payload)


# PUBLIC_INTERFACE
@router.put(
    "/order",
    response_model=ReorderResult,
    summary="Set Order",
    description="Write several order values in one request.",
)
async def set_order(updates: List[OrderUpdate], store: TaskStore = Depends(get_store)) -> ReorderResult:
    written = await store.bulk_set_order(updates)
    return ReorderResult(moved=bool(written), updates=written)


# PUBLIC_INTERFACE
@router.post(
    "/move",
    response_model=ReorderResult,
    summary="Move Task",
    description="Move one task to a position of the filtered view (keyboard reorder).",
)
async def move_task(payload: MoveRequest, store: TaskStore = Depends(get_store)) -> ReorderResult:
    view = apply_filters(await store.read(), payload.filters.criteria())
    written = await store.move(view, payload.id, payload.position)
    return ReorderResult(moved=bool(written), updates=written)


# PUBLIC_INTERFACE
@router.post(
    "/drag",
    response_model=ReorderResult,
    summary="Drag Event",
    description="Report a drag gesture event; only an 'ended' drop over another task reorders.",
)
async def drag_task(payload: DragRequest, store: TaskStore = Depends(get_store)) -> ReorderResult:
    view = apply_filters(await store.read(), payload.filters.criteria())
    written = await store.apply_drag(view, payload.event)
    return ReorderResult(moved=bool(written), updates=written)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=Task,
    summary="Get Task",
    responses={404: {"description": "Task not found"}},
)
async def get_task(task_id: str, store: TaskStore = Depends(get_store)) -> Task:
    return await store.get(task_id)


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=Task,
    summary="Update Task",
    description="Partially update fields of a task.",
    responses={404: {"description": "Task not found"}},
)
async def patch_task(task_id: str, payload: TaskUpdate, store: TaskStore = Depends(get_store)) -> Task:
    return await store.update(task_id, payload)


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}/completed",
    response_model=Task,
    summary="Set Completion",
    responses={404: {"description": "Task not found"}},
)
async def set_completed(task_id: str, payload: CompletedBody, store: TaskStore = Depends(get_store)) -> Task:
    return await store.set_completed(task_id, payload.completed)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    responses={404: {"description": "Task not found"}},
)
async def delete_task(task_id: str, store: TaskStore = Depends(get_store)) -> Response:
    await store.delete(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
