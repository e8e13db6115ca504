"""
Reordering of task views.

A reorder is an array move (one record relocated, all others keep their
relative order) followed by assigning `order := position`. Only order values
are ever produced here; titles, tags, dates and completion are untouched.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, TypeVar
from uuid import UUID

from .errors import ValidationError
from .filters import sort_tasks
from .schemas import DragEnded, DragEvent, OrderUpdate, Task

T = TypeVar("T")


# PUBLIC_INTERFACE
def array_move(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """Return a copy of `items` with the element at `from_index` relocated to `to_index`."""
    n = len(items)
    if not (0 <= from_index < n):
        raise IndexError(f"from_index {from_index} out of range")
    if not (0 <= to_index < n):
        raise IndexError(f"to_index {to_index} out of range")
    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


def _index_of(view: Sequence[Task], task_id: UUID) -> int:
    for i, task in enumerate(view):
        if task.id == task_id:
            return i
    raise ValidationError(f"Task {task_id} is not part of the current view", field="id")


def _check_target(view: Sequence[Task], target_index: int) -> None:
    if isinstance(target_index, bool) or not isinstance(target_index, int):
        raise ValidationError("position must be an integer", field="position")
    if not (0 <= target_index < len(view)):
        raise ValidationError(
            f"position must be between 0 and {len(view) - 1}", field="position"
        )


def _sequence(tasks: Sequence[Task]) -> List[OrderUpdate]:
    return [OrderUpdate(id=t.id, order=i) for i, t in enumerate(tasks)]


# PUBLIC_INTERFACE
def reorder(view: Sequence[Task], moved_id: UUID, target_index: int) -> List[OrderUpdate]:
    """
    Move one task of a view to `target_index` and resequence the view 0..n-1.

    Returns an empty list when the task already sits at the target (no write
    should be issued).
    """
    source = _index_of(view, moved_id)
    _check_target(view, target_index)
    if source == target_index:
        return []
    return _sequence(array_move(view, source, target_index))


# PUBLIC_INTERFACE
def reorder_within(
    collection: Sequence[Task],
    view: Sequence[Task],
    moved_id: UUID,
    target_index: int,
) -> List[OrderUpdate]:
    """
    Reorder a filtered view without corrupting the collection's total order.

    When the view covers the whole collection this is `reorder`. Otherwise the
    moved view is written back into the slots its records occupy in the sorted
    collection, hidden records keep their slots, and the whole collection is
    resequenced 0..N-1 so no visible index collides with a hidden one.
    """
    source = _index_of(view, moved_id)
    _check_target(view, target_index)
    if source == target_index:
        return []

    moved_view = array_move(view, source, target_index)
    visible = {t.id for t in view}
    ordered = sort_tasks(collection)
    collection_ids = {t.id for t in ordered}
    if not visible <= collection_ids:
        raise ValidationError("View contains tasks outside the collection", field="id")
    if len(visible) == len(ordered):
        return _sequence(moved_view)

    replacements = iter(moved_view)
    merged = [next(replacements) if t.id in visible else t for t in ordered]
    return _sequence(merged)


# PUBLIC_INTERFACE
def plan_drag(
    collection: Sequence[Task],
    view: Sequence[Task],
    event: DragEvent,
) -> List[OrderUpdate]:
    """
    Translate a drag gesture into order updates.

    Only a DragEnded over a different task reorders; every other event, and a
    drop onto nothing or onto itself, yields no updates.
    """
    if not isinstance(event, DragEnded):
        return []
    over_id: Optional[UUID] = event.over_id
    if over_id is None or over_id == event.id:
        return []
    target = _index_of(view, over_id)
    return reorder_within(collection, view, event.id, target)
