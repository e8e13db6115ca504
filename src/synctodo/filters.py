from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Literal, Optional, Sequence
from uuid import UUID

from .errors import ValidationError
from .schemas import Task

StatusFilter = Literal["all", "active", "completed"]
STATUS_VALUES = ("all", "active", "completed")


@dataclass(frozen=True)
class FilterCriteria:
    """
    Predicates applied to a snapshot to derive a view.
    Each predicate is optional; absence means pass-through.
    """
    status: StatusFilter = "all"
    search: Optional[str] = None
    tag: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status not in STATUS_VALUES:
            raise ValidationError(
                f"status must be one of {', '.join(STATUS_VALUES)}", field="status"
            )


@dataclass(frozen=True)
class CollectionSummary:
    total: int
    active: int
    completed: int


# PUBLIC_INTERFACE
def sort_tasks(tasks: Iterable[Task]) -> List[Task]:
    """
    Primary ordering rule: ascending order, ties broken by created_at descending.
    """
    # Two stable passes: secondary key first, then primary
    by_created = sorted(tasks, key=lambda t: t.created_at, reverse=True)
    return sorted(by_created, key=lambda t: t.order)


def _matches_status(task: Task, status: StatusFilter) -> bool:
    if status == "active":
        return not task.completed
    if status == "completed":
        return task.completed
    return True


# PUBLIC_INTERFACE
def apply_filters(snapshot: Sequence[Task], criteria: Optional[FilterCriteria] = None) -> List[Task]:
    """
    Derive a view from a snapshot.

    Pure and order-preserving: the snapshot is never mutated and the result is
    recomputed from scratch on every call. Predicates are AND-combined:
    - status: all | active | completed
    - search: case-insensitive substring of the title (surrounding whitespace ignored)
    - tag: the task carries the exact tag
    """
    c = criteria or FilterCriteria()
    needle = (c.search or "").strip().lower()
    tag = (c.tag or "").strip()

    view: List[Task] = []
    for task in snapshot:
        if not _matches_status(task, c.status):
            continue
        if needle and needle not in task.title.lower():
            continue
        if tag and tag not in task.tags:
            continue
        view.append(task)
    return view


# PUBLIC_INTERFACE
def collect_tags(snapshot: Iterable[Task]) -> List[str]:
    """Sorted unique tags used across the snapshot."""
    return sorted({tag for task in snapshot for tag in task.tags if tag})


# PUBLIC_INTERFACE
def summarize(snapshot: Sequence[Task]) -> CollectionSummary:
    completed = sum(1 for t in snapshot if t.completed)
    return CollectionSummary(total=len(snapshot), active=len(snapshot) - completed, completed=completed)


# PUBLIC_INTERFACE
def due_label(task: Task, today: date) -> Optional[str]:
    """
    Classify a task's due date relative to `today`:
    'overdue' (incomplete and past due), 'today', 'tomorrow', or None.
    """
    if task.due_at is None:
        return None
    if task.due_at < today:
        return None if task.completed else "overdue"
    if task.due_at == today:
        return "today"
    if task.due_at == today + timedelta(days=1):
        return "tomorrow"
    return None


# PUBLIC_INTERFACE
def due_labels(tasks: Iterable[Task], today: date) -> Dict[UUID, str]:
    """Map task id -> due label for every task that has one."""
    labels: Dict[UUID, str] = {}
    for task in tasks:
        label = due_label(task, today)
        if label is not None:
            labels[task.id] = label
    return labels
