"""
Merge of an assistant plan into the authoritative collection.

Incomplete tasks take the front of the collection in the plan's order,
completed tasks follow in their existing relative order, and the whole
collection ends up with orders exactly 0..N-1.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from .errors import GatewayError
from .filters import sort_tasks
from .schemas import OptimizedPlan, OrderUpdate, Task, TaskUpdate
from .store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanSuggestion:
    id: UUID
    suggested_order: int
    suggested_due_at: Optional[date] = None
    suggested_remind: Optional[bool] = None

    def field_changes(self) -> Dict[str, object]:
        changes: Dict[str, object] = {}
        if self.suggested_due_at is not None:
            changes["due_at"] = self.suggested_due_at
        if self.suggested_remind is not None:
            changes["remind"] = self.suggested_remind
        return changes


@dataclass(frozen=True)
class MergePlan:
    """Writes needed to apply a plan: one bulk order write, then per-task field updates."""
    order_updates: Tuple[OrderUpdate, ...]
    field_updates: Tuple[Tuple[UUID, Dict[str, object]], ...]
    dropped: Tuple[UUID, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.order_updates and not self.field_updates


@dataclass
class MergeReport:
    order_updates: List[OrderUpdate] = field(default_factory=list)
    updated: List[UUID] = field(default_factory=list)
    failed: List[Tuple[UUID, str]] = field(default_factory=list)
    dropped: List[UUID] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# PUBLIC_INTERFACE
def plan_from_optimized(plan: OptimizedPlan) -> List[PlanSuggestion]:
    """Convert an assistant plan (1-based suggested_order) into suggestions."""
    return [
        PlanSuggestion(
            id=item.id,
            suggested_order=item.suggested_order - 1,
            suggested_due_at=item.suggested_due_at,
            suggested_remind=item.suggested_remind,
        )
        for item in plan.items
    ]


# PUBLIC_INTERFACE
def merge_plan(snapshot: Sequence[Task], suggestions: Sequence[PlanSuggestion]) -> MergePlan:
    """
    Compute the writes that apply `suggestions` to `snapshot`.

    1. Suggestions are sorted by suggested_order (stable on input order).
    2. They receive orders 0..k-1.
    3. Completed tasks keep their relative order and receive k..k+m-1.
    4. Due date / remind suggestions become separate field updates.

    Suggestions for unknown or completed tasks are dropped, repeated ids keep
    their first occurrence, and incomplete tasks the plan left out are placed
    right after the suggested ones in their current order. An empty plan
    yields no writes.
    """
    if not suggestions:
        return MergePlan(order_updates=(), field_updates=())

    ordered = sort_tasks(snapshot)
    incomplete = {t.id: t for t in ordered if not t.completed}

    accepted: List[PlanSuggestion] = []
    dropped: List[UUID] = []
    seen = set()
    for s in suggestions:
        if s.id not in incomplete or s.id in seen:
            dropped.append(s.id)
            continue
        seen.add(s.id)
        accepted.append(s)

    if dropped:
        logger.info("Plan merge dropped %d suggestion(s) for unknown, completed or repeated tasks", len(dropped))

    # sorted() is stable, so equal suggested_order keeps input order
    front = [s.id for s in sorted(accepted, key=lambda s: s.suggested_order)]
    front += [t.id for t in ordered if not t.completed and t.id not in seen]
    tail = [t.id for t in ordered if t.completed]

    order_updates = tuple(OrderUpdate(id=tid, order=i) for i, tid in enumerate(front + tail))
    field_updates = tuple((s.id, s.field_changes()) for s in accepted if s.field_changes())
    return MergePlan(order_updates=order_updates, field_updates=field_updates, dropped=tuple(dropped))


# PUBLIC_INTERFACE
async def apply_plan(store: TaskStore, suggestions: Sequence[PlanSuggestion]) -> MergeReport:
    """
    Apply a plan through the store.

    The reorder is a single bulk write issued first. Field updates follow one
    by one; a gateway failure on one of them is recorded in the report and
    does not stop the others.
    """
    report = MergeReport()
    if not suggestions:
        return report

    plan = merge_plan(await store.read(), suggestions)
    report.dropped = list(plan.dropped)
    if plan.order_updates:
        report.order_updates = await store.bulk_set_order(plan.order_updates)

    for task_id, changes in plan.field_updates:
        try:
            await store.update(task_id, TaskUpdate(**changes))
        except GatewayError as e:
            logger.warning("Plan field update failed for task=%s: %s", task_id, e)
            report.failed.append((task_id, str(e)))
            continue
        report.updated.append(task_id)
    return report
