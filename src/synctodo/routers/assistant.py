from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ..intake import AssistantAdapter, AssistantCommand, add_from_text, detect_command, get_assistant
from ..merge import apply_plan, plan_from_optimized
from ..schemas import OptimizedPlan, Task, TaskDraft
from ..store import TaskStore
from .tasks import get_store

router = APIRouter(
    prefix="/api/v1/assistant",
    tags=["assistant"],
)


class TextInput(BaseModel):
    text: str = Field(..., description="Free text typed by the user")


class BriefOut(BaseModel):
    brief: str


class FailedUpdate(BaseModel):
    id: UUID
    error: str


class ApplyResult(BaseModel):
    """
    Outcome of applying a plan. `failed` lists field updates that did not go
    through; the reorder itself is applied either way.
    """
    reordered: int = Field(..., description="Number of order values written")
    updated: List[UUID] = Field(default_factory=list)
    failed: List[FailedUpdate] = Field(default_factory=list)
    dropped: List[UUID] = Field(default_factory=list)


class CommandResult(BaseModel):
    command: AssistantCommand
    draft: Optional[TaskDraft] = None
    brief: Optional[str] = None
    plan: Optional[OptimizedPlan] = None


# PUBLIC_INTERFACE
@router.post("/parse", response_model=TaskDraft, summary="Parse Task")
async def parse_task(payload: TextInput, assistant: AssistantAdapter = Depends(get_assistant)) -> TaskDraft:
    """
    Turn free text into a task draft without saving it.
    """
    return await assistant.parse(payload.text)


# PUBLIC_INTERFACE
@router.post(
    "/add",
    response_model=Task,
    status_code=status.HTTP_201_CREATED,
    summary="Parse And Add Task",
    description="Parse free text and create the task; if the assistant fails the text becomes the title.",
)
async def add_task(
    payload: TextInput,
    store: TaskStore = Depends(get_store),
    assistant: AssistantAdapter = Depends(get_assistant),
) -> Task:
    return await add_from_text(store, assistant, payload.text)


# PUBLIC_INTERFACE
@router.get("/brief", response_model=BriefOut, summary="Daily Brief")
async def daily_brief(
    store: TaskStore = Depends(get_store),
    assistant: AssistantAdapter = Depends(get_assistant),
) -> BriefOut:
    return BriefOut(brief=await assistant.daily_brief(await store.read()))


# PUBLIC_INTERFACE
@router.get("/plan", response_model=OptimizedPlan, summary="Optimized Plan")
async def optimized_plan(
    store: TaskStore = Depends(get_store),
    assistant: AssistantAdapter = Depends(get_assistant),
) -> OptimizedPlan:
    return await assistant.optimize(await store.read())


# PUBLIC_INTERFACE
@router.post("/plan/apply", response_model=ApplyResult, summary="Apply Plan")
async def apply_optimized_plan(plan: OptimizedPlan, store: TaskStore = Depends(get_store)) -> ApplyResult:
    """
    Apply a plan: incomplete tasks in plan order first, completed tasks after,
    then due date / remind suggestions one task at a time.
    """
    report = await apply_plan(store, plan_from_optimized(plan))
    return ApplyResult(
        reordered=len(report.order_updates),
        updated=report.updated,
        failed=[FailedUpdate(id=tid, error=err) for tid, err in report.failed],
        dropped=report.dropped,
    )


# PUBLIC_INTERFACE
@router.post("/command", response_model=CommandResult, summary="Assistant Command")
async def run_command(
    payload: TextInput,
    store: TaskStore = Depends(get_store),
    assistant: AssistantAdapter = Depends(get_assistant),
) -> CommandResult:
    """
    Dispatch free text: '@optimize' returns a plan, '@brief' or 'brief my day'
    returns a brief, anything else is parsed into a draft.
    """
    command = detect_command(payload.text)
    if command is AssistantCommand.OPTIMIZE:
        return CommandResult(command=command, plan=await assistant.optimize(await store.read()))
    if command is AssistantCommand.BRIEF:
        return CommandResult(command=command, brief=await assistant.daily_brief(await store.read()))
    return CommandResult(command=command, draft=await assistant.parse(payload.text))
