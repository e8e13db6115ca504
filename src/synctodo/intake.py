"""
Natural-language assistant: prompt construction and defensive decoding.

The generation service is free-form; nothing it returns is trusted. Every
field is coerced or defaulted, and content that is not a JSON object (after
stripping code fences and salvaging the outermost braces) is a
GenerationError.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import date
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence

import pydantic

from .errors import GenerationError, ValidationError
from .generation import GenerationService, OpenAIGenerationService
from .schemas import TITLE_MAX_LENGTH, OptimizedPlan, PlanItem, Task, TaskDraft, parse_due_date
from .store import TaskStore

logger = logging.getLogger(__name__)

EMPTY_BRIEF = "No tasks yet. Add some to get your daily brief!"
ALL_DONE_SUMMARY = "All done! No tasks to optimize."
DEFAULT_PLAN_SUMMARY = "Optimized order and suggestions below."

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*|\s*```\s*$")
_TRUTHY = {"true", "yes", "1", "on"}


class AssistantCommand(str, Enum):
    PARSE = "parse"
    BRIEF = "brief"
    OPTIMIZE = "optimize"


# PUBLIC_INTERFACE
def detect_command(text: str) -> AssistantCommand:
    """`@optimize...` asks for a plan, `@brief...` or "brief my day" for a brief; anything else is a task."""
    lower = text.strip().lower()
    if lower.startswith("@optimize"):
        return AssistantCommand.OPTIMIZE
    if lower.startswith("@brief") or lower == "brief my day":
        return AssistantCommand.BRIEF
    return AssistantCommand.PARSE


def parse_task_prompt(user_input: str, today: date) -> str:
    d = today.isoformat()
    return f"""You are a todo parser. Given a short natural language input from the user, extract a single todo item.
Today's date is {d}. Use it for relative dates (today, tomorrow, next Monday, etc.).

Rules:
- Return ONLY valid JSON, no markdown or extra text.
- Use this exact shape: {{"title":"string","tags":["string"],"due_at":"YYYY-MM-DD or null","remind":boolean}}
- title: clear, short task title (max {TITLE_MAX_LENGTH} chars). If the user said "i wanna go shopping groceries" use "Buy groceries".
- tags: 1-5 lowercase tags (e.g. shopping, personal, work). Infer from context; a "#word" in the input is a tag.
- due_at: ISO date YYYY-MM-DD only if the user mentioned a day. Use {d} for "today". Otherwise null.
- remind: true if the user said remind/reminder/remind me/alert, or if due_at is set; else false.

User input: {user_input}"""


def brief_prompt(tasks: Sequence[Task]) -> str:
    lines = []
    for t in tasks:
        due = f" (due {t.due_at.isoformat()})" if t.due_at else ""
        tags = f" [{', '.join(t.tags)}]" if t.tags else ""
        done = " (done)" if t.completed else ""
        lines.append(f"- {t.title}{due}{tags}{done}")
    listing = "\n".join(lines)
    return f"""You are a helpful daily brief assistant. Given this todo list, write a very short "Your day in 60 seconds" brief (2-4 sentences max). Mention: how many tasks total, what's most urgent or overdue, one suggested focus for today. Be concise and friendly. Do NOT return JSON, just plain text.

Todo list:
{listing}

Brief:"""


def optimize_prompt(incomplete: Sequence[Task], today: date) -> str:
    d = today.isoformat()
    lines = []
    for i, t in enumerate(incomplete, start=1):
        due = f" due {t.due_at.isoformat()}" if t.due_at else ""
        lines.append(f"{i}. id: {t.id} | {t.title}{due}")
    listing = "\n".join(lines)
    return f"""You are a productivity assistant. Today is {d}. Given this list of INCOMPLETE todos (with ids), return an optimized plan: suggested order, suggested due dates if missing, and suggest remind true/false for each.

Rules:
- Return ONLY valid JSON, no markdown or extra text.
- Shape: {{"summary":"one sentence","items":[{{"id":"<todo uuid>","title":"string","suggested_order":1,"suggested_due_at":"YYYY-MM-DD or null","suggested_remind":true,"reason":"short reason"}}]}}
- suggested_order: 1-based (1 = do first). Consider urgency and due dates.
- suggested_due_at: suggest {d} or a near date if the todo has none and seems time-sensitive; else null.
- suggested_remind: true for time-sensitive or due tasks.
- Include every incomplete todo in items with same id and title; reorder and add suggestions.
- summary: one short sentence.

Incomplete todos:
{listing}

JSON:"""


# PUBLIC_INTERFACE
def strip_code_fences(raw: str) -> str:
    """Remove an optional ```json ... ``` (or bare ```) wrapper."""
    return _FENCE_RE.sub("", raw).strip()


# PUBLIC_INTERFACE
def decode_json_object(raw: str) -> Dict[str, Any]:
    """
    Decode a generated answer into a JSON object.

    Tries the fence-stripped text first, then the span between the first '{'
    and the last '}' to salvage answers wrapped in prose.
    """
    text = strip_code_fences(raw)
    candidates = [text]
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end and (start, end) != (0, len(text) - 1):
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    raise GenerationError("Assistant returned content that is not a JSON object")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _coerce_due(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_due_date(value)
    except ValueError:
        logger.info("Assistant: ignoring unparseable date %r", value)
        return None


def _coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    return None


def _coerce_tags(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [t.strip() for t in value if isinstance(t, str) and t.strip()]


# PUBLIC_INTERFACE
def draft_from_response(data: Dict[str, Any], user_input: str) -> TaskDraft:
    """Apply the fallback policy to a decoded parse response."""
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        title = user_input[:TITLE_MAX_LENGTH]
    return TaskDraft(
        title=title.strip()[:TITLE_MAX_LENGTH],
        tags=_coerce_tags(data.get("tags")),
        due_at=_coerce_due(data.get("due_at")),
        remind=_coerce_bool(data.get("remind", False)),
    )


# PUBLIC_INTERFACE
def plan_from_response(data: Dict[str, Any]) -> OptimizedPlan:
    """Apply defaults to a decoded optimize response; malformed items are dropped."""
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_PLAN_SUMMARY
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raw_items = []

    items: List[PlanItem] = []
    for position, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            continue
        entry = dict(raw)
        entry.setdefault("suggested_order", position)
        entry["suggested_due_at"] = _coerce_due(entry.get("suggested_due_at"))
        if entry.get("suggested_remind") is not None:
            entry["suggested_remind"] = _coerce_bool(entry["suggested_remind"])
        if not isinstance(entry.get("title"), str):
            entry["title"] = ""
        entry["reason"] = _coerce_text(entry.get("reason"))
        try:
            items.append(PlanItem.model_validate(entry))
        except pydantic.ValidationError as e:
            logger.info("Assistant: dropping malformed plan item %r: %s", raw, e.errors()[0].get("msg"))
    return OptimizedPlan(summary=summary.strip(), items=items)


# PUBLIC_INTERFACE
class AssistantAdapter:
    """
    Turns free text into task drafts, and task lists into a brief or a plan,
    through an external generation service.
    """

    def __init__(self, service: GenerationService) -> None:
        self._service = service

    async def _generate(self, prompt: str, *, json_mode: bool) -> str:
        try:
            return await self._service.generate(prompt, json_mode=json_mode)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Assistant request failed: {e}") from e

    async def parse(self, raw_text: str, today: Optional[date] = None) -> TaskDraft:
        user_input = (raw_text or "").strip()
        if not user_input:
            raise ValidationError("Task cannot be empty", field="title")
        prompt = parse_task_prompt(user_input, today or date.today())
        text = await self._generate(prompt, json_mode=True)
        return draft_from_response(decode_json_object(text), user_input)

    async def daily_brief(self, tasks: Sequence[Task]) -> str:
        if not tasks:
            return EMPTY_BRIEF
        text = await self._generate(brief_prompt(tasks), json_mode=False)
        brief = text.strip()
        if not brief:
            raise GenerationError("Assistant returned an empty brief")
        return brief

    async def optimize(self, tasks: Sequence[Task], today: Optional[date] = None) -> OptimizedPlan:
        incomplete = [t for t in tasks if not t.completed]
        if not incomplete:
            return OptimizedPlan(summary=ALL_DONE_SUMMARY, items=[])
        text = await self._generate(optimize_prompt(incomplete, today or date.today()), json_mode=True)
        return plan_from_response(decode_json_object(text))


# PUBLIC_INTERFACE
async def add_from_text(store: TaskStore, adapter: AssistantAdapter, raw_text: str, today: Optional[date] = None) -> Task:
    """
    Parse free text with the assistant and create the task.

    If the assistant fails, the task is created with the trimmed input as its
    title instead.
    """
    draft: Any
    try:
        draft = await adapter.parse(raw_text, today=today)
    except GenerationError as e:
        logger.warning("Assistant parse failed, adding plain task: %s", e)
        draft = {"title": (raw_text or "").strip()}
    return await store.create(draft)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_assistant() -> AssistantAdapter:
    """Assistant adapter over the configured OpenAI-compatible endpoint."""
    return AssistantAdapter(OpenAIGenerationService())
