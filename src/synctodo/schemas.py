from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError

TITLE_MAX_LENGTH = 200

# Shared type for incoming due_at which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Normalize due_at input into a date.
    - If value is a string, accept 'YYYY-MM-DD' or a full ISO datetime (date part kept).
    - If value is a datetime, keep its date part.
    - If value is a date, return as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid due_at format. Use an ISO8601 date or datetime string (e.g., '2025-01-31')."
                ) from e

    raise ValueError("Invalid type for due_at; expected date, datetime, or ISO8601 string.")


def _clean_title(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("title must be a string")
    s = value.strip()
    if not s:
        raise ValueError("Task cannot be empty")
    if len(s) > TITLE_MAX_LENGTH:
        raise ValueError("Task is too long")
    return s


def _clean_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a list of strings")
    cleaned: List[str] = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValueError("tags must be a list of strings")
        t = tag.strip()
        if t:
            cleaned.append(t)
    return cleaned


# PUBLIC_INTERFACE
class Task(BaseModel):
    """
    A validated task record as held in a store snapshot.

    Instances are immutable; mutations go through the store and come back as
    new records after the snapshot is refetched.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "5f0c6f0e-8a53-4c38-9d69-7d0f1f1b6a1e",
                "title": "Buy groceries",
                "completed": False,
                "created_at": "2025-01-25T10:15:30.123456",
                "owner_id": "alice",
                "due_at": "2025-02-01",
                "remind": True,
                "reminded": False,
                "tags": ["shopping"],
                "order": 0,
            }
        },
    )

    id: UUID = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    completed: bool = Field(default=False, description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    owner_id: str = Field(..., description="Identifier of the owning principal")
    due_at: Optional[date] = Field(default=None, description="Optional due date")
    remind: bool = Field(default=False, description="Whether the owner wants a reminder")
    reminded: bool = Field(default=False, description="Whether a reminder already fired")
    tags: List[str] = Field(default_factory=list, description="Ordered list of short labels")
    order: int = Field(default=0, description="Display position within the owner's collection")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        return _clean_title(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> List[str]:
        return _clean_tags(v)

    @field_validator("due_at", mode="before")
    @classmethod
    def parse_due_at(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return parse_due_date(v)


# PUBLIC_INTERFACE
class TaskDraft(BaseModel):
    """
    Schema for an unsaved task, produced by manual entry or natural-language parsing.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Call mom",
                "tags": ["family"],
                "due_at": "2024-06-02",
                "remind": True,
            }
        }
    )

    title: str = Field(..., description="Short title for the task (1..200 characters)")
    tags: List[str] = Field(default_factory=list, description="Labels; null is treated as empty")
    due_at: Optional[date] = Field(
        default=None,
        description="Due date. Accepts ISO8601 date or datetime; only the date part is kept",
    )
    remind: bool = Field(default=False, description="Whether the owner wants a reminder")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _clean_title(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> List[str]:
        return _clean_tags(v)

    @field_validator("due_at", mode="before")
    @classmethod
    def parse_due_at(cls, v: Optional[DueDateInput]) -> Optional[date]:
        """
        Normalize due_at from str/date/datetime to date.
        """
        return parse_due_date(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for a partial update of an existing task.
    All fields are optional; only provided fields are written. An explicit
    null due_at clears the date.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "due_at": "2025-02-02",
                "tags": ["shopping", "home"],
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    due_at: Optional[date] = Field(default=None, description="Due date; null clears it")
    remind: Optional[bool] = Field(default=None, description="Reminder intent flag")
    reminded: Optional[bool] = Field(default=None, description="Reminder fired flag")
    tags: Optional[List[str]] = Field(default=None, description="Replacement tag list")
    order: Optional[int] = Field(default=None, ge=0, description="Display position")

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _clean_title(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> Optional[List[str]]:
        if v is None:
            return v
        return _clean_tags(v)

    @field_validator("due_at", mode="before")
    @classmethod
    def parse_due_at(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return parse_due_date(v)

    def changes(self) -> dict[str, Any]:
        """
        Return only the fields the caller explicitly set.

        An explicit null clears `due_at` and empties `tags`; on any other
        field it is rejected.
        """
        out: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None:
                if name == "tags":
                    value = []
                elif name != "due_at":
                    raise ValidationError(f"{name} cannot be null", field=name)
            out[name] = value
        return out


# PUBLIC_INTERFACE
class OrderUpdate(BaseModel):
    """A single (id, order) pair of a bulk order write."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(..., description="Task identifier")
    order: int = Field(..., ge=0, description="New display position")


# PUBLIC_INTERFACE
class PlanItem(BaseModel):
    """
    One entry of an assistant-generated optimization plan.
    `suggested_order` is 1-based (1 = do first).
    """

    id: UUID
    title: str = ""
    suggested_order: int
    suggested_due_at: Optional[date] = None
    suggested_remind: Optional[bool] = None
    reason: Optional[str] = None

    @field_validator("suggested_due_at", mode="before")
    @classmethod
    def parse_suggested_due_at(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return parse_due_date(v)


# PUBLIC_INTERFACE
class OptimizedPlan(BaseModel):
    """Assistant proposal mapping incomplete tasks to suggested order/due/remind values."""

    summary: str
    items: List[PlanItem] = Field(default_factory=list)


# Drag gesture events. Only DragEnded leads to a reorder.


class DragStarted(BaseModel):
    type: Literal["started"] = "started"
    id: UUID


class DragMoved(BaseModel):
    type: Literal["moved"] = "moved"
    id: UUID
    over_id: Optional[UUID] = None


class DragCancelled(BaseModel):
    type: Literal["cancelled"] = "cancelled"


class DragEnded(BaseModel):
    type: Literal["ended"] = "ended"
    id: UUID
    over_id: Optional[UUID] = None


DragEvent = Annotated[
    Union[DragStarted, DragMoved, DragCancelled, DragEnded],
    Field(discriminator="type"),
]
