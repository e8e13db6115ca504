from __future__ import annotations

from typing import Optional

import pydantic


class TaskListError(Exception):
    """Base class for all errors raised by the task collection engine."""


# PUBLIC_INTERFACE
class ValidationError(TaskListError):
    """
    Malformed input detected before any I/O.

    `field` names the originating input field (e.g. "title", "id") so callers
    can attach the message to it.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    @classmethod
    def from_pydantic(cls, exc: pydantic.ValidationError) -> "ValidationError":
        """Build from the first error of a pydantic ValidationError."""
        errors = exc.errors()
        if not errors:
            return cls(str(exc))
        first = errors[0]
        loc = [str(p) for p in first.get("loc", ())]
        field = loc[0] if loc else None
        msg = first.get("msg", "invalid value")
        # pydantic prefixes messages raised from validators
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        return cls(msg, field=field)


# PUBLIC_INTERFACE
class NotAuthenticated(TaskListError):
    """No owner principal is available for the current call."""

    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


# PUBLIC_INTERFACE
class GatewayError(TaskListError):
    """A remote collection call failed (network, constraint violation, ...)."""


# PUBLIC_INTERFACE
class TaskNotFoundError(GatewayError):
    """The addressed task does not exist in the owner's collection."""

    def __init__(self, task_id: object) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


# PUBLIC_INTERFACE
class GenerationError(TaskListError):
    """The assistant call failed or returned content that cannot be used."""
