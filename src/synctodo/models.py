from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, TypedDict
from uuid import UUID


# PUBLIC_INTERFACE
class TaskRow(TypedDict):
    """
    Persisted shape of a task as exchanged with a collection gateway.

    Fields:
    - id: UUID, assigned by the gateway on insert
    - title: Short title (1..200 code points, trimmed on input via schemas)
    - completed: Boolean completion flag
    - created_at: Creation timestamp (datetime)
    - owner_id: Identifier of the principal owning the row
    - due_at: Optional due date
    - remind: User intent to be reminded
    - reminded: Set once a reminder fired (not interpreted by the engine)
    - tags: Nullable list of short labels
    - order: Plain integer display position
    """

    id: UUID
    title: str
    completed: bool
    created_at: datetime
    owner_id: str
    due_at: Optional[date]
    remind: bool
    reminded: bool
    tags: Optional[List[str]]
    order: int
