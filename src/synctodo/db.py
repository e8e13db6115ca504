from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generator, List, Mapping, Sequence, Tuple
from uuid import UUID, uuid4

from .errors import GatewayError, TaskNotFoundError
from .models import TaskRow
from .repositories import UPDATABLE_FIELDS, TaskGateway
from .schemas import TaskDraft

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    completed: str = "completed"
    created_at: str = "created_at"
    owner_id: str = "owner_id"
    due_at: str = "due_at"
    remind: str = "remind"
    reminded: str = "reminded"
    tags: str = "tags"
    order: str = '"order"'


_COLS = _Cols()


class SQLiteGateway(TaskGateway):
    """
    Lightweight SQLite gateway implementing the TaskGateway interface.

    Each call opens its own connection and runs in a worker thread so the
    event loop is never blocked on disk I/O.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise GatewayError(f"Cannot open task database: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise GatewayError(f"Task database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.owner_id} TEXT NOT NULL,
                    {_COLS.due_at} TEXT NULL,
                    {_COLS.remind} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.reminded} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.tags} TEXT NULL,
                    {_COLS.order} INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_owner ON {_COLS.table}({_COLS.owner_id})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskRow:
        raw_tags = row[_COLS.tags]
        return {
            "id": UUID(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "completed": bool(row[_COLS.completed]),
            "created_at": datetime.fromisoformat(row[_COLS.created_at]),
            "owner_id": str(row[_COLS.owner_id]),
            "due_at": date.fromisoformat(row[_COLS.due_at]) if row[_COLS.due_at] else None,
            "remind": bool(row[_COLS.remind]),
            "reminded": bool(row[_COLS.reminded]),
            "tags": json.loads(raw_tags) if raw_tags is not None else None,
            "order": int(row["order"]),
        }

    @staticmethod
    def _to_column(key: str, value: Any) -> Any:
        if key in {"completed", "remind", "reminded"}:
            return 1 if value else 0
        if key == "due_at":
            return value.isoformat() if value else None
        if key == "tags":
            return json.dumps(list(value)) if value is not None else None
        return value

    def _fetch_owned(self, conn: sqlite3.Connection, owner_id: str, task_id: UUID) -> sqlite3.Row:
        row = conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ? AND {_COLS.owner_id} = ?",
            (str(task_id), owner_id),
        ).fetchone()
        if row is None:
            raise TaskNotFoundError(task_id)
        return row

    # Synchronous implementations, run via asyncio.to_thread

    def _list(self, owner_id: str) -> List[TaskRow]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.owner_id} = ?", (owner_id,)
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def _insert(self, owner_id: str, draft: TaskDraft) -> TaskRow:
        new_id = uuid4()
        now = datetime.now().isoformat()
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.id}, {_COLS.title}, {_COLS.completed},
                    {_COLS.created_at}, {_COLS.owner_id}, {_COLS.due_at}, {_COLS.remind},
                    {_COLS.reminded}, {_COLS.tags}, {_COLS.order})
                VALUES (?, ?, 0, ?, ?, ?, ?, 0, ?, 0)
                """,
                (
                    str(new_id),
                    draft.title,
                    now,
                    owner_id,
                    self._to_column("due_at", draft.due_at),
                    self._to_column("remind", draft.remind),
                    self._to_column("tags", draft.tags),
                ),
            )
            return self._row_to_entity(self._fetch_owned(conn, owner_id, new_id))

    def _update(self, owner_id: str, task_id: UUID, fields: Mapping[str, Any]) -> TaskRow:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        with self._conn() as conn:
            self._fetch_owned(conn, owner_id, task_id)
            if fields:
                assignments = ", ".join(f"{getattr(_COLS, k)} = ?" for k in fields)
                params = [self._to_column(k, v) for k, v in fields.items()]
                conn.execute(
                    f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ? AND {_COLS.owner_id} = ?",
                    [*params, str(task_id), owner_id],
                )
            return self._row_to_entity(self._fetch_owned(conn, owner_id, task_id))

    def _bulk_update_order(self, owner_id: str, orders: Sequence[Tuple[UUID, int]]) -> None:
        with self._conn() as conn:
            for task_id, order in orders:
                cur = conn.execute(
                    f"UPDATE {_COLS.table} SET {_COLS.order} = ? WHERE {_COLS.id} = ? AND {_COLS.owner_id} = ?",
                    (order, str(task_id), owner_id),
                )
                if cur.rowcount == 0:
                    # Raising inside the connection context rolls the whole batch back
                    raise TaskNotFoundError(task_id)

    def _delete(self, owner_id: str, task_id: UUID) -> None:
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ? AND {_COLS.owner_id} = ?",
                (str(task_id), owner_id),
            )
            if cur.rowcount == 0:
                raise TaskNotFoundError(task_id)

    # TaskGateway

    async def list(self, owner_id: str) -> List[TaskRow]:
        return await asyncio.to_thread(self._list, owner_id)

    async def insert(self, owner_id: str, draft: TaskDraft) -> TaskRow:
        return await asyncio.to_thread(self._insert, owner_id, draft)

    async def update(self, owner_id: str, task_id: UUID, fields: Mapping[str, Any]) -> TaskRow:
        return await asyncio.to_thread(self._update, owner_id, task_id, dict(fields))

    async def bulk_update_order(self, owner_id: str, orders: Sequence[Tuple[UUID, int]]) -> None:
        await asyncio.to_thread(self._bulk_update_order, owner_id, list(orders))

    async def delete(self, owner_id: str, task_id: UUID) -> None:
        await asyncio.to_thread(self._delete, owner_id, task_id)
