from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from typing import Any, Protocol

from questlog.db_converters import _row_to_task
from questlog.db_models import Task
from questlog.errors import NotFoundError

_UPDATABLE_TASK_FIELDS = ("title", "notes", "active")


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class TaskMixin:
    def get_task(self: DbProtocol, task_id: str) -> Task | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(row) if row else None

    def list_active_tasks(self: DbProtocol, goal_id: str) -> list[Task]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE goal_id = ? AND active = 1 ORDER BY order_index ASC, created_at ASC",
                (goal_id,),
            ).fetchall()
        return [_row_to_task(r) for r in rows]

    def next_task_order(self: DbProtocol, goal_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT MAX(order_index) AS mx FROM tasks WHERE goal_id = ? AND active = 1",
                (goal_id,),
            ).fetchone()
        if row and row["mx"] is not None:
            return int(row["mx"]) + 1
        return 0

    def insert_task(
        self: DbProtocol,
        goal_id: str,
        title: str,
        notes: str | None,
        order_index: int,
        created_at: datetime,
    ) -> Task:
        task_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks(id, goal_id, title, notes, order_index, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (task_id, goal_id, title, notes, order_index, created_at.isoformat()),
            )
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        assert row is not None
        return _row_to_task(row)

    def update_task(self: DbProtocol, task_id: str, fields: dict[str, Any]) -> Task:
        updates = {k: v for k, v in fields.items() if k in _UPDATABLE_TASK_FIELDS}
        if "active" in updates:
            updates["active"] = 1 if updates["active"] else 0
        with self._connect() as conn:
            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                conn.execute(
                    f"UPDATE tasks SET {assignments} WHERE id = ?",
                    (*updates.values(), task_id),
                )
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFoundError("Task not found")
        return _row_to_task(row)

    def set_task_order(self: DbProtocol, goal_id: str, task_ids: list[str]) -> None:
        with self._connect() as conn:
            for index, task_id in enumerate(task_ids):
                conn.execute(
                    "UPDATE tasks SET order_index = ? WHERE id = ? AND goal_id = ?",
                    (index, task_id, goal_id),
                )
