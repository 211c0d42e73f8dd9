from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from typing import Any, Protocol

from questlog.db_converters import _row_to_goal
from questlog.db_models import Goal
from questlog.errors import NotFoundError

_GOAL_SELECT = """
    SELECT g.*,
           r.weekly_target, r.monthly_target, r.weekdays_mask, r.due_time_minutes,
           (SELECT COUNT(*) FROM tasks t WHERE t.goal_id = g.id AND t.active = 1) AS task_count
    FROM goals g
    LEFT JOIN recurrence r ON r.goal_id = g.id
"""

_UPDATABLE_GOAL_FIELDS = ("title", "color", "xp_per_check")


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_goal(self, goal_id: str) -> Goal | None: ...


def _write_recurrence(conn: sqlite3.Connection, goal_id: str, recurrence: dict[str, int | None] | None) -> None:
    if not recurrence or all(v is None for v in recurrence.values()):
        conn.execute("DELETE FROM recurrence WHERE goal_id = ?", (goal_id,))
        return
    conn.execute(
        """
        INSERT INTO recurrence(goal_id, weekly_target, monthly_target, weekdays_mask, due_time_minutes)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(goal_id) DO UPDATE SET
            weekly_target=excluded.weekly_target,
            monthly_target=excluded.monthly_target,
            weekdays_mask=excluded.weekdays_mask,
            due_time_minutes=excluded.due_time_minutes
        """,
        (
            goal_id,
            recurrence.get("weekly_target"),
            recurrence.get("monthly_target"),
            recurrence.get("weekdays_mask"),
            recurrence.get("due_time_minutes"),
        ),
    )


class GoalMixin:
    def get_goal(self: DbProtocol, goal_id: str) -> Goal | None:
        with self._connect() as conn:
            row = conn.execute(f"{_GOAL_SELECT} WHERE g.id = ?", (goal_id,)).fetchone()
        return _row_to_goal(row) if row else None

    def list_goals(self: DbProtocol, archived: bool | None = False) -> list[Goal]:
        with self._connect() as conn:
            if archived is None:
                rows = conn.execute(f"{_GOAL_SELECT} ORDER BY g.created_at ASC, g.id ASC").fetchall()
            else:
                rows = conn.execute(
                    f"{_GOAL_SELECT} WHERE g.archived = ? ORDER BY g.created_at ASC, g.id ASC",
                    (1 if archived else 0,),
                ).fetchall()
        return [_row_to_goal(r) for r in rows]

    def count_active_goals(self: DbProtocol) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM goals WHERE archived = 0").fetchone()
        return int(row["n"]) if row else 0

    def top_streaks(self: DbProtocol, limit: int = 5) -> list[Goal]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                {_GOAL_SELECT}
                WHERE g.archived = 0 AND g.current_streak > 0
                ORDER BY g.current_streak DESC, g.created_at ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [_row_to_goal(r) for r in rows]

    def insert_goal(
        self: DbProtocol,
        title: str,
        cadence: str,
        color: str,
        xp_per_check: int,
        created_at: datetime,
        recurrence: dict[str, int | None] | None = None,
    ) -> Goal:
        goal_id = str(uuid.uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO goals(id, title, cadence, color, xp_per_check, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (goal_id, title, cadence, color, xp_per_check, created_at.isoformat()),
            )
            _write_recurrence(conn, goal_id, recurrence)
            row = conn.execute(f"{_GOAL_SELECT} WHERE g.id = ?", (goal_id,)).fetchone()
        assert row is not None
        return _row_to_goal(row)

    def update_goal(
        self: DbProtocol,
        goal_id: str,
        fields: dict[str, Any],
        recurrence: dict[str, int | None] | None = None,
        replace_recurrence: bool = False,
    ) -> Goal:
        updates = {k: v for k, v in fields.items() if k in _UPDATABLE_GOAL_FIELDS}
        with self._connect() as conn:
            if updates:
                assignments = ", ".join(f"{column} = ?" for column in updates)
                conn.execute(
                    f"UPDATE goals SET {assignments} WHERE id = ?",
                    (*updates.values(), goal_id),
                )
            if replace_recurrence:
                _write_recurrence(conn, goal_id, recurrence)
            row = conn.execute(f"{_GOAL_SELECT} WHERE g.id = ?", (goal_id,)).fetchone()
        if row is None:
            raise NotFoundError("Goal not found")
        return _row_to_goal(row)

    def set_goal_archived(self: DbProtocol, goal_id: str, archived: bool) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE goals SET archived = ? WHERE id = ?",
                (1 if archived else 0, goal_id),
            )
        return cur.rowcount > 0

    def update_goal_streak(
        self: DbProtocol,
        goal_id: str,
        current_streak: int,
        best_streak: int,
        last_period_key: str | None,
        freeze_tokens: int,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE goals
                SET current_streak = ?, best_streak = ?, last_period_key = ?, freeze_tokens = ?
                WHERE id = ?
                """,
                (current_streak, best_streak, last_period_key, freeze_tokens, goal_id),
            )

    def award_freeze_token_to_active_goals(self: DbProtocol) -> int:
        with self._connect() as conn:
            cur = conn.execute("UPDATE goals SET freeze_tokens = freeze_tokens + 1 WHERE archived = 0")
        return int(cur.rowcount)
