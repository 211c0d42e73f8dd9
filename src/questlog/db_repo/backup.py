from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Protocol

from questlog.db_constants import DEFAULT_ACCENT, DEFAULT_THEME
from questlog.db_converters import _row_to_checkin, _row_to_task
from questlog.db_models import Checkin, Goal, Profile, Task


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...


class BackupMixin:
    def list_all_tasks(self: DbProtocol) -> list[Task]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM tasks ORDER BY goal_id, order_index, created_at").fetchall()
        return [_row_to_task(r) for r in rows]

    def list_all_checkins(self: DbProtocol) -> list[Checkin]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM checkins ORDER BY date, created_at").fetchall()
        return [_row_to_checkin(r) for r in rows]

    def list_perfect_day_log(self: DbProtocol) -> list[date]:
        with self._connect() as conn:
            rows = conn.execute("SELECT date FROM perfect_days_log ORDER BY date").fetchall()
        return [date.fromisoformat(row["date"]) for row in rows]

    def clear_all(self: DbProtocol) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM perfect_days_log")
            conn.execute("DELETE FROM checkins")
            conn.execute("DELETE FROM tasks")
            conn.execute("DELETE FROM recurrence")
            conn.execute("DELETE FROM goals")
            conn.execute("UPDATE badges SET unlocked_at = NULL")
            conn.execute(
                "UPDATE profile SET xp_total = 0, level = 1, perfect_days = 0, theme = ?, accent = ? WHERE id = 1",
                (DEFAULT_THEME, DEFAULT_ACCENT),
            )

    def restore_profile(self: DbProtocol, profile: Profile) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE profile
                SET xp_total = ?, level = ?, perfect_days = ?, theme = ?, accent = ?
                WHERE id = 1
                """,
                (profile.xp_total, profile.level, profile.perfect_days, profile.theme, profile.accent),
            )

    def restore_goal(self: DbProtocol, goal: Goal) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO goals(id, title, cadence, color, xp_per_check, archived,
                                  current_streak, best_streak, last_period_key, freeze_tokens, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    goal.id,
                    goal.title,
                    goal.cadence,
                    goal.color,
                    goal.xp_per_check,
                    1 if goal.archived else 0,
                    goal.current_streak,
                    goal.best_streak,
                    goal.last_period_key,
                    goal.freeze_tokens,
                    goal.created_at.isoformat(),
                ),
            )
            if goal.recurrence is not None:
                rec = goal.recurrence
                conn.execute(
                    """
                    INSERT INTO recurrence(goal_id, weekly_target, monthly_target, weekdays_mask, due_time_minutes)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (goal.id, rec.weekly_target, rec.monthly_target, rec.weekdays_mask, rec.due_time_minutes),
                )

    def restore_task(self: DbProtocol, task: Task) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks(id, goal_id, title, notes, active, order_index, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.goal_id,
                    task.title,
                    task.notes,
                    1 if task.active else 0,
                    task.order_index,
                    task.created_at.isoformat(),
                ),
            )

    def restore_checkin(self: DbProtocol, checkin: Checkin) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO checkins(id, goal_id, task_id, date, xp_earned, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    checkin.id,
                    checkin.goal_id,
                    checkin.task_id,
                    checkin.date.isoformat(),
                    checkin.xp_earned,
                    checkin.created_at.isoformat(),
                ),
            )

    def set_badge_unlocked_at(self: DbProtocol, key: str, unlocked_at: datetime | None) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE badges SET unlocked_at = ? WHERE key = ?",
                (unlocked_at.isoformat() if unlocked_at else None, key),
            )
