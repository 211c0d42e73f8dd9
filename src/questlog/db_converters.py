from __future__ import annotations

import sqlite3
from datetime import date, datetime

from questlog.db_models import Badge, Checkin, Goal, Profile, Recurrence, Task

_RECURRENCE_COLUMNS = ("weekly_target", "monthly_target", "weekdays_mask", "due_time_minutes")


def _row_to_recurrence(row: sqlite3.Row) -> Recurrence | None:
    keys = row.keys()
    if not all(col in keys for col in _RECURRENCE_COLUMNS):
        return None
    if all(row[col] is None for col in _RECURRENCE_COLUMNS):
        return None
    return Recurrence(
        goal_id=row["id"],
        weekly_target=row["weekly_target"],
        monthly_target=row["monthly_target"],
        weekdays_mask=row["weekdays_mask"],
        due_time_minutes=row["due_time_minutes"],
    )


def _row_to_goal(row: sqlite3.Row) -> Goal:
    return Goal(
        id=row["id"],
        title=row["title"],
        cadence=row["cadence"],
        color=row["color"],
        xp_per_check=int(row["xp_per_check"]),
        archived=bool(row["archived"]),
        current_streak=int(row["current_streak"]),
        best_streak=int(row["best_streak"]),
        last_period_key=row["last_period_key"],
        freeze_tokens=int(row["freeze_tokens"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        recurrence=_row_to_recurrence(row),
        task_count=int(row["task_count"]) if "task_count" in row.keys() else 0,
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        goal_id=row["goal_id"],
        title=row["title"],
        notes=row["notes"],
        active=bool(row["active"]),
        order_index=int(row["order_index"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_checkin(row: sqlite3.Row) -> Checkin:
    return Checkin(
        id=row["id"],
        goal_id=row["goal_id"],
        task_id=row["task_id"],
        date=date.fromisoformat(row["date"]),
        xp_earned=int(row["xp_earned"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_profile(row: sqlite3.Row) -> Profile:
    return Profile(
        xp_total=int(row["xp_total"]),
        level=int(row["level"]),
        perfect_days=int(row["perfect_days"]),
        theme=row["theme"],
        accent=row["accent"],
    )


def _row_to_badge(row: sqlite3.Row) -> Badge:
    return Badge(
        id=row["id"],
        key=row["key"],
        title=row["title"],
        description=row["description"],
        icon=row["icon"],
        unlocked_at=datetime.fromisoformat(row["unlocked_at"]) if row["unlocked_at"] else None,
    )
