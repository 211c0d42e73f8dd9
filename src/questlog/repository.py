from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Protocol

from questlog.db_models import Badge, Checkin, DailyTotals, Goal, Profile, Task


class Repository(Protocol):
    """Storage capability handed to the core; ``Database`` is the sqlite3 implementation."""

    def transaction(self) -> AbstractContextManager[None]: ...

    # goals
    def get_goal(self, goal_id: str) -> Goal | None: ...
    def list_goals(self, archived: bool | None = False) -> list[Goal]: ...
    def count_active_goals(self) -> int: ...
    def top_streaks(self, limit: int = 5) -> list[Goal]: ...
    def insert_goal(
        self,
        title: str,
        cadence: str,
        color: str,
        xp_per_check: int,
        created_at: datetime,
        recurrence: dict[str, int | None] | None = None,
    ) -> Goal: ...
    def update_goal(
        self,
        goal_id: str,
        fields: dict[str, Any],
        recurrence: dict[str, int | None] | None = None,
        replace_recurrence: bool = False,
    ) -> Goal: ...
    def set_goal_archived(self, goal_id: str, archived: bool) -> bool: ...
    def update_goal_streak(
        self,
        goal_id: str,
        current_streak: int,
        best_streak: int,
        last_period_key: str | None,
        freeze_tokens: int,
    ) -> None: ...
    def award_freeze_token_to_active_goals(self) -> int: ...

    # tasks
    def get_task(self, task_id: str) -> Task | None: ...
    def list_active_tasks(self, goal_id: str) -> list[Task]: ...
    def next_task_order(self, goal_id: str) -> int: ...
    def insert_task(
        self,
        goal_id: str,
        title: str,
        notes: str | None,
        order_index: int,
        created_at: datetime,
    ) -> Task: ...
    def update_task(self, task_id: str, fields: dict[str, Any]) -> Task: ...
    def set_task_order(self, goal_id: str, task_ids: list[str]) -> None: ...

    # checkins
    def find_checkin(self, goal_id: str, task_id: str | None, day: date) -> Checkin | None: ...
    def list_checkins(self, goal_id: str, start: date, end: date) -> list[Checkin]: ...
    def goal_ids_checked_on(self, day: date) -> set[str]: ...
    def count_checkins(self) -> int: ...
    def insert_checkin(
        self,
        goal_id: str,
        task_id: str | None,
        day: date,
        xp_earned: int,
        created_at: datetime,
    ) -> Checkin: ...
    def delete_checkin(self, checkin_id: str) -> bool: ...
    def daily_checkin_totals(self, start: date, end: date) -> dict[date, DailyTotals]: ...

    # profile, badges, perfect days
    def get_profile(self) -> Profile: ...
    def update_profile(self, xp_total: int, level: int, perfect_days: int) -> Profile: ...
    def update_profile_settings(self, theme: str | None = None, accent: str | None = None) -> Profile: ...
    def list_badges(self) -> list[Badge]: ...
    def unlock_badge(self, key: str, unlocked_at: datetime) -> Badge | None: ...
    def is_perfect_day_logged(self, day: date) -> bool: ...
    def append_perfect_day(self, day: date, achieved_at: datetime) -> bool: ...
    def list_perfect_days(self, start: date, end: date) -> list[date]: ...


class BackupRepository(Repository, Protocol):
    def list_all_tasks(self) -> list[Task]: ...
    def list_all_checkins(self) -> list[Checkin]: ...
    def list_perfect_day_log(self) -> list[date]: ...
    def clear_all(self) -> None: ...
    def restore_profile(self, profile: Profile) -> None: ...
    def restore_goal(self, goal: Goal) -> None: ...
    def restore_task(self, task: Task) -> None: ...
    def restore_checkin(self, checkin: Checkin) -> None: ...
    def set_badge_unlocked_at(self, key: str, unlocked_at: datetime | None) -> None: ...
