from __future__ import annotations

import copy
import uuid
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterator

import pytest

from questlog.db import Database
from questlog.db_constants import BADGE_DEFINITIONS, DEFAULT_ACCENT, DEFAULT_THEME
from questlog.db_models import Badge, Checkin, DailyTotals, Goal, Profile, Recurrence, Task
from questlog.errors import ConflictError, NotFoundError


class InMemoryRepository:
    """Dict-backed stand-in for ``Database`` used to exercise the core without sqlite."""

    def __init__(self) -> None:
        self.goals: dict[str, Goal] = {}
        self.tasks: dict[str, Task] = {}
        self.checkins: dict[str, Checkin] = {}
        self.profile = Profile(xp_total=0, level=1, perfect_days=0, theme=DEFAULT_THEME, accent=DEFAULT_ACCENT)
        self.badges: dict[str, Badge] = {
            key: Badge(id=badge_id, key=key, title=title, description=desc, icon=icon, unlocked_at=None)
            for badge_id, key, title, desc, icon in BADGE_DEFINITIONS
        }
        self.perfect_days: dict[date, datetime] = {}

    @contextmanager
    def transaction(self) -> Iterator[None]:
        snapshot = copy.deepcopy(self.__dict__)
        try:
            yield
        except BaseException:
            self.__dict__.clear()
            self.__dict__.update(snapshot)
            raise

    def _with_count(self, goal: Goal) -> Goal:
        count = sum(1 for t in self.tasks.values() if t.goal_id == goal.id and t.active)
        return replace(goal, task_count=count)

    # goals
    def get_goal(self, goal_id: str) -> Goal | None:
        goal = self.goals.get(goal_id)
        return self._with_count(goal) if goal else None

    def list_goals(self, archived: bool | None = False) -> list[Goal]:
        goals = [g for g in self.goals.values() if archived is None or g.archived == archived]
        return [self._with_count(g) for g in sorted(goals, key=lambda g: (g.created_at, g.id))]

    def count_active_goals(self) -> int:
        return sum(1 for g in self.goals.values() if not g.archived)

    def top_streaks(self, limit: int = 5) -> list[Goal]:
        goals = [g for g in self.goals.values() if not g.archived and g.current_streak > 0]
        goals.sort(key=lambda g: (-g.current_streak, g.created_at))
        return goals[:limit]

    def insert_goal(
        self,
        title: str,
        cadence: str,
        color: str,
        xp_per_check: int,
        created_at: datetime,
        recurrence: dict[str, int | None] | None = None,
    ) -> Goal:
        goal_id = str(uuid.uuid4())
        self.goals[goal_id] = Goal(
            id=goal_id,
            title=title,
            cadence=cadence,
            color=color,
            xp_per_check=xp_per_check,
            archived=False,
            current_streak=0,
            best_streak=0,
            last_period_key=None,
            freeze_tokens=0,
            created_at=created_at,
            recurrence=self._recurrence(goal_id, recurrence),
        )
        return self.get_goal(goal_id)

    @staticmethod
    def _recurrence(goal_id: str, raw: dict[str, int | None] | None) -> Recurrence | None:
        if not raw or all(v is None for v in raw.values()):
            return None
        return Recurrence(
            goal_id=goal_id,
            weekly_target=raw.get("weekly_target"),
            monthly_target=raw.get("monthly_target"),
            weekdays_mask=raw.get("weekdays_mask"),
            due_time_minutes=raw.get("due_time_minutes"),
        )

    def update_goal(
        self,
        goal_id: str,
        fields: dict[str, Any],
        recurrence: dict[str, int | None] | None = None,
        replace_recurrence: bool = False,
    ) -> Goal:
        goal = self.goals.get(goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")
        updates = {k: v for k, v in fields.items() if k in ("title", "color", "xp_per_check")}
        if replace_recurrence:
            updates["recurrence"] = self._recurrence(goal_id, recurrence)
        self.goals[goal_id] = replace(goal, **updates)
        return self.get_goal(goal_id)

    def set_goal_archived(self, goal_id: str, archived: bool) -> bool:
        goal = self.goals.get(goal_id)
        if goal is None:
            return False
        self.goals[goal_id] = replace(goal, archived=archived)
        return True

    def update_goal_streak(
        self,
        goal_id: str,
        current_streak: int,
        best_streak: int,
        last_period_key: str | None,
        freeze_tokens: int,
    ) -> None:
        self.goals[goal_id] = replace(
            self.goals[goal_id],
            current_streak=current_streak,
            best_streak=best_streak,
            last_period_key=last_period_key,
            freeze_tokens=freeze_tokens,
        )

    def award_freeze_token_to_active_goals(self) -> int:
        count = 0
        for goal_id, goal in list(self.goals.items()):
            if not goal.archived:
                self.goals[goal_id] = replace(goal, freeze_tokens=goal.freeze_tokens + 1)
                count += 1
        return count

    # tasks
    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def list_active_tasks(self, goal_id: str) -> list[Task]:
        tasks = [t for t in self.tasks.values() if t.goal_id == goal_id and t.active]
        return sorted(tasks, key=lambda t: (t.order_index, t.created_at))

    def next_task_order(self, goal_id: str) -> int:
        return max((t.order_index for t in self.list_active_tasks(goal_id)), default=-1) + 1

    def insert_task(
        self,
        goal_id: str,
        title: str,
        notes: str | None,
        order_index: int,
        created_at: datetime,
    ) -> Task:
        task = Task(
            id=str(uuid.uuid4()),
            goal_id=goal_id,
            title=title,
            notes=notes,
            active=True,
            order_index=order_index,
            created_at=created_at,
        )
        self.tasks[task.id] = task
        return task

    def update_task(self, task_id: str, fields: dict[str, Any]) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        updates = {k: v for k, v in fields.items() if k in ("title", "notes", "active")}
        self.tasks[task_id] = replace(task, **updates)
        return self.tasks[task_id]

    def set_task_order(self, goal_id: str, task_ids: list[str]) -> None:
        for index, task_id in enumerate(task_ids):
            task = self.tasks.get(task_id)
            if task is not None and task.goal_id == goal_id:
                self.tasks[task_id] = replace(task, order_index=index)

    # checkins
    def find_checkin(self, goal_id: str, task_id: str | None, day: date) -> Checkin | None:
        for checkin in self.checkins.values():
            if checkin.goal_id == goal_id and checkin.task_id == task_id and checkin.date == day:
                return checkin
        return None

    def list_checkins(self, goal_id: str, start: date, end: date) -> list[Checkin]:
        rows = [c for c in self.checkins.values() if c.goal_id == goal_id and start <= c.date <= end]
        return sorted(rows, key=lambda c: (c.date, c.created_at))

    def goal_ids_checked_on(self, day: date) -> set[str]:
        return {c.goal_id for c in self.checkins.values() if c.date == day}

    def count_checkins(self) -> int:
        return len(self.checkins)

    def insert_checkin(
        self,
        goal_id: str,
        task_id: str | None,
        day: date,
        xp_earned: int,
        created_at: datetime,
    ) -> Checkin:
        if self.find_checkin(goal_id, task_id, day) is not None:
            raise ConflictError("Checkin already exists for this goal, task and date")
        checkin = Checkin(
            id=str(uuid.uuid4()),
            goal_id=goal_id,
            task_id=task_id,
            date=day,
            xp_earned=xp_earned,
            created_at=created_at,
        )
        self.checkins[checkin.id] = checkin
        return checkin

    def delete_checkin(self, checkin_id: str) -> bool:
        return self.checkins.pop(checkin_id, None) is not None

    def daily_checkin_totals(self, start: date, end: date) -> dict[date, DailyTotals]:
        result: dict[date, DailyTotals] = {}
        for c in self.checkins.values():
            if not start <= c.date <= end:
                continue
            prev = result.get(c.date, DailyTotals(date=c.date, xp_earned=0, checkins_count=0))
            result[c.date] = DailyTotals(
                date=c.date,
                xp_earned=prev.xp_earned + c.xp_earned,
                checkins_count=prev.checkins_count + 1,
            )
        return result

    # profile, badges, perfect days
    def get_profile(self) -> Profile:
        return self.profile

    def update_profile(self, xp_total: int, level: int, perfect_days: int) -> Profile:
        self.profile = replace(self.profile, xp_total=xp_total, level=level, perfect_days=perfect_days)
        return self.profile

    def update_profile_settings(self, theme: str | None = None, accent: str | None = None) -> Profile:
        if theme is not None:
            self.profile = replace(self.profile, theme=theme)
        if accent is not None:
            self.profile = replace(self.profile, accent=accent)
        return self.profile

    def list_badges(self) -> list[Badge]:
        return sorted(self.badges.values(), key=lambda b: int(b.id[1:]))

    def unlock_badge(self, key: str, unlocked_at: datetime) -> Badge | None:
        badge = self.badges.get(key)
        if badge is None or badge.unlocked_at is not None:
            return None
        self.badges[key] = replace(badge, unlocked_at=unlocked_at)
        return self.badges[key]

    def is_perfect_day_logged(self, day: date) -> bool:
        return day in self.perfect_days

    def append_perfect_day(self, day: date, achieved_at: datetime) -> bool:
        if day in self.perfect_days:
            return False
        self.perfect_days[day] = achieved_at
        return True

    def list_perfect_days(self, start: date, end: date) -> list[date]:
        return sorted(d for d in self.perfect_days if start <= d <= end)

    # backup
    def list_all_tasks(self) -> list[Task]:
        return sorted(self.tasks.values(), key=lambda t: (t.goal_id, t.order_index, t.created_at))

    def list_all_checkins(self) -> list[Checkin]:
        return sorted(self.checkins.values(), key=lambda c: (c.date, c.created_at))

    def list_perfect_day_log(self) -> list[date]:
        return sorted(self.perfect_days)

    def clear_all(self) -> None:
        fresh = InMemoryRepository()
        self.__dict__.clear()
        self.__dict__.update(fresh.__dict__)

    def restore_profile(self, profile: Profile) -> None:
        self.profile = profile

    def restore_goal(self, goal: Goal) -> None:
        self.goals[goal.id] = goal

    def restore_task(self, task: Task) -> None:
        self.tasks[task.id] = task

    def restore_checkin(self, checkin: Checkin) -> None:
        self.checkins[checkin.id] = checkin

    def set_badge_unlocked_at(self, key: str, unlocked_at: datetime | None) -> None:
        self.badges[key] = replace(self.badges[key], unlocked_at=unlocked_at)


@pytest.fixture
def db(tmp_path) -> Database:
    return Database(tmp_path / "questlog.db")


@pytest.fixture
def memory_repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture(params=["sqlite", "memory"])
def repo(request, tmp_path):
    if request.param == "sqlite":
        return Database(tmp_path / "questlog.db")
    return InMemoryRepository()
