from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class Recurrence:
    goal_id: str
    weekly_target: int | None
    monthly_target: int | None
    weekdays_mask: int | None
    due_time_minutes: int | None


@dataclass(frozen=True)
class Goal:
    id: str
    title: str
    cadence: str
    color: str
    xp_per_check: int
    archived: bool
    current_streak: int
    best_streak: int
    last_period_key: str | None
    freeze_tokens: int
    created_at: datetime
    recurrence: Recurrence | None = None
    task_count: int = 0


@dataclass(frozen=True)
class Task:
    id: str
    goal_id: str
    title: str
    notes: str | None
    active: bool
    order_index: int
    created_at: datetime


@dataclass(frozen=True)
class Checkin:
    id: str
    goal_id: str
    task_id: str | None
    date: date
    xp_earned: int
    created_at: datetime


@dataclass(frozen=True)
class Profile:
    xp_total: int
    level: int
    perfect_days: int
    theme: str
    accent: str


@dataclass(frozen=True)
class Badge:
    id: str
    key: str
    title: str
    description: str
    icon: str
    unlocked_at: datetime | None


@dataclass(frozen=True)
class DailyTotals:
    date: date
    xp_earned: int
    checkins_count: int
