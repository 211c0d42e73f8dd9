from __future__ import annotations

from questlog.db_models import Badge, Checkin, DailyTotals, Goal, Profile, Recurrence, Task
from questlog.db_repo import (
    BackupMixin,
    BaseDatabase,
    CheckinMixin,
    GoalMixin,
    ProgressMixin,
    TaskMixin,
)


class Database(
    GoalMixin,
    TaskMixin,
    CheckinMixin,
    ProgressMixin,
    BackupMixin,
    BaseDatabase,
):
    """sqlite3-backed store implementing ``questlog.repository.Repository``."""


__all__ = [
    "Database",
    "Badge",
    "Checkin",
    "DailyTotals",
    "Goal",
    "Profile",
    "Recurrence",
    "Task",
]
