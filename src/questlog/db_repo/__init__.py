from .base import BaseDatabase
from .goals import GoalMixin
from .tasks import TaskMixin
from .checkins import CheckinMixin
from .progress import ProgressMixin
from .backup import BackupMixin

__all__ = [
    "BaseDatabase",
    "GoalMixin",
    "TaskMixin",
    "CheckinMixin",
    "ProgressMixin",
    "BackupMixin",
]
