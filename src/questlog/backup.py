from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import AwareDatetime, BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from questlog.db_constants import BACKUP_VERSION, BADGE_KEYS, THEMES
from questlog.db_models import Checkin, Goal, Profile, Recurrence, Task
from questlog.errors import ValidationError
from questlog.gamification import level_from_xp
from questlog.repository import BackupRepository

logger = logging.getLogger(__name__)


class BackupProfile(BaseModel):
    xp_total: int = Field(ge=0)
    level: int = Field(ge=1)
    perfect_days: int = Field(ge=0)
    theme: str
    accent: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")


class BackupRecurrence(BaseModel):
    goal_id: str
    weekly_target: int | None = Field(default=None, ge=1, le=7)
    monthly_target: int | None = Field(default=None, ge=1, le=31)
    weekdays_mask: int | None = Field(default=None, ge=0, le=127)
    due_time_minutes: int | None = Field(default=None, ge=0, le=1439)


class BackupGoal(BaseModel):
    id: str
    title: str = Field(min_length=1)
    cadence: Literal["daily", "weekly", "monthly"]
    color: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    xp_per_check: int = Field(ge=1, le=100)
    archived: bool = False
    current_streak: int = Field(default=0, ge=0)
    best_streak: int = Field(default=0, ge=0)
    last_period_key: str | None = None
    freeze_tokens: int = Field(default=0, ge=0)
    created_at: AwareDatetime

    @model_validator(mode="after")
    def _best_covers_current(self) -> BackupGoal:
        if self.best_streak < self.current_streak:
            raise ValueError("best_streak must not be lower than current_streak")
        return self


class BackupTask(BaseModel):
    id: str
    goal_id: str
    title: str = Field(min_length=1)
    notes: str | None = None
    active: bool = True
    order_index: int = Field(default=0, ge=0)
    created_at: AwareDatetime


class BackupCheckin(BaseModel):
    id: str
    goal_id: str
    task_id: str | None = None
    date: date
    xp_earned: int = Field(ge=0)
    created_at: AwareDatetime


class BackupBadge(BaseModel):
    id: str
    key: str
    title: str = ""
    description: str = ""
    icon: str = ""
    unlocked_at: AwareDatetime | None = None


class BackupData(BaseModel):
    profile: BackupProfile
    goals: list[BackupGoal] = Field(default_factory=list)
    recurrence: list[BackupRecurrence] = Field(default_factory=list)
    tasks: list[BackupTask] = Field(default_factory=list)
    checkins: list[BackupCheckin] = Field(default_factory=list)
    badges: list[BackupBadge] = Field(default_factory=list)
    perfect_days_log: list[date] = Field(default_factory=list)


class BackupDocument(BaseModel):
    version: Literal[1]
    exported_at: AwareDatetime
    data: BackupData


@dataclass(frozen=True)
class ImportSummary:
    goals: int
    tasks: int
    checkins: int
    badges_unlocked: int
    perfect_days: int


def export_backup(repo: BackupRepository, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    goals = repo.list_goals(archived=None)
    recurrences = [g.recurrence for g in goals if g.recurrence is not None]

    document = BackupDocument(
        version=BACKUP_VERSION,
        exported_at=now,
        data=BackupData(
            profile=BackupProfile(**_profile_fields(repo.get_profile())),
            goals=[
                BackupGoal(
                    id=g.id,
                    title=g.title,
                    cadence=g.cadence,
                    color=g.color,
                    xp_per_check=g.xp_per_check,
                    archived=g.archived,
                    current_streak=g.current_streak,
                    best_streak=g.best_streak,
                    last_period_key=g.last_period_key,
                    freeze_tokens=g.freeze_tokens,
                    created_at=g.created_at,
                )
                for g in goals
            ],
            recurrence=[
                BackupRecurrence(
                    goal_id=r.goal_id,
                    weekly_target=r.weekly_target,
                    monthly_target=r.monthly_target,
                    weekdays_mask=r.weekdays_mask,
                    due_time_minutes=r.due_time_minutes,
                )
                for r in recurrences
            ],
            tasks=[BackupTask(**asdict(t)) for t in repo.list_all_tasks()],
            checkins=[BackupCheckin(**asdict(c)) for c in repo.list_all_checkins()],
            badges=[BackupBadge(**asdict(b)) for b in repo.list_badges()],
            perfect_days_log=repo.list_perfect_day_log(),
        ),
    )
    return document.model_dump(mode="json")


def _profile_fields(profile: Profile) -> dict[str, Any]:
    return {
        "xp_total": profile.xp_total,
        "level": profile.level,
        "perfect_days": profile.perfect_days,
        "theme": profile.theme,
        "accent": profile.accent,
    }


def _parse_document(payload: Any) -> BackupDocument:
    try:
        return BackupDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid backup file format: {exc.error_count()} error(s)") from exc


def _check_references(data: BackupData) -> None:
    goal_ids = {g.id for g in data.goals}
    if len(goal_ids) != len(data.goals):
        raise ValidationError("Backup contains duplicate goal ids")
    task_goal = {t.id: t.goal_id for t in data.tasks}
    if len(task_goal) != len(data.tasks):
        raise ValidationError("Backup contains duplicate task ids")
    if data.profile.theme not in THEMES:
        raise ValidationError(f"Unknown theme in backup: {data.profile.theme}")

    for rec in data.recurrence:
        if rec.goal_id not in goal_ids:
            raise ValidationError(f"Recurrence references unknown goal {rec.goal_id}")
    for task in data.tasks:
        if task.goal_id not in goal_ids:
            raise ValidationError(f"Task {task.id} references unknown goal")

    seen: set[tuple[str, str, date]] = set()
    for checkin in data.checkins:
        if checkin.goal_id not in goal_ids:
            raise ValidationError(f"Checkin {checkin.id} references unknown goal")
        if checkin.task_id is not None and task_goal.get(checkin.task_id) != checkin.goal_id:
            raise ValidationError(f"Checkin {checkin.id} references unknown task")
        key = (checkin.goal_id, checkin.task_id or "", checkin.date)
        if key in seen:
            raise ValidationError(f"Duplicate checkin for goal {checkin.goal_id} on {checkin.date}")
        seen.add(key)


def import_backup(repo: BackupRepository, payload: Any, now: datetime | None = None) -> ImportSummary:
    """Replace the whole store with the contents of a backup document.

    The stored level is recomputed from ``xp_total``. Badges not in the
    catalog are ignored. Nothing is written when validation fails.
    """
    document = _parse_document(payload)
    data = document.data
    _check_references(data)
    now = now or datetime.now(timezone.utc)

    recurrence_by_goal = {r.goal_id: r for r in data.recurrence}
    unlocked = [b for b in data.badges if b.unlocked_at is not None and b.key in BADGE_KEYS]

    with repo.transaction():
        repo.clear_all()
        repo.restore_profile(
            Profile(
                xp_total=data.profile.xp_total,
                level=level_from_xp(data.profile.xp_total),
                perfect_days=data.profile.perfect_days,
                theme=data.profile.theme,
                accent=data.profile.accent,
            )
        )
        for badge in unlocked:
            repo.set_badge_unlocked_at(badge.key, badge.unlocked_at)
        for goal in data.goals:
            rec = recurrence_by_goal.get(goal.id)
            repo.restore_goal(
                Goal(
                    id=goal.id,
                    title=goal.title,
                    cadence=goal.cadence,
                    color=goal.color,
                    xp_per_check=goal.xp_per_check,
                    archived=goal.archived,
                    current_streak=goal.current_streak,
                    best_streak=goal.best_streak,
                    last_period_key=goal.last_period_key,
                    freeze_tokens=goal.freeze_tokens,
                    created_at=goal.created_at,
                    recurrence=Recurrence(**rec.model_dump()) if rec else None,
                )
            )
        for task in data.tasks:
            repo.restore_task(Task(**task.model_dump()))
        for checkin in data.checkins:
            repo.restore_checkin(Checkin(**checkin.model_dump()))
        for day in sorted(set(data.perfect_days_log)):
            repo.append_perfect_day(day, now)

    summary = ImportSummary(
        goals=len(data.goals),
        tasks=len(data.tasks),
        checkins=len(data.checkins),
        badges_unlocked=len(unlocked),
        perfect_days=len(set(data.perfect_days_log)),
    )
    logger.info("backup imported goals=%s tasks=%s checkins=%s", summary.goals, summary.tasks, summary.checkins)
    return summary


def reset_all(repo: BackupRepository) -> None:
    with repo.transaction():
        repo.clear_all()
    logger.info("all data reset")
