from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from questlog.badges import BadgeContext, evaluate_badges
from questlog.config import DEFAULT_RULES, GameRules
from questlog.db_constants import DEFAULT_GOAL_COLOR, THEMES
from questlog.db_models import Badge, Goal, Profile, Recurrence, Task
from questlog.errors import NotFoundError, ValidationError
from questlog.periods import CADENCES
from questlog.repository import Repository

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
TITLE_MAX = 100
TASK_TITLE_MAX = 200
TASK_NOTES_MAX = 1000

# field: (min, max)
RECURRENCE_LIMITS: dict[str, tuple[int, int]] = {
    "weekly_target": (1, 7),
    "monthly_target": (1, 31),
    "weekdays_mask": (0, 127),
    "due_time_minutes": (0, 1439),
}


@dataclass(frozen=True)
class GoalCreated:
    goal: Goal
    badges_unlocked: list[Badge]


def _validate_title(title: Any, max_len: int = TITLE_MAX) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required")
    title = title.strip()
    if len(title) > max_len:
        raise ValidationError(f"Title must be at most {max_len} characters")
    return title


def _validate_color(color: Any, field: str = "color") -> str:
    if not isinstance(color, str) or not HEX_COLOR_RE.match(color):
        raise ValidationError(f"Invalid hex {field}")
    return color


def _validate_xp(xp_per_check: Any) -> int:
    if isinstance(xp_per_check, bool) or not isinstance(xp_per_check, int):
        raise ValidationError("xp_per_check must be an integer")
    if not 1 <= xp_per_check <= 100:
        raise ValidationError("xp_per_check must be between 1 and 100")
    return xp_per_check


def _recurrence_dict(recurrence: Recurrence | None) -> dict[str, int | None] | None:
    if recurrence is None:
        return None
    return {
        "weekly_target": recurrence.weekly_target,
        "monthly_target": recurrence.monthly_target,
        "weekdays_mask": recurrence.weekdays_mask,
        "due_time_minutes": recurrence.due_time_minutes,
    }


def validate_recurrence(cadence: str, recurrence: dict[str, Any] | None) -> dict[str, int | None] | None:
    """Check a recurrence against its cadence and return the normalized mapping.

    A weekly goal needs ``weekly_target`` and a monthly goal needs
    ``monthly_target``; missing targets are rejected rather than defaulted.
    A zero weekday mask is stored as no mask.
    """
    if cadence not in CADENCES:
        raise ValidationError(f"Unknown cadence: {cadence}")

    raw = dict(recurrence or {})
    unknown = set(raw) - set(RECURRENCE_LIMITS)
    if unknown:
        raise ValidationError(f"Unknown recurrence fields: {', '.join(sorted(unknown))}")

    normalized: dict[str, int | None] = {}
    for field, (low, high) in RECURRENCE_LIMITS.items():
        value = raw.get(field)
        if value is None:
            normalized[field] = None
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{field} must be an integer")
        if not low <= value <= high:
            raise ValidationError(f"{field} must be between {low} and {high}")
        normalized[field] = value

    if normalized["weekdays_mask"] == 0:
        normalized["weekdays_mask"] = None

    if cadence == "weekly" and normalized["weekly_target"] is None:
        raise ValidationError("Weekly goals require weekly_target")
    if cadence == "monthly" and normalized["monthly_target"] is None:
        raise ValidationError("Monthly goals require monthly_target")

    if all(v is None for v in normalized.values()):
        return None
    return normalized


def _require_goal(repo: Repository, goal_id: str) -> Goal:
    goal = repo.get_goal(goal_id)
    if goal is None:
        raise NotFoundError("Goal not found")
    return goal


def _require_task(repo: Repository, task_id: str) -> Task:
    task = repo.get_task(task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def list_goals(repo: Repository, archived: bool | None = False) -> list[Goal]:
    return repo.list_goals(archived=archived)


def create_goal(
    repo: Repository,
    title: str,
    cadence: str,
    color: str = DEFAULT_GOAL_COLOR,
    xp_per_check: int | None = None,
    recurrence: dict[str, Any] | None = None,
    now: datetime | None = None,
    rules: GameRules = DEFAULT_RULES,
) -> GoalCreated:
    title = _validate_title(title)
    color = _validate_color(color)
    xp = _validate_xp(rules.default_xp_per_check if xp_per_check is None else xp_per_check)
    normalized = validate_recurrence(cadence, recurrence)
    now = now or datetime.now(timezone.utc)

    with repo.transaction():
        goal = repo.insert_goal(title, cadence, color, xp, now, recurrence=normalized)
        badges = evaluate_badges(repo, BadgeContext(goal_count=repo.count_active_goals()), now)

    logger.info("goal created goal_id=%s cadence=%s", goal.id, cadence)
    return GoalCreated(goal=goal, badges_unlocked=badges)


def update_goal(repo: Repository, goal_id: str, changes: dict[str, Any]) -> Goal:
    """Apply a partial update; a ``recurrence`` key replaces the whole recurrence.

    Cadence is fixed after creation. Validation runs on the merged result.
    """
    if "cadence" in changes:
        raise ValidationError("Cadence cannot be changed")

    with repo.transaction():
        goal = _require_goal(repo, goal_id)
        fields: dict[str, Any] = {}
        if changes.get("title") is not None:
            fields["title"] = _validate_title(changes["title"])
        if changes.get("color") is not None:
            fields["color"] = _validate_color(changes["color"])
        if changes.get("xp_per_check") is not None:
            fields["xp_per_check"] = _validate_xp(changes["xp_per_check"])

        replace = "recurrence" in changes
        merged = changes["recurrence"] if replace else _recurrence_dict(goal.recurrence)
        normalized = validate_recurrence(goal.cadence, merged)

        updated = repo.update_goal(goal_id, fields, recurrence=normalized, replace_recurrence=replace)

    logger.info("goal updated goal_id=%s fields=%s", goal_id, sorted(changes))
    return updated


def _set_archived(repo: Repository, goal_id: str, archived: bool) -> Goal:
    with repo.transaction():
        if not repo.set_goal_archived(goal_id, archived):
            raise NotFoundError("Goal not found")
        goal = _require_goal(repo, goal_id)
    logger.info("goal archived=%s goal_id=%s", archived, goal_id)
    return goal


def archive_goal(repo: Repository, goal_id: str) -> Goal:
    return _set_archived(repo, goal_id, True)


def unarchive_goal(repo: Repository, goal_id: str) -> Goal:
    return _set_archived(repo, goal_id, False)


def list_tasks(repo: Repository, goal_id: str) -> list[Task]:
    _require_goal(repo, goal_id)
    return repo.list_active_tasks(goal_id)


def create_task(
    repo: Repository,
    goal_id: str,
    title: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Task:
    title = _validate_title(title, TASK_TITLE_MAX)
    notes = _validate_notes(notes)
    now = now or datetime.now(timezone.utc)

    with repo.transaction():
        _require_goal(repo, goal_id)
        task = repo.insert_task(goal_id, title, notes, repo.next_task_order(goal_id), now)

    logger.info("task created task_id=%s goal_id=%s", task.id, goal_id)
    return task


def _validate_notes(notes: Any) -> str | None:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("Notes must be text")
    if len(notes) > TASK_NOTES_MAX:
        raise ValidationError(f"Notes must be at most {TASK_NOTES_MAX} characters")
    return notes


def _densify(repo: Repository, goal_id: str, ordered_ids: list[str] | None = None) -> list[Task]:
    active = repo.list_active_tasks(goal_id)
    ids = ordered_ids if ordered_ids is not None else [t.id for t in active]
    repo.set_task_order(goal_id, ids)
    return repo.list_active_tasks(goal_id)


def update_task(repo: Repository, task_id: str, changes: dict[str, Any]) -> Task:
    fields: dict[str, Any] = {}
    if changes.get("title") is not None:
        fields["title"] = _validate_title(changes["title"], TASK_TITLE_MAX)
    if "notes" in changes:
        fields["notes"] = _validate_notes(changes["notes"])
    if changes.get("active") is not None:
        fields["active"] = bool(changes["active"])

    with repo.transaction():
        task = _require_task(repo, task_id)
        updated = repo.update_task(task_id, fields)
        if "active" in fields and fields["active"] != task.active:
            others = [t.id for t in repo.list_active_tasks(task.goal_id) if t.id != task_id]
            # a reactivated task goes to the end of the list
            _densify(repo, task.goal_id, others + [task_id] if updated.active else others)
            updated = _require_task(repo, task_id)
    return updated


def reorder_tasks(repo: Repository, goal_id: str, task_ids: list[str]) -> list[Task]:
    """Put the given active tasks first, in order; order indexes restart at 0."""
    if len(set(task_ids)) != len(task_ids):
        raise ValidationError("Duplicate task ids")

    with repo.transaction():
        _require_goal(repo, goal_id)
        active = repo.list_active_tasks(goal_id)
        active_ids = [t.id for t in active]
        foreign = [tid for tid in task_ids if tid not in active_ids]
        if foreign:
            raise ValidationError("Task ids must belong to active tasks of this goal")
        rest = [tid for tid in active_ids if tid not in task_ids]
        tasks = _densify(repo, goal_id, list(task_ids) + rest)
    return tasks


def delete_task(repo: Repository, task_id: str) -> None:
    """Deactivate a task; check-ins that reference it are kept."""
    with repo.transaction():
        task = _require_task(repo, task_id)
        if task.active:
            repo.update_task(task_id, {"active": False})
            _densify(repo, task.goal_id)
    logger.info("task deleted task_id=%s goal_id=%s", task_id, task.goal_id)


def update_profile_settings(repo: Repository, theme: str | None = None, accent: str | None = None) -> Profile:
    if theme is not None and theme not in THEMES:
        raise ValidationError(f"Unknown theme: {theme}")
    if accent is not None:
        _validate_color(accent, "accent")
    with repo.transaction():
        return repo.update_profile_settings(theme=theme, accent=accent)
