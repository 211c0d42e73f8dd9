from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from questlog.db_models import Goal
from questlog.gamification import PERFECT_DAY_BONUS
from questlog.periods import weekday_in_mask
from questlog.repository import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerfectDayResult:
    is_perfect_day: bool
    bonus_awarded: int
    newly_logged: bool


def is_goal_eligible(goal: Goal, day: date) -> bool:
    if goal.archived or goal.cadence != "daily":
        return False
    if goal.created_at.date() > day:
        return False
    mask = goal.recurrence.weekdays_mask if goal.recurrence else None
    return weekday_in_mask(mask, day)


def eligible_goals(goals: Iterable[Goal], day: date) -> list[Goal]:
    return [g for g in goals if is_goal_eligible(g, day)]


def is_perfect_day(goals: Iterable[Goal], completed_goal_ids: set[str], day: date) -> bool:
    eligible = eligible_goals(goals, day)
    if not eligible:
        return False
    return all(g.id in completed_goal_ids for g in eligible)


def check_perfect_day(repo: Repository, day: date) -> bool:
    return is_perfect_day(repo.list_goals(archived=False), repo.goal_ids_checked_on(day), day)


def handle_perfect_day(
    repo: Repository,
    day: date,
    now: datetime,
    bonus: int = PERFECT_DAY_BONUS,
) -> PerfectDayResult:
    """Evaluate ``day`` and credit it the first time it is perfect.

    Crediting logs the date and bumps the profile counter; the bonus XP itself
    is added by the caller so that it can take part in level-up handling.
    """
    if not check_perfect_day(repo, day):
        return PerfectDayResult(is_perfect_day=False, bonus_awarded=0, newly_logged=False)

    if not repo.append_perfect_day(day, now):
        return PerfectDayResult(is_perfect_day=True, bonus_awarded=0, newly_logged=False)

    profile = repo.get_profile()
    repo.update_profile(
        xp_total=profile.xp_total,
        level=profile.level,
        perfect_days=profile.perfect_days + 1,
    )
    logger.info("perfect day logged date=%s bonus=%s", day.isoformat(), bonus)
    return PerfectDayResult(is_perfect_day=True, bonus_awarded=bonus, newly_logged=True)


def get_perfect_days_in_range(repo: Repository, start: date, end: date) -> list[date]:
    return repo.list_perfect_days(start, end)
