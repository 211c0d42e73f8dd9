from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from questlog.badges import BadgeContext, evaluate_badges
from questlog.config import DEFAULT_RULES, GameRules
from questlog.db_models import Badge, Checkin, Goal, Profile
from questlog.errors import NotFoundError, ValidationError
from questlog.gamification import XpChange, add_xp, subtract_xp
from questlog.perfect_day import check_perfect_day, handle_perfect_day
from questlog.repository import Repository
from questlog.streaks import (
    ACTION_NONE,
    FreezeEligibility,
    FreezeOutcome,
    StreakResult,
    StreakState,
    apply_checkin,
    apply_freeze,
    check_freeze_eligibility,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakUpdate:
    new_streak: int
    best_streak: int
    is_new_best: bool
    action: str


@dataclass(frozen=True)
class CheckinResult:
    checkin: Checkin
    xp_earned: int
    profile: Profile
    streak_update: StreakUpdate | None
    badges_unlocked: list[Badge]
    is_perfect_day: bool
    perfect_day_bonus: int
    level_up: bool


@dataclass(frozen=True)
class UndoResult:
    undone: bool
    checkin: Checkin
    profile: Profile
    is_perfect_day: bool


def _require_goal(repo: Repository, goal_id: str) -> Goal:
    goal = repo.get_goal(goal_id)
    if goal is None:
        raise NotFoundError("Goal not found")
    return goal


def _require_task_of_goal(repo: Repository, goal_id: str, task_id: str) -> None:
    task = repo.get_task(task_id)
    if task is None or task.goal_id != goal_id:
        raise NotFoundError("Task not found")


def _credit_xp(repo: Repository, amount: int) -> XpChange:
    profile = repo.get_profile()
    change = add_xp(profile.xp_total, amount)
    repo.update_profile(
        xp_total=change.new_total,
        level=change.new_level,
        perfect_days=profile.perfect_days,
    )
    return change


def _streak_update(before: StreakState, result: StreakResult) -> StreakUpdate | None:
    if result.action == ACTION_NONE:
        return None
    return StreakUpdate(
        new_streak=result.new_streak,
        best_streak=result.new_best_streak,
        is_new_best=result.new_best_streak > before.best_streak,
        action=result.action,
    )


def perform_checkin(
    repo: Repository,
    day: date,
    goal_id: str,
    task_id: str | None = None,
    now: datetime | None = None,
    rules: GameRules = DEFAULT_RULES,
) -> CheckinResult:
    """Record a check-in and apply XP, streak, perfect-day and badge effects.

    Repeating a check-in for the same goal, task and date returns the stored
    row with ``xp_earned == 0`` and changes nothing.
    """
    now = now or datetime.now(timezone.utc)

    with repo.transaction():
        goal = _require_goal(repo, goal_id)
        if task_id is not None:
            _require_task_of_goal(repo, goal_id, task_id)
        elif goal.task_count > 0:
            raise ValidationError("Goal has tasks; check in a task instead")

        existing = repo.find_checkin(goal_id, task_id, day)
        if existing is not None:
            return CheckinResult(
                checkin=existing,
                xp_earned=0,
                profile=repo.get_profile(),
                streak_update=None,
                badges_unlocked=[],
                is_perfect_day=check_perfect_day(repo, day),
                perfect_day_bonus=0,
                level_up=False,
            )

        is_first_checkin = repo.count_checkins() == 0
        checkin = repo.insert_checkin(goal_id, task_id, day, goal.xp_per_check, now)

        xp_change = _credit_xp(repo, checkin.xp_earned)
        if xp_change.did_level_up:
            awarded = repo.award_freeze_token_to_active_goals()
            logger.info("level up level=%s freeze_tokens_awarded=%s", xp_change.new_level, awarded)
            # the level-up token must be visible to the streak engine below
            goal = _require_goal(repo, goal_id)

        state = StreakState.from_goal(goal)
        streak = apply_checkin(state, goal.cadence, day, milestone_every=rules.freeze_milestone_every)
        if streak.changed:
            repo.update_goal_streak(
                goal_id,
                current_streak=streak.new_streak,
                best_streak=streak.new_best_streak,
                last_period_key=streak.last_period_key,
                freeze_tokens=streak.freeze_tokens,
            )

        perfect = handle_perfect_day(repo, day, now, bonus=rules.perfect_day_bonus)
        level_up = xp_change.did_level_up
        if perfect.bonus_awarded > 0:
            bonus_change = _credit_xp(repo, perfect.bonus_awarded)
            if bonus_change.did_level_up:
                level_up = True
                logger.info("level up from perfect day bonus level=%s", bonus_change.new_level)

        profile = repo.get_profile()
        unlocked = evaluate_badges(
            repo,
            BadgeContext(
                xp_total=profile.xp_total,
                level=profile.level,
                perfect_days=profile.perfect_days,
                new_streak=streak.new_streak,
                is_first_checkin=is_first_checkin,
            ),
            now,
        )

    logger.info(
        "checkin goal_id=%s task_id=%s date=%s xp=%s streak=%s action=%s",
        goal_id,
        task_id,
        day.isoformat(),
        checkin.xp_earned + perfect.bonus_awarded,
        streak.new_streak,
        streak.action,
    )
    return CheckinResult(
        checkin=checkin,
        xp_earned=checkin.xp_earned + perfect.bonus_awarded,
        profile=profile,
        streak_update=_streak_update(state, streak),
        badges_unlocked=unlocked,
        is_perfect_day=perfect.is_perfect_day,
        perfect_day_bonus=perfect.bonus_awarded,
        level_up=level_up,
    )


def undo_checkin(repo: Repository, day: date, goal_id: str, task_id: str | None = None) -> UndoResult:
    """Remove a check-in and take back its XP.

    Streak state, badge unlocks and perfect-day credit are kept as they are.
    """
    with repo.transaction():
        checkin = repo.find_checkin(goal_id, task_id, day)
        if checkin is None:
            raise NotFoundError("Checkin not found")

        profile = repo.get_profile()
        change = subtract_xp(profile.xp_total, checkin.xp_earned)
        repo.update_profile(
            xp_total=change.new_total,
            level=change.new_level,
            perfect_days=profile.perfect_days,
        )
        repo.delete_checkin(checkin.id)
        profile = repo.get_profile()
        is_perfect = check_perfect_day(repo, day)

    logger.info(
        "undo checkin goal_id=%s task_id=%s date=%s xp=%s",
        goal_id,
        task_id,
        day.isoformat(),
        checkin.xp_earned,
    )
    return UndoResult(undone=True, checkin=checkin, profile=profile, is_perfect_day=is_perfect)


def freeze_eligibility(repo: Repository, goal_id: str, day: date) -> FreezeEligibility:
    goal = _require_goal(repo, goal_id)
    return check_freeze_eligibility(StreakState.from_goal(goal), goal.cadence, day)


def use_freeze(repo: Repository, goal_id: str, day: date) -> FreezeOutcome:
    with repo.transaction():
        goal = _require_goal(repo, goal_id)
        outcome = apply_freeze(StreakState.from_goal(goal), goal.cadence, day)
        if outcome.success:
            repo.update_goal_streak(
                goal_id,
                current_streak=goal.current_streak,
                best_streak=goal.best_streak,
                last_period_key=outcome.last_period_key,
                freeze_tokens=outcome.freeze_tokens,
            )
    if outcome.success:
        logger.info("freeze used goal_id=%s covered=%s", goal_id, outcome.last_period_key)
    return outcome
