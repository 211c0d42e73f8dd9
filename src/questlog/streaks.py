from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from questlog.db_models import Goal
from questlog.gamification import FREEZE_MILESTONE_EVERY
from questlog.periods import period_key, previous_period_key

ACTION_NONE = "none"
ACTION_INCREMENT = "increment"
ACTION_RESET = "reset"


@dataclass(frozen=True)
class StreakState:
    current_streak: int
    best_streak: int
    last_period_key: str | None
    freeze_tokens: int

    @classmethod
    def from_goal(cls, goal: Goal) -> StreakState:
        return cls(
            current_streak=goal.current_streak,
            best_streak=goal.best_streak,
            last_period_key=goal.last_period_key,
            freeze_tokens=goal.freeze_tokens,
        )


@dataclass(frozen=True)
class StreakResult:
    action: str
    period_key: str
    new_streak: int
    new_best_streak: int
    last_period_key: str | None
    freeze_tokens: int
    milestone_token: bool

    @property
    def changed(self) -> bool:
        return self.action != ACTION_NONE


@dataclass(frozen=True)
class FreezeEligibility:
    eligible: bool
    missed_period: str | None = None


@dataclass(frozen=True)
class FreezeOutcome:
    success: bool
    freeze_tokens: int
    streak_preserved: int
    last_period_key: str | None


def apply_checkin(
    state: StreakState,
    cadence: str,
    day: date,
    milestone_every: int = FREEZE_MILESTONE_EVERY,
) -> StreakResult:
    current_key = period_key(cadence, day)

    # Period already satisfied: several tasks in one period never double count.
    if state.last_period_key == current_key:
        return StreakResult(
            action=ACTION_NONE,
            period_key=current_key,
            new_streak=state.current_streak,
            new_best_streak=state.best_streak,
            last_period_key=state.last_period_key,
            freeze_tokens=state.freeze_tokens,
            milestone_token=False,
        )

    if state.last_period_key is None:
        new_streak = 1
        action = ACTION_INCREMENT
    elif state.last_period_key == previous_period_key(cadence, current_key):
        new_streak = state.current_streak + 1
        action = ACTION_INCREMENT
    else:
        new_streak = 1
        action = ACTION_RESET

    milestone = milestone_every > 0 and new_streak > 0 and new_streak % milestone_every == 0
    return StreakResult(
        action=action,
        period_key=current_key,
        new_streak=new_streak,
        new_best_streak=max(state.best_streak, new_streak),
        last_period_key=current_key,
        freeze_tokens=state.freeze_tokens + (1 if milestone else 0),
        milestone_token=milestone,
    )


def check_freeze_eligibility(state: StreakState, cadence: str, day: date) -> FreezeEligibility:
    """A freeze covers exactly one skipped period, never zero and never two or more."""
    if state.freeze_tokens <= 0 or state.last_period_key is None:
        return FreezeEligibility(eligible=False)

    current_key = period_key(cadence, day)
    missed = previous_period_key(cadence, current_key)
    two_before = previous_period_key(cadence, missed)
    if state.last_period_key == two_before:
        return FreezeEligibility(eligible=True, missed_period=missed)
    return FreezeEligibility(eligible=False)


def apply_freeze(state: StreakState, cadence: str, day: date) -> FreezeOutcome:
    eligibility = check_freeze_eligibility(state, cadence, day)
    if not eligibility.eligible:
        return FreezeOutcome(
            success=False,
            freeze_tokens=state.freeze_tokens,
            streak_preserved=0,
            last_period_key=state.last_period_key,
        )
    # The streak counter is left alone; the next real check-in increments from the missed period.
    return FreezeOutcome(
        success=True,
        freeze_tokens=state.freeze_tokens - 1,
        streak_preserved=state.current_streak,
        last_period_key=eligibility.missed_period,
    )
