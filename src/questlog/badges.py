from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from questlog.db_models import Badge
from questlog.repository import Repository

logger = logging.getLogger(__name__)

STREAK_THRESHOLDS = ((7, "streak_7"), (30, "streak_30"), (100, "streak_100"))
XP_THRESHOLDS = ((1000, "xp_1000"), (10000, "xp_10000"))
LEVEL_THRESHOLDS = ((10, "level_10"),)
PERFECT_DAY_THRESHOLDS = ((10, "perfect_day_10"), (50, "perfect_day_50"))
GOAL_COUNT_THRESHOLDS = ((5, "goals_5"),)


@dataclass(frozen=True)
class BadgeContext:
    xp_total: int = 0
    level: int = 1
    perfect_days: int = 0
    new_streak: int = 0
    is_first_checkin: bool = False
    goal_count: int = 0


def _reached(value: int, thresholds: tuple[tuple[int, str], ...]) -> list[str]:
    return [key for threshold, key in thresholds if value >= threshold]


def qualifying_badges(ctx: BadgeContext) -> list[str]:
    """Badge keys whose rule holds for ``ctx``, regardless of unlock state."""
    keys: list[str] = []
    if ctx.is_first_checkin:
        keys.append("first_checkin")
    keys.extend(_reached(ctx.new_streak, STREAK_THRESHOLDS))
    keys.extend(_reached(ctx.xp_total, XP_THRESHOLDS))
    keys.extend(_reached(ctx.level, LEVEL_THRESHOLDS))
    keys.extend(_reached(ctx.perfect_days, PERFECT_DAY_THRESHOLDS))
    keys.extend(_reached(ctx.goal_count, GOAL_COUNT_THRESHOLDS))
    return keys


def evaluate_badges(repo: Repository, ctx: BadgeContext, now: datetime) -> list[Badge]:
    candidates = qualifying_badges(ctx)
    if not candidates:
        return []

    unlocked_keys = {b.key for b in repo.list_badges() if b.unlocked_at is not None}
    newly: list[Badge] = []
    for key in candidates:
        if key in unlocked_keys:
            continue
        badge = repo.unlock_badge(key, now)
        if badge is None:
            continue
        logger.info("badge unlocked key=%s", key)
        newly.append(badge)
    return newly


def recent_badges(repo: Repository, now: datetime, hours: int = 24) -> list[Badge]:
    cutoff = now - timedelta(hours=hours)
    return [b for b in repo.list_badges() if b.unlocked_at is not None and b.unlocked_at >= cutoff]
