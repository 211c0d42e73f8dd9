from __future__ import annotations

from dataclasses import dataclass

PERFECT_DAY_BONUS = 25
DEFAULT_XP_PER_CHECK = 10
FREEZE_MILESTONE_EVERY = 7

LEVEL_BASE_COST = 100
LEVEL_COST_STEP = 40


@dataclass(frozen=True)
class LevelProgress:
    level: int
    current: int
    required: int
    percentage: int


@dataclass(frozen=True)
class XpChange:
    old_total: int
    new_total: int
    old_level: int
    new_level: int

    @property
    def did_level_up(self) -> bool:
        return self.new_level > self.old_level


def xp_to_next_level(level: int) -> int:
    """XP needed to go from ``level`` to ``level + 1`` (100, 140, 180, ...)."""
    return LEVEL_BASE_COST + (max(1, level) - 1) * LEVEL_COST_STEP


def threshold_for_level(level: int) -> int:
    """Cumulative XP needed to reach ``level``; 0 for level 1."""
    if level <= 1:
        return 0
    n = level - 1
    # Arithmetic series of the first n level costs.
    return n * LEVEL_BASE_COST + LEVEL_COST_STEP * n * (n - 1) // 2


def level_from_xp(total_xp: int) -> int:
    xp = max(0, total_xp)
    level = 1
    accumulated = 0
    while True:
        needed = xp_to_next_level(level)
        if accumulated + needed > xp:
            break
        accumulated += needed
        level += 1
    return level


def level_progress(total_xp: int) -> LevelProgress:
    xp = max(0, total_xp)
    level = level_from_xp(xp)
    current = xp - threshold_for_level(level)
    required = xp_to_next_level(level)
    percentage = min(100, max(0, round(current * 100 / required)))
    return LevelProgress(level=level, current=current, required=required, percentage=percentage)


def add_xp(total_xp: int, amount: int) -> XpChange:
    old_total = max(0, total_xp)
    new_total = max(0, old_total + amount)
    return XpChange(
        old_total=old_total,
        new_total=new_total,
        old_level=level_from_xp(old_total),
        new_level=level_from_xp(new_total),
    )


def subtract_xp(total_xp: int, amount: int) -> XpChange:
    return add_xp(total_xp, -abs(amount))
