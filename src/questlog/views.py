from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from questlog.badges import recent_badges
from questlog.db_models import Badge, Checkin, Goal, Profile, Task
from questlog.gamification import LevelProgress, level_progress
from questlog.perfect_day import check_perfect_day, get_perfect_days_in_range
from questlog.periods import period_bounds, period_key
from questlog.repository import Repository
from questlog.time_utils import month_dates, week_dates

HIGHLIGHT_LIMIT = 5


@dataclass(frozen=True)
class PeriodProgress:
    current: int
    target: int
    completed: bool


@dataclass(frozen=True)
class TodayGoal:
    goal: Goal
    tasks: list[Task]
    checkins: list[Checkin]
    period_progress: PeriodProgress


@dataclass(frozen=True)
class TodayView:
    date: date
    profile: Profile
    level_progress: LevelProgress
    goals: list[TodayGoal]
    is_perfect_day: bool
    recent_badges: list[Badge]


@dataclass(frozen=True)
class DayStats:
    date: date
    xp_earned: int
    checkins_count: int
    is_perfect_day: bool


@dataclass(frozen=True)
class ReviewTotals:
    xp: int
    checkins: int
    perfect_days: int


@dataclass(frozen=True)
class StreakHighlight:
    goal_id: str
    goal_title: str
    current_streak: int


@dataclass(frozen=True)
class Review:
    start_date: date
    end_date: date
    days: list[DayStats]
    totals: ReviewTotals
    streak_highlights: list[StreakHighlight]


def period_target(goal: Goal, task_count: int) -> int:
    if task_count > 0:
        return task_count
    rec = goal.recurrence
    if goal.cadence == "weekly" and rec and rec.weekly_target:
        return rec.weekly_target
    if goal.cadence == "monthly" and rec and rec.monthly_target:
        return rec.monthly_target
    return 1


def period_progress(goal: Goal, tasks: list[Task], period_checkins: list[Checkin]) -> PeriodProgress:
    """Progress of a goal inside its current period.

    With tasks, each active task counts once per period; otherwise each day
    with a check-in counts once.
    """
    if tasks:
        task_ids = {t.id for t in tasks}
        current = len({c.task_id for c in period_checkins if c.task_id in task_ids})
    else:
        current = len({c.date for c in period_checkins})
    target = period_target(goal, len(tasks))
    return PeriodProgress(current=current, target=target, completed=current >= target)


def build_today(repo: Repository, day: date, now: datetime) -> TodayView:
    goals: list[TodayGoal] = []
    for goal in repo.list_goals(archived=False):
        tasks = repo.list_active_tasks(goal.id)
        start, end = period_bounds(goal.cadence, period_key(goal.cadence, day))
        period_checkins = repo.list_checkins(goal.id, start, end)
        goals.append(
            TodayGoal(
                goal=goal,
                tasks=tasks,
                checkins=[c for c in period_checkins if c.date == day],
                period_progress=period_progress(goal, tasks, period_checkins),
            )
        )

    profile = repo.get_profile()
    return TodayView(
        date=day,
        profile=profile,
        level_progress=level_progress(profile.xp_total),
        goals=goals,
        is_perfect_day=check_perfect_day(repo, day),
        recent_badges=recent_badges(repo, now),
    )


def _review(repo: Repository, dates: list[date]) -> Review:
    start, end = dates[0], dates[-1]
    totals_by_day = repo.daily_checkin_totals(start, end)
    perfect = set(get_perfect_days_in_range(repo, start, end))

    days: list[DayStats] = []
    for day in dates:
        totals = totals_by_day.get(day)
        days.append(
            DayStats(
                date=day,
                xp_earned=totals.xp_earned if totals else 0,
                checkins_count=totals.checkins_count if totals else 0,
                is_perfect_day=day in perfect,
            )
        )

    highlights = [
        StreakHighlight(goal_id=g.id, goal_title=g.title, current_streak=g.current_streak)
        for g in repo.top_streaks(HIGHLIGHT_LIMIT)
    ]
    return Review(
        start_date=start,
        end_date=end,
        days=days,
        totals=ReviewTotals(
            xp=sum(d.xp_earned for d in days),
            checkins=sum(d.checkins_count for d in days),
            perfect_days=sum(1 for d in days if d.is_perfect_day),
        ),
        streak_highlights=highlights,
    )


def weekly_review(repo: Repository, start: date) -> Review:
    """Seven days beginning at ``start``."""
    return _review(repo, week_dates(start))


def monthly_review(repo: Repository, month_key: str) -> Review:
    first, _ = period_bounds("monthly", month_key)
    return _review(repo, month_dates(first.year, first.month))
