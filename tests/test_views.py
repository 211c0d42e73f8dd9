from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from questlog.errors import ValidationError
from questlog.service import perform_checkin
from questlog.views import build_today, monthly_review, weekly_review


def _dt(y: int, m: int, d: int, h: int = 10) -> datetime:
    return datetime(y, m, d, h, 0, tzinfo=ZoneInfo("UTC"))


def test_today_progress_counts_period(repo) -> None:
    weekly = repo.insert_goal("Gym", "weekly", "#7C3AED", 10, _dt(2024, 3, 1), recurrence={"weekly_target": 3})
    daily = repo.insert_goal("Routine", "daily", "#7C3AED", 10, _dt(2024, 3, 1))
    t1 = repo.insert_task(daily.id, "One", None, 0, _dt(2024, 3, 1))
    repo.insert_task(daily.id, "Two", None, 1, _dt(2024, 3, 1))

    perform_checkin(repo, date(2024, 3, 4), weekly.id, now=_dt(2024, 3, 4))
    perform_checkin(repo, date(2024, 3, 5), weekly.id, now=_dt(2024, 3, 5))
    perform_checkin(repo, date(2024, 3, 6), daily.id, t1.id, now=_dt(2024, 3, 6))

    view = build_today(repo, date(2024, 3, 6), _dt(2024, 3, 6, 12))
    by_title = {g.goal.title: g for g in view.goals}

    gym = by_title["Gym"].period_progress
    assert (gym.current, gym.target, gym.completed) == (2, 3, False)
    assert by_title["Gym"].checkins == []

    routine = by_title["Routine"]
    assert (routine.period_progress.current, routine.period_progress.target) == (1, 2)
    assert [c.task_id for c in routine.checkins] == [t1.id]
    assert [t.title for t in routine.tasks] == ["One", "Two"]

    assert view.is_perfect_day
    assert view.profile.xp_total == 55
    assert view.level_progress.current == 55
    # first_checkin was unlocked more than a day before
    assert view.recent_badges == []


def test_today_target_defaults_to_one(repo) -> None:
    goal = repo.insert_goal("Budget", "monthly", "#7C3AED", 10, _dt(2024, 3, 1), recurrence={"monthly_target": 4})
    plain = repo.insert_goal("Walk", "daily", "#7C3AED", 10, _dt(2024, 3, 1))
    view = build_today(repo, date(2024, 3, 6), _dt(2024, 3, 6))
    targets = {g.goal.id: g.period_progress.target for g in view.goals}
    assert targets == {goal.id: 4, plain.id: 1}


def test_weekly_review_aggregates(repo) -> None:
    goal = repo.insert_goal("Walk", "daily", "#7C3AED", 10, _dt(2024, 3, 1))
    perform_checkin(repo, date(2024, 3, 4), goal.id, now=_dt(2024, 3, 4))
    perform_checkin(repo, date(2024, 3, 5), goal.id, now=_dt(2024, 3, 5))

    review = weekly_review(repo, date(2024, 3, 4))
    assert review.start_date == date(2024, 3, 4)
    assert review.end_date == date(2024, 3, 10)
    assert len(review.days) == 7
    assert review.days[0].xp_earned == 10
    assert review.days[0].is_perfect_day
    assert review.days[2].checkins_count == 0
    assert review.totals.xp == 20
    assert review.totals.checkins == 2
    assert review.totals.perfect_days == 2
    assert [(h.goal_title, h.current_streak) for h in review.streak_highlights] == [("Walk", 2)]


def test_monthly_review_covers_whole_month(repo) -> None:
    review = monthly_review(repo, "2024-02")
    assert len(review.days) == 29
    assert review.totals.xp == 0
    assert review.streak_highlights == []
    with pytest.raises(ValidationError):
        monthly_review(repo, "2024-2")
