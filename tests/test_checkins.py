from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from questlog.errors import NotFoundError, ValidationError
from questlog.service import freeze_eligibility, perform_checkin, undo_checkin, use_freeze
from questlog.streaks import ACTION_INCREMENT, ACTION_RESET


def _dt(y: int, m: int, d: int, h: int = 10) -> datetime:
    return datetime(y, m, d, h, 0, tzinfo=ZoneInfo("UTC"))


def _goal(repo, title: str = "Stretch", cadence: str = "daily", xp: int = 10, recurrence=None):
    return repo.insert_goal(title, cadence, "#7C3AED", xp, _dt(2024, 3, 1, 8), recurrence=recurrence)


def test_first_checkin_awards_xp_streak_badge_and_perfect_day(repo) -> None:
    goal = _goal(repo)
    result = perform_checkin(repo, date(2024, 3, 4), goal.id, now=_dt(2024, 3, 4))

    assert result.checkin.xp_earned == 10
    assert result.is_perfect_day
    assert result.perfect_day_bonus == 25
    assert result.xp_earned == 35
    assert result.profile.xp_total == 35
    assert result.profile.perfect_days == 1
    assert result.streak_update is not None
    assert result.streak_update.new_streak == 1
    assert result.streak_update.is_new_best
    assert result.streak_update.action == ACTION_INCREMENT
    assert [b.key for b in result.badges_unlocked] == ["first_checkin"]

    stored = repo.get_goal(goal.id)
    assert stored.current_streak == 1
    assert stored.last_period_key == "2024-03-04"


def test_checkin_is_idempotent(repo) -> None:
    goal = _goal(repo)
    day = date(2024, 3, 4)
    first = perform_checkin(repo, day, goal.id, now=_dt(2024, 3, 4))
    second = perform_checkin(repo, day, goal.id, now=_dt(2024, 3, 4, 11))

    assert second.checkin.id == first.checkin.id
    assert second.xp_earned == 0
    assert second.badges_unlocked == []
    assert second.streak_update is None
    assert repo.count_checkins() == 1
    assert repo.get_profile().xp_total == first.profile.xp_total


def test_unknown_goal_or_foreign_task_is_not_found(repo) -> None:
    goal = _goal(repo, "A")
    other = _goal(repo, "B")
    task = repo.insert_task(other.id, "Other task", None, 0, _dt(2024, 3, 1))

    with pytest.raises(NotFoundError):
        perform_checkin(repo, date(2024, 3, 4), "missing", now=_dt(2024, 3, 4))
    with pytest.raises(NotFoundError):
        perform_checkin(repo, date(2024, 3, 4), goal.id, task.id, now=_dt(2024, 3, 4))
    assert repo.count_checkins() == 0


def test_tasks_in_same_period_do_not_double_count_streak(repo) -> None:
    goal = _goal(repo)
    t1 = repo.insert_task(goal.id, "Warm up", None, 0, _dt(2024, 3, 1))
    t2 = repo.insert_task(goal.id, "Cool down", None, 1, _dt(2024, 3, 1))
    day = date(2024, 3, 4)

    r1 = perform_checkin(repo, day, goal.id, t1.id, now=_dt(2024, 3, 4))
    r2 = perform_checkin(repo, day, goal.id, t2.id, now=_dt(2024, 3, 4, 11))

    assert r1.streak_update is not None
    assert r2.streak_update is None
    assert r2.xp_earned == 10
    assert repo.get_goal(goal.id).current_streak == 1
    assert repo.count_checkins() == 2


def test_streak_increments_then_resets(repo) -> None:
    goal = _goal(repo, cadence="weekly", recurrence={"weekly_target": 1})
    perform_checkin(repo, date(2024, 3, 4), goal.id, now=_dt(2024, 3, 4))
    second = perform_checkin(repo, date(2024, 3, 12), goal.id, now=_dt(2024, 3, 12))
    assert second.streak_update.new_streak == 2

    third = perform_checkin(repo, date(2024, 3, 28), goal.id, now=_dt(2024, 3, 28))
    assert third.streak_update.action == ACTION_RESET
    assert third.streak_update.new_streak == 1
    assert not third.streak_update.is_new_best
    assert repo.get_goal(goal.id).best_streak == 2


def test_level_up_grants_freeze_token_to_active_goals(repo) -> None:
    goal = _goal(repo, "Big", xp=100, cadence="weekly", recurrence={"weekly_target": 3})
    idle = _goal(repo, "Idle", cadence="weekly", recurrence={"weekly_target": 3})
    archived = _goal(repo, "Old", cadence="weekly", recurrence={"weekly_target": 3})
    repo.set_goal_archived(archived.id, True)

    result = perform_checkin(repo, date(2024, 3, 4), goal.id, now=_dt(2024, 3, 4))

    assert result.level_up
    assert result.profile.level == 2
    assert repo.get_goal(goal.id).freeze_tokens == 1
    assert repo.get_goal(idle.id).freeze_tokens == 1
    assert repo.get_goal(archived.id).freeze_tokens == 0


def test_undo_subtracts_xp_but_keeps_streak_and_perfect_day(repo) -> None:
    goal = _goal(repo)
    day = date(2024, 3, 4)
    perform_checkin(repo, day, goal.id, now=_dt(2024, 3, 4))

    undone = undo_checkin(repo, day, goal.id)

    assert undone.undone
    assert undone.profile.xp_total == 25
    assert not undone.is_perfect_day
    assert repo.count_checkins() == 0
    assert repo.get_goal(goal.id).current_streak == 1
    assert repo.get_profile().perfect_days == 1
    assert {b.key for b in repo.list_badges() if b.unlocked_at} == {"first_checkin"}


def test_undo_missing_checkin_is_not_found(repo) -> None:
    goal = _goal(repo)
    with pytest.raises(NotFoundError):
        undo_checkin(repo, date(2024, 3, 4), goal.id)


def test_redo_after_undo_awards_checkin_xp_without_second_bonus(repo) -> None:
    goal = _goal(repo)
    day = date(2024, 3, 4)
    perform_checkin(repo, day, goal.id, now=_dt(2024, 3, 4))
    undo_checkin(repo, day, goal.id)
    redo = perform_checkin(repo, day, goal.id, now=_dt(2024, 3, 4, 12))

    assert redo.xp_earned == 10
    assert redo.is_perfect_day
    assert redo.perfect_day_bonus == 0
    assert redo.streak_update is None
    assert redo.profile.xp_total == 35


def test_use_freeze_covers_one_missed_day(repo) -> None:
    goal = _goal(repo)
    repo.update_goal_streak(goal.id, current_streak=4, best_streak=4, last_period_key="2024-03-08", freeze_tokens=1)

    assert freeze_eligibility(repo, goal.id, date(2024, 3, 10)).eligible
    outcome = use_freeze(repo, goal.id, date(2024, 3, 10))
    assert outcome.success

    stored = repo.get_goal(goal.id)
    assert stored.freeze_tokens == 0
    assert stored.last_period_key == "2024-03-09"
    assert stored.current_streak == 4

    result = perform_checkin(repo, date(2024, 3, 10), goal.id, now=_dt(2024, 3, 10))
    assert result.streak_update.new_streak == 5


def test_use_freeze_refused_without_tokens(repo) -> None:
    goal = _goal(repo)
    repo.update_goal_streak(goal.id, current_streak=4, best_streak=4, last_period_key="2024-03-08", freeze_tokens=0)
    outcome = use_freeze(repo, goal.id, date(2024, 3, 10))
    assert not outcome.success
    assert repo.get_goal(goal.id).last_period_key == "2024-03-08"


def test_failed_checkin_rolls_back_all_writes(repo, monkeypatch) -> None:
    goal = _goal(repo)

    def boom(*args, **kwargs):
        raise RuntimeError("evaluator failed")

    monkeypatch.setattr("questlog.service.evaluate_badges", boom)
    with pytest.raises(RuntimeError):
        perform_checkin(repo, date(2024, 3, 4), goal.id, now=_dt(2024, 3, 4))

    assert repo.count_checkins() == 0
    assert repo.get_profile().xp_total == 0
    assert repo.get_goal(goal.id).current_streak == 0
    assert not repo.is_perfect_day_logged(date(2024, 3, 4))


def test_goal_with_tasks_requires_task_checkin(repo) -> None:
    goal = _goal(repo)
    task = repo.insert_task(goal.id, "Warm up", None, 0, _dt(2024, 3, 1))

    with pytest.raises(ValidationError):
        perform_checkin(repo, date(2024, 3, 4), goal.id, now=_dt(2024, 3, 4))
    assert repo.count_checkins() == 0

    result = perform_checkin(repo, date(2024, 3, 4), goal.id, task.id, now=_dt(2024, 3, 4))
    assert result.checkin.task_id == task.id
