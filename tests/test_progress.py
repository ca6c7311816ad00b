from datetime import date, datetime, timedelta, timezone

import pytest

from habithub.errors import ValidationError
from habithub.models import Habit, HabitLog, HabitSession
from habithub.progress import (bar_fraction, calculate_progress, compute_daily_stats,
                               compute_streak, habit_time_share, merge_log, period_bounds,
                               session_duration_minutes, week_start, weekly_breakdown)

DAY = date(2024, 3, 14)


def habit(hid, name=None, color="#3B82F6"):
    return Habit(id=hid, user_id="u", name=name or hid, color=color)


def log(hid, minutes, completed=None, day=DAY):
    return HabitLog(id=f"log-{hid}-{day}", habit_id=hid, user_id="u", date=day,
                    duration_minutes=minutes,
                    is_completed=minutes > 0 if completed is None else completed)


def session(hid, minutes, start=None):
    start = start or datetime(2024, 3, 14, 9, 0, tzinfo=timezone.utc)
    return HabitSession(id=f"s-{hid}-{start}", habit_id=hid, user_id="u", start_time=start,
                        duration_minutes=minutes, is_active=minutes is None)


def test_progress_is_not_capped():
    assert calculate_progress(150, 100) == 150
    assert calculate_progress(45, 90) == 50
    assert calculate_progress(1, 3) == 33


def test_progress_rounds_half_up():
    assert calculate_progress(1, 8) == 13
    assert calculate_progress(5, 200) == 3


@pytest.mark.parametrize("target", [0, -5, None])
def test_progress_without_positive_target_is_zero(target):
    assert calculate_progress(120, target) == 0


def test_bar_fraction_clamps_but_progress_does_not():
    assert bar_fraction(calculate_progress(150, 100)) == 1.0
    assert bar_fraction(42) == 0.42
    assert bar_fraction(-10) == 0.0


def test_session_duration_rounds_to_nearest_minute():
    start = datetime(2024, 3, 14, 10, 0, 0, tzinfo=timezone.utc)
    assert session_duration_minutes(start, start + timedelta(minutes=2, seconds=30)) == 3
    assert session_duration_minutes(start, start + timedelta(seconds=90)) == 2
    assert session_duration_minutes(start, start + timedelta(seconds=89)) == 1
    assert session_duration_minutes(start, start + timedelta(seconds=20)) == 0


def test_merge_log_sums_and_joins_notes():
    now = datetime(2024, 3, 14, 12, tzinfo=timezone.utc)
    merged = merge_log(30, "morning run", 20, "evening walk", now)
    assert merged == {
        "duration_minutes": 50,
        "notes": "morning run; evening walk",
        "is_completed": True,
        "logged_at": now,
    }
    assert merge_log(30, "", 20, "only new")["notes"] == "only new"
    assert merge_log(30, "kept", 20, None)["notes"] == "kept"
    assert merge_log(None, None, 0)["is_completed"] is False


def test_daily_stats_adds_logs_and_sessions():
    stats = compute_daily_stats(
        DAY,
        logs=[log("A", 30, completed=True), log("B", 0, completed=False)],
        sessions=[session("A", 15)],
        active_habits=[habit("A"), habit("B")],
    )
    assert stats.total_time == 45
    assert stats.completed_habits == 1
    assert stats.total_habits == 2
    assert stats.progress == 50
    assert stats.habit_time_spent == {"A": 45, "B": 0}


def test_daily_stats_null_durations_count_as_zero():
    running = session("A", None)
    stats = compute_daily_stats(DAY, [], [running], [habit("A")])
    assert stats.total_time == 0
    assert stats.habit_time_spent == {"A": 0}
    assert stats.progress == 0


def test_daily_stats_without_habits():
    stats = compute_daily_stats(DAY, [log("A", 10)], [], [])
    assert stats.total_habits == 0
    assert stats.progress == 0
    assert stats.habit_time_spent == {"A": 10}


def test_streak_counts_consecutive_days():
    assert compute_streak({DAY, DAY - timedelta(days=1), DAY - timedelta(days=2)}, DAY) == 3
    assert compute_streak({DAY, DAY - timedelta(days=2)}, DAY) == 1


def test_streak_allows_today_to_be_pending():
    assert compute_streak({DAY - timedelta(days=1), DAY - timedelta(days=2)}, DAY) == 2
    assert compute_streak({DAY - timedelta(days=2)}, DAY) == 0
    assert compute_streak(set(), DAY) == 0


def test_daily_stats_streaks_use_history_and_sessions():
    yesterday = DAY - timedelta(days=1)
    two_days_ago = DAY - timedelta(days=2)
    stats = compute_daily_stats(
        DAY,
        logs=[log("A", 30)],
        sessions=[],
        active_habits=[habit("A"), habit("B")],
        history_logs=[log("A", 20, day=yesterday), log("B", 0, day=yesterday)],
        history_sessions=[session("A", 10, start=datetime(2024, 3, 12, 8, tzinfo=timezone.utc))],
    )
    assert two_days_ago == date(2024, 3, 12)
    assert stats.habit_streaks == {"A": 3, "B": 0}


def test_week_starts_on_sunday():
    assert week_start(DAY) == date(2024, 3, 10)
    assert week_start(date(2024, 3, 10)) == date(2024, 3, 10)


def test_weekly_breakdown_has_seven_days():
    start = week_start(DAY)
    days = weekly_breakdown([log("A", 90, day=DAY), log("B", 30, day=DAY),
                             log("A", 0, completed=False, day=start)], 3, start)
    assert len(days) == 7
    assert days[0] == {"date": "2024-03-10", "day": "Sun", "completed": 0, "total": 3, "total_hours": 0.0}
    assert days[4]["day"] == "Thu"
    assert days[4]["completed"] == 2
    assert days[4]["total_hours"] == 2.0


def test_period_bounds():
    assert period_bounds("this-week", DAY) == (date(2024, 3, 10), DAY)
    assert period_bounds("last-week", DAY) == (date(2024, 3, 3), date(2024, 3, 9))
    assert period_bounds("last-month", DAY) == (date(2024, 2, 1), date(2024, 2, 29))
    assert period_bounds("all-time", DAY) == (date(2020, 1, 1), DAY)
    with pytest.raises(ValidationError):
        period_bounds("fortnight", DAY)


def test_habit_time_share_sorted_by_hours():
    habits = [habit("B", "Reading"), habit("A", "Coding", "#F59E0B"), habit("C", "Idle")]
    logs = [log("A", 60), log("A", 30, day=DAY - timedelta(days=1)), log("B", 30)]
    share = habit_time_share(habits, logs)
    assert [s["habit"] for s in share] == ["Coding", "Reading", "Idle"]
    assert [s["hours"] for s in share] == [1.5, 0.5, 0.0]
    assert [s["percentage"] for s in share] == [75, 25, 0]
    assert share[0]["color"] == "#F59E0B"
