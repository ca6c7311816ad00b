# src/habithub/progress.py
"""Time aggregation and progress numbers for the dashboard.

Everything here is a pure function over rows that were already fetched from
the store. Rounding is half-up throughout (``2.5 -> 3``), which is what the
dashboard has always shown, rather than Python's round-half-even.
"""
import math
from collections import defaultdict
from datetime import date, timedelta, timezone

from .errors import ValidationError
from .models import DEFAULT_COLOR, DailyStats
from .timeutils import local_date

PERIODS = ("this-week", "last-week", "last-month", "all-time")
ALL_TIME_START = date(2020, 1, 1)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def minutes_to_hours(minutes) -> float:
    """Minutes as hours with one decimal place."""
    return round_half_up((minutes or 0) / 60 * 10) / 10


# -------------------------------
# PER-HABIT PROGRESS
# -------------------------------
def calculate_progress(time_spent: int, target: int = None) -> int:
    """Percentage of target reached. Not capped: 150 of 100 is 150."""
    if not target or target <= 0:
        return 0
    return round_half_up(time_spent / target * 100)


def bar_fraction(percentage) -> float:
    """Fill fraction for a progress bar or ring, clamped to [0, 100] percent."""
    return min(max(percentage or 0, 0), 100) / 100


def session_duration_minutes(start_time, end_time) -> int:
    """Whole minutes between two instants, half-up (90s -> 2, 89s -> 1)."""
    seconds = (end_time - start_time).total_seconds()
    return max(0, round_half_up(seconds / 60))


def merge_log(existing_duration, existing_notes, duration: int, notes: str = None, now=None) -> dict:
    """Field values for a second log of the same habit on the same day."""
    total = (existing_duration or 0) + duration
    existing_notes = (existing_notes or "").strip()
    notes = (notes or "").strip()
    if existing_notes and notes:
        combined = f"{existing_notes}; {notes}"
    else:
        combined = existing_notes or notes
    return {
        "duration_minutes": total,
        "notes": combined.strip(),
        "is_completed": total > 0,
        "logged_at": now,
    }


# -------------------------------
# STREAKS
# -------------------------------
def active_days_by_habit(logs, sessions, tz=timezone.utc) -> dict:
    """Days with any positive logged or tracked time, per habit."""
    days = defaultdict(set)
    for log in logs:
        if (log.duration_minutes or 0) > 0:
            days[log.habit_id].add(log.date)
    for session in sessions:
        if (session.duration_minutes or 0) > 0:
            days[session.habit_id].add(local_date(session.start_time, tz))
    return days


def compute_streak(active_days, today: date) -> int:
    """Consecutive active days ending today.

    A day without activity yet does not break the streak: counting then
    starts from yesterday.
    """
    current = today if today in active_days else today - timedelta(days=1)
    streak = 0
    while current in active_days:
        streak += 1
        current -= timedelta(days=1)
    return streak


# -------------------------------
# DAILY STATS
# -------------------------------
def compute_daily_stats(day: date, logs, sessions, active_habits,
                        history_logs=(), history_sessions=(), tz=timezone.utc) -> DailyStats:
    """Aggregate one day's logs and sessions.

    ``logs`` and ``sessions`` are the rows of ``day`` only; the history rows
    (which may include ``day``) feed the streak counts. Logged and tracked
    time are additive: a habit with both gets both.
    """
    log_time = sum(log.duration_minutes or 0 for log in logs)
    session_time = sum(s.duration_minutes or 0 for s in sessions)
    completed = sum(1 for log in logs if log.is_completed)
    total_habits = len(active_habits)

    time_spent = {habit.id: 0 for habit in active_habits}
    for row in list(logs) + list(sessions):
        time_spent[row.habit_id] = time_spent.get(row.habit_id, 0) + (row.duration_minutes or 0)

    days = active_days_by_habit(list(history_logs) + list(logs),
                                list(history_sessions) + list(sessions), tz)
    streaks = {habit.id: compute_streak(days.get(habit.id, set()), day) for habit in active_habits}

    return DailyStats(
        date=day,
        total_time=log_time + session_time,
        completed_habits=completed,
        total_habits=total_habits,
        progress=round_half_up(completed / total_habits * 100) if total_habits > 0 else 0,
        habit_time_spent=time_spent,
        habit_streaks=streaks,
    )


# -------------------------------
# WEEKS AND PERIODS
# -------------------------------
def week_start(today: date) -> date:
    """Weeks start on Sunday."""
    return today - timedelta(days=(today.weekday() + 1) % 7)


def weekly_breakdown(logs, total_habits: int, start: date) -> list:
    """Seven entries from ``start``: completions and logged hours per day."""
    by_day = defaultdict(list)
    for log in logs:
        by_day[log.date].append(log)

    breakdown = []
    for i in range(7):
        day = start + timedelta(days=i)
        day_logs = by_day.get(day, [])
        breakdown.append({
            "date": day.isoformat(),
            "day": day.strftime("%a"),
            "completed": sum(1 for log in day_logs if log.is_completed),
            "total": total_habits,
            "total_hours": minutes_to_hours(sum(log.duration_minutes or 0 for log in day_logs)),
        })
    return breakdown


def period_bounds(period: str, today: date):
    """Inclusive (start, end) dates of an analytics period."""
    if period == "this-week":
        return week_start(today), today
    if period == "last-week":
        start = week_start(today) - timedelta(days=7)
        return start, start + timedelta(days=6)
    if period == "last-month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if period == "all-time":
        return ALL_TIME_START, today
    raise ValidationError(f"Unknown period '{period}', expected one of {', '.join(PERIODS)}")


def habit_time_share(habits, logs) -> list:
    """Hours per habit and each habit's share of the total, largest first."""
    minutes = defaultdict(int)
    for log in logs:
        minutes[log.habit_id] += log.duration_minutes or 0

    stats = [{
        "habit_id": habit.id,
        "habit": habit.name,
        "hours": minutes_to_hours(minutes.get(habit.id, 0)),
        "color": habit.color or DEFAULT_COLOR,
        "percentage": 0,
    } for habit in habits]

    total_hours = sum(s["hours"] for s in stats)
    if total_hours > 0:
        for s in stats:
            s["percentage"] = round_half_up(s["hours"] / total_hours * 100)
    return sorted(stats, key=lambda s: s["hours"], reverse=True)
