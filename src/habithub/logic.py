# src/habithub/logic.py
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from . import progress
from .errors import NotAuthenticated, ValidationError
from .models import CATEGORIES, DEFAULT_COLOR, STATUSES
from .store import HabitStore
from .timeutils import day_bounds_utc, format_minutes, get_zone, local_today, utc_now

logger = logging.getLogger(__name__)

STREAK_HISTORY_DAYS = 60
DEFAULT_TARGET_MINUTES = 30
EDITABLE_FIELDS = ("name", "description", "category", "target_duration_minutes",
                   "status", "color", "icon")

SAMPLE_HABITS = [
    {"name": "Coding", "description": "Daily programming and development work",
     "category": "development", "target_duration_minutes": 120, "color": "#F59E0B", "icon": "code2"},
    {"name": "Reading", "description": "Reading books and articles",
     "category": "learning", "target_duration_minutes": 60, "color": "#10B981", "icon": "book"},
    {"name": "Exercise", "description": "Physical fitness and workouts",
     "category": "health", "target_duration_minutes": 45, "color": "#3B82F6", "icon": "dumbbell"},
    {"name": "Meditation", "description": "Mindfulness and meditation practice",
     "category": "wellness", "target_duration_minutes": 20, "color": "#8B5CF6", "icon": "brain"},
    {"name": "Writing", "description": "Blog posts, journaling, and creative writing",
     "category": "creative", "target_duration_minutes": 30, "color": "#F43F5E", "icon": "book"},
    {"name": "Learning", "description": "Online courses and skill development",
     "category": "learning", "target_duration_minutes": 90, "color": "#14B8A6", "icon": "book"},
]


@dataclass(frozen=True)
class UserContext:
    """Who is acting and which time zone defines their calendar day."""

    owner_id: str = None
    timezone: str = "UTC"


def _check_fields(fields: dict):
    if "name" in fields:
        if not fields["name"] or not str(fields["name"]).strip():
            raise ValidationError("Habit name cannot be empty.")
        fields["name"] = str(fields["name"]).strip()
    if "category" in fields and fields["category"] not in CATEGORIES:
        raise ValidationError(f"Unknown category '{fields['category']}'")
    if "status" in fields and fields["status"] not in STATUSES:
        raise ValidationError(f"Unknown status '{fields['status']}'")
    target = fields.get("target_duration_minutes")
    if target is not None and target < 0:
        raise ValidationError("Target duration cannot be negative.")
    return fields


class HabitTracker:
    """Habit, log and session operations for one owner."""

    def __init__(self, store: HabitStore, context: UserContext, clock=utc_now):
        self.store = store
        self.context = context
        self.zone = get_zone(context.timezone)
        self.clock = clock

    @property
    def owner(self) -> str:
        if not self.context.owner_id:
            raise NotAuthenticated()
        return self.context.owner_id

    def today(self) -> date:
        return local_today(self.zone, self.clock())

    # -------------------------------
    # HABIT OPERATIONS
    # -------------------------------
    def add_habit(self, name: str, description: str = None, category: str = "other",
                  target_duration_minutes: int = DEFAULT_TARGET_MINUTES,
                  color: str = DEFAULT_COLOR, icon: str = None):
        """Add a new habit for the owner."""
        fields = _check_fields({
            "name": name,
            "description": description or None,
            "category": category,
            "target_duration_minutes": target_duration_minutes,
            "status": "active",
            "color": color or DEFAULT_COLOR,
            "icon": icon,
        })
        habit = self.store.create_habit(self.owner, fields)
        logger.info("Habit '%s' added for user %s", habit.name, habit.user_id)
        return habit

    def list_habits(self, include_inactive: bool = False):
        """Active habits, or every habit when ``include_inactive``."""
        if include_inactive:
            return self.store.list_habits(self.owner)
        return self.store.list_active_habits(self.owner)

    def update_habit(self, habit_id: str, **fields):
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update {', '.join(sorted(unknown))}")
        habit = self.store.update_habit(self.owner, habit_id, _check_fields(dict(fields)))
        logger.info("Habit %s updated: %s", habit_id, ", ".join(sorted(fields)))
        return habit

    def archive_habit(self, habit_id: str):
        """Soft remove: the habit leaves the active list, its history stays."""
        return self.update_habit(habit_id, status="archived")

    def remove_habit(self, habit_id: str):
        """Delete a habit with its logs and sessions."""
        self.store.delete_habit(self.owner, habit_id)
        logger.info("Habit %s deleted", habit_id)

    # -------------------------------
    # TIME LOGGING
    # -------------------------------
    def log_time(self, habit_id: str, duration_minutes: int, notes: str = None):
        """Record time for today; a second log the same day is merged into the first."""
        owner = self.owner
        self.store.get_habit(owner, habit_id)
        log = self.store.upsert_log(owner, habit_id, self.today(), int(duration_minutes),
                                    notes, self.clock())
        if log.duration_minutes != duration_minutes:
            logger.debug("Merged %s minutes into log %s (now %s)",
                         duration_minutes, log.id, log.duration_minutes)
        logger.info("Logged %s for habit %s", format_minutes(duration_minutes), habit_id)
        return log

    def list_logs(self, day: date = None):
        return self.store.list_logs(self.owner, day=day)

    # -------------------------------
    # SESSIONS
    # -------------------------------
    def start_session(self, habit_id: str):
        """Start tracking; any running session of the same habit is ended first."""
        owner = self.owner
        self.store.get_habit(owner, habit_id)
        session = self.store.start_session(owner, habit_id, self.clock())
        logger.info("Session %s started for habit %s", session.id, habit_id)
        return session

    def stop_session(self, session_id: str):
        """Stop tracking. The tracked time is not turned into a log."""
        session = self.store.end_session(self.owner, session_id, self.clock())
        logger.info("Session %s stopped after %s minutes", session_id, session.duration_minutes)
        return session

    def active_sessions(self):
        return self.store.list_active_sessions(self.owner)

    # -------------------------------
    # STATS
    # -------------------------------
    def daily_stats(self, day: date = None):
        """Totals, completion and streaks for one calendar day (default today)."""
        owner = self.owner
        day = day or self.today()
        start, end = day_bounds_utc(day, self.zone)
        history_start = day - timedelta(days=STREAK_HISTORY_DAYS)

        logs = self.store.list_logs(owner, day=day)
        sessions = self.store.list_sessions(owner, start=start, end=end)
        habits = self.store.list_active_habits(owner)
        history_logs, history_sessions = self._history(owner, history_start, day)

        while True:
            stats = progress.compute_daily_stats(day, logs, sessions, habits,
                                                 history_logs, history_sessions, self.zone)
            # a streak that reaches the window start may go further back
            if max(stats.habit_streaks.values(), default=0) < (day - history_start).days:
                break
            earlier = history_start - timedelta(days=STREAK_HISTORY_DAYS)
            more_logs, more_sessions = self._history(owner, earlier, history_start)
            if not more_logs and not more_sessions:
                break
            history_logs += more_logs
            history_sessions += more_sessions
            history_start = earlier
            logger.debug("Streak history extended back to %s", history_start)

        logger.debug("Daily stats for %s: %s logs, %s sessions, %s habits",
                     day, len(logs), len(sessions), len(habits))
        return stats

    def _history(self, owner, start: date, end: date):
        """Logs and sessions of the days ``start`` up to, not including, ``end``."""
        logs = self.store.list_logs(owner, start=start, end=end - timedelta(days=1))
        sessions = self.store.list_sessions(owner, start=day_bounds_utc(start, self.zone)[0],
                                            end=day_bounds_utc(end, self.zone)[0])
        return list(logs), list(sessions)

    def day_activity(self, day: date = None):
        """Logs and sessions of one day with their habit names, newest first."""
        owner = self.owner
        day = day or self.today()
        start, end = day_bounds_utc(day, self.zone)
        habits = {habit.id: habit for habit in self.store.list_habits(owner)}

        entries = []
        for log in self.store.list_logs(owner, day=day):
            entries.append(self._activity(habits, log.habit_id, "log", log.duration_minutes,
                                          log.notes, log.logged_at or start))
        for session in self.store.list_sessions(owner, start=start, end=end):
            entry = self._activity(habits, session.habit_id, "session", session.duration_minutes,
                                   session.notes, session.start_time)
            entry["is_active"] = session.is_active
            entries.append(entry)
        return sorted(entries, key=lambda e: e["at"], reverse=True)

    @staticmethod
    def _activity(habits, habit_id, kind, minutes, notes, at):
        habit = habits.get(habit_id)
        return {
            "habit_id": habit_id,
            "habit": habit.name if habit else "Unknown Habit",
            "color": habit.color if habit else DEFAULT_COLOR,
            "kind": kind,
            "minutes": minutes or 0,
            "notes": notes or "",
            "at": at,
        }

    def weekly_stats(self):
        """Per-day completions and logged hours for the current week."""
        owner = self.owner
        start = progress.week_start(self.today())
        logs = self.store.list_logs(owner, start=start, end=start + timedelta(days=6))
        total = len(self.store.list_active_habits(owner))
        return progress.weekly_breakdown(logs, total, start)

    def analytics(self, period: str = "this-week"):
        """Hours per habit over a period, with each habit's share."""
        owner = self.owner
        start, end = progress.period_bounds(period, self.today())
        habits = self.store.list_active_habits(owner)
        logs = self.store.list_logs(owner, start=start, end=end)
        return {
            "period": period,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "habits": progress.habit_time_share(habits, logs),
        }

    def total_time_tracked(self) -> float:
        """All logged time, in hours."""
        logs = self.store.list_logs(self.owner)
        return progress.minutes_to_hours(sum(log.duration_minutes or 0 for log in logs))

    def active_habits_count(self) -> int:
        return len(self.store.list_active_habits(self.owner))

    # -------------------------------
    # DATA MANAGEMENT
    # -------------------------------
    def clear_today(self):
        """Remove today's logs and sessions; earlier days stay."""
        owner = self.owner
        day = self.today()
        start, end = day_bounds_utc(day, self.zone)
        self.store.delete_sessions(owner, start=start, end=end)
        self.store.delete_logs(owner, day=day)
        logger.info("Cleared data of %s for user %s", day, owner)

    def clear_all(self):
        owner = self.owner
        self.store.delete_sessions(owner)
        self.store.delete_logs(owner)
        for habit in self.store.list_habits(owner):
            self.store.delete_habit(owner, habit.id)
        logger.info("Cleared all data for user %s", owner)

    def seed_sample_habits(self):
        """Create the sample habits, unless the owner already has habits."""
        owner = self.owner
        if self.store.list_habits(owner):
            logger.info("User %s already has habits, skipping seed", owner)
            return []
        return [self.store.create_habit(owner, dict(h)) for h in SAMPLE_HABITS]
