# src/habithub/memory_store.py
import threading
import uuid
from datetime import datetime, timezone

from .errors import NotFound
from .models import Habit, HabitLog, HabitSession
from .progress import merge_log, session_duration_minutes
from .store import HabitStore


def _new_id() -> str:
    return str(uuid.uuid4())


def _in_range(moment, start, end) -> bool:
    return (start is None or moment >= start) and (end is None or moment < end)


class MemoryStore(HabitStore):
    """Process-local store with the same semantics as the Supabase tables.

    Used for offline runs (HABITHUB_STORE=memory) and tests. One lock guards
    all tables so upserts and session starts are atomic.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.habits = {}
        self.logs = {}
        self.sessions = {}

    # -------------------------------
    # HABITS
    # -------------------------------
    def list_habits(self, owner, status=None):
        with self._lock:
            rows = [h for h in self.habits.values()
                    if h.user_id == owner and (status is None or h.status == status)]
        return sorted(rows, key=lambda h: h.created_at, reverse=True)

    def get_habit(self, owner, habit_id):
        habit = self.habits.get(habit_id)
        if habit is None or habit.user_id != owner:
            raise NotFound("Habit", habit_id)
        return habit

    def create_habit(self, owner, fields):
        now = datetime.now(timezone.utc)
        habit = Habit(**{**fields, "id": _new_id(), "user_id": owner,
                         "created_at": now, "updated_at": now})
        with self._lock:
            self.habits[habit.id] = habit
        return habit

    def update_habit(self, owner, habit_id, fields):
        with self._lock:
            current = self.get_habit(owner, habit_id)
            data = current.model_dump()
            data.update(fields)
            data["updated_at"] = datetime.now(timezone.utc)
            habit = Habit(**data)
            self.habits[habit_id] = habit
        return habit

    def delete_habit(self, owner, habit_id):
        with self._lock:
            self.get_habit(owner, habit_id)
            del self.habits[habit_id]
            self.logs = {k: v for k, v in self.logs.items() if v.habit_id != habit_id}
            self.sessions = {k: v for k, v in self.sessions.items() if v.habit_id != habit_id}

    # -------------------------------
    # LOGS
    # -------------------------------
    def list_logs(self, owner, day=None, start=None, end=None):
        with self._lock:
            rows = [log for log in self.logs.values() if log.user_id == owner]
        if day is not None:
            rows = [log for log in rows if log.date == day]
        if start is not None:
            rows = [log for log in rows if log.date >= start]
        if end is not None:
            rows = [log for log in rows if log.date <= end]
        return sorted(rows, key=lambda log: log.logged_at, reverse=True)

    def upsert_log(self, owner, habit_id, day, duration, notes, now):
        with self._lock:
            existing = next((log for log in self.logs.values()
                             if log.habit_id == habit_id and log.user_id == owner and log.date == day), None)
            if existing is None:
                log = HabitLog(id=_new_id(), habit_id=habit_id, user_id=owner, date=day,
                               **merge_log(0, "", duration, notes, now))
            else:
                merged = merge_log(existing.duration_minutes, existing.notes, duration, notes, now)
                log = existing.model_copy(update=merged)
            self.logs[log.id] = log
        return log

    def delete_logs(self, owner, day=None):
        with self._lock:
            self.logs = {k: v for k, v in self.logs.items()
                         if not (v.user_id == owner and (day is None or v.date == day))}

    # -------------------------------
    # SESSIONS
    # -------------------------------
    def list_sessions(self, owner, start=None, end=None, active=None):
        with self._lock:
            rows = [s for s in self.sessions.values()
                    if s.user_id == owner and _in_range(s.start_time, start, end)
                    and (active is None or s.is_active == active)]
        return sorted(rows, key=lambda s: s.start_time, reverse=True)

    def start_session(self, owner, habit_id, now):
        with self._lock:
            for s in list(self.sessions.values()):
                if s.habit_id == habit_id and s.is_active:
                    self.sessions[s.id] = s.model_copy(update={
                        "is_active": False,
                        "end_time": now,
                        "duration_minutes": session_duration_minutes(s.start_time, now),
                    })
            session = HabitSession(id=_new_id(), habit_id=habit_id, user_id=owner,
                                   start_time=now, is_active=True, created_at=now)
            self.sessions[session.id] = session
        return session

    def end_session(self, owner, session_id, now):
        with self._lock:
            session = self.sessions.get(session_id)
            if session is None or session.user_id != owner:
                raise NotFound("Session", session_id)
            if not session.is_active:
                return session
            session = session.model_copy(update={
                "is_active": False,
                "end_time": now,
                "duration_minutes": session_duration_minutes(session.start_time, now),
            })
            self.sessions[session_id] = session
        return session

    def delete_sessions(self, owner, start=None, end=None):
        with self._lock:
            self.sessions = {k: v for k, v in self.sessions.items()
                             if not (v.user_id == owner and _in_range(v.start_time, start, end))}
