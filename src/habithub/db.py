# src/habithub/db.py
import logging
from datetime import datetime, timezone

import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client

from .config import Settings, load_settings
from .errors import NotFound, StoreFailure
from .memory_store import MemoryStore
from .models import Habit, HabitLog, HabitSession
from .progress import session_duration_minutes
from .store import HabitStore

logger = logging.getLogger(__name__)

HABITS = "habits"
LOGS = "habit_logs"
SESSIONS = "habit_sessions"

# PostgREST caps a response at its max-rows setting (1000 by default)
PAGE_SIZE = 1000


def _execute(query, action: str):
    """Run a PostgREST query; any client or transport error becomes StoreFailure."""
    try:
        return query.execute()
    except APIError as e:
        logger.error("Store rejected %s: %s (code %s)", action, e.message, e.code)
        raise StoreFailure(f"Failed to {action}: {e.message}") from e
    except httpx.HTTPError as e:
        logger.error("Store unreachable during %s: %s", action, e)
        raise StoreFailure(f"Failed to {action}: {e}") from e


def _select_all(build, action: str) -> list:
    """Every row of a select, fetched page by page. ``build`` makes a fresh query."""
    rows = []
    while True:
        resp = _execute(build().range(len(rows), len(rows) + PAGE_SIZE - 1), action)
        page = resp.data or []
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            return rows


def _one(data):
    """First row of a response body; RPCs may return an object or a list."""
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


class SupabaseStore(HabitStore):
    """Data store over the Supabase tables defined in sql/schema.sql."""

    def __init__(self, client: Client):
        self.client = client

    # -------------------------------
    # HABITS
    # -------------------------------
    def list_habits(self, owner, status=None):
        query = self.client.table(HABITS).select("*").eq("user_id", owner)
        if status:
            query = query.eq("status", status)
        resp = _execute(query.order("created_at", desc=True), "list habits")
        return [Habit(**row) for row in resp.data or []]

    def get_habit(self, owner, habit_id):
        resp = _execute(self.client.table(HABITS).select("*")
                        .eq("id", habit_id).eq("user_id", owner).limit(1), "get habit")
        if not resp.data:
            raise NotFound("Habit", habit_id)
        return Habit(**resp.data[0])

    def create_habit(self, owner, fields):
        payload = {**fields, "user_id": owner}
        resp = _execute(self.client.table(HABITS).insert(payload), "create habit")
        if not resp.data:
            raise StoreFailure("Failed to create habit: no row returned")
        return Habit(**resp.data[0])

    def update_habit(self, owner, habit_id, fields):
        payload = {**fields, "updated_at": _iso(datetime.now(timezone.utc))}
        resp = _execute(self.client.table(HABITS).update(payload)
                        .eq("id", habit_id).eq("user_id", owner), "update habit")
        if not resp.data:
            raise NotFound("Habit", habit_id)
        return Habit(**resp.data[0])

    def delete_habit(self, owner, habit_id):
        self.get_habit(owner, habit_id)
        # logs and sessions cascade through their foreign keys
        _execute(self.client.table(HABITS).delete()
                 .eq("id", habit_id).eq("user_id", owner), "delete habit")

    # -------------------------------
    # LOGS
    # -------------------------------
    def list_logs(self, owner, day=None, start=None, end=None):
        def build():
            query = self.client.table(LOGS).select("*").eq("user_id", owner)
            if day is not None:
                query = query.eq("date", day.isoformat())
            if start is not None:
                query = query.gte("date", start.isoformat())
            if end is not None:
                query = query.lte("date", end.isoformat())
            return query.order("logged_at", desc=True)

        return [HabitLog(**row) for row in _select_all(build, "list habit logs")]

    def upsert_log(self, owner, habit_id, day, duration, notes, now):
        # log_habit_time inserts or merges in one statement (ON CONFLICT DO UPDATE)
        resp = _execute(self.client.rpc("log_habit_time", {
            "p_user_id": owner,
            "p_habit_id": habit_id,
            "p_date": day.isoformat(),
            "p_duration": duration,
            "p_notes": notes or "",
            "p_now": _iso(now),
        }), "log habit")
        row = _one(resp.data)
        if row is None:
            raise StoreFailure("Failed to log habit: no row returned")
        return HabitLog(**row)

    def delete_logs(self, owner, day=None):
        query = self.client.table(LOGS).delete().eq("user_id", owner)
        if day is not None:
            query = query.eq("date", day.isoformat())
        _execute(query, "delete habit logs")

    # -------------------------------
    # SESSIONS
    # -------------------------------
    def _session_query(self, query, owner, start, end):
        query = query.eq("user_id", owner)
        if start is not None:
            query = query.gte("start_time", _iso(start))
        if end is not None:
            query = query.lt("start_time", _iso(end))
        return query

    def list_sessions(self, owner, start=None, end=None, active=None):
        def build():
            query = self._session_query(self.client.table(SESSIONS).select("*"), owner, start, end)
            if active is not None:
                query = query.eq("is_active", active)
            return query.order("start_time", desc=True)

        return [HabitSession(**row) for row in _select_all(build, "list sessions")]

    def start_session(self, owner, habit_id, now):
        # start_habit_session ends the prior active session and inserts in one transaction
        resp = _execute(self.client.rpc("start_habit_session", {
            "p_user_id": owner,
            "p_habit_id": habit_id,
            "p_now": _iso(now),
        }), "start session")
        row = _one(resp.data)
        if row is None:
            raise StoreFailure("Failed to start session: no row returned")
        return HabitSession(**row)

    def end_session(self, owner, session_id, now):
        resp = _execute(self.client.table(SESSIONS).select("*")
                        .eq("id", session_id).eq("user_id", owner).limit(1), "get session")
        if not resp.data:
            raise NotFound("Session", session_id)
        session = HabitSession(**resp.data[0])
        if not session.is_active:
            return session

        resp = _execute(self.client.table(SESSIONS).update({
            "is_active": False,
            "end_time": _iso(now),
            "duration_minutes": session_duration_minutes(session.start_time, now),
        }).eq("id", session_id).eq("user_id", owner), "end session")
        if not resp.data:
            raise NotFound("Session", session_id)
        return HabitSession(**resp.data[0])

    def delete_sessions(self, owner, start=None, end=None):
        query = self._session_query(self.client.table(SESSIONS).delete(), owner, start, end)
        _execute(query, "delete sessions")


# -------------------------------
# FACTORY
# -------------------------------
def get_store(settings: Settings = None) -> HabitStore:
    """Build the store named by HABITHUB_STORE."""
    settings = settings or load_settings()
    if settings.store == "memory":
        logger.info("Using in-memory store; data is lost on restart")
        return MemoryStore()
    if settings.store != "supabase":
        raise StoreFailure(f"Unknown store '{settings.store}', expected 'supabase' or 'memory'")
    if not settings.supabase_url or not settings.supabase_key:
        raise StoreFailure("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
    return SupabaseStore(create_client(settings.supabase_url, settings.supabase_key))
