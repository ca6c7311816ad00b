import logging
from datetime import date, datetime
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from habithub import __version__
from habithub.config import load_settings, setup_logging
from habithub.db import get_store
from habithub.errors import (HabitHubError, NotAuthenticated, NotFound,
                             StoreFailure, ValidationError)
from habithub.logic import DEFAULT_TARGET_MINUTES, HabitTracker, UserContext
from habithub.models import DEFAULT_COLOR
from habithub.progress import bar_fraction, calculate_progress
from habithub.quotes import quote_for_day
from habithub.store import HabitStore
from habithub.timeutils import format_minutes

settings = load_settings()
setup_logging(settings)
logger = logging.getLogger("habithub.api")

app = FastAPI(title="HabitHub API", version=__version__)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

STATUS_CODES = {
    NotAuthenticated: 401,
    NotFound: 404,
    ValidationError: 422,
    StoreFailure: 502,
}


@app.exception_handler(HabitHubError)
async def habithub_error_handler(request: Request, exc: HabitHubError):
    status = next((code for kind, code in STATUS_CODES.items() if isinstance(exc, kind)), 500)
    if status >= 500:
        logger.error("%s failed: %s", request.url.path, exc)
    return JSONResponse(status_code=status, content={"success": False, "error": str(exc)})


# -------------------------------
# DEPENDENCIES
# -------------------------------
@lru_cache
def _default_store() -> HabitStore:
    return get_store(settings)


def get_habit_store() -> HabitStore:
    return _default_store()


def tracker_for(user_id: str, store: HabitStore) -> HabitTracker:
    return HabitTracker(store, UserContext(owner_id=user_id, timezone=settings.timezone))


# -------------------------------
# MODELS
# -------------------------------
class UserIDModel(BaseModel):
    user_id: str | None = None


class HabitAddModel(UserIDModel):
    name: str
    description: str | None = None
    category: str = "other"
    target_minutes: int = Field(default=DEFAULT_TARGET_MINUTES, ge=0)
    color: str = DEFAULT_COLOR
    icon: str | None = None


class HabitIDModel(UserIDModel):
    habit_id: str


class HabitUpdateModel(HabitIDModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    target_minutes: int | None = Field(default=None, ge=0)
    status: str | None = None
    color: str | None = None
    icon: str | None = None


class LogTimeModel(HabitIDModel):
    duration_minutes: int = Field(ge=1, le=480)
    notes: str | None = None


class SessionIDModel(UserIDModel):
    session_id: str


class DayModel(UserIDModel):
    day: date | None = None


class PeriodModel(UserIDModel):
    period: str = "this-week"


def _dump(rows):
    return [row.model_dump(mode="json") for row in rows]


# -------------------------------
# HABIT ROUTES
# -------------------------------
@app.post("/habit/add")
def add_habit(habit: HabitAddModel, store: HabitStore = Depends(get_habit_store)):
    created = tracker_for(habit.user_id, store).add_habit(
        habit.name, habit.description, habit.category,
        habit.target_minutes, habit.color, habit.icon)
    return {
        "success": True,
        "habit_id": created.id,
        "habit": created.model_dump(mode="json"),
        "message": f"Habit '{created.name}' added successfully",
    }


@app.post("/habit/list")
def list_habits(user: UserIDModel, store: HabitStore = Depends(get_habit_store)):
    return {"success": True, "habits": _dump(tracker_for(user.user_id, store).list_habits())}


@app.post("/habit/update")
def update_habit(h: HabitUpdateModel, store: HabitStore = Depends(get_habit_store)):
    fields = h.model_dump(exclude_none=True, exclude={"user_id", "habit_id", "target_minutes"})
    if h.target_minutes is not None:
        fields["target_duration_minutes"] = h.target_minutes
    habit = tracker_for(h.user_id, store).update_habit(h.habit_id, **fields)
    return {"success": True, "habit": habit.model_dump(mode="json")}


@app.post("/habit/archive")
def archive_habit(h: HabitIDModel, store: HabitStore = Depends(get_habit_store)):
    habit = tracker_for(h.user_id, store).archive_habit(h.habit_id)
    return {"success": True, "habit": habit.model_dump(mode="json")}


@app.post("/habit/remove")
def remove_habit(h: HabitIDModel, store: HabitStore = Depends(get_habit_store)):
    tracker_for(h.user_id, store).remove_habit(h.habit_id)
    return {"success": True, "message": "Habit removed successfully"}


@app.post("/habit/seed")
def seed_habits(user: UserIDModel, store: HabitStore = Depends(get_habit_store)):
    created = tracker_for(user.user_id, store).seed_sample_habits()
    return {"success": True, "created": len(created), "habits": _dump(created)}


@app.post("/habit/log")
def log_time(entry: LogTimeModel, store: HabitStore = Depends(get_habit_store)):
    log = tracker_for(entry.user_id, store).log_time(entry.habit_id, entry.duration_minutes, entry.notes)
    return {
        "success": True,
        "log": log.model_dump(mode="json"),
        "message": f"Logged {format_minutes(entry.duration_minutes)}",
    }


# -------------------------------
# SESSION ROUTES
# -------------------------------
@app.post("/session/start")
def start_session(h: HabitIDModel, store: HabitStore = Depends(get_habit_store)):
    session = tracker_for(h.user_id, store).start_session(h.habit_id)
    return {"success": True, "session": session.model_dump(mode="json")}


@app.post("/session/stop")
def stop_session(s: SessionIDModel, store: HabitStore = Depends(get_habit_store)):
    session = tracker_for(s.user_id, store).stop_session(s.session_id)
    return {
        "success": True,
        "session": session.model_dump(mode="json"),
        "message": f"Tracked {format_minutes(session.duration_minutes or 0)}",
    }


@app.post("/session/active")
def active_sessions(user: UserIDModel, store: HabitStore = Depends(get_habit_store)):
    return {"success": True, "sessions": _dump(tracker_for(user.user_id, store).active_sessions())}


# -------------------------------
# STATS ROUTES
# -------------------------------
@app.post("/stats/daily")
def daily_stats(req: DayModel, store: HabitStore = Depends(get_habit_store)):
    tracker = tracker_for(req.user_id, store)
    stats = tracker.daily_stats(req.day)
    habits = []
    for habit in tracker.list_habits():
        spent = stats.habit_time_spent.get(habit.id, 0)
        pct = calculate_progress(spent, habit.target_duration_minutes)
        habits.append({
            "habit_id": habit.id,
            "name": habit.name,
            "color": habit.color,
            "target_minutes": habit.target_duration_minutes,
            "time_spent": spent,
            "time_spent_text": format_minutes(spent),
            "progress": pct,
            "bar": bar_fraction(pct),
            "streak": stats.habit_streaks.get(habit.id, 0),
        })
    return {
        "success": True,
        "stats": stats.model_dump(mode="json"),
        "total_time_text": format_minutes(stats.total_time),
        "habits": habits,
        "quote": quote_for_day(stats.date),
    }


@app.post("/stats/activity")
def day_activity(req: DayModel, store: HabitStore = Depends(get_habit_store)):
    tracker = tracker_for(req.user_id, store)
    day = req.day or tracker.today()
    activity = [{**entry, "at": entry["at"].isoformat()} for entry in tracker.day_activity(day)]
    return {"success": True, "date": day.isoformat(), "activity": activity}


@app.post("/stats/weekly")
def weekly_stats(user: UserIDModel, store: HabitStore = Depends(get_habit_store)):
    return {"success": True, "days": tracker_for(user.user_id, store).weekly_stats()}


@app.post("/stats/analytics")
def analytics(req: PeriodModel, store: HabitStore = Depends(get_habit_store)):
    tracker = tracker_for(req.user_id, store)
    return {
        "success": True,
        **tracker.analytics(req.period),
        "total_hours": tracker.total_time_tracked(),
        "active_habits": tracker.active_habits_count(),
    }


# -------------------------------
# DATA ROUTES
# -------------------------------
@app.post("/data/clear-today")
def clear_today(user: UserIDModel, store: HabitStore = Depends(get_habit_store)):
    tracker_for(user.user_id, store).clear_today()
    return {"success": True, "message": "Today's data cleared"}


@app.post("/data/clear-all")
def clear_all(user: UserIDModel, store: HabitStore = Depends(get_habit_store)):
    tracker_for(user.user_id, store).clear_all()
    return {"success": True, "message": "All data cleared"}


@app.get("/")
def root():
    return {"message": "HabitHub API is running", "status": "healthy"}


# Health check endpoint
@app.get("/health")
def health_check():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
