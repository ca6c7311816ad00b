# src/habithub/models.py
from datetime import date, datetime, timezone
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

CATEGORIES = ("development", "learning", "health", "wellness",
              "productivity", "creative", "social", "other")
STATUSES = ("active", "paused", "completed", "archived")
DEFAULT_COLOR = "#3B82F6"

Category = Literal["development", "learning", "health", "wellness",
                   "productivity", "creative", "social", "other"]
Status = Literal["active", "paused", "completed", "archived"]


def _as_utc(value):
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# -------------------------------
# STORED ROWS
# -------------------------------
class Habit(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    category: Category = "other"
    target_duration_minutes: Optional[int] = Field(default=None, ge=0)
    status: Status = "active"
    color: str = DEFAULT_COLOR
    icon: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, value):
        return _as_utc(value)


class HabitLog(BaseModel):
    id: str
    habit_id: str
    user_id: str
    date: date
    duration_minutes: Optional[int] = 0
    notes: Optional[str] = ""
    is_completed: bool = False
    logged_at: Optional[datetime] = None

    @field_validator("logged_at")
    @classmethod
    def ensure_utc(cls, value):
        return _as_utc(value)


class HabitSession(BaseModel):
    id: str
    habit_id: str
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    is_active: bool = True
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("start_time", "end_time", "created_at")
    @classmethod
    def ensure_utc(cls, value):
        return _as_utc(value)


# -------------------------------
# DERIVED
# -------------------------------
class DailyStats(BaseModel):
    """Read-time aggregation for one calendar day; never stored."""

    date: date
    total_time: int = 0
    completed_habits: int = 0
    total_habits: int = 0
    progress: int = 0
    habit_time_spent: Dict[str, int] = Field(default_factory=dict)
    habit_streaks: Dict[str, int] = Field(default_factory=dict)
