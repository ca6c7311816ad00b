# src/habithub/store.py
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from .models import Habit, HabitLog, HabitSession


class HabitStore(ABC):
    """Data store contract shared by the Supabase and in-memory backends.

    Every call is scoped by ``owner`` (the user id). Implementations raise
    ``NotFound`` for unknown ids and ``StoreFailure`` for anything else the
    backend rejects; they never retry.
    """

    # --- habits ---
    @abstractmethod
    def list_habits(self, owner: str, status: Optional[str] = None) -> List[Habit]:
        """Habits of an owner, newest first, optionally filtered by status."""
        ...

    def list_active_habits(self, owner: str) -> List[Habit]:
        return self.list_habits(owner, status="active")

    @abstractmethod
    def get_habit(self, owner: str, habit_id: str) -> Habit:
        ...

    @abstractmethod
    def create_habit(self, owner: str, fields: dict) -> Habit:
        ...

    @abstractmethod
    def update_habit(self, owner: str, habit_id: str, fields: dict) -> Habit:
        ...

    @abstractmethod
    def delete_habit(self, owner: str, habit_id: str) -> None:
        """Hard delete; the habit's logs and sessions go with it."""
        ...

    # --- logs ---
    @abstractmethod
    def list_logs(self, owner: str, day: Optional[date] = None,
                  start: Optional[date] = None, end: Optional[date] = None) -> List[HabitLog]:
        """Logs for one day, or for the inclusive range ``start..end``."""
        ...

    @abstractmethod
    def upsert_log(self, owner: str, habit_id: str, day: date, duration: int,
                   notes: Optional[str], now: datetime) -> HabitLog:
        """Insert the (habit, owner, day) log or merge into the existing one, atomically."""
        ...

    @abstractmethod
    def delete_logs(self, owner: str, day: Optional[date] = None) -> None:
        ...

    # --- sessions ---
    @abstractmethod
    def list_sessions(self, owner: str, start: Optional[datetime] = None,
                      end: Optional[datetime] = None, active: Optional[bool] = None) -> List[HabitSession]:
        """Sessions whose start time falls in ``[start, end)``."""
        ...

    def list_active_sessions(self, owner: str) -> List[HabitSession]:
        return self.list_sessions(owner, active=True)

    @abstractmethod
    def start_session(self, owner: str, habit_id: str, now: datetime) -> HabitSession:
        """End any active session of the habit, then open a new one, atomically."""
        ...

    @abstractmethod
    def end_session(self, owner: str, session_id: str, now: datetime) -> HabitSession:
        """Close a session and store its rounded duration."""
        ...

    @abstractmethod
    def delete_sessions(self, owner: str, start: Optional[datetime] = None,
                        end: Optional[datetime] = None) -> None:
        ...
