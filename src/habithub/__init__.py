"""HabitHub: habit tracking, time logging and daily progress."""

__version__ = "0.2.0"
