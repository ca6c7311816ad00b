# src/habithub/tasks.py
import uuid
from dataclasses import dataclass, field, replace
from datetime import date

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class Task:
    text: str
    priority: str = "medium"
    completed: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class TaskBoard:
    """Calendar to-do list. Lives only in the dashboard session, never stored."""

    def __init__(self):
        self._tasks = {}

    def add(self, day: date, text: str, priority: str = "medium") -> Task:
        text = (text or "").strip()
        if not text:
            raise ValueError("Task text cannot be empty")
        if priority not in PRIORITY_ORDER:
            raise ValueError(f"Unknown priority '{priority}'")
        task = Task(text=text, priority=priority)
        self._tasks.setdefault(day, []).append(task)
        return task

    def toggle(self, day: date, task_id: str):
        self._tasks[day] = [replace(t, completed=not t.completed) if t.id == task_id else t
                            for t in self._tasks.get(day, [])]

    def delete(self, day: date, task_id: str):
        self._tasks[day] = [t for t in self._tasks.get(day, []) if t.id != task_id]

    def tasks_for(self, day: date) -> list:
        """High priority first; within a priority, open tasks before done ones."""
        return sorted(self._tasks.get(day, []),
                      key=lambda t: (-PRIORITY_ORDER[t.priority], t.completed))

    def day_status(self, day: date) -> str:
        """'none', 'pending' or 'done', for the dot under a calendar day."""
        tasks = self._tasks.get(day, [])
        if not tasks:
            return "none"
        return "done" if all(t.completed for t in tasks) else "pending"
