from datetime import datetime, timedelta, timezone

import pytest

from habithub.logic import HabitTracker, UserContext
from habithub.memory_store import MemoryStore


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 14, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tracker(store, clock):
    return HabitTracker(store, UserContext(owner_id="user-1"), clock=clock)
