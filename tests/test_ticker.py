from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from habithub.models import HabitSession
from habithub.ticker import SessionTicker, TickerRegistry

START = datetime(2024, 3, 14, 10, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self):
        self.now = START

    def __call__(self):
        return self.now


@pytest.fixture
def scheduler():
    # not started: jobs stay pending and never fire on their own
    return BackgroundScheduler()


def test_tick_reports_elapsed_seconds(scheduler):
    clock = Clock()
    ticks = []
    ticker = SessionTicker(START, ticks.append, scheduler, clock=clock)
    clock.now = START + timedelta(seconds=75)
    ticker._tick()
    clock.now = START + timedelta(seconds=76)
    ticker._tick()
    assert ticks == [75, 76]


def test_cancel_is_idempotent_and_silences_ticks(scheduler):
    ticks = []
    ticker = SessionTicker(START, ticks.append, scheduler, clock=Clock())
    assert len(scheduler.get_jobs()) == 1

    assert ticker.cancel() is True
    assert ticker.cancel() is False
    ticker._tick()

    assert ticks == []
    assert ticker.cancelled
    assert scheduler.get_jobs() == []


def test_registry_replaces_and_cancels(scheduler):
    clock = Clock()
    registry = TickerRegistry(scheduler, clock=clock)
    seen = {}
    try:
        first = registry.start("habit-a", START, lambda s: seen.__setitem__("a", s))
        assert seen == {"a": 0}
        second = registry.start("habit-a", START, lambda s: seen.__setitem__("a", s))
        assert first.cancelled and not second.cancelled

        registry.start("habit-b", START, lambda s: seen.__setitem__("b", s))
        assert registry.cancel("habit-a") is True
        assert registry.cancel("habit-a") is False

        registry.close()
        assert registry.tickers == {}
        assert second.cancelled
        # a shared scheduler outlives the registry
        assert scheduler.running
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)


def test_registry_close_twice_is_safe(scheduler):
    registry = TickerRegistry(scheduler, clock=Clock())
    registry.start("habit-a", START, lambda s: None)
    registry.close()
    registry.close()
    assert registry.tickers == {}
    scheduler.shutdown(wait=False)


def session(habit_id, start):
    return HabitSession(id=f"s-{habit_id}-{start:%H%M}", habit_id=habit_id, user_id="u",
                        start_time=start, is_active=True)


def test_sync_restarts_a_replaced_session(scheduler):
    clock = Clock()
    registry = TickerRegistry(scheduler, clock=clock)
    elapsed = {}

    def on_tick_for(habit_id):
        return lambda secs: elapsed.__setitem__(habit_id, secs)

    try:
        clock.now = START + timedelta(minutes=10)
        registry.sync([session("h1", START)], on_tick_for)
        first = registry.tickers["h1"]
        assert elapsed == {"h1": 600}

        # same session on the next render: the ticker is kept
        registry.sync([session("h1", START)], on_tick_for)
        assert registry.tickers["h1"] is first

        # another client replaced the session
        restarted = START + timedelta(minutes=9)
        registry.sync([session("h1", restarted)], on_tick_for)
        assert first.cancelled
        assert registry.tickers["h1"].start_time == restarted
        assert elapsed == {"h1": 60}

        registry.sync([], on_tick_for)
        assert registry.tickers == {}
        assert scheduler.get_jobs() == []
    finally:
        registry.close()
        scheduler.shutdown(wait=False)


def test_idle_ticker_cancels_itself(scheduler):
    clock = Clock()
    ticks = []
    ticker = SessionTicker(START, ticks.append, scheduler, clock=clock, idle_timeout=30)

    clock.now = START + timedelta(seconds=20)
    ticker.touch()
    clock.now = START + timedelta(seconds=45)
    ticker._tick()
    assert ticks == [45]

    clock.now = START + timedelta(seconds=51)
    ticker._tick()
    assert ticks == [45]
    assert ticker.cancelled
    assert scheduler.get_jobs() == []


def test_registry_touch_keeps_ticker_alive(scheduler):
    clock = Clock()
    registry = TickerRegistry(scheduler, clock=clock, idle_timeout=30)
    ticks = []
    try:
        ticker = registry.start("h1", START, ticks.append)
        clock.now = START + timedelta(seconds=25)
        registry.touch("h1")
        clock.now = START + timedelta(seconds=50)
        ticker._tick()
        assert not ticker.cancelled
        assert ticks == [0, 50]
    finally:
        registry.close()
        scheduler.shutdown(wait=False)


def test_private_scheduler_stops_on_close():
    registry = TickerRegistry(clock=Clock())
    registry.start("h1", START, lambda s: None)
    assert registry.scheduler.running
    registry.close()
    assert not registry.scheduler.running
