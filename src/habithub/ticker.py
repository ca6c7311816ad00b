# src/habithub/ticker.py
import logging
import threading
import uuid

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from .timeutils import utc_now

logger = logging.getLogger(__name__)

IDLE_TIMEOUT_SECONDS = 30


class SessionTicker:
    """Recomputes a running session's elapsed seconds once per interval.

    Display only: ``on_tick`` receives whole seconds since ``start_time`` and
    the ticker never touches the store. ``cancel()`` may be called any number
    of times; once it returns no further ticks are delivered. With an
    ``idle_timeout`` the ticker cancels itself when no view has called
    ``touch()`` for that many seconds, which covers a closed browser tab.
    """

    def __init__(self, start_time, on_tick, scheduler, clock=utc_now, interval: float = 1,
                 idle_timeout: float = None):
        self.start_time = start_time
        self.on_tick = on_tick
        self.clock = clock
        self.idle_timeout = idle_timeout
        self.last_seen = clock()
        self._lock = threading.RLock()
        self._cancelled = False
        self._job = scheduler.add_job(self._tick, "interval", seconds=interval,
                                      id=f"ticker-{uuid.uuid4()}",
                                      coalesce=True, max_instances=1)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def elapsed_seconds(self) -> int:
        return max(0, int((self.clock() - self.start_time).total_seconds()))

    def touch(self):
        self.last_seen = self.clock()

    def _tick(self):
        with self._lock:
            if self._cancelled:
                return
            if self.idle_timeout is not None and \
                    (self.clock() - self.last_seen).total_seconds() > self.idle_timeout:
                logger.debug("Ticker for session started %s went idle", self.start_time)
                self.cancel()
                return
            self.on_tick(self.elapsed_seconds())

    def cancel(self) -> bool:
        """Stop ticking. Returns False when already cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            job, self._job = self._job, None
        try:
            job.remove()
        except JobLookupError:
            pass
        return True


class TickerRegistry:
    """One ticker per habit, cancelled on session stop or view teardown.

    A registry built without a scheduler owns a private one and shuts it down
    in ``close()``; a scheduler passed in is shared and left running.
    """

    def __init__(self, scheduler=None, clock=utc_now, idle_timeout: float = None):
        self.owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler()
        self.clock = clock
        self.idle_timeout = idle_timeout
        self.tickers = {}

    def start(self, habit_id: str, start_time, on_tick) -> SessionTicker:
        self.cancel(habit_id)
        if not self.scheduler.running:
            self.scheduler.start()
        ticker = SessionTicker(start_time, on_tick, self.scheduler, clock=self.clock,
                               idle_timeout=self.idle_timeout)
        self.tickers[habit_id] = ticker
        on_tick(ticker.elapsed_seconds())
        logger.debug("Ticker started for habit %s", habit_id)
        return ticker

    def sync(self, sessions, on_tick_for) -> dict:
        """Match the tickers to the active sessions.

        New sessions get a ticker, a habit whose session was replaced gets a
        fresh one, and habits without an active session lose theirs.
        ``on_tick_for(habit_id)`` builds the callback. Returns the sessions
        by habit id.
        """
        active = {session.habit_id: session for session in sessions}
        for habit_id, session in active.items():
            ticker = self.tickers.get(habit_id)
            if ticker is None or ticker.cancelled or ticker.start_time != session.start_time:
                self.start(habit_id, session.start_time, on_tick_for(habit_id))
        for habit_id in list(self.tickers):
            if habit_id not in active:
                self.cancel(habit_id)
        return active

    def touch(self, habit_id: str):
        ticker = self.tickers.get(habit_id)
        if ticker:
            ticker.touch()

    def cancel(self, habit_id: str) -> bool:
        ticker = self.tickers.pop(habit_id, None)
        return ticker.cancel() if ticker else False

    def cancel_all(self):
        for habit_id in list(self.tickers):
            self.cancel(habit_id)

    def close(self):
        """Teardown: cancel every ticker and stop a private scheduler thread."""
        self.cancel_all()
        if self.owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
