"""Scheduled background work: dashboard refresh and session keep-alive.

Timers come from an injected factory (``threading.Timer`` by default) so
the schedules can be driven by hand in tests.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

import pandas as pd

from .config import (
    REFRESH_INTERVAL_SECONDS,
    SESSION_CHECK_INTERVAL_SECONDS,
    SESSION_REFRESH_MARGIN_SECONDS,
)
from .dates import now as local_now
from .session import SessionManager

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


class ScheduledTask:
    """Run ``callback`` every ``interval`` seconds until stopped.

    ``trigger()`` runs the callback immediately without disturbing the
    schedule.  An exception from the callback is logged and the schedule
    keeps going.
    """

    def __init__(self, callback: Callable[[], Any], interval: float,
                 timer_factory: TimerFactory = threading.Timer, name: str = 'task'):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.callback = callback
        self.interval = interval
        self.name = name
        self._timer_factory = timer_factory
        self._timer = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self, run_immediately: bool = False) -> None:
        with self._lock:
            if self._running:
                logger.debug("%s already running", self.name)
                return
            self._running = True
            self._schedule()
        logger.info("Started %s (every %.0fs)", self.name, self.interval)
        if run_immediately:
            self.trigger()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Stopped %s", self.name)

    def trigger(self) -> Any:
        try:
            return self.callback()
        except Exception:
            logger.exception("%s failed", self.name)
            return None

    def _schedule(self) -> None:
        timer = self._timer_factory(self.interval, self._tick)
        if hasattr(timer, 'daemon'):
            timer.daemon = True
        self._timer = timer
        timer.start()

    def _tick(self) -> None:
        with self._lock:
            if not self._running:
                return
        self.trigger()
        with self._lock:
            if self._running:
                self._schedule()


class SessionKeepAlive:
    """Refresh the session shortly before it expires.

    One instance per application session.  ``check()`` is also what the
    UI calls when the window regains focus.
    """

    def __init__(self, sessions: SessionManager,
                 interval: float = SESSION_CHECK_INTERVAL_SECONDS,
                 margin: float = SESSION_REFRESH_MARGIN_SECONDS,
                 timer_factory: TimerFactory = threading.Timer,
                 clock: Callable[[], pd.Timestamp] = local_now):
        self.sessions = sessions
        self.margin = margin
        self._clock = clock
        self._task = ScheduledTask(self.check, interval, timer_factory, name='session keep-alive')

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start(run_immediately=True)

    def stop(self) -> None:
        self._task.stop()

    def check(self) -> bool:
        """Return ``True`` while a session is alive, refreshing it when close to expiry."""
        session = self.sessions.current_session()
        if session is None:
            logger.debug("No active session to refresh")
            return False
        remaining = session.seconds_remaining(self._clock())
        if remaining < self.margin:
            logger.info("Session expiring in %.0fs, refreshing", remaining)
            return self.sessions.refresh_session() is not None
        logger.debug("Session still valid for %d more minutes", int(remaining // 60))
        return True


class DashboardRefresher:
    """Re-fetch and recompute the dashboard snapshot on a schedule.

    ``load`` builds a fresh snapshot and ``publish`` hands it to the view.
    Only the most recently started load is published, and nothing is
    published once ``is_active`` reports the view has gone away.
    """

    def __init__(self, load: Callable[[], Any], publish: Callable[[Any], None],
                 is_active: Callable[[], bool] = lambda: True,
                 interval: float = REFRESH_INTERVAL_SECONDS,
                 timer_factory: TimerFactory = threading.Timer):
        self.load = load
        self.publish = publish
        self.is_active = is_active
        self.latest = None
        self._generation = 0
        self._lock = threading.Lock()
        self._task = ScheduledTask(self.refresh, interval, timer_factory, name='dashboard refresh')

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start(run_immediately=True)

    def stop(self) -> None:
        self._task.stop()

    def refresh_now(self) -> Any:
        return self._task.trigger()

    def refresh(self) -> Any:
        if not self.is_active():
            self.stop()
            return None
        with self._lock:
            self._generation += 1
            generation = self._generation
        snapshot = self.load()
        with self._lock:
            if generation != self._generation or not self.is_active():
                return None
            self.latest = snapshot
        self.publish(snapshot)
        return snapshot
