"""Poll scheduler for the unread count fallback.

This module provides:
- PollScheduler: recurring tick at a fixed interval, backed by APScheduler

The scheduler is an owned resource: whoever starts it must stop it.
The running_for() context manager ties both to a scope.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

POLL_JOB_ID = "unread_count_poll"


class PollScheduler:
    """Recurring timer emitting a tick every ``interval`` seconds.

    The first tick fires one full interval after start().
    """

    def __init__(self) -> None:
        self._scheduler: BackgroundScheduler | None = None
        self._on_tick: Callable[[], None] | None = None
        self._interval: float | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    @property
    def interval(self) -> float | None:
        return self._interval

    def _tick_job(self) -> None:
        """Job function for a scheduled tick."""
        on_tick = self._on_tick
        if on_tick is None:
            return
        try:
            on_tick()
        except Exception:
            logger.exception("Error during scheduled unread count poll")

    def start(self, interval: float, on_tick: Callable[[], None]) -> None:
        """Start ticking.

        Args:
            interval: Seconds between ticks.
            on_tick: Callback invoked on every tick.
        """
        if self._scheduler is not None:
            return  # Already running
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._on_tick = on_tick
        self._interval = interval
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._tick_job,
            trigger=IntervalTrigger(seconds=interval),
            id=POLL_JOB_ID,
            name="Unread count poll",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()
        logger.info("Poll scheduler started (every %.0fs)", interval)

    def stop(self) -> None:
        """Stop ticking. Safe to call when already stopped."""
        self._on_tick = None
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self._interval = None
            logger.info("Poll scheduler stopped")

    @contextlib.contextmanager
    def running_for(
        self, interval: float, on_tick: Callable[[], None]
    ) -> Iterator[PollScheduler]:
        """Run the scheduler for the duration of a ``with`` block."""
        self.start(interval, on_tick)
        try:
            yield self
        finally:
            self.stop()
