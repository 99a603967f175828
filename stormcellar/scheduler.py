"""Hourly, phase-aligned execution of the poll -> resolve -> publish cycle."""
from __future__ import annotations

import datetime as dt
import threading
import time
from enum import Enum
from typing import Callable, Optional

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="scheduler")

SLOT_OFFSET = dt.timedelta(minutes=2)
TICK_INTERVAL = dt.timedelta(hours=1)


def delay_until_next_slot(now: dt.datetime, offset: dt.timedelta = SLOT_OFFSET) -> dt.timedelta:
    """
    Return the time left until `offset` past the start of the hour after `now`'s hour.

    With the default offset that is HH+1:02:00. The result is always
    positive and never longer than one hour plus the offset; at exactly
    HH:02:00 it is one hour. Works on absolute time, so a DST shift between
    `now` and the target cannot make it zero or negative.
    """
    if now.tzinfo is None:
        raise ValueError("now must be a timezone-aware datetime")
    utc_now = now.astimezone(dt.timezone.utc)
    # Truncating the local time to its hour and stepping one absolute hour
    # works for whole-hour and fractional UTC offsets alike.
    local_hour_start = now.replace(minute=0, second=0, microsecond=0)
    next_hour_start = local_hour_start.astimezone(dt.timezone.utc) + dt.timedelta(hours=1)
    return next_hour_start + offset - utc_now


class SchedulerState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_ALIGNED_TICK = "awaiting_first_aligned_tick"
    RUNNING = "running"
    STOPPED = "stopped"


class HourlyScheduler:
    """
    Run an initial action immediately, then a recurring action every hour.

    The first recurring tick is aligned to `offset` past the next hour
    boundary; later ticks follow a fixed `interval` on the monotonic clock
    and are never re-aligned to the wall clock. Invocations run one at a
    time on the calling thread. An exception raised by an action is logged
    and swallowed so the next tick still happens.
    """

    def __init__(
        self,
        clock: Callable[[], dt.datetime],
        *,
        stop_event: Optional[threading.Event] = None,
        monotonic: Callable[[], float] = time.monotonic,
        interval: dt.timedelta = TICK_INTERVAL,
        offset: dt.timedelta = SLOT_OFFSET,
    ) -> None:
        self.clock = clock
        self.stop_event = stop_event or threading.Event()
        self.monotonic = monotonic
        self.interval = interval
        self.offset = offset
        self.state = SchedulerState.IDLE
        self.next_run_at: Optional[dt.datetime] = None
        self.ticks = 0

    def stop(self) -> None:
        """Ask run() to return at its next wait."""
        self.stop_event.set()

    def run(self, initial_action: Callable[[], object], recurring_action: Callable[[], object]) -> None:
        """Block until stop() is called, driving both actions on the hourly cadence."""
        self._invoke(initial_action, "initial")
        if self.stop_event.is_set():
            self._finish()
            return

        self.state = SchedulerState.AWAITING_FIRST_ALIGNED_TICK
        now = self.clock()
        delay = delay_until_next_slot(now, self.offset)
        self.next_run_at = now + delay
        logger.info(f"Next run scheduled in {round(delay.total_seconds() / 60)} minutes")
        if self._wait(delay.total_seconds()):
            self._finish()
            return

        self.state = SchedulerState.RUNNING
        interval_seconds = self.interval.total_seconds()
        while True:
            started = self.monotonic()
            self.ticks += 1
            self._invoke(recurring_action, f"tick {self.ticks}")

            remaining = max(0.0, interval_seconds - (self.monotonic() - started))
            self.next_run_at = self.clock() + dt.timedelta(seconds=remaining)
            logger.debug(f"Next tick at {self.next_run_at.isoformat()}")
            if self._wait(remaining):
                break
        self._finish()

    def _wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True when a stop was requested."""
        return self.stop_event.wait(timeout=seconds)

    def _finish(self) -> None:
        self.state = SchedulerState.STOPPED
        self.next_run_at = None
        logger.info("Scheduler stopped")

    @staticmethod
    def _invoke(action: Callable[[], object], label: str) -> None:
        try:
            action()
        except Exception:
            logger.exception(f"Scheduled run ({label}) failed; continuing on schedule")
