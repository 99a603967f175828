import unittest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from stormcellar.scheduler import HourlyScheduler, SchedulerState, delay_until_next_slot

TZ = ZoneInfo("America/New_York")


class TestDelayUntilNextSlot(unittest.TestCase):
    def test_top_of_hour(self):
        now = datetime(2024, 6, 1, 14, 0, 0, tzinfo=TZ)
        self.assertEqual(delay_until_next_slot(now), timedelta(hours=1, minutes=2))

    def test_exactly_at_slot_is_one_hour_not_zero(self):
        now = datetime(2024, 6, 1, 14, 2, 0, tzinfo=TZ)
        self.assertEqual(delay_until_next_slot(now), timedelta(hours=1))

    def test_just_before_slot_targets_next_hour(self):
        now = datetime(2024, 6, 1, 14, 1, 59, tzinfo=TZ)
        self.assertEqual(delay_until_next_slot(now), timedelta(hours=1, seconds=1))

    def test_end_of_hour(self):
        now = datetime(2024, 6, 1, 14, 59, 59, 500000, tzinfo=TZ)
        self.assertEqual(delay_until_next_slot(now), timedelta(minutes=2, microseconds=500000))

    def test_always_positive_and_bounded(self):
        start = datetime(2024, 6, 1, 0, 0, 0, tzinfo=TZ)
        for seconds in range(0, 2 * 3600, 37):
            now = start + timedelta(seconds=seconds)
            delay = delay_until_next_slot(now)
            self.assertGreater(delay, timedelta(0))
            self.assertLessEqual(delay, timedelta(hours=1, minutes=2))

    def test_across_dst_fall_back(self):
        # 2024-11-03 01:30 EDT; the next 01:00 hour is EST, one absolute hour later.
        now = datetime(2024, 11, 3, 1, 30, tzinfo=TZ, fold=0)
        self.assertEqual(delay_until_next_slot(now), timedelta(minutes=32))

    def test_across_dst_spring_forward(self):
        now = datetime(2024, 3, 10, 1, 30, tzinfo=TZ)
        self.assertEqual(delay_until_next_slot(now), timedelta(minutes=32))

    def test_custom_offset(self):
        now = datetime(2024, 6, 1, 14, 0, tzinfo=timezone.utc)
        self.assertEqual(delay_until_next_slot(now, timedelta(minutes=5)), timedelta(hours=1, minutes=5))

    def test_naive_rejected(self):
        with self.assertRaises(ValueError):
            delay_until_next_slot(datetime(2024, 6, 1, 14, 0))


class FakeStopEvent:
    """Records waits instead of sleeping; stops after `max_waits` waits."""

    def __init__(self, max_waits, monotonic=None):
        self.max_waits = max_waits
        self.waits = []
        self.monotonic = monotonic
        self._set = False

    def wait(self, timeout=None):
        self.waits.append(timeout)
        if self.monotonic is not None:
            self.monotonic.advance(timeout)
        if len(self.waits) >= self.max_waits:
            self._set = True
        return self._set

    def set(self):
        self._set = True

    def is_set(self):
        return self._set


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def advance(self, seconds):
        self.now += seconds

    def __call__(self):
        return self.now


class TestHourlyScheduler(unittest.TestCase):
    def setUp(self):
        self.wall = datetime(2024, 6, 1, 14, 20, 0, tzinfo=TZ)
        self.monotonic = FakeMonotonic()
        self.calls = []

    def _scheduler(self, max_waits):
        self.stop_event = FakeStopEvent(max_waits, self.monotonic)
        return HourlyScheduler(lambda: self.wall, stop_event=self.stop_event, monotonic=self.monotonic)

    def test_initial_runs_before_any_wait_then_aligned_delay(self):
        scheduler = self._scheduler(max_waits=1)
        scheduler.run(lambda: self.calls.append(("initial", len(self.stop_event.waits))),
                      lambda: self.calls.append(("tick", len(self.stop_event.waits))))
        self.assertEqual(self.calls, [("initial", 0)])
        self.assertEqual(self.stop_event.waits, [timedelta(minutes=42).total_seconds()])
        self.assertEqual(scheduler.state, SchedulerState.STOPPED)

    def test_recurring_runs_on_fixed_interval(self):
        scheduler = self._scheduler(max_waits=4)
        scheduler.run(lambda: self.calls.append("initial"), lambda: self.calls.append("tick"))
        self.assertEqual(self.calls, ["initial", "tick", "tick", "tick"])
        self.assertEqual(self.stop_event.waits, [42 * 60.0, 3600.0, 3600.0, 3600.0])
        self.assertEqual(scheduler.ticks, 3)

    def test_interval_measured_from_tick_start(self):
        def slow_tick():
            self.monotonic.advance(90)

        scheduler = self._scheduler(max_waits=3)
        scheduler.run(lambda: None, slow_tick)
        self.assertEqual(self.stop_event.waits[1:], [3510.0, 3510.0])

    def test_failing_actions_do_not_stop_schedule(self):
        def boom():
            self.calls.append("boom")
            raise RuntimeError("network down")

        scheduler = self._scheduler(max_waits=3)
        scheduler.run(boom, boom)
        self.assertEqual(self.calls, ["boom", "boom", "boom"])
        self.assertEqual(len(self.stop_event.waits), 3)

    def test_state_running_during_ticks(self):
        states = []
        scheduler = self._scheduler(max_waits=2)
        scheduler.run(lambda: states.append(scheduler.state), lambda: states.append(scheduler.state))
        self.assertEqual(states, [SchedulerState.IDLE, SchedulerState.RUNNING])

    def test_next_run_at_tracks_pending_tick(self):
        seen = []
        scheduler = self._scheduler(max_waits=2)
        scheduler.run(lambda: None, lambda: seen.append(scheduler.next_run_at))
        self.assertEqual(seen, [datetime(2024, 6, 1, 15, 2, 0, tzinfo=TZ)])
        self.assertIsNone(scheduler.next_run_at)

    def test_stop_during_initial_skips_waiting(self):
        scheduler = self._scheduler(max_waits=10)
        scheduler.run(scheduler.stop, lambda: self.calls.append("tick"))
        self.assertEqual(self.stop_event.waits, [])
        self.assertEqual(self.calls, [])
        self.assertEqual(scheduler.state, SchedulerState.STOPPED)

    def test_base_exceptions_propagate(self):
        def exit_now():
            raise SystemExit(0)

        scheduler = self._scheduler(max_waits=10)
        with self.assertRaises(SystemExit):
            scheduler.run(exit_now, exit_now)


if __name__ == "__main__":
    unittest.main()
