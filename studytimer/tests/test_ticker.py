from __future__ import annotations

import time
import unittest

from studytimer.clock import RealClock
from studytimer.engine import PomodoroEngine
from studytimer.models import Phase, PomodoroTimerConfig, TimerState
from studytimer.notifier import NotificationScheduler
from studytimer.ticker import ManualTickScheduler, ThreadTickScheduler
from studytimer.tests.test_helpers import RecordingPort


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


class TestThreadTickScheduler(unittest.TestCase):
    def test_drives_engine_across_a_phase(self) -> None:
        ticker = ThreadTickScheduler(interval=0.1)
        port = RecordingPort()
        engine = PomodoroEngine(RealClock(), NotificationScheduler(port), ticker)
        self.addCleanup(ticker.stop)
        config = PomodoroTimerConfig(id="quick", name="Quick", work_duration=1, break_duration=60)
        engine.select_timer(config)

        engine.start()
        self.assertTrue(ticker.is_active)
        self.assertTrue(wait_for(lambda: engine.snapshot.phase is Phase.BREAK))

        snapshot = engine.snapshot
        self.assertEqual(snapshot.total_completed_sessions, 1)
        self.assertEqual(snapshot.total_work_time, 1)
        self.assertLessEqual(snapshot.time_remaining, 60)
        self.assertEqual(port.pending["pomodoro_quick"][1], "Short break finished")

        paused = engine.pause()
        self.assertEqual(paused.timer_state, TimerState.PAUSED)
        self.assertFalse(ticker.is_active)

    def test_callback_errors_keep_the_loop_alive(self) -> None:
        ticker = ThreadTickScheduler(interval=0.05)
        self.addCleanup(ticker.stop)
        calls: list[int] = []

        def callback() -> None:
            calls.append(1)
            raise RuntimeError("tick failed")

        with self.assertLogs("studytimer", level="ERROR"):
            ticker.start(callback)
            self.assertTrue(wait_for(lambda: len(calls) >= 2))
        ticker.stop()
        self.assertFalse(ticker.is_active)

    def test_restart_replaces_the_worker(self) -> None:
        ticker = ThreadTickScheduler(interval=0.05)
        self.addCleanup(ticker.stop)
        first: list[int] = []
        second: list[int] = []

        ticker.start(lambda: first.append(1))
        ticker.start(lambda: second.append(1))
        self.assertTrue(wait_for(lambda: len(second) >= 2))
        seen = len(first)
        time.sleep(0.2)

        self.assertLessEqual(len(first), seen + 1)


class TestManualTickScheduler(unittest.TestCase):
    def test_fires_only_while_started(self) -> None:
        ticker = ManualTickScheduler()
        calls: list[int] = []

        ticker.fire()
        ticker.start(lambda: calls.append(1))
        ticker.fire(3)
        ticker.stop()
        ticker.fire()

        self.assertEqual(calls, [1, 1, 1])
        self.assertEqual(ticker.starts, 1)


if __name__ == "__main__":
    unittest.main()
