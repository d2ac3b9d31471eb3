from __future__ import annotations

import io
from threading import Event
from types import SimpleNamespace
import unittest
from unittest import mock

from studytimer.models import Phase
from studytimer.notifier import DesktopNotificationPort, NotificationScheduler, Notifier
from studytimer.tests.test_helpers import RecordingPort


class StubNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.delivered = Event()

    def notify(self, title: str, message: str) -> None:
        self.sent.append((title, message))
        self.delivered.set()


class TestNotifier(unittest.TestCase):
    def test_fallback_when_command_fails(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("studytimer.notifier.platform.system", return_value="Linux"), mock.patch(
            "studytimer.notifier.shutil.which", return_value="/usr/bin/notify-send"
        ), mock.patch(
            "studytimer.notifier.subprocess.run", return_value=SimpleNamespace(returncode=1)
        ):
            notifier.notify("StudyTimer", "Work session finished")

        self.assertIn("[notification] StudyTimer: Work session finished", stream.getvalue())

    def test_no_fallback_when_command_succeeds(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("studytimer.notifier.platform.system", return_value="Linux"), mock.patch(
            "studytimer.notifier.shutil.which", return_value="/usr/bin/notify-send"
        ), mock.patch(
            "studytimer.notifier.subprocess.run", return_value=SimpleNamespace(returncode=0)
        ):
            notifier.notify("StudyTimer", "Work session finished")

        self.assertEqual(stream.getvalue(), "")

    def test_fallback_when_command_cannot_start(self) -> None:
        stream = io.StringIO()
        notifier = Notifier(stream=stream)

        with mock.patch("studytimer.notifier.platform.system", return_value="Darwin"), mock.patch(
            "studytimer.notifier.shutil.which", return_value="/usr/bin/osascript"
        ), mock.patch("studytimer.notifier.subprocess.run", side_effect=OSError("denied")):
            with self.assertLogs("studytimer", level="WARNING"):
                notifier.notify("StudyTimer", 'Say "hi"')

        self.assertIn('[notification] StudyTimer: Say "hi"', stream.getvalue())


class TestDesktopNotificationPort(unittest.TestCase):
    def setUp(self) -> None:
        self.now = [0.0]
        self.notifier = StubNotifier()
        self.port = DesktopNotificationPort(notifier=self.notifier, monotonic=lambda: self.now[0])  # type: ignore[arg-type]
        self.addCleanup(self.port.cancel_all)

    def test_pending_until_cancelled(self) -> None:
        self.port.schedule("pomodoro_p1", 600, "Work session finished", "Break time")
        self.port.schedule("countdown_c1", 900, "Countdown finished", "Finals has arrived.")
        self.assertEqual(self.port.pending_ids(), ["countdown_c1", "pomodoro_p1"])

        self.port.cancel("pomodoro_p1")
        self.assertEqual(self.port.pending_ids(), ["countdown_c1"])
        self.port.cancel_all()
        self.assertEqual(self.port.pending_ids(), [])
        self.assertEqual(self.notifier.sent, [])

    def test_replacing_a_due_notification_delivers_it(self) -> None:
        self.port.schedule("pomodoro_p1", 10, "Work session finished", "Break time")
        self.now[0] = 9.5

        self.port.schedule("pomodoro_p1", 300, "Short break finished", "Back to studying")

        self.assertEqual(self.notifier.sent, [("Work session finished", "Break time")])
        self.assertEqual(self.port.pending_ids(), ["pomodoro_p1"])

    def test_replacing_an_early_notification_drops_it(self) -> None:
        self.port.schedule("pomodoro_p1", 600, "Work session finished", "Break time")
        self.now[0] = 100.0

        self.port.schedule("pomodoro_p1", 300, "Short break finished", "Back to studying")

        self.assertEqual(self.notifier.sent, [])

    def test_due_notification_is_delivered(self) -> None:
        self.port.schedule("countdown_c1", 0, "Countdown finished", "Finals has arrived.")

        self.assertTrue(self.notifier.delivered.wait(5))
        self.assertEqual(self.notifier.sent, [("Countdown finished", "Finals has arrived.")])


class TestNotificationScheduler(unittest.TestCase):
    def test_ids_are_namespaced_per_timer_kind(self) -> None:
        port = RecordingPort()
        scheduler = NotificationScheduler(port)

        scheduler.schedule_phase_end("x1", Phase.LONG_BREAK, 900)
        scheduler.schedule_countdown("x1", "Finals", -20)

        self.assertEqual(port.pending["pomodoro_x1"], (900, "Long break finished", "Long break is over. Back to studying!"))
        self.assertEqual(port.pending["countdown_x1"], (0.0, "Countdown finished", "Finals has arrived."))

        scheduler.cancel_pomodoro("x1")
        self.assertEqual(list(port.pending), ["countdown_x1"])
        scheduler.cancel_countdown("x1")
        self.assertEqual(port.pending, {})

    def test_port_failures_are_logged_not_raised(self) -> None:
        scheduler = NotificationScheduler(RecordingPort(fail=True))

        with self.assertLogs("studytimer", level="ERROR") as captured:
            scheduler.schedule_phase_end("p1", Phase.WORK, 1500)
            scheduler.cancel_pomodoro("p1")

        self.assertEqual(len(captured.records), 2)


if __name__ == "__main__":
    unittest.main()
