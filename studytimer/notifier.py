from __future__ import annotations

from dataclasses import dataclass
import platform
import shutil
import subprocess
import sys
from threading import TIMEOUT_MAX, Lock, Timer
import time
from typing import Callable, Protocol, TextIO

from .log import get_logger
from .models import Phase


POMODORO_KIND = "pomodoro"
COUNTDOWN_KIND = "countdown"

# Replacing a pending notification this close to its deadline delivers it
# first; the tick loop only observes completions on whole seconds.
DUE_TOLERANCE_SEC = 1.0


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str


PHASE_FINISHED = {
    Phase.WORK: NotificationContent("Work session finished", "Well done! Time for a break."),
    Phase.BREAK: NotificationContent("Short break finished", "Break is over. Back to studying!"),
    Phase.LONG_BREAK: NotificationContent("Long break finished", "Long break is over. Back to studying!"),
}


def countdown_finished(name: str) -> NotificationContent:
    return NotificationContent("Countdown finished", f"{name} has arrived.")


def notification_id(kind: str, timer_id: str) -> str:
    return f"{kind}_{timer_id}"


class Notifier:
    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdout

    def notify(self, title: str, message: str) -> None:
        sent = False
        system_name = platform.system().lower()

        try:
            if system_name == "darwin" and shutil.which("osascript"):
                script = (
                    "display notification "
                    f"\"{self._escape(message)}\" with title \"{self._escape(title)}\""
                )
                result = subprocess.run(
                    ["osascript", "-e", script],
                    check=False,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
                sent = result.returncode == 0
            elif system_name == "linux" and shutil.which("notify-send"):
                result = subprocess.run(
                    ["notify-send", title, message],
                    check=False,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
                sent = result.returncode == 0
        except OSError as exc:
            get_logger().warning("desktop notification failed: %s", exc)
            sent = False

        if not sent:
            self.stream.write(f"[notification] {title}: {message}\n")
            self.stream.flush()

    @staticmethod
    def _escape(text: str) -> str:
        return text.replace("\\", "\\\\").replace('"', '\\"')


class NotificationPort(Protocol):
    def schedule(self, notification_id: str, fire_after: float, title: str, body: str) -> None:
        ...

    def cancel(self, notification_id: str) -> None:
        ...

    def cancel_all(self) -> None:
        ...


@dataclass
class _Pending:
    timer: Timer
    due_at: float
    content: NotificationContent


class DesktopNotificationPort:
    """In-process stand-in for an OS notification queue.

    Each pending notification is a daemon ``threading.Timer``; anything still
    pending when the process exits is lost, which is acceptable for advisory
    notifications.
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.notifier = notifier or Notifier()
        self._monotonic = monotonic
        self._lock = Lock()
        self._pending: dict[str, _Pending] = {}

    def schedule(self, notification_id: str, fire_after: float, title: str, body: str) -> None:
        delay = min(max(0.0, float(fire_after)), TIMEOUT_MAX)
        content = NotificationContent(title, body)
        overdue: NotificationContent | None = None
        with self._lock:
            previous = self._pending.pop(notification_id, None)
            if previous is not None:
                previous.timer.cancel()
                if previous.due_at - self._monotonic() <= DUE_TOLERANCE_SEC:
                    overdue = previous.content
            timer = Timer(delay, self._fire, args=(notification_id,))
            timer.daemon = True
            self._pending[notification_id] = _Pending(timer, self._monotonic() + delay, content)
            timer.start()
        if overdue is not None:
            self.notifier.notify(overdue.title, overdue.body)

    def cancel(self, notification_id: str) -> None:
        with self._lock:
            pending = self._pending.pop(notification_id, None)
        if pending is not None:
            pending.timer.cancel()

    def cancel_all(self) -> None:
        with self._lock:
            items = list(self._pending.values())
            self._pending.clear()
        for pending in items:
            pending.timer.cancel()

    def pending_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._pending)

    def _fire(self, notification_id: str) -> None:
        with self._lock:
            pending = self._pending.pop(notification_id, None)
        if pending is not None:
            self.notifier.notify(pending.content.title, pending.content.body)


class NotificationScheduler:
    """Advisory notifications for timers; failures are logged, never raised."""

    def __init__(self, port: NotificationPort) -> None:
        self.port = port

    def schedule(self, notification_id: str, fire_after: float, title: str, body: str) -> None:
        try:
            self.port.schedule(notification_id, max(0.0, float(fire_after)), title, body)
        except Exception:
            get_logger().exception("could not schedule notification %s", notification_id)

    def cancel(self, notification_id: str) -> None:
        try:
            self.port.cancel(notification_id)
        except Exception:
            get_logger().exception("could not cancel notification %s", notification_id)

    def cancel_all(self) -> None:
        try:
            self.port.cancel_all()
        except Exception:
            get_logger().exception("could not cancel pending notifications")

    def schedule_phase_end(self, timer_id: str, phase: Phase, fire_after: float) -> None:
        content = PHASE_FINISHED[phase]
        self.schedule(notification_id(POMODORO_KIND, timer_id), fire_after, content.title, content.body)

    def cancel_pomodoro(self, timer_id: str) -> None:
        self.cancel(notification_id(POMODORO_KIND, timer_id))

    def schedule_countdown(self, timer_id: str, name: str, fire_after: float) -> None:
        content = countdown_finished(name)
        self.schedule(notification_id(COUNTDOWN_KIND, timer_id), fire_after, content.title, content.body)

    def cancel_countdown(self, timer_id: str) -> None:
        self.cancel(notification_id(COUNTDOWN_KIND, timer_id))
