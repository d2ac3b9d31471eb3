from __future__ import annotations

from threading import Event, Thread
from typing import Callable, Protocol

from .log import get_logger


TickCallback = Callable[[], None]


class TickScheduler(Protocol):
    @property
    def is_active(self) -> bool:
        ...

    def start(self, callback: TickCallback) -> None:
        ...

    def stop(self) -> None:
        ...


class ThreadTickScheduler:
    """Calls ``callback`` roughly once per interval on a daemon thread.

    ``stop`` never joins the worker: the engine calls it while holding its own
    lock, and the worker may be waiting on that lock.
    """

    def __init__(self, interval: float = 1.0) -> None:
        self.interval = max(0.05, float(interval))
        self._stop_event: Event | None = None
        self._worker: Thread | None = None

    @property
    def is_active(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self, callback: TickCallback) -> None:
        self.stop()
        stop_event = Event()
        self._stop_event = stop_event
        self._worker = Thread(
            target=self._run,
            args=(callback, stop_event),
            name="studytimer-tick",
            daemon=True,
        )
        self._worker.start()

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._worker = None

    def _run(self, callback: TickCallback, stop_event: Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                callback()
            except Exception:
                get_logger().exception("tick callback failed")


class ManualTickScheduler:
    """Tick scheduler for tests and one-shot CLI runs: ticks only on ``fire``."""

    def __init__(self) -> None:
        self._callback: TickCallback | None = None
        self.starts = 0

    @property
    def is_active(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self.starts += 1

    def stop(self) -> None:
        self._callback = None

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            if self._callback is None:
                return
            self._callback()
