from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class RealClock:
    def now(self) -> datetime:
        return datetime.now().astimezone()


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        base = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        self._current = base

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> datetime:
        self._current += timedelta(seconds=max(0.0, seconds))
        return self._current

    def rewind(self, seconds: float) -> datetime:
        # Wall clocks can jump backwards (NTP, manual changes).
        self._current -= timedelta(seconds=max(0.0, seconds))
        return self._current


def elapsed_whole_seconds(since: datetime, until: datetime) -> int:
    seconds = (until - since).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds)
