from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid


DEFAULT_WORK_SECONDS = 25 * 60
DEFAULT_BREAK_SECONDS = 5 * 60
DEFAULT_LONG_BREAK_SECONDS = 15 * 60
DEFAULT_SESSIONS_BEFORE_LONG_BREAK = 4
DEFAULT_COUNTDOWN_COLOR = "#3B82F6"


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    FINISHED = "finished"


class Phase(str, Enum):
    WORK = "work"
    BREAK = "break"
    LONG_BREAK = "long_break"


def to_utc_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_utc_text(text: str) -> datetime:
    value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _positive_seconds(name: str, value: Any) -> int:
    seconds = int(value)
    if seconds <= 0:
        raise ValueError(f"{name} must be a positive number of seconds, got {value!r}")
    return seconds


@dataclass
class PomodoroTimerConfig:
    name: str
    work_duration: int = DEFAULT_WORK_SECONDS
    break_duration: int = DEFAULT_BREAK_SECONDS
    long_break_duration: int = DEFAULT_LONG_BREAK_SECONDS
    sessions_before_long_break: int = DEFAULT_SESSIONS_BEFORE_LONG_BREAK
    total_sessions: int = 0
    total_work_time: int = 0
    is_active: bool = False
    created_at: datetime = field(default_factory=_utc_now)
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        self.name = str(self.name).strip()
        if not self.name:
            raise ValueError("timer name must not be empty")
        self.work_duration = _positive_seconds("work_duration", self.work_duration)
        self.break_duration = _positive_seconds("break_duration", self.break_duration)
        self.long_break_duration = _positive_seconds("long_break_duration", self.long_break_duration)
        self.sessions_before_long_break = int(self.sessions_before_long_break)
        if self.sessions_before_long_break < 1:
            raise ValueError("sessions_before_long_break must be at least 1")
        if int(self.total_sessions) < 0 or int(self.total_work_time) < 0:
            raise ValueError("timer counters must not be negative")
        self.total_sessions = int(self.total_sessions)
        self.total_work_time = int(self.total_work_time)

    def duration_for(self, phase: Phase) -> int:
        if phase is Phase.WORK:
            return self.work_duration
        if phase is Phase.BREAK:
            return self.break_duration
        return self.long_break_duration

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "work_duration": self.work_duration,
            "break_duration": self.break_duration,
            "long_break_duration": self.long_break_duration,
            "sessions_before_long_break": self.sessions_before_long_break,
            "total_sessions": self.total_sessions,
            "total_work_time": self.total_work_time,
            "is_active": self.is_active,
            "created_at": to_utc_text(self.created_at),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PomodoroTimerConfig:
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            work_duration=int(payload["work_duration"]),
            break_duration=int(payload["break_duration"]),
            long_break_duration=int(payload["long_break_duration"]),
            sessions_before_long_break=int(payload["sessions_before_long_break"]),
            total_sessions=int(payload.get("total_sessions", 0)),
            total_work_time=int(payload.get("total_work_time", 0)),
            is_active=payload.get("is_active") is True,
            created_at=from_utc_text(str(payload["created_at"])),
        )


@dataclass
class CountdownTimerConfig:
    name: str
    target_date: datetime
    color: str = DEFAULT_COUNTDOWN_COLOR
    created_at: datetime = field(default_factory=_utc_now)
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        self.name = str(self.name).strip()
        if not self.name:
            raise ValueError("countdown name must not be empty")
        if self.target_date.tzinfo is None:
            self.target_date = self.target_date.replace(tzinfo=timezone.utc)

    def time_remaining(self, now: datetime) -> int:
        seconds = (self.target_date - now).total_seconds()
        return max(0, int(seconds))

    def is_expired(self, now: datetime) -> bool:
        return self.time_remaining(now) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "target_date": to_utc_text(self.target_date),
            "color": self.color,
            "created_at": to_utc_text(self.created_at),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CountdownTimerConfig:
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            target_date=from_utc_text(str(payload["target_date"])),
            color=str(payload.get("color", DEFAULT_COUNTDOWN_COLOR)),
            created_at=from_utc_text(str(payload["created_at"])),
        )


@dataclass(frozen=True)
class EngineSnapshot:
    timer_state: TimerState = TimerState.IDLE
    phase: Phase = Phase.WORK
    time_remaining: int = 0
    completed_sessions: int = 0
    total_work_time: int = 0
    total_completed_sessions: int = 0
    selected_timer_id: str | None = None

    @property
    def is_running(self) -> bool:
        return self.timer_state is TimerState.RUNNING

    def evolve(self, **changes: Any) -> EngineSnapshot:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timer_state": self.timer_state.value,
            "phase": self.phase.value,
            "time_remaining": self.time_remaining,
            "completed_sessions": self.completed_sessions,
            "total_work_time": self.total_work_time,
            "total_completed_sessions": self.total_completed_sessions,
            "selected_timer_id": self.selected_timer_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> EngineSnapshot:
        selected = payload.get("selected_timer_id")
        return cls(
            timer_state=TimerState(payload["timer_state"]),
            phase=Phase(payload["phase"]),
            time_remaining=int(payload["time_remaining"]),
            completed_sessions=int(payload["completed_sessions"]),
            total_work_time=int(payload["total_work_time"]),
            total_completed_sessions=int(payload["total_completed_sessions"]),
            selected_timer_id=str(selected) if selected else None,
        )


@dataclass(frozen=True)
class TimerCatalog:
    pomodoros: tuple[PomodoroTimerConfig, ...] = ()
    countdowns: tuple[CountdownTimerConfig, ...] = ()

    def find_pomodoro(self, timer_id: str | None) -> PomodoroTimerConfig | None:
        if not timer_id:
            return None
        for item in self.pomodoros:
            if item.id == timer_id:
                return item
        return None

    def find_countdown(self, timer_id: str) -> CountdownTimerConfig | None:
        for item in self.countdowns:
            if item.id == timer_id:
                return item
        return None
