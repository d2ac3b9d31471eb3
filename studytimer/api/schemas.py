from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, Field


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    db_path: str
    platform: str


class StatusOut(BaseModel):
    timer_state: str
    phase: str
    time_remaining: int
    completed_sessions: int
    total_work_time: int
    total_completed_sessions: int
    selected_timer_id: str | None = None
    selected_timer_name: str | None = None
    phase_label: str
    progress: float
    time_remaining_text: str


class SelectTimerRequest(BaseModel):
    timer_id: str = Field(min_length=1)


class PomodoroIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    work_duration: int = Field(default=25 * 60, gt=0)
    break_duration: int = Field(default=5 * 60, gt=0)
    long_break_duration: int = Field(default=15 * 60, gt=0)
    sessions_before_long_break: int = Field(default=4, ge=1)


class PomodoroOut(BaseModel):
    id: str
    name: str
    work_duration: int
    break_duration: int
    long_break_duration: int
    sessions_before_long_break: int
    total_sessions: int
    total_work_time: int
    is_active: bool
    created_at: datetime


class CountdownIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    target_date: datetime
    color: str | None = None


class CountdownOut(BaseModel):
    id: str
    name: str
    target_date: datetime
    color: str
    created_at: datetime
    time_remaining: int
    time_remaining_text: str
    is_expired: bool


class TimersOut(BaseModel):
    pomodoros: list[PomodoroOut]
    countdowns: list[CountdownOut]
