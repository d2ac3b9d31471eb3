from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from ...service import TimerService
from ..deps import engine_errors, get_service
from ..schemas import CountdownIn, CountdownOut, PomodoroIn, PomodoroOut, TimersOut

router = APIRouter(prefix="/api/v1", tags=["timers"])


@router.get("/timers", response_model=TimersOut)
def list_timers(service: TimerService = Depends(get_service)) -> TimersOut:
    return TimersOut(
        pomodoros=[PomodoroOut(**item.to_dict()) for item in service.catalog.pomodoros],
        countdowns=[CountdownOut(**row) for row in service.countdown_rows()],
    )


@router.post("/timers/pomodoro", response_model=PomodoroOut, status_code=201)
def add_pomodoro(payload: PomodoroIn, service: TimerService = Depends(get_service)) -> PomodoroOut:
    with engine_errors():
        config = service.add_pomodoro(**payload.model_dump())
    return PomodoroOut(**config.to_dict())


@router.delete("/timers/pomodoro/{timer_id}", status_code=204)
def remove_pomodoro(timer_id: str, service: TimerService = Depends(get_service)) -> Response:
    with engine_errors():
        service.remove_pomodoro(timer_id)
    return Response(status_code=204)


@router.post("/timers/countdown", response_model=CountdownOut, status_code=201)
def add_countdown(payload: CountdownIn, service: TimerService = Depends(get_service)) -> CountdownOut:
    with engine_errors():
        countdown = service.add_countdown(payload.name, payload.target_date, payload.color)
    row = next(item for item in service.countdown_rows() if item["id"] == countdown.id)
    return CountdownOut(**row)


@router.delete("/timers/countdown/{timer_id}", status_code=204)
def remove_countdown(timer_id: str, service: TimerService = Depends(get_service)) -> Response:
    with engine_errors():
        service.remove_countdown(timer_id)
    return Response(status_code=204)
