from __future__ import annotations

import json
import queue
from typing import Any, Callable, Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...log import get_logger
from ...models import EngineSnapshot
from ...service import TimerService
from ..deps import engine_errors, get_service
from ..schemas import SelectTimerRequest, StatusOut

router = APIRouter(prefix="/api/v1", tags=["timer"])


def _run(service: TimerService, command: Callable[[], Any]) -> StatusOut:
    with engine_errors():
        command()
    return StatusOut(**service.status())


@router.get("/timer/state", response_model=StatusOut)
def timer_state(service: TimerService = Depends(get_service)) -> StatusOut:
    return StatusOut(**service.status())


@router.post("/timer/select", response_model=StatusOut)
def select_timer(payload: SelectTimerRequest, service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, lambda: service.select_timer(payload.timer_id))


@router.post("/timer/start", response_model=StatusOut)
def start_timer(service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, service.engine.start)


@router.post("/timer/pause", response_model=StatusOut)
def pause_timer(service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, service.engine.pause)


@router.post("/timer/resume", response_model=StatusOut)
def resume_timer(service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, service.engine.resume)


@router.post("/timer/stop", response_model=StatusOut)
def stop_timer(service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, service.engine.stop)


@router.post("/timer/skip", response_model=StatusOut)
def skip_phase(service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, service.engine.skip_to_next_phase)


@router.post("/timer/reset-stats", response_model=StatusOut)
def reset_stats(service: TimerService = Depends(get_service)) -> StatusOut:
    return _run(service, service.engine.reset_stats)


def status_events(service: TimerService, keepalive: float = 10.0) -> Iterator[str]:
    """Server-sent events: the current status first, then one event per engine change."""
    subscriber: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=200)

    def on_change(_: EngineSnapshot) -> None:
        try:
            subscriber.put_nowait(service.status())
        except queue.Full:
            get_logger().warning("status stream is lagging, dropping an event")

    unsubscribe = service.engine.subscribe(on_change)
    try:
        yield _event(service.status())
        while True:
            try:
                yield _event(subscriber.get(timeout=keepalive))
            except queue.Empty:
                yield ": keepalive\n\n"
    finally:
        unsubscribe()


def _event(status: dict[str, Any]) -> str:
    return f"data: {json.dumps({'event': 'status', **status}, ensure_ascii=False)}\n\n"


@router.get("/timer/stream")
def timer_stream(service: TimerService = Depends(get_service)) -> StreamingResponse:
    return StreamingResponse(status_events(service), media_type="text/event-stream")
