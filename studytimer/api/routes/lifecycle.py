from __future__ import annotations

from fastapi import APIRouter, Depends

from ...service import TimerService
from ..deps import get_service
from ..schemas import StatusOut

router = APIRouter(prefix="/api/v1/lifecycle", tags=["lifecycle"])


@router.post("/background", response_model=StatusOut)
def enter_background(service: TimerService = Depends(get_service)) -> StatusOut:
    service.on_enter_background()
    return StatusOut(**service.status())


@router.post("/foreground", response_model=StatusOut)
def enter_foreground(service: TimerService = Depends(get_service)) -> StatusOut:
    service.on_enter_foreground()
    return StatusOut(**service.status())


@router.post("/wake", response_model=StatusOut)
def background_wake(service: TimerService = Depends(get_service)) -> StatusOut:
    service.on_background_wake()
    return StatusOut(**service.status())
