from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, Request

from ..errors import EngineError, UnknownTimerError
from ..service import TimerService


def get_service(request: Request) -> TimerService:
    return request.app.state.service


@contextmanager
def engine_errors() -> Iterator[None]:
    try:
        yield
    except UnknownTimerError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except EngineError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
