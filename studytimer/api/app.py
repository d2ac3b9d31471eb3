from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI

from .. import __version__
from ..config import Settings
from ..service import TimerService, build_service
from .routes.health import router as health_router
from .routes.lifecycle import router as lifecycle_router
from .routes.timer import router as timer_router
from .routes.timers import router as timers_router


def create_app(
    db_path: Path | None = None,
    service: TimerService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    resolved = settings or Settings.from_env()
    resolved_db = Path(db_path or resolved.db_path)
    timer_service = service or build_service(resolved_db, journal_mode=resolved.journal_mode)
    timer_service.open()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            timer_service.close()

    app = FastAPI(title="StudyTimer API", version=__version__, lifespan=lifespan)
    app.state.db_path = str(resolved_db)
    app.state.service = timer_service

    app.include_router(health_router)
    app.include_router(timer_router)
    app.include_router(timers_router)
    app.include_router(lifecycle_router)
    return app
