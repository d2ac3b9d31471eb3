from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from platformdirs import user_data_dir


APP_NAME = "studytimer"


def default_db_path() -> Path:
    return Path(user_data_dir(APP_NAME)) / "studytimer.sqlite"


def _env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    db_path: Path
    journal_mode: str = "MEMORY"
    host: str = "127.0.0.1"
    port: int = 8765

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            db_path=Path(_env("STUDYTIMER_DB") or default_db_path()),
            journal_mode=(_env("STUDYTIMER_JOURNAL_MODE") or "MEMORY").upper(),
            host=_env("STUDYTIMER_HOST") or "127.0.0.1",
            port=_env_int("STUDYTIMER_PORT", 8765),
        )
