from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
from pathlib import Path
import sqlite3
from threading import Lock
from typing import Any, Protocol

from .log import get_logger
from .models import (
    CountdownTimerConfig,
    EngineSnapshot,
    PomodoroTimerConfig,
    TimerCatalog,
    from_utc_text,
    to_utc_text,
)


POMODORO_KEY = "pomodoro_timers"
COUNTDOWN_KEY = "countdown_timers"
SNAPSHOT_KEY = "pomodoro_state"

DEFAULT_POMODORO_NAME = "Standard Pomodoro"
DEFAULT_COUNTDOWN_NAME = "Exam day"
EXAM_MONTH = 6
EXAM_DAY = 17
EXAM_HOUR = 10


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self._items: dict[str, bytes] = {}
        self._lock = Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._items[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class SQLiteKeyValueStore:
    def __init__(self, db_path: Path, journal_mode: str = "MEMORY") -> None:
        self.db_path = Path(db_path)
        self.journal_mode = (journal_mode or "MEMORY").strip().upper() or "MEMORY"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        self._apply_journal_mode(conn)
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _apply_journal_mode(self, conn: sqlite3.Connection) -> None:
        try:
            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode=MEMORY")

    def init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS app_state (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL
                )
                """
            )
            conn.commit()

    def get(self, key: str) -> bytes | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        value = row["value"]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def put(self, key: str, value: bytes) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO app_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, sqlite3.Binary(value)),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM app_state WHERE key = ?", (key,))
            conn.commit()


@dataclass(frozen=True)
class StoredSnapshot:
    snapshot: EngineSnapshot
    observed_at: datetime


def next_exam_date(now: datetime) -> datetime:
    local_now = now.astimezone()
    candidate = local_now.replace(
        month=EXAM_MONTH, day=EXAM_DAY, hour=EXAM_HOUR, minute=0, second=0, microsecond=0
    )
    if candidate <= local_now:
        candidate = candidate.replace(year=candidate.year + 1)
    return candidate


def default_catalog(now: datetime) -> TimerCatalog:
    return TimerCatalog(
        pomodoros=(PomodoroTimerConfig(name=DEFAULT_POMODORO_NAME, created_at=now),),
        countdowns=(
            CountdownTimerConfig(
                name=DEFAULT_COUNTDOWN_NAME,
                target_date=next_exam_date(now),
                created_at=now,
            ),
        ),
    )


def _encode(payload: Any) -> bytes:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True).encode("utf-8")


def _decode(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


class PersistenceStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def load_configs(self, now: datetime) -> TimerCatalog:
        """Return stored timers, seeding (and saving) the defaults on first run.

        A catalog that cannot be decoded is replaced by the defaults as well.
        """
        raw_pomodoros = self.kv.get(POMODORO_KEY)
        raw_countdowns = self.kv.get(COUNTDOWN_KEY)
        if raw_pomodoros is None and raw_countdowns is None:
            catalog = default_catalog(now)
            self.save_configs(catalog)
            return catalog

        try:
            pomodoros = tuple(
                PomodoroTimerConfig.from_dict(item) for item in _decode(raw_pomodoros or b"[]")
            )
            countdowns = tuple(
                CountdownTimerConfig.from_dict(item) for item in _decode(raw_countdowns or b"[]")
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            get_logger().warning("stored timers are unreadable, seeding defaults: %s", exc)
            catalog = default_catalog(now)
            self.save_configs(catalog)
            return catalog
        return TimerCatalog(pomodoros=pomodoros, countdowns=countdowns)

    def save_configs(self, catalog: TimerCatalog) -> None:
        self.kv.put(POMODORO_KEY, _encode([item.to_dict() for item in catalog.pomodoros]))
        self.kv.put(COUNTDOWN_KEY, _encode([item.to_dict() for item in catalog.countdowns]))

    def load_snapshot(self) -> StoredSnapshot | None:
        raw = self.kv.get(SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            payload = _decode(raw)
            return StoredSnapshot(
                snapshot=EngineSnapshot.from_dict(payload["snapshot"]),
                observed_at=from_utc_text(str(payload["observed_at"])),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            get_logger().warning("stored engine state is unreadable, starting idle: %s", exc)
            return None

    def save_snapshot(self, snapshot: EngineSnapshot, observed_at: datetime) -> None:
        self.kv.put(
            SNAPSHOT_KEY,
            _encode({"snapshot": snapshot.to_dict(), "observed_at": to_utc_text(observed_at)}),
        )

    def clear_snapshot(self) -> None:
        self.kv.delete(SNAPSHOT_KEY)
