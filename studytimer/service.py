from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any

from .clock import Clock, RealClock
from .engine import PomodoroEngine, format_clock, format_time_remaining
from .errors import UnknownTimerError
from .log import get_logger
from .models import (
    CountdownTimerConfig,
    EngineSnapshot,
    PomodoroTimerConfig,
    TimerCatalog,
)
from .notifier import DesktopNotificationPort, NotificationPort, NotificationScheduler
from .reconciler import observed_after, reconcile
from .store import PersistenceStore, SQLiteKeyValueStore, StoredSnapshot
from .ticker import ManualTickScheduler, ThreadTickScheduler, TickScheduler


class TimerService:
    """Wires the engine to persistence, notifications and host lifecycle hooks.

    Every engine change is persisted together with the engine's observation
    mark, so a later process (or a foreground resume) can reconcile from it.
    """

    def __init__(
        self,
        store: PersistenceStore,
        clock: Clock,
        notifications: NotificationScheduler,
        ticker: TickScheduler | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.notifications = notifications
        self.engine = PomodoroEngine(clock=clock, notifications=notifications, ticker=ticker)
        self._lock = RLock()
        self._catalog = TimerCatalog()
        self._unsubscribe = None
        self._opened = False
        self._unsaved = False

    # ----- lifecycle -----
    def open(self) -> EngineSnapshot:
        """Load timers and state; a running snapshot is reconciled before ticking resumes."""
        with self._lock:
            now = self.clock.now()
            self._catalog = self.store.load_configs(now)
            if self._unsubscribe is None:
                self._unsubscribe = self.engine.subscribe(self._persist)
            self._opened = True
            snapshot = self._reconcile_from_store(now, resume_ticking=True)
            self.refresh_countdown_notifications()
            return snapshot

    def close(self) -> None:
        with self._lock:
            if not self._opened:
                return
            self.engine.advance(self.clock.now())
            self.engine.suspend()
            self._save_current()
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            self._opened = False

    def on_enter_background(self) -> EngineSnapshot:
        with self._lock:
            self.engine.advance(self.clock.now())
            snapshot = self.engine.suspend()
            self._save_current()
            self.refresh_countdown_notifications()
            get_logger().info("entered background in state %s", snapshot.timer_state.value)
            return snapshot

    def on_enter_foreground(self) -> EngineSnapshot:
        with self._lock:
            self.engine.suspend()
            snapshot = self._reconcile_from_store(self.clock.now(), resume_ticking=True)
            self.refresh_countdown_notifications()
            return snapshot

    def on_background_wake(self) -> EngineSnapshot:
        """Best-effort refresh: corrects state and notifications, never restarts ticking."""
        with self._lock:
            if self.engine.is_ticking:
                return self.engine.snapshot
            snapshot = self._reconcile_from_store(self.clock.now(), resume_ticking=False)
            self.refresh_countdown_notifications()
            return snapshot

    def _reconcile_from_store(self, now: datetime, resume_ticking: bool) -> EngineSnapshot:
        stored = self._latest_stored()
        if stored is None:
            base, observed = self.engine.snapshot, self.engine.observed_at
        else:
            base, observed = stored.snapshot, stored.observed_at
        config = self._catalog.find_pomodoro(base.selected_timer_id)
        if base.selected_timer_id and config is None:
            get_logger().warning("selected timer %s no longer exists", base.selected_timer_id)
        reconciled = reconcile(base, config, observed, now)
        if reconciled != base:
            get_logger().info(
                "reconciled %s -> %s/%s with %ds left",
                base.phase.value,
                reconciled.timer_state.value,
                reconciled.phase.value,
                reconciled.time_remaining,
            )
        return self.engine.adopt(
            reconciled,
            config,
            observed_after(observed, now),
            resume_ticking=resume_ticking,
        )

    def _latest_stored(self) -> StoredSnapshot | None:
        """Stored state, or the engine's own when its last save failed."""
        if self._unsaved:
            self._save_current()
            if self._unsaved:
                return StoredSnapshot(self.engine.snapshot, self.engine.observed_at)
        return self.store.load_snapshot()

    def _persist(self, snapshot: EngineSnapshot) -> None:
        try:
            self.store.save_snapshot(snapshot, self.engine.observed_at)
        except Exception:
            self._unsaved = True
            get_logger().exception("could not persist engine state")
        else:
            self._unsaved = False

    def _save_current(self) -> None:
        self._persist(self.engine.snapshot)

    # ----- timers -----
    @property
    def catalog(self) -> TimerCatalog:
        with self._lock:
            return self._catalog

    def select_timer(self, timer_id: str) -> EngineSnapshot:
        with self._lock:
            config = self._catalog.find_pomodoro(timer_id)
            if config is None:
                raise UnknownTimerError(timer_id)
            pomodoros = tuple(replace(item, is_active=item.id == timer_id) for item in self._catalog.pomodoros)
            self._save_catalog(replace(self._catalog, pomodoros=pomodoros))
            return self.engine.select_timer(self._catalog.find_pomodoro(timer_id) or config)

    def add_pomodoro(
        self,
        name: str,
        work_duration: int,
        break_duration: int,
        long_break_duration: int,
        sessions_before_long_break: int,
    ) -> PomodoroTimerConfig:
        config = PomodoroTimerConfig(
            name=name,
            work_duration=work_duration,
            break_duration=break_duration,
            long_break_duration=long_break_duration,
            sessions_before_long_break=sessions_before_long_break,
            created_at=self.clock.now(),
        )
        with self._lock:
            self._save_catalog(replace(self._catalog, pomodoros=self._catalog.pomodoros + (config,)))
        return config

    def remove_pomodoro(self, timer_id: str) -> None:
        with self._lock:
            if self._catalog.find_pomodoro(timer_id) is None:
                raise UnknownTimerError(timer_id)
            remaining = tuple(item for item in self._catalog.pomodoros if item.id != timer_id)
            self._save_catalog(replace(self._catalog, pomodoros=remaining))
            if self.engine.snapshot.selected_timer_id == timer_id:
                self.engine.adopt(self.engine.snapshot, None, self.clock.now())

    def add_countdown(self, name: str, target_date: datetime, color: str | None = None) -> CountdownTimerConfig:
        extra: dict[str, Any] = {"color": color} if color else {}
        countdown = CountdownTimerConfig(
            name=name,
            target_date=target_date,
            created_at=self.clock.now(),
            **extra,
        )
        with self._lock:
            self._save_catalog(replace(self._catalog, countdowns=self._catalog.countdowns + (countdown,)))
        self._schedule_countdown(countdown, self.clock.now())
        return countdown

    def remove_countdown(self, timer_id: str) -> None:
        with self._lock:
            if self._catalog.find_countdown(timer_id) is None:
                raise UnknownTimerError(timer_id)
            remaining = tuple(item for item in self._catalog.countdowns if item.id != timer_id)
            self._save_catalog(replace(self._catalog, countdowns=remaining))
        self.notifications.cancel_countdown(timer_id)

    def refresh_countdown_notifications(self) -> None:
        now = self.clock.now()
        for countdown in self.catalog.countdowns:
            self._schedule_countdown(countdown, now)

    def _schedule_countdown(self, countdown: CountdownTimerConfig, now: datetime) -> None:
        if countdown.is_expired(now):
            self.notifications.cancel_countdown(countdown.id)
            return
        self.notifications.schedule_countdown(countdown.id, countdown.name, countdown.time_remaining(now))

    def _save_catalog(self, catalog: TimerCatalog) -> None:
        self._catalog = catalog
        self.store.save_configs(catalog)

    # ----- views -----
    def status(self) -> dict[str, Any]:
        snapshot = self.engine.snapshot
        config = self.engine.selected_config
        return {
            **snapshot.to_dict(),
            "selected_timer_name": config.name if config else None,
            "phase_label": self.engine.phase_label(),
            "progress": round(self.engine.progress(), 4),
            "time_remaining_text": format_clock(snapshot.time_remaining),
        }

    def countdown_rows(self) -> list[dict[str, Any]]:
        now = self.clock.now()
        rows: list[dict[str, Any]] = []
        for item in self.catalog.countdowns:
            remaining = item.time_remaining(now)
            rows.append(
                {
                    **item.to_dict(),
                    "time_remaining": remaining,
                    "time_remaining_text": format_time_remaining(remaining),
                    "is_expired": remaining == 0,
                }
            )
        return rows


def build_service(
    db_path: Path,
    journal_mode: str = "MEMORY",
    clock: Clock | None = None,
    port: NotificationPort | None = None,
    live_ticks: bool = True,
) -> TimerService:
    ticker: TickScheduler = ThreadTickScheduler() if live_ticks else ManualTickScheduler()
    return TimerService(
        store=PersistenceStore(SQLiteKeyValueStore(db_path, journal_mode=journal_mode)),
        clock=clock or RealClock(),
        notifications=NotificationScheduler(port or DesktopNotificationPort()),
        ticker=ticker,
    )
