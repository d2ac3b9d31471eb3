from __future__ import annotations

from datetime import datetime, timedelta
from threading import RLock
from typing import Callable

from .clock import Clock, elapsed_whole_seconds
from .errors import InvalidTransitionError, NoTimerSelectedError
from .log import get_logger
from .models import EngineSnapshot, Phase, PomodoroTimerConfig, TimerState
from .notifier import NotificationScheduler
from .phases import clamp, consume, progress, skip_phase
from .ticker import ManualTickScheduler, TickScheduler


SnapshotListener = Callable[[EngineSnapshot], None]

PHASE_LABELS = {
    Phase.WORK: "Study time",
    Phase.BREAK: "Short break",
    Phase.LONG_BREAK: "Long break",
}


def format_clock(seconds: int) -> str:
    total = max(0, int(seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{sec:02d}"


def format_time_remaining(seconds: int) -> str:
    total = max(0, int(seconds))
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, sec = divmod(rest, 60)

    def unit(value: int, name: str) -> str:
        return f"{value} {name}" if value == 1 else f"{value} {name}s"

    if days:
        return ", ".join([unit(days, "day"), unit(hours, "hour"), unit(minutes, "minute")])
    if hours:
        return ", ".join([unit(hours, "hour"), unit(minutes, "minute")])
    return f"{minutes:02d}:{sec:02d}"


class PomodoroEngine:
    """Owns the authoritative pomodoro state and every transition applied to it.

    All operations run under one re-entrant lock, so a command never
    interleaves with a half-applied tick. Listeners get the new snapshot after
    each change; they run under the lock and must not block.
    """

    def __init__(
        self,
        clock: Clock,
        notifications: NotificationScheduler,
        ticker: TickScheduler | None = None,
    ) -> None:
        self.clock = clock
        self.notifications = notifications
        self.ticker = ticker or ManualTickScheduler()
        self._lock = RLock()
        self._snapshot = EngineSnapshot()
        self._config: PomodoroTimerConfig | None = None
        self._observed_at = clock.now()
        self._listeners: list[SnapshotListener] = []

    # ----- read side -----
    @property
    def snapshot(self) -> EngineSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def observed_at(self) -> datetime:
        """Wall-clock time up to which ``snapshot.time_remaining`` is exact."""
        with self._lock:
            return self._observed_at

    @property
    def selected_config(self) -> PomodoroTimerConfig | None:
        with self._lock:
            return self._config

    @property
    def is_ticking(self) -> bool:
        return self.ticker.is_active

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners = [item for item in self._listeners if item is not listener]

        return unsubscribe

    def progress(self) -> float:
        with self._lock:
            if self._snapshot.timer_state not in (TimerState.RUNNING, TimerState.PAUSED):
                return 0.0
            return progress(self._snapshot, self._config)

    def phase_label(self) -> str:
        return PHASE_LABELS[self.snapshot.phase]

    # ----- commands -----
    def select_timer(self, config: PomodoroTimerConfig) -> EngineSnapshot:
        with self._lock:
            self.ticker.stop()
            if self._config is not None:
                self.notifications.cancel_pomodoro(self._config.id)
            self._config = config
            self._observed_at = self.clock.now()
            return self._commit(
                self._snapshot.evolve(
                    timer_state=TimerState.IDLE,
                    phase=Phase.WORK,
                    time_remaining=0,
                    completed_sessions=0,
                    selected_timer_id=config.id,
                )
            )

    def start(self) -> EngineSnapshot:
        with self._lock:
            config = self._require_config()
            if self._snapshot.timer_state is TimerState.PAUSED:
                return self.resume()
            self._observed_at = self.clock.now()
            snapshot = self._commit(
                self._snapshot.evolve(
                    timer_state=TimerState.RUNNING,
                    phase=Phase.WORK,
                    time_remaining=config.work_duration,
                )
            )
            self._sync_side_effects()
            return snapshot

    def pause(self) -> EngineSnapshot:
        with self._lock:
            self._require_state("pause", TimerState.RUNNING)
            self._catch_up(self.clock.now())
            snapshot = self._commit(self._snapshot.evolve(timer_state=TimerState.PAUSED))
            self._sync_side_effects()
            return snapshot

    def resume(self) -> EngineSnapshot:
        with self._lock:
            self._require_config()
            self._require_state("resume", TimerState.PAUSED)
            self._observed_at = self.clock.now()
            snapshot = self._commit(self._snapshot.evolve(timer_state=TimerState.RUNNING))
            self._sync_side_effects()
            return snapshot

    def stop(self) -> EngineSnapshot:
        return self._halt()

    def reset(self) -> EngineSnapshot:
        return self.stop()

    def reset_stats(self) -> EngineSnapshot:
        return self._halt(total_work_time=0, total_completed_sessions=0)

    def _halt(self, **extra: int) -> EngineSnapshot:
        with self._lock:
            snapshot = self._commit(
                self._snapshot.evolve(
                    **extra,
                    timer_state=TimerState.STOPPED,
                    phase=Phase.WORK,
                    time_remaining=0,
                    completed_sessions=0,
                )
            )
            self._sync_side_effects()
            return snapshot

    def skip_to_next_phase(self) -> EngineSnapshot:
        with self._lock:
            state = self._snapshot.timer_state
            if self._config is None or state in (TimerState.STOPPED, TimerState.IDLE):
                return self._snapshot
            if state is TimerState.RUNNING:
                self._catch_up(self.clock.now())
                self._observed_at = self.clock.now()
            snapshot = self._commit(skip_phase(self._snapshot, self._config))
            self._sync_side_effects()
            return snapshot

    def tick(self, elapsed_seconds: int = 1) -> EngineSnapshot:
        """Consume ``elapsed_seconds`` of the running phase, crossing phases as needed."""
        with self._lock:
            if self._snapshot.timer_state is not TimerState.RUNNING or self._config is None:
                return self._snapshot
            elapsed = max(0, int(elapsed_seconds))
            crossed = elapsed >= self._snapshot.time_remaining
            snapshot = self._commit(consume(self._snapshot, self._config, elapsed))
            if crossed:
                get_logger().info(
                    "timer %s moved to %s (%d sessions in total)",
                    self._config.id,
                    snapshot.phase.value,
                    snapshot.total_completed_sessions,
                )
                self._sync_notification()
            return snapshot

    def advance(self, now: datetime | None = None) -> EngineSnapshot:
        """Tick by the whole seconds of wall-clock time since the last observation."""
        with self._lock:
            moment = now or self.clock.now()
            if not self._snapshot.is_running or moment < self._observed_at:
                self._observed_at = moment
                return self._snapshot
            return self._catch_up(moment)

    # ----- lifecycle -----
    def suspend(self) -> EngineSnapshot:
        """Stop the tick loop without touching state; reconciliation takes over."""
        with self._lock:
            self.ticker.stop()
            return self._snapshot

    def adopt(
        self,
        snapshot: EngineSnapshot,
        config: PomodoroTimerConfig | None,
        observed_at: datetime,
        resume_ticking: bool = True,
    ) -> EngineSnapshot:
        """Replace the state with a reconciled snapshot and resync notifications.

        Background wakes pass ``resume_ticking=False``: the snapshot is corrected
        but the tick loop stays off until the host is in the foreground again.
        """
        with self._lock:
            self.ticker.stop()
            if self._config is not None and (config is None or config.id != self._config.id):
                self.notifications.cancel_pomodoro(self._config.id)
            self._config = config
            self._observed_at = observed_at
            adopted = clamp(snapshot, config)
            if config is None:
                adopted = adopted.evolve(selected_timer_id=None)
                if adopted.timer_state in (TimerState.RUNNING, TimerState.PAUSED):
                    adopted = adopted.evolve(timer_state=TimerState.STOPPED, time_remaining=0)
            result = self._commit(adopted, force=True)
            if resume_ticking:
                self._sync_side_effects()
            else:
                self._sync_notification()
            return result

    # ----- internals -----
    def _catch_up(self, moment: datetime) -> EngineSnapshot:
        elapsed = elapsed_whole_seconds(self._observed_at, moment)
        if elapsed < 1:
            return self._snapshot
        self._observed_at = self._observed_at + timedelta(seconds=elapsed)
        return self.tick(elapsed)

    def _require_config(self) -> PomodoroTimerConfig:
        if self._config is None:
            raise NoTimerSelectedError()
        return self._config

    def _require_state(self, operation: str, expected: TimerState) -> None:
        state = self._snapshot.timer_state
        if state is not expected:
            raise InvalidTransitionError(operation, state.value)

    def _commit(self, snapshot: EngineSnapshot, force: bool = False) -> EngineSnapshot:
        if snapshot == self._snapshot and not force:
            return snapshot
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                get_logger().exception("snapshot listener failed")
        return snapshot

    def _sync_side_effects(self) -> None:
        self._sync_notification()
        if self._snapshot.is_running:
            if not self.ticker.is_active:
                self.ticker.start(self.advance)
        else:
            self.ticker.stop()

    def _sync_notification(self) -> None:
        config = self._config
        if config is None:
            return
        if self._snapshot.is_running:
            self.notifications.schedule_phase_end(
                config.id, self._snapshot.phase, self._snapshot.time_remaining
            )
        else:
            self.notifications.cancel_pomodoro(config.id)
