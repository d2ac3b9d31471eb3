"""Wall-clock reconciliation of a persisted engine snapshot.

After the process was suspended no tick loop ran, so the stored
``time_remaining`` is stale. ``reconcile`` replays the elapsed wall-clock time
through the same natural-completion rule the tick loop uses, which makes one
call over ``D`` seconds equal to ``D`` one-second ticks. It is pure: calling it
again with ``last_observed_at == now`` returns the snapshot unchanged.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from .clock import elapsed_whole_seconds
from .models import EngineSnapshot, PomodoroTimerConfig, TimerState
from .phases import clamp, consume


def reconcile(
    snapshot: EngineSnapshot,
    config: PomodoroTimerConfig | None,
    last_observed_at: datetime,
    now: datetime,
) -> EngineSnapshot:
    if config is not None and snapshot.selected_timer_id not in (None, config.id):
        config = None
    current = clamp(snapshot, config)
    if current.timer_state is not TimerState.RUNNING or config is None:
        return current
    # A clock that moved backwards counts as no time passing.
    return consume(current, config, elapsed_whole_seconds(last_observed_at, now))


def observed_after(last_observed_at: datetime, now: datetime) -> datetime:
    """Observation mark to store alongside a snapshot reconciled up to ``now``.

    Only whole seconds are consumed, so the fractional remainder is carried
    over instead of being dropped between reconciliations.
    """
    if now <= last_observed_at:
        return now
    return last_observed_at + timedelta(seconds=elapsed_whole_seconds(last_observed_at, now))
