"""Pure phase transitions shared by the engine tick and the reconciler.

Nothing here touches clocks, notifications or storage: every function takes a
snapshot and the selected timer config and returns a new snapshot.
"""

from __future__ import annotations

from .models import EngineSnapshot, Phase, PomodoroTimerConfig


def _after_work(snapshot: EngineSnapshot, config: PomodoroTimerConfig, credit: int) -> EngineSnapshot:
    completed = snapshot.completed_sessions + 1
    totals = {
        "total_work_time": snapshot.total_work_time + max(0, credit),
        "total_completed_sessions": snapshot.total_completed_sessions + 1,
    }
    if completed >= config.sessions_before_long_break:
        return snapshot.evolve(
            phase=Phase.LONG_BREAK,
            time_remaining=config.long_break_duration,
            completed_sessions=0,
            **totals,
        )
    return snapshot.evolve(
        phase=Phase.BREAK,
        time_remaining=config.break_duration,
        completed_sessions=completed,
        **totals,
    )


def _back_to_work(snapshot: EngineSnapshot, config: PomodoroTimerConfig) -> EngineSnapshot:
    return snapshot.evolve(phase=Phase.WORK, time_remaining=config.work_duration)


def complete_phase(snapshot: EngineSnapshot, config: PomodoroTimerConfig) -> EngineSnapshot:
    """Natural completion: a finished work phase is credited its full nominal length."""
    if snapshot.phase is Phase.WORK:
        return _after_work(snapshot, config, credit=config.work_duration)
    return _back_to_work(snapshot, config)


def skip_phase(snapshot: EngineSnapshot, config: PomodoroTimerConfig) -> EngineSnapshot:
    """Manual skip: only the elapsed part of a work phase is credited."""
    if snapshot.phase is Phase.WORK:
        return _after_work(snapshot, config, credit=config.work_duration - snapshot.time_remaining)
    return _back_to_work(snapshot, config)


def _skip_whole_cycles(
    snapshot: EngineSnapshot, config: PomodoroTimerConfig, left: int
) -> tuple[EngineSnapshot, int]:
    """Jump over complete cycles from the start of a work phase.

    A full cycle (work sessions, short breaks and one long break) from a work
    start with no completed sessions ends in the same place, and so does a
    work plus short-break pair that does not reach the long break. Only the
    totals change, so both are applied arithmetically.
    """
    sessions = config.sessions_before_long_break
    pair = config.work_duration + config.break_duration
    done = 0
    if snapshot.completed_sessions == 0:
        cycle = sessions * config.work_duration + (sessions - 1) * config.break_duration + config.long_break_duration
        cycles, left = divmod(left, cycle)
        done += cycles * sessions
    pairs = min(max(0, sessions - 1 - snapshot.completed_sessions), left // pair)
    left -= pairs * pair
    done += pairs
    if not done:
        return snapshot, left
    return (
        snapshot.evolve(
            completed_sessions=snapshot.completed_sessions + pairs,
            total_work_time=snapshot.total_work_time + done * config.work_duration,
            total_completed_sessions=snapshot.total_completed_sessions + done,
        ),
        left,
    )


def consume(snapshot: EngineSnapshot, config: PomodoroTimerConfig, elapsed: int) -> EngineSnapshot:
    """Spend ``elapsed`` seconds of a running snapshot, crossing as many phases as needed.

    Every phase has a positive nominal duration, so the loop always terminates;
    whole cycles are skipped at each work start, so it runs a bounded number of
    times however long the gap.
    """
    left = max(0, int(elapsed))
    current = snapshot
    while left >= current.time_remaining:
        left -= current.time_remaining
        current = complete_phase(current, config)
        if current.phase is Phase.WORK:
            current, left = _skip_whole_cycles(current, config, left)
    return current.evolve(time_remaining=current.time_remaining - left)


def clamp(snapshot: EngineSnapshot, config: PomodoroTimerConfig | None) -> EngineSnapshot:
    remaining = max(0, snapshot.time_remaining)
    completed = max(0, snapshot.completed_sessions)
    if config is not None:
        remaining = min(remaining, config.duration_for(snapshot.phase))
        completed = min(completed, config.sessions_before_long_break)
    clamped = snapshot.evolve(
        time_remaining=remaining,
        completed_sessions=completed,
        total_work_time=max(0, snapshot.total_work_time),
        total_completed_sessions=max(0, snapshot.total_completed_sessions),
    )
    return snapshot if clamped == snapshot else clamped


def progress(snapshot: EngineSnapshot, config: PomodoroTimerConfig | None) -> float:
    if config is None:
        return 0.0
    total = config.duration_for(snapshot.phase)
    if total <= 0:
        return 0.0
    value = 1.0 - (snapshot.time_remaining / total)
    return max(0.0, min(1.0, value))
