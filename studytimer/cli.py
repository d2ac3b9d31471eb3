from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
import sys

from .config import Settings
from .engine import format_clock
from .errors import EngineError, UnknownTimerError
from .service import TimerService, build_service


def minutes_to_seconds(minutes: float) -> int:
    if minutes <= 0:
        return 0
    seconds = int(round(minutes * 60))
    return max(1, seconds)


def parse_target(value: str) -> datetime:
    try:
        moment = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"invalid date: {value}, use YYYY-MM-DD or an ISO date-time"
        ) from exc
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


def build_parser(settings: Settings | None = None) -> argparse.ArgumentParser:
    resolved = settings or Settings.from_env()
    parser = argparse.ArgumentParser(
        prog="studytimer",
        description="StudyTimer: pomodoro and countdown timers for exam preparation",
    )
    parser.add_argument("--db", default=str(resolved.db_path), help="SQLite database path")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="show the pomodoro state")
    subparsers.add_parser("timers", help="list pomodoro and countdown timers")

    select_parser = subparsers.add_parser("select", help="select a pomodoro timer")
    select_parser.add_argument("timer_id")

    for name, text in (
        ("start", "start (or resume) the selected pomodoro"),
        ("pause", "pause the running pomodoro"),
        ("resume", "resume a paused pomodoro"),
        ("stop", "stop the pomodoro"),
        ("skip", "skip to the next phase"),
        ("reset-stats", "clear total work time and sessions"),
    ):
        subparsers.add_parser(name, help=text)

    pomodoro_parser = subparsers.add_parser("add-pomodoro", help="add a pomodoro timer")
    pomodoro_parser.add_argument("--name", required=True)
    pomodoro_parser.add_argument("--work", type=float, default=25.0, help="work minutes")
    pomodoro_parser.add_argument("--break", dest="break_minutes", type=float, default=5.0, help="short break minutes")
    pomodoro_parser.add_argument(
        "--long-break",
        dest="long_break_minutes",
        type=float,
        default=15.0,
        help="long break minutes",
    )
    pomodoro_parser.add_argument("--sessions", type=int, default=4, help="work sessions before a long break")

    countdown_parser = subparsers.add_parser("add-countdown", help="add a countdown timer")
    countdown_parser.add_argument("--name", required=True)
    countdown_parser.add_argument("--date", dest="target", type=parse_target, required=True)
    countdown_parser.add_argument("--color", default=None)

    remove_parser = subparsers.add_parser("remove", help="remove a pomodoro or countdown timer")
    remove_parser.add_argument("timer_id")

    serve_parser = subparsers.add_parser("serve", help="run the HTTP API")
    serve_parser.add_argument("--host", default=resolved.host)
    serve_parser.add_argument("--port", type=int, default=resolved.port)

    return parser


def main(argv: list[str] | None = None, service: TimerService | None = None) -> int:
    settings = Settings.from_env()
    parser = build_parser(settings)
    args = parser.parse_args(argv)

    if args.command == "serve":
        return _handle_serve(args, settings)
    if args.command == "add-pomodoro":
        _validate_pomodoro(args, parser)

    timer_service = service or build_service(Path(args.db), journal_mode=settings.journal_mode, live_ticks=False)
    timer_service.open()
    try:
        return _dispatch(args, timer_service)
    except EngineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        timer_service.close()


def _dispatch(args: argparse.Namespace, service: TimerService) -> int:
    engine = service.engine
    if args.command == "status":
        return _print_status(service)
    if args.command == "timers":
        return _print_timers(service)
    if args.command == "select":
        service.select_timer(args.timer_id)
        return _print_status(service)
    if args.command == "add-pomodoro":
        config = service.add_pomodoro(
            name=args.name,
            work_duration=minutes_to_seconds(args.work),
            break_duration=minutes_to_seconds(args.break_minutes),
            long_break_duration=minutes_to_seconds(args.long_break_minutes),
            sessions_before_long_break=args.sessions,
        )
        print(f"added pomodoro {config.id} ({config.name})")
        return 0
    if args.command == "add-countdown":
        countdown = service.add_countdown(args.name, args.target, args.color)
        print(f"added countdown {countdown.id} ({countdown.name})")
        return 0
    if args.command == "remove":
        return _handle_remove(service, args.timer_id)

    commands = {
        "start": engine.start,
        "pause": engine.pause,
        "resume": engine.resume,
        "stop": engine.stop,
        "skip": engine.skip_to_next_phase,
        "reset-stats": engine.reset_stats,
    }
    commands[args.command]()
    return _print_status(service)


def _validate_pomodoro(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    if args.work <= 0 or args.break_minutes <= 0 or args.long_break_minutes <= 0:
        parser.error("durations must be positive")
    if args.sessions < 1:
        parser.error("--sessions must be at least 1")


def _handle_remove(service: TimerService, timer_id: str) -> int:
    try:
        service.remove_pomodoro(timer_id)
    except UnknownTimerError:
        service.remove_countdown(timer_id)
    print(f"removed {timer_id}")
    return 0


def _print_status(service: TimerService) -> int:
    status = service.status()
    name = status["selected_timer_name"] or "-"
    print(f"timer: {name}")
    print(f"state: {status['timer_state']} | {status['phase_label']} | {status['time_remaining_text']} left")
    print(f"sessions until long break: {status['completed_sessions']}")
    print(
        f"total: {status['total_completed_sessions']} sessions, "
        f"{format_clock(status['total_work_time'])} of work"
    )
    return 0


def _print_timers(service: TimerService) -> int:
    selected = service.engine.snapshot.selected_timer_id
    print("[pomodoro]")
    for item in service.catalog.pomodoros:
        marker = "*" if item.id == selected else " "
        print(
            f"{marker} {item.id} | {item.name} | work {format_clock(item.work_duration)} | "
            f"break {format_clock(item.break_duration)} | long break {format_clock(item.long_break_duration)} "
            f"every {item.sessions_before_long_break}"
        )
    print("[countdown]")
    for row in service.countdown_rows():
        state = "expired" if row["is_expired"] else row["time_remaining_text"]
        print(f"  {row['id']} | {row['name']} | {row['target_date']} | {state}")
    return 0


def _handle_serve(args: argparse.Namespace, settings: Settings) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        print(f"serve needs uvicorn: {exc}", file=sys.stderr)
        return 2

    from .api.app import create_app

    app = create_app(db_path=Path(args.db), settings=settings)
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
