from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
import io
from pathlib import Path
import unittest

from studytimer import cli
from studytimer.store import MemoryKeyValueStore
from studytimer.tests.test_helpers import local_tmp_dir, make_service


def run_cli(args: list[str], **kwargs: object) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = cli.main(args, **kwargs)  # type: ignore[arg-type]
    return code, out.getvalue(), err.getvalue()


class TestCLI(unittest.TestCase):
    def test_add_pomodoro_rejects_non_positive_minutes(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = Path(tmp) / "studytimer.sqlite"
            args = ["--db", str(db_path), "add-pomodoro", "--name", "Broken", "--work", "0"]

            with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit) as exc:
                cli.main(args)

            self.assertEqual(exc.exception.code, 2)

    def test_minutes_to_seconds(self) -> None:
        self.assertEqual(cli.minutes_to_seconds(25), 1500)
        self.assertEqual(cli.minutes_to_seconds(0.001), 1)
        self.assertEqual(cli.minutes_to_seconds(0), 0)

    def test_commands_against_one_service(self) -> None:
        service = make_service(kv=MemoryKeyValueStore())

        code, out, _ = run_cli(["timers"], service=service)
        self.assertEqual(code, 0)
        self.assertIn("Standard Pomodoro", out)
        self.assertIn("Exam day", out)

        code, _, err = run_cli(["start"], service=service)
        self.assertEqual(code, 1)
        self.assertIn("select a pomodoro timer", err)

        timer_id = service.catalog.pomodoros[0].id
        code, out, _ = run_cli(["select", timer_id], service=service)
        self.assertEqual(code, 0)
        self.assertIn("timer: Standard Pomodoro", out)

        code, out, _ = run_cli(["start"], service=service)
        self.assertEqual(code, 0)
        self.assertIn("state: running | Study time | 00:25:00 left", out)

        code, out, _ = run_cli(["skip"], service=service)
        self.assertIn("state: running | Short break | 00:05:00 left", out)

        code, _, err = run_cli(["resume"], service=service)
        self.assertEqual(code, 1)
        self.assertIn("resume() is not valid from the running state", err)

        code, out, _ = run_cli(["timers"], service=service)
        self.assertIn(f"* {timer_id} | Standard Pomodoro", out)

    def test_remove_unknown_timer_fails(self) -> None:
        code, _, err = run_cli(["remove", "missing"], service=make_service())

        self.assertEqual(code, 1)
        self.assertIn("no timer with id missing", err)

    def test_timers_persist_in_sqlite(self) -> None:
        with local_tmp_dir() as tmp:
            db = str(Path(tmp) / "studytimer.sqlite")

            code, out, _ = run_cli(["--db", db, "add-pomodoro", "--name", "Deep work", "--work", "50"])
            self.assertEqual(code, 0)
            self.assertIn("added pomodoro", out)

            code, out, _ = run_cli(
                ["--db", db, "add-countdown", "--name", "Finals", "--date", "2031-06-17T10:00:00+00:00"]
            )
            self.assertEqual(code, 0)

            code, out, _ = run_cli(["--db", db, "timers"])
            self.assertIn("Deep work | work 00:50:00", out)
            self.assertIn("Finals | 2031-06-17T10:00:00+00:00", out)


if __name__ == "__main__":
    unittest.main()
