from __future__ import annotations


class EngineError(Exception):
    """Base class for rejected timer operations."""


class NoTimerSelectedError(EngineError):
    def __init__(self) -> None:
        super().__init__("select a pomodoro timer before starting")


class InvalidTransitionError(EngineError):
    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"{operation}() is not valid from the {state} state")
        self.operation = operation
        self.state = state


class UnknownTimerError(EngineError):
    def __init__(self, timer_id: str) -> None:
        super().__init__(f"no timer with id {timer_id}")
        self.timer_id = timer_id
