from __future__ import annotations

from typing import Optional


class DebateError(Exception):
    """Base class for errors raised by the debate engine."""


class ValidationError(DebateError, ValueError):
    """The prompt handed to ``start`` was empty or whitespace only."""


class StartupError(DebateError, RuntimeError):
    """The opening call to the response source failed, so no session started."""

    def __init__(self, message: str, session_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.session_id = session_id


class TurnError(DebateError):
    """A mid-session turn failed. Never raised to callers; carried by TurnFailed events."""

    def __init__(self, message: str, session_id: Optional[str] = None, turn: int = 0) -> None:
        super().__init__(message)
        self.session_id = session_id
        self.turn = turn
