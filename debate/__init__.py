"""
Round-robin multi-agent debate engine.

Modules:
- scheduler: SessionScheduler turn loop (start/stop, pacing, retries, termination)
- source: ResponseSource contract + MockResponseSource with canned replies
- states: SessionState/StopReason + Message and Session records
- events: dialogue events and the EventStream consumers subscribe to
- config: Settings from env / .env
- stream_runner: synchronous event generator for UIs
"""

from .errors import DebateError, StartupError, TurnError, ValidationError
from .scheduler import SessionScheduler
from .source import MockResponseSource, ResponseSource, SourceResult
from .states import Message, Session, SessionState, StopReason

__all__ = [
    "DebateError",
    "Message",
    "MockResponseSource",
    "ResponseSource",
    "Session",
    "SessionScheduler",
    "SessionState",
    "SourceResult",
    "StartupError",
    "StopReason",
    "TurnError",
    "ValidationError",
]
