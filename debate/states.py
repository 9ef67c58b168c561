from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SessionState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StopReason(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    STARTUP_FAILED = "startup_failed"
    FAILURE_LIMIT = "failure_limit"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class Message:
    speaker: str
    content: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'speaker': self.speaker,
            'content': self.content,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class Session:
    """State of one debate run, owned by the scheduler's turn loop.

    ``stop_requested`` is the only field written from outside the loop: ``stop()``
    sets it and the loop reacts at its next suspension point.
    """

    prompt: str
    session_id: Optional[str] = None
    state: SessionState = SessionState.IDLE
    turn_count: int = 0
    dialogue_log: List[Message] | None = None
    stop_reason: Optional[StopReason] = None
    consecutive_failures: int = 0
    failed_attempts: int = 0
    typing: bool = False
    typing_hold: float = 0.0
    starting: bool = False
    stop_requested: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    def __post_init__(self):
        if self.dialogue_log is None:
            self.dialogue_log = []

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self.dialogue_log)

    @property
    def last_message(self) -> Optional[Message]:
        return self.dialogue_log[-1] if self.dialogue_log else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'prompt': self.prompt,
            'state': self.state.value,
            'stop_reason': self.stop_reason.value if self.stop_reason else None,
            'turn_count': self.turn_count,
            'failed_attempts': self.failed_attempts,
            'dialogue': [m.to_dict() for m in self.dialogue_log],
        }
