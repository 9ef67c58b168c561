from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from loguru import logger

from .errors import TurnError
from .states import Message, SessionState, StopReason


@dataclass(frozen=True)
class MessageAppended:
    message: Message
    index: int


@dataclass(frozen=True)
class StateChanged:
    state: SessionState
    previous: SessionState
    stop_reason: Optional[StopReason] = None


@dataclass(frozen=True)
class TurnCountChanged:
    turn_count: int


@dataclass(frozen=True)
class TurnFailed:
    error: TurnError
    consecutive_failures: int


@dataclass(frozen=True)
class TypingChanged:
    typing: bool


@dataclass(frozen=True)
class DialogueCleared:
    prompt: str


@dataclass(frozen=True)
class TurnRequested:
    """A continuing call for turn ``turn`` has been sent to the response source."""

    turn: int


DialogueEvent = Union[
    MessageAppended, StateChanged, TurnCountChanged, TurnFailed, TypingChanged, DialogueCleared, TurnRequested
]
Listener = Callable[[DialogueEvent], None]


class Subscription:
    """Async queue of events, iterable with ``async for``. Iteration never ends on its own.

    The queue is unbounded: every published event is kept until read. A consumer that
    stops reading must call ``close()``, after which nothing more is enqueued.
    """

    def __init__(self, stream: "EventStream") -> None:
        self._stream = stream
        self.queue: asyncio.Queue = asyncio.Queue()

    async def get(self) -> DialogueEvent:
        return await self.queue.get()

    def get_nowait(self) -> DialogueEvent:
        return self.queue.get_nowait()

    def close(self) -> None:
        self._stream._drop(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> DialogueEvent:
        return await self.queue.get()


class EventStream:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._subscriptions: List[Subscription] = []

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def subscribe(self) -> Subscription:
        """Open a queue that receives every event published from now on. Close it when done."""
        sub = Subscription(self)
        self._subscriptions.append(sub)
        return sub

    def _drop(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def publish(self, event: DialogueEvent) -> None:
        for sub in list(self._subscriptions):
            sub.queue.put_nowait(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken consumer must not derail the turn loop
                logger.exception(f"event_listener_failed | event={type(event).__name__}")
