from __future__ import annotations

import asyncio
import random
import string
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from loguru import logger

from .config import Settings
from .responses import DEFAULT_ROSTER, lines_for, load_responses


@dataclass(frozen=True)
class SourceResult:
    success: bool
    session_id: Optional[str] = None
    speaker: str = ""
    content: str = ""
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "SourceResult":
        return cls(success=False, error=error or "unknown error")


class ResponseSource(Protocol):
    async def call(self, prompt: str, session_id: Optional[str], is_new_session: bool) -> SourceResult:
        ...


class MockResponseSource:
    """Canned-response stand-in for an inference backend.

    Picks speakers by a round-robin cursor over the roster that only this object owns.
    A new session puts the cursor on position 1 (the seed belongs to position 0) and
    every successful continuing call moves it forward by one. Failed calls leave it
    where it was, so a retried turn gets the same speaker.
    """

    def __init__(
        self,
        roster: Sequence[str] = DEFAULT_ROSTER,
        responses: Optional[Dict[str, List[str]]] = None,
        latency: tuple[float, float] = (1.0, 3.0),
        fail_on: Iterable[int] = (),
        fail_rate: float = 0.0,
        fail_new_session: bool = False,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not roster:
            raise ValueError("roster must name at least one agent")
        self.roster = tuple(roster)
        self.responses = responses if responses is not None else load_responses()
        self.latency = latency
        self.fail_on = set(fail_on)
        self.fail_rate = fail_rate
        self.fail_new_session = fail_new_session
        self.rng = rng or random.Random()
        self.cursor = 0
        self.response_index = 0
        self.calls = 0
        self.transcript: List[str] = []

    @classmethod
    def from_settings(cls, settings: Settings, rng: Optional[random.Random] = None) -> "MockResponseSource":
        return cls(
            roster=settings.roster,
            responses=load_responses(settings.responses_path),
            latency=(settings.latency_min, settings.latency_max),
            fail_rate=settings.fail_rate,
            rng=rng,
        )

    def generate_session_id(self) -> str:
        suffix = "".join(self.rng.choice(string.ascii_lowercase + string.digits) for _ in range(9))
        return f"session_{int(time.time() * 1000)}_{suffix}"

    async def _simulate_latency(self) -> None:
        lo, hi = self.latency
        await asyncio.sleep(self.rng.uniform(lo, hi) if hi > 0 else 0)

    def _should_fail(self) -> bool:
        if self.calls in self.fail_on:
            return True
        return self.fail_rate > 0 and self.rng.random() < self.fail_rate

    async def call(self, prompt: str, session_id: Optional[str], is_new_session: bool = False) -> SourceResult:
        await self._simulate_latency()

        if is_new_session:
            if self.fail_new_session:
                logger.debug("mock_source_call | new_session=true | injected failure")
                return SourceResult.failure("injected failure on new session")
            speaker = self.roster[0]
            self.transcript = [f"{speaker}: {prompt}"]
            self.cursor = 1 % len(self.roster)
            self.response_index = 0
            self.calls = 0
            new_id = self.generate_session_id()
            logger.debug(f"mock_source_call | new_session=true | session_id={new_id}")
            return SourceResult(success=True, session_id=new_id, speaker=speaker, content=prompt)

        self.calls += 1
        if self._should_fail():
            logger.debug(f"mock_source_call | call={self.calls} | injected failure")
            return SourceResult.failure(f"injected failure on call {self.calls}")

        speaker = self.roster[self.cursor]
        lines = lines_for(speaker, self.responses)
        content = lines[self.response_index % len(lines)]
        self.transcript.append(f"{speaker}: {content}")
        self.cursor = (self.cursor + 1) % len(self.roster)
        self.response_index += 1
        logger.debug(f"mock_source_call | call={self.calls} | speaker={speaker}")
        return SourceResult(success=True, session_id=session_id, speaker=speaker, content=content)
