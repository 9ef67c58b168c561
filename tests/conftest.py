from __future__ import annotations

import asyncio
import dataclasses
import random
from typing import Optional

import pytest

from debate.config import Settings
from debate.source import MockResponseSource, SourceResult


ROSTER = ("GROK", "CLAUDE", "CHATGPT", "DEEPSEEK")


class GatedSource:
    """Wraps a zero-latency mock; continuing calls block until ``gate`` is set.

    With ``fail`` set, continuing calls report a failure once the gate opens.
    """

    def __init__(self, roster=ROSTER, gate_new_session: bool = False, fail: bool = False) -> None:
        self.inner = MockResponseSource(roster=roster, latency=(0.0, 0.0), rng=random.Random(1))
        self.gate = asyncio.Event()
        self.gate_new_session = gate_new_session
        self.fail = fail
        self.pending = 0
        self.calls = 0

    async def call(self, prompt: str, session_id: Optional[str], is_new_session: bool = False) -> SourceResult:
        if is_new_session and not self.gate_new_session:
            return await self.inner.call(prompt, session_id, True)
        if not is_new_session:
            self.calls += 1
        self.pending += 1
        try:
            await self.gate.wait()
        finally:
            self.pending -= 1
        if self.fail and not is_new_session:
            return SourceResult.failure("backend down")
        return await self.inner.call(prompt, session_id, is_new_session)


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        roster=ROSTER,
        max_turns=50,
        turn_interval=0.0,
        typing_min=0.0,
        typing_max=0.0,
        retry_cooldown=0.0,
        latency_min=0.0,
        latency_max=0.0,
    )


@pytest.fixture
def settings_with(fast_settings):
    def build(**overrides) -> Settings:
        return dataclasses.replace(fast_settings, **overrides)
    return build


@pytest.fixture
def mock_source():
    def build(**kw) -> MockResponseSource:
        kw.setdefault("roster", ROSTER)
        kw.setdefault("latency", (0.0, 0.0))
        kw.setdefault("rng", random.Random(7))
        return MockResponseSource(**kw)
    return build


@pytest.fixture
def gated_source():
    def build(**kw) -> GatedSource:
        return GatedSource(**kw)
    return build
