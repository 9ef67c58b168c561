from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from loguru import logger

from .config import Settings, get_settings
from .errors import StartupError, TurnError, ValidationError
from .events import (
    DialogueCleared,
    EventStream,
    MessageAppended,
    StateChanged,
    TurnCountChanged,
    TurnFailed,
    TurnRequested,
    TypingChanged,
)
from .source import ResponseSource, SourceResult
from .states import Message, Session, SessionState, StopReason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionScheduler:
    """Runs one round-robin debate at a time against a response source.

    ``start`` opens a session and hands the turn loop to a background task; ``stop``
    only raises the session's stop flag. Every other change to session state happens
    inside the loop task, which checks the flag after each suspension point (the
    pacing wait and the source call). Progress is published on ``events``.
    """

    def __init__(
        self,
        source: ResponseSource,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.source = source
        self.settings = settings or get_settings()
        self.roster = self.settings.roster
        self.max_turns = self.settings.max_turns
        self.events = EventStream()
        self.rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._session: Optional[Session] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state if self._session else SessionState.IDLE

    @property
    def turn_count(self) -> int:
        return self._session.turn_count if self._session else 0

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id if self._session else None

    @property
    def dialogue(self) -> Tuple[Message, ...]:
        return self._session.messages if self._session else ()

    async def start(self, prompt: str) -> Session:
        """Open a new session seeded with ``prompt`` and launch the turn loop.

        Raises ValidationError for a blank prompt (nothing changes) and StartupError
        when the opening source call fails. A session already running is replaced.
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError("prompt must not be empty")

        await self._supersede()

        session = Session(prompt=prompt, starting=True)
        self._session = session
        self.events.publish(DialogueCleared(prompt=prompt))
        self.events.publish(TurnCountChanged(turn_count=0))
        logger.info(f"debate_start | roster={','.join(self.roster)} | max_turns={self.max_turns}")

        result = await self._call(session, is_new_session=True)
        session.starting = False

        if self._session is not session:
            self._finish(session, StopReason.SUPERSEDED)
            raise StartupError("session was superseded before it started")

        problem = self._check(result, session, is_new_session=True)
        if problem is not None:
            logger.error(f"debate_start_failed | error={problem}")
            self._finish(session, StopReason.STARTUP_FAILED)
            raise StartupError(f"could not start session: {problem}")

        session.session_id = result.session_id
        seed_speaker = self.roster[0]
        if result.speaker and result.speaker != seed_speaker:
            logger.warning(f"debate_seed_speaker_mismatch | expected={seed_speaker} got={result.speaker}")
        self._append(session, seed_speaker, prompt, counts_turn=False)
        self._set_state(session, SessionState.RUNNING)

        if session.stop_requested.is_set():
            self._enter_stopping(session)
            self._finish(session, StopReason.CANCELLED)
            return session

        self._task = asyncio.get_running_loop().create_task(self._run(session))
        return session

    def stop(self) -> None:
        """Ask the running session to wind down. No-op when nothing is running."""
        session = self._session
        if session is None or session.stop_requested.is_set():
            return
        if session.state is not SessionState.RUNNING and not session.starting:
            return
        session.stop_requested.set()
        logger.info(f"debate_stop_requested | session_id={session.session_id} t={session.turn_count}")

    async def wait_stopped(self) -> Optional[Session]:
        session, task = self._session, self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return session

    async def run(self, prompt: str) -> Session:
        session = await self.start(prompt)
        await self.wait_stopped()
        return session

    async def aclose(self) -> None:
        """Cancel the turn loop outright, abandoning any in-flight call."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _supersede(self) -> None:
        old = self._session
        if old is None or old.state is SessionState.STOPPED:
            return
        logger.info(f"debate_superseded | session_id={old.session_id} t={old.turn_count}")
        old.stop_reason = StopReason.SUPERSEDED
        old.stop_requested.set()
        await self.aclose()

    async def _run(self, session: Session) -> None:
        reason = StopReason.COMPLETED
        try:
            while session.turn_count < self.max_turns:
                if not await self._pace(session):
                    reason = StopReason.CANCELLED
                    break
                ok = await self._take_turn(session)
                if session.stop_requested.is_set():
                    self._enter_stopping(session)
                    if session.turn_count < self.max_turns:
                        reason = StopReason.CANCELLED
                    break
                if ok:
                    continue
                limit = self.settings.max_consecutive_failures
                if limit and session.consecutive_failures >= limit:
                    logger.error(f"debate_failure_limit | consecutive={session.consecutive_failures} limit={limit}")
                    reason = StopReason.FAILURE_LIMIT
                    break
                if not await self._wait(session, self.settings.retry_cooldown):
                    reason = StopReason.CANCELLED
                    break
        except asyncio.CancelledError:
            self._finish(session, session.stop_reason or StopReason.CANCELLED)
            raise
        except Exception:
            logger.exception(f"debate_loop_crashed | session_id={session.session_id}")
            reason = StopReason.CANCELLED
        self._finish(session, reason)

    async def _pace(self, session: Session) -> bool:
        last = session.last_message
        if last is not None and session.typing:
            elapsed = (self._clock() - last.timestamp).total_seconds()
            remaining = session.typing_hold - elapsed
            if remaining > 0 and not await self._wait(session, remaining):
                return False
            self._set_typing(session, False)
        return await self._wait(session, self.settings.turn_interval)

    async def _wait(self, session: Session, delay: float) -> bool:
        """Sleep ``delay`` seconds unless stop is requested first. True if the full delay passed."""
        if not session.stop_requested.is_set():
            if delay <= 0:
                await asyncio.sleep(0)
            else:
                try:
                    await asyncio.wait_for(session.stop_requested.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        if session.stop_requested.is_set():
            self._enter_stopping(session)
            return False
        return True

    async def _take_turn(self, session: Session) -> bool:
        call = asyncio.ensure_future(self._call(session, is_new_session=False))
        self.events.publish(TurnRequested(turn=session.turn_count + 1))
        stop_wait = asyncio.ensure_future(session.stop_requested.wait())
        try:
            done, _ = await asyncio.wait({call, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
            if call not in done:
                # stop arrived mid-call: the result still lands, nothing follows it
                self._enter_stopping(session)
                await call
        finally:
            stop_wait.cancel()
            if not call.done():
                call.cancel()
        result = call.result()

        problem = self._check(result, session, is_new_session=False)
        if problem is None:
            session.consecutive_failures = 0
            self._append(session, result.speaker, result.content, counts_turn=True)
            return True

        session.consecutive_failures += 1
        session.failed_attempts += 1
        error = TurnError(problem, session_id=session.session_id, turn=session.turn_count + 1)
        logger.warning(
            f"debate_turn_failed | t={session.turn_count + 1} consecutive={session.consecutive_failures} | error={problem}"
        )
        self.events.publish(TurnFailed(error=error, consecutive_failures=session.consecutive_failures))
        return False

    async def _call(self, session: Session, is_new_session: bool) -> SourceResult:
        timeout = self.settings.call_timeout
        try:
            call = self.source.call(session.prompt, session.session_id, is_new_session)
            if timeout:
                return await asyncio.wait_for(call, timeout=timeout)
            return await call
        except asyncio.TimeoutError:
            return SourceResult.failure(f"response source timed out after {timeout}s")
        except Exception as e:
            logger.debug(f"response_source_raised | {type(e).__name__}: {e}")
            return SourceResult.failure(f"{type(e).__name__}: {e}")

    @staticmethod
    def _check(result: Optional[SourceResult], session: Session, is_new_session: bool) -> Optional[str]:
        if result is None or not result.success:
            return (result.error if result is not None else None) or "response source reported failure"
        if is_new_session:
            if not result.session_id:
                return "response source returned no session id"
            return None
        if not (result.speaker or "").strip() or not (result.content or "").strip():
            return "response source returned an empty speaker or content"
        if result.session_id != session.session_id:
            return f"session id mismatch (expected {session.session_id}, got {result.session_id})"
        return None

    def _append(self, session: Session, speaker: str, content: str, counts_turn: bool) -> None:
        message = Message(speaker=speaker, content=content, timestamp=self._clock())
        session.dialogue_log.append(message)
        if counts_turn:
            session.turn_count += 1
        lo, hi = self.settings.typing_min, self.settings.typing_max
        session.typing_hold = self.rng.uniform(lo, hi) if hi > 0 else 0.0
        self.events.publish(MessageAppended(message=message, index=len(session.dialogue_log) - 1))
        if counts_turn:
            self.events.publish(TurnCountChanged(turn_count=session.turn_count))
        self._set_typing(session, True)
        self._log_turn(session, message)

    def _set_typing(self, session: Session, typing: bool) -> None:
        if session.typing == typing:
            return
        session.typing = typing
        self.events.publish(TypingChanged(typing=typing))

    def _set_state(self, session: Session, state: SessionState) -> None:
        previous = session.state
        if previous is state:
            return
        session.state = state
        reason = session.stop_reason if state is SessionState.STOPPED else None
        logger.info(f"debate_state | {previous.value} -> {state.value}" + (f" | reason={reason.value}" if reason else ""))
        self.events.publish(StateChanged(state=state, previous=previous, stop_reason=reason))

    def _enter_stopping(self, session: Session) -> None:
        if session.state is SessionState.RUNNING:
            self._set_state(session, SessionState.STOPPING)

    def _finish(self, session: Session, reason: StopReason) -> None:
        self._set_typing(session, False)
        session.stop_reason = reason
        self._set_state(session, SessionState.STOPPED)
        logger.info(
            f"debate_end | reason={reason.value} | turns={session.turn_count} | "
            f"messages={len(session.dialogue_log)} | failed_attempts={session.failed_attempts}"
        )

    def _log_turn(self, session: Session, message: Message) -> None:
        raw = message.content or ""
        snippet = raw if len(raw) <= 400 else raw[:400] + '...'
        one_line = ' '.join(snippet.split())
        logger.info(f"debate_turn | spk={message.speaker} t={session.turn_count} | msg='{one_line}'")
