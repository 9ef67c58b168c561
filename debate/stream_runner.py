from __future__ import annotations

import asyncio
from typing import Generator, Optional

from loguru import logger

from .config import Settings, get_settings
from .events import DialogueEvent, StateChanged
from .scheduler import SessionScheduler
from .source import MockResponseSource, ResponseSource
from .states import SessionState


def run_debate_stream(
    prompt: str,
    source: Optional[ResponseSource] = None,
    settings: Optional[Settings] = None,
    scheduler: Optional[SessionScheduler] = None,
    stop_timeout: float = 5.0,
) -> Generator[DialogueEvent, None, None]:
    """Synchronous streaming runner for UI. Yields scheduler events as the debate progresses.

    The session runs on a private event loop that only advances while the consumer
    asks for the next event. The generator finishes after the StateChanged event for
    Stopped. Closing it early (or an exception in the consumer) stops the session the
    same way ``stop()`` does: an in-flight call is still applied, and the session goes
    through Stopping to Stopped. If that takes longer than ``stop_timeout`` seconds
    the loop is cancelled outright.

    Pass ``scheduler`` to drive an existing scheduler (its own settings then apply).

    Raises ValidationError / StartupError from the first ``next()`` call.
    """
    if scheduler is None:
        settings = settings or get_settings()
        scheduler = SessionScheduler(source or MockResponseSource.from_settings(settings), settings)
    settings = scheduler.settings
    loop = asyncio.new_event_loop()
    sub = scheduler.events.subscribe()
    logger.info(f"ui_debate_start | roster={','.join(settings.roster)} | max_turns={settings.max_turns}")
    try:
        loop.run_until_complete(scheduler.start(prompt))
        while True:
            event = loop.run_until_complete(sub.get())
            yield event
            if isinstance(event, StateChanged) and event.state is SessionState.STOPPED:
                return
    finally:
        sub.close()
        if scheduler.state is not SessionState.STOPPED:
            logger.info("ui_debate_abandoned | stopping session")
            scheduler.stop()
            try:
                loop.run_until_complete(asyncio.wait_for(scheduler.wait_stopped(), timeout=stop_timeout))
            except asyncio.TimeoutError:
                logger.warning(f"ui_debate_stop_timeout | cancelling after {stop_timeout}s")
        loop.run_until_complete(scheduler.aclose())
        loop.close()
