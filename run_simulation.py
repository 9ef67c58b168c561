from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import random
import signal
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from debate.config import Settings, get_settings
from debate.errors import StartupError, ValidationError
from debate.events import DialogueEvent, MessageAppended
from debate.scheduler import SessionScheduler
from debate.source import MockResponseSource


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run a round-robin AI debate from a single prompt")
    p.add_argument("prompt", type=str, help="Opening prompt; becomes the first message of the debate")
    p.add_argument("--roster", type=str, help="Comma-separated agent names in speaking order (first one opens)")
    p.add_argument("--max-turns", type=int, help="Turns after the opening message before the debate stops")
    p.add_argument("--turn-interval", type=float, help="Seconds to wait before each turn")
    p.add_argument("--typing-min", type=float, help="Minimum typing hold after each message (seconds)")
    p.add_argument("--typing-max", type=float, help="Maximum typing hold after each message (seconds)")
    p.add_argument("--cooldown", type=float, help="Seconds to wait after a failed turn before retrying")
    p.add_argument("--timeout", type=float, help="Per-call timeout for the response source (seconds)")
    p.add_argument("--max-failures", type=int, help="Stop after this many consecutive failed turns")
    p.add_argument("--latency-min", type=float, help="Minimum simulated response latency (seconds)")
    p.add_argument("--latency-max", type=float, help="Maximum simulated response latency (seconds)")
    p.add_argument("--fail-rate", type=float, help="Probability that a simulated response fails")
    p.add_argument("--responses", type=str, help="Path to JSON file with canned replies per agent")
    p.add_argument("--seed", type=int, help="Random seed for reproducible pacing and failures")
    p.add_argument("--output", type=str, help="Write the finished session as JSON to this path")
    p.add_argument("--log-level", type=str, help="Log level for stderr (DEBUG, INFO, WARNING ...)")
    return p.parse_args(argv)


def build_settings(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    base = base or get_settings()
    overrides = {
        "max_turns": args.max_turns,
        "turn_interval": args.turn_interval,
        "typing_min": args.typing_min,
        "typing_max": args.typing_max,
        "retry_cooldown": args.cooldown,
        "call_timeout": args.timeout,
        "max_consecutive_failures": args.max_failures,
        "latency_min": args.latency_min,
        "latency_max": args.latency_max,
        "fail_rate": args.fail_rate,
        "responses_path": args.responses,
        "log_level": args.log_level.upper() if args.log_level else None,
    }
    if args.roster:
        overrides["roster"] = tuple(n.strip().upper() for n in args.roster.split(",") if n.strip())
    return dataclasses.replace(base, **{k: v for k, v in overrides.items() if v is not None})


def print_event(event: DialogueEvent) -> None:
    if isinstance(event, MessageAppended):
        m = event.message
        print(f"[{m.timestamp.astimezone().strftime('%H:%M:%S')}] {m.speaker}: {m.content}", flush=True)


async def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValueError as e:
        logger.error(f"Invalid settings: {e}")
        return 2

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, colorize=True, format="{time:HH:mm:ss} | {level} | {message}")

    rng = random.Random(args.seed) if args.seed is not None else None
    source = MockResponseSource.from_settings(settings, rng=rng)
    scheduler = SessionScheduler(source, settings, rng=rng)
    scheduler.events.add_listener(print_event)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, scheduler.stop)
    except (NotImplementedError, RuntimeError, ValueError):
        logger.debug("SIGINT handler unavailable; Ctrl-C will abort instead of stopping cleanly")

    try:
        session = await scheduler.run(args.prompt)
    except ValidationError as e:
        logger.error(f"Rejected prompt: {e}")
        return 2
    except StartupError as e:
        logger.error(f"Debate did not start: {e}")
        return 1
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError, ValueError):
            pass

    logger.info(
        f"Debate finished | reason={session.stop_reason.value if session.stop_reason else '?'} | "
        f"turns={session.turn_count} | failed_attempts={session.failed_attempts}"
    )
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(session.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Wrote transcript to {out}")
    return 0


def cli() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
