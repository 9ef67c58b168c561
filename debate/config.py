from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from loguru import logger

from .responses import DEFAULT_ROSTER


# Load env from common locations early so settings pick up a local .env
try:
    here = Path(__file__).resolve().parents[1]
    env_candidates = [here / ".env", Path.cwd() / ".env"]
    for env_path in env_candidates:
        if env_path.is_file():
            load_dotenv(dotenv_path=str(env_path), override=False)
            break
except Exception:
    try:
        load_dotenv()
    except Exception:
        pass


@dataclass(frozen=True)
class Settings:
    roster: Tuple[str, ...] = DEFAULT_ROSTER
    max_turns: int = 50
    turn_interval: float = 2.0
    typing_min: float = 1.0
    typing_max: float = 3.0
    retry_cooldown: float = 1.0
    call_timeout: Optional[float] = None
    max_consecutive_failures: Optional[int] = None
    latency_min: float = 1.0
    latency_max: float = 3.0
    fail_rate: float = 0.0
    responses_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.roster:
            raise ValueError("roster must name at least one agent")
        if len(set(self.roster)) != len(self.roster):
            raise ValueError(f"roster names must be unique: {self.roster}")
        if self.max_turns < 0:
            raise ValueError("max_turns must be >= 0")
        for name in ("turn_interval", "typing_min", "typing_max", "retry_cooldown", "latency_min", "latency_max"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.typing_min > self.typing_max:
            raise ValueError("typing_min must not exceed typing_max")
        if self.latency_min > self.latency_max:
            raise ValueError("latency_min must not exceed latency_max")
        if not 0.0 <= self.fail_rate <= 1.0:
            raise ValueError("fail_rate must be within [0, 1]")
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise ValueError("call_timeout must be positive when set")
        if self.max_consecutive_failures is not None and self.max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1 when set")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except Exception:
        logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
        return default


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except Exception:
        logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
        return default


def _env_roster(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    names = tuple(n.strip().upper() for n in raw.split(",") if n.strip())
    return names or DEFAULT_ROSTER


def load_settings() -> Settings:
    """Build Settings from the environment.

    Env vars:
      - DEBATE_ROSTER (comma separated; default: GROK,CLAUDE,CHATGPT,DEEPSEEK)
      - DEBATE_MAX_TURNS, DEBATE_TURN_INTERVAL, DEBATE_TYPING_MIN, DEBATE_TYPING_MAX
      - DEBATE_RETRY_COOLDOWN, DEBATE_CALL_TIMEOUT, DEBATE_MAX_CONSECUTIVE_FAILURES
      - MOCK_LATENCY_MIN, MOCK_LATENCY_MAX, MOCK_FAIL_RATE, RESPONSES_PATH
      - DEBATE_LOG_LEVEL
    """
    defaults = Settings()
    return Settings(
        roster=_env_roster("DEBATE_ROSTER"),
        max_turns=_env_int("DEBATE_MAX_TURNS", defaults.max_turns),
        turn_interval=_env_float("DEBATE_TURN_INTERVAL", defaults.turn_interval),
        typing_min=_env_float("DEBATE_TYPING_MIN", defaults.typing_min),
        typing_max=_env_float("DEBATE_TYPING_MAX", defaults.typing_max),
        retry_cooldown=_env_float("DEBATE_RETRY_COOLDOWN", defaults.retry_cooldown),
        call_timeout=_env_float("DEBATE_CALL_TIMEOUT", None),
        max_consecutive_failures=_env_int("DEBATE_MAX_CONSECUTIVE_FAILURES", None),
        latency_min=_env_float("MOCK_LATENCY_MIN", defaults.latency_min),
        latency_max=_env_float("MOCK_LATENCY_MAX", defaults.latency_max),
        fail_rate=_env_float("MOCK_FAIL_RATE", defaults.fail_rate),
        responses_path=os.getenv("RESPONSES_PATH") or None,
        log_level=(os.getenv("DEBATE_LOG_LEVEL") or defaults.log_level).upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = load_settings()
    logger.debug(
        f"Loaded settings roster={','.join(settings.roster)} max_turns={settings.max_turns} "
        f"turn_interval={settings.turn_interval}"
    )
    return settings
