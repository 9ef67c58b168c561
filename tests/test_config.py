import pytest

from debate.config import Settings, load_settings
from debate.responses import DEFAULT_ROSTER


ENV_VARS = [
    "DEBATE_ROSTER", "DEBATE_MAX_TURNS", "DEBATE_TURN_INTERVAL", "DEBATE_TYPING_MIN", "DEBATE_TYPING_MAX",
    "DEBATE_RETRY_COOLDOWN", "DEBATE_CALL_TIMEOUT", "DEBATE_MAX_CONSECUTIVE_FAILURES", "MOCK_LATENCY_MIN",
    "MOCK_LATENCY_MAX", "MOCK_FAIL_RATE", "RESPONSES_PATH", "DEBATE_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()
    assert settings.roster == DEFAULT_ROSTER
    assert settings.max_turns == 50
    assert settings.turn_interval == 2.0
    assert (settings.typing_min, settings.typing_max) == (1.0, 3.0)
    assert settings.retry_cooldown == 1.0
    assert settings.call_timeout is None
    assert settings.max_consecutive_failures is None


def test_env_overrides(clean_env):
    clean_env.setenv("DEBATE_ROSTER", "alpha, beta ,,gamma")
    clean_env.setenv("DEBATE_MAX_TURNS", "7")
    clean_env.setenv("DEBATE_CALL_TIMEOUT", "4.5")
    clean_env.setenv("DEBATE_MAX_CONSECUTIVE_FAILURES", "3")
    clean_env.setenv("DEBATE_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.roster == ("ALPHA", "BETA", "GAMMA")
    assert settings.max_turns == 7
    assert settings.call_timeout == 4.5
    assert settings.max_consecutive_failures == 3
    assert settings.log_level == "DEBUG"


def test_invalid_numbers_fall_back_to_defaults(clean_env):
    clean_env.setenv("DEBATE_MAX_TURNS", "lots")
    clean_env.setenv("DEBATE_TURN_INTERVAL", "soon")

    settings = load_settings()
    assert settings.max_turns == 50
    assert settings.turn_interval == 2.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"roster": ()},
        {"roster": ("A", "A")},
        {"max_turns": -1},
        {"typing_min": 2.0, "typing_max": 1.0},
        {"retry_cooldown": -0.5},
        {"fail_rate": 1.5},
        {"call_timeout": 0},
        {"max_consecutive_failures": 0},
    ],
)
def test_settings_reject_invalid_values(kwargs):
    with pytest.raises(ValueError):
        Settings(**kwargs)
