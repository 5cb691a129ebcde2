import pytest
from pydantic import ValidationError

from prompter.config import Settings
from prompter.segments.durations import DurationPolicy


def test_defaults_match_timing_constants(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MS_PER_WORD", "PAUSE_MS", "MIN_PHRASE_MS", "RATE_LIMIT_PER_HOUR", "COUNTDOWN_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None, generator_api_key=None)

    assert DurationPolicy.from_settings(settings) == DurationPolicy(400.0, 200, 300)
    assert settings.rate_limit_per_hour == 20
    assert settings.countdown_seconds == 10
    assert settings.finish_grace_seconds == 5.0
    assert not settings.generator_enabled


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GENERATOR_API_KEY", raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "secret")
    monkeypatch.setenv("MS_PER_WORD", "350")
    monkeypatch.setenv("GENERATOR_TIMEOUT", "30")

    settings = Settings(_env_file=None)

    assert settings.generator_enabled
    assert settings.generator_api_key.get_secret_value() == "secret"
    assert settings.ms_per_word == 350
    assert settings.request_timeout == 30


def test_invalid_values_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MS_PER_WORD", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
