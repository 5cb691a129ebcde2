"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Text generator (OpenRouter-compatible chat completions endpoint).
    # Without an API key the service runs in local-only mode.
    generator_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GENERATOR_API_KEY", "OPENROUTER_API_KEY", "generator_api_key"
        ),
    )
    generator_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://openrouter.ai/api/v1"),
        validation_alias=AliasChoices(
            "GENERATOR_BASE_URL", "OPENROUTER_BASE_URL", "generator_base_url"
        ),
    )
    generator_app_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GENERATOR_APP_URL",
            "HTTP_REFERER",
            "REFERER",
            "generator_app_url",
        ),
    )
    generator_app_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GENERATOR_APP_TITLE", "X_TITLE", "generator_app_name"
        ),
    )
    default_model: str = Field(
        default="openrouter/auto",
        validation_alias=AliasChoices("GENERATOR_DEFAULT_MODEL", "default_model"),
    )
    generator_system_prompt: str = Field(
        default=(
            "You are a teleprompter script editor. You split speeches into short "
            "phrases that a speaker can read at a glance, and you always answer "
            "with a single JSON object."
        ),
        validation_alias=AliasChoices(
            "GENERATOR_SYSTEM_PROMPT", "generator_system_prompt"
        ),
    )
    generator_max_tokens: int = Field(
        default=4000,
        ge=1,
        validation_alias=AliasChoices(
            "GENERATOR_MAX_TOKENS", "generator_max_tokens"
        ),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("GENERATOR_TIMEOUT", "request_timeout"),
        ge=1,
    )
    rate_limit_per_hour: int = Field(
        default=20,
        ge=0,
        validation_alias=AliasChoices("RATE_LIMIT_PER_HOUR", "rate_limit_per_hour"),
    )

    # Timing policy
    ms_per_word: float = Field(
        default=400.0,
        gt=0,
        validation_alias=AliasChoices("MS_PER_WORD", "ms_per_word"),
    )
    pause_ms: int = Field(
        default=200,
        ge=0,
        validation_alias=AliasChoices("PAUSE_MS", "pause_ms"),
    )
    min_phrase_ms: int = Field(
        default=300,
        ge=0,
        validation_alias=AliasChoices("MIN_PHRASE_MS", "min_phrase_ms"),
    )

    # Playback
    countdown_seconds: int = Field(
        default=10,
        ge=0,
        validation_alias=AliasChoices("COUNTDOWN_SECONDS", "countdown_seconds"),
    )
    finish_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        validation_alias=AliasChoices(
            "FINISH_GRACE_SECONDS", "finish_grace_seconds"
        ),
    )
    display_tick_ms: int = Field(
        default=100,
        ge=1,
        validation_alias=AliasChoices("DISPLAY_TICK_MS", "display_tick_ms"),
    )
    context_window: int = Field(
        default=2,
        ge=0,
        validation_alias=AliasChoices("CONTEXT_WINDOW", "context_window"),
    )

    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices(
            "LOGGING_SETTINGS_PATH", "logging_settings_path"
        ),
    )

    @property
    def generator_enabled(self) -> bool:
        return self.generator_api_key is not None and bool(
            self.generator_api_key.get_secret_value()
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
