"""Runtime configuration for the session bot.

One pydantic-settings root reads the environment (and an optional .env file);
playback, voice and audio policy live in frozen nested groups addressed with
the ``__`` delimiter, e.g. ``VOICE__RECONNECT_MAX_ATTEMPTS=3``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.messages import ErrorMessages

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DiscordSettings(BaseModel):
    """Gateway credentials."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )


class PlaybackSettings(BaseModel):
    """Session playback policy."""

    model_config = SettingsConfigDict(frozen=True)

    default_volume: float = Field(default=50.0, ge=0.0)
    save_history: bool = True
    emit_new_only: bool = False
    leave_on_finish: bool = False
    leave_on_stop: bool = True


class VoiceSettings(BaseModel):
    """Voice connection and reconnect configuration."""

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True)

    connect_timeout_s: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        validation_alias=AliasChoices("connect_timeout_s", "connect_timeout"),
    )
    reconnect_max_attempts: int = Field(default=5, ge=0, le=20)
    reconnect_backoff_s: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        validation_alias=AliasChoices("reconnect_backoff_s", "reconnect_backoff"),
    )
    channel_move_grace_s: float = Field(default=5.0, ge=0.0, le=60.0)
    self_deaf: bool = True


class AudioSettings(BaseModel):
    """FFmpeg input options and extra audio filters."""

    model_config = SettingsConfigDict(frozen=True)

    before_options: str = "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5"
    options: str = "-vn"
    custom_filters: dict[str, str] = Field(default_factory=dict)
    ytdlp_format: str = "bestaudio/best"
    related_search_limit: int = Field(default=5, ge=1, le=25)


class Settings(BaseSettings):
    """Root of the configuration tree.

    Variables:
    - ENVIRONMENT, DEBUG, LOG_LEVEL
    - DISCORD__TOKEN (nested with ``__`` delimiter)
    - PLAYBACK__DEFAULT_VOLUME, PLAYBACK__SAVE_HISTORY, ...
    - VOICE__CONNECT_TIMEOUT_S, VOICE__RECONNECT_MAX_ATTEMPTS, ...
    - AUDIO__CUSTOM_FILTERS (JSON object)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    voice: VoiceSettings = Field(default_factory=VoiceSettings)
    audio: AudioSettings = Field(default_factory=AudioSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=_LOG_LEVELS))
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the settings once per process; environment wins over .env."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
