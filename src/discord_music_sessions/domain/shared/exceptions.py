"""Exception hierarchy for playback-session errors.

Validation and policy errors are raised straight to the caller before any
state is touched. Transport and resolution errors travel through the voice
and session signals instead.
"""

from __future__ import annotations

from typing import Any

from discord_music_sessions.domain.shared.messages import ErrorMessages


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


# === Validation ===


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class InvalidVolumeError(ValidationError):
    def __init__(self, volume: Any) -> None:
        super().__init__(ErrorMessages.INVALID_VOLUME.format(volume=volume), field="volume")
        self.code = "INVALID_VOLUME"
        self.volume = volume


class InvalidSeekTimeError(ValidationError):
    def __init__(self, time: Any) -> None:
        super().__init__(ErrorMessages.INVALID_SEEK_TIME.format(time=time), field="time")
        self.code = "INVALID_SEEK_TIME"
        self.time = time


class InvalidPositionError(ValidationError):
    def __init__(self, position: Any) -> None:
        super().__init__(ErrorMessages.INVALID_POSITION.format(position=position), field="position")
        self.code = "INVALID_POSITION"
        self.position = position


class NoSongAtPositionError(ValidationError):
    """Raised when a jump target is zero or outside the queue/history."""

    def __init__(self, position: int) -> None:
        super().__init__(ErrorMessages.NO_SONG_AT_POSITION.format(position=position), field="position")
        self.code = "NO_SONG_POSITION"
        self.position = position


class InvalidRepeatModeError(ValidationError):
    def __init__(self, mode: Any) -> None:
        super().__init__(ErrorMessages.INVALID_REPEAT_MODE.format(mode=mode), field="mode")
        self.code = "INVALID_REPEAT_MODE"
        self.mode = mode


class InvalidFilterError(ValidationError):
    def __init__(self, filter: Any) -> None:
        super().__init__(ErrorMessages.INVALID_FILTER.format(filter=filter), field="filter")
        self.code = "INVALID_FILTER"
        self.filter = filter


# === Policy ===


class BusinessRuleViolationError(DomainError):
    """Raised when a business rule is violated."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        msg = message or f"Business rule violated: {rule}"
        super().__init__(msg, code="BUSINESS_RULE_VIOLATION")
        self.rule = rule


class NoUpNextError(BusinessRuleViolationError):
    def __init__(self) -> None:
        super().__init__(rule="NO_UP_NEXT", message=ErrorMessages.NO_UP_NEXT)
        self.code = "NO_UP_NEXT"


class NoPreviousError(BusinessRuleViolationError):
    def __init__(self) -> None:
        super().__init__(rule="NO_PREVIOUS", message=ErrorMessages.NO_PREVIOUS)
        self.code = "NO_PREVIOUS"


class DisabledOptionError(BusinessRuleViolationError):
    def __init__(self, option: str) -> None:
        super().__init__(rule="DISABLED_OPTION", message=ErrorMessages.DISABLED_OPTION.format(option=option))
        self.code = "DISABLED_OPTION"
        self.option = option


class SessionExistsError(BusinessRuleViolationError):
    def __init__(self, guild_id: int) -> None:
        super().__init__(rule="SESSION_EXISTS", message=ErrorMessages.SESSION_EXISTS.format(guild_id=guild_id))
        self.code = "SESSION_EXISTS"
        self.guild_id = guild_id


class AddBeforePlayingError(BusinessRuleViolationError):
    def __init__(self) -> None:
        super().__init__(rule="ADD_BEFORE_PLAYING", message=ErrorMessages.ADD_BEFORE_PLAYING)
        self.code = "ADD_BEFORE_PLAYING"


# === Invalid state ===


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state


class AlreadyPausedError(InvalidOperationError):
    def __init__(self) -> None:
        super().__init__("pause", "paused", ErrorMessages.ALREADY_PAUSED)
        self.code = "PAUSED"


class AlreadyPlayingError(InvalidOperationError):
    def __init__(self) -> None:
        super().__init__("resume", "playing", ErrorMessages.ALREADY_PLAYING)
        self.code = "RESUMED"


class SessionStoppedError(InvalidOperationError):
    def __init__(self, guild_id: int) -> None:
        super().__init__("mutate", "stopped", ErrorMessages.SESSION_STOPPED.format(guild_id=guild_id))
        self.code = "SESSION_STOPPED"
        self.guild_id = guild_id


# === Transport ===


class TransportError(DomainError):
    """Raised for voice-connection failures."""


class ConnectTimeoutError(TransportError):
    def __init__(self, seconds: float) -> None:
        super().__init__(ErrorMessages.VOICE_CONNECT_FAILED.format(seconds=seconds), code="VOICE_CONNECT_FAILED")
        self.seconds = seconds


class ReconnectFailedError(TransportError):
    def __init__(self) -> None:
        super().__init__(ErrorMessages.VOICE_RECONNECT_FAILED, code="VOICE_RECONNECT_FAILED")


class VoiceFullError(TransportError):
    def __init__(self) -> None:
        super().__init__(ErrorMessages.VOICE_FULL, code="VOICE_FULL")


class VoiceMissingPermsError(TransportError):
    def __init__(self, channel_id: int) -> None:
        super().__init__(
            ErrorMessages.VOICE_MISSING_PERMS.format(channel_id=channel_id), code="VOICE_MISSING_PERMS"
        )
        self.channel_id = channel_id


# === Resolution ===


class ResolutionError(DomainError):
    """Raised when a collaborator cannot produce a playable item."""


class NoRelatedError(ResolutionError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or ErrorMessages.NO_RELATED, code="NO_RELATED")


class NoStreamUrlError(ResolutionError):
    def __init__(self, title: str) -> None:
        super().__init__(ErrorMessages.NO_STREAM_URL.format(title=title), code="NO_STREAM_URL")
        self.title = title


# === Playback ===


class PlaybackFailedError(DomainError):
    """A playback failure annotated with the identity of the offending item."""

    def __init__(self, cause: BaseException, item_id: str, title: str) -> None:
        message = str(cause) or cause.__class__.__name__
        super().__init__(
            ErrorMessages.PLAYBACK_FAILED.format(message=message, item_id=item_id, title=title),
            code="PLAYING_ERROR",
        )
        self.cause = cause
        self.item_id = item_id
        self.title = title
