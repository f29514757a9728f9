"""Immutable value objects for the playback bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from discord_music_sessions.domain.shared.exceptions import InvalidRepeatModeError


@dataclass(frozen=True)
class VoiceTarget:
    """Where a session's voice connection lives."""

    guild_id: int
    channel_id: int

    def __post_init__(self) -> None:
        if self.guild_id <= 0 or self.channel_id <= 0:
            raise ValueError("Guild and channel IDs must be positive")

    def __str__(self) -> str:
        return f"{self.guild_id}/{self.channel_id}"


class RepeatMode(IntEnum):
    """Repeat policy; toggling cycles DISABLED -> ITEM -> QUEUE -> DISABLED."""

    DISABLED = 0
    ITEM = 1
    QUEUE = 2

    def next_mode(self) -> RepeatMode:
        """Get the next mode in the toggle cycle."""
        return RepeatMode((self.value + 1) % 3)

    @classmethod
    def coerce(cls, mode: RepeatMode | int) -> RepeatMode:
        if isinstance(mode, bool):
            raise InvalidRepeatModeError(mode)
        try:
            return cls(mode)
        except ValueError:
            raise InvalidRepeatModeError(mode) from None


class PlaybackState(Enum):
    """Playback state of a session.

    State transitions:
    - PLAYING -> PAUSED (pause)
    - PAUSED -> PLAYING (resume)
    - PLAYING/PAUSED -> STOPPED (stop, teardown)
    """

    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


class Direction(Enum):
    """Which manual operation moved the queue."""

    NEXT = "next"
    PREVIOUS = "previous"
    JUMP = "jump"


@dataclass(frozen=True)
class AdvanceReason:
    """Why an audio resource stopped: it ran out, or an operation stopped it.

    Manual reasons mean the operation has already rearranged the queue, so the
    completion handler only has to start whatever is at the front.
    """

    direction: Direction | None = None

    @classmethod
    def natural(cls) -> AdvanceReason:
        return cls()

    @classmethod
    def manual(cls, direction: Direction) -> AdvanceReason:
        return cls(direction)

    @property
    def is_manual(self) -> bool:
        return self.direction is not None

    def __str__(self) -> str:
        return f"manual:{self.direction.value}" if self.direction else "natural"
