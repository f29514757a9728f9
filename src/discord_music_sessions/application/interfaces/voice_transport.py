"""Port interface for the real-time voice transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...domain.playback.value_objects import VoiceTarget


class VoiceStatus(Enum):
    """Connection status reported by the transport."""

    CONNECTING = "connecting"
    READY = "ready"
    DISCONNECTED = "disconnected"
    DESTROYED = "destroyed"


class DisconnectReason(Enum):
    """Why a connection entered ``DISCONNECTED``."""

    MANUAL = "manual"
    CHANNEL_MOVED = "channel_moved"
    NETWORK = "network"
    UNKNOWN = "unknown"


StateListener = Callable[[VoiceStatus, "DisconnectReason | None"], None]
AfterCallback = Callable[["BaseException | None"], None]


class AudioResource(ABC):
    """Opaque handle to one playable audio stream."""

    @property
    @abstractmethod
    def playback_duration(self) -> float:
        """Seconds of audio already sent to the sink."""
        ...

    @abstractmethod
    def set_gain(self, gain: float) -> None:
        ...

    @abstractmethod
    def set_error_listener(self, listener: Callable[[BaseException], None]) -> None:
        """Register a callback for stream-level failures (decoder, network)."""
        ...

    @abstractmethod
    def cleanup(self) -> None:
        ...


class VoiceConnection(ABC):
    """A live connection to one voice channel."""

    @property
    @abstractmethod
    def channel_id(self) -> int:
        ...

    @property
    @abstractmethod
    def status(self) -> VoiceStatus:
        ...

    @abstractmethod
    def set_state_listener(self, listener: StateListener) -> None:
        """Register the callback invoked on every status transition."""
        ...

    @abstractmethod
    async def wait_for(self, *statuses: VoiceStatus, timeout: float) -> None:
        """Wait until the connection reaches any of *statuses*.

        Raises:
            TimeoutError: If none is reached within *timeout* seconds.
        """
        ...

    @abstractmethod
    async def rejoin(self) -> None:
        """Re-enter the current channel after an unexpected disconnect."""
        ...

    @abstractmethod
    async def destroy(self) -> None:
        ...

    @abstractmethod
    def play(self, resource: AudioResource, after: AfterCallback) -> None:
        """Start *resource*; *after* fires once it ends, possibly from another thread."""
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def resume(self) -> None:
        ...

    @abstractmethod
    def is_paused(self) -> bool:
        ...


class VoiceTransport(ABC):
    """Factory for voice connections and audio resources."""

    @abstractmethod
    async def join(self, target: VoiceTarget) -> VoiceConnection:
        """Open a connection to *target* and return it without waiting for READY.

        Raises:
            VoiceFullError: If the channel has no free slot.
            VoiceMissingPermsError: If the bot cannot connect or speak.
        """
        ...

    @abstractmethod
    def create_audio_resource(
        self,
        stream_url: str,
        *,
        filter_args: Sequence[str] = (),
        seek: float | None = None,
    ) -> AudioResource:
        """Build a resource for *stream_url* with the given filter chain and start offset."""
        ...
