"""Registry of the voice sessions owned by one session manager."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .voice_session import VoiceSession

if TYPE_CHECKING:
    from ...config.settings import VoiceSettings
    from ...domain.playback.value_objects import VoiceTarget
    from ..interfaces.voice_transport import VoiceTransport

logger = logging.getLogger(__name__)


class VoiceRegistry:
    """Guild id -> VoiceSession, with explicit construction and teardown."""

    def __init__(
        self,
        *,
        transport: VoiceTransport,
        settings: VoiceSettings,
        default_volume: float = 50.0,
    ) -> None:
        self._transport = transport
        self._settings = settings
        self._default_volume = default_volume
        self._voices: dict[int, VoiceSession] = {}

    def create(self, target: VoiceTarget) -> VoiceSession:
        """Return the guild's voice session, creating and registering it if missing."""
        voice = self._voices.get(target.guild_id)
        if voice is not None and not voice.has_left:
            return voice
        voice = VoiceSession(
            target=target,
            transport=self._transport,
            registry=self,
            settings=self._settings,
            volume=self._default_volume,
        )
        self._voices[target.guild_id] = voice
        return voice

    async def join(self, target: VoiceTarget) -> VoiceSession:
        """Create (or reuse) the guild's voice session and connect it to *target*."""
        return await self.create(target).connect(target)

    def get(self, guild_id: int) -> VoiceSession | None:
        return self._voices.get(guild_id)

    def has(self, guild_id: int) -> bool:
        return guild_id in self._voices

    def add(self, voice: VoiceSession) -> None:
        self._voices[voice.guild_id] = voice

    def remove(self, guild_id: int, voice: VoiceSession | None = None) -> None:
        """Unregister the guild's voice; with *voice*, only if it is still the registered one."""
        if voice is not None and self._voices.get(guild_id) is not voice:
            return
        self._voices.pop(guild_id, None)

    async def leave(self, guild_id: int) -> None:
        voice = self._voices.get(guild_id)
        if voice is not None:
            await voice.leave()

    async def close_all(self) -> None:
        """Leave every registered voice channel."""
        voices = list(self._voices.values())
        if voices:
            await asyncio.gather(*(voice.leave() for voice in voices), return_exceptions=True)
        self._voices.clear()

    def __len__(self) -> int:
        return len(self._voices)

    def __iter__(self) -> Iterator[VoiceSession]:
        return iter(list(self._voices.values()))
