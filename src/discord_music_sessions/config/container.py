"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the transport, collaborators and the session
manager. Components are created on demand and cached for reuse.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.services.session_manager import SessionManager
    from ..domain.shared.events import EventBus
    from ..infrastructure.audio.ytdlp_resolver import YtDlpResolver
    from ..infrastructure.discord.adapters.voice_transport import DiscordVoiceTransport
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Components are lazily initialized when first accessed.
    """

    settings: Settings
    _bot: Bot | None = None

    _event_bus: EventBus | None = None
    _voice_transport: DiscordVoiceTransport | None = None
    _ytdlp_resolver: YtDlpResolver | None = None
    _session_manager: SessionManager | None = None

    def set_bot(self, bot: Bot) -> None:
        """Set the Discord bot instance."""
        self._bot = bot

    @property
    def bot(self) -> Bot:
        """Get the Discord bot instance."""
        if self._bot is None:
            raise RuntimeError(ErrorMessages.BOT_NOT_INITIALIZED)
        return self._bot

    # === Infrastructure ===

    @property
    def event_bus(self) -> EventBus:
        """Get the event bus that carries session signals."""
        if self._event_bus is None:
            from ..domain.shared.events import EventBus

            self._event_bus = EventBus()
        return self._event_bus

    @property
    def voice_transport(self) -> DiscordVoiceTransport:
        """Get the discord.py voice transport."""
        if self._voice_transport is None:
            from ..infrastructure.discord.adapters.voice_transport import (
                DiscordVoiceTransport,
            )

            self._voice_transport = DiscordVoiceTransport(
                self.bot,
                audio_settings=self.settings.audio,
                voice_settings=self.settings.voice,
            )
        return self._voice_transport

    @property
    def ytdlp_resolver(self) -> YtDlpResolver:
        """Get the yt-dlp resolver (also the stream locator and related-items provider)."""
        if self._ytdlp_resolver is None:
            from ..infrastructure.audio.ytdlp_resolver import YtDlpResolver

            self._ytdlp_resolver = YtDlpResolver(self.settings.audio)
        return self._ytdlp_resolver

    # === Application Services ===

    @property
    def session_manager(self) -> SessionManager:
        """Get the playback session manager."""
        if self._session_manager is None:
            from ..application.services.session_manager import SessionManager

            resolver = self.ytdlp_resolver
            self._session_manager = SessionManager(
                transport=self.voice_transport,
                event_bus=self.event_bus,
                stream_locator=resolver,
                resolver=resolver,
                related_provider=resolver,
                playback_settings=self.settings.playback,
                voice_settings=self.settings.voice,
                audio_settings=self.settings.audio,
            )
        return self._session_manager

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Build the session manager once the bot is attached."""
        _ = self.session_manager

    async def shutdown(self) -> None:
        """Stop every session and release cached components."""
        if self._session_manager is not None:
            try:
                await self._session_manager.shutdown()
            except Exception as exc:
                logger.warning(LogTemplates.CONTAINER_SHUTDOWN_ERROR, "session manager", exc)

        if self._event_bus is not None:
            self._event_bus.clear()

        self._session_manager = None


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
