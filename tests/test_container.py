"""
Tests for Container

Tests for:
- Bot attachment
- Lazy, cached component creation
- Initialization and shutdown lifecycle
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from discord_music_sessions.application.services.session_manager import SessionManager
from discord_music_sessions.config.container import Container, create_container
from discord_music_sessions.config.settings import Settings
from discord_music_sessions.domain.shared.events import EventBus, QueueFinished
from discord_music_sessions.infrastructure.audio.ytdlp_resolver import YtDlpResolver
from discord_music_sessions.infrastructure.discord.adapters.voice_transport import (
    DiscordVoiceTransport,
)


@pytest.fixture
def container(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    container = create_container(Settings(_env_file=None))
    container.set_bot(MagicMock())
    return container


class TestContainer:
    def test_bot_required(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        container = Container(Settings(_env_file=None))

        with pytest.raises(RuntimeError):
            _ = container.bot

    def test_components_are_cached(self, container):
        assert isinstance(container.event_bus, EventBus)
        assert container.event_bus is container.event_bus
        assert isinstance(container.voice_transport, DiscordVoiceTransport)
        assert container.voice_transport is container.voice_transport
        assert isinstance(container.ytdlp_resolver, YtDlpResolver)
        assert container.ytdlp_resolver is container.ytdlp_resolver

    def test_session_manager_uses_shared_event_bus(self, container):
        manager = container.session_manager

        assert isinstance(manager, SessionManager)
        assert manager.event_bus is container.event_bus
        assert container.session_manager is manager

    async def test_initialize_builds_manager(self, container):
        await container.initialize()

        assert container._session_manager is not None

    async def test_shutdown_stops_manager(self, container):
        manager = MagicMock()
        manager.shutdown = AsyncMock()
        container._session_manager = manager
        bus = container.event_bus
        handler = AsyncMock()
        bus.subscribe(QueueFinished, handler)

        await container.shutdown()

        manager.shutdown.assert_awaited_once()
        assert container._session_manager is None
        await bus.publish(QueueFinished(guild_id=1))
        handler.assert_not_awaited()

    async def test_shutdown_survives_manager_failure(self, container):
        manager = MagicMock()
        manager.shutdown = AsyncMock(side_effect=RuntimeError("boom"))
        container._session_manager = manager

        await container.shutdown()

        assert container._session_manager is None
