"""Tests for SessionBot wiring."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from discord.ext import commands

from discord_music_sessions.infrastructure.discord.bot import SessionBot, create_bot


@pytest.fixture
def container():
    container = MagicMock()
    container.initialize = AsyncMock()
    container.shutdown = AsyncMock()
    return container


@pytest.fixture
def bot(container):
    return create_bot(container, MagicMock())


class TestSessionBot:
    def test_attaches_itself_to_container(self, bot, container):
        assert isinstance(bot, SessionBot)
        container.set_bot.assert_called_once_with(bot)
        assert bot.intents.voice_states

    async def test_setup_hook_initializes_container(self, bot, container):
        await bot.setup_hook()

        container.initialize.assert_awaited_once()

    async def test_voice_state_updates_reach_transport(self, bot, container):
        member, before, after = MagicMock(), MagicMock(), MagicMock()

        await bot.on_voice_state_update(member, before, after)

        container.voice_transport.handle_voice_state_update.assert_called_once_with(
            member, before, after
        )

    async def test_close_shuts_down_container(self, bot, container):
        with patch.object(commands.Bot, "close", new=AsyncMock()) as parent_close:
            await bot.close()

        container.shutdown.assert_awaited_once()
        parent_close.assert_awaited_once()

    async def test_close_survives_container_failure(self, bot, container):
        container.shutdown.side_effect = RuntimeError("boom")

        with patch.object(commands.Bot, "close", new=AsyncMock()) as parent_close:
            await bot.close()

        parent_close.assert_awaited_once()
