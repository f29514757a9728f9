"""Discord voice transport implementing the VoiceTransport port with discord.py."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Final

import discord

from discord_music_sessions.application.interfaces.voice_transport import (
    AfterCallback,
    AudioResource,
    DisconnectReason,
    StateListener,
    VoiceConnection,
    VoiceStatus,
    VoiceTransport,
)
from discord_music_sessions.config.settings import AudioSettings, VoiceSettings
from discord_music_sessions.domain.shared.exceptions import (
    TransportError,
    VoiceFullError,
    VoiceMissingPermsError,
)
from discord_music_sessions.domain.shared.messages import ErrorMessages, LogTemplates

if TYPE_CHECKING:
    from ....domain.playback.value_objects import VoiceTarget

logger = logging.getLogger(__name__)

# discord.py sends 20 ms Opus frames
FRAME_SECONDS: Final[float] = discord.opus.Encoder.FRAME_LENGTH / 1000
MONITOR_INTERVAL: Final[float] = 1.0

VoiceChannelLike = discord.VoiceChannel | discord.StageChannel


class FFmpegAudioResource(discord.PCMVolumeTransformer, AudioResource):
    """FFmpeg PCM source with gain control and a frame counter for elapsed time."""

    def __init__(self, original: discord.AudioSource) -> None:
        super().__init__(original, volume=1.0)
        self._frames = 0
        self._error_listener: Callable[[BaseException], None] | None = None

    @property
    def playback_duration(self) -> float:
        return self._frames * FRAME_SECONDS

    def set_gain(self, gain: float) -> None:
        self.volume = gain

    def set_error_listener(self, listener: Callable[[BaseException], None]) -> None:
        self._error_listener = listener

    def read(self) -> bytes:
        try:
            data = super().read()
        except Exception as exc:
            if self._error_listener is not None:
                self._error_listener(exc)
            raise
        if data:
            self._frames += 1
        return data


class DiscordVoiceConnection(VoiceConnection):
    """One guild's discord.py voice client, reported through VoiceStatus transitions."""

    def __init__(
        self,
        channel: VoiceChannelLike,
        *,
        settings: VoiceSettings,
        on_destroyed: Callable[[DiscordVoiceConnection], None] | None = None,
    ) -> None:
        self._channel = channel
        self._settings = settings
        self._on_destroyed = on_destroyed
        self._voice_client: discord.VoiceClient | None = None
        self._status = VoiceStatus.CONNECTING
        self._changed = asyncio.Event()
        self._listener: StateListener | None = None
        # Set while we disconnect on purpose, so the resulting gateway update is not a drop.
        self._closing = False
        self._tasks: set[asyncio.Task[Any]] = set()

    # === State ===

    @property
    def guild_id(self) -> int:
        return self._channel.guild.id

    @property
    def channel_id(self) -> int:
        return self._channel.id

    @property
    def status(self) -> VoiceStatus:
        return self._status

    @property
    def voice_client(self) -> discord.VoiceClient | None:
        return self._voice_client

    def set_state_listener(self, listener: StateListener) -> None:
        self._listener = listener

    def _set_status(self, status: VoiceStatus, reason: DisconnectReason | None = None) -> None:
        if status is self._status and reason is None:
            return
        self._status = status
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        if self._listener is not None:
            self._listener(status, reason)

    async def wait_for(self, *statuses: VoiceStatus, timeout: float) -> None:
        async with asyncio.timeout(timeout):
            while self._status not in statuses:
                await self._changed.wait()

    # === Lifecycle ===

    def start(self) -> None:
        """Begin connecting in the background; progress is reported through the status."""
        self._spawn(self._open())
        self._spawn(self._monitor())

    async def _open(self) -> None:
        self._set_status(VoiceStatus.CONNECTING)
        try:
            self._voice_client = await self._channel.connect(
                timeout=self._settings.connect_timeout_s,
                reconnect=False,
                self_deaf=self._settings.self_deaf,
            )
        except (discord.ClientException, discord.HTTPException, TimeoutError, OSError) as exc:
            logger.warning(LogTemplates.DISCORD_CONNECT_ERROR, self.channel_id, exc)
            self._set_status(VoiceStatus.DISCONNECTED, DisconnectReason.NETWORK)
            return
        self._set_status(VoiceStatus.READY)

    async def _monitor(self) -> None:
        while self._status is not VoiceStatus.DESTROYED:
            await asyncio.sleep(MONITOR_INTERVAL)
            vc = self._voice_client
            if vc is None or self._closing:
                continue
            if self._status is VoiceStatus.READY and not vc.is_connected():
                self._set_status(VoiceStatus.DISCONNECTED, DisconnectReason.NETWORK)
            elif self._status is VoiceStatus.CONNECTING and vc.is_connected():
                self._set_status(VoiceStatus.READY)

    def handle_voice_state(
        self, before: VoiceChannelLike | None, after: VoiceChannelLike | None
    ) -> None:
        """Translate a gateway voice-state update of the bot itself."""
        if self._closing or self._status is VoiceStatus.DESTROYED:
            return
        logger.debug(
            LogTemplates.DISCORD_VOICE_STATE_UPDATE,
            self.guild_id,
            getattr(before, "id", None),
            getattr(after, "id", None),
        )
        if after is None:
            # A rejoin in progress produces its own leave update.
            if self._status is not VoiceStatus.CONNECTING:
                self._set_status(VoiceStatus.DISCONNECTED, DisconnectReason.MANUAL)
        elif after.id != self._channel.id:
            self._channel = after
            self._set_status(VoiceStatus.DISCONNECTED, DisconnectReason.CHANNEL_MOVED)
            # discord.py follows the move itself; the monitor promotes to READY.
            self._set_status(VoiceStatus.CONNECTING)

    async def rejoin(self) -> None:
        self._closing = True
        try:
            await self._disconnect_client()
        finally:
            self._closing = False
        await self._open()

    async def destroy(self) -> None:
        if self._status is VoiceStatus.DESTROYED:
            return
        self._closing = True
        await self._disconnect_client()
        for task in list(self._tasks):
            if task is not asyncio.current_task():
                task.cancel()
        self._set_status(VoiceStatus.DESTROYED)
        if self._on_destroyed is not None:
            self._on_destroyed(self)

    async def _disconnect_client(self) -> None:
        vc, self._voice_client = self._voice_client, None
        if vc is None:
            return
        try:
            await vc.disconnect(force=True)
        except discord.ClientException as exc:
            logger.debug(LogTemplates.DISCORD_CONNECT_ERROR, self.channel_id, exc)

    # === Audio ===

    def play(self, resource: AudioResource, after: AfterCallback) -> None:
        vc = self._voice_client
        if vc is None or not vc.is_connected():
            raise TransportError(ErrorMessages.VOICE_NOT_CONNECTED.format(guild_id=self.guild_id))
        if not isinstance(resource, discord.AudioSource):
            raise TypeError(f"Unsupported audio resource: {type(resource).__name__}")
        if vc.is_playing() or vc.is_paused():
            vc.stop()

        def after_callback(error: Exception | None) -> None:
            logger.debug(LogTemplates.DISCORD_AFTER_CALLBACK, self.guild_id, error)
            after(error)

        vc.play(resource, after=after_callback)

    def stop(self) -> None:
        if self._voice_client is not None:
            self._voice_client.stop()

    def pause(self) -> None:
        if self._voice_client is not None:
            self._voice_client.pause()

    def resume(self) -> None:
        if self._voice_client is not None:
            self._voice_client.resume()

    def is_paused(self) -> bool:
        return self._voice_client is not None and self._voice_client.is_paused()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


class DiscordVoiceTransport(VoiceTransport):
    """Creates discord.py voice connections and FFmpeg audio resources."""

    def __init__(
        self,
        bot: discord.Client,
        *,
        audio_settings: AudioSettings | None = None,
        voice_settings: VoiceSettings | None = None,
    ) -> None:
        self._bot = bot
        self._audio = audio_settings or AudioSettings()
        self._voice = voice_settings or VoiceSettings()
        self._connections: dict[int, DiscordVoiceConnection] = {}

    def _get_channel(self, target: VoiceTarget) -> VoiceChannelLike:
        guild = self._bot.get_guild(target.guild_id)
        if guild is None:
            raise TransportError(ErrorMessages.GUILD_NOT_FOUND.format(guild_id=target.guild_id))
        channel = guild.get_channel(target.channel_id)
        if not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            raise TransportError(ErrorMessages.CHANNEL_NOT_VOICE.format(channel_id=target.channel_id))
        return channel

    @staticmethod
    def _check_joinable(channel: VoiceChannelLike) -> None:
        perms = channel.permissions_for(channel.guild.me)
        if not perms.connect or not perms.speak:
            raise VoiceMissingPermsError(channel.id)
        if (
            channel.user_limit
            and len(channel.members) >= channel.user_limit
            and not perms.move_members
        ):
            raise VoiceFullError()

    async def join(self, target: VoiceTarget) -> VoiceConnection:
        channel = self._get_channel(target)
        self._check_joinable(channel)

        existing = self._connections.get(target.guild_id)
        if existing is not None:
            await existing.destroy()

        connection = DiscordVoiceConnection(
            channel, settings=self._voice, on_destroyed=self._forget
        )
        self._connections[target.guild_id] = connection
        connection.start()
        return connection

    def _forget(self, connection: DiscordVoiceConnection) -> None:
        if self._connections.get(connection.guild_id) is connection:
            del self._connections[connection.guild_id]

    def get_connection(self, guild_id: int) -> DiscordVoiceConnection | None:
        return self._connections.get(guild_id)

    def create_audio_resource(
        self,
        stream_url: str,
        *,
        filter_args: Sequence[str] = (),
        seek: float | None = None,
    ) -> AudioResource:
        before_options = self._audio.before_options
        if seek:
            before_options = f"{before_options} -ss {seek:.3f}"
        options = self._audio.options
        if filter_args:
            options = f'{options} -af "{",".join(filter_args)}"'
        source = discord.FFmpegPCMAudio(
            stream_url, before_options=before_options, options=options
        )
        return FFmpegAudioResource(source)

    def handle_voice_state_update(
        self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
    ) -> None:
        """Forward the bot's own voice-state updates to its connection."""
        user = self._bot.user
        if user is None or member.id != user.id:
            return
        connection = self._connections.get(member.guild.id)
        if connection is not None:
            connection.handle_voice_state(before.channel, after.channel)
