"""Voice session - one live voice connection and its current audio resource."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ...domain.playback.value_objects import AdvanceReason
from ...domain.shared.exceptions import (
    ConnectTimeoutError,
    InvalidVolumeError,
    ReconnectFailedError,
    TransportError,
)
from ...domain.shared.messages import LogTemplates
from ..interfaces.voice_transport import DisconnectReason, VoiceStatus

if TYPE_CHECKING:
    from ...config.settings import VoiceSettings
    from ...domain.playback.entities import PlayableItem
    from ...domain.playback.value_objects import VoiceTarget
    from ..interfaces.voice_transport import AudioResource, VoiceConnection, VoiceTransport
    from .voice_registry import VoiceRegistry

logger = logging.getLogger(__name__)

FinishedListener = Callable[["PlayableItem", AdvanceReason], Awaitable[None] | None]
ErrorListener = Callable[["PlayableItem", BaseException], Awaitable[None] | None]
DisconnectedListener = Callable[["BaseException | None"], Awaitable[None] | None]

# Exponent mapping a linear percentage onto a perceptual gain curve.
_GAIN_EXPONENT = 0.5 / math.log10(2)


def volume_to_gain(volume: float) -> float:
    """Map a volume percentage (100 = unity) onto amplitude gain."""
    return (volume / 100) ** _GAIN_EXPONENT


@dataclass(eq=False)
class _ActivePlayback:
    resource: AudioResource
    item: PlayableItem
    stop_reason: AdvanceReason | None = None
    settled: bool = False


class VoiceSession:
    """Owns the voice connection of one guild.

    Emits, through the ``on_*`` listeners:

    * ``finished(item, reason)`` once per resource that ends, carrying the
      ``AdvanceReason`` passed to :meth:`stop` (natural otherwise). A
      resource replaced by :meth:`play` never finishes.
    * ``error(item, exc)`` once per failing resource, whichever of the
      stream or the player reports first. A failed resource does not
      also finish.
    * ``disconnected(error)`` exactly once, when the session leaves.
    """

    def __init__(
        self,
        *,
        target: VoiceTarget,
        transport: VoiceTransport,
        registry: VoiceRegistry,
        settings: VoiceSettings,
        volume: float = 50.0,
    ) -> None:
        self.target = target
        self._transport = transport
        self._registry = registry
        self._settings = settings
        self._volume = float(volume)

        self._connection: VoiceConnection | None = None
        self._active: _ActivePlayback | None = None
        # The playback the connection currently holds, which lags behind
        # ``_active`` while a new resource waits for unpause.
        self._live: _ActivePlayback | None = None
        self._paused = False
        self._left = False
        self.reconnect_attempts = 0

        self._reconnect_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

        self.on_finished: FinishedListener | None = None
        self.on_error: ErrorListener | None = None
        self.on_disconnected: DisconnectedListener | None = None

    # === Properties ===

    @property
    def guild_id(self) -> int:
        return self.target.guild_id

    @property
    def channel_id(self) -> int:
        return self.target.channel_id

    @property
    def status(self) -> VoiceStatus:
        if self._connection is None:
            return VoiceStatus.DESTROYED if self._left else VoiceStatus.DISCONNECTED
        return self._connection.status

    @property
    def is_connected(self) -> bool:
        return self.status is VoiceStatus.READY

    @property
    def has_left(self) -> bool:
        return self._left

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def gain(self) -> float:
        return volume_to_gain(self._volume)

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def playback_duration(self) -> float:
        """Seconds played by the current resource, 0 when nothing is loaded."""
        if self._active is None:
            return 0.0
        return self._active.resource.playback_duration

    @property
    def current_item(self) -> PlayableItem | None:
        return self._active.item if self._active else None

    # === Connection ===

    async def connect(self, target: VoiceTarget | None = None) -> VoiceSession:
        """Join *target* (default: the current one) and wait until the connection is ready.

        A no-op if already connected to that channel.

        Raises:
            ConnectTimeoutError: If the connection is not ready in time; the
                connection is destroyed and the session unregistered.
            VoiceFullError, VoiceMissingPermsError: From the transport.
        """
        target = target or self.target
        self._loop = asyncio.get_running_loop()

        current = self._connection
        if (
            current is not None
            and current.status is not VoiceStatus.DESTROYED
            and current.channel_id == target.channel_id
        ):
            logger.debug(LogTemplates.VOICE_ALREADY_CONNECTED, target.channel_id, target.guild_id)
            return self

        if current is not None:
            self._connection = None
            await current.destroy()

        self.target = target
        logger.info(LogTemplates.VOICE_CONNECTING, target.channel_id, target.guild_id)
        timeout = self._settings.connect_timeout_s

        try:
            connection = await self._transport.join(target)
        except Exception:
            self._registry.remove(self.guild_id, self)
            raise

        self._attach(connection)
        try:
            await connection.wait_for(VoiceStatus.READY, timeout=timeout)
        except TimeoutError:
            logger.warning(LogTemplates.VOICE_CONNECTION_TIMEOUT, target.channel_id, timeout)
            self._connection = None
            await connection.destroy()
            self._registry.remove(self.guild_id, self)
            raise ConnectTimeoutError(timeout) from None

        self.reconnect_attempts = 0
        logger.info(LogTemplates.VOICE_CONNECTED, target.channel_id, target.guild_id)
        return self

    def _attach(self, connection: VoiceConnection) -> None:
        self._connection = connection

        def listener(status: VoiceStatus, reason: DisconnectReason | None) -> None:
            self._on_state_change(connection, status, reason)

        connection.set_state_listener(listener)

    def _on_state_change(
        self,
        connection: VoiceConnection,
        status: VoiceStatus,
        reason: DisconnectReason | None,
    ) -> None:
        if connection is not self._connection or self._left:
            return
        logger.debug(LogTemplates.VOICE_STATE_CHANGE, self.guild_id, status.value, reason)

        if status is VoiceStatus.READY:
            self.reconnect_attempts = 0
            self._start_held()
        elif status is VoiceStatus.DISCONNECTED:
            if self._reconnect_task is not None and not self._reconnect_task.done():
                self._reconnect_task.cancel()
            self._reconnect_task = self._spawn(self._handle_disconnect(connection, reason))
        elif status is VoiceStatus.DESTROYED:
            self._connection = None
            self._spawn(self.leave())

    async def _handle_disconnect(
        self, connection: VoiceConnection, reason: DisconnectReason | None
    ) -> None:
        if reason is DisconnectReason.MANUAL:
            logger.info(LogTemplates.VOICE_MANUAL_DISCONNECT, self.guild_id)
            await self.leave()
            return

        if reason is DisconnectReason.CHANNEL_MOVED:
            logger.info(LogTemplates.VOICE_CHANNEL_MOVED, self.guild_id)
            try:
                await connection.wait_for(
                    VoiceStatus.CONNECTING,
                    VoiceStatus.READY,
                    timeout=self._settings.channel_move_grace_s,
                )
            except TimeoutError:
                await self.leave()
            return

        max_attempts = self._settings.reconnect_max_attempts
        if self.reconnect_attempts >= max_attempts:
            logger.warning(LogTemplates.VOICE_RECONNECT_FAILED, self.guild_id, self.reconnect_attempts)
            await self.leave(ReconnectFailedError())
            return

        self.reconnect_attempts += 1
        delay = self.reconnect_attempts * self._settings.reconnect_backoff_s
        logger.info(
            LogTemplates.VOICE_RECONNECT_SCHEDULED,
            self.reconnect_attempts,
            max_attempts,
            self.guild_id,
            delay,
        )
        await asyncio.sleep(delay)
        if self._left or connection is not self._connection:
            return
        try:
            await connection.rejoin()
        except Exception as exc:
            logger.warning(LogTemplates.VOICE_REJOIN_ERROR, self.guild_id, exc)
            await self._handle_disconnect(connection, reason)

    async def leave(self, error: BaseException | None = None) -> None:
        """Stop playback, signal ``disconnected`` once, destroy the connection and unregister.

        Subsequent calls are no-ops.
        """
        if self._left:
            return
        self._left = True

        task = self._reconnect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        connection = self._connection
        self._connection = None
        self._settle_active()
        if connection is not None:
            connection.stop()

        self._emit(self.on_disconnected, error)

        if connection is not None and connection.status is not VoiceStatus.DESTROYED:
            await connection.destroy()
        self._registry.remove(self.guild_id, self)
        logger.info(LogTemplates.VOICE_LEFT, self.guild_id)

    # === Playback ===

    def play(self, resource: AudioResource, item: PlayableItem) -> None:
        """Attach *resource* as the current audio, replacing any previous one.

        While paused the resource is held and started by :meth:`unpause`.
        """
        self._loop = asyncio.get_running_loop()
        if self._active is not None:
            logger.debug(LogTemplates.VOICE_SUPERSEDED_RESOURCE, self.guild_id)
            self._active.settled = True

        playback = _ActivePlayback(resource=resource, item=item)
        self._active = playback
        resource.set_gain(self.gain)
        resource.set_error_listener(lambda exc: self._threadsafe(self._on_stream_error, playback, exc))

        if not self._paused:
            self._start(playback)

    def _start(self, playback: _ActivePlayback) -> None:
        connection = self._connection
        if connection is None:
            return
        if connection.status is not VoiceStatus.READY:
            # Started by _start_held once the connection is ready again.
            logger.debug(LogTemplates.VOICE_RESOURCE_HELD, self.guild_id, connection.status.value)
            return
        try:
            connection.play(
                playback.resource,
                after=lambda error: self._threadsafe(self._on_after, playback, error),
            )
        except TransportError as exc:
            logger.debug(LogTemplates.VOICE_RESOURCE_HELD, self.guild_id, exc)
            return
        self._live = playback

    def _start_held(self) -> None:
        playback = self._active
        if (
            playback is None
            or playback.settled
            or playback.stop_reason is not None
            or playback is self._live
            or self._paused
        ):
            return
        self._start(playback)

    def stop(self, reason: AdvanceReason | None = None) -> None:
        """Stop the current resource; its ``finished`` signal carries *reason*."""
        playback = self._active
        if playback is None or playback.settled or playback.stop_reason is not None:
            return
        playback.stop_reason = reason or AdvanceReason.natural()
        self._paused = False

        if playback is self._live and self._connection is not None:
            self._connection.stop()
        else:
            # Never reached the player, so no after-callback will come.
            self._finish(playback)

    def pause(self) -> None:
        if self._connection is not None:
            self._connection.pause()
        self._paused = True
        logger.debug(LogTemplates.PLAYBACK_PAUSED, self.guild_id)

    def unpause(self) -> None:
        """Resume playback, starting the current resource if it was swapped in while paused."""
        if not self._paused:
            return
        self._paused = False
        playback = self._active
        if playback is None or playback.settled:
            return
        if playback is self._live and self._connection is not None:
            self._connection.resume()
        else:
            self._start(playback)
        logger.debug(LogTemplates.PLAYBACK_RESUMED, self.guild_id)

    def set_volume(self, volume: float) -> None:
        """Set the volume percentage.

        Raises:
            InvalidVolumeError: If *volume* is not a number >= 0.
        """
        if (
            isinstance(volume, bool)
            or not isinstance(volume, int | float)
            or math.isnan(volume)
            or volume < 0
        ):
            raise InvalidVolumeError(volume)
        self._volume = float(volume)
        if self._active is not None:
            self._active.resource.set_gain(self.gain)
        logger.debug(LogTemplates.PLAYBACK_VOLUME, self.guild_id, self._volume)

    # === Resource signals ===

    def _on_after(self, playback: _ActivePlayback, error: BaseException | None) -> None:
        if playback is self._live:
            self._live = None
        if playback.settled:
            return
        if error is not None and playback.stop_reason is None:
            self._fail(playback, error)
            return
        self._finish(playback)

    def _on_stream_error(self, playback: _ActivePlayback, error: BaseException) -> None:
        if playback.settled or playback.stop_reason is not None:
            logger.debug(LogTemplates.VOICE_DUPLICATE_ERROR, self.guild_id, error)
            return
        self._fail(playback, error)

    def _finish(self, playback: _ActivePlayback) -> None:
        playback.settled = True
        reason = playback.stop_reason or AdvanceReason.natural()
        self._emit(self.on_finished, playback.item, reason)

    def _fail(self, playback: _ActivePlayback, error: BaseException) -> None:
        playback.settled = True
        self._emit(self.on_error, playback.item, error)

    def _settle_active(self) -> None:
        if self._active is not None:
            self._active.settled = True
        self._active = None
        self._live = None

    # === Plumbing ===

    def _threadsafe(self, callback: Callable[..., None], *args: Any) -> None:
        """Run *callback* on the session's loop; audio callbacks arrive from the player thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    def _emit(self, listener: Callable[..., Awaitable[None] | None] | None, *args: Any) -> None:
        if listener is None:
            return
        try:
            result = listener(*args)
        except Exception:
            logger.exception(LogTemplates.VOICE_SIGNAL_HANDLER_ERROR, listener, self.guild_id)
            return
        if asyncio.iscoroutine(result):
            self._spawn(self._guard(result, listener))

    async def _guard(self, coro: Awaitable[None], listener: Any) -> None:
        try:
            await coro
        except Exception:
            logger.exception(LogTemplates.VOICE_SIGNAL_HANDLER_ERROR, listener, self.guild_id)

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every signal handler and reconnect task spawned so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __repr__(self) -> str:
        return f"VoiceSession(guild_id={self.guild_id}, channel_id={self.channel_id}, status={self.status.value})"
