"""Session manager - registry of playback sessions and the queue-advance rules."""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import TYPE_CHECKING

from ...domain.playback.value_objects import PlaybackState, RepeatMode
from ...domain.shared.events import (
    Disconnected,
    ItemFinished,
    NoRelated,
    NowPlaying,
    PlaybackErrorOccurred,
    QueueFinished,
    SessionCreated,
    SessionDeleted,
)
from ...domain.shared.exceptions import (
    NoRelatedError,
    NoStreamUrlError,
    PlaybackFailedError,
    ResolutionError,
    SessionExistsError,
)
from ...domain.shared.messages import ErrorMessages, LogTemplates
from .playback_session import ItemsInput, PlaybackSession, to_item_list
from .voice_registry import VoiceRegistry

if TYPE_CHECKING:
    from ...config.settings import AudioSettings, PlaybackSettings, VoiceSettings
    from ...domain.playback.entities import PlayableItem
    from ...domain.playback.value_objects import AdvanceReason, VoiceTarget
    from ...domain.shared.events import EventBus
    from ..interfaces.item_resolver import ItemResolver, RelatedItemProvider, StreamLocator
    from ..interfaces.voice_transport import VoiceTransport

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, tracks and advances the playback session of every guild.

    Sessions of different guilds are independent; everything that touches
    one session's queue runs under that session's ticket.
    """

    def __init__(
        self,
        *,
        transport: VoiceTransport,
        event_bus: EventBus,
        stream_locator: StreamLocator,
        playback_settings: PlaybackSettings,
        voice_settings: VoiceSettings,
        audio_settings: AudioSettings | None = None,
        resolver: ItemResolver | None = None,
        related_provider: RelatedItemProvider | None = None,
        voices: VoiceRegistry | None = None,
    ) -> None:
        self._transport = transport
        self._bus = event_bus
        self._stream_locator = stream_locator
        self._resolver = resolver
        self._related_provider = related_provider
        self._playback_settings = playback_settings
        self._custom_filters = dict(audio_settings.custom_filters) if audio_settings else {}
        self.voices = voices or VoiceRegistry(
            transport=transport,
            settings=voice_settings,
            default_volume=playback_settings.default_volume,
        )
        self._sessions: dict[int, PlaybackSession] = {}

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def sessions(self) -> list[PlaybackSession]:
        return list(self._sessions.values())

    # === Registry ===

    def get(self, guild_id: int) -> PlaybackSession | None:
        return self._sessions.get(guild_id)

    def has(self, guild_id: int) -> bool:
        return guild_id in self._sessions

    def remove(self, guild_id: int, session: PlaybackSession | None = None) -> bool:
        """Unregister the guild's session and emit ``SessionDeleted``.

        With *session*, nothing happens unless it is still the registered one.
        """
        current = self._sessions.get(guild_id)
        if current is None or (session is not None and current is not session):
            return False
        del self._sessions[guild_id]
        current.stopped = True
        current.state = PlaybackState.STOPPED
        logger.info(LogTemplates.SESSION_REMOVED, guild_id)
        self._bus.emit(SessionDeleted(guild_id=guild_id))
        return True

    async def create(self, target: VoiceTarget, items: ItemsInput) -> PlaybackSession:
        """Connect to *target* and start playing the first of *items*.

        Raises:
            SessionExistsError: If the guild already has a session.
            ConnectTimeoutError, VoiceFullError, VoiceMissingPermsError: If
                the voice connection cannot be established.
        """
        new_items = to_item_list(items)
        if target.guild_id in self._sessions:
            raise SessionExistsError(target.guild_id)

        logger.info(LogTemplates.SESSION_CREATING, target.guild_id)
        voice = self.voices.create(target)
        session = PlaybackSession(
            manager=self,
            voice=voice,
            items=new_items,
            settings=self._playback_settings,
            filter_registry=self._custom_filters,
        )
        self._sessions[target.guild_id] = session

        async with session.task_queue.ticket():
            try:
                await voice.connect(target)
            except BaseException:
                self._sessions.pop(target.guild_id, None)
                session.stopped = True
                raise
            self._wire(session)
            logger.info(LogTemplates.SESSION_CREATED, target.guild_id, target.channel_id)
            self._bus.emit(
                SessionCreated(
                    guild_id=target.guild_id,
                    channel_id=target.channel_id,
                    item_count=len(new_items),
                )
            )
            await self._play(session)
        return session

    async def play(
        self, target: VoiceTarget, query: str | ItemsInput, *, position: int = -1
    ) -> PlaybackSession:
        """Resolve *query* if needed, then add it to the guild's session or create one."""
        if isinstance(query, str):
            if self._resolver is None:
                raise ResolutionError(ErrorMessages.NO_RESOLVER.format(query=query))
            items: ItemsInput = await self._resolver.resolve(query)
        else:
            items = query

        session = self._sessions.get(target.guild_id)
        if session is None:
            return await self.create(target, items)
        await session.add(items, position)
        return session

    async def shutdown(self) -> None:
        """Stop every session and leave every voice channel."""
        sessions = list(self._sessions.values())
        logger.info(LogTemplates.SESSION_SHUTDOWN, len(sessions))
        for session in sessions:
            await session.stop()
        await self.voices.close_all()
        await self._bus.drain()

    # === Collaborators ===

    async def find_related(self, item: PlayableItem, exclude_ids: Collection[str]) -> PlayableItem:
        """Ask the related-items provider for a continuation of *item*.

        Raises:
            NoRelatedError: If there is no provider, it found nothing, or it failed.
        """
        if self._related_provider is None:
            raise NoRelatedError()
        try:
            related = await self._related_provider.related(item, exclude_ids)
        except NoRelatedError:
            raise
        except Exception as exc:
            raise NoRelatedError(str(exc) or None) from exc
        if related is None:
            raise NoRelatedError()
        return related

    # === Voice signal handlers ===

    def _wire(self, session: PlaybackSession) -> None:
        voice = session.voice
        voice.on_finished = lambda item, reason: self._handle_finish(session, item, reason)
        voice.on_error = lambda item, error: self._handle_error(session, item, error)
        voice.on_disconnected = lambda error: self._handle_disconnect(session, error)

    async def _handle_finish(
        self, session: PlaybackSession, item: PlayableItem, reason: AdvanceReason
    ) -> None:
        async with session.task_queue.ticket():
            if session.stopped:
                return
            guild_id = session.guild_id
            logger.debug(LogTemplates.ITEM_FINISHED, item.title, guild_id, reason)
            self._bus.emit(
                ItemFinished(
                    guild_id=guild_id,
                    item_id=item.id,
                    item_title=item.title,
                    manual=reason.is_manual,
                )
            )

            if reason.is_manual or not session.items or session.items[0] is not item:
                # A manual move already rearranged the queue.
                logger.debug(LogTemplates.ITEM_ALREADY_ADVANCED, guild_id)
                if not session.items:
                    await self._finish_queue(session)
                    return
                session.begin_time = 0.0
                await self._play(session)
                return

            if session.repeat_mode is RepeatMode.ITEM:
                logger.debug(LogTemplates.ITEM_REPEATING, item.title, guild_id)
                session.begin_time = 0.0
                await self._play(session, announce=not self._playback_settings.emit_new_only)
                return

            if session.repeat_mode is RepeatMode.QUEUE:
                session.items.append(item.without_stream_url())

            if len(session.items) <= 1:
                if session.autoplay:
                    try:
                        await session._add_related()
                    except ResolutionError as exc:
                        logger.info(LogTemplates.AUTOPLAY_NO_RELATED, guild_id, exc)
                        self._bus.emit(NoRelated(guild_id=guild_id, reason=str(exc)))
                if len(session.items) <= 1:
                    await self._finish_queue(session)
                    return

            finished = session.items.pop(0)
            session._push_history(finished)
            session.begin_time = 0.0
            unchanged = session.items[0].id == finished.id
            await self._play(
                session,
                announce=not (self._playback_settings.emit_new_only and unchanged),
            )

    async def _handle_error(
        self, session: PlaybackSession, item: PlayableItem, error: BaseException
    ) -> None:
        async with session.task_queue.ticket():
            await self._recover(session, item, error)

    async def _handle_disconnect(self, session: PlaybackSession, error: BaseException | None) -> None:
        guild_id = session.guild_id
        session.stopped = True
        session.state = PlaybackState.STOPPED
        self.remove(guild_id, session)
        self._bus.emit(Disconnected(guild_id=guild_id, error=error))
        if error is not None:
            self._bus.emit(PlaybackErrorOccurred(guild_id=guild_id, error=error))

    # === Playback path (caller holds the ticket) ===

    async def restart(self, session: PlaybackSession) -> None:
        """Restart the front item at ``session.begin_time`` without announcing it."""
        await self._play(session, announce=False)

    async def _play(self, session: PlaybackSession, *, announce: bool = True) -> None:
        """Start the front item; items that fail to start are dropped until one plays."""
        failed = False
        while not session.stopped and session.items:
            item = session.items[0]
            try:
                await self._start(session, announce=announce or failed)
            except Exception as exc:
                failed = True
                self._drop_failed(session, session.items[0] if session.items else item, exc)
                session.begin_time = 0.0
                if session.items:
                    logger.info(LogTemplates.PLAYBACK_NEXT_AFTER_ERROR, session.guild_id)
                continue
            return
        if failed and not session.stopped:
            await session._stop()

    async def _start(self, session: PlaybackSession, *, announce: bool) -> None:
        guild_id = session.guild_id
        item = session.items[0]
        if not item.stream_url:
            logger.debug(LogTemplates.PLAYBACK_GETTING_STREAM, item.title, guild_id)
            item = await self._stream_locator.attach_stream_info(item)
            if not item.stream_url:
                raise NoStreamUrlError(item.title)
            session.items[0] = item

        seek = session.begin_time if item.is_seekable and session.begin_time > 0 else None
        if seek is None:
            session.begin_time = 0.0
        resource = self._transport.create_audio_resource(
            item.stream_url,
            filter_args=session.filters.to_argument_list(),
            seek=seek,
        )
        session.voice.play(resource, item)

        if not session.voice.paused:
            session.state = PlaybackState.PLAYING
        if seek is None:
            logger.info(LogTemplates.PLAYBACK_STARTED, item.title, guild_id)
        else:
            logger.info(LogTemplates.PLAYBACK_RESTART, item.title, seek, guild_id)
        if announce:
            self._bus.emit(
                NowPlaying(
                    guild_id=guild_id,
                    item_id=item.id,
                    item_title=item.title,
                    duration_seconds=item.duration_seconds,
                )
            )

    def _drop_failed(self, session: PlaybackSession, item: PlayableItem, error: BaseException) -> None:
        failure = (
            error
            if isinstance(error, PlaybackFailedError)
            else PlaybackFailedError(error, item.id, item.title)
        )
        logger.error(LogTemplates.PLAYBACK_ERROR, session.guild_id, failure.message)
        if session.items and session.items[0] is item:
            session.items.pop(0)
        self._bus.emit(
            PlaybackErrorOccurred(guild_id=session.guild_id, error=failure, item_id=item.id)
        )

    async def _recover(self, session: PlaybackSession, item: PlayableItem, error: BaseException) -> None:
        """Drop the failing item and move on, or stop when nothing is left."""
        if session.stopped:
            return
        self._drop_failed(session, item, error)
        if session.items:
            logger.info(LogTemplates.PLAYBACK_NEXT_AFTER_ERROR, session.guild_id)
            session.begin_time = 0.0
            await self._play(session)
        else:
            await session._stop()

    async def _finish_queue(self, session: PlaybackSession) -> None:
        guild_id = session.guild_id
        logger.info(LogTemplates.SESSION_QUEUE_EMPTY, guild_id)
        if not session.autoplay:
            self._bus.emit(QueueFinished(guild_id=guild_id))
        session.stopped = True
        session.state = PlaybackState.STOPPED
        if self._playback_settings.leave_on_finish:
            await session.voice.leave()
        self.remove(guild_id, session)
