"""Playback session - the per-guild queue, history, policy, filters and voice."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, cast

from ...domain.playback.entities import HistoryEntry, PlayableItem, Playlist
from ...domain.playback.filters import FilterChain
from ...domain.playback.value_objects import AdvanceReason, Direction, PlaybackState, RepeatMode
from ...domain.shared.datetime_utils import format_duration
from ...domain.shared.events import ItemAdded
from ...domain.shared.exceptions import (
    AddBeforePlayingError,
    AlreadyPausedError,
    AlreadyPlayingError,
    DisabledOptionError,
    InvalidPositionError,
    InvalidSeekTimeError,
    NoPreviousError,
    NoSongAtPositionError,
    NoUpNextError,
    SessionStoppedError,
    ValidationError,
)
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.task_queue import TaskQueue

if TYPE_CHECKING:
    from ...config.settings import PlaybackSettings
    from .session_manager import SessionManager
    from .voice_session import VoiceSession

logger = logging.getLogger(__name__)

ItemsInput = PlayableItem | Playlist | Iterable[PlayableItem]


def to_item_list(items: ItemsInput) -> list[PlayableItem]:
    """Flatten a single item, a playlist or a sequence of items into a list.

    Raises:
        ValidationError: If nothing playable was provided.
    """
    if isinstance(items, PlayableItem):
        result = [items]
    elif isinstance(items, Playlist):
        result = list(items.items)
    else:
        result = list(items)
    if not result:
        raise ValidationError(ErrorMessages.NO_ITEMS_PROVIDED, field="items")
    return result


class PlaybackSession:
    """Aggregate for one guild: ``items[0]`` is always the item playing or about to play.

    Every public mutation takes a ticket from ``task_queue`` first, so user
    commands and voice signals are applied one at a time in arrival order.
    Manual moves (skip, previous, jump) rearrange the queue eagerly and then
    stop the voice with a manual ``AdvanceReason``; the manager's completion
    handler only has to start the new front item.
    """

    def __init__(
        self,
        *,
        manager: SessionManager,
        voice: VoiceSession,
        items: ItemsInput,
        settings: PlaybackSettings,
        filter_registry: Mapping[str, str] | None = None,
    ) -> None:
        self._manager = manager
        self._settings = settings
        self.voice = voice
        self.guild_id = voice.guild_id

        self.items: list[PlayableItem] = to_item_list(items)
        self.history: list[HistoryEntry] = []
        self.repeat_mode = RepeatMode.DISABLED
        self.autoplay = False
        self.stopped = False
        self.state = PlaybackState.PLAYING
        # Offset (seconds) at which the current resource was started.
        self.begin_time = 0.0

        self.task_queue = TaskQueue()
        self.filters = FilterChain(
            task_queue=self.task_queue,
            reapply=self._reapply_filters,
            registry=filter_registry,
        )

    # === Read-only state ===

    @property
    def current_item(self) -> PlayableItem | None:
        return self.items[0] if self.items else None

    @property
    def current_time(self) -> float:
        """Elapsed seconds of the current item."""
        return self.voice.playback_duration + self.begin_time

    @property
    def formatted_current_time(self) -> str:
        return format_duration(int(self.current_time))

    @property
    def duration(self) -> int:
        """Total duration of the queue in seconds."""
        return sum(item.duration_seconds for item in self.items)

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def is_paused(self) -> bool:
        return self.state is PlaybackState.PAUSED

    @property
    def volume(self) -> float:
        return self.voice.volume

    @property
    def save_history(self) -> bool:
        return self._settings.save_history

    # === Queue movement ===

    async def skip(self) -> PlayableItem:
        """Advance to the next item.

        Raises:
            NoUpNextError: If there is nothing after the current item and
                autoplay is off.
            NoRelatedError: If autoplay is on but no continuation was found.
        """
        async with self.task_queue.ticket():
            self._ensure_active()
            if len(self.items) <= 1:
                if not self.autoplay:
                    raise NoUpNextError()
                await self._add_related()

            skipped = self.items.pop(0)
            if self.repeat_mode is RepeatMode.QUEUE:
                self.items.append(skipped.without_stream_url())
            self._push_history(skipped)
            self.begin_time = 0.0
            logger.info(LogTemplates.QUEUE_SKIPPED, skipped.title, self.guild_id)
            self.voice.stop(AdvanceReason.manual(Direction.NEXT))
            return self.items[0]

    async def previous(self) -> PlayableItem:
        """Go back to the previous item (the last queued item in QUEUE repeat).

        Raises:
            DisabledOptionError: If history retention is off.
            NoPreviousError: If there is no history and repeat is not QUEUE.
        """
        async with self.task_queue.ticket():
            self._ensure_active()
            if not self.save_history:
                raise DisabledOptionError("save_history")
            if not self.history and self.repeat_mode is not RepeatMode.QUEUE:
                raise NoPreviousError()

            if self.repeat_mode is RepeatMode.QUEUE:
                self.items.insert(0, self.items.pop())
            else:
                self.items.insert(0, cast(PlayableItem, self.history.pop()))
            self.begin_time = 0.0
            logger.info(LogTemplates.QUEUE_PREVIOUS, self.items[0].title, self.guild_id)
            self.voice.stop(AdvanceReason.manual(Direction.PREVIOUS))
            return self.items[0]

    async def jump(self, position: int) -> PlayableItem:
        """Jump to a 1-based *position* in the queue, or back into history when negative.

        ``jump(3)`` on ``[A, B, C, D, E]`` leaves ``[C, D, E]`` with ``A`` and
        ``B`` appended to history; ``jump(-1)`` then brings ``B`` back to the
        front.

        Raises:
            InvalidPositionError: If *position* is not an integer.
            NoSongAtPositionError: If *position* is 0 or out of range.
            DisabledOptionError: On a backward jump with history retention off.
        """
        if isinstance(position, bool) or not isinstance(position, int):
            raise InvalidPositionError(position)

        async with self.task_queue.ticket():
            self._ensure_active()
            if position == 0 or position > len(self.items):
                raise NoSongAtPositionError(position)

            if position > 0:
                skipped = self.items[: position - 1]
                self.items = self.items[position - 1 :]
                for item in skipped:
                    self._push_history(item)
            else:
                if not self.save_history:
                    raise DisabledOptionError("save_history")
                if -position > len(self.history):
                    raise NoSongAtPositionError(position)
                restored = cast(list[PlayableItem], self.history[position:])
                del self.history[position:]
                self.items[:0] = restored

            self.begin_time = 0.0
            logger.info(LogTemplates.QUEUE_JUMPED, position, self.items[0].title, self.guild_id)
            self.voice.stop(AdvanceReason.manual(Direction.JUMP))
            return self.items[0]

    async def shuffle(self) -> PlaybackSession:
        """Shuffle every item after the current one."""
        async with self.task_queue.ticket():
            self._ensure_active()
            upcoming = self.items[1:]
            random.shuffle(upcoming)
            self.items[1:] = upcoming
            logger.debug(LogTemplates.QUEUE_SHUFFLED, len(upcoming), self.guild_id)
            return self

    async def add(self, items: ItemsInput, position: int = -1) -> PlaybackSession:
        """Append *items*, or insert them at *position* (1 = right after the current item).

        Raises:
            AddBeforePlayingError: If *position* is 0.
            ValidationError: If *items* is empty.
        """
        new_items = to_item_list(items)
        if position == 0:
            raise AddBeforePlayingError()

        async with self.task_queue.ticket():
            self._ensure_active()
            if position > 0:
                self.items[position:position] = new_items
            else:
                self.items.extend(new_items)
            logger.info(LogTemplates.QUEUE_ITEMS_ADDED, len(new_items), self.guild_id, position)
            self._manager.event_bus.emit(
                ItemAdded(
                    guild_id=self.guild_id,
                    item_ids=tuple(item.id for item in new_items),
                    position=position,
                )
            )
        return self

    async def add_related(self) -> PlayableItem:
        """Append a continuation of the current item from the related-items provider.

        Raises:
            NoRelatedError: If no continuation could be found.
        """
        async with self.task_queue.ticket():
            self._ensure_active()
            return await self._add_related()

    # === Playback control ===

    async def seek(self, time: float) -> PlaybackSession:
        """Restart the current item at *time* seconds.

        Raises:
            InvalidSeekTimeError: If *time* is not a number >= 0.
        """
        if (
            isinstance(time, bool)
            or not isinstance(time, int | float)
            or math.isnan(time)
            or time < 0
        ):
            raise InvalidSeekTimeError(time)

        async with self.task_queue.ticket():
            self._ensure_active()
            self.begin_time = float(time)
            logger.info(LogTemplates.QUEUE_SEEK, self.begin_time, self.guild_id)
            await self._manager.restart(self)
        return self

    async def pause(self) -> PlaybackSession:
        async with self.task_queue.ticket():
            self._ensure_active()
            if self.state is PlaybackState.PAUSED:
                raise AlreadyPausedError()
            self.voice.pause()
            self.state = PlaybackState.PAUSED
        return self

    async def resume(self) -> PlaybackSession:
        async with self.task_queue.ticket():
            self._ensure_active()
            if self.state is PlaybackState.PLAYING:
                raise AlreadyPlayingError()
            self.voice.unpause()
            self.state = PlaybackState.PLAYING
        return self

    def set_volume(self, volume: float) -> PlaybackSession:
        self.voice.set_volume(volume)
        logger.info(LogTemplates.PLAYBACK_VOLUME, self.guild_id, volume)
        return self

    async def set_repeat_mode(self, mode: RepeatMode | int | None = None) -> RepeatMode:
        """Cycle the repeat mode, or set *mode* (turning repeat off if it is already active)."""
        new_mode = None if mode is None else RepeatMode.coerce(mode)
        async with self.task_queue.ticket():
            self._ensure_active()
            if new_mode is None:
                self.repeat_mode = self.repeat_mode.next_mode()
            elif new_mode is self.repeat_mode:
                self.repeat_mode = RepeatMode.DISABLED
            else:
                self.repeat_mode = new_mode
            logger.info(LogTemplates.QUEUE_REPEAT_MODE, self.guild_id, self.repeat_mode.name)
            return self.repeat_mode

    async def toggle_autoplay(self) -> bool:
        async with self.task_queue.ticket():
            self._ensure_active()
            self.autoplay = not self.autoplay
            logger.info(LogTemplates.QUEUE_AUTOPLAY, self.guild_id, self.autoplay)
            return self.autoplay

    async def stop(self) -> None:
        """Stop playback and unregister the session. Irreversible; later calls are no-ops."""
        async with self.task_queue.ticket():
            await self._stop()

    # === Internals (caller holds the ticket) ===

    def _ensure_active(self) -> None:
        if self.stopped:
            raise SessionStoppedError(self.guild_id)

    def _push_history(self, item: PlayableItem) -> None:
        if self.save_history:
            self.history.append(item.without_stream_url())
        else:
            self.history.append(item.stub())

    def _history_ids(self) -> set[str]:
        return {entry.id for entry in self.history}

    async def _add_related(self) -> PlayableItem:
        current = self.items[0]
        logger.info(LogTemplates.AUTOPLAY_ADDING_RELATED, self.guild_id)
        exclude = self._history_ids() | {item.id for item in self.items}
        related = await self._manager.find_related(current, exclude)
        self.items.append(related)
        return related

    async def _reapply_filters(self) -> None:
        if self.stopped or not self.items:
            return
        logger.info(LogTemplates.PLAYBACK_FILTERS, self.guild_id, self.filters.names)
        self.begin_time = self.current_time
        await self._manager.restart(self)

    async def _stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        self.state = PlaybackState.STOPPED
        leave = self._settings.leave_on_stop
        if leave:
            await self.voice.leave()
        else:
            self.voice.stop()
        logger.info(LogTemplates.SESSION_STOPPED, self.guild_id, leave)
        self._manager.remove(self.guild_id, self)

    def __repr__(self) -> str:
        return (
            f"PlaybackSession(guild_id={self.guild_id}, items={len(self.items)}, "
            f"history={len(self.history)}, repeat={self.repeat_mode.name}, state={self.state.value})"
        )
