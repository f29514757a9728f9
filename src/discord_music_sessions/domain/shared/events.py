"""Lifecycle signals and the event bus that delivers them."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from discord_music_sessions.domain.shared.datetime_utils import utcnow
from discord_music_sessions.domain.shared.messages import LogTemplates
from discord_music_sessions.domain.shared.types import (
    DiscordSnowflake,
    NonEmptyStr,
    NonNegativeInt,
    UtcDatetimeField,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="DomainEvent")
EventHandler = Callable[[T], Awaitable[None]]


class DomainEvent(BaseModel):
    """Base class for all domain events."""

    model_config = ConfigDict(frozen=True)

    event_id: NonEmptyStr = Field(default_factory=lambda: str(uuid4()))
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)


# === Session Events ===


class SessionCreated(DomainEvent):
    guild_id: DiscordSnowflake
    channel_id: DiscordSnowflake
    item_count: NonNegativeInt = 0


class SessionDeleted(DomainEvent):
    guild_id: DiscordSnowflake


class ItemAdded(DomainEvent):
    guild_id: DiscordSnowflake
    item_ids: tuple[str, ...] = ()
    position: int = -1


class NowPlaying(DomainEvent):
    guild_id: DiscordSnowflake
    item_id: NonEmptyStr
    item_title: str = ""
    duration_seconds: NonNegativeInt = 0


class ItemFinished(DomainEvent):
    guild_id: DiscordSnowflake
    item_id: NonEmptyStr
    item_title: str = ""
    manual: bool = False


class QueueFinished(DomainEvent):
    guild_id: DiscordSnowflake


class NoRelated(DomainEvent):
    guild_id: DiscordSnowflake
    reason: str = ""


# === Failure Events ===


class Disconnected(DomainEvent):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    guild_id: DiscordSnowflake
    error: Exception | None = None


class PlaybackErrorOccurred(DomainEvent):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    guild_id: DiscordSnowflake
    error: Exception
    item_id: str | None = None


# === Event Bus ===


class EventBus:
    """In-memory pub/sub event bus for domain events.

    Handlers are called concurrently. Exceptions in handlers are logged
    but do not prevent other handlers from running.

    ``emit()`` schedules delivery on the running loop instead of awaiting it,
    so code holding a session ticket can signal handlers that call back into
    the same session.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler[Any]]] = defaultdict(list)
        self._pending: set[asyncio.Task[None]] = set()

    def subscribe(self, event_type: type[T], handler: EventHandler[T]) -> None:
        self._handlers[event_type].append(handler)
        logger.debug("Subscribed handler to: %s", event_type.__name__)

    def unsubscribe(self, event_type: type[T], handler: EventHandler[T]) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)
            logger.debug("Unsubscribed handler from %s", event_type.__name__)

    async def publish(self, event: DomainEvent) -> None:
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug("No handlers for %s", event_type.__name__)
            return

        logger.debug("Publishing %s to %d handlers", event_type.__name__, len(handlers))

        async def safe_call(handler: EventHandler[Any]) -> None:
            try:
                await handler(event)
            except Exception:
                logger.exception(LogTemplates.EVENT_HANDLER_ERROR, event_type.__name__)

        async with asyncio.TaskGroup() as tg:
            for handler in handlers:
                tg.create_task(safe_call(handler))

    def emit(self, event: DomainEvent) -> None:
        """Schedule delivery of *event* without waiting for handlers."""
        if not self._handlers.get(type(event)):
            logger.debug("No handlers for %s", type(event).__name__)
            return
        task = asyncio.get_running_loop().create_task(self.publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")
