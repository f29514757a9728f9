"""Playable items and the history stubs that stand in for them."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from discord_music_sessions.domain.shared.datetime_utils import format_duration
from discord_music_sessions.domain.shared.messages import ErrorMessages
from discord_music_sessions.domain.shared.types import (
    DiscordSnowflake,
    DurationSeconds,
    HttpUrlStr,
    NonEmptyStr,
    TitleStr,
)


class PlayableItem(BaseModel):
    """Immutable unit of playback.

    Only the stream locator changes after queueing, and it does so by
    replacing the queue slot with a copy (see ``with_stream_url``).
    """

    model_config = ConfigDict(frozen=True)

    id: NonEmptyStr
    title: TitleStr
    url: HttpUrlStr
    duration_seconds: DurationSeconds = 0
    is_live: bool = False
    stream_url: HttpUrlStr | None = None
    thumbnail_url: HttpUrlStr | None = None

    # Continuation candidates (identifiers or URLs) supplied by the resolver
    related: tuple[NonEmptyStr, ...] = ()

    # Request metadata
    requested_by_id: DiscordSnowflake | None = None
    requested_by_name: NonEmptyStr | None = None

    @field_validator("id")
    @classmethod
    def _strip_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError(ErrorMessages.EMPTY_ITEM_ID)
        return v

    @property
    def formatted_duration(self) -> str:
        if self.is_live:
            return "Live"
        return format_duration(self.duration_seconds)

    @property
    def display_title(self) -> str:
        if self.duration_seconds or self.is_live:
            return f"{self.title} [{self.formatted_duration}]"
        return self.title

    @property
    def is_seekable(self) -> bool:
        return not self.is_live and self.duration_seconds > 0

    def with_stream_url(self, stream_url: str) -> PlayableItem:
        return self.model_copy(update={"stream_url": stream_url})

    def without_stream_url(self) -> PlayableItem:
        return self.model_copy(update={"stream_url": None})

    def stub(self) -> ItemStub:
        return ItemStub(id=self.id)

    def __str__(self) -> str:
        return self.title


class ItemStub(BaseModel):
    """Identity-only history entry kept when full history retention is off."""

    model_config = ConfigDict(frozen=True)

    id: NonEmptyStr

    def __str__(self) -> str:
        return self.id


class Playlist(BaseModel):
    """Named, ordered batch of items resolved from a single identifier."""

    model_config = ConfigDict(frozen=True)

    name: NonEmptyStr
    url: HttpUrlStr | None = None
    items: tuple[PlayableItem, ...] = Field(min_length=1)

    @property
    def duration_seconds(self) -> int:
        return sum(item.duration_seconds for item in self.items)

    def __len__(self) -> int:
        return len(self.items)


HistoryEntry = PlayableItem | ItemStub
