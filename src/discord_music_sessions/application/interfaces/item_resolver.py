"""Port interfaces for turning identifiers into playable items."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection
from typing import TYPE_CHECKING

from discord_music_sessions.domain.shared.types import NonEmptyStr

if TYPE_CHECKING:
    from ...domain.playback.entities import PlayableItem, Playlist


class ItemResolver(ABC):
    """Interface for resolving URLs and search queries to items or playlists."""

    @abstractmethod
    async def resolve(self, identifier: NonEmptyStr) -> "PlayableItem | Playlist":
        """Resolve *identifier*; raise ``ResolutionError`` when nothing matches."""
        ...


class StreamLocator(ABC):
    """Interface for attaching a fresh stream URL just before playback."""

    @abstractmethod
    async def attach_stream_info(self, item: "PlayableItem") -> "PlayableItem":
        """Return a copy of *item* whose ``stream_url`` is populated."""
        ...


class RelatedItemProvider(ABC):
    """Interface for finding a continuation item when autoplay is on."""

    @abstractmethod
    async def related(
        self, item: "PlayableItem", exclude_ids: Collection[str] = ()
    ) -> "PlayableItem | None":
        """Return an item related to *item* whose id is not in *exclude_ids*."""
        ...
