"""Ordered, named audio-filter chain attached to a playback session."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from discord_music_sessions.domain.shared.exceptions import InvalidFilterError
from discord_music_sessions.domain.shared.types import NonEmptyStr

if TYPE_CHECKING:
    from discord_music_sessions.domain.shared.task_queue import TaskQueue

logger = logging.getLogger(__name__)

DEFAULT_FILTERS: dict[str, str] = {
    "3d": "apulsator=hz=0.125",
    "bassboost": "bass=g=10",
    "echo": "aecho=0.8:0.9:1000:0.3",
    "flanger": "flanger",
    "gate": "agate",
    "haas": "haas",
    "karaoke": "stereotools=mlev=0.1",
    "nightcore": "asetrate=48000*1.25,aresample=48000,bass=g=5",
    "reverse": "areverse",
    "vaporwave": "asetrate=48000*0.8,aresample=48000,atempo=1.1",
    "mcompand": "mcompand",
    "phaser": "aphaser",
    "tremolo": "tremolo",
    "surround": "surround",
    "earwax": "earwax",
}


class Filter(BaseModel):
    """A named ffmpeg audio-filter specification."""

    model_config = ConfigDict(frozen=True)

    name: NonEmptyStr
    value: NonEmptyStr


FilterResolvable = str | Filter


class FilterChain:
    """Insertion-ordered mapping of filter name to ffmpeg filter spec.

    Every mutation runs under the owning session's ticket and then awaits
    ``reapply`` so the current item restarts from its elapsed offset with the
    new argument list.
    """

    def __init__(
        self,
        *,
        task_queue: TaskQueue,
        reapply: Callable[[], Awaitable[None]],
        registry: Mapping[str, str] | None = None,
    ) -> None:
        self._task_queue = task_queue
        self._reapply = reapply
        self._registry: dict[str, str] = {**DEFAULT_FILTERS, **(registry or {})}
        self._filters: dict[str, Filter] = {}

    # === Resolution ===

    def _resolve(self, filter: FilterResolvable) -> Filter:
        if isinstance(filter, Filter):
            return filter
        if isinstance(filter, str) and filter in self._registry:
            return Filter(name=filter, value=self._registry[filter])
        raise InvalidFilterError(filter)

    def _resolve_all(self, filters: FilterResolvable | Iterable[FilterResolvable]) -> list[Filter]:
        if isinstance(filters, str | Filter):
            return [self._resolve(filters)]
        return [self._resolve(f) for f in filters]

    @staticmethod
    def _name(filter: FilterResolvable) -> str:
        return filter.name if isinstance(filter, Filter) else filter

    # === Mutations ===

    async def add(
        self, filters: FilterResolvable | Iterable[FilterResolvable], override: bool = False
    ) -> FilterChain:
        """Enable one or more filters; existing ones are kept unless *override*."""
        resolved = self._resolve_all(filters)
        async with self._task_queue.ticket():
            for f in resolved:
                if f.name not in self._filters or override:
                    self._filters[f.name] = f
            await self._apply()
        return self

    async def remove(self, filters: FilterResolvable | Iterable[FilterResolvable]) -> FilterChain:
        """Disable one or more filters by name."""
        if isinstance(filters, str | Filter):
            names = [self._name(filters)]
        else:
            names = [self._name(f) for f in filters]
        async with self._task_queue.ticket():
            for name in names:
                self._filters.pop(name, None)
            await self._apply()
        return self

    async def set(self, filters: Iterable[FilterResolvable]) -> FilterChain:
        """Replace the whole chain, keeping the given order."""
        resolved = self._resolve_all(filters)
        async with self._task_queue.ticket():
            self._filters = {f.name: f for f in resolved}
            await self._apply()
        return self

    async def clear(self) -> FilterChain:
        return await self.set([])

    async def _apply(self) -> None:
        logger.debug("Filter chain is now %s", self.names)
        await self._reapply()

    # === Reads ===

    def has(self, filter: FilterResolvable) -> bool:
        return self._name(filter) in self._filters

    @property
    def names(self) -> list[str]:
        return list(self._filters)

    def values(self) -> list[str]:
        return [f.value for f in self._filters.values()]

    def to_argument_list(self) -> list[str]:
        """Filter specs in insertion order, ready to join into an ``-af`` chain."""
        return self.values()

    def __len__(self) -> int:
        return len(self._filters)

    def __str__(self) -> str:
        return ",".join(self.names)
