"""yt-dlp backed resolver, stream locator and related-items provider."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from collections.abc import Collection
from typing import Any, Final, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator
from yt_dlp import YoutubeDL

from discord_music_sessions.application.interfaces.item_resolver import (
    ItemResolver,
    RelatedItemProvider,
    StreamLocator,
)
from discord_music_sessions.config.settings import AudioSettings
from discord_music_sessions.domain.playback.entities import PlayableItem, Playlist
from discord_music_sessions.domain.shared.exceptions import NoStreamUrlError, ResolutionError
from discord_music_sessions.domain.shared.messages import ErrorMessages, LogTemplates
from discord_music_sessions.domain.shared.types import NonEmptyStr, PositiveInt

logger = logging.getLogger(__name__)

HASH_ID_LENGTH: Final[int] = 16
MAX_DURATION: Final[int] = 86_400

URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^https?://")
YOUTUBE_WATCH_URL: Final[str] = "https://www.youtube.com/watch?v={id}"


class YtDlpInfo(BaseModel):
    """The subset of a yt-dlp info dict that playback needs."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: NonEmptyStr | None = None
    title: NonEmptyStr = "Unknown Title"
    webpage_url: NonEmptyStr | None = None
    url: NonEmptyStr | None = None
    duration: int | None = None
    is_live: bool = False
    thumbnail: NonEmptyStr | None = None
    formats: list[dict[str, Any]] = Field(default_factory=list)
    related_videos: list[dict[str, Any]] = Field(default_factory=list)
    entries: list[YtDlpInfo] | None = None

    @field_validator("id", "webpage_url", "url", "thumbnail", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> str | None:
        if not isinstance(v, str) or not v.strip():
            return None
        return v

    @field_validator("related_videos", mode="before")
    @classmethod
    def _drop_malformed_related(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [video for video in v if isinstance(video, dict)]

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return "Unknown Title"
        return v

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, v: Any) -> int | None:
        try:
            value = int(v)
        except (TypeError, ValueError):
            return None
        return value if 0 <= value <= MAX_DURATION else None

    @field_validator("is_live", mode="before")
    @classmethod
    def _coerce_live(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("entries", mode="before")
    @classmethod
    def _drop_empty_entries(cls, v: Any) -> list[Any] | None:
        if v is None:
            return None
        return [entry for entry in v if isinstance(entry, dict)]

    @property
    def page_url(self) -> str | None:
        return self.webpage_url or (self.url if self.url and URL_PATTERN.match(self.url) else None)

    @property
    def related_urls(self) -> tuple[str, ...]:
        """Page URLs of the related videos yt-dlp reported, in its order."""
        urls: list[str] = []
        for video in self.related_videos:
            url = video.get("webpage_url") or video.get("url")
            if not (isinstance(url, str) and URL_PATTERN.match(url)):
                video_id = video.get("id")
                if not isinstance(video_id, str) or not video_id:
                    continue
                url = YOUTUBE_WATCH_URL.format(id=video_id)
            if url not in urls:
                urls.append(url)
        return tuple(urls)

    @property
    def stream_url(self) -> str | None:
        """Direct media URL, preferring the selected format over the raw format list."""
        if self.url and not self.entries:
            return self.url
        audio = [f for f in self.formats if f.get("acodec") not in (None, "none") and f.get("url")]
        return audio[-1]["url"] if audio else None


class YtDlpOpts(BaseModel):
    """Typed options passed to ``YoutubeDL``."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    noprogress: bool = True
    noplaylist: bool = True
    default_search: NonEmptyStr = "ytsearch"
    retries: PositiveInt = 3
    socket_timeout: PositiveInt = 10
    format: NonEmptyStr = "bestaudio/best"
    skip_download: bool = True
    extract_flat: NonEmptyStr | bool = False


def _item_id(info: YtDlpInfo, url: str) -> str:
    if info.id:
        return info.id
    return hashlib.sha256(url.encode()).hexdigest()[:HASH_ID_LENGTH]


class YtDlpResolver(ItemResolver, StreamLocator, RelatedItemProvider):
    """Resolves URLs and searches through yt-dlp.

    Playlists are extracted flat, so their items carry no stream URL until
    :meth:`attach_stream_info` runs right before playback.
    """

    def __init__(self, settings: AudioSettings | None = None) -> None:
        self._settings = settings or AudioSettings()
        self._opts = YtDlpOpts(format=self._settings.ytdlp_format)

    # === yt-dlp calls (blocking, run in a thread) ===

    def _extract_sync(self, query: str, **overrides: Any) -> YtDlpInfo | None:
        opts = self._opts.model_copy(update=overrides) if overrides else self._opts
        try:
            with YoutubeDL(params=cast(Any, opts.model_dump())) as ydl:
                data = ydl.extract_info(query, download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_EXTRACT, query)
            return None
        if not isinstance(data, dict):
            return None
        return YtDlpInfo.model_validate(dict(data))

    async def _extract(self, query: str, **overrides: Any) -> YtDlpInfo | None:
        return await asyncio.to_thread(self._extract_sync, query, **overrides)

    # === Conversion ===

    def _to_item(self, info: YtDlpInfo, *, with_stream: bool) -> PlayableItem | None:
        url = info.page_url
        if not url:
            return None
        return PlayableItem(
            id=_item_id(info, url),
            title=info.title[:500],
            url=url,
            duration_seconds=info.duration or 0,
            is_live=info.is_live,
            stream_url=info.stream_url if with_stream else None,
            related=info.related_urls,
            thumbnail_url=info.thumbnail if info.thumbnail and URL_PATTERN.match(info.thumbnail) else None,
        )

    # === ItemResolver ===

    async def resolve(self, identifier: str) -> PlayableItem | Playlist:
        logger.debug(LogTemplates.YTDLP_RESOLVING, identifier)
        if URL_PATTERN.match(identifier):
            info = await self._extract(identifier, noplaylist=False, extract_flat="in_playlist")
        else:
            search = await self._extract(f"ytsearch1:{identifier}")
            info = search.entries[0] if search and search.entries else None

        if info is None:
            raise ResolutionError(ErrorMessages.NO_RESULT.format(query=identifier))

        if info.entries is not None:
            items = [
                item
                for entry in info.entries
                if (item := self._to_item(entry, with_stream=False)) is not None
            ]
            if not items:
                raise ResolutionError(ErrorMessages.EMPTY_PLAYLIST)
            return Playlist(name=info.title, url=info.page_url, items=tuple(items))

        item = self._to_item(info, with_stream=True)
        if item is None:
            raise ResolutionError(ErrorMessages.NO_RESULT.format(query=identifier))
        return item

    # === StreamLocator ===

    async def attach_stream_info(self, item: PlayableItem) -> PlayableItem:
        info = await self._extract(item.url)
        stream_url = info.stream_url if info else None
        if not stream_url:
            logger.warning(LogTemplates.YTDLP_NO_STREAM_URL, item.title)
            raise NoStreamUrlError(item.title)
        streamed = item.with_stream_url(stream_url)
        if info is not None and not item.related and info.related_urls:
            # Flat playlist entries learn their related videos here.
            streamed = streamed.model_copy(update={"related": info.related_urls})
        return streamed

    # === RelatedItemProvider ===

    async def related(
        self, item: PlayableItem, exclude_ids: Collection[str] = ()
    ) -> PlayableItem | None:
        excluded = set(exclude_ids) | {item.id}

        for candidate in item.related:
            if candidate in excluded:
                continue
            try:
                resolved = await self.resolve(candidate)
            except ResolutionError:
                continue
            if isinstance(resolved, PlayableItem) and resolved.id not in excluded:
                return resolved

        logger.debug(LogTemplates.YTDLP_RELATED_SEARCH, item.title)
        limit = self._settings.related_search_limit
        search = await self._extract(f"ytsearch{limit}:{item.title}", extract_flat="in_playlist")
        for entry in (search.entries or []) if search else []:
            found = self._to_item(entry, with_stream=False)
            if found is not None and found.id not in excluded:
                return found
        return None
