"""
Tests for YtDlpResolver

Tests for:
- YtDlpInfo coercion of raw info dicts
- Resolving URLs, playlists and search queries
- Attaching stream URLs right before playback
- Finding related items for autoplay
"""

from unittest.mock import MagicMock, patch

import pytest

from conftest import make_item
from discord_music_sessions.config.settings import AudioSettings
from discord_music_sessions.domain.playback.entities import PlayableItem, Playlist
from discord_music_sessions.domain.shared.exceptions import NoStreamUrlError, ResolutionError
from discord_music_sessions.infrastructure.audio.ytdlp_resolver import YtDlpInfo, YtDlpResolver


def _video(video_id: str, **extra) -> dict:
    info = {
        "id": video_id,
        "title": f"Video {video_id}",
        "webpage_url": f"https://www.youtube.com/watch?v={video_id}",
        "url": f"https://media.example.com/{video_id}.webm",
        "duration": 200,
    }
    info.update(extra)
    return info


@pytest.fixture
def responses():
    """Maps a query to the info dict ``extract_info`` returns for it."""
    return {}


@pytest.fixture
def ydl_calls():
    return []


@pytest.fixture(autouse=True)
def fake_youtube_dl(responses, ydl_calls):
    def factory(params):
        ydl = MagicMock()

        def extract_info(query, download=False):
            ydl_calls.append((query, dict(params)))
            response = responses.get(query)
            if isinstance(response, Exception):
                raise response
            return response

        ydl.extract_info.side_effect = extract_info
        ydl.__enter__.return_value = ydl
        ydl.__exit__.return_value = False
        return ydl

    with patch(
        "discord_music_sessions.infrastructure.audio.ytdlp_resolver.YoutubeDL",
        side_effect=lambda params: factory(params),
    ):
        yield


@pytest.fixture
def resolver():
    return YtDlpResolver(AudioSettings(related_search_limit=3))


class TestYtDlpInfo:
    def test_blank_strings_become_none(self):
        info = YtDlpInfo.model_validate({"id": " ", "url": "", "title": ""})

        assert info.id is None
        assert info.url is None
        assert info.title == "Unknown Title"

    @pytest.mark.parametrize("raw,expected", [("120", 120), (99.7, 99), (None, None), (-5, None), (10**6, None)])
    def test_duration_coercion(self, raw, expected):
        assert YtDlpInfo.model_validate({"duration": raw}).duration == expected

    def test_stream_url_falls_back_to_audio_formats(self):
        info = YtDlpInfo.model_validate(
            {
                "entries": [],
                "formats": [
                    {"acodec": "none", "url": "https://video-only"},
                    {"acodec": "opus", "url": "https://audio-low"},
                    {"acodec": "opus", "url": "https://audio-high"},
                ],
            }
        )

        assert info.stream_url == "https://audio-high"

    def test_page_url_prefers_webpage_url(self):
        info = YtDlpInfo.model_validate(_video("a"))

        assert info.page_url == "https://www.youtube.com/watch?v=a"


class TestResolve:
    async def test_resolve_url(self, resolver, responses):
        url = "https://www.youtube.com/watch?v=abc"
        responses[url] = _video("abc")

        item = await resolver.resolve(url)

        assert isinstance(item, PlayableItem)
        assert item.id == "abc"
        assert item.title == "Video abc"
        assert item.duration_seconds == 200
        assert item.stream_url == "https://media.example.com/abc.webm"

    async def test_resolve_playlist_is_flat(self, resolver, responses, ydl_calls):
        url = "https://www.youtube.com/playlist?list=PL1"
        responses[url] = {
            "id": "PL1",
            "title": "My Mix",
            "webpage_url": url,
            "entries": [
                {"id": "a", "title": "A", "url": "https://www.youtube.com/watch?v=a"},
                {"id": "b", "title": "B", "url": "https://www.youtube.com/watch?v=b"},
                {"id": "c", "title": "broken"},
            ],
        }

        result = await resolver.resolve(url)

        assert isinstance(result, Playlist)
        assert result.name == "My Mix"
        assert [item.id for item in result.items] == ["a", "b"]
        assert all(item.stream_url is None for item in result.items)
        _, params = ydl_calls[0]
        assert params["extract_flat"] == "in_playlist"
        assert params["noplaylist"] is False

    async def test_resolve_search(self, resolver, responses):
        responses["ytsearch1:lofi beats"] = {"entries": [_video("lofi")]}

        item = await resolver.resolve("lofi beats")

        assert item.id == "lofi"

    async def test_resolve_nothing_found(self, resolver, responses):
        responses["ytsearch1:zzz"] = {"entries": []}

        with pytest.raises(ResolutionError, match="No result found"):
            await resolver.resolve("zzz")

    async def test_extraction_failure_is_resolution_error(self, resolver, responses):
        url = "https://www.youtube.com/watch?v=gone"
        responses[url] = RuntimeError("Video unavailable")

        with pytest.raises(ResolutionError):
            await resolver.resolve(url)

    async def test_empty_playlist(self, resolver, responses):
        url = "https://www.youtube.com/playlist?list=EMPTY"
        responses[url] = {"id": "EMPTY", "title": "Empty", "entries": [{"title": "no url"}]}

        with pytest.raises(ResolutionError, match="at least one item"):
            await resolver.resolve(url)

    async def test_item_without_id_gets_hashed_id(self, resolver, responses):
        url = "https://example.com/stream.mp3"
        responses[url] = {"title": "Radio", "url": url}

        item = await resolver.resolve(url)

        assert len(item.id) == 16


class TestAttachStreamInfo:
    async def test_attaches_stream_url(self, resolver, responses):
        item = make_item("abc")
        responses[item.url] = _video("abc")

        streamed = await resolver.attach_stream_info(item)

        assert streamed.stream_url == "https://media.example.com/abc.webm"
        assert streamed.id == item.id
        assert item.stream_url is None

    async def test_flat_item_learns_related_on_attach(self, resolver, responses):
        item = make_item("abc")
        responses[item.url] = _video("abc", related_videos=[{"id": "r1"}])

        streamed = await resolver.attach_stream_info(item)

        assert streamed.related == ("https://www.youtube.com/watch?v=r1",)

    async def test_no_stream_url(self, resolver, responses):
        item = make_item("abc")
        responses[item.url] = {"id": "abc", "title": "x", "entries": []}

        with pytest.raises(NoStreamUrlError):
            await resolver.attach_stream_info(item)


class TestRelated:
    async def test_prefers_item_candidates(self, resolver, responses):
        candidate = "https://www.youtube.com/watch?v=next"
        responses[candidate] = _video("next")
        item = make_item("abc", related=(candidate,))

        related = await resolver.related(item)

        assert related.id == "next"

    async def test_resolved_item_carries_related_candidates(self, resolver, responses):
        url = "https://www.youtube.com/watch?v=abc"
        responses[url] = _video(
            "abc",
            related_videos=[
                {"id": "r1", "url": "https://www.youtube.com/watch?v=r1"},
                {"id": "r2"},
                {"title": "no id or url"},
                "garbage",
            ],
        )

        item = await resolver.resolve(url)

        assert item.related == (
            "https://www.youtube.com/watch?v=r1",
            "https://www.youtube.com/watch?v=r2",
        )

    async def test_related_uses_candidates_from_resolve(self, resolver, responses, ydl_calls):
        url = "https://www.youtube.com/watch?v=abc"
        candidate = "https://www.youtube.com/watch?v=r1"
        responses[url] = _video("abc", related_videos=[{"id": "r1", "url": candidate}])
        responses[candidate] = _video("r1")
        item = await resolver.resolve(url)

        related = await resolver.related(item)

        assert related.id == "r1"
        assert not any(query.startswith("ytsearch") for query, _ in ydl_calls)

    async def test_falls_back_to_search_and_excludes_ids(self, resolver, responses, ydl_calls):
        item = make_item("abc")
        responses["ytsearch3:Song abc"] = {
            "entries": [
                {"id": "abc", "title": "same", "url": "https://www.youtube.com/watch?v=abc"},
                {"id": "old", "title": "heard", "url": "https://www.youtube.com/watch?v=old"},
                {"id": "new", "title": "fresh", "url": "https://www.youtube.com/watch?v=new"},
            ]
        }

        related = await resolver.related(item, exclude_ids={"old"})

        assert related.id == "new"
        assert ydl_calls[-1][0] == "ytsearch3:Song abc"

    async def test_nothing_related(self, resolver, responses):
        responses["ytsearch3:Song abc"] = {"entries": []}

        assert await resolver.related(make_item("abc")) is None
