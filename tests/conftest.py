import asyncio
from collections.abc import Callable, Collection, Sequence
from typing import Any

import pytest

from discord_music_sessions.application.interfaces.item_resolver import (
    ItemResolver,
    RelatedItemProvider,
    StreamLocator,
)
from discord_music_sessions.application.interfaces.voice_transport import (
    AfterCallback,
    AudioResource,
    DisconnectReason,
    StateListener,
    VoiceConnection,
    VoiceStatus,
    VoiceTransport,
)
from discord_music_sessions.config.settings import AudioSettings, PlaybackSettings, VoiceSettings
from discord_music_sessions.domain.playback.entities import PlayableItem, Playlist
from discord_music_sessions.domain.playback.value_objects import VoiceTarget
from discord_music_sessions.domain.shared import events as ev
from discord_music_sessions.domain.shared.exceptions import NoStreamUrlError, ResolutionError

GUILD_ID = 111
CHANNEL_ID = 222

# ============================================================================
# Transport Fakes
# ============================================================================


class FakeAudioResource(AudioResource):
    """In-memory audio resource; tests move ``playback_duration`` by hand."""

    def __init__(self, stream_url: str, filter_args: Sequence[str] = (), seek: float | None = None):
        self.stream_url = stream_url
        self.filter_args = list(filter_args)
        self.seek = seek
        self.elapsed = 0.0
        self.gain: float | None = None
        self.error_listener: Callable[[BaseException], None] | None = None
        self.cleaned_up = False

    @property
    def playback_duration(self) -> float:
        return self.elapsed

    def set_gain(self, gain: float) -> None:
        self.gain = gain

    def set_error_listener(self, listener: Callable[[BaseException], None]) -> None:
        self.error_listener = listener

    def cleanup(self) -> None:
        self.cleaned_up = True

    def fail(self, error: BaseException) -> None:
        assert self.error_listener is not None
        self.error_listener(error)


class FakeConnection(VoiceConnection):
    """Voice connection driven by the test instead of a gateway."""

    def __init__(self, channel_id: int, *, ready: bool = True):
        self._channel_id = channel_id
        self._status = VoiceStatus.READY if ready else VoiceStatus.CONNECTING
        self._changed = asyncio.Event()
        self._listener: StateListener | None = None

        self.played: list[AudioResource] = []
        self._after: AfterCallback | None = None
        self.stop_calls = 0
        self.paused = False
        self.resume_calls = 0
        self.rejoin_calls = 0
        self.rejoin_error: BaseException | None = None
        self.ready_on_rejoin = False
        self.destroyed = False

    @property
    def channel_id(self) -> int:
        return self._channel_id

    @property
    def status(self) -> VoiceStatus:
        return self._status

    @property
    def current(self) -> AudioResource | None:
        return self.played[-1] if self.played and self._after else None

    def set_state_listener(self, listener: StateListener) -> None:
        self._listener = listener

    def set_status(self, status: VoiceStatus, reason: DisconnectReason | None = None) -> None:
        self._status = status
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        if self._listener is not None:
            self._listener(status, reason)

    async def wait_for(self, *statuses: VoiceStatus, timeout: float) -> None:
        async with asyncio.timeout(timeout):
            while self._status not in statuses:
                await self._changed.wait()

    async def rejoin(self) -> None:
        self.rejoin_calls += 1
        if self.rejoin_error is not None:
            raise self.rejoin_error
        if self.ready_on_rejoin:
            self.set_status(VoiceStatus.READY)

    async def destroy(self) -> None:
        self.destroyed = True
        self.set_status(VoiceStatus.DESTROYED)

    def play(self, resource: AudioResource, after: AfterCallback) -> None:
        # The player ends the previous source before starting a new one
        self._end(None)
        self.played.append(resource)
        self._after = after
        self.paused = False

    def stop(self) -> None:
        self.stop_calls += 1
        self._end(None)

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.resume_calls += 1
        self.paused = False

    def is_paused(self) -> bool:
        return self.paused

    def finish(self, error: BaseException | None = None) -> None:
        """Simulate the player reaching the end of the current resource."""
        self._end(error)

    def _end(self, error: BaseException | None) -> None:
        after, self._after = self._after, None
        if after is not None:
            after(error)


class FakeTransport(VoiceTransport):
    def __init__(self):
        self.connections: list[FakeConnection] = []
        self.resources: list[FakeAudioResource] = []
        self.auto_ready = True
        self.join_error: BaseException | None = None
        self.resource_error: BaseException | None = None

    @property
    def connection(self) -> FakeConnection:
        return self.connections[-1]

    @property
    def resource(self) -> FakeAudioResource:
        return self.resources[-1]

    async def join(self, target: VoiceTarget) -> VoiceConnection:
        if self.join_error is not None:
            raise self.join_error
        connection = FakeConnection(target.channel_id, ready=self.auto_ready)
        self.connections.append(connection)
        return connection

    def create_audio_resource(
        self,
        stream_url: str,
        *,
        filter_args: Sequence[str] = (),
        seek: float | None = None,
    ) -> AudioResource:
        if self.resource_error is not None:
            raise self.resource_error
        resource = FakeAudioResource(stream_url, filter_args, seek)
        self.resources.append(resource)
        return resource


# ============================================================================
# Resolver Fakes
# ============================================================================


class FakeStreamLocator(StreamLocator):
    def __init__(self):
        self.failing: set[str] = set()
        self.calls: list[str] = []

    async def attach_stream_info(self, item: PlayableItem) -> PlayableItem:
        self.calls.append(item.id)
        if item.id in self.failing:
            raise NoStreamUrlError(item.title)
        return item.with_stream_url(f"https://stream.example.com/{item.id}")


class FakeRelatedProvider(RelatedItemProvider):
    def __init__(self):
        self.candidates: list[PlayableItem] = []
        self.error: BaseException | None = None
        self.excluded: list[set[str]] = []

    async def related(
        self, item: PlayableItem, exclude_ids: Collection[str] = ()
    ) -> PlayableItem | None:
        self.excluded.append(set(exclude_ids))
        if self.error is not None:
            raise self.error
        for candidate in self.candidates:
            if candidate.id not in exclude_ids:
                return candidate
        return None


class FakeResolver(ItemResolver):
    def __init__(self):
        self.results: dict[str, PlayableItem | Playlist] = {}

    async def resolve(self, identifier: str) -> PlayableItem | Playlist:
        try:
            return self.results[identifier]
        except KeyError:
            raise ResolutionError(f"No result found for {identifier!r}") from None


class EventRecorder:
    """Subscribes to every session event and keeps them in arrival order."""

    EVENT_TYPES = (
        ev.SessionCreated,
        ev.SessionDeleted,
        ev.ItemAdded,
        ev.NowPlaying,
        ev.ItemFinished,
        ev.QueueFinished,
        ev.NoRelated,
        ev.Disconnected,
        ev.PlaybackErrorOccurred,
    )

    def __init__(self, bus: ev.EventBus):
        self.events: list[ev.DomainEvent] = []
        for event_type in self.EVENT_TYPES:
            bus.subscribe(event_type, self._record)

    async def _record(self, event: ev.DomainEvent) -> None:
        self.events.append(event)

    def of(self, event_type: type[ev.DomainEvent]) -> list[Any]:
        return [e for e in self.events if isinstance(e, event_type)]


# ============================================================================
# Domain Fixtures
# ============================================================================


def make_item(item_id: str, duration: int = 180, **kwargs: Any) -> PlayableItem:
    return PlayableItem(
        id=item_id,
        title=f"Song {item_id}",
        url=f"https://example.com/watch?v={item_id}",
        duration_seconds=duration,
        **kwargs,
    )


@pytest.fixture
def items():
    """Five queued items with ids A..E."""
    return [make_item(i) for i in "ABCDE"]


@pytest.fixture
def target():
    return VoiceTarget(GUILD_ID, CHANNEL_ID)


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def voice_settings():
    return VoiceSettings(
        connect_timeout_s=0.2,
        reconnect_max_attempts=5,
        reconnect_backoff_s=0.0,
        channel_move_grace_s=0.05,
    )


@pytest.fixture
def playback_settings():
    return PlaybackSettings()


@pytest.fixture
def audio_settings():
    return AudioSettings(custom_filters={"slow": "atempo=0.8"})


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def stream_locator():
    return FakeStreamLocator()


@pytest.fixture
def related_provider():
    return FakeRelatedProvider()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def event_bus():
    return ev.EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def make_manager(
    transport,
    event_bus,
    stream_locator,
    related_provider,
    resolver,
    playback_settings,
    voice_settings,
    audio_settings,
):
    """Build a SessionManager over the fakes, optionally with other playback settings."""
    from discord_music_sessions.application.services.session_manager import SessionManager

    def factory(**playback_overrides: Any) -> SessionManager:
        settings = playback_settings.model_copy(update=playback_overrides)
        return SessionManager(
            transport=transport,
            event_bus=event_bus,
            stream_locator=stream_locator,
            resolver=resolver,
            related_provider=related_provider,
            playback_settings=settings,
            voice_settings=voice_settings,
            audio_settings=audio_settings,
        )

    return factory


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def settle(event_bus):
    """Let audio callbacks, voice signal handlers and event deliveries run to completion."""

    async def _settle(*voices: Any, rounds: int = 5) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)
            for voice in voices:
                await voice.wait_idle()
            await event_bus.drain()

    return _settle
