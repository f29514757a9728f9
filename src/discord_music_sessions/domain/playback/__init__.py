"""
Playback Bounded Context

Items, value objects and the audio-filter chain that a playback session
is built from.
"""

from discord_music_sessions.domain.playback.entities import (
    HistoryEntry,
    ItemStub,
    PlayableItem,
    Playlist,
)
from discord_music_sessions.domain.playback.filters import DEFAULT_FILTERS, Filter, FilterChain
from discord_music_sessions.domain.playback.value_objects import (
    AdvanceReason,
    Direction,
    PlaybackState,
    RepeatMode,
    VoiceTarget,
)

__all__ = [
    "PlayableItem",
    "ItemStub",
    "Playlist",
    "HistoryEntry",
    "Filter",
    "FilterChain",
    "DEFAULT_FILTERS",
    "AdvanceReason",
    "Direction",
    "PlaybackState",
    "RepeatMode",
    "VoiceTarget",
]
