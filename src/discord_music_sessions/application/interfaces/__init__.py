"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from discord_music_sessions.application.interfaces.item_resolver import (
    ItemResolver,
    RelatedItemProvider,
    StreamLocator,
)
from discord_music_sessions.application.interfaces.voice_transport import (
    AudioResource,
    DisconnectReason,
    VoiceConnection,
    VoiceStatus,
    VoiceTransport,
)

__all__ = [
    "ItemResolver",
    "StreamLocator",
    "RelatedItemProvider",
    "VoiceTransport",
    "VoiceConnection",
    "AudioResource",
    "VoiceStatus",
    "DisconnectReason",
]
