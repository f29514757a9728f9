# ruff: noqa: N999
"""
Domain Layer

Contains pure playback-session logic organized by bounded contexts:
- shared/: Exceptions, messages, events and the TaskQueue primitive
- playback/: Items, repeat/advance value objects and the filter chain
"""

from discord_music_sessions.domain.shared.exceptions import DomainError
from discord_music_sessions.domain.shared.task_queue import TaskQueue

__all__ = [
    "DomainError",
    "TaskQueue",
]
