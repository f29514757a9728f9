"""
Shared Domain Kernel

Contains exceptions, events and primitives shared across the package.
"""

from discord_music_sessions.domain.shared.exceptions import (
    BusinessRuleViolationError,
    DomainError,
    InvalidOperationError,
    ResolutionError,
    TransportError,
    ValidationError,
)
from discord_music_sessions.domain.shared.task_queue import TaskQueue

__all__ = [
    "DomainError",
    "ValidationError",
    "BusinessRuleViolationError",
    "InvalidOperationError",
    "TransportError",
    "ResolutionError",
    "TaskQueue",
]
