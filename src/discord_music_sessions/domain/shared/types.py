"""Annotated pydantic types shared by domain models and events.

Models annotate fields with these instead of repeating ``Field`` bounds::

    class ItemAdded(DomainEvent):
        guild_id: DiscordSnowflake
        item_count: NonNegativeInt
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BeforeValidator, Field

# ── Numbers ─────────────────────────────────────────────────────────

DiscordSnowflake = Annotated[int, Field(gt=0, lt=2**64)]
"""Guild, channel or user id (1 … 2^64-1)."""

NonNegativeInt = Annotated[int, Field(ge=0)]

PositiveInt = Annotated[int, Field(gt=0)]

DurationSeconds = Annotated[int, Field(ge=0, le=86_400)]
"""Whole seconds up to a day; 0 for live or unknown length."""


# ── Strings ─────────────────────────────────────────────────────────

NonEmptyStr = Annotated[str, Field(min_length=1)]

TitleStr = Annotated[str, Field(min_length=1, max_length=500)]

HttpUrlStr = Annotated[str, Field(pattern=r"^https?://")]
"""Absolute http(s) locator of a page or media stream."""


# ── Datetimes ───────────────────────────────────────────────────────

def _require_aware(v: datetime) -> datetime:
    if v.tzinfo is None:
        raise ValueError("naive datetime; pass a timezone-aware value")
    return v.astimezone(UTC)


UtcDatetimeField = Annotated[datetime, BeforeValidator(_require_aware)]
"""Aware datetime converted to UTC."""
