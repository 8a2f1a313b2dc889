"""Reusable Pydantic Annotated types for domain-wide validation.

Constrained types are defined here once so models can simply annotate
their fields::

    from voice_dj.domain.shared.types import NonEmptyStr, VolumeFloat

    class MyModel(BaseModel):
        submitter: NonEmptyStr
        volume: VolumeFloat
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field

# ── Numeric constraints ─────────────────────────────────────────────

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0."""

PositiveInt = Annotated[int, Field(gt=0)]
"""Integer > 0."""

NonNegativeFloat = Annotated[float, Field(ge=0.0)]
"""Float >= 0.0."""

UnitInterval = Annotated[float, Field(ge=0.0, le=1.0)]
"""Float in [0.0, 1.0], used for skip ratios."""

VolumeFloat = Annotated[float, Field(ge=0.0, le=2.0)]
"""Audio volume multiplier in [0.0, 2.0]."""


# ── String constraints ──────────────────────────────────────────────

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""String with at least one character."""

TrackTitleStr = Annotated[str, Field(min_length=1, max_length=500)]
"""Track title: 1-500 characters."""

HttpUrlStr = Annotated[str, Field(pattern=r"^https?://")]
"""String that starts with http:// or https://."""

CommandPrefixStr = Annotated[str, Field(min_length=1, max_length=5)]
"""Chat command prefix: 1-5 characters."""

AliasStr = Annotated[str, Field(min_length=1, max_length=32, pattern=r"^\S+$")]
"""Command alias: a single whitespace-free token."""


# ── Size and time constraints ───────────────────────────────────────

FileBytes = Annotated[int, Field(ge=0)]
"""File size in bytes: >= 0."""

BYTES_PER_MB: int = 1024 * 1024
"""1 mebibyte = 1 048 576 bytes."""

DurationSeconds = Annotated[int, Field(ge=0, le=86_400)]
"""Track duration in seconds: 0 … 86 400 (24 hours)."""

DurationLimitSeconds = Annotated[int, Field(ge=0)]
"""Upper bound on track duration in seconds; 0 disables the limit."""

PlaylistLimit = Annotated[int, Field(ge=0, le=1000)]
"""Maximum tracks queued per playlist; 0 disables the limit."""
