"""Bookkeeping for downloaded audio files kept on disk."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from voice_dj.domain.shared.types import FileBytes, NonEmptyStr, NonNegativeFloat, NonNegativeInt


class CacheEntry(BaseModel):
    """One cached audio file, keyed by track id.

    ``ref_count`` counts the queue/playback slots currently holding the
    file; an entry is only evictable while it is zero.
    """

    key: NonEmptyStr
    path: Path
    size_bytes: FileBytes
    last_accessed_at: NonNegativeFloat
    ref_count: NonNegativeInt = 0

    @property
    def is_evictable(self) -> bool:
        return self.ref_count == 0

    def age(self, now: float) -> float:
        return max(0.0, now - self.last_accessed_at)

    def touch(self, now: float) -> None:
        self.last_accessed_at = now

    def acquire(self, now: float) -> None:
        self.ref_count += 1
        self.touch(now)

    def release(self) -> int:
        self.ref_count = max(0, self.ref_count - 1)
        return self.ref_count
