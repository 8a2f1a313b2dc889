"""Core domain entities for the music bounded context."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from voice_dj.domain.music.value_objects import TrackIdField
from voice_dj.domain.shared.types import (
    DurationSeconds,
    HttpUrlStr,
    NonEmptyStr,
    TrackTitleStr,
)


class Track(BaseModel):
    """Immutable value object representing a queued or playing track."""

    model_config = ConfigDict(frozen=True, strict=True)

    id: TrackIdField
    title: TrackTitleStr
    url: HttpUrlStr
    duration_seconds: DurationSeconds = 0
    submitter: NonEmptyStr
    comment: str = ""

    # Empty when the track was not submitted as part of a playlist.
    playlist_id: str = ""
    playlist_title: str = ""

    @property
    def duration_formatted(self) -> str:
        """Format duration as MM:SS or HH:MM:SS."""
        if not self.duration_seconds:
            return "Unknown"

        hours, remainder = divmod(self.duration_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)

        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"

    @property
    def display_title(self) -> str:
        """Get display title with duration if available."""
        if self.duration_seconds:
            return f"{self.title} [{self.duration_formatted}]"
        return self.title

    @property
    def in_playlist(self) -> bool:
        return bool(self.playlist_id)

    def with_comment(self, comment: str) -> Track:
        return self.model_copy(update={"comment": comment})

    def was_submitted_by(self, name: str) -> bool:
        return self.submitter == name

    def exceeds_duration(self, limit_seconds: int) -> bool:
        """True when a non-zero limit is set and this track is longer."""
        return limit_seconds > 0 and self.duration_seconds > limit_seconds
