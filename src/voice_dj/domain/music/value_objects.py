"""Immutable value objects for the music bounded context."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Final

from pydantic import PlainSerializer, PlainValidator

from voice_dj.domain.shared.messages import ErrorMessages

HASH_ID_LENGTH: Final[int] = 16

YOUTUBE_ID_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([a-zA-Z0-9_-]{11})"),
]


@dataclass(frozen=True)
class TrackId:
    """Stable track identifier, also used as the cache key and file stem."""

    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise ValueError(ErrorMessages.EMPTY_TRACK_ID)

    def __str__(self) -> str:
        return self.value

    def __hash__(self) -> int:
        return hash(self.value)

    @classmethod
    def from_url(cls, url: str) -> TrackId:
        """Derive an id from a source URL: the YouTube video id, else a URL hash."""
        for pattern in YOUTUBE_ID_PATTERNS:
            match = pattern.search(url)
            if match:
                return cls(match.group(1))

        return cls(hashlib.sha256(url.encode()).hexdigest()[:HASH_ID_LENGTH])


# Serializes as plain string in JSON, stores as TrackId in the model.
TrackIdField = Annotated[
    TrackId,
    PlainValidator(lambda v: TrackId(v) if isinstance(v, str) else v),
    PlainSerializer(lambda v: v.value, return_type=str),
]


class PlaybackState(Enum):
    """Playback state with enforced transitions.

    State transitions:
    - IDLE -> FETCHING (queue became non-empty)
    - FETCHING -> PLAYING (audio ready, engine started)
    - FETCHING -> FETCHING (fetch failed, trying the next track)
    - FETCHING -> IDLE (fetch failed and the queue is empty)
    - PLAYING -> STOPPING (skip accepted)
    - PLAYING / STOPPING -> FETCHING | IDLE (track finished)
    - Any -> IDLE (shutdown)
    """

    IDLE = "idle"
    FETCHING = "fetching"
    PLAYING = "playing"
    STOPPING = "stopping"

    def can_transition_to(self, target: PlaybackState) -> bool:
        """Check if transition to target state is valid."""
        if target == PlaybackState.IDLE:
            return True

        valid_transitions = {
            PlaybackState.IDLE: {PlaybackState.FETCHING},
            PlaybackState.FETCHING: {PlaybackState.PLAYING, PlaybackState.FETCHING},
            PlaybackState.PLAYING: {PlaybackState.STOPPING, PlaybackState.FETCHING},
            PlaybackState.STOPPING: {PlaybackState.FETCHING},
        }
        return target in valid_transitions.get(self, set())

    @property
    def is_active(self) -> bool:
        return self in {PlaybackState.PLAYING, PlaybackState.STOPPING}

    @property
    def is_playing(self) -> bool:
        return self == PlaybackState.PLAYING


class TrackFinishReason(Enum):
    """Reasons a track can finish playing."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    STOPPED = "stopped"
