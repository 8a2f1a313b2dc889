"""
Music Bounded Context

Domain logic for tracks, the song queue and playback state.
"""

from voice_dj.domain.music.entities import Track
from voice_dj.domain.music.song_queue import PlaylistEnqueueResult, SongQueue
from voice_dj.domain.music.value_objects import PlaybackState, TrackFinishReason, TrackId

__all__ = [
    # Entities
    "Track",
    "SongQueue",
    "PlaylistEnqueueResult",
    # Value Objects
    "TrackId",
    "PlaybackState",
    "TrackFinishReason",
]
