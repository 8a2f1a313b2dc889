"""Application services."""

from voice_dj.application.services.playback_controller import PlaybackController, SkipOutcome

__all__ = [
    "PlaybackController",
    "SkipOutcome",
]
