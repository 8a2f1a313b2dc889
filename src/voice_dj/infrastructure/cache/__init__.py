"""On-disk audio cache."""

from voice_dj.infrastructure.cache.file_cache import AUDIO_SUFFIXES, AudioCache

__all__ = [
    "AUDIO_SUFFIXES",
    "AudioCache",
]
