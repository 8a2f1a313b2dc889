"""
Cache Bounded Context

Reference-counted entries for downloaded audio files.
"""

from voice_dj.domain.cache.entities import CacheEntry

__all__ = [
    "CacheEntry",
]
