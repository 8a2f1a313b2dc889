# ruff: noqa: N999
"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Cross-cutting exceptions, messages and annotated types
- music/: Track, queue and playback state
- voting/: Skip vote records and aggregation
- cache/: Cache entry bookkeeping
"""

from voice_dj.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
