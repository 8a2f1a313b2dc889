"""
Shared Domain Kernel

Contains exceptions and types shared across all bounded contexts.
"""

from voice_dj.domain.shared.exceptions import (
    CacheIOError,
    DomainError,
    EngineError,
    FetchError,
    InvalidOperationError,
    PermissionDeniedError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "FetchError",
    "CacheIOError",
    "PermissionDeniedError",
    "EngineError",
    "InvalidOperationError",
]
