"""Base exception classes for domain-level errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when a submission breaks a configured limit (duration, playlist size, duplicate)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class FetchError(DomainError):
    """Raised when a track's audio could not be downloaded or transcoded."""

    def __init__(self, track_title: str, reason: str | None = None) -> None:
        msg = f"Could not fetch '{track_title}'"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg, code="FETCH_ERROR")
        self.track_title = track_title
        self.reason = reason


class CacheIOError(DomainError):
    """Raised when the on-disk cache cannot be read or written."""

    def __init__(self, path: str, message: str | None = None) -> None:
        msg = message or f"Cache I/O failure on '{path}'"
        super().__init__(msg, code="CACHE_IO_ERROR")
        self.path = path


class PermissionDeniedError(DomainError):
    """Raised when a user invokes a command they are not allowed to run."""

    def __init__(self, command: str, user: str, message: str | None = None) -> None:
        msg = message or f"{user} is not allowed to use '{command}'"
        super().__init__(msg, code="PERMISSION_DENIED")
        self.command = command
        self.user = user


class EngineError(DomainError):
    """Raised when the audio engine refuses to start playback."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="ENGINE_ERROR")


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state
