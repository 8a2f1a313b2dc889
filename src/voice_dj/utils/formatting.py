"""Display helpers for chat replies."""

from __future__ import annotations

from voice_dj.domain.shared.types import BYTES_PER_MB


def format_duration(seconds: int) -> str:
    """Format seconds as M:SS or H:MM:SS."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_size(size_bytes: int) -> str:
    """Format a byte count in MiB with two decimals."""
    return f"{size_bytes / BYTES_PER_MB:.2f} MiB"


def format_volume(volume: float) -> str:
    return f"{volume:.2f}"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)] + "…"
