"""Port interface for the audio streaming engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

FinishedCallback = Callable[[Exception | None], None]
"""Called exactly once per playback start, possibly from a non-event-loop thread."""


class AudioEngine(ABC):
    """Interface for streaming a local audio file into the voice channel."""

    @abstractmethod
    async def start_playback(
        self, path: Path, volume: float, on_finished: FinishedCallback
    ) -> None:
        """Start playing ``path`` at ``volume``.

        Raises:
            EngineError: playback could not be started; ``on_finished``
                will not be called.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the current playback; the pending ``on_finished`` still fires."""
        ...

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        """Apply a new volume to the playback in progress, if any."""
        ...

    @abstractmethod
    def is_playing(self) -> bool:
        ...
