"""Port interface for downloading track audio to disk."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from voice_dj.domain.shared.types import FileBytes

if TYPE_CHECKING:
    from ...config.settings import DownloadSettings
    from ...domain.music.entities import Track


class DownloadedAudio(BaseModel):
    """A finished download ready to hand to the audio engine."""

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: FileBytes


class TrackDownloader(ABC):
    """Interface for fetching and transcoding a track into a playable file."""

    @abstractmethod
    async def fetch(self, track: "Track", destination_dir: Path) -> DownloadedAudio:
        """Download ``track`` into ``destination_dir``.

        Cancelling the awaiting task aborts the download and deletes any
        partial file.

        Raises:
            ValidationError: the track is longer than the configured limit.
            FetchError: the download or transcode failed.
        """
        ...

    def apply_settings(self, settings: "DownloadSettings", *, max_song_duration: int) -> None:
        """Adopt reloaded download settings. Implementations without options ignore them."""
        return None
