"""Port interface for resolving URLs into track metadata."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from voice_dj.domain.shared.types import NonEmptyStr

if TYPE_CHECKING:
    from ...domain.music.entities import Track


class TrackResolver(ABC):
    """Interface for turning a submitted URL into queueable tracks."""

    @abstractmethod
    async def resolve(self, url: NonEmptyStr, submitter: NonEmptyStr) -> list["Track"]:
        """Resolve a URL to one track, or to every entry of a playlist.

        Playlist entries share a ``playlist_id``. Returns an empty list
        when nothing playable was found.
        """
        ...

    @abstractmethod
    def is_url(self, query: NonEmptyStr) -> bool:
        ...

    @abstractmethod
    def is_playlist(self, url: NonEmptyStr) -> bool:
        ...
