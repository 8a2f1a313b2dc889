"""Port interface for voice channel membership."""

from __future__ import annotations

from abc import ABC, abstractmethod

from voice_dj.domain.shared.types import NonEmptyStr


class ChannelMembership(ABC):
    """Interface for the bot's presence in a voice channel."""

    @abstractmethod
    def current_listener_count(self) -> int:
        """Number of users in the bot's voice channel, excluding the bot itself."""
        ...

    @abstractmethod
    async def move_to_channel(self, name: NonEmptyStr) -> None:
        """Move the bot into the named voice channel.

        Raises:
            ValidationError: no voice channel with that name exists.
        """
        ...
