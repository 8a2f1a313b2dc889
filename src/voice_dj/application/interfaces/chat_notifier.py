"""Port interface for posting notifications to chat."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ChatNotifier(ABC):
    """Interface for messages that are not a direct reply to a command."""

    @abstractmethod
    async def notify(self, message: str) -> None:
        """Post ``message`` to the channel the bot was last commanded from."""
        ...
