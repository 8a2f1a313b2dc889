"""Discord adapters - bot, message cog and voice connection."""

from voice_dj.infrastructure.discord.bot import MusicBot, create_bot
from voice_dj.infrastructure.discord.voice_adapter import DiscordVoiceAdapter

__all__ = [
    "MusicBot",
    "create_bot",
    "DiscordVoiceAdapter",
]
