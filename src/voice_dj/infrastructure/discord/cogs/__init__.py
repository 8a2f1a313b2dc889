"""Discord cogs - chat listeners."""

from voice_dj.infrastructure.discord.cogs.music_cog import MusicCog

__all__ = [
    "MusicCog",
]
