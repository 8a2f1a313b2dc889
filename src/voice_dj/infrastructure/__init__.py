"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Cache (reference-counted audio files on disk)
- Audio (yt-dlp resolver and downloader)
- Discord (bot, message cog, voice adapter)
"""
