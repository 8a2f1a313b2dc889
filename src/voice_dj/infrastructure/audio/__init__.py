"""Audio infrastructure - yt-dlp resolver and downloader."""

from voice_dj.infrastructure.audio.ytdlp_downloader import YtDlpDownloader
from voice_dj.infrastructure.audio.ytdlp_resolver import YtDlpResolver

__all__ = [
    "YtDlpDownloader",
    "YtDlpResolver",
]
