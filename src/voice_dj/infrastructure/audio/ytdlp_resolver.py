"""TrackResolver implementation using yt-dlp metadata extraction."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Final, cast

from pydantic import BaseModel, ConfigDict, field_validator
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError

from voice_dj.application.interfaces.track_resolver import TrackResolver
from voice_dj.config.settings import DownloadSettings
from voice_dj.domain.music.entities import Track
from voice_dj.domain.music.value_objects import TrackId
from voice_dj.domain.shared.exceptions import FetchError
from voice_dj.domain.shared.messages import LogTemplates
from voice_dj.domain.shared.types import NonEmptyStr, NonNegativeFloat, PositiveInt

logger = logging.getLogger(__name__)

CACHE_TTL: Final[int] = 3600
CACHE_MAX_SIZE: Final[int] = 500
LOG_URL_TRUNCATE: Final[int] = 60
MAX_TITLE_LENGTH: Final[int] = 500


# ── Pydantic models for yt-dlp data ────────────────────────────────────


class YtDlpEntryInfo(BaseModel):
    """Trimmed yt-dlp extraction result for one video or playlist.

    Extra fields from yt-dlp are silently ignored. Before-validators coerce
    garbage from external yt-dlp data gracefully.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: NonEmptyStr | None = None
    webpage_url: NonEmptyStr | None = None
    url: NonEmptyStr | None = None
    title: NonEmptyStr = "Unknown Title"
    duration: int = 0
    entries: list[YtDlpEntryInfo] | None = None

    @field_validator("id", "webpage_url", "url", mode="before")
    @classmethod
    def _coerce_empty_to_none(cls, v: Any) -> str | None:
        """Convert empty / whitespace-only / non-string values to None."""
        if not isinstance(v, str) or not v.strip():
            return None
        return v

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            return "Unknown Title"
        return v[:MAX_TITLE_LENGTH]

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, v: Any) -> int:
        """Coerce to non-negative int; 0 for missing or garbage values."""
        if v is None:
            return 0
        try:
            val = int(float(v))
            return val if val >= 0 else 0
        except (TypeError, ValueError):
            return 0

    @field_validator("entries", mode="before")
    @classmethod
    def _drop_empty_entries(cls, v: Any) -> list[Any] | None:
        if v is None:
            return None
        return [e for e in v if isinstance(e, dict)]

    @property
    def is_playlist(self) -> bool:
        return self.entries is not None

    @property
    def source_url(self) -> str | None:
        url = self.webpage_url or self.url
        if url and not url.startswith(("http://", "https://")) and self.id:
            return f"https://www.youtube.com/watch?v={self.id}"
        return url


class CacheEntry(BaseModel):
    """Cached yt-dlp extraction result with its timestamp."""

    model_config = ConfigDict(frozen=True)

    info: YtDlpEntryInfo
    cached_at: NonNegativeFloat


# ── yt-dlp option models ───────────────────────────────────────────────


class YtDlpOpts(BaseModel):
    """Typed yt-dlp configuration options for metadata extraction."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    noprogress: bool = True
    noplaylist: bool = True
    forceipv4: bool = True
    retries: PositiveInt = 3
    socket_timeout: PositiveInt = 15
    skip_download: bool = True
    extract_flat: NonEmptyStr | bool = False


# ── Module-level state and patterns ────────────────────────────────────

_info_cache: dict[str, CacheEntry] = {}

URL_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"^https?://"),
]

PLAYLIST_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"[?&]list="),
    re.compile(r"/playlist\?"),
    re.compile(r"/sets/"),
]


class YtDlpResolver(TrackResolver):

    def __init__(self, settings: DownloadSettings | None = None) -> None:
        self._settings = settings or DownloadSettings()
        self._base_opts = YtDlpOpts(
            retries=self._settings.retries,
            socket_timeout=self._settings.socket_timeout,
        )

    def _get_opts(self, url: str) -> YtDlpOpts:
        if self.is_playlist(url):
            return self._base_opts.model_copy(
                update={"noplaylist": False, "extract_flat": "in_playlist"}
            )
        return self._base_opts

    @staticmethod
    def _parse_info(data: dict[str, Any]) -> YtDlpEntryInfo:
        return YtDlpEntryInfo.model_validate(data)

    def _extract_info_sync(self, url: str) -> YtDlpEntryInfo | None:
        now = time.time()
        cached = _info_cache.get(url)
        if cached is not None:
            if now - cached.cached_at < CACHE_TTL:
                logger.debug(LogTemplates.RESOLVER_CACHE_HIT, url[:LOG_URL_TRUNCATE])
                return cached.info
            _info_cache.pop(url, None)

        with YoutubeDL(params=cast(Any, self._get_opts(url).model_dump())) as ydl:
            data = ydl.extract_info(url, download=False)

        if not isinstance(data, dict):
            return None

        result = self._parse_info(dict(data))
        _info_cache[url] = CacheEntry(info=result, cached_at=now)

        if len(_info_cache) > CACHE_MAX_SIZE:
            expired = [k for k, entry in _info_cache.items() if now - entry.cached_at >= CACHE_TTL]
            for k in expired:
                _info_cache.pop(k, None)

        return result

    def _entry_to_track(
        self,
        info: YtDlpEntryInfo,
        submitter: str,
        playlist: YtDlpEntryInfo | None = None,
    ) -> Track | None:
        url = info.source_url
        if not url:
            logger.warning(LogTemplates.RESOLVER_NO_URL, info.title)
            return None

        playlist_id = ""
        playlist_title = ""
        if playlist is not None:
            playlist_id = str(playlist.id or TrackId.from_url(playlist.source_url or url))
            playlist_title = playlist.title

        return Track(
            id=TrackId.from_url(url),
            title=info.title,
            url=url,
            duration_seconds=min(info.duration, 86_400),
            submitter=submitter,
            playlist_id=playlist_id,
            playlist_title=playlist_title,
        )

    async def resolve(self, url: str, submitter: str) -> list[Track]:
        """Resolve a URL into tracks.

        Raises:
            FetchError: yt-dlp could not extract the URL.
        """
        try:
            info = await asyncio.to_thread(self._extract_info_sync, url)
        except DownloadError as e:
            logger.warning(LogTemplates.RESOLVER_FAILED, url[:LOG_URL_TRUNCATE], e)
            raise FetchError(url, str(e)) from e

        if info is None:
            return []

        if not info.is_playlist:
            track = self._entry_to_track(info, submitter)
            return [track] if track else []

        tracks = [
            track
            for entry in info.entries or []
            if (track := self._entry_to_track(entry, submitter, playlist=info)) is not None
        ]
        logger.info(LogTemplates.RESOLVER_PLAYLIST, info.title, len(tracks))
        return tracks

    def is_url(self, query: str) -> bool:
        return any(pattern.search(query) for pattern in URL_PATTERNS)

    def is_playlist(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in PLAYLIST_PATTERNS)
