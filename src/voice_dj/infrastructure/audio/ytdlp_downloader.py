"""TrackDownloader implementation using yt-dlp and FFmpeg."""

from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, cast

from pydantic import BaseModel, ConfigDict, Field
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadCancelled, DownloadError

from voice_dj.application.interfaces.track_downloader import DownloadedAudio, TrackDownloader
from voice_dj.config.settings import DownloadSettings
from voice_dj.domain.shared.exceptions import FetchError, ValidationError
from voice_dj.domain.shared.messages import ErrorMessages, LogTemplates
from voice_dj.domain.shared.types import NonEmptyStr, PositiveInt

if TYPE_CHECKING:
    from ...domain.music.entities import Track

logger = logging.getLogger(__name__)

PARTIAL_SUFFIXES: Final[tuple[str, ...]] = (".part", ".ytdl", ".temp")


class FetchAborted(DownloadCancelled):
    msg = "Download aborted because the track left the queue"


def _consume_result(worker: asyncio.Future[Path]) -> None:
    if not worker.cancelled():
        worker.exception()


class PostProcessorOpts(BaseModel):
    """FFmpegExtractAudio post-processor entry."""

    model_config = ConfigDict(frozen=True)

    key: NonEmptyStr = "FFmpegExtractAudio"
    preferredcodec: NonEmptyStr = "opus"
    preferredquality: NonEmptyStr = "0"


class YtDlpDownloadOpts(BaseModel):
    """Typed yt-dlp options for downloading a single track."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    noprogress: bool = True
    noplaylist: bool = True
    forceipv4: bool = True
    format: NonEmptyStr = "bestaudio/best"
    outtmpl: NonEmptyStr
    retries: PositiveInt = 3
    socket_timeout: PositiveInt = 15
    overwrites: bool = False
    postprocessors: list[PostProcessorOpts] = Field(default_factory=list)


class YtDlpDownloader(TrackDownloader):
    """Downloads audio into the cache directory as ``<track id>.<codec>``.

    yt-dlp runs in a worker thread. Cancellation is cooperative: the
    awaiting task sets an event which the progress hook checks on every
    chunk, so an aborted download stops within one chunk. The worker
    thread removes whatever files it created once yt-dlp has returned, and
    the cancelled fetch waits for that before letting go of the track.
    Fetches of the same track id run one at a time.
    """

    def __init__(
        self,
        settings: DownloadSettings | None = None,
        *,
        max_song_duration: int = 0,
    ) -> None:
        self._settings = settings or DownloadSettings()
        self.max_song_duration = max_song_duration
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _get_opts(self, track: Track, destination_dir: Path) -> YtDlpDownloadOpts:
        return YtDlpDownloadOpts(
            format=self._settings.ytdlp_format,
            outtmpl=str(destination_dir / f"{track.id}.%(ext)s"),
            retries=self._settings.retries,
            socket_timeout=self._settings.socket_timeout,
            postprocessors=[PostProcessorOpts(preferredcodec=self._settings.audio_format)],
        )

    def apply_settings(self, settings: DownloadSettings, *, max_song_duration: int) -> None:
        self._settings = settings
        self.max_song_duration = max_song_duration

    def expected_path(self, track: Track, destination_dir: Path) -> Path:
        return destination_dir / f"{track.id}.{self._settings.audio_format}"

    async def fetch(self, track: Track, destination_dir: Path) -> DownloadedAudio:
        if track.exceeds_duration(self.max_song_duration):
            raise ValidationError(
                ErrorMessages.TRACK_TOO_LONG.format(
                    title=track.title, limit=self.max_song_duration
                ),
                field="duration_seconds",
            )

        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchError(track.title, str(e)) from e

        lock = self._locks.setdefault(str(track.id), asyncio.Lock())
        if lock.locked():
            logger.debug(LogTemplates.DOWNLOAD_WAITING, track.title)
        async with lock:
            path = await self._run_worker(track, destination_dir)

        try:
            size_bytes = path.stat().st_size
        except OSError as e:
            raise FetchError(track.title, str(e)) from e

        logger.info(LogTemplates.DOWNLOAD_FINISHED, track.title, path, size_bytes)
        return DownloadedAudio(path=path, size_bytes=size_bytes)

    async def _run_worker(self, track: Track, destination_dir: Path) -> Path:
        """Run yt-dlp in a thread; on cancellation wait for the thread to clean up."""
        cancel_event = threading.Event()

        logger.info(LogTemplates.DOWNLOAD_STARTED, track.title, track.url)
        worker = asyncio.ensure_future(
            asyncio.to_thread(self._download_sync, track, destination_dir, cancel_event)
        )
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            cancel_event.set()
            logger.info(LogTemplates.DOWNLOAD_CANCELLED, track.title)
            await self._drain_worker(track, worker)
            raise
        except DownloadCancelled as e:
            raise FetchError(track.title, str(e)) from e
        except (DownloadError, OSError) as e:
            logger.warning(LogTemplates.DOWNLOAD_FAILED, track.title, e)
            raise FetchError(track.title, str(e)) from e

    async def _drain_worker(self, track: Track, worker: asyncio.Future[Path]) -> None:
        """Give an aborted worker time to stop and delete its files.

        The next fetch of the same track waits on the per-track lock, so it
        never races this worker over ``<track id>.*`` files.
        """
        grace = self._settings.socket_timeout * 2
        done, _ = await asyncio.wait({worker}, timeout=grace)
        if not done:
            logger.warning(LogTemplates.DOWNLOAD_WORKER_LINGERING, track.title, grace)
            worker.add_done_callback(_consume_result)
        else:
            _consume_result(worker)

    def _download_sync(
        self, track: Track, destination_dir: Path, cancel_event: threading.Event
    ) -> Path:
        pre_existing = set(self._matching_files(track, destination_dir))

        def progress_hook(status: dict[str, Any]) -> None:
            if cancel_event.is_set():
                raise FetchAborted()

        params = cast(Any, self._get_opts(track, destination_dir).model_dump())
        params["progress_hooks"] = [progress_hook]

        try:
            with YoutubeDL(params=params) as ydl:
                ydl.download([track.url])
            if cancel_event.is_set():
                raise FetchAborted()
        except (DownloadCancelled, DownloadError, OSError):
            self._discard_new_files(track, destination_dir, pre_existing)
            raise

        expected = self.expected_path(track, destination_dir)
        if expected.exists():
            return expected

        finished = [
            p for p in self._matching_files(track, destination_dir)
            if not p.name.endswith(PARTIAL_SUFFIXES)
        ]
        if not finished:
            raise DownloadError(ErrorMessages.DOWNLOAD_NO_OUTPUT.format(title=track.title))
        return finished[0]

    @staticmethod
    def _matching_files(track: Track, destination_dir: Path) -> list[Path]:
        try:
            return sorted(destination_dir.glob(f"{track.id}.*"))
        except OSError:
            return []

    def _discard_new_files(
        self, track: Track, destination_dir: Path, pre_existing: set[Path]
    ) -> None:
        """Delete files this download created, leaving files that were already there."""
        for path in self._matching_files(track, destination_dir):
            if path in pre_existing:
                continue
            try:
                path.unlink(missing_ok=True)
                logger.debug(LogTemplates.DOWNLOAD_PARTIAL_REMOVED, path)
            except OSError as e:
                logger.warning(LogTemplates.CACHE_DELETE_FAILED, path, e)
