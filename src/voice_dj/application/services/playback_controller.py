"""Playback Controller - the single task that turns the queue into audio."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ...domain.music.entities import Track
from ...domain.music.song_queue import PlaylistEnqueueResult, SongQueue
from ...domain.music.value_objects import PlaybackState, TrackFinishReason
from ...domain.shared.exceptions import (
    CacheIOError,
    EngineError,
    FetchError,
    InvalidOperationError,
    ValidationError,
)
from ...domain.shared.messages import LogTemplates, ReplyMessages
from ...domain.shared.types import NonNegativeInt
from ...domain.voting.services import SkipVoteAggregator
from ...domain.voting.value_objects import VoteResult, VoteTarget

if TYPE_CHECKING:
    from ...config.settings import Settings
    from ...infrastructure.cache.file_cache import AudioCache
    from ..interfaces.audio_engine import AudioEngine
    from ..interfaces.channel_membership import ChannelMembership
    from ..interfaces.chat_notifier import ChatNotifier
    from ..interfaces.track_downloader import TrackDownloader

logger = logging.getLogger(__name__)

PLAYLIST_TARGET_PREFIX = "playlist:"


class SkipOutcome(BaseModel):
    """Result of a skip request as reported back to chat."""

    model_config = ConfigDict(frozen=True)

    target: VoteTarget
    reason: VoteResult
    votes: NonNegativeInt = 0
    needed: NonNegativeInt = 0

    @property
    def skipped(self) -> bool:
        return self.reason.action_executed


class _Audio:
    """A playable file. Cached files carry one cache reference; others are
    private temporary copies deleted after use."""

    def __init__(self, path: Path, *, cached: bool = True) -> None:
        self.path = path
        self.cached = cached


class _Prefetch:
    """Download of the queue head started while the current track plays."""

    def __init__(self, track: Track, task: asyncio.Task[_Audio]) -> None:
        self.track = track
        self.task = task


class PlaybackController:
    """Drives IDLE -> FETCHING -> PLAYING -> (STOPPING) -> next.

    All mutation happens on the event loop. The only foreign-thread entry
    point is the audio engine's completion callback, which is marshalled
    back with ``call_soon_threadsafe`` and resolves the per-play future.

    Cache references: one for the current track, one for a completed
    prefetch, and one per queued track whose file is already cached, so
    queued files are never evicted or swept. All of them are released on
    every exit path. When the cache directory is unusable, tracks are
    downloaded to a temporary directory, played, then deleted.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        queue: SongQueue,
        cache: AudioCache,
        downloader: TrackDownloader,
        engine: AudioEngine,
        membership: ChannelMembership,
        notifier: ChatNotifier,
        votes: SkipVoteAggregator,
    ) -> None:
        self._settings = settings
        self._queue = queue
        self._cache = cache
        self._downloader = downloader
        self._engine = engine
        self._membership = membership
        self._notifier = notifier
        self._votes = votes

        self._state = PlaybackState.IDLE
        self._state_changed = asyncio.Condition()
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._closing = False

        self._current_track: Track | None = None
        self._play_future: asyncio.Future[Exception | None] | None = None
        self._finish_reason = TrackFinishReason.COMPLETED
        self._prefetch: _Prefetch | None = None
        self._head_fetch: asyncio.Task[_Audio] | None = None
        self._reset_generation = 0
        self._queue_refs: dict[str, list[Track]] = {}
        self._playlist_context = ""
        self._volume = settings.volume.default_volume

    # ── Queries ────────────────────────────────────────────────────────

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_track(self) -> Track | None:
        return self._current_track

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def next_track(self) -> Track | None:
        return self._queue.peek()

    def queue_snapshot(self) -> list[Track]:
        return self._queue.snapshot()

    @property
    def cached_count(self) -> int:
        return self._cache.count

    @property
    def cache_size_bytes(self) -> int:
        return self._cache.total_size_bytes

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Lifecycle ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Spawn the playback task. Must be called from a running loop."""
        if self.is_running:
            return
        self._closing = False
        self._task = asyncio.create_task(self._run(), name="voice-dj-playback")
        logger.info(LogTemplates.CONTROLLER_STARTED)
        if not self._queue.is_empty:
            self.advance()

    def advance(self) -> None:
        """Wake the playback loop; harmless when it is already busy."""
        self._wake.set()

    async def shutdown(self) -> None:
        """Stop playback, cancel the loop and release every held reference."""
        self._closing = True
        self._cancel_prefetch()

        if self._current_track is not None:
            self._finish_reason = TrackFinishReason.STOPPED
            with contextlib.suppress(EngineError):
                await self._engine.stop()

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        self._release_queue_refs()
        self._votes.reset_all()
        self._playlist_context = ""
        await self._set_state(PlaybackState.IDLE)
        logger.info(LogTemplates.CONTROLLER_STOPPED)

    async def wait_for_state(self, state: PlaybackState, timeout: float | None = None) -> bool:
        """Wait until the controller reaches ``state``; False on timeout."""
        async with self._state_changed:
            try:
                await asyncio.wait_for(
                    self._state_changed.wait_for(lambda: self._state == state), timeout
                )
            except TimeoutError:
                return False
        return True

    def apply_settings(self, settings: Settings) -> None:
        """Adopt reloaded settings without interrupting playback."""
        self._settings = settings
        self._queue.max_song_duration = settings.general.max_song_duration
        self._queue.max_song_per_playlist = settings.general.max_song_per_playlist
        self._queue.set_automatic_shuffle(settings.general.automatic_shuffle_on)
        self.set_volume(self._volume)

    # ── Queue operations ───────────────────────────────────────────────

    def enqueue(self, track: Track) -> int:
        """Queue one track and wake the loop.

        Raises:
            ValidationError: the queue refused the track.
        """
        position = self._queue.enqueue(track)
        self._after_queue_change()
        return position

    def enqueue_playlist(self, tracks: Sequence[Track]) -> PlaylistEnqueueResult:
        result = self._queue.enqueue_playlist(tracks)
        if result.added:
            self._after_queue_change()
        return result

    def remove_by_submitter(self, name: str) -> int:
        removed = self._queue.remove_by_submitter(name)
        self._after_queue_removal()
        return removed

    def remove_by_playlist(self, playlist_id: str) -> int:
        removed = self._queue.remove_by_playlist(playlist_id)
        self._after_queue_removal()
        return removed

    def shuffle(self) -> None:
        self._queue.shuffle()
        self._reconcile_prefetch()

    def set_automatic_shuffle(self, enabled: bool) -> None:
        self._queue.set_automatic_shuffle(enabled)

    async def reset(self) -> int:
        """Empty the queue and stop the current track. Returns tracks removed.

        A track whose download is still running is abandoned rather than
        played once the download finishes.
        """
        removed = self._queue.clear()
        self._reset_generation += 1
        self._cancel_prefetch()
        self._sync_queue_refs()
        if self._head_fetch is not None:
            self._head_fetch.cancel()
        self._votes.reset_all()
        if self._state == PlaybackState.PLAYING:
            await self._stop_current(TrackFinishReason.STOPPED)
        logger.info(LogTemplates.CONTROLLER_RESET, removed)
        return removed

    # ── Skipping ───────────────────────────────────────────────────────

    async def skip(self, voter: str, *, admin: bool = False) -> SkipOutcome:
        bypass = admin and self._settings.general.admin_skip_bypasses_ratio
        return await self._skip(VoteTarget.TRACK, voter, bypass=bypass)

    async def skip_playlist(self, voter: str, *, admin: bool = False) -> SkipOutcome:
        bypass = admin and self._settings.general.admin_skip_bypasses_ratio
        return await self._skip(VoteTarget.PLAYLIST, voter, bypass=bypass)

    async def force_skip(self, voter: str = "admin") -> SkipOutcome:
        return await self._skip(VoteTarget.TRACK, voter, bypass=True)

    async def force_skip_playlist(self, voter: str = "admin") -> SkipOutcome:
        return await self._skip(VoteTarget.PLAYLIST, voter, bypass=True)

    async def _skip(self, target: VoteTarget, voter: str, *, bypass: bool) -> SkipOutcome:
        track = self._current_track
        if track is None or not self._state.is_active:
            return SkipOutcome(target=target, reason=VoteResult.NO_PLAYING)
        if self._state == PlaybackState.STOPPING:
            return SkipOutcome(target=target, reason=VoteResult.ALREADY_SKIPPING)

        if target == VoteTarget.PLAYLIST:
            if not track.in_playlist:
                return SkipOutcome(target=target, reason=VoteResult.NO_PLAYLIST)
            target_id = PLAYLIST_TARGET_PREFIX + track.playlist_id
            ratio = self._settings.general.playlist_skip_ratio
        else:
            target_id = str(track.id)
            ratio = self._settings.general.skip_ratio

        listeners = self._membership.current_listener_count()
        result = self._votes.cast_vote(target_id, voter, listeners, ratio, admin=bypass)
        outcome = SkipOutcome(
            target=target,
            reason=result,
            votes=self._votes.vote_count(target_id),
            needed=self._votes.votes_required(listeners, ratio),
        )

        if result.action_executed:
            if target == VoteTarget.PLAYLIST:
                removed = self._queue.remove_by_playlist(track.playlist_id)
                logger.info(LogTemplates.PLAYLIST_SKIPPED, track.playlist_title, removed)
                self._after_queue_removal()
            await self._stop_current(TrackFinishReason.SKIPPED)
        return outcome

    # ── Playback settings ──────────────────────────────────────────────

    def set_volume(self, volume: float) -> float:
        """Clamp to the configured bounds and apply to the engine live."""
        self._volume = self._settings.volume.clamp(volume)
        self._engine.set_volume(self._volume)
        logger.debug(LogTemplates.VOLUME_SET, self._volume)
        return self._volume

    def set_comment(self, text: str) -> Track | None:
        """Annotate the current track; an empty text restores the default comment."""
        if self._current_track is None:
            return None
        comment = text.strip() or self._settings.general.default_comment
        self._current_track = self._current_track.with_comment(comment)
        return self._current_track

    # ── Playback loop ──────────────────────────────────────────────────

    async def _run(self) -> None:
        while not self._closing:
            await self._wake.wait()
            self._wake.clear()

            while not self._closing:
                track = self._queue.dequeue()
                if track is None:
                    break
                try:
                    await self._play(track)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(LogTemplates.PLAYBACK_LOOP_ERROR, track.title)
                    await self._notify(ReplyMessages.PLAYBACK_FAILED.format(title=track.title))

            if not self._closing:
                self._end_playlist_context()
                await self._set_state(PlaybackState.IDLE)
                logger.info(LogTemplates.QUEUE_DRAINED)

    async def _play(self, track: Track) -> None:
        await self._set_state(PlaybackState.FETCHING)
        generation = self._reset_generation

        fetch = asyncio.create_task(self._obtain_audio(track), name=f"fetch-{track.id}")
        self._head_fetch = fetch
        try:
            await asyncio.wait({fetch})
        except asyncio.CancelledError:
            self._abandon(track, fetch)
            raise
        finally:
            self._head_fetch = None
            self._sync_queue_refs()

        if fetch.cancelled():
            logger.info(LogTemplates.FETCH_ABANDONED, track.title)
            return
        try:
            audio = fetch.result()
        except (ValidationError, FetchError) as e:
            logger.warning(LogTemplates.TRACK_FETCH_FAILED, track.title, e.message)
            await self._notify(ReplyMessages.FETCH_FAILED.format(title=track.title, reason=e.message))
            return

        if generation != self._reset_generation:
            logger.info(LogTemplates.FETCH_ABANDONED, track.title)
            self._release_audio(track, audio)
            return

        try:
            await self._start_track(track, audio.path)
        finally:
            self._finish_track(track, audio)

    async def _start_track(self, track: Track, path: Path) -> None:
        self._begin_track(track)

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Exception | None] = loop.create_future()
        self._play_future = future

        def on_finished(error: Exception | None) -> None:
            loop.call_soon_threadsafe(self._resolve_play, future, error)

        try:
            await self._engine.start_playback(path, self._volume, on_finished)
        except EngineError as e:
            logger.error(LogTemplates.ENGINE_START_FAILED, track.title, e.message)
            await self._notify(ReplyMessages.FETCH_FAILED.format(title=track.title, reason=e.message))
            return

        await self._set_state(PlaybackState.PLAYING)
        logger.info(LogTemplates.TRACK_STARTED, track.title, track.submitter)
        await self._notify(
            ReplyMessages.NOW_PLAYING.format(title=track.display_title, submitter=track.submitter)
        )
        self._reconcile_prefetch()

        error = await future
        if error is not None:
            logger.warning(LogTemplates.ENGINE_PLAYBACK_ERROR, track.title, error)

    def _begin_track(self, track: Track) -> None:
        self._votes.reset(str(track.id))
        if track.playlist_id != self._playlist_context:
            self._end_playlist_context()
            self._playlist_context = track.playlist_id

        comment = track.comment or self._settings.general.default_comment
        self._current_track = track.with_comment(comment) if comment else track
        self._finish_reason = TrackFinishReason.COMPLETED

    def _finish_track(self, track: Track, audio: _Audio) -> None:
        logger.info(LogTemplates.TRACK_FINISHED, track.title, self._finish_reason.value)
        self._release_audio(track, audio)
        self._votes.reset(str(track.id))
        self._current_track = None
        self._play_future = None
        self._cache.sweep()

    def _end_playlist_context(self) -> None:
        if self._playlist_context:
            self._votes.reset(PLAYLIST_TARGET_PREFIX + self._playlist_context)
        self._playlist_context = ""

    @staticmethod
    def _resolve_play(future: asyncio.Future[Exception | None], error: Exception | None) -> None:
        if not future.done():
            future.set_result(error)

    async def _stop_current(self, reason: TrackFinishReason) -> None:
        if self._state != PlaybackState.PLAYING:
            return
        self._finish_reason = reason
        await self._set_state(PlaybackState.STOPPING)
        try:
            await self._engine.stop()
        except EngineError as e:
            # The engine will not call back; finish the play ourselves.
            logger.error(LogTemplates.ENGINE_STOP_FAILED, e.message)
            if self._play_future is not None:
                self._resolve_play(self._play_future, e)

    async def _set_state(self, state: PlaybackState) -> None:
        if not self._state.can_transition_to(state):
            raise InvalidOperationError("set_state", self._state.value)
        async with self._state_changed:
            if state != self._state:
                logger.debug(LogTemplates.STATE_CHANGED, self._state.value, state.value)
            self._state = state
            self._state_changed.notify_all()

    # ── Audio acquisition ──────────────────────────────────────────────

    async def _obtain_audio(self, track: Track) -> _Audio:
        """Return playable audio for ``track``, holding a cache reference if cached."""
        prefetch = self._take_prefetch(track)
        if prefetch is not None:
            logger.debug(LogTemplates.PREFETCH_USED, track.title)
            try:
                return await prefetch.task
            except asyncio.CancelledError:
                self._abandon(prefetch.track, prefetch.task)
                raise

        path = self._cache.acquire(track)
        if path is not None:
            return _Audio(path)

        return await self._download(track)

    async def _download(self, track: Track) -> _Audio:
        try:
            directory = self._cache.ensure_directory()
        except CacheIOError as e:
            logger.warning(LogTemplates.CACHE_BYPASSED, e.message, track.title)
            return await self._download_uncached(track)

        audio = await self._downloader.fetch(track, directory)
        entry = self._cache.insert(track, audio.path, audio.size_bytes)
        self._sync_queue_refs()
        return _Audio(entry.path)

    async def _download_uncached(self, track: Track) -> _Audio:
        try:
            directory = Path(tempfile.mkdtemp(prefix="voice-dj-"))
        except OSError as e:
            raise FetchError(track.title, str(e)) from e

        try:
            audio = await self._downloader.fetch(track, directory)
        except (Exception, asyncio.CancelledError):
            self._delete_uncached(directory)
            raise
        return _Audio(audio.path, cached=False)

    def _release_audio(self, track: Track, audio: _Audio) -> None:
        if audio.cached:
            self._cache.release(track)
        else:
            self._delete_uncached(audio.path.parent)

    @staticmethod
    def _delete_uncached(directory: Path) -> None:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.warning(LogTemplates.CACHE_DELETE_FAILED, directory, e)

    def _take_prefetch(self, track: Track) -> _Prefetch | None:
        prefetch = self._prefetch
        if prefetch is None or prefetch.track != track:
            return None
        self._prefetch = None
        return prefetch

    def _reconcile_prefetch(self) -> None:
        """Keep at most one download running, and only for the current queue head."""
        head = self._queue.peek()
        if self._prefetch is not None and self._prefetch.track != head:
            self._cancel_prefetch()

        if (
            self._prefetch is None
            and head is not None
            and not self._closing
            and self._state.is_active
            and not self._cache.contains(head)
        ):
            task = asyncio.create_task(self._download(head), name=f"prefetch-{head.id}")
            self._prefetch = _Prefetch(head, task)
            logger.debug(LogTemplates.PREFETCH_STARTED, head.title)

    def _cancel_prefetch(self) -> None:
        prefetch = self._prefetch
        if prefetch is None:
            return
        self._prefetch = None
        self._abandon(prefetch.track, prefetch.task)
        logger.debug(LogTemplates.PREFETCH_CANCELLED, prefetch.track.title)

    def _abandon(self, track: Track, task: asyncio.Task[_Audio]) -> None:
        """Cancel a download nobody will play and give back what it obtained."""
        if task.done():
            self._discard(track, task)
            return
        task.cancel()
        task.add_done_callback(lambda t: self._discard(track, t))

    def _discard(self, track: Track, task: asyncio.Task[_Audio]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            self._release_audio(track, task.result())
        else:
            logger.debug(LogTemplates.PREFETCH_FAILED, track.title, error)

    # ── Queue references ───────────────────────────────────────────────

    def _sync_queue_refs(self) -> None:
        """Hold one cache reference per queued track whose file is cached."""
        wanted: dict[str, list[Track]] = {}
        for track in self._queue.snapshot():
            wanted.setdefault(str(track.id), []).append(track)

        for key in list(self._queue_refs):
            held = self._queue_refs[key]
            surplus = len(held) - len(wanted.get(key, ()))
            for _ in range(max(surplus, 0)):
                self._cache.release(held.pop())
            if not held:
                del self._queue_refs[key]

        for key, tracks in wanted.items():
            held = self._queue_refs.get(key, [])
            missing = tracks[len(held):]
            if not missing or not self._cache.contains(missing[0]):
                continue
            for track in missing:
                if self._cache.acquire(track) is None:
                    break
                held.append(track)
            if held:
                self._queue_refs[key] = held

    def _release_queue_refs(self) -> None:
        for held in self._queue_refs.values():
            for track in held:
                self._cache.release(track)
        self._queue_refs.clear()

    def _after_queue_change(self) -> None:
        self._sync_queue_refs()
        self._reconcile_prefetch()
        if self._state == PlaybackState.IDLE:
            self.advance()

    def _after_queue_removal(self) -> None:
        self._sync_queue_refs()
        self._reconcile_prefetch()

    async def _notify(self, message: str) -> None:
        try:
            await self._notifier.notify(message)
        except Exception:
            logger.exception(LogTemplates.NOTIFY_FAILED)
