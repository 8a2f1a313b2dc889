"""Ordered queue of pending tracks with per-playlist and duration limits."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterator, Sequence

from pydantic import BaseModel

from voice_dj.domain.music.entities import Track
from voice_dj.domain.shared.exceptions import ValidationError
from voice_dj.domain.shared.messages import ErrorMessages, LogTemplates
from voice_dj.domain.shared.types import NonNegativeInt

logger = logging.getLogger(__name__)


class PlaylistEnqueueResult(BaseModel):
    added: NonNegativeInt = 0
    dropped: NonNegativeInt = 0
    first_position: NonNegativeInt = 0


class SongQueue:
    """FIFO of tracks waiting to be played.

    Every public method takes the queue lock, so concurrent callers (chat
    commands, the playback task, the audio engine's callback thread) never
    observe a half-applied mutation. The currently playing track is not
    stored here, so :meth:`shuffle` may permute the whole queue.
    """

    def __init__(
        self,
        *,
        max_song_duration: int = 0,
        max_song_per_playlist: int = 0,
        automatic_shuffle: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        self._tracks: list[Track] = []
        self._lock = threading.RLock()
        self._rng = rng or random.Random()
        self.max_song_duration = max_song_duration
        self.max_song_per_playlist = max_song_per_playlist
        self.automatic_shuffle = automatic_shuffle

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self.snapshot())

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def snapshot(self) -> list[Track]:
        with self._lock:
            return list(self._tracks)

    def peek(self) -> Track | None:
        with self._lock:
            return self._tracks[0] if self._tracks else None

    def dequeue(self) -> Track | None:
        """Remove and return the head, or None when the queue is empty."""
        with self._lock:
            if not self._tracks:
                return None
            return self._tracks.pop(0)

    def enqueue(self, track: Track) -> int:
        """Append a track and return its zero-based position.

        Raises:
            ValidationError: the track is too long, its playlist already has
                the maximum number of queued tracks, or it repeats the tail
                entry from the same submitter.
        """
        with self._lock:
            self._validate_duration(track)

            if track.in_playlist and self._playlist_slots_left(track.playlist_id) == 0:
                raise ValidationError(
                    ErrorMessages.PLAYLIST_LIMIT_REACHED.format(limit=self.max_song_per_playlist),
                    field="playlist_id",
                )

            tail = self._tracks[-1] if self._tracks else None
            if tail is not None and tail.id == track.id and tail.submitter == track.submitter:
                raise ValidationError(
                    ErrorMessages.DUPLICATE_SUBMISSION.format(title=track.title), field="id"
                )

            self._tracks.append(track)
            position = len(self._tracks) - 1
            logger.debug(LogTemplates.QUEUE_ENQUEUED, track.title, position)

            if self.automatic_shuffle:
                self._shuffle_locked()
            return position

    def enqueue_playlist(self, tracks: Sequence[Track]) -> PlaylistEnqueueResult:
        """Append as many playlist tracks as the playlist allowance permits.

        Overlong tracks and tracks past the allowance are dropped and
        counted rather than rejected. The whole batch lands at once.
        """
        if not tracks:
            return PlaylistEnqueueResult()

        playlist_ids = {t.playlist_id for t in tracks}
        if len(playlist_ids) != 1 or not tracks[0].playlist_id:
            raise ValidationError(ErrorMessages.PLAYLIST_MIXED_IDS, field="playlist_id")
        playlist_id = tracks[0].playlist_id

        with self._lock:
            allowance = self._playlist_slots_left(playlist_id)
            accepted: list[Track] = []
            for track in tracks:
                if allowance is not None and len(accepted) >= allowance:
                    break
                if track.exceeds_duration(self.max_song_duration):
                    continue
                accepted.append(track)

            first_position = len(self._tracks)
            self._tracks.extend(accepted)
            dropped = len(tracks) - len(accepted)
            logger.info(LogTemplates.QUEUE_PLAYLIST_ENQUEUED, len(accepted), playlist_id, dropped)

            if self.automatic_shuffle and accepted:
                self._shuffle_locked()

            return PlaylistEnqueueResult(
                added=len(accepted), dropped=dropped, first_position=first_position
            )

    def shuffle(self) -> None:
        with self._lock:
            self._shuffle_locked()
            logger.info(LogTemplates.QUEUE_SHUFFLED, len(self._tracks))

    def set_automatic_shuffle(self, enabled: bool) -> None:
        with self._lock:
            self.automatic_shuffle = enabled

    def remove_by_submitter(self, name: str) -> int:
        return self._remove_where(lambda t: t.was_submitted_by(name))

    def remove_by_playlist(self, playlist_id: str) -> int:
        if not playlist_id:
            return 0
        return self._remove_where(lambda t: t.playlist_id == playlist_id)

    def clear(self) -> int:
        with self._lock:
            count = len(self._tracks)
            self._tracks.clear()
            return count

    def total_duration_seconds(self) -> int:
        with self._lock:
            return sum(t.duration_seconds for t in self._tracks)

    def count_playlist(self, playlist_id: str) -> int:
        with self._lock:
            return sum(1 for t in self._tracks if t.playlist_id == playlist_id)

    def _remove_where(self, predicate) -> int:
        with self._lock:
            before = len(self._tracks)
            self._tracks = [t for t in self._tracks if not predicate(t)]
            return before - len(self._tracks)

    def _playlist_slots_left(self, playlist_id: str) -> int | None:
        """Remaining allowance for a playlist, None when unlimited."""
        if self.max_song_per_playlist <= 0:
            return None
        queued = sum(1 for t in self._tracks if t.playlist_id == playlist_id)
        return max(0, self.max_song_per_playlist - queued)

    def _validate_duration(self, track: Track) -> None:
        if track.exceeds_duration(self.max_song_duration):
            raise ValidationError(
                ErrorMessages.TRACK_TOO_LONG.format(
                    title=track.title, limit=self.max_song_duration
                ),
                field="duration_seconds",
            )

    def _shuffle_locked(self) -> None:
        self._rng.shuffle(self._tracks)
