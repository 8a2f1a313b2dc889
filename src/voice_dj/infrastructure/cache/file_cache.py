"""Reference-counted on-disk cache of downloaded audio files."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Final

from voice_dj.config.settings import CacheSettings
from voice_dj.domain.cache.entities import CacheEntry
from voice_dj.domain.shared.exceptions import CacheIOError
from voice_dj.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...domain.music.entities import Track

logger = logging.getLogger(__name__)

AUDIO_SUFFIXES: Final[frozenset[str]] = frozenset(
    {".opus", ".mp3", ".m4a", ".ogg", ".webm", ".aac", ".flac", ".wav"}
)


class AudioCache:
    """Content-addressed store of downloaded audio, keyed by track id.

    Entries held by the queue or by playback (``ref_count > 0``) are never
    evicted. The size bound is best-effort: when nothing else can be
    evicted a new entry is still admitted. With caching disabled every
    lookup misses and a file is deleted as soon as its last reference is
    released.

    Deletion failures are logged and swallowed; a broken cache never
    blocks playback.
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or CacheSettings()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    @property
    def directory(self) -> Path:
        return self._settings.directory

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def total_size_bytes(self) -> int:
        with self._lock:
            return sum(e.size_bytes for e in self._entries.values())

    def apply_settings(self, settings: CacheSettings) -> None:
        with self._lock:
            self._settings = settings
            self._evict_to_fit(0)

    def ensure_directory(self) -> Path:
        """Create the cache directory if needed.

        Raises:
            CacheIOError: the directory cannot be created.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(str(self.directory), str(e)) from e
        return self.directory

    def contains(self, track: Track) -> bool:
        with self._lock:
            return str(track.id) in self._entries

    def get_entry(self, track: Track) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(str(track.id))
            return entry.model_copy() if entry else None

    def acquire(self, track: Track) -> Path | None:
        """Take a reference to the cached file for ``track``; None on a miss."""
        if not self.enabled:
            return None

        key = str(track.id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(LogTemplates.CACHE_MISS, key)
                return None

            if not entry.path.exists():
                logger.warning(LogTemplates.CACHE_FILE_MISSING, entry.path)
                if entry.is_evictable:
                    del self._entries[key]
                return None

            entry.acquire(self._clock())
            logger.debug(LogTemplates.CACHE_HIT, key, entry.ref_count)
            return entry.path

    def insert(self, track: Track, path: Path, size_bytes: int) -> CacheEntry:
        """Register a freshly downloaded file with one reference held."""
        key = str(track.id)
        now = self._clock()
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                if existing.path != path:
                    self._delete_file(path)
                existing.acquire(now)
                return existing.model_copy()

            if self.enabled:
                self._evict_to_fit(size_bytes)

            entry = CacheEntry(
                key=key,
                path=path,
                size_bytes=size_bytes,
                last_accessed_at=now,
                ref_count=1,
            )
            self._entries[key] = entry
            logger.info(LogTemplates.CACHE_INSERTED, key, size_bytes, self.total_size_bytes)
            return entry.model_copy()

    def release(self, track: Track) -> None:
        """Drop one reference; without caching the file goes away at zero."""
        key = str(track.id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return

            remaining = entry.release()
            if remaining == 0 and not self.enabled:
                self._remove(entry)

    def sweep(self) -> int:
        """Delete unreferenced entries that have not been used within ``expire_time``."""
        if not self.enabled:
            return 0

        now = self._clock()
        with self._lock:
            expired = [
                e
                for e in self._entries.values()
                if e.is_evictable and e.age(now) > self._settings.expire_time
            ]
            for entry in expired:
                self._remove(entry)

        if expired:
            logger.info(LogTemplates.CACHE_EXPIRED_CLEANED, len(expired))
        return len(expired)

    def clear(self) -> int:
        """Delete every unreferenced entry."""
        with self._lock:
            idle = [e for e in self._entries.values() if e.is_evictable]
            for entry in idle:
                self._remove(entry)
        logger.info(LogTemplates.CACHE_CLEARED, len(idle))
        return len(idle)

    def load_existing(self) -> int:
        """Register audio files left in the cache directory by a previous run.

        File stems are track ids; last access is taken from the file's
        modification time. Does nothing when caching is disabled.
        """
        if not self.enabled or not self.directory.is_dir():
            return 0

        loaded = 0
        with self._lock:
            try:
                candidates = sorted(self.directory.iterdir())
            except OSError as e:
                logger.warning(LogTemplates.CACHE_SCAN_FAILED, self.directory, e)
                return 0

            for path in candidates:
                if path.suffix.lower() not in AUDIO_SUFFIXES or path.stem in self._entries:
                    continue
                try:
                    stat = path.stat()
                except OSError as e:
                    logger.warning(LogTemplates.CACHE_SCAN_FAILED, path, e)
                    continue
                self._entries[path.stem] = CacheEntry(
                    key=path.stem,
                    path=path,
                    size_bytes=stat.st_size,
                    last_accessed_at=stat.st_mtime,
                )
                loaded += 1

            self._evict_to_fit(0)

        logger.info(LogTemplates.CACHE_LOADED, loaded, self.directory)
        return loaded

    def _evict_to_fit(self, incoming_bytes: int) -> int:
        """Evict least-recently-used unreferenced entries until the new size fits."""
        limit = self._settings.maximum_size
        total = sum(e.size_bytes for e in self._entries.values())
        if total + incoming_bytes <= limit:
            return 0

        evicted = 0
        candidates = sorted(
            (e for e in self._entries.values() if e.is_evictable),
            key=lambda e: e.last_accessed_at,
        )
        for entry in candidates:
            if total + incoming_bytes <= limit:
                break
            total -= entry.size_bytes
            self._remove(entry)
            evicted += 1

        if evicted:
            logger.info(LogTemplates.CACHE_EVICTED, evicted, total)
        if total + incoming_bytes > limit:
            logger.debug(LogTemplates.CACHE_OVER_LIMIT, total + incoming_bytes, limit)
        return evicted

    def _remove(self, entry: CacheEntry) -> None:
        self._entries.pop(entry.key, None)
        self._delete_file(entry.path)

    @staticmethod
    def _delete_file(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(LogTemplates.CACHE_DELETE_FAILED, path, e)
