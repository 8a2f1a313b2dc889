import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from voice_dj.application.interfaces.audio_engine import AudioEngine, FinishedCallback
from voice_dj.application.interfaces.channel_membership import ChannelMembership
from voice_dj.application.interfaces.chat_notifier import ChatNotifier
from voice_dj.application.interfaces.track_downloader import DownloadedAudio, TrackDownloader
from voice_dj.application.interfaces.track_resolver import TrackResolver
from voice_dj.domain.shared.exceptions import EngineError, ValidationError

# ============================================================================
# Fakes for the playback ports
# ============================================================================


class FakeAudioEngine(AudioEngine):
    """Plays nothing; a track "ends" when the test calls finish() or stop() is awaited."""

    def __init__(self) -> None:
        self.started: list[tuple[Path, float]] = []
        self.volume: float | None = None
        self.stop_calls = 0
        self.fail_next_start = False
        self._on_finished: FinishedCallback | None = None

    async def start_playback(self, path: Path, volume: float, on_finished: FinishedCallback) -> None:
        if self.fail_next_start:
            self.fail_next_start = False
            raise EngineError("no voice connection")
        self.started.append((path, volume))
        self.volume = volume
        self._on_finished = on_finished

    async def stop(self) -> None:
        self.stop_calls += 1
        self.finish()

    def finish(self, error: Exception | None = None) -> None:
        callback, self._on_finished = self._on_finished, None
        if callback is not None:
            callback(error)

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def is_playing(self) -> bool:
        return self._on_finished is not None


class FakeMembership(ChannelMembership):
    def __init__(self, listeners: int = 4) -> None:
        self.listeners = listeners
        self.channels: list[str] = []
        self.known_channels = {"Music", "Lobby"}

    def current_listener_count(self) -> int:
        return self.listeners

    async def move_to_channel(self, name: str) -> None:
        if name not in self.known_channels:
            raise ValidationError(f"No voice channel named '{name}'", field="channel")
        self.channels.append(name)


class FakeNotifier(ChatNotifier):
    def __init__(self) -> None:
        self.messages: list[str] = []

    async def notify(self, message: str) -> None:
        self.messages.append(message)


class FakeDownloader(TrackDownloader):
    """Writes a small file per track; ``gate`` holds downloads until it is set."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.failures: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None
        self.size_bytes = 100

    async def fetch(self, track, destination_dir: Path) -> DownloadedAudio:
        key = str(track.id)
        self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled.append(key)
            raise
        path = destination_dir / f"{key}.opus"
        path.write_bytes(b"\0" * self.size_bytes)
        return DownloadedAudio(path=path, size_bytes=self.size_bytes)


class FakeResolver(TrackResolver):
    def __init__(self) -> None:
        self.results: dict[str, list] = {}

    async def resolve(self, url: str, submitter: str) -> list:
        return [t.model_copy(update={"submitter": submitter}) for t in self.results.get(url, [])]

    def is_url(self, query: str) -> bool:
        return query.startswith(("http://", "https://"))

    def is_playlist(self, url: str) -> bool:
        return "list=" in url


# ============================================================================
# Domain Entity Fixtures
# ============================================================================


@pytest.fixture
def make_track():
    """Factory for tracks with a predictable id and URL."""
    from voice_dj.domain.music.entities import Track
    from voice_dj.domain.music.value_objects import TrackId

    def _make(
        key: str = "track-1",
        *,
        title: str | None = None,
        submitter: str = "alice",
        duration: int = 180,
        playlist_id: str = "",
        playlist_title: str = "",
    ) -> Track:
        return Track(
            id=TrackId(key),
            title=title or f"Song {key}",
            url=f"https://example.com/watch/{key}",
            duration_seconds=duration,
            submitter=submitter,
            playlist_id=playlist_id,
            playlist_title=playlist_title,
        )

    return _make


@pytest.fixture
def sample_track(make_track):
    return make_track("dQw4w9WgXcQ", title="Test Track")


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings without reading the environment or a .env file."""
    from voice_dj.config.settings import CacheSettings, Settings

    def _make(**overrides) -> Settings:
        cache = overrides.pop("cache", None) or CacheSettings(enabled=True, directory=tmp_path / "audio")
        return Settings(_env_file=None, cache=cache, **overrides)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


# ============================================================================
# Playback Controller Fixtures
# ============================================================================


@pytest.fixture
def engine():
    return FakeAudioEngine()


@pytest.fixture
def membership():
    return FakeMembership()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def audio_cache(settings):
    from voice_dj.infrastructure.cache.file_cache import AudioCache

    return AudioCache(settings.cache)


@pytest.fixture
def song_queue(settings):
    from voice_dj.domain.music.song_queue import SongQueue

    general = settings.general
    return SongQueue(
        max_song_duration=general.max_song_duration,
        max_song_per_playlist=general.max_song_per_playlist,
        automatic_shuffle=general.automatic_shuffle_on,
    )


@pytest_asyncio.fixture
async def controller(settings, song_queue, audio_cache, downloader, engine, membership, notifier):
    """A started controller; shut down after the test."""
    from voice_dj.application.services.playback_controller import PlaybackController
    from voice_dj.domain.voting.services import SkipVoteAggregator

    ctrl = PlaybackController(
        settings=settings,
        queue=song_queue,
        cache=audio_cache,
        downloader=downloader,
        engine=engine,
        membership=membership,
        notifier=notifier,
        votes=SkipVoteAggregator(),
    )
    ctrl.start()
    yield ctrl
    await ctrl.shutdown()
