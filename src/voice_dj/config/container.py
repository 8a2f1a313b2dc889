"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the playback core and its adapters.
Components are created on-demand and cached for reuse throughout the application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.shared.exceptions import CacheIOError
from ..domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.commands.router import CommandRouter
    from ..application.interfaces.audio_engine import AudioEngine
    from ..application.interfaces.channel_membership import ChannelMembership
    from ..application.interfaces.chat_notifier import ChatNotifier
    from ..application.interfaces.track_downloader import TrackDownloader
    from ..application.interfaces.track_resolver import TrackResolver
    from ..application.services.playback_controller import PlaybackController
    from ..domain.music.song_queue import SongQueue
    from ..domain.voting.services import SkipVoteAggregator
    from ..infrastructure.cache.file_cache import AudioCache
    from ..infrastructure.discord.voice_adapter import DiscordVoiceAdapter
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Components are lazily initialized when first accessed. Tests may pass
    pre-built components (fakes) through the underscore fields.
    """

    settings: Settings
    _bot: Bot | None = None

    # Domain
    _song_queue: SongQueue | None = None
    _vote_aggregator: SkipVoteAggregator | None = None

    # Infrastructure adapters
    _audio_cache: AudioCache | None = None
    _track_resolver: TrackResolver | None = None
    _track_downloader: TrackDownloader | None = None
    _voice_adapter: DiscordVoiceAdapter | None = None
    _audio_engine: AudioEngine | None = None
    _channel_membership: ChannelMembership | None = None
    _chat_notifier: ChatNotifier | None = None

    # Application
    _playback_controller: PlaybackController | None = None
    _command_router: CommandRouter | None = None

    _is_shut_down: bool = False

    def set_bot(self, bot: Bot) -> None:
        """Set the Discord bot instance."""
        self._bot = bot

    @property
    def bot(self) -> Bot:
        """Get the Discord bot instance."""
        if self._bot is None:
            raise RuntimeError(ErrorMessages.BOT_NOT_INITIALIZED)
        return self._bot

    # === Domain ===

    @property
    def song_queue(self) -> SongQueue:
        if self._song_queue is None:
            from ..domain.music.song_queue import SongQueue

            general = self.settings.general
            self._song_queue = SongQueue(
                max_song_duration=general.max_song_duration,
                max_song_per_playlist=general.max_song_per_playlist,
                automatic_shuffle=general.automatic_shuffle_on,
            )
        return self._song_queue

    @property
    def vote_aggregator(self) -> SkipVoteAggregator:
        if self._vote_aggregator is None:
            from ..domain.voting.services import SkipVoteAggregator

            self._vote_aggregator = SkipVoteAggregator()
        return self._vote_aggregator

    # === Infrastructure Adapters ===

    @property
    def audio_cache(self) -> AudioCache:
        if self._audio_cache is None:
            from ..infrastructure.cache.file_cache import AudioCache

            self._audio_cache = AudioCache(self.settings.cache)
        return self._audio_cache

    @property
    def track_resolver(self) -> TrackResolver:
        if self._track_resolver is None:
            from ..infrastructure.audio.ytdlp_resolver import YtDlpResolver

            self._track_resolver = YtDlpResolver(self.settings.download)
        return self._track_resolver

    @property
    def track_downloader(self) -> TrackDownloader:
        if self._track_downloader is None:
            from ..infrastructure.audio.ytdlp_downloader import YtDlpDownloader

            self._track_downloader = YtDlpDownloader(
                self.settings.download,
                max_song_duration=self.settings.general.max_song_duration,
            )
        return self._track_downloader

    @property
    def voice_adapter(self) -> DiscordVoiceAdapter:
        """The discord.py adapter; serves as engine, membership and notifier."""
        if self._voice_adapter is None:
            from ..infrastructure.discord.voice_adapter import DiscordVoiceAdapter

            self._voice_adapter = DiscordVoiceAdapter(
                self.bot, guild_id=self.settings.discord.guild_id
            )
        return self._voice_adapter

    @property
    def audio_engine(self) -> AudioEngine:
        return self._audio_engine or self.voice_adapter

    @property
    def channel_membership(self) -> ChannelMembership:
        return self._channel_membership or self.voice_adapter

    @property
    def chat_notifier(self) -> ChatNotifier:
        return self._chat_notifier or self.voice_adapter

    # === Application ===

    @property
    def playback_controller(self) -> PlaybackController:
        if self._playback_controller is None:
            from ..application.services.playback_controller import PlaybackController

            self._playback_controller = PlaybackController(
                settings=self.settings,
                queue=self.song_queue,
                cache=self.audio_cache,
                downloader=self.track_downloader,
                engine=self.audio_engine,
                membership=self.channel_membership,
                notifier=self.chat_notifier,
                votes=self.vote_aggregator,
            )
        return self._playback_controller

    @property
    def command_router(self) -> CommandRouter:
        if self._command_router is None:
            from ..application.commands.router import CommandRouter

            self._command_router = CommandRouter(
                settings=self.settings,
                controller=self.playback_controller,
                resolver=self.track_resolver,
                membership=self.channel_membership,
                reload_settings=self.reload_settings,
            )
        return self._command_router

    # === Lifecycle ===

    def reload_settings(self) -> Settings:
        """Re-read settings from the environment and push them into live components.

        Raises:
            pydantic.ValidationError: the new settings are invalid; the old
                settings stay in effect.
        """
        from .settings import clear_settings_cache, get_settings

        clear_settings_cache()
        settings = get_settings()
        self.settings = settings

        if self._audio_cache is not None:
            self._audio_cache.apply_settings(settings.cache)
        if self._track_downloader is not None:
            self._track_downloader.apply_settings(
                settings.download, max_song_duration=settings.general.max_song_duration
            )
        if self._playback_controller is not None:
            self._playback_controller.apply_settings(settings)
        if self._command_router is not None:
            self._command_router.apply_settings(settings)

        logger.info(LogTemplates.SETTINGS_APPLIED)
        return settings

    async def initialize(self) -> None:
        """Prepare the cache directory and start the playback loop."""
        cache = self.audio_cache
        try:
            cache.ensure_directory()
            cache.load_existing()
        except CacheIOError as e:
            logger.warning(LogTemplates.CACHE_INIT_FAILED, e.message)

        self.playback_controller.start()
        self._is_shut_down = False

    async def shutdown(self) -> None:
        """Stop playback, drop uncached files and leave the voice channel."""
        if self._is_shut_down:
            return
        self._is_shut_down = True

        if self._playback_controller is not None:
            await self._playback_controller.shutdown()

        if self._audio_cache is not None and not self._audio_cache.enabled:
            self._audio_cache.clear()

        if self._voice_adapter is not None:
            await self._voice_adapter.disconnect()


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
