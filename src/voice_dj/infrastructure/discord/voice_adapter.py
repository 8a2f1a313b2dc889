"""Discord voice adapter: channel membership, audio engine and chat notifier."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Final

import discord

from voice_dj.application.interfaces.audio_engine import AudioEngine, FinishedCallback
from voice_dj.application.interfaces.channel_membership import ChannelMembership
from voice_dj.application.interfaces.chat_notifier import ChatNotifier
from voice_dj.domain.shared.exceptions import EngineError, ValidationError
from voice_dj.domain.shared.messages import ErrorMessages, LogTemplates

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT: Final[float] = 10.0
FFMPEG_OPTIONS: Final[str] = "-vn"
MAX_MESSAGE_LENGTH: Final[int] = 2000


class DiscordVoiceAdapter(AudioEngine, ChannelMembership, ChatNotifier):
    """Single-channel voice connection backed by discord.py.

    The bot serves one voice channel at a time; the guild is taken from
    ``guild_id`` when configured, otherwise from the first guild the bot
    is a member of.
    """

    def __init__(self, bot: discord.Client, *, guild_id: int | None = None) -> None:
        self._bot = bot
        self._guild_id = guild_id
        self._text_channel: discord.abc.Messageable | None = None

    # ── Lookup helpers ─────────────────────────────────────────────────

    def _get_guild(self) -> discord.Guild | None:
        if self._guild_id is not None:
            return self._bot.get_guild(self._guild_id)
        return self._bot.guilds[0] if self._bot.guilds else None

    def _get_voice_client(self) -> discord.VoiceClient | None:
        guild = self._get_guild()
        if not guild:
            return None

        vc = guild.voice_client
        return vc if isinstance(vc, discord.VoiceClient) else None

    def _find_voice_channel(self, name: str) -> discord.VoiceChannel | discord.StageChannel | None:
        guild = self._get_guild()
        if guild is None:
            return None
        wanted = name.strip().lower()
        for channel in guild.channels:
            if isinstance(channel, discord.VoiceChannel | discord.StageChannel) and (
                channel.name.lower() == wanted
            ):
                return channel
        return None

    # ── ChannelMembership ──────────────────────────────────────────────

    def current_listener_count(self) -> int:
        """Non-bot members in the voice channel; deafened members still count."""
        vc = self._get_voice_client()
        if not vc or not vc.channel:
            return 0
        return sum(1 for member in vc.channel.members if not member.bot)

    async def move_to_channel(self, name: str) -> None:
        channel = self._find_voice_channel(name)
        if channel is None:
            raise ValidationError(ErrorMessages.CHANNEL_NOT_FOUND.format(name=name), field="channel")

        vc = self._get_voice_client()
        try:
            async with asyncio.timeout(CONNECT_TIMEOUT):
                if vc is None:
                    await channel.connect(self_deaf=True)
                elif vc.channel is None or vc.channel.id != channel.id:
                    await vc.move_to(channel)
        except TimeoutError as e:
            logger.error(LogTemplates.VOICE_CONNECTION_TIMEOUT, channel.name)
            raise ValidationError(
                ErrorMessages.CHANNEL_UNREACHABLE.format(name=channel.name), field="channel"
            ) from e
        except (discord.ClientException, discord.Forbidden) as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
            raise ValidationError(
                ErrorMessages.CHANNEL_UNREACHABLE.format(name=channel.name), field="channel"
            ) from e

        logger.info(LogTemplates.VOICE_CONNECTED, channel.name)

    # ── AudioEngine ────────────────────────────────────────────────────

    async def start_playback(
        self, path: Path, volume: float, on_finished: FinishedCallback
    ) -> None:
        vc = self._get_voice_client()
        if vc is None or not vc.is_connected():
            raise EngineError(ErrorMessages.VOICE_NOT_CONNECTED)

        if vc.is_playing() or vc.is_paused():
            vc.stop()

        try:
            source = discord.FFmpegPCMAudio(str(path), options=FFMPEG_OPTIONS)
            volume_source = discord.PCMVolumeTransformer(source, volume=volume)

            def after_callback(error: Exception | None = None) -> None:
                if error:
                    logger.warning(LogTemplates.PLAYBACK_ERROR, path.name, error)
                on_finished(error)

            vc.play(volume_source, after=after_callback)
        except discord.ClientException as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
            raise EngineError(str(e)) from e

        logger.debug(LogTemplates.PLAYBACK_STARTED, path.name)

    async def stop(self) -> None:
        vc = self._get_voice_client()
        if vc and (vc.is_playing() or vc.is_paused()):
            vc.stop()

    def set_volume(self, volume: float) -> None:
        vc = self._get_voice_client()
        if vc and isinstance(vc.source, discord.PCMVolumeTransformer):
            vc.source.volume = max(0.0, min(2.0, volume))

    def is_playing(self) -> bool:
        vc = self._get_voice_client()
        return vc is not None and vc.is_playing()

    async def disconnect(self) -> None:
        vc = self._get_voice_client()
        if vc is None:
            return
        try:
            await vc.disconnect(force=True)
            logger.info(LogTemplates.VOICE_DISCONNECTED)
        except discord.ClientException as e:
            logger.warning(LogTemplates.VOICE_CLIENT_ERROR, e)

    # ── ChatNotifier ───────────────────────────────────────────────────

    def remember_channel(self, channel: discord.abc.Messageable) -> None:
        """Route later notifications to the channel the last command came from."""
        self._text_channel = channel

    async def notify(self, message: str) -> None:
        if self._text_channel is None:
            logger.debug(LogTemplates.NOTIFY_NO_CHANNEL, message)
            return
        try:
            await self._text_channel.send(message[:MAX_MESSAGE_LENGTH])
        except discord.HTTPException as e:
            logger.warning(LogTemplates.NOTIFY_SEND_FAILED, e)
