"""
Command Router

Maps a parsed chat command onto the playback core. Every command returns a
``CommandReply``; domain errors become error replies instead of escaping to
the chat adapter.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as SettingsValidationError

from ...domain.shared.exceptions import DomainError
from ...domain.shared.messages import LogTemplates, ReplyMessages
from ...domain.shared.types import NonEmptyStr
from ...domain.voting.value_objects import VoteResult
from ...utils.formatting import format_duration, format_size, format_volume
from .command_names import CommandName, alias_for, build_alias_table
from .permissions import PermissionPolicy

if TYPE_CHECKING:
    from ...config.settings import Settings
    from ..interfaces.channel_membership import ChannelMembership
    from ..interfaces.track_resolver import TrackResolver
    from ..services.playback_controller import PlaybackController, SkipOutcome

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[], "Settings"]


class CommandInvocation(BaseModel):
    """One chat message that started with the command prefix."""

    model_config = ConfigDict(frozen=True, strict=True)

    user: NonEmptyStr
    alias: NonEmptyStr
    argument: str = ""


class CommandReply(BaseModel):
    """Text to post back to the channel the command came from."""

    model_config = ConfigDict(frozen=True)

    message: str
    is_error: bool = False
    close_bot: bool = False


class CommandRouter:
    """Dispatches invocations to one handler per :class:`CommandName`."""

    def __init__(
        self,
        *,
        settings: Settings,
        controller: PlaybackController,
        resolver: TrackResolver,
        membership: ChannelMembership,
        reload_settings: ReloadCallback | None = None,
    ) -> None:
        self._controller = controller
        self._resolver = resolver
        self._membership = membership
        self._reload_settings = reload_settings
        self._handlers: dict[
            CommandName, Callable[[CommandInvocation], Awaitable[CommandReply]]
        ] = {
            CommandName.ADD: self._add,
            CommandName.SKIP: self._skip,
            CommandName.SKIP_PLAYLIST: self._skip_playlist,
            CommandName.FORCE_SKIP: self._force_skip,
            CommandName.FORCE_SKIP_PLAYLIST: self._force_skip_playlist,
            CommandName.HELP: self._help,
            CommandName.VOLUME: self._volume,
            CommandName.MOVE: self._move,
            CommandName.RELOAD: self._reload,
            CommandName.RESET: self._reset,
            CommandName.NUM_SONGS: self._num_songs,
            CommandName.NEXT_SONG: self._next_song,
            CommandName.CURRENT_SONG: self._current_song,
            CommandName.SET_COMMENT: self._set_comment,
            CommandName.NUM_CACHED: self._num_cached,
            CommandName.CACHE_SIZE: self._cache_size,
            CommandName.KILL: self._kill_bot,
            CommandName.SHUFFLE: self._shuffle,
            CommandName.SHUFFLE_ON: self._shuffle_on,
            CommandName.SHUFFLE_OFF: self._shuffle_off,
        }
        self.apply_settings(settings)

    def apply_settings(self, settings: Settings) -> None:
        """Rebuild the alias table and permission policy from ``settings``."""
        self._settings = settings
        self._aliases = build_alias_table(settings.aliases)
        self.policy = PermissionPolicy.from_settings(settings.permissions)

    @property
    def prefix(self) -> str:
        return self._settings.general.command_prefix

    def parse(self, user: str, text: str) -> CommandInvocation | None:
        """Split ``<prefix><alias> [argument]``; None when the prefix is absent."""
        if not user or not text.startswith(self.prefix):
            return None
        parts = text[len(self.prefix):].strip().split(maxsplit=1)
        if not parts:
            return None
        argument = parts[1].strip() if len(parts) > 1 else ""
        return CommandInvocation(user=user, alias=parts[0], argument=argument)

    def resolve_command(self, alias: str) -> CommandName | None:
        return self._aliases.get(alias.lower())

    async def handle(self, invocation: CommandInvocation) -> CommandReply:
        command = self.resolve_command(invocation.alias)
        if command is None:
            return CommandReply(
                message=ReplyMessages.UNKNOWN_COMMAND.format(
                    prefix=self.prefix,
                    alias=invocation.alias,
                    help=alias_for(self._settings.aliases, CommandName.HELP),
                ),
                is_error=True,
            )

        logger.debug(LogTemplates.COMMAND_RECEIVED, invocation.user, command.value)
        try:
            self.policy.check(command, invocation.user)
            return await self._handlers[command](invocation)
        except DomainError as e:
            logger.info(LogTemplates.COMMAND_REJECTED, command.value, invocation.user, e.code)
            return CommandReply(message=e.message, is_error=True)

    async def handle_text(self, user: str, text: str) -> CommandReply | None:
        invocation = self.parse(user, text)
        if invocation is None:
            return None
        return await self.handle(invocation)

    # ── Queueing ───────────────────────────────────────────────────────

    async def _add(self, invocation: CommandInvocation) -> CommandReply:
        url = invocation.argument.strip("<>")
        if not url:
            return self._usage(CommandName.ADD, "<url>")
        if not self._resolver.is_url(url):
            return CommandReply(message=ReplyMessages.NOT_A_URL.format(url=url), is_error=True)

        if self._resolver.is_playlist(url):
            self.policy.check(CommandName.ADD_PLAYLIST, invocation.user)

        tracks = await self._resolver.resolve(url, invocation.user)
        if not tracks:
            return CommandReply(message=ReplyMessages.NO_TRACKS_FOUND.format(url=url), is_error=True)

        first = tracks[0]
        if first.in_playlist:
            self.policy.check(CommandName.ADD_PLAYLIST, invocation.user)
            result = self._controller.enqueue_playlist(tracks)
            if not result.added:
                return CommandReply(
                    message=ReplyMessages.PLAYLIST_NOTHING_ADDED.format(
                        title=first.playlist_title or first.playlist_id
                    ),
                    is_error=True,
                )
            return CommandReply(
                message=ReplyMessages.PLAYLIST_ADDED.format(
                    user=invocation.user,
                    title=first.playlist_title or first.playlist_id,
                    added=result.added,
                    dropped=result.dropped,
                )
            )

        position = self._controller.enqueue(first)
        return CommandReply(
            message=ReplyMessages.TRACK_ADDED.format(
                user=invocation.user, title=first.display_title, position=position + 1
            )
        )

    async def _reset(self, invocation: CommandInvocation) -> CommandReply:
        removed = await self._controller.reset()
        return CommandReply(message=ReplyMessages.QUEUE_RESET.format(user=invocation.user, count=removed))

    async def _shuffle(self, invocation: CommandInvocation) -> CommandReply:
        if self._controller.queue_length < 2:
            return CommandReply(message=ReplyMessages.NOT_ENOUGH_TO_SHUFFLE, is_error=True)
        self._controller.shuffle()
        return CommandReply(message=ReplyMessages.SHUFFLED.format(user=invocation.user))

    async def _shuffle_on(self, invocation: CommandInvocation) -> CommandReply:
        self._controller.set_automatic_shuffle(True)
        return CommandReply(message=ReplyMessages.AUTO_SHUFFLE_ON.format(user=invocation.user))

    async def _shuffle_off(self, invocation: CommandInvocation) -> CommandReply:
        self._controller.set_automatic_shuffle(False)
        return CommandReply(message=ReplyMessages.AUTO_SHUFFLE_OFF.format(user=invocation.user))

    # ── Skipping ───────────────────────────────────────────────────────

    async def _skip(self, invocation: CommandInvocation) -> CommandReply:
        outcome = await self._controller.skip(
            invocation.user, admin=self.policy.skip_bypasses_votes(invocation.user)
        )
        return self._skip_reply(outcome, invocation.user)

    async def _skip_playlist(self, invocation: CommandInvocation) -> CommandReply:
        outcome = await self._controller.skip_playlist(
            invocation.user, admin=self.policy.skip_bypasses_votes(invocation.user)
        )
        return self._skip_reply(outcome, invocation.user)

    async def _force_skip(self, invocation: CommandInvocation) -> CommandReply:
        outcome = await self._controller.force_skip(invocation.user)
        return self._skip_reply(outcome, invocation.user)

    async def _force_skip_playlist(self, invocation: CommandInvocation) -> CommandReply:
        outcome = await self._controller.force_skip_playlist(invocation.user)
        return self._skip_reply(outcome, invocation.user)

    @staticmethod
    def _skip_reply(outcome: SkipOutcome, user: str) -> CommandReply:
        noun = outcome.target.noun
        match outcome.reason:
            case VoteResult.ADMIN_SKIP:
                message = ReplyMessages.ADMIN_SKIPPED.format(user=user, noun=noun)
            case VoteResult.THRESHOLD_MET:
                message = ReplyMessages.VOTE_PASSED.format(noun=noun)
            case VoteResult.VOTE_RECORDED:
                message = ReplyMessages.VOTE_RECORDED.format(
                    user=user, noun=noun, votes=outcome.votes, needed=outcome.needed
                )
            case VoteResult.ALREADY_VOTED:
                return CommandReply(
                    message=ReplyMessages.ALREADY_VOTED.format(noun=noun), is_error=True
                )
            case VoteResult.ALREADY_SKIPPING:
                return CommandReply(
                    message=ReplyMessages.ALREADY_SKIPPING.format(noun=noun), is_error=True
                )
            case VoteResult.NO_PLAYLIST:
                return CommandReply(message=ReplyMessages.NOT_IN_PLAYLIST, is_error=True)
            case _:
                return CommandReply(message=ReplyMessages.NOTHING_PLAYING, is_error=True)
        return CommandReply(message=message)

    # ── Playback settings ──────────────────────────────────────────────

    async def _volume(self, invocation: CommandInvocation) -> CommandReply:
        if not invocation.argument:
            return CommandReply(
                message=ReplyMessages.CURRENT_VOLUME.format(
                    volume=format_volume(self._controller.volume)
                )
            )

        try:
            requested = float(invocation.argument)
        except ValueError:
            return self._invalid_volume()
        if not math.isfinite(requested):
            return self._invalid_volume()

        # Out-of-range requests are clamped by the controller, not refused.
        applied = self._controller.set_volume(requested)
        return CommandReply(
            message=ReplyMessages.VOLUME_SET.format(user=invocation.user, volume=format_volume(applied))
        )

    def _invalid_volume(self) -> CommandReply:
        volumes = self._settings.volume
        return CommandReply(
            message=ReplyMessages.INVALID_VOLUME.format(
                lowest=format_volume(volumes.lowest_volume),
                highest=format_volume(volumes.highest_volume),
            ),
            is_error=True,
        )

    async def _set_comment(self, invocation: CommandInvocation) -> CommandReply:
        track = self._controller.set_comment(invocation.argument)
        if track is None:
            return CommandReply(message=ReplyMessages.NOTHING_PLAYING, is_error=True)
        if not track.comment:
            return CommandReply(message=ReplyMessages.COMMENT_CLEARED.format(user=invocation.user))
        return CommandReply(
            message=ReplyMessages.COMMENT_SET.format(user=invocation.user, comment=track.comment)
        )

    async def _move(self, invocation: CommandInvocation) -> CommandReply:
        if not invocation.argument:
            return self._usage(CommandName.MOVE, "<channel>")
        await self._membership.move_to_channel(invocation.argument)
        return CommandReply(message=ReplyMessages.MOVED.format(channel=invocation.argument))

    # ── Queries ────────────────────────────────────────────────────────

    async def _num_songs(self, invocation: CommandInvocation) -> CommandReply:
        count = self._controller.queue_length
        return CommandReply(message=ReplyMessages.NUM_SONGS.format(count=count))

    async def _next_song(self, invocation: CommandInvocation) -> CommandReply:
        track = self._controller.next_track
        if track is None:
            return CommandReply(message=ReplyMessages.NO_NEXT_SONG, is_error=True)
        return CommandReply(
            message=ReplyMessages.NEXT_SONG.format(title=track.display_title, submitter=track.submitter)
        )

    async def _current_song(self, invocation: CommandInvocation) -> CommandReply:
        track = self._controller.current_track
        if track is None:
            return CommandReply(message=ReplyMessages.NOTHING_PLAYING, is_error=True)
        message = ReplyMessages.CURRENT_SONG.format(
            title=track.display_title, submitter=track.submitter
        )
        if track.in_playlist:
            message += ReplyMessages.FROM_PLAYLIST.format(
                playlist=track.playlist_title or track.playlist_id
            )
        if track.comment:
            message += ReplyMessages.WITH_COMMENT.format(comment=track.comment)
        return CommandReply(message=message)

    async def _num_cached(self, invocation: CommandInvocation) -> CommandReply:
        if not self._settings.cache.enabled:
            return CommandReply(message=ReplyMessages.CACHE_DISABLED, is_error=True)
        return CommandReply(
            message=ReplyMessages.NUM_CACHED.format(count=self._controller.cached_count)
        )

    async def _cache_size(self, invocation: CommandInvocation) -> CommandReply:
        if not self._settings.cache.enabled:
            return CommandReply(message=ReplyMessages.CACHE_DISABLED, is_error=True)
        return CommandReply(
            message=ReplyMessages.CACHE_SIZE.format(
                size=format_size(self._controller.cache_size_bytes),
                limit=format_size(self._settings.cache.maximum_size),
            )
        )

    async def _help(self, invocation: CommandInvocation) -> CommandReply:
        aliases = self._settings.aliases
        lines = [ReplyMessages.HELP_HEADER]
        for command in self._handlers:
            if not self.policy.is_allowed(command, invocation.user):
                continue
            lines.append(
                ReplyMessages.HELP_LINE.format(
                    prefix=self.prefix,
                    alias=alias_for(aliases, command),
                    description=ReplyMessages.HELP_DESCRIPTIONS[command.value],
                )
            )
        queue_seconds = sum(t.duration_seconds for t in self._controller.queue_snapshot())
        lines.append(
            ReplyMessages.HELP_FOOTER.format(
                count=self._controller.queue_length, duration=format_duration(queue_seconds)
            )
        )
        return CommandReply(message="\n".join(lines))

    # ── Administration ─────────────────────────────────────────────────

    async def _reload(self, invocation: CommandInvocation) -> CommandReply:
        if self._reload_settings is None:
            return CommandReply(message=ReplyMessages.RELOAD_UNAVAILABLE, is_error=True)
        try:
            self._reload_settings()
        except SettingsValidationError as e:
            logger.warning(LogTemplates.SETTINGS_RELOAD_FAILED, e)
            return CommandReply(
                message=ReplyMessages.RELOAD_FAILED.format(errors=e.error_count()), is_error=True
            )
        logger.info(LogTemplates.SETTINGS_RELOADED, invocation.user)
        return CommandReply(message=ReplyMessages.RELOADED)

    async def _kill_bot(self, invocation: CommandInvocation) -> CommandReply:
        logger.info(LogTemplates.KILL_REQUESTED, invocation.user)
        await self._controller.shutdown()
        return CommandReply(message=ReplyMessages.KILLED, close_bot=True)

    def _usage(self, command: CommandName, arguments: str) -> CommandReply:
        return CommandReply(
            message=ReplyMessages.USAGE.format(
                prefix=self.prefix,
                alias=alias_for(self._settings.aliases, command),
                arguments=arguments,
            ),
            is_error=True,
        )
