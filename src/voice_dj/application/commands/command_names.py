"""Chat command identifiers and their configurable aliases."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from ...config.settings import AliasSettings


class CommandName(StrEnum):
    """Every command the bot understands, independent of its chat alias."""

    ADD = "add"
    ADD_PLAYLIST = "add_playlist"  # Permission only; typed as ADD
    SKIP = "skip"
    SKIP_PLAYLIST = "skip_playlist"
    FORCE_SKIP = "force_skip"
    FORCE_SKIP_PLAYLIST = "force_skip_playlist"
    HELP = "help"
    VOLUME = "volume"
    MOVE = "move"
    RELOAD = "reload"
    RESET = "reset"
    NUM_SONGS = "num_songs"
    NEXT_SONG = "next_song"
    CURRENT_SONG = "current_song"
    SET_COMMENT = "set_comment"
    NUM_CACHED = "num_cached"
    CACHE_SIZE = "cache_size"
    KILL = "kill"
    SHUFFLE = "shuffle"
    SHUFFLE_ON = "shuffle_on"
    SHUFFLE_OFF = "shuffle_off"


ALIAS_FIELDS: Final[dict[CommandName, str]] = {
    CommandName.ADD: "add_alias",
    CommandName.SKIP: "skip_alias",
    CommandName.SKIP_PLAYLIST: "skip_playlist_alias",
    CommandName.FORCE_SKIP: "admin_skip_alias",
    CommandName.FORCE_SKIP_PLAYLIST: "admin_skip_playlist_alias",
    CommandName.HELP: "help_alias",
    CommandName.VOLUME: "volume_alias",
    CommandName.MOVE: "move_alias",
    CommandName.RELOAD: "reload_alias",
    CommandName.RESET: "reset_alias",
    CommandName.NUM_SONGS: "num_songs_alias",
    CommandName.NEXT_SONG: "next_song_alias",
    CommandName.CURRENT_SONG: "current_song_alias",
    CommandName.SET_COMMENT: "set_comment_alias",
    CommandName.NUM_CACHED: "num_cached_alias",
    CommandName.CACHE_SIZE: "cache_size_alias",
    CommandName.KILL: "kill_alias",
    CommandName.SHUFFLE: "shuffle_alias",
    CommandName.SHUFFLE_ON: "shuffle_on_alias",
    CommandName.SHUFFLE_OFF: "shuffle_off_alias",
}


def build_alias_table(aliases: AliasSettings) -> dict[str, CommandName]:
    """Map each lower-cased alias to its command."""
    return {
        getattr(aliases, field).lower(): command for command, field in ALIAS_FIELDS.items()
    }


def alias_for(aliases: AliasSettings, command: CommandName) -> str:
    return getattr(aliases, ALIAS_FIELDS[command])
