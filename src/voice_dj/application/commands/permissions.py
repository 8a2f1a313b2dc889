"""Admin-only command policy."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...domain.shared.exceptions import PermissionDeniedError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from .command_names import CommandName

if TYPE_CHECKING:
    from ...config.settings import PermissionSettings

logger = logging.getLogger(__name__)


class PermissionPolicy:
    """Decides which users may run which commands.

    Built once from :class:`PermissionSettings` and rebuilt on reload, so a
    check is a set lookup and a dict lookup.
    """

    def __init__(
        self,
        restricted: dict[CommandName, bool],
        admins: frozenset[str],
        *,
        enabled: bool = True,
        admin_skip: bool = True,
    ) -> None:
        self._restricted = dict(restricted)
        self._admins = admins
        self._enabled = enabled
        self._admin_skip = admin_skip

    @classmethod
    def from_settings(cls, permissions: PermissionSettings) -> PermissionPolicy:
        restricted = {
            CommandName.ADD: permissions.admin_add,
            CommandName.ADD_PLAYLIST: permissions.admin_add_playlists,
            CommandName.SKIP: False,
            CommandName.SKIP_PLAYLIST: False,
            CommandName.FORCE_SKIP: True,
            CommandName.FORCE_SKIP_PLAYLIST: True,
            CommandName.HELP: permissions.admin_help,
            CommandName.VOLUME: permissions.admin_volume,
            CommandName.MOVE: permissions.admin_move,
            CommandName.RELOAD: permissions.admin_reload,
            CommandName.RESET: permissions.admin_reset,
            CommandName.NUM_SONGS: permissions.admin_num_songs,
            CommandName.NEXT_SONG: permissions.admin_next_song,
            CommandName.CURRENT_SONG: permissions.admin_current_song,
            CommandName.SET_COMMENT: permissions.admin_set_comment,
            CommandName.NUM_CACHED: permissions.admin_num_cached,
            CommandName.CACHE_SIZE: permissions.admin_cache_size,
            CommandName.KILL: permissions.admin_kill,
            CommandName.SHUFFLE: permissions.admin_shuffle,
            CommandName.SHUFFLE_ON: permissions.admin_shuffle_toggle,
            CommandName.SHUFFLE_OFF: permissions.admin_shuffle_toggle,
        }
        return cls(
            restricted,
            frozenset(permissions.admins),
            enabled=permissions.admins_enabled,
            admin_skip=permissions.admin_skip,
        )

    def is_admin(self, user: str) -> bool:
        return user in self._admins

    def is_restricted(self, command: CommandName) -> bool:
        return self._enabled and self._restricted.get(command, True)

    def is_allowed(self, command: CommandName, user: str) -> bool:
        return not self.is_restricted(command) or self.is_admin(user)

    def check(self, command: CommandName, user: str) -> None:
        """Raise unless ``user`` may run ``command``.

        Raises:
            PermissionDeniedError: the command is admin-only and ``user`` is
                not an admin.
        """
        if not self.is_allowed(command, user):
            logger.info(LogTemplates.PERMISSION_DENIED, user, command.value)
            raise PermissionDeniedError(
                command.value,
                user,
                ErrorMessages.PERMISSION_DENIED.format(user=user, command=command.value),
            )

    def skip_bypasses_votes(self, user: str) -> bool:
        """Whether ``user``'s skip counts as an admin skip."""
        return self._enabled and self._admin_skip and self.is_admin(user)
