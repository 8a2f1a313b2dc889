"""
Application Commands

Chat command names, the admin permission policy and the router that maps
commands onto the playback core.
"""

from voice_dj.application.commands.command_names import CommandName
from voice_dj.application.commands.permissions import PermissionPolicy
from voice_dj.application.commands.router import CommandInvocation, CommandReply, CommandRouter

__all__ = [
    "CommandName",
    "PermissionPolicy",
    # Router
    "CommandInvocation",
    "CommandReply",
    "CommandRouter",
]
