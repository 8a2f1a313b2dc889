"""Prefix-command music cog: turns chat messages into router invocations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from voice_dj.domain.shared.messages import ErrorMessages, LogTemplates

if TYPE_CHECKING:
    from ....config.container import Container

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


class MusicCog(commands.Cog):
    def __init__(self, bot: commands.Bot, container: Container) -> None:
        self.bot = bot
        self.container = container

    @staticmethod
    def _is_bot_or_none(user: discord.abc.User | discord.Member | None) -> bool:
        return user is None or bool(getattr(user, "bot", False))

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if self._is_bot_or_none(message.author):
            return

        router = self.container.command_router
        invocation = router.parse(message.author.name, message.content)
        if invocation is None:
            return

        self.container.voice_adapter.remember_channel(message.channel)
        reply = await router.handle(invocation)

        try:
            await message.channel.send(reply.message[:MAX_MESSAGE_LENGTH])
        except discord.HTTPException as e:
            logger.warning(LogTemplates.NOTIFY_SEND_FAILED, e)

        if reply.close_bot:
            await self.bot.close()

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if self.bot.user is None or member.id != self.bot.user.id:
            return
        if before.channel is not None and after.channel is None:
            logger.warning(LogTemplates.VOICE_DISCONNECTED_EXTERNALLY, before.channel.name)
            await self.bot.close()


async def setup(bot: commands.Bot) -> None:
    container = getattr(bot, "container", None)
    if container is None:
        raise RuntimeError(ErrorMessages.CONTAINER_NOT_FOUND)

    await bot.add_cog(MusicCog(bot, container))
