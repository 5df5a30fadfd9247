"""Registry for Discord bot event handlers.
"""
from __future__ import annotations

import logging

import discord

from ..startup import CommandLoader

logger = logging.getLogger(__name__)


def register_bot_events(bot: discord.Client, loader: CommandLoader) -> None:
    """Attach the command loader's listeners to the provided bot instance.

    The first `on_ready` pushes commands; later reconnects don't re-sync.
    """

    @bot.event
    async def on_ready() -> None:
        if getattr(bot, "_commands_synced_once", False):
            return
        setattr(bot, "_commands_synced_once", True)
        try:
            await loader.sync(bot)
        except Exception as e:
            logger.error("[Commands] Sync failed: %s", e)
            return
        logger.info("[Commands] Synced (joined guilds=%d).", len(bot.guilds))

    @bot.event
    async def on_interaction(interaction: discord.Interaction) -> None:
        await loader.router.on_interaction(interaction)

    @bot.event
    async def on_guild_join(guild: discord.Guild) -> None:
        await loader.on_guild_join(guild)

    @bot.event
    async def on_guild_remove(guild: discord.Guild) -> None:
        await loader.on_guild_remove(guild)
