"""Helpers to load, sync and serve application commands for a bot.

`CommandLoader` owns the command registry, the guild scope registry, the
builder, the synchronizer and the router, and wires them in startup order:

    loader = CommandLoader(config)
    loader.load()                 # build the tree, fail fast on bad definitions
    await loader.sync(bot)        # push to Discord once the bot is ready
    await loader.router.on_interaction(interaction)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union
import logging

import discord

from ..commands.loader import CommandSource, CommandTreeBuilder, Middleware
from ..commands.owner import load_owner_command
from ..commands.registry import CommandRegistry, ScopeRegistry
from ..commands.router import InteractionRouter
from ..commands.sync import CreateCooldown, Synchronizer
from ..commands.types import CommandNode, GuildCommandGroup, RemoteCommand
from ..core.config import AppConfig
from ..services.remote_registry import CommandRegistryClient, DiscordCommandRegistry

logger = logging.getLogger(__name__)


class CommandLoader:
    """Startup wiring for one commands folder.

    Args:
        config: Loaded settings.
        middleware: Functions applied to each loaded command before validation.
        remote: Remote registry; defaults to one built on the bot in `sync()`.
        source: File-system collaborator.
        cooldown: Create cool-down shared by all syncs.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        middleware: Union[Middleware, Sequence[Middleware], None] = None,
        remote: Optional[CommandRegistryClient] = None,
        source: Optional[CommandSource] = None,
        cooldown: Optional[CreateCooldown] = None,
    ) -> None:
        self.config = config
        self.root = Path(config.commands_folder)
        self.source = source or CommandSource()
        self.registry = CommandRegistry()
        self.scopes = ScopeRegistry()
        self.router = InteractionRouter(self.registry)
        self.remote = remote
        self.cooldown = cooldown
        self.synchronizer: Optional[Synchronizer] = None
        self.owner_command: Optional[CommandNode] = None
        self.default_scope: Optional[int] = None

        owner_folder = self.root / config.owner_command
        self._has_owner_folder = self.source.is_dir(owner_folder)
        self.builder = CommandTreeBuilder(
            self.root,
            self.registry,
            self.source,
            folders_as_groups=config.folders_as_groups,
            debug=config.debug,
            middleware=middleware,
            default_dm_permission=config.default_dm_permission,
            file_extensions=config.command_file_extensions,
            special_folders=[config.owner_command] if self._has_owner_folder else [],
        )

    @property
    def single_scope(self) -> bool:
        return self.config.single_guild_id is not None or self.config.debug

    def load(self) -> CommandRegistry:
        """Build the whole tree: regular, owner and guild commands.

        Raises:
            LoadError: On any invalid definition.
        """
        self.builder.build()

        owner = self._build_owner()
        if owner is not None:
            self.owner_command = owner
            if self.single_scope:
                self.registry.add(owner)
            else:
                self.registry.add(owner, default_scope=False)
                self.scopes.add(owner)

        guild_commands = self.builder.load_guild_commands(scopes=self.scopes)
        logger.info(
            "Command tree ready: %d commands (%d per-guild)", len(self.registry), len(guild_commands)
        )
        return self.registry

    @property
    def owner_enabled(self) -> bool:
        return self._has_owner_folder and (self.config.owner_guild_id is not None or self.single_scope)

    def _build_owner(self) -> Optional[GuildCommandGroup]:
        if not self.owner_enabled:
            return None
        owner_guild = self.config.owner_guild_id
        return load_owner_command(
            self.root,
            name=self.config.owner_command,
            source=self.source,
            file_extension=self.config.command_file_extensions[0],
            should_create_for=lambda guild_id: guild_id == owner_guild,
        )

    def _resolve_default_scope(self, bot: discord.Client) -> Optional[int]:
        if self.config.single_guild_id is not None:
            return self.config.single_guild_id
        if self.config.debug:
            if self.config.owner_guild_id is not None:
                return self.config.owner_guild_id
            first = next(iter(bot.guilds), None)
            return first.id if first is not None else None
        return None

    async def sync(self, bot: discord.Client) -> None:
        """Push the default scope, then reconcile guild commands for every guild.

        A failure in one guild is logged and doesn't stop the others.
        """
        if self.synchronizer is None:
            remote = self.remote or DiscordCommandRegistry(bot)
            self.synchronizer = Synchronizer(remote, self.registry, self.scopes, self.cooldown)
        self.default_scope = self._resolve_default_scope(bot)
        await self.synchronizer.sync_default(self.default_scope)
        if len(self.scopes):
            await self.synchronizer.reconcile_all(g.id for g in bot.guilds)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        if self.synchronizer is None or not len(self.scopes):
            return
        try:
            await self.synchronizer.reconcile_on_scope_appear(guild.id)
        except Exception as e:
            logger.error("Failed to install guild commands in guild %s: %s", guild.id, e)

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        if self.synchronizer is not None:
            self.synchronizer.reconcile_on_scope_remove(guild.id)

    async def reload(self, name: str, subfolder: str = "") -> Optional[RemoteCommand]:
        """Reload a command from disk and push it to the default scope.

        The owner command is rebuilt through `reload_owner`.

        Returns:
            RemoteCommand | None: The remote handle after the push.
        """
        if self.synchronizer is None:
            raise RuntimeError("Commands must be synced before they can be reloaded")
        if name == self.config.owner_command and self.owner_enabled:
            return await self.reload_owner()
        if name in self.scopes:
            raise ValueError(f"{name} is a guild command; use synchronizer.update() per guild")
        command = self.builder.reload(name, subfolder)
        return await self.synchronizer.push(command, self.default_scope)

    async def reload_owner(self) -> Optional[RemoteCommand]:
        """Rebuild the owner command from its folder and push it.

        Subcommands whose files were removed disappear; an owner folder left
        without subcommands deletes the remote command.

        Returns:
            RemoteCommand | None: The remote handle, or None once removed.
        """
        if self.synchronizer is None:
            raise RuntimeError("Commands must be synced before they can be reloaded")
        name = self.config.owner_command
        owner = self._build_owner()
        self.owner_command = owner

        if self.single_scope:
            if owner is None:
                self.registry.remove(name)
                await self.synchronizer.delete_default(name, self.default_scope)
                return None
            self.registry.add(owner, replace=True)
            return await self.synchronizer.push(owner, self.default_scope)

        owner_guild = self.config.owner_guild_id
        if owner is None:
            if name in self.scopes:
                await self.synchronizer.delete(name, owner_guild)  # type: ignore[arg-type]
                self.scopes.remove(name)
            self.registry.remove(name)
            return None
        self.registry.add(owner, replace=True, default_scope=False)
        self.scopes.replace(owner)
        logger.info("Reloaded owner command with %d subcommands", len(owner.options))
        return await self.synchronizer.update(owner, owner_guild)  # type: ignore[arg-type]


__all__ = ["CommandLoader"]
