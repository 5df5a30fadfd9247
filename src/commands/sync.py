"""Reconcile locally declared commands with the remote command registry.

The default scope (global, or the single guild in single-server mode) is
bulk-replaced once at startup. Guild commands are reconciled per guild:
adopted or created when a guild appears, forgotten when it goes away, and
created/edited/deleted on demand through `update` and `delete`.

Create calls that hit Discord's daily per-guild quota don't fail the caller:
the guild goes into a 24 hour cool-down during which further creates for it
are skipped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Set

from .errors import MissingRemoteCommand, RateLimited, RemoteNotFound
from .registry import CommandRegistry, ScopeRegistry
from .types import CommandNode, GuildCommand, RemoteCommand
from .validation import validate_options

if TYPE_CHECKING:
    from ..services.remote_registry import CommandRegistryClient

logger = logging.getLogger(__name__)

COOLDOWN_SECONDS = 24 * 60 * 60

Scheduler = Callable[[float, Callable[[], None]], Any]


class CreateCooldown:
    """Scopes whose daily create quota is exhausted.

    Each scope is added once and removed exactly once by the timer scheduled
    when it was added.

    Args:
        duration: Seconds a scope stays blocked.
        scheduler: ``call_later``-style callable; defaults to the running
            event loop's ``call_later``.
    """

    def __init__(self, duration: float = COOLDOWN_SECONDS, scheduler: Optional[Scheduler] = None):
        self.duration = duration
        self._scheduler = scheduler
        self._scopes: Set[int] = set()

    def __contains__(self, scope: object) -> bool:
        return scope in self._scopes

    def __len__(self) -> int:
        return len(self._scopes)

    def add(self, scope: int) -> bool:
        """Block `scope`; returns False if it was already blocked."""
        if scope in self._scopes:
            return False
        self._scopes.add(scope)
        schedule = self._scheduler or asyncio.get_running_loop().call_later
        schedule(self.duration, lambda: self._expire(scope))
        return True

    def _expire(self, scope: int) -> None:
        self._scopes.discard(scope)
        logger.info("Command create cool-down for guild %s expired", scope)


class Synchronizer:
    """Pushes the command tree to Discord and keeps guild handles current.

    Args:
        remote: Remote registry capability.
        registry: Loaded commands (default-scope handles are recorded here).
        scopes: Guild command entries and their per-guild handles.
        cooldown: Create cool-down set; a fresh one is made if omitted.
    """

    def __init__(
        self,
        remote: CommandRegistryClient,
        registry: CommandRegistry,
        scopes: Optional[ScopeRegistry] = None,
        cooldown: Optional[CreateCooldown] = None,
    ) -> None:
        self.remote = remote
        self.registry = registry
        self.scopes = scopes if scopes is not None else ScopeRegistry()
        self.cooldown = cooldown if cooldown is not None else CreateCooldown()

    # ----- default scope -----
    async def sync_default(self, scope: Optional[int] = None) -> List[RemoteCommand]:
        """Bulk replace the default scope with all default-scope commands.

        In a single guild, the guild commands included there go into the same
        bulk call so it doesn't wipe them; their handles are recorded in the
        scope registry.

        Args:
            scope: None for global commands, or the guild used in
                single-server/debug mode.
        """
        payload = [c.to_payload() for c in self.registry.default_commands()]
        scoped: Dict[str, GuildCommand] = {}
        if scope is not None:
            for command in self.scopes.commands():
                if self.scopes.is_included(command, scope):
                    scoped[command.name] = command
                    payload.append(self._payload_for(command, scope))
        handles = await self.remote.replace_all(scope, payload)
        self.registry.clear_remote()
        for handle in handles:
            if handle.name in scoped:
                self.scopes.set_handle(scoped[handle.name], scope, handle)  # type: ignore[arg-type]
            else:
                self.registry.set_remote(handle)
        logger.info("Synced %d commands to %s", len(handles), "global scope" if scope is None else f"guild {scope}")
        return handles

    async def delete_default(self, name: str, scope: Optional[int] = None) -> bool:
        """Delete a default-scope command by name; False if it wasn't there."""
        handle = self.registry.remote(name)
        if handle is None:
            handle = next((r for r in await self.remote.list(scope) if r.name == name), None)
        if handle is None:
            return False
        try:
            await self.remote.delete(scope, handle.id)
        except RemoteNotFound:
            return False
        finally:
            self.registry.forget_remote(name)
        return True

    async def push(self, command: CommandNode, scope: Optional[int] = None) -> RemoteCommand:
        """Edit the same-named default-scope command, or create it."""
        data = command.to_payload()
        handle = self.registry.remote(command.name)
        if handle is None:
            handle = next((r for r in await self.remote.list(scope) if r.name == command.name), None)
        if handle is not None:
            try:
                updated = await self.remote.edit(scope, handle.id, data)
            except RemoteNotFound:
                updated = await self.remote.create(scope, data)
        else:
            updated = await self.remote.create(scope, data)
        self.registry.set_remote(updated)
        return updated

    # ----- guild scopes -----
    def _payload_for(self, command: GuildCommand, scope: int) -> Dict[str, Any]:
        options = command.effective_options(scope)
        if command.get_options is not None:
            validate_options(command.name, options, command.autocomplete)
        return command.to_payload(options)

    async def _create(self, command: GuildCommand, scope: int) -> Optional[RemoteCommand]:
        if scope in self.cooldown:
            logger.debug("Skipping create of %s in guild %s: daily create quota cool-down", command.name, scope)
            return None
        try:
            handle = await self.remote.create(scope, self._payload_for(command, scope))
        except RateLimited as e:
            blocked = e.scope if e.scope is not None else scope
            if self.cooldown.add(blocked):
                logger.warning(
                    "Daily command create quota reached for guild %s; pausing creates for %d hours",
                    blocked,
                    int(self.cooldown.duration // 3600),
                )
            return None
        self.scopes.set_handle(command, scope, handle)
        return handle

    async def create_if_missing(self, command: GuildCommand | str, scope: int, skip_check: bool = False) -> Optional[RemoteCommand]:
        """Create `command` in `scope` if it is included there and not yet present.

        Returns:
            The new handle, or None if nothing was created (excluded, already
            present, or skipped by the cool-down).
        """
        command = self._guild_command(command)
        if not skip_check and not self.scopes.is_included(command, scope):
            return None
        if self.scopes.handle(command, scope) is not None:
            return None
        return await self._create(command, scope)

    async def reconcile_on_scope_appear(self, scope: int) -> Dict[str, RemoteCommand]:
        """Adopt or create every included guild command for a new guild.

        Existing remote commands with a matching name are adopted, so this is
        idempotent across restarts.
        """
        existing = {r.name: r for r in await self.remote.list(scope)}
        adopted: Dict[str, RemoteCommand] = {}
        for command in self.scopes.commands():
            if not self.scopes.is_included(command, scope):
                continue
            handle = existing.get(command.name)
            if handle is not None:
                self.scopes.set_handle(command, scope, handle)
            else:
                handle = await self.create_if_missing(command, scope)
            if handle is not None:
                adopted[command.name] = handle
        return adopted

    async def reconcile_all(self, scope_ids: Iterable[int]) -> Dict[int, Optional[Exception]]:
        """Reconcile several guilds; a failing guild doesn't stop the others.

        Returns:
            Mapping of guild id to the exception it failed with (None on success).
        """
        ids = list(scope_ids)
        results = await asyncio.gather(*(self.reconcile_on_scope_appear(s) for s in ids), return_exceptions=True)
        outcome: Dict[int, Optional[Exception]] = {}
        for scope, result in zip(ids, results):
            if isinstance(result, Exception):
                logger.error("Guild command reconciliation failed for guild %s: %s", scope, result)
                outcome[scope] = result
            else:
                outcome[scope] = None
        return outcome

    def reconcile_on_scope_remove(self, scope: int) -> int:
        """Forget all handles of a guild the bot left; no remote call."""
        return self.scopes.drop_scope(scope)

    async def _find_handle(self, command: GuildCommand, scope: int) -> Optional[RemoteCommand]:
        handle = self.scopes.handle(command, scope)
        if handle is None:
            handle = next((r for r in await self.remote.list(scope) if r.name == command.name), None)
            if handle is not None:
                self.scopes.set_handle(command, scope, handle)
        return handle

    async def update(self, command: GuildCommand | str, scope: int, create_if_missing: bool = True) -> Optional[RemoteCommand]:
        """Bring one guild command in one guild in line with its definition.

        Always obeys `should_create_for`: an excluded command is deleted.

        Returns:
            The current handle, or None if the command is not (or no longer)
            present in the guild.

        Raises:
            MissingRemoteCommand: No remote command exists and
                `create_if_missing` is False.
        """
        command = self._guild_command(command)
        handle = await self._find_handle(command, scope)

        if not self.scopes.is_included(command, scope):
            if handle is not None:
                self.scopes.clear_handle(command, scope)
                try:
                    await self.remote.delete(scope, handle.id)
                except RemoteNotFound:
                    pass
            return None

        if handle is not None:
            try:
                updated = await self.remote.edit(scope, handle.id, self._payload_for(command, scope))
            except RemoteNotFound:
                self.scopes.clear_handle(command, scope)
                return await self._create(command, scope)
            self.scopes.set_handle(command, scope, updated)
            return updated

        if create_if_missing:
            return await self._create(command, scope)
        raise MissingRemoteCommand(command.name, scope)

    async def delete(self, command: GuildCommand | str, scope: int) -> bool:
        """Delete a guild command from a guild. Ignores `should_create_for`.

        Returns:
            True if a remote command was deleted, False if there was none.
        """
        command = self._guild_command(command)
        handle = self.scopes.clear_handle(command, scope)
        if handle is None:
            handle = next((r for r in await self.remote.list(scope) if r.name == command.name), None)
        if handle is None:
            return False
        try:
            await self.remote.delete(scope, handle.id)
        except RemoteNotFound:
            return False
        return True

    def _guild_command(self, command: GuildCommand | str) -> GuildCommand:
        return self.scopes.entry(command).command


__all__ = ["COOLDOWN_SECONDS", "CreateCooldown", "Synchronizer"]
