"""Owned stores for loaded commands and their per-guild remote handles.

`CommandRegistry` is the command map the builder fills once at startup and the
router reads for the rest of the process. `ScopeRegistry` tracks, for every
guild command, which guilds hold a remote copy of it. Only the Synchronizer
writes handles.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from .errors import LoadError
from .types import CommandNode, GuildCommand, RemoteCommand, ScopeEntry

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Top-level commands keyed by name, plus their default-scope handles."""

    def __init__(self) -> None:
        self._commands: Dict[str, CommandNode] = {}
        self._remote: Dict[str, RemoteCommand] = {}
        self._scoped: set[str] = set()  # names kept out of the default scope

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[CommandNode]:
        return iter(list(self._commands.values()))

    def get(self, name: str) -> Optional[CommandNode]:
        return self._commands.get(name)

    def names(self) -> List[str]:
        return list(self._commands)

    def add(self, command: CommandNode, *, replace: bool = False, default_scope: bool = True) -> CommandNode:
        """Register a command under its name.

        Args:
            command: Validated node.
            replace: Overwrite an entry loaded from the same subfolder (reload).
            default_scope: False for commands installed per guild only; they
                are routed but never pushed by the default-scope sync.

        Returns:
            CommandNode: The registered node; the existing one when the same
            command is added twice without `replace`.

        Raises:
            LoadError: If the name is already taken by a command from a
                different subfolder.
        """
        existing = self._commands.get(command.name)
        if existing is not None and existing is not command:
            if existing.subfolder != command.subfolder:
                raise LoadError(
                    command.name,
                    f"Can't load command {command.name} of subfolder \"{command.subfolder}\", "
                    f"it already exists in module \"{existing.subfolder}\"",
                )
            if not replace:
                return existing
        self._commands[command.name] = command
        if default_scope:
            self._scoped.discard(command.name)
        else:
            self._scoped.add(command.name)
        return command

    def default_commands(self) -> List[CommandNode]:
        """Commands that belong to the default (global or single-guild) scope."""
        return [c for n, c in self._commands.items() if n not in self._scoped]

    def remove(self, name: str) -> Optional[CommandNode]:
        self._remote.pop(name, None)
        self._scoped.discard(name)
        return self._commands.pop(name, None)

    def remote(self, name: str) -> Optional[RemoteCommand]:
        return self._remote.get(name)

    def set_remote(self, handle: RemoteCommand) -> None:
        self._remote[handle.name] = handle

    def forget_remote(self, name: str) -> Optional[RemoteCommand]:
        return self._remote.pop(name, None)

    def clear_remote(self) -> None:
        self._remote.clear()


class ScopeRegistry:
    """Per-guild {desired command <-> remote handle} pairs."""

    def __init__(self) -> None:
        self._entries: Dict[str, ScopeEntry] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, command: GuildCommand) -> ScopeEntry:
        if command.name in self._entries:
            raise LoadError(command.name, f"Guild command {command.name} is already registered.")
        entry = ScopeEntry(command=command)
        self._entries[command.name] = entry
        return entry

    def replace(self, command: GuildCommand) -> ScopeEntry:
        """Swap in a rebuilt command, keeping the handles of the old one."""
        entry = self._entries.get(command.name)
        if entry is None:
            return self.add(command)
        entry.command = command
        return entry

    def remove(self, name: str) -> Optional[ScopeEntry]:
        return self._entries.pop(name, None)

    def get(self, name: str) -> Optional[ScopeEntry]:
        return self._entries.get(name)

    def entry(self, command: GuildCommand | str) -> ScopeEntry:
        name = command if isinstance(command, str) else command.name
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(f"Unknown guild command: {name}") from None

    def entries(self) -> List[ScopeEntry]:
        return list(self._entries.values())

    def commands(self) -> List[GuildCommand]:
        return [e.command for e in self._entries.values()]

    @staticmethod
    def is_included(command: GuildCommand, scope_id: int) -> bool:
        return bool(command.should_create_for(scope_id))

    def handle(self, command: GuildCommand | str, scope_id: int) -> Optional[RemoteCommand]:
        return self.entry(command).handles.get(scope_id)

    def is_in(self, command: GuildCommand | str, scope_id: int) -> bool:
        """Whether this process knows a remote copy of `command` in the guild."""
        return scope_id in self.entry(command).handles

    def set_handle(self, command: GuildCommand | str, scope_id: int, handle: RemoteCommand) -> None:
        self.entry(command).handles[scope_id] = handle

    def clear_handle(self, command: GuildCommand | str, scope_id: int) -> Optional[RemoteCommand]:
        return self.entry(command).handles.pop(scope_id, None)

    def drop_scope(self, scope_id: int) -> int:
        """Forget every handle held for `scope_id`; returns how many were dropped."""
        dropped = 0
        for entry in self._entries.values():
            if entry.handles.pop(scope_id, None) is not None:
                dropped += 1
        if dropped:
            logger.debug("Dropped %d guild command handles for guild %s", dropped, scope_id)
        return dropped


__all__ = ["CommandRegistry", "ScopeRegistry"]
