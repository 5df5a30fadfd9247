"""Error types raised while loading, syncing and routing application commands."""

from __future__ import annotations

from typing import Optional


class LoadError(Exception):
    """A command definition violates Discord's naming or shape rules.

    Attributes:
        command_name: Name of the top-level command (or subcommand) at fault.
    """

    def __init__(self, command_name: str, message: str):
        super().__init__(message)
        self.command_name = command_name

    def __str__(self) -> str:
        return f"[{self.command_name}] {self.args[0]}"


class RoutingError(Exception):
    """An interaction addressed a subcommand group or subcommand we don't know.

    This means the local tree is older than what Discord last accepted.
    """

    def __init__(self, command_name: str, group: Optional[str], subcommand: Optional[str]):
        path = " ".join(p for p in (command_name, group, subcommand) if p)
        super().__init__(f"Received unknown subcommand: '/{path}'")
        self.command_name = command_name
        self.group = group
        self.subcommand = subcommand


class RemoteNotFound(Exception):
    """The remote registry has no resource with the requested id."""


class RateLimited(Exception):
    """The daily per-scope command create quota was exhausted."""

    def __init__(self, scope: Optional[int], message: str = "Max number of daily application command creates reached"):
        super().__init__(message)
        self.scope = scope


class MissingRemoteCommand(Exception):
    """update() was asked not to create, and there is nothing to edit."""

    def __init__(self, command_name: str, scope: Optional[int]):
        super().__init__(
            f"Tried to update command {command_name} for guild {scope}, but the API command couldn't be found."
        )
        self.command_name = command_name
        self.scope = scope


__all__ = ["LoadError", "RoutingError", "RemoteNotFound", "RateLimited", "MissingRemoteCommand"]
