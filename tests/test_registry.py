"""Tests for the command and guild-scope registries."""

from __future__ import annotations

import pytest

from src.commands.errors import LoadError
from src.commands.registry import CommandRegistry, ScopeRegistry
from src.commands.types import CommandNode, GuildCommand, RemoteCommand


def _run(event) -> None:
    return None


def test_add_collision_across_subfolders() -> None:
    registry = CommandRegistry()
    registry.add(CommandNode(name="x", description="First one", run=_run, subfolder="a"))
    with pytest.raises(LoadError, match="already exists"):
        registry.add(CommandNode(name="x", description="Second one", run=_run, subfolder="b"))


def test_add_same_subfolder_keeps_existing_unless_replace() -> None:
    registry = CommandRegistry()
    first = registry.add(CommandNode(name="x", description="First one", run=_run))
    second = CommandNode(name="x", description="Second one", run=_run)
    assert registry.add(second) is first
    assert registry.add(second, replace=True) is second
    assert len(registry) == 1


def test_default_scope_excludes_scoped_commands() -> None:
    registry = CommandRegistry()
    registry.add(CommandNode(name="ping", description="Replies with pong", run=_run))
    registry.add(GuildCommand(name="vip", description="VIP only", run=_run), default_scope=False)

    assert [c.name for c in registry.default_commands()] == ["ping"]
    assert "vip" in registry
    registry.remove("vip")
    assert "vip" not in registry


def test_remote_handles() -> None:
    registry = CommandRegistry()
    registry.set_remote(RemoteCommand(id=1, name="ping"))
    assert registry.remote("ping").id == 1
    registry.clear_remote()
    assert registry.remote("ping") is None


def test_scope_registry_handles() -> None:
    scopes = ScopeRegistry()
    vip = GuildCommand(name="vip", description="VIP only", run=_run, should_create_for=lambda g: g == 1)
    scopes.add(vip)

    assert scopes.is_included(vip, 1)
    assert not scopes.is_included(vip, 2)
    assert not scopes.is_in("vip", 1)

    scopes.set_handle(vip, 1, RemoteCommand(id=10, name="vip", scope=1))
    scopes.set_handle(vip, 2, RemoteCommand(id=11, name="vip", scope=2))
    assert scopes.is_in(vip, 1)
    assert scopes.handle("vip", 2).id == 11

    assert scopes.drop_scope(1) == 1
    assert not scopes.is_in(vip, 1)
    assert scopes.is_in(vip, 2)
    assert scopes.clear_handle(vip, 2).id == 11
    assert scopes.clear_handle(vip, 2) is None


def test_scope_registry_rejects_duplicates_and_unknown() -> None:
    scopes = ScopeRegistry()
    scopes.add(GuildCommand(name="vip", description="VIP only", run=_run))
    with pytest.raises(LoadError):
        scopes.add(GuildCommand(name="vip", description="VIP only", run=_run))
    with pytest.raises(KeyError):
        scopes.entry("nope")
