"""Load a small commands folder, sync it and route an invocation through it."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.commands.loader import CommandTreeBuilder
from src.commands.router import INVOCATION, InteractionEvent, InteractionRouter
from src.commands.sync import Synchronizer
from src.commands.types import CommandGroup, CommandKind

MEMBER_ACTION = '''
description = "{description}"
calls = []

def run(event):
    calls.append(event)
'''


@pytest.mark.asyncio
async def test_folder_to_dispatch(commands_root: Path, write_module, remote) -> None:
    write_module(
        "ping.py",
        '''
        description = "Replies with pong"

        def run(event):
            return "pong"
        ''',
    )
    write_module("admin/kick.py", MEMBER_ACTION.format(description="Kick a member"))
    write_module("admin/ban.py", MEMBER_ACTION.format(description="Ban a member"))

    registry = CommandTreeBuilder(commands_root, folders_as_groups=True).build()

    ping = registry.get("ping")
    admin = registry.get("admin")
    assert ping.kind == CommandKind.chat_input
    assert ping.options == []
    assert isinstance(admin, CommandGroup)
    assert set(admin.subcommands) == {"kick", "ban"}

    await Synchronizer(remote, registry).sync_default()
    assert remote.names(None) == ["admin", "ping"]
    payload = next(d for d in remote.scopes[None].values() if d["name"] == "admin")
    assert sorted(o["name"] for o in payload["options"]) == ["ban", "kick"]

    router = InteractionRouter(registry)
    assert await router.dispatch(InteractionEvent(kind=INVOCATION, command_name="admin", subcommand="kick"))

    kick_calls = admin.subcommands["kick"].run.__globals__["calls"]
    ban_calls = admin.subcommands["ban"].run.__globals__["calls"]
    assert len(kick_calls) == 1
    assert ban_calls == []
