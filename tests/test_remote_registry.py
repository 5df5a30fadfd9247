"""Tests for the discord.py backed remote command registry."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import discord
import pytest

from src.commands.errors import RateLimited, RemoteNotFound
from src.services.remote_registry import DAILY_CREATE_LIMIT_CODE, DiscordCommandRegistry, is_daily_create_limit


def _client(**http_methods):
    http = Mock()
    for name, value in http_methods.items():
        setattr(http, name, value)
    return SimpleNamespace(application_id=555, http=http)


def _http_error(cls, status: int, code: int, message: str):
    return cls(Mock(status=status, reason="error"), {"code": code, "message": message})


@pytest.mark.asyncio
async def test_list_global_and_guild() -> None:
    client = _client(
        get_global_commands=AsyncMock(return_value=[{"id": "1", "name": "ping"}]),
        get_guild_commands=AsyncMock(return_value=[{"id": "2", "name": "vip"}]),
    )
    remote = DiscordCommandRegistry(client)  # type: ignore[arg-type]

    global_cmds = await remote.list(None)
    guild_cmds = await remote.list(9)

    assert [(c.id, c.name, c.scope) for c in global_cmds] == [(1, "ping", None)]
    assert [(c.id, c.name, c.scope) for c in guild_cmds] == [(2, "vip", 9)]
    client.http.get_guild_commands.assert_awaited_once_with(555, 9)


@pytest.mark.asyncio
async def test_create_maps_daily_quota_error() -> None:
    error = _http_error(discord.HTTPException, 400, DAILY_CREATE_LIMIT_CODE, "Max number of daily application command creates has been reached (200)")
    client = _client(upsert_guild_command=AsyncMock(side_effect=error))

    with pytest.raises(RateLimited) as excinfo:
        await DiscordCommandRegistry(client).create(9, {"name": "vip"})  # type: ignore[arg-type]
    assert excinfo.value.scope == 9


@pytest.mark.asyncio
async def test_create_propagates_other_errors() -> None:
    error = _http_error(discord.HTTPException, 400, 50035, "Invalid Form Body")
    client = _client(upsert_global_command=AsyncMock(side_effect=error))
    with pytest.raises(discord.HTTPException):
        await DiscordCommandRegistry(client).create(None, {"name": "ping"})  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_edit_and_delete_map_not_found() -> None:
    not_found = _http_error(discord.NotFound, 404, 10063, "Unknown application command")
    client = _client(
        edit_guild_command=AsyncMock(side_effect=not_found),
        delete_global_command=AsyncMock(side_effect=not_found),
    )
    remote = DiscordCommandRegistry(client)  # type: ignore[arg-type]

    with pytest.raises(RemoteNotFound):
        await remote.edit(9, 1, {"name": "vip"})
    with pytest.raises(RemoteNotFound):
        await remote.delete(None, 1)


@pytest.mark.asyncio
async def test_replace_all_uses_bulk_upsert() -> None:
    client = _client(bulk_upsert_guild_commands=AsyncMock(return_value=[{"id": "3", "name": "ping"}]))
    result = await DiscordCommandRegistry(client).replace_all(9, [{"name": "ping"}])  # type: ignore[arg-type]
    assert [c.id for c in result] == [3]
    client.http.bulk_upsert_guild_commands.assert_awaited_once_with(555, 9, payload=[{"name": "ping"}])


def test_is_daily_create_limit_by_text() -> None:
    error = _http_error(discord.HTTPException, 429, 0, "Max number of daily application command creates has been reached (200)")
    assert is_daily_create_limit(error)
    assert not is_daily_create_limit(_http_error(discord.HTTPException, 400, 0, "Bad request"))


def test_missing_application_id() -> None:
    remote = DiscordCommandRegistry(SimpleNamespace(application_id=None, http=Mock()))  # type: ignore[arg-type]
    with pytest.raises(RuntimeError):
        remote.application_id
