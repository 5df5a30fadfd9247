"""Remote application-command registry: the capability the Synchronizer uses.

`CommandRegistryClient` is the interface: list/create/edit/delete per scope
plus a bulk replace. `scope=None` means the global scope, any other value is
a guild id. `DiscordCommandRegistry` implements it with discord.py's HTTP
client and converts Discord failures into the errors the Synchronizer
recovers from (`RemoteNotFound`, `RateLimited`); everything else propagates.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence
import logging

import discord

from ..commands.errors import RateLimited, RemoteNotFound
from ..commands.types import RemoteCommand

logger = logging.getLogger(__name__)

# "Max number of daily application command creates has been reached (200)"
DAILY_CREATE_LIMIT_CODE = 30034


class CommandRegistryClient(Protocol):
    async def list(self, scope: Optional[int]) -> List[RemoteCommand]: ...

    async def create(self, scope: Optional[int], data: Dict[str, Any]) -> RemoteCommand: ...

    async def edit(self, scope: Optional[int], command_id: int, data: Dict[str, Any]) -> RemoteCommand: ...

    async def delete(self, scope: Optional[int], command_id: int) -> None: ...

    async def replace_all(self, scope: Optional[int], data: Sequence[Dict[str, Any]]) -> List[RemoteCommand]: ...


def is_daily_create_limit(error: discord.HTTPException) -> bool:
    """Return True if `error` is Discord's daily command-create quota error."""
    if getattr(error, "code", None) == DAILY_CREATE_LIMIT_CODE:
        return True
    return "daily application command creates" in str(getattr(error, "text", "") or "")


class DiscordCommandRegistry:
    """CommandRegistryClient backed by `discord.Client.http`.

    Args:
        client: A logged-in client; its `application_id` must be known.
    """

    def __init__(self, client: discord.Client):
        self.client = client

    @property
    def _http(self) -> Any:
        return self.client.http  # type: ignore[attr-defined]

    @property
    def application_id(self) -> int:
        app_id = self.client.application_id
        if app_id is None:
            raise RuntimeError("Client has no application_id; log in before syncing commands")
        return app_id

    async def list(self, scope: Optional[int]) -> List[RemoteCommand]:
        if scope is None:
            data = await self._http.get_global_commands(self.application_id)
        else:
            data = await self._http.get_guild_commands(self.application_id, scope)
        return [RemoteCommand.from_payload(d, scope) for d in data]

    async def create(self, scope: Optional[int], data: Dict[str, Any]) -> RemoteCommand:
        try:
            if scope is None:
                created = await self._http.upsert_global_command(self.application_id, payload=data)
            else:
                created = await self._http.upsert_guild_command(self.application_id, scope, payload=data)
        except discord.HTTPException as e:
            if is_daily_create_limit(e):
                raise RateLimited(scope, str(e)) from e
            raise
        return RemoteCommand.from_payload(created, scope)

    async def edit(self, scope: Optional[int], command_id: int, data: Dict[str, Any]) -> RemoteCommand:
        try:
            if scope is None:
                edited = await self._http.edit_global_command(self.application_id, command_id, payload=data)
            else:
                edited = await self._http.edit_guild_command(self.application_id, scope, command_id, payload=data)
        except discord.NotFound as e:
            raise RemoteNotFound(str(e)) from e
        return RemoteCommand.from_payload(edited, scope)

    async def delete(self, scope: Optional[int], command_id: int) -> None:
        try:
            if scope is None:
                await self._http.delete_global_command(self.application_id, command_id)
            else:
                await self._http.delete_guild_command(self.application_id, scope, command_id)
        except discord.NotFound as e:
            raise RemoteNotFound(str(e)) from e

    async def replace_all(self, scope: Optional[int], data: Sequence[Dict[str, Any]]) -> List[RemoteCommand]:
        payload = list(data)
        if scope is None:
            result = await self._http.bulk_upsert_global_commands(self.application_id, payload=payload)
        else:
            result = await self._http.bulk_upsert_guild_commands(self.application_id, scope, payload=payload)
        logger.debug("Bulk replaced %d commands in scope %s", len(result), scope or "global")
        return [RemoteCommand.from_payload(d, scope) for d in result]


__all__ = ["CommandRegistryClient", "DiscordCommandRegistry", "DAILY_CREATE_LIMIT_CODE", "is_daily_create_limit"]
