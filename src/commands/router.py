"""Route incoming interactions to command handlers.

Invocations are matched by top-level name and then, for command groups,
through the group's subcommand-group and subcommand maps. Anything the tree
can't serve is logged and dropped so the gateway loop keeps running.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import inspect
import logging

import discord

from .errors import RoutingError
from .registry import CommandRegistry
from .types import CommandGroup, CommandKind, CommandNode, Handler, OptionType

logger = logging.getLogger(__name__)

INVOCATION = "invocation"
AUTOCOMPLETE = "autocomplete"


@dataclass
class InteractionEvent:
    """A command invocation or autocomplete request, detached from discord.py.

    Attributes:
        kind: "invocation" or "autocomplete".
        command_name: Top-level command name.
        command_type: Surface the event came from (chat input, message, user).
        group: Subcommand group name, if any.
        subcommand: Subcommand name, if any.
        options: Option values of the leaf that was invoked.
        target_id: Target message/user id for context menu commands.
        focused: Name of the option being autocompleted.
        guild_id: Guild the event came from (None in DMs).
        interaction: The originating discord.py interaction, if any.
    """

    kind: str
    command_name: str
    command_type: Any = CommandKind.chat_input
    group: Optional[str] = None
    subcommand: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    target_id: Optional[int] = None
    focused: Optional[str] = None
    guild_id: Optional[int] = None
    interaction: Optional[discord.Interaction] = None

    @property
    def is_autocomplete(self) -> bool:
        return self.kind == AUTOCOMPLETE

    @classmethod
    def from_interaction(cls, interaction: discord.Interaction) -> Optional["InteractionEvent"]:
        """Build an event from a discord.py interaction.

        Returns None for interactions that are not application commands or
        autocomplete requests (components, modals, pings).
        """
        if interaction.type == discord.InteractionType.application_command:
            kind = INVOCATION
        elif interaction.type == discord.InteractionType.autocomplete:
            kind = AUTOCOMPLETE
        else:
            return None
        data: Dict[str, Any] = interaction.data or {}  # type: ignore[assignment]
        try:
            command_type = CommandKind(int(data.get("type", 1)))
        except ValueError:
            command_type = data.get("type")
        group, subcommand, leaf_options = _walk_options(data.get("options", []))
        focused = next((o.get("name") for o in leaf_options if o.get("focused")), None)
        target = data.get("target_id")
        return cls(
            kind=kind,
            command_name=str(data.get("name", "")),
            command_type=command_type,
            group=group,
            subcommand=subcommand,
            options={o["name"]: o.get("value") for o in leaf_options if "name" in o},
            target_id=int(target) if target is not None else None,
            focused=focused,
            guild_id=interaction.guild_id,
            interaction=interaction,
        )


def _walk_options(options: List[Dict[str, Any]]) -> Tuple[Optional[str], Optional[str], List[Dict[str, Any]]]:
    group: Optional[str] = None
    subcommand: Optional[str] = None
    for option in options:
        opt_type = option.get("type")
        if opt_type == OptionType.subcommand_group.value:
            group = option.get("name")
            options = option.get("options", [])
            break
    for option in options:
        if option.get("type") == OptionType.subcommand.value:
            subcommand = option.get("name")
            options = option.get("options", [])
            break
    return group, subcommand, options


class InteractionRouter:
    """Dispatches events to the handlers of a populated CommandRegistry."""

    def __init__(self, registry: CommandRegistry):
        self.registry = registry

    def resolve(self, event: InteractionEvent) -> Tuple[CommandNode, Optional[Handler]]:
        """Find the command and the handler that should serve `event`.

        Returns:
            (command, handler); handler is None when the event must be dropped.

        Raises:
            KeyError: Unknown top-level command.
            RoutingError: Unknown subcommand group or subcommand of a group.
        """
        command = self.registry.get(event.command_name)
        if command is None:
            raise KeyError(event.command_name)

        if event.is_autocomplete:
            if command.kind != CommandKind.chat_input:
                logger.error("Received autocomplete interaction for non chat-input command %s", command.name)
                return command, None
            handler = self._autocomplete_handler(command, event)
            if not callable(handler):
                logger.error("Received autocomplete interaction for a command without autocomplete (%s)", command.name)
                return command, None
            return command, handler

        if event.command_type != command.kind:
            logger.error(
                "Received %s interaction for command %s, which is declared as %s",
                event.command_type, command.name, command.kind,
            )
            return command, None

        if isinstance(command, CommandGroup):
            return command, self._resolve_subcommand(command, event).run
        return command, command.run

    def _resolve_subcommand(self, command: CommandGroup, event: InteractionEvent) -> Any:
        if event.group:
            sub_group = command.subcommand_groups.get(event.group)
            if sub_group is None:
                raise RoutingError(command.name, event.group, event.subcommand)
            subcommands = sub_group.subcommands
        else:
            subcommands = command.subcommands
        sub = subcommands.get(event.subcommand) if event.subcommand else None
        if sub is None:
            raise RoutingError(command.name, event.group, event.subcommand)
        return sub

    def _autocomplete_handler(self, command: CommandNode, event: InteractionEvent) -> Optional[Handler]:
        if isinstance(command, CommandGroup) and event.subcommand:
            sub = self._resolve_subcommand(command, event)
            return sub.autocomplete_handler or command.autocomplete
        return command.autocomplete

    async def dispatch(self, event: InteractionEvent) -> bool:
        """Run the handler for `event`.

        Returns:
            True if a handler ran, False if the event was dropped.
        """
        try:
            _, handler = self.resolve(event)
        except KeyError:
            logger.error("Received unknown command: %s", event.command_name)
            return False
        except RoutingError as e:
            logger.error("%s (local commands are out of date)", e)
            return False
        if handler is None:
            return False
        result = handler(event)
        if inspect.isawaitable(result):
            await result
        return True

    async def on_interaction(self, interaction: discord.Interaction) -> bool:
        """discord.py listener: route an interaction if it's a command."""
        event = InteractionEvent.from_interaction(interaction)
        if event is None:
            return False
        return await self.dispatch(event)


__all__ = ["INVOCATION", "AUTOCOMPLETE", "InteractionEvent", "InteractionRouter"]
