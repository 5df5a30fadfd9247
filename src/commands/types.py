"""Command tree node types shared by the loader, synchronizer and router.

The tree has three tagged shapes:

    CommandNode      a leaf top-level command (chat input or context menu)
    CommandGroup     a top-level command whose options are only subcommands
                     and subcommand groups
    GuildCommand     a CommandNode installed per guild, with an inclusion
                     predicate and optional per-guild options

Option-level nodes are OptionNode (plain values), Subcommand and
SubcommandGroup. Every node knows how to render its Discord payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import discord

CommandKind = discord.AppCommandType
OptionType = discord.AppCommandOptionType

Handler = Callable[..., Any]
InclusionPredicate = Callable[[int], bool]

SUBCOMMAND_TYPES = (OptionType.subcommand, OptionType.subcommand_group)

_FROZEN_FIELDS = ("name", "subfolder")


def always_create(scope_id: int) -> bool:
    return True


@dataclass
class OptionNode:
    """A single entry of a command's `options` array."""

    name: Any = None
    description: Any = None
    type: Any = OptionType.string
    options: Any = field(default_factory=list)
    required: bool = False
    autocomplete: bool = False
    choices: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_subcommand_like(self) -> bool:
        return self.type in SUBCOMMAND_TYPES

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": int(getattr(self.type, "value", self.type)),
            "name": self.name,
            "description": self.description,
        }
        if self.options:
            payload["options"] = [o.to_payload() for o in self.options]
        if self.required:
            payload["required"] = True
        if self.autocomplete:
            payload["autocomplete"] = True
        if self.choices:
            payload["choices"] = list(self.choices)
        return payload


@dataclass
class Subcommand(OptionNode):
    type: Any = OptionType.subcommand
    run: Optional[Handler] = None
    autocomplete_handler: Optional[Handler] = None


@dataclass
class SubcommandGroup(OptionNode):
    type: Any = OptionType.subcommand_group
    subcommands: Dict[str, Subcommand] = field(default_factory=dict)


@dataclass
class CommandNode:
    """A top-level application command as declared by a definition module."""

    name: str
    description: Any = None
    kind: Any = CommandKind.chat_input
    options: Any = field(default_factory=list)
    run: Optional[Handler] = None
    autocomplete: Optional[Handler] = None
    default_member_permissions: Optional[str] = None
    dm_permission: bool = False
    nsfw: bool = False
    subfolder: str = ""
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, key: str, value: Any) -> None:
        if key in _FROZEN_FIELDS and getattr(self, "_frozen", False):
            raise AttributeError(f"Command '{self.name}' is frozen; '{key}' can't be changed after validation")
        object.__setattr__(self, key, value)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def to_payload(self, options: Optional[List[OptionNode]] = None) -> Dict[str, Any]:
        """Render the JSON body Discord expects for create/edit/bulk calls.

        Args:
            options: Override for `self.options` (per-guild options).
        """
        payload: Dict[str, Any] = {
            "name": self.name,
            "type": int(getattr(self.kind, "value", self.kind)),
            "dm_permission": bool(self.dm_permission),
            "nsfw": bool(self.nsfw),
        }
        if self.kind == CommandKind.chat_input:
            opts = self.options if options is None else options
            payload["description"] = self.description
            payload["options"] = [o.to_payload() for o in opts]
        if self.default_member_permissions is not None:
            payload["default_member_permissions"] = str(self.default_member_permissions)
        return payload


@dataclass
class CommandGroup(CommandNode):
    """Top-level command made of subcommands and subcommand groups."""

    subcommands: Dict[str, Subcommand] = field(default_factory=dict)
    subcommand_groups: Dict[str, SubcommandGroup] = field(default_factory=dict)

    def add(self, option: OptionNode) -> None:
        self.options.append(option)
        if isinstance(option, SubcommandGroup):
            self.subcommand_groups[option.name] = option
        elif isinstance(option, Subcommand):
            self.subcommands[option.name] = option

    @classmethod
    def from_node(cls, node: CommandNode) -> "CommandGroup":
        group = cls(
            name=node.name,
            description=node.description,
            kind=node.kind,
            options=[],
            autocomplete=node.autocomplete,
            default_member_permissions=node.default_member_permissions,
            dm_permission=node.dm_permission,
            nsfw=node.nsfw,
            subfolder=node.subfolder,
        )
        for option in node.options:
            group.add(option)
        return group


@dataclass
class GuildCommand(CommandNode):
    """A command installed per guild rather than globally."""

    should_create_for: InclusionPredicate = always_create
    get_options: Optional[Callable[[int], Any]] = None

    def effective_options(self, scope_id: Optional[int]) -> List[OptionNode]:
        """Options to send for `scope_id`.

        A non-None result of `get_options` replaces the static options
        entirely; it is never merged with them.
        """
        if self.get_options is not None and scope_id is not None:
            dynamic = self.get_options(scope_id)
            if dynamic is not None:
                return coerce_options(dynamic)
        return list(self.options)


@dataclass
class GuildCommandGroup(CommandGroup, GuildCommand):
    """A command group installed per guild (the owner command)."""


@dataclass
class RemoteCommand:
    """Handle to a command the remote registry holds for one scope."""

    id: int
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    scope: Optional[int] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], scope: Optional[int] = None) -> "RemoteCommand":
        return cls(id=int(data["id"]), name=str(data["name"]), data=dict(data), scope=scope)


@dataclass
class ScopeEntry:
    """A guild command plus the remote handle it has in each guild."""

    command: GuildCommand
    handles: Dict[int, RemoteCommand] = field(default_factory=dict)


def _coerce_type(raw: Any) -> Any:
    if isinstance(raw, OptionType):
        return raw
    try:
        return OptionType(raw)
    except (ValueError, TypeError):
        return raw


def coerce_option(raw: Any) -> Any:
    """Turn a mapping from a definition module into an OptionNode.

    Values that are neither mappings nor OptionNodes are returned untouched
    so validation can report them.
    """
    if isinstance(raw, OptionNode) or not isinstance(raw, Mapping):
        return raw
    opt_type = _coerce_type(raw.get("type", OptionType.string))
    common: Dict[str, Any] = {
        "name": raw.get("name"),
        "description": raw.get("description"),
        "type": opt_type,
        "options": coerce_options(raw.get("options", [])),
        "required": bool(raw.get("required", False)),
        "choices": list(raw.get("choices", []) or []),
    }
    if opt_type == OptionType.subcommand:
        auto = raw.get("autocomplete")
        handler = raw.get("autocomplete_handler")
        if handler is None and auto is not None and not isinstance(auto, bool):
            handler = auto
        return Subcommand(**common, run=raw.get("run"), autocomplete_handler=handler)
    if opt_type == OptionType.subcommand_group:
        group = SubcommandGroup(**common)
        if isinstance(group.options, list):
            group.subcommands = {o.name: o for o in group.options if isinstance(o, Subcommand)}
        return group
    return OptionNode(**common, autocomplete=bool(raw.get("autocomplete", False)))


def coerce_options(raw: Any) -> Any:
    if not isinstance(raw, (list, tuple)):
        return raw
    return [coerce_option(o) for o in raw]


__all__ = [
    "CommandKind",
    "OptionType",
    "Handler",
    "InclusionPredicate",
    "always_create",
    "OptionNode",
    "Subcommand",
    "SubcommandGroup",
    "CommandNode",
    "CommandGroup",
    "GuildCommand",
    "GuildCommandGroup",
    "RemoteCommand",
    "ScopeEntry",
    "coerce_option",
    "coerce_options",
]
