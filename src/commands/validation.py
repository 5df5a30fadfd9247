"""Structural validation of command nodes against Discord's constraints.

`validate_command` walks a command and everything nested under it and raises
`LoadError` on the first violation. Nesting deeper than
group -> subcommand group -> subcommand is rejected by shape alone: only a
top-level command may hold subcommand groups, and a subcommand group may
only hold subcommands.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from .errors import LoadError
from .types import (
    CommandGroup,
    CommandKind,
    CommandNode,
    Handler,
    OptionNode,
    OptionType,
    Subcommand,
    SubcommandGroup,
)

# Letters and digits of any script, plus Devanagari and Thai marks that \w misses.
NAME_PATTERN = re.compile(r"[-_\w\u0900-\u097F\u0E00-\u0E7F]{1,32}")
MAX_NAME_LENGTH = 32
MIN_DESCRIPTION_LENGTH = 4
MAX_DESCRIPTION_LENGTH = 100


def is_valid_name(name: Any) -> bool:
    return isinstance(name, str) and NAME_PATTERN.fullmatch(name) is not None


def _check_name(owner: str, name: Any, what: str) -> None:
    if not isinstance(name, str) or not name:
        raise LoadError(owner, f"{what} must have a name.")
    if len(name) > MAX_NAME_LENGTH:
        raise LoadError(owner, f"{what} name too long ({len(name)}/{MAX_NAME_LENGTH})")
    if not is_valid_name(name):
        raise LoadError(owner, f"Invalid {what.lower()} name: {name}")
    if name != name.lower():
        raise LoadError(owner, f"{what} names must be lowercase: {name}")


def _check_description(owner: str, description: Any, label: str) -> None:
    if description is None or description == "":
        raise LoadError(owner, f"{label} is missing a description.")
    if not isinstance(description, str):
        raise LoadError(owner, f"{label}'s description must be a string.")
    if len(description) < MIN_DESCRIPTION_LENGTH:
        raise LoadError(owner, f"{label}'s description is too short.")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise LoadError(owner, f"{label}'s description is too long ({len(description)}/{MAX_DESCRIPTION_LENGTH}).")


def validate_command(command: CommandNode) -> None:
    """Validate a top-level command and all of its options.

    Args:
        command: The node to check. Not modified.

    Raises:
        LoadError: Naming the command, on the first rule it breaks.

    Example:
        validate_command(CommandNode(name="ping", description="Replies with pong", run=ping))
    """
    name = command.name
    _check_name(name if isinstance(name, str) else str(name), name, "Command")

    if not isinstance(command, CommandGroup) and not callable(command.run):
        raise LoadError(name, "Missing a 'run' function.")

    if command.kind == CommandKind.chat_input:
        _check_description(name, command.description, f"Command {name}")
        validate_options(name, command.options, command.autocomplete, allow_groups=True)
    elif command.kind in (CommandKind.message, CommandKind.user):
        if command.description not in (None, ""):
            raise LoadError(name, "Non-chat input commands cannot have a description.")
        if command.options:
            raise LoadError(name, "Non-chat input commands cannot have options.")
    else:
        raise LoadError(name, f"Unknown command kind: {command.kind!r}")

    if isinstance(command, CommandGroup):
        _check_group_handlers(command)


def _check_group_handlers(group: CommandGroup) -> None:
    for sub_name, sub in group.subcommands.items():
        if not callable(sub.run):
            raise LoadError(group.name, f"Subcommand {sub_name} is missing a 'run' function.")
    for group_name, sub_group in group.subcommand_groups.items():
        for sub_name, sub in sub_group.subcommands.items():
            if not callable(sub.run):
                raise LoadError(group.name, f"Subcommand {group_name}/{sub_name} is missing a 'run' function.")


def validate_subcommand(owner: str, subcommand: Subcommand, fallback_handler: Optional[Handler] = None) -> None:
    """Validate one subcommand; its options may only be plain values."""
    _check_name(owner, subcommand.name, "Subcommand")
    _check_description(owner, subcommand.description, f"Subcommand {subcommand.name}")
    handler = subcommand.autocomplete_handler or fallback_handler
    validate_options(owner, subcommand.options, handler, allow_groups=False)


def validate_options(
    owner: str,
    options: Any,
    autocomplete_handler: Optional[Handler] = None,
    *,
    allow_groups: bool = True,
) -> None:
    """Validate an options array.

    Args:
        owner: Command name reported in errors.
        options: The array to check.
        autocomplete_handler: Handler that would serve autocomplete options.
        allow_groups: False under a subcommand, where only values are legal.

    Raises:
        LoadError: On the first invalid option.
    """
    if not isinstance(options, list):
        raise LoadError(owner, "'options' must be a list.")
    if not options:
        return

    first_is_subcommand = _is_subcommand_like(options[0])
    seen: set[str] = set()
    for option in options:
        if not isinstance(option, OptionNode):
            raise LoadError(owner, f"Options must be mappings or OptionNode, got {type(option).__name__}.")
        if option.type not in tuple(OptionType):
            raise LoadError(owner, f"Unknown option type: {option.type!r}")

        is_subcommand = _is_subcommand_like(option)
        if first_is_subcommand != is_subcommand:
            raise LoadError(owner, "Cannot mix subcommands and subcommand groups with other option types.")
        if is_subcommand and not allow_groups:
            raise LoadError(owner, f"Subcommand option {option.name} cannot contain subcommands or groups.")

        _check_name(owner, option.name, "Option")
        if option.name in seen:
            raise LoadError(owner, f"Duplicate option name: {option.name}")
        seen.add(option.name)

        if option.type == OptionType.subcommand_group:
            _validate_group(owner, option, autocomplete_handler)
        elif option.type == OptionType.subcommand:
            sub = option if isinstance(option, Subcommand) else Subcommand(
                name=option.name, description=option.description, options=option.options
            )
            validate_subcommand(owner, sub, autocomplete_handler)
        else:
            _check_description(owner, option.description, f"Option {option.name}")
            if option.options:
                raise LoadError(owner, f"Option {option.name} can't have nested options.")
            if option.autocomplete:
                if autocomplete_handler is None:
                    raise LoadError(owner, "Command has an autocomplete option, but no autocomplete handler.")
                if not callable(autocomplete_handler):
                    raise LoadError(owner, "Autocomplete handler must be a function.")


def _validate_group(owner: str, group: OptionNode, autocomplete_handler: Optional[Handler]) -> None:
    _check_description(owner, group.description, f"Subcommand group {group.name}")
    children = group.options
    if not isinstance(children, list) or not children:
        raise LoadError(owner, f"Subcommand group {group.name} is missing its subcommands.")
    if any(getattr(child, "type", None) != OptionType.subcommand for child in children):
        raise LoadError(owner, "Subcommand group options can only be subcommands.")
    if isinstance(group, SubcommandGroup) and group.subcommands:
        extra = set(group.subcommands) - {getattr(c, "name", None) for c in children}
        if extra:
            raise LoadError(owner, f"Subcommand group {group.name} maps unknown subcommands: {sorted(extra)}")

    seen: set[str] = set()
    for child in children:
        sub = child if isinstance(child, Subcommand) else Subcommand(
            name=child.name, description=child.description, options=child.options
        )
        validate_subcommand(owner, sub, autocomplete_handler)
        if sub.name in seen:
            raise LoadError(owner, f"Duplicate subcommand name in group {group.name}: {sub.name}")
        seen.add(sub.name)


def _is_subcommand_like(option: Any) -> bool:
    return getattr(option, "type", None) in (OptionType.subcommand, OptionType.subcommand_group)


__all__ = [
    "NAME_PATTERN",
    "MIN_DESCRIPTION_LENGTH",
    "MAX_DESCRIPTION_LENGTH",
    "is_valid_name",
    "validate_command",
    "validate_subcommand",
    "validate_options",
]
