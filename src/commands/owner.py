"""The owner command: one group whose subcommands live in the owner folder.

It is installed only in the owner guild, through its inclusion predicate, and
hidden from everyone without the Administrator permission (``default_member_permissions="0"``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from .errors import LoadError
from .loader import RESERVED_PREFIX, CommandSource, read_definition
from .types import GuildCommandGroup, InclusionPredicate, OptionType, Subcommand, always_create, coerce_option
from .validation import is_valid_name, validate_command

DEFAULT_OWNER_NAME = "owner"
DEFAULT_OWNER_DESCRIPTION = "Execute an owner command"


def load_owner_command(
    parent_folder: Union[str, Path],
    *,
    name: Optional[str] = None,
    description: str = DEFAULT_OWNER_DESCRIPTION,
    default_member_permissions: str = "0",
    source: Optional[CommandSource] = None,
    file_extension: str = ".py",
    should_create_for: InclusionPredicate = always_create,
) -> Optional[GuildCommandGroup]:
    """Build the owner CommandGroup from ``<parent_folder>/<name>``.

    Args:
        parent_folder: The commands root.
        name: Folder (and command) name; defaults to "owner".
        description: Description of the owner command.
        default_member_permissions: Permission bits required by default.
        source: File-system collaborator.
        file_extension: Suffix of definition modules.
        should_create_for: Guilds the command is installed in, usually
            `lambda guild_id: guild_id == owner_guild_id`.

    Returns:
        GuildCommandGroup | None: None when the folder holds no command modules.

    Raises:
        LoadError: For an invalid owner name, or a child that isn't a
            subcommand or subcommand group.
    """
    name = name or DEFAULT_OWNER_NAME
    if not is_valid_name(name):
        raise LoadError(name, f"Owner subfolder must have a valid command name; got '{name}'")
    source = source or CommandSource()
    folder = Path(parent_folder) / name
    if not source.is_dir(folder):
        raise LoadError(name, "Owner command must not be a file but a subfolder with subcommand files.")

    group = GuildCommandGroup(
        name=name,
        description=description,
        default_member_permissions=default_member_permissions,
        subfolder=name,
        should_create_for=should_create_for,
    )
    for entry in source.list(folder):
        if entry.is_dir or entry.name.startswith(RESERVED_PREFIX) or not entry.name.endswith(file_extension):
            continue
        sub_name = entry.name[: -len(file_extension)]
        definition = read_definition(source.import_module(entry.path, reload=True))
        raw_type = definition.pop("type", definition.pop("kind", OptionType.subcommand))
        definition["type"] = raw_type
        definition["name"] = sub_name
        option = coerce_option(definition)
        if option.type not in (OptionType.subcommand, OptionType.subcommand_group):
            raise LoadError(sub_name, "Owner commands can only have the SUBCOMMAND or SUBCOMMAND_GROUP type.")
        if isinstance(option, Subcommand) and not callable(option.run):
            raise LoadError(name, f"Subcommand {sub_name} is missing a 'run' function.")
        group.add(option)

    if not group.options:
        return None
    validate_command(group)
    group.freeze()
    return group


__all__ = ["DEFAULT_OWNER_NAME", "DEFAULT_OWNER_DESCRIPTION", "load_owner_command"]
