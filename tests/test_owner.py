"""Tests for the owner command loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from src.commands.errors import LoadError
from src.commands.owner import load_owner_command
from src.commands.types import GuildCommandGroup, OptionType

RESTART = '''
description = "Restart the bot"

def run(event):
    pass
'''


def test_owner_group(commands_root: Path, write_module) -> None:
    write_module("owner/restart.py", RESTART)
    write_module("owner/_notes.py", RESTART)
    write_module(
        "owner/config.py",
        '''
        type = 2
        description = "Runtime config"

        def _show(event):
            pass

        options = [{"name": "show", "description": "Show the config", "type": 1, "run": _show}]
        ''',
    )

    owner = load_owner_command(commands_root, should_create_for=lambda g: g == 42)

    assert isinstance(owner, GuildCommandGroup)
    assert owner.name == "owner"
    assert owner.default_member_permissions == "0"
    assert set(owner.subcommands) == {"restart"}
    assert set(owner.subcommand_groups) == {"config"}
    assert owner.subcommand_groups["config"].subcommands["show"].run is not None
    assert owner.should_create_for(42) and not owner.should_create_for(1)
    assert owner.frozen


def test_owner_folder_without_commands(commands_root: Path) -> None:
    (commands_root / "owner").mkdir()
    assert load_owner_command(commands_root) is None


def test_owner_rejects_value_options(commands_root: Path, write_module) -> None:
    write_module("owner/bad.py", f"type = {OptionType.string.value}\ndescription = \"Not allowed\"\n")
    with pytest.raises(LoadError, match="SUBCOMMAND"):
        load_owner_command(commands_root)


def test_owner_requires_folder_and_valid_name(commands_root: Path, write_module) -> None:
    write_module("owner.py", RESTART)
    with pytest.raises(LoadError, match="subfolder"):
        load_owner_command(commands_root)
    with pytest.raises(LoadError, match="valid command name"):
        load_owner_command(commands_root, name="Not Valid")


def test_owner_subcommand_needs_run(commands_root: Path, write_module) -> None:
    write_module("owner/restart.py", 'description = "Restart the bot"\n')
    with pytest.raises(LoadError, match="missing a 'run'"):
        load_owner_command(commands_root)
