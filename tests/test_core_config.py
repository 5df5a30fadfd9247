"""Tests for core configuration modules."""

from __future__ import annotations

import os
from unittest.mock import patch
import pytest

from src.core.config import LoadConfig, ValidateToken
from src.core.dynaconf_settings import _AsBool, _ParseExtensions, _ParseOptionalId, GetSettings, AppConfig  # type: ignore


def test_parse_optional_id() -> None:
    """Test _ParseOptionalId with missing, zero and numeric values."""
    assert _ParseOptionalId(None) is None
    assert _ParseOptionalId("") is None
    assert _ParseOptionalId("0") is None
    assert _ParseOptionalId("123") == 123
    assert _ParseOptionalId(456) == 456


def test_parse_optional_id_invalid() -> None:
    """Test _ParseOptionalId with a non-numeric value."""
    with pytest.raises(ValueError):
        _ParseOptionalId("abc")


def test_parse_extensions() -> None:
    """Test _ParseExtensions with list, CSV and empty input."""
    assert _ParseExtensions(None) == (".py",)
    assert _ParseExtensions(["py", ".cmd.py"]) == (".py", ".cmd.py")
    assert _ParseExtensions("py, , .command.py") == (".py", ".command.py")
    assert _ParseExtensions("") == (".py",)


def test_as_bool() -> None:
    assert _AsBool(None, True) is True
    assert _AsBool("yes", False) is True
    assert _AsBool("off", True) is False
    assert _AsBool(0, True) is False


@patch('src.core.dynaconf_settings.settings')
def test_get_settings_basic(mock_settings) -> None:
    """Test GetSettings with a full configuration."""
    mock_settings.get.side_effect = lambda key, default=None: {
        "DISCORD_TOKEN": "test_token_123",
        "COMMANDS_FOLDER": "bot_commands",
        "OWNER_COMMAND": "sudo",
        "OWNER_GUILD_ID": "42",
        "SINGLE_GUILD_ID": None,
        "FOLDERS_AS_GROUPS": "false",
        "DEBUG": True,
        "DEFAULT_DM_PERMISSION": "1",
        "COMMAND_FILE_EXTENSIONS": "py,cmd.py",
    }.get(key, default)

    result = GetSettings()

    assert isinstance(result, AppConfig)
    assert result.discord_token == "test_token_123"
    assert result.commands_folder == "bot_commands"
    assert result.owner_command == "sudo"
    assert result.owner_guild_id == 42
    assert result.single_guild_id is None
    assert result.folders_as_groups is False
    assert result.debug is True
    assert result.default_dm_permission is True
    assert result.command_file_extensions == (".py", ".cmd.py")


@patch('src.core.dynaconf_settings.settings')
def test_get_settings_defaults(mock_settings) -> None:
    """Test GetSettings falls back to defaults for missing keys."""
    mock_settings.get.side_effect = lambda key, default=None: {"DISCORD_TOKEN": "tok"}.get(key, default)

    result = GetSettings()

    assert result.commands_folder == "commands"
    assert result.owner_command == "owner"
    assert result.owner_guild_id is None
    assert result.folders_as_groups is True
    assert result.debug is False
    assert result.command_file_extensions == (".py",)


@patch('src.core.dynaconf_settings.settings')
@patch.dict(os.environ, {'DISCORD_TOKEN': 'env_token_456'})
def test_get_settings_token_fallback_to_env(mock_settings) -> None:
    """Test GetSettings token fallback to environment variable."""
    mock_settings.get.side_effect = lambda key, default=None: {"DISCORD_TOKEN": None}.get(key, default)

    result = GetSettings()

    assert result.discord_token == "env_token_456"


@patch('src.core.dynaconf_settings.settings')
def test_get_settings_reload(mock_settings) -> None:
    """Test GetSettings with reload=True."""
    mock_settings.get.side_effect = lambda key, default=None: {"DISCORD_TOKEN": "tok"}.get(key, default)

    GetSettings(reload=True)

    mock_settings.reload.assert_called_once()


@patch('src.core.dynaconf_settings.settings')
def test_get_settings_invalid_value_wrapped(mock_settings) -> None:
    """Test GetSettings wraps parse failures in RuntimeError."""
    mock_settings.get.side_effect = lambda key, default=None: {"OWNER_GUILD_ID": "not-a-number"}.get(key, default)

    with pytest.raises(RuntimeError, match="Failed to load settings"):
        GetSettings()

    with pytest.raises(RuntimeError, match="Failed to load configuration"):
        LoadConfig()


def test_validate_token() -> None:
    """Test ValidateToken masking and rejection."""
    assert ValidateToken("abcdefgh.middle.wxyz1234") == "abcd...1234"
    with pytest.raises(SystemExit):
        ValidateToken("")
    with pytest.raises(SystemExit):
        ValidateToken("changeme")
    with pytest.raises(SystemExit):
        ValidateToken("no-dots-here")
