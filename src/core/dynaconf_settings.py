from dataclasses import dataclass
from typing import Optional, Tuple, Any
import os

from dynaconf import Dynaconf  # type: ignore

settings: Dynaconf = Dynaconf(  # type: ignore
    settings_files=["settings.toml", ".secrets.toml"],
    environments=True,           # allow [default], [development], [production], [testing]
    envvar_prefix="BOT",         # env vars like BOT_COMMANDS_FOLDER etc.
    load_dotenv=True,            # read .env file if present
    env_switcher="DYNACONF_ENV", # switch env with DYNACONF_ENV=testing
)


@dataclass(frozen=True)
class AppConfig:
    """Settings for loading, syncing and routing application commands.

    Values come from settings files, environment variables and defaults.
    """
    discord_token: str  # The Discord bot authentication token
    commands_folder: str = "commands"  # Folder holding command definition modules
    owner_command: str = "owner"  # Subfolder (and name) of the owner command
    owner_guild_id: Optional[int] = None  # Guild that receives the owner command
    single_guild_id: Optional[int] = None  # Install every command in this guild instead of globally
    folders_as_groups: bool = True  # Top-level folders become command groups
    debug: bool = False  # Load the _debug folder and sync to a single guild
    default_dm_permission: bool = False  # dm_permission for commands that don't set it
    command_file_extensions: Tuple[str, ...] = (".py",)  # Suffixes of definition modules


def _ParseOptionalId(value: Optional[Any]) -> Optional[int]:
    """Parse a snowflake that may be missing, empty or zero.

    Example:
        _ParseOptionalId("123") -> 123
        _ParseOptionalId("") -> None
    """
    if value in (None, "", 0, "0"):
        return None
    return int(value)  # type: ignore[arg-type]


def _ParseExtensions(value: Optional[Any]) -> Tuple[str, ...]:
    """Parse file extensions from a list or CSV string; each gets a leading dot.

    Example:
        _ParseExtensions("py, .cmd.py") -> (".py", ".cmd.py")
    """
    if value is None:
        return (".py",)
    if isinstance(value, (list, tuple)):
        items = [str(x).strip() for x in value]  # type: ignore
    else:
        items = [x.strip() for x in str(value).split(",")]
    parsed = tuple(x if x.startswith(".") else f".{x}" for x in items if x)
    return parsed or (".py",)


def _AsBool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def GetSettings(reload: bool = False) -> AppConfig:
    """
    Return AppConfig built from Dynaconf's settings.

    Args:
        reload: Whether to reload files and environment (useful in tests). Defaults to False.

    Returns:
        AppConfig: Configuration instance with loaded values.

    Example:
        config = GetSettings()
        config = GetSettings(reload=True)  # Reload settings
    """
    try:
        if reload:
            settings.reload()  # type: ignore

        # Prefer value from settings files; if absent, fall back to unprefixed OS env DISCORD_TOKEN
        token_from_settings: Any = settings.get("DISCORD_TOKEN", None)  # type: ignore[arg-type]
        if token_from_settings in (None, ""):
            token = str(os.environ.get("DISCORD_TOKEN", ""))
        else:
            token = f"{token_from_settings}"

        return AppConfig(
            discord_token=token,
            commands_folder=str(settings.get("COMMANDS_FOLDER", "commands")),  # type: ignore
            owner_command=str(settings.get("OWNER_COMMAND", "owner") or "owner"),  # type: ignore
            owner_guild_id=_ParseOptionalId(settings.get("OWNER_GUILD_ID", None)),  # type: ignore
            single_guild_id=_ParseOptionalId(settings.get("SINGLE_GUILD_ID", None)),  # type: ignore
            folders_as_groups=_AsBool(settings.get("FOLDERS_AS_GROUPS", None), True),  # type: ignore
            debug=_AsBool(settings.get("DEBUG", None), False),  # type: ignore
            default_dm_permission=_AsBool(settings.get("DEFAULT_DM_PERMISSION", None), False),  # type: ignore
            command_file_extensions=_ParseExtensions(settings.get("COMMAND_FILE_EXTENSIONS", None)),  # type: ignore
        )
    except Exception as e:
        raise RuntimeError(f"Failed to load settings: {e}") from e
