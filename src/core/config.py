from .dynaconf_settings import AppConfig, GetSettings

__all__ = ["AppConfig", "LoadConfig", "ValidateToken"]


def LoadConfig() -> AppConfig:
    """Load configuration using dynaconf.

    Returns:
        AppConfig: Instance with loaded values from settings files and environment.

    Example:
        config = LoadConfig()
        print(config.commands_folder)
    """
    try:
        return GetSettings()
    except Exception as e:
        raise RuntimeError(f"Failed to load configuration: {e}") from e


def ValidateToken(token: str) -> str:
    """Check the bot token looks usable and return it masked for logging.

    Raises:
        SystemExit: If the token is missing, a placeholder, or not three
            dot-separated parts.
    """
    if not token or token.lower() == "changeme":
        raise SystemExit("DISCORD_TOKEN not set in environment")
    parts = token.split(".")
    if len(parts) != 3:
        raise SystemExit(
            "DISCORD_TOKEN format unexpected (should contain 2 dots). Use the bot token, not the client secret."
        )
    return parts[0][:4] + "..." + parts[-1][-4:]
