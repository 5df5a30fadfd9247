"""Discord bot entrypoint: wires configuration, the command loader, and event handling."""

import discord
import logging

from .bot.startup import CommandLoader
from .bot.events import registry as bot_event_registry
from .core.config import LoadConfig, ValidateToken

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s", force=True)

logger = logging.getLogger(__name__)


def CreateBot() -> discord.Client:
    """Create a plain client; commands are served by the loader, not discord.py's tree."""
    intents = discord.Intents.default()
    return discord.Client(intents=intents)


def Run() -> None:
    """Main entry: load config and commands, then start the bot.

    Raises:
        SystemExit: If the Discord token is not properly configured.
        LoadError: If a command definition is invalid.

    Example:
        Run()  # Launches the bot if token and commands are valid
    """
    config = LoadConfig()
    masked_token = ValidateToken(config.discord_token)
    logger.info("[Startup] Using token (masked): %s", masked_token)

    loader = CommandLoader(config)
    loader.load()

    bot = CreateBot()
    bot_event_registry.register_bot_events(bot, loader)
    bot.run(config.discord_token, log_handler=None)


if __name__ == "__main__":
    Run()
