"""
Elaina Discord Bot
==================

A conversational Discord bot with per-chat personas, media helpers (TikTok,
voice notes, images) and rules-based group moderation with a warning ledger.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Project root: ``$ELAINA_HOME``, else the executable's folder when frozen, else the repo root."""
    if env_home := os.getenv("ELAINA_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from elaina.bot.cogs import message_listener
from elaina.bot.wiring import Runtime, build_runtime
from elaina.configuration.app_configuration import app_config
from elaina.database.database import Database
from elaina.database.db_connection import db_connection
from elaina.transport.discord_transport import DiscordTransport
from elaina.util.errors import ConfigurationError
from elaina.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load ``.env`` and return the Discord bot token.

    Raises
    ------
    ConfigurationError
        If ``DISCORD_BOT_TOKEN`` is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        raise ConfigurationError("'DISCORD_BOT_TOKEN' environment variable not set")
    return token


def build_intents() -> discord.Intents:
    """Guild, member and message-content intents."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def create_bot() -> tuple[discord.Bot, Runtime]:
    """Instantiate the Discord bot, build the runtime and register the cogs."""
    bot = discord.Bot(intents=build_intents())
    runtime = build_runtime(app_config, DiscordTransport(bot), db_connection)
    message_listener.setup(bot, runtime.dispatcher, runtime.matcher, owner_ids=app_config.owner_ids)
    logger.info("[MAIN] Message listener registered")
    return bot, runtime


async def start_bot(bot: discord.Bot, token: str) -> None:
    logger.info("[MAIN] Connecting to Discord")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("[MAIN] Connection cancelled")
    else:
        logger.info("[MAIN] Disconnected from Discord")


async def shutdown_runtime(bot: discord.Bot | None, database: Database) -> None:
    """Close the Discord connection, then the database."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except discord.DiscordException as exc:
            logger.exception("[MAIN] Closing the Discord client failed: %s", exc)

    await database.shutdown()
    logger.info("[MAIN] Shutdown complete")


async def async_main() -> int:
    """Bootstrap database and bot, run until disconnected, return an exit code."""
    try:
        token = load_environment()
    except ConfigurationError as exc:
        logger.critical("[MAIN] %s; cannot start", exc)
        return 1

    database = Database(app_config.database_path)
    try:
        logger.info("[MAIN] Opening database %s", app_config.database_path)
        await database.initialize()
        await database.prune_evaluations()
    except Exception as exc:
        logger.critical("[MAIN] Database startup failed: %s", exc)
        return 1

    bot = None
    exit_code = 0
    try:
        bot, runtime = create_bot()
        if runtime.moderation is None:
            logger.info("[MAIN] Group moderation disabled by configuration")
        await start_bot(bot, token)
    except discord.LoginFailure as exc:
        logger.critical("[MAIN] Discord rejected the bot token: %s", exc)
        exit_code = 1
    except Exception as exc:
        logger.critical("[MAIN] Bot stopped on an unexpected error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, database)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    logger.info("[MAIN] Starting Elaina")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("[MAIN] Interrupted, exiting")
        return 0


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
