"""
BackupBot - Entry Point
=======================

Load config, start the bot, run until interrupted.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from backupbot.bot import BackupBot
from backupbot.core.config import ConfigStore, default_config_path
from backupbot.core.errors import ConfigError
from backupbot.core.logger import log
from backupbot.services.telegram.bot_api import BotAPIError


async def main() -> None:
    """Main entry point."""
    store = ConfigStore(default_config_path())
    try:
        config = store.load()
    except ConfigError as e:
        log.error(f"Failed to load config: {e}")
        sys.exit(1)

    log.configure(log_file=config.enable_log_file, timezone=config.tz)

    if not config.bot.token:
        log.error("Bot token not set (bot.token or BACKUPBOT_TOKEN)")
        sys.exit(1)

    log.tree("Bot Starting", [
        ("Config", str(store.path)),
        ("Timezone", config.archive.timezone),
        ("Schedules", str(len(config.archive.backup_times))),
    ], emoji="🤖")

    bot = BackupBot(store)
    try:
        await bot.start()
    except BotAPIError as e:
        log.error(f"Failed to connect to Telegram: {e}")
        raise SystemExit(1)
    finally:
        await bot.close()


def run() -> None:
    load_dotenv()
    # telethon logs through the standard logging module
    logging.basicConfig(level=logging.WARNING)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.warning("Received keyboard interrupt")


if __name__ == "__main__":
    run()
