"""
BackupBot - Main Bot
====================

Telegram backup bot: long polling for commands plus cron-scheduled runs,
both feeding the same backup pipeline.
"""

import asyncio
import importlib
from typing import Any, Awaitable, Callable, Dict, Optional

from backupbot.core.config import ConfigStore
from backupbot.core.constants import POLL_RETRY_DELAY
from backupbot.core.errors import DeliveryError
from backupbot.core.logger import log
from backupbot.services.backup.pipeline import BackupPipeline
from backupbot.services.backup.scheduler import BackupScheduler
from backupbot.services.backup.types import RunRequest, Trigger
from backupbot.services.telegram.bot_api import BotAPI, BotAPIError
from backupbot.utils.async_utils import gather_with_logging

CommandHandler = Callable[[Dict[str, Any]], Awaitable[None]]

EXTENSIONS = (
    "backupbot.commands.start",
    "backupbot.commands.backup",
)


def parse_command(text: Optional[str], username: Optional[str] = None) -> Optional[str]:
    """
    Extract the command name from a message text.

    "/backup", "/backup now" and "/backup@ThisBot" give "backup";
    commands addressed to another bot give None.
    """
    if not text or not text.startswith("/"):
        return None
    head = text.split(maxsplit=1)[0][1:]
    name, _, addressee = head.partition("@")
    if not name:
        return None
    if addressee and (not username or addressee.lower() != username.lower()):
        return None
    return name.lower()


class BackupBot:
    """Main bot class for BackupBot."""

    def __init__(self, store: ConfigStore, api: Optional[BotAPI] = None, pipeline: Optional[BackupPipeline] = None):
        self.store = store
        config = store.current

        self.api = api or BotAPI(config.bot.token)
        self.pipeline = pipeline or BackupPipeline(store, self.api)
        self.scheduler = BackupScheduler(
            config.archive.backup_times,
            config.tz,
            self.pipeline.submit,
        )

        self.commands: Dict[str, CommandHandler] = {}
        self.username: Optional[str] = None
        self._offset: Optional[int] = None
        self._running = False

    def add_command(self, name: str, handler: CommandHandler) -> None:
        self.commands[name] = handler

    def load_extension(self, name: str) -> None:
        module = importlib.import_module(name)
        module.setup(self)

    def setup_hook(self) -> None:
        """Register commands."""
        for extension in EXTENSIONS:
            self.load_extension(extension)

    async def start(self) -> None:
        """Connect, start schedules and poll until closed."""
        me = await self.api.get_me()
        self.username = me.get("username")
        self.setup_hook()

        log.tree("Bot Ready", [
            ("User", f"@{self.username}"),
            ("ID", str(me.get("id"))),
            ("Commands", ", ".join(f"/{name}" for name in self.commands)),
        ], emoji="🚀")

        self.scheduler.start()

        if self.store.current.bot.send_archive_on_start:
            self.pipeline.submit(RunRequest(Trigger.STARTUP, label="startup"))

        self._running = True
        await self._poll_loop()

    async def _poll_loop(self) -> None:
        log.info("Polling started")
        while self._running:
            try:
                updates = await self.api.get_updates(self._offset)
            except BotAPIError as e:
                log.tree("Polling Failed", [
                    ("Error", str(e)[:200]),
                    ("Retry In", f"{POLL_RETRY_DELAY}s"),
                ], emoji="⚠️")
                await asyncio.sleep(POLL_RETRY_DELAY)
                continue

            for update in updates:
                self._offset = update["update_id"] + 1
                await self.dispatch(update)

    async def dispatch(self, update: Dict[str, Any]) -> bool:
        """Route one update to its command handler. Returns True if a handler ran."""
        message = update.get("message")
        if not message:
            return False

        name = parse_command(message.get("text"), self.username)
        handler = self.commands.get(name) if name else None
        if handler is None:
            return False

        try:
            await handler(message)
        except DeliveryError as e:
            log.tree("Command Failed", [
                ("Command", f"/{name}"),
                ("Chat", str((message.get("chat") or {}).get("id"))),
                ("Error", str(e)[:200]),
            ], emoji="❌")
        except Exception as e:
            log.tree("Command Crashed", [
                ("Command", f"/{name}"),
                ("Chat", str((message.get("chat") or {}).get("id"))),
                ("Error Type", type(e).__name__),
                ("Error", str(e)[:200]),
            ], emoji="🚨")
        return True

    async def close(self) -> None:
        """Clean up when bot is shutting down."""
        log.info("Bot shutting down...")
        self._running = False
        await gather_with_logging(
            ("Stop Scheduler", self.scheduler.stop()),
            ("Finish Backup Runs", self.pipeline.drain()),
            context="Shutdown",
        )
        await self.api.close()
        log.success("Bot stopped")
