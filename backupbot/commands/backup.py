"""
BackupBot - Backup Command
==========================

/backup builds and sends an archive right away. The archive goes to the
chat (and forum topic) the command came from; without a chat it falls
back to the configured backup chat.

When `admins` is configured only those users may run it.
"""

from typing import Any, Dict, Optional

from backupbot.core.errors import DeliveryError
from backupbot.core.logger import log
from backupbot.services.backup.types import ChatTarget, RunRequest, Trigger


def message_target(message: Dict[str, Any]) -> Optional[ChatTarget]:
    """Chat/thread a command came from, or None to use the default chat."""
    chat_id = (message.get("chat") or {}).get("id")
    if not chat_id:
        return None
    thread_id = message.get("message_thread_id") if message.get("is_topic_message") else None
    return ChatTarget.from_ids(chat_id, thread_id)


class BackupCommand:
    """On-demand backup command."""

    def __init__(self, bot):
        self.bot = bot

    async def backup(self, message: Dict[str, Any]) -> None:
        """Queue a backup run for the requesting chat."""
        user = message.get("from") or {}
        user_id = user.get("id")
        target = message_target(message)
        config = self.bot.store.current

        if not config.is_admin(user_id):
            log.tree("Backup Command Rejected", [
                ("User", user.get("username") or str(user_id)),
                ("ID", str(user_id)),
                ("Reason", "Not an admin"),
            ], emoji="⚠️")
            if target is not None:
                try:
                    await self.bot.api.send_message(
                        target.chat_id,
                        "You are not allowed to run backups.",
                        thread_id=target.thread_id,
                    )
                except DeliveryError as e:
                    log.tree("Backup Command Reply Failed", [
                        ("Chat", str(target.chat_id)),
                        ("Error", str(e)[:100]),
                    ], emoji="⚠️")
            return

        self.bot.pipeline.submit(RunRequest(Trigger.COMMAND, target, label=f"user {user_id}"))
        log.tree("Backup Command", [
            ("User", user.get("username") or str(user_id)),
            ("ID", str(user_id)),
            ("Chat", str(target.chat_id) if target else "default"),
            ("Thread", str(target.thread_id or "-") if target else "default"),
        ], emoji="💾")


def setup(bot) -> None:
    bot.add_command("backup", BackupCommand(bot).backup)
