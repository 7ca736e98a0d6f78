"""
BackupBot - Start Command
=========================

/start replies with the chat and thread ids, which is what goes into
`backup_chat_data` in the config file.
"""

from typing import Any, Dict

from backupbot.core.logger import log
from backupbot.utils.text import code


class StartCommand:
    """Shows the ids needed to configure the backup chat."""

    def __init__(self, bot):
        self.bot = bot

    async def start(self, message: Dict[str, Any]) -> None:
        chat_id = message["chat"]["id"]
        thread_id = message.get("message_thread_id") if message.get("is_topic_message") else None

        await self.bot.api.send_message(
            chat_id,
            "The /start command has been successfully processed. "
            f"ChatID {code(chat_id)}, ThreadID {code(thread_id or 0)}",
            thread_id=thread_id,
        )
        log.tree("Start Command", [
            ("Chat", str(chat_id)),
            ("Thread", str(thread_id or 0)),
        ], emoji="👋")


def setup(bot) -> None:
    bot.add_command("start", StartCommand(bot).start)
