"""
BackupBot - Delivery Router
===========================

Picks the delivery channel by archive size and makes exactly one attempt.

Below the threshold the Bot API takes the archive in one upload. At or
above it the MTProto client uploads it in chunks under one overall
timeout. Neither path retries; every failure is logged and posted to
the target chat.
"""

import asyncio
from typing import Optional

from backupbot.core.errors import ClientDeliveryError, DeliveryError
from backupbot.core.logger import log
from backupbot.services.backup.types import Archive, Channel, ChatTarget, DeliveryOutcome
from backupbot.utils.text import code, format_size, truncate


class DeliveryRouter:
    """
    Routes one archive to one chat.

    `bot` needs send_document() and send_message() (BotAPI).
    `client` needs send_file() (ClientChannel); None when client API
    credentials are not configured.
    """

    def __init__(
        self,
        bot,
        client=None,
        threshold: int = 0,
        client_timeout: float = 120.0,
    ) -> None:
        self._bot = bot
        self._client = client
        self.threshold = threshold
        self.client_timeout = client_timeout

    def select_channel(self, size: int) -> Channel:
        """Bot channel strictly below the threshold, client channel from it upwards."""
        return Channel.BOT if size < self.threshold else Channel.CLIENT

    async def deliver(self, archive: Archive, target: ChatTarget) -> DeliveryOutcome:
        channel = self.select_channel(archive.size)
        log.tree("Sending Archive", [
            ("File", archive.name),
            ("Size", format_size(archive.size)),
            ("Channel", channel.value),
            ("Chat", str(target.chat_id)),
            ("Thread", str(target.thread_id or "-")),
        ], emoji="📤")

        if channel is Channel.BOT:
            return await self._deliver_small(archive, target)
        return await self._deliver_large(archive, target)

    # =========================================================================
    # Channels
    # =========================================================================

    async def _deliver_small(self, archive: Archive, target: ChatTarget) -> DeliveryOutcome:
        try:
            archive.file.seek(0)
            await self._bot.send_document(
                target.chat_id,
                archive.file,
                archive.name,
                thread_id=target.thread_id,
                caption=f"📦 {code(archive.name)}",
            )
        except (DeliveryError, OSError) as e:
            error = str(e)
            log.tree("Failed To Send Archive", [
                ("File", archive.name),
                ("Channel", Channel.BOT.value),
                ("Error", truncate(error, 200)),
            ], emoji="❌")
            await self.notify_failure(target, archive.name, error)
            return DeliveryOutcome(Channel.BOT, False, 0, error)

        log.tree("Archive Sent Via Bot", [
            ("File", archive.name),
            ("Size", format_size(archive.size)),
        ], emoji="✅")
        return DeliveryOutcome(Channel.BOT, True, archive.size)

    async def _deliver_large(self, archive: Archive, target: ChatTarget) -> DeliveryOutcome:
        try:
            if self._client is None:
                raise ClientDeliveryError("auth", "client API credentials are not configured")
            await asyncio.wait_for(
                self._client.send_file(target, archive.path, f"📦 {code(archive.name)}"),
                timeout=self.client_timeout,
            )
        except asyncio.TimeoutError as e:
            failure = ClientDeliveryError("timeout", f"no result within {self.client_timeout:g}s", e)
        except ClientDeliveryError as e:
            failure = e
        else:
            failure = None

        if failure is not None:
            error = str(failure)
            log.tree("Client Delivery Failed", [
                ("File", archive.name),
                ("Size", format_size(archive.size)),
                ("Stage", failure.stage),
                ("Error", truncate(error, 200)),
                ("Action", "Run aborted, not retried"),
            ], emoji="🚨")
            await self.notify_failure(target, archive.name, error)
            return DeliveryOutcome(Channel.CLIENT, False, 0, error)

        log.tree("Archive Sent Via Client", [
            ("File", archive.name),
            ("Size", format_size(archive.size)),
        ], emoji="✅")
        return DeliveryOutcome(Channel.CLIENT, True, archive.size)

    # =========================================================================
    # Reporting
    # =========================================================================

    async def notify_failure(self, target: ChatTarget, archive_name: Optional[str], error: str) -> bool:
        """Post a visible failure notice to the chat. Returns False if even that fails."""
        subject = f"archive {code(archive_name)}" if archive_name else "backup"
        text = f"Failed to send {subject}: {code(truncate(error, 500))}"
        try:
            await self._bot.send_message(target.chat_id, text, thread_id=target.thread_id)
        except (DeliveryError, OSError) as e:
            log.tree("Failure Notice Not Delivered", [
                ("Chat", str(target.chat_id)),
                ("Error", truncate(str(e), 200)),
            ], emoji="⚠️")
            return False
        return True


__all__ = ["DeliveryRouter"]
