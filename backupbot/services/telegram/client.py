"""
BackupBot - MTProto Client Channel
==================================

Large-file delivery through a telethon client session logged in as the
bot. The Bot API caps uploads; MTProto uploads in chunks and does not.

The session string is kept in memory and reused while it stays
authorized, so repeated runs skip the bot sign-in.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, TYPE_CHECKING

from telethon import TelegramClient
from telethon.sessions import StringSession

from backupbot.core.errors import ClientDeliveryError
from backupbot.core.logger import log

if TYPE_CHECKING:  # pragma: no cover - typing guard
    from backupbot.services.backup.types import ChatTarget


class ClientChannel:
    """Sends one file per call through a fresh MTProto connection."""

    def __init__(self, api_id: int, api_hash: str, bot_token: str) -> None:
        self._api_id = api_id
        self._api_hash = api_hash
        self._bot_token = bot_token
        self._session = ""

    def _new_client(self) -> TelegramClient:
        return TelegramClient(StringSession(self._session), self._api_id, self._api_hash)

    async def _authorize(self, client: TelegramClient) -> None:
        try:
            await client.connect()
            reused = await client.is_user_authorized()
            if not reused:
                await client.sign_in(bot_token=self._bot_token)
            self._session = client.session.save()
        except Exception as e:
            # Stored session may be the cause; start clean next time
            self._session = ""
            raise ClientDeliveryError("auth", str(e) or type(e).__name__, e) from e

        log.tree("Client Session Ready", [
            ("Session", "Reused" if reused else "Signed in with bot token"),
        ], emoji="🔑")

    async def _upload(self, client: TelegramClient, path: Path) -> Any:
        log.info(f"Uploading {path.name} via client...")
        try:
            return await client.upload_file(str(path), file_name=path.name)
        except Exception as e:
            raise ClientDeliveryError("upload", str(e) or type(e).__name__, e) from e

    async def _send(self, client: TelegramClient, target: ChatTarget, uploaded: Any, caption: str) -> None:
        try:
            entity = await client.get_entity(target.chat_id)
            await client.send_file(
                entity,
                uploaded,
                caption=caption,
                parse_mode="html",
                reply_to=target.thread_id,
                force_document=True,
            )
        except Exception as e:
            raise ClientDeliveryError("send", str(e) or type(e).__name__, e) from e

    async def send_file(self, target: ChatTarget, path: Path, caption: str) -> None:
        """Authenticate, upload and send. Raises ClientDeliveryError naming the failed stage."""
        try:
            client = self._new_client()
        except Exception as e:
            self._session = ""
            raise ClientDeliveryError("auth", str(e) or type(e).__name__, e) from e

        try:
            await self._authorize(client)
            uploaded = await self._upload(client, Path(path))
            await self._send(client, target, uploaded, caption)
        finally:
            await client.disconnect()


__all__ = ["ClientChannel"]
