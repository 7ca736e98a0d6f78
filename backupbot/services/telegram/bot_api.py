"""
BackupBot - Telegram Bot API
============================

Minimal async Bot API client: long polling, text messages and document
uploads. This is the small-payload delivery channel.
"""

import asyncio
import json
from typing import IO, Any, Dict, List, Optional

import aiohttp

from backupbot.core.constants import POLL_TIMEOUT, TELEGRAM_API_BASE
from backupbot.core.errors import DeliveryError
from backupbot.utils.http import (
    HTTPSessionManager,
    POLL_CLIENT_TIMEOUT,
    UPLOAD_CLIENT_TIMEOUT,
)


class BotAPIError(DeliveryError):
    """A Bot API call failed (transport error or ok=false)."""

    def __init__(self, method: str, description: str, error_code: Optional[int] = None) -> None:
        code = f" ({error_code})" if error_code else ""
        super().__init__(f"{method}{code}: {description}")
        self.method = method
        self.description = description
        self.error_code = error_code


class BotAPI:
    """Thin wrapper around https://api.telegram.org/bot<token>/<method>."""

    def __init__(
        self,
        token: str,
        base_url: str = TELEGRAM_API_BASE,
        http: Optional[HTTPSessionManager] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._http = http or HTTPSessionManager()

    def _url(self, method: str) -> str:
        return f"{self._base_url}/bot{self._token}/{method}"

    def _redact(self, text: str) -> str:
        """Never let the token leak into logs or chat messages."""
        return text.replace(self._token, "***") if self._token else text

    async def _call(self, method: str, **kwargs: Any) -> Any:
        try:
            async with self._http.post(self._url(method), **kwargs) as response:
                try:
                    payload = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError) as e:
                    raise BotAPIError(method, f"HTTP {response.status}: invalid response body") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            raise BotAPIError(method, self._redact(reason)) from e

        if not isinstance(payload, dict) or not payload.get("ok"):
            description = "unknown error"
            error_code = None
            if isinstance(payload, dict):
                description = payload.get("description", description)
                error_code = payload.get("error_code")
            raise BotAPIError(method, self._redact(str(description)), error_code)

        return payload.get("result")

    # =========================================================================
    # Methods
    # =========================================================================

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def get_updates(self, offset: Optional[int] = None, timeout: int = POLL_TIMEOUT) -> List[Dict[str, Any]]:
        body: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            body["offset"] = offset
        return await self._call("getUpdates", json=body, timeout=POLL_CLIENT_TIMEOUT)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        thread_id: Optional[int] = None,
        parse_mode: Optional[str] = "HTML",
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if thread_id:
            body["message_thread_id"] = thread_id
        if parse_mode:
            body["parse_mode"] = parse_mode
        return await self._call("sendMessage", json=body)

    async def send_document(
        self,
        chat_id: int,
        document: IO[bytes],
        filename: str,
        thread_id: Optional[int] = None,
        caption: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Upload a file as a document in a single multipart request."""
        form = aiohttp.FormData()
        form.add_field("chat_id", str(chat_id))
        if thread_id:
            form.add_field("message_thread_id", str(thread_id))
        if caption:
            form.add_field("caption", caption)
            form.add_field("parse_mode", "HTML")
        form.add_field("document", document, filename=filename, content_type="application/gzip")
        return await self._call("sendDocument", data=form, timeout=UPLOAD_CLIENT_TIMEOUT)

    async def close(self) -> None:
        await self._http.close()


__all__ = ["BotAPI", "BotAPIError"]
