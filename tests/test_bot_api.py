"""
Tests for the Bot API client against a local aiohttp server.
"""
import io
from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp import test_utils

from backupbot.services.telegram.bot_api import BotAPI, BotAPIError

TOKEN = "123:SECRET"


@asynccontextmanager
async def telegram_stub(responses=None):
    """Serve /bot<token>/<method>, recording every request."""
    calls = []
    responses = responses or {}

    async def handle(request):
        method = request.match_info["method"]
        if request.content_type == "application/json":
            body = await request.json()
        else:
            form = await request.post()
            body = {
                key: (value.file.read(), value.filename) if hasattr(value, "file") else value
                for key, value in form.items()
            }
        calls.append({"token": request.match_info["token"], "method": method, "body": body})
        response = responses.get(method, {"ok": True, "result": {"method": method}})
        if isinstance(response, web.Response):
            return response
        return web.json_response(response)

    app = web.Application()
    app.router.add_post("/bot{token}/{method}", handle)
    async with test_utils.TestServer(app) as server:
        api = BotAPI(TOKEN, base_url=str(server.make_url("")))
        try:
            yield api, calls
        finally:
            await api.close()


@pytest.mark.asyncio
async def test_get_me_returns_result():
    async with telegram_stub({"getMe": {"ok": True, "result": {"id": 7, "username": "Bot"}}}) as (api, calls):
        assert await api.get_me() == {"id": 7, "username": "Bot"}
    assert calls[0]["token"] == TOKEN


@pytest.mark.asyncio
async def test_send_message_body():
    async with telegram_stub() as (api, calls):
        await api.send_message(-1001, "<b>hi</b>", thread_id=5)
        await api.send_message(-1001, "plain", parse_mode=None)

    assert calls[0]["body"] == {
        "chat_id": -1001,
        "text": "<b>hi</b>",
        "message_thread_id": 5,
        "parse_mode": "HTML",
    }
    assert calls[1]["body"] == {"chat_id": -1001, "text": "plain"}


@pytest.mark.asyncio
async def test_get_updates_sends_offset():
    async with telegram_stub({"getUpdates": {"ok": True, "result": []}}) as (api, calls):
        assert await api.get_updates(offset=11, timeout=0) == []

    assert calls[0]["body"] == {"timeout": 0, "allowed_updates": ["message"], "offset": 11}


@pytest.mark.asyncio
async def test_send_document_uploads_file():
    async with telegram_stub() as (api, calls):
        await api.send_document(-1001, io.BytesIO(b"archive-bytes"), "b.tar.gz", thread_id=9, caption="📦")

    body = calls[0]["body"]
    assert body["chat_id"] == "-1001"
    assert body["message_thread_id"] == "9"
    assert body["caption"] == "📦"
    assert body["document"] == (b"archive-bytes", "b.tar.gz")


@pytest.mark.asyncio
async def test_error_response_raises_with_code():
    error = {"ok": False, "error_code": 413, "description": "Request Entity Too Large"}
    async with telegram_stub({"sendDocument": error}) as (api, _):
        with pytest.raises(BotAPIError) as info:
            await api.send_document(1, io.BytesIO(b"x"), "a.tar.gz")

    assert info.value.error_code == 413
    assert str(info.value) == "sendDocument (413): Request Entity Too Large"


@pytest.mark.asyncio
async def test_invalid_body_raises():
    async with telegram_stub({"getMe": web.Response(text="<html>bad gateway</html>", status=502)}) as (api, _):
        with pytest.raises(BotAPIError, match="invalid response body"):
            await api.get_me()


@pytest.mark.asyncio
async def test_token_is_redacted_from_errors():
    error = {"ok": False, "description": f"bad url /bot{TOKEN}/getMe"}
    async with telegram_stub({"getMe": error}) as (api, _):
        with pytest.raises(BotAPIError) as info:
            await api.get_me()

    assert TOKEN not in str(info.value)
    assert "***" in str(info.value)
