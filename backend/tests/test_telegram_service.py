"""
DLE Backend - Telegram Client Tests
=====================================

What:  Tests for the Bot API client against httpx.MockTransport.

What we test:
    ✅ getFile / file download / sendMessage URLs and payloads
    ✅ HTTP errors, "ok": false and transport failures → TelegramAPIError
    ✅ getFile without a file_path is an error
"""

import json

import httpx
import pytest

from app.exceptions import TelegramAPIError
from app.services.telegram_service import TelegramService

API = "https://api.telegram.test"


def _service(handler) -> TelegramService:
    return TelegramService(token="123:abc", api_base=API, timeout=5, transport=httpx.MockTransport(handler))


class TestTelegramService:

    @pytest.mark.asyncio
    async def test_get_file(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True, "result": {"file_id": "F1", "file_path": "voice/file_1.oga"}})

        result = await _service(handler).get_file("F1")

        assert result["file_path"] == "voice/file_1.oga"
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/bot123:abc/getFile"
        assert seen[0].url.params["file_id"] == "F1"

    @pytest.mark.asyncio
    async def test_get_file_without_path_fails(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True, "result": {"file_id": "F1"}})

        with pytest.raises(TelegramAPIError):
            await _service(handler).get_file("F1")

    @pytest.mark.asyncio
    async def test_download_file(self):
        def handler(request):
            assert request.url.path == "/file/bot123:abc/voice/file_1.oga"
            return httpx.Response(200, content=b"OggS-bytes")

        assert await _service(handler).download_file("voice/file_1.oga") == b"OggS-bytes"

    @pytest.mark.asyncio
    async def test_download_http_error(self):
        def handler(request):
            return httpx.Response(404)

        with pytest.raises(TelegramAPIError):
            await _service(handler).download_file("voice/missing.oga")

    @pytest.mark.asyncio
    async def test_send_message_posts_json(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 7}})

        result = await _service(handler).send_message(42, "<b>hi</b>", parse_mode="HTML")

        assert result == {"message_id": 7}
        assert seen == [{"chat_id": 42, "text": "<b>hi</b>", "parse_mode": "HTML"}]

    @pytest.mark.asyncio
    async def test_send_message_without_parse_mode(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True, "result": {}})

        await _service(handler).send_message(42, "plain")

        assert "parse_mode" not in seen[0]

    @pytest.mark.asyncio
    async def test_not_ok_body_raises(self):
        def handler(request):
            return httpx.Response(200, json={"ok": False, "description": "Bad Request: chat not found"})

        with pytest.raises(TelegramAPIError):
            await _service(handler).send_message(1, "x")

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self):
        def handler(request):
            return httpx.Response(401, json={"ok": False, "description": "Unauthorized"})

        with pytest.raises(TelegramAPIError):
            await _service(handler).get_file("F1")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TelegramAPIError):
            await _service(handler).send_message(1, "x")

    def test_is_configured(self):
        assert TelegramService(token="t").is_configured is True
        assert TelegramService(token="").is_configured is False
