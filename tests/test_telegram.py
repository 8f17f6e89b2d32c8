"""Tests for the Telegram Bot API client."""

from __future__ import annotations

import json

import httpx
import pytest

from tg_assistant.errors import ConfigMissing, TelegramSendError
from tg_assistant.services.telegram import MAX_MESSAGE_CHARS, TelegramClient


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_posts_to_send_message(self, make_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": {}})

        client = TelegramClient(token="123:ABC", http=make_http(handler))
        await client.send_message("42", "你好")

        assert seen["path"] == "/bot123:ABC/sendMessage"
        assert seen["body"] == {"chat_id": "42", "text": "你好", "disable_web_page_preview": True}

    @pytest.mark.asyncio
    async def test_ok_false_raises(self, make_http):
        handler = lambda r: httpx.Response(200, json={"ok": False, "description": "chat not found"})  # noqa: E731
        client = TelegramClient(token="T", http=make_http(handler))
        with pytest.raises(TelegramSendError, match="chat not found"):
            await client.send_message("1", "x")

    @pytest.mark.asyncio
    async def test_http_error_raises_with_status(self, make_http):
        client = TelegramClient(token="T", http=make_http(lambda r: httpx.Response(403, json={"ok": False})))
        with pytest.raises(TelegramSendError) as exc_info:
            await client.send_message("1", "x")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_long_text_is_truncated(self, make_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["text"] = json.loads(request.content)["text"]
            return httpx.Response(200, json={"ok": True})

        client = TelegramClient(token="T", http=make_http(handler))
        await client.send_message("1", "a" * (MAX_MESSAGE_CHARS + 50))
        assert len(seen["text"]) == MAX_MESSAGE_CHARS

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_sending(self, make_http, monkeypatch):
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        calls = []
        client = TelegramClient(http=make_http(lambda r: calls.append(r) or httpx.Response(200)))
        with pytest.raises(ConfigMissing):
            await client.send_message("1", "x")
        assert calls == []


class TestGetUpdates:
    @pytest.mark.asyncio
    async def test_passes_offset_and_returns_result(self, make_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "result": [{"update_id": 5}]})

        client = TelegramClient(token="T", http=make_http(handler))
        updates = await client.get_updates(offset=5, poll_timeout=0)
        assert updates == [{"update_id": 5}]
        assert seen["body"]["offset"] == 5
