"""Telegram Bot API client (sendMessage and getUpdates).

Telegram docs: https://core.telegram.org/bots/api
Sends are never retried; a failure raises :class:`TelegramSendError` and the
caller decides whether to log it.
"""

from __future__ import annotations

import logging
from typing import Any

from tg_assistant.config import TELEGRAM_API_BASE, TELEGRAM_TIMEOUT_SECONDS, require_secret
from tg_assistant.errors import TelegramSendError
from tg_assistant.services.http_client import BoundedHTTPClient, get_http_client
from tg_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

# Telegram rejects longer messages
MAX_MESSAGE_CHARS = 4096


class TelegramClient:
    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = TELEGRAM_API_BASE,
        timeout: float = TELEGRAM_TIMEOUT_SECONDS,
        http: BoundedHTTPClient | None = None,
    ):
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = http

    def _url(self, method: str) -> str:
        token = self._token or require_secret("TELEGRAM_BOT_TOKEN")
        return f"{self._base_url}/bot{token}/{method}"

    async def _call(self, method: str, payload: dict[str, Any], *, timeout: float | None = None) -> Any:
        url = self._url(method)
        http = self._http or get_http_client()
        with metrics.track("telegram", method):
            response = await http.post(url, json=payload, timeout=timeout or self._timeout)
            try:
                data = response.json()
            except ValueError:
                data = {}
            if not response.is_success or not isinstance(data, dict) or data.get("ok") is False:
                raise TelegramSendError(
                    f"Telegram {method} failed: {response.status_code} {data}",
                    status_code=response.status_code,
                )
        return data.get("result")

    async def send_message(self, chat_id: str, text: str) -> None:
        """Send *text* to *chat_id* with link previews disabled."""
        if len(text) > MAX_MESSAGE_CHARS:
            text = text[: MAX_MESSAGE_CHARS - 1] + "…"
        await self._call(
            "sendMessage",
            {"chat_id": chat_id, "text": text, "disable_web_page_preview": True},
        )
        logger.info("Reply sent to chat %s (%d chars)", chat_id, len(text))

    async def get_updates(self, offset: int | None = None, poll_timeout: int = 30) -> list[dict[str, Any]]:
        """Long-poll for updates newer than *offset*."""
        payload: dict[str, Any] = {"timeout": poll_timeout, "allowed_updates": [
            "message", "edited_message", "channel_post", "edited_channel_post",
        ]}
        if offset is not None:
            payload["offset"] = offset
        result = await self._call("getUpdates", payload, timeout=poll_timeout + self._timeout)
        return result if isinstance(result, list) else []
