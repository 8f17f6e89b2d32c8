"""Outbound HTTP with a hard per-call deadline.

Every network call the assistant makes (model gateway, tool data providers,
Telegram) goes through :class:`BoundedHTTPClient`.  HTTP error statuses are
returned as ordinary responses; only transport-level failures raise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from tg_assistant.config import HTTP_TIMEOUT_SECONDS
from tg_assistant.errors import RequestTimeout, TransportError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "tg-assistant/1.0"


class BoundedHTTPClient:
    """Thin wrapper around ``httpx.AsyncClient`` that enforces a deadline."""

    def __init__(
        self,
        *,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._default_timeout = timeout
        self._client = httpx.AsyncClient(
            headers={"User-Agent": DEFAULT_USER_AGENT},
            timeout=timeout,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue one request, cancelling it when *timeout* seconds elapse.

        Raises:
            RequestTimeout: the deadline fired before a response arrived.
            TransportError: DNS, connection or protocol failure.
        """
        deadline = self._default_timeout if timeout is None else timeout
        try:
            # asyncio.timeout disarms its timer on every exit path
            async with asyncio.timeout(deadline):
                return await self._client.request(method, url, timeout=deadline, **kwargs)
        except (TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("%s %s timed out after %.1fs", method, _safe_url(url), deadline)
            raise RequestTimeout(f"{method} {_safe_url(url)} timed out after {deadline:.1f}s") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s transport error: %s", method, _safe_url(url), type(exc).__name__)
            raise TransportError(f"{method} {_safe_url(url)} failed: {type(exc).__name__}: {exc}") from exc

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()


def _safe_url(url: str) -> str:
    """Drop the query string and any bot token from *url* before logging."""
    base = url.split("?", 1)[0]
    if "/bot" in base:
        head, _, tail = base.partition("/bot")
        method = tail.split("/", 1)[1] if "/" in tail else ""
        return f"{head}/bot<redacted>/{method}"
    return base


# ── Module-level singleton ──────────────────────────────────────────
_client: BoundedHTTPClient | None = None


def get_http_client() -> BoundedHTTPClient:
    """Return the process-wide client, creating it on first use.

    The event loop is single-threaded, so no lock is needed here.
    """
    global _client
    if _client is None:
        _client = BoundedHTTPClient()
    return _client


async def close_http_client() -> None:
    """Close the process-wide client (called from the server lifespan)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
