"""Client for OpenAI-compatible chat-completions endpoints with failover.

Endpoints are tried strictly in priority order, each at most once per call.
The first endpoint that returns a well-formed assistant message wins; if
all of them fail the caller gets :class:`AIUnavailable` carrying the last
underlying error.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from tg_assistant.config import AI_ENDPOINTS, AI_TIMEOUT_SECONDS, MODEL_NAME, require_secret
from tg_assistant.errors import AIUnavailable, AssistantError, ConfigMissing, TransportError
from tg_assistant.models import ChatTurn, ModelReply, ToolDefinition
from tg_assistant.services.http_client import BoundedHTTPClient, get_http_client
from tg_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)


class EndpointError(AssistantError):
    """One endpoint answered, but not with a usable completion."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def _error_detail(response: httpx.Response) -> str:
    """Pull the provider's error message out of a failed response."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return f"HTTP {response.status_code}: {error['message']}"
        if data.get("message"):
            return f"HTTP {response.status_code}: {data['message']}"
    return f"HTTP {response.status_code}"


def parse_completion(data: Any) -> ModelReply:
    """Extract ``choices[0].message`` from a chat-completions body."""
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise EndpointError("Response has no choices[0].message") from exc
    if not isinstance(message, dict):
        raise EndpointError("choices[0].message is not an object")

    calls = []
    for raw in message.get("tool_calls") or []:
        if not isinstance(raw, dict):
            continue
        function = raw.get("function") or {}
        if not isinstance(function, dict):
            raise EndpointError("tool_calls entry has no function object")
        arguments = function.get("arguments")
        calls.append(
            {
                "id": raw.get("id", ""),
                "name": function.get("name", ""),
                "arguments": arguments if isinstance(arguments, str) else "{}",
            }
        )
    try:
        return ModelReply(content=message.get("content"), tool_calls=calls)
    except ValidationError as exc:
        raise EndpointError(f"Malformed assistant message: {exc.error_count()} errors") from exc


class ModelGateway:
    """Sends a conversation to the first healthy model endpoint."""

    def __init__(
        self,
        endpoints: Sequence[str] | None = None,
        *,
        api_key: str | None = None,
        model: str = MODEL_NAME,
        timeout: float = AI_TIMEOUT_SECONDS,
        http: BoundedHTTPClient | None = None,
    ):
        self._endpoints = tuple(AI_ENDPOINTS if endpoints is None else endpoints)
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._http = http

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    def _build_payload(
        self, turns: Sequence[ChatTurn], tools: Sequence[ToolDefinition] | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [turn.to_wire() for turn in turns],
        }
        if tools:
            payload["tools"] = [definition.to_wire() for definition in tools]
            payload["tool_choice"] = "auto"
        return payload

    async def _call_endpoint(self, url: str, payload: dict[str, Any], api_key: str) -> ModelReply:
        http = self._http or get_http_client()
        response = await http.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=self._timeout,
        )
        if not response.is_success:
            raise EndpointError(_error_detail(response), status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise EndpointError("Response body is not JSON") from exc
        return parse_completion(data)

    async def send(
        self,
        turns: Sequence[ChatTurn],
        tools: Sequence[ToolDefinition] | None = None,
    ) -> ModelReply:
        """Return the assistant message from the first endpoint that succeeds.

        Raises:
            ConfigMissing: no API key or no endpoints are configured.
            AIUnavailable: every endpoint failed.
        """
        api_key = self._api_key or require_secret("AI_API_KEY")
        if not self._endpoints:
            raise ConfigMissing("AI_ENDPOINTS")

        payload = self._build_payload(turns, tools)
        last_error: Exception | None = None
        for position, url in enumerate(self._endpoints, start=1):
            host = urlparse(url).netloc or url
            try:
                with metrics.track("model", host):
                    reply = await self._call_endpoint(url, payload, api_key)
            except (TransportError, EndpointError) as exc:
                last_error = exc
                logger.warning(
                    "Model endpoint %d/%d (%s) failed: %s",
                    position, len(self._endpoints), host, exc,
                )
                continue
            if position > 1:
                logger.info("Model endpoint %s answered after %d failover(s)", host, position - 1)
            return reply

        logger.error("All %d model endpoints failed", len(self._endpoints))
        raise AIUnavailable(last_error)
