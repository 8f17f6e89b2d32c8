"""Builders for chat-completions bodies used across the tests."""

from __future__ import annotations


def completion(content: str | None = None, tool_calls: list[dict] | None = None) -> dict:
    """Build a chat-completions response body."""
    message: dict = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {"choices": [{"index": 0, "message": message}]}


def tool_call(call_id: str, name: str, arguments: str) -> dict:
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}
