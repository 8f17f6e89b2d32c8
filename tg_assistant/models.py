"""Request-scoped data types.

Everything here is built fresh for one inbound message and thrown away
once the reply is sent.  Nothing is shared between concurrent requests.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageKind = Literal["message", "edited_message", "channel_post", "edited_channel_post"]
Role = Literal["system", "user", "assistant", "tool"]


class IncomingMessage(BaseModel):
    """A text message extracted from a Telegram update."""

    model_config = ConfigDict(frozen=True)

    sender_id: str = ""
    chat_id: str
    text: str
    kind: MessageKind = "message"


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode ``arguments``; malformed or non-object JSON becomes ``{}``."""
        if not self.arguments:
            return {}
        try:
            value = json.loads(self.arguments)
        except (TypeError, ValueError):
            return {}
        return value if isinstance(value, dict) else {}

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class ToolResult(BaseModel):
    tool_call_id: str
    text: str


class ChatTurn(BaseModel):
    """One role-tagged entry of a conversation."""

    role: Role
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)

    @classmethod
    def from_tool_result(cls, result: ToolResult) -> ChatTurn:
        return cls(role="tool", content=result.text, tool_call_id=result.tool_call_id)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the OpenAI-compatible chat message shape."""
        wire: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            wire["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            wire["tool_call_id"] = self.tool_call_id
        return wire


class ToolDefinition(BaseModel):
    """Name, description and JSON schema of a callable tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any]

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ModelReply(BaseModel):
    """The assistant message of a chat-completions response."""

    content: str | None = None
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def as_turn(self) -> ChatTurn:
        return ChatTurn(role="assistant", content=self.content, tool_calls=self.tool_calls)
