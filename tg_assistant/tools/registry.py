"""Tool catalog and dispatcher.

The catalog is the single source of truth: the declarations offered to the
model and the set of executable tools are both derived from ``TOOLS``, so
they cannot drift apart.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import ValidationError

from tg_assistant.models import ToolCallRequest, ToolDefinition, ToolResult
from tg_assistant.services.metrics import metrics
from tg_assistant.tools.stocks import get_stock_quote
from tg_assistant.tools.transport import get_transport_status
from tg_assistant.tools.weather import get_weather

logger = logging.getLogger(__name__)

TOOLS: list[BaseTool] = [get_weather, get_stock_quote, get_transport_status]

TOOL_FAILED_TEXT = "The {name} tool failed unexpectedly. Tell the user this information is unavailable right now."


def to_definition(tool: BaseTool) -> ToolDefinition:
    """Build the wire declaration for *tool* from its own schema."""
    function = convert_to_openai_tool(tool)["function"]
    return ToolDefinition(
        name=function["name"],
        description=function.get("description", ""),
        parameters=function.get("parameters", {"type": "object", "properties": {}}),
    )


class ToolRegistry:
    """Executable tools keyed by name, plus their declarations."""

    def __init__(self, tools: Sequence[BaseTool] = TOOLS):
        self._tools: dict[str, BaseTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Tool already registered: {tool.name}")
            self._tools[tool.name] = tool
        self._definitions = [to_definition(tool) for tool in self._tools.values()]

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return list(self._definitions)

    def _validate(self, tool: BaseTool, arguments: dict[str, Any]) -> dict[str, Any]:
        """Coerce *arguments* through the tool's schema; invalid payloads fall back to defaults."""
        schema = tool.args_schema
        if schema is None or not isinstance(schema, type):
            return dict(arguments)
        try:
            return schema.model_validate(arguments).model_dump()
        except ValidationError as exc:
            logger.warning(
                "Invalid arguments for %s (%d errors), using defaults: %r",
                tool.name, exc.error_count(), arguments,
            )
            return schema().model_dump()

    async def run(self, name: str, arguments: dict[str, Any]) -> str:
        """Execute tool *name*; always returns text, never raises."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool %r", name)
            return f"unknown tool: {name or '?'}"

        payload = self._validate(tool, arguments)
        logger.info("Running tool %s with %s", name, payload)
        try:
            with metrics.track("tool", name):
                output = await tool.ainvoke(payload)
        except Exception:
            logger.exception("Tool failed (%s)", name)
            return TOOL_FAILED_TEXT.format(name=name)
        return output if isinstance(output, str) else str(output)

    async def dispatch(self, call: ToolCallRequest) -> ToolResult:
        """Run one model-requested call, parsing its JSON arguments leniently."""
        text = await self.run(call.name, call.parsed_arguments())
        return ToolResult(tool_call_id=call.id, text=text)
