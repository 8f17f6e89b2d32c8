"""Two-round tool-calling conversation, built as a LangGraph StateGraph.

Graph:
    first_model_call → (no tool calls?) → END
    first_model_call → (tool calls?)    → tool_dispatch → second_model_call → END

  1. **first_model_call**  — the model sees the system prompt, the user's
                             message and the full tool catalog.
  2. **tool_dispatch**     — every requested call is executed; each one
                             yields a ``tool`` turn, even when it fails.
  3. **second_model_call** — the whole conversation is resent *without*
                             tools, so the model must answer in text.

Only one round of tool use is serviced (``MAX_TOOL_ROUNDS``).  If the model
asks for tools again in the second call the request is logged and dropped.

There is no checkpointer: each run starts from an empty conversation and
nothing survives it.  Any exception aborts the run and propagates to the
caller, which substitutes a fixed apology.
"""

from __future__ import annotations

import logging
import operator
from typing import Annotated

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from tg_assistant.models import ChatTurn, ModelReply, ToolCallRequest
from tg_assistant.prompts import get_system_prompt
from tg_assistant.services.model_gateway import ModelGateway
from tg_assistant.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

EMPTY_REPLY = "（AI 暫時無回覆 🙏）"
MAX_TOOL_ROUNDS = 1


class ConversationState(TypedDict):
    """State flowing through the graph.

    ``turns`` uses ``operator.add`` so every node appends to the
    conversation instead of replacing it.
    """

    turns: Annotated[list[ChatTurn], operator.add]
    pending: list[ToolCallRequest]
    reply: str


def reply_text(reply: ModelReply) -> str:
    return (reply.content or "").strip() or EMPTY_REPLY


# ── Nodes ────────────────────────────────────────────────────────────


def _make_first_call_node(gateway: ModelGateway, registry: ToolRegistry):
    definitions = registry.definitions()

    async def first_model_call(state: ConversationState) -> dict:
        reply = await gateway.send(state["turns"], tools=definitions)
        if not reply.wants_tools:
            return {"reply": reply_text(reply)}
        logger.info("Model requested %d tool call(s): %s", len(reply.tool_calls), [c.name for c in reply.tool_calls])
        return {"turns": [reply.as_turn()], "pending": reply.tool_calls}

    return first_model_call


def _make_tool_node(registry: ToolRegistry):
    async def tool_dispatch(state: ConversationState) -> dict:
        results = []
        for call in state["pending"]:
            result = await registry.dispatch(call)
            logger.debug("Tool result (%s): %s", call.name, result.text)
            results.append(ChatTurn.from_tool_result(result))
        return {"turns": results, "pending": []}

    return tool_dispatch


def _make_second_call_node(gateway: ModelGateway):
    async def second_model_call(state: ConversationState) -> dict:
        reply = await gateway.send(state["turns"], tools=None)
        if reply.wants_tools:
            logger.warning(
                "Model asked for %d more tool call(s) after %d round(s); ignoring",
                len(reply.tool_calls), MAX_TOOL_ROUNDS,
            )
        return {"reply": reply_text(reply)}

    return second_model_call


# ── Conditional edge ─────────────────────────────────────────────────


def should_dispatch_tools(state: ConversationState) -> str:
    if state.get("pending"):
        return "tool_dispatch"
    return END


# ── Graph assembly ───────────────────────────────────────────────────


def create_conversation_graph(gateway: ModelGateway, registry: ToolRegistry):
    """Build and compile the two-round conversation graph."""
    graph = StateGraph(ConversationState)

    graph.add_node("first_model_call", _make_first_call_node(gateway, registry))
    graph.add_node("tool_dispatch", _make_tool_node(registry))
    graph.add_node("second_model_call", _make_second_call_node(gateway))

    graph.set_entry_point("first_model_call")
    graph.add_conditional_edges(
        "first_model_call",
        should_dispatch_tools,
        {"tool_dispatch": "tool_dispatch", END: END},
    )
    graph.add_edge("tool_dispatch", "second_model_call")
    graph.add_edge("second_model_call", END)

    return graph.compile()


class Orchestrator:
    """Answers one user message with at most one round of tool calls."""

    def __init__(self, gateway: ModelGateway, registry: ToolRegistry):
        self._graph = create_conversation_graph(gateway, registry)

    async def answer(self, text: str) -> str:
        state = await self._graph.ainvoke(
            {
                "turns": [
                    ChatTurn(role="system", content=get_system_prompt()),
                    ChatTurn(role="user", content=text),
                ],
                "pending": [],
                "reply": "",
            }
        )
        return state["reply"]
