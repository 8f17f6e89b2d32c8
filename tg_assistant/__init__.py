"""Telegram personal assistant with live-data tool calling.

Architecture Overview
=====================

A Telegram update arrives on ``POST /webhook`` (or via long-polling), is
acknowledged immediately, and is processed in a detached task:

    parse → /whoami → allow-list → /start → admission → orchestrator → reply

The orchestrator is a LangGraph StateGraph running at most one round of
tool calls:

    first_model_call → (tool calls?) → tool_dispatch → second_model_call → END
                     → (no tool calls?) → END

Key Design Decisions
--------------------
- **Model**: any OpenAI-compatible chat-completions endpoint.  Several can
  be configured; they are tried in order and the first success wins.
- **Tools**: LangChain ``@tool`` coroutines with pydantic argument schemas.
  Tools never raise: missing data is reported to the model as text.
- **Resilience**: every outbound call has a hard deadline; every failure
  ends as a fixed Cantonese message instead of silence.
- **Load**: at most ``MAX_CONCURRENT_CHATS`` conversations run at once;
  extra ones are told to try later instead of being queued.
- **State**: nothing persists between messages.

Package Structure
-----------------
- ``tg_assistant/orchestrator.py`` — LangGraph conversation graph
- ``tg_assistant/pipeline.py`` — update parsing, commands, reply delivery
- ``tg_assistant/config.py`` — configuration from environment variables
- ``tg_assistant/prompts.py`` — system prompt
- ``tg_assistant/server.py`` — FastAPI application
- ``tg_assistant/main.py`` — CLI chat and long-polling
- ``tg_assistant/services/`` — HTTP, model gateway, Telegram, admission, access, metrics
- ``tg_assistant/tools/`` — weather, stock and transit tools plus the registry
- ``tg_assistant/api/`` — FastAPI routes and schemas
"""
