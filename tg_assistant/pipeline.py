"""From a raw Telegram update to a delivered reply.

    update → parse_update → /whoami (before the gate) → AccessGate
           → /start (after the gate) → AdmissionController → Orchestrator
           → TelegramClient.send_message

Every failure after parsing degrades to a fixed Cantonese message; blocked
senders and unsupported updates get no reply at all.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from tg_assistant import config
from tg_assistant.errors import AIUnavailable, Busy
from tg_assistant.models import IncomingMessage
from tg_assistant.orchestrator import Orchestrator
from tg_assistant.services.access import AccessGate
from tg_assistant.services.admission import AdmissionController
from tg_assistant.services.model_gateway import ModelGateway
from tg_assistant.services.telegram import TelegramClient
from tg_assistant.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MESSAGE_FIELDS = ("message", "edited_message", "channel_post", "edited_channel_post")

IDENTITY_COMMANDS = {"/whoami", "/id"}
READY_COMMAND = "/start"

READY_TEXT = "我已經 ready ✅ 你可以直接問我問題。"
BUSY_TEXT = "而家太多人用緊，請稍後再試 🙏"
APOLOGY_TEXT = "（系統繁忙或 AI 暫時唔得，遲啲再試 🙇）"


def parse_update(payload: Any) -> IncomingMessage | None:
    """Extract the first message-like field; ``None`` when there is no text or chat."""
    if not isinstance(payload, dict):
        return None
    for kind in MESSAGE_FIELDS:
        body = payload.get(kind)
        if isinstance(body, dict):
            break
    else:
        return None

    chat_id = (body.get("chat") or {}).get("id")
    text = body.get("text")
    if chat_id is None or chat_id == "" or not isinstance(text, str) or not text.strip():
        return None
    sender_id = (body.get("from") or {}).get("id")
    return IncomingMessage(
        sender_id="" if sender_id is None else str(sender_id),
        chat_id=str(chat_id),
        text=text.strip(),
        kind=kind,
    )


def command_of(text: str) -> str | None:
    """Return the lower-cased ``/command`` at the start of *text*, without any ``@botname``."""
    if not text.startswith("/"):
        return None
    head = text.split(maxsplit=1)[0]
    return head.split("@", 1)[0].lower()


def identity_text(message: IncomingMessage) -> str:
    return f"你嘅 user ID 係：{message.sender_id or '（無）'}\nchat ID：{message.chat_id}"


class ReplyPipeline:
    def __init__(
        self,
        orchestrator: Orchestrator,
        telegram: TelegramClient,
        gate: AccessGate,
        admission: AdmissionController,
    ):
        self._orchestrator = orchestrator
        self._telegram = telegram
        self._gate = gate
        self._admission = admission

    @property
    def gate(self) -> AccessGate:
        return self._gate

    async def _send(self, chat_id: str, text: str) -> bool:
        try:
            await self._telegram.send_message(chat_id, text)
        except Exception:
            logger.exception("Failed to send reply to chat %s", chat_id)
            return False
        return True

    async def _answer(self, message: IncomingMessage) -> str:
        try:
            slot = self._admission.acquire()
        except Busy:
            return BUSY_TEXT
        with slot:
            try:
                return await self._orchestrator.answer(message.text)
            except AIUnavailable as exc:
                logger.error("No model endpoint available for chat %s: %s", message.chat_id, exc.last_error)
                return APOLOGY_TEXT
            except Exception:
                logger.exception("Conversation failed for chat %s", message.chat_id)
                return APOLOGY_TEXT

    async def handle_message(self, message: IncomingMessage) -> None:
        command = command_of(message.text)
        if command in IDENTITY_COMMANDS:
            await self._send(message.chat_id, identity_text(message))
            return

        if not self._gate.is_allowed(message.sender_id):
            logger.info("Ignoring %s from non-allowed sender %s", message.kind, message.sender_id or "?")
            return

        if command == READY_COMMAND:
            await self._send(message.chat_id, READY_TEXT)
            return

        reply = await self._answer(message)
        await self._send(message.chat_id, reply)

    async def handle_update(self, payload: Any) -> None:
        """Process one raw update.  Never raises."""
        try:
            message = parse_update(payload)
            if message is None:
                logger.debug("Ignoring update without chat id or text")
                return
            await self.handle_message(message)
        except Exception:
            logger.exception("Webhook handler error")


class TaskSupervisor:
    """Owns the detached per-update tasks and logs anything that escapes them."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Task %s failed: %r", task.get_name(), exc, exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight tasks at shutdown, cancelling stragglers."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()


class UpdatePoller:
    """Long-polling alternative to the webhook.

    ``offset`` is owned here and only advanced past updates already handed
    to the pipeline.
    """

    def __init__(self, telegram: TelegramClient, pipeline: ReplyPipeline, supervisor: TaskSupervisor):
        self._telegram = telegram
        self._pipeline = pipeline
        self._supervisor = supervisor
        self.offset: int | None = None

    async def poll_once(self, poll_timeout: int = 30) -> int:
        """Fetch one batch and spawn a task per update.  Returns the batch size."""
        updates = await self._telegram.get_updates(self.offset, poll_timeout=poll_timeout)
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self.offset = max(self.offset or 0, update_id + 1)
            self._supervisor.spawn(self._pipeline.handle_update(update), name=f"update-{update_id}")
        return len(updates)

    async def run_forever(self, poll_timeout: int = 30, error_backoff: float = 5.0) -> None:
        while True:
            try:
                await self.poll_once(poll_timeout)
            except Exception:
                logger.exception("getUpdates failed; retrying in %.0fs", error_backoff)
                await asyncio.sleep(error_backoff)


def create_reply_pipeline(telegram: TelegramClient | None = None) -> ReplyPipeline:
    """Wire the pipeline from configuration."""
    orchestrator = Orchestrator(ModelGateway(), ToolRegistry())
    return ReplyPipeline(
        orchestrator,
        telegram or TelegramClient(),
        AccessGate(config.ALLOWED_USER_IDS),
        AdmissionController(config.MAX_CONCURRENT_CHATS),
    )
