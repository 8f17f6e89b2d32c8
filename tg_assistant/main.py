"""CLI entry point for the Telegram assistant.

Two modes:
  * a terminal chat loop that talks to the orchestrator directly, for
    trying prompts and tools without Telegram;
  * ``--poll``: Telegram long-polling through the same reply pipeline as
    the webhook, for running without a public URL.

Usage:
    python -m tg_assistant.main            # terminal chat
    python -m tg_assistant.main --poll     # Telegram long-polling
    python -m tg_assistant.main --debug    # show HTTP calls
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from tg_assistant.orchestrator import Orchestrator
from tg_assistant.pipeline import APOLOGY_TEXT, TaskSupervisor, UpdatePoller, create_reply_pipeline
from tg_assistant.services.http_client import close_http_client
from tg_assistant.services.model_gateway import ModelGateway
from tg_assistant.services.telegram import TelegramClient
from tg_assistant.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("tg_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


async def chat_loop() -> None:
    """Interactive terminal chat against the orchestrator."""
    orchestrator = Orchestrator(ModelGateway(), ToolRegistry())

    print("\n" + "=" * 60)
    print("  Telegram Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter. 'quit' to exit.")
    print("=" * 60 + "\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, "You: ")).strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nBye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("exit", "quit", "q"):
            print("\nBye!")
            break

        try:
            reply = await orchestrator.answer(user_input)
        except Exception:
            logger.exception("Error processing message")
            reply = APOLOGY_TEXT
        print(f"\nBot: {reply}\n")


async def poll() -> None:
    """Serve Telegram via getUpdates until interrupted."""
    telegram = TelegramClient()
    supervisor = TaskSupervisor()
    poller = UpdatePoller(telegram, create_reply_pipeline(telegram), supervisor)
    logger.info("Long-polling Telegram for updates…")
    try:
        await poller.run_forever()
    finally:
        await supervisor.drain()


def main():
    parser = argparse.ArgumentParser(description="Telegram assistant CLI")
    parser.add_argument("--poll", action="store_true", help="Serve Telegram via long-polling")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    async def _run() -> None:
        try:
            await (poll() if args.poll else chat_loop())
        finally:
            await close_http_client()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
