"""FastAPI server receiving Telegram webhook updates.

Run with:
    uvicorn tg_assistant.server:app --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response

from tg_assistant import config
from tg_assistant.api.routes import router
from tg_assistant.pipeline import TaskSupervisor, create_reply_pipeline
from tg_assistant.services.http_client import close_http_client

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def _log_unhandled(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Last-resort handler: log and keep serving."""
    exc = context.get("exception")
    logger.error("Unhandled error in event loop: %s", context.get("message"), exc_info=exc)


def _log_env_status() -> None:
    logger.info(
        "ENV OK? %s",
        {
            "TELEGRAM_BOT_TOKEN": bool(config.get_secret("TELEGRAM_BOT_TOKEN")),
            "AI_API_KEY": bool(config.get_secret("AI_API_KEY")),
            "AI_ENDPOINTS": len(config.AI_ENDPOINTS),
            "ALLOWED_USER_IDS": len(config.ALLOWED_USER_IDS),
            "TFL_KEYS": bool(config.TFL_APP_ID and config.TFL_APP_KEY),
        },
    )


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Wire the reply pipeline once and store it in app state."""
    asyncio.get_running_loop().set_exception_handler(_log_unhandled)
    _log_env_status()

    pipeline = create_reply_pipeline()
    application.state.pipeline = pipeline
    application.state.gate = pipeline.gate
    application.state.supervisor = TaskSupervisor()
    logger.info("Pipeline ready.")
    yield
    await application.state.supervisor.drain()
    await close_http_client()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Telegram Assistant",
    description="Personal assistant for Telegram with live weather, stock and transit tools.",
    version="1.0.0",
    lifespan=lifespan,
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router)


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting webhook server on %s:%d", config.SERVER_HOST, config.SERVER_PORT)
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)
