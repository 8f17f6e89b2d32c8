"""FastAPI route definitions: health checks and the Telegram webhook."""

from __future__ import annotations

import hmac
import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from tg_assistant import config
from tg_assistant.api.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def _secret_matches(request: Request) -> bool:
    if not config.WEBHOOK_SECRET:
        return True
    supplied = request.headers.get(SECRET_HEADER, "")
    return hmac.compare_digest(supplied, config.WEBHOOK_SECRET)


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Plain-text liveness probe."""
    return "OK"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    gate = getattr(request.app.state, "gate", None)
    return HealthResponse(open_gate=bool(gate and gate.is_open))


@router.post("/webhook", response_class=PlainTextResponse)
async def webhook(request: Request) -> str:
    """Acknowledge the update at once and process it in a detached task.

    The response is always 200 so Telegram never redelivers an update
    because of something that went wrong downstream.
    """
    request_id = getattr(request.state, "request_id", "?")
    try:
        payload = json.loads(await request.body() or b"null")
    except ValueError:
        logger.warning("[%s] Webhook body is not JSON; acknowledging anyway", request_id)
        return "OK"

    if not _secret_matches(request):
        logger.warning("[%s] Webhook secret mismatch; update ignored", request_id)
        return "OK"

    pipeline = getattr(request.app.state, "pipeline", None)
    supervisor = getattr(request.app.state, "supervisor", None)
    if pipeline is None or supervisor is None:
        logger.error("[%s] Update received before the pipeline was ready; dropped", request_id)
        return "OK"

    update_id = payload.get("update_id") if isinstance(payload, dict) else None
    supervisor.spawn(pipeline.handle_update(payload), name=f"update-{update_id or request_id}")
    return "OK"
