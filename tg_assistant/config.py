"""Centralized configuration for the Telegram assistant.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/tg-assistant/<VARIABLE_NAME>``.

Secrets are resolved lazily by the operation that needs them, so a missing
Telegram token only breaks sending, not the whole process.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from tg_assistant.errors import ConfigMissing

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 cannot reach
    AWS.  Errors are logged but never raised so that local-dev fallback
    still works.
    """
    try:
        import boto3  # noqa: PLC0415 — lazy import, only needed on AWS

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/tg-assistant/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def get_secret(name: str) -> str | None:
    """Return a secret from env-var or SSM, or ``None`` when absent."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def require_secret(name: str) -> str:
    """Return a secret or raise :class:`ConfigMissing`."""
    value = get_secret(name)
    if not value:
        raise ConfigMissing(name)
    return value


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


# ── Model gateway ────────────────────────────────────────────────────
AI_ENDPOINTS: list[str] = _split_list(
    os.getenv("AI_ENDPOINTS", "https://sfo1.aihub.zeabur.ai/v1/chat/completions")
)
MODEL_NAME: str = os.getenv("MODEL_NAME", "gpt-4.1-mini")
AI_TIMEOUT_SECONDS: float = _get_float("AI_TIMEOUT_SECONDS", 25.0)

# ── Outbound HTTP ────────────────────────────────────────────────────
HTTP_TIMEOUT_SECONDS: float = _get_float("HTTP_TIMEOUT_SECONDS", 10.0)
TELEGRAM_TIMEOUT_SECONDS: float = _get_float("TELEGRAM_TIMEOUT_SECONDS", 15.0)
TELEGRAM_API_BASE: str = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")

# ── Access & admission ───────────────────────────────────────────────
ALLOWED_USER_IDS: list[str] = _split_list(os.getenv("ALLOWED_USER_IDS", ""))
MAX_CONCURRENT_CHATS: int = int(os.getenv("MAX_CONCURRENT_CHATS", "2"))
WEBHOOK_SECRET: str | None = os.getenv("WEBHOOK_SECRET") or None

# ── Transit (TfL) ────────────────────────────────────────────────────
TFL_APP_ID: str | None = os.getenv("TFL_APP_ID") or None
TFL_APP_KEY: str | None = os.getenv("TFL_APP_KEY") or None

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("PORT", "8080"))
