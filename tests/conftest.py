"""Shared test fixtures for the assistant test suite."""

from __future__ import annotations

import os

import httpx
import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py picks up stable values.
    """
    os.environ.setdefault("AI_API_KEY", "test-ai-key-123")
    os.environ.setdefault("TELEGRAM_BOT_TOKEN", "test-telegram-token-456")
    os.environ.setdefault("AI_ENDPOINTS", "https://primary.test/v1/chat/completions")
    os.environ.setdefault("METRICS_ENABLED", "false")


@pytest.fixture
def make_http():
    """Factory fixture: a BoundedHTTPClient whose requests go to *handler*."""
    from tg_assistant.services.http_client import BoundedHTTPClient

    def _make(handler, timeout: float = 5.0) -> BoundedHTTPClient:
        return BoundedHTTPClient(timeout=timeout, transport=httpx.MockTransport(handler))

    return _make

