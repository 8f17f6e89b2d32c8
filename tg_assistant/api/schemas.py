"""Pydantic schemas for the HTTP endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "tg-assistant"
    open_gate: bool = False
