"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from tg_assistant import config
from tg_assistant.server import app
from tg_assistant.services.access import AccessGate


@pytest.fixture
def supervisor():
    """Record spawned coroutines instead of scheduling them."""
    spawned = []

    def _spawn(coro, name=None):
        spawned.append(coro)
        coro.close()

    mock = MagicMock()
    mock.spawn.side_effect = _spawn
    mock.spawned = spawned
    return mock


@pytest.fixture
def pipeline():
    mock = MagicMock()
    mock.handle_update = MagicMock(side_effect=lambda payload: _noop(payload))
    return mock


async def _noop(payload):
    return None


@pytest.fixture
def client(pipeline, supervisor):
    """Test client with the pipeline wired into app state (mirrors the lifespan)."""
    app.state.pipeline = pipeline
    app.state.supervisor = supervisor
    app.state.gate = AccessGate(["1"])
    yield TestClient(app)
    app.state.pipeline = None
    app.state.supervisor = None
    app.state.gate = None


class TestHealth:
    def test_root_is_plain_ok(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_health_json(self, client):
        data = client.get("/health").json()
        assert data == {"status": "ok", "service": "tg-assistant", "open_gate": False}


class TestWebhook:
    def test_acknowledges_and_spawns_processing(self, client, pipeline, supervisor):
        update = {"update_id": 9, "message": {"chat": {"id": 1}, "from": {"id": 1}, "text": "hi"}}
        response = client.post("/webhook", json=update)
        assert response.status_code == 200
        assert response.text == "OK"
        pipeline.handle_update.assert_called_once_with(update)
        assert len(supervisor.spawned) == 1

    def test_update_without_text_is_still_acknowledged(self, client, pipeline):
        response = client.post("/webhook", json={"update_id": 3, "message": {"chat": {"id": 1}}})
        assert response.status_code == 200
        pipeline.handle_update.assert_called_once()

    def test_malformed_json_is_acknowledged_and_dropped(self, client, pipeline):
        response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 200
        pipeline.handle_update.assert_not_called()

    def test_secret_mismatch_is_acknowledged_and_dropped(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(config, "WEBHOOK_SECRET", "s3cret")
        response = client.post("/webhook", json={"message": {}}, headers={"X-Telegram-Bot-Api-Secret-Token": "nope"})
        assert response.status_code == 200
        pipeline.handle_update.assert_not_called()

    def test_matching_secret_is_processed(self, client, pipeline, monkeypatch):
        monkeypatch.setattr(config, "WEBHOOK_SECRET", "s3cret")
        client.post("/webhook", json={"message": {}}, headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"})
        pipeline.handle_update.assert_called_once()

    def test_not_ready_is_still_acknowledged(self, supervisor):
        app.state.pipeline = None
        app.state.supervisor = supervisor
        response = TestClient(app).post("/webhook", json={"message": {}})
        assert response.status_code == 200
        supervisor.spawn.assert_not_called()

    def test_response_includes_request_id_header(self, client):
        response = client.post("/webhook", json={}, headers={"X-Request-ID": "trace-1"})
        assert response.headers["X-Request-ID"] == "trace-1"
