"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from tg_assistant.services.metrics import MetricsClient


def _make_client(*, enabled: bool = True) -> MetricsClient:
    with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}), \
            patch.object(MetricsClient, "_start_flush_thread"):
        return MetricsClient()


def _names(client: MetricsClient) -> set[str]:
    return {m["MetricName"] for m in client._buffer}


class TestMetricsRecording:
    def test_record_success_appends_count_and_latency(self):
        client = _make_client()
        client.record_success("model", "primary.test", latency_ms=812.0)
        assert _names(client) == {"Outbound/RequestCount", "Outbound/Latency"}

    def test_record_failure_without_latency(self):
        client = _make_client()
        client.record_failure("telegram", "sendMessage", error_type="TelegramSendError")
        assert len(client._buffer) == 2
        error_metric = next(m for m in client._buffer if m["MetricName"] == "Outbound/ErrorCount")
        dims = {d["Name"]: d["Value"] for d in error_metric["Dimensions"]}
        assert dims == {"Service": "telegram", "ErrorType": "TelegramSendError"}

    def test_track_records_success(self):
        client = _make_client()
        with client.track("tool", "get_weather"):
            pass
        count = next(m for m in client._buffer if m["MetricName"] == "Outbound/RequestCount")
        assert {d["Name"]: d["Value"] for d in count["Dimensions"]}["Status"] == "success"

    def test_track_records_failure_and_reraises(self):
        client = _make_client()
        with pytest.raises(ValueError):
            with client.track("tool", "get_weather"):
                raise ValueError("bad")
        assert "Outbound/ErrorCount" in _names(client)


class TestMetricsFlush:
    def test_disabled_client_buffers_nothing(self):
        client = _make_client(enabled=False)
        for _ in range(50):
            with client.track("tool", "get_weather"):
                pass
        client.record_failure("model", "primary.test", error_type="RequestTimeout", latency_ms=5.0)
        assert client._buffer == []
        assert client.flush() == 0

    def test_flush_when_enabled_calls_put_metric_data(self):
        client = _make_client(enabled=True)
        client._cw_client = MagicMock()
        client.record_success("model", "primary.test", latency_ms=100.0)

        assert client.flush() == 2
        kwargs = client._cw_client.put_metric_data.call_args.kwargs
        assert kwargs["Namespace"] == "TgAssistant"
        assert len(kwargs["MetricData"]) == 2

    def test_flush_empty_buffer_returns_zero(self):
        assert _make_client(enabled=True).flush() == 0
