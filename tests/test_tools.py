"""Tests for the weather, stock and transit tools."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from tg_assistant.tools import stocks, transport, weather
from tg_assistant.tools.stocks import get_stock_quote, normalize_symbol
from tg_assistant.tools.transport import get_transport_status, one_line
from tg_assistant.tools.weather import describe_code, forecast_index, get_weather

# ── Weather ──────────────────────────────────────────────────────────

GEOCODE_HIT = {
    "results": [{"name": "Sha Tin", "country": "Hong Kong", "latitude": 22.38, "longitude": 114.19}],
}
FORECAST = {
    "current": {
        "temperature_2m": 27.4,
        "apparent_temperature": 30.1,
        "relative_humidity_2m": 78,
        "weather_code": 2,
        "wind_speed_10m": 12.0,
    },
    "daily": {
        "time": ["2026-10-16", "2026-10-17", "2026-10-18"],
        "weather_code": [3, 63, 0],
        "temperature_2m_max": [29.0, 26.5, 28.0],
        "temperature_2m_min": [24.0, 23.1, 22.9],
        "precipitation_probability_max": [10, 80, 0],
    },
}


def _weather_handler(geocode: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "geocoding-api.open-meteo.com":
            return httpx.Response(200, json=geocode)
        return httpx.Response(200, json=FORECAST)

    return handler


class TestWeatherHelpers:
    def test_known_code(self):
        assert describe_code(95) == "thunderstorm"

    def test_unknown_and_non_numeric_codes_are_unclear(self):
        assert describe_code(42) == "unclear conditions"
        assert describe_code("abc") == "unclear conditions"
        assert describe_code(None) == "unclear conditions"

    def test_forecast_index_keywords(self):
        days = ["2026-10-16", "2026-10-17", "2026-10-18"]
        assert forecast_index("today", days) == 0
        assert forecast_index("聽日", days) == 1
        assert forecast_index("Tomorrow", days) == 1
        assert forecast_index("next month", days) is None

    def test_forecast_index_weekend_picks_first_saturday(self):
        # 2026-10-16 is a Friday
        days = ["2026-10-16", "2026-10-17", "2026-10-18"]
        assert forecast_index("weekend", days) == 1
        assert forecast_index("週末", days) == 1

    def test_forecast_index_matches_phrases(self):
        days = ["2026-10-16", "2026-10-17", "2026-10-18"]
        assert forecast_index("this weekend", days) == 1
        assert forecast_index("tomorrow morning", days) == 1
        assert forecast_index("聽日下午", days) == 1
        assert forecast_index("today evening", days) == 0


class TestGetWeather:
    @pytest.mark.asyncio
    async def test_empty_location_makes_no_network_call(self, monkeypatch):
        factory = MagicMock()
        monkeypatch.setattr(weather, "get_http_client", factory)
        result = await get_weather.ainvoke({"location": ""})
        assert "which city" in result
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_location_not_found(self, monkeypatch, make_http):
        monkeypatch.setattr(weather, "get_http_client", lambda: make_http(_weather_handler({"results": []})))
        result = await get_weather.ainvoke({"location": "Atlantis"})
        assert "not found" in result
        assert "Atlantis" in result

    @pytest.mark.asyncio
    async def test_current_conditions_without_day(self, monkeypatch, make_http):
        monkeypatch.setattr(weather, "get_http_client", lambda: make_http(_weather_handler(GEOCODE_HIT)))
        result = await get_weather.ainvoke({"location": "沙田"})
        assert "Sha Tin" in result
        assert "partly cloudy" in result
        assert "27.4°C" in result
        assert "Forecast" not in result

    @pytest.mark.asyncio
    async def test_tomorrow_appends_second_daily_entry(self, monkeypatch, make_http):
        monkeypatch.setattr(weather, "get_http_client", lambda: make_http(_weather_handler(GEOCODE_HIT)))
        result = await get_weather.ainvoke({"location": "Sha Tin", "when": "tomorrow"})
        assert "Forecast for 2026-10-17: moderate rain" in result
        assert "80%" in result

    @pytest.mark.asyncio
    async def test_service_down_returns_text(self, monkeypatch, make_http):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        monkeypatch.setattr(weather, "get_http_client", lambda: make_http(handler))
        result = await get_weather.ainvoke({"location": "Hong Kong"})
        assert "could not be reached" in result

    @pytest.mark.asyncio
    async def test_non_object_geocode_body_returns_weather_text(self, monkeypatch, make_http):
        monkeypatch.setattr(
            weather, "get_http_client", lambda: make_http(lambda r: httpx.Response(200, json=["Sha Tin"])),
        )
        result = await get_weather.ainvoke({"location": "Sha Tin"})
        assert "could not be reached" in result


# ── Stocks ───────────────────────────────────────────────────────────

CSV_HEADER = "Symbol,Date,Time,Open,High,Low,Close,Volume\n"


class TestNormalizeSymbol:
    def test_numeric_ticker_is_padded_and_hk_suffixed(self):
        assert normalize_symbol("700") == "0700.hk"
        assert normalize_symbol("5") == "0005.hk"

    def test_padded_and_qualified_forms_agree(self):
        assert normalize_symbol("0700") == normalize_symbol("0700.HK")

    def test_dotted_symbol_used_verbatim(self):
        assert normalize_symbol("AAPL.US") == "aapl.us"

    def test_bare_letters_default_to_us(self):
        assert normalize_symbol(" tsla ") == "tsla.us"

    def test_six_digits_is_not_treated_as_hk(self):
        assert normalize_symbol("600519") == "600519.us"


class TestGetStockQuote:
    @pytest.mark.asyncio
    async def test_quote_is_formatted(self, monkeypatch, make_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["s"] = request.url.params["s"]
            return httpx.Response(
                200, text=CSV_HEADER + "0700.HK,2026-10-16,16:08:00,500,510,498,505.5,12000000\n",
            )

        monkeypatch.setattr(stocks, "get_http_client", lambda: make_http(handler))
        result = await get_stock_quote.ainvoke({"symbol": "700"})
        assert seen["s"] == "0700.hk"
        assert "close 505.5" in result
        assert "0700.HK" in result

    @pytest.mark.asyncio
    async def test_not_available_sentinel_asks_for_clarification(self, monkeypatch, make_http):
        body = CSV_HEADER + "ZZZZ.US,N/D,N/D,N/D,N/D,N/D,N/D,N/D\n"
        monkeypatch.setattr(stocks, "get_http_client", lambda: make_http(lambda r: httpx.Response(200, text=body)))
        result = await get_stock_quote.ainvoke({"symbol": "zzzz"})
        assert "No quote found" in result
        assert "confirm the ticker" in result

    @pytest.mark.asyncio
    async def test_missing_row_asks_for_clarification(self, monkeypatch, make_http):
        monkeypatch.setattr(stocks, "get_http_client", lambda: make_http(lambda r: httpx.Response(200, text="")))
        result = await get_stock_quote.ainvoke({"symbol": "AAPL"})
        assert "No quote found" in result

    @pytest.mark.asyncio
    async def test_empty_symbol_makes_no_network_call(self, monkeypatch):
        factory = MagicMock()
        monkeypatch.setattr(stocks, "get_http_client", factory)
        result = await get_stock_quote.ainvoke({"symbol": "  "})
        assert "which stock" in result
        factory.assert_not_called()


# ── Transport ────────────────────────────────────────────────────────

TFL_LINES = [
    {"id": "central", "name": "Central", "lineStatuses": [{"statusSeverityDescription": "Good Service"}]},
    {
        "id": "district",
        "name": "District",
        "lineStatuses": [
            {
                "statusSeverityDescription": "Minor Delays",
                "reason": "DISTRICT LINE: Minor delays between Earl's Court and\nWimbledon due to an earlier "
                "signal failure at Parsons Green. GOOD SERVICE on the rest of the line.",
            }
        ],
    },
]


class TestOneLine:
    def test_short_text_is_unchanged(self):
        assert one_line("a  b\nc") == "a b c"

    def test_long_text_is_truncated_with_ellipsis(self):
        text = one_line("x" * 200)
        assert len(text) == 90
        assert text.endswith("…")


class TestGetTransportStatus:
    @pytest.mark.asyncio
    async def test_other_city_gets_guidance_without_network(self, monkeypatch):
        factory = MagicMock()
        monkeypatch.setattr(transport, "get_http_client", factory)
        result = await get_transport_status.ainvoke({"city": "Hong Kong"})
        assert "No live transit data source is available for Hong Kong" in result
        assert "origin" in result
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_london_returns_line_statuses(self, monkeypatch, make_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=TFL_LINES)

        monkeypatch.setattr(transport, "get_http_client", lambda: make_http(handler))
        monkeypatch.setattr(transport, "TFL_APP_ID", None)
        result = await get_transport_status.ainvoke({"query": "Is the tube OK in London today?"})
        assert seen["path"] == "/Line/Mode/tube/Status"
        assert "app_key" not in seen["params"]
        assert "Central: Good Service" in result
        assert "District: Minor Delays" in result
        reason_line = next(line for line in result.splitlines() if "District" in line)
        assert "\n" not in reason_line
        assert "…" in reason_line

    @pytest.mark.asyncio
    async def test_app_keys_sent_when_configured(self, monkeypatch, make_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json=TFL_LINES)

        monkeypatch.setattr(transport, "get_http_client", lambda: make_http(handler))
        monkeypatch.setattr(transport, "TFL_APP_ID", "id-1")
        monkeypatch.setattr(transport, "TFL_APP_KEY", "key-1")
        await get_transport_status.ainvoke({"city": "倫敦", "mode": "dlr"})
        assert seen == {"app_id": "id-1", "app_key": "key-1"}

    @pytest.mark.asyncio
    async def test_tfl_failure_returns_text(self, monkeypatch, make_http):
        monkeypatch.setattr(transport, "get_http_client", lambda: make_http(lambda r: httpx.Response(500)))
        result = await get_transport_status.ainvoke({"city": "London"})
        assert "not responding" in result
