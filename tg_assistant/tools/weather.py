"""Weather tool backed by Open-Meteo (geocoding + forecast, no API key).

Returns a short text summary for the model.  Every failure path returns
text as well, so the model can explain the gap to the user.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from langchain_core.tools import tool
from pydantic import BaseModel, ConfigDict, Field

from tg_assistant.errors import TransportError
from tg_assistant.services.http_client import get_http_client

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

TODAY_WORDS = {"today", "今日", "今天"}
TOMORROW_WORDS = {"tomorrow", "聽日", "明天", "明日"}
WEEKEND_WORDS = {"weekend", "週末", "周末"}

# WMO weather interpretation codes
WEATHER_CODES: dict[int, str] = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "depositing rime fog",
    51: "light drizzle",
    53: "moderate drizzle",
    55: "dense drizzle",
    56: "light freezing drizzle",
    57: "dense freezing drizzle",
    61: "slight rain",
    63: "moderate rain",
    65: "heavy rain",
    66: "light freezing rain",
    67: "heavy freezing rain",
    71: "slight snowfall",
    73: "moderate snowfall",
    75: "heavy snowfall",
    77: "snow grains",
    80: "slight rain showers",
    81: "moderate rain showers",
    82: "violent rain showers",
    85: "slight snow showers",
    86: "heavy snow showers",
    95: "thunderstorm",
    96: "thunderstorm with slight hail",
    99: "thunderstorm with heavy hail",
}
UNCLEAR = "unclear conditions"


class WeatherArgs(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    location: str = Field(default="", description="Place name, e.g. 'Hong Kong', '沙田', 'London'.")
    when: str = Field(
        default="",
        description="Optional day: 'today', 'tomorrow' or 'weekend' (or 今日 / 聽日 / 週末).",
    )


def describe_code(code: Any) -> str:
    """Map a WMO code to text; unknown or non-numeric codes are 'unclear'."""
    try:
        return WEATHER_CODES.get(int(code), UNCLEAR)
    except (TypeError, ValueError):
        return UNCLEAR


def _mentions(text: str, words: set[str]) -> bool:
    return any(word in text for word in words)


def forecast_index(when: str, days: list[str]) -> int | None:
    """Pick the daily forecast entry matching *when*, or ``None``.

    *days* is the ISO date list of the daily series, starting today.
    """
    text = when.strip().lower()
    if _mentions(text, TODAY_WORDS):
        return 0
    if _mentions(text, TOMORROW_WORDS):
        return 1 if len(days) > 1 else None
    if _mentions(text, WEEKEND_WORDS):
        for i, day in enumerate(days):
            try:
                weekday = date.fromisoformat(day).weekday()
            except ValueError:
                continue
            if weekday >= 5:
                return i
    return None


def _format_current(place: str, current: dict[str, Any]) -> str:
    parts = [f"Current weather in {place}: {describe_code(current.get('weather_code'))}"]
    if current.get("temperature_2m") is not None:
        parts.append(f"{current['temperature_2m']}°C")
    if current.get("apparent_temperature") is not None:
        parts.append(f"feels like {current['apparent_temperature']}°C")
    if current.get("relative_humidity_2m") is not None:
        parts.append(f"humidity {current['relative_humidity_2m']}%")
    if current.get("wind_speed_10m") is not None:
        parts.append(f"wind {current['wind_speed_10m']} km/h")
    return ", ".join(parts) + "."


def _format_day(daily: dict[str, Any], index: int) -> str:
    def pick(key: str) -> Any:
        values = daily.get(key) or []
        return values[index] if index < len(values) else None

    line = f"Forecast for {pick('time')}: {describe_code(pick('weather_code'))}"
    low, high = pick("temperature_2m_min"), pick("temperature_2m_max")
    if low is not None and high is not None:
        line += f", {low}–{high}°C"
    rain = pick("precipitation_probability_max")
    if rain is not None:
        line += f", chance of rain {rain}%"
    return line + "."


@tool(args_schema=WeatherArgs)
async def get_weather(location: str = "", when: str = "") -> str:
    """Get current weather for a place, plus a one-day forecast when asked about today, tomorrow or the weekend."""
    location = location.strip()
    if not location:
        return "No location was given. Ask the user which city or district they mean."

    client = get_http_client()
    try:
        geo = await client.get(
            GEOCODE_URL, params={"name": location, "count": 1, "language": "zh", "format": "json"},
        )
        if geo.status_code >= 400:
            logger.warning("Geocoding %r failed: HTTP %d", location, geo.status_code)
            return "The weather service is not responding right now. Tell the user to try again later."
        body = geo.json()
        if not isinstance(body, dict):
            raise ValueError("geocoding body is not an object")
        results = body.get("results") or []
        if not results:
            return f'Location "{location}" was not found. Ask the user to clarify the place name.'

        place = results[0]
        name = ", ".join(p for p in (place.get("name"), place.get("country")) if p)
        forecast = await client.get(
            FORECAST_URL,
            params={
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "current": "temperature_2m,apparent_temperature,relative_humidity_2m,weather_code,wind_speed_10m",
                "daily": "weather_code,temperature_2m_max,temperature_2m_min,precipitation_probability_max",
                "timezone": "auto",
                "forecast_days": 7,
            },
        )
        if forecast.status_code >= 400:
            logger.warning("Forecast for %s failed: HTTP %d", name, forecast.status_code)
            return f"Found {name} but could not fetch its weather right now. Tell the user to try again later."
        data = forecast.json()
        if not isinstance(data, dict):
            raise ValueError("forecast body is not an object")
    except (TransportError, ValueError, KeyError) as exc:
        logger.warning("Weather lookup for %r failed: %s", location, exc)
        return "The weather service could not be reached. Tell the user live weather is unavailable right now."

    lines = [_format_current(name, data.get("current") or {})]
    daily = data.get("daily") or {}
    index = forecast_index(when, daily.get("time") or []) if when else None
    if index is not None:
        lines.append(_format_day(daily, index))
    return "\n".join(lines)
