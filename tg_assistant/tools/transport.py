"""Transit status tool.

Live line status exists only for London (TfL unified API).  For every other
city the tool returns a guidance template asking for trip details, which is
a normal result rather than an error.
"""

from __future__ import annotations

import logging

from langchain_core.tools import tool
from pydantic import BaseModel, ConfigDict, Field

from tg_assistant.config import TFL_APP_ID, TFL_APP_KEY
from tg_assistant.errors import TransportError
from tg_assistant.services.http_client import get_http_client

logger = logging.getLogger(__name__)

TFL_STATUS_URL = "https://api.tfl.gov.uk/Line/Mode/{mode}/Status"
LONDON_NAMES = ("london", "倫敦", "伦敦", "tfl")
TFL_MODES = {"tube", "dlr", "overground", "elizabeth-line", "tram"}
DEFAULT_MODE = "tube"
MAX_LINES = 8
REASON_MAX_CHARS = 90

GUIDANCE_TEMPLATE = (
    "No live transit data source is available for {city}. "
    "Ask the user for their trip details so you can give general advice: "
    "origin, destination, departure time, and preferred mode (MTR, bus, ferry, tram, taxi)."
)


class TransportArgs(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    city: str = Field(default="", description="City name, e.g. 'London' or 'Hong Kong'.")
    mode: str = Field(default="", description="Transit mode, e.g. 'tube', 'dlr', 'overground'.")
    query: str = Field(default="", description="The user's free-text transit question.")


def is_london(*texts: str) -> bool:
    haystack = " ".join(texts).lower()
    return any(name in haystack for name in LONDON_NAMES)


def one_line(text: str, limit: int = REASON_MAX_CHARS) -> str:
    """Collapse whitespace and truncate to *limit* characters with an ellipsis."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: limit - 1].rstrip() + "…"


def _format_line(line: dict) -> str:
    statuses = line.get("lineStatuses") or [{}]
    status = statuses[0]
    text = f"{line.get('name', line.get('id', '?'))}: {status.get('statusSeverityDescription', 'Unknown')}"
    reason = status.get("reason")
    if reason:
        text += f" ({one_line(reason)})"
    return text


@tool(args_schema=TransportArgs)
async def get_transport_status(city: str = "", mode: str = "", query: str = "") -> str:
    """Get live line status for public transport. Live data covers London only; other cities get trip-planning guidance."""
    if not is_london(city, query):
        return GUIDANCE_TEMPLATE.format(city=city.strip() or "this city")

    mode = mode.strip().lower() or DEFAULT_MODE
    if mode not in TFL_MODES:
        mode = DEFAULT_MODE

    params: dict[str, str] = {}
    if TFL_APP_ID and TFL_APP_KEY:
        params = {"app_id": TFL_APP_ID, "app_key": TFL_APP_KEY}

    try:
        response = await get_http_client().get(TFL_STATUS_URL.format(mode=mode), params=params)
    except TransportError as exc:
        logger.warning("TfL status lookup failed: %s", exc)
        return "The London transit status service could not be reached. Tell the user live status is unavailable."

    if response.status_code >= 400:
        logger.warning("TfL status lookup failed: HTTP %d", response.status_code)
        return "The London transit status service is not responding right now. Tell the user to try again later."

    try:
        lines = response.json()
    except ValueError:
        logger.warning("TfL returned a non-JSON body")
        return "The London transit status service returned unreadable data. Tell the user to try again later."

    if not isinstance(lines, list) or not lines:
        return f"No {mode} lines were reported by TfL right now."

    body = "\n".join(f"- {_format_line(line)}" for line in lines[:MAX_LINES])
    return f"London {mode} status:\n{body}"
