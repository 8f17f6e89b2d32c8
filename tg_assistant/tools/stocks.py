"""Stock quote tool backed by the Stooq CSV quote feed."""

from __future__ import annotations

import csv
import io
import logging
import re

from langchain_core.tools import tool
from pydantic import BaseModel, ConfigDict, Field

from tg_assistant.errors import TransportError
from tg_assistant.services.http_client import get_http_client

logger = logging.getLogger(__name__)

QUOTE_URL = "https://stooq.com/q/l/"
NOT_AVAILABLE = "N/D"

_NUMERIC_TICKER = re.compile(r"^\d{1,5}$")


class StockArgs(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    symbol: str = Field(
        default="",
        description="Ticker such as '0700' or '700' (Hong Kong), 'AAPL' (US), or an exchange-qualified 'AAPL.US'.",
    )


def normalize_symbol(symbol: str) -> str:
    """Turn a bare ticker into the feed's exchange-qualified, lower-case form.

    >>> normalize_symbol("700")
    '0700.hk'
    >>> normalize_symbol("AAPL")
    'aapl.us'
    """
    ticker = symbol.strip().lower()
    if _NUMERIC_TICKER.match(ticker):
        return f"{ticker.zfill(4)}.hk"
    if "." in ticker:
        return ticker
    return f"{ticker}.us"


@tool(args_schema=StockArgs)
async def get_stock_quote(symbol: str = "") -> str:
    """Get the latest quote (open, high, low, close, volume) for a stock ticker."""
    if not symbol.strip():
        return "No ticker was given. Ask the user which stock they mean, e.g. 0700 or AAPL."

    code = normalize_symbol(symbol)
    try:
        response = await get_http_client().get(
            QUOTE_URL, params={"s": code, "f": "sd2t2ohlcv", "h": "", "e": "csv"},
        )
    except TransportError as exc:
        logger.warning("Quote lookup for %s failed: %s", code, exc)
        return "The quote service could not be reached. Tell the user live prices are unavailable right now."

    if response.status_code >= 400:
        logger.warning("Quote lookup for %s failed: HTTP %d", code, response.status_code)
        return "The quote service is not responding right now. Tell the user to try again later."

    rows = list(csv.DictReader(io.StringIO(response.text)))
    row = rows[0] if rows else None
    if not row or row.get("Close", NOT_AVAILABLE) in (NOT_AVAILABLE, "", None):
        return (
            f'No quote found for "{symbol.strip()}" ({code.upper()}). '
            "Ask the user to confirm the ticker and market (e.g. 0700 for Tencent, AAPL for Apple)."
        )

    return (
        f"{row.get('Symbol', code).upper()} on {row.get('Date')} {row.get('Time')}: "
        f"close {row['Close']}, open {row.get('Open')}, high {row.get('High')}, "
        f"low {row.get('Low')}, volume {row.get('Volume')}."
    )
