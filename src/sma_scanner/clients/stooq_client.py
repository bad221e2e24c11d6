"""
Stooq daily history client (free, per-symbol, plain CSV).

Rows look like `Date,Open,High,Low,Close,Volume` and arrive oldest first.
"""

import logging
import math
from typing import List, Optional

import aiohttp

from sma_scanner.core.errors import FetchError
from sma_scanner.core.models import PriceBar, SymbolSeries
from sma_scanner.core.sma import ensure_latest_first

logger = logging.getLogger(__name__)

STOOQ_URL = "https://stooq.com/q/d/l/"


def to_stooq_symbol(symbol: str) -> str:
    """BRK.B -> brk-b.us"""
    return symbol.replace(".", "-").lower() + ".us"


def parse_stooq_csv(text: str) -> List[PriceBar]:
    """(date, close) pairs; skips the header and any short or non-numeric row."""
    lines = text.strip().splitlines()
    rows: List[PriceBar] = []
    for line in lines[1:]:
        parts = line.split(",")
        if len(parts) < 5:
            continue
        date = parts[0].strip()
        try:
            close = float(parts[4])
        except ValueError:
            continue
        if not date or not math.isfinite(close):
            continue
        rows.append(PriceBar(datetime=date, close=close))
    return rows


async def fetch_stooq_daily_csv(session: aiohttp.ClientSession, symbol: str, timeout: float = 20.0) -> str:
    stooq_symbol = to_stooq_symbol(symbol)
    params = {"s": stooq_symbol, "i": "d"}
    async with session.get(STOOQ_URL, params=params, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
        if response.status != 200:
            raise FetchError(symbol, f"Stooq HTTP {response.status}")
        return await response.text()


async def fetch_stooq_series(
    session: aiohttp.ClientSession,
    symbol: str,
    timeout: float = 20.0,
    lookback: Optional[int] = None,
) -> Optional[SymbolSeries]:
    """
    Fetch and normalize one symbol. `history` keeps the full row count so a
    minimum-history gate still sees it after closes are cut to `lookback`.
    Returns None when the CSV has no usable rows.
    """
    text = await fetch_stooq_daily_csv(session, symbol, timeout)
    bars = parse_stooq_csv(text)
    if not bars:
        logger.debug("Stooq returned no rows for %s", symbol)
        return None

    ordered = ensure_latest_first(bars)
    if lookback is not None:
        ordered = ordered[:lookback]

    return SymbolSeries(
        symbol=symbol,
        as_of=ordered[0].datetime[:10],
        closes_latest_first=[bar.close for bar in ordered],
        history=len(bars),
    )
