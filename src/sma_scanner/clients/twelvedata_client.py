import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import aiohttp

from sma_scanner.core.errors import ResponseDecodeError
from sma_scanner.core.models import SymbolSeries
from sma_scanner.core.pool import run_pool
from sma_scanner.core.sma import ensure_latest_first

logger = logging.getLogger(__name__)

TWELVEDATA_BASE = "https://api.twelvedata.com"


# ---------------------------
# Response shapes
# ---------------------------
@dataclass
class ErrorShape:
    """{status: "error", code, message} for the whole request."""
    message: str = ""
    code: Any = None


@dataclass
class SingleSymbolShape:
    """{meta: {symbol}, values: [...], status} - a batch of one symbol."""
    symbol: str
    entry: Dict[str, Any]


@dataclass
class FlatMapShape:
    """{AAPL: {...}, MSFT: {...}}"""
    entries: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WrappedMapShape:
    """{data: {AAPL: {...}, MSFT: {...}}, status: "ok"}"""
    entries: Dict[str, Any] = field(default_factory=dict)
    status: Optional[str] = None


TimeSeriesResponse = Union[ErrorShape, SingleSymbolShape, FlatMapShape, WrappedMapShape]


def decode_response(payload: Any, group: Sequence[str]) -> TimeSeriesResponse:
    """
    Classify a /time_series payload. `group` is the symbol list the request
    carried; it names a single-symbol response that lacks meta.symbol.
    """
    if not isinstance(payload, dict):
        raise ResponseDecodeError(f"expected a JSON object, got {type(payload).__name__}")

    if payload.get("status") == "error":
        return ErrorShape(message=str(payload.get("message", "")), code=payload.get("code"))

    wrapped = isinstance(payload.get("data"), dict)
    root = payload["data"] if wrapped else payload

    if isinstance(root.get("values"), list):
        meta = root.get("meta") if isinstance(root.get("meta"), dict) else {}
        symbol = meta.get("symbol") or (group[0] if group else "")
        if not symbol:
            raise ResponseDecodeError("single-symbol response without a symbol")
        return SingleSymbolShape(symbol=symbol, entry=root)

    if wrapped:
        return WrappedMapShape(entries=root, status=payload.get("status"))
    return FlatMapShape(entries=root)


# ---------------------------
# Parsing helpers
# ---------------------------
def parse_close(val) -> Optional[float]:
    """Numeric or numeric-like string -> finite float, else None."""
    if val is None or isinstance(val, bool):
        return None
    try:
        num = float(str(val).replace(",", "").strip()) if isinstance(val, str) else float(val)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def extract_series(symbol: str, entry: Any) -> Optional[SymbolSeries]:
    """
    Build a SymbolSeries from one per-symbol entry, or None when the entry is
    an error, has no values, or has no parseable close.
    """
    if not isinstance(entry, dict):
        return None
    if entry.get("status") == "error":
        return None

    values = entry.get("values")
    if not isinstance(values, list) or not values:
        return None

    ordered = ensure_latest_first([v for v in values if isinstance(v, dict)])
    closes: List[float] = []
    for v in ordered:
        close = parse_close(v.get("close"))
        if close is not None:
            closes.append(close)

    if not closes:
        return None

    # "2025-02-21 12:51:00" or "2025-02-21"
    as_of = str(ordered[0].get("datetime") or "")[:10]
    return SymbolSeries(symbol=symbol, as_of=as_of, closes_latest_first=closes, history=len(closes))


def series_from_response(response: TimeSeriesResponse, group: Sequence[str]) -> Dict[str, SymbolSeries]:
    if isinstance(response, ErrorShape):
        return {}

    if isinstance(response, SingleSymbolShape):
        series = extract_series(response.symbol, response.entry)
        return {series.symbol: series} if series else {}

    out: Dict[str, SymbolSeries] = {}
    for sym in group:
        series = extract_series(sym, response.entries.get(sym))
        if series:
            out[sym] = series
    return out


def chunk(items: Sequence[str], size: int) -> List[List[str]]:
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


# ---------------------------
# Twelve Data call
# ---------------------------
async def fetch_time_series_batch(
    session: aiohttp.ClientSession,
    api_key: str,
    group: Sequence[str],
    outputsize: int,
    end_date: Optional[str] = None,
    timeout: float = 20.0,
) -> Dict[str, SymbolSeries]:
    """
    One /time_series request for every symbol in `group`.

    Returns whatever symbols came back usable; a failed, timed-out, or
    error-status batch returns an empty mapping.
    """
    url = f"{TWELVEDATA_BASE}/time_series"
    params = {
        "symbol": ",".join(group),
        "interval": "1day",
        "outputsize": str(outputsize),
        "apikey": api_key,
        "format": "JSON",
    }
    if end_date:
        params["end_date"] = end_date

    try:
        async with session.get(url, params=params, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
            payload = await response.json(content_type=None)
    except asyncio.TimeoutError:
        logger.warning("Twelve Data batch %s..%s timed out after %ss", group[0], group[-1], timeout)
        return {}
    except (aiohttp.ClientError, ValueError) as e:
        logger.warning("Twelve Data batch %s..%s failed: %s", group[0], group[-1], e)
        return {}

    try:
        decoded = decode_response(payload, group)
    except ResponseDecodeError as e:
        logger.warning("Twelve Data batch %s..%s: %s", group[0], group[-1], e)
        return {}

    if isinstance(decoded, ErrorShape):
        logger.warning(
            "Twelve Data batch %s..%s returned error code=%s: %s",
            group[0], group[-1], decoded.code, decoded.message,
        )
        return {}

    found = series_from_response(decoded, group)
    logger.debug("Twelve Data batch %s..%s: %d/%d usable", group[0], group[-1], len(found), len(group))
    return found


async def fetch_daily_series_bulk(
    session: aiohttp.ClientSession,
    api_key: str,
    symbols: Sequence[str],
    outputsize: int,
    end_date: Optional[str] = None,
    chunk_size: int = 50,
    timeout: float = 20.0,
    concurrency: int = 1,
) -> Dict[str, SymbolSeries]:
    """
    Fetch daily closes for many symbols, `chunk_size` symbols per request.
    Batches are independent: one failing leaves the others' symbols intact.
    """
    if not api_key:
        raise ValueError("Twelve Data API key required")

    groups = chunk(symbols, chunk_size)

    async def fetch_group(group: List[str]) -> Dict[str, SymbolSeries]:
        return await fetch_time_series_batch(session, api_key, group, outputsize, end_date, timeout)

    per_group = await run_pool(groups, concurrency, fetch_group)

    result: Dict[str, SymbolSeries] = {}
    for found in per_group:
        result.update(found)
    return result
