"""
Batch job wiring: pick a data source, scan the ticker universe, store the result.
Also the read-side helpers that turn a stored scan into a per-window view.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import aiohttp

from sma_scanner.clients.stooq_client import fetch_stooq_series
from sma_scanner.clients.twelvedata_client import fetch_daily_series_bulk
from sma_scanner.config import Settings
from sma_scanner.core.aggregate import scan_symbols
from sma_scanner.core.errors import ConfigError, UnsupportedWindowError
from sma_scanner.core.models import ScanResult, SymbolSeries, WindowScan
from sma_scanner.core.universe import load_tickers
from sma_scanner.db.dbadapter import ScanStore

logger = logging.getLogger(__name__)


async def _scan_stooq(settings: Settings, symbols: Sequence[str], session: aiohttp.ClientSession) -> ScanResult:
    async def fetch_one(symbol: str) -> Optional[SymbolSeries]:
        return await fetch_stooq_series(
            session, symbol, timeout=settings.fetch_timeout, lookback=settings.lookback
        )

    return await scan_symbols(
        symbols,
        fetch_one,
        settings.windows,
        min_history=settings.min_history,
        concurrency=settings.concurrency,
        as_of_policy=settings.as_of_policy,
    )


async def _scan_twelvedata(settings: Settings, symbols: Sequence[str], session: aiohttp.ClientSession) -> ScanResult:
    if not settings.twelvedata_api_key:
        raise ConfigError("TWELVEDATA_API_KEY is required for the twelvedata data source")

    series_by_symbol = await fetch_daily_series_bulk(
        session,
        settings.twelvedata_api_key,
        symbols,
        outputsize=settings.bulk_outputsize,
        end_date=settings.end_date,
        chunk_size=settings.batch_size,
        timeout=settings.fetch_timeout,
        concurrency=settings.bulk_concurrency,
    )

    # everything is already in memory, so resolution order is universe order
    async def lookup(symbol: str) -> Optional[SymbolSeries]:
        return series_by_symbol.get(symbol)

    return await scan_symbols(
        symbols,
        lookup,
        settings.windows,
        min_history=settings.bulk_min_history,
        concurrency=settings.concurrency,
        as_of_policy=settings.as_of_policy,
    )


async def run_scan(
    settings: Settings,
    symbols: Sequence[str],
    session: Optional[aiohttp.ClientSession] = None,
) -> ScanResult:
    """Scan `symbols` with the configured data source. Never fails on data problems."""
    scan = _scan_twelvedata if settings.data_source == "twelvedata" else _scan_stooq
    logger.info("scanning %d symbols via %s", len(symbols), settings.data_source)

    if session is not None:
        return await scan(settings, symbols, session)
    async with aiohttp.ClientSession() as owned:
        return await scan(settings, symbols, owned)


async def build_and_store(
    settings: Settings,
    store: ScanStore,
    symbols: Optional[List[str]] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> ScanResult:
    if symbols is None:
        symbols = load_tickers(settings.resolve_path(settings.tickers_path))
    result = await run_scan(settings, symbols, session=session)
    await store.save_scan(result)
    return result


def parse_window(value, supported: Iterable[int]) -> int:
    """Raw request value -> supported window, else UnsupportedWindowError."""
    supported = list(supported)
    if value is None or isinstance(value, bool):
        raise UnsupportedWindowError(value, supported)
    try:
        number = float(str(value).strip())
    except ValueError:
        raise UnsupportedWindowError(value, supported) from None
    # "20.0" is accepted, "20.5" is not
    if not number.is_integer():
        raise UnsupportedWindowError(value, supported)
    window = int(number)
    if window not in supported:
        raise UnsupportedWindowError(window, supported)
    return window


def window_view(result: ScanResult, window: int, supported: Iterable[int]) -> WindowScan:
    window = parse_window(window, supported)
    below = result.results_by_window.get(str(window), [])
    return WindowScan(window=window, as_of=result.as_of, count=len(below), below=below)
