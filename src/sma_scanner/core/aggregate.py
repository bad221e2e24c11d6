"""
Scan aggregation: fetch + rank every symbol in the ticker universe and fold
the per-symbol results into one ScanResult.

Each pool task returns its own records; they are merged in universe order
once the pool completes, so nothing is shared between tasks except the
as-of capture and the diagnostics counters.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from sma_scanner.core.models import (
    BelowSmaRecord,
    ScanDiagnostics,
    ScanResult,
    SymbolSeries,
)
from sma_scanner.core.pool import run_pool
from sma_scanner.core.ranker import rank_symbol

logger = logging.getLogger(__name__)

AS_OF_POLICIES = ("first", "latest")

SeriesFetcher = Callable[[str], Awaitable[Optional[SymbolSeries]]]


def finalize_scan(
    windows: Sequence[int],
    per_symbol: Sequence[Dict[int, BelowSmaRecord]],
    as_of: str,
    diagnostics: Optional[ScanDiagnostics] = None,
) -> ScanResult:
    """Merge per-symbol records into per-window lists sorted most-below first."""
    results_by_window: Dict[str, List[BelowSmaRecord]] = {str(w): [] for w in windows}

    for records in per_symbol:
        for w, record in records.items():
            results_by_window[str(w)].append(record)

    for key in results_by_window:
        # list.sort is stable: ties keep accumulation order
        results_by_window[key].sort(key=lambda r: r.pct_below)

    return ScanResult(
        as_of=as_of,
        count_by_window={key: len(items) for key, items in results_by_window.items()},
        results_by_window=results_by_window,
        diagnostics=diagnostics,
    )


async def scan_symbols(
    symbols: Sequence[str],
    fetch: SeriesFetcher,
    windows: Sequence[int],
    min_history: int = 0,
    concurrency: int = 6,
    as_of_policy: str = "first",
) -> ScanResult:
    """
    Run `fetch` and the ranker for every symbol with bounded concurrency.

    Always returns a ScanResult: a symbol whose fetch raises, returns nothing,
    or has too little history is dropped and counted in `diagnostics`.
    """
    if as_of_policy not in AS_OF_POLICIES:
        raise ValueError(f"as_of_policy must be one of {AS_OF_POLICIES}, got {as_of_policy!r}")

    diagnostics = ScanDiagnostics(requested=len(symbols))
    resolved_dates: List[str] = []

    async def scan_one(symbol: str) -> Dict[int, BelowSmaRecord]:
        try:
            series = await fetch(symbol)
        except Exception as e:
            logger.debug("fetch failed for %s: %r", symbol, e)
            diagnostics.record_failure(type(e).__name__)
            return {}

        if series is None or not series.closes_latest_first:
            diagnostics.record_failure("no_data")
            return {}

        history = max(series.history, len(series.closes_latest_first))
        if history < min_history:
            diagnostics.insufficient_history += 1
            return {}

        diagnostics.resolved += 1
        # completion order: the first entry is the first symbol to resolve
        resolved_dates.append(series.as_of)
        return rank_symbol(symbol, series.closes_latest_first, windows)

    per_symbol = await run_pool(symbols, concurrency, scan_one)

    as_of = ""
    if resolved_dates:
        as_of = resolved_dates[0] if as_of_policy == "first" else max(resolved_dates)

    result = finalize_scan(windows, per_symbol, as_of, diagnostics)
    logger.info(
        "scan complete as_of=%s requested=%d resolved=%d unavailable=%d insufficient_history=%d counts=%s",
        result.as_of,
        diagnostics.requested,
        diagnostics.resolved,
        diagnostics.unavailable,
        diagnostics.insufficient_history,
        result.count_by_window,
    )
    if diagnostics.failures:
        logger.warning("dropped symbols by reason: %s", diagnostics.failures)
    return result
