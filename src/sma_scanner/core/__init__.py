from sma_scanner.core.models import (
    SMA_WINDOWS,
    BelowSmaRecord,
    PriceBar,
    ScanDiagnostics,
    ScanResult,
    SymbolSeries,
    WindowScan,
)
from sma_scanner.core.sma import compute_sma, ensure_latest_first
from sma_scanner.core.pool import run_pool
from sma_scanner.core.ranker import rank_symbol
from sma_scanner.core.aggregate import finalize_scan, scan_symbols

__all__ = [
    "SMA_WINDOWS",
    "BelowSmaRecord",
    "PriceBar",
    "ScanDiagnostics",
    "ScanResult",
    "SymbolSeries",
    "WindowScan",
    "compute_sma",
    "ensure_latest_first",
    "run_pool",
    "rank_symbol",
    "finalize_scan",
    "scan_symbols",
]
