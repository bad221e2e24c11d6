"""
Data models for the SMA scanner.
Pydantic models and typed structures, plus the small helpers that fill them.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


SMA_WINDOWS = (20, 50, 120, 200)


class PriceBar(BaseModel):
    """One daily observation. `datetime` is either "YYYY-MM-DD" or "YYYY-MM-DD HH:MM:SS"."""
    datetime: str = Field(..., description="Bar timestamp as reported by the provider")
    close: float = Field(..., description="Closing price")


class SymbolSeries(BaseModel):
    """Normalized close history for one symbol, index 0 = latest trading day."""
    symbol: str = Field(..., description="Ticker symbol")
    as_of: str = Field(..., description="Market date (YYYY-MM-DD) of the latest close")
    closes_latest_first: List[float] = Field(default_factory=list, description="Closes, most recent first")
    history: int = Field(0, description="Number of observations the provider returned")


class BelowSmaRecord(BaseModel):
    """A symbol whose latest close sits below its SMA for one window.

    pct_below = (close - sma) / sma, so it is negative for every record.
    """
    model_config = ConfigDict(populate_by_name=True)

    symbol: str = Field(..., description="Ticker symbol")
    close: float = Field(..., description="Latest close")
    sma: float = Field(..., description="SMA(window) as of the latest close")
    pct_below: float = Field(..., alias="pctBelow", description="Fractional distance from the SMA")


class ScanDiagnostics(BaseModel):
    """Side channel describing what a scan dropped and why."""
    requested: int = 0
    resolved: int = 0
    unavailable: int = 0
    insufficient_history: int = 0
    failures: Dict[str, int] = Field(default_factory=dict, description="Failure reason -> count")

    def record_failure(self, reason: str) -> None:
        self.unavailable += 1
        self.failures[reason] = self.failures.get(reason, 0) + 1


class ScanResult(BaseModel):
    """Output of one batch run. Window labels are strings ("20", "50", ...)."""
    model_config = ConfigDict(populate_by_name=True)

    as_of: str = Field("", alias="asOf", description="Market date of the scan snapshot")
    count_by_window: Dict[str, int] = Field(default_factory=dict, alias="countByWindow")
    results_by_window: Dict[str, List[BelowSmaRecord]] = Field(default_factory=dict, alias="resultsByWindow")
    diagnostics: Optional[ScanDiagnostics] = Field(None, description="Failure counts for this run")


class WindowScan(BaseModel):
    """Per-request view of a stored scan for a single window."""
    model_config = ConfigDict(populate_by_name=True)

    window: int = Field(..., description="SMA window")
    as_of: str = Field(..., alias="asOf", description="Market date of the scan snapshot")
    count: int = Field(..., description="Number of symbols below the SMA")
    below: List[BelowSmaRecord] = Field(default_factory=list, description="Records, most-below first")
