"""Exception types raised by the scanner.

Per-symbol and per-batch data problems are absorbed inside the scan and never
reach the caller; only the caller-facing errors below propagate.
"""

from typing import Iterable


class ScannerError(Exception):
    """Base class for scanner errors."""


class ConfigError(ScannerError):
    pass


class UnsupportedWindowError(ScannerError):
    def __init__(self, window, supported: Iterable[int]):
        self.window = window
        self.supported = list(supported)
        super().__init__(
            f"Invalid window. Use one of: {', '.join(str(w) for w in self.supported)}"
        )


class ScanNotReadyError(ScannerError):
    def __init__(self, message: str = "No scan has been built yet. Run the build job first."):
        super().__init__(message)


class FetchError(ScannerError):
    """Upstream refused or failed a request for one symbol."""

    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{reason} for {symbol}")


class ResponseDecodeError(ScannerError):
    """Bulk payload did not match any known response shape."""
