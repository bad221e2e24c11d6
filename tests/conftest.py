# ============================================================
# TEST HELPERS: fake aiohttp session + series builders
# ============================================================

from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional


class FakeResponse:
    """
    Minimal stand-in for aiohttp's response context manager.
    - exc: raised on enter (timeouts, connection errors)
    """

    def __init__(self, status: int = 200, text: str = "", payload: Any = None, exc: Optional[BaseException] = None):
        self.status = status
        self._text = text
        self._payload = payload
        self._exc = exc

    async def __aenter__(self):
        if self._exc is not None:
            raise self._exc
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def text(self) -> str:
        return self._text

    async def json(self, content_type=None) -> Any:
        if isinstance(self._payload, BaseException):
            raise self._payload
        return self._payload


class FakeSession:
    """Routes every GET through `handler(url, params)` and records the calls."""

    def __init__(self, handler: Callable[[str, Dict[str, str]], FakeResponse]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, timeout=None):
        params = dict(params or {})
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        return self.handler(url, params)


def stooq_csv(closes: List[float], start: date = date(2024, 1, 1)) -> str:
    """Oldest-first Stooq CSV, one row per close on consecutive days."""
    lines = ["Date,Open,High,Low,Close,Volume"]
    for i, c in enumerate(closes):
        d = start + timedelta(days=i)
        lines.append(f"{d.isoformat()},{c},{c},{c},{c},1000")
    return "\n".join(lines) + "\n"


def td_values(closes: List[float], start: date = date(2024, 1, 1), latest_first: bool = True) -> List[Dict[str, str]]:
    """Twelve Data style values list; closes are given oldest first."""
    rows = [
        {"datetime": (start + timedelta(days=i)).isoformat(), "close": str(c)}
        for i, c in enumerate(closes)
    ]
    return list(reversed(rows)) if latest_first else rows
