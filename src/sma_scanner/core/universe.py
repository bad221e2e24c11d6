"""
Ticker universe bootstrap.

Turns a pasted S&P 500 constituents table (tab-separated, ticker in the third
column) into a deduplicated JSON list, and loads that list for a scan.
"""

import json
import logging
import re
from pathlib import Path
from typing import Iterable, List, Union

from sma_scanner.core.errors import ConfigError

logger = logging.getLogger(__name__)

# allows class shares such as BRK.B, BF.B
_TICKER_RE = re.compile(r"^[A-Z][A-Z0-9.]{0,9}$")


def is_ticker(s: str) -> bool:
    return bool(_TICKER_RE.match(s))


def dedupe(symbols: Iterable[str]) -> List[str]:
    """Drop repeats, keep first-seen order."""
    seen = set()
    out = []
    for s in symbols:
        if s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def parse_constituents_text(text: str) -> List[str]:
    symbols: List[str] = []

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        tab_parts = [p.strip() for p in line.split("\t") if p.strip()]
        if len(tab_parts) >= 3 and is_ticker(tab_parts[2]):
            symbols.append(tab_parts[2])
            continue

        # fallback for space-separated pastes
        for token in line.split():
            if is_ticker(token):
                symbols.append(token)
                break

    return dedupe(symbols)


def load_tickers(path: Union[str, Path]) -> List[str]:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Ticker list not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Ticker list is not valid JSON: {path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigError(f"Ticker list must be a JSON array: {path}")

    symbols = dedupe(str(s).strip().upper() for s in raw if s and str(s).strip())
    logger.info("loaded %d tickers from %s", len(symbols), path)
    return symbols


def write_tickers(symbols: List[str], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(symbols, indent=2) + "\n", encoding="utf8")
    return path
