from typing import Dict, Iterable, Sequence

from sma_scanner.core.models import BelowSmaRecord
from sma_scanner.core.sma import compute_sma


def rank_symbol(
    symbol: str,
    closes_latest_first: Sequence[float],
    windows: Iterable[int],
    min_history: int = 0,
) -> Dict[int, BelowSmaRecord]:
    """
    Check one symbol against every window.

    Returns window -> BelowSmaRecord for each window where the latest close is
    below the SMA. A symbol with fewer than `min_history` closes yields nothing.
    """
    if not closes_latest_first or len(closes_latest_first) < min_history:
        return {}

    close = closes_latest_first[0]
    below: Dict[int, BelowSmaRecord] = {}

    for w in windows:
        sma = compute_sma(closes_latest_first, w)
        # zero SMA would divide by zero
        if sma is None or sma == 0:
            continue
        if close < sma:
            below[w] = BelowSmaRecord(
                symbol=symbol,
                close=close,
                sma=sma,
                pct_below=(close - sma) / sma,
            )

    return below
