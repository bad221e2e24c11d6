from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, TypeVar

T = TypeVar("T")


def compute_sma(closes_latest_first: Sequence[float], window: int) -> Optional[float]:
    """Mean of the first `window` closes, or None if the window can't be filled."""
    if window <= 0:
        return None
    if len(closes_latest_first) < window:
        return None

    total = 0.0
    for i in range(window):
        total += closes_latest_first[i]
    return total / window


def _timestamp(item: Any, key: str) -> Optional[datetime]:
    raw = item.get(key) if isinstance(item, Mapping) else getattr(item, key, None)
    if not raw:
        return None
    try:
        # date-only strings parse to midnight
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


def ensure_latest_first(values: Sequence[T], key: str = "datetime") -> Sequence[T]:
    """
    Return `values` ordered most-recent-first.

    Providers usually send newest first but not always, so the order is decided
    by comparing the first and last timestamps. Input with fewer than two items
    or without readable timestamps is returned unchanged.
    """
    if len(values) < 2:
        return values

    first = _timestamp(values[0], key)
    last = _timestamp(values[-1], key)
    if first is None or last is None:
        return values

    try:
        oldest_first = first < last
    except TypeError:
        # naive vs aware timestamps can't be ordered
        return values

    if oldest_first:
        return list(reversed(values))
    return values
