import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple


class TTLCache:
    """Process-wide key -> (value, expiry) store for read-path payloads."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    async def get_or_compute(self, key: str, compute: Callable[[], Awaitable[Any]], ttl: float) -> Any:
        """Return the cached value for `key`, computing and storing it on a miss.

        Errors from `compute` propagate and nothing is cached.
        """
        async with self._lock:
            cached = self.get(key)
            if cached is not None:
                return cached
            value = await compute()
            self.set(key, value, ttl)
            return value

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
