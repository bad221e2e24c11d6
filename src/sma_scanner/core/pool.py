import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


async def run_pool(
    items: Sequence[T],
    max_concurrent: int,
    task: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Run `task` once per item with at most `max_concurrent` tasks in flight.
    Results come back in input order regardless of completion order.

    Workers share one cursor and keep claiming the next index until the input
    is exhausted. A task that raises does not stop the remaining items; once
    every worker is done the first error is re-raised. Callers that want
    partial-failure tolerance catch inside `task`.
    """
    if max_concurrent < 1:
        raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")

    results: List[Optional[R]] = [None] * len(items)
    errors: List[BaseException] = []
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while True:
            idx = cursor
            if idx >= len(items):
                return
            cursor += 1
            try:
                results[idx] = await task(items[idx])
            except Exception as e:
                logger.debug("pool task failed for item %d: %r", idx, e)
                errors.append(e)

    n_workers = min(max_concurrent, len(items))
    await asyncio.gather(*(worker() for _ in range(n_workers)))

    if errors:
        raise errors[0]
    return results  # type: ignore[return-value]
