"""Bounded parallel execution for per-item destination writes."""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable, Sequence
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")
logger = logging.getLogger(__name__)


async def run_sync_limited(
    semaphore: asyncio.Semaphore,
    func: Callable[..., T],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run a synchronous function in a thread pool, bounded by *semaphore*.

    Args:
        semaphore: Limits how many calls run at once.
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    async with semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Run coroutines concurrently.

    Each coroutine should use run_sync_limited internally.
    Returns results in order. Exceptions propagate from the first failure.
    """
    return list(await asyncio.gather(*coros))


def run_bounded(
    func: Callable[[T], R],
    items: Iterable[T],
    max_parallel: int,
) -> list[R]:
    """Call *func* on every item with at most *max_parallel* in flight.

    Blocks until all calls finished.  The first exception raised by *func*
    is re-raised unchanged.

    Args:
        func: Synchronous, independently idempotent per-item operation.
        items: Items to process.
        max_parallel: Upper bound of concurrent calls (>= 1).

    Returns:
        Results in input order.
    """
    batch = list(items)
    if not batch:
        return []
    if max_parallel <= 1 or len(batch) == 1:
        return [func(item) for item in batch]

    async def _run() -> list[R]:
        semaphore = asyncio.Semaphore(max_parallel)
        return await gather_limited(
            [run_sync_limited(semaphore, func, item) for item in batch]
        )

    logger.debug(
        "Running %d items with max_parallel=%d", len(batch), max_parallel
    )
    return asyncio.run(_run())
