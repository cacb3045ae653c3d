"""Fixed-size concurrent batches."""

import asyncio
from typing import Any, Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar('T')


def split_batches(items: Sequence[T], batch_size: int) -> List[List[T]]:
    """Split items into consecutive batches of at most ``batch_size``."""
    if batch_size <= 0:
        raise ValueError('batch_size must be positive')
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[Any]],
    batch_size: int = 5,
) -> List[Any]:
    """Run ``worker`` over items, one batch at a time.

    Every call of a batch settles before the next batch starts. Exceptions are
    returned in place of results, in input order.

    Args:
        items: Items to process
        worker: Coroutine function applied to each item
        batch_size: Number of concurrent calls per batch

    Returns:
        Result or exception for each item
    """
    results: List[Any] = []
    for batch in split_batches(items, batch_size):
        batch_results = await asyncio.gather(
            *(worker(item) for item in batch), return_exceptions=True
        )
        results.extend(batch_results)
    return results
