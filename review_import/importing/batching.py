"""
Bounded batch processing on top of asyncio.

Work is split into fixed-size chunks and each chunk runs as its own task.
Two failure policies:

- process_batches:           fail-fast. The first error is re-raised once
                             every started chunk has settled.
- process_batches_resilient: a failing chunk is logged and replaced by a
                             fallback value; the others carry on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Split items into consecutive chunks of `size` (the last may be shorter).

    Raises:
        ValueError: size is not positive
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def process_batches(
    items: Sequence[T],
    size: int,
    processor: Callable[[List[T]], Awaitable[R]],
) -> List[R]:
    """
    Run processor over every chunk concurrently, failing fast.

    Returns:
        One result per chunk, in chunk order
    """
    chunks = chunk(items, size)
    if not chunks:
        return []

    results = await asyncio.gather(
        *(processor(part) for part in chunks),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def process_batches_resilient(
    items: Sequence[T],
    size: int,
    processor: Callable[[List[T]], Awaitable[R]],
    fallback: Callable[[List[T]], R],
) -> List[R]:
    """
    Run processor over every chunk concurrently; failed chunks use fallback.

    Returns:
        One result per chunk, in chunk order
    """
    chunks = chunk(items, size)

    async def _guarded(index: int, part: List[T]) -> R:
        try:
            return await processor(part)
        except Exception as e:
            logger.warning(f"[Batch] Chunk {index + 1}/{len(chunks)} ({len(part)} items) failed: {e}")
            return fallback(part)

    return list(await asyncio.gather(*(_guarded(i, part) for i, part in enumerate(chunks))))
