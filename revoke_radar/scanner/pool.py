"""Concurrency-bounded fan-out over an in-memory sequence.

Provides ``map_bounded()``: run an async worker over every item with at most
``limit`` invocations in flight, returning results in input order.

Model:
  - ``min(limit, len(items))`` worker coroutines are started with asyncio.gather.
  - They share a single index cursor; each repeatedly claims the next unclaimed
    index and awaits ``worker(item, index)``.
  - The result is written into a pre-sized output slot at that index, so every
    slot is written by exactly one coroutine and completion order never leaks
    into output order.

Used at two nesting levels by the scan engine: tokens (outer) and spenders per
token (inner). The two limits multiply to bound in-flight allowance reads.

No retries. If ``worker`` raises, the remaining workers are cancelled and the
exception propagates out of ``map_bounded()``; per-item failure handling belongs
to the worker.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class _IndexCursor:
    """Hands out each index in ``range(size)`` exactly once.

    ``claim()`` contains no await, so on a single event loop two workers can
    never receive the same index.
    """

    def __init__(self, size: int) -> None:
        self._next = 0
        self._size = size

    def claim(self) -> int | None:
        if self._next >= self._size:
            return None
        idx = self._next
        self._next += 1
        return idx


async def map_bounded(
    items: Sequence[T],
    limit: int,
    worker: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """Apply ``worker`` to every item with at most ``limit`` calls in flight.

    Args:
        items:  Input sequence (not mutated).
        limit:  Maximum concurrent worker invocations. Must be ≥ 1.
        worker: ``async (item, index) -> result``.

    Returns:
        List of results, ``len(result) == len(items)``, ``result[i]`` produced
        from ``items[i]``.

    Raises:
        ValueError: If ``limit`` < 1.
        Exception:  Whatever ``worker`` raises (not caught here).
    """
    if limit < 1:
        raise ValueError(f"concurrency limit must be >= 1, got {limit}")

    size = len(items)
    if size == 0:
        return []

    results: list[R] = [None] * size  # type: ignore[list-item]
    cursor = _IndexCursor(size)

    async def _run() -> None:
        while True:
            idx = cursor.claim()
            if idx is None:
                return
            results[idx] = await worker(items[idx], idx)

    tasks = [asyncio.ensure_future(_run()) for _ in range(min(limit, size))]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        # Sibling workers must not keep issuing calls after the batch has failed.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    return results
