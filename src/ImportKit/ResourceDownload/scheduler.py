# === NAVMAP v1 ===
# {
#   "module": "ImportKit.ResourceDownload.scheduler",
#   "purpose": "Bounded asyncio drain of a lazily pulled task iterator",
#   "sections": [
#     {
#       "id": "run-bounded",
#       "name": "run_bounded",
#       "anchor": "function-run-bounded",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Bounded concurrency scheduler.

:func:`run_bounded` drives a task iterator through an async handler with at
most ``limit`` handlers outstanding. Tasks are pulled from the iterator only
when a slot opens, so the iterator is never materialised:

    pending = {}                     # up to `limit` asyncio tasks
    while iterator not exhausted:
        fill free slots from iterator
        wait(FIRST_COMPLETED)        # refill as soon as one finishes
    wait for the remainder

Ordering across tasks is not guaranteed. The call returns only after the
iterator is exhausted and every handler has finished. A handler exception does
not stop the drain; the first one is re-raised once everything is done.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

__all__ = ["run_bounded"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_bounded(
    tasks: Iterable[T],
    handler: Callable[[T], Awaitable[None]],
    limit: int,
) -> int:
    """Run ``handler`` over ``tasks`` with at most ``limit`` in flight.

    Args:
        tasks: Lazily pulled task source
        handler: Coroutine function applied to each task
        limit: Maximum number of outstanding handlers (>= 1)

    Returns:
        Number of tasks pulled from the iterator
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    iterator = iter(tasks)
    in_flight: set[asyncio.Future[None]] = set()
    first_error: Optional[BaseException] = None
    pulled = 0
    exhausted = False

    def _collect(done: set[asyncio.Future[None]]) -> None:
        nonlocal first_error
        for future in done:
            error = future.exception()
            if error is not None:
                logger.error(f"Task handler failed: {error!r}")
                if first_error is None:
                    first_error = error

    while True:
        while not exhausted and len(in_flight) < limit:
            try:
                task = next(iterator)
            except StopIteration:
                exhausted = True
                break
            pulled += 1
            in_flight.add(asyncio.ensure_future(handler(task)))

        if not in_flight:
            break

        done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
        _collect(done)

    if first_error is not None:
        raise first_error
    return pulled
