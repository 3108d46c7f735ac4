"""Shared concurrency primitives for the ingestion pipeline.

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  The data ingestor uses it to process
   documents with bounded parallelism while collecting per-document
   failures instead of aborting the run.

2. **SingleFlightGate** -- a lock with a bounded acquire attempt.  A caller
   that cannot get in within the timeout is turned away rather than queued.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  Without one all
        awaitables run at once.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        return await asyncio.gather(*coros, return_exceptions=return_exceptions)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


class SingleFlightGate:
    """At most one holder at a time; contenders wait at most ``timeout``.

    Use as::

        if not await gate.try_acquire():
            return  # busy
        try:
            ...
        finally:
            gate.release()
    """

    def __init__(self, timeout: float = 1.0) -> None:
        self._lock = asyncio.Lock()
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def locked(self) -> bool:
        return self._lock.locked()

    async def try_acquire(self) -> bool:
        """Try to take the gate, returning ``False`` once the timeout elapses."""
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def release(self) -> None:
        self._lock.release()
