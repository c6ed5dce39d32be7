"""Shared concurrency primitives for the ingestion and query paths.

Three patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  Embedding batches use it so a large PDF
   does not open dozens of simultaneous API requests.

2. **retry_on_rate_limit** -- run an async call, sleeping with linear
   backoff (``backoff * attempt``) whenever the provider signals a rate
   limit, up to a fixed number of attempts.

3. **DocumentLockRegistry** -- one ``asyncio.Lock`` per document id so an
   ingestion and a delete of the same document never interleave.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, TypeVar

import structlog

from src.utils.errors import RateLimitError
from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = False,
    limit: int = 4,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore for concurrency control.  When omitted a fresh one with
        *limit* slots is created for this call.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Otherwise the first exception cancels every
        awaitable still running before it propagates.
    limit:
        Slot count for the per-call semaphore.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = asyncio.Semaphore(max(1, limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [asyncio.ensure_future(_wrapped(c)) for c in coros]
    try:
        return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
    except BaseException:
        # First failure wins; stop the remaining calls and reap them.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def retry_on_rate_limit(
    call: Callable[[], Awaitable[_T]],
    *,
    rate_limit_errors: tuple[type[BaseException], ...],
    max_retries: int,
    backoff: float,
    provider_name: str,
    logger: structlog.BoundLogger | None = None,
) -> _T:
    """Await ``call()``, retrying only on the given rate-limit exceptions.

    Sleeps ``backoff * attempt`` seconds between attempts.  Any other
    exception propagates immediately.  After *max_retries* rate-limited
    attempts a :class:`RateLimitError` is raised, chained to the last
    provider exception.
    """
    log = logger or _logger
    attempts = max(1, max_retries)
    last_exc: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except rate_limit_errors as exc:
            last_exc = exc
            if attempt == attempts:
                break
            delay = backoff * attempt
            log.warning(
                "provider_rate_limited",
                provider=provider_name,
                attempt=attempt,
                backoff_s=delay,
            )
            await asyncio.sleep(delay)

    raise RateLimitError(
        message=f"Rate limited after {attempts} attempts",
        provider_name=provider_name,
    ) from last_exc


class DocumentLockRegistry:
    """Hands out one ``asyncio.Lock`` per document id.

    Locks are created on first use and discarded once no task holds or
    waits on them, so the registry does not grow with the corpus.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, document_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        self._waiters[document_id] = self._waiters.get(document_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[document_id] -= 1
            if self._waiters[document_id] == 0:
                del self._waiters[document_id]
                del self._locks[document_id]

    def is_locked(self, document_id: str) -> bool:
        lock = self._locks.get(document_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
