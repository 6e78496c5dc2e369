"""Bounded concurrency for upstream writes.

A :class:`ConcurrencyLimiter` is a cooperative semaphore: it bounds the
number of overlapping in-flight calls on one event loop, it does not create
threads.  Limiters are owned by a :class:`~flowsync.session.SyncSession`
and injected into the components that write to an API, so every component
of one session shares the same caps.

:func:`settle` is the phase barrier of the pipeline: it waits for every
task of a phase to finish, successfully or not, before the next phase
starts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Cap the number of concurrently running coroutines.

    Parameters
    ----------
    limit:
        Maximum number of holders at any time.
    name:
        Label used in logs and ``repr``.

    Usage::

        limiter = ConcurrencyLimiter(2, name="notion-pages")
        async with limiter:
            await pages.create(...)

        result = await limiter.run(pages.create, parent, properties)
    """

    def __init__(self, limit: int, *, name: str = "limiter") -> None:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.limit = limit
        self.name = name
        self._semaphore = asyncio.Semaphore(limit)
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        """Number of current holders."""
        return self._in_flight

    @property
    def peak(self) -> int:
        """Highest number of simultaneous holders observed."""
        return self._peak

    async def __aenter__(self) -> ConcurrencyLimiter:
        await self._semaphore.acquire()
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)
        return self

    async def __aexit__(self, *exc: object) -> None:
        self._in_flight -= 1
        self._semaphore.release()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await ``fn(*args, **kwargs)`` while holding a slot."""
        async with self:
            return await fn(*args, **kwargs)

    def __repr__(self) -> str:
        return f"ConcurrencyLimiter(name={self.name!r}, limit={self.limit}, in_flight={self._in_flight})"


async def settle(aws: Iterable[Awaitable[T]]) -> list[T | BaseException]:
    """Wait for every awaitable and return results or raised exceptions.

    Results keep the input order.  One failure never cancels its
    siblings, so per-item errors stay isolated.
    """
    return await asyncio.gather(*aws, return_exceptions=True)
