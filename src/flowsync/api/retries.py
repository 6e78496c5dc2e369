"""Retry decisions, backoff computation and the creation conflict retry.

* :func:`should_retry` -- decide whether a failed request is retryable.
* :func:`compute_backoff` -- delay before the next transport-level attempt.
* :func:`create_with_conflict_retry` -- run a page/database creation,
  retrying exactly once on a 409 conflict and always pausing afterwards.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from flowsync.errors import FlowSyncConflictError
from flowsync.observability import get_logger

log = get_logger("flowsync.retries")

T = TypeVar("T")

# HTTP status codes that are safe to retry.
_RETRYABLE_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# Network-level exceptions that warrant a retry.
_RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)


def should_retry(
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
) -> bool:
    """Decide whether a request should be retried.

    Parameters
    ----------
    status_code:
        HTTP status of the response, or ``None`` if no response arrived.
    exception:
        The exception raised while sending, or ``None``.
    attempt:
        The current attempt number (0-indexed).
    max_attempts:
        Maximum total attempts, including the first one.
    """
    if attempt + 1 >= max_attempts:
        return False
    if exception is not None:
        return isinstance(exception, _RETRYABLE_EXCEPTIONS)
    if status_code is not None:
        return status_code in _RETRYABLE_STATUSES
    return False


def compute_backoff(
    attempt: int,
    base: float = 1.0,
    maximum: float = 60.0,
    jitter: bool = True,
    retry_after: float | None = None,
) -> float:
    """Compute the delay (seconds) before the next retry attempt.

    A server-provided ``Retry-After`` value wins; otherwise the delay is
    ``base * 2**attempt`` capped at *maximum*.  Jitter scales the delay to
    between 50 % and 100 % of its value.
    """
    if retry_after is not None:
        delay = max(retry_after, 0.0)
    else:
        delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay


async def create_with_conflict_retry(
    create: Callable[[], Awaitable[T]],
    *,
    label: str,
    retry_delay: float = 1.5,
    settle_delay: float = 0.5,
) -> T:
    """Run a creation call with a single retry on conflict.

    Concurrent creations under the same parent occasionally collide and
    are rejected with 409.  The call is retried exactly once after
    *retry_delay*; a second conflict, or any other error, propagates to
    the caller.  *settle_delay* is always slept afterwards, whether the
    creation succeeded or not, to smooth bursts of writes.

    Parameters
    ----------
    create:
        Zero-argument coroutine factory performing the API call.
    label:
        Short description of the resource for logs (e.g. ``"page"``).
    """
    try:
        try:
            return await create()
        except FlowSyncConflictError as exc:
            log.warning(
                "Conflict on creation, retrying once",
                extra={
                    "extra_fields": {
                        "op": "create",
                        "resource": label,
                        "retry_delay": retry_delay,
                        "error": exc.message,
                    }
                },
            )
            await asyncio.sleep(retry_delay)
            return await create()
    finally:
        if settle_delay > 0:
            await asyncio.sleep(settle_delay)
