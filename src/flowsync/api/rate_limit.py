"""Token-bucket pacing for outgoing API requests.

Each transport owns one :class:`AsyncTokenBucket`.  Tokens refill at a fixed
rate up to a burst ceiling; a caller asking for more tokens than are
available awaits the computed deficit.  Notion documents an average of three
requests per second per integration, Webflow 60 requests per minute on most
plans, so the two transports are paced independently.
"""

from __future__ import annotations

import asyncio
import time


class AsyncTokenBucket:
    """Async-safe token bucket.

    Parameters
    ----------
    rate_rps:
        Sustained refill rate in tokens per second.
    burst:
        Maximum number of tokens the bucket can hold.
    """

    __slots__ = ("_lock", "burst", "last_refill", "rate", "tokens")

    def __init__(self, rate_rps: float, burst: int = 10) -> None:
        if rate_rps <= 0:
            raise ValueError(f"rate_rps must be > 0, got {rate_rps}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")

        self.rate: float = rate_rps
        self.burst: int = burst
        self.tokens: float = float(burst)
        self.last_refill: float = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self, tokens: int = 1) -> float:
        """Take *tokens* from the bucket, awaiting if necessary.

        Returns the number of seconds the caller waited (``0.0`` when the
        tokens were immediately available).
        """
        async with self._lock:
            now = time.monotonic()
            self.tokens = min(self.burst, self.tokens + (now - self.last_refill) * self.rate)
            self.last_refill = now

            if self.tokens >= tokens:
                self.tokens -= tokens
                return 0.0

            wait = (tokens - self.tokens) / self.rate
            self.tokens = 0.0

        # Sleep outside the lock so other coroutines can proceed.
        await asyncio.sleep(wait)
        return wait
