"""flowsync.api -- shared HTTP machinery for the Notion and Webflow clients.

* :mod:`.rate_limit` -- async token bucket.
* :mod:`.retries` -- retry decisions, backoff, creation conflict retry.
* :mod:`.transport` -- transports with auth, retries and rate limiting.
"""

from __future__ import annotations

from .rate_limit import AsyncTokenBucket
from .retries import compute_backoff, create_with_conflict_retry, should_retry
from .transport import AsyncApiTransport, AsyncNotionTransport, AsyncWebflowTransport

__all__ = [
    "AsyncApiTransport",
    "AsyncNotionTransport",
    "AsyncTokenBucket",
    "AsyncWebflowTransport",
    "compute_backoff",
    "create_with_conflict_retry",
    "should_retry",
]
