"""Metrics hook protocol and its no-op default.

Transports and sync phases report counters, timings and gauges through a
:class:`MetricsHook` taken from :attr:`SyncConfig.metrics
<flowsync.config.SyncConfig.metrics>`.  When none is configured a
:class:`NoopMetricsHook` discards every data point, so call sites never
need ``None`` checks.

Emitted metric names:

* ``flowsync.requests_total``         -- counter (tags: service, method, status)
* ``flowsync.retries_total``          -- counter (tags: service, method, reason)
* ``flowsync.rate_limited_total``     -- counter (tags: service, method)
* ``flowsync.request_duration_ms``    -- timing  (tags: service, method, status)
* ``flowsync.rate_limit_wait_ms``     -- timing  (tags: service, method)
* ``flowsync.pages_created_total``    -- counter (tags: collection)
* ``flowsync.sync_warnings_total``    -- counter (tags: code)
* ``flowsync.sync_duration_ms``       -- timing  (tags: outcome)
* ``flowsync.id_map_size``            -- gauge, item-to-page pairs after page creation
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Structural interface of a metrics backend.

    Tag keys and values are strings; a backend maps them onto its own
    labelling scheme (StatsD suffixes, Prometheus labels ...).
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Add *value* to the counter *name*."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration of *ms* milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set the gauge *name* to *value*."""
        ...


class NoopMetricsHook:
    """:class:`MetricsHook` that drops everything."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
