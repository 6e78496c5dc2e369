"""Async HTTP transports for the Notion and Webflow APIs.

Each transport handles the full request lifecycle:

1. Acquire a token-bucket slot (wait if needed).
2. Send the HTTP request with auth headers.
3. On ``2xx`` -- return the parsed JSON response.
4. On ``429`` -- honour ``Retry-After``, sleep, and retry.
5. On ``5xx`` / network error -- exponential backoff and retry.
6. On non-retryable ``4xx`` -- raise the matching typed error immediately.
7. On max attempts exceeded -- raise :class:`FlowSyncRetryExhaustedError`.

:class:`AsyncApiTransport` implements the lifecycle once; the two
subclasses only add headers and their API's pagination style.
"""

from __future__ import annotations

import asyncio
import json as _json
import sys
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from flowsync.config import SyncConfig
from flowsync.errors import (
    FlowSyncAuthError,
    FlowSyncConflictError,
    FlowSyncNetworkError,
    FlowSyncNotFoundError,
    FlowSyncPermissionError,
    FlowSyncRetryExhaustedError,
    FlowSyncValidationError,
)
from flowsync.observability import NoopMetricsHook, get_logger
from flowsync.utils.redact import redact

from .rate_limit import AsyncTokenBucket
from .retries import _RETRYABLE_STATUSES, compute_backoff, should_retry

log = get_logger("flowsync.transport")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    """Extract the ``Retry-After`` header value as a float, or ``None``."""
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _raise_for_status(
    response: httpx.Response,
    method: str,
    path: str,
    service: str,
) -> None:
    """Raise the :class:`FlowSyncError` subclass matching a 4xx response."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {"body": body}

    api_message = body.get("message") or response.text[:500]
    api_code = body.get("code", "")
    where = f"{service} {method} {path}"
    base_ctx = {"service": service, "status_code": status, "api_code": api_code}

    if status == 400:
        raise FlowSyncValidationError(
            message=f"Validation error on {where}: {api_message}",
            context={**base_ctx, "body": body},
        )
    if status == 401:
        raise FlowSyncAuthError(
            message=f"Authentication failed on {where}: {api_message}",
            context=base_ctx,
        )
    if status == 403:
        raise FlowSyncPermissionError(
            message=f"Permission denied on {where}: {api_message}",
            context={**base_ctx, "operation": f"{method} {path}"},
        )
    if status == 404:
        raise FlowSyncNotFoundError(
            message=f"Resource not found on {where}: {api_message}",
            context={**base_ctx, "path": path},
        )
    if status == 409:
        raise FlowSyncConflictError(
            message=f"Conflict on {where}: {api_message}",
            context=base_ctx,
        )

    raise FlowSyncValidationError(
        message=f"Client error {status} on {where}: {api_message}",
        context={**base_ctx, "body": body},
    )


def _dump_payload(
    method: str,
    url: str,
    payload: Any | None,
    response_status: int | None,
    response_body: Any | None,
    token: str | None = None,
) -> None:
    """Write a redacted debug dump of the request/response to stderr."""
    dump: dict[str, Any] = {"method": method, "url": url}
    if payload is not None:
        dump["request_body"] = payload
    if response_status is not None:
        dump["response_status"] = response_status
    if response_body is not None:
        dump["response_body"] = response_body
    print(
        _json.dumps(redact(dump, token), indent=2, default=str),
        file=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Base transport
# ---------------------------------------------------------------------------

class AsyncApiTransport:
    """Asynchronous HTTP transport with auth, retry, and rate limiting.

    Parameters
    ----------
    config:
        The shared :class:`SyncConfig`.
    token:
        Bearer token of the user this transport acts for.  Never logged.
    service:
        Short service name used in errors, logs and metric tags.
    base_url:
        API root URL.
    rate_limit_rps:
        Client-side pacing for this API.
    extra_headers:
        Headers added to every request.
    """

    def __init__(
        self,
        config: SyncConfig,
        token: str,
        *,
        service: str,
        base_url: str,
        rate_limit_rps: float,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self._config = config
        self._token = token
        self.service = service
        self._bucket = AsyncTokenBucket(rate_rps=rate_limit_rps, burst=10)
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers.update(extra_headers or {})
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
        )

    # -- public API --------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Execute an HTTP request against the API.

        Parameters
        ----------
        method:
            HTTP method (``GET``, ``POST``, ``PATCH``, ``DELETE``).
        path:
            API path relative to the base URL (e.g. ``/pages``).
        **kwargs:
            Forwarded to :meth:`httpx.AsyncClient.request` (``json=``,
            ``params=`` ...).

        Returns
        -------
        dict
            Parsed JSON response body (``{}`` for empty responses).

        Raises
        ------
        FlowSyncAuthError
            On 401 responses.
        FlowSyncPermissionError
            On 403 responses.
        FlowSyncNotFoundError
            On 404 responses.
        FlowSyncConflictError
            On 409 responses.
        FlowSyncValidationError
            On 400 and other non-retryable 4xx responses.
        FlowSyncRetryExhaustedError
            When all retry attempts have been exhausted.
        FlowSyncNetworkError
            On transport-level failures after exhausting retries.
        """
        max_attempts = self._config.retry_max_attempts
        last_exception: Exception | None = None
        last_status: int | None = None
        tags = {"service": self.service, "method": method}

        for attempt in range(max_attempts):
            wait = await self._bucket.acquire()
            if wait > 0:
                self._metrics.timing("flowsync.rate_limit_wait_ms", wait * 1000, tags=tags)

            t0 = time.monotonic()
            try:
                response = await self._client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                last_exception = exc
                last_status = None
                delay = self._handle_network_exception(method, path, exc, attempt)
                await asyncio.sleep(delay)
                continue
            elapsed_ms = (time.monotonic() - t0) * 1000

            last_status = response.status_code
            last_exception = None
            status_tags = {**tags, "status": str(response.status_code)}
            self._metrics.increment("flowsync.requests_total", tags=status_tags)
            self._metrics.timing("flowsync.request_duration_ms", elapsed_ms, tags=status_tags)

            if self._config.debug_dump_payload:
                self._emit_debug_dump(method, response, kwargs.get("json"))

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                result: dict = response.json()
                return result

            if response.status_code not in _RETRYABLE_STATUSES:
                _raise_for_status(response, method, path, self.service)

            if not should_retry(response.status_code, None, attempt, max_attempts):
                break

            retry_after: float | None = None
            reason = "server_error"
            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                reason = "rate_limited"
                self._metrics.increment("flowsync.rate_limited_total", tags=tags)
                log.warning(
                    "Rate limited by upstream API",
                    extra={
                        "extra_fields": {
                            "op": "request",
                            "service": self.service,
                            "method": method,
                            "path": path,
                            "retry_after": retry_after,
                            "attempt": attempt + 1,
                        }
                    },
                )

            delay = compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
                retry_after=retry_after,
            )
            self._metrics.increment("flowsync.retries_total", tags={**tags, "reason": reason})
            await asyncio.sleep(delay)

        ctx: dict[str, Any] = {
            "service": self.service,
            "attempts": max_attempts,
            "last_status_code": last_status,
        }
        if last_exception is not None:
            raise FlowSyncRetryExhaustedError(
                message=(
                    f"All {max_attempts} attempts exhausted for {self.service} {method} {path} "
                    f"(last error: {last_exception})"
                ),
                context=ctx,
                cause=last_exception,
            )
        raise FlowSyncRetryExhaustedError(
            message=(
                f"All {max_attempts} attempts exhausted for {self.service} {method} {path} "
                f"(last status: {last_status})"
            ),
            context=ctx,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncApiTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    def _handle_network_exception(
        self,
        method: str,
        path: str,
        exc: Exception,
        attempt: int,
    ) -> float:
        """Return the backoff delay for a retryable network error.

        Raises :class:`FlowSyncNetworkError` once retries are exhausted.
        """
        self._metrics.increment(
            "flowsync.requests_total",
            tags={"service": self.service, "method": method, "status": "error"},
        )
        log.warning(
            "Request network error",
            extra={
                "extra_fields": {
                    "op": "request",
                    "service": self.service,
                    "method": method,
                    "path": path,
                    "attempt": attempt + 1,
                    "error": str(exc),
                }
            },
        )
        if should_retry(None, exc, attempt, self._config.retry_max_attempts):
            self._metrics.increment(
                "flowsync.retries_total",
                tags={"service": self.service, "method": method, "reason": "network_error"},
            )
            return compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
            )
        raise FlowSyncNetworkError(
            message=f"Network error on {self.service} {method} {path}: {exc}",
            context={"service": self.service, "url": path, "attempt": attempt + 1},
            cause=exc,
        ) from exc

    def _emit_debug_dump(self, method: str, response: httpx.Response, json_payload: Any) -> None:
        try:
            resp_body = response.json()
        except ValueError:
            resp_body = response.text[:1000]
        _dump_payload(
            method, str(response.url), json_payload,
            response.status_code, resp_body,
            token=self._token,
        )


# ---------------------------------------------------------------------------
# Service transports
# ---------------------------------------------------------------------------

class AsyncNotionTransport(AsyncApiTransport):
    """Transport for the Notion API (cursor pagination)."""

    def __init__(self, config: SyncConfig, token: str) -> None:
        super().__init__(
            config,
            token,
            service="notion",
            base_url=config.notion_base_url,
            rate_limit_rps=config.notion_rate_limit_rps,
            extra_headers={"Notion-Version": config.notion_version},
        )

    async def paginate(self, path: str, **kwargs: Any) -> AsyncIterator[dict]:
        """Auto-paginate a Notion list endpoint, yielding each result.

        ``GET`` endpoints receive ``start_cursor``/``page_size`` as query
        parameters, ``POST`` endpoints (database query, search) in the
        JSON body.  Pass ``method="POST"`` for the latter.
        """
        method = kwargs.pop("method", "GET")
        cursor: str | None = None

        while True:
            if method.upper() == "POST":
                body: dict = dict(kwargs.get("json") or {})
                body["page_size"] = 100
                if cursor is not None:
                    body["start_cursor"] = cursor
                kwargs["json"] = body
            else:
                params: dict = dict(kwargs.get("params") or {})
                params["page_size"] = 100
                if cursor is not None:
                    params["start_cursor"] = cursor
                kwargs["params"] = params

            data = await self.request(method, path, **kwargs)
            for item in data.get("results", []):
                yield item

            if not data.get("has_more", False):
                break
            cursor = data.get("next_cursor")
            if cursor is None:
                break


class AsyncWebflowTransport(AsyncApiTransport):
    """Transport for the Webflow Data API v2 (offset pagination)."""

    def __init__(self, config: SyncConfig, token: str) -> None:
        super().__init__(
            config,
            token,
            service="webflow",
            base_url=config.webflow_base_url,
            rate_limit_rps=config.webflow_rate_limit_rps,
        )

    async def paginate(self, path: str, key: str = "items", limit: int = 100) -> AsyncIterator[dict]:
        """Auto-paginate a Webflow list endpoint, yielding each entry.

        Follows ``pagination.offset``/``pagination.total`` until every
        entry under *key* has been read.
        """
        offset = 0
        while True:
            data = await self.request("GET", path, params={"offset": offset, "limit": limit})
            entries = data.get(key) or []
            for entry in entries:
                yield entry

            pagination = data.get("pagination") or {}
            total = pagination.get("total")
            offset += len(entries)
            if not entries or total is None or offset >= total:
                break
