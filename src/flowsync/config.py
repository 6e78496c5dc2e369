"""Runtime configuration for flowsync.

:class:`SyncConfig` captures every tuneable knob of the sync pipeline.  One
instance is shared by every :class:`~flowsync.session.SyncSession`; API
tokens are *not* part of the configuration, they are fetched per user from a
:class:`~flowsync.store.CredentialStore` when a session opens.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from flowsync.errors import FlowSyncConfigurationError

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_PREFIX = "FLOWSYNC_"
"""Prefix for configuration overrides read by :meth:`SyncConfig.from_env`."""


@dataclass
class SyncConfig:
    """Complete configuration for a flowsync deployment.

    Every parameter has a default, so ``SyncConfig()`` is a usable
    production configuration.

    Parameters
    ----------
    notion_base_url:
        Notion API root URL.  Override for proxy or testing environments.
    notion_version:
        Value of the ``Notion-Version`` header.  Database creation with an
        inline property schema requires the ``2022-06-28`` API.
    webflow_base_url:
        Webflow Data API (v2) root URL.
    notion_parent_page_id:
        Page under which collection databases are created when the
        integration record does not name one.  When both are unset the
        first page visible to the Notion token is used.
    webflow_site_id:
        Site whose collections are synced when the integration record does
        not name one.  Defaults to the first site visible to the token.
    title_property:
        Name of the title property injected into every database.
    item_id_property:
        Destination back-reference property holding the Webflow item ID.
    status_property:
        Select property holding the derived publishing status.
    page_id_field_name:
        Display name of the source back-reference field holding the Notion
        page ID.
    page_id_field_slug:
        Preferred slug for that field when it has to be created.
    database_concurrency:
        Maximum in-flight database/container creations.
    page_concurrency:
        Maximum in-flight Notion page writes.
    webflow_concurrency:
        Maximum in-flight Webflow writes.
    create_settle_delay:
        Seconds slept after every page/database creation, success or not.
    conflict_retry_delay:
        Seconds slept before the single retry of a creation that hit a
        409 conflict.
    append_batch_delay:
        Seconds slept between block-append batches.
    code_block_limit:
        Maximum characters in a code block before truncation.
    rich_text_limit:
        Maximum characters per rich-text run.
    retry_max_attempts:
        Maximum attempts per request for retryable HTTP errors.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Add random jitter to backoff intervals.
    notion_rate_limit_rps:
        Client-side pacing for Notion requests (token bucket).
    webflow_rate_limit_rps:
        Client-side pacing for Webflow requests (token bucket).
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    metrics:
        Optional :class:`~flowsync.observability.MetricsHook` backend.
    debug_dump_payload:
        Write redacted request/response payloads to *stderr*.
    """

    # ── APIs ────────────────────────────────────────────────────────────
    notion_base_url: str = "https://api.notion.com/v1"

    notion_version: str = "2022-06-28"

    webflow_base_url: str = "https://api.webflow.com/v2"

    # ── Workspace defaults ──────────────────────────────────────────────
    notion_parent_page_id: str | None = None

    webflow_site_id: str | None = None

    # ── Schema names ────────────────────────────────────────────────────
    title_property: str = "Name"

    item_id_property: str = "Webflow Item ID"

    status_property: str = "Status"

    page_id_field_name: str = "Notion Page ID"

    page_id_field_slug: str = "notion-page-id"

    # ── Concurrency & pacing ────────────────────────────────────────────
    database_concurrency: int = 1

    page_concurrency: int = 2

    webflow_concurrency: int = 1

    create_settle_delay: float = 0.5

    conflict_retry_delay: float = 1.5

    append_batch_delay: float = 0.35

    # ── Content limits ──────────────────────────────────────────────────
    code_block_limit: int = 2000

    rich_text_limit: int = 2000

    # ── Retry & rate ────────────────────────────────────────────────────
    retry_max_attempts: int = 5

    retry_base_delay: float = 1.0

    retry_max_delay: float = 60.0

    retry_jitter: bool = True

    notion_rate_limit_rps: float = 3.0

    webflow_rate_limit_rps: float = 1.0

    # ── HTTP ────────────────────────────────────────────────────────────
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        for name in ("notion_base_url", "webflow_base_url"):
            parsed = urlparse(getattr(self, name))
            if parsed.scheme == "http" and parsed.hostname not in (
                "localhost",
                "127.0.0.1",
                "::1",
            ):
                raise ValueError(
                    f"{name} uses insecure HTTP for non-local host '{parsed.hostname}'. "
                    "Use HTTPS to protect API tokens, or target localhost for testing."
                )

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        for name in ("notion_rate_limit_rps", "webflow_rate_limit_rps", "timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")
        for name in ("database_concurrency", "page_concurrency", "webflow_concurrency"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        for name in ("create_settle_delay", "conflict_retry_delay", "append_batch_delay"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        # Truncation keeps limit - 3 characters plus "...".
        if self.code_block_limit < 4:
            raise ValueError(f"code_block_limit must be >= 4, got {self.code_block_limit}")
        if self.rich_text_limit < 1:
            raise ValueError(f"rich_text_limit must be >= 1, got {self.rich_text_limit}")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> SyncConfig:
        """Build a configuration from ``FLOWSYNC_*`` environment variables.

        Each dataclass field ``foo_bar`` may be overridden by
        ``FLOWSYNC_FOO_BAR``.  Values are parsed according to the field's
        default type.  Keyword *overrides* win over the environment.

        Raises
        ------
        FlowSyncConfigurationError
            If a variable cannot be parsed or the resulting configuration
            fails validation.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        for f in fields(cls):
            if f.name == "metrics":
                continue
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _parse_env_value(f.name, raw, getattr(cls, f.name, None))

        values.update(overrides)
        try:
            return cls(**values)
        except ValueError as exc:
            raise FlowSyncConfigurationError(
                message=f"Invalid configuration: {exc}",
                context={"settings": sorted(values)},
                cause=exc,
            ) from exc


def _parse_env_value(name: str, raw: str, default: Any) -> Any:
    """Coerce an environment string to the type of the field's default."""
    try:
        if isinstance(default, bool):
            lowered = raw.strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"not a boolean: {raw!r}")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as exc:
        raise FlowSyncConfigurationError(
            message=f"Environment variable {ENV_PREFIX}{name.upper()} is invalid: {exc}",
            context={"setting": name, "value": raw},
            cause=exc,
        ) from exc
    if isinstance(default, str):
        return raw
    return raw or None
