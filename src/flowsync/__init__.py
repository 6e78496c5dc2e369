"""flowsync: Webflow CMS to Notion content sync.

Public re-exports
-----------------

* **Entry points:** :func:`run_selected_collections_sync`,
  :class:`WebflowWebhookHandler`, :class:`NotionWebhookHandler`
* **Session & configuration:** :class:`SyncSession`, :class:`SyncConfig`
* **Stores:** the :class:`CredentialStore` / :class:`MappingStore`
  protocols and their reference implementations
* **Errors:** Every :class:`FlowSyncError` subclass and :class:`ErrorCode`
* **Models:** Result, statistics and record dataclasses

Usage::

    from flowsync import (
        EnvCredentialStore,
        InMemoryMappingStore,
        run_selected_collections_sync,
    )

    result = await run_selected_collections_sync(
        user_id="u1",
        integration_id="i1",
        collection_ids=["<collection_id>"],
        credentials=EnvCredentialStore(),
        store=store,
    )
    print(result.to_dict())
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from flowsync.config import SyncConfig

# ── Conversion ──────────────────────────────────────────────────────────
from flowsync.converter import HtmlToNotionConverter, NotionToHtmlRenderer, html_to_blocks

# ── Errors ──────────────────────────────────────────────────────────────
from flowsync.errors import (
    ErrorCode,
    FlowSyncAuthError,
    FlowSyncConfigurationError,
    FlowSyncConflictError,
    FlowSyncCredentialError,
    FlowSyncError,
    FlowSyncNetworkError,
    FlowSyncNotFoundError,
    FlowSyncPermissionError,
    FlowSyncRetryExhaustedError,
    FlowSyncStateError,
    FlowSyncValidationError,
    FlowSyncWebhookPayloadError,
)

# ── Models ──────────────────────────────────────────────────────────────
from flowsync.models import (
    CollectionMapping,
    ConversionResult,
    DatabaseInfo,
    IntegrationRecord,
    ItemMapping,
    ItemStatus,
    OptionSyncStats,
    PageSyncStats,
    RelationSchemaStats,
    RelationSyncStats,
    SchemaState,
    SyncResult,
    SyncWarning,
    WebflowCollection,
    WebflowField,
    WebflowItem,
    WebhookResult,
)

# ── Session & stores ────────────────────────────────────────────────────
from flowsync.session import SyncSession
from flowsync.store import (
    CredentialStore,
    EnvCredentialStore,
    InMemoryMappingStore,
    MappingStore,
    StaticCredentialStore,
)

# ── Entry points ────────────────────────────────────────────────────────
from flowsync.sync import (
    NotionWebhookHandler,
    SyncOrchestrator,
    WebflowWebhookHandler,
    run_selected_collections_sync,
)

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Entry points
    "run_selected_collections_sync",
    "SyncOrchestrator",
    "WebflowWebhookHandler",
    "NotionWebhookHandler",
    # Session, configuration, stores
    "SyncSession",
    "SyncConfig",
    "CredentialStore",
    "MappingStore",
    "StaticCredentialStore",
    "EnvCredentialStore",
    "InMemoryMappingStore",
    # Conversion
    "HtmlToNotionConverter",
    "NotionToHtmlRenderer",
    "html_to_blocks",
    # Error base + code enum
    "FlowSyncError",
    "ErrorCode",
    # Configuration errors
    "FlowSyncConfigurationError",
    "FlowSyncCredentialError",
    # API / transport errors
    "FlowSyncValidationError",
    "FlowSyncAuthError",
    "FlowSyncPermissionError",
    "FlowSyncNotFoundError",
    "FlowSyncConflictError",
    "FlowSyncRetryExhaustedError",
    "FlowSyncNetworkError",
    # Pipeline errors
    "FlowSyncStateError",
    "FlowSyncWebhookPayloadError",
    # Models: source records
    "WebflowField",
    "WebflowCollection",
    "WebflowItem",
    # Models: pipeline
    "DatabaseInfo",
    "SchemaState",
    "ItemStatus",
    "ConversionResult",
    "SyncWarning",
    # Models: results
    "SyncResult",
    "WebhookResult",
    "PageSyncStats",
    "RelationSchemaStats",
    "RelationSyncStats",
    "OptionSyncStats",
    # Models: store records
    "IntegrationRecord",
    "CollectionMapping",
    "ItemMapping",
]
