"""Per-session context.

A :class:`SyncSession` bundles everything one sync invocation (a bulk
sync or a single webhook event) needs to talk to both APIs: the endpoint
wrappers, built on transports that carry the user's tokens, and the
concurrency limiters shared by every component of that invocation.
Nothing is cached at module scope, so sessions for different users can
run side by side on one event loop.

Usage::

    async with await SyncSession.open(user_id, credentials, config) as session:
        orchestrator = SyncOrchestrator(session, store)
        result = await orchestrator.run(integration_id, collection_ids)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flowsync.api.transport import AsyncNotionTransport, AsyncWebflowTransport
from flowsync.concurrency import ConcurrencyLimiter
from flowsync.config import SyncConfig
from flowsync.errors import FlowSyncCredentialError
from flowsync.notion_api import AsyncBlockAPI, AsyncDatabaseAPI, AsyncPageAPI, AsyncSearchAPI
from flowsync.observability import MetricsHook, NoopMetricsHook, get_logger
from flowsync.store import CredentialStore
from flowsync.webflow_api import AsyncCollectionAPI, AsyncItemAPI, AsyncSiteAPI

log = get_logger("flowsync.session")


@dataclass
class SyncSession:
    """Clients and limiters of one sync invocation.

    Build it with :meth:`open` in production.  Tests construct it directly
    with fake endpoint objects.

    Attributes
    ----------
    config:
        The shared configuration.
    user_id:
        The user whose tokens the clients carry.
    pages, blocks, databases, search:
        Notion endpoint wrappers.
    collections, items, sites:
        Webflow endpoint wrappers.
    database_limiter:
        Caps in-flight database and container page creations.
    page_limiter:
        Caps in-flight Notion page creations and updates.
    webflow_limiter:
        Caps in-flight Webflow writes.
    """

    config: SyncConfig
    user_id: str
    pages: Any
    blocks: Any
    databases: Any
    search: Any
    collections: Any
    items: Any
    sites: Any
    database_limiter: ConcurrencyLimiter = None  # type: ignore[assignment]
    page_limiter: ConcurrencyLimiter = None  # type: ignore[assignment]
    webflow_limiter: ConcurrencyLimiter = None  # type: ignore[assignment]
    transports: list[Any] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if self.database_limiter is None:
            self.database_limiter = ConcurrencyLimiter(
                self.config.database_concurrency, name="notion-databases"
            )
        if self.page_limiter is None:
            self.page_limiter = ConcurrencyLimiter(
                self.config.page_concurrency, name="notion-pages"
            )
        if self.webflow_limiter is None:
            self.webflow_limiter = ConcurrencyLimiter(
                self.config.webflow_concurrency, name="webflow"
            )

    @property
    def metrics(self) -> MetricsHook:
        return self.config.metrics if self.config.metrics is not None else NoopMetricsHook()

    @classmethod
    async def open(
        cls,
        user_id: str,
        credentials: CredentialStore,
        config: SyncConfig | None = None,
    ) -> SyncSession:
        """Fetch the user's tokens and build a session.

        Raises
        ------
        FlowSyncCredentialError
            When either token is missing.
        """
        config = config or SyncConfig()
        webflow_token = await credentials.get_webflow_token(user_id)
        if not webflow_token:
            raise FlowSyncCredentialError(
                message="Webflow token not found",
                context={"user_id": user_id, "service": "webflow"},
            )
        notion_token = await credentials.get_notion_token(user_id)
        if not notion_token:
            raise FlowSyncCredentialError(
                message="Notion token not found",
                context={"user_id": user_id, "service": "notion"},
            )

        notion = AsyncNotionTransport(config, notion_token)
        webflow = AsyncWebflowTransport(config, webflow_token)
        log.debug(
            "Session opened",
            extra={"extra_fields": {"op": "session_open", "user_id": user_id}},
        )
        return cls(
            config=config,
            user_id=user_id,
            pages=AsyncPageAPI(notion),
            blocks=AsyncBlockAPI(notion),
            databases=AsyncDatabaseAPI(notion),
            search=AsyncSearchAPI(notion),
            collections=AsyncCollectionAPI(webflow),
            items=AsyncItemAPI(webflow),
            sites=AsyncSiteAPI(webflow),
            transports=[notion, webflow],
        )

    async def close(self) -> None:
        """Close the underlying HTTP clients."""
        for transport in self.transports:
            await transport.close()
        self.transports = []

    async def __aenter__(self) -> SyncSession:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
