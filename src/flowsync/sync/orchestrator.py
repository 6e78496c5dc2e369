"""Bulk sync of selected Webflow collections into Notion.

Phases run strictly in order, each one a barrier for the next::

    fetch -> databases -> back-reference slots -> collection mappings
          -> relation schemas -> pages -> relation values -> option values

:func:`run_selected_collections_sync` is the entry point used by the API
layer.  It never raises: every failure becomes a
:class:`~flowsync.models.SyncResult` with ``success=False``.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from flowsync.concurrency import settle
from flowsync.config import SyncConfig
from flowsync.mapping.field_types import REFERENCE_TYPES
from flowsync.models import CollectionMapping, DatabaseInfo, SyncResult, SyncWarning
from flowsync.observability import get_logger
from flowsync.session import SyncSession
from flowsync.store import CredentialStore, MappingStore
from flowsync.sync.databases import create_databases, resolve_parent_page
from flowsync.sync.linker import IdentityLinker
from flowsync.sync.pages import create_pages
from flowsync.sync.relations import (
    link_relation_schemas,
    resolve_option_values,
    resolve_relation_values,
)
from flowsync.sync.source import fetch_collections

log = get_logger("flowsync.sync.orchestrator")

SessionFactory = Callable[[str, CredentialStore, SyncConfig], Awaitable[SyncSession]]


class SyncOrchestrator:
    """Run the full sync pipeline within one session.

    Parameters
    ----------
    session:
        Clients and limiters for this invocation.
    store:
        Where integration records and ID mappings live.
    """

    def __init__(self, session: SyncSession, store: MappingStore) -> None:
        self._session = session
        self._store = store
        self._linker = IdentityLinker(session)

    async def run(self, integration_id: str, collection_ids: list[str]) -> SyncResult:
        """Sync *collection_ids* for *integration_id*.

        Raises whatever the pipeline raises; :func:`run_selected_collections_sync`
        is the boundary that turns errors into results.
        """
        session = self._session
        warnings: list[SyncWarning] = []

        if not collection_ids:
            return SyncResult(success=True, message="No collections selected; nothing to sync")

        integration = await self._store.get_integration(integration_id)

        # ── Fetch ───────────────────────────────────────────────────────
        collections = await fetch_collections(session, collection_ids, integration)
        if not collections:
            return SyncResult(
                success=False,
                message="None of the selected collections could be fetched",
            )

        # ── Databases ───────────────────────────────────────────────────
        existing = {
            m.collection_id: m for m in await self._store.get_collection_mappings(integration_id)
        }
        needs_parent = any(data.collection.id not in existing for data in collections)
        parent_page_id = await resolve_parent_page(session, integration) if needs_parent else None
        databases = await create_databases(session, collections, existing, parent_page_id, warnings)
        if not databases:
            return SyncResult(
                success=False,
                message="No databases could be created",
                warnings=warnings,
            )
        items_by_collection = {data.collection.id: data.items for data in collections}
        for info in databases:
            info.items = items_by_collection.get(info.collection_id, [])

        # ── Back-reference slots ────────────────────────────────────────
        await settle(
            [self._linker.ensure_destination_field(info.database_id) for info in databases]
            + [self._linker.ensure_source_field(info.collection_id) for info in databases]
        )

        await self._store.save_collection_mappings(
            integration_id,
            [
                CollectionMapping(
                    integration_id=integration_id,
                    collection_id=info.collection_id,
                    database_id=info.database_id,
                    collection_name=info.collection.display_name,
                )
                for info in databases
            ],
        )

        # ── Relations (schema) ──────────────────────────────────────────
        known_databases = {
            m.collection_id: m.database_id
            for m in await self._store.get_collection_mappings(integration_id)
        }
        relation_schema_stats = await link_relation_schemas(session, databases, known_databases)

        # ── Pages ───────────────────────────────────────────────────────
        page_stats, id_map = await create_pages(
            session, databases, self._store, integration_id, self._linker, warnings
        )
        session.metrics.gauge("flowsync.id_map_size", len(id_map))

        result = SyncResult(
            success=True,
            message="",
            databases_created=len(databases),
            page_sync_stats=page_stats,
            relation_schema_stats=relation_schema_stats,
            warnings=warnings,
        )

        if not id_map:
            result.message = (
                f"Synced {len(databases)} database(s); no pages were created or linked, "
                "so relation and option values were skipped"
            )
            return result

        # ── Values ──────────────────────────────────────────────────────
        relation_map = await self._referenced_pages(integration_id, databases)
        relation_map.update(id_map)
        result.relation_sync_stats = await resolve_relation_values(
            session, databases, relation_map, warnings
        )
        result.option_sync_stats = await resolve_option_values(session, databases, id_map, warnings)
        result.message = (
            f"Synced {len(databases)} database(s) and {page_stats.created} new page(s)"
        )
        return result

    async def _referenced_pages(
        self,
        integration_id: str,
        databases: list[DatabaseInfo],
    ) -> dict[str, str]:
        """Item-to-page pairs of referenced collections synced in earlier runs."""
        synced = {info.collection_id for info in databases}
        referenced = {
            f.collection_id
            for info in databases
            for f in info.collection.fields
            if f.type in REFERENCE_TYPES and f.collection_id and f.collection_id not in synced
        }
        pages: dict[str, str] = {}
        for collection_id in sorted(referenced):
            for mapping in await self._store.list_item_mappings(
                integration_id, collection_id=collection_id
            ):
                pages[mapping.item_id] = mapping.page_id
        return pages


async def run_selected_collections_sync(
    user_id: str,
    integration_id: str,
    collection_ids: list[str],
    *,
    credentials: CredentialStore,
    store: MappingStore,
    config: SyncConfig | None = None,
    session_factory: SessionFactory | None = None,
) -> SyncResult:
    """Open a session for *user_id* and run the bulk sync.

    Parameters
    ----------
    session_factory:
        Builds the session; defaults to :meth:`SyncSession.open`.

    Returns
    -------
    SyncResult
        Never raises.  Hard failures (missing credentials, zero databases,
        unexpected errors) come back with ``success=False``.
    """
    config = config or SyncConfig()
    factory = session_factory or SyncSession.open
    started = time.monotonic()
    metrics = config.metrics
    log.info(
        "Sync started",
        extra={
            "extra_fields": {
                "op": "sync",
                "user_id": user_id,
                "integration_id": integration_id,
                "collections": len(collection_ids),
            }
        },
    )

    try:
        session = await factory(user_id, credentials, config)
        try:
            result = await SyncOrchestrator(session, store).run(integration_id, collection_ids)
        finally:
            await session.close()
    except Exception as exc:
        log.error(
            "Sync failed",
            extra={
                "extra_fields": {
                    "op": "sync",
                    "user_id": user_id,
                    "integration_id": integration_id,
                    "error": repr(exc),
                }
            },
            exc_info=True,
        )
        result = SyncResult(success=False, message=f"Sync failed: {exc}", error=exc)

    elapsed_ms = (time.monotonic() - started) * 1000
    if metrics is not None:
        outcome = "success" if result.success else "failure"
        metrics.timing("flowsync.sync_duration_ms", elapsed_ms, tags={"outcome": outcome})
        for warning in result.warnings:
            metrics.increment("flowsync.sync_warnings_total", tags={"code": warning.code})
    log.info(
        "Sync finished",
        extra={
            "extra_fields": {
                "op": "sync",
                "success": result.success,
                "elapsed_ms": round(elapsed_ms, 1),
                "warnings": len(result.warnings),
            }
        },
    )
    return result
