"""Database creation phase.

Every selected collection gets a container page under the parent page and
an inline database inside it.  A collection that already has a persisted
mapping reuses its database instead, so running the same selection twice
never duplicates schema.
"""

from __future__ import annotations

from flowsync.api.retries import create_with_conflict_retry
from flowsync.concurrency import settle
from flowsync.errors import FlowSyncConfigurationError, FlowSyncError
from flowsync.mapping.schema import build_database_properties
from flowsync.models import (
    CollectionData,
    CollectionMapping,
    DatabaseInfo,
    IntegrationRecord,
    SchemaState,
    SyncWarning,
)
from flowsync.notion_api import title_text
from flowsync.observability import get_logger
from flowsync.session import SyncSession

log = get_logger("flowsync.sync.databases")


async def resolve_parent_page(
    session: SyncSession,
    integration: IntegrationRecord | None = None,
) -> str:
    """Page under which collection databases are created.

    Raises
    ------
    FlowSyncConfigurationError
        When no parent page is configured and none is shared with the
        integration.
    """
    if integration is not None and integration.notion_parent_page_id:
        return integration.notion_parent_page_id
    if session.config.notion_parent_page_id:
        return session.config.notion_parent_page_id
    page = await session.search.first_page()
    if page is None or not page.get("id"):
        raise FlowSyncConfigurationError(
            message="No Notion page is shared with the integration",
            context={"user_id": session.user_id, "service": "notion"},
        )
    return page["id"]


async def _reuse_database(
    session: SyncSession,
    data: CollectionData,
    mapping: CollectionMapping,
) -> DatabaseInfo | None:
    try:
        database = await session.databases.retrieve(mapping.database_id)
    except FlowSyncError as exc:
        log.warning(
            "Mapped database could not be retrieved; creating a new one",
            extra={
                "extra_fields": {
                    "op": "reuse_database",
                    "collection_id": data.collection.id,
                    "database_id": mapping.database_id,
                    "error": exc.message,
                }
            },
        )
        return None
    if database.get("archived") or database.get("in_trash"):
        return None
    info = DatabaseInfo(
        collection=data.collection,
        database_id=mapping.database_id,
        properties=database.get("properties") or {},
        reused=True,
    )
    info.advance(SchemaState.DATABASE_CREATED)
    return info


async def _create_database(
    session: SyncSession,
    data: CollectionData,
    parent_page_id: str,
    warnings: list[SyncWarning],
) -> DatabaseInfo:
    config = session.config
    collection = data.collection
    title = collection.display_name or f"Database for {collection.id}"
    properties = build_database_properties(collection.fields, config, warnings)

    async with session.database_limiter:
        container = await create_with_conflict_retry(
            lambda: session.pages.create(
                {"type": "page_id", "page_id": parent_page_id},
                {"title": {"title": title_text(title)}},
            ),
            label="container page",
            retry_delay=config.conflict_retry_delay,
            settle_delay=config.create_settle_delay,
        )
        database = await create_with_conflict_retry(
            lambda: session.databases.create(container["id"], title, properties),
            label="database",
            retry_delay=config.conflict_retry_delay,
            settle_delay=config.create_settle_delay,
        )

    info = DatabaseInfo(
        collection=collection,
        database_id=database["id"],
        properties=database.get("properties") or {},
    )
    info.advance(SchemaState.DATABASE_CREATED)
    log.info(
        "Database created",
        extra={
            "extra_fields": {
                "op": "create_database",
                "collection_id": collection.id,
                "database_id": info.database_id,
                "properties": len(properties),
            }
        },
    )
    return info


async def create_databases(
    session: SyncSession,
    collections: list[CollectionData],
    existing: dict[str, CollectionMapping],
    parent_page_id: str | None,
    warnings: list[SyncWarning],
) -> list[DatabaseInfo]:
    """Create or reuse one database per collection.

    Parameters
    ----------
    existing:
        Persisted mappings keyed by collection ID.
    parent_page_id:
        Parent for new databases.  May be ``None`` when every collection
        is already mapped.

    Returns
    -------
    list[DatabaseInfo]
        One entry per collection that has a database, in input order.
        Collections whose creation failed are logged and left out.
    """

    async def one(data: CollectionData) -> DatabaseInfo:
        mapping = existing.get(data.collection.id)
        if mapping is not None:
            reused = await _reuse_database(session, data, mapping)
            if reused is not None:
                return reused
        if parent_page_id is None:
            raise FlowSyncConfigurationError(
                message="No parent page for database creation",
                context={"collection_id": data.collection.id, "service": "notion"},
            )
        return await _create_database(session, data, parent_page_id, warnings)

    outcomes = await settle(one(data) for data in collections)
    databases: list[DatabaseInfo] = []
    for data, outcome in zip(collections, outcomes):
        if isinstance(outcome, BaseException):
            log.error(
                "Database creation failed",
                extra={
                    "extra_fields": {
                        "op": "create_database",
                        "collection_id": data.collection.id,
                        "error": str(outcome),
                    }
                },
            )
            continue
        databases.append(outcome)
    return databases
