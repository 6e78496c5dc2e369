"""Page creation phase.

One page per live item, created with its mapped properties and converted
body.  After creation the pair is persisted and both back-references are
written.  Failures are isolated per item and counted in
:class:`~flowsync.models.PageSyncStats`.
"""

from __future__ import annotations

import asyncio

from flowsync.api.retries import create_with_conflict_retry
from flowsync.concurrency import settle
from flowsync.errors import FlowSyncError
from flowsync.mapping.content import build_page_blocks
from flowsync.mapping.values import map_item_properties
from flowsync.models import (
    DatabaseInfo,
    ItemMapping,
    PageSyncStats,
    SchemaState,
    SyncWarning,
    WebflowItem,
)
from flowsync.observability import get_logger
from flowsync.session import SyncSession
from flowsync.store import MappingStore
from flowsync.sync.linker import IdentityLinker
from flowsync.utils.chunk import chunk_children

log = get_logger("flowsync.sync.pages")

_FIRST_BATCH = 100


async def write_page_body(
    session: SyncSession,
    page_id: str,
    blocks: list[dict],
) -> None:
    """Append *blocks* to a page in batches of 100."""
    for index, batch in enumerate(chunk_children(blocks, _FIRST_BATCH)):
        if index and session.config.append_batch_delay > 0:
            await asyncio.sleep(session.config.append_batch_delay)
        await session.blocks.append_children(page_id, batch)


async def create_item_page(
    session: SyncSession,
    info: DatabaseInfo,
    item: WebflowItem,
    properties: dict,
    blocks: list[dict] | None = None,
) -> str:
    """Create the page of *item* in *info*'s database and return its ID.

    The first 100 blocks travel with the creation request; the rest are
    appended afterwards.  Runs under the session's page limiter.
    """
    config = session.config
    blocks = blocks or []
    first, rest = blocks[:_FIRST_BATCH], blocks[_FIRST_BATCH:]
    async with session.page_limiter:
        page = await create_with_conflict_retry(
            lambda: session.pages.create(
                {"database_id": info.database_id},
                properties,
                first or None,
            ),
            label="page",
            retry_delay=config.conflict_retry_delay,
            settle_delay=config.create_settle_delay,
        )
        if rest:
            if config.append_batch_delay > 0:
                await asyncio.sleep(config.append_batch_delay)
            await write_page_body(session, page["id"], rest)
    session.metrics.increment("flowsync.pages_created_total", tags={"collection": info.collection_id})
    return page["id"]


async def _archive_orphan(session: SyncSession, page_id: str) -> None:
    try:
        async with session.page_limiter:
            await session.pages.update(page_id, archived=True)
    except FlowSyncError as exc:
        log.error(
            "Failed to archive unmapped page",
            extra={"extra_fields": {"op": "create_page", "page_id": page_id, "error": exc.message}},
        )


async def create_pages(
    session: SyncSession,
    databases: list[DatabaseInfo],
    store: MappingStore,
    integration_id: str,
    linker: IdentityLinker,
    warnings: list[SyncWarning] | None = None,
) -> tuple[PageSyncStats, dict[str, str]]:
    """Create pages for every item of every database.

    Archived items are skipped.  Items that already have a persisted
    mapping in *integration_id* are not recreated; their pair still goes
    into the returned ID map so later phases can point relations at them.
    A page whose mapping cannot be saved is archived again and counted as
    a failed creation.

    Returns
    -------
    tuple
        The phase statistics and the item-ID to page-ID map.
    """
    stats = PageSyncStats()
    id_map: dict[str, str] = {}

    for info in databases:
        info.require(SchemaState.RELATIONS_LINKED)

    async def one(info: DatabaseInfo, item: WebflowItem) -> None:
        if item.is_archived:
            stats.skipped_archived += 1
            return
        existing = await store.find_item_mapping(integration_id, item_id=item.id)
        if existing is not None:
            stats.already_linked += 1
            id_map[item.id] = existing.page_id
            return

        fields = info.collection.fields
        try:
            properties = map_item_properties(item, info.properties, fields, session.config, warnings)
            blocks = build_page_blocks(item, fields, session.config, warnings)
            page_id = await create_item_page(session, info, item, properties, blocks)
        except FlowSyncError as exc:
            stats.failed_creation += 1
            log.error(
                "Failed to create page",
                extra={
                    "extra_fields": {
                        "op": "create_page",
                        "item_id": item.id,
                        "database_id": info.database_id,
                        "error": exc.message,
                        "context": exc.context,
                    }
                },
            )
            return

        try:
            await store.save_item_mapping(
                ItemMapping(
                    integration_id=integration_id,
                    item_id=item.id,
                    page_id=page_id,
                    collection_id=info.collection_id,
                )
            )
        except Exception as exc:
            stats.failed_creation += 1
            log.error(
                "Mapping could not be saved; archiving the new page",
                extra={
                    "extra_fields": {
                        "op": "create_page",
                        "item_id": item.id,
                        "page_id": page_id,
                        "error": str(exc),
                    }
                },
            )
            await _archive_orphan(session, page_id)
            return

        stats.created += 1
        id_map[item.id] = page_id

        destination_ok = await linker.write_destination_id(page_id, item.id)
        source_ok = await linker.write_source_id(info.collection_id, item.id, page_id)
        if destination_ok and source_ok:
            stats.updated_links += 1
        else:
            stats.failed_link_update += 1

    tasks = [one(info, item) for info in databases for item in info.items]
    for outcome in await settle(tasks):
        if isinstance(outcome, BaseException):
            stats.failed_creation += 1
            log.error(
                "Unexpected page creation failure",
                extra={"extra_fields": {"op": "create_page", "error": repr(outcome)}},
            )

    for info in databases:
        info.advance(SchemaState.ITEMS_SYNCED)

    log.info(
        "Pages created",
        extra={
            "extra_fields": {
                "op": "create_pages",
                "created": stats.created,
                "failed": stats.failed_creation,
                "already_linked": stats.already_linked,
                "skipped_archived": stats.skipped_archived,
            }
        },
    )
    return stats, id_map
