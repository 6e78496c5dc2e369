"""Identity linking between Webflow items and Notion pages.

An item and its page each carry the other's ID: the page in the
``Webflow Item ID`` rich-text property, the item in the ``Notion Page ID``
plain-text field.  :class:`IdentityLinker` makes sure both back-reference
slots exist and writes them.  Writes are best effort: a failure is logged
and reported as ``False``, never raised, so one bad item cannot stop a
sync.
"""

from __future__ import annotations

import asyncio

from flowsync.errors import FlowSyncError
from flowsync.mapping.values import property_type, text_runs
from flowsync.models import WebflowCollection
from flowsync.observability import get_logger
from flowsync.session import SyncSession

log = get_logger("flowsync.sync.linker")


class IdentityLinker:
    """Ensure and write the two back-references of an item/page pair.

    ``ensure_*`` methods are idempotent.  Concurrent calls for the same
    database or collection are serialised so the slot is created at most
    once.

    Parameters
    ----------
    session:
        The session whose clients and limiters are used.
    """

    def __init__(self, session: SyncSession) -> None:
        self._session = session
        self._config = session.config
        self._locks: dict[str, asyncio.Lock] = {}
        self._ensured: set[str] = set()

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    # ── Slots ───────────────────────────────────────────────────────────

    async def ensure_destination_field(self, database_id: str) -> bool:
        """Make sure *database_id* has the item-ID rich-text property."""
        key = f"notion:{database_id}"
        async with self._lock(key):
            if key in self._ensured:
                return True
            name = self._config.item_id_property
            try:
                database = await self._session.databases.retrieve(database_id)
                existing = (database.get("properties") or {}).get(name)
                if existing is None:
                    await self._session.databases.update(database_id, {name: {"rich_text": {}}})
                    log.info(
                        "Added item ID property",
                        extra={"extra_fields": {"op": "ensure_destination_field", "database_id": database_id}},
                    )
                elif property_type(existing) != "rich_text":
                    log.warning(
                        "Item ID property has an unexpected type",
                        extra={
                            "extra_fields": {
                                "op": "ensure_destination_field",
                                "database_id": database_id,
                                "property_type": property_type(existing),
                            }
                        },
                    )
                    return False
            except FlowSyncError as exc:
                log.error(
                    "Could not ensure item ID property",
                    extra={
                        "extra_fields": {
                            "op": "ensure_destination_field",
                            "database_id": database_id,
                            "error": exc.message,
                        }
                    },
                )
                return False
            self._ensured.add(key)
            return True

    async def ensure_source_field(self, collection_id: str) -> bool:
        """Make sure *collection_id* has the page-ID plain-text field."""
        key = f"webflow:{collection_id}"
        async with self._lock(key):
            if key in self._ensured:
                return True
            try:
                if await self._source_field_slug(collection_id) is None:
                    async with self._session.webflow_limiter:
                        created = await self._session.collections.create_field(
                            collection_id,
                            {
                                "type": "PlainText",
                                "displayName": self._config.page_id_field_name,
                                "slug": self._config.page_id_field_slug,
                                "isRequired": False,
                            },
                        )
                    log.info(
                        "Added page ID field",
                        extra={
                            "extra_fields": {
                                "op": "ensure_source_field",
                                "collection_id": collection_id,
                                "slug": created.get("slug"),
                            }
                        },
                    )
            except FlowSyncError as exc:
                log.error(
                    "Could not ensure page ID field",
                    extra={
                        "extra_fields": {
                            "op": "ensure_source_field",
                            "collection_id": collection_id,
                            "error": exc.message,
                        }
                    },
                )
                return False
            self._ensured.add(key)
            return True

    async def _source_field_slug(self, collection_id: str) -> str | None:
        # Webflow may assign a different slug than requested, so the slug
        # is always looked up by display name.
        schema = await self._session.collections.get(collection_id)
        field = WebflowCollection.from_api(schema).field_by_name(self._config.page_id_field_name)
        return field.slug if field is not None and field.slug else None

    # ── Writes ──────────────────────────────────────────────────────────

    async def write_destination_id(self, page_id: str, item_id: str) -> bool:
        """Store *item_id* on the page."""
        properties = {self._config.item_id_property: {"rich_text": text_runs(item_id)}}
        try:
            async with self._session.page_limiter:
                await self._session.pages.update(page_id, properties=properties)
        except FlowSyncError as exc:
            log.error(
                "Failed to write item ID to page",
                extra={
                    "extra_fields": {
                        "op": "write_destination_id",
                        "page_id": page_id,
                        "item_id": item_id,
                        "error": exc.message,
                    }
                },
            )
            return False
        return True

    async def write_source_id(self, collection_id: str, item_id: str, page_id: str) -> bool:
        """Store *page_id* on the item."""
        try:
            slug = await self._source_field_slug(collection_id)
            if slug is None:
                log.warning(
                    "Page ID field missing on collection",
                    extra={
                        "extra_fields": {
                            "op": "write_source_id",
                            "collection_id": collection_id,
                            "item_id": item_id,
                        }
                    },
                )
                return False
            async with self._session.webflow_limiter:
                await self._session.items.update(collection_id, item_id, {slug: page_id})
        except FlowSyncError as exc:
            log.error(
                "Failed to write page ID to item",
                extra={
                    "extra_fields": {
                        "op": "write_source_id",
                        "collection_id": collection_id,
                        "item_id": item_id,
                        "page_id": page_id,
                        "error": exc.message,
                    }
                },
            )
            return False
        return True

    # ── Lookup ──────────────────────────────────────────────────────────

    async def find_page_for_item(self, database_id: str, item_id: str) -> str | None:
        """Page of *database_id* whose item-ID property equals *item_id*."""
        pages = await self._session.databases.query_by_property(
            database_id, self._config.item_id_property, item_id
        )
        for page in pages:
            if not page.get("archived") and page.get("id"):
                return page["id"]
        return None
