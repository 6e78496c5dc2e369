"""Reverse sync driven by Notion page webhooks.

* ``page.created`` creates a draft Webflow item holding the page title and
  a slug, then persists the pair.  If the pair cannot be persisted the
  item is deleted again.  Pages that already carry a Webflow item ID were
  created by the forward sync and are ignored.
* ``page.properties_updated`` / ``page.content_updated`` map the page's
  properties and body back to ``fieldData`` and patch the item.
* ``page.deleted`` deletes the item, then the mapping regardless of the
  outcome.
"""

from __future__ import annotations

from typing import Any

from flowsync.converter.notion_to_html import NotionToHtmlRenderer
from flowsync.errors import FlowSyncError, FlowSyncWebhookPayloadError
from flowsync.mapping.content import content_fields, split_blocks_by_field
from flowsync.mapping.reverse import page_item_id, page_title, page_to_field_data
from flowsync.models import ItemMapping, WebflowCollection, WebhookResult
from flowsync.observability import get_logger
from flowsync.session import SyncSession
from flowsync.sync.linker import IdentityLinker
from flowsync.sync.webhooks import WebhookHandlerBase
from flowsync.utils.slug import slugify

log = get_logger("flowsync.sync.notion_webhooks")


def event_page_id(event: dict[str, Any]) -> str | None:
    """Page ID of an event, from ``entity`` or the legacy ``data`` shape."""
    entity = event.get("entity") or {}
    if entity.get("id"):
        return entity["id"]
    return (event.get("data") or {}).get("id")


def event_database_id(event: dict[str, Any]) -> str | None:
    """Parent database ID of an event, when the event carries one."""
    parent = (event.get("data") or {}).get("parent") or {}
    if parent.get("database_id"):
        return parent["database_id"]
    if parent.get("type") in ("database", "database_id") and parent.get("id"):
        return parent["id"]
    return None


async def fetch_block_tree(session: SyncSession, block_id: str) -> list[dict]:
    """Children of *block_id*, with nested children filled in."""
    blocks = await session.blocks.get_children(block_id)
    for block in blocks:
        if block.get("has_children"):
            block["children"] = await fetch_block_tree(session, block["id"])
    return blocks


class NotionWebhookHandler(WebhookHandlerBase):
    """Apply Notion page events to the mapped Webflow collection."""

    _EVENTS = {
        "page.created": "handle_page_created",
        "page.properties_updated": "handle_page_updated",
        "page.content_updated": "handle_page_updated",
        "page.updated": "handle_page_updated",
        "page.deleted": "handle_page_deleted",
    }

    async def handle(self, event: dict[str, Any]) -> WebhookResult:
        """Dispatch a raw webhook body on its ``type``."""
        event_type = (event or {}).get("type")
        method = self._EVENTS.get(event_type or "")
        if method is None:
            return WebhookResult(success=True, message=f"Ignored event type {event_type!r}")
        return await getattr(self, method)(event)

    @staticmethod
    def _page_id(event: Any, event_type: str) -> str:
        page_id = event_page_id(event) if isinstance(event, dict) else None
        if not page_id:
            raise FlowSyncWebhookPayloadError(
                message=f"{event_type} event has no page ID",
                context={"event_type": event_type, "missing": "page_id"},
            )
        return page_id

    # ── created ─────────────────────────────────────────────────────────

    async def handle_page_created(self, event: dict[str, Any]) -> WebhookResult:
        """Create a draft item for a page added to a synced database."""
        try:
            page_id = self._page_id(event, "page.created")
            database_id = event_database_id(event)
            if not database_id:
                raise FlowSyncWebhookPayloadError(
                    message="page.created event has no parent database",
                    context={"event_type": "page.created", "missing": "database_id"},
                )
            if await self._store.find_item_mapping(self._integration_id, page_id=page_id) is not None:
                return WebhookResult(success=True, message="Page is already mapped", page_id=page_id)
            mapping = await self._store.find_collection_mapping(
                database_id=database_id, integration_id=self._integration_id
            )
            if mapping is None:
                return WebhookResult(success=True, message="Database is not synced; ignored", page_id=page_id)

            integration = await self._integration(mapping.integration_id)
            session = await self._open_session(integration)
            try:
                page = await session.pages.retrieve(page_id)
                if page_item_id(page, session.config):
                    return WebhookResult(
                        success=True,
                        message="Page already carries a Webflow item ID; ignored",
                        page_id=page_id,
                    )

                title = page_title(page, session.config) or "Untitled"
                async with session.webflow_limiter:
                    created = await session.items.create(
                        mapping.collection_id,
                        {"name": title, "slug": slugify(title)},
                        is_draft=True,
                    )
                item_id = created["id"]

                try:
                    await self._store.save_item_mapping(
                        ItemMapping(mapping.integration_id, item_id, page_id, mapping.collection_id)
                    )
                except Exception as exc:
                    log.error(
                        "Mapping could not be saved; deleting the new item",
                        extra={
                            "extra_fields": {
                                "op": "page_created",
                                "page_id": page_id,
                                "item_id": item_id,
                                "error": str(exc),
                            }
                        },
                    )
                    async with session.webflow_limiter:
                        await session.items.delete(mapping.collection_id, item_id)
                    return WebhookResult(
                        success=False,
                        message="Failed to save item mapping",
                        error=exc,
                        page_id=page_id,
                    )

                linker = IdentityLinker(session)
                await linker.write_destination_id(page_id, item_id)
                if await linker.ensure_source_field(mapping.collection_id):
                    await linker.write_source_id(mapping.collection_id, item_id, page_id)
            finally:
                await session.close()

            log.info(
                "Draft item created from page",
                extra={"extra_fields": {"op": "page_created", "page_id": page_id, "item_id": item_id}},
            )
            return WebhookResult(
                success=True,
                message="Draft item created; content will sync on the next update",
                page_id=page_id,
                item_id=item_id,
            )
        except Exception as exc:
            return self._failure("page_created", exc)

    # ── updated ─────────────────────────────────────────────────────────

    async def handle_page_updated(self, event: dict[str, Any]) -> WebhookResult:
        """Patch the mapped item from the page's properties and body."""
        try:
            page_id = self._page_id(event, "page.updated")
            existing = await self._store.find_item_mapping(self._integration_id, page_id=page_id)
            if existing is None:
                return WebhookResult(success=True, message="No mapping found; no sync needed", page_id=page_id)

            integration = await self._integration(existing.integration_id)
            session = await self._open_session(integration)
            try:
                page = await session.pages.retrieve(page_id)
                collection_id = existing.collection_id or await self._collection_of(
                    page, existing.integration_id
                )
                if collection_id is None:
                    return WebhookResult(
                        success=False,
                        message="Collection mapping not found",
                        page_id=page_id,
                        item_id=existing.item_id,
                    )
                collection = WebflowCollection.from_api(await session.collections.get(collection_id))

                body_html: dict[str, str] = {}
                rich = content_fields(collection.fields)
                if rich:
                    renderer = NotionToHtmlRenderer()
                    blocks = await fetch_block_tree(session, page_id)
                    for name, section in split_blocks_by_field(blocks, rich).items():
                        body_html[name] = renderer.render_blocks(section)

                field_data = page_to_field_data(
                    page, collection.fields, session.config, body_html=body_html
                )
                async with session.webflow_limiter:
                    await session.items.update(collection_id, existing.item_id, field_data)
            finally:
                await session.close()

            log.info(
                "Item updated from page",
                extra={
                    "extra_fields": {
                        "op": "page_updated",
                        "page_id": page_id,
                        "item_id": existing.item_id,
                        "fields": len(field_data),
                    }
                },
            )
            return WebhookResult(
                success=True,
                message="Item updated",
                page_id=page_id,
                item_id=existing.item_id,
            )
        except Exception as exc:
            return self._failure("page_updated", exc)

    async def _collection_of(self, page: dict[str, Any], integration_id: str) -> str | None:
        database_id = (page.get("parent") or {}).get("database_id")
        if not database_id:
            return None
        mapping = await self._store.find_collection_mapping(
            database_id=database_id, integration_id=integration_id
        )
        return mapping.collection_id if mapping is not None else None

    # ── deleted ─────────────────────────────────────────────────────────

    async def handle_page_deleted(self, event: dict[str, Any]) -> WebhookResult:
        """Delete the mapped item, then the mapping regardless."""
        try:
            page_id = self._page_id(event, "page.deleted")
            existing = await self._store.find_item_mapping(self._integration_id, page_id=page_id)
            if existing is None:
                return WebhookResult(success=True, message="No mapping found; no action needed", page_id=page_id)

            collection_id = existing.collection_id
            if collection_id is None:
                database_id = event_database_id(event)
                mapping = (
                    await self._store.find_collection_mapping(
                        database_id=database_id, integration_id=existing.integration_id
                    )
                    if database_id else None
                )
                collection_id = mapping.collection_id if mapping is not None else None

            deleted = False
            if collection_id is not None:
                try:
                    integration = await self._integration(existing.integration_id)
                    session = await self._open_session(integration)
                    try:
                        async with session.webflow_limiter:
                            await session.items.delete(collection_id, existing.item_id)
                        deleted = True
                    finally:
                        await session.close()
                except FlowSyncError as exc:
                    log.error(
                        "Failed to delete item of deleted page",
                        extra={
                            "extra_fields": {
                                "op": "page_deleted",
                                "page_id": page_id,
                                "item_id": existing.item_id,
                                "error": exc.message,
                            }
                        },
                    )

            await self._store.delete_item_mapping(existing.integration_id, page_id=page_id)
            if collection_id is None:
                return WebhookResult(
                    success=False,
                    message="Collection mapping not found; item mapping removed",
                    page_id=page_id,
                    item_id=existing.item_id,
                )
            message = "Item and mapping deleted" if deleted else (
                "Mapping deleted; the item could not be deleted"
            )
            return WebhookResult(success=True, message=message, page_id=page_id, item_id=existing.item_id)
        except Exception as exc:
            return self._failure("page_deleted", exc)
