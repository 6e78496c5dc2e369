"""Incremental sync driven by Webflow item webhooks.

Each event touches a single item and reuses the bulk pipeline's building
blocks: the schema mapper, the HTML converter and the identity linker.

* ``collection_item_created`` creates a minimal page (title, item-ID
  back-reference, status).  Content follows with the next change event,
  which keeps webhook handling fast.
* ``collection_item_changed`` re-maps every property, resolves choice and
  relation values and overwrites the page body.  An item without a
  mapping is created in full.
* ``collection_item_deleted`` archives the page and deletes the mapping,
  even when archiving fails.

Handlers never raise.  Every outcome is a
:class:`~flowsync.models.WebhookResult`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from flowsync.concurrency import settle
from flowsync.config import SyncConfig
from flowsync.errors import FlowSyncError, FlowSyncWebhookPayloadError
from flowsync.mapping.content import build_page_blocks
from flowsync.mapping.field_types import CHOICE_TYPES, REFERENCE_TYPES
from flowsync.mapping.normalize import normalize_reference_ids
from flowsync.mapping.values import (
    map_choice_value,
    map_item_properties,
    property_type,
    relation_value,
)
from flowsync.models import (
    CollectionMapping,
    DatabaseInfo,
    IntegrationRecord,
    ItemMapping,
    SyncWarning,
    WebflowCollection,
    WebflowItem,
    WebhookResult,
)
from flowsync.observability import get_logger, record_warning
from flowsync.session import SyncSession
from flowsync.store import CredentialStore, MappingStore
from flowsync.sync.linker import IdentityLinker
from flowsync.sync.pages import create_item_page, write_page_body
from flowsync.sync.relations import resolve_relation_targets

log = get_logger("flowsync.sync.webhooks")

SessionFactory = Callable[[str, CredentialStore, SyncConfig], Awaitable[SyncSession]]


class WebhookHandlerBase:
    """Session and integration plumbing shared by the webhook handlers.

    Parameters
    ----------
    store:
        Integration records and ID mappings.
    credentials:
        Token source for the integration's user.
    config:
        Shared configuration.
    session_factory:
        Builds a session for a user; defaults to :meth:`SyncSession.open`.
    integration_id:
        Integration whose mappings the events apply to, for deployments
        that register one webhook endpoint per integration.  When ``None``
        the integration is taken from the first collection mapping that
        matches the event.
    """

    def __init__(
        self,
        store: MappingStore,
        credentials: CredentialStore,
        config: SyncConfig | None = None,
        session_factory: SessionFactory | None = None,
        integration_id: str | None = None,
    ) -> None:
        self._store = store
        self._integration_id = integration_id
        self._credentials = credentials
        self._config = config or SyncConfig()
        self._session_factory = session_factory or SyncSession.open

    async def _integration(self, integration_id: str) -> IntegrationRecord:
        integration = await self._store.get_integration(integration_id)
        if integration is None:
            raise FlowSyncWebhookPayloadError(
                message=f"Integration {integration_id} not found",
                context={"integration_id": integration_id},
            )
        return integration

    async def _open_session(self, integration: IntegrationRecord) -> SyncSession:
        return await self._session_factory(integration.user_id, self._credentials, self._config)

    @staticmethod
    def _failure(op: str, exc: Exception, **context: Any) -> WebhookResult:
        message = exc.message if isinstance(exc, FlowSyncError) else str(exc)
        log.error(
            "Webhook event failed",
            extra={"extra_fields": {"op": op, "error": message, **context}},
            exc_info=not isinstance(exc, FlowSyncError),
        )
        return WebhookResult(success=False, message=f"{op} failed: {message}", error=exc)


# ---------------------------------------------------------------------------
# Webflow -> Notion
# ---------------------------------------------------------------------------

def _payload_id(payload: Any) -> str | None:
    return payload.get("id") if isinstance(payload, dict) else None


def _require(payload: Any, event_type: str) -> dict[str, Any]:
    if not isinstance(payload, dict) or not payload.get("id"):
        raise FlowSyncWebhookPayloadError(
            message=f"{event_type} payload has no item ID",
            context={"event_type": event_type, "missing": "id"},
        )
    return payload


class WebflowWebhookHandler(WebhookHandlerBase):
    """Apply Webflow item events to the mapped Notion database."""

    _EVENTS = {
        "collection_item_created": "handle_item_created",
        "collection_item_changed": "handle_item_updated",
        "collection_item_deleted": "handle_item_deleted",
    }

    async def handle(self, event: dict[str, Any]) -> WebhookResult:
        """Dispatch a raw webhook body on its ``triggerType``."""
        trigger = (event or {}).get("triggerType")
        method = self._EVENTS.get(trigger or "")
        if method is None:
            return WebhookResult(success=True, message=f"Ignored event type {trigger!r}")
        return await getattr(self, method)(event.get("payload"))

    async def _database_for(self, collection_id: str | None) -> CollectionMapping | None:
        if not collection_id:
            return None
        return await self._store.find_collection_mapping(
            collection_id=collection_id, integration_id=self._integration_id
        )

    # ── created ─────────────────────────────────────────────────────────

    async def handle_item_created(self, payload: dict[str, Any]) -> WebhookResult:
        """Create a minimal page for a new item."""
        try:
            item = WebflowItem.from_api(_require(payload, "collection_item_created"))
            mapping = await self._database_for(item.collection_id)
            if mapping is None:
                return WebhookResult(success=True, message="Collection is not synced; ignored", item_id=item.id)

            existing = await self._store.find_item_mapping(mapping.integration_id, item_id=item.id)
            if existing is not None:
                return WebhookResult(
                    success=True,
                    message="Item already has a page",
                    page_id=existing.page_id,
                    item_id=item.id,
                )

            integration = await self._integration(mapping.integration_id)
            session = await self._open_session(integration)
            try:
                return await self._create_minimal(session, mapping, item)
            finally:
                await session.close()
        except Exception as exc:
            return self._failure("item_created", exc, item_id=_payload_id(payload))

    async def _create_minimal(
        self,
        session: SyncSession,
        mapping: CollectionMapping,
        item: WebflowItem,
    ) -> WebhookResult:
        linker = IdentityLinker(session)

        page_id = await linker.find_page_for_item(mapping.database_id, item.id)
        if page_id is not None:
            await self._store.save_item_mapping(
                ItemMapping(mapping.integration_id, item.id, page_id, mapping.collection_id)
            )
            return WebhookResult(
                success=True,
                message="Existing page found and mapping repaired",
                page_id=page_id,
                item_id=item.id,
            )

        database = await session.databases.retrieve(mapping.database_id)
        info = DatabaseInfo(
            collection=WebflowCollection(id=mapping.collection_id, display_name=mapping.collection_name),
            database_id=mapping.database_id,
            properties=database.get("properties") or {},
        )
        properties = map_item_properties(item, info.properties, [], session.config)
        page_id = await create_item_page(session, info, item, properties)

        try:
            await self._store.save_item_mapping(
                ItemMapping(mapping.integration_id, item.id, page_id, mapping.collection_id)
            )
        except Exception as exc:
            log.error(
                "Mapping could not be saved; archiving the new page",
                extra={"extra_fields": {"op": "item_created", "item_id": item.id, "page_id": page_id, "error": str(exc)}},
            )
            await session.pages.update(page_id, archived=True)
            return WebhookResult(
                success=False,
                message="Failed to save item mapping",
                error=exc,
                item_id=item.id,
            )

        if await linker.ensure_source_field(mapping.collection_id):
            await linker.write_source_id(mapping.collection_id, item.id, page_id)
        log.info(
            "Minimal page created",
            extra={"extra_fields": {"op": "item_created", "item_id": item.id, "page_id": page_id}},
        )
        return WebhookResult(
            success=True,
            message="Page created; content will sync on the next update",
            page_id=page_id,
            item_id=item.id,
        )

    # ── changed ─────────────────────────────────────────────────────────

    async def handle_item_updated(self, payload: dict[str, Any]) -> WebhookResult:
        """Overwrite the page of a changed item, creating it if unmapped."""
        try:
            item = WebflowItem.from_api(_require(payload, "collection_item_changed"))
            mapping = await self._database_for(item.collection_id)
            if mapping is None:
                return WebhookResult(success=True, message="Collection is not synced; ignored", item_id=item.id)

            integration = await self._integration(mapping.integration_id)
            session = await self._open_session(integration)
            try:
                return await self._update(session, mapping, item)
            finally:
                await session.close()
        except Exception as exc:
            return self._failure("item_updated", exc, item_id=_payload_id(payload))

    async def _related_pages(self, integration_id: str, item_ids: list[str]) -> dict[str, str]:
        mappings = await settle(
            self._store.find_item_mapping(integration_id, item_id=i) for i in item_ids
        )
        return {
            item_id: m.page_id
            for item_id, m in zip(item_ids, mappings)
            if isinstance(m, ItemMapping)
        }

    async def _deferred_values(
        self,
        integration_id: str,
        item: WebflowItem,
        collection: WebflowCollection,
        properties: dict[str, Any],
        warnings: list[SyncWarning],
    ) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for source_field in collection.fields:
            prop = properties.get(source_field.display_name)
            prop_type = property_type(prop)
            raw = item.field_data.get(source_field.slug)
            if source_field.type in CHOICE_TYPES and prop_type in ("select", "multi_select"):
                choice = map_choice_value(source_field, raw, prop, warnings, item_id=item.id)
                if choice.value is not None:
                    values[source_field.display_name] = choice.value
            elif source_field.type in REFERENCE_TYPES and prop_type == "relation":
                item_ids = normalize_reference_ids(raw)
                if item_ids is None:
                    continue
                found, missing = resolve_relation_targets(
                    item_ids, await self._related_pages(integration_id, item_ids)
                )
                if missing:
                    record_warning(
                        warnings,
                        log,
                        "MISSING_RELATION_TARGET",
                        f"Referenced items {missing!r} of field {source_field.display_name!r} have no page",
                        item_id=item.id,
                        field=source_field.display_name,
                        missing=missing,
                    )
                values[source_field.display_name] = relation_value(found)
        return values

    async def _update(
        self,
        session: SyncSession,
        mapping: CollectionMapping,
        item: WebflowItem,
    ) -> WebhookResult:
        warnings: list[SyncWarning] = []
        collection = WebflowCollection.from_api(await session.collections.get(mapping.collection_id))
        database = await session.databases.retrieve(mapping.database_id)
        properties_schema = database.get("properties") or {}

        properties = map_item_properties(item, properties_schema, collection.fields, session.config, warnings)
        properties.update(
            await self._deferred_values(mapping.integration_id, item, collection, properties_schema, warnings)
        )
        blocks = build_page_blocks(item, collection.fields, session.config, warnings)

        existing = await self._store.find_item_mapping(mapping.integration_id, item_id=item.id)
        if existing is None:
            info = DatabaseInfo(
                collection=collection,
                database_id=mapping.database_id,
                properties=properties_schema,
            )
            page_id = await create_item_page(session, info, item, properties, blocks)
            await self._store.save_item_mapping(
                ItemMapping(mapping.integration_id, item.id, page_id, mapping.collection_id)
            )
            linker = IdentityLinker(session)
            if await linker.ensure_source_field(mapping.collection_id):
                await linker.write_source_id(mapping.collection_id, item.id, page_id)
            return WebhookResult(
                success=True,
                message=f"Unmapped item created in full ({len(warnings)} warning(s))",
                page_id=page_id,
                item_id=item.id,
            )

        page_id = existing.page_id
        async with session.page_limiter:
            await session.pages.update(page_id, properties=properties)
            for child in await session.blocks.get_children(page_id):
                await session.blocks.delete(child["id"])
            await write_page_body(session, page_id, blocks)
        log.info(
            "Page updated from item",
            extra={
                "extra_fields": {
                    "op": "item_updated",
                    "item_id": item.id,
                    "page_id": page_id,
                    "blocks": len(blocks),
                    "warnings": len(warnings),
                }
            },
        )
        return WebhookResult(
            success=True,
            message=f"Page updated ({len(warnings)} warning(s))",
            page_id=page_id,
            item_id=item.id,
        )

    # ── deleted ─────────────────────────────────────────────────────────

    async def handle_item_deleted(self, payload: dict[str, Any]) -> WebhookResult:
        """Archive the item's page and drop its mapping."""
        try:
            item_id = _require(payload, "collection_item_deleted")["id"]
            mapping = await self._database_for(payload.get("collectionId"))
            scope = mapping.integration_id if mapping is not None else self._integration_id
            existing = await self._store.find_item_mapping(scope, item_id=item_id)
            if existing is None:
                return WebhookResult(success=True, message="No mapping found; nothing to delete", item_id=item_id)

            archived = False
            try:
                integration = await self._integration(existing.integration_id)
                session = await self._open_session(integration)
                try:
                    await session.pages.update(existing.page_id, archived=True)
                    archived = True
                finally:
                    await session.close()
            except FlowSyncError as exc:
                log.error(
                    "Failed to archive page of deleted item",
                    extra={
                        "extra_fields": {
                            "op": "item_deleted",
                            "item_id": item_id,
                            "page_id": existing.page_id,
                            "error": exc.message,
                        }
                    },
                )

            await self._store.delete_item_mapping(existing.integration_id, item_id=item_id)
            message = "Page archived and mapping deleted" if archived else (
                "Mapping deleted; the page could not be archived"
            )
            return WebhookResult(success=True, message=message, page_id=existing.page_id, item_id=item_id)
        except Exception as exc:
            return self._failure("item_deleted", exc, item_id=_payload_id(payload))
