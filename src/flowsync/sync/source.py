"""Source fetch: selected Webflow collections with their items."""

from __future__ import annotations

from flowsync.models import CollectionData, IntegrationRecord, WebflowCollection, WebflowItem
from flowsync.observability import get_logger
from flowsync.session import SyncSession

log = get_logger("flowsync.sync.source")


async def resolve_site_id(
    session: SyncSession,
    integration: IntegrationRecord | None = None,
) -> str | None:
    """Site of the integration, the configured default, or the first site."""
    if integration is not None and integration.webflow_site_id:
        return integration.webflow_site_id
    if session.config.webflow_site_id:
        return session.config.webflow_site_id
    sites = await session.sites.list()
    return sites[0].get("id") if sites else None


async def fetch_collection(session: SyncSession, collection_id: str) -> CollectionData:
    """Fetch one collection's schema and every item."""
    schema = await session.collections.get(collection_id)
    collection = WebflowCollection.from_api(schema)
    if not collection.id:
        collection.id = collection_id
    raw_items = await session.items.list(collection_id)
    items = [WebflowItem.from_api(raw, collection_id) for raw in raw_items]
    return CollectionData(collection=collection, items=items)


async def fetch_collections(
    session: SyncSession,
    collection_ids: list[str],
    integration: IntegrationRecord | None = None,
) -> list[CollectionData]:
    """Fetch the selected collections in selection order.

    When a site can be resolved, selected IDs that are not collections of
    that site are dropped with a warning log.
    """
    selected = list(dict.fromkeys(collection_ids))
    site_id = await resolve_site_id(session, integration)
    if site_id is not None:
        available = {c.get("id") for c in await session.collections.list(site_id)}
        unknown = [cid for cid in selected if cid not in available]
        if unknown:
            log.warning(
                "Selected collections not found on site",
                extra={"extra_fields": {"op": "fetch", "site_id": site_id, "collection_ids": unknown}},
            )
        selected = [cid for cid in selected if cid in available]

    data: list[CollectionData] = []
    for collection_id in selected:
        data.append(await fetch_collection(session, collection_id))
    log.info(
        "Fetched source collections",
        extra={
            "extra_fields": {
                "op": "fetch",
                "collections": len(data),
                "items": sum(len(d.items) for d in data),
            }
        },
    )
    return data
