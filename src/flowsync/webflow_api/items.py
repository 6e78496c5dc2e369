"""Item API wrapper for the Webflow Data API v2.

Items are read and written as staged (CMS) items; field values travel in
``fieldData`` keyed by field slug.
"""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncWebflowTransport


class AsyncItemAPI:
    """Asynchronous wrapper for Webflow collection items.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncWebflowTransport` instance.
    """

    def __init__(self, transport: AsyncWebflowTransport) -> None:
        self._transport = transport

    async def list(self, collection_id: str) -> list[dict[str, Any]]:
        """Return every item of a collection, following offset pagination."""
        return [
            item
            async for item in self._transport.paginate(
                f"/collections/{collection_id}/items", key="items"
            )
        ]

    async def get(self, collection_id: str, item_id: str) -> dict[str, Any]:
        return await self._transport.request(
            "GET", f"/collections/{collection_id}/items/{item_id}"
        )

    async def create(
        self,
        collection_id: str,
        field_data: dict[str, Any],
        *,
        is_draft: bool = True,
        is_archived: bool = False,
    ) -> dict[str, Any]:
        """Create an item.  ``field_data`` must contain ``name`` and ``slug``."""
        body = {
            "isArchived": is_archived,
            "isDraft": is_draft,
            "fieldData": field_data,
        }
        return await self._transport.request(
            "POST", f"/collections/{collection_id}/items", json=body
        )

    async def update(
        self,
        collection_id: str,
        item_id: str,
        field_data: dict[str, Any],
    ) -> dict[str, Any]:
        """Patch the given fields of an item; other fields are untouched."""
        return await self._transport.request(
            "PATCH",
            f"/collections/{collection_id}/items/{item_id}",
            json={"fieldData": field_data},
        )

    async def delete(self, collection_id: str, item_id: str) -> dict[str, Any]:
        return await self._transport.request(
            "DELETE", f"/collections/{collection_id}/items/{item_id}"
        )
