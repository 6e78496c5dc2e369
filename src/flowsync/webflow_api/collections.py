"""Collection API wrapper for the Webflow Data API v2."""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncWebflowTransport


class AsyncCollectionAPI:
    """Asynchronous wrapper for Webflow collections and their fields.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncWebflowTransport` instance.
    """

    def __init__(self, transport: AsyncWebflowTransport) -> None:
        self._transport = transport

    async def list(self, site_id: str) -> list[dict[str, Any]]:
        """List a site's collections (without field definitions)."""
        data = await self._transport.request("GET", f"/sites/{site_id}/collections")
        return data.get("collections") or []

    async def get(self, collection_id: str) -> dict[str, Any]:
        """Retrieve a collection with its full field list."""
        return await self._transport.request("GET", f"/collections/{collection_id}")

    async def create_field(self, collection_id: str, field: dict[str, Any]) -> dict[str, Any]:
        """Add a field to a collection.

        Parameters
        ----------
        field:
            Field definition, e.g. ``{"type": "PlainText", "displayName":
            "Notion Page ID", "slug": "notion-page-id", "isRequired": False}``.

        Returns
        -------
        dict
            The created field.  Webflow may assign a slug other than the
            one requested, so callers must read it from the response.
        """
        return await self._transport.request(
            "POST", f"/collections/{collection_id}/fields", json=field
        )
