"""Page API wrapper for the Notion API.

Thin wrapper around the Notion ``/pages`` endpoints.  All HTTP concerns
(auth, retries, rate limiting) are delegated to the transport.
"""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncNotionTransport


class AsyncPageAPI:
    """Asynchronous wrapper for the Notion Pages API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncNotionTransport` instance.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    async def create(
        self,
        parent: dict[str, Any],
        properties: dict[str, Any],
        children: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Create a new page.

        Parameters
        ----------
        parent:
            Parent object, ``{"database_id": ...}`` for database rows or
            ``{"page_id": ...}`` for container pages.
        properties:
            Property values keyed by property name.
        children:
            Optional content blocks.  Notion accepts at most 100 per call;
            the remainder must be appended with
            :meth:`AsyncBlockAPI.append_children`.

        Returns
        -------
        dict
            The created page object.
        """
        body: dict[str, Any] = {
            "parent": parent,
            "properties": properties,
        }
        if children:
            body["children"] = children
        return await self._transport.request("POST", "/pages", json=body)

    async def retrieve(self, page_id: str) -> dict[str, Any]:
        """Retrieve a page, including its property values."""
        return await self._transport.request("GET", f"/pages/{page_id}")

    async def update(
        self,
        page_id: str,
        properties: dict[str, Any] | None = None,
        archived: bool | None = None,
    ) -> dict[str, Any]:
        """Update a page's properties or archive status.

        Only the properties given are changed.  ``archived=True`` is how
        pages are deleted through the API.
        """
        body: dict[str, Any] = {}
        if properties is not None:
            body["properties"] = properties
        if archived is not None:
            body["archived"] = archived
        return await self._transport.request("PATCH", f"/pages/{page_id}", json=body)
