"""Database API wrapper for the Notion API.

Databases are created inline under a container page with their full
property schema.  Property types are changed in place with
:meth:`AsyncDatabaseAPI.update`, which is how placeholder rich-text
properties become relations once every database exists.
"""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncNotionTransport


def title_text(text: str) -> list[dict[str, Any]]:
    """Build the rich-text array used for database and page titles."""
    return [{"type": "text", "text": {"content": text}}]


class AsyncDatabaseAPI:
    """Asynchronous wrapper for the Notion Databases API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncNotionTransport` instance.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    async def create(
        self,
        parent_page_id: str,
        title: str,
        properties: dict[str, Any],
        *,
        is_inline: bool = True,
    ) -> dict[str, Any]:
        """Create a database under a page.

        Parameters
        ----------
        parent_page_id:
            The page that will contain the database.
        title:
            Database title.
        properties:
            Property schema keyed by property name, e.g.
            ``{"Name": {"title": {}}, "Tags": {"multi_select": {"options": []}}}``.
            Exactly one property must be of type ``title``.
        is_inline:
            Render the database inline in the parent page.

        Returns
        -------
        dict
            The created database, whose ``properties`` carry the assigned
            property IDs and types.
        """
        body: dict[str, Any] = {
            "parent": {"type": "page_id", "page_id": parent_page_id},
            "title": title_text(title),
            "is_inline": is_inline,
            "properties": properties,
        }
        return await self._transport.request("POST", "/databases", json=body)

    async def retrieve(self, database_id: str) -> dict[str, Any]:
        """Retrieve a database and its current property schema."""
        return await self._transport.request("GET", f"/databases/{database_id}")

    async def update(self, database_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        """Add properties or change their type/configuration in place."""
        return await self._transport.request(
            "PATCH", f"/databases/{database_id}", json={"properties": properties}
        )

    async def query(
        self,
        database_id: str,
        filter: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return every page of a database matching *filter*."""
        body: dict[str, Any] = {}
        if filter is not None:
            body["filter"] = filter
        return [
            page
            async for page in self._transport.paginate(
                f"/databases/{database_id}/query",
                method="POST",
                json=body,
            )
        ]

    async def query_by_property(
        self,
        database_id: str,
        property_name: str,
        value: str,
    ) -> list[dict[str, Any]]:
        """Return the pages whose rich-text *property_name* equals *value*."""
        return await self.query(
            database_id,
            filter={"property": property_name, "rich_text": {"equals": value}},
        )
