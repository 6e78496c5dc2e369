"""Block API wrapper for the Notion API.

Used to append page content in batches, read a page body back for the
reverse (Notion to Webflow) path, and clear a page body before it is
rewritten.
"""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncNotionTransport


class AsyncBlockAPI:
    """Asynchronous wrapper for the Notion Blocks API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncNotionTransport` instance.
    """

    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    async def get_children(self, block_id: str) -> list[dict[str, Any]]:
        """Retrieve all children of a block or page, auto-paginating."""
        return [
            item
            async for item in self._transport.paginate(
                f"/blocks/{block_id}/children",
                method="GET",
            )
        ]

    async def append_children(
        self,
        block_id: str,
        children: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Append up to 100 child blocks at the end of a block or page.

        Use :func:`flowsync.utils.chunk_children` to batch longer lists.
        """
        return await self._transport.request(
            "PATCH", f"/blocks/{block_id}/children", json={"children": children}
        )

    async def delete(self, block_id: str) -> dict[str, Any]:
        """Delete (archive) a block."""
        return await self._transport.request("DELETE", f"/blocks/{block_id}")
