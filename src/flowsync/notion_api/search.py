"""Search API wrapper, used to find a default parent page."""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncNotionTransport


class AsyncSearchAPI:
    def __init__(self, transport: AsyncNotionTransport) -> None:
        self._transport = transport

    async def first_page(self) -> dict[str, Any] | None:
        """Return the first page shared with the integration, if any."""
        data = await self._transport.request(
            "POST",
            "/search",
            json={
                "filter": {"property": "object", "value": "page"},
                "page_size": 1,
            },
        )
        results = data.get("results") or []
        return results[0] if results else None
