"""Site API wrapper for the Webflow Data API v2."""

from __future__ import annotations

from typing import Any

from flowsync.api.transport import AsyncWebflowTransport


class AsyncSiteAPI:
    def __init__(self, transport: AsyncWebflowTransport) -> None:
        self._transport = transport

    async def list(self) -> list[dict[str, Any]]:
        """List the sites the token can access."""
        data = await self._transport.request("GET", "/sites")
        return data.get("sites") or []
