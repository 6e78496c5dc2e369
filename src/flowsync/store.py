"""Credential and mapping store interfaces.

Token storage and the persistence of integration / mapping records live
outside flowsync.  The pipeline only talks to them through the two
protocols below.  :class:`InMemoryMappingStore`,
:class:`StaticCredentialStore` and :class:`EnvCredentialStore` are small
reference implementations used by tests and single-tenant deployments.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Protocol, runtime_checkable

from flowsync.models import CollectionMapping, IntegrationRecord, ItemMapping


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class CredentialStore(Protocol):
    """Source of per-user API tokens.

    Both methods return ``None`` when no token is stored; the caller turns
    that into a :class:`~flowsync.errors.FlowSyncCredentialError`.
    """

    async def get_webflow_token(self, user_id: str) -> str | None: ...

    async def get_notion_token(self, user_id: str) -> str | None: ...


@runtime_checkable
class MappingStore(Protocol):
    """Persistence of integrations and ID mappings.

    Lookups by either key of a pair must be supported, because webhook
    events from each side only carry that side's ID.  Item mappings are
    scoped by integration: the same Webflow item may be synced into the
    databases of several integrations.  Passing ``integration_id=None`` to
    a lookup searches every integration and returns the first match.
    """

    async def get_integration(self, integration_id: str) -> IntegrationRecord | None: ...

    async def save_collection_mappings(
        self,
        integration_id: str,
        mappings: list[CollectionMapping],
    ) -> None: ...

    async def get_collection_mappings(self, integration_id: str) -> list[CollectionMapping]: ...

    async def find_collection_mapping(
        self,
        *,
        collection_id: str | None = None,
        database_id: str | None = None,
        integration_id: str | None = None,
    ) -> CollectionMapping | None: ...

    async def save_item_mapping(self, mapping: ItemMapping) -> None: ...

    async def find_item_mapping(
        self,
        integration_id: str | None = None,
        *,
        item_id: str | None = None,
        page_id: str | None = None,
    ) -> ItemMapping | None: ...

    async def list_item_mappings(
        self,
        integration_id: str,
        *,
        collection_id: str | None = None,
    ) -> list[ItemMapping]: ...

    async def delete_item_mapping(
        self,
        integration_id: str | None = None,
        *,
        item_id: str | None = None,
        page_id: str | None = None,
    ) -> bool: ...


# ---------------------------------------------------------------------------
# Credential stores
# ---------------------------------------------------------------------------

class StaticCredentialStore:
    """Credential store backed by plain dicts keyed by user ID."""

    def __init__(
        self,
        webflow_tokens: Mapping[str, str] | None = None,
        notion_tokens: Mapping[str, str] | None = None,
    ) -> None:
        self._webflow = dict(webflow_tokens or {})
        self._notion = dict(notion_tokens or {})

    async def get_webflow_token(self, user_id: str) -> str | None:
        return self._webflow.get(user_id)

    async def get_notion_token(self, user_id: str) -> str | None:
        return self._notion.get(user_id)


class EnvCredentialStore:
    """Single-tenant credential store reading tokens from the environment.

    Every user ID resolves to ``WEBFLOW_API_TOKEN`` / ``NOTION_API_TOKEN``.
    Empty values count as missing.
    """

    WEBFLOW_VAR = "WEBFLOW_API_TOKEN"
    NOTION_VAR = "NOTION_API_TOKEN"

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    async def get_webflow_token(self, user_id: str) -> str | None:
        return self._environ.get(self.WEBFLOW_VAR) or None

    async def get_notion_token(self, user_id: str) -> str | None:
        return self._environ.get(self.NOTION_VAR) or None


# ---------------------------------------------------------------------------
# Mapping store
# ---------------------------------------------------------------------------

class InMemoryMappingStore:
    """Process-local :class:`MappingStore`.

    Item mappings are indexed by ``(integration_id, item_id)`` and
    ``(integration_id, page_id)``, so two integrations syncing the same
    collection keep separate pairs.  Saving a mapping for an item that is
    already mapped in the same integration replaces the old pair.
    """

    def __init__(self, integrations: Iterable[IntegrationRecord] = ()) -> None:
        self._integrations: dict[str, IntegrationRecord] = {i.id: i for i in integrations}
        self._collections: dict[str, dict[str, CollectionMapping]] = {}
        self._items_by_item: dict[tuple[str, str], ItemMapping] = {}
        self._items_by_page: dict[tuple[str, str], ItemMapping] = {}

    def add_integration(self, record: IntegrationRecord) -> None:
        self._integrations[record.id] = record

    async def get_integration(self, integration_id: str) -> IntegrationRecord | None:
        return self._integrations.get(integration_id)

    async def save_collection_mappings(
        self,
        integration_id: str,
        mappings: list[CollectionMapping],
    ) -> None:
        bucket = self._collections.setdefault(integration_id, {})
        for mapping in mappings:
            bucket[mapping.collection_id] = mapping

    async def get_collection_mappings(self, integration_id: str) -> list[CollectionMapping]:
        return list(self._collections.get(integration_id, {}).values())

    async def find_collection_mapping(
        self,
        *,
        collection_id: str | None = None,
        database_id: str | None = None,
        integration_id: str | None = None,
    ) -> CollectionMapping | None:
        if integration_id is not None:
            buckets = [self._collections.get(integration_id, {})]
        else:
            buckets = list(self._collections.values())
        for bucket in buckets:
            for mapping in bucket.values():
                if collection_id is not None and mapping.collection_id == collection_id:
                    return mapping
                if database_id is not None and mapping.database_id == database_id:
                    return mapping
        return None

    async def save_item_mapping(self, mapping: ItemMapping) -> None:
        scope = mapping.integration_id
        previous = self._items_by_item.get((scope, mapping.item_id))
        if previous is not None:
            self._items_by_page.pop((scope, previous.page_id), None)
        self._items_by_item[(scope, mapping.item_id)] = mapping
        self._items_by_page[(scope, mapping.page_id)] = mapping

    async def find_item_mapping(
        self,
        integration_id: str | None = None,
        *,
        item_id: str | None = None,
        page_id: str | None = None,
    ) -> ItemMapping | None:
        if item_id is not None:
            index, key = self._items_by_item, item_id
        elif page_id is not None:
            index, key = self._items_by_page, page_id
        else:
            return None
        if integration_id is not None:
            return index.get((integration_id, key))
        for (_, candidate), mapping in index.items():
            if candidate == key:
                return mapping
        return None

    async def list_item_mappings(
        self,
        integration_id: str,
        *,
        collection_id: str | None = None,
    ) -> list[ItemMapping]:
        return [
            mapping
            for (scope, _), mapping in self._items_by_item.items()
            if scope == integration_id
            and (collection_id is None or mapping.collection_id == collection_id)
        ]

    async def delete_item_mapping(
        self,
        integration_id: str | None = None,
        *,
        item_id: str | None = None,
        page_id: str | None = None,
    ) -> bool:
        mapping = await self.find_item_mapping(integration_id, item_id=item_id, page_id=page_id)
        if mapping is None:
            return False
        self._items_by_item.pop((mapping.integration_id, mapping.item_id), None)
        self._items_by_page.pop((mapping.integration_id, mapping.page_id), None)
        return True
