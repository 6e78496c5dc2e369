"""Shared test fixtures for the flowsync test suite.

The fakes below stand in for the endpoint wrappers of
:mod:`flowsync.notion_api` and :mod:`flowsync.webflow_api`.  They keep
their state in memory, mirror the method signatures of the real wrappers
and record every call, so sync phases can be exercised end to end without
HTTP.  Failures are injected per method with ``fake.fail(method, exc)``.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any

import pytest

from flowsync.config import SyncConfig
from flowsync.converter.rich_text import rich_text_plain
from flowsync.errors import FlowSyncNotFoundError
from flowsync.models import IntegrationRecord
from flowsync.session import SyncSession
from flowsync.store import InMemoryMappingStore, StaticCredentialStore

# ---------------------------------------------------------------------------
# Call recording and failure injection
# ---------------------------------------------------------------------------


class _FakeEndpoint:
    """Base class recording calls and raising injected failures."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self._failures: dict[str, list[Exception]] = {}

    def fail(self, method: str, exc: Exception, times: int = 1) -> None:
        """Make the next *times* calls of *method* raise *exc*."""
        self._failures.setdefault(method, []).extend([exc] * times)

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [c[1:] for c in self.calls if c[0] == method]

    def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        queue = self._failures.get(method)
        if queue:
            raise queue.pop(0)


def _not_found(kind: str, key: str) -> FlowSyncNotFoundError:
    return FlowSyncNotFoundError(
        message=f"{kind} {key} not found",
        context={"path": f"/{kind}/{key}"},
    )


# ---------------------------------------------------------------------------
# Notion
# ---------------------------------------------------------------------------


def _api_property(name: str, config: dict[str, Any], index: int) -> dict[str, Any]:
    """Turn a request-shape property config into its response shape."""
    if "type" in config:
        prop_type = config["type"]
        body = config.get(prop_type, {})
    else:
        prop_type = next(iter(config))
        body = config[prop_type]
    return {"id": f"prop-{index}", "name": name, "type": prop_type, prop_type: copy.deepcopy(body)}


class FakeNotionPages(_FakeEndpoint):
    def __init__(self, notion: FakeNotion) -> None:
        super().__init__()
        self._notion = notion

    async def create(self, parent, properties, children=None):
        self._enter("create", parent, properties, children)
        return copy.deepcopy(self._notion.add_page(parent, properties, children))

    async def retrieve(self, page_id):
        self._enter("retrieve", page_id)
        page = self._notion.pages_by_id.get(page_id)
        if page is None:
            raise _not_found("pages", page_id)
        return copy.deepcopy(page)

    async def update(self, page_id, properties=None, archived=None):
        self._enter("update", page_id, properties, archived)
        page = self._notion.pages_by_id.get(page_id)
        if page is None:
            raise _not_found("pages", page_id)
        if properties:
            page["properties"].update(copy.deepcopy(properties))
        if archived is not None:
            page["archived"] = archived
        return copy.deepcopy(page)


class FakeNotionBlocks(_FakeEndpoint):
    def __init__(self, notion: FakeNotion) -> None:
        super().__init__()
        self._notion = notion

    async def get_children(self, block_id):
        self._enter("get_children", block_id)
        return copy.deepcopy(self._notion.children.get(block_id, []))

    async def append_children(self, block_id, children):
        self._enter("append_children", block_id, children)
        stored = self._notion.store_blocks(block_id, children)
        return {"object": "list", "results": copy.deepcopy(stored)}

    async def delete(self, block_id):
        self._enter("delete", block_id)
        for siblings in self._notion.children.values():
            for block in siblings:
                if block["id"] == block_id:
                    siblings.remove(block)
                    return {"id": block_id, "archived": True}
        raise _not_found("blocks", block_id)


class FakeNotionDatabases(_FakeEndpoint):
    def __init__(self, notion: FakeNotion) -> None:
        super().__init__()
        self._notion = notion

    async def create(self, parent_page_id, title, properties, *, is_inline=True):
        self._enter("create", parent_page_id, title, properties)
        database_id = self._notion.add_database(properties, parent_page_id=parent_page_id, title=title)
        return copy.deepcopy(self._notion.databases_by_id[database_id])

    async def retrieve(self, database_id):
        self._enter("retrieve", database_id)
        database = self._notion.databases_by_id.get(database_id)
        if database is None:
            raise _not_found("databases", database_id)
        return copy.deepcopy(database)

    async def update(self, database_id, properties):
        self._enter("update", database_id, properties)
        database = self._notion.databases_by_id.get(database_id)
        if database is None:
            raise _not_found("databases", database_id)
        for name, config in properties.items():
            index = len(database["properties"])
            database["properties"][name] = _api_property(name, config, index)
        return copy.deepcopy(database)

    async def query(self, database_id, filter=None):
        self._enter("query", database_id, filter)
        return [
            copy.deepcopy(page)
            for page in self._notion.pages_by_id.values()
            if page["parent"].get("database_id") == database_id
        ]

    async def query_by_property(self, database_id, property_name, value):
        self._enter("query_by_property", database_id, property_name, value)
        matches = []
        for page in self._notion.pages_by_id.values():
            if page["parent"].get("database_id") != database_id:
                continue
            prop = page["properties"].get(property_name) or {}
            if rich_text_plain(prop.get("rich_text") or []) == value:
                matches.append(copy.deepcopy(page))
        return matches


class FakeNotionSearch(_FakeEndpoint):
    def __init__(self, notion: FakeNotion) -> None:
        super().__init__()
        self._notion = notion

    async def first_page(self):
        self._enter("first_page")
        shared = self._notion.shared_pages
        return copy.deepcopy(shared[0]) if shared else None


class FakeNotion:
    """In-memory Notion workspace."""

    def __init__(self) -> None:
        self.pages_by_id: dict[str, dict] = {}
        self.databases_by_id: dict[str, dict] = {}
        self.children: dict[str, list[dict]] = {}
        self.shared_pages: list[dict] = [{"object": "page", "id": "shared-page"}]
        self._ids = itertools.count(1)
        self.pages = FakeNotionPages(self)
        self.blocks = FakeNotionBlocks(self)
        self.databases = FakeNotionDatabases(self)
        self.search = FakeNotionSearch(self)

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_database(
        self,
        properties: dict[str, Any],
        *,
        database_id: str | None = None,
        parent_page_id: str = "parent-page",
        title: str = "Database",
    ) -> str:
        database_id = database_id or self.new_id("db")
        self.databases_by_id[database_id] = {
            "object": "database",
            "id": database_id,
            "parent": {"type": "page_id", "page_id": parent_page_id},
            "title": [{"type": "text", "text": {"content": title}, "plain_text": title}],
            "archived": False,
            "properties": {
                name: _api_property(name, config, index)
                for index, (name, config) in enumerate(properties.items())
            },
        }
        return database_id

    def add_page(
        self,
        parent: dict[str, Any],
        properties: dict[str, Any],
        children: list[dict] | None = None,
        *,
        page_id: str | None = None,
    ) -> dict:
        page_id = page_id or self.new_id("page")
        page = {
            "object": "page",
            "id": page_id,
            "parent": dict(parent),
            "properties": copy.deepcopy(properties),
            "archived": False,
        }
        self.pages_by_id[page_id] = page
        self.children[page_id] = []
        self.store_blocks(page_id, children or [])
        return page

    def store_blocks(self, parent_id: str, blocks: list[dict]) -> list[dict]:
        stored: list[dict] = []
        for block in blocks:
            block = copy.deepcopy(block)
            block["id"] = self.new_id("block")
            payload = block.get(block.get("type", ""), {})
            nested = payload.pop("children", None) if isinstance(payload, dict) else None
            self.children[block["id"]] = []
            if nested:
                self.store_blocks(block["id"], nested)
            block["has_children"] = bool(nested)
            self.children.setdefault(parent_id, []).append(block)
            stored.append(block)
        return stored


# ---------------------------------------------------------------------------
# Webflow
# ---------------------------------------------------------------------------


class FakeWebflowSites(_FakeEndpoint):
    def __init__(self, webflow: FakeWebflow) -> None:
        super().__init__()
        self._webflow = webflow

    async def list(self):
        self._enter("list")
        return copy.deepcopy(self._webflow.sites)


class FakeWebflowCollections(_FakeEndpoint):
    def __init__(self, webflow: FakeWebflow) -> None:
        super().__init__()
        self._webflow = webflow

    async def list(self, site_id):
        self._enter("list", site_id)
        return [
            {"id": c["id"], "displayName": c["displayName"], "slug": c["slug"]}
            for c in self._webflow.collections_by_id.values()
        ]

    async def get(self, collection_id):
        self._enter("get", collection_id)
        collection = self._webflow.collections_by_id.get(collection_id)
        if collection is None:
            raise _not_found("collections", collection_id)
        return copy.deepcopy(collection)

    async def create_field(self, collection_id, field):
        self._enter("create_field", collection_id, field)
        collection = self._webflow.collections_by_id.get(collection_id)
        if collection is None:
            raise _not_found("collections", collection_id)
        created = {"id": self._webflow.new_id("field"), **copy.deepcopy(field)}
        if self._webflow.assigned_slug is not None:
            created["slug"] = self._webflow.assigned_slug
        collection["fields"].append(created)
        return copy.deepcopy(created)


class FakeWebflowItems(_FakeEndpoint):
    def __init__(self, webflow: FakeWebflow) -> None:
        super().__init__()
        self._webflow = webflow

    def _find(self, collection_id, item_id):
        for item in self._webflow.items_by_collection.get(collection_id, []):
            if item["id"] == item_id:
                return item
        raise _not_found("items", item_id)

    async def list(self, collection_id):
        self._enter("list", collection_id)
        return copy.deepcopy(self._webflow.items_by_collection.get(collection_id, []))

    async def get(self, collection_id, item_id):
        self._enter("get", collection_id, item_id)
        return copy.deepcopy(self._find(collection_id, item_id))

    async def create(self, collection_id, field_data, *, is_draft=True, is_archived=False):
        self._enter("create", collection_id, field_data, is_draft)
        item = self._webflow.add_item(
            collection_id,
            {"fieldData": copy.deepcopy(field_data), "isDraft": is_draft, "isArchived": is_archived},
        )
        return copy.deepcopy(item)

    async def update(self, collection_id, item_id, field_data):
        self._enter("update", collection_id, item_id, field_data)
        item = self._find(collection_id, item_id)
        item["fieldData"].update(copy.deepcopy(field_data))
        return copy.deepcopy(item)

    async def delete(self, collection_id, item_id):
        self._enter("delete", collection_id, item_id)
        item = self._find(collection_id, item_id)
        self._webflow.items_by_collection[collection_id].remove(item)
        return {}


class FakeWebflow:
    """In-memory Webflow site."""

    def __init__(self) -> None:
        self.sites: list[dict] = [{"id": "site-1", "displayName": "Site"}]
        self.collections_by_id: dict[str, dict] = {}
        self.items_by_collection: dict[str, list[dict]] = {}
        self.assigned_slug: str | None = None
        self._ids = itertools.count(1)
        self.sites_api = FakeWebflowSites(self)
        self.collections = FakeWebflowCollections(self)
        self.items = FakeWebflowItems(self)

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_collection(
        self,
        collection_id: str,
        display_name: str,
        fields: list[dict[str, Any]],
        items: list[dict[str, Any]] | None = None,
    ) -> None:
        self.collections_by_id[collection_id] = {
            "id": collection_id,
            "displayName": display_name,
            "slug": display_name.lower().replace(" ", "-"),
            "fields": copy.deepcopy(fields),
        }
        self.items_by_collection.setdefault(collection_id, [])
        for item in items or []:
            self.add_item(collection_id, item)

    def add_item(self, collection_id: str, item: dict[str, Any]) -> dict:
        stored = {
            "id": item.get("id") or self.new_id("item"),
            "fieldData": copy.deepcopy(item.get("fieldData") or {}),
            "isDraft": item.get("isDraft", False),
            "isArchived": item.get("isArchived", False),
            "lastPublished": item.get("lastPublished"),
            "lastUpdated": item.get("lastUpdated"),
            "collectionId": collection_id,
        }
        self.items_by_collection.setdefault(collection_id, []).append(stored)
        return stored

    def item(self, collection_id: str, item_id: str) -> dict:
        return next(i for i in self.items_by_collection[collection_id] if i["id"] == item_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def make_test_config(**overrides: Any) -> SyncConfig:
    """A config with every delay zeroed and pacing effectively disabled."""
    defaults: dict[str, Any] = {
        "retry_base_delay": 0.0,
        "retry_max_delay": 0.0,
        "retry_jitter": False,
        "notion_rate_limit_rps": 1000.0,
        "webflow_rate_limit_rps": 1000.0,
        "create_settle_delay": 0.0,
        "conflict_retry_delay": 0.0,
        "append_batch_delay": 0.0,
    }
    defaults.update(overrides)
    return SyncConfig(**defaults)


@pytest.fixture
def config() -> SyncConfig:
    """Default test configuration with zero delays."""
    return make_test_config()


@pytest.fixture
def notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def webflow() -> FakeWebflow:
    return FakeWebflow()


@pytest.fixture
def session(config: SyncConfig, notion: FakeNotion, webflow: FakeWebflow) -> SyncSession:
    """A session wired to the in-memory fakes."""
    return SyncSession(
        config=config,
        user_id="user-1",
        pages=notion.pages,
        blocks=notion.blocks,
        databases=notion.databases,
        search=notion.search,
        collections=webflow.collections,
        items=webflow.items,
        sites=webflow.sites_api,
    )


@pytest.fixture
def integration() -> IntegrationRecord:
    return IntegrationRecord(
        id="int-1",
        user_id="user-1",
        notion_parent_page_id="parent-page",
        webflow_site_id="site-1",
    )


@pytest.fixture
def store(integration: IntegrationRecord) -> InMemoryMappingStore:
    return InMemoryMappingStore([integration])


@pytest.fixture
def credentials() -> StaticCredentialStore:
    return StaticCredentialStore({"user-1": "wf-token"}, {"user-1": "notion-token"})


@pytest.fixture
def session_factory(session: SyncSession):
    """A session factory handing out the fake-backed session."""
    opened: list[str] = []

    async def factory(user_id, credentials, config):
        opened.append(user_id)
        return session

    factory.opened = opened  # type: ignore[attr-defined]
    return factory


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []
        self.gauges: list[dict[str, Any]] = []

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def names(self, kind: str = "increments") -> list[str]:
        return [entry["name"] for entry in getattr(self, kind)]


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()
