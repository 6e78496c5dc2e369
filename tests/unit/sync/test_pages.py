"""Tests for the page creation phase.

Covers:
  - Body batching: the first 100 blocks ride on creation, the rest are appended
  - create_pages: archived, already-mapped and failing items
  - Back-references and persisted item mappings, scoped by integration
  - Mapping save failures: counted once, new page archived
  - pages_created_total metric
"""

from __future__ import annotations

import copy

import pytest

from flowsync.converter import block_builder as bb
from flowsync.converter.rich_text import make_text_run, rich_text_plain
from flowsync.errors import FlowSyncConflictError, FlowSyncStateError, FlowSyncValidationError
from flowsync.mapping.schema import build_database_properties
from flowsync.models import DatabaseInfo, ItemMapping, SchemaState, WebflowCollection, WebflowItem
from flowsync.store import InMemoryMappingStore
from flowsync.sync.linker import IdentityLinker
from flowsync.sync.pages import create_item_page, create_pages, write_page_body

FIELDS = [
    {"id": "f-name", "displayName": "Name", "slug": "name", "type": "PlainText"},
    {"id": "f-body", "displayName": "Body", "slug": "body", "type": "RichText"},
    {"id": "f-page", "displayName": "Notion Page ID", "slug": "notion-page-id", "type": "PlainText"},
]


def paragraphs(count):
    return [bb.paragraph([make_text_run(f"p{i}")]) for i in range(count)]


def make_info(notion, webflow, items, state=SchemaState.RELATIONS_LINKED):
    webflow.add_collection("c1", "Posts", FIELDS, items=items)
    collection = WebflowCollection.from_api(webflow.collections_by_id["c1"])
    database_id = notion.add_database(build_database_properties(collection.fields), database_id="db-1")
    info = DatabaseInfo(
        collection=collection,
        database_id=database_id,
        properties=copy.deepcopy(notion.databases_by_id[database_id]["properties"]),
        items=[WebflowItem.from_api(raw, "c1") for raw in webflow.items_by_collection["c1"]],
    )
    info.advance(SchemaState.DATABASE_CREATED)
    if state is SchemaState.RELATIONS_LINKED:
        info.advance(SchemaState.RELATIONS_LINKED)
    return info


# =========================================================================
# Body batching
# =========================================================================

class TestWritePageBody:

    async def test_batches_of_100(self, session, notion):
        page = notion.add_page({"database_id": "db-1"}, {})
        await write_page_body(session, page["id"], paragraphs(250))
        sizes = [len(children) for _, children in notion.blocks.calls_to("append_children")]
        assert sizes == [100, 100, 50]
        assert len(notion.children[page["id"]]) == 250

    async def test_empty_body(self, session, notion):
        await write_page_body(session, "page-x", [])
        assert notion.blocks.calls == []


class TestCreateItemPage:

    async def test_long_body_split(self, session, notion, webflow, metrics):
        session.config.metrics = metrics
        info = make_info(notion, webflow, [])
        page_id = await create_item_page(session, info, WebflowItem(id="i1"), {}, paragraphs(150))

        [(parent, _, children)] = notion.pages.calls_to("create")
        assert parent == {"database_id": "db-1"}
        assert len(children) == 100
        [(target, rest)] = notion.blocks.calls_to("append_children")
        assert target == page_id
        assert len(rest) == 50
        assert rich_text_plain(notion.children[page_id][-1]["paragraph"]["rich_text"]) == "p149"
        assert metrics.increments == [
            {"name": "flowsync.pages_created_total", "value": 1, "tags": {"collection": "c1"}}
        ]

    async def test_no_blocks(self, session, notion, webflow):
        info = make_info(notion, webflow, [])
        await create_item_page(session, info, WebflowItem(id="i1"), {})
        [(_, _, children)] = notion.pages.calls_to("create")
        assert children is None

    async def test_conflict_retried(self, session, notion, webflow):
        info = make_info(notion, webflow, [])
        notion.pages.fail("create", FlowSyncConflictError(message="conflict"))
        page_id = await create_item_page(session, info, WebflowItem(id="i1"), {})
        assert len(notion.pages.calls_to("create")) == 2
        assert page_id in notion.pages_by_id


# =========================================================================
# create_pages
# =========================================================================

class TestCreatePages:

    async def test_creates_links_and_persists(self, session, notion, webflow, store):
        items = [{"id": "i1", "fieldData": {"name": "Hello", "body": "<p>Hi</p>"}}]
        info = make_info(notion, webflow, items)
        linker = IdentityLinker(session)

        stats, id_map = await create_pages(session, [info], store, "int-1", linker)

        assert stats.created == 1
        assert stats.updated_links == 1
        page_id = id_map["i1"]
        page = notion.pages_by_id[page_id]
        assert rich_text_plain(page["properties"]["Name"]["title"]) == "Hello"
        assert rich_text_plain(page["properties"]["Webflow Item ID"]["rich_text"]) == "i1"
        assert [b["type"] for b in notion.children[page_id]] == ["paragraph"]
        assert webflow.item("c1", "i1")["fieldData"]["notion-page-id"] == page_id
        assert await store.find_item_mapping(item_id="i1") == ItemMapping("int-1", "i1", page_id, "c1")
        assert info.state is SchemaState.ITEMS_SYNCED

    async def test_archived_and_already_linked(self, session, notion, webflow, store):
        items = [
            {"id": "i1", "fieldData": {"name": "Gone"}, "isArchived": True},
            {"id": "i2", "fieldData": {"name": "Known"}},
        ]
        info = make_info(notion, webflow, items)
        await store.save_item_mapping(ItemMapping("int-1", "i2", "page-old", "c1"))

        stats, id_map = await create_pages(session, [info], store, "int-1", IdentityLinker(session))

        assert stats.skipped_archived == 1
        assert stats.already_linked == 1
        assert stats.created == 0
        assert id_map == {"i2": "page-old"}
        assert notion.pages.calls == []

    async def test_failure_isolated(self, session, notion, webflow, store):
        items = [{"id": f"i{n}", "fieldData": {"name": f"N{n}"}} for n in range(3)]
        info = make_info(notion, webflow, items)
        notion.pages.fail("create", FlowSyncValidationError(message="bad property"))

        stats, id_map = await create_pages(session, [info], store, "int-1", IdentityLinker(session))

        assert stats.created == 2
        assert stats.failed_creation == 1
        assert len(id_map) == 2

    async def test_link_failure_counted(self, session, notion, webflow, store):
        info = make_info(notion, webflow, [{"id": "i1", "fieldData": {"name": "A"}}])
        webflow.items.fail("update", FlowSyncValidationError(message="bad field"))

        stats, id_map = await create_pages(session, [info], store, "int-1", IdentityLinker(session))

        assert stats.created == 1
        assert stats.failed_link_update == 1
        assert stats.updated_links == 0
        assert await store.find_item_mapping(item_id="i1") is not None

    async def test_requires_linked_relations(self, session, notion, webflow, store):
        info = make_info(notion, webflow, [], state=SchemaState.DATABASE_CREATED)
        with pytest.raises(FlowSyncStateError):
            await create_pages(session, [info], store, "int-1", IdentityLinker(session))

    async def test_mapping_of_other_integration_ignored(self, session, notion, webflow, store):
        info = make_info(notion, webflow, [{"id": "i1", "fieldData": {"name": "Shared"}}])
        await store.save_item_mapping(ItemMapping("int-2", "i1", "page-elsewhere", "c1"))

        stats, id_map = await create_pages(session, [info], store, "int-1", IdentityLinker(session))

        assert stats.created == 1
        assert stats.already_linked == 0
        assert id_map["i1"] != "page-elsewhere"
        assert (await store.find_item_mapping("int-1", item_id="i1")).page_id == id_map["i1"]
        assert (await store.find_item_mapping("int-2", item_id="i1")).page_id == "page-elsewhere"

    async def test_mapping_save_failure_counted_once(self, session, notion, webflow, integration):
        class FailingStore(InMemoryMappingStore):
            async def save_item_mapping(self, mapping):
                raise RuntimeError("store offline")

        store = FailingStore([integration])
        info = make_info(notion, webflow, [{"id": "i1", "fieldData": {"name": "A"}}])

        stats, id_map = await create_pages(session, [info], store, "int-1", IdentityLinker(session))

        assert stats.created == 0
        assert stats.failed_creation == 1
        assert stats.updated_links == 0
        assert id_map == {}
        created = [p for p in notion.pages_by_id.values() if p["parent"].get("database_id") == "db-1"]
        assert len(created) == 1
        assert created[0]["archived"] is True
        assert "notion-page-id" not in webflow.item("c1", "i1")["fieldData"]

    async def test_mapping_save_failure_with_archive_failure(self, session, notion, webflow, integration):
        class FailingStore(InMemoryMappingStore):
            async def save_item_mapping(self, mapping):
                raise RuntimeError("store offline")

        store = FailingStore([integration])
        info = make_info(notion, webflow, [{"id": "i1", "fieldData": {"name": "A"}}])
        notion.pages.fail("update", FlowSyncValidationError(message="cannot archive"))

        stats, _ = await create_pages(session, [info], store, "int-1", IdentityLinker(session))

        assert stats.failed_creation == 1
        assert stats.created == 0
