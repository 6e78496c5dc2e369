"""Tests for the database creation phase.

Covers:
  - Parent page resolution order and the missing-parent error
  - Container page plus inline database per collection
  - Reuse of mapped databases, recreation of missing or archived ones
  - Conflict retry and per-collection failure isolation
"""

from __future__ import annotations

import pytest

from flowsync.errors import FlowSyncConfigurationError, FlowSyncConflictError
from flowsync.models import (
    CollectionData,
    CollectionMapping,
    IntegrationRecord,
    SchemaState,
    WebflowCollection,
)
from flowsync.sync.databases import create_databases, resolve_parent_page


def make_data(collection_id="c1", name="Posts"):
    collection = WebflowCollection.from_api({
        "id": collection_id,
        "displayName": name,
        "fields": [
            {"id": "f1", "displayName": "Name", "slug": "name", "type": "PlainText"},
            {"id": "f2", "displayName": "Count", "slug": "count", "type": "Number"},
        ],
    })
    return CollectionData(collection=collection)


def conflict():
    return FlowSyncConflictError(message="Conflict on notion POST /databases")


# =========================================================================
# Parent page
# =========================================================================

class TestResolveParentPage:

    async def test_integration_parent(self, session, integration):
        assert await resolve_parent_page(session, integration) == "parent-page"

    async def test_configured_parent(self, session, notion):
        session.config.notion_parent_page_id = "cfg-page"
        assert await resolve_parent_page(session) == "cfg-page"
        assert notion.search.calls == []

    async def test_first_shared_page(self, session):
        assert await resolve_parent_page(session, IntegrationRecord(id="i", user_id="u")) == "shared-page"

    async def test_nothing_shared(self, session, notion):
        notion.shared_pages = []
        with pytest.raises(FlowSyncConfigurationError, match="No Notion page is shared"):
            await resolve_parent_page(session)


# =========================================================================
# Creation
# =========================================================================

class TestCreateDatabases:

    async def test_creates_container_and_database(self, session, notion):
        warnings = []
        [info] = await create_databases(session, [make_data()], {}, "parent-page", warnings)

        [(parent, properties, _)] = notion.pages.calls_to("create")
        assert parent == {"type": "page_id", "page_id": "parent-page"}
        assert properties["title"]["title"][0]["text"]["content"] == "Posts"

        [(container_id, title, schema)] = notion.databases.calls_to("create")
        assert container_id in notion.pages_by_id
        assert title == "Posts"
        assert list(schema) == ["Name", "Webflow Item ID", "Count", "Status"]

        assert info.database_id in notion.databases_by_id
        assert info.state is SchemaState.DATABASE_CREATED
        assert info.reused is False
        assert info.properties["Count"]["type"] == "number"
        assert warnings == []

    async def test_database_lives_in_container(self, session, notion):
        [info] = await create_databases(session, [make_data()], {}, "parent-page", [])
        container_id = notion.databases_by_id[info.database_id]["parent"]["page_id"]
        assert notion.pages_by_id[container_id]["parent"] == {"type": "page_id", "page_id": "parent-page"}

    async def test_reuses_mapped_database(self, session, notion):
        db = notion.add_database({"Name": {"title": {}}}, database_id="db-existing")
        existing = {"c1": CollectionMapping("int-1", "c1", db, "Posts")}
        [info] = await create_databases(session, [make_data()], existing, None, [])
        assert info.database_id == "db-existing"
        assert info.reused is True
        assert info.state is SchemaState.DATABASE_CREATED
        assert notion.databases.calls_to("create") == []

    async def test_missing_mapped_database_recreated(self, session, notion):
        existing = {"c1": CollectionMapping("int-1", "c1", "db-gone", "Posts")}
        [info] = await create_databases(session, [make_data()], existing, "parent-page", [])
        assert info.database_id != "db-gone"
        assert info.reused is False

    async def test_archived_mapped_database_recreated(self, session, notion):
        db = notion.add_database({"Name": {"title": {}}})
        notion.databases_by_id[db]["archived"] = True
        existing = {"c1": CollectionMapping("int-1", "c1", db, "Posts")}
        [info] = await create_databases(session, [make_data()], existing, "parent-page", [])
        assert info.database_id != db

    async def test_conflict_retried_once(self, session, notion):
        notion.databases.fail("create", conflict())
        [info] = await create_databases(session, [make_data()], {}, "parent-page", [])
        assert len(notion.databases.calls_to("create")) == 2
        assert info.database_id in notion.databases_by_id

    async def test_failure_isolated_per_collection(self, session, notion):
        notion.databases.fail("create", conflict(), times=2)
        infos = await create_databases(
            session, [make_data("c1", "One"), make_data("c2", "Two")], {}, "parent-page", []
        )
        assert len(infos) == 1

    async def test_no_parent_for_unmapped_collection(self, session, notion):
        assert await create_databases(session, [make_data()], {}, None, []) == []
        assert notion.pages.calls == []

    async def test_untitled_collection(self, session, notion):
        data = make_data(name="")
        await create_databases(session, [data], {}, "parent-page", [])
        [(_, title, _)] = notion.databases.calls_to("create")
        assert title == "Database for c1"
