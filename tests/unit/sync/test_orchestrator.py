"""Tests for the bulk sync pipeline.

Covers:
  - SyncOrchestrator.run end to end against the in-memory fakes
  - Early exits: empty selection, unknown collections, no databases
  - Reruns reuse collection and item mappings
  - References to collections synced in an earlier run
  - Two integrations syncing the same collection keep separate pages
  - run_selected_collections_sync: never raises, always closes the session,
    reports credential failures, emits duration and warning metrics
"""

from __future__ import annotations

from unittest.mock import AsyncMock

from flowsync.converter.rich_text import rich_text_plain
from flowsync.errors import FlowSyncCredentialError, FlowSyncNetworkError
from flowsync.models import CollectionMapping, IntegrationRecord
from flowsync.store import StaticCredentialStore
from flowsync.sync.orchestrator import SyncOrchestrator, run_selected_collections_sync

POST_FIELDS = [
    {"id": "f-name", "displayName": "Name", "slug": "name", "type": "PlainText", "isRequired": True},
    {"id": "f-body", "displayName": "Body", "slug": "body", "type": "RichText"},
    {"id": "f-tags", "displayName": "Tags", "slug": "tags", "type": "Set",
     "validations": {"options": [{"id": "x-id", "name": "x"}, {"id": "y-id", "name": "y"}]}},
]

POST_ITEM = {
    "id": "item-1",
    "fieldData": {"name": "Hello", "slug": "hello", "body": "<p>Hi</p>", "tags": ["x-id"]},
}


def add_posts(webflow, items=None):
    webflow.add_collection("col-posts", "Posts", POST_FIELDS, items=[POST_ITEM] if items is None else items)


AUTHOR_FIELDS = [
    {"id": "f-aname", "displayName": "Name", "slug": "name", "type": "PlainText", "isRequired": True},
]

ARTICLE_FIELDS = [
    {"id": "f-name", "displayName": "Name", "slug": "name", "type": "PlainText", "isRequired": True},
    {"id": "f-author", "displayName": "Author", "slug": "author", "type": "Reference",
     "validations": {"collectionId": "col-authors"}},
]


def add_authors_and_articles(webflow):
    webflow.add_collection(
        "col-authors", "Authors", AUTHOR_FIELDS,
        items=[{"id": "auth-1", "fieldData": {"name": "Ada", "slug": "ada"}}],
    )
    webflow.add_collection(
        "col-articles", "Articles", ARTICLE_FIELDS,
        items=[{"id": "art-1", "fieldData": {"name": "Hello", "slug": "hello", "author": "auth-1"}}],
    )


def created_page(notion):
    pages = [p for p in notion.pages_by_id.values() if "database_id" in p["parent"]]
    assert len(pages) == 1
    return pages[0]


# =========================================================================
# SyncOrchestrator.run
# =========================================================================

class TestOrchestratorRun:

    async def test_end_to_end(self, session, notion, webflow, store):
        add_posts(webflow)

        result = await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        assert result.success is True
        assert result.message == "Synced 1 database(s) and 1 new page(s)"
        assert result.databases_created == 1
        assert result.page_sync_stats.created == 1
        assert result.option_sync_stats.updated_options == 1

        page = created_page(notion)
        assert rich_text_plain(page["properties"]["Name"]["title"]) == "Hello"
        assert page["properties"]["Tags"] == {"multi_select": [{"name": "x"}]}
        assert page["properties"]["Status"]["select"]["name"] == "Published"
        blocks = notion.children[page["id"]]
        assert [b["type"] for b in blocks] == ["paragraph"]
        assert rich_text_plain(blocks[0]["paragraph"]["rich_text"]) == "Hi"
        assert webflow.item("col-posts", "item-1")["fieldData"]["notion-page-id"] == page["id"]

    async def test_mappings_persisted(self, session, notion, webflow, store):
        add_posts(webflow)

        await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        mappings = await store.get_collection_mappings("int-1")
        assert [(m.collection_id, m.collection_name) for m in mappings] == [("col-posts", "Posts")]
        assert mappings[0].database_id in notion.databases_by_id
        item_mapping = await store.find_item_mapping(item_id="item-1")
        assert item_mapping.page_id == created_page(notion)["id"]

    async def test_database_created_under_parent_page(self, session, notion, webflow, store):
        add_posts(webflow)

        await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        container_parent = notion.pages.calls_to("create")[0][0]
        assert container_parent == {"type": "page_id", "page_id": "parent-page"}
        assert len(notion.databases.calls_to("create")) == 1

    async def test_empty_selection(self, session, notion, webflow, store):
        result = await SyncOrchestrator(session, store).run("int-1", [])

        assert result.success is True
        assert result.message == "No collections selected; nothing to sync"
        assert webflow.collections.calls == []

    async def test_unknown_collections(self, session, notion, webflow, store):
        add_posts(webflow)

        result = await SyncOrchestrator(session, store).run("int-1", ["col-missing"])

        assert result.success is False
        assert result.message == "None of the selected collections could be fetched"
        assert notion.databases.calls == []

    async def test_no_databases(self, session, notion, webflow, store):
        add_posts(webflow)
        notion.databases.fail("create", FlowSyncNetworkError(message="down"))

        result = await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        assert result.success is False
        assert result.message == "No databases could be created"
        assert await store.get_collection_mappings("int-1") == []

    async def test_no_items_skips_value_phases(self, session, notion, webflow, store):
        add_posts(webflow, items=[])

        result = await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        assert result.success is True
        assert result.message == (
            "Synced 1 database(s); no pages were created or linked, "
            "so relation and option values were skipped"
        )
        assert result.relation_sync_stats is None
        assert result.option_sync_stats is None

    async def test_rerun_reuses_mappings(self, session, notion, webflow, store):
        add_posts(webflow)
        orchestrator = SyncOrchestrator(session, store)
        await orchestrator.run("int-1", ["col-posts"])

        result = await orchestrator.run("int-1", ["col-posts"])

        assert result.success is True
        assert result.message == "Synced 1 database(s) and 0 new page(s)"
        assert result.page_sync_stats.already_linked == 1
        assert result.page_sync_stats.created == 0
        assert len(notion.databases_by_id) == 1
        assert len(notion.databases.calls_to("create")) == 1

    async def test_existing_mapping_skips_parent_lookup(self, session, notion, webflow, store):
        add_posts(webflow, items=[])
        database_id = notion.add_database({"Name": {"title": {}}})
        await store.save_collection_mappings(
            "int-1", [CollectionMapping("int-1", "col-posts", database_id, "Posts")]
        )

        result = await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        assert result.success is True
        assert notion.databases.calls_to("create") == []
        assert notion.search.calls == []

    async def test_id_map_gauge(self, session, notion, webflow, store, config, metrics):
        config.metrics = metrics
        add_posts(webflow)

        await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        gauges = [g for g in metrics.gauges if g["name"] == "flowsync.id_map_size"]
        assert gauges == [{"name": "flowsync.id_map_size", "value": 1, "tags": None}]


# =========================================================================
# Mappings from earlier runs and other integrations
# =========================================================================

class TestPersistedMappings:

    async def test_reference_to_collection_synced_earlier(self, session, notion, webflow, store):
        add_authors_and_articles(webflow)
        orchestrator = SyncOrchestrator(session, store)
        await orchestrator.run("int-1", ["col-authors"])

        result = await orchestrator.run("int-1", ["col-articles"])

        assert result.success is True
        assert result.relation_schema_stats.linked == 1
        assert result.relation_schema_stats.failed == 0
        authors_db = (await store.find_collection_mapping(collection_id="col-authors")).database_id
        articles_db = (await store.find_collection_mapping(collection_id="col-articles")).database_id
        author_prop = notion.databases_by_id[articles_db]["properties"]["Author"]
        assert author_prop["type"] == "relation"
        assert author_prop["relation"]["database_id"] == authors_db

        author_page = (await store.find_item_mapping("int-1", item_id="auth-1")).page_id
        article_page = (await store.find_item_mapping("int-1", item_id="art-1")).page_id
        assert notion.pages_by_id[article_page]["properties"]["Author"] == {
            "relation": [{"id": author_page}]
        }
        assert result.relation_sync_stats.updated_relations == 1
        assert result.relation_sync_stats.missing_targets == 0
        assert result.warnings == []

    async def test_reference_to_unsynced_collection_still_fails(self, session, notion, webflow, store):
        add_authors_and_articles(webflow)

        result = await SyncOrchestrator(session, store).run("int-1", ["col-articles"])

        assert result.relation_schema_stats.linked == 0
        assert result.relation_schema_stats.failed == 1
        articles_db = (await store.find_collection_mapping(collection_id="col-articles")).database_id
        assert notion.databases_by_id[articles_db]["properties"]["Author"]["type"] == "rich_text"

    async def test_other_integration_mappings_not_used(self, session, notion, webflow, store):
        add_authors_and_articles(webflow)
        store.add_integration(
            IntegrationRecord(id="int-2", user_id="user-1", notion_parent_page_id="parent-2")
        )
        await SyncOrchestrator(session, store).run("int-2", ["col-authors"])

        result = await SyncOrchestrator(session, store).run("int-1", ["col-articles"])

        assert result.relation_schema_stats.failed == 1
        assert result.relation_sync_stats.updated_relations == 0

    async def test_two_integrations_same_collection(self, session, notion, webflow, store):
        add_posts(webflow)
        store.add_integration(
            IntegrationRecord(id="int-2", user_id="user-1", notion_parent_page_id="parent-2")
        )
        await SyncOrchestrator(session, store).run("int-1", ["col-posts"])

        result = await SyncOrchestrator(session, store).run("int-2", ["col-posts"])

        assert result.success is True
        assert result.page_sync_stats.created == 1
        assert result.page_sync_stats.already_linked == 0
        first = await store.find_item_mapping("int-1", item_id="item-1")
        second = await store.find_item_mapping("int-2", item_id="item-1")
        assert first.page_id != second.page_id
        second_db = (
            await store.find_collection_mapping(collection_id="col-posts", integration_id="int-2")
        ).database_id
        assert notion.pages_by_id[second.page_id]["parent"]["database_id"] == second_db
        assert notion.pages_by_id[first.page_id]["archived"] is False


# =========================================================================
# run_selected_collections_sync
# =========================================================================

class TestRunSelectedCollectionsSync:

    async def test_success(self, webflow, store, credentials, config, session_factory):
        add_posts(webflow)

        result = await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=credentials, store=store, config=config,
            session_factory=session_factory,
        )

        assert result.success is True
        assert session_factory.opened == ["user-1"]
        assert result.to_dict()["pageSyncStats"]["created"] == 1

    async def test_session_closed(self, session, webflow, store, credentials, config, session_factory):
        add_posts(webflow)
        session.close = AsyncMock()

        await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=credentials, store=store, config=config,
            session_factory=session_factory,
        )

        session.close.assert_awaited_once()

    async def test_pipeline_error_becomes_result(
        self, session, webflow, store, credentials, config, session_factory
    ):
        add_posts(webflow)
        webflow.items.fail("list", FlowSyncNetworkError(message="connection reset"))
        session.close = AsyncMock()

        result = await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=credentials, store=store, config=config,
            session_factory=session_factory,
        )

        assert result.success is False
        assert result.message == "Sync failed: connection reset"
        assert isinstance(result.error, FlowSyncNetworkError)
        session.close.assert_awaited_once()

    async def test_missing_token(self, store, config):
        result = await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=StaticCredentialStore({}, {}), store=store, config=config,
        )

        assert result.success is False
        assert isinstance(result.error, FlowSyncCredentialError)
        assert "Webflow token not found" in result.message
        assert result.to_dict()["error"]["code"] == "CREDENTIAL_NOT_FOUND"

    async def test_factory_error(self, store, credentials, config):
        async def broken(user_id, credentials, config):
            raise RuntimeError("boom")

        result = await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=credentials, store=store, config=config, session_factory=broken,
        )

        assert result.success is False
        assert result.message == "Sync failed: boom"
        assert result.to_dict()["error"] == {"code": "RuntimeError", "message": "boom"}

    async def test_metrics(self, webflow, store, credentials, config, session_factory, metrics):
        config.metrics = metrics
        add_posts(webflow)

        result = await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=credentials, store=store, config=config,
            session_factory=session_factory,
        )

        durations = [t for t in metrics.timings if t["name"] == "flowsync.sync_duration_ms"]
        assert len(durations) == 1
        assert durations[0]["tags"] == {"outcome": "success"}
        assert durations[0]["ms"] >= 0
        warning_counts = metrics.names().count("flowsync.sync_warnings_total")
        assert warning_counts == len(result.warnings)

    async def test_failure_outcome_tag(self, store, config, metrics):
        config.metrics = metrics

        await run_selected_collections_sync(
            "user-1", "int-1", ["col-posts"],
            credentials=StaticCredentialStore({}, {}), store=store, config=config,
        )

        assert metrics.timings[0]["tags"] == {"outcome": "failure"}
