"""Tests for flowsync.models.

Covers:
  - Webflow record parsing (fields, options, reference targets, items)
  - SyncResult.to_dict camelCase payloads for success and failure
  - WebhookResult.to_dict
"""

from __future__ import annotations

from flowsync.errors import FlowSyncCredentialError
from flowsync.models import (
    OptionSyncStats,
    PageSyncStats,
    RelationSchemaResult,
    RelationSchemaStats,
    SyncResult,
    SyncWarning,
    WebflowCollection,
    WebflowField,
    WebflowItem,
    WebhookResult,
)

# =========================================================================
# Webflow records
# =========================================================================

class TestWebflowRecords:

    def test_field_from_api(self):
        field = WebflowField.from_api({
            "id": "f1",
            "displayName": "Category",
            "slug": "category",
            "type": "Option",
            "isRequired": True,
            "validations": {"options": [{"id": "o1", "name": "News"}, "junk"]},
        })
        assert field.display_name == "Category"
        assert field.is_required is True
        assert field.options == [{"id": "o1", "name": "News"}]
        assert field.collection_id is None

    def test_reference_target(self):
        field = WebflowField.from_api({"type": "Reference", "validations": {"collectionId": "col-2"}})
        assert field.collection_id == "col-2"

    def test_collection_from_api(self):
        collection = WebflowCollection.from_api({
            "id": "c1",
            "displayName": "Posts",
            "slug": "posts",
            "fields": [{"id": "f1", "displayName": "Name", "slug": "name", "type": "PlainText"}],
        })
        assert collection.field_by_name("Name").slug == "name"
        assert collection.field_by_name("Missing") is None

    def test_collection_name_fallback(self):
        assert WebflowCollection.from_api({"id": "c1", "name": "Legacy"}).display_name == "Legacy"

    def test_item_from_api(self):
        item = WebflowItem.from_api(
            {"id": "i1", "fieldData": {"name": "Hi"}, "isDraft": True, "lastPublished": "2024-01-01T00:00:00Z"},
            collection_id="c1",
        )
        assert item.is_draft is True
        assert item.last_published == "2024-01-01T00:00:00Z"
        assert item.collection_id == "c1"
        assert item.name == "Hi"

    def test_item_collection_id_from_payload_wins(self):
        item = WebflowItem.from_api({"id": "i1", "collectionId": "c9"}, collection_id="c1")
        assert item.collection_id == "c9"

    def test_item_name_fallback(self):
        assert WebflowItem.from_api({"id": "i1", "fieldData": {"name": "   "}}).name == "Untitled"


# =========================================================================
# Results
# =========================================================================

class TestSyncResult:

    def test_success_payload(self):
        result = SyncResult(
            success=True,
            message="Synced 1 database(s) and 2 new page(s)",
            databases_created=1,
            page_sync_stats=PageSyncStats(created=2, updated_links=2),
            relation_schema_stats=RelationSchemaStats(
                found=1, linked=1, databases=[RelationSchemaResult("db1", "success", 1, 1)]
            ),
            option_sync_stats=OptionSyncStats(updated_options=3),
            warnings=[SyncWarning("UNMATCHED_OPTION", "no option", {"field": "Tags"})],
        )

        payload = result.to_dict()

        assert payload["success"] is True
        assert payload["databasesCreated"] == 1
        assert payload["pageSyncStats"]["created"] == 2
        assert payload["pageSyncStats"]["failedCreation"] == 0
        assert payload["relationSchemaStats"]["databases"][0]["databaseId"] == "db1"
        assert payload["relationSyncStats"] is None
        assert payload["optionSyncStats"]["updatedOptions"] == 3
        assert payload["warnings"] == [
            {"code": "UNMATCHED_OPTION", "message": "no option", "context": {"field": "Tags"}}
        ]

    def test_failure_payload(self):
        error = FlowSyncCredentialError(message="Webflow token not found", context={"user_id": "u"})
        payload = SyncResult(success=False, message="Sync failed: Webflow token not found", error=error).to_dict()
        assert payload == {
            "success": False,
            "message": "Sync failed: Webflow token not found",
            "error": {
                "code": "CREDENTIAL_NOT_FOUND",
                "message": "Webflow token not found",
                "context": {"user_id": "u"},
            },
        }

    def test_failure_without_error(self):
        payload = SyncResult(success=False, message="No databases could be created").to_dict()
        assert payload["error"] is None


class TestWebhookResult:

    def test_without_error(self):
        assert WebhookResult(success=True, message="Item updated").to_dict() == {
            "success": True,
            "message": "Item updated",
        }

    def test_with_plain_exception(self):
        payload = WebhookResult(success=False, message="x", error=KeyError("k")).to_dict()
        assert payload["error"]["code"] == "KeyError"
