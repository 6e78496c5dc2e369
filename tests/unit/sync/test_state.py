"""Tests for the schema lifecycle state machine."""

from __future__ import annotations

import pytest

from flowsync.errors import FlowSyncStateError
from flowsync.models import DatabaseInfo, SchemaState, WebflowCollection
from flowsync.sync.state import SchemaLifecycle

ORDER = [
    SchemaState.DATABASE_CREATED,
    SchemaState.RELATIONS_LINKED,
    SchemaState.ITEMS_SYNCED,
    SchemaState.VALUES_RESOLVED,
]


class TestSchemaLifecycle:

    def test_starts_uncreated(self):
        assert SchemaLifecycle("c1").state is SchemaState.UNCREATED

    def test_full_forward_path(self):
        lifecycle = SchemaLifecycle("c1")
        for state in ORDER:
            lifecycle.transition(state)
        assert lifecycle.state is SchemaState.VALUES_RESOLVED

    def test_skipping_a_phase_rejected(self):
        lifecycle = SchemaLifecycle("c1")
        with pytest.raises(FlowSyncStateError) as info:
            lifecycle.transition(SchemaState.ITEMS_SYNCED)
        assert info.value.context == {
            "collection_id": "c1",
            "current_state": "uncreated",
            "requested_state": "items_synced",
        }
        assert lifecycle.state is SchemaState.UNCREATED

    def test_terminal_state(self):
        lifecycle = SchemaLifecycle("c1", SchemaState.VALUES_RESOLVED)
        with pytest.raises(FlowSyncStateError):
            lifecycle.transition(SchemaState.DATABASE_CREATED)

    def test_same_state_is_not_a_transition(self):
        lifecycle = SchemaLifecycle("c1", SchemaState.DATABASE_CREATED)
        with pytest.raises(FlowSyncStateError):
            lifecycle.transition(SchemaState.DATABASE_CREATED)

    def test_require(self):
        lifecycle = SchemaLifecycle("c1", SchemaState.RELATIONS_LINKED)
        lifecycle.require(SchemaState.RELATIONS_LINKED)
        with pytest.raises(FlowSyncStateError, match="expected items_synced"):
            lifecycle.require(SchemaState.ITEMS_SYNCED)

    def test_error_code(self):
        with pytest.raises(FlowSyncStateError) as info:
            SchemaLifecycle("c1").require(SchemaState.VALUES_RESOLVED)
        assert info.value.to_dict()["code"] == "INVALID_STATE"


class TestDatabaseInfoLifecycle:

    def make_info(self):
        return DatabaseInfo(collection=WebflowCollection(id="c1", display_name="Posts"), database_id="db-1")

    def test_state_before_tracking(self):
        assert self.make_info().state is SchemaState.UNCREATED

    def test_advance(self):
        info = self.make_info()
        info.advance(SchemaState.DATABASE_CREATED)
        info.advance(SchemaState.RELATIONS_LINKED)
        assert info.state is SchemaState.RELATIONS_LINKED
        assert info.lifecycle.collection_id == "c1"

    def test_out_of_order_advance(self):
        info = self.make_info()
        with pytest.raises(FlowSyncStateError):
            info.advance(SchemaState.RELATIONS_LINKED)

    def test_require(self):
        info = self.make_info()
        with pytest.raises(FlowSyncStateError):
            info.require(SchemaState.ITEMS_SYNCED)
