"""Schema lifecycle state machine.

Tracks one source collection's destination schema through its lifecycle
and enforces the phase order of the sync pipeline.  Relation values can
only be resolved once the relation properties exist, and relation
properties can only point at databases that have been created.
"""

from __future__ import annotations

from flowsync.errors import FlowSyncStateError
from flowsync.models import SchemaState


class SchemaLifecycle:
    """Finite state machine for a single collection's schema.

    Valid transitions::

        UNCREATED         -> DATABASE_CREATED
        DATABASE_CREATED  -> RELATIONS_LINKED
        RELATIONS_LINKED  -> ITEMS_SYNCED
        ITEMS_SYNCED      -> VALUES_RESOLVED
        VALUES_RESOLVED   -> (terminal)

    Parameters
    ----------
    collection_id:
        The Webflow collection being tracked.
    """

    VALID_TRANSITIONS: dict[SchemaState, set[SchemaState]] = {
        SchemaState.UNCREATED: {SchemaState.DATABASE_CREATED},
        SchemaState.DATABASE_CREATED: {SchemaState.RELATIONS_LINKED},
        SchemaState.RELATIONS_LINKED: {SchemaState.ITEMS_SYNCED},
        SchemaState.ITEMS_SYNCED: {SchemaState.VALUES_RESOLVED},
        SchemaState.VALUES_RESOLVED: set(),
    }

    def __init__(self, collection_id: str, state: SchemaState = SchemaState.UNCREATED) -> None:
        self.collection_id: str = collection_id
        self.state: SchemaState = state

    def transition(self, new_state: SchemaState) -> None:
        """Attempt to transition to *new_state*.

        Raises
        ------
        FlowSyncStateError
            If the transition from the current state is not valid.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise FlowSyncStateError(
                message=(
                    f"Invalid schema transition: {self.state.value} -> {new_state.value} "
                    f"for collection {self.collection_id}"
                ),
                context={
                    "collection_id": self.collection_id,
                    "current_state": self.state.value,
                    "requested_state": new_state.value,
                },
            )
        self.state = new_state

    def require(self, state: SchemaState) -> None:
        """Raise unless the lifecycle is exactly in *state*."""
        if self.state != state:
            raise FlowSyncStateError(
                message=(
                    f"Collection {self.collection_id} is in state {self.state.value}, "
                    f"expected {state.value}"
                ),
                context={
                    "collection_id": self.collection_id,
                    "current_state": self.state.value,
                    "requested_state": state.value,
                },
            )
