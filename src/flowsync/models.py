"""Public data models for flowsync.

This module contains the source-side records parsed from Webflow, the
pipeline bookkeeping types, the statistics and result types returned by the
orchestrator and webhook handlers, and the records exchanged with the
mapping store.  All types are plain dataclasses with no behaviour beyond
parsing API payloads and serialising results.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowsync.sync.state import SchemaLifecycle


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ItemStatus(str, Enum):
    """Publishing status written to the destination ``Status`` select."""

    DRAFT = "Draft"
    """Never published and currently a draft."""

    DRAFT_CHANGES = "Draft Changes"
    """Published before, but switched back to draft."""

    PUBLISHED = "Published"
    """Live with no pending changes."""

    QUEUED_TO_PUBLISH = "Queued to Publish"
    """Live, but edited after the last publish."""

    SCHEDULED = "Scheduled"
    """Scheduled for a future publish.  Offered as an option only."""


class SchemaState(str, Enum):
    """Lifecycle of one source collection's destination schema."""

    UNCREATED = "uncreated"
    """No destination database exists yet."""

    DATABASE_CREATED = "database_created"
    """Database exists; reference properties are rich-text placeholders."""

    RELATIONS_LINKED = "relations_linked"
    """Placeholder properties have been converted to relations."""

    ITEMS_SYNCED = "items_synced"
    """Every item has a page and the item-ID to page-ID map is complete."""

    VALUES_RESOLVED = "values_resolved"
    """Relation and option values have been written."""


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------

@dataclass
class SyncWarning:
    """A non-fatal issue encountered while mapping or syncing.

    Attributes
    ----------
    code:
        A machine-readable warning code (e.g. ``"UNMATCHED_OPTION"``).
    message:
        A human-readable description of the issue.
    context:
        Arbitrary structured data for diagnostics.
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)


@dataclass
class ConversionResult:
    """Result of an HTML to Notion block conversion.

    Attributes
    ----------
    blocks:
        Notion block dicts ready to be sent to the API.
    warnings:
        Non-fatal issues such as truncated code blocks.
    """

    blocks: list[dict] = field(default_factory=list)
    warnings: list[SyncWarning] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Source (Webflow) records
# ---------------------------------------------------------------------------

@dataclass
class WebflowField:
    """One field definition of a Webflow collection.

    Attributes
    ----------
    id:
        Webflow field ID.
    display_name:
        Human-readable name, unique within the collection.  Used as the
        destination property name.
    slug:
        Key of the field inside an item's ``fieldData``.
    type:
        Webflow field type tag (``"PlainText"``, ``"Reference"`` ...).
    validations:
        Raw validation payload: option lists, reference targets, number
        formats.
    """

    id: str
    display_name: str
    slug: str
    type: str
    validations: dict = field(default_factory=dict)
    is_required: bool = False
    help_text: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> WebflowField:
        return cls(
            id=data.get("id", ""),
            display_name=data.get("displayName", ""),
            slug=data.get("slug", ""),
            type=data.get("type", ""),
            validations=data.get("validations") or {},
            is_required=bool(data.get("isRequired", False)),
            help_text=data.get("helpText"),
        )

    @property
    def options(self) -> list[dict[str, str]]:
        """Option descriptors (``{"id", "name"}``) of a choice field."""
        return [opt for opt in self.validations.get("options") or [] if isinstance(opt, dict)]

    @property
    def collection_id(self) -> str | None:
        """Target collection of a reference field."""
        return self.validations.get("collectionId")


@dataclass
class WebflowCollection:
    """A Webflow CMS collection and its field definitions."""

    id: str
    display_name: str
    slug: str = ""
    fields: list[WebflowField] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> WebflowCollection:
        return cls(
            id=data.get("id", ""),
            display_name=data.get("displayName") or data.get("name") or "",
            slug=data.get("slug", ""),
            fields=[WebflowField.from_api(f) for f in data.get("fields") or []],
        )

    def field_by_name(self, display_name: str) -> WebflowField | None:
        for f in self.fields:
            if f.display_name == display_name:
                return f
        return None


@dataclass
class WebflowItem:
    """One Webflow collection item.

    Attributes
    ----------
    field_data:
        Raw field values keyed by field slug.  Shapes vary by field type
        and are normalised by :mod:`flowsync.mapping.normalize`.
    last_published:
        ISO timestamp of the last publish, ``None`` if never published.
    """

    id: str
    field_data: dict = field(default_factory=dict)
    is_draft: bool = False
    is_archived: bool = False
    last_published: str | None = None
    last_updated: str | None = None
    created_on: str | None = None
    collection_id: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any], collection_id: str | None = None) -> WebflowItem:
        return cls(
            id=data.get("id", ""),
            field_data=data.get("fieldData") or {},
            is_draft=bool(data.get("isDraft", False)),
            is_archived=bool(data.get("isArchived", False)),
            last_published=data.get("lastPublished"),
            last_updated=data.get("lastUpdated"),
            created_on=data.get("createdOn"),
            collection_id=data.get("collectionId") or collection_id,
        )

    @property
    def name(self) -> str:
        value = self.field_data.get("name")
        return value if isinstance(value, str) and value.strip() else "Untitled"


@dataclass
class CollectionData:
    """A fetched collection together with its items."""

    collection: WebflowCollection
    items: list[WebflowItem] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pipeline bookkeeping
# ---------------------------------------------------------------------------

@dataclass
class DatabaseInfo:
    """A destination database created (or reused) for one collection.

    Attributes
    ----------
    collection:
        The source collection, including its field definitions.
    database_id:
        The Notion database ID.
    properties:
        The database's current property schema keyed by property name.
    lifecycle:
        The collection's schema lifecycle tracker.
    reused:
        ``True`` when the database came from an existing mapping instead
        of being created during this run.
    items:
        The collection's items, attached once pages are created.
    """

    collection: WebflowCollection
    database_id: str
    properties: dict = field(default_factory=dict)
    lifecycle: SchemaLifecycle | None = None
    reused: bool = False
    items: list[WebflowItem] = field(default_factory=list)

    @property
    def collection_id(self) -> str:
        return self.collection.id

    @property
    def state(self) -> SchemaState:
        if self.lifecycle is None:
            return SchemaState.UNCREATED
        return self.lifecycle.state

    def _tracker(self) -> SchemaLifecycle:
        if self.lifecycle is None:
            from flowsync.sync.state import SchemaLifecycle

            self.lifecycle = SchemaLifecycle(self.collection_id)
        return self.lifecycle

    def advance(self, state: SchemaState) -> None:
        """Move the schema lifecycle to *state*.

        Raises :class:`~flowsync.errors.FlowSyncStateError` for an
        out-of-order transition.
        """
        self._tracker().transition(state)

    def require(self, state: SchemaState) -> None:
        """Raise :class:`~flowsync.errors.FlowSyncStateError` unless in *state*."""
        self._tracker().require(state)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

@dataclass
class PageSyncStats:
    """Counters of the page creation phase."""

    created: int = 0
    updated_links: int = 0
    failed_creation: int = 0
    failed_link_update: int = 0
    skipped_archived: int = 0
    already_linked: int = 0


@dataclass
class RelationSchemaResult:
    """Outcome of relation schema linking for one database.

    ``status`` is ``"success"``, ``"error"`` or ``"skipped"``.
    """

    database_id: str
    status: str = "skipped"
    found: int = 0
    linked: int = 0
    failed: int = 0
    error: str | None = None


@dataclass
class RelationSchemaStats:
    """Totals of the relation schema linking phase."""

    found: int = 0
    linked: int = 0
    failed: int = 0
    databases: list[RelationSchemaResult] = field(default_factory=list)


@dataclass
class RelationSyncStats:
    """Counters of the relation value resolution phase."""

    updated_relations: int = 0
    failed_updates: int = 0
    missing_targets: int = 0


@dataclass
class OptionSyncStats:
    """Counters of the option value resolution phase."""

    updated_options: int = 0
    failed_updates: int = 0
    unmatched_options: int = 0


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _camel_dict(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camel_dict(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camel_dict(v) for v in value]
    return value


@dataclass
class SyncResult:
    """Result of :func:`flowsync.sync.orchestrator.run_selected_collections_sync`.

    ``success`` alone does not tell whether every link was written: callers
    should inspect the per-stage statistics.

    Attributes
    ----------
    success:
        ``False`` only for hard failures (no credential, zero databases,
        unexpected errors).
    message:
        Human-readable summary, including why phases were skipped.
    databases_created:
        Number of databases created or reused in this run.
    error:
        The underlying error of a hard failure.
    """

    success: bool
    message: str
    databases_created: int = 0
    page_sync_stats: PageSyncStats | None = None
    relation_schema_stats: RelationSchemaStats | None = None
    relation_sync_stats: RelationSyncStats | None = None
    option_sync_stats: OptionSyncStats | None = None
    warnings: list[SyncWarning] = field(default_factory=list)
    error: Exception | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the camelCase payload returned by the API layer."""
        if not self.success:
            return {
                "success": False,
                "message": self.message,
                "error": _error_payload(self.error),
            }
        payload: dict[str, Any] = {
            "success": True,
            "message": self.message,
            "databasesCreated": self.databases_created,
        }
        for key in (
            "page_sync_stats",
            "relation_schema_stats",
            "relation_sync_stats",
            "option_sync_stats",
        ):
            stats = getattr(self, key)
            payload[_camel(key)] = _camel_dict(asdict(stats)) if stats is not None else None
        payload["warnings"] = [asdict(w) for w in self.warnings]
        return payload


@dataclass
class WebhookResult:
    """Result of a single webhook event handler."""

    success: bool
    message: str
    error: Exception | None = None
    page_id: str | None = None
    item_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            payload["error"] = _error_payload(self.error)
        return payload


def _error_payload(error: Exception | None) -> Any:
    if error is None:
        return None
    to_dict = getattr(error, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {"code": type(error).__name__, "message": str(error)}


# ---------------------------------------------------------------------------
# Store records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IntegrationRecord:
    """A user's Webflow/Notion integration."""

    id: str
    user_id: str
    notion_parent_page_id: str | None = None
    webflow_site_id: str | None = None


@dataclass(frozen=True)
class CollectionMapping:
    """Persisted collection-ID to database-ID pair."""

    integration_id: str
    collection_id: str
    database_id: str
    collection_name: str = ""


@dataclass(frozen=True)
class ItemMapping:
    """Persisted item-ID to page-ID pair."""

    integration_id: str
    item_id: str
    page_id: str
    collection_id: str | None = None
