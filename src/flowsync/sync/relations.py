"""Two-pass relation linking and deferred value resolution.

Reference fields cannot be created as relations up front: the target
database may not exist yet.  They are created as ``rich_text``
placeholders, converted to relations once every database exists
(:func:`link_relation_schemas`), and filled once every item has a page
(:func:`resolve_relation_values`).  Choice values are resolved in the same
late pass (:func:`resolve_option_values`) because option names are
matched against the schema as it exists at that point.

Each phase checks the collection's schema lifecycle, so running a phase
out of order raises :class:`~flowsync.errors.FlowSyncStateError` instead
of writing into placeholder properties.
"""

from __future__ import annotations

from typing import Any

from flowsync.concurrency import settle
from flowsync.errors import FlowSyncError
from flowsync.mapping.field_types import CHOICE_TYPES, REFERENCE_TYPES
from flowsync.mapping.normalize import normalize_reference_ids
from flowsync.mapping.values import map_choice_value, property_type, relation_value
from flowsync.models import (
    DatabaseInfo,
    OptionSyncStats,
    RelationSchemaResult,
    RelationSchemaStats,
    RelationSyncStats,
    SchemaState,
    SyncWarning,
    WebflowItem,
)
from flowsync.observability import get_logger, record_warning
from flowsync.session import SyncSession

log = get_logger("flowsync.sync.relations")


def relation_property(database_id: str) -> dict[str, Any]:
    """Property patch turning a placeholder into a single-property relation."""
    return {
        "type": "relation",
        "relation": {
            "database_id": database_id,
            "type": "single_property",
            "single_property": {},
        },
    }


def resolve_relation_targets(
    item_ids: list[str],
    id_map: dict[str, str],
) -> tuple[list[str], list[str]]:
    """Split referenced item IDs into target page IDs and missing item IDs.

    Order is preserved and duplicate targets are dropped.
    """
    found: list[str] = []
    missing: list[str] = []
    for item_id in item_ids:
        page_id = id_map.get(item_id)
        if page_id is None:
            missing.append(item_id)
        elif page_id not in found:
            found.append(page_id)
    return found, missing


# ---------------------------------------------------------------------------
# Pass 1: schema
# ---------------------------------------------------------------------------

async def _link_one(
    session: SyncSession,
    info: DatabaseInfo,
    targets: dict[str, str],
) -> RelationSchemaResult | None:
    patch: dict[str, Any] = {}
    result = RelationSchemaResult(database_id=info.database_id)

    for source_field in info.collection.fields:
        if source_field.type not in REFERENCE_TYPES:
            continue
        name = source_field.display_name
        prop = info.properties.get(name)
        prop_type = property_type(prop)
        if prop is None or prop_type == "relation":
            continue
        result.found += 1
        if prop_type != "rich_text":
            log.warning(
                "Reference property has an unexpected type",
                extra={
                    "extra_fields": {
                        "op": "link_relations",
                        "database_id": info.database_id,
                        "property": name,
                        "property_type": prop_type,
                    }
                },
            )
            result.failed += 1
            continue
        target_db = targets.get(source_field.collection_id or "")
        if target_db is None:
            log.warning(
                "No destination database for referenced collection",
                extra={
                    "extra_fields": {
                        "op": "link_relations",
                        "database_id": info.database_id,
                        "property": name,
                        "target_collection_id": source_field.collection_id,
                    }
                },
            )
            result.failed += 1
            continue
        patch[name] = relation_property(target_db)
        result.linked += 1

    if patch:
        try:
            async with session.database_limiter:
                updated = await session.databases.update(info.database_id, patch)
        except FlowSyncError as exc:
            log.error(
                "Failed to convert placeholders to relations",
                extra={
                    "extra_fields": {
                        "op": "link_relations",
                        "database_id": info.database_id,
                        "payload": patch,
                        "error": exc.message,
                    }
                },
            )
            result.status = "error"
            result.error = exc.message
            result.linked = 0
            result.failed = result.found
            return result
        info.properties = updated.get("properties") or info.properties
        result.status = "success"
        return result
    if result.found:
        result.status = "skipped"
        return result
    return None


async def link_relation_schemas(
    session: SyncSession,
    databases: list[DatabaseInfo],
    known_databases: dict[str, str] | None = None,
) -> RelationSchemaStats:
    """Convert reference placeholders into relations.

    Placeholders whose target collection has no database in either source
    are counted as failed and left as ``rich_text``.  Every database moves
    to :attr:`SchemaState.RELATIONS_LINKED`, linked or not.

    Parameters
    ----------
    known_databases:
        Collection ID to database ID pairs persisted by earlier runs of the
        integration.  Databases in *databases* take precedence.
    """
    targets = dict(known_databases or {})
    targets.update({info.collection_id: info.database_id for info in databases})
    for info in databases:
        info.require(SchemaState.DATABASE_CREATED)

    outcomes = await settle(_link_one(session, info, targets) for info in databases)

    stats = RelationSchemaStats()
    for info, outcome in zip(databases, outcomes):
        info.advance(SchemaState.RELATIONS_LINKED)
        if isinstance(outcome, BaseException):
            log.error(
                "Relation linking failed",
                extra={"extra_fields": {"op": "link_relations", "database_id": info.database_id, "error": str(outcome)}},
            )
            outcome = RelationSchemaResult(database_id=info.database_id, status="error", error=str(outcome))
        if outcome is None:
            continue
        stats.databases.append(outcome)
        stats.found += outcome.found
        stats.linked += outcome.linked
        stats.failed += outcome.failed

    log.info(
        "Relation schemas linked",
        extra={"extra_fields": {"op": "link_relations", "found": stats.found, "linked": stats.linked, "failed": stats.failed}},
    )
    return stats


# ---------------------------------------------------------------------------
# Pass 2: values
# ---------------------------------------------------------------------------

async def _current_properties(session: SyncSession, info: DatabaseInfo) -> dict[str, Any]:
    try:
        database = await session.databases.retrieve(info.database_id)
    except FlowSyncError as exc:
        log.error(
            "Failed to re-read database schema",
            extra={"extra_fields": {"op": "resolve_values", "database_id": info.database_id, "error": exc.message}},
        )
        return {}
    info.properties = database.get("properties") or {}
    return info.properties


async def _update_page(
    session: SyncSession,
    page_id: str,
    properties: dict[str, Any],
    op: str,
) -> bool:
    try:
        async with session.page_limiter:
            await session.pages.update(page_id, properties=properties)
    except FlowSyncError as exc:
        log.error(
            "Failed to update page values",
            extra={"extra_fields": {"op": op, "page_id": page_id, "payload": properties, "error": exc.message}},
        )
        return False
    return True


async def resolve_relation_values(
    session: SyncSession,
    databases: list[DatabaseInfo],
    id_map: dict[str, str],
    warnings: list[SyncWarning] | None = None,
) -> RelationSyncStats:
    """Write relation values for every mapped item.

    Only properties that the current schema confirms to be relations are
    written; placeholders that failed to link are never filled.  Targets
    without a page are dropped with a ``MISSING_RELATION_TARGET`` warning.
    """
    stats = RelationSyncStats()

    for info in databases:
        info.require(SchemaState.ITEMS_SYNCED)
        properties = await _current_properties(session, info)
        relation_fields = [
            f for f in info.collection.fields
            if f.type in REFERENCE_TYPES and property_type(properties.get(f.display_name)) == "relation"
        ]
        if not relation_fields:
            continue

        async def one(item: WebflowItem) -> tuple[int, bool]:
            page_id = id_map.get(item.id)
            if page_id is None:
                return 0, True
            patch: dict[str, Any] = {}
            for source_field in relation_fields:
                item_ids = normalize_reference_ids(item.field_data.get(source_field.slug))
                if item_ids is None:
                    continue
                found, missing = resolve_relation_targets(item_ids, id_map)
                if missing:
                    stats.missing_targets += len(missing)
                    record_warning(
                        warnings,
                        log,
                        "MISSING_RELATION_TARGET",
                        f"Referenced items {missing!r} of field {source_field.display_name!r} have no page",
                        item_id=item.id,
                        field=source_field.display_name,
                        missing=missing,
                    )
                patch[source_field.display_name] = relation_value(found)
            if not patch:
                return 0, True
            ok = await _update_page(session, page_id, patch, "resolve_relations")
            return len(patch), ok

        for outcome in await settle(one(item) for item in info.items):
            if isinstance(outcome, BaseException):
                stats.failed_updates += 1
                continue
            count, ok = outcome
            if ok:
                stats.updated_relations += count
            else:
                stats.failed_updates += 1

    log.info(
        "Relation values resolved",
        extra={
            "extra_fields": {
                "op": "resolve_relations",
                "updated": stats.updated_relations,
                "failed": stats.failed_updates,
                "missing_targets": stats.missing_targets,
            }
        },
    )
    return stats


async def resolve_option_values(
    session: SyncSession,
    databases: list[DatabaseInfo],
    id_map: dict[str, str],
    warnings: list[SyncWarning] | None = None,
) -> OptionSyncStats:
    """Write select and multi-select values for every mapped item.

    Option IDs are resolved to names through the source field, then matched
    case-insensitively against the destination options.  Databases move
    to :attr:`SchemaState.VALUES_RESOLVED` afterwards.
    """
    stats = OptionSyncStats()

    for info in databases:
        info.require(SchemaState.ITEMS_SYNCED)
        properties = await _current_properties(session, info)
        choice_fields = [
            f for f in info.collection.fields
            if f.type in CHOICE_TYPES
            and property_type(properties.get(f.display_name)) in ("select", "multi_select")
        ]

        async def one(item: WebflowItem) -> tuple[int, bool]:
            page_id = id_map.get(item.id)
            if page_id is None:
                return 0, True
            patch: dict[str, Any] = {}
            for source_field in choice_fields:
                choice = map_choice_value(
                    source_field,
                    item.field_data.get(source_field.slug),
                    properties.get(source_field.display_name),
                    warnings,
                    item_id=item.id,
                )
                stats.unmatched_options += len(choice.unmatched)
                if choice.value is not None:
                    patch[source_field.display_name] = choice.value
            if not patch:
                return 0, True
            ok = await _update_page(session, page_id, patch, "resolve_options")
            return len(patch), ok

        if choice_fields:
            for outcome in await settle(one(item) for item in info.items):
                if isinstance(outcome, BaseException):
                    stats.failed_updates += 1
                    continue
                count, ok = outcome
                if ok:
                    stats.updated_options += count
                else:
                    stats.failed_updates += 1
        info.advance(SchemaState.VALUES_RESOLVED)

    log.info(
        "Option values resolved",
        extra={
            "extra_fields": {
                "op": "resolve_options",
                "updated": stats.updated_options,
                "failed": stats.failed_updates,
                "unmatched": stats.unmatched_options,
            }
        },
    )
    return stats
