"""Collection schema to database property schema.

:func:`build_database_properties` is a pure function: the same field list
always yields the same property names and types.  It never calls an API;
callers decide whether a database still has to be created.
"""

from __future__ import annotations

from typing import Any

from flowsync.config import SyncConfig
from flowsync.mapping.field_types import PROPERTY_TYPE_FOR_FIELD, SILENT_SKIP_TYPES
from flowsync.models import ItemStatus, SyncWarning, WebflowField
from flowsync.observability import get_logger, record_warning

log = get_logger("flowsync.mapping")

STATUS_OPTIONS: tuple[tuple[ItemStatus, str], ...] = (
    (ItemStatus.DRAFT, "gray"),
    (ItemStatus.PUBLISHED, "green"),
    (ItemStatus.SCHEDULED, "blue"),
    (ItemStatus.QUEUED_TO_PUBLISH, "blue"),
    (ItemStatus.DRAFT_CHANGES, "orange"),
)


def reserved_names(config: SyncConfig) -> frozenset[str]:
    """Property names that are never mapped from source fields."""
    return frozenset({
        config.title_property,
        config.item_id_property,
        config.page_id_field_name,
        config.status_property,
    })


def _option_names(field: WebflowField) -> list[dict[str, str]]:
    names: list[dict[str, str]] = []
    seen: set[str] = set()
    for option in field.options:
        name = option.get("name")
        # Notion rejects duplicate option names.
        if isinstance(name, str) and name and name not in seen:
            seen.add(name)
            names.append({"name": name})
    return names


def property_config_for_field(field: WebflowField) -> dict[str, Any] | None:
    """Destination property configuration of one field, or ``None``."""
    prop_type = PROPERTY_TYPE_FOR_FIELD.get(field.type)
    if prop_type is None:
        return None
    if prop_type == "number":
        fmt = "number" if field.validations.get("format") == "integer" else "number_with_commas"
        return {"number": {"format": fmt}}
    if prop_type in ("select", "multi_select"):
        return {prop_type: {"options": _option_names(field)}}
    return {prop_type: {}}


def build_database_properties(
    fields: list[WebflowField],
    config: SyncConfig | None = None,
    warnings: list[SyncWarning] | None = None,
) -> dict[str, Any]:
    """Translate a collection's fields into a database property schema.

    Parameters
    ----------
    fields:
        The collection's field definitions.
    config:
        Supplies the reserved property names.
    warnings:
        Receives ``UNSUPPORTED_FIELD_TYPE`` and ``DUPLICATE_FIELD``
        warnings.

    Returns
    -------
    dict
        Property schema keyed by display name.  Always contains the title
        property, the item-ID back-reference and the status select.
    """
    config = config or SyncConfig()
    reserved = reserved_names(config)

    properties: dict[str, Any] = {
        config.title_property: {"title": {}},
        config.item_id_property: {"rich_text": {}},
    }

    for field in fields:
        name = field.display_name
        if not name or name in reserved:
            continue
        if name in properties:
            record_warning(
                warnings,
                log,
                "DUPLICATE_FIELD",
                f"Duplicate field name {name!r}; later definition skipped",
                field=name,
                field_type=field.type,
            )
            continue

        prop = property_config_for_field(field)
        if prop is None:
            if field.type not in SILENT_SKIP_TYPES:
                record_warning(
                    warnings,
                    log,
                    "UNSUPPORTED_FIELD_TYPE",
                    f"Unsupported field type {field.type!r} for field {name!r}; skipped",
                    field=name,
                    field_type=field.type,
                )
            continue
        properties[name] = prop

    properties[config.status_property] = {
        "select": {
            "options": [{"name": status.value, "color": color} for status, color in STATUS_OPTIONS]
        }
    }
    return properties
