"""Item field values to page property values.

:func:`map_item_properties` builds the properties a page is created or
updated with.  Content, reference and choice fields are left out: content
becomes the page body (:mod:`flowsync.mapping.content`), references and
choices are resolved once the whole item set exists
(:mod:`flowsync.sync.relations`).

A property is only written when its value could be normalised; an
unrecognised value leaves the property untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urlparse

from flowsync.config import SyncConfig
from flowsync.converter.rich_text import make_text_run, split_rich_text
from flowsync.mapping.field_types import DEFERRED_TYPES
from flowsync.mapping.normalize import (
    normalize_checkbox,
    normalize_datetime,
    normalize_file_urls,
    normalize_link,
    normalize_number,
    normalize_option_ids,
    normalize_text,
)
from flowsync.mapping.schema import reserved_names
from flowsync.mapping.status import derive_item_status, resolve_status_property
from flowsync.models import SyncWarning, WebflowField, WebflowItem
from flowsync.observability import get_logger, record_warning

log = get_logger("flowsync.mapping")

_KNOWN_TYPES: tuple[str, ...] = (
    "title", "rich_text", "number", "date", "checkbox", "select", "multi_select",
    "relation", "url", "email", "phone_number", "files",
)


def property_type(prop: dict[str, Any] | None) -> str | None:
    """Type of a property configuration.

    Works for both API responses (``{"type": "select", ...}``) and request
    schemas (``{"select": {...}}``).
    """
    if not prop:
        return None
    declared = prop.get("type")
    if isinstance(declared, str):
        return declared
    for key in _KNOWN_TYPES:
        if key in prop:
            return key
    return None


def text_runs(text: str, limit: int = 2000) -> list[dict]:
    """Plain rich_text runs for *text*; ``[]`` for the empty string."""
    if not text:
        return []
    return split_rich_text([make_text_run(text)], limit)


def file_name_from_url(url: str) -> str:
    """Last path segment of *url*, capped at 100 characters."""
    segment = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    return (segment or "file")[:100]


def files_value(urls: list[str]) -> dict[str, Any]:
    return {
        "files": [
            {"name": file_name_from_url(url), "type": "external", "external": {"url": url}}
            for url in urls
        ]
    }


def relation_value(page_ids: list[str]) -> dict[str, Any]:
    return {"relation": [{"id": page_id} for page_id in page_ids]}


def property_value(
    prop_type: str | None,
    raw: Any,
    config: SyncConfig | None = None,
) -> dict[str, Any] | None:
    """Normalise *raw* for a destination property of *prop_type*.

    Returns the property value payload, or ``None`` when the value is
    unrecognised or the type is handled elsewhere.
    """
    limit = config.rich_text_limit if config is not None else 2000
    if prop_type == "rich_text":
        text = normalize_text(raw)
        return None if text is None else {"rich_text": text_runs(text, limit)}
    if prop_type == "number":
        number = normalize_number(raw)
        return None if number is None else {"number": number}
    if prop_type == "date":
        start = normalize_datetime(raw)
        return None if start is None else {"date": {"start": start}}
    if prop_type == "checkbox":
        return {"checkbox": normalize_checkbox(raw)}
    if prop_type in ("url", "email", "phone_number"):
        link = normalize_link(raw)
        return None if link is None else {prop_type: link}
    if prop_type == "files":
        urls = normalize_file_urls(raw)
        return None if urls is None else files_value(urls)
    return None


# ---------------------------------------------------------------------------
# Choice values
# ---------------------------------------------------------------------------

@dataclass
class ChoiceValue:
    """Outcome of mapping one choice field value.

    Attributes
    ----------
    value:
        The select / multi_select payload, or ``None`` to leave the
        property untouched.
    unmatched:
        Source option names with no destination option.
    """

    value: dict[str, Any] | None
    unmatched: list[str] = field(default_factory=list)


def option_names(source_field: WebflowField, option_ids: list[str]) -> list[str]:
    """Resolve option IDs to names through the field's own option list.

    An ID that is not in the list is taken to be a name already.
    """
    by_id = {opt.get("id"): opt.get("name") for opt in source_field.options}
    names: list[str] = []
    for option_id in option_ids:
        name = by_id.get(option_id)
        names.append(name if isinstance(name, str) and name else option_id)
    return names


def map_choice_value(
    source_field: WebflowField,
    raw: Any,
    property_config: dict[str, Any] | None,
    warnings: list[SyncWarning] | None = None,
    **context: Any,
) -> ChoiceValue:
    """Map an Option / Set value onto a select / multi_select property.

    Names are matched case-insensitively against the destination's
    options.  Unmatched names are dropped with an ``UNMATCHED_OPTION``
    warning and never created.  An empty source value clears the property;
    a value with no match at all leaves it untouched.
    """
    prop_type = property_type(property_config)
    if prop_type not in ("select", "multi_select"):
        return ChoiceValue(None)
    option_ids = normalize_option_ids(raw)
    if option_ids is None:
        return ChoiceValue(None)
    if not option_ids:
        return ChoiceValue({"select": None} if prop_type == "select" else {"multi_select": []})

    options = ((property_config or {}).get(prop_type) or {}).get("options") or []
    destination = {
        opt["name"].lower(): opt["name"]
        for opt in options
        if isinstance(opt, dict) and isinstance(opt.get("name"), str)
    }

    matched: list[str] = []
    unmatched: list[str] = []
    for name in option_names(source_field, option_ids):
        target = destination.get(name.lower())
        if target is None:
            unmatched.append(name)
        elif target not in matched:
            matched.append(target)

    if unmatched:
        record_warning(
            warnings,
            log,
            "UNMATCHED_OPTION",
            f"Options {unmatched!r} of field {source_field.display_name!r} have no destination option",
            field=source_field.display_name,
            options=unmatched,
            **context,
        )

    if not matched:
        return ChoiceValue(None, unmatched)
    if prop_type == "select":
        return ChoiceValue({"select": {"name": matched[0]}}, unmatched)
    return ChoiceValue({"multi_select": [{"name": name} for name in matched]}, unmatched)


# ---------------------------------------------------------------------------
# Item properties
# ---------------------------------------------------------------------------

def map_item_properties(
    item: WebflowItem,
    properties: dict[str, Any],
    fields: list[WebflowField],
    config: SyncConfig | None = None,
    warnings: list[SyncWarning] | None = None,
) -> dict[str, Any]:
    """Build the page properties of *item*.

    Parameters
    ----------
    item:
        The source item.
    properties:
        The destination database's property schema.
    fields:
        The source collection's field definitions.
    config:
        Supplies the reserved property names and the rich-text limit.
    warnings:
        Receives ``STATUS_FALLBACK`` warnings.

    Returns
    -------
    dict
        Property values keyed by property name.  Always contains the title
        and the item-ID back-reference.
    """
    config = config or SyncConfig()
    reserved = reserved_names(config)

    result: dict[str, Any] = {
        config.title_property: {"title": text_runs(item.name, config.rich_text_limit)},
        config.item_id_property: {"rich_text": text_runs(item.id)},
    }

    seen: set[str] = set()
    for source_field in fields:
        name = source_field.display_name
        if not name or name in reserved or name in seen:
            continue
        seen.add(name)
        if source_field.type in DEFERRED_TYPES:
            continue
        prop = properties.get(name)
        if prop is None:
            continue
        raw = item.field_data.get(source_field.slug)
        if raw is None:
            continue
        value = property_value(property_type(prop), raw, config)
        if value is not None:
            result[name] = value

    status = derive_item_status(item.is_draft, item.last_published, item.last_updated)
    status_value = resolve_status_property(
        status,
        properties.get(config.status_property),
        warnings,
        item_id=item.id,
    )
    if status_value is not None:
        result[config.status_property] = status_value
    return result
