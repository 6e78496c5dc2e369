"""Notion page properties to Webflow ``fieldData``.

The inverse of :func:`flowsync.mapping.values.map_item_properties`, used by
the Notion webhook path.  Properties are matched to fields by display
name; the result is keyed by field slug.  Relations and the reserved
bookkeeping properties never flow back.
"""

from __future__ import annotations

from typing import Any

from flowsync.config import SyncConfig
from flowsync.converter.rich_text import rich_text_plain
from flowsync.mapping.field_types import CHOICE_TYPES, CONTENT_TYPES, REFERENCE_TYPES
from flowsync.mapping.schema import reserved_names
from flowsync.mapping.values import property_type
from flowsync.models import WebflowField
from flowsync.utils.slug import slugify

_SCALAR_TYPES: frozenset[str] = frozenset({
    "rich_text", "number", "date", "checkbox", "url", "email", "phone_number",
})


def page_title(page: dict[str, Any], config: SyncConfig | None = None) -> str:
    """Plain text of the page's title property."""
    config = config or SyncConfig()
    properties = page.get("properties") or {}
    prop = properties.get(config.title_property)
    if prop is None or property_type(prop) != "title":
        prop = next((p for p in properties.values() if property_type(p) == "title"), None)
    if prop is None:
        return ""
    return rich_text_plain(prop.get("title") or []).strip()


def page_item_id(page: dict[str, Any], config: SyncConfig | None = None) -> str | None:
    """The Webflow item ID stored on a page, or ``None``."""
    config = config or SyncConfig()
    prop = (page.get("properties") or {}).get(config.item_id_property)
    if not prop:
        return None
    return rich_text_plain(prop.get("rich_text") or []).strip() or None


def _scalar_value(prop_type: str, prop: dict[str, Any]) -> Any:
    value = prop.get(prop_type)
    if prop_type == "rich_text":
        return rich_text_plain(value or [])
    if prop_type == "date":
        return value.get("start") if value else None
    if prop_type == "checkbox":
        return bool(value)
    return value


def _option_ids(source_field: WebflowField, names: list[str]) -> list[str]:
    by_name = {
        opt["name"].lower(): opt["id"]
        for opt in source_field.options
        if isinstance(opt.get("name"), str) and opt.get("id")
    }
    ids: list[str] = []
    for name in names:
        option_id = by_name.get(name.lower())
        if option_id is not None and option_id not in ids:
            ids.append(option_id)
    return ids


def _files_value(source_field: WebflowField, files: list[dict[str, Any]]) -> Any:
    urls: list[str] = []
    for entry in files or []:
        kind = entry.get("type")
        url = (entry.get(kind) or {}).get("url") if kind else None
        if url:
            urls.append(url)
    if source_field.type == "MultiImage":
        return [{"url": url} for url in urls]
    return {"url": urls[0]} if urls else None


def page_to_field_data(
    page: dict[str, Any],
    fields: list[WebflowField],
    config: SyncConfig | None = None,
    *,
    include_slug: bool = False,
    body_html: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build item ``fieldData`` from a retrieved page.

    Parameters
    ----------
    page:
        A page object as returned by ``GET /pages/{id}``.
    fields:
        The source collection's field definitions.
    config:
        Supplies the reserved property names.
    include_slug:
        Also emit a ``slug`` derived from the title (item creation).
    body_html:
        Rendered page body keyed by content field display name.

    Returns
    -------
    dict
        Field values keyed by field slug.  Option names without a matching
        source option are omitted.
    """
    config = config or SyncConfig()
    reserved = reserved_names(config)
    properties = page.get("properties") or {}

    field_data: dict[str, Any] = {}
    title = page_title(page, config)
    if title:
        field_data["name"] = title
        if include_slug:
            field_data["slug"] = slugify(title)

    for source_field in fields:
        name = source_field.display_name
        if not name or name in reserved or source_field.type in REFERENCE_TYPES:
            continue
        if source_field.type in CONTENT_TYPES:
            if body_html and name in body_html:
                field_data[source_field.slug] = body_html[name]
            continue
        prop = properties.get(name)
        if prop is None:
            continue
        prop_type = property_type(prop)

        if source_field.type in CHOICE_TYPES:
            if prop_type == "select":
                selected = prop.get("select")
                names = [selected["name"]] if selected else []
                ids = _option_ids(source_field, names)
                if ids:
                    field_data[source_field.slug] = ids[0]
                elif not names:
                    field_data[source_field.slug] = None
            elif prop_type == "multi_select":
                names = [opt["name"] for opt in prop.get("multi_select") or []]
                ids = _option_ids(source_field, names)
                if ids or not names:
                    field_data[source_field.slug] = ids
            continue

        if prop_type == "files":
            value = _files_value(source_field, prop.get("files") or [])
            if value is not None:
                field_data[source_field.slug] = value
        elif prop_type in _SCALAR_TYPES:
            field_data[source_field.slug] = _scalar_value(prop_type, prop)
    return field_data
