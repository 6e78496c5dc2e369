"""Webflow field type tags and their Notion property types."""

from __future__ import annotations

PROPERTY_TYPE_FOR_FIELD: dict[str, str] = {
    "PlainText": "rich_text",
    "Color": "rich_text",
    "RichText": "rich_text",
    "Reference": "rich_text",
    "MultiReference": "rich_text",
    "Number": "number",
    "DateTime": "date",
    "Date": "date",
    "Switch": "checkbox",
    "Option": "select",
    "Set": "multi_select",
    "Link": "url",
    "VideoLink": "url",
    "Email": "email",
    "Phone": "phone_number",
    "Image": "files",
    "MultiImage": "files",
    "File": "files",
    "FileRef": "files",
}
"""Source field type -> destination property type.

Reference fields start out as ``rich_text`` placeholders and are turned
into relations once every destination database exists.
"""

SILENT_SKIP_TYPES: frozenset[str] = frozenset({
    "SkuValues", "Price", "MultiExternalFile", "MembershipPlan", "TextOption", "SkuSettings",
})
"""Commerce and membership types skipped without a warning."""

CONTENT_TYPES: frozenset[str] = frozenset({"RichText"})
"""Fields whose HTML goes into the page body instead of a property."""

REFERENCE_TYPES: frozenset[str] = frozenset({"Reference", "MultiReference"})

CHOICE_TYPES: frozenset[str] = frozenset({"Option", "Set"})

DEFERRED_TYPES: frozenset[str] = CONTENT_TYPES | REFERENCE_TYPES | CHOICE_TYPES
"""Field types left out of the initial property values."""

PLAIN_HTML_CANDIDATES: frozenset[str] = frozenset({"PlainText"})
"""Text fields whose value is rendered into the body when it looks like HTML."""
