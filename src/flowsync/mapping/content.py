"""Page body assembly from an item's rich-text fields.

With a single content field the converted blocks form the whole body.
With several, each field's blocks are preceded by a ``heading_3`` carrying
the field's display name, and sections are separated by dividers::

    ### Summary
    ...blocks...
    ---
    ### Body
    ...blocks...

:func:`split_blocks_by_field` reverses that layout for the Notion to
Webflow direction.
"""

from __future__ import annotations

from flowsync.config import SyncConfig
from flowsync.converter import block_builder as bb
from flowsync.converter.html_to_notion import HtmlToNotionConverter
from flowsync.converter.rich_text import make_text_run
from flowsync.mapping.field_types import CONTENT_TYPES, PLAIN_HTML_CANDIDATES
from flowsync.mapping.normalize import normalize_html
from flowsync.models import SyncWarning, WebflowField, WebflowItem


def looks_like_html(value: object) -> bool:
    return isinstance(value, str) and "<" in value and ">" in value


def content_fields(fields: list[WebflowField]) -> list[WebflowField]:
    """The RichText fields of a collection, in schema order."""
    return [f for f in fields if f.type in CONTENT_TYPES]


def build_page_blocks(
    item: WebflowItem,
    fields: list[WebflowField],
    config: SyncConfig | None = None,
    warnings: list[SyncWarning] | None = None,
) -> list[dict]:
    """Convert the item's HTML fields into the page body.

    RichText fields are always considered; PlainText fields only when
    their value looks like HTML.  Fields that convert to no blocks are
    left out entirely.
    """
    converter = HtmlToNotionConverter(config)
    sections: list[tuple[WebflowField, list[dict]]] = []

    for source_field in fields:
        raw = item.field_data.get(source_field.slug)
        if source_field.type in CONTENT_TYPES:
            html = normalize_html(raw)
        elif source_field.type in PLAIN_HTML_CANDIDATES and looks_like_html(raw):
            html = raw
        else:
            continue
        if html is None:
            continue
        result = converter.convert(html)
        if warnings is not None:
            warnings.extend(result.warnings)
        if result.blocks:
            sections.append((source_field, result.blocks))

    if len(sections) == 1:
        return sections[0][1]

    blocks: list[dict] = []
    for index, (source_field, section) in enumerate(sections):
        if index:
            blocks.append(bb.divider())
        blocks.append(bb.heading(3, [make_text_run(source_field.display_name)]))
        blocks.extend(section)
    return blocks


def split_blocks_by_field(
    blocks: list[dict],
    fields: list[WebflowField],
) -> dict[str, list[dict]]:
    """Split a page body back into per-field block lists.

    Parameters
    ----------
    blocks:
        Top-level page blocks, in order.
    fields:
        The collection's content fields.

    Returns
    -------
    dict
        Block lists keyed by field display name.  Blocks before the first
        section heading belong to the first field.
    """
    if not fields:
        return {}
    if len(fields) == 1:
        return {fields[0].display_name: list(blocks)}

    names = {f.display_name for f in fields}
    sections: dict[str, list[dict]] = {f.display_name: [] for f in fields}

    def starts_section(block: dict) -> bool:
        return block.get("type") == "heading_3" and bb.block_text(block).strip() in names

    current = fields[0].display_name
    for index, block in enumerate(blocks):
        if starts_section(block):
            current = bb.block_text(block).strip()
            continue
        if block.get("type") == "divider":
            following = blocks[index + 1] if index + 1 < len(blocks) else None
            if following is not None and starts_section(following):
                continue
        sections[current].append(block)
    return sections
