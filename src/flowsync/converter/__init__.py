"""HTML and Notion block conversion.

Public API:

- :class:`HtmlToNotionConverter`: HTML to Notion blocks.
- :func:`html_to_blocks`: one-shot convenience wrapper.
- :class:`NotionToHtmlRenderer`: Notion blocks to HTML.
- :func:`build_rich_text`: convert inline HTML nodes to rich_text runs.
- :func:`consolidate_rich_text`: merge and trim a run list.
- :func:`split_rich_text`: split oversized runs.
"""

from flowsync.converter.html_to_notion import HtmlToNotionConverter, html_to_blocks
from flowsync.converter.notion_to_html import NotionToHtmlRenderer
from flowsync.converter.rich_text import (
    build_rich_text,
    consolidate_rich_text,
    split_rich_text,
)

__all__ = [
    "HtmlToNotionConverter",
    "NotionToHtmlRenderer",
    "build_rich_text",
    "consolidate_rich_text",
    "html_to_blocks",
    "split_rich_text",
]
