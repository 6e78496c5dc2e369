"""Notion block tree to HTML renderer.

Used by the reverse path to turn a page body back into the HTML a Webflow
RichText field stores.  Output is deliberately shaped like Webflow's own
rich-text markup (``figure.w-richtext-figure-type-video``,
``div.callout``) so that a round trip through
:class:`~flowsync.converter.html_to_notion.HtmlToNotionConverter`
is stable.

Usage::

    renderer = NotionToHtmlRenderer()
    html = renderer.render_blocks(blocks)
"""

from __future__ import annotations

from collections.abc import Callable as _Callable
from html import escape

from flowsync.models import SyncWarning
from flowsync.observability import get_logger, record_warning

log = get_logger("flowsync.converter")

_LIST_TAGS: dict[str, str] = {
    "bulleted_list_item": "ul",
    "numbered_list_item": "ol",
}


def render_rich_text(runs: list[dict]) -> str:
    """Render a rich_text array to inline HTML.

    Text is escaped, newlines become ``<br>``, annotations wrap the text
    from the inside out (bold, italic, underline, strikethrough, code,
    colour) and a link wraps everything.
    """
    parts: list[str] = []
    for run in runs or []:
        run_type = run.get("type", "text")
        if run_type == "text":
            content = run.get("text", {}).get("content", "")
            link = run.get("text", {}).get("link")
            url = link.get("url") if isinstance(link, dict) else None
        else:
            content = run.get("plain_text", "")
            url = run.get("href")

        html = escape(content).replace("\n", "<br>")
        ann = run.get("annotations") or {}
        if ann.get("bold"):
            html = f"<strong>{html}</strong>"
        if ann.get("italic"):
            html = f"<em>{html}</em>"
        if ann.get("underline"):
            html = f"<u>{html}</u>"
        if ann.get("strikethrough"):
            html = f"<s>{html}</s>"
        if ann.get("code"):
            html = f"<code>{html}</code>"
        color = ann.get("color", "default")
        if color and color != "default":
            if color.endswith("_background"):
                style = f"background-color: {color[: -len('_background')]}"
            else:
                style = f"color: {color}"
            html = f'<span style="{style}">{html}</span>'
        if url:
            html = f'<a href="{escape(url)}">{html}</a>'
        parts.append(html)
    return "".join(parts)


def _children(block: dict) -> list[dict]:
    data = block.get(block.get("type", ""), {})
    if isinstance(data, dict) and isinstance(data.get("children"), list):
        return data["children"]
    children = block.get("children")
    return children if isinstance(children, list) else []


def _file_url(data: dict) -> str:
    source = data.get("type", "external")
    return (data.get(source) or {}).get("url", "") or data.get("url", "")


class NotionToHtmlRenderer:
    """Convert Notion blocks to an HTML string.

    Unsupported block types are skipped; each one is recorded in
    :attr:`warnings` as ``UNSUPPORTED_BLOCK``.
    """

    def __init__(self) -> None:
        self.warnings: list[SyncWarning] = []

    def render_blocks(self, blocks: list[dict]) -> str:
        """Render *blocks* and reset :attr:`warnings`."""
        self.warnings = []
        return self._render_block_list(blocks)

    # -- internals ---------------------------------------------------------

    def _render_block_list(self, blocks: list[dict]) -> str:
        """Render blocks, grouping consecutive list items into one list."""
        parts: list[str] = []
        open_tag: str | None = None
        for block in blocks or []:
            list_tag = _LIST_TAGS.get(block.get("type", ""))
            if list_tag != open_tag:
                if open_tag is not None:
                    parts.append(f"</{open_tag}>")
                if list_tag is not None:
                    parts.append(f"<{list_tag}>")
                open_tag = list_tag
            parts.append(self._dispatch(block))
        if open_tag is not None:
            parts.append(f"</{open_tag}>")
        return "".join(parts)

    def _dispatch(self, block: dict) -> str:
        block_type = block.get("type", "")
        renderer = _BLOCK_RENDERERS.get(block_type)
        if renderer is None:
            record_warning(
                self.warnings,
                log,
                "UNSUPPORTED_BLOCK",
                f"Block type {block_type!r} has no HTML rendering",
                block_id=block.get("id", ""),
                block_type=block_type,
            )
            return ""
        return renderer(self, block)

    def _text(self, block: dict) -> str:
        data = block.get(block.get("type", ""), {}) or {}
        return render_rich_text(data.get("rich_text") or [])

    def _render_paragraph(self, block: dict) -> str:
        return f"<p>{self._text(block)}</p>" + self._render_block_list(_children(block))

    def _render_heading(self, block: dict) -> str:
        level = block["type"][-1]
        return f"<h{level}>{self._text(block)}</h{level}>"

    def _render_list_item(self, block: dict) -> str:
        return f"<li>{self._text(block)}{self._render_block_list(_children(block))}</li>"

    def _render_quote(self, block: dict) -> str:
        return f"<blockquote>{self._text(block)}</blockquote>"

    def _render_code(self, block: dict) -> str:
        data = block.get("code", {})
        language = escape(data.get("language") or "plain text").replace(" ", "-")
        code = "".join(
            run.get("text", {}).get("content", "") or run.get("plain_text", "")
            for run in data.get("rich_text") or []
        )
        return f'<pre><code class="language-{language}">{escape(code)}</code></pre>'

    def _render_divider(self, block: dict) -> str:
        return "<hr>"

    def _render_image(self, block: dict) -> str:
        data = block.get("image", {})
        src = escape(_file_url(data))
        caption = render_rich_text(data.get("caption") or [])
        if caption:
            return f'<figure><img src="{src}"><figcaption>{caption}</figcaption></figure>'
        return f'<figure><img src="{src}"></figure>'

    def _render_media(self, block: dict) -> str:
        data = block.get(block.get("type", ""), {})
        url = escape(_file_url(data))
        return (
            f'<figure class="w-richtext-figure-type-video" data-page-url="{url}">'
            f'<div><iframe src="{url}"></iframe></div></figure>'
        )

    def _render_toggle(self, block: dict) -> str:
        body = self._render_block_list(_children(block))
        return f"<details><summary>{self._text(block)}</summary>{body}</details>"

    def _render_callout(self, block: dict) -> str:
        data = block.get("callout", {})
        icon = data.get("icon") or {}
        emoji = icon.get("emoji") if icon.get("type") == "emoji" else None
        prefix = f'<span style="margin-right: 8px">{escape(emoji)}</span>' if emoji else ""
        return f'<div class="callout">{prefix}{self._text(block)}</div>'


_BlockRenderer = _Callable[["NotionToHtmlRenderer", dict], str]

_BLOCK_RENDERERS: dict[str, _BlockRenderer] = {
    "paragraph": NotionToHtmlRenderer._render_paragraph,
    "heading_1": NotionToHtmlRenderer._render_heading,
    "heading_2": NotionToHtmlRenderer._render_heading,
    "heading_3": NotionToHtmlRenderer._render_heading,
    "bulleted_list_item": NotionToHtmlRenderer._render_list_item,
    "numbered_list_item": NotionToHtmlRenderer._render_list_item,
    "quote": NotionToHtmlRenderer._render_quote,
    "code": NotionToHtmlRenderer._render_code,
    "divider": NotionToHtmlRenderer._render_divider,
    "image": NotionToHtmlRenderer._render_image,
    "video": NotionToHtmlRenderer._render_media,
    "embed": NotionToHtmlRenderer._render_media,
    "toggle": NotionToHtmlRenderer._render_toggle,
    "callout": NotionToHtmlRenderer._render_callout,
}
