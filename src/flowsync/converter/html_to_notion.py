"""HTML-to-Notion conversion.

:class:`HtmlToNotionConverter` walks a parsed HTML fragment depth-first and
emits Notion blocks in document order.  Every element falls into one of
four roles:

1. **Block** -- ``p``, headings, lists, ``img``, ``figure``,
   ``blockquote``, ``pre``, ``hr``, ``details``, ``video``, ``iframe``.
2. **Inline** -- anything the run builder in
   :mod:`flowsync.converter.rich_text` understands (``strong``, ``a``,
   coloured ``span`` ...) plus bare text.  Consecutive inline nodes at
   container level are grouped into one synthetic paragraph.
3. **Container** -- ``div``, ``section`` and friends are transparent;
   a ``div.callout`` with text becomes a callout block instead.  Inline
   wrappers holding block content (``<a><img></a>``) are transparent too.
4. **Ignored** -- ``head``, script-like tags, comments, and children
   already consumed by their parent (``figcaption``, ``summary``).

Parsing uses BeautifulSoup's ``html.parser`` backend, which accepts any
input, so malformed HTML never raises.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag
from bs4.element import PreformattedString

from flowsync.config import SyncConfig
from flowsync.converter import block_builder as bb
from flowsync.converter.rich_text import (
    NEWLINE,
    build_rich_text,
    consolidate_rich_text,
    make_text_run,
    rich_text_plain,
    split_rich_text,
)
from flowsync.models import ConversionResult, SyncWarning
from flowsync.observability import get_logger, record_warning
from flowsync.utils.text_split import truncate_with_ellipsis

log = get_logger("flowsync.converter")

ZWJ = "\u200d"

_CONTAINER_TAGS: frozenset[str] = frozenset({
    "div", "section", "article", "main", "aside", "header", "footer", "nav",
    "body", "html", "table", "thead", "tbody", "tfoot", "tr", "td", "th",
})

_IGNORED_TAGS: frozenset[str] = frozenset({
    "head", "script", "style", "noscript", "template", "meta", "link",
    "title", "figcaption", "summary",
})

_VIDEO_HOSTS: tuple[str, ...] = ("youtube.com", "youtu.be", "vimeo.com")

_VIDEO_FIGURE_CLASS = "w-richtext-figure-type-video"


def _is_blank(text: str) -> bool:
    return not text.replace(ZWJ, "").strip()


def _classes(tag: Tag) -> list[str]:
    value = tag.get("class") or []
    return [value] if isinstance(value, str) else list(value)


def _unwrap_embed_url(src: str) -> str:
    """Return the original media URL of an embedly iframe, else *src*."""
    if src.startswith("//"):
        src = "https:" + src
    if "cdn.embedly.com" in src:
        original = parse_qs(urlparse(src).query).get("url")
        if original and original[0]:
            return original[0]
    return src


def media_block(url: str) -> dict:
    """``video`` for YouTube / Vimeo URLs, ``embed`` for anything else."""
    if any(host in url for host in _VIDEO_HOSTS):
        return bb.video(url)
    return bb.embed(url)


class HtmlToNotionConverter:
    """Convert HTML fragments to Notion API block payloads.

    Parameters
    ----------
    config:
        Supplies the code-block and rich-text length limits.

    Examples
    --------
    >>> converter = HtmlToNotionConverter()
    >>> result = converter.convert("<h2>Title</h2><p>Body</p>")
    >>> [b["type"] for b in result.blocks]
    ['heading_2', 'paragraph']
    """

    def __init__(self, config: SyncConfig | None = None) -> None:
        self._config = config or SyncConfig()

    # -- public API --------------------------------------------------------

    def iter_blocks(
        self,
        html: object,
        warnings: list[SyncWarning] | None = None,
    ) -> Iterator[dict]:
        """Yield the blocks of *html* in document order.

        Non-string or blank input yields nothing.  Warnings (truncated
        code blocks) are appended to *warnings* when given.
        """
        if not isinstance(html, str) or not html.strip():
            return
        soup = BeautifulSoup(html, "html.parser")
        yield from self._convert_nodes(soup.contents, warnings)

    def convert(self, html: object) -> ConversionResult:
        """Materialise :meth:`iter_blocks` into a :class:`ConversionResult`."""
        warnings: list[SyncWarning] = []
        blocks = list(self.iter_blocks(html, warnings))
        return ConversionResult(blocks=blocks, warnings=warnings)

    # -- traversal ---------------------------------------------------------

    def _convert_nodes(
        self,
        nodes: Iterable[PageElement],
        warnings: list[SyncWarning] | None,
    ) -> Iterator[dict]:
        """Convert sibling nodes, grouping inline runs into paragraphs."""
        pending: list[PageElement] = []
        for node in list(nodes):
            if self._is_inline(node):
                pending.append(node)
                continue
            if pending:
                yield from self._inline_paragraph(pending)
                pending = []
            if isinstance(node, Tag):
                yield from self._convert_element(node, warnings)
        if pending:
            yield from self._inline_paragraph(pending)

    @staticmethod
    def _is_inline(node: PageElement) -> bool:
        if isinstance(node, NavigableString):
            return not isinstance(node, PreformattedString)
        if not isinstance(node, Tag):
            return False
        name = (node.name or "").lower()
        if name in _HANDLERS or name in _CONTAINER_TAGS or name in _IGNORED_TAGS:
            return False
        # A wrapper around block content (e.g. a linked image) is walked
        # like a container.
        return node.find(list(_HANDLERS)) is None

    def _inline_paragraph(self, nodes: list[PageElement]) -> Iterator[dict]:
        runs = self._finish(build_rich_text(nodes))
        if not _is_blank(rich_text_plain(runs)):
            yield bb.paragraph(runs)

    def _convert_element(
        self,
        el: Tag,
        warnings: list[SyncWarning] | None,
    ) -> Iterator[dict]:
        name = (el.name or "").lower()
        if name in _IGNORED_TAGS:
            return
        handler = _HANDLERS.get(name)
        if handler is not None:
            yield from handler(self, el, warnings)
        elif name in _CONTAINER_TAGS:
            yield from self._container(el, warnings)
        else:
            yield from self._convert_nodes(el.contents, warnings)

    def _finish(self, runs: list[dict]) -> list[dict]:
        return split_rich_text(consolidate_rich_text(runs), self._config.rich_text_limit)

    def _flat_runs(self, el: Tag, skip: frozenset[str] = frozenset()) -> list[dict]:
        """Runs of *el*, with direct ``<p>`` children joined by newlines."""
        raw: list[dict] = []
        has_paragraphs = el.find("p", recursive=False) is not None
        for child in el.contents:
            if isinstance(child, Tag):
                child_name = (child.name or "").lower()
                if child_name in skip:
                    continue
                if child_name == "p":
                    if raw:
                        raw.append(make_text_run(NEWLINE))
                    raw.extend(build_rich_text(child.contents))
                    continue
            elif has_paragraphs and isinstance(child, NavigableString) and not child.strip():
                # Source formatting between paragraphs.
                continue
            raw.extend(build_rich_text([child]))
        return self._finish(raw)

    # -- block handlers ----------------------------------------------------

    def _paragraph(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        runs = self._finish(build_rich_text(el.contents))
        if not _is_blank(rich_text_plain(runs)):
            yield bb.paragraph(runs)
        # Images are block-level in Notion; lift them out after the text.
        for img in el.find_all("img"):
            if img.get("src"):
                yield bb.image(str(img["src"]))

    def _heading(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        level = int((el.name or "h1")[1])
        if level <= 3:
            runs = self._finish(build_rich_text(el.contents))
            if not _is_blank(rich_text_plain(runs)):
                yield bb.heading(level, runs)
            return
        runs = self._finish(build_rich_text(el.contents, annotations=_bold()))
        if not _is_blank(rich_text_plain(runs)):
            yield bb.paragraph(runs)

    def _list(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        numbered = (el.name or "").lower() == "ol"
        for li in el.find_all("li", recursive=False):
            item = self._list_item(li, numbered)
            if item is not None:
                yield item

    def _list_item(self, li: Tag, numbered: bool) -> dict | None:
        runs = self._flat_runs(li, skip=frozenset({"ul", "ol"}))
        children: list[dict] = []
        for nested in li.find_all(["ul", "ol"], recursive=False):
            nested_numbered = (nested.name or "").lower() == "ol"
            for child_li in nested.find_all("li", recursive=False):
                child = self._list_item(child_li, nested_numbered)
                if child is not None:
                    children.append(child)

        has_text = not _is_blank(rich_text_plain(runs))
        if not has_text and not children:
            return None
        if not has_text:
            runs = [make_text_run("")]
        return bb.list_item(runs, numbered=numbered, children=children)

    def _image(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        src = el.get("src")
        if not src:
            return
        caption: list[dict] = []
        figure = el.find_parent("figure")
        if figure is not None:
            figcaption = figure.find("figcaption")
            if figcaption is not None:
                caption = self._finish(build_rich_text(figcaption.contents))
        yield bb.image(str(src), caption)

    def _figure(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        if _VIDEO_FIGURE_CLASS in _classes(el):
            url = el.get("data-page-url")
            if not url:
                iframe = el.find("iframe")
                if iframe is not None and iframe.get("src"):
                    url = _unwrap_embed_url(str(iframe["src"]))
            if url:
                yield media_block(str(url))
            return

        img = el.find("img")
        if img is not None and img.get("src"):
            yield from self._image(img, warnings)
            return

        runs = self._finish(build_rich_text(el.contents))
        if not _is_blank(rich_text_plain(runs)):
            yield bb.paragraph(runs)

    def _quote(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        runs = self._flat_runs(el)
        if not _is_blank(rich_text_plain(runs)):
            yield bb.quote(runs)

    def _code(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        code_el = el.find("code")
        source = code_el if code_el is not None else el
        text = source.get_text().rstrip("\n")
        if not text.strip():
            return

        hint = None
        if code_el is not None:
            hint = bb.language_from_classes(_classes(code_el))
        if hint is None:
            hint = bb.language_from_classes(_classes(el))
        language = bb.normalize_language(hint)

        limit = self._config.code_block_limit
        if len(text) > limit:
            record_warning(
                warnings,
                log,
                "CODE_TRUNCATED",
                f"Code block of {len(text)} characters truncated to {limit}",
                original_length=len(text),
                limit=limit,
                language=language,
            )
            text = truncate_with_ellipsis(text, limit)

        runs = split_rich_text([make_text_run(text)], self._config.rich_text_limit)
        yield bb.code(runs, language)

    def _divider(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        yield bb.divider()

    def _details(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        summary = el.find("summary", recursive=False)
        runs: list[dict] = []
        if summary is not None:
            runs = self._finish(build_rich_text(summary.contents))
        if _is_blank(rich_text_plain(runs)):
            runs = [make_text_run("Toggle")]
        body = [c for c in el.contents if c is not summary]
        children = list(self._convert_nodes(body, warnings))
        yield bb.toggle(runs, children)

    def _container(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        if "callout" in _classes(el):
            icon = None
            for child in el.find_all("span", recursive=False):
                if "margin-right" in str(child.get("style") or ""):
                    icon = child
                    break
            runs = self._finish(
                build_rich_text(el.contents, exclude=[icon] if icon is not None else [])
            )
            if not _is_blank(rich_text_plain(runs)):
                emoji = icon.get_text().strip() if icon is not None else None
                yield bb.callout(runs, emoji or None)
                return
        yield from self._convert_nodes(el.contents, warnings)

    def _video(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        src = el.get("src")
        if not src:
            source = el.find("source", src=True)
            src = source.get("src") if source is not None else None
        if src:
            yield bb.video(str(src))

    def _iframe(self, el: Tag, warnings: list[SyncWarning] | None) -> Iterator[dict]:
        src = el.get("src")
        if src:
            yield media_block(_unwrap_embed_url(str(src)))


def _bold() -> dict:
    return {
        "bold": True,
        "italic": False,
        "strikethrough": False,
        "underline": False,
        "code": False,
        "color": "default",
    }


_HANDLERS = {
    "p": HtmlToNotionConverter._paragraph,
    "h1": HtmlToNotionConverter._heading,
    "h2": HtmlToNotionConverter._heading,
    "h3": HtmlToNotionConverter._heading,
    "h4": HtmlToNotionConverter._heading,
    "h5": HtmlToNotionConverter._heading,
    "h6": HtmlToNotionConverter._heading,
    "ul": HtmlToNotionConverter._list,
    "ol": HtmlToNotionConverter._list,
    "img": HtmlToNotionConverter._image,
    "figure": HtmlToNotionConverter._figure,
    "blockquote": HtmlToNotionConverter._quote,
    "pre": HtmlToNotionConverter._code,
    "hr": HtmlToNotionConverter._divider,
    "details": HtmlToNotionConverter._details,
    "video": HtmlToNotionConverter._video,
    "iframe": HtmlToNotionConverter._iframe,
}


def html_to_blocks(html: object, config: SyncConfig | None = None) -> list[dict]:
    """Convert *html* to a list of Notion blocks."""
    return HtmlToNotionConverter(config).convert(html).blocks
