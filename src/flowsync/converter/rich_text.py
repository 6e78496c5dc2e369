"""Build Notion rich_text arrays from inline HTML nodes.

Every run produced here has the full request shape::

    {
        "type": "text",
        "text": {"content": "hello", "link": {"url": "https://..."} | None},
        "annotations": {"bold": false, "italic": false, "strikethrough": false,
                        "underline": false, "code": false, "color": "default"}
    }

Annotations are inherited from enclosing inline tags and OR-merged, so
``<strong><em>x</em></strong>`` yields a single bold + italic run.  The raw
run list is then consolidated (see :func:`consolidate_rich_text`) and split
at the per-run character limit.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from bs4 import NavigableString, PageElement, Tag
from bs4.element import PreformattedString

from flowsync.utils.text_split import split_string

# ---------------------------------------------------------------------------
# Tag tables
# ---------------------------------------------------------------------------

_ANNOTATION_TAGS: dict[str, str] = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "u": "underline",
    "s": "strikethrough",
    "strike": "strikethrough",
    "del": "strikethrough",
}

# Block-level tags never contribute text to another block's runs.
BLOCK_TAGS: frozenset[str] = frozenset({
    "p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre",
    "hr", "ul", "ol", "li", "figure", "img", "table", "tr", "td", "th",
    "video", "iframe", "details", "section", "article", "main", "aside",
    "header", "footer", "nav",
})

_IGNORED_TAGS: frozenset[str] = frozenset({
    "script", "style", "noscript", "template", "head", "meta", "link", "title",
})

# Palette checked in order; "gray" also matches the British spelling.
_PALETTE: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("red", ("red",)),
    ("blue", ("blue",)),
    ("green", ("green",)),
    ("yellow", ("yellow",)),
    ("orange", ("orange",)),
    ("pink", ("pink",)),
    ("purple", ("purple",)),
    ("gray", ("gray", "grey")),
    ("brown", ("brown",)),
)

_FOREGROUND_RE = re.compile(r"(?<![-\w])color\s*:\s*([^;]+)", re.IGNORECASE)
_BACKGROUND_RE = re.compile(r"background(?:-color)?\s*:\s*([^;]+)", re.IGNORECASE)

NEWLINE = "\n"


# ---------------------------------------------------------------------------
# Annotation helpers
# ---------------------------------------------------------------------------

def _default_annotations() -> dict:
    """Return a fresh default Notion annotations dict."""
    return {
        "bold": False,
        "italic": False,
        "strikethrough": False,
        "underline": False,
        "code": False,
        "color": "default",
    }


def _merge_annotations(base: dict, **overrides: bool) -> dict:
    """Merge boolean overrides into a copy of *base* (OR semantics)."""
    merged = dict(base)
    for key, value in overrides.items():
        if key in merged:
            merged[key] = merged[key] or value
    return merged


def match_palette_color(value: str) -> str:
    """Map a CSS colour value onto a Notion colour name by substring.

    Returns ``"default"`` when no palette entry matches.
    """
    lowered = value.strip().lower()
    for name, needles in _PALETTE:
        if any(needle in lowered for needle in needles):
            return name
    return "default"


def color_from_style(style: str) -> str | None:
    """Derive a Notion colour from an inline ``style`` attribute.

    The foreground ``color`` wins over ``background-color``; a background
    match yields the ``_background`` variant.  Returns ``None`` when the
    style declares no colour at all.
    """
    fg = _FOREGROUND_RE.search(style)
    if fg:
        return match_palette_color(fg.group(1))
    bg = _BACKGROUND_RE.search(style)
    if bg:
        color = match_palette_color(bg.group(1))
        return "default" if color == "default" else f"{color}_background"
    return None


# ---------------------------------------------------------------------------
# Run construction
# ---------------------------------------------------------------------------

def make_text_run(
    content: str,
    annotations: dict | None = None,
    link: str | None = None,
) -> dict:
    """Create a single rich_text run with the full annotation set."""
    return {
        "type": "text",
        "text": {"content": content, "link": {"url": link} if link else None},
        "annotations": dict(annotations) if annotations else _default_annotations(),
    }


def _run_link(run: dict) -> str | None:
    link = run.get("text", {}).get("link")
    return link.get("url") if isinstance(link, dict) else None


def _run_content(run: dict) -> str:
    return run.get("text", {}).get("content", "")


def build_rich_text(
    nodes: Iterable[PageElement],
    *,
    annotations: dict | None = None,
    link: str | None = None,
    in_pre: bool = False,
    exclude: Iterable[PageElement] = (),
) -> list[dict]:
    """Convert inline DOM nodes to a raw (unconsolidated) run list.

    Parameters
    ----------
    nodes:
        The inline children to walk, usually ``tag.contents``.
    annotations:
        Annotations inherited from enclosing inline tags.
    link:
        Link URL inherited from an enclosing ``<a href>``.
    in_pre:
        Inside ``<pre>``: ``<code>`` does not add the code annotation.
    exclude:
        Nodes to skip entirely (e.g. the icon span of a callout).

    Returns
    -------
    list[dict]
        Runs in document order.  Call :func:`consolidate_rich_text` on the
        result before sending it.
    """
    if annotations is None:
        annotations = _default_annotations()
    skipped = list(exclude)
    runs: list[dict] = []

    for node in nodes:
        if any(node is s for s in skipped):
            continue

        if isinstance(node, NavigableString):
            if isinstance(node, PreformattedString):
                continue  # comments, CDATA, doctype
            text = str(node).replace("\u00a0", " ")
            if text.strip() or text in (" ", NEWLINE):
                runs.append(make_text_run(text, annotations, link))
            continue

        if not isinstance(node, Tag):
            continue

        name = (node.name or "").lower()
        if name in BLOCK_TAGS or name in _IGNORED_TAGS:
            continue

        child_annotations = annotations
        child_link = link

        if name == "br":
            runs.append(make_text_run(NEWLINE, annotations))
            continue
        if name in _ANNOTATION_TAGS:
            child_annotations = _merge_annotations(annotations, **{_ANNOTATION_TAGS[name]: True})
        elif name == "code" and not in_pre:
            child_annotations = _merge_annotations(annotations, code=True)
        elif name == "a":
            href = node.get("href")
            if href:
                child_link = str(href)
        elif name == "span":
            style = node.get("style")
            color = color_from_style(str(style)) if style else None
            if color is not None:
                child_annotations = dict(annotations)
                child_annotations["color"] = color

        runs.extend(
            build_rich_text(
                node.contents,
                annotations=child_annotations,
                link=child_link,
                in_pre=in_pre,
                exclude=skipped,
            )
        )

    return runs


# ---------------------------------------------------------------------------
# Consolidation
# ---------------------------------------------------------------------------

def _mergeable(left: dict, right: dict) -> bool:
    if _run_content(left) == NEWLINE or _run_content(right) == NEWLINE:
        return False
    return (
        left.get("annotations") == right.get("annotations")
        and _run_link(left) == _run_link(right)
    )


def consolidate_rich_text(runs: list[dict]) -> list[dict]:
    """Merge, trim and clean a raw run list.

    1. Drop runs with empty content.
    2. Merge adjacent runs with identical annotations and link, except
       that a lone ``"\\n"`` run never merges with a neighbour.
    3. Strip leading whitespace from the first runs and trailing
       whitespace from the last runs, removing runs that become empty.
       A lone ``"\\n"`` run is never trimmed.

    The input list is not mutated.
    """
    merged: list[dict] = []
    for run in runs:
        if not _run_content(run):
            continue
        if merged and _mergeable(merged[-1], run):
            last = merged[-1]
            last["text"]["content"] = _run_content(last) + _run_content(run)
            continue
        merged.append(_clone_run(run, _run_content(run)))

    while merged and _run_content(merged[0]) != NEWLINE:
        stripped = _run_content(merged[0]).lstrip()
        if stripped:
            merged[0]["text"]["content"] = stripped
            break
        merged.pop(0)

    while merged and _run_content(merged[-1]) != NEWLINE:
        stripped = _run_content(merged[-1]).rstrip()
        if stripped:
            merged[-1]["text"]["content"] = stripped
            break
        merged.pop()

    return merged


def split_rich_text(segments: list[dict], limit: int = 2000) -> list[dict]:
    """Split any run whose content exceeds *limit* into several runs.

    Annotations and link are preserved on each piece.

    Parameters
    ----------
    segments:
        List of rich_text runs.
    limit:
        Maximum character count per run.

    Returns
    -------
    list[dict]
        A new list where every run's content is at most *limit* chars.
    """
    output: list[dict] = []
    for segment in segments:
        content = _run_content(segment)
        if len(content) <= limit:
            output.append(segment)
            continue
        for chunk in split_string(content, limit):
            output.append(_clone_run(segment, chunk))
    return output


def rich_text_plain(runs: Iterable[dict]) -> str:
    """Concatenate the text content of a run list."""
    parts: list[str] = []
    for run in runs:
        if "plain_text" in run:
            parts.append(run["plain_text"] or "")
        else:
            parts.append(_run_content(run))
    return "".join(parts)


def _clone_run(run: dict, content: str) -> dict:
    """Copy a run with new content, preserving annotations and link."""
    link = _run_link(run)
    return {
        "type": "text",
        "text": {"content": content, "link": {"url": link} if link else None},
        "annotations": dict(run.get("annotations") or _default_annotations()),
    }
