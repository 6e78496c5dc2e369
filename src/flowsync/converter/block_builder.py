"""Constructors for Notion block dicts.

Each helper returns a complete block in the request shape accepted by
``POST /pages`` and ``PATCH /blocks/{id}/children``::

    {"object": "block", "type": "paragraph", "paragraph": {"rich_text": [...]}}

Rich-text arrays passed in are expected to be consolidated already.
"""

from __future__ import annotations

import re
from typing import Any

from flowsync.converter.rich_text import rich_text_plain


# ---------------------------------------------------------------------------
# Notion code language mapping
# ---------------------------------------------------------------------------

# Notion API accepts a specific set of language identifiers.
# Map common aliases to Notion-accepted values.
_NOTION_LANGUAGES: frozenset[str] = frozenset({
    "abap", "arduino", "bash", "basic", "c", "clojure", "coffeescript",
    "c++", "c#", "css", "dart", "diff", "docker", "elixir", "elm",
    "erlang", "flow", "fortran", "f#", "gherkin", "glsl", "go", "graphql",
    "groovy", "haskell", "html", "java", "javascript", "json", "julia",
    "kotlin", "latex", "less", "lisp", "livescript", "lua", "makefile",
    "markdown", "markup", "matlab", "mermaid", "nix", "objective-c",
    "ocaml", "pascal", "perl", "php", "plain text", "powershell",
    "prolog", "protobuf", "python", "r", "reason", "ruby", "rust",
    "sass", "scala", "scheme", "scss", "shell", "sql", "swift",
    "typescript", "vb.net", "verilog", "vhdl", "visual basic",
    "webassembly", "xml", "yaml", "java/c/c++/c#",
})

_LANGUAGE_ALIASES: dict[str, str] = {
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "sh": "shell",
    "zsh": "shell",
    "rb": "ruby",
    "rs": "rust",
    "yml": "yaml",
    "md": "markdown",
    "cs": "c#",
    "cpp": "c++",
    "objc": "objective-c",
    "objective_c": "objective-c",
    "dockerfile": "docker",
    "make": "makefile",
    "tex": "latex",
    "htm": "html",
    "jsx": "javascript",
    "tsx": "typescript",
    "jsonc": "json",
    "vb": "visual basic",
    "fs": "f#",
    "fsharp": "f#",
    "csharp": "c#",
    "golang": "go",
    "hs": "haskell",
    "kt": "kotlin",
    "pl": "perl",
    "ps1": "powershell",
    "psm1": "powershell",
    "asm": "webassembly",
    "wasm": "webassembly",
}


_LANGUAGE_CLASS_RE = re.compile(r"^(?:language|lang)-(.+)$", re.IGNORECASE)

RICH_TEXT_BLOCK_TYPES: frozenset[str] = frozenset({
    "paragraph", "heading_1", "heading_2", "heading_3", "bulleted_list_item",
    "numbered_list_item", "quote", "code", "toggle", "callout",
})


def normalize_language(info: str | None) -> str:
    """Map a language hint to a Notion-accepted language name."""
    if not info:
        return "plain text"
    lang = info.strip().lower()
    lang = lang.split()[0] if lang else "plain text"
    if lang in _NOTION_LANGUAGES:
        return lang
    if lang in _LANGUAGE_ALIASES:
        return _LANGUAGE_ALIASES[lang]
    # "python3" -> "python"
    stripped = re.sub(r"\d+$", "", lang)
    if stripped in _NOTION_LANGUAGES:
        return stripped
    if stripped in _LANGUAGE_ALIASES:
        return _LANGUAGE_ALIASES[stripped]
    return "plain text"


def language_from_classes(classes: list[str] | None) -> str | None:
    """Return ``X`` from the first ``language-X`` class, if any."""
    for cls in classes or []:
        match = _LANGUAGE_CLASS_RE.match(cls)
        if match:
            return match.group(1)
    return None


# ---------------------------------------------------------------------------
# Block constructors
# ---------------------------------------------------------------------------

def _block(block_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: payload}


def paragraph(rich_text: list[dict]) -> dict[str, Any]:
    return _block("paragraph", {"rich_text": rich_text})


def heading(level: int, rich_text: list[dict]) -> dict[str, Any]:
    """Build ``heading_1`` .. ``heading_3``.  Levels outside 1-3 are clamped."""
    level = min(max(level, 1), 3)
    return _block(f"heading_{level}", {"rich_text": rich_text})


def list_item(
    rich_text: list[dict],
    *,
    numbered: bool = False,
    children: list[dict] | None = None,
) -> dict[str, Any]:
    """Build a bulleted or numbered list item, nesting *children* if given."""
    block_type = "numbered_list_item" if numbered else "bulleted_list_item"
    payload: dict[str, Any] = {"rich_text": rich_text}
    if children:
        payload["children"] = children
    return _block(block_type, payload)


def quote(rich_text: list[dict]) -> dict[str, Any]:
    return _block("quote", {"rich_text": rich_text})


def code(rich_text: list[dict], language: str) -> dict[str, Any]:
    return _block("code", {"rich_text": rich_text, "language": language})


def divider() -> dict[str, Any]:
    return _block("divider", {})


def image(url: str, caption: list[dict] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": "external", "external": {"url": url}}
    if caption:
        payload["caption"] = caption
    return _block("image", payload)


def video(url: str) -> dict[str, Any]:
    return _block("video", {"type": "external", "external": {"url": url}})


def embed(url: str) -> dict[str, Any]:
    return _block("embed", {"url": url})


def toggle(rich_text: list[dict], children: list[dict] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"rich_text": rich_text}
    if children:
        payload["children"] = children
    return _block("toggle", payload)


def callout(rich_text: list[dict], emoji: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"rich_text": rich_text}
    if emoji:
        payload["icon"] = {"type": "emoji", "emoji": emoji}
    return _block("callout", payload)


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------

def block_rich_text(block: dict[str, Any]) -> list[dict]:
    """Return the rich_text array of a text-bearing block, else ``[]``."""
    block_type = block.get("type", "")
    if block_type not in RICH_TEXT_BLOCK_TYPES:
        return []
    return block.get(block_type, {}).get("rich_text") or []


def block_text(block: dict[str, Any]) -> str:
    """Plain text of a block's rich_text."""
    return rich_text_plain(block_rich_text(block))
