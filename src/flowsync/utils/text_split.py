"""Length-limited string helpers.

Notion caps ``rich_text[].text.content`` and code blocks at 2 000
characters.  Python ``str`` indexing is code-point based, so slicing never
cuts a multi-byte character in half.
"""

from __future__ import annotations

ELLIPSIS = "..."


def split_string(text: str, limit: int = 2000) -> list[str]:
    """Split *text* into chunks of at most *limit* characters.

    The concatenation of the chunks equals *text*; an empty string yields
    an empty list.

    >>> split_string("hello world", 5)
    ['hello', ' worl', 'd']
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    if not text:
        return []
    return [text[i : i + limit] for i in range(0, len(text), limit)]


def truncate_with_ellipsis(text: str, limit: int) -> str:
    """Cut *text* to *limit* characters, ending with ``"..."`` when cut.

    The kept prefix is ``limit - 3`` characters long, so the result is
    exactly *limit* characters whenever truncation happens.

    >>> truncate_with_ellipsis("abcdefgh", 6)
    'abc...'
    """
    if limit <= len(ELLIPSIS):
        raise ValueError(f"limit must be > {len(ELLIPSIS)}, got {limit}")
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS
