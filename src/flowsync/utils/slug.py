"""Webflow slug generation."""

from __future__ import annotations

import re
import unicodedata

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str, max_length: int = 256) -> str:
    """Turn a page title into a Webflow item slug.

    Accents are folded to ASCII, runs of anything other than letters and
    digits become a single hyphen.  An empty result falls back to
    ``"untitled"``.

    >>> slugify("Hello, World!")
    'hello-world'
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _NON_SLUG_RE.sub("-", folded.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "untitled"
