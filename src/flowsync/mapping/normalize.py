"""Normalisation of raw Webflow field values.

The Webflow API does not return one consistent shape per field type: a
number can arrive as ``42``, ``"42"`` or ``{"value": 42}``, an image as a
URL string, an object or a list of objects.  Every normaliser below
accepts those shapes for one kind of value and returns either a typed
result or ``None`` for *unrecognised*.  Callers omit a property whose
value is unrecognised instead of writing a wrong value.

:data:`NORMALIZERS` maps each Webflow field type to its normaliser.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

_URL_KEYS: tuple[str, ...] = ("url", "src", "href", "value")
_TEXT_KEYS: tuple[str, ...] = ("text", "content", "value")
_HTML_KEYS: tuple[str, ...] = ("html", "value", "content")
_ID_KEYS: tuple[str, ...] = ("id", "_id", "value")


def _first_string(data: dict, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
    return None


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

def normalize_text(raw: Any) -> str | None:
    """Plain text from a string, a wrapped object or a list of either.

    List entries are joined with ``", "``.
    """
    if isinstance(raw, str):
        return raw
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return str(raw)
    if isinstance(raw, dict):
        return _first_string(raw, _TEXT_KEYS)
    if isinstance(raw, list):
        parts = [normalize_text(entry) for entry in raw]
        return ", ".join(p for p in parts if p)
    return None


def normalize_number(raw: Any) -> int | float | None:
    """A finite number from a number, numeric string or ``{"value": ...}``.

    Booleans, NaN and infinities are rejected.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return raw if math.isfinite(raw) else None
    if isinstance(raw, str):
        text = raw.strip().replace(",", "")
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            return None
        return value if math.isfinite(value) else None
    if isinstance(raw, dict) and "value" in raw:
        return normalize_number(raw["value"])
    return None


def normalize_datetime(raw: Any) -> str | None:
    """An ISO 8601 date or datetime string for a Notion ``date.start``.

    Accepts ISO strings (a trailing ``Z`` included), date-only strings,
    epoch milliseconds and objects wrapping either under ``value``,
    ``date`` or ``start``.  Naive datetimes are taken as UTC.  Date-only
    input stays date-only.
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return None
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, dict):
        for key in ("value", "date", "start"):
            if key in raw:
                return normalize_datetime(raw[key])
        return None
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None
    if len(text) == 10:
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


def normalize_checkbox(raw: Any) -> bool:
    """Truthiness as Webflow switches express it.

    ``True``, ``1``, ``"true"``, ``"1"`` and non-empty objects are true;
    everything else is false.  Never unrecognised.
    """
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw != 0
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "1")
    if isinstance(raw, dict):
        if "value" in raw:
            value = raw["value"]
            return value is True or value == 1 or value in ("1", "true")
        return bool(raw)
    return False


def normalize_link(raw: Any) -> str | None:
    """A non-blank URL, e-mail address or phone number."""
    if isinstance(raw, str):
        return raw.strip() or None
    if isinstance(raw, dict):
        value = _first_string(raw, _URL_KEYS)
        return value.strip() or None if value else None
    return None


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

def _url_of(entry: Any) -> str | None:
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, dict):
        value = _first_string(entry, _URL_KEYS)
        return value.strip() or None if value else None
    return None


def normalize_file_urls(raw: Any) -> list[str] | None:
    """File URLs from a URL, a file object, a list, or an object holding a list.

    Returns ``None`` when no URL can be found.
    """
    urls: list[str] = []
    if isinstance(raw, list):
        urls = [u for u in (_url_of(entry) for entry in raw) if u]
    elif isinstance(raw, str):
        url = _url_of(raw)
        urls = [url] if url else []
    elif isinstance(raw, dict):
        url = _url_of(raw)
        if url:
            urls = [url]
        else:
            nested = next((v for v in raw.values() if isinstance(v, list)), None)
            if nested is not None:
                urls = [u for u in (_url_of(entry) for entry in nested) if u]
    return urls or None


def _ids(raw: Any) -> list[str] | None:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw] if raw.strip() else []
    if isinstance(raw, dict):
        value = _first_string(raw, _ID_KEYS)
        return [value] if value else None
    if isinstance(raw, list):
        ids: list[str] = []
        for entry in raw:
            if isinstance(entry, str) and entry.strip():
                ids.append(entry)
            elif isinstance(entry, dict):
                value = _first_string(entry, _ID_KEYS)
                if value:
                    ids.append(value)
        return ids
    return None


def normalize_option_ids(raw: Any) -> list[str] | None:
    """Selected option IDs of an Option or Set field.

    A missing or empty value is the empty selection ``[]``.
    """
    return _ids(raw)


def normalize_reference_ids(raw: Any) -> list[str] | None:
    """Referenced item IDs of a Reference or MultiReference field.

    A missing or empty value is ``[]``.
    """
    return _ids(raw)


def normalize_html(raw: Any) -> str | None:
    """HTML of a RichText field: a string, or an object wrapping one."""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        html = _first_string(raw, _HTML_KEYS)
        if html is not None:
            return html
        blocks = raw.get("blocks")
        if isinstance(blocks, list):
            parts: list[str] = []
            for block in blocks:
                if not isinstance(block, dict):
                    continue
                if isinstance(block.get("html"), str):
                    parts.append(block["html"])
                elif isinstance(block.get("text"), str):
                    parts.append(f"<p>{block['text']}</p>")
                elif isinstance(block.get("content"), str):
                    parts.append(f"<p>{block['content']}</p>")
            return "".join(parts) or None
    return None


NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    "PlainText": normalize_text,
    "Color": normalize_text,
    "RichText": normalize_html,
    "Number": normalize_number,
    "DateTime": normalize_datetime,
    "Date": normalize_datetime,
    "Switch": normalize_checkbox,
    "Link": normalize_link,
    "VideoLink": normalize_link,
    "Email": normalize_link,
    "Phone": normalize_link,
    "Image": normalize_file_urls,
    "MultiImage": normalize_file_urls,
    "File": normalize_file_urls,
    "FileRef": normalize_file_urls,
    "Option": normalize_option_ids,
    "Set": normalize_option_ids,
    "Reference": normalize_reference_ids,
    "MultiReference": normalize_reference_ids,
}
