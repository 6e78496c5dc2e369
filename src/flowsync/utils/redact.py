"""Payload redaction for debug dumps and error logs.

Request and response bodies are logged when an upstream call fails or when
``debug_dump_payload`` is enabled.  :func:`redact` must be applied first:

* values under credential-like keys (``authorization``, ``token``,
  ``secret`` ...) are masked;
* the bearer token of the request is scrubbed from every string;
* base64 data URIs (which Webflow rich text may embed) are replaced with
  ``<data_uri:N_chars>``;
* strings longer than ``max_string`` are shortened to keep log lines small.
"""

from __future__ import annotations

import re
from typing import Any

_DATA_URI_RE = re.compile(
    r"data:[a-zA-Z0-9_.+-]+/[a-zA-Z0-9_.+-]+;base64,[A-Za-z0-9+/=]+"
)

_BEARER_RE = re.compile(r"(Bearer\s+)\S+")

# A key is sensitive when it contains any of these substrings.
_SENSITIVE_KEY_PARTS: tuple[str, ...] = (
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "api_key",
    "api-key",
)

_DEFAULT_MAX_STRING = 2000


def _mask(token: str | None) -> str:
    if token and len(token) >= 8:
        return f"<redacted:...{token[-4:]}>"
    return "<redacted>"


def _scrub_string(value: str, token: str | None, max_string: int) -> str:
    value = _DATA_URI_RE.sub(lambda m: f"<data_uri:{len(m.group(0))}_chars>", value)
    if token and token in value:
        value = value.replace(token, _mask(token))
    value = _BEARER_RE.sub(lambda m: f"{m.group(1)}<redacted>", value)
    if len(value) > max_string:
        value = f"{value[:max_string]}<truncated:{len(value)}_chars>"
    return value


def _redact(value: Any, token: str | None, max_string: int) -> Any:
    if isinstance(value, dict):
        result: dict = {}
        for key, item in value.items():
            lowered = key.lower() if isinstance(key, str) else ""
            if any(part in lowered for part in _SENSITIVE_KEY_PARTS):
                result[key] = _mask(token) if isinstance(item, str) else "<redacted>"
            else:
                result[key] = _redact(item, token, max_string)
        return result
    if isinstance(value, (list, tuple)):
        return [_redact(item, token, max_string) for item in value]
    if isinstance(value, str):
        return _scrub_string(value, token, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    return value


def redact(payload: Any, token: str | None = None, *, max_string: int = _DEFAULT_MAX_STRING) -> Any:
    """Return a redacted copy of *payload*; the input is never mutated.

    Parameters
    ----------
    payload:
        A JSON-like structure (dicts, lists, strings, numbers).
    token:
        The API token used for the request.  Every occurrence is replaced
        with a mask showing at most its last four characters.
    max_string:
        Strings longer than this are truncated.

    >>> redact({"Authorization": "Bearer abc"})
    {'Authorization': '<redacted>'}
    """
    return _redact(payload, token, max_string)
