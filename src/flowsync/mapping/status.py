"""Publishing status derivation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from flowsync.mapping.normalize import normalize_datetime
from flowsync.models import ItemStatus, SyncWarning
from flowsync.observability import get_logger, record_warning

log = get_logger("flowsync.mapping")


def _parse(value: Any) -> datetime | None:
    iso = normalize_datetime(value)
    if iso is None:
        return None
    parsed = datetime.fromisoformat(iso)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def derive_item_status(
    is_draft: bool,
    last_published: Any,
    last_updated: Any,
) -> ItemStatus:
    """Derive an item's status from its lifecycle metadata.

    ==========  ================  ======================  ===================
    is_draft    last_published    updated after publish   status
    ==========  ================  ======================  ===================
    true        never             --                      Draft
    true        set               --                      Draft Changes
    false       never             --                      Published
    false       set               yes                     Queued to Publish
    false       set               no                      Published
    ==========  ================  ======================  ===================
    """
    published = _parse(last_published) if last_published else None
    never_published = not last_published

    if is_draft:
        return ItemStatus.DRAFT if never_published else ItemStatus.DRAFT_CHANGES
    if never_published:
        return ItemStatus.PUBLISHED

    updated = _parse(last_updated) if last_updated else None
    if published is not None and updated is not None and updated > published:
        return ItemStatus.QUEUED_TO_PUBLISH
    return ItemStatus.PUBLISHED


def resolve_status_property(
    status: ItemStatus,
    property_config: dict[str, Any] | None,
    warnings: list[SyncWarning] | None = None,
    **context: Any,
) -> dict[str, Any] | None:
    """Build the select value for *status*.

    Falls back to ``Draft`` with a ``STATUS_FALLBACK`` warning when the
    destination select has no option named *status*.  Returns ``None``
    when the destination has no select status property at all.
    """
    if not property_config or property_config.get("type", "select") != "select":
        return None
    options = (property_config.get("select") or {}).get("options") or []
    names = {opt.get("name") for opt in options if isinstance(opt, dict)}
    if status.value in names:
        return {"select": {"name": status.value}}
    record_warning(
        warnings,
        log,
        "STATUS_FALLBACK",
        f"Status {status.value!r} is not an option of the status property; using Draft",
        status=status.value,
        **context,
    )
    return {"select": {"name": ItemStatus.DRAFT.value}}
