"""Recording of non-fatal sync warnings.

Mapping ambiguity is a designed degradation: the affected property is
omitted, a :class:`~flowsync.models.SyncWarning` is appended to the
caller's list, and the same information is logged.
"""

from __future__ import annotations

import logging
from typing import Any

from flowsync.models import SyncWarning


def record_warning(
    warnings: list[SyncWarning] | None,
    log: logging.Logger,
    code: str,
    message: str,
    **context: Any,
) -> SyncWarning:
    """Log a warning and append it to *warnings* when a list is given."""
    warning = SyncWarning(code=code, message=message, context=dict(context))
    log.warning(
        message,
        extra={"extra_fields": {"warning_code": code, **context}},
    )
    if warnings is not None:
        warnings.append(warning)
    return warning
