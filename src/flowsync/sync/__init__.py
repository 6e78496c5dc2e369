"""flowsync.sync -- the sync pipeline and webhook handlers.

* :mod:`.orchestrator` -- bulk sync of selected collections.
* :mod:`.source` -- collection and item fetch.
* :mod:`.databases` -- database creation and reuse.
* :mod:`.linker` -- item/page back-references.
* :mod:`.relations` -- relation schema linking and value resolution.
* :mod:`.pages` -- page creation.
* :mod:`.state` -- schema lifecycle state machine.
* :mod:`.webhooks` / :mod:`.notion_webhooks` -- single-item event handlers.
"""

from __future__ import annotations

from .linker import IdentityLinker
from .notion_webhooks import NotionWebhookHandler
from .orchestrator import SyncOrchestrator, run_selected_collections_sync
from .relations import (
    link_relation_schemas,
    resolve_option_values,
    resolve_relation_targets,
    resolve_relation_values,
)
from .state import SchemaLifecycle
from .webhooks import WebflowWebhookHandler

__all__ = [
    "IdentityLinker",
    "NotionWebhookHandler",
    "SchemaLifecycle",
    "SyncOrchestrator",
    "WebflowWebhookHandler",
    "link_relation_schemas",
    "resolve_option_values",
    "resolve_relation_targets",
    "resolve_relation_values",
    "run_selected_collections_sync",
]
