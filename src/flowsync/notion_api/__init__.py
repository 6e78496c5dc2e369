"""flowsync.notion_api -- Notion endpoint wrappers.

* :mod:`.pages` -- page create / retrieve / update.
* :mod:`.blocks` -- block children read / append / delete.
* :mod:`.databases` -- database create / retrieve / update / query.
* :mod:`.search` -- parent page discovery.
"""

from __future__ import annotations

from .blocks import AsyncBlockAPI
from .databases import AsyncDatabaseAPI, title_text
from .pages import AsyncPageAPI
from .search import AsyncSearchAPI

__all__ = [
    "AsyncBlockAPI",
    "AsyncDatabaseAPI",
    "AsyncPageAPI",
    "AsyncSearchAPI",
    "title_text",
]
