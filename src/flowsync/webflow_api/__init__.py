"""flowsync.webflow_api -- Webflow Data API v2 endpoint wrappers.

* :mod:`.sites` -- site listing.
* :mod:`.collections` -- collection schemas and field creation.
* :mod:`.items` -- item list / get / create / update / delete.
"""

from __future__ import annotations

from .collections import AsyncCollectionAPI
from .items import AsyncItemAPI
from .sites import AsyncSiteAPI

__all__ = [
    "AsyncCollectionAPI",
    "AsyncItemAPI",
    "AsyncSiteAPI",
]
