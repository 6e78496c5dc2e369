"""Webflow collection schemas and values to Notion databases and pages.

Public API:

- :func:`build_database_properties`: field definitions to a property schema.
- :func:`map_item_properties`: item values to page property values.
- :func:`build_page_blocks`: rich-text fields to the page body.
- :func:`derive_item_status`: publishing status of an item.
- :func:`page_to_field_data`: page properties back to item field data.
"""

from flowsync.mapping.content import build_page_blocks, split_blocks_by_field
from flowsync.mapping.reverse import page_to_field_data
from flowsync.mapping.schema import build_database_properties
from flowsync.mapping.status import derive_item_status
from flowsync.mapping.values import map_choice_value, map_item_properties

__all__ = [
    "build_database_properties",
    "build_page_blocks",
    "derive_item_status",
    "map_choice_value",
    "map_item_properties",
    "page_to_field_data",
    "split_blocks_by_field",
]
