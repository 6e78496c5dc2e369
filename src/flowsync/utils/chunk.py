"""Batching helpers for size-limited API calls.

Notion accepts at most 100 children per ``append_block_children`` or page
create call, and Webflow pages list endpoints return at most 100 items.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

T = TypeVar("T")


def batched(items: Sequence[T], size: int) -> list[list[T]]:
    """Split *items* into consecutive lists of at most *size* elements.

    An empty input returns an empty list (not ``[[]]``).

    Raises
    ------
    ValueError
        If *size* is less than 1.
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def chunk_children(blocks: list[dict[str, Any]], size: int = 100) -> list[list[dict[str, Any]]]:
    """Split block dicts into batches accepted by a single Notion call.

    >>> [len(b) for b in chunk_children([{"type": "divider"}] * 250)]
    [100, 100, 50]
    """
    return batched(blocks, size)
