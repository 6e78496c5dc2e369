from .chunk import batched, chunk_children
from .redact import redact
from .slug import slugify
from .text_split import split_string, truncate_with_ellipsis

__all__ = [
    "batched",
    "chunk_children",
    "redact",
    "slugify",
    "split_string",
    "truncate_with_ellipsis",
]
