"""DOM module - HTML/XML loading, markup serialization and text extraction."""

from .crawler import Crawler, QueryOptions, collapse_whitespace

__all__ = [
    "Crawler",
    "QueryOptions",
    "collapse_whitespace",
]
