"""Catalog search: filtering, match annotation and sorting."""

from hubcatalog.search.filters import (
    SORT_FIELDS,
    SearchFilters,
    filter_items,
    get_displayed_items,
    normalize_text,
    sort_items,
)

__all__ = [
    "SORT_FIELDS",
    "SearchFilters",
    "filter_items",
    "get_displayed_items",
    "normalize_text",
    "sort_items",
]
