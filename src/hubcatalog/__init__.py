"""
hubcatalog - component catalogs published in git repositories.

Clones catalog repositories, parses their metadata into typed items,
caches the result and answers filtered, annotated queries over it.
"""

__version__ = "0.1.0"

from hubcatalog.cache import CatalogCache, CatalogResult, FetchResult
from hubcatalog.fetcher import RepositoryFetcher
from hubcatalog.models import CatalogItem, Repository, Source, SubItem
from hubcatalog.search import SearchFilters, filter_items, get_displayed_items, sort_items
from hubcatalog.sources import validate_source, validate_sources

__all__ = [
    "CatalogCache",
    "CatalogItem",
    "CatalogResult",
    "FetchResult",
    "Repository",
    "RepositoryFetcher",
    "SearchFilters",
    "Source",
    "SubItem",
    "__version__",
    "filter_items",
    "get_displayed_items",
    "sort_items",
    "validate_source",
    "validate_sources",
]
