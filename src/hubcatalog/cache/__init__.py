"""Repository cache, scan serialization and source locks."""

from hubcatalog.cache.manager import (
    CatalogCache,
    CatalogResult,
    FetchResult,
    placeholder_repository,
)
from hubcatalog.cache.scan_queue import ScanQueue, SourceLocks

__all__ = [
    "CatalogCache",
    "CatalogResult",
    "FetchResult",
    "ScanQueue",
    "SourceLocks",
    "placeholder_repository",
]
