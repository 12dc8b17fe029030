"""Repository acquisition and metadata parsing."""

from hubcatalog.fetcher.errors import (
    CatalogError,
    MetadataParseError,
    RepositoryAcquisitionError,
    RepositoryLayoutError,
)
from hubcatalog.fetcher.metadata import (
    load_component_metadata,
    metadata_candidates,
    parse_repository_metadata,
    resolve_metadata_file,
)
from hubcatalog.fetcher.repository import DIRECTORY_TYPES, RepositoryFetcher, repo_dir_name

__all__ = [
    "DIRECTORY_TYPES",
    "CatalogError",
    "MetadataParseError",
    "RepositoryAcquisitionError",
    "RepositoryFetcher",
    "RepositoryLayoutError",
    "load_component_metadata",
    "metadata_candidates",
    "parse_repository_metadata",
    "repo_dir_name",
    "resolve_metadata_file",
]
