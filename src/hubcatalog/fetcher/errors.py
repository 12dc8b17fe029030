"""Exceptions raised inside the fetch pipeline.

None of these escape ``RepositoryFetcher.fetch_repository``; they are caught
at that boundary and recorded as ``Repository.error``.
"""

from __future__ import annotations

from pathlib import Path


class CatalogError(Exception):
    """Base class for recoverable catalog failures."""

    def __init__(self, message: str, path: str | Path | None = None):
        self.path = str(path) if path else None
        super().__init__(message)


class RepositoryAcquisitionError(CatalogError):
    """Clone, pull or cache-root creation failed."""


class RepositoryLayoutError(CatalogError):
    """Checkout is missing its root metadata or item directories."""


class MetadataParseError(CatalogError):
    """A metadata file could not be read or parsed."""

    def __init__(self, message: str, path: str | Path | None = None):
        super().__init__(f"{message}" + (f": {path}" if path else ""), path)
