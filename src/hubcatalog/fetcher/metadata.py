"""Metadata file lookup and field extraction.

Repositories, items and package sub-items each describe themselves with a
``metadata.yml`` file, optionally translated as ``metadata.<locale>.yml``.
Parsing is lenient: unknown keys are ignored, numeric versions become
strings and tags may be a list or a comma-separated string.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hubcatalog.backends.base import FileSystem
from hubcatalog.fetcher.errors import MetadataParseError
from hubcatalog.models import ComponentMetadata, RepositoryMetadata, normalize_type

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.yml"

DEFAULT_REPOSITORY_NAME = "Repository Name"
DEFAULT_REPOSITORY_DESCRIPTION = "Repository Description"
DEFAULT_ITEM_DESCRIPTION = "No description"


def _optional_str(v: Any) -> str | None:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


class ExternalItemRef(BaseModel):
    """An entry of a package's ``items`` list."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    path: str

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> str | None:
        return normalize_type(v)

    @field_validator("path", mode="before")
    @classmethod
    def coerce_path(cls, v: Any) -> str:
        text = _optional_str(v)
        if text is None:
            raise ValueError("path is required")
        return text.strip("/")


class ComponentMetadataFile(BaseModel):
    """Fields recognized in an item or sub-item metadata file."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    description: str | None = None
    type: str | None = None
    author: str | None = None
    version: str | None = None
    tags: list[str] | None = None
    source_url: str | None = Field(default=None, alias="sourceUrl")
    items: list[ExternalItemRef] = Field(default_factory=list)

    @field_validator("name", "description", "author", "version", "source_url", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> str | None:
        """Accept numeric scalars (version: 1.0) and coerce to string."""
        return _optional_str(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> str | None:
        return normalize_type(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> list[str] | None:
        """Accept a list or a comma-separated string."""
        if v is None:
            return None
        if isinstance(v, str):
            raw = v.split(",")
        elif isinstance(v, (list, tuple)):
            raw = list(v)
        else:
            raw = [v]
        tags = [str(t).strip() for t in raw if t is not None and str(t).strip()]
        return tags or None

    @field_validator("items", mode="before")
    @classmethod
    def drop_malformed_items(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [entry for entry in v if isinstance(entry, dict) and entry.get("path")]

    def to_component_metadata(self, default_name: str, default_type: str | None) -> ComponentMetadata:
        return ComponentMetadata(
            name=self.name or default_name,
            description=self.description or DEFAULT_ITEM_DESCRIPTION,
            type=self.type or default_type,
            version=self.version,
            author=self.author,
            tags=self.tags,
        )


class RepositoryMetadataFile(BaseModel):
    """Fields recognized in a repository's root metadata file."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    description: str | None = None
    author: str | None = None
    maintainer: str | None = None
    website: str | None = None
    version: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> str | None:
        return _optional_str(v)


def metadata_candidates(directory: Path, user_locale: str, fallback_locale: str) -> list[Path]:
    """
    Metadata file paths to try for a directory, most preferred first.

    Args:
        directory: Directory that may hold metadata files
        user_locale: Preferred locale code
        fallback_locale: Locale used when the preferred one is missing

    Returns:
        Candidate paths without duplicates
    """
    names: list[str] = []
    for locale in (user_locale, fallback_locale):
        if locale:
            name = f"metadata.{locale}.yml"
            if name not in names:
                names.append(name)
    names.append(METADATA_FILENAME)
    return [directory / name for name in names]


async def resolve_metadata_file(
    fs: FileSystem,
    directory: Path,
    user_locale: str,
    fallback_locale: str,
) -> Path | None:
    """Return the first existing metadata file for ``directory``, or None."""
    for candidate in metadata_candidates(directory, user_locale, fallback_locale):
        info = await fs.stat(candidate)
        if info is not None and info.is_file:
            return candidate
    return None


def parse_metadata_text(text: str, path: str | Path | None = None) -> dict[str, Any]:
    """
    Parse metadata YAML into a mapping.

    Args:
        text: File content
        path: Source path, used in error messages

    Returns:
        Parsed mapping (empty for an empty document)

    Raises:
        MetadataParseError: If the YAML is invalid or not a mapping
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MetadataParseError(f"Invalid YAML ({e})", path) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MetadataParseError("Metadata must be a mapping", path)
    return data


def parse_repository_metadata(text: str, path: str | Path | None = None) -> RepositoryMetadata:
    """
    Extract repository metadata fields.

    Never raises: invalid YAML yields placeholder values.

    Args:
        text: Content of the root metadata file
        path: Source path, used in log messages

    Returns:
        RepositoryMetadata with placeholders for missing name/description
    """
    try:
        data = parse_metadata_text(text, path)
        parsed = RepositoryMetadataFile.model_validate(data)
    except (MetadataParseError, ValidationError) as e:
        logger.warning(f"Failed to parse repository metadata: {e}")
        parsed = RepositoryMetadataFile()

    return RepositoryMetadata(
        name=parsed.name or DEFAULT_REPOSITORY_NAME,
        description=parsed.description or DEFAULT_REPOSITORY_DESCRIPTION,
        author=parsed.author or parsed.maintainer,
        website=parsed.website,
        version=parsed.version,
    )


async def load_component_metadata(
    fs: FileSystem,
    directory: Path,
    user_locale: str,
    fallback_locale: str,
) -> ComponentMetadataFile | None:
    """
    Load the metadata file of an item or sub-item directory.

    Args:
        fs: Filesystem capability
        directory: Component directory
        user_locale: Preferred locale code
        fallback_locale: Locale used when the preferred one is missing

    Returns:
        Parsed metadata, or None if the directory has no metadata file

    Raises:
        MetadataParseError: If the metadata file exists but cannot be used
    """
    path = await resolve_metadata_file(fs, directory, user_locale, fallback_locale)
    if path is None:
        return None

    try:
        text = await fs.read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        raise MetadataParseError(f"Cannot read metadata ({e})", path) from e

    data = parse_metadata_text(text, path)
    try:
        return ComponentMetadataFile.model_validate(data)
    except ValidationError as e:
        raise MetadataParseError(f"Invalid metadata fields ({e.error_count()} errors)", path) from e
