"""Catalog data model.

Dataclasses shared by the fetcher, the cache and the search layer:
- Source: a configured repository URL plus enablement flag
- RepositoryMetadata / Repository: the parsed result of one source
- CatalogItem / SubItem: catalog entries and the components nested in packages
- MatchInfo / MatchReason: per-query annotations written by the search layer

Items are treated as immutable once a Repository is returned. The search
layer and the cache always work on copies (see ``CatalogItem.copy``).
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

# Component types
TYPE_MODE = "mode"
TYPE_PROMPT = "prompt"
TYPE_PACKAGE = "package"
TYPE_MCP_SERVER = "mcp-server"
TYPE_ROLE = "role"
TYPE_STORAGE = "storage"
TYPE_OTHER = "other"

COMPONENT_TYPES = (
    TYPE_MODE,
    TYPE_PROMPT,
    TYPE_PACKAGE,
    TYPE_MCP_SERVER,
    TYPE_ROLE,
    TYPE_STORAGE,
    TYPE_OTHER,
)

# Older repositories spell some types differently
_TYPE_ALIASES = {
    "mcp server": TYPE_MCP_SERVER,
    "mcp_server": TYPE_MCP_SERVER,
    "mcp-servers": TYPE_MCP_SERVER,
}


def normalize_type(value: str | None) -> str | None:
    """Normalize a component type string read from metadata."""
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    return _TYPE_ALIASES.get(text, text)


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Source:
    """A configured remote repository.

    Attributes:
        url: Repository URL (identity, compared case/whitespace-insensitively)
        name: Optional display name (at most 20 visible characters)
        enabled: Whether the source takes part in catalog scans
    """

    url: str
    name: str | None = None
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({"url": self.url, "name": self.name, "enabled": self.enabled})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Source:
        return cls(
            url=str(data.get("url", "")),
            name=data.get("name"),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class MatchReason:
    """Which parts of an item satisfied the active filters."""

    name_match: bool | None = None
    description_match: bool | None = None
    tag_match: bool | None = None
    type_match: bool | None = None
    has_matching_subcomponents: bool | None = None

    def to_dict(self) -> dict[str, bool]:
        return _drop_none(
            {
                "nameMatch": self.name_match,
                "descriptionMatch": self.description_match,
                "tagMatch": self.tag_match,
                "typeMatch": self.type_match,
                "hasMatchingSubcomponents": self.has_matching_subcomponents,
            }
        )


@dataclass
class MatchInfo:
    """Search annotation attached to an item or sub-item."""

    matched: bool
    match_reason: MatchReason | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"matched": self.matched}
        if self.match_reason is not None:
            data["matchReason"] = self.match_reason.to_dict()
        return data


@dataclass
class ComponentMetadata:
    """Metadata of a component nested inside a package."""

    name: str
    description: str = ""
    type: str | None = None
    version: str | None = None
    author: str | None = None
    tags: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "description": self.description,
                "type": self.type,
                "version": self.version,
                "author": self.author,
                "tags": self.tags,
            }
        )


@dataclass
class SubItem:
    """A component owned by a package item.

    Sub-items have no identity outside their parent package; they are
    rebuilt with the parent on every fetch and copied with it on every
    filter pass.
    """

    type: str
    path: str
    metadata: ComponentMetadata | None = None
    last_updated: str | None = None
    match_info: MatchInfo | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "path": self.path}
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        if self.last_updated is not None:
            data["lastUpdated"] = self.last_updated
        if self.match_info is not None:
            data["matchInfo"] = self.match_info.to_dict()
        return data


@dataclass
class CatalogItem:
    """One catalog entry: a leaf component or a package with sub-items.

    Identity for display purposes is ``(repo_url, name)``.
    """

    name: str
    description: str
    type: str
    url: str
    repo_url: str
    author: str | None = None
    version: str | None = None
    tags: list[str] | None = None
    last_updated: str | None = None
    source_url: str | None = None
    source_name: str | None = None
    path: str | None = None
    items: list[SubItem] = field(default_factory=list)
    match_info: MatchInfo | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.repo_url, self.name)

    def copy(self) -> CatalogItem:
        """Deep copy, so annotations never leak into cached data."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        data = _drop_none(
            {
                "name": self.name,
                "description": self.description,
                "type": self.type,
                "url": self.url,
                "repoUrl": self.repo_url,
                "author": self.author,
                "version": self.version,
                "tags": self.tags,
                "lastUpdated": self.last_updated,
                "sourceUrl": self.source_url,
                "sourceName": self.source_name,
                "path": self.path,
            }
        )
        if self.items:
            data["items"] = [sub.to_dict() for sub in self.items]
        if self.match_info is not None:
            data["matchInfo"] = self.match_info.to_dict()
        return data


@dataclass
class RepositoryMetadata:
    """Root metadata of a catalog repository."""

    name: str | None = None
    description: str | None = None
    author: str | None = None
    website: str | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "description": self.description,
                "author": self.author,
                "website": self.website,
                "version": self.version,
            }
        )


@dataclass
class Repository:
    """Parsed result of one source.

    Superseded, never mutated, by the next fetch of the same URL.
    ``error`` is set when the fetch pipeline recovered from a failure.
    """

    metadata: RepositoryMetadata
    items: list[CatalogItem]
    url: str
    error: str | None = None
    default_branch: str | None = None

    @classmethod
    def empty(cls, url: str, error: str | None = None) -> Repository:
        return cls(metadata=RepositoryMetadata(), items=[], url=url, error=error)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "metadata": self.metadata.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "url": self.url,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.default_branch is not None:
            data["defaultBranch"] = self.default_branch
        return data


@dataclass
class CacheEntry:
    """A cached repository and the clock reading at which it was stored."""

    data: Repository
    timestamp: float
