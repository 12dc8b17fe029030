"""
hubcatalog settings.

One pydantic model per concern (cache, git, localization, logging) plus
the configured source list, read from ~/.hubcatalog/config.yaml and
overridable from the command line.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from hubcatalog.models import Source

DEFAULT_CONFIG_FILE = "~/.hubcatalog/config.yaml"

DEFAULT_SOURCE_URL = "https://github.com/RooVetGit/Roo-Code-Marketplace"
DEFAULT_SOURCE_NAME = "Roo Code"


def detect_user_locale() -> str:
    """Two-letter language code from the POSIX locale environment, default 'en'."""
    for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(var, "")
        lang = value.split(".")[0].split("_")[0].split("-")[0].lower()
        if len(lang) == 2 and lang.isalpha():
            return lang
    return "en"


class CacheSettings(BaseModel):
    """Repository cache configuration."""

    directory: str = Field(
        default="~/.hubcatalog/cache",
        description="Root directory for repository checkouts",
    )
    ttl_seconds: float = Field(
        default=3600.0,
        description="Seconds a fetched repository stays fresh in memory",
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds to wait for a whole repository fetch before giving up",
    )
    abort_fetch_on_timeout: bool = Field(
        default=False,
        description=(
            "Cancel the fetch task when it loses the timeout race. "
            "If False the fetch finishes in the background and its result is discarded."
        ),
    )

    @field_validator("ttl_seconds", "fetch_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Reject zero and negative durations."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @property
    def path(self) -> Path:
        return Path(self.directory).expanduser()


class GitSettings(BaseModel):
    """Git client configuration."""

    executable: str = Field(
        default="git",
        description="Git executable name or path",
    )
    clone_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for git clone",
    )
    pull_timeout_seconds: float = Field(
        default=20.0,
        description="Timeout for git pull",
    )
    default_branch: str = Field(
        default="main",
        description="Branch used in item URLs when the checkout branch cannot be determined",
    )

    @field_validator("clone_timeout_seconds", "pull_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Reject zero and negative durations."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v


class LocalizationSettings(BaseModel):
    """Locale used to pick metadata.<locale>.yml files."""

    user_locale: str = Field(
        default_factory=detect_user_locale,
        description="Preferred metadata locale (two-letter code)",
    )
    fallback_locale: str = Field(
        default="en",
        description="Locale used when the preferred one is missing",
    )


class LoggingSettings(BaseModel):
    """Log level and output format for the CLI."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level",
    )
    format: Literal["text", "json"] = Field(
        default="text",
        description="Log format (text or json)",
    )


class SourceSettings(BaseModel):
    """A configured catalog source."""

    url: str
    name: str | None = None
    enabled: bool = True

    def to_source(self) -> Source:
        return Source(url=self.url, name=self.name, enabled=self.enabled)


def _default_sources() -> list[SourceSettings]:
    return [SourceSettings(url=DEFAULT_SOURCE_URL, name=DEFAULT_SOURCE_NAME, enabled=True)]


class CatalogConfig(BaseModel):
    """Root settings model; see ``load_config`` for how values are layered."""

    cache: CacheSettings = Field(
        default_factory=CacheSettings,
        description="Repository cache configuration",
    )
    git: GitSettings = Field(
        default_factory=GitSettings,
        description="Git client configuration",
    )
    localization: LocalizationSettings = Field(
        default_factory=LocalizationSettings,
        description="Metadata locale configuration",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="CLI logging",
    )
    max_sources: int = Field(
        default=10,
        description="Maximum number of configured sources",
    )
    sources: list[SourceSettings] = Field(
        default_factory=_default_sources,
        description="Catalog repositories to scan",
    )

    @field_validator("max_sources")
    @classmethod
    def validate_max_sources(cls, v: int) -> int:
        """Validate at least one source is allowed."""
        if v < 1:
            raise ValueError("max_sources must be at least 1")
        return v

    def get_sources(self) -> list[Source]:
        """Configured sources as catalog Source values."""
        return [s.to_source() for s in self.sources]


_PARSERS = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def load_yaml(config_file: str | Path) -> dict[str, Any]:
    """
    Read a YAML (or JSON) config file into a plain dict.

    A missing or empty file reads as ``{}``.

    Raises:
        ValueError: On an unsupported extension, a parse error, or a
            document whose top level is not a mapping
    """
    path = Path(config_file).expanduser()
    if not path.exists():
        return {}

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        supported = ", ".join(sorted(_PARSERS))
        raise ValueError(f"Unsupported config file extension {path.suffix!r} ({supported}): {path}")

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}

    try:
        data = parser(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def apply_cli_overrides(
    config_dict: dict[str, Any],
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Layer command-line values over file values.

    Keys may be dotted (``"cache.ttl_seconds"``) to reach nested sections;
    missing sections are created on the way.
    """
    for dotted, value in (cli_overrides or {}).items():
        *sections, leaf = dotted.split(".")
        target = config_dict
        for section in sections:
            target = target.setdefault(section, {})
        target[leaf] = value
    return config_dict


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )


def generate_default_config(config_file: str | Path) -> None:
    """Write a config file holding every default value."""
    _write_yaml(Path(config_file).expanduser(), CatalogConfig().model_dump(exclude_none=True))


def load_config(
    config_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
    create_default: bool = False,
) -> CatalogConfig:
    """
    Build the effective configuration.

    Precedence is CLI overrides, then the config file, then model defaults.

    Args:
        config_file: Config path (default: ~/.hubcatalog/config.yaml)
        cli_overrides: Dotted-key overrides from the command line
        create_default: Write a default file first when none exists

    Returns:
        Validated CatalogConfig

    Raises:
        ValueError: If the file cannot be parsed or fails validation
    """
    path = Path(config_file or DEFAULT_CONFIG_FILE).expanduser()
    if create_default and not path.exists():
        generate_default_config(path)

    data = apply_cli_overrides(load_yaml(path), cli_overrides)
    try:
        return CatalogConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e


def save_config(config: CatalogConfig, config_file: str | Path | None = None) -> None:
    """Persist ``config`` as YAML (default: ~/.hubcatalog/config.yaml)."""
    _write_yaml(Path(config_file or DEFAULT_CONFIG_FILE).expanduser(), config.model_dump(exclude_none=True))
