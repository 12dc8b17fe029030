"""Validation rules for configured catalog sources.

All functions are pure and return a list of ValidationError values; an
empty list means the input is valid. Nothing here raises.

Duplicate detection compares URLs and names after normalization
(lowercased, all whitespace removed).
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from urllib.parse import urlsplit

from hubcatalog.models import Source

MAX_NAME_LENGTH = 20
DEFAULT_MAX_SOURCES = 10

_HOST = r"[A-Za-z0-9_-]+(?:\.[A-Za-z0-9_-]+)*"
_SEGMENT = r"[A-Za-z0-9_.-]+"

# Applied with fullmatch. A segment already covers a ".git" suffix.

# https://host/owner/repo[.git] (deeper paths allowed, e.g. /tree/main)
HTTPS_PATTERN = re.compile(rf"https?://{_HOST}/{_SEGMENT}/{_SEGMENT}(?:/[^\s]*)?")
# git@host:owner/repo[.git]
SSH_PATTERN = re.compile(rf"git@{_HOST}:{_SEGMENT}/{_SEGMENT}")
# git://host/owner/repo[.git]
GIT_PROTOCOL_PATTERN = re.compile(rf"git://{_HOST}/{_SEGMENT}/{_SEGMENT}")

_SCP_LIKE = re.compile(r"^[\w.-]+@[\w.-]+:\S")


class ValidationErrorCode(str, Enum):
    """Machine-readable validation failure kinds."""

    EMPTY_URL = "empty_url"
    MALFORMED_URL = "malformed_url"
    NON_VISIBLE_CHARS = "non_visible_chars"
    NOT_A_GIT_URL = "not_a_git_url"
    TOO_LONG = "too_long"
    DUPLICATE_URL = "duplicate_url"
    DUPLICATE_NAME = "duplicate_name"
    TOO_MANY_SOURCES = "too_many_sources"


@dataclass(frozen=True)
class ValidationError:
    """A single validation failure for one field of a source."""

    field: str
    message: str
    code: ValidationErrorCode

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message, "code": self.code.value}


@lru_cache(maxsize=1024)
def normalize(value: str) -> str:
    """Lowercase and strip all whitespace, for duplicate comparison."""
    return "".join(value.lower().split())


def _is_non_visible(ch: str) -> bool:
    if ch == " ":
        return False
    return ch.isspace() or unicodedata.category(ch) in ("Cc", "Cf")


def has_non_visible_chars(text: str) -> bool:
    """True if text contains control or whitespace characters other than space."""
    return any(_is_non_visible(ch) for ch in text)


def visible_length(text: str) -> int:
    """Count characters a user would see, ignoring control and combining marks."""
    return sum(1 for ch in text if not _is_non_visible(ch) and unicodedata.category(ch) != "Mn")


def is_valid_git_repository_url(url: str) -> bool:
    """Check a URL against the accepted HTTPS, SSH and git-protocol shapes."""
    trimmed = url.strip()
    return bool(
        HTTPS_PATTERN.fullmatch(trimmed)
        or SSH_PATTERN.fullmatch(trimmed)
        or GIT_PROTOCOL_PATTERN.fullmatch(trimmed)
    )


def _is_parseable_url(url: str) -> bool:
    trimmed = url.strip()
    # scp-style SSH addresses have no scheme but are valid git remotes
    if _SCP_LIKE.match(trimmed):
        return True
    try:
        parts = urlsplit(trimmed)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def validate_url(url: str | None) -> list[ValidationError]:
    """Validate a source URL.

    Empty and unparseable URLs short-circuit; the visibility and git-shape
    checks run independently of each other.
    """
    if url is None or not url.strip():
        return [ValidationError("url", "URL cannot be empty", ValidationErrorCode.EMPTY_URL)]

    if not _is_parseable_url(url):
        return [ValidationError("url", "Invalid URL format", ValidationErrorCode.MALFORMED_URL)]

    errors: list[ValidationError] = []
    if has_non_visible_chars(url):
        errors.append(
            ValidationError(
                "url",
                "URL contains non-visible characters other than spaces",
                ValidationErrorCode.NON_VISIBLE_CHARS,
            )
        )
    if not is_valid_git_repository_url(url):
        errors.append(
            ValidationError(
                "url",
                "URL must be a valid Git repository URL (e.g., https://github.com/username/repo)",
                ValidationErrorCode.NOT_A_GIT_URL,
            )
        )
    return errors


def validate_name(name: str | None = None) -> list[ValidationError]:
    """Validate an optional source name. An absent name is valid."""
    if not name:
        return []

    errors: list[ValidationError] = []
    if visible_length(name) > MAX_NAME_LENGTH:
        errors.append(
            ValidationError(
                "name",
                f"Name must be {MAX_NAME_LENGTH} characters or less",
                ValidationErrorCode.TOO_LONG,
            )
        )
    if has_non_visible_chars(name):
        errors.append(
            ValidationError(
                "name",
                "Name contains non-visible characters other than spaces",
                ValidationErrorCode.NON_VISIBLE_CHARS,
            )
        )
    return errors


def validate_duplicates(
    sources: Sequence[Source],
    candidate: Source | None = None,
) -> list[ValidationError]:
    """Detect duplicate URLs and names.

    Within ``sources`` every duplicated pair yields two errors, one naming
    each side, so both list entries can show their own complaint. Names are
    only compared when both sides have one. A ``candidate`` (a source not
    yet in the list) is compared against every entry and gets one-sided
    errors referencing the existing 1-based indices.
    """
    errors: list[ValidationError] = []

    for i, source in enumerate(sources):
        url_i = normalize(source.url)
        name_i = normalize(source.name) if source.name else None
        for j in range(i + 1, len(sources)):
            other = sources[j]
            if url_i == normalize(other.url):
                errors.append(
                    ValidationError(
                        "url",
                        f"Source #{i + 1} has a duplicate URL with Source #{j + 1}",
                        ValidationErrorCode.DUPLICATE_URL,
                    )
                )
                errors.append(
                    ValidationError(
                        "url",
                        f"Source #{j + 1} has a duplicate URL with Source #{i + 1}",
                        ValidationErrorCode.DUPLICATE_URL,
                    )
                )
            if name_i and other.name and name_i == normalize(other.name):
                errors.append(
                    ValidationError(
                        "name",
                        f"Source #{i + 1} has a duplicate name with Source #{j + 1}",
                        ValidationErrorCode.DUPLICATE_NAME,
                    )
                )
                errors.append(
                    ValidationError(
                        "name",
                        f"Source #{j + 1} has a duplicate name with Source #{i + 1}",
                        ValidationErrorCode.DUPLICATE_NAME,
                    )
                )

    if candidate is not None:
        candidate_url = normalize(candidate.url) if candidate.url else None
        candidate_name = normalize(candidate.name) if candidate.name else None
        for i, source in enumerate(sources):
            if candidate_url and normalize(source.url) == candidate_url:
                errors.append(
                    ValidationError(
                        "url",
                        f"URL is a duplicate of Source #{i + 1}",
                        ValidationErrorCode.DUPLICATE_URL,
                    )
                )
            if candidate_name and source.name and normalize(source.name) == candidate_name:
                errors.append(
                    ValidationError(
                        "name",
                        f"Name is a duplicate of Source #{i + 1}",
                        ValidationErrorCode.DUPLICATE_NAME,
                    )
                )

    return errors


def validate_source(
    source: Source,
    existing: Sequence[Source] = (),
) -> list[ValidationError]:
    """Validate one source before adding it to ``existing``."""
    return [
        *validate_url(source.url),
        *validate_name(source.name),
        *validate_duplicates(existing, source),
    ]


def validate_sources(
    sources: Sequence[Source],
    max_sources: int = DEFAULT_MAX_SOURCES,
) -> list[ValidationError]:
    """Validate a whole source list.

    Per-source errors are prefixed with ``Source #N:``; a single duplicate
    pass over the full list follows.
    """
    errors: list[ValidationError] = []

    if len(sources) > max_sources:
        errors.append(
            ValidationError(
                "sources",
                f"A maximum of {max_sources} sources is allowed (got {len(sources)})",
                ValidationErrorCode.TOO_MANY_SOURCES,
            )
        )

    for index, source in enumerate(sources, start=1):
        for error in [*validate_url(source.url), *validate_name(source.name)]:
            errors.append(
                ValidationError(error.field, f"Source #{index}: {error.message}", error.code)
            )

    errors.extend(validate_duplicates(sources))
    return errors
