"""Source list validation."""

from hubcatalog.sources.validation import (
    ValidationError,
    ValidationErrorCode,
    is_valid_git_repository_url,
    normalize,
    validate_duplicates,
    validate_name,
    validate_source,
    validate_sources,
    validate_url,
)

__all__ = [
    "ValidationError",
    "ValidationErrorCode",
    "is_valid_git_repository_url",
    "normalize",
    "validate_duplicates",
    "validate_name",
    "validate_source",
    "validate_sources",
    "validate_url",
]
