"""Tests for hubcatalog.sources.validation."""

import time

import pytest

from hubcatalog.models import Source
from hubcatalog.sources.validation import (
    ValidationErrorCode,
    has_non_visible_chars,
    is_valid_git_repository_url,
    normalize,
    validate_duplicates,
    validate_name,
    validate_source,
    validate_sources,
    validate_url,
)

pytestmark = pytest.mark.unit


def codes(errors):
    return [e.code for e in errors]


class TestValidateUrl:
    """Tests for validate_url."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/owner/repo",
            "https://github.com/owner/repo.git",
            "https://gitlab.example.org/group/project",
            "git@github.com:owner/repo.git",
            "git://example.com/owner/repo",
        ],
    )
    def test_accepts_git_urls(self, url: str):
        """HTTPS, SSH and git-protocol URLs are valid."""
        assert validate_url(url) == []

    @pytest.mark.parametrize("url", ["", "   ", None])
    def test_empty_url(self, url):
        """Blank URLs report only EMPTY_URL."""
        assert codes(validate_url(url)) == [ValidationErrorCode.EMPTY_URL]

    def test_unparseable_url_short_circuits(self):
        """A string without scheme and host is malformed and nothing else is checked."""
        assert codes(validate_url("not a url\t")) == [ValidationErrorCode.MALFORMED_URL]

    def test_not_a_git_url(self):
        """A parseable URL without owner/repo is not a git URL."""
        assert codes(validate_url("https://example.com")) == [ValidationErrorCode.NOT_A_GIT_URL]

    def test_non_visible_and_git_checks_are_independent(self):
        """A control character and a bad shape are both reported."""
        errors = validate_url("https://exa\u0007mple.com")
        assert ValidationErrorCode.NON_VISIBLE_CHARS in codes(errors)
        assert ValidationErrorCode.NOT_A_GIT_URL in codes(errors)

    def test_is_pure(self):
        """Same input, same errors."""
        assert validate_url("ftp://x") == validate_url("ftp://x")

    def test_ssh_shape_check(self):
        assert is_valid_git_repository_url("git@github.com:owner/repo")
        assert not is_valid_git_repository_url("git@github.com/owner/repo")

    def test_deep_https_path_accepted(self):
        assert is_valid_git_repository_url("https://github.com/o/r" + "/a" * 200)
        assert is_valid_git_repository_url("https://github.com/o/r/tree/main/roles.git")

    def test_embedded_newline_rejected_quickly(self):
        """A long URL with a newline is rejected without pathological backtracking."""
        url = "https://github.com/o/r" + "/a" * 200 + "\nx"

        start = time.perf_counter()
        errors = validate_url(url)
        elapsed = time.perf_counter() - start

        assert elapsed < 1.0
        assert ValidationErrorCode.NON_VISIBLE_CHARS in codes(errors)
        assert ValidationErrorCode.NOT_A_GIT_URL in codes(errors)

    def test_dotted_host_rejected_quickly(self):
        host = "a." * 40 + "!"
        start = time.perf_counter()
        assert not is_valid_git_repository_url(f"https://{host}/o/r")
        assert time.perf_counter() - start < 1.0


class TestValidateName:
    """Tests for validate_name."""

    def test_absent_name_is_valid(self):
        assert validate_name(None) == []
        assert validate_name("") == []

    def test_twenty_characters_allowed(self):
        assert validate_name("a" * 20) == []

    def test_too_long(self):
        assert codes(validate_name("a" * 21)) == [ValidationErrorCode.TOO_LONG]

    def test_non_visible_characters(self):
        """Tabs and newlines are rejected, plain spaces are not."""
        assert codes(validate_name("My\tSource")) == [ValidationErrorCode.NON_VISIBLE_CHARS]
        assert validate_name("My Source") == []

    def test_has_non_visible_chars(self):
        assert has_non_visible_chars("a\u200bb")
        assert not has_non_visible_chars("a b")


class TestValidateDuplicates:
    """Tests for validate_duplicates."""

    def test_normalize(self):
        assert normalize(" HTTPS://GitHub.com/A/ B ") == "https://github.com/a/b"

    def test_url_duplicates_are_bidirectional(self):
        """Each side of a duplicated pair gets its own error."""
        sources = [
            Source(url="https://github.com/a/b"),
            Source(url="https://github.com/c/d"),
            Source(url=" HTTPS://GITHUB.COM/A/B"),
        ]
        errors = validate_duplicates(sources)
        messages = [e.message for e in errors]

        assert codes(errors) == [ValidationErrorCode.DUPLICATE_URL] * 2
        assert "Source #1 has a duplicate URL with Source #3" in messages
        assert "Source #3 has a duplicate URL with Source #1" in messages

    def test_names_compared_only_when_both_present(self):
        sources = [
            Source(url="https://github.com/a/b", name="Team"),
            Source(url="https://github.com/c/d"),
            Source(url="https://github.com/e/f", name=" team "),
        ]
        errors = validate_duplicates(sources)

        assert codes(errors) == [ValidationErrorCode.DUPLICATE_NAME] * 2
        assert {e.field for e in errors} == {"name"}

    def test_candidate_errors_are_one_sided(self):
        existing = [
            Source(url="https://github.com/a/b", name="One"),
            Source(url="https://github.com/c/d", name="Two"),
        ]
        candidate = Source(url="https://github.com/c/d", name="one")
        messages = [e.message for e in validate_duplicates(existing, candidate)]

        assert messages == ["Name is a duplicate of Source #1", "URL is a duplicate of Source #2"]


class TestValidateSource:
    """Tests for validate_source and validate_sources."""

    def test_validate_source_unions_checks(self):
        existing = [Source(url="https://github.com/a/b")]
        errors = validate_source(Source(url="https://github.com/a/b", name="x" * 25), existing)

        assert set(codes(errors)) == {ValidationErrorCode.TOO_LONG, ValidationErrorCode.DUPLICATE_URL}

    def test_validate_sources_prefixes_messages(self):
        errors = validate_sources([Source(url="https://github.com/a/b"), Source(url="")])

        assert len(errors) == 1
        assert errors[0].message == "Source #2: URL cannot be empty"
        assert errors[0].code == ValidationErrorCode.EMPTY_URL

    def test_validate_sources_duplicate_symmetry(self):
        """Two equal URLs produce exactly two URL duplicate errors."""
        errors = validate_sources(
            [Source(url="https://github.com/a/b"), Source(url="https://github.com/A/B ")]
        )
        dupes = [e for e in errors if e.code == ValidationErrorCode.DUPLICATE_URL]

        assert [e.message for e in dupes] == [
            "Source #1 has a duplicate URL with Source #2",
            "Source #2 has a duplicate URL with Source #1",
        ]

    def test_too_many_sources(self):
        sources = [Source(url=f"https://github.com/o/r{i}") for i in range(11)]

        assert codes(validate_sources(sources)) == [ValidationErrorCode.TOO_MANY_SOURCES]
        assert validate_sources(sources, max_sources=11) == []

    def test_error_to_dict(self):
        error = validate_url("")[0]
        assert error.to_dict() == {"field": "url", "message": "URL cannot be empty", "code": "empty_url"}
