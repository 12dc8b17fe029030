"""Capabilities the catalog core needs from its environment.

The fetcher and the cache never touch git or the disk directly; they go
through these Protocols so tests (and hosts) can supply their own:

- VCSBackend: clone / pull / checkout detection / branch and date lookups
- FileSystem: mkdir, stat, read, list and recursive delete
- Clock: a zero-argument callable returning seconds (``time.time``)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

Clock = Callable[[], float]


@dataclass
class GitOperationResult:
    """Result of a git operation."""

    success: bool
    message: str
    output: str | None = None
    error: str | None = None


@dataclass
class FileStat:
    """The parts of a stat result the catalog cares about."""

    is_dir: bool
    is_file: bool
    mtime: float


@dataclass
class DirEntry:
    """One entry of a directory listing."""

    name: str
    is_dir: bool
    is_file: bool


@runtime_checkable
class VCSBackend(Protocol):
    """Version-control operations used to maintain local checkouts."""

    async def clone(self, url: str, target_dir: Path, timeout: float) -> GitOperationResult:
        """Clone ``url`` into ``target_dir``; exceeding ``timeout`` is a failure."""
        ...

    async def pull(self, working_dir: Path, timeout: float) -> GitOperationResult:
        """Update an existing checkout; exceeding ``timeout`` is a failure."""
        ...

    async def is_checkout(self, path: Path) -> bool:
        """True if ``path`` carries a version-control marker."""
        ...

    async def current_branch(self, working_dir: Path) -> str | None:
        """Name of the checked-out branch, or None if it cannot be determined."""
        ...

    async def last_commit_date(self, working_dir: Path, path: Path) -> str | None:
        """ISO-8601 date of the last commit touching ``path``, or None."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Filesystem operations used by the fetcher and cache cleanup."""

    async def make_dirs(self, path: Path) -> None:
        """Create ``path`` and any missing parents."""
        ...

    async def stat(self, path: Path) -> FileStat | None:
        """Stat ``path``; None if it does not exist."""
        ...

    async def read_text(self, path: Path) -> str:
        """Read a UTF-8 text file."""
        ...

    async def list_dir(self, path: Path) -> list[DirEntry]:
        """List the immediate entries of a directory, sorted by name."""
        ...

    async def remove_tree(self, path: Path) -> None:
        """Recursively and forcefully delete ``path``."""
        ...
