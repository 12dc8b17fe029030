"""Environment capabilities: version control, filesystem and clock."""

from hubcatalog.backends.base import (
    Clock,
    DirEntry,
    FileStat,
    FileSystem,
    GitOperationResult,
    VCSBackend,
)
from hubcatalog.backends.filesystem import LocalFileSystem
from hubcatalog.backends.git import GitCLI

__all__ = [
    "Clock",
    "DirEntry",
    "FileStat",
    "FileSystem",
    "GitCLI",
    "GitOperationResult",
    "LocalFileSystem",
    "VCSBackend",
]
