"""Local-disk FileSystem implementation built on aiofiles."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat as stat_module
import sys
from pathlib import Path

import aiofiles
import aiofiles.os

from hubcatalog.backends.base import DirEntry, FileStat

logger = logging.getLogger(__name__)


def _scan(path: Path) -> list[DirEntry]:
    with os.scandir(path) as it:
        entries = [
            DirEntry(
                name=entry.name,
                is_dir=entry.is_dir(follow_symlinks=False),
                is_file=entry.is_file(follow_symlinks=False),
            )
            for entry in it
        ]
    return sorted(entries, key=lambda e: e.name)


def _on_rm_error(func, path, _exc) -> None:  # type: ignore[no-untyped-def]
    # Read-only files (e.g. git pack files on Windows) block rmtree
    os.chmod(path, stat_module.S_IWRITE)
    func(path)


def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_on_rm_error)
    else:
        shutil.rmtree(path, onerror=_on_rm_error)


class LocalFileSystem:
    """FileSystem backed by the local disk.

    Blocking calls without an aiofiles equivalent run in a worker thread.
    """

    async def make_dirs(self, path: Path) -> None:
        await aiofiles.os.makedirs(path, exist_ok=True)

    async def stat(self, path: Path) -> FileStat | None:
        try:
            result = await aiofiles.os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        return FileStat(
            is_dir=stat_module.S_ISDIR(result.st_mode),
            is_file=stat_module.S_ISREG(result.st_mode),
            mtime=result.st_mtime,
        )

    async def read_text(self, path: Path) -> str:
        async with aiofiles.open(path, encoding="utf-8") as f:
            return await f.read()

    async def list_dir(self, path: Path) -> list[DirEntry]:
        return await asyncio.to_thread(_scan, path)

    async def remove_tree(self, path: Path) -> None:
        if not await aiofiles.os.path.exists(path):
            return
        logger.debug(f"Removing {path}")
        await asyncio.to_thread(_rmtree, path)
