"""Pytest configuration and shared fixtures for hubcatalog tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from hubcatalog.backends.base import GitOperationResult
from hubcatalog.backends.filesystem import LocalFileSystem
from hubcatalog.cache.manager import CatalogCache
from hubcatalog.fetcher.repository import RepositoryFetcher

SAMPLE_URL = "https://github.com/x/y"


class FakeVCS:
    """In-memory VCSBackend.

    ``repos`` maps a remote URL to a file tree (relative path -> content).
    ``clone`` writes that tree plus a ``.git`` marker into the target
    directory; ``pull`` rewrites it so updated trees become visible.
    """

    def __init__(self) -> None:
        self.repos: dict[str, dict[str, str]] = {}
        self.failing_clones: set[str] = set()
        self.failing_pulls: set[Path] = set()
        self.hanging: set[str] = set()
        self.branch: str | None = None
        self.commit_dates: dict[str, str] = {}
        self.clone_calls: list[tuple[str, Path]] = []
        self.pull_calls: list[Path] = []
        self.clone_started = asyncio.Event()
        self._origins: dict[Path, str] = {}

    def _materialize(self, url: str, target_dir: Path) -> None:
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / ".git").mkdir(exist_ok=True)
        for relative, content in self.repos.get(url, {}).items():
            path = target_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

    async def clone(self, url: str, target_dir: Path, timeout: float) -> GitOperationResult:
        self.clone_calls.append((url, Path(target_dir)))
        self.clone_started.set()
        if url in self.hanging:
            await asyncio.Event().wait()
        if url in self.failing_clones or url not in self.repos:
            return GitOperationResult(
                success=False,
                message=f"Git clone failed: repository '{url}' not found",
                error="not found",
            )
        self._materialize(url, Path(target_dir))
        self._origins[Path(target_dir)] = url
        return GitOperationResult(success=True, message=f"Successfully cloned to {target_dir}")

    async def pull(self, working_dir: Path, timeout: float) -> GitOperationResult:
        working_dir = Path(working_dir)
        self.pull_calls.append(working_dir)
        if working_dir in self.failing_pulls:
            return GitOperationResult(success=False, message="Git pull failed: conflict", error="conflict")
        url = self._origins.get(working_dir)
        if url is not None:
            self._materialize(url, working_dir)
        return GitOperationResult(success=True, message="Git pull succeeded")

    async def is_checkout(self, path: Path) -> bool:
        return (Path(path) / ".git").exists()

    async def current_branch(self, working_dir: Path) -> str | None:
        return self.branch

    async def last_commit_date(self, working_dir: Path, path: Path) -> str | None:
        return self.commit_dates.get(Path(path).as_posix())


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sample_tree() -> dict[str, str]:
    """A small catalog repository with a leaf role and a package."""
    return {
        "metadata.yml": "name: Sample Catalog\ndescription: Components for testing\nauthor: Tester\n",
        "roles/dev/metadata.yml": "name: Developer Role\ntype: role\ntags: [coding, dev]\n",
        "mcp-servers/files/metadata.yml": (
            "name: File Server\n"
            "description: Serves files over MCP\n"
            "type: mcp server\n"
            "version: 1.0\n"
            "author: Alice\n"
        ),
        "items/toolkit/metadata.yml": (
            "name: Data Toolkit\n"
            "description: Bundle of data helpers\n"
            "type: package\n"
            "items:\n"
            "  - type: mode\n"
            "    path: modes/validator\n"
        ),
        "items/toolkit/modes/validator/metadata.yml": (
            "name: Data Validator\ndescription: Checks data files\ntype: mode\n"
        ),
        "items/toolkit/servers/fetch/metadata.yml": (
            "name: Fetch Server\ndescription: Fetches URLs\ntype: mcp-server\n"
        ),
    }


@pytest.fixture
def fake_vcs() -> FakeVCS:
    """Fake VCS with the sample repository registered."""
    vcs = FakeVCS()
    vcs.repos[SAMPLE_URL] = sample_tree()
    return vcs


@pytest.fixture
def fs() -> LocalFileSystem:
    return LocalFileSystem()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def fetcher(cache_dir: Path, fake_vcs: FakeVCS, fs: LocalFileSystem) -> RepositoryFetcher:
    """RepositoryFetcher over the fake VCS and the real filesystem."""
    return RepositoryFetcher(cache_dir=cache_dir, vcs=fake_vcs, fs=fs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog_cache(fetcher: RepositoryFetcher, clock: FakeClock) -> CatalogCache:
    """CatalogCache with a controllable clock and a short fetch timeout."""
    return CatalogCache(fetcher, ttl_seconds=3600, fetch_timeout=0.5, clock=clock)
