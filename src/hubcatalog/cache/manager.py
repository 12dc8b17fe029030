"""
CatalogCache - cached, serialized access to catalog repositories.

Owns all mutable catalog state for one host:
- an in-memory map of URL -> CacheEntry with a TTL
- advisory per-source locks
- the global scan queue
- the most recent aggregated item list

Nothing here raises for a failing source. Failures travel as FetchResult
values and end up in ``CatalogResult.errors`` or ``Repository.error``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hubcatalog.backends.base import Clock, FileSystem, VCSBackend
from hubcatalog.cache.scan_queue import ScanQueue, SourceLocks
from hubcatalog.fetcher.repository import RepositoryFetcher, repo_dir_name
from hubcatalog.models import CacheEntry, CatalogItem, Repository, RepositoryMetadata, Source

if TYPE_CHECKING:
    from hubcatalog.config.app import CatalogConfig

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0


def placeholder_repository(url: str, error: str | None = None) -> Repository:
    """Structurally valid stand-in returned when a repository cannot be loaded."""
    return Repository(
        metadata=RepositoryMetadata(
            name="Unknown Repository",
            description="Failed to load repository",
            version="0.0.0",
        ),
        items=[],
        url=url,
        error=error,
    )


@dataclass
class FetchResult:
    """Outcome of one cache lookup or fetch.

    ``repository`` is always usable; on failure it is the placeholder.
    """

    repository: Repository
    ok: bool
    error: str | None = None
    from_cache: bool = False

    @classmethod
    def success(cls, repository: Repository, from_cache: bool = False) -> FetchResult:
        return cls(repository=repository, ok=True, from_cache=from_cache)

    @classmethod
    def failure(cls, url: str, error: str) -> FetchResult:
        return cls(repository=placeholder_repository(url), ok=False, error=error)


@dataclass
class CatalogResult:
    """Aggregated items of all enabled sources.

    ``errors`` is None, never empty, when every source loaded.
    """

    items: list[CatalogItem]
    errors: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"items": [item.to_dict() for item in self.items]}
        if self.errors:
            data["errors"] = list(self.errors)
        return data


class CatalogCache:
    """Cache and serialize repository fetches for a list of sources."""

    def __init__(
        self,
        fetcher: RepositoryFetcher,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        abort_fetch_on_timeout: bool = False,
        clock: Clock = time.time,
    ):
        """
        Initialize the cache.

        Args:
            fetcher: RepositoryFetcher used on cache misses
            ttl_seconds: How long a fetched repository stays fresh
            fetch_timeout: Seconds to wait for one fetch before giving up
            abort_fetch_on_timeout: Cancel a fetch that lost the timeout race
                instead of letting it finish in the background
            clock: Callable returning the current time in seconds
        """
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.fetch_timeout = fetch_timeout
        self.abort_fetch_on_timeout = abort_fetch_on_timeout
        self.clock = clock

        self._cache: dict[str, CacheEntry] = {}
        self._locks = SourceLocks()
        self._scan_queue = ScanQueue()
        self._current_items: list[CatalogItem] = []
        self._background_fetches: set[asyncio.Task[Repository]] = set()

    @classmethod
    def from_config(
        cls,
        config: CatalogConfig,
        vcs: VCSBackend | None = None,
        fs: FileSystem | None = None,
        clock: Clock = time.time,
    ) -> CatalogCache:
        """Build a cache and its fetcher from a CatalogConfig."""
        return cls(
            fetcher=RepositoryFetcher.from_config(config, vcs=vcs, fs=fs),
            ttl_seconds=config.cache.ttl_seconds,
            fetch_timeout=config.cache.fetch_timeout_seconds,
            abort_fetch_on_timeout=config.cache.abort_fetch_on_timeout,
            clock=clock,
        )

    @property
    def cache_dir(self) -> Path:
        return self.fetcher.cache_dir

    @property
    def fs(self) -> FileSystem:
        return self.fetcher.fs

    @property
    def scan_queue(self) -> ScanQueue:
        return self._scan_queue

    @property
    def source_locks(self) -> SourceLocks:
        return self._locks

    @property
    def background_fetches(self) -> frozenset[asyncio.Task[Repository]]:
        return frozenset(self._background_fetches)

    def cached_entry(self, url: str) -> CacheEntry | None:
        return self._cache.get(url)

    async def get_items(self, sources: Iterable[Source]) -> CatalogResult:
        """
        Load the items of every enabled source.

        Sources whose URL is already locked by another caller are skipped
        silently. Each remaining source is scanned through the global scan
        queue, one at a time, in list order.

        Args:
            sources: Configured sources

        Returns:
            CatalogResult with attributed item copies and, if any source
            failed, ``"Source {url}: {message}"`` errors
        """
        items: list[CatalogItem] = []
        errors: list[str] = []

        for source in [s for s in sources if s.enabled]:
            url = source.url
            if not self._locks.try_acquire(url):
                logger.debug(f"Source {url} is already being scanned, skipping")
                continue

            try:
                result = await self._scan_queue.run(
                    lambda: self._fetch(url, force_refresh=False, source_name=source.name)
                )
            finally:
                self._locks.release(url)

            if not result.ok:
                errors.append(f"Source {url}: {result.error}")
                continue

            source_name = source.name or repo_dir_name(url)
            for item in result.repository.items:
                attributed = item.copy()
                attributed.source_name = source_name
                items.append(attributed)

        self._current_items = items
        if errors:
            logger.warning(f"{len(errors)} source(s) failed to load")
        return CatalogResult(items=items, errors=errors or None)

    def get_current_items(self) -> list[CatalogItem]:
        """Items aggregated by the most recent ``get_items`` call."""
        return list(self._current_items)

    async def get_repository_data(
        self,
        url: str,
        force_refresh: bool = False,
        source_name: str | None = None,
    ) -> Repository:
        """
        Return a repository from the cache or fetch it.

        Args:
            url: Repository URL
            force_refresh: Ignore a fresh cache entry
            source_name: Display name passed to the fetcher

        Returns:
            The cached or fetched Repository; the placeholder on failure
        """
        result = await self._fetch(url, force_refresh=force_refresh, source_name=source_name)
        return result.repository

    async def refresh_repository(self, url: str, source_name: str | None = None) -> Repository:
        """
        Fetch a repository bypassing the cache.

        Args:
            url: Repository URL
            source_name: Display name passed to the fetcher

        Returns:
            The fresh Repository, or the placeholder with ``error`` set
        """
        result = await self._fetch(url, force_refresh=True, source_name=source_name)
        if result.ok:
            return result.repository
        return placeholder_repository(url, error=result.error)

    def clear_cache(self) -> None:
        """Drop every in-memory cache entry."""
        self._cache.clear()

    async def cleanup(self) -> list[str]:
        """
        Drop the in-memory cache and delete checkouts of uncached repositories.

        Returns:
            Names of the deleted cache directories
        """
        keep = [Source(url=url, enabled=True) for url in self._cache]
        self.clear_cache()
        return await self.cleanup_cache_directories(keep)

    async def cleanup_cache_directories(self, current_sources: Iterable[Source]) -> list[str]:
        """
        Delete cache directories that belong to no current source.

        A missing cache root is a no-op. A directory that cannot be deleted
        is logged and skipped.

        Args:
            current_sources: Sources whose checkouts must be kept

        Returns:
            Names of the deleted directories
        """
        info = await self.fs.stat(self.cache_dir)
        if info is None or not info.is_dir:
            return []

        try:
            entries = await self.fs.list_dir(self.cache_dir)
        except OSError as e:
            logger.error(f"Failed to list cache directory {self.cache_dir}: {e}")
            return []

        keep = {repo_dir_name(source.url) for source in current_sources}
        removed: list[str] = []
        for entry in entries:
            if not entry.is_dir or entry.name in keep:
                continue
            try:
                await self.fs.remove_tree(self.cache_dir / entry.name)
            except OSError as e:
                logger.warning(f"Failed to delete cache directory {entry.name}: {e}")
                continue
            removed.append(entry.name)

        if removed:
            logger.info(f"Removed {len(removed)} stale cache directories: {', '.join(removed)}")
        return removed

    async def shutdown(self) -> None:
        """Cancel fetches still running after losing the timeout race."""
        tasks = list(self._background_fetches)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fetch(
        self,
        url: str,
        force_refresh: bool,
        source_name: str | None,
    ) -> FetchResult:
        cached = self._cache.get(url)
        if not force_refresh and cached is not None:
            if self.clock() - cached.timestamp < self.ttl_seconds:
                logger.debug(f"Cache hit for {url}")
                return FetchResult.success(cached.data, from_cache=True)

        task = asyncio.create_task(
            self.fetcher.fetch_repository(url, force_refresh, source_name),
            name=f"fetch:{url}",
        )
        try:
            done, _ = await asyncio.wait({task}, timeout=self.fetch_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            message = f"Repository fetch timed out after {self.fetch_timeout:g} seconds: {url}"
            logger.error(message)
            if self.abort_fetch_on_timeout:
                task.cancel()
            self._track_background(task, url)
            return FetchResult.failure(url, message)

        try:
            repository = task.result()
        except Exception as e:
            logger.error(f"Error fetching repository data for {url}: {e}")
            return FetchResult.failure(url, str(e) or type(e).__name__)

        if repository.error:
            return FetchResult.failure(url, repository.error)

        self._cache[url] = CacheEntry(data=repository, timestamp=self.clock())
        return FetchResult.success(repository)

    def _track_background(self, task: asyncio.Task[Repository], url: str) -> None:
        self._background_fetches.add(task)

        def _done(finished: asyncio.Task[Repository]) -> None:
            self._background_fetches.discard(finished)
            if finished.cancelled():
                logger.debug(f"Timed-out fetch for {url} was cancelled")
                return
            exc = finished.exception()
            if exc is not None:
                logger.warning(f"Timed-out fetch for {url} failed: {exc}")
            else:
                logger.debug(f"Timed-out fetch for {url} finished, result discarded")

        task.add_done_callback(_done)
