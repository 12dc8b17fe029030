"""Tests for hubcatalog.cache.manager.

CatalogCache runs over the FakeVCS, the real filesystem under tmp_path and
a FakeClock (see conftest).
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from hubcatalog.backends.filesystem import LocalFileSystem
from hubcatalog.cache.manager import CatalogCache, CatalogResult, FetchResult
from hubcatalog.models import Source

pytestmark = pytest.mark.unit

URL = "https://github.com/x/y"
OTHER_URL = "https://github.com/x/other"


class TestGetRepositoryData:
    """Caching and TTL behaviour."""

    @pytest.mark.asyncio
    async def test_second_call_within_ttl_is_cached(self, catalog_cache: CatalogCache, fake_vcs, clock):
        first = await catalog_cache.get_repository_data(URL)
        clock.advance(3599)
        second = await catalog_cache.get_repository_data(URL)

        assert second is first
        assert len(fake_vcs.clone_calls) == 1
        assert fake_vcs.pull_calls == []

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, catalog_cache: CatalogCache, fake_vcs, clock):
        first = await catalog_cache.get_repository_data(URL)
        clock.advance(3601)
        second = await catalog_cache.get_repository_data(URL)

        assert second is not first
        assert len(fake_vcs.pull_calls) == 1

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, catalog_cache: CatalogCache, fake_vcs):
        await catalog_cache.get_repository_data(URL)
        await catalog_cache.get_repository_data(URL, force_refresh=True)

        assert len(fake_vcs.pull_calls) == 1

    @pytest.mark.asyncio
    async def test_cache_entry_timestamp_from_clock(self, catalog_cache: CatalogCache, clock):
        await catalog_cache.get_repository_data(URL)

        entry = catalog_cache.cached_entry(URL)
        assert entry.timestamp == clock.now
        assert entry.data.metadata.name == "Sample Catalog"

    @pytest.mark.asyncio
    async def test_failure_returns_placeholder_and_is_not_cached(self, catalog_cache: CatalogCache, fake_vcs):
        fake_vcs.failing_clones.add(URL)

        repo = await catalog_cache.get_repository_data(URL)

        assert repo.metadata.name == "Unknown Repository"
        assert repo.metadata.description == "Failed to load repository"
        assert repo.metadata.version == "0.0.0"
        assert repo.items == []
        assert repo.error is None
        assert catalog_cache.cached_entry(URL) is None

        fake_vcs.failing_clones.clear()
        repo = await catalog_cache.get_repository_data(URL)
        assert repo.metadata.name == "Sample Catalog"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_recovered(self, catalog_cache: CatalogCache):
        catalog_cache.fetcher.fetch_repository = AsyncMock(side_effect=RuntimeError("disk on fire"))

        repo = await catalog_cache.get_repository_data(URL)

        assert repo.metadata.name == "Unknown Repository"


class TestFetchTimeout:
    @pytest.mark.asyncio
    async def test_hanging_fetch_times_out(self, catalog_cache: CatalogCache, fake_vcs):
        """A VCS call that never settles yields the placeholder after the timeout."""
        fake_vcs.hanging.add(URL)

        repo = await asyncio.wait_for(catalog_cache.get_repository_data(URL), timeout=5)

        assert repo.metadata.name == "Unknown Repository"
        assert repo.items == []
        assert catalog_cache.cached_entry(URL) is None
        assert len(catalog_cache.background_fetches) == 1

        await catalog_cache.shutdown()
        assert catalog_cache.background_fetches == frozenset()

    @pytest.mark.asyncio
    async def test_refresh_reports_timeout_error(self, catalog_cache: CatalogCache, fake_vcs):
        fake_vcs.hanging.add(URL)

        repo = await catalog_cache.refresh_repository(URL)

        assert "timed out after 0.5 seconds" in repo.error
        await catalog_cache.shutdown()

    @pytest.mark.asyncio
    async def test_abort_on_timeout_cancels_fetch(self, fetcher, clock, fake_vcs):
        cache = CatalogCache(fetcher, fetch_timeout=0.05, abort_fetch_on_timeout=True, clock=clock)
        fake_vcs.hanging.add(URL)

        await cache.get_repository_data(URL)
        await asyncio.sleep(0.01)

        assert cache.background_fetches == frozenset()


class TestRefreshRepository:
    @pytest.mark.asyncio
    async def test_refresh_success(self, catalog_cache: CatalogCache, fake_vcs):
        await catalog_cache.get_repository_data(URL)

        repo = await catalog_cache.refresh_repository(URL, "Team")

        assert repo.error is None
        assert len(fake_vcs.pull_calls) == 1
        assert {item.source_name for item in repo.items} == {"Team"}

    @pytest.mark.asyncio
    async def test_refresh_failure_attaches_error(self, catalog_cache: CatalogCache):
        repo = await catalog_cache.refresh_repository(OTHER_URL)

        assert repo.metadata.name == "Unknown Repository"
        assert "Failed to clone repository" in repo.error


class TestGetItems:
    @pytest.mark.asyncio
    async def test_aggregates_enabled_sources(self, catalog_cache: CatalogCache, fake_vcs):
        fake_vcs.repos[OTHER_URL] = {
            "metadata.yml": "name: Other\n",
            "roles/qa/metadata.yml": "name: QA Role\n",
        }
        sources = [
            Source(url=URL, name="Main"),
            Source(url=OTHER_URL),
            Source(url="https://github.com/x/disabled", enabled=False),
        ]

        result = await catalog_cache.get_items(sources)

        assert isinstance(result, CatalogResult)
        assert result.errors is None
        assert [item.name for item in result.items] == [
            "File Server",
            "Developer Role",
            "Data Toolkit",
            "QA Role",
        ]
        assert [item.source_name for item in result.items] == ["Main", "Main", "Main", "other"]
        assert all(url != "https://github.com/x/disabled" for url, _ in fake_vcs.clone_calls)

    @pytest.mark.asyncio
    async def test_errors_recorded_per_source(self, catalog_cache: CatalogCache):
        result = await catalog_cache.get_items([Source(url=URL), Source(url=OTHER_URL)])

        assert len(result.items) == 3
        assert len(result.errors) == 1
        assert result.errors[0].startswith(f"Source {OTHER_URL}: Failed to clone repository")
        assert result.to_dict()["errors"] == result.errors

    @pytest.mark.asyncio
    async def test_locked_source_skipped_silently(self, catalog_cache: CatalogCache, fake_vcs):
        catalog_cache.source_locks.try_acquire(URL)

        result = await catalog_cache.get_items([Source(url=URL)])

        assert result.items == []
        assert result.errors is None
        assert fake_vcs.clone_calls == []

    @pytest.mark.asyncio
    async def test_lock_matches_other_spelling_of_source(self, catalog_cache: CatalogCache, fake_vcs):
        """A source locked under one spelling is skipped under another."""
        catalog_cache.source_locks.try_acquire(URL)

        result = await catalog_cache.get_items([Source(url=" HTTPS://GitHub.com/X/Y ")])

        assert result.items == []
        assert result.errors is None
        assert fake_vcs.clone_calls == []

    @pytest.mark.asyncio
    async def test_locks_released_after_scan(self, catalog_cache: CatalogCache):
        await catalog_cache.get_items([Source(url=URL), Source(url=OTHER_URL)])

        assert len(catalog_cache.source_locks) == 0
        assert catalog_cache.scan_queue.active is False

    @pytest.mark.asyncio
    async def test_returned_items_are_copies(self, catalog_cache: CatalogCache):
        result = await catalog_cache.get_items([Source(url=URL)])
        result.items[0].name = "mutated"

        assert result.items[1].source_name == "y"

        cached = catalog_cache.cached_entry(URL).data
        assert cached.items[0].name == "File Server"
        assert cached.items[0].source_name is None

    @pytest.mark.asyncio
    async def test_current_items(self, catalog_cache: CatalogCache):
        assert catalog_cache.get_current_items() == []

        result = await catalog_cache.get_items([Source(url=URL)])

        assert [i.name for i in catalog_cache.get_current_items()] == [i.name for i in result.items]

    @pytest.mark.asyncio
    async def test_concurrent_callers_never_scan_in_parallel(self, catalog_cache: CatalogCache, fake_vcs):
        fake_vcs.repos[OTHER_URL] = {"metadata.yml": "name: Other\n", "roles/qa/metadata.yml": "name: QA\n"}
        in_flight = 0
        peak = 0
        original = catalog_cache.fetcher.fetch_repository

        async def tracking_fetch(*args, **kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            try:
                return await original(*args, **kwargs)
            finally:
                in_flight -= 1

        catalog_cache.fetcher.fetch_repository = tracking_fetch

        await asyncio.gather(
            catalog_cache.get_items([Source(url=URL)]),
            catalog_cache.get_items([Source(url=OTHER_URL)]),
        )

        assert peak == 1


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_deletes_only_stale_directories(self, catalog_cache: CatalogCache, cache_dir: Path):
        for name in ("A", "B", "C"):
            (cache_dir / name / ".git").mkdir(parents=True)
        (cache_dir / "notes.txt").write_text("keep me")

        removed = await catalog_cache.cleanup_cache_directories(
            [Source(url="https://github.com/o/A"), Source(url="https://github.com/o/C.git", enabled=False)]
        )

        assert removed == ["B"]
        assert sorted(p.name for p in cache_dir.iterdir()) == ["A", "C", "notes.txt"]

    @pytest.mark.asyncio
    async def test_missing_cache_root_is_noop(self, catalog_cache: CatalogCache, cache_dir: Path):
        assert not cache_dir.exists()
        assert await catalog_cache.cleanup_cache_directories([]) == []

    @pytest.mark.asyncio
    async def test_deletion_failure_does_not_abort(self, fetcher, clock, cache_dir: Path):
        for name in ("A", "B", "C"):
            (cache_dir / name).mkdir(parents=True)

        class FlakyFileSystem(LocalFileSystem):
            async def remove_tree(self, path: Path) -> None:
                if path.name == "A":
                    raise PermissionError("locked")
                await super().remove_tree(path)

        fetcher.fs = FlakyFileSystem()
        cache = CatalogCache(fetcher, clock=clock)

        removed = await cache.cleanup_cache_directories([])

        assert removed == ["B", "C"]
        assert (cache_dir / "A").exists()

    @pytest.mark.asyncio
    async def test_clear_cache(self, catalog_cache: CatalogCache, fake_vcs):
        await catalog_cache.get_repository_data(URL)
        catalog_cache.clear_cache()
        await catalog_cache.get_repository_data(URL)

        assert len(fake_vcs.pull_calls) == 1

    @pytest.mark.asyncio
    async def test_cleanup_keeps_cached_checkouts(self, catalog_cache: CatalogCache, cache_dir: Path):
        await catalog_cache.get_repository_data(URL)
        (cache_dir / "stale").mkdir()

        removed = await catalog_cache.cleanup()

        assert removed == ["stale"]
        assert (cache_dir / "y").exists()
        assert catalog_cache.cached_entry(URL) is None


class TestFetchResult:
    def test_constructors(self):
        failed = FetchResult.failure(URL, "boom")

        assert failed.ok is False
        assert failed.error == "boom"
        assert failed.repository.metadata.name == "Unknown Repository"
        assert FetchResult.success(failed.repository).ok is True


class TestFromConfig:
    def test_from_config(self, tmp_path: Path, fake_vcs):
        from hubcatalog.config.app import CatalogConfig

        config = CatalogConfig(
            cache={"directory": str(tmp_path / "c"), "ttl_seconds": 60, "fetch_timeout_seconds": 5},
            git={"default_branch": "trunk"},
        )

        cache = CatalogCache.from_config(config, vcs=fake_vcs)

        assert cache.ttl_seconds == 60
        assert cache.fetch_timeout == 5
        assert cache.cache_dir == tmp_path / "c"
        assert cache.fetcher.default_branch == "trunk"
        assert cache.fetcher.vcs is fake_vcs
