"""RepositoryFetcher - turn a source URL into a parsed Repository.

Pipeline for one source:
1. Ensure the cache root exists
2. Derive the checkout directory name from the URL
3. Pull the existing checkout, or (re-)clone it
4. Validate the layout (root metadata + at least one item directory)
5. Parse the root metadata
6. Walk the item directories, including package sub-items

Failures in steps 1-4 produce an empty Repository carrying the error.
Steps 5-6 degrade single fields or skip single items instead.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from hubcatalog.backends.base import FileSystem, VCSBackend
from hubcatalog.backends.filesystem import LocalFileSystem
from hubcatalog.backends.git import GitCLI
from hubcatalog.fetcher.errors import (
    CatalogError,
    MetadataParseError,
    RepositoryAcquisitionError,
    RepositoryLayoutError,
)
from hubcatalog.fetcher.metadata import (
    DEFAULT_REPOSITORY_DESCRIPTION,
    DEFAULT_REPOSITORY_NAME,
    ComponentMetadataFile,
    load_component_metadata,
    parse_repository_metadata,
    resolve_metadata_file,
)
from hubcatalog.models import (
    TYPE_OTHER,
    TYPE_PACKAGE,
    CatalogItem,
    Repository,
    RepositoryMetadata,
    SubItem,
)

if TYPE_CHECKING:
    from hubcatalog.config.app import CatalogConfig

logger = logging.getLogger(__name__)

# (directory, default item type), scanned in this order
DIRECTORY_TYPES: tuple[tuple[str, str], ...] = (
    ("mcp-servers", "mcp-server"),
    ("roles", "role"),
    ("storage-systems", "storage"),
    ("items", TYPE_OTHER),
)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def repo_dir_name(url: str) -> str:
    """
    Derive a filesystem-safe directory name from a repository URL.

    Takes the last non-empty path segment, strips a trailing ``.git`` and
    replaces anything outside ``[A-Za-z0-9_-]`` with ``-``.

    Args:
        url: Repository URL

    Returns:
        Directory name, e.g. ``"Roo-Code-Marketplace"``
    """
    segments = [part for part in url.strip().split("/") if part]
    last = segments[-1] if segments else ""
    if last.endswith(".git"):
        last = last[: -len(".git")]
    return _UNSAFE_CHARS.sub("-", last)


class RepositoryFetcher:
    """Fetch, validate and parse catalog repositories.

    Example usage:
        ```python
        fetcher = RepositoryFetcher(cache_dir=Path("~/.hubcatalog/cache"))
        repo = await fetcher.fetch_repository("https://github.com/x/y")
        if repo.error:
            print(repo.error)
        ```
    """

    def __init__(
        self,
        cache_dir: str | Path,
        vcs: VCSBackend | None = None,
        fs: FileSystem | None = None,
        clone_timeout: float = 30.0,
        pull_timeout: float = 20.0,
        default_branch: str = "main",
        user_locale: str = "en",
        fallback_locale: str = "en",
    ):
        """
        Initialize the fetcher.

        Args:
            cache_dir: Root directory for checkouts
            vcs: Version-control capability (defaults to GitCLI)
            fs: Filesystem capability (defaults to LocalFileSystem)
            clone_timeout: Clone timeout in seconds
            pull_timeout: Pull timeout in seconds
            default_branch: Branch used in item URLs when none is discovered
            user_locale: Preferred metadata locale
            fallback_locale: Metadata locale used when the preferred one is missing
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.vcs = vcs if vcs is not None else GitCLI()
        self.fs = fs if fs is not None else LocalFileSystem()
        self.clone_timeout = clone_timeout
        self.pull_timeout = pull_timeout
        self.default_branch = default_branch
        self.user_locale = user_locale
        self.fallback_locale = fallback_locale

    @classmethod
    def from_config(
        cls,
        config: CatalogConfig,
        vcs: VCSBackend | None = None,
        fs: FileSystem | None = None,
    ) -> RepositoryFetcher:
        """Build a fetcher from a CatalogConfig."""
        return cls(
            cache_dir=config.cache.path,
            vcs=vcs if vcs is not None else GitCLI(executable=config.git.executable),
            fs=fs,
            clone_timeout=config.git.clone_timeout_seconds,
            pull_timeout=config.git.pull_timeout_seconds,
            default_branch=config.git.default_branch,
            user_locale=config.localization.user_locale,
            fallback_locale=config.localization.fallback_locale,
        )

    def checkout_dir(self, url: str) -> Path:
        return self.cache_dir / repo_dir_name(url)

    async def fetch_repository(
        self,
        url: str,
        force_refresh: bool = False,
        source_name: str | None = None,
    ) -> Repository:
        """
        Fetch one repository and parse its catalog.

        The checkout is always brought up to date; ``force_refresh`` is
        honoured by the cache layer above and only logged here.

        Args:
            url: Repository URL
            force_refresh: Whether the caller bypassed its cache
            source_name: Display name stamped on every item

        Returns:
            Parsed Repository, or an empty one with ``error`` set
        """
        logger.debug(f"Fetching repository {url} (force_refresh={force_refresh})")

        try:
            await self._ensure_cache_root()
            if not repo_dir_name(url):
                raise RepositoryAcquisitionError(f"Cannot derive a checkout directory from {url!r}")
            repo_dir = self.checkout_dir(url)
            await self._acquire_checkout(url, repo_dir)
            await self._validate_layout(repo_dir)
        except CatalogError as e:
            logger.error(f"Failed to fetch repository {url}: {e}")
            return Repository.empty(url, str(e))

        try:
            branch = await self.vcs.current_branch(repo_dir) or self.default_branch
        except OSError as e:
            logger.warning(f"Cannot determine branch of {repo_dir}: {e}")
            branch = self.default_branch
        metadata = await self._load_repository_metadata(repo_dir)
        items = await self._parse_items(repo_dir, url, branch, source_name)

        logger.info(f"Fetched {url}: {len(items)} items (branch {branch})")
        return Repository(
            metadata=metadata,
            items=items,
            url=url,
            default_branch=branch,
        )

    async def _ensure_cache_root(self) -> None:
        try:
            await self.fs.make_dirs(self.cache_dir)
        except OSError as e:
            raise RepositoryAcquisitionError(
                f"Failed to create cache directory: {e}", self.cache_dir
            ) from e

    async def _acquire_checkout(self, url: str, repo_dir: Path) -> None:
        """Pull an existing checkout; fall back to a fresh clone."""
        try:
            await self._pull_or_clone(url, repo_dir)
        except OSError as e:
            raise RepositoryAcquisitionError(f"Failed to access checkout: {e}", repo_dir) from e

    async def _pull_or_clone(self, url: str, repo_dir: Path) -> None:
        if await self.vcs.is_checkout(repo_dir):
            result = await self.vcs.pull(repo_dir, self.pull_timeout)
            if result.success:
                logger.debug(f"Pulled latest changes into {repo_dir}")
                return

            logger.warning(f"Pull failed for {url}, re-cloning: {result.message}")
            try:
                await self.fs.remove_tree(repo_dir)
            except OSError as e:
                raise RepositoryAcquisitionError(
                    f"Failed to remove stale checkout: {e}", repo_dir
                ) from e
            result = await self.vcs.clone(url, repo_dir, self.clone_timeout)
            if not result.success:
                raise RepositoryAcquisitionError(
                    f"Failed to re-clone repository: {result.message}", repo_dir
                )
            return

        # Leftovers without a VCS marker would make clone refuse the target
        if await self.fs.stat(repo_dir) is not None:
            try:
                await self.fs.remove_tree(repo_dir)
            except OSError as e:
                raise RepositoryAcquisitionError(
                    f"Failed to remove stale checkout: {e}", repo_dir
                ) from e

        result = await self.vcs.clone(url, repo_dir, self.clone_timeout)
        if not result.success:
            raise RepositoryAcquisitionError(
                f"Failed to clone repository: {result.message}", repo_dir
            )
        logger.debug(f"Cloned {url} into {repo_dir}")

    async def _validate_layout(self, repo_dir: Path) -> None:
        try:
            metadata_file = await resolve_metadata_file(
                self.fs, repo_dir, self.user_locale, self.fallback_locale
            )
        except OSError as e:
            raise RepositoryLayoutError(f"Cannot read repository metadata: {e}", repo_dir) from e
        if metadata_file is None:
            raise RepositoryLayoutError("Repository is missing metadata.yml file", repo_dir)

        for dir_name, _item_type in DIRECTORY_TYPES:
            try:
                info = await self.fs.stat(repo_dir / dir_name)
            except OSError as e:
                logger.warning(f"Cannot access {repo_dir / dir_name}: {e}")
                continue
            if info is not None and info.is_dir:
                return

        names = ", ".join(name for name, _ in DIRECTORY_TYPES[:-1])
        raise RepositoryLayoutError(
            f"Repository is missing item directories ({names}, or items)", repo_dir
        )

    async def _load_repository_metadata(self, repo_dir: Path) -> RepositoryMetadata:
        try:
            path = await resolve_metadata_file(
                self.fs, repo_dir, self.user_locale, self.fallback_locale
            )
        except OSError as e:
            logger.warning(f"Cannot locate repository metadata in {repo_dir}: {e}")
            path = None
        if path is None:
            return RepositoryMetadata(
                name=DEFAULT_REPOSITORY_NAME, description=DEFAULT_REPOSITORY_DESCRIPTION
            )
        try:
            text = await self.fs.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read repository metadata {path}: {e}")
            text = ""
        return parse_repository_metadata(text, path)

    async def _parse_items(
        self,
        repo_dir: Path,
        repo_url: str,
        branch: str,
        source_name: str | None,
    ) -> list[CatalogItem]:
        items: list[CatalogItem] = []
        base_url = repo_url.rstrip("/")
        if base_url.endswith(".git"):
            base_url = base_url[: -len(".git")]

        for dir_name, item_type in DIRECTORY_TYPES:
            type_dir = repo_dir / dir_name
            try:
                info = await self.fs.stat(type_dir)
                if info is None or not info.is_dir:
                    continue
                entries = await self.fs.list_dir(type_dir)
            except OSError as e:
                logger.warning(f"Failed to read {type_dir}: {e}")
                continue

            for entry in entries:
                if not entry.is_dir or entry.name.startswith("."):
                    continue
                try:
                    item = await self._parse_item(
                        repo_dir, type_dir / entry.name, dir_name, item_type, base_url, branch
                    )
                except (MetadataParseError, OSError) as e:
                    logger.warning(f"Skipping item {dir_name}/{entry.name}: {e}")
                    continue
                if item is None:
                    logger.debug(f"Skipping {dir_name}/{entry.name}: no metadata file")
                    continue
                item.repo_url = repo_url
                item.source_name = source_name
                items.append(item)

        return items

    async def _parse_item(
        self,
        repo_dir: Path,
        item_dir: Path,
        dir_name: str,
        item_type: str,
        base_url: str,
        branch: str,
    ) -> CatalogItem | None:
        parsed = await load_component_metadata(
            self.fs, item_dir, self.user_locale, self.fallback_locale
        )
        if parsed is None:
            return None

        meta = parsed.to_component_metadata(default_name=item_dir.name, default_type=item_type)
        item = CatalogItem(
            name=meta.name,
            description=meta.description,
            type=meta.type or item_type,
            url=f"{base_url}/tree/{branch}/{dir_name}/{item_dir.name}",
            repo_url=base_url,
            author=meta.author,
            version=meta.version,
            tags=meta.tags,
            source_url=parsed.source_url,
            path=f"{dir_name}/{item_dir.name}",
            last_updated=await self._last_updated(repo_dir, item_dir),
        )

        if item.type == TYPE_PACKAGE:
            item.items = await self._load_sub_items(repo_dir, item_dir, parsed)
        return item

    async def _load_sub_items(
        self,
        repo_dir: Path,
        package_dir: Path,
        parsed: ComponentMetadataFile,
    ) -> list[SubItem]:
        sub_items: list[SubItem] = []

        for ref in parsed.items:
            sub_dir = package_dir / ref.path
            try:
                sub_meta = await load_component_metadata(
                    self.fs, sub_dir, self.user_locale, self.fallback_locale
                )
            except (MetadataParseError, OSError) as e:
                logger.warning(f"Skipping package entry {ref.path}: {e}")
                continue
            if sub_meta is None:
                logger.debug(f"Package entry {ref.path} has no metadata, dropping it")
                continue
            component = sub_meta.to_component_metadata(
                default_name=Path(ref.path).name, default_type=ref.type
            )
            sub_items.append(
                SubItem(
                    type=ref.type or component.type or TYPE_OTHER,
                    path=ref.path,
                    metadata=component,
                    last_updated=await self._last_updated(repo_dir, sub_dir),
                )
            )

        listed = {sub.path for sub in sub_items} | {ref.path for ref in parsed.items}
        await self._scan_unlisted(repo_dir, package_dir, "", listed, sub_items)
        return sub_items

    async def _scan_unlisted(
        self,
        repo_dir: Path,
        directory: Path,
        parent: str,
        listed: set[str],
        sub_items: list[SubItem],
    ) -> None:
        """Recursively add subdirectories with metadata that the package does not list."""
        try:
            entries = await self.fs.list_dir(directory)
        except OSError as e:
            logger.warning(f"Failed to list {directory}: {e}")
            return

        for entry in entries:
            if not entry.is_dir or entry.name.startswith("."):
                continue
            sub_dir = directory / entry.name
            relative = f"{parent}/{entry.name}" if parent else entry.name

            if relative not in listed:
                try:
                    sub_meta = await load_component_metadata(
                        self.fs, sub_dir, self.user_locale, self.fallback_locale
                    )
                except (MetadataParseError, OSError) as e:
                    logger.warning(f"Skipping package component {relative}: {e}")
                    sub_meta = None
                if sub_meta is not None:
                    component = sub_meta.to_component_metadata(
                        default_name=entry.name, default_type=None
                    )
                    sub_items.append(
                        SubItem(
                            type=component.type or TYPE_OTHER,
                            path=relative,
                            metadata=component,
                            last_updated=await self._last_updated(repo_dir, sub_dir),
                        )
                    )
                    listed.add(relative)

            await self._scan_unlisted(repo_dir, sub_dir, relative, listed, sub_items)

    async def _last_updated(self, repo_dir: Path, path: Path) -> str | None:
        """Last commit date touching ``path``, else its mtime."""
        try:
            relative = path.relative_to(repo_dir)
        except ValueError:
            relative = path
        date = await self.vcs.last_commit_date(repo_dir, relative)
        if date:
            return date

        try:
            info = await self.fs.stat(path)
        except OSError as e:
            logger.debug(f"Cannot stat {path}: {e}")
            return None
        if info is None:
            return None
        return datetime.fromtimestamp(info.mtime, tz=timezone.utc).isoformat()
