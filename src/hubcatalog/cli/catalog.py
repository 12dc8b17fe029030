"""
Catalog commands: list, validate, refresh and clean up sources.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from hubcatalog.cache.manager import CatalogCache, CatalogResult
from hubcatalog.cli.utils import format_item, get_catalog_cache
from hubcatalog.config.app import CatalogConfig
from hubcatalog.models import Repository, Source
from hubcatalog.search.filters import SORT_FIELDS, SearchFilters, get_displayed_items
from hubcatalog.sources.validation import validate_sources

logger = logging.getLogger(__name__)


async def _load_items(cache: CatalogCache, sources: list[Source]) -> CatalogResult:
    try:
        return await cache.get_items(sources)
    finally:
        await cache.shutdown()


async def _refresh(cache: CatalogCache, url: str, name: str | None) -> Repository:
    try:
        return await cache.refresh_repository(url, name)
    finally:
        await cache.shutdown()


@click.command("items")
@click.option("--type", "item_type", help="Only show items of this type")
@click.option("--search", "-s", help="Free-text search in names and descriptions")
@click.option("--tag", "tags", multiple=True, help="Only show items with this tag (repeatable)")
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice(SORT_FIELDS),
    default="name",
    show_default=True,
    help="Sort field",
)
@click.option(
    "--order",
    type=click.Choice(["asc", "desc"]),
    default="asc",
    show_default=True,
    help="Sort order",
)
@click.option("--sort-subcomponents", is_flag=True, help="Also sort package contents")
@click.option("--json", "json_format", is_flag=True, help="Output as JSON")
@click.pass_context
def items(
    ctx: click.Context,
    item_type: str | None,
    search: str | None,
    tags: tuple[str, ...],
    sort_by: str,
    order: str,
    sort_subcomponents: bool,
    json_format: bool,
) -> None:
    """List catalog items from all enabled sources."""
    config: CatalogConfig = ctx.obj["config"]
    cache = get_catalog_cache(ctx)

    result = asyncio.run(_load_items(cache, config.get_sources()))

    filters = SearchFilters(type=item_type, search=search, tags=list(tags) or None)
    displayed = get_displayed_items(result.items, filters, sort_by, order, sort_subcomponents)

    for error in result.errors or []:
        click.echo(f"Error: {error}", err=True)

    if json_format:
        payload = {"items": [item.to_dict() for item in displayed]}
        if result.errors:
            payload["errors"] = result.errors
        click.echo(json.dumps(payload, indent=2, default=str))
    elif not displayed:
        click.echo("No items found.")
    else:
        for item in displayed:
            for line in format_item(item):
                click.echo(line)
            click.echo("")
        click.echo(f"{len(displayed)} of {len(result.items)} items")

    if result.errors and not result.items:
        sys.exit(1)


@click.command("validate")
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check the configured sources for invalid or duplicate entries."""
    config: CatalogConfig = ctx.obj["config"]
    sources = config.get_sources()

    errors = validate_sources(sources, max_sources=config.max_sources)
    if not errors:
        click.echo(f"All {len(sources)} sources are valid.")
        return

    for error in errors:
        click.echo(f"{error.field}: {error.message}", err=True)
    sys.exit(1)


@click.command("refresh")
@click.argument("url")
@click.option("--name", "-n", help="Source display name")
@click.option("--json", "json_format", is_flag=True, help="Output as JSON")
@click.pass_context
def refresh(ctx: click.Context, url: str, name: str | None, json_format: bool) -> None:
    """Fetch URL again, bypassing the cache."""
    cache = get_catalog_cache(ctx)
    repository = asyncio.run(_refresh(cache, url, name))

    if json_format:
        click.echo(json.dumps(repository.to_dict(), indent=2, default=str))
    elif not repository.error:
        click.echo(f"Refreshed {repository.metadata.name} ({url})")
        click.echo(f"  Items: {len(repository.items)}")
        if repository.default_branch:
            click.echo(f"  Branch: {repository.default_branch}")

    if repository.error:
        click.echo(f"Failed to refresh {url}: {repository.error}", err=True)
        sys.exit(1)


@click.command("cleanup")
@click.pass_context
def cleanup(ctx: click.Context) -> None:
    """Delete cached checkouts of repositories that are no longer configured."""
    config: CatalogConfig = ctx.obj["config"]
    cache = get_catalog_cache(ctx)

    removed = asyncio.run(cache.cleanup_cache_directories(config.get_sources()))
    if not removed:
        click.echo("Nothing to clean up.")
        return

    click.echo(f"Removed {len(removed)} cache directories:")
    for name in removed:
        click.echo(f"  {name}")
