"""
Shared utilities for hubcatalog CLI commands.
"""

from __future__ import annotations

import logging

import click
import structlog

from hubcatalog.cache.manager import CatalogCache
from hubcatalog.config.app import CatalogConfig
from hubcatalog.models import CatalogItem

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def json_log_formatter() -> logging.Formatter:
    """Formatter rendering each stdlib log record as one JSON object."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def setup_logging(verbose: bool = False, level: str = "warning", fmt: str = "text") -> None:
    """
    Configure logging for CLI.

    Args:
        verbose: If True, enable DEBUG level logging
        level: Configured level used when not verbose
        fmt: "text" or "json"
    """
    log_level = logging.DEBUG if verbose else _LEVELS.get(level, logging.WARNING)
    if fmt == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(json_log_formatter())
        logging.basicConfig(level=log_level, handlers=[handler])
    else:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def get_catalog_cache(ctx: click.Context) -> CatalogCache:
    """Build a CatalogCache from the config stored on the click context."""
    config: CatalogConfig = ctx.obj["config"]
    return CatalogCache.from_config(config)


def format_item(item: CatalogItem) -> list[str]:
    """
    Render an item and its sub-items as text lines.

    Sub-items that matched the active filters are marked with ``*``.
    """
    header = f"{item.name} [{item.type}]"
    if item.version:
        header += f" v{item.version}"
    if item.source_name:
        header += f" ({item.source_name})"

    lines = [header, f"  {item.description}"]
    if item.author:
        lines.append(f"  Author: {item.author}")
    if item.tags:
        lines.append(f"  Tags: {', '.join(item.tags)}")
    lines.append(f"  {item.url}")

    for sub in item.items:
        name = sub.metadata.name if sub.metadata else sub.path
        marker = "*" if sub.match_info and sub.match_info.matched else "-"
        lines.append(f"    {marker} {name} [{sub.type}]")
    return lines
