"""
hubcatalog CLI entry point.
"""

import sys

import click

from hubcatalog.config.app import load_config

from .catalog import cleanup, items, refresh, validate
from .init import init
from .utils import setup_logging


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to custom configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """hubcatalog - Browse component catalogs published in git repositories."""
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config)
    except ValueError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    settings = ctx.obj["config"].logging
    setup_logging(verbose, settings.level, settings.format)


# Register commands
cli.add_command(items)
cli.add_command(validate)
cli.add_command(refresh)
cli.add_command(cleanup)
cli.add_command(init)
