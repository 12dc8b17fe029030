"""
Configuration initialization command.
"""

import logging
import sys
from pathlib import Path

import click

from hubcatalog.config.app import DEFAULT_CONFIG_FILE, generate_default_config

logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--path",
    "config_path",
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Where to write the configuration file",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(config_path: str, force: bool) -> None:
    """Write a default configuration file."""
    target = Path(config_path).expanduser()
    if target.exists() and not force:
        click.echo(f"Config already exists: {target}")
        click.echo("Use --force to overwrite it.")
        return

    try:
        generate_default_config(config_path)
    except OSError as e:
        click.echo(f"Failed to write config: {e}", err=True)
        sys.exit(1)

    click.echo(f"Wrote default configuration to {target}")
