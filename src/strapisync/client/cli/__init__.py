"""Command-line interface for strapisync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- health: Probe the remote service once
- bootstrap: Run the bootstrap sequence
- query: Build a bracket-notation query string
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from strapisync.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    load_sync_config,
    setup_logging,
)
from strapisync.client.cli.query import query
from strapisync.client.cli.sync import bootstrap, health


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Options file (defaults to ~/.strapisync/config.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(package_name="strapisync")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """strapisync - Mirror commerce entities into a Strapi content service."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    setup_logging(logging.DEBUG if verbose else logging.INFO)


cli.add_command(health)
cli.add_command(bootstrap)
cli.add_command(query)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "load_config",
    "load_sync_config",
    "setup_logging",
]
