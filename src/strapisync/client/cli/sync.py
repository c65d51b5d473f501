"""Sync commands for the strapisync CLI.

Commands:
- health: Probe the remote service once
- bootstrap: Register/log in the service identities and trigger a bulk sync
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from strapisync.client.cli.config import load_sync_config
from strapisync.client.sync.context import SyncContext
from strapisync.client.sync.coordinator import SyncCoordinator
from strapisync.client.sync.domain import DomainServices
from strapisync.client.sync.types import BootstrapError
from strapisync.core.config import SyncConfig


def _load(ctx: click.Context) -> SyncConfig:
    config_path: Path | None = ctx.obj.get("config_path") if ctx.obj else None
    try:
        return load_sync_config(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check whether the remote service is healthy."""
    config = _load(ctx)
    context = SyncContext.create(config)
    try:
        healthy = context.client.health.check_health()
    finally:
        context.close()

    if not healthy:
        click.echo(f"{config.base_url} is unhealthy", err=True)
        sys.exit(1)
    click.echo(f"{config.base_url} is healthy")


@click.command()
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds to wait for the remote service to become healthy.",
)
@click.pass_context
def bootstrap(ctx: click.Context, timeout: float | None) -> None:
    """Register the admin and default user, then trigger a bulk sync.

    Safe to re-run: existing registrations are reused.
    """
    config = _load(ctx)
    context = SyncContext.create(config)
    coordinator = SyncCoordinator(context, DomainServices())
    try:
        coordinator.start(timeout=timeout)
    except TimeoutError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except BootstrapError as e:
        click.echo(f"Error: Bootstrap failed: {e}", err=True)
        sys.exit(1)
    finally:
        context.close()

    click.echo("Bootstrap complete")
