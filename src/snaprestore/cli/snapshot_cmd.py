"""CLI commands: snaprestore list / test."""

from __future__ import annotations

from pathlib import Path

import click

from snaprestore.cli.common import home_option, load_settings, settings_options, setup_logging
from snaprestore.core.config import resolve_home
from snaprestore.core.models import RestoreTarget
from snaprestore.providers.restore.base import RestoreError
from snaprestore.providers.restore.dispatcher import get_provider
from snaprestore.storage.s3 import StorageError
from snaprestore.ui.browser import SnapshotBrowser
from snaprestore.ui.renderer import format_size


@click.command("list")
@home_option
@click.option("--limit", "-n", type=int, default=None, help="Show at most N snapshots.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@settings_options
def list_cmd(home: Path | None, limit: int | None, verbose: bool, **overrides) -> None:
    """List snapshots in the bucket, newest first."""
    home_path = home or resolve_home()
    config, settings = load_settings(home_path, overrides)
    setup_logging(home_path, config, verbose=verbose)

    browser = SnapshotBrowser(settings)
    try:
        browser.load_snapshots()
    except StorageError as e:
        raise click.ClickException(str(e)) from e

    snapshots = browser.snapshots
    if not snapshots:
        click.echo(f"No snapshots under s3://{settings.s3.bucket}/{settings.s3.prefix}")
        return

    if limit is not None:
        snapshots = snapshots[:limit]
    for snap in snapshots:
        click.echo(
            f"  {snap.last_modified:%Y-%m-%d %H:%M:%S}  "
            f"{format_size(snap.size):>10}  {snap.key}"
        )
    click.echo(f"\n{len(browser.snapshots)} snapshot(s)")


@click.command("test")
@home_option
@click.option(
    "--target",
    type=click.Choice([t.value for t in RestoreTarget]),
    default=None,
    help="Test a restore target instead of the object store.",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@settings_options
def test_cmd(home: Path | None, target: str | None, verbose: bool, **overrides) -> None:
    """Check connectivity to the object store or a restore target."""
    home_path = home or resolve_home()
    config, settings = load_settings(home_path, overrides)
    setup_logging(home_path, config, verbose=verbose)

    try:
        if target:
            message = get_provider(RestoreTarget(target), settings).test_connection()
        else:
            message = SnapshotBrowser(settings).test_storage()
    except (StorageError, RestoreError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(message)
