"""CLI command: snaprestore browse (interactive terminal UI)."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from snaprestore.cli.common import home_option, load_settings, settings_options, setup_logging
from snaprestore.core.config import resolve_home
from snaprestore.core.models import RestoreTarget

log = logging.getLogger(__name__)

TARGET_CHOICES = [t.value for t in RestoreTarget]


@click.command("browse")
@home_option
@click.option(
    "--target",
    type=click.Choice(TARGET_CHOICES),
    default=None,
    help="Initial restore target (default: restore_target from config).",
)
@click.option(
    "--download-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where snapshots are downloaded before restoring.",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to the log file.")
@settings_options
def browse_cmd(
    home: Path | None,
    target: str | None,
    download_dir: Path | None,
    verbose: bool,
    **overrides,
) -> None:
    """Browse snapshots and restore one interactively."""
    if not sys.stdin.isatty():
        raise click.ClickException("browse needs an interactive terminal")

    home_path = home or resolve_home()
    config, settings = load_settings(home_path, overrides)
    setup_logging(home_path, config, verbose=verbose, console=False)

    try:
        initial = RestoreTarget(target or config.get("restore_target", "postgres"))
    except ValueError:
        log.warning("Unknown restore_target %r, using postgres", config.get("restore_target"))
        initial = RestoreTarget.POSTGRES
    downloads = download_dir or Path(config["download_dir"])
    log.info("Starting browser (home=%s, downloads=%s)", home_path, downloads)

    from snaprestore.ui.app import RestoreApp
    from snaprestore.ui.keys import TerminalKeys
    from snaprestore.ui.renderer import RichRenderer

    with TerminalKeys() as keys:
        app = RestoreApp(
            settings,
            keys,
            downloads,
            renderer=RichRenderer(),
            target=initial,
        )
        app.run()
    log.info("Browser closed")
