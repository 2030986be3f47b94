"""CLI commands for PostgreSQL: snaprestore pg dump/restore."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click

from snaprestore.cli.common import home_option, load_settings, settings_options, setup_logging
from snaprestore.core.config import resolve_home
from snaprestore.providers.restore.base import RestoreError
from snaprestore.providers.restore.postgres import PostgresRestoreProvider


@click.group("pg")
def pg_group() -> None:
    """Dump and restore PostgreSQL databases without the UI."""


@pg_group.command("dump")
@home_option
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: <database>-<timestamp>.dump).",
)
@click.option("--database", default=None, help="Database to dump (default: configured db_name).")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@settings_options
def pg_dump(
    home: Path | None,
    output: Path | None,
    database: str | None,
    verbose: bool,
    **overrides,
) -> None:
    """Dump a database in pg_dump custom format."""
    home_path = home or resolve_home()
    config, settings = load_settings(home_path, overrides)
    setup_logging(home_path, config, verbose=verbose)

    name = database or settings.postgres.db_name or "postgres"
    if output is None:
        output = Path(f"{name}-{datetime.now():%Y%m%d-%H%M%S}.dump")

    provider = PostgresRestoreProvider(settings.postgres)
    click.echo(f"Dumping {name} to {output}...")
    try:
        provider.dump_database(output, database)
    except RestoreError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Wrote {output}")


@pg_group.command("restore")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@home_option
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@settings_options
def pg_restore(file: Path, home: Path | None, verbose: bool, **overrides) -> None:
    """Restore FILE into a newly created scratch database."""
    home_path = home or resolve_home()
    config, settings = load_settings(home_path, overrides)
    setup_logging(home_path, config, verbose=verbose)

    provider = PostgresRestoreProvider(settings.postgres)
    try:
        database = provider.create_scratch_database()
        click.echo(f"Created database {database}, restoring {file.name}...")
        message = provider.restore_snapshot(file)
    except RestoreError as e:
        raise click.ClickException(str(e)) from e
    click.echo(message)
