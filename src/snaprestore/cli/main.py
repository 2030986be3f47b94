"""CLI entry point for snaprestore."""

import click

from snaprestore import __version__
from snaprestore.cli.browse_cmd import browse_cmd
from snaprestore.cli.pg_cmd import pg_group
from snaprestore.cli.snapshot_cmd import list_cmd, test_cmd


@click.group()
@click.version_option(version=__version__, prog_name="snaprestore")
def cli() -> None:
    """snaprestore: browse S3 snapshots and restore them into a data store."""


cli.add_command(browse_cmd)
cli.add_command(list_cmd)
cli.add_command(test_cmd)
cli.add_command(pg_group)


if __name__ == "__main__":
    cli()
