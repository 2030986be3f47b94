"""Shared CLI plumbing: config loading, setting overrides and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from snaprestore.core.config import config_path, load_config, log_path, settings_from_config
from snaprestore.core.settings import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# flag -> (config section, key, click type, help). Secrets are read from
# config.yaml or the environment only.
SETTING_OPTIONS: list[tuple[str, str, str, object, str]] = [
    ("--bucket", "s3", "bucket", str, "S3 bucket holding the snapshots."),
    ("--region", "s3", "region", str, "S3 region."),
    ("--prefix", "s3", "prefix", str, "Key prefix to list under."),
    ("--endpoint-url", "s3", "endpoint_url", str, "S3-compatible endpoint URL."),
    ("--pg-host", "postgres", "host", str, "PostgreSQL host."),
    ("--pg-port", "postgres", "port", click.IntRange(1, 65535), "PostgreSQL port."),
    ("--pg-username", "postgres", "username", str, "PostgreSQL user."),
    ("--pg-db-name", "postgres", "db_name", str, "Database used for the admin connection."),
    ("--es-host", "elasticsearch", "host", str, "Elasticsearch base URL."),
    ("--es-index", "elasticsearch", "index", str, "Elasticsearch index to restore into."),
    ("--qdrant-host", "qdrant", "host", str, "Qdrant base URL."),
    ("--qdrant-collection", "qdrant", "collection", str, "Qdrant collection to restore into."),
]


def _param_name(section: str, key: str) -> str:
    return f"{section}_{key}"


def home_option(func):
    return click.option(
        "--home",
        type=click.Path(path_type=Path),
        default=None,
        help="Override SNAPRESTORE_HOME path.",
    )(func)


def settings_options(func):
    """Add one override option per entry in SETTING_OPTIONS."""
    for flag, section, key, kind, help_text in reversed(SETTING_OPTIONS):
        func = click.option(
            flag, _param_name(section, key), type=kind, default=None, help=help_text,
        )(func)
    return func


def load_settings(home: Path, overrides: dict | None = None) -> tuple[dict, Settings]:
    """Load config.yaml (+ env), apply command-line overrides, build Settings."""
    config = load_config(config_path(home))
    overrides = overrides or {}
    for _flag, section, key, _kind, _help in SETTING_OPTIONS:
        value = overrides.get(_param_name(section, key))
        if value is not None:
            config.setdefault(section, {})[key] = value
    return config, settings_from_config(config)


def setup_logging(home: Path, config: dict, verbose: bool = False, console: bool = True) -> None:
    """Log to <home>/snaprestore.log, plus stderr unless the UI owns the terminal."""
    path = log_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [logging.FileHandler(str(path), encoding="utf-8")]
    if console:
        handlers.append(logging.StreamHandler())

    level = logging.DEBUG if verbose else getattr(
        logging, str(config.get("log_level", "info")).upper(), logging.INFO,
    )
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))
