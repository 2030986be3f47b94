"""Configuration loader for snaprestore."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import yaml

from snaprestore.core.settings import (
    ElasticsearchSettings,
    PostgresSettings,
    QdrantSettings,
    S3Settings,
    Settings,
    parse_bool,
    parse_port,
)

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "log_level": "info",
    "download_dir": None,
    "restore_target": "postgres",
    "s3": {
        "bucket": "",
        "region": "us-west-2",
        "prefix": "backups/",
        "endpoint_url": "",
        "access_key_id": "",
        "secret_access_key": "",
        "path_style": True,
    },
    "postgres": {
        "host": "localhost",
        "port": 5432,
        "username": "postgres",
        "password": "",
        "use_ssl": False,
        "db_name": "postgres",
    },
    "elasticsearch": {
        "host": None,
        "index": None,
        "api_key": None,
    },
    "qdrant": {
        "host": None,
        "collection": None,
        "api_key": None,
    },
}

# env var -> (section, key, kind)
ENV_OVERRIDES: dict[str, tuple[str, str, str]] = {
    "S3_BUCKET": ("s3", "bucket", "str"),
    "S3_REGION": ("s3", "region", "str"),
    "S3_PREFIX": ("s3", "prefix", "str"),
    "S3_ENDPOINT_URL": ("s3", "endpoint_url", "str"),
    "S3_ACCESS_KEY_ID": ("s3", "access_key_id", "str"),
    "S3_SECRET_ACCESS_KEY": ("s3", "secret_access_key", "str"),
    "S3_PATH_STYLE": ("s3", "path_style", "bool"),
    "PG_HOST": ("postgres", "host", "str"),
    "PG_PORT": ("postgres", "port", "port"),
    "PG_USERNAME": ("postgres", "username", "str"),
    "PG_PASSWORD": ("postgres", "password", "str"),
    "PG_USE_SSL": ("postgres", "use_ssl", "bool"),
    "PG_DB_NAME": ("postgres", "db_name", "str"),
    "ES_HOST": ("elasticsearch", "host", "str"),
    "ES_INDEX": ("elasticsearch", "index", "str"),
    "ES_API_KEY": ("elasticsearch", "api_key", "str"),
    "QDRANT_HOST": ("qdrant", "host", "str"),
    "QDRANT_COLLECTION": ("qdrant", "collection", "str"),
    "QDRANT_API_KEY": ("qdrant", "api_key", "str"),
}


def resolve_home() -> Path:
    """Resolve the snaprestore home: SNAPRESTORE_HOME env var > ~/.snaprestore."""
    env_home = os.environ.get("SNAPRESTORE_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/.snaprestore").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / "config.yaml"


def log_path(home: Path | None = None) -> Path:
    """Return the path to the log file."""
    if home is None:
        home = resolve_home()
    return home / "snaprestore.log"


def load_config(path: Path | None = None, environ: dict | None = None) -> dict:
    """Load config.yaml, merge with defaults and apply environment overrides.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.
        environ: Environment mapping to read overrides from (default os.environ).

    Returns:
        Merged configuration dict.
    """
    if path is None:
        path = config_path()
    if environ is None:
        environ = dict(os.environ)

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
            if not isinstance(user_config, dict):
                log.warning("Config at %s is not a mapping, using defaults", path)
                user_config = {}
        except (OSError, yaml.YAMLError):
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)

    merged = _deep_merge(DEFAULTS, user_config)
    merged = _apply_env(merged, environ)

    download_dir = merged.get("download_dir") or tempfile.gettempdir()
    merged["download_dir"] = str(Path(download_dir).expanduser())

    return merged


def settings_from_config(config: dict) -> Settings:
    """Build the runtime settings objects from a merged config dict."""
    s3 = config.get("s3", {})
    pg = config.get("postgres", {})
    es = config.get("elasticsearch", {})
    qd = config.get("qdrant", {})

    return Settings(
        s3=S3Settings(
            bucket=s3.get("bucket") or "",
            region=s3.get("region") or "",
            prefix=s3.get("prefix") or "",
            endpoint_url=s3.get("endpoint_url") or "",
            access_key_id=s3.get("access_key_id") or "",
            secret_access_key=s3.get("secret_access_key") or "",
            path_style=_as_bool(s3.get("path_style"), True),
        ),
        postgres=PostgresSettings(
            host=pg.get("host") or None,
            port=_as_port(pg.get("port"), DEFAULTS["postgres"]["port"]),
            username=pg.get("username") or None,
            password=pg.get("password") or None,
            use_ssl=_as_bool(pg.get("use_ssl"), False),
            db_name=pg.get("db_name") or None,
        ),
        elasticsearch=ElasticsearchSettings(
            host=es.get("host") or None,
            index=es.get("index") or None,
            api_key=es.get("api_key") or None,
        ),
        qdrant=QdrantSettings(
            host=qd.get("host") or None,
            collection=qd.get("collection") or None,
            api_key=qd.get("api_key") or None,
        ),
    )


def _as_bool(value: object, default: bool) -> bool:
    """Coerce a YAML flag, which may arrive as a bool or a quoted string."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    parsed = parse_bool(str(value))
    if parsed is None:
        log.warning("Ignoring unparsable boolean %r, using %s", value, default)
        return default
    return parsed


def _as_port(value: object, default: int) -> int:
    if value is None:
        return default
    port = None if isinstance(value, bool) else parse_port(str(value))
    if port is None:
        log.warning("Ignoring invalid port %r, using %d", value, default)
        return default
    return port


def _apply_env(config: dict, environ: dict) -> dict:
    """Overlay recognised environment variables onto the config dict."""
    result = _deep_merge(config, {})
    for name, (section, key, kind) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None:
            continue
        if kind == "bool":
            value = parse_bool(raw)
        elif kind == "port":
            value = parse_port(raw)
        else:
            value = raw
        if value is None:
            log.warning("Ignoring unparsable value for %s: %r", name, raw)
            continue
        result.setdefault(section, {})[key] = value
    return result


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    for key, value in result.items():
        if isinstance(value, dict) and key not in override:
            result[key] = _deep_merge(value, {})
    return result
