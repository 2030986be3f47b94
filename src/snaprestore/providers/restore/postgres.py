"""PostgreSQL restore provider: scratch database + pg_restore."""

from __future__ import annotations

import logging
import os
import random
import shutil
import subprocess
from pathlib import Path

from snaprestore.core.settings import PostgresSettings
from snaprestore.providers.restore.base import (
    ProgressCallback,
    RestoreConfigError,
    RestoreConnectionError,
    RestoreError,
    RestoreProcessError,
    missing_fields,
)

log = logging.getLogger(__name__)

BACKEND = "PostgreSQL"

# Words for scratch database names: "<word>-<hex>-restored"
SCRATCH_WORDS = (
    "amber", "aspen", "basalt", "birch", "cedar", "cobalt", "coral", "delta",
    "ember", "fjord", "garnet", "glacier", "harbor", "heron", "indigo", "jasper",
    "juniper", "kelp", "lagoon", "lichen", "maple", "meadow", "nebula", "onyx",
    "orchid", "pebble", "quartz", "raven", "saffron", "sequoia", "tundra",
    "umber", "velvet", "willow", "yarrow", "zephyr",
)

CONNECT_TIMEOUT = 10
# Scratch names tried before giving up on CREATE DATABASE collisions
SCRATCH_ATTEMPTS = 5


def generate_scratch_name(rng: random.Random | None = None) -> str:
    """Return a fresh scratch database name like 'cedar-3fa9-restored'."""
    rng = rng or random.SystemRandom()
    return f"{rng.choice(SCRATCH_WORDS)}-{rng.getrandbits(16):04x}-restored"


class DatabaseExistsError(RestoreError):
    """CREATE DATABASE hit an existing database of the same name."""


class PostgresRestoreProvider:
    """Restore pg_dump archives into a newly created scratch database.

    The configured ``db_name`` is only used for the administrative
    connection; restores never write into it.
    """

    def __init__(self, settings: PostgresSettings | None = None) -> None:
        self._settings = settings or PostgresSettings()
        self.scratch_database: str | None = None

    @property
    def name(self) -> str:
        return BACKEND

    def required_fields(self) -> list[str]:
        return ["host", "port", "database"]

    def unset_fields(self) -> list[str]:
        s = self._settings
        return missing_fields({"host": s.host, "port": s.port, "database": s.db_name})

    def is_configured(self) -> bool:
        return not self.unset_fields()

    def _require_configured(self) -> None:
        missing = self.unset_fields()
        if missing:
            raise RestoreConfigError(BACKEND, missing)

    def connect(self, dbname: str | None = None):
        """Open an administrative psycopg2 connection (autocommit)."""
        self._require_configured()
        try:
            import psycopg2
        except ImportError as e:
            raise RestoreError(
                f"psycopg2 not installed: {e}. Install with: pip install psycopg2-binary",
                BACKEND,
            ) from e

        s = self._settings
        try:
            conn = psycopg2.connect(
                host=s.host,
                port=s.port,
                user=s.username,
                password=s.password,
                dbname=dbname or s.db_name,
                sslmode="require" if s.use_ssl else "disable",
                connect_timeout=CONNECT_TIMEOUT,
            )
        except psycopg2.Error as e:
            raise RestoreConnectionError(
                f"cannot connect to {s.host}:{s.port}: {e}".strip(), BACKEND,
            ) from e
        conn.autocommit = True
        return conn

    def test_connection(self) -> str:
        """Connect and run SELECT version()."""
        import psycopg2

        conn = self.connect()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT version()")
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise RestoreConnectionError(f"query failed: {e}", BACKEND) from e
        finally:
            conn.close()

        version = row[0].split(",")[0] if row else "unknown version"
        s = self._settings
        return f"Connected to PostgreSQL at {s.host}:{s.port} ({version})"

    def create_database(self, name: str) -> None:
        """Run CREATE DATABASE on the administrative connection."""
        import psycopg2
        from psycopg2 import errors, sql

        conn = self.connect()
        try:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)))
        except errors.DuplicateDatabase as e:
            raise DatabaseExistsError(f"database {name!r} already exists", BACKEND) from e
        except psycopg2.Error as e:
            raise RestoreError(f"failed to create database {name!r}: {e}", BACKEND) from e
        finally:
            conn.close()
        log.info("Created database: %s", name)

    def create_scratch_database(self) -> str:
        """Create a freshly named scratch database and remember it as the restore target.

        Name collisions with earlier scratch databases are retried with a new
        name, up to SCRATCH_ATTEMPTS times.
        """
        for _ in range(SCRATCH_ATTEMPTS):
            name = generate_scratch_name()
            try:
                self.create_database(name)
            except DatabaseExistsError:
                log.warning("Scratch database %s already exists, picking another name", name)
                continue
            self.scratch_database = name
            return name
        raise RestoreError(
            f"no free scratch database name after {SCRATCH_ATTEMPTS} attempts", BACKEND,
        )

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ)
        s = self._settings
        env["PGSSLMODE"] = "require" if s.use_ssl else "disable"
        if s.password:
            env["PGPASSWORD"] = s.password
        return env

    def _connection_args(self) -> list[str]:
        s = self._settings
        args = ["--host", str(s.host), "--port", str(s.port)]
        if s.username:
            args += ["--username", s.username]
        return args

    def _run(self, command: list[str]) -> subprocess.CompletedProcess:
        program = command[0]
        if shutil.which(program) is None:
            raise RestoreError(f"{program} not found on PATH", BACKEND)

        log.debug("Executing: %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                env=self._child_env(),
                check=False,
            )
        except OSError as e:
            raise RestoreError(f"failed to execute {program}: {e}", BACKEND) from e

        if result.returncode != 0:
            log.error("%s failed (%d): %s", program, result.returncode, result.stderr.strip())
            raise RestoreProcessError(BACKEND, program, result.returncode, result.stderr)
        return result

    def restore_snapshot(
        self,
        snapshot_path: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> str:
        """Restore a pg_dump archive with pg_restore.

        Restores into ``scratch_database``, creating one first when none has
        been provisioned. A scratch database is left in place on failure.
        """
        self._require_configured()
        if progress_callback:
            progress_callback(0.0)

        database = self.scratch_database or self.create_scratch_database()
        command = [
            "pg_restore",
            *self._connection_args(),
            "--no-owner",
            "--dbname", database,
            str(snapshot_path),
        ]
        self._run(command)

        if progress_callback:
            progress_callback(1.0)
        log.info("Restored %s into database %s", snapshot_path, database)
        return f"Successfully restored to database: {database}"

    def dump_database(self, output: Path, database: str | None = None) -> Path:
        """Dump ``database`` (default: configured db_name) to ``output`` with pg_dump."""
        self._require_configured()
        output.parent.mkdir(parents=True, exist_ok=True)
        command = [
            "pg_dump",
            *self._connection_args(),
            "--format", "custom",
            "--file", str(output),
            "--dbname", database or str(self._settings.db_name),
        ]
        self._run(command)
        log.info("Dumped %s to %s", database or self._settings.db_name, output)
        return output
