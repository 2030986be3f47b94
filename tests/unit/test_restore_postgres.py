"""Tests for snaprestore.providers.restore.postgres."""

import random
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg2
import psycopg2.errors
import pytest

from snaprestore.core.settings import PostgresSettings
from snaprestore.providers.restore.base import (
    RestoreConfigError,
    RestoreConnectionError,
    RestoreError,
    RestoreProcessError,
)
from snaprestore.providers.restore.postgres import (
    SCRATCH_ATTEMPTS,
    SCRATCH_WORDS,
    PostgresRestoreProvider,
    generate_scratch_name,
)


def _settings(**overrides) -> PostgresSettings:
    values = {
        "host": "db.internal",
        "port": 5432,
        "username": "admin",
        "password": "hunter22",
        "use_ssl": False,
        "db_name": "postgres",
    }
    values.update(overrides)
    return PostgresSettings(**values)


def _completed(returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)


class TestConfiguration:
    def test_configured(self):
        assert PostgresRestoreProvider(_settings()).is_configured()

    def test_missing_host_and_db(self):
        provider = PostgresRestoreProvider(_settings(host=None, db_name=""))
        assert not provider.is_configured()
        assert provider.unset_fields() == ["host", "database"]

    def test_name(self):
        assert PostgresRestoreProvider().name == "PostgreSQL"


class TestScratchName:
    def test_format(self):
        name = generate_scratch_name(random.Random(1))
        word, tag, suffix = name.split("-")
        assert suffix == "restored"
        assert word in SCRATCH_WORDS
        assert len(tag) == 4
        int(tag, 16)

    def test_names_rarely_repeat(self):
        rng = random.Random(7)
        names = {generate_scratch_name(rng) for _ in range(50)}
        assert len(names) == 50


class TestConnect:
    @patch("psycopg2.connect")
    def test_connect_arguments(self, mock_connect):
        provider = PostgresRestoreProvider(_settings(use_ssl=True))
        conn = provider.connect()

        kwargs = mock_connect.call_args.kwargs
        assert kwargs["host"] == "db.internal"
        assert kwargs["port"] == 5432
        assert kwargs["user"] == "admin"
        assert kwargs["dbname"] == "postgres"
        assert kwargs["sslmode"] == "require"
        assert conn.autocommit is True

    @patch("psycopg2.connect")
    def test_connect_failure(self, mock_connect):
        mock_connect.side_effect = psycopg2.OperationalError("connection refused")
        provider = PostgresRestoreProvider(_settings())
        with pytest.raises(RestoreConnectionError, match="PostgreSQL: cannot connect"):
            provider.connect()

    @patch("psycopg2.connect")
    def test_not_configured_never_connects(self, mock_connect):
        provider = PostgresRestoreProvider(_settings(host=""))
        with pytest.raises(RestoreConfigError, match="host"):
            provider.connect()
        mock_connect.assert_not_called()


class TestTestConnection:
    @patch("psycopg2.connect")
    def test_reports_version(self, mock_connect):
        cursor = MagicMock()
        cursor.fetchone.return_value = ("PostgreSQL 16.2 on x86_64-pc-linux-gnu, compiled by gcc",)
        mock_connect.return_value.cursor.return_value.__enter__.return_value = cursor

        message = PostgresRestoreProvider(_settings()).test_connection()
        cursor.execute.assert_called_once_with("SELECT version()")
        assert "PostgreSQL 16.2" in message
        mock_connect.return_value.close.assert_called_once()


class TestCreateDatabase:
    @patch("psycopg2.connect")
    def test_create_scratch(self, mock_connect):
        cursor = MagicMock()
        mock_connect.return_value.cursor.return_value.__enter__.return_value = cursor

        provider = PostgresRestoreProvider(_settings())
        name = provider.create_scratch_database()

        assert name.endswith("-restored")
        assert provider.scratch_database == name
        cursor.execute.assert_called_once()

    @patch("psycopg2.connect")
    def test_create_failure(self, mock_connect):
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg2.ProgrammingError("database \"amber-restored\" already exists")
        mock_connect.return_value.cursor.return_value.__enter__.return_value = cursor

        provider = PostgresRestoreProvider(_settings())
        with pytest.raises(RestoreError, match="failed to create database"):
            provider.create_database("amber-restored")
        mock_connect.return_value.close.assert_called_once()

    @patch("psycopg2.connect")
    def test_scratch_name_taken_is_retried(self, mock_connect):
        cursor = MagicMock()
        cursor.execute.side_effect = [psycopg2.errors.DuplicateDatabase("already exists"), None]
        mock_connect.return_value.cursor.return_value.__enter__.return_value = cursor

        provider = PostgresRestoreProvider(_settings())
        name = provider.create_scratch_database()

        assert cursor.execute.call_count == 2
        assert provider.scratch_database == name

    @patch("psycopg2.connect")
    def test_scratch_names_exhausted(self, mock_connect):
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg2.errors.DuplicateDatabase("already exists")
        mock_connect.return_value.cursor.return_value.__enter__.return_value = cursor

        provider = PostgresRestoreProvider(_settings())
        with pytest.raises(RestoreError, match="no free scratch database name"):
            provider.create_scratch_database()
        assert cursor.execute.call_count == SCRATCH_ATTEMPTS
        assert provider.scratch_database is None


class TestRestoreSnapshot:
    @patch("shutil.which", return_value="/usr/bin/pg_restore")
    @patch("subprocess.run")
    def test_runs_pg_restore_into_scratch(self, mock_run, _which, tmp_path: Path):
        mock_run.return_value = _completed()
        dump = tmp_path / "db.dump"
        dump.write_bytes(b"PGDMP")

        provider = PostgresRestoreProvider(_settings())
        provider.scratch_database = "cedar-restored"
        progress = []
        message = provider.restore_snapshot(dump, progress.append)

        command = mock_run.call_args.args[0]
        assert command[0] == "pg_restore"
        assert command[command.index("--dbname") + 1] == "cedar-restored"
        assert "--no-owner" in command
        assert command[-1] == str(dump)
        assert command[command.index("--username") + 1] == "admin"
        env = mock_run.call_args.kwargs["env"]
        assert env["PGPASSWORD"] == "hunter22"
        assert env["PGSSLMODE"] == "disable"
        assert progress == [0.0, 1.0]
        assert "cedar-restored" in message

    @patch("shutil.which", return_value="/usr/bin/pg_restore")
    @patch("subprocess.run")
    def test_non_zero_exit_carries_stderr(self, mock_run, _which, tmp_path: Path):
        mock_run.return_value = _completed(1, "pg_restore: error: input file is too short")
        provider = PostgresRestoreProvider(_settings())
        provider.scratch_database = "cedar-restored"

        with pytest.raises(RestoreProcessError, match="input file is too short") as exc:
            provider.restore_snapshot(tmp_path / "db.dump")
        assert exc.value.returncode == 1

    @patch("subprocess.run")
    def test_config_error_before_any_process(self, mock_run, tmp_path: Path):
        provider = PostgresRestoreProvider(_settings(host="", db_name=""))
        with pytest.raises(RestoreConfigError, match="host, database"):
            provider.restore_snapshot(tmp_path / "db.dump")
        mock_run.assert_not_called()

    @patch("shutil.which", return_value=None)
    def test_missing_binary(self, _which, tmp_path: Path):
        provider = PostgresRestoreProvider(_settings())
        provider.scratch_database = "cedar-restored"
        with pytest.raises(RestoreError, match="pg_restore not found"):
            provider.restore_snapshot(tmp_path / "db.dump")


class TestDump:
    @patch("shutil.which", return_value="/usr/bin/pg_dump")
    @patch("subprocess.run")
    def test_dump_custom_format(self, mock_run, _which, tmp_path: Path):
        mock_run.return_value = _completed()
        output = tmp_path / "out" / "app.dump"

        provider = PostgresRestoreProvider(_settings(username=None, password=None))
        assert provider.dump_database(output, "app") == output

        command = mock_run.call_args.args[0]
        assert command[0] == "pg_dump"
        assert command[command.index("--format") + 1] == "custom"
        assert command[command.index("--dbname") + 1] == "app"
        assert "--username" not in command
        assert mock_run.call_args.kwargs["env"].get("PGPASSWORD") != "hunter22"
        assert output.parent.is_dir()
