"""Tests for snaprestore.core.settings."""

import pytest

from snaprestore.core.models import FocusField
from snaprestore.core.settings import (
    ElasticsearchSettings,
    PostgresSettings,
    QdrantSettings,
    S3Settings,
    Settings,
    mask_secret,
    parse_bool,
    parse_port,
)


class TestParsers:
    @pytest.mark.parametrize("text", ["true", "YES", "1", " on "])
    def test_truthy(self, text):
        assert parse_bool(text) is True

    @pytest.mark.parametrize("text", ["false", "No", "0", "off"])
    def test_falsy(self, text):
        assert parse_bool(text) is False

    def test_unknown_bool(self):
        assert parse_bool("perhaps") is None

    def test_port(self):
        assert parse_port("5432") == 5432
        assert parse_port(" 80 ") == 80

    @pytest.mark.parametrize("text", ["", "abc", "0", "65536", "-1"])
    def test_invalid_port(self, text):
        assert parse_port(text) is None


class TestMaskSecret:
    def test_keeps_last_four(self):
        assert mask_secret("supersecret") == "*******cret"

    def test_short_secret_fully_masked(self):
        assert mask_secret("abcd") == "****"
        assert mask_secret("ab") == "**"

    def test_empty(self):
        assert mask_secret("") == ""


class TestFieldAccess:
    def test_get_string_field(self):
        s3 = S3Settings(bucket="nightly")
        assert s3.get_field_value(FocusField.BUCKET) == "nightly"

    def test_get_bool_field(self):
        assert S3Settings().get_field_value(FocusField.PATH_STYLE) == "true"
        assert PostgresSettings().get_field_value(FocusField.PG_SSL) == "false"

    def test_get_unset_field(self):
        assert PostgresSettings().get_field_value(FocusField.PG_HOST) == ""

    def test_get_foreign_field(self):
        assert S3Settings().get_field_value(FocusField.PG_HOST) == ""

    def test_set_string_field(self):
        es = ElasticsearchSettings()
        es.set_field_value(FocusField.ES_INDEX, "logs-2024")
        assert es.index == "logs-2024"

    def test_set_port_coerces(self):
        pg = PostgresSettings(port=5432)
        pg.set_field_value(FocusField.PG_PORT, "6543")
        assert pg.port == 6543

    def test_set_port_ignores_garbage(self):
        pg = PostgresSettings(port=5432)
        pg.set_field_value(FocusField.PG_PORT, "fifty")
        assert pg.port == 5432

    def test_set_bool_coerces(self):
        pg = PostgresSettings()
        pg.set_field_value(FocusField.PG_SSL, "yes")
        assert pg.use_ssl is True

    def test_set_bool_ignores_garbage(self):
        s3 = S3Settings(path_style=True)
        s3.set_field_value(FocusField.PATH_STYLE, "sometimes")
        assert s3.path_style is True

    def test_set_foreign_field_ignored(self):
        qd = QdrantSettings(host="http://q")
        qd.set_field_value(FocusField.ES_HOST, "http://elsewhere")
        assert qd.host == "http://q"

    def test_display_masks_secrets(self):
        s3 = S3Settings(secret_access_key="wJalrXUtnFEMI")
        assert s3.display_value(FocusField.SECRET_ACCESS_KEY) == "*********FEMI"
        assert s3.display_value(FocusField.REGION) == "us-west-2"

    def test_focus_fields_order(self):
        assert QdrantSettings.focus_fields() == [
            FocusField.QDRANT_HOST,
            FocusField.QDRANT_COLLECTION,
            FocusField.QDRANT_API_KEY,
        ]


class TestS3Missing:
    def test_all_missing(self):
        s3 = S3Settings(region="")
        assert s3.missing_fields() == [
            "bucket", "region", "endpoint_url", "access_key_id", "secret_access_key",
        ]

    def test_complete(self):
        s3 = S3Settings(
            bucket="b", endpoint_url="http://minio:9000",
            access_key_id="id", secret_access_key="secret",
        )
        assert s3.missing_fields() == []

    def test_blank_counts_as_missing(self):
        s3 = S3Settings(
            bucket="  ", endpoint_url="http://minio:9000",
            access_key_id="id", secret_access_key="secret",
        )
        assert s3.missing_fields() == ["bucket"]


class TestSettings:
    def test_for_field_routes_to_section(self):
        settings = Settings()
        assert settings.for_field(FocusField.BUCKET) is settings.s3
        assert settings.for_field(FocusField.PG_PORT) is settings.postgres
        assert settings.for_field(FocusField.ES_API_KEY) is settings.elasticsearch
        assert settings.for_field(FocusField.QDRANT_HOST) is settings.qdrant

    def test_for_selector_field(self):
        assert Settings().for_field(FocusField.SNAPSHOT_LIST) is None

    def test_sections_are_independent(self):
        a, b = Settings(), Settings()
        a.s3.bucket = "changed"
        assert b.s3.bucket == ""
