"""Connection settings for the object store and each restore target.

Every settings class maps its editable ``FocusField`` members to attribute
names, so the UI can read and write any field generically.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dc_field
from typing import ClassVar

from snaprestore.core.models import FocusField

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def parse_bool(text: str) -> bool | None:
    """Parse a boolean flag. Returns None when the text is not recognised."""
    value = text.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return None


def parse_port(text: str) -> int | None:
    """Parse a TCP port. Returns None for non-numeric or out-of-range input."""
    try:
        port = int(text.strip())
    except ValueError:
        return None
    if 0 < port < 65536:
        return port
    return None


def mask_secret(secret: str) -> str:
    """Mask all but the last four characters of a secret."""
    if len(secret) <= 4:
        return "*" * len(secret)
    hidden = len(secret) - 4
    return "*" * hidden + secret[hidden:]


class _FieldMixin:
    """Generic field access keyed by FocusField."""

    FIELDS: ClassVar[dict[FocusField, str]] = {}
    BOOL_FIELDS: ClassVar[frozenset[FocusField]] = frozenset()
    INT_FIELDS: ClassVar[frozenset[FocusField]] = frozenset()
    SECRET_FIELDS: ClassVar[frozenset[FocusField]] = frozenset()

    @classmethod
    def focus_fields(cls) -> list[FocusField]:
        return list(cls.FIELDS)

    @classmethod
    def contains_field(cls, field: FocusField) -> bool:
        return field in cls.FIELDS

    def get_field_value(self, field: FocusField) -> str:
        attr = self.FIELDS.get(field)
        if attr is None:
            return ""
        value = getattr(self, attr)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def set_field_value(self, field: FocusField, text: str) -> None:
        """Assign ``text`` to ``field``, coercing ints and bools.

        Unparsable input and fields that belong to another settings class
        leave the object unchanged.
        """
        attr = self.FIELDS.get(field)
        if attr is None:
            return
        if field in self.BOOL_FIELDS:
            flag = parse_bool(text)
            if flag is not None:
                setattr(self, attr, flag)
        elif field in self.INT_FIELDS:
            number = parse_port(text)
            if number is not None:
                setattr(self, attr, number)
        else:
            setattr(self, attr, text)

    def display_value(self, field: FocusField) -> str:
        value = self.get_field_value(field)
        if field in self.SECRET_FIELDS:
            return mask_secret(value)
        return value


@dataclass
class S3Settings(_FieldMixin):
    """Object store (S3-compatible) connection settings."""

    bucket: str = ""
    region: str = "us-west-2"
    prefix: str = "backups/"
    endpoint_url: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    path_style: bool = True

    FIELDS: ClassVar[dict[FocusField, str]] = {
        FocusField.BUCKET: "bucket",
        FocusField.REGION: "region",
        FocusField.PREFIX: "prefix",
        FocusField.ENDPOINT_URL: "endpoint_url",
        FocusField.ACCESS_KEY_ID: "access_key_id",
        FocusField.SECRET_ACCESS_KEY: "secret_access_key",
        FocusField.PATH_STYLE: "path_style",
    }
    BOOL_FIELDS: ClassVar[frozenset[FocusField]] = frozenset({FocusField.PATH_STYLE})
    SECRET_FIELDS: ClassVar[frozenset[FocusField]] = frozenset(
        {FocusField.ACCESS_KEY_ID, FocusField.SECRET_ACCESS_KEY}
    )

    def missing_fields(self) -> list[str]:
        """Names of the fields that must be set before contacting the store."""
        required = ("bucket", "region", "endpoint_url", "access_key_id", "secret_access_key")
        return [name for name in required if not getattr(self, name).strip()]


@dataclass
class PostgresSettings(_FieldMixin):
    """PostgreSQL administrative connection settings."""

    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    use_ssl: bool = False
    db_name: str | None = None

    FIELDS: ClassVar[dict[FocusField, str]] = {
        FocusField.PG_HOST: "host",
        FocusField.PG_PORT: "port",
        FocusField.PG_USERNAME: "username",
        FocusField.PG_PASSWORD: "password",
        FocusField.PG_SSL: "use_ssl",
        FocusField.PG_DB_NAME: "db_name",
    }
    BOOL_FIELDS: ClassVar[frozenset[FocusField]] = frozenset({FocusField.PG_SSL})
    INT_FIELDS: ClassVar[frozenset[FocusField]] = frozenset({FocusField.PG_PORT})
    SECRET_FIELDS: ClassVar[frozenset[FocusField]] = frozenset({FocusField.PG_PASSWORD})


@dataclass
class ElasticsearchSettings(_FieldMixin):
    """Elasticsearch cluster settings."""

    host: str | None = None
    index: str | None = None
    api_key: str | None = None

    FIELDS: ClassVar[dict[FocusField, str]] = {
        FocusField.ES_HOST: "host",
        FocusField.ES_INDEX: "index",
        FocusField.ES_API_KEY: "api_key",
    }
    SECRET_FIELDS: ClassVar[frozenset[FocusField]] = frozenset({FocusField.ES_API_KEY})


@dataclass
class QdrantSettings(_FieldMixin):
    """Qdrant vector store settings."""

    host: str | None = None
    collection: str | None = None
    api_key: str | None = None

    FIELDS: ClassVar[dict[FocusField, str]] = {
        FocusField.QDRANT_HOST: "host",
        FocusField.QDRANT_COLLECTION: "collection",
        FocusField.QDRANT_API_KEY: "api_key",
    }
    SECRET_FIELDS: ClassVar[frozenset[FocusField]] = frozenset({FocusField.QDRANT_API_KEY})


@dataclass
class Settings:
    """All connection settings the application edits at runtime."""

    s3: S3Settings = dc_field(default_factory=S3Settings)
    postgres: PostgresSettings = dc_field(default_factory=PostgresSettings)
    elasticsearch: ElasticsearchSettings = dc_field(default_factory=ElasticsearchSettings)
    qdrant: QdrantSettings = dc_field(default_factory=QdrantSettings)

    def for_field(self, field: FocusField) -> _FieldMixin | None:
        """Return the settings object that owns ``field``, if any."""
        for section in (self.s3, self.postgres, self.elasticsearch, self.qdrant):
            if section.contains_field(field):
                return section
        return None
