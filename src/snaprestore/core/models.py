"""Core data models for snaprestore."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union


# --- Enums ---


class RestoreTarget(str, Enum):
    POSTGRES = "postgres"
    ELASTICSEARCH = "elasticsearch"
    QDRANT = "qdrant"

    @property
    def label(self) -> str:
        return _TARGET_LABELS[self]

    def next(self) -> RestoreTarget:
        members = list(RestoreTarget)
        return members[(members.index(self) + 1) % len(members)]

    def previous(self) -> RestoreTarget:
        members = list(RestoreTarget)
        return members[(members.index(self) - 1) % len(members)]


_TARGET_LABELS = {
    RestoreTarget.POSTGRES: "PostgreSQL",
    RestoreTarget.ELASTICSEARCH: "Elasticsearch",
    RestoreTarget.QDRANT: "Qdrant",
}


class InputMode(str, Enum):
    NORMAL = "normal"
    EDITING = "editing"


class FocusGroup(str, Enum):
    STORE = "store"
    TARGET = "target"
    SNAPSHOTS = "snapshots"


class FocusField(str, Enum):
    # Object store settings
    BUCKET = "bucket"
    REGION = "region"
    PREFIX = "prefix"
    ENDPOINT_URL = "endpoint_url"
    ACCESS_KEY_ID = "access_key_id"
    SECRET_ACCESS_KEY = "secret_access_key"
    PATH_STYLE = "path_style"

    # PostgreSQL settings
    PG_HOST = "pg_host"
    PG_PORT = "pg_port"
    PG_USERNAME = "pg_username"
    PG_PASSWORD = "pg_password"
    PG_SSL = "pg_ssl"
    PG_DB_NAME = "pg_db_name"

    # Elasticsearch settings
    ES_HOST = "es_host"
    ES_INDEX = "es_index"
    ES_API_KEY = "es_api_key"

    # Qdrant settings
    QDRANT_HOST = "qdrant_host"
    QDRANT_COLLECTION = "qdrant_collection"
    QDRANT_API_KEY = "qdrant_api_key"

    # Group selectors
    RESTORE_TARGET = "restore_target"
    SNAPSHOT_LIST = "snapshot_list"

    @property
    def label(self) -> str:
        return _FIELD_LABELS[self]


_FIELD_LABELS = {
    FocusField.BUCKET: "Bucket",
    FocusField.REGION: "Region",
    FocusField.PREFIX: "Prefix",
    FocusField.ENDPOINT_URL: "Endpoint URL",
    FocusField.ACCESS_KEY_ID: "Access Key ID",
    FocusField.SECRET_ACCESS_KEY: "Secret Access Key",
    FocusField.PATH_STYLE: "Path Style",
    FocusField.PG_HOST: "Host",
    FocusField.PG_PORT: "Port",
    FocusField.PG_USERNAME: "Username",
    FocusField.PG_PASSWORD: "Password",
    FocusField.PG_SSL: "Use SSL",
    FocusField.PG_DB_NAME: "Database",
    FocusField.ES_HOST: "Host",
    FocusField.ES_INDEX: "Index",
    FocusField.ES_API_KEY: "API Key",
    FocusField.QDRANT_HOST: "Host",
    FocusField.QDRANT_COLLECTION: "Collection",
    FocusField.QDRANT_API_KEY: "API Key",
    FocusField.RESTORE_TARGET: "Restore Target",
    FocusField.SNAPSHOT_LIST: "Snapshot List",
}


# --- Snapshot index ---


@dataclass(frozen=True)
class BackupMetadata:
    """One snapshot object discovered in the bucket listing."""

    key: str
    size: int
    last_modified: datetime

    @property
    def filename(self) -> str:
        return self.key.rsplit("/", 1)[-1] or self.key


# --- Popup states ---
#
# Exactly one of these is held by the application at a time.


@dataclass(frozen=True)
class Hidden:
    pass


@dataclass(frozen=True)
class ConfirmRestore:
    snapshot: BackupMetadata


@dataclass(frozen=True)
class Downloading:
    snapshot: BackupMetadata
    progress: float = 0.0
    rate: float = 0.0  # bytes per second


@dataclass(frozen=True)
class ConfirmCancel:
    snapshot: BackupMetadata
    progress: float = 0.0
    rate: float = 0.0


@dataclass(frozen=True)
class Restoring:
    snapshot: BackupMetadata
    progress: float = 0.0


@dataclass(frozen=True)
class TestingStore:
    pass


@dataclass(frozen=True)
class TestingTarget:
    name: str


@dataclass(frozen=True)
class TestResult:
    message: str


@dataclass(frozen=True)
class Error:
    message: str


@dataclass(frozen=True)
class Success:
    message: str
    shown_at: float | None = field(default=None, compare=False)  # set by the shell


PopupState = Union[
    Hidden,
    ConfirmRestore,
    Downloading,
    ConfirmCancel,
    Restoring,
    TestingStore,
    TestingTarget,
    TestResult,
    Error,
    Success,
]

HIDDEN = Hidden()
