"""S3-compatible object store client used to list and fetch snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO

from snaprestore.core.models import BackupMetadata
from snaprestore.core.settings import S3Settings

log = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the object store cannot be reached or returns an error."""


class StorageConfigError(StorageError):
    """Raised when required object store settings are missing."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "S3 settings incomplete, missing: " + ", ".join(missing)
        )


class DownloadError(StorageError):
    """Raised when a snapshot body cannot be streamed to disk."""


@dataclass
class ObjectStream:
    """An open object body together with its advertised length."""

    key: str
    body: BinaryIO
    content_length: int

    def read(self, size: int) -> bytes:
        return self.body.read(size)

    def close(self) -> None:
        close = getattr(self.body, "close", None)
        if close is not None:
            close()


class S3Storage:
    """Thin wrapper around a boto3 S3 client bound to one bucket.

    The boto3 client is created lazily on first use. Construction fails
    fast with StorageConfigError when bucket, region, endpoint or
    credentials are empty.
    """

    def __init__(self, settings: S3Settings, client=None) -> None:
        missing = settings.missing_fields()
        if missing:
            raise StorageConfigError(missing)
        self._settings = settings
        self._client = client

    @property
    def bucket(self) -> str:
        return self._settings.bucket

    @property
    def prefix(self) -> str:
        return self._settings.prefix

    def _get_client(self):
        """Lazy-initialize the boto3 S3 client."""
        if self._client is not None:
            return self._client
        try:
            import boto3
            from botocore.config import Config as BotoConfig
            from botocore.exceptions import BotoCoreError
        except ImportError as e:
            raise StorageError(
                f"boto3 not installed: {e}. Install with: pip install boto3"
            ) from e

        s = self._settings
        config = BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path" if s.path_style else "virtual"},
        )
        log.debug("Creating S3 client for %s (region=%s)", s.endpoint_url, s.region)
        try:
            self._client = boto3.client(
                "s3",
                endpoint_url=s.endpoint_url,
                region_name=s.region,
                aws_access_key_id=s.access_key_id,
                aws_secret_access_key=s.secret_access_key,
                config=config,
            )
        except (BotoCoreError, ValueError) as e:
            # botocore rejects endpoints without a scheme with a bare ValueError
            raise StorageError(f"Invalid S3 settings: {e}") from e
        return self._client

    def list_snapshots(self) -> list[BackupMetadata]:
        """List snapshot objects under the configured prefix.

        Directory placeholders (keys ending in '/') and keys outside the
        prefix are skipped. The result is not sorted.
        """
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        prefix = self.prefix
        snapshots: list[BackupMetadata] = []

        try:
            paginator = client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj.get("Key", "")
                    if not key or key.endswith("/"):
                        continue
                    if prefix and not key.startswith(prefix):
                        continue
                    last_modified = obj.get("LastModified") or datetime.now(timezone.utc)
                    if last_modified.tzinfo is None:
                        last_modified = last_modified.replace(tzinfo=timezone.utc)
                    snapshots.append(BackupMetadata(
                        key=key,
                        size=int(obj.get("Size", 0)),
                        last_modified=last_modified,
                    ))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to list objects in {self.bucket}: {e}") from e

        log.debug("Listed %d objects under s3://%s/%s", len(snapshots), self.bucket, prefix)
        return snapshots

    def open_stream(self, key: str) -> ObjectStream:
        """Open the body of ``key`` for streaming.

        Raises:
            StorageError: If the request fails.
            DownloadError: If the response carries no content length.
        """
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        try:
            response = client.get_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to fetch {key}: {e}") from e

        length = response.get("ContentLength")
        if length is None:
            body = response.get("Body")
            if body is not None:
                body.close()
            raise DownloadError(f"Object {key} has no content length")
        return ObjectStream(key=key, body=response["Body"], content_length=int(length))

    def test_connection(self) -> str:
        """Check the bucket is reachable and listable. Returns a status message."""
        from botocore.exceptions import BotoCoreError, ClientError

        client = self._get_client()
        try:
            client.head_bucket(Bucket=self.bucket)
            result = client.list_objects_v2(
                Bucket=self.bucket, Prefix=self.prefix, MaxKeys=1,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 connection failed: {e}") from e

        count = result.get("KeyCount", len(result.get("Contents", [])))
        suffix = "objects found" if count else "no objects under prefix"
        return f"Connected to bucket '{self.bucket}' ({suffix})"
