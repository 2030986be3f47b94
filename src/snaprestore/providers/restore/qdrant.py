"""Qdrant restore provider (collection snapshot upload)."""

from __future__ import annotations

import logging
from pathlib import Path

from snaprestore.core.settings import QdrantSettings
from snaprestore.providers.restore.base import (
    ProgressCallback,
    RestoreConfigError,
    RestoreConnectionError,
    RestoreError,
    missing_fields,
)

log = logging.getLogger(__name__)

BACKEND = "Qdrant"


class QdrantRestoreProvider:
    """Upload a collection snapshot to a Qdrant node.

    Uses ``POST /collections/<collection>/snapshots/upload?priority=snapshot``
    so the snapshot content wins over any existing collection data.
    """

    def __init__(self, settings: QdrantSettings | None = None, timeout: float = 300.0) -> None:
        self._settings = settings or QdrantSettings()
        self._timeout = timeout

    @property
    def name(self) -> str:
        return BACKEND

    @property
    def base_url(self) -> str:
        return (self._settings.host or "").rstrip("/")

    def required_fields(self) -> list[str]:
        return ["host", "collection"]

    def unset_fields(self) -> list[str]:
        s = self._settings
        return missing_fields({"host": s.host, "collection": s.collection})

    def is_configured(self) -> bool:
        return not self.unset_fields()

    def _require_configured(self) -> None:
        missing = self.unset_fields()
        if missing:
            raise RestoreConfigError(BACKEND, missing)
        if not self.base_url.startswith(("http://", "https://")):
            raise RestoreError(f"invalid host URL: {self._settings.host}", BACKEND)

    def _headers(self) -> dict[str, str]:
        if self._settings.api_key:
            return {"api-key": self._settings.api_key}
        return {}

    def test_connection(self) -> str:
        """GET /healthz."""
        import httpx

        self._require_configured()
        try:
            resp = httpx.get(f"{self.base_url}/healthz", headers=self._headers(), timeout=10.0)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RestoreConnectionError(
                f"health check failed ({e.response.status_code}): {e.response.text}", BACKEND,
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise RestoreConnectionError(f"not reachable at {self.base_url}: {e}", BACKEND) from e
        return f"Connected to Qdrant at {self.base_url}"

    def restore_snapshot(
        self,
        snapshot_path: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> str:
        import httpx

        self._require_configured()
        if progress_callback:
            progress_callback(0.0)

        collection = self._settings.collection
        url = f"{self.base_url}/collections/{collection}/snapshots/upload"
        log.debug("Uploading %s to %s", snapshot_path, url)
        try:
            with open(snapshot_path, "rb") as f:
                resp = httpx.post(
                    url,
                    params={"priority": "snapshot"},
                    files={"snapshot": (snapshot_path.name, f, "application/octet-stream")},
                    headers=self._headers(),
                    timeout=self._timeout,
                )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RestoreError(
                f"snapshot upload failed ({e.response.status_code}): {e.response.text}", BACKEND,
            ) from e
        except httpx.HTTPError as e:
            raise RestoreConnectionError(f"not reachable at {self.base_url}: {e}", BACKEND) from e
        except OSError as e:
            raise RestoreError(f"cannot read {snapshot_path}: {e}", BACKEND) from e

        if progress_callback:
            progress_callback(1.0)
        log.info("Restored snapshot %s into collection %s", snapshot_path.name, collection)
        return f"Successfully restored to collection: {collection}"
