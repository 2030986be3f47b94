"""Elasticsearch restore provider (NDJSON bulk ingest over HTTP)."""

from __future__ import annotations

import logging
from pathlib import Path

from snaprestore.core.settings import ElasticsearchSettings
from snaprestore.providers.restore.base import (
    ProgressCallback,
    RestoreConfigError,
    RestoreConnectionError,
    RestoreError,
    missing_fields,
)

log = logging.getLogger(__name__)

BACKEND = "Elasticsearch"

# Lines per _bulk request; action/source pairs are never split.
BATCH_LINES = 1000


class ElasticsearchRestoreProvider:
    """Replay a bulk-format snapshot into one index.

    The snapshot file is newline-delimited JSON in the ``_bulk`` format
    (action line followed by a source line). It is sent in batches of
    ``BATCH_LINES`` lines to ``POST /<index>/_bulk``.
    """

    def __init__(self, settings: ElasticsearchSettings | None = None, timeout: float = 60.0) -> None:
        self._settings = settings or ElasticsearchSettings()
        self._timeout = timeout

    @property
    def name(self) -> str:
        return BACKEND

    @property
    def base_url(self) -> str:
        return (self._settings.host or "").rstrip("/")

    def required_fields(self) -> list[str]:
        return ["host", "index"]

    def unset_fields(self) -> list[str]:
        s = self._settings
        return missing_fields({"host": s.host, "index": s.index})

    def is_configured(self) -> bool:
        return not self.unset_fields()

    def _require_configured(self) -> None:
        missing = self.unset_fields()
        if missing:
            raise RestoreConfigError(BACKEND, missing)
        if not self.base_url.startswith(("http://", "https://")):
            raise RestoreError(f"invalid host URL: {self._settings.host}", BACKEND)

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._settings.api_key:
            headers["Authorization"] = f"ApiKey {self._settings.api_key}"
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def test_connection(self) -> str:
        """GET /_cluster/health."""
        import httpx

        self._require_configured()
        try:
            resp = httpx.get(
                f"{self.base_url}/_cluster/health",
                headers=self._headers(),
                timeout=10.0,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise RestoreConnectionError(
                f"health check failed ({e.response.status_code}): {e.response.text}", BACKEND,
            ) from e
        except (httpx.HTTPError, OSError) as e:
            raise RestoreConnectionError(f"not reachable at {self.base_url}: {e}", BACKEND) from e
        except ValueError as e:
            raise RestoreConnectionError(
                f"unexpected health response from {self.base_url}: {e}", BACKEND,
            ) from e
        if not isinstance(data, dict):
            raise RestoreConnectionError(
                f"unexpected health response from {self.base_url}: {data!r}", BACKEND,
            )

        status = data.get("status", "unknown")
        cluster = data.get("cluster_name", "cluster")
        return f"Connected to Elasticsearch {cluster} at {self.base_url} (status: {status})"

    def restore_snapshot(
        self,
        snapshot_path: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> str:
        """Send the snapshot to the _bulk endpoint batch by batch.

        Raises:
            RestoreConfigError: If host or index is unset.
            RestoreError: If the file cannot be read, a request fails or a
                bulk response reports item errors.
        """
        self._require_configured()
        if progress_callback:
            progress_callback(0.0)

        index = self._settings.index
        try:
            total = snapshot_path.stat().st_size
            sent = 0
            documents = 0
            with open(snapshot_path, "rb") as f:
                batch: list[bytes] = []
                for line in f:
                    sent += len(line)
                    if not line.strip():
                        continue
                    batch.append(line if line.endswith(b"\n") else line + b"\n")
                    if len(batch) >= BATCH_LINES and len(batch) % 2 == 0:
                        documents += self._send_batch(index, batch)
                        batch = []
                        if progress_callback and total:
                            progress_callback(min(sent / total, 1.0))
                if batch:
                    documents += self._send_batch(index, batch)
        except OSError as e:
            raise RestoreError(f"cannot read {snapshot_path}: {e}", BACKEND) from e

        if progress_callback:
            progress_callback(1.0)
        log.info("Restored %d documents into index %s", documents, index)
        return f"Successfully restored to index: {index}"

    def _send_batch(self, index: str, lines: list[bytes]) -> int:
        """POST one NDJSON batch. Returns the number of items accepted."""
        import httpx

        try:
            resp = httpx.post(
                f"{self.base_url}/{index}/_bulk",
                content=b"".join(lines),
                headers=self._headers("application/x-ndjson"),
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise RestoreError(
                f"bulk request failed ({e.response.status_code}): {e.response.text}", BACKEND,
            ) from e
        except httpx.HTTPError as e:
            raise RestoreConnectionError(f"not reachable at {self.base_url}: {e}", BACKEND) from e
        except ValueError as e:
            raise RestoreError(f"bulk response is not JSON: {e}", BACKEND) from e
        if not isinstance(data, dict):
            raise RestoreError(f"unexpected bulk response: {data!r}", BACKEND)

        items = data.get("items", [])
        if data.get("errors"):
            raise RestoreError(f"bulk ingest rejected documents: {_first_error(items)}", BACKEND)
        log.debug("Bulk batch accepted: %d items", len(items))
        return len(items)


def _first_error(items: list[dict]) -> str:
    for item in items:
        for result in item.values():
            error = result.get("error") if isinstance(result, dict) else None
            if error:
                if isinstance(error, dict):
                    return f"{error.get('type', 'error')}: {error.get('reason', '')}".strip()
                return str(error)
    return "unknown error"
