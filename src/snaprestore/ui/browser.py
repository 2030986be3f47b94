"""Snapshot browser: the snapshot index plus the download and restore pipeline."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from snaprestore.core.models import (
    BackupMetadata,
    ConfirmCancel,
    Downloading,
    Error,
    PopupState,
    RestoreTarget,
    Restoring,
    Success,
)
from snaprestore.core.settings import Settings
from snaprestore.providers.restore.base import (
    RestoreConfigError,
    RestoreError,
    RestoreProvider,
)
from snaprestore.providers.restore.dispatcher import get_provider
from snaprestore.storage.s3 import DownloadError, S3Storage
from snaprestore.ui import keys
from snaprestore.ui.keys import Key
from snaprestore.ui.tasks import BackgroundTask

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
RATE_SAMPLE_INTERVAL = 0.5
POLL_INTERVAL = 0.1


class Shell(Protocol):
    """What the browser needs from the application while a transfer runs."""

    popup: PopupState

    def pump(self, timeout: float) -> Key | None:
        """Redraw, then wait up to ``timeout`` seconds for one key."""
        ...


class SnapshotBrowser:
    """Owns the storage client, the sorted snapshot list and the cursor.

    ``snapshots`` is always sorted newest first. ``selected`` is None only
    when the list is empty.
    """

    def __init__(
        self,
        settings: Settings,
        storage: S3Storage | None = None,
        clock: Callable[[], float] = time.monotonic,
        provider_factory: Callable[[RestoreTarget, Settings], RestoreProvider] = get_provider,
    ) -> None:
        self.settings = settings
        self._storage = storage
        self._clock = clock
        self._provider_factory = provider_factory
        self.snapshots: list[BackupMetadata] = []
        self.selected: int | None = None

    # --- Storage client ---

    def get_storage(self) -> S3Storage:
        """Create the storage client from current settings on first use.

        Raises:
            StorageConfigError: If bucket, region, endpoint or credentials are empty.
        """
        if self._storage is None:
            self._storage = S3Storage(self.settings.s3)
        return self._storage

    def reset_storage(self) -> None:
        """Drop the client so the next call picks up edited settings."""
        self._storage = None

    def test_storage(self) -> str:
        return self.get_storage().test_connection()

    # --- Index and cursor ---

    def load_snapshots(self) -> None:
        """Replace the list with a fresh listing, newest first.

        On failure the previous list and cursor are kept and the error
        propagates to the caller.
        """
        listing = self.get_storage().list_snapshots()
        self.snapshots = sorted(listing, key=lambda s: s.last_modified, reverse=True)
        self._clamp_selection()
        log.info("Loaded %d snapshots", len(self.snapshots))

    def _clamp_selection(self) -> None:
        if not self.snapshots:
            self.selected = None
        elif self.selected is None:
            self.selected = 0
        elif self.selected >= len(self.snapshots):
            self.selected = len(self.snapshots) - 1

    @property
    def selected_snapshot(self) -> BackupMetadata | None:
        if self.selected is None:
            return None
        return self.snapshots[self.selected]

    def next(self) -> None:
        if self.selected is not None and self.selected < len(self.snapshots) - 1:
            self.selected += 1

    def previous(self) -> None:
        if self.selected is not None and self.selected > 0:
            self.selected -= 1

    # --- Download ---

    def download(self, snapshot: BackupMetadata, destination: Path, shell: Shell) -> Path | None:
        """Stream ``snapshot`` into ``destination`` while keeping the UI alive.

        Publishes ``Downloading`` after every chunk and polls the shell for
        Esc between chunks. Esc pauses the transfer behind ``ConfirmCancel``;
        'y' aborts (returns None, partial file removed), 'n'/Esc resumes.

        Raises:
            StorageError: If the object cannot be opened.
            DownloadError: If the length is unknown or the transfer fails.
        """
        from botocore.exceptions import BotoCoreError

        stream = self.get_storage().open_stream(snapshot.key)
        total = stream.content_length
        downloaded = 0
        rate = 0.0
        sample_time = self._clock()
        sample_bytes = 0
        shell.popup = Downloading(snapshot, 0.0, 0.0)

        log.info("Downloading %s (%d bytes) to %s", snapshot.key, total, destination)
        completed = False
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(destination, "wb") as out:
                while True:
                    try:
                        chunk = stream.read(CHUNK_SIZE)
                    except (BotoCoreError, OSError) as e:
                        raise DownloadError(f"Download of {snapshot.key} failed: {e}") from e
                    if not chunk:
                        break
                    out.write(chunk)
                    downloaded += len(chunk)

                    now = self._clock()
                    elapsed = now - sample_time
                    if elapsed >= RATE_SAMPLE_INTERVAL:
                        rate = (downloaded - sample_bytes) / elapsed
                        sample_time = now
                        sample_bytes = downloaded

                    progress = min(downloaded / total, 1.0) if total else 1.0
                    shell.popup = Downloading(snapshot, progress, rate)

                    key = shell.pump(0)
                    if key is not None and key in (keys.ESC, keys.CTRL_C):
                        if not self._confirm_cancel(shell, snapshot, progress, rate):
                            log.info("Download of %s cancelled at %.0f%%", snapshot.key, progress * 100)
                            shell.popup = Error("Download cancelled")
                            return None
                        # Time spent paused does not count towards the rate
                        sample_time = self._clock()
                        sample_bytes = downloaded
                out.flush()

            if downloaded != total:
                raise DownloadError(
                    f"Download of {snapshot.key} incomplete: {downloaded} of {total} bytes"
                )
            completed = True
        except OSError as e:
            raise DownloadError(f"Cannot write {destination}: {e}") from e
        finally:
            stream.close()
            if not completed:
                with contextlib.suppress(OSError):
                    destination.unlink()

        shell.popup = Success(f"Downloaded {snapshot.filename}")
        log.info("Downloaded %s", destination)
        return destination

    def _confirm_cancel(
        self, shell: Shell, snapshot: BackupMetadata, progress: float, rate: float,
    ) -> bool:
        """Hold the transfer behind ConfirmCancel. Returns True to resume."""
        shell.popup = ConfirmCancel(snapshot, progress, rate)
        while True:
            key = shell.pump(POLL_INTERVAL)
            if key is None:
                continue
            if key.is_char("y", "Y"):
                return False
            if key.is_char("n", "N") or key == keys.ESC:
                shell.popup = Downloading(snapshot, progress, rate)
                return True

    # --- Restore ---

    def provider(self, target: RestoreTarget) -> RestoreProvider:
        """Build the provider for ``target`` from the current settings."""
        return self._provider_factory(target, self.settings)

    def provider_for(self, target: RestoreTarget) -> RestoreProvider:
        """Return the provider for ``target``, raising if it is not configured."""
        provider = self.provider(target)
        missing = provider.unset_fields()
        if missing:
            raise RestoreConfigError(provider.name, missing)
        return provider

    def restore(
        self, snapshot: BackupMetadata, file_path: Path, target: RestoreTarget, shell: Shell,
    ) -> str:
        """Restore ``file_path`` into ``target`` on a worker thread.

        PostgreSQL restores go into a newly created scratch database. Keys
        pressed while ``Restoring`` is shown are read and dropped; a restore
        cannot be cancelled.

        Raises:
            RestoreError: On any failure, after ``Error`` has been published.
        """
        try:
            provider = self.provider_for(target)
        except RestoreError as e:
            shell.popup = Error(str(e))
            raise

        shell.popup = Restoring(snapshot, 0.0)
        log.info("Restoring %s into %s", snapshot.key, provider.name)
        task = BackgroundTask(
            _run_restore, provider, target, file_path,
            name=f"restore-{target.value}", with_progress=True,
        ).start()

        while not task.done:
            shell.popup = Restoring(snapshot, task.progress)
            key = shell.pump(POLL_INTERVAL)
            if key is not None:
                log.debug("Ignoring %s during restore", key.code)

        shell.popup = Restoring(snapshot, 1.0)
        shell.pump(0)
        try:
            message = task.result()
        except RestoreError as e:
            log.error("Restore of %s failed: %s", snapshot.key, e)
            shell.popup = Error(str(e))
            raise
        except Exception as e:
            log.exception("Restore of %s failed", snapshot.key)
            shell.popup = Error(f"{provider.name}: {e}")
            raise RestoreError(str(e), provider.name) from e

        shell.popup = Success(message)
        log.info(message)
        return message


def _run_restore(provider, target: RestoreTarget, file_path: Path, progress_callback=None) -> str:
    if target == RestoreTarget.POSTGRES:
        provider.create_scratch_database()
    return provider.restore_snapshot(file_path, progress_callback)
