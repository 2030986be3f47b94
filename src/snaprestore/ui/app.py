"""Application shell: one event loop owning focus, popup and browser state."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from snaprestore.core.models import (
    HIDDEN,
    BackupMetadata,
    ConfirmRestore,
    Downloading,
    Error,
    FocusField,
    FocusGroup,
    Hidden,
    PopupState,
    RestoreTarget,
    Success,
    TestingStore,
    TestingTarget,
    TestResult,
)
from snaprestore.core.settings import Settings
from snaprestore.providers.restore.base import RestoreError
from snaprestore.storage.s3 import StorageError
from snaprestore.ui import keys
from snaprestore.ui.browser import POLL_INTERVAL, SnapshotBrowser
from snaprestore.ui.keys import Key, KeySource
from snaprestore.ui.navigation import FocusState
from snaprestore.ui.tasks import BackgroundTask

log = logging.getLogger(__name__)

SUCCESS_TIMEOUT = 1.0
# Minimum seconds between redraws triggered by non-blocking pumps
REDRAW_INTERVAL = 0.05

TARGET_KEYS = {
    "1": RestoreTarget.POSTGRES,
    "2": RestoreTarget.ELASTICSEARCH,
    "3": RestoreTarget.QDRANT,
}


class Renderer(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def draw(self, app: RestoreApp) -> None: ...


class RestoreApp:
    """Interactive snapshot browser.

    All state is mutated from the event loop thread only. Long operations
    (download, restore, connection tests) keep the screen alive by calling
    ``pump`` from their own polling loops.
    """

    def __init__(
        self,
        settings: Settings,
        key_source: KeySource,
        download_dir: Path,
        renderer: Renderer | None = None,
        browser: SnapshotBrowser | None = None,
        target: RestoreTarget = RestoreTarget.POSTGRES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.keys = key_source
        self.download_dir = download_dir
        self.renderer = renderer
        self.browser = browser or SnapshotBrowser(settings)
        self.focus = FocusState(target=target)
        self._clock = clock
        self._popup: PopupState = HIDDEN
        self.running = True
        self._last_draw = 0.0
        self._pending: Callable[[], None] | None = None

    @property
    def popup(self) -> PopupState:
        return self._popup

    @popup.setter
    def popup(self, value: PopupState) -> None:
        # Success expiry is measured on the app clock
        if isinstance(value, Success) and value.shown_at is None:
            value = replace(value, shown_at=self._clock())
        self._popup = value

    # --- Loop ---

    def run(self) -> None:
        """Load the snapshot list, then process keys until quit."""
        if self.renderer is not None:
            self.renderer.start()
        try:
            self.reload()
            while self.running:
                self.tick()
        except KeyboardInterrupt:
            log.info("Interrupted")
        finally:
            if self.renderer is not None:
                self.renderer.stop()

    def tick(self) -> None:
        """One iteration: redraw, poll a key, route it, run any queued action."""
        key = self.pump(POLL_INTERVAL)
        self.expire_popup()
        if key is not None:
            self.handle_key(key)
        if self._pending is not None:
            action, self._pending = self._pending, None
            action()

    def draw(self) -> None:
        if self.renderer is not None:
            self.renderer.draw(self)
        self._last_draw = self._clock()

    def pump(self, timeout: float) -> Key | None:
        """Redraw and wait up to ``timeout`` seconds for a key."""
        if timeout > 0 or self._clock() - self._last_draw >= REDRAW_INTERVAL:
            self.draw()
        return self.keys.read_key(timeout)

    def expire_popup(self) -> None:
        popup = self.popup
        if isinstance(popup, Success) and self._clock() - popup.shown_at >= SUCCESS_TIMEOUT:
            self.popup = HIDDEN

    # --- Key routing ---

    def handle_key(self, key: Key) -> None:
        popup = self.popup
        if isinstance(popup, Hidden):
            if self.focus.editing:
                self._handle_editing(key)
            else:
                self._handle_normal(key)
        elif isinstance(popup, ConfirmRestore):
            self._handle_confirm_restore(popup, key)
        elif isinstance(popup, (Error, Success, TestResult)):
            if key in (keys.ESC, keys.ENTER):
                self.popup = HIDDEN
        else:
            # Progress popups are driven by their own loops
            log.debug("Ignoring %s while %s", key.code, type(popup).__name__)

    def _handle_normal(self, key: Key) -> None:
        focus = self.focus
        if key == keys.CTRL_C or key.is_char("q"):
            self.running = False
        elif key == keys.CTRL_Z:
            self.suspend()
        elif key == keys.TAB:
            focus.next_group()
        elif key == keys.BACKTAB:
            focus.previous_group()
        elif key in (keys.UP, keys.DOWN):
            if focus.group == FocusGroup.SNAPSHOTS:
                if key == keys.DOWN:
                    self.browser.next()
                else:
                    self.browser.previous()
            else:
                focus.move(1 if key == keys.DOWN else -1)
        elif key in (keys.LEFT, keys.RIGHT):
            if focus.field == FocusField.RESTORE_TARGET:
                focus.cycle_target(1 if key == keys.RIGHT else -1)
        elif key == keys.ENTER:
            if focus.group == FocusGroup.SNAPSHOTS:
                snapshot = self.browser.selected_snapshot
                if snapshot is not None:
                    self.popup = ConfirmRestore(snapshot)
            else:
                focus.begin_edit(self.settings)
        elif key.code == "char" and key.char in TARGET_KEYS:
            focus.select_target(TARGET_KEYS[key.char])
        elif key.is_char("r"):
            self.reload()
        elif key.is_char("t"):
            self._pending = self.test_connection

    def _handle_editing(self, key: Key) -> None:
        focus = self.focus
        if key == keys.ENTER:
            field = focus.commit_edit(self.settings)
            if field is not None and self.settings.s3.contains_field(field):
                self._refresh_storage()
        elif key == keys.ESC:
            focus.cancel_edit()
        elif key == keys.BACKSPACE:
            focus.backspace()
        elif key.code == "char":
            focus.type_char(key.char)

    def _handle_confirm_restore(self, popup: ConfirmRestore, key: Key) -> None:
        if key.is_char("y", "Y"):
            snapshot = popup.snapshot
            self.popup = Downloading(snapshot, 0.0, 0.0)
            self._pending = lambda: self.restore_snapshot(snapshot)
        elif key.is_char("n", "N") or key == keys.ESC:
            self.popup = HIDDEN

    # --- Actions ---

    def reload(self) -> None:
        """Re-list snapshots; failures are shown as an Error popup."""
        try:
            self.browser.load_snapshots()
        except StorageError as e:
            log.warning("Failed to load snapshots: %s", e)
            self.popup = Error(str(e))
        except Exception as e:
            log.exception("Unexpected failure loading snapshots")
            self.popup = Error(f"Failed to load snapshots: {e}")

    def _refresh_storage(self) -> None:
        self.browser.reset_storage()
        try:
            self.browser.load_snapshots()
        except StorageError as e:
            log.warning("Reload after settings change failed: %s", e)
        except Exception:
            log.exception("Reload after settings change failed")

    def suspend(self) -> None:
        suspend = getattr(self.keys, "suspend", None)
        if suspend is None:
            return
        if self.renderer is not None:
            self.renderer.stop()
        try:
            suspend()
        finally:
            if self.renderer is not None:
                self.renderer.start()

    def test_connection(self) -> None:
        """Test the object store or the active restore target, by focus group."""
        if self.focus.group == FocusGroup.TARGET:
            try:
                provider = self.browser.provider(self.focus.target)
            except Exception as e:
                log.exception("Cannot build provider for %s", self.focus.target.value)
                self.popup = Error(str(e))
                return
            self.popup = TestingTarget(provider.name)
            call = provider.test_connection
        else:
            self.popup = TestingStore()
            call = self.browser.test_storage

        task = BackgroundTask(call, name="connection-test").start()
        while not task.done:
            self.pump(POLL_INTERVAL)
        try:
            message = task.result()
        except (StorageError, RestoreError) as e:
            log.warning("Connection test failed: %s", e)
            self.popup = Error(str(e))
            return
        except Exception as e:
            log.exception("Connection test failed")
            self.popup = Error(f"Connection test failed: {e}")
            return
        log.info(message)
        self.popup = TestResult(message)

    def restore_snapshot(self, snapshot: BackupMetadata) -> None:
        """Download ``snapshot`` and restore it into the active target.

        Every failure ends in an Error popup. The downloaded file is removed
        after a successful restore and kept after a failed one.
        """
        target = self.focus.target
        try:
            self.browser.provider_for(target)
        except RestoreError as e:
            self.popup = Error(str(e))
            return
        except Exception as e:
            log.exception("Cannot build provider for %s", target.value)
            self.popup = Error(str(e))
            return

        destination = self.download_dir / snapshot.filename
        try:
            path = self.browser.download(snapshot, destination, self)
        except StorageError as e:
            log.error("Download of %s failed: %s", snapshot.key, e)
            self.popup = Error(str(e))
            return
        except Exception as e:
            log.exception("Download of %s failed", snapshot.key)
            self.popup = Error(f"Download of {snapshot.key} failed: {e}")
            return
        if path is None:
            return

        try:
            self.browser.restore(snapshot, path, target, self)
        except RestoreError:
            log.warning("Keeping %s for inspection", path)
            return
        with contextlib.suppress(OSError):
            path.unlink()
