"""Draw the application state with rich. Reads state, never changes it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from snaprestore.core.models import (
    ConfirmCancel,
    ConfirmRestore,
    Downloading,
    Error,
    FocusField,
    FocusGroup,
    Hidden,
    PopupState,
    RestoreTarget,
    Restoring,
    Success,
    TestingStore,
    TestingTarget,
    TestResult,
)
from snaprestore.ui.navigation import TARGET_SETTINGS

if TYPE_CHECKING:
    from snaprestore.ui.app import RestoreApp

log = logging.getLogger(__name__)

FOCUS_STYLE = "reverse bold"
BORDER = "bright_black"
ACTIVE_BORDER = "cyan"


def format_size(size: int) -> str:
    """Human-readable byte count: 512 B, 1.5 KB, 2.0 GB."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_rate(rate: float) -> str:
    return f"{format_size(int(rate))}/s"


class RichRenderer:
    """Full-screen renderer on top of ``rich.live.Live``."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self._live: Live | None = None

    def start(self) -> None:
        if self._live is None:
            self._live = Live(console=self.console, screen=True, auto_refresh=False)
            self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def draw(self, app: RestoreApp) -> None:
        if self._live is None:
            return
        self._live.update(build_layout(app), refresh=True)


def build_layout(app: RestoreApp) -> Layout:
    layout = Layout()
    popup = render_popup(app.popup, app.focus.target)
    sections = [Layout(name="body", ratio=1)]
    if popup is not None:
        sections.append(Layout(popup, name="popup", size=7))
    sections.append(Layout(render_help(app), name="help", size=3))
    layout.split_column(*sections)

    left = Layout(name="settings", ratio=2)
    left.split_column(
        Layout(render_store_panel(app), name="store"),
        Layout(render_target_panel(app), name="target"),
    )
    layout["body"].split_row(left, Layout(render_snapshot_table(app), name="snapshots", ratio=3))
    return layout


def _field_rows(app: RestoreApp, section, fields: list[FocusField]) -> Table:
    table = Table.grid(padding=(0, 1))
    table.add_column(justify="right", style="bold")
    table.add_column()
    focus = app.focus
    for field in fields:
        value = Text(section.display_value(field))
        if field == focus.field:
            if focus.editing:
                shown = focus.buffer
                if field in section.SECRET_FIELDS:
                    shown = "*" * len(shown)
                value = Text(shown + "_", style="bold yellow")
            else:
                value.stylize(FOCUS_STYLE)
        table.add_row(field.label, value)
    return table


def _border(app: RestoreApp, group: FocusGroup) -> str:
    return ACTIVE_BORDER if app.focus.group == group else BORDER


def render_store_panel(app: RestoreApp) -> Panel:
    s3 = app.settings.s3
    return Panel(
        _field_rows(app, s3, s3.focus_fields()),
        title="Object Store",
        border_style=_border(app, FocusGroup.STORE),
    )


def render_target_tabs(app: RestoreApp) -> Text:
    tabs = Text()
    for index, target in enumerate(RestoreTarget, start=1):
        label = f" {index}:{target.label} "
        if target == app.focus.target:
            style = FOCUS_STYLE if app.focus.field == FocusField.RESTORE_TARGET else "bold underline"
        else:
            style = "dim"
        tabs.append(label, style=style)
    return tabs


def render_target_panel(app: RestoreApp) -> Panel:
    target = app.focus.target
    section = getattr(app.settings, target.value)
    fields = TARGET_SETTINGS[target].focus_fields()
    body = Group(render_target_tabs(app), Text(""), _field_rows(app, section, fields))
    return Panel(
        body,
        title="Restore Target",
        border_style=_border(app, FocusGroup.TARGET),
    )


def render_snapshot_table(app: RestoreApp) -> Panel:
    browser = app.browser
    table = Table(expand=True, show_edge=False, box=None)
    table.add_column("Key", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Last Modified", justify="right")
    for index, snapshot in enumerate(browser.snapshots):
        style = None
        if index == browser.selected:
            style = FOCUS_STYLE if app.focus.group == FocusGroup.SNAPSHOTS else "bold"
        table.add_row(
            snapshot.key,
            format_size(snapshot.size),
            snapshot.last_modified.strftime("%Y-%m-%d %H:%M:%S"),
            style=style,
        )
    if not browser.snapshots:
        table.add_row(Text("No snapshots (press r to reload)", style="dim"), "", "")
    return Panel(
        table,
        title=f"Snapshots ({len(browser.snapshots)})",
        border_style=_border(app, FocusGroup.SNAPSHOTS),
    )


def _progress(progress: float, caption: str) -> Group:
    bar = ProgressBar(total=100.0, completed=progress * 100.0)
    return Group(bar, Text(f"{progress * 100:5.1f}%  {caption}"))


def render_popup(popup: PopupState, target: RestoreTarget) -> Panel | None:
    """Return the popup panel, or None when no popup is shown."""
    if isinstance(popup, Hidden):
        return None
    if isinstance(popup, ConfirmRestore):
        body = Text(
            f"Restore {popup.snapshot.filename} into {target.label}?\n\n(y) yes   (n) no"
        )
        return Panel(body, title="Confirm Restore", border_style="yellow")
    if isinstance(popup, Downloading):
        caption = f"{format_rate(popup.rate)}   Esc to cancel"
        return Panel(_progress(popup.progress, caption), title=f"Downloading {popup.snapshot.filename}")
    if isinstance(popup, ConfirmCancel):
        body = Text(
            f"Cancel download of {popup.snapshot.filename} "
            f"at {popup.progress * 100:.1f}%?\n\n(y) yes   (n) no"
        )
        return Panel(body, title="Cancel Download", border_style="yellow")
    if isinstance(popup, Restoring):
        return Panel(
            _progress(popup.progress, "restore in progress, cannot be cancelled"),
            title=f"Restoring {popup.snapshot.filename}",
        )
    if isinstance(popup, TestingStore):
        return Panel(Text("Testing object store connection..."), title="Testing")
    if isinstance(popup, TestingTarget):
        return Panel(Text(f"Testing {popup.name} connection..."), title="Testing")
    if isinstance(popup, TestResult):
        return Panel(Text(popup.message), title="Connection OK", border_style="green")
    if isinstance(popup, Success):
        return Panel(Text(popup.message), title="Success", border_style="green")
    if isinstance(popup, Error):
        return Panel(Text(popup.message), title="Error", border_style="red")
    log.debug("No renderer for popup %r", popup)
    return None


def render_help(app: RestoreApp) -> Panel:
    if app.focus.editing:
        text = "Enter: save   Esc: discard"
    elif not isinstance(app.popup, Hidden):
        text = "Esc/Enter: close"
    else:
        text = (
            "Tab: next group   Up/Down: move   Enter: edit/restore   "
            "1-3: target   t: test   r: reload   q: quit"
        )
    return Panel(Text(text, style="dim"), border_style=BORDER)
