"""Keyboard focus: groups, field cycling and in-place field editing."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from snaprestore.core.models import FocusField, FocusGroup, InputMode, RestoreTarget
from snaprestore.core.settings import (
    ElasticsearchSettings,
    PostgresSettings,
    QdrantSettings,
    S3Settings,
    Settings,
)

log = logging.getLogger(__name__)

GROUP_ORDER = [FocusGroup.STORE, FocusGroup.TARGET, FocusGroup.SNAPSHOTS]

TARGET_SETTINGS = {
    RestoreTarget.POSTGRES: PostgresSettings,
    RestoreTarget.ELASTICSEARCH: ElasticsearchSettings,
    RestoreTarget.QDRANT: QdrantSettings,
}

# Pseudo-fields that select a group rather than hold a value
SELECTOR_FIELDS = frozenset({FocusField.RESTORE_TARGET, FocusField.SNAPSHOT_LIST})


def group_fields(group: FocusGroup, target: RestoreTarget) -> list[FocusField]:
    """Ordered fields reachable with Up/Down inside ``group``."""
    if group == FocusGroup.STORE:
        return S3Settings.focus_fields()
    if group == FocusGroup.TARGET:
        return [FocusField.RESTORE_TARGET] + TARGET_SETTINGS[target].focus_fields()
    return [FocusField.SNAPSHOT_LIST]


def group_of(field: FocusField) -> FocusGroup:
    if field == FocusField.SNAPSHOT_LIST:
        return FocusGroup.SNAPSHOTS
    if S3Settings.contains_field(field):
        return FocusGroup.STORE
    return FocusGroup.TARGET


@dataclass
class FocusState:
    """Focused field, input mode, edit buffer and active restore target."""

    field: FocusField = FocusField.SNAPSHOT_LIST
    input_mode: InputMode = InputMode.NORMAL
    buffer: str = ""
    target: RestoreTarget = RestoreTarget.POSTGRES

    @property
    def group(self) -> FocusGroup:
        return group_of(self.field)

    @property
    def editing(self) -> bool:
        return self.input_mode == InputMode.EDITING

    def fields(self) -> list[FocusField]:
        return group_fields(self.group, self.target)

    # --- Group / field movement ---

    def next_group(self) -> None:
        self._jump_group(1)

    def previous_group(self) -> None:
        self._jump_group(-1)

    def _jump_group(self, step: int) -> None:
        index = GROUP_ORDER.index(self.group)
        group = GROUP_ORDER[(index + step) % len(GROUP_ORDER)]
        self.field = group_fields(group, self.target)[0]
        log.debug("Focus group -> %s (%s)", group.value, self.field.value)

    def move(self, step: int) -> None:
        """Move within the current settings group, wrapping at both ends.

        The snapshot group has a single pseudo-field; its cursor belongs to
        the browser.
        """
        if self.group == FocusGroup.SNAPSHOTS:
            return
        fields = self.fields()
        index = fields.index(self.field) if self.field in fields else 0
        self.field = fields[(index + step) % len(fields)]

    # --- Restore target ---

    def cycle_target(self, step: int) -> None:
        self.select_target(self.target.next() if step > 0 else self.target.previous())

    def select_target(self, target: RestoreTarget) -> None:
        """Switch backend; a focused field of the old backend falls back to the tab."""
        self.target = target
        if self.group == FocusGroup.TARGET and self.field not in self.fields():
            self.field = FocusField.RESTORE_TARGET
        log.debug("Restore target -> %s", target.value)

    # --- Editing ---

    def begin_edit(self, settings: Settings) -> bool:
        """Enter Editing with the buffer seeded from the focused field.

        Returns False when the focused field is not editable.
        """
        if self.field in SELECTOR_FIELDS:
            return False
        section = settings.for_field(self.field)
        if section is None:
            return False
        self.buffer = section.get_field_value(self.field)
        self.input_mode = InputMode.EDITING
        return True

    def type_char(self, char: str) -> None:
        if self.editing:
            self.buffer += char

    def backspace(self) -> None:
        if self.editing:
            self.buffer = self.buffer[:-1]

    def commit_edit(self, settings: Settings) -> FocusField | None:
        """Write the buffer into the focused field and return to Normal.

        Returns the committed field, or None when not editing.
        """
        if not self.editing:
            return None
        section = settings.for_field(self.field)
        if section is not None:
            section.set_field_value(self.field, self.buffer)
        self.input_mode = InputMode.NORMAL
        self.buffer = ""
        return self.field

    def cancel_edit(self) -> None:
        self.input_mode = InputMode.NORMAL
        self.buffer = ""
