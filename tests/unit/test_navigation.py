"""Tests for snaprestore.ui.navigation."""

from snaprestore.core.models import FocusField, FocusGroup, InputMode, RestoreTarget
from snaprestore.core.settings import Settings
from snaprestore.ui.navigation import FocusState, group_fields, group_of


class TestGroups:
    def test_group_of(self):
        assert group_of(FocusField.BUCKET) == FocusGroup.STORE
        assert group_of(FocusField.PG_HOST) == FocusGroup.TARGET
        assert group_of(FocusField.RESTORE_TARGET) == FocusGroup.TARGET
        assert group_of(FocusField.SNAPSHOT_LIST) == FocusGroup.SNAPSHOTS

    def test_target_group_follows_backend(self):
        fields = group_fields(FocusGroup.TARGET, RestoreTarget.ELASTICSEARCH)
        assert fields == [
            FocusField.RESTORE_TARGET,
            FocusField.ES_HOST,
            FocusField.ES_INDEX,
            FocusField.ES_API_KEY,
        ]


class TestGroupCycling:
    def test_tab_order(self):
        focus = FocusState(field=FocusField.BUCKET)
        focus.next_group()
        assert focus.field == FocusField.RESTORE_TARGET
        focus.next_group()
        assert focus.field == FocusField.SNAPSHOT_LIST
        focus.next_group()
        assert focus.field == FocusField.BUCKET

    def test_backtab_order(self):
        focus = FocusState(field=FocusField.BUCKET)
        focus.previous_group()
        assert focus.group == FocusGroup.SNAPSHOTS
        focus.previous_group()
        assert focus.group == FocusGroup.TARGET


class TestMove:
    def test_wraps_in_store_group(self):
        focus = FocusState(field=FocusField.PATH_STYLE)
        focus.move(1)
        assert focus.field == FocusField.BUCKET
        focus.move(-1)
        assert focus.field == FocusField.PATH_STYLE

    def test_stays_in_target_group(self):
        focus = FocusState(field=FocusField.PG_DB_NAME, target=RestoreTarget.POSTGRES)
        focus.move(1)
        assert focus.field == FocusField.RESTORE_TARGET
        focus.move(-1)
        assert focus.field == FocusField.PG_DB_NAME

    def test_noop_in_snapshot_group(self):
        focus = FocusState(field=FocusField.SNAPSHOT_LIST)
        focus.move(1)
        assert focus.field == FocusField.SNAPSHOT_LIST


class TestTargets:
    def test_cycle(self):
        focus = FocusState(field=FocusField.RESTORE_TARGET)
        focus.cycle_target(1)
        assert focus.target == RestoreTarget.ELASTICSEARCH
        focus.cycle_target(-1)
        focus.cycle_target(-1)
        assert focus.target == RestoreTarget.QDRANT

    def test_select_resets_foreign_field(self):
        focus = FocusState(field=FocusField.PG_PORT, target=RestoreTarget.POSTGRES)
        focus.select_target(RestoreTarget.QDRANT)
        assert focus.field == FocusField.RESTORE_TARGET

    def test_select_keeps_other_group_focus(self):
        focus = FocusState(field=FocusField.BUCKET)
        focus.select_target(RestoreTarget.ELASTICSEARCH)
        assert focus.field == FocusField.BUCKET


class TestEditing:
    def test_begin_seeds_buffer(self):
        settings = Settings()
        settings.s3.bucket = "nightly"
        focus = FocusState(field=FocusField.BUCKET)
        assert focus.begin_edit(settings) is True
        assert focus.input_mode == InputMode.EDITING
        assert focus.buffer == "nightly"

    def test_selectors_not_editable(self):
        focus = FocusState(field=FocusField.SNAPSHOT_LIST)
        assert focus.begin_edit(Settings()) is False
        assert focus.input_mode == InputMode.NORMAL

    def test_type_only_while_editing(self):
        focus = FocusState(field=FocusField.BUCKET)
        focus.type_char("x")
        assert focus.buffer == ""

    def test_commit_coerces_port(self):
        settings = Settings()
        settings.postgres.port = 5432
        focus = FocusState(field=FocusField.PG_PORT)
        focus.begin_edit(settings)
        focus.backspace()
        focus.backspace()
        focus.type_char("9")
        focus.type_char("9")
        assert focus.commit_edit(settings) == FocusField.PG_PORT
        assert settings.postgres.port == 5499
        assert focus.input_mode == InputMode.NORMAL

    def test_commit_ignores_bad_port(self):
        settings = Settings()
        settings.postgres.port = 5432
        focus = FocusState(field=FocusField.PG_PORT)
        focus.begin_edit(settings)
        focus.type_char("x")
        focus.commit_edit(settings)
        assert settings.postgres.port == 5432

    def test_cancel_discards(self):
        settings = Settings()
        focus = FocusState(field=FocusField.ES_INDEX, target=RestoreTarget.ELASTICSEARCH)
        focus.begin_edit(settings)
        focus.type_char("l")
        focus.cancel_edit()
        assert settings.elasticsearch.index is None
        assert focus.buffer == ""
        assert focus.input_mode == InputMode.NORMAL
