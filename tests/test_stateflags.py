"""Tests for category enumeration and StateFlags read/write."""

import pytest

from sagerun.config import DENY_LIST
from sagerun.errors import AccessError, InvalidInputError, NotFoundError, OperationCancelled
from sagerun.models import ActivationState
from sagerun.stateflags import (
    available_categories,
    list_categories,
    marker_value_name,
    plan_state_flags,
    read_marker,
    read_state_flags,
    set_state_flags,
)

from tests.conftest import DEFAULT_CATEGORIES, REG_SZ


class TestMarkerValueName:

    def test_padding(self):
        assert marker_value_name(7) == "StateFlags0007"
        assert marker_value_name(1337) == "StateFlags1337"
        assert marker_value_name(0) == "StateFlags0000"
        assert marker_value_name(9999) == "StateFlags9999"

    @pytest.mark.parametrize("bad", [-1, 10000, 1.5, "7", True, None])
    def test_rejects_out_of_range(self, bad):
        with pytest.raises(InvalidInputError):
            marker_value_name(bad)


class TestEnumerator:

    def test_lists_all_subkeys_unfiltered(self, registry):
        names = [c.name for c in list_categories(registry)]
        assert names == DEFAULT_CATEGORIES

    def test_available_excludes_deny_list(self, registry):
        names = {c.name for c in available_categories(registry)}
        assert names.isdisjoint(DENY_LIST)
        assert "Temporary Setup Files" in names

    def test_missing_key(self, registry):
        registry.present = False
        with pytest.raises(NotFoundError):
            list_categories(registry)

    def test_access_denied(self, registry):
        registry.root_denied = True
        with pytest.raises(AccessError):
            list_categories(registry)


class TestReader:

    def test_groups_by_marker(self, registry):
        registry.put("Recycle Bin", "StateFlags0001", 2)
        registry.put("Temporary Files", "StateFlags0001", 0)
        registry.put("Temporary Files", "StateFlags0042", 2)

        records = read_state_flags(registry)

        assert [r.marker_id for r in records] == [1, 42]
        assert records[0].states == {
            "Recycle Bin": ActivationState.ENABLED,
            "Temporary Files": ActivationState.DISABLED,
        }
        assert records[1].states == {"Temporary Files": ActivationState.ENABLED}

    def test_only_four_digit_markers(self, registry):
        registry.put("Recycle Bin", "StateFlags001", 2)
        registry.put("Recycle Bin", "StateFlags00001", 2)
        registry.put("Recycle Bin", "StateFlagsABCD", 2)
        registry.put("Recycle Bin", "Autorun", 1)
        registry.put("Recycle Bin", "StateFlags0005", 2)

        records = read_state_flags(registry)

        assert [r.value_name for r in records] == ["StateFlags0005"]

    def test_non_ascii_digits_and_trailing_newline_ignored(self, registry):
        registry.put("Recycle Bin", "StateFlags١٢٣٤", 2)
        registry.put("Temporary Files", "StateFlags0005\n", 2)

        assert read_state_flags(registry) == []

    def test_non_ascii_digits_do_not_merge_into_real_marker(self, registry):
        registry.put("Recycle Bin", "StateFlags1234", 0)
        registry.put("Temporary Files", "StateFlags١٢٣٤", 2)

        (record,) = read_state_flags(registry)

        assert record.states == {"Recycle Bin": ActivationState.DISABLED}

    def test_prefix_case_is_ignored(self, registry):
        registry.put("Recycle Bin", "stateflags0006", 2)

        (record,) = read_state_flags(registry)

        assert record.marker_id == 6

    def test_unknown_values_stay_unset(self, registry):
        registry.put("Recycle Bin", "StateFlags0003", 1)
        registry.put("Temporary Files", "StateFlags0003", "2", REG_SZ)

        (record,) = read_state_flags(registry)

        assert record.as_bools() == {"Recycle Bin": None, "Temporary Files": None}

    def test_values_are_never_raw_codes(self, registry):
        for i, name in enumerate(DEFAULT_CATEGORIES):
            registry.put(name, "StateFlags0009", i)

        for record in read_state_flags(registry):
            assert set(record.as_bools().values()) <= {True, False, None}

    def test_unreadable_category_is_skipped(self, registry):
        registry.put("Recycle Bin", "StateFlags0001", 2)
        registry.put("Temporary Files", "StateFlags0001", 2)
        registry.read_denied.add("Recycle Bin")

        (record,) = read_state_flags(registry)

        assert list(record.states) == ["Temporary Files"]

    def test_enumerator_errors_propagate(self, registry):
        registry.present = False
        with pytest.raises(NotFoundError):
            read_state_flags(registry)

    def test_read_marker_missing_is_empty(self, registry):
        record = read_marker(55, registry)
        assert record.marker_id == 55
        assert record.states == {}


class TestWriter:

    def test_full_overwrite(self, registry):
        registry.put("Recycle Bin", "StateFlags0010", 2)

        set_state_flags(10, {"TemporaryFiles"}, force=True, registry=registry)

        record = read_marker(10, registry)
        assert record.states["Temporary Files"] is ActivationState.ENABLED
        assert record.states["Recycle Bin"] is ActivationState.DISABLED

    def test_round_trip(self, registry):
        selection = {"TemporarySetupFiles", "UpdateCleanup"}

        set_state_flags(77, selection, force=True, registry=registry)

        record = read_marker(77, registry)
        for cat in available_categories(registry):
            assert record.states[cat.name].as_bool is (cat.token in selection)

    def test_deny_list_never_written(self, registry):
        set_state_flags(5, set(), force=True, registry=registry)

        written = {name for name, _, _ in registry.writes}
        assert written.isdisjoint(DENY_LIST)
        assert set(read_marker(5, registry).states).isdisjoint(DENY_LIST)

    def test_deny_listed_token_rejected(self, registry):
        with pytest.raises(InvalidInputError):
            set_state_flags(5, {"GameNewsFiles"}, force=True, registry=registry)
        assert registry.writes == []

    def test_unknown_token_rejected_before_writes(self, registry):
        with pytest.raises(InvalidInputError, match="NoSuchThing"):
            set_state_flags(5, {"RecycleBin", "NoSuchThing"}, force=True, registry=registry)
        assert registry.writes == []

    def test_bad_marker_rejected_before_writes(self, registry):
        with pytest.raises(InvalidInputError):
            set_state_flags(10000, {"RecycleBin"}, force=True, registry=registry)
        assert registry.writes == []

    def test_selection_is_whitespace_normalized(self, registry):
        set_state_flags(3, {"Recycle Bin"}, force=True, registry=registry)
        assert read_marker(3, registry).states["Recycle Bin"] is ActivationState.ENABLED

    def test_dry_run_writes_nothing(self, registry):
        plan = set_state_flags(4, {"RecycleBin"}, dry_run=True, registry=registry)

        assert registry.writes == []
        assert len(plan) == len(available_categories(registry))
        assert {c.category for c in plan if c.value == 2} == {"Recycle Bin"}

    def test_confirm_decline_cancels(self, registry):
        seen = []

        def decline(plan):
            seen.append(plan)
            return False

        with pytest.raises(OperationCancelled):
            set_state_flags(4, {"RecycleBin"}, confirm=decline, registry=registry)
        assert registry.writes == []
        assert seen and seen[0] == plan_state_flags(4, {"RecycleBin"}, registry)

    def test_force_skips_confirm(self, registry):
        def explode(plan):
            raise AssertionError("confirm should not be called")

        set_state_flags(4, {"RecycleBin"}, force=True, confirm=explode, registry=registry)
        assert registry.writes

    def test_write_failure_is_fail_fast(self, registry):
        registry.write_denied.add("Temporary Files")

        with pytest.raises(AccessError) as excinfo:
            set_state_flags(8, {"RecycleBin"}, force=True, registry=registry)

        written = [name for name, _, _ in registry.writes]
        assert written == ["Active Setup Temp Folders", "Previous Installations", "Recycle Bin"]
        assert [c.category for c in excinfo.value.applied] == written
