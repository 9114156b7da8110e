"""Tests for the nutrition label audit trail."""
import subprocess
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from nutrilabel.data_layer.exceptions import OverrideValidationError
from nutrilabel.data_layer.models import NutrientProfile
from nutrilabel.nutrition.audit import (
    AuditLog,
    AuditTrailManager,
    ManualEditMetadata,
    NutritionLabelData,
    NutritionSource,
    OverrideEvent,
    RecomputeEvent,
    RevertEvent,
    event_from_dict,
    validate_overrides,
)

REPO_ROOT = Path(__file__).resolve().parent.parent


class FakeClock:
    """Clock that advances one minute per call."""

    def __init__(self):
        self.current = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        moment = self.current
        self.current += timedelta(minutes=1)
        return moment


@pytest.fixture
def manager():
    return AuditTrailManager(clock=FakeClock())


@pytest.fixture
def profile():
    return NutrientProfile(calories=100.0, protein=5.0, total_fat=3.0)


@pytest.fixture
def label(manager, profile):
    return manager.initialize(profile)


class TestTransitions:
    """Tests for initialize, override, revert and recompute."""

    def test_initialize(self, label, profile):
        assert label.source == NutritionSource.CALCULATED
        assert label.values == profile
        assert label.calculated_values == profile
        assert label.last_calculated == "2026-03-01T12:00:00Z"
        assert label.manual_edit_metadata is None

    def test_apply_override(self, manager, label):
        edited = manager.apply_override(label, {"calories": "120", "protein": 5}, "  Lab test  ", edited_by="sam")

        assert edited.source == NutritionSource.MANUAL_OVERRIDE
        assert edited.values.calories == 120.0
        assert edited.values.total_fat == 3.0
        assert edited.calculated_values == label.calculated_values
        metadata = edited.manual_edit_metadata
        assert metadata.reason == "Lab test"
        assert metadata.edited_fields == ["calories"]
        assert metadata.previous_values == {"calories": 100.0}
        assert metadata.edited_by == "sam"

    def test_override_does_not_mutate_input(self, manager, label):
        before = label.to_dict()

        manager.apply_override(label, {"calories": 150}, "Lab test")

        assert label.to_dict() == before

    def test_override_accepts_aliases(self, manager, label):
        edited = manager.apply_override(label, {"kcal": 90, "totalFat": 2}, "Rounded by supplier")

        assert edited.values.calories == 90.0
        assert edited.values.total_fat == 2.0

    def test_override_then_revert_restores_calculated(self, manager, label):
        calculated_before = label.calculated_values

        edited = manager.apply_override(label, {"calories": 150}, "Lab test")
        reverted = manager.revert(edited, reason="Lab was wrong")

        assert reverted.values == calculated_before
        assert reverted.source == NutritionSource.CALCULATED
        assert reverted.manual_edit_metadata is None
        assert "manual_edit_metadata" not in reverted.to_dict()

    def test_recompute_during_override_keeps_display(self, manager, label):
        edited = manager.apply_override(label, {"calories": 150}, "Lab test")
        new_calculated = NutrientProfile(calories=130.0, protein=6.0)

        recomputed = manager.recompute(edited, new_calculated)

        assert recomputed.calculated_values == new_calculated
        assert recomputed.values == edited.values
        assert recomputed.manual_edit_metadata == edited.manual_edit_metadata
        assert recomputed.to_dict()["values"] == edited.to_dict()["values"]
        assert recomputed.to_dict()["manual_edit_metadata"] == edited.to_dict()["manual_edit_metadata"]
        assert recomputed.source == NutritionSource.MANUAL_OVERRIDE
        assert recomputed.last_calculated != edited.last_calculated

    def test_recompute_calculated_label_follows(self, manager, label):
        new_calculated = NutrientProfile(calories=130.0)

        recomputed = manager.recompute(label, new_calculated)

        assert recomputed.values == new_calculated
        assert recomputed.calculated_values == new_calculated
        assert recomputed.source == NutritionSource.CALCULATED

    def test_apply_event_dispatch(self, manager, label):
        edited = manager.apply_event(label, OverrideEvent(overrides={"calories": 150}, reason="Lab test"))
        recomputed = manager.apply_event(edited, RecomputeEvent(calculated_values=NutrientProfile(calories=90.0)))
        reverted = manager.apply_event(recomputed, RevertEvent())

        assert edited.source == NutritionSource.MANUAL_OVERRIDE
        assert recomputed.values.calories == 150.0
        assert reverted.values.calories == 90.0

    def test_apply_event_unknown(self, manager, label):
        with pytest.raises(TypeError):
            manager.apply_event(label, {"kind": "override"})


class TestOverrideValidation:
    """Tests for rejected override requests."""

    @pytest.fixture
    def manager(self):
        return AuditTrailManager()

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reason_required(self, manager, reason):
        label = manager.initialize(NutrientProfile(calories=100.0))

        with pytest.raises(OverrideValidationError) as exc_info:
            manager.apply_override(label, {"calories": 120}, reason)

        assert "A reason is required for manual overrides" in exc_info.value.problems

    def test_empty_overrides(self):
        with pytest.raises(OverrideValidationError) as exc_info:
            validate_overrides({}, "Lab test")

        assert exc_info.value.problems == ["At least one field must be overridden"]

    def test_every_problem_reported(self):
        with pytest.raises(OverrideValidationError) as exc_info:
            validate_overrides({"bogus": 1, "protein": -1, "fat": "abc"}, "")

        error = exc_info.value
        assert len(error.problems) == 4
        assert error.fields == ["bogus", "protein", "fat"]
        assert error.to_dict()["error_code"] == "OVERRIDE_VALIDATION"

    @pytest.mark.parametrize("value", [True, None, "", float("nan"), float("inf"), [1]])
    def test_non_numeric_values_rejected(self, value):
        with pytest.raises(OverrideValidationError):
            validate_overrides({"calories": value}, "Lab test")

    def test_numeric_strings_coerced(self):
        assert validate_overrides({"kcal": " 120.5 "}, "Lab test") == {"calories": 120.5}

    def test_rejected_override_leaves_record_unchanged(self, manager):
        label = manager.initialize(NutrientProfile(calories=100.0))
        before = label.to_dict()

        with pytest.raises(OverrideValidationError):
            manager.apply_override(label, {"calories": -5}, "Lab test")

        assert label.to_dict() == before


class TestDiscrepancies:
    """Tests for discrepancy detection."""

    @pytest.fixture
    def manager(self):
        return AuditTrailManager()

    def _label(self, calculated, displayed):
        return NutritionLabelData(
            values=displayed,
            calculated_values=calculated,
            source=NutritionSource.MANUAL_OVERRIDE,
            last_calculated="2026-03-01T12:00:00Z",
        )

    def test_small_difference_not_flagged(self, manager):
        label = self._label(NutrientProfile(calories=100.0), NutrientProfile(calories=102.0))

        assert manager.find_discrepancies(label) == []

    def test_large_difference_flagged(self, manager):
        label = self._label(NutrientProfile(calories=100.0), NutrientProfile(calories=110.0))

        discrepancies = manager.find_discrepancies(label)

        assert len(discrepancies) == 1
        assert discrepancies[0].field == "calories"
        assert discrepancies[0].difference == pytest.approx(10.0)
        assert discrepancies[0].percent_diff == pytest.approx(10.0)

    def test_strict_tolerance_without_label_rounding(self):
        manager = AuditTrailManager(ignore_label_rounding=False)
        label = self._label(NutrientProfile(calories=100.0), NutrientProfile(calories=102.0))

        assert [d.field for d in manager.find_discrepancies(label)] == ["calories"]

    def test_percent_tolerance_for_large_values(self, manager):
        assert manager.tolerance_for(500.0) == pytest.approx(5.0)
        assert manager.tolerance_for(50.0) == 1.0

        label = self._label(NutrientProfile(calories=1000.0), NutrientProfile(calories=1008.0))
        assert manager.find_discrepancies(label) == []

    def test_non_label_nutrient_uses_tolerance_only(self, manager):
        within = self._label(NutrientProfile(vitamin_c=10.0), NutrientProfile(vitamin_c=10.5))
        beyond = self._label(NutrientProfile(vitamin_c=10.0), NutrientProfile(vitamin_c=20.0))

        assert manager.find_discrepancies(within) == []
        assert [d.field for d in manager.find_discrepancies(beyond)] == ["vitamin_c"]

    def test_zero_calculated(self, manager):
        label = self._label(NutrientProfile(), NutrientProfile(protein=5.0))

        discrepancies = manager.find_discrepancies(label)

        assert discrepancies[0].field == "protein"
        assert discrepancies[0].percent_diff == 100.0

    def test_override_of_zero_calculated(self, manager):
        label = manager.apply_override(manager.initialize(NutrientProfile()), {"calories": 50}, "Lab test")

        discrepancy = manager.find_discrepancies(label)[0]

        assert discrepancy.field == "calories"
        assert discrepancy.difference == 50.0
        assert discrepancy.percent_diff == 100.0

    def test_both_zero_skipped(self, manager):
        label = self._label(NutrientProfile(), NutrientProfile())

        assert manager.find_discrepancies(label) == []

    def test_has_manual_override(self, manager):
        label = manager.initialize(NutrientProfile(calories=100.0))

        assert manager.has_manual_override(label) is False
        assert manager.has_manual_override(manager.apply_override(label, {"calories": 1}, "x")) is True


class TestSerialization:
    """Tests for reading and writing label records."""

    def test_round_trip(self, manager, label):
        edited = manager.apply_override(label, {"calories": 150}, "Lab test")

        restored = NutritionLabelData.from_dict(edited.to_dict())

        assert restored == edited

    def test_legacy_bare_profile(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)

        label = NutritionLabelData.from_dict({"calories": 250, "protein": 10}, now=now)

        assert label.source == NutritionSource.CALCULATED
        assert label.values.calories == 250.0
        assert label.values == label.calculated_values
        assert label.last_calculated == "2026-01-01T00:00:00Z"

    def test_camel_case_record(self):
        label = NutritionLabelData.from_dict({
            "values": {"kcal": 120, "protein": 5},
            "calculatedValues": {"kcal": 100, "protein": 5},
            "source": "manual_override",
            "lastCalculated": "2026-02-01T00:00:00Z",
            "manualEditMetadata": {
                "timestamp": "2026-02-02T00:00:00Z",
                "reason": "Lab test",
                "editedFields": ["kcal"],
                "previousValues": {"kcal": 100},
                "editedBy": "sam",
            },
        })

        assert label.values.calories == 120.0
        assert label.calculated_values.calories == 100.0
        assert label.source == NutritionSource.MANUAL_OVERRIDE
        assert label.last_calculated == "2026-02-01T00:00:00Z"
        assert label.manual_edit_metadata.edited_fields == ["calories"]
        assert label.manual_edit_metadata.previous_values == {"calories": 100.0}
        assert label.manual_edit_metadata.edited_by == "sam"

    def test_missing_calculated_values_default_to_values(self):
        label = NutritionLabelData.from_dict({"values": {"calories": 80}})

        assert label.calculated_values.calories == 80.0

    @pytest.mark.parametrize("data", [[1, 2], "text", 42])
    def test_non_mapping_rejected(self, data):
        with pytest.raises(ValueError):
            NutritionLabelData.from_dict(data)

    def test_unknown_source_rejected(self):
        with pytest.raises(ValueError):
            NutritionLabelData.from_dict({"values": {}, "source": "guessed"})

    def test_metadata_to_dict(self):
        metadata = ManualEditMetadata(timestamp="t", reason="r", edited_fields=["calories"])

        assert ManualEditMetadata.from_dict(metadata.to_dict()) == metadata


class TestEditEvents:
    """Tests for tagged edit events."""

    def test_kinds(self):
        assert OverrideEvent(overrides={"calories": 1}, reason="x").kind == "override"
        assert RevertEvent().kind == "revert"
        assert RecomputeEvent(calculated_values=NutrientProfile()).kind == "recompute"

    @pytest.mark.parametrize("event", [
        OverrideEvent(overrides={"calories": 1}, reason="x", edited_by="sam"),
        RevertEvent(reason="wrong"),
        RecomputeEvent(calculated_values=NutrientProfile(calories=5.0)),
    ])
    def test_event_from_dict(self, event):
        assert event_from_dict(event.to_dict()) == event

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            event_from_dict({"kind": "delete"})


class TestAuditLog:
    """Tests for the append-only event history."""

    def test_record_and_history(self):
        storage = {}
        log = AuditLog(storage, clock=FakeClock())

        entry = log.record("r1", RevertEvent(reason="wrong"))
        log.record("r2", OverrideEvent(overrides={"calories": 1}, reason="x"))

        assert entry == {"kind": "revert", "reason": "wrong", "at": "2026-03-01T12:00:00Z"}
        assert [e["kind"] for e in log.history("r1")] == ["revert"]
        assert [e["kind"] for e in log.history("r2")] == ["override"]
        assert set(storage) == {"r1", "r2"}

    def test_history_is_a_copy(self):
        log = AuditLog()
        log.record("r1", RevertEvent())

        log.history("r1").clear()

        assert len(log.history("r1")) == 1
        assert log.history("missing") == []


# === Import order ===

class TestImportOrder:
    """Tests that the audit and output layers import cleanly in any order."""

    @pytest.mark.parametrize("modules", [
        ["nutrilabel.nutrition.audit", "nutrilabel.output.label_formatter"],
        ["nutrilabel.output", "nutrilabel.nutrition.audit"],
        ["nutrilabel.output.label_formatter", "nutrilabel.nutrition.audit"],
    ])
    def test_fresh_interpreter_import(self, modules):
        code = "; ".join(f"import {m}" for m in modules)

        result = subprocess.run(
            [sys.executable, "-c", code], capture_output=True, text=True, cwd=REPO_ROOT
        )

        assert result.returncode == 0, result.stderr
