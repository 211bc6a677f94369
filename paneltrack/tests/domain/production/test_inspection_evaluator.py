"""Unit tests for inspection evaluation against station criteria."""

import pytest
from pydantic import ValidationError

from paneltrack.domain.production.services.criteria_registry import DEFAULT_REGISTRY
from paneltrack.domain.production.services.inspection_evaluator import (
    evaluate_inspection,
    next_actions_for,
)
from paneltrack.domain.production.value_objects.enums import (
    InspectionResult,
    PanelSize,
    StationId,
    WorkflowStage,
)
from paneltrack.domain.production.value_objects.inspection import Inspection
from paneltrack.domain.shared.exceptions import ErrorCode, MissingCriteriaError
from paneltrack.tests.factories import passing_criteria

ASSEMBLY = DEFAULT_REGISTRY.station(StationId.STATION_1)
FINAL = DEFAULT_REGISTRY.station(StationId.STATION_4)


def evaluate(station, criteria, result=InspectionResult.PASS, panel_size=PanelSize.SIZE_36):
    return evaluate_inspection(
        "PANEL-1",
        station,
        Inspection(result=result, criteria=criteria),
        DEFAULT_REGISTRY,
        panel_size,
    )


class TestBooleanCriteria:
    """Test evaluation of pass/fail criteria."""

    def test_all_required_true_passes(self):
        evaluation = evaluate(ASSEMBLY, passing_criteria(StationId.STATION_1))

        assert evaluation.passed
        assert evaluation.pass_ratio == 1.0
        assert evaluation.quality_score == 100.0
        assert evaluation.failure_reasons == ()
        assert evaluation.required_actions == ()

    def test_false_criterion_overrides_pass_claim(self):
        """Test a claimed PASS is re-derived from the criteria."""
        evaluation = evaluate(
            ASSEMBLY,
            {"cellAlignment": False, "electricalConnection": True, "visualInspection": True},
        )

        assert evaluation.result is InspectionResult.FAIL
        assert evaluation.claimed_result is InspectionResult.PASS
        assert evaluation.pass_ratio == pytest.approx(2 / 3)
        assert evaluation.quality_score == 66.67
        assert evaluation.failure_reasons == ("cellAlignment out of tolerance",)
        assert evaluation.required_actions == ("Realign solar cells within tolerance",)

    def test_truthy_non_boolean_does_not_pass(self):
        """Test only an explicit True passes a boolean criterion."""
        criteria = passing_criteria(StationId.STATION_1)
        criteria["visualInspection"] = 1

        evaluation = evaluate(ASSEMBLY, criteria)

        assert not evaluation.passed
        assert evaluation.failure_reasons == ("visualInspection out of tolerance",)

    def test_fail_claim_with_passing_criteria(self):
        """Test a station may fail a panel even when criteria pass."""
        evaluation = evaluate(
            ASSEMBLY, passing_criteria(StationId.STATION_1), result=InspectionResult.FAIL
        )

        assert evaluation.result is InspectionResult.FAIL
        assert evaluation.quality_score == 100.0
        assert evaluation.failure_reasons == ("Assembly & EL reported FAIL",)

    def test_optional_criteria_do_not_affect_verdict(self):
        criteria = passing_criteria(StationId.STATION_1)
        criteria["cellCount"] = False

        evaluation = evaluate(ASSEMBLY, criteria)

        assert evaluation.passed
        assert [r.name for r in evaluation.criteria_results][-1] == "cellCount"
        assert not evaluation.criteria_results[-1].passed


class TestMissingCriteria:
    """Test inspections that do not record every required criterion."""

    def test_partially_recorded_inspection_fails(self):
        """Test absent required criteria fail the inspection but not the ratio."""
        evaluation = evaluate(ASSEMBLY, {"cellAlignment": True, "electricalConnection": True})

        assert evaluation.result is InspectionResult.FAIL
        assert evaluation.pass_ratio == 1.0
        assert evaluation.missing_criteria == ("visualInspection",)
        assert evaluation.failure_reasons == ("visualInspection not recorded",)
        assert evaluation.required_actions == ("Review and correct visualInspection issue",)

    def test_no_required_criteria_is_an_error(self):
        with pytest.raises(MissingCriteriaError) as exc_info:
            evaluate(ASSEMBLY, {"frameAlignment": True})

        assert exc_info.value.code is ErrorCode.MISSING_CRITERIA
        assert exc_info.value.missing == [
            "cellAlignment",
            "electricalConnection",
            "visualInspection",
        ]
        assert exc_info.value.details["panel_id"] == "PANEL-1"


class TestNumericCriteria:
    """Test measured criteria against per-size targets."""

    def test_measurements_on_target_pass(self):
        evaluation = evaluate(FINAL, passing_criteria(StationId.STATION_4))

        assert evaluation.passed

    def test_measurement_within_tolerance_passes(self):
        criteria = passing_criteria(StationId.STATION_4)
        criteria["powerOutput"] = 192.0  # 4% below 200 W

        assert evaluate(FINAL, criteria).passed

    def test_measurement_outside_tolerance_fails(self):
        criteria = passing_criteria(StationId.STATION_4)
        criteria["powerOutput"] = 180.0

        evaluation = evaluate(FINAL, criteria)

        assert not evaluation.passed
        assert evaluation.pass_ratio == 0.75
        assert len(evaluation.failure_reasons) == 1
        assert "measured 180W, target 200W" in evaluation.failure_reasons[0]
        assert evaluation.required_actions == ("Investigate power output deviation",)

    def test_target_depends_on_panel_size(self):
        """Test a 144-cell panel is measured against its own nominal power."""
        criteria = passing_criteria(StationId.STATION_4, PanelSize.SIZE_144)

        assert criteria["powerOutput"] == 550.0
        assert evaluate(FINAL, criteria, panel_size=PanelSize.SIZE_144).passed
        assert not evaluate(FINAL, criteria, panel_size=PanelSize.SIZE_36).passed

    def test_boolean_value_for_numeric_criterion_fails(self):
        criteria = passing_criteria(StationId.STATION_4)
        criteria["powerOutput"] = True

        evaluation = evaluate(FINAL, criteria)

        assert not evaluation.passed
        assert "expected a measurement in W" in evaluation.failure_reasons[0]

    def test_single_failure_misses_final_threshold(self):
        """Test 3 of 4 criteria (75%) stays below the 98% threshold."""
        criteria = passing_criteria(StationId.STATION_4)
        criteria["efficiencyTest"] = 0.15

        evaluation = evaluate(FINAL, criteria)

        assert evaluation.pass_ratio == 0.75
        assert evaluation.result is InspectionResult.FAIL


class TestNextActions:
    def test_failed_includes_required_actions(self):
        actions = next_actions_for(WorkflowStage.FAILED, ("Re-solder electrical connections",))

        assert actions == (
            "Review failure reasons",
            "Determine rework or quarantine path",
            "Re-solder electrical connections",
        )

    def test_completed(self):
        assert next_actions_for(WorkflowStage.COMPLETED) == (
            "Panel completed successfully",
            "Ready for packaging and shipping",
        )

    def test_station_stage_defaults(self):
        assert next_actions_for(WorkflowStage.FRAMING) == (
            "Proceed to next station",
            "Update workflow status",
        )


class TestCriterionValueTypes:
    """Test criterion values are taken as recorded, never coerced."""

    @pytest.mark.parametrize("value", ["yes", "true", "1", "200", None])
    def test_string_and_null_values_are_rejected(self, value):
        with pytest.raises(ValidationError):
            Inspection(
                result=InspectionResult.PASS,
                criteria={
                    "cellAlignment": value,
                    "electricalConnection": True,
                    "visualInspection": True,
                },
            )

    def test_parsed_payload_keeps_strings_out(self):
        """Test a JSON payload with a quoted value fails validation."""
        payload = (
            '{"result": "PASS", "criteria": {"cellAlignment": "yes", '
            '"electricalConnection": true, "visualInspection": true}}'
        )

        with pytest.raises(ValidationError):
            Inspection.model_validate_json(payload)

    def test_values_keep_their_type(self):
        inspection = Inspection(
            result=InspectionResult.PASS,
            criteria={"visualInspection": True, "alignedCount": 1, "powerOutput": 199.5},
        )

        assert inspection.criteria["visualInspection"] is True
        assert type(inspection.criteria["alignedCount"]) is int
        assert inspection.criteria["powerOutput"] == 199.5


class TestLineSpecificCriteria:
    """Test criteria a station requires only on one production line."""

    def test_line_two_panel_missing_its_extra_criterion_fails(self):
        criteria = {"cellAlignment": True, "electricalConnection": True, "visualInspection": True}

        evaluation = evaluate_inspection(
            "PANEL-1",
            ASSEMBLY,
            Inspection(result=InspectionResult.PASS, criteria=criteria),
            DEFAULT_REGISTRY,
            PanelSize.SIZE_144,
            line_number=2,
        )

        assert evaluation.result is InspectionResult.FAIL
        assert evaluation.missing_criteria == ("largePanelHandling",)
        assert evaluation.failure_reasons == ("largePanelHandling not recorded",)
        assert evaluation.required_actions == (
            DEFAULT_REGISTRY.corrective_action("largePanelHandling"),
        )

    def test_same_payload_passes_on_line_one(self):
        criteria = {"cellAlignment": True, "electricalConnection": True, "visualInspection": True}

        evaluation = evaluate_inspection(
            "PANEL-1",
            ASSEMBLY,
            Inspection(result=InspectionResult.PASS, criteria=criteria),
            DEFAULT_REGISTRY,
            PanelSize.SIZE_36,
            line_number=1,
        )

        assert evaluation.passed

    def test_line_criterion_counts_in_pass_ratio(self):
        criteria = passing_criteria(StationId.STATION_1, PanelSize.SIZE_144)
        criteria["largePanelHandling"] = False

        evaluation = evaluate_inspection(
            "PANEL-1",
            ASSEMBLY,
            Inspection(result=InspectionResult.PASS, criteria=criteria),
            DEFAULT_REGISTRY,
            PanelSize.SIZE_144,
            line_number=2,
        )

        assert evaluation.pass_ratio == 0.75
        assert not evaluation.passed

    def test_final_station_line_one_requires_second_el_test(self):
        criteria = passing_criteria(StationId.STATION_4)
        del criteria["secondElTest"]

        evaluation = evaluate_inspection(
            "PANEL-1",
            FINAL,
            Inspection(result=InspectionResult.PASS, criteria=criteria),
            DEFAULT_REGISTRY,
            PanelSize.SIZE_36,
            line_number=1,
        )

        assert evaluation.missing_criteria == ("secondElTest",)
        assert not evaluation.passed
