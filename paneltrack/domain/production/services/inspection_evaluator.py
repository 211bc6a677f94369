"""
Inspection evaluation.

The station's PASS/FAIL claim is never taken on its own: the verdict is PASS
only when the station claims PASS and the recorded criteria reach the
station's pass threshold.
"""

from pydantic import Field

from ...shared.base import ValueObject
from ...shared.exceptions import MissingCriteriaError
from ..value_objects.enums import InspectionResult, PanelSize, WorkflowStage
from ..value_objects.inspection import Inspection
from ..value_objects.quality import CriterionResult, StationConfig
from .criteria_registry import QualityCriteriaRegistry

_NEXT_ACTIONS: dict[WorkflowStage, tuple[str, ...]] = {
    WorkflowStage.COMPLETED: (
        "Panel completed successfully",
        "Ready for packaging and shipping",
    ),
    WorkflowStage.FAILED: (
        "Review failure reasons",
        "Determine rework or quarantine path",
    ),
    WorkflowStage.REWORK: (
        "Send panel to appropriate rework station",
        "Update workflow tracking",
    ),
    WorkflowStage.QUARANTINE: (
        "Place panel in quarantine area",
        "Schedule quality review",
    ),
}
_DEFAULT_NEXT_ACTIONS = ("Proceed to next station", "Update workflow status")


class CriteriaEvaluation(ValueObject):
    """Result of checking an inspection payload against a station configuration."""

    result: InspectionResult
    claimed_result: InspectionResult
    pass_ratio: float = Field(ge=0, le=1)
    criteria_results: tuple[CriterionResult, ...]
    missing_criteria: tuple[str, ...] = ()
    failure_reasons: tuple[str, ...] = ()
    required_actions: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return self.result is InspectionResult.PASS

    @property
    def quality_score(self) -> float:
        return round(self.pass_ratio * 100, 2)


def evaluate_inspection(
    panel_id: str,
    station: StationConfig,
    inspection: Inspection,
    registry: QualityCriteriaRegistry,
    panel_size: PanelSize | None = None,
    line_number: int | None = None,
) -> CriteriaEvaluation:
    """
    Evaluate the inspection criteria of one station.

    Required criteria are the station's own plus those added for the panel's
    line. The pass ratio covers the required criteria that were recorded.
    Required criteria that were not recorded count as failures of the
    inspection but not of the ratio.

    Raises:
        MissingCriteriaError: If none of the required criteria were recorded
    """
    recorded = inspection.criteria
    required = station.required_for(line_number)
    present = [name for name in required if name in recorded]
    missing = tuple(name for name in required if name not in recorded)
    if not present:
        raise MissingCriteriaError(panel_id, station.station_id.value, list(missing))

    required_results = [
        registry.criterion(name).evaluate(recorded[name], panel_size)  # type: ignore[union-attr]
        for name in present
    ]
    optional_results = [
        registry.criterion(name).evaluate(recorded[name], panel_size)  # type: ignore[union-attr]
        for name in station.optional_criteria
        if name in recorded
    ]

    passed_count = sum(1 for result in required_results if result.passed)
    pass_ratio = passed_count / len(required_results)
    criteria_ok = not missing and pass_ratio >= station.pass_threshold
    verdict = (
        InspectionResult.PASS
        if inspection.result is InspectionResult.PASS and criteria_ok
        else InspectionResult.FAIL
    )

    failure_reasons: list[str] = []
    required_actions: list[str] = []
    if verdict is InspectionResult.FAIL:
        for result in required_results:
            if not result.passed:
                failure_reasons.append(result.message or f"{result.name} failed")
                required_actions.append(registry.corrective_action(result.name))
        for name in missing:
            failure_reasons.append(f"{name} not recorded")
            required_actions.append(registry.corrective_action(name))
        if not failure_reasons:
            failure_reasons.append(f"{station.name} reported FAIL")

    return CriteriaEvaluation(
        result=verdict,
        claimed_result=inspection.result,
        pass_ratio=pass_ratio,
        criteria_results=tuple(required_results + optional_results),
        missing_criteria=missing,
        failure_reasons=tuple(failure_reasons),
        required_actions=tuple(required_actions),
    )


def next_actions_for(
    stage: WorkflowStage, required_actions: tuple[str, ...] = ()
) -> tuple[str, ...]:
    """Operator guidance for a panel that has just reached ``stage``."""
    actions = _NEXT_ACTIONS.get(stage, _DEFAULT_NEXT_ACTIONS)
    if stage is WorkflowStage.FAILED:
        return actions + tuple(required_actions)
    return actions
