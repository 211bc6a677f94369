"""Inspection payloads, outcomes and workflow command data."""

from datetime import datetime

from pydantic import Field

from ...shared.base import ValueObject, utc_now
from .enums import InspectionResult, StationId, WorkflowStage
from .quality import CriterionResult, CriterionValue


class Inspection(ValueObject):
    """Inspection as reported by a station."""

    result: InspectionResult
    criteria: dict[str, CriterionValue] = Field(default_factory=dict)
    notes: str | None = None
    operator_id: str | None = None

    @property
    def has_notes(self) -> bool:
        return bool(self.notes and self.notes.strip())


class InspectionOutcome(ValueObject):
    """
    Engine verdict on an inspection.

    ``result`` is re-derived from the criteria; ``claimed_result`` is what the
    station reported.
    """

    panel_id: str
    station_id: StationId
    result: InspectionResult
    claimed_result: InspectionResult
    previous_state: WorkflowStage
    next_state: WorkflowStage
    quality_score: float = Field(ge=0, le=100)
    criteria_pass_ratio: float = Field(ge=0, le=1)
    criteria_results: tuple[CriterionResult, ...] = ()
    failure_reasons: tuple[str, ...] = ()
    required_actions: tuple[str, ...] = ()
    next_actions: tuple[str, ...] = ()
    message: str
    inspected_at: datetime = Field(default_factory=utc_now)

    @property
    def passed(self) -> bool:
        return self.result is InspectionResult.PASS

    @property
    def overridden(self) -> bool:
        """True when the verdict contradicts the station's claim."""
        return self.result is not self.claimed_result


class TransitionData(ValueObject):
    operator_id: str | None = None
    station_id: StationId | None = None
    notes: str | None = None


class ReworkData(ValueObject):
    reason: str = Field(min_length=1)
    notes: str | None = None
    operator_id: str | None = None


class CompletionData(ValueObject):
    quality_score: float | None = Field(default=None, ge=0, le=100)
    notes: str | None = None
    operator_id: str | None = None
