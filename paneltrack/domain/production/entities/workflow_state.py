"""WorkflowState aggregate: the lifecycle record of a single panel."""

from datetime import datetime

from pydantic import Field

from ...shared.base import AggregateRoot, ValueObject, utc_now
from ...shared.exceptions import (
    InvalidReworkTargetError,
    InvalidTransitionError,
    NotAtFinalStationError,
)
from ..events.domain_events import (
    InspectionRecorded,
    PanelReworked,
    WorkflowCompleted,
    WorkflowInitialized,
    WorkflowTransitioned,
)
from ..value_objects.enums import (
    PanelSize,
    StationId,
    WorkflowStage,
    WorkflowStatus,
)
from ..value_objects.inspection import (
    CompletionData,
    InspectionOutcome,
    ReworkData,
)
from ..value_objects.quality import CriterionValue


class WorkflowHistoryEntry(ValueObject):
    """Append-only audit line for a panel."""

    action: str
    from_state: WorkflowStage | None = None
    to_state: WorkflowStage
    at: datetime = Field(default_factory=utc_now)
    station_id: StationId | None = None
    operator_id: str | None = None
    details: str | None = None


class WorkflowState(AggregateRoot):
    """
    Workflow record of one panel, keyed by ``panel_id``.

    The record is never deleted. ``COMPLETED`` ends the lifecycle but the
    record stays available for audit. Progress follows the production
    stations only, so rework loops never move it.
    """

    panel_id: str = Field(min_length=1)
    barcode: str
    line_number: int = Field(ge=1, le=2)
    panel_size: PanelSize | None = None
    mo_id: str | None = None

    current_state: WorkflowStage = WorkflowStage.SCANNED
    previous_state: WorkflowStage | None = None
    station_id: StationId | None = None
    operator_id: str | None = None
    start_time: datetime = Field(default_factory=utc_now)
    last_update: datetime = Field(default_factory=utc_now)

    workflow_progress: float = Field(default=0.0, ge=0, le=100)
    quality_score: float = Field(default=0.0, ge=0, le=100)
    criteria: dict[str, CriterionValue] = Field(default_factory=dict)
    notes: list[str] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.ACTIVE

    rework_count: int = Field(default=0, ge=0)
    rework_reason: str | None = None
    rework_notes: list[str] = Field(default_factory=list)

    inspections: list[InspectionOutcome] = Field(default_factory=list)
    history: list[WorkflowHistoryEntry] = Field(default_factory=list)

    @classmethod
    def start(
        cls,
        panel_id: str,
        barcode: str,
        line_number: int,
        *,
        panel_size: PanelSize | None = None,
        mo_id: str | None = None,
        operator_id: str | None = None,
    ) -> "WorkflowState":
        """Create the record for a freshly scanned panel."""
        workflow = cls(
            panel_id=panel_id,
            barcode=barcode,
            line_number=line_number,
            panel_size=panel_size,
            mo_id=mo_id,
            operator_id=operator_id,
        )
        workflow.history.append(
            WorkflowHistoryEntry(
                action="initialize",
                to_state=WorkflowStage.SCANNED,
                operator_id=operator_id,
            )
        )
        workflow.add_domain_event(
            WorkflowInitialized(
                panel_id=panel_id,
                barcode=barcode,
                line_number=line_number,
                mo_id=mo_id,
            )
        )
        return workflow

    def is_valid(self) -> bool:
        """Validate business rules."""
        return (
            bool(self.panel_id)
            and 0 <= self.workflow_progress <= 100
            and 0 <= self.quality_score <= 100
            and self.status == WorkflowStatus.for_stage(self.current_state)
        )

    @property
    def is_complete(self) -> bool:
        return self.current_state is WorkflowStage.COMPLETED

    @property
    def last_inspection(self) -> InspectionOutcome | None:
        return self.inspections[-1] if self.inspections else None

    def transition_to(
        self,
        target: WorkflowStage,
        *,
        station_id: StationId | None = None,
        operator_id: str | None = None,
        notes: str | None = None,
        action: str = "transition",
    ) -> None:
        """
        Move the panel along one edge of the workflow graph.

        Raises:
            InvalidTransitionError: If ``target`` is not reachable from the
                current state
        """
        if not self.current_state.can_transition_to(target):
            raise InvalidTransitionError(
                self.panel_id, self.current_state.value, target.value, action
            )

        from_state = self.current_state
        self.previous_state = from_state
        self.current_state = target
        if target.progress is not None:
            self.workflow_progress = target.progress
        self.status = WorkflowStatus.for_stage(target)
        if station_id is not None:
            self.station_id = station_id
        if operator_id is not None:
            self.operator_id = operator_id
        if notes:
            self.notes.append(notes)
        self._touch()

        self.history.append(
            WorkflowHistoryEntry(
                action=action,
                from_state=from_state,
                to_state=target,
                at=self.last_update,
                station_id=station_id,
                operator_id=operator_id,
                details=notes,
            )
        )
        self.add_domain_event(
            WorkflowTransitioned(
                panel_id=self.panel_id,
                from_state=from_state,
                to_state=target,
                workflow_progress=self.workflow_progress,
                station_id=station_id,
            )
        )

    def record_inspection(
        self,
        outcome: InspectionOutcome,
        criteria: dict[str, CriterionValue],
        *,
        notes: str | None = None,
        operator_id: str | None = None,
    ) -> None:
        """Append an inspection and take over its score and criteria values."""
        self.inspections.append(outcome)
        self.criteria.update(criteria)
        self.quality_score = outcome.quality_score
        self.station_id = outcome.station_id
        if operator_id is not None:
            self.operator_id = operator_id
        if notes:
            self.notes.append(notes)
        self._touch()

        self.history.append(
            WorkflowHistoryEntry(
                action="inspection",
                from_state=self.current_state,
                to_state=self.current_state,
                at=self.last_update,
                station_id=outcome.station_id,
                operator_id=operator_id,
                details=f"{outcome.result.value} (claimed {outcome.claimed_result.value}), "
                f"score {outcome.quality_score:g}",
            )
        )
        self.add_domain_event(
            InspectionRecorded(
                panel_id=self.panel_id,
                station_id=outcome.station_id,
                result=outcome.result,
                claimed_result=outcome.claimed_result,
                quality_score=outcome.quality_score,
                mo_id=self.mo_id,
            )
        )

    def rework(self, target: WorkflowStage, rework_data: ReworkData) -> None:
        """
        Send the panel through ``REWORK`` to ``target``.

        Raises:
            InvalidReworkTargetError: If ``target`` is not reachable from REWORK
            InvalidTransitionError: If the panel cannot enter REWORK from its
                current state
        """
        if not WorkflowStage.REWORK.can_transition_to(target):
            raise InvalidReworkTargetError(
                self.panel_id, self.current_state.value, target.value
            )

        self.transition_to(
            WorkflowStage.REWORK,
            operator_id=rework_data.operator_id,
            notes=None,
            action="rework",
        )
        self.rework_count += 1
        self.rework_reason = rework_data.reason
        if rework_data.notes:
            self.rework_notes.append(rework_data.notes)
        self.transition_to(
            target,
            operator_id=rework_data.operator_id,
            action="rework_reset",
        )
        self.add_domain_event(
            PanelReworked(
                panel_id=self.panel_id,
                target_state=target,
                rework_count=self.rework_count,
                reason=rework_data.reason,
            )
        )

    def complete(self, completion_data: CompletionData | None = None) -> None:
        """
        Finish the panel at the final station.

        The quality score is frozen from ``completion_data`` when given,
        otherwise the last inspection score stands.

        Raises:
            NotAtFinalStationError: If the panel is not at PERFORMANCE_FINAL
        """
        if self.current_state is not WorkflowStage.PERFORMANCE_FINAL:
            raise NotAtFinalStationError(self.panel_id, self.current_state.value)

        completion_data = completion_data or CompletionData()
        self.transition_to(
            WorkflowStage.COMPLETED,
            operator_id=completion_data.operator_id,
            notes=completion_data.notes,
            action="complete",
        )
        self.workflow_progress = 100.0
        if completion_data.quality_score is not None:
            self.quality_score = completion_data.quality_score
        self.add_domain_event(
            WorkflowCompleted(
                panel_id=self.panel_id,
                quality_score=self.quality_score,
                mo_id=self.mo_id,
            )
        )

    def _touch(self) -> None:
        self.last_update = utc_now()
        self.updated_at = self.last_update
