"""
Workflow Engine

Drives a panel from its first scan through the four inspection stations to
completion, with side branches for failure, rework and quarantine.

All mutations of one panel are serialized by a per-panel lock and committed
with a compare-and-swap. When a panel belongs to a manufacturing order, the
order is updated after the panel passes its invariant checks and before the
panel record is committed, so an order-side rejection (for example
``TARGET_EXCEEDED``) leaves both records untouched. A failed panel commit
restores the order. Panel events are published after the commit, followed by
the order events.
"""

from collections.abc import Callable
from typing import NamedTuple, TypeVar

from ....core.locking import KeyedLocks
from ....core.observability import get_logger
from ....infrastructure.events.event_bus import EventBusInterface, InMemoryEventBus
from ....infrastructure.persistence.in_memory_store import InMemoryKeyedStore
from ...shared.base import DomainService
from ...shared.exceptions import (
    ConcurrentModificationError,
    DomainError,
    DuplicatePanelError,
    InvalidReworkTargetError,
    InvalidTransitionError,
    MalformedBarcodeError,
    NotesRequiredError,
    WorkflowNotFoundError,
)
from ..entities.workflow_state import WorkflowHistoryEntry, WorkflowState
from ..repositories.store import KeyedStore
from ..value_objects.barcode import PanelDescriptor
from ..value_objects.enums import (
    PanelSize,
    StationId,
    WorkflowStage,
    WorkflowStatus,
)
from ..value_objects.inspection import (
    CompletionData,
    Inspection,
    InspectionOutcome,
    ReworkData,
    TransitionData,
)
from ..value_objects.progress import WorkflowStatistics
from .barcode_service import parse_barcode, resolve_panel
from .criteria_registry import DEFAULT_REGISTRY, QualityCriteriaRegistry
from .inspection_evaluator import evaluate_inspection, next_actions_for
from .mo_progress_service import ManufacturingOrderTracker, OrderCommit, PanelReport

logger = get_logger(__name__)

R = TypeVar("R")


class InspectionProcessingResult(NamedTuple):
    workflow: WorkflowState
    outcome: InspectionOutcome


class WorkflowEngine(DomainService):
    """
    Owns panel workflow records.

    Args:
        store: Keyed store for workflow records
        registry: Station and criterion configuration
        mo_tracker: Manufacturing order tracker that receives panel outcomes
        event_bus: Bus receiving committed domain events
        locks: Per-panel lock registry
        reference_year: Year used to validate barcode years; the current
            year when omitted
    """

    def __init__(
        self,
        store: KeyedStore[WorkflowState] | None = None,
        registry: QualityCriteriaRegistry | None = None,
        mo_tracker: ManufacturingOrderTracker | None = None,
        event_bus: EventBusInterface | None = None,
        locks: KeyedLocks | None = None,
        reference_year: int | None = None,
    ) -> None:
        self._store = store if store is not None else InMemoryKeyedStore("workflows")
        self._registry = registry or DEFAULT_REGISTRY
        self._event_bus = event_bus if event_bus is not None else InMemoryEventBus()
        self._mo_tracker = (
            mo_tracker
            if mo_tracker is not None
            else ManufacturingOrderTracker(event_bus=self._event_bus)
        )
        self._locks = locks if locks is not None else KeyedLocks()
        self._reference_year = reference_year

    @property
    def registry(self) -> QualityCriteriaRegistry:
        return self._registry

    @property
    def mo_tracker(self) -> ManufacturingOrderTracker:
        return self._mo_tracker

    # Lifecycle

    def initialize_workflow(
        self,
        panel_id: str,
        barcode: str,
        line_number: int,
        mo_id: str | None = None,
        *,
        operator_id: str | None = None,
    ) -> WorkflowState:
        """
        Create the workflow record of a scanned panel in SCANNED state.

        Raises:
            DuplicatePanelError: If a record already exists for ``panel_id``
            OrderNotFoundError: If ``mo_id`` is given but not registered
        """
        workflow = self._create(
            panel_id,
            lambda: WorkflowState.start(
                panel_id,
                barcode,
                line_number,
                panel_size=_panel_size_of(barcode),
                mo_id=mo_id,
                operator_id=operator_id,
            ),
            mo_id,
        )
        logger.info(
            "workflow_initialized",
            panel_id=panel_id,
            barcode=barcode,
            line_number=line_number,
            mo_id=mo_id,
        )
        return workflow

    def register_scan(
        self,
        panel_id: str,
        barcode: str,
        mo_id: str | None = None,
        *,
        operator_id: str | None = None,
    ) -> WorkflowState:
        """
        Run a scanned barcode through the barcode pipeline and start the
        panel's workflow in VALIDATED state.

        Raises:
            MalformedBarcodeError: If the barcode cannot be parsed
            BarcodeValidationError: If the barcode breaks a business rule
            BarcodeNotInOrderError: If the barcode was not issued for ``mo_id``
            DuplicatePanelError: If the panel was already scanned
        """
        try:
            descriptor = resolve_panel(barcode, reference_year=self._reference_year)
        except DomainError as e:
            logger.warning(
                "scan_rejected",
                panel_id=panel_id,
                code=e.code.value,
                details=e.details,
            )
            raise
        return self.register_panel(panel_id, descriptor, mo_id, operator_id=operator_id)

    def register_panel(
        self,
        panel_id: str,
        descriptor: PanelDescriptor,
        mo_id: str | None = None,
        *,
        operator_id: str | None = None,
    ) -> WorkflowState:
        """Start a workflow from an already resolved panel descriptor."""
        if mo_id is not None:
            self._mo_tracker.ensure_barcode_in_order(mo_id, descriptor.barcode)

        notes = None
        if descriptor.manual_override:
            notes = f"Manual barcode override: {descriptor.override_reason}"

        def build() -> WorkflowState:
            workflow = WorkflowState.start(
                panel_id,
                descriptor.barcode,
                descriptor.line_number,
                panel_size=descriptor.panel_size,
                mo_id=mo_id,
                operator_id=operator_id or descriptor.operator_id,
            )
            workflow.transition_to(
                WorkflowStage.VALIDATED,
                operator_id=operator_id or descriptor.operator_id,
                notes=notes,
                action="validate",
            )
            return workflow

        workflow = self._create(panel_id, build, mo_id)
        logger.info(
            "panel_registered",
            panel_id=panel_id,
            barcode=descriptor.barcode,
            line_number=descriptor.line_number,
            mo_id=mo_id,
            manual_override=descriptor.manual_override,
        )
        return workflow

    def transition_workflow(
        self,
        panel_id: str,
        new_state: WorkflowStage | str,
        data: TransitionData | None = None,
    ) -> WorkflowState:
        """
        Move a panel along one edge of the workflow graph.

        Raises:
            WorkflowNotFoundError: If the panel has no workflow
            InvalidTransitionError: If the edge is not in the graph
        """
        data = data or TransitionData()

        def change(workflow: WorkflowState) -> None:
            target = _coerce_stage(workflow, new_state)
            if not workflow.current_state.can_transition_to(target):
                raise InvalidTransitionError(
                    panel_id, workflow.current_state.value, target.value
                )
            if target is WorkflowStage.COMPLETED:
                workflow.complete(
                    CompletionData(notes=data.notes, operator_id=data.operator_id)
                )
            else:
                workflow.transition_to(
                    target,
                    station_id=data.station_id,
                    operator_id=data.operator_id,
                    notes=data.notes,
                )

        workflow, _ = self._mutate(panel_id, "transition", change)
        logger.info(
            "workflow_transitioned",
            panel_id=panel_id,
            from_state=workflow.previous_state.value if workflow.previous_state else None,
            to_state=workflow.current_state.value,
            progress=workflow.workflow_progress,
        )
        return workflow

    def process_inspection(
        self,
        panel_id: str,
        station_id: StationId | str,
        inspection: Inspection,
    ) -> InspectionProcessingResult:
        """
        Evaluate a station inspection and move the panel accordingly.

        A PASS moves the panel to the station's next state (completing it at
        the final station); a FAIL moves it to FAILED with failure reasons and
        corrective actions.

        Raises:
            UnknownStationError: If the station is not configured
            WorkflowNotFoundError: If the panel has no workflow
            InvalidTransitionError: If the panel is not at the station's stage
            MissingCriteriaError: If none of the required criteria are present
            NotesRequiredError: If the station needs notes on failure and none
                were given
        """
        try:
            station = self._registry.station(station_id)
        except DomainError as e:
            logger.warning(
                "workflow_operation_rejected",
                panel_id=panel_id,
                action="inspect",
                code=e.code.value,
                details=e.details,
            )
            raise

        def change(workflow: WorkflowState) -> InspectionOutcome:
            if workflow.current_state is not station.stage:
                raise InvalidTransitionError(
                    panel_id,
                    workflow.current_state.value,
                    station.next_stage.value,
                    action=f"inspect at {station.station_id.value}",
                )

            evaluation = evaluate_inspection(
                panel_id,
                station,
                inspection,
                self._registry,
                workflow.panel_size,
                workflow.line_number,
            )
            if (
                not evaluation.passed
                and station.notes_required_on_failure
                and not inspection.has_notes
            ):
                raise NotesRequiredError(panel_id, station.station_id.value)

            next_state = station.next_stage if evaluation.passed else WorkflowStage.FAILED
            if evaluation.passed:
                message = f"{station.name} passed, panel moves to {next_state.value}"
            else:
                message = f"{station.name} failed: " + "; ".join(evaluation.failure_reasons)

            outcome = InspectionOutcome(
                panel_id=panel_id,
                station_id=station.station_id,
                result=evaluation.result,
                claimed_result=evaluation.claimed_result,
                previous_state=workflow.current_state,
                next_state=next_state,
                quality_score=evaluation.quality_score,
                criteria_pass_ratio=evaluation.pass_ratio,
                criteria_results=evaluation.criteria_results,
                failure_reasons=evaluation.failure_reasons,
                required_actions=evaluation.required_actions,
                next_actions=next_actions_for(next_state, evaluation.required_actions),
                message=message,
            )

            workflow.record_inspection(
                outcome,
                inspection.criteria,
                notes=inspection.notes,
                operator_id=inspection.operator_id,
            )
            if next_state is WorkflowStage.COMPLETED:
                workflow.complete(
                    CompletionData(
                        quality_score=outcome.quality_score,
                        operator_id=inspection.operator_id,
                    )
                )
            else:
                workflow.transition_to(
                    next_state,
                    station_id=station.station_id,
                    operator_id=inspection.operator_id,
                    action="inspection_pass" if evaluation.passed else "inspection_fail",
                )
            return outcome

        workflow, outcome = self._mutate(panel_id, "inspect", change)
        logger.info(
            "inspection_processed",
            panel_id=panel_id,
            station_id=outcome.station_id.value,
            result=outcome.result.value,
            claimed_result=outcome.claimed_result.value,
            quality_score=outcome.quality_score,
            next_state=outcome.next_state.value,
        )
        return InspectionProcessingResult(workflow, outcome)

    def reset_workflow_for_rework(
        self,
        panel_id: str,
        target_station: StationId | WorkflowStage | str,
        rework_data: ReworkData,
    ) -> WorkflowState:
        """
        Send a panel through REWORK back to a station.

        ``target_station`` may name a station or a workflow stage.

        Raises:
            WorkflowNotFoundError: If the panel has no workflow
            InvalidReworkTargetError: If the target is not reachable from REWORK
            InvalidTransitionError: If the panel cannot enter REWORK from its
                current state
        """

        def change(workflow: WorkflowState) -> None:
            target = self._rework_stage(workflow, target_station)
            workflow.rework(target, rework_data)

        workflow, _ = self._mutate(panel_id, "rework", change)
        logger.info(
            "workflow_reworked",
            panel_id=panel_id,
            target_state=workflow.current_state.value,
            rework_count=workflow.rework_count,
            reason=rework_data.reason,
        )
        return workflow

    def complete_workflow(
        self, panel_id: str, completion_data: CompletionData | None = None
    ) -> WorkflowState:
        """
        Complete a panel at the final station.

        Raises:
            WorkflowNotFoundError: If the panel has no workflow
            NotAtFinalStationError: If the panel is not at PERFORMANCE_FINAL
        """

        def change(workflow: WorkflowState) -> None:
            workflow.complete(completion_data)

        workflow, _ = self._mutate(panel_id, "complete", change)
        logger.info(
            "workflow_completed",
            panel_id=panel_id,
            quality_score=workflow.quality_score,
            mo_id=workflow.mo_id,
        )
        return workflow

    # Queries

    def get_workflow(self, panel_id: str) -> WorkflowState:
        """
        Raises:
            WorkflowNotFoundError: If the panel has no workflow
        """
        record = self._store.get(panel_id)
        if record is None:
            raise WorkflowNotFoundError(panel_id, "get")
        return record.value

    def get_history(self, panel_id: str) -> list[WorkflowHistoryEntry]:
        return list(self.get_workflow(panel_id).history)

    def list_workflows(
        self,
        status: WorkflowStatus | None = None,
        station_id: StationId | str | None = None,
    ) -> list[WorkflowState]:
        """
        List workflows ordered by panel id.

        ``station_id`` keeps panels currently waiting at that station's stage.
        """
        stage = self._registry.station(station_id).stage if station_id is not None else None
        workflows = [
            workflow
            for workflow in self._store.values()
            if (status is None or workflow.status == status)
            and (stage is None or workflow.current_state == stage)
        ]
        return sorted(workflows, key=lambda workflow: workflow.panel_id)

    def workflow_statistics(self) -> WorkflowStatistics:
        workflows = list(self._store.values())
        by_state = {stage.value: 0 for stage in WorkflowStage}
        by_status = {status.value: 0 for status in WorkflowStatus}
        for workflow in workflows:
            by_state[workflow.current_state.value] += 1
            by_status[workflow.status.value] += 1

        completed_scores = [
            workflow.quality_score
            for workflow in workflows
            if workflow.status is WorkflowStatus.COMPLETED
        ]
        average = (
            round(sum(completed_scores) / len(completed_scores), 2)
            if completed_scores
            else None
        )
        return WorkflowStatistics(
            total=len(workflows),
            by_state=by_state,
            by_status=by_status,
            total_reworks=sum(workflow.rework_count for workflow in workflows),
            average_quality_score=average,
        )

    # Internals

    def _create(
        self,
        panel_id: str,
        build: Callable[[], WorkflowState],
        mo_id: str | None,
    ) -> WorkflowState:
        with self._locks.hold(("panel", panel_id)):
            try:
                if panel_id in self._store:
                    raise DuplicatePanelError(panel_id)
                if mo_id is not None:
                    self._mo_tracker.get_order(mo_id)
                workflow = build()
                events = workflow.get_domain_events()
                workflow.clear_domain_events()
                try:
                    self._store.compare_and_swap(panel_id, 0, workflow)
                except ConcurrentModificationError:
                    raise DuplicatePanelError(panel_id) from None
            except DomainError as e:
                logger.warning(
                    "workflow_operation_rejected",
                    panel_id=panel_id,
                    action="initialize",
                    code=e.code.value,
                    details=e.details,
                )
                raise

        self._event_bus.publish_all(events)
        return workflow

    def _mutate(
        self,
        panel_id: str,
        action: str,
        change: Callable[[WorkflowState], R],
    ) -> tuple[WorkflowState, R]:
        commit: OrderCommit | None = None
        with self._locks.hold(("panel", panel_id)):
            try:
                record = self._store.get(panel_id)
                if record is None:
                    raise WorkflowNotFoundError(panel_id, action)
                workflow = record.value
                old_status = workflow.status
                inspected = len(workflow.inspections)
                result = change(workflow)
                workflow.validate_invariants()
                report = _order_report(workflow, old_status, workflow.inspections[inspected:])
                if report is not None:
                    commit = self._mo_tracker.apply_panel_report(report)
                events = workflow.get_domain_events()
                workflow.clear_domain_events()
                try:
                    self._store.compare_and_swap(panel_id, record.version, workflow)
                except ConcurrentModificationError:
                    if commit is not None:
                        self._mo_tracker.revert(commit)
                    raise
            except DomainError as e:
                logger.warning(
                    "workflow_operation_rejected",
                    panel_id=panel_id,
                    action=action,
                    code=e.code.value,
                    details=e.details,
                )
                raise

        self._event_bus.publish_all(events)
        if commit is not None:
            self._mo_tracker.publish(commit)
        return workflow, result

    def _rework_stage(
        self,
        workflow: WorkflowState,
        target: StationId | WorkflowStage | str,
    ) -> WorkflowStage:
        if isinstance(target, StationId):
            return self._registry.station(target).stage
        if isinstance(target, WorkflowStage):
            return target
        for enum_type in (StationId, WorkflowStage):
            try:
                value = enum_type(target)
            except ValueError:
                continue
            if isinstance(value, StationId):
                return self._registry.station(value).stage
            return value
        raise InvalidReworkTargetError(
            workflow.panel_id, workflow.current_state.value, str(target)
        )


def _order_report(
    workflow: WorkflowState,
    old_status: WorkflowStatus,
    new_inspections: list[InspectionOutcome],
) -> PanelReport | None:
    """Order-side effect of a panel change, or None when the order is untouched."""
    if workflow.mo_id is None:
        return None

    new_status = workflow.status
    completed_delta = int(
        new_status is WorkflowStatus.COMPLETED and old_status is not WorkflowStatus.COMPLETED
    )
    failed_delta = 0
    if new_status is WorkflowStatus.FAILED and old_status is not WorkflowStatus.FAILED:
        failed_delta = 1
    elif old_status is WorkflowStatus.FAILED and new_status is not WorkflowStatus.FAILED:
        failed_delta = -1

    inspection_result = new_inspections[-1].result if new_inspections else None
    if inspection_result is None and not (completed_delta or failed_delta):
        return None
    return PanelReport(
        mo_id=workflow.mo_id,
        line_number=workflow.line_number,
        panel_size=workflow.panel_size,
        inspection_result=inspection_result,
        completed_delta=completed_delta,
        failed_delta=failed_delta,
    )


def _coerce_stage(workflow: WorkflowState, value: WorkflowStage | str) -> WorkflowStage:
    try:
        return WorkflowStage(value)
    except ValueError:
        raise InvalidTransitionError(
            workflow.panel_id, workflow.current_state.value, str(value)
        ) from None


def _panel_size_of(barcode: str) -> PanelSize | None:
    """Panel size encoded in a barcode, if it can be read."""
    try:
        return PanelSize(parse_barcode(barcode).panel_size)
    except (MalformedBarcodeError, ValueError):
        return None
