"""Domain enums for panel production tracking."""

from enum import Enum


class WorkflowStage(str, Enum):
    """Workflow state of a single panel."""

    SCANNED = "SCANNED"
    VALIDATED = "VALIDATED"
    ASSEMBLY_EL = "ASSEMBLY_EL"
    FRAMING = "FRAMING"
    JUNCTION_BOX = "JUNCTION_BOX"
    PERFORMANCE_FINAL = "PERFORMANCE_FINAL"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REWORK = "REWORK"
    QUARANTINE = "QUARANTINE"

    @property
    def is_terminal(self) -> bool:
        """Check if the stage has no outgoing transitions."""
        return self is WorkflowStage.COMPLETED

    @property
    def is_production(self) -> bool:
        """Check if the stage is one of the station stages."""
        return self in PRODUCTION_STAGES

    @property
    def progress(self) -> float | None:
        """
        Workflow progress for this stage.

        None for side branches (FAILED, REWORK, QUARANTINE), which keep the
        progress of the last production stage the panel reached.
        """
        return _STAGE_PROGRESS.get(self)

    def allowed_targets(self) -> frozenset["WorkflowStage"]:
        """Stages reachable in one step from this one."""
        return _TRANSITIONS[self]

    def can_transition_to(self, target_stage: "WorkflowStage") -> bool:
        """Check if a panel can move from this stage to the target stage."""
        return target_stage in _TRANSITIONS[self]


PRODUCTION_STAGES: tuple[WorkflowStage, ...] = (
    WorkflowStage.ASSEMBLY_EL,
    WorkflowStage.FRAMING,
    WorkflowStage.JUNCTION_BOX,
    WorkflowStage.PERFORMANCE_FINAL,
)

_TRANSITIONS: dict[WorkflowStage, frozenset[WorkflowStage]] = {
    WorkflowStage.SCANNED: frozenset({WorkflowStage.VALIDATED, WorkflowStage.FAILED}),
    WorkflowStage.VALIDATED: frozenset(
        {WorkflowStage.ASSEMBLY_EL, WorkflowStage.FAILED}
    ),
    WorkflowStage.ASSEMBLY_EL: frozenset(
        {WorkflowStage.FRAMING, WorkflowStage.FAILED, WorkflowStage.REWORK}
    ),
    WorkflowStage.FRAMING: frozenset(
        {WorkflowStage.JUNCTION_BOX, WorkflowStage.FAILED, WorkflowStage.REWORK}
    ),
    WorkflowStage.JUNCTION_BOX: frozenset(
        {WorkflowStage.PERFORMANCE_FINAL, WorkflowStage.FAILED, WorkflowStage.REWORK}
    ),
    WorkflowStage.PERFORMANCE_FINAL: frozenset(
        {
            WorkflowStage.COMPLETED,
            WorkflowStage.FAILED,
            WorkflowStage.REWORK,
            WorkflowStage.QUARANTINE,
        }
    ),
    WorkflowStage.FAILED: frozenset({WorkflowStage.REWORK, WorkflowStage.QUARANTINE}),
    WorkflowStage.REWORK: frozenset(PRODUCTION_STAGES),
    WorkflowStage.QUARANTINE: frozenset({WorkflowStage.REWORK, WorkflowStage.FAILED}),
    WorkflowStage.COMPLETED: frozenset(),  # Terminal state
}

_STAGE_PROGRESS: dict[WorkflowStage, float] = {
    WorkflowStage.SCANNED: 0.0,
    WorkflowStage.VALIDATED: 0.0,
    WorkflowStage.ASSEMBLY_EL: 25.0,
    WorkflowStage.FRAMING: 50.0,
    WorkflowStage.JUNCTION_BOX: 75.0,
    WorkflowStage.PERFORMANCE_FINAL: 100.0,
    WorkflowStage.COMPLETED: 100.0,
}


class WorkflowStatus(str, Enum):
    """Overall status of a panel workflow."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @classmethod
    def for_stage(cls, stage: WorkflowStage) -> "WorkflowStatus":
        """Derive the overall status from the current stage."""
        if stage is WorkflowStage.COMPLETED:
            return cls.COMPLETED
        if stage in {WorkflowStage.FAILED, WorkflowStage.QUARANTINE}:
            return cls.FAILED
        return cls.ACTIVE


class InspectionResult(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class StationId(str, Enum):
    """Logical inspection stations, independent of the physical line."""

    STATION_1 = "STATION_1"
    STATION_2 = "STATION_2"
    STATION_3 = "STATION_3"
    STATION_4 = "STATION_4"

    @property
    def number(self) -> int:
        return int(self.value.rsplit("_", 1)[1])


class PanelSize(str, Enum):
    """Panel sizes (cell counts) encoded in the barcode."""

    SIZE_36 = "36"
    SIZE_40 = "40"
    SIZE_60 = "60"
    SIZE_72 = "72"
    SIZE_144 = "144"

    @property
    def cells(self) -> int:
        return int(self.value)


class FactoryCode(str, Enum):
    W = "W"
    B = "B"
    T = "T"


class BatchCode(str, Enum):
    T = "T"
    W = "W"
    B = "B"


class CriterionKind(str, Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"


class OrderStatus(str, Enum):
    """Manufacturing order status enumeration."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """Check if order status is terminal (cannot transition further)."""
        return self in {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

    @property
    def accepts_progress(self) -> bool:
        """Check if panels may still be reported against the order."""
        return self in {OrderStatus.PENDING, OrderStatus.IN_PROGRESS}

    def can_transition_to(self, target_status: "OrderStatus") -> bool:
        """Check if order can transition from current status to target status."""
        valid_transitions = {
            OrderStatus.PENDING: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
            OrderStatus.IN_PROGRESS: {
                OrderStatus.COMPLETED,
                OrderStatus.ON_HOLD,
                OrderStatus.CANCELLED,
            },
            OrderStatus.ON_HOLD: {OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED},
            OrderStatus.COMPLETED: set(),  # Terminal state
            OrderStatus.CANCELLED: set(),  # Terminal state
        }
        return target_status in valid_transitions.get(self, set())


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
