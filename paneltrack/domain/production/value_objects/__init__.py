from .barcode import (
    BarcodeComponents,
    BarcodeProcessingResult,
    BarcodeValidationResult,
    PanelDescriptor,
)
from .enums import (
    PRODUCTION_STAGES,
    AlertSeverity,
    BatchCode,
    CriterionKind,
    FactoryCode,
    InspectionResult,
    OrderStatus,
    PanelSize,
    StationId,
    WorkflowStage,
    WorkflowStatus,
)
from .inspection import (
    CompletionData,
    Inspection,
    InspectionOutcome,
    ReworkData,
    TransitionData,
)
from .line_assignment import LineAssignment
from .progress import ProgressAlert, ProgressSnapshot, WorkflowStatistics
from .quality import (
    BooleanCriterion,
    CriterionResult,
    NumericCriterion,
    QualityCriterion,
    StationConfig,
)

__all__ = [
    "PRODUCTION_STAGES",
    "AlertSeverity",
    "BarcodeComponents",
    "BarcodeProcessingResult",
    "BarcodeValidationResult",
    "BatchCode",
    "BooleanCriterion",
    "CompletionData",
    "CriterionKind",
    "CriterionResult",
    "FactoryCode",
    "Inspection",
    "InspectionOutcome",
    "InspectionResult",
    "LineAssignment",
    "NumericCriterion",
    "OrderStatus",
    "PanelDescriptor",
    "PanelSize",
    "ProgressAlert",
    "ProgressSnapshot",
    "QualityCriterion",
    "ReworkData",
    "StationConfig",
    "StationId",
    "TransitionData",
    "WorkflowStage",
    "WorkflowStatistics",
    "WorkflowStatus",
]
