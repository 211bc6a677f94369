from .barcode_service import (
    apply_manual_override,
    assign_line,
    compose_barcode,
    generate_barcode,
    parse_barcode,
    process_barcode,
    resolve_panel,
    validate_barcode_components,
)
from .criteria_registry import (
    DEFAULT_REGISTRY,
    QualityCriteriaRegistry,
    build_default_registry,
)
from .inspection_evaluator import CriteriaEvaluation, evaluate_inspection
from .mo_progress_service import (
    ManufacturingOrderTracker,
    OrderCommit,
    PanelReport,
    validate_barcode_against_mo,
)
from .workflow_engine import InspectionProcessingResult, WorkflowEngine

__all__ = [
    "DEFAULT_REGISTRY",
    "CriteriaEvaluation",
    "InspectionProcessingResult",
    "ManufacturingOrderTracker",
    "OrderCommit",
    "PanelReport",
    "QualityCriteriaRegistry",
    "WorkflowEngine",
    "apply_manual_override",
    "assign_line",
    "build_default_registry",
    "compose_barcode",
    "evaluate_inspection",
    "generate_barcode",
    "parse_barcode",
    "process_barcode",
    "resolve_panel",
    "validate_barcode_against_mo",
    "validate_barcode_components",
]
