from .domain_events import (
    DomainEvent,
    InspectionRecorded,
    OrderProgressUpdated,
    OrderReadyForCompletion,
    OrderStatusChanged,
    PanelReworked,
    WorkflowCompleted,
    WorkflowInitialized,
    WorkflowTransitioned,
)

__all__ = [
    "DomainEvent",
    "InspectionRecorded",
    "OrderProgressUpdated",
    "OrderReadyForCompletion",
    "OrderStatusChanged",
    "PanelReworked",
    "WorkflowCompleted",
    "WorkflowInitialized",
    "WorkflowTransitioned",
]
