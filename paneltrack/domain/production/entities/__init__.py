from .manufacturing_order import ManufacturingOrder
from .workflow_state import WorkflowHistoryEntry, WorkflowState

__all__ = ["ManufacturingOrder", "WorkflowHistoryEntry", "WorkflowState"]
