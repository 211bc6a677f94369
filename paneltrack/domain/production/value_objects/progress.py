"""Manufacturing order progress value objects."""

from pydantic import Field

from ...shared.base import ValueObject
from .enums import AlertSeverity, OrderStatus


class ProgressAlert(ValueObject):
    kind: str
    severity: AlertSeverity
    message: str


class ProgressSnapshot(ValueObject):
    """Point-in-time view of an order for dashboards and closure triggers."""

    mo_id: str
    order_number: str
    status: OrderStatus
    target_quantity: int
    completed_quantity: int
    failed_quantity: int
    remaining: int
    completion_percentage: float = Field(ge=0, le=100)
    quality_rate: float = Field(ge=0, le=100)
    failure_rate: float = Field(ge=0, le=100)
    ready_for_completion: bool
    inspections_passed: int = 0
    inspections_failed: int = 0
    alerts: tuple[ProgressAlert, ...] = ()


class WorkflowStatistics(ValueObject):
    """Counts over every panel workflow known to the engine."""

    total: int
    by_state: dict[str, int]
    by_status: dict[str, int]
    total_reworks: int
    average_quality_score: float | None = None
