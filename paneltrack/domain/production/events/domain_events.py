"""
Domain Events

Facts published after a workflow or manufacturing order change has been
committed. Subscribers (closure workflows, notifications, audit adapters)
react to them; the core never waits on a subscriber.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from ...shared.base import utc_now
from ..value_objects.enums import (
    InspectionResult,
    OrderStatus,
    StationId,
    WorkflowStage,
)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class WorkflowInitialized(DomainEvent):
    """Raised when a panel is first scanned into the line."""

    panel_id: str
    barcode: str
    line_number: int
    mo_id: str | None


@dataclass(frozen=True)
class WorkflowTransitioned(DomainEvent):
    """Raised on every committed state change of a panel."""

    panel_id: str
    from_state: WorkflowStage
    to_state: WorkflowStage
    workflow_progress: float
    station_id: StationId | None = None


@dataclass(frozen=True)
class InspectionRecorded(DomainEvent):
    panel_id: str
    station_id: StationId
    result: InspectionResult
    claimed_result: InspectionResult
    quality_score: float
    mo_id: str | None = None


@dataclass(frozen=True)
class PanelReworked(DomainEvent):
    """Raised when a panel is sent back to a station for rework."""

    panel_id: str
    target_state: WorkflowStage
    rework_count: int
    reason: str


@dataclass(frozen=True)
class WorkflowCompleted(DomainEvent):
    panel_id: str
    quality_score: float
    mo_id: str | None = None


@dataclass(frozen=True)
class OrderProgressUpdated(DomainEvent):
    mo_id: str
    completed_quantity: int
    failed_quantity: int
    target_quantity: int
    completion_percentage: float
    quality_rate: float


@dataclass(frozen=True)
class OrderReadyForCompletion(DomainEvent):
    """Raised once when an order has accounted for its whole target quantity."""

    mo_id: str
    completed_quantity: int
    failed_quantity: int
    target_quantity: int


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    mo_id: str
    old_status: OrderStatus
    new_status: OrderStatus
    reason: str | None = None
