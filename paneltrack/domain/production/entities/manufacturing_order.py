"""ManufacturingOrder aggregate root."""

from datetime import datetime

from pydantic import Field, model_validator
from typing_extensions import Self

from ...shared.base import AggregateRoot, utc_now
from ...shared.exceptions import (
    BarcodeRangeExhaustedError,
    InvalidOrderStatusError,
    TargetExceededError,
)
from ..events.domain_events import (
    OrderProgressUpdated,
    OrderReadyForCompletion,
    OrderStatusChanged,
)
from ..value_objects.barcode import MAX_SEQUENCE, MIN_SEQUENCE
from ..value_objects.enums import (
    BatchCode,
    FactoryCode,
    InspectionResult,
    OrderStatus,
    PanelSize,
)


class ManufacturingOrder(AggregateRoot):
    """
    Production batch with a target quantity and a reserved barcode range.

    Counters only ever satisfy ``completed + failed <= target``; a change that
    would break this is rejected before any field is touched. The sequence
    cursor holds the last allocated sequence number and never leaves
    ``[barcode_start, barcode_end]``.
    """

    mo_id: str = Field(min_length=1)
    order_number: str = Field(min_length=1, max_length=50)
    panel_size: PanelSize
    target_quantity: int = Field(gt=0)
    completed_quantity: int = Field(default=0, ge=0)
    failed_quantity: int = Field(default=0, ge=0)
    status: OrderStatus = OrderStatus.PENDING

    # Barcode range reserved for the order
    year: str = Field(pattern=r"^\d{2}$")
    factory_code: FactoryCode = FactoryCode.W
    batch_code: BatchCode = BatchCode.T
    barcode_start: int = Field(ge=MIN_SEQUENCE, le=MAX_SEQUENCE)
    barcode_end: int = Field(ge=MIN_SEQUENCE, le=MAX_SEQUENCE)
    current_sequence: int | None = None

    # Inspection tallies reported by the workflow engine
    inspections_passed: int = Field(default=0, ge=0)
    inspections_failed: int = Field(default=0, ge=0)
    inspections_by_line: dict[int, int] = Field(default_factory=dict)

    started_at: datetime | None = None
    completed_at: datetime | None = None

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        if self.barcode_end < self.barcode_start:
            raise ValueError("barcode_end must not be before barcode_start")
        if self.current_sequence is not None and not (
            self.barcode_start <= self.current_sequence <= self.barcode_end
        ):
            raise ValueError("current_sequence must stay within the barcode range")
        if self.completed_quantity + self.failed_quantity > self.target_quantity:
            raise ValueError("completed + failed cannot exceed target_quantity")
        return self

    def is_valid(self) -> bool:
        """Validate business rules."""
        return (
            self.completed_quantity + self.failed_quantity <= self.target_quantity
            and self.barcode_start <= self.barcode_end
        )

    @property
    def processed_quantity(self) -> int:
        return self.completed_quantity + self.failed_quantity

    @property
    def remaining_quantity(self) -> int:
        return self.target_quantity - self.processed_quantity

    @property
    def completion_percentage(self) -> float:
        """Completed panels as a percentage of the target, two decimals."""
        return round(self.completed_quantity / self.target_quantity * 100, 2)

    @property
    def quality_rate(self) -> float:
        """Completed share of processed panels; 100 before anything is processed."""
        if self.processed_quantity == 0:
            return 100.0
        return round(self.completed_quantity / self.processed_quantity * 100, 2)

    @property
    def failure_rate(self) -> float:
        if self.processed_quantity == 0:
            return 0.0
        return round(self.failed_quantity / self.processed_quantity * 100, 2)

    @property
    def is_ready_for_completion(self) -> bool:
        return self.processed_quantity >= self.target_quantity

    @property
    def barcodes_remaining(self) -> int:
        if self.current_sequence is None:
            return self.barcode_end - self.barcode_start + 1
        return self.barcode_end - self.current_sequence

    def contains_sequence(self, sequence_number: int) -> bool:
        """Closed-range membership of a barcode sequence number."""
        return self.barcode_start <= sequence_number <= self.barcode_end

    def apply_progress(self, completed_delta: int = 0, failed_delta: int = 0) -> None:
        """
        Apply counter deltas.

        Raises:
            InvalidOrderStatusError: If the order no longer accepts panels
            TargetExceededError: If completed + failed would pass the target
        """
        self._ensure_accepts_panels("update progress")

        new_completed = self.completed_quantity + completed_delta
        new_failed = self.failed_quantity + failed_delta
        if new_completed < 0 or new_failed < 0:
            raise ValueError(
                f"Order {self.mo_id} counters cannot go negative "
                f"(completed={new_completed}, failed={new_failed})"
            )
        if new_completed + new_failed > self.target_quantity:
            raise TargetExceededError(
                self.mo_id, self.target_quantity, new_completed, new_failed
            )

        was_ready = self.is_ready_for_completion
        self._start_if_pending("first_panel_reported")
        # Lower a counter before raising the other so every assignment
        # still satisfies the target invariant
        if failed_delta < 0:
            self.failed_quantity = new_failed
            self.completed_quantity = new_completed
        else:
            self.completed_quantity = new_completed
            self.failed_quantity = new_failed
        self.mark_updated()

        self.add_domain_event(
            OrderProgressUpdated(
                mo_id=self.mo_id,
                completed_quantity=self.completed_quantity,
                failed_quantity=self.failed_quantity,
                target_quantity=self.target_quantity,
                completion_percentage=self.completion_percentage,
                quality_rate=self.quality_rate,
            )
        )
        if self.is_ready_for_completion and not was_ready:
            self.add_domain_event(
                OrderReadyForCompletion(
                    mo_id=self.mo_id,
                    completed_quantity=self.completed_quantity,
                    failed_quantity=self.failed_quantity,
                    target_quantity=self.target_quantity,
                )
            )

    def tally_inspection(self, result: InspectionResult, line_number: int) -> None:
        """Count one station inspection against the order."""
        self._ensure_accepts_panels("record inspection")
        self._start_if_pending("first_panel_reported")
        if result is InspectionResult.PASS:
            self.inspections_passed += 1
        else:
            self.inspections_failed += 1
        by_line = dict(self.inspections_by_line)
        by_line[line_number] = by_line.get(line_number, 0) + 1
        self.inspections_by_line = by_line
        self.mark_updated()

    def allocate_sequence(self) -> int:
        """
        Advance the cursor and return the next sequence number of the range.

        Raises:
            BarcodeRangeExhaustedError: If the whole range has been handed out
        """
        if self.current_sequence is None:
            next_sequence = self.barcode_start
        else:
            next_sequence = self.current_sequence + 1
        if next_sequence > self.barcode_end:
            raise BarcodeRangeExhaustedError(self.mo_id, self.barcode_end)
        self.current_sequence = next_sequence
        self.mark_updated()
        return next_sequence

    def change_status(self, new_status: OrderStatus, reason: str | None = None) -> None:
        """
        Change order status with validation and events.

        Raises:
            InvalidOrderStatusError: If the status transition is invalid
        """
        if not self.status.can_transition_to(new_status):
            raise InvalidOrderStatusError(
                self.mo_id, self.status.value, f"move to {new_status.value}"
            )

        old_status = self.status
        self.status = new_status
        now = utc_now()
        if new_status is OrderStatus.IN_PROGRESS and self.started_at is None:
            self.started_at = now
        if new_status is OrderStatus.COMPLETED:
            self.completed_at = now
        self.mark_updated()

        self.add_domain_event(
            OrderStatusChanged(
                mo_id=self.mo_id,
                old_status=old_status,
                new_status=new_status,
                reason=reason,
            )
        )

    def _ensure_accepts_panels(self, action: str) -> None:
        if not self.status.accepts_progress:
            raise InvalidOrderStatusError(self.mo_id, self.status.value, action)

    def _start_if_pending(self, reason: str) -> None:
        if self.status is OrderStatus.PENDING:
            self.change_status(OrderStatus.IN_PROGRESS, reason)
