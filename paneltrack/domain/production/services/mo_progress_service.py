"""
Manufacturing Order Progress Tracker

Owns manufacturing order records. The workflow engine reports panel outcomes
here and never touches order fields itself. Every mutation of an order runs
under that order's lock and is committed with a compare-and-swap, so counter
updates are never lost and a rejected update leaves the stored order as it was.
"""

from collections.abc import Callable
from typing import NamedTuple, TypeVar

from ....core.config import Settings, settings
from ....core.locking import KeyedLocks
from ....core.observability import get_logger
from ....infrastructure.events.event_bus import EventBusInterface, InMemoryEventBus
from ....infrastructure.persistence.in_memory_store import InMemoryKeyedStore
from ...shared.base import DomainService
from ...shared.exceptions import (
    BarcodeNotInOrderError,
    ConcurrentModificationError,
    DomainError,
    DuplicateOrderError,
    OrderNotFoundError,
)
from ..entities.manufacturing_order import ManufacturingOrder
from ..events.domain_events import DomainEvent
from ..repositories.store import KeyedStore
from ..value_objects.enums import (
    AlertSeverity,
    BatchCode,
    FactoryCode,
    InspectionResult,
    OrderStatus,
    PanelSize,
)
from ..value_objects.progress import ProgressAlert, ProgressSnapshot
from .barcode_service import compose_barcode, current_year, parse_barcode

logger = get_logger(__name__)

R = TypeVar("R")


class PanelReport(NamedTuple):
    """Order-side effect of one panel change: an inspection tally, counter deltas or both."""

    mo_id: str
    line_number: int
    panel_size: PanelSize | None = None
    inspection_result: InspectionResult | None = None
    completed_delta: int = 0
    failed_delta: int = 0


class OrderCommit(NamedTuple):
    """A stored order change whose events have not been published yet."""

    order: ManufacturingOrder
    previous: ManufacturingOrder
    version: int
    events: list[DomainEvent]


def validate_barcode_against_mo(barcode: str, mo: ManufacturingOrder) -> bool:
    """
    Check whether a barcode belongs to an order.

    Membership is decided by the sequence number alone, as a closed range
    test against ``[mo.barcode_start, mo.barcode_end]``.

    Raises:
        MalformedBarcodeError: If the barcode cannot be parsed
    """
    components = parse_barcode(barcode)
    return mo.contains_sequence(components.sequence_number)


class ManufacturingOrderTracker(DomainService):
    """Aggregates panel outcomes against manufacturing order targets."""

    def __init__(
        self,
        store: KeyedStore[ManufacturingOrder] | None = None,
        event_bus: EventBusInterface | None = None,
        locks: KeyedLocks | None = None,
        config: Settings | None = None,
    ) -> None:
        self._store = store if store is not None else InMemoryKeyedStore("orders")
        self._event_bus = event_bus if event_bus is not None else InMemoryEventBus()
        self._locks = locks if locks is not None else KeyedLocks()
        self._config = config or settings

    def register_order(
        self,
        mo_id: str,
        order_number: str,
        panel_size: PanelSize | str,
        target_quantity: int,
        barcode_start: int,
        barcode_end: int,
        *,
        year: str | None = None,
        factory_code: FactoryCode | str | None = None,
        batch_code: BatchCode | str | None = None,
    ) -> ManufacturingOrder:
        """
        Register a new order in PENDING status.

        Raises:
            DuplicateOrderError: If ``mo_id`` is already registered
        """
        order = ManufacturingOrder(
            mo_id=mo_id,
            order_number=order_number,
            panel_size=PanelSize(panel_size),
            target_quantity=target_quantity,
            barcode_start=barcode_start,
            barcode_end=barcode_end,
            year=year if year is not None else f"{current_year() % 100:02d}",
            factory_code=FactoryCode(factory_code or self._config.DEFAULT_FACTORY_CODE),
            batch_code=BatchCode(batch_code or self._config.DEFAULT_BATCH_CODE),
        )
        try:
            self._store.compare_and_swap(mo_id, 0, order)
        except ConcurrentModificationError:
            error = DuplicateOrderError(mo_id)
            logger.warning("order_rejected", code=error.code.value, details=error.details)
            raise error from None

        logger.info(
            "order_registered",
            mo_id=mo_id,
            order_number=order_number,
            panel_size=order.panel_size.value,
            target_quantity=target_quantity,
        )
        return order

    def get_order(self, mo_id: str) -> ManufacturingOrder:
        """
        Raises:
            OrderNotFoundError: If the order does not exist
        """
        record = self._store.get(mo_id)
        if record is None:
            raise OrderNotFoundError(mo_id)
        return record.value

    def list_orders(self, status: OrderStatus | None = None) -> list[ManufacturingOrder]:
        orders = [order for order in self._store.values() if status is None or order.status == status]
        return sorted(orders, key=lambda order: order.mo_id)

    def update_progress(
        self, mo_id: str, completed_delta: int = 0, failed_delta: int = 0
    ) -> ManufacturingOrder:
        """
        Apply completed/failed deltas to an order.

        Raises:
            OrderNotFoundError: If the order does not exist
            InvalidOrderStatusError: If the order is on hold or closed
            TargetExceededError: If completed + failed would pass the target;
                the counters are left unchanged
        """
        order = self._mutate(
            mo_id,
            "update_progress",
            lambda order: order.apply_progress(completed_delta, failed_delta),
        )
        logger.info(
            "order_progress_updated",
            mo_id=mo_id,
            completed=order.completed_quantity,
            failed=order.failed_quantity,
            target=order.target_quantity,
            completion_percentage=order.completion_percentage,
        )
        return order

    def record_inspection(
        self,
        mo_id: str,
        result: InspectionResult,
        panel_size: PanelSize | None,
        line_number: int,
        *,
        completed_delta: int = 0,
        failed_delta: int = 0,
    ) -> ManufacturingOrder:
        """
        Record one station inspection and the panel status change it caused.

        The tally and the counter deltas are committed together or not at all.
        """
        report = PanelReport(
            mo_id=mo_id,
            line_number=line_number,
            panel_size=panel_size,
            inspection_result=result,
            completed_delta=completed_delta,
            failed_delta=failed_delta,
        )
        order = self._mutate(
            mo_id, "record_inspection", lambda order: self._apply_report(order, report)
        )
        logger.info(
            "order_inspection_recorded",
            mo_id=mo_id,
            result=result.value,
            line_number=line_number,
            completed=order.completed_quantity,
            failed=order.failed_quantity,
        )
        return order

    def apply_panel_report(self, report: PanelReport) -> OrderCommit:
        """
        Store the effect of a panel change without publishing its events.

        The caller publishes the returned commit once its own record is
        stored, or reverts it when that fails.

        Raises:
            OrderNotFoundError: If the order does not exist
            InvalidOrderStatusError: If the order is on hold or closed
            TargetExceededError: If the deltas would pass the target
        """
        commit = self._commit(
            report.mo_id, "panel_report", lambda order: self._apply_report(order, report)
        )
        logger.info(
            "order_panel_reported",
            mo_id=report.mo_id,
            result=report.inspection_result.value if report.inspection_result else None,
            completed=commit.order.completed_quantity,
            failed=commit.order.failed_quantity,
        )
        return commit

    def publish(self, commit: OrderCommit) -> None:
        self._event_bus.publish_all(commit.events)

    def revert(self, commit: OrderCommit) -> None:
        """
        Restore the order as it was before ``commit``.

        Raises:
            ConcurrentModificationError: If the order changed after ``commit``
        """
        mo_id = commit.order.mo_id
        with self._locks.hold(("order", mo_id)):
            try:
                self._store.compare_and_swap(mo_id, commit.version, commit.previous)
            except ConcurrentModificationError as e:
                logger.error("order_revert_failed", mo_id=mo_id, details=e.details)
                raise
        logger.warning("order_change_reverted", mo_id=mo_id)

    def ensure_barcode_in_order(self, mo_id: str, barcode: str) -> ManufacturingOrder:
        """
        Check that a panel barcode was issued for the order.

        Raises:
            OrderNotFoundError: If the order does not exist
            BarcodeNotInOrderError: If the sequence or panel size does not match
        """
        order = self.get_order(mo_id)
        components = parse_barcode(barcode)
        if not validate_barcode_against_mo(barcode, order) or (
            components.panel_size != order.panel_size.value
        ):
            error = BarcodeNotInOrderError(barcode, mo_id)
            logger.warning("barcode_rejected", code=error.code.value, details=error.details)
            raise error
        return order

    def allocate_barcode(self, mo_id: str) -> str:
        """
        Issue the next barcode of the order's range.

        Raises:
            BarcodeRangeExhaustedError: If every sequence number has been issued
        """
        allocated: list[int] = []
        order = self._mutate(
            mo_id, "allocate_barcode", lambda order: allocated.append(order.allocate_sequence())
        )
        barcode = compose_barcode(
            order.panel_size,
            order.year,
            order.factory_code,
            order.batch_code,
            allocated[0],
            company_prefix=self._config.COMPANY_PREFIX,
        )
        logger.debug("barcode_allocated", mo_id=mo_id, barcode=barcode)
        return barcode

    # Lifecycle

    def start_order(self, mo_id: str) -> ManufacturingOrder:
        return self._change_status(mo_id, OrderStatus.IN_PROGRESS, "started")

    def hold_order(self, mo_id: str, reason: str | None = None) -> ManufacturingOrder:
        return self._change_status(mo_id, OrderStatus.ON_HOLD, reason or "held")

    def resume_order(self, mo_id: str) -> ManufacturingOrder:
        return self._change_status(mo_id, OrderStatus.IN_PROGRESS, "resumed")

    def complete_order(self, mo_id: str) -> ManufacturingOrder:
        return self._change_status(mo_id, OrderStatus.COMPLETED, "completed")

    def cancel_order(self, mo_id: str, reason: str | None = None) -> ManufacturingOrder:
        return self._change_status(mo_id, OrderStatus.CANCELLED, reason or "cancelled")

    # Reporting

    def progress_snapshot(self, mo_id: str) -> ProgressSnapshot:
        order = self.get_order(mo_id)
        alerts = self.generate_alerts(order)
        for alert in alerts:
            if alert.severity is not AlertSeverity.INFO:
                logger.warning(
                    "order_alert",
                    mo_id=mo_id,
                    kind=alert.kind,
                    severity=alert.severity.value,
                    message=alert.message,
                )
        return ProgressSnapshot(
            mo_id=order.mo_id,
            order_number=order.order_number,
            status=order.status,
            target_quantity=order.target_quantity,
            completed_quantity=order.completed_quantity,
            failed_quantity=order.failed_quantity,
            remaining=order.remaining_quantity,
            completion_percentage=order.completion_percentage,
            quality_rate=order.quality_rate,
            failure_rate=order.failure_rate,
            ready_for_completion=order.is_ready_for_completion,
            inspections_passed=order.inspections_passed,
            inspections_failed=order.inspections_failed,
            alerts=tuple(alerts),
        )

    def generate_alerts(self, order: ManufacturingOrder) -> list[ProgressAlert]:
        """Alerts for an order based on the configured thresholds."""
        alerts: list[ProgressAlert] = []
        remaining = order.remaining_quantity

        if 0 < remaining <= self._config.MO_PANELS_REMAINING_ALERT:
            alerts.append(
                ProgressAlert(
                    kind="panels_remaining",
                    severity=AlertSeverity.WARNING,
                    message=f"Only {remaining} panels remaining for {order.order_number}",
                )
            )

        if (
            order.status is OrderStatus.IN_PROGRESS
            and order.completion_percentage < self._config.MO_LOW_PROGRESS_ALERT
        ):
            alerts.append(
                ProgressAlert(
                    kind="low_progress",
                    severity=AlertSeverity.WARNING,
                    message=f"{order.order_number} is at {order.completion_percentage:g}% completion",
                )
            )

        if order.failure_rate > self._config.MO_HIGH_FAILURE_RATE_ALERT:
            alerts.append(
                ProgressAlert(
                    kind="high_failure_rate",
                    severity=AlertSeverity.CRITICAL,
                    message=f"{order.order_number} failure rate is {order.failure_rate:g}%",
                )
            )

        if order.is_ready_for_completion:
            alerts.append(
                ProgressAlert(
                    kind="ready_for_completion",
                    severity=AlertSeverity.INFO,
                    message=f"{order.order_number} has reached its target quantity",
                )
            )
        return alerts

    def _change_status(self, mo_id: str, status: OrderStatus, reason: str) -> ManufacturingOrder:
        order = self._mutate(
            mo_id, f"set_status_{status.value.lower()}", lambda order: order.change_status(status, reason)
        )
        logger.info("order_status_changed", mo_id=mo_id, status=status.value, reason=reason)
        return order

    def _apply_report(self, order: ManufacturingOrder, report: PanelReport) -> None:
        if report.inspection_result is not None:
            if report.panel_size is not None and report.panel_size != order.panel_size:
                logger.warning(
                    "order_panel_size_mismatch",
                    mo_id=order.mo_id,
                    order_panel_size=order.panel_size.value,
                    panel_size=report.panel_size.value,
                )
            order.tally_inspection(report.inspection_result, report.line_number)
        if report.completed_delta or report.failed_delta:
            order.apply_progress(report.completed_delta, report.failed_delta)

    def _mutate(
        self,
        mo_id: str,
        action: str,
        change: Callable[[ManufacturingOrder], R],
    ) -> ManufacturingOrder:
        commit = self._commit(mo_id, action, change)
        self.publish(commit)
        return commit.order

    def _commit(
        self,
        mo_id: str,
        action: str,
        change: Callable[[ManufacturingOrder], R],
    ) -> OrderCommit:
        with self._locks.hold(("order", mo_id)):
            try:
                record = self._store.get(mo_id)
                if record is None:
                    raise OrderNotFoundError(mo_id)
                order = record.value
                previous = order.model_copy(deep=True)
                change(order)
                order.validate_invariants()
                events = order.get_domain_events()
                order.clear_domain_events()
                version = self._store.compare_and_swap(mo_id, record.version, order)
            except DomainError as e:
                logger.warning(
                    "order_operation_rejected",
                    action=action,
                    code=e.code.value,
                    details=e.details,
                )
                raise

        return OrderCommit(order=order, previous=previous, version=version, events=events)
