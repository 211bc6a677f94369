"""
Unit Tests for the Manufacturing Order Progress Tracker

Covers registration, counter updates and the target invariant, order
lifecycle, barcode range membership and allocation, and progress alerts.
"""

import pytest

from paneltrack.core.config import Settings
from paneltrack.domain.production.events.domain_events import (
    OrderProgressUpdated,
    OrderReadyForCompletion,
    OrderStatusChanged,
)
from paneltrack.domain.production.services.mo_progress_service import (
    ManufacturingOrderTracker,
    PanelReport,
    validate_barcode_against_mo,
)
from paneltrack.domain.production.value_objects.enums import (
    AlertSeverity,
    InspectionResult,
    OrderStatus,
    PanelSize,
)
from paneltrack.domain.shared.exceptions import (
    BarcodeRangeExhaustedError,
    DuplicateOrderError,
    ErrorCode,
    InvalidOrderStatusError,
    MalformedBarcodeError,
    OrderNotFoundError,
    TargetExceededError,
)
from paneltrack.tests.factories import make_barcode


def register(tracker, mo_id="MO-100", target=100, start=1, end=200, size="36"):
    return tracker.register_order(
        mo_id,
        f"{mo_id}-NUM",
        size,
        target_quantity=target,
        barcode_start=start,
        barcode_end=end,
        year="24",
    )


class TestRegisterOrder:
    """Test order registration and lookup."""

    def test_register_defaults(self, tracker):
        order = register(tracker)

        assert order.status is OrderStatus.PENDING
        assert order.panel_size is PanelSize.SIZE_36
        assert order.completed_quantity == 0
        assert order.failed_quantity == 0
        assert order.current_sequence is None
        assert order.quality_rate == 100.0
        assert order.completion_percentage == 0.0
        assert tracker.get_order("MO-100") == order

    def test_duplicate_order(self, tracker):
        register(tracker)

        with pytest.raises(DuplicateOrderError) as exc_info:
            register(tracker)

        assert exc_info.value.code is ErrorCode.DUPLICATE_ORDER

    def test_unknown_order(self, tracker):
        with pytest.raises(OrderNotFoundError) as exc_info:
            tracker.get_order("MO-404")

        assert exc_info.value.details == {"mo_id": "MO-404"}

    def test_invalid_range_is_rejected(self, tracker):
        with pytest.raises(ValueError, match="barcode_end"):
            register(tracker, start=50, end=10)

    def test_list_orders_by_status(self, tracker):
        register(tracker, "MO-1")
        register(tracker, "MO-2")
        tracker.start_order("MO-2")

        assert [o.mo_id for o in tracker.list_orders()] == ["MO-1", "MO-2"]
        assert [o.mo_id for o in tracker.list_orders(OrderStatus.IN_PROGRESS)] == ["MO-2"]


class TestUpdateProgress:
    """Test counter updates and the target invariant."""

    def test_first_progress_starts_order(self, tracker, event_bus):
        register(tracker, target=3)

        order = tracker.update_progress("MO-100", completed_delta=1)

        assert order.status is OrderStatus.IN_PROGRESS
        assert order.started_at is not None
        assert order.completion_percentage == 33.33
        assert order.quality_rate == 100.0
        assert event_bus.get_event_history(OrderStatusChanged)[0].new_status is OrderStatus.IN_PROGRESS
        assert len(event_bus.get_event_history(OrderProgressUpdated)) == 1

    def test_quality_and_failure_rates(self, tracker):
        register(tracker, target=10)

        order = tracker.update_progress("MO-100", completed_delta=3, failed_delta=1)

        assert order.quality_rate == 75.0
        assert order.failure_rate == 25.0
        assert order.remaining_quantity == 6

    def test_target_exceeded_leaves_counters_unchanged(self, tracker):
        register(tracker, target=2)
        tracker.update_progress("MO-100", completed_delta=1, failed_delta=1)

        with pytest.raises(TargetExceededError) as exc_info:
            tracker.update_progress("MO-100", completed_delta=1)

        error = exc_info.value
        assert error.code is ErrorCode.TARGET_EXCEEDED
        assert error.details == {"mo_id": "MO-100", "target": 2, "completed": 2, "failed": 1}
        order = tracker.get_order("MO-100")
        assert order.completed_quantity == 1
        assert order.failed_quantity == 1

    def test_ready_signal_is_raised_once(self, tracker, event_bus):
        register(tracker, target=2)

        tracker.update_progress("MO-100", completed_delta=1)
        order = tracker.update_progress("MO-100", failed_delta=1)
        tracker.update_progress("MO-100", completed_delta=1, failed_delta=-1)

        assert order.is_ready_for_completion
        events = event_bus.get_event_history(OrderReadyForCompletion)
        assert len(events) == 1
        assert events[0].completed_quantity == 1
        assert events[0].failed_quantity == 1

    def test_unknown_order(self, tracker):
        with pytest.raises(OrderNotFoundError):
            tracker.update_progress("MO-404", completed_delta=1)

    def test_record_inspection_tallies_by_line(self, tracker):
        register(tracker)

        tracker.record_inspection("MO-100", InspectionResult.PASS, PanelSize.SIZE_36, 1)
        order = tracker.record_inspection(
            "MO-100", InspectionResult.FAIL, PanelSize.SIZE_36, 1, failed_delta=1
        )

        assert order.inspections_passed == 1
        assert order.inspections_failed == 1
        assert order.inspections_by_line == {1: 2}
        assert order.failed_quantity == 1


class TestPanelReports:
    """Test order changes staged by a panel change and published after it."""

    def test_report_is_stored_but_not_published(self, tracker, event_bus):
        register(tracker)

        commit = tracker.apply_panel_report(
            PanelReport(
                mo_id="MO-100",
                line_number=1,
                panel_size=PanelSize.SIZE_36,
                inspection_result=InspectionResult.PASS,
                completed_delta=1,
            )
        )

        assert tracker.get_order("MO-100").completed_quantity == 1
        assert event_bus.get_event_history(OrderProgressUpdated) == []

        tracker.publish(commit)

        assert len(event_bus.get_event_history(OrderProgressUpdated)) == 1

    def test_revert_restores_previous_order(self, tracker, event_bus):
        before = register(tracker)

        commit = tracker.apply_panel_report(
            PanelReport(mo_id="MO-100", line_number=1, failed_delta=1)
        )
        tracker.revert(commit)

        assert tracker.get_order("MO-100").model_dump() == before.model_dump()
        assert event_bus.get_event_history(OrderProgressUpdated) == []

    def test_rejected_report_stores_nothing(self, tracker):
        register(tracker, target=1)
        tracker.update_progress("MO-100", completed_delta=1)

        with pytest.raises(TargetExceededError):
            tracker.apply_panel_report(
                PanelReport(
                    mo_id="MO-100",
                    line_number=1,
                    inspection_result=InspectionResult.PASS,
                    completed_delta=1,
                )
            )

        order = tracker.get_order("MO-100")
        assert order.completed_quantity == 1
        assert order.inspections_passed == 0


class TestOrderLifecycle:
    """Test order status transitions."""

    def test_hold_blocks_progress_until_resumed(self, tracker):
        register(tracker)
        tracker.start_order("MO-100")
        tracker.hold_order("MO-100", reason="Material shortage")

        with pytest.raises(InvalidOrderStatusError) as exc_info:
            tracker.update_progress("MO-100", completed_delta=1)
        assert exc_info.value.details["current_status"] == "ON_HOLD"

        tracker.resume_order("MO-100")
        order = tracker.update_progress("MO-100", completed_delta=1)
        assert order.completed_quantity == 1

    def test_complete_and_closed_order(self, tracker, event_bus):
        register(tracker)
        tracker.start_order("MO-100")

        order = tracker.complete_order("MO-100")

        assert order.status is OrderStatus.COMPLETED
        assert order.completed_at is not None
        with pytest.raises(InvalidOrderStatusError):
            tracker.cancel_order("MO-100")
        with pytest.raises(InvalidOrderStatusError):
            tracker.update_progress("MO-100", completed_delta=1)
        statuses = [e.new_status for e in event_bus.get_event_history(OrderStatusChanged)]
        assert statuses == [OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED]

    def test_pending_order_cannot_complete(self, tracker):
        register(tracker)

        with pytest.raises(InvalidOrderStatusError):
            tracker.complete_order("MO-100")

    def test_cancel_pending_order(self, tracker):
        register(tracker)

        assert tracker.cancel_order("MO-100", "Customer withdrew").status is OrderStatus.CANCELLED


class TestBarcodeRange:
    """Test barcode membership and allocation."""

    @pytest.mark.parametrize(
        "sequence,member",
        [(9, False), (10, True), (15, True), (20, True), (21, False)],
    )
    def test_range_is_closed(self, tracker, sequence, member):
        order = register(tracker, start=10, end=20)

        assert validate_barcode_against_mo(make_barcode(sequence=sequence), order) is member

    def test_membership_of_malformed_barcode(self, tracker):
        order = register(tracker)

        with pytest.raises(MalformedBarcodeError):
            validate_barcode_against_mo("CRS24", order)

    def test_allocation_walks_range_then_stops(self, tracker):
        register(tracker, start=5, end=6)

        assert tracker.allocate_barcode("MO-100") == "CRS24WT3600005"
        assert tracker.allocate_barcode("MO-100") == "CRS24WT3600006"
        with pytest.raises(BarcodeRangeExhaustedError) as exc_info:
            tracker.allocate_barcode("MO-100")

        assert exc_info.value.code is ErrorCode.BARCODE_RANGE_EXHAUSTED
        order = tracker.get_order("MO-100")
        assert order.current_sequence == 6
        assert order.barcodes_remaining == 0

    def test_allocated_barcode_belongs_to_order(self, tracker):
        order = register(tracker, start=100, end=199, size="144")

        barcode = tracker.allocate_barcode("MO-100")

        assert barcode == "CRS24WT14400100"
        assert validate_barcode_against_mo(barcode, order)


class TestProgressSnapshot:
    """Test dashboard snapshots and alerts."""

    def _kinds(self, snapshot):
        return {alert.kind: alert.severity for alert in snapshot.alerts}

    def test_fresh_order_has_no_alerts(self, tracker):
        register(tracker)

        snapshot = tracker.progress_snapshot("MO-100")

        assert snapshot.alerts == ()
        assert snapshot.remaining == 100
        assert not snapshot.ready_for_completion

    def test_low_progress(self, tracker):
        register(tracker)
        tracker.update_progress("MO-100", completed_delta=10)

        assert self._kinds(tracker.progress_snapshot("MO-100")) == {
            "low_progress": AlertSeverity.WARNING
        }

    def test_panels_remaining(self, tracker):
        register(tracker)
        tracker.update_progress("MO-100", completed_delta=55)

        snapshot = tracker.progress_snapshot("MO-100")

        assert snapshot.remaining == 45
        assert self._kinds(snapshot) == {"panels_remaining": AlertSeverity.WARNING}

    def test_high_failure_rate(self, tracker):
        register(tracker, target=100)
        tracker.update_progress("MO-100", completed_delta=40, failed_delta=10)

        kinds = self._kinds(tracker.progress_snapshot("MO-100"))

        assert kinds["high_failure_rate"] is AlertSeverity.CRITICAL
        assert kinds["panels_remaining"] is AlertSeverity.WARNING

    def test_ready_for_completion(self, tracker):
        register(tracker, target=2)
        tracker.update_progress("MO-100", completed_delta=2)

        snapshot = tracker.progress_snapshot("MO-100")

        assert snapshot.ready_for_completion
        assert snapshot.completion_percentage == 100.0
        assert self._kinds(snapshot) == {"ready_for_completion": AlertSeverity.INFO}

    def test_thresholds_come_from_config(self, event_bus):
        tracker = ManufacturingOrderTracker(
            event_bus=event_bus,
            config=Settings(MO_PANELS_REMAINING_ALERT=5, MO_LOW_PROGRESS_ALERT=0.0),
        )
        register(tracker)
        tracker.update_progress("MO-100", completed_delta=55)

        assert tracker.progress_snapshot("MO-100").alerts == ()
