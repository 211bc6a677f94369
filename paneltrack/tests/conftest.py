import pytest

from paneltrack.domain.production.services.mo_progress_service import (
    ManufacturingOrderTracker,
)
from paneltrack.domain.production.services.workflow_engine import WorkflowEngine
from paneltrack.infrastructure.events.event_bus import InMemoryEventBus
from paneltrack.tests.factories import REFERENCE_YEAR


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus(max_history_size=500)


@pytest.fixture
def tracker(event_bus: InMemoryEventBus) -> ManufacturingOrderTracker:
    return ManufacturingOrderTracker(event_bus=event_bus)


@pytest.fixture
def engine(
    event_bus: InMemoryEventBus, tracker: ManufacturingOrderTracker
) -> WorkflowEngine:
    return WorkflowEngine(
        mo_tracker=tracker, event_bus=event_bus, reference_year=REFERENCE_YEAR
    )


@pytest.fixture
def order(tracker: ManufacturingOrderTracker):
    """Pending order for 36-cell panels with sequences 1-10."""
    return tracker.register_order(
        "MO-001",
        "MO-2024-001",
        "36",
        target_quantity=2,
        barcode_start=1,
        barcode_end=10,
        year="24",
    )
