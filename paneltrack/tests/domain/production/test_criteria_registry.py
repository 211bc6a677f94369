"""Unit tests for the quality criteria registry."""

import pytest
from pydantic import ValidationError

from paneltrack.domain.production.services.criteria_registry import (
    DEFAULT_REGISTRY,
    QualityCriteriaRegistry,
)
from paneltrack.domain.production.value_objects.enums import (
    CriterionKind,
    PanelSize,
    StationId,
    WorkflowStage,
)
from paneltrack.domain.production.value_objects.quality import (
    BooleanCriterion,
    NumericCriterion,
    StationConfig,
)
from paneltrack.domain.shared.exceptions import ErrorCode, UnknownStationError


class TestDefaultRegistry:
    """Test the production station tables."""

    def test_four_stations_in_line_order(self):
        stages = [station.stage for station in DEFAULT_REGISTRY.stations]

        assert stages == [
            WorkflowStage.ASSEMBLY_EL,
            WorkflowStage.FRAMING,
            WorkflowStage.JUNCTION_BOX,
            WorkflowStage.PERFORMANCE_FINAL,
        ]

    def test_assembly_station(self):
        station = DEFAULT_REGISTRY.station(StationId.STATION_1)

        assert station.name == "Assembly & EL"
        assert station.next_stage is WorkflowStage.FRAMING
        assert station.required_criteria == (
            "cellAlignment",
            "electricalConnection",
            "visualInspection",
        )
        assert station.pass_threshold == 0.95
        assert not station.notes_required_on_failure

    def test_final_station_requires_notes(self):
        station = DEFAULT_REGISTRY.station("STATION_4")

        assert station.next_stage is WorkflowStage.COMPLETED
        assert station.pass_threshold == 0.98
        assert station.notes_required_on_failure

    def test_unknown_station(self):
        with pytest.raises(UnknownStationError) as exc_info:
            DEFAULT_REGISTRY.station("STATION_9")

        assert exc_info.value.code is ErrorCode.UNKNOWN_STATION
        assert exc_info.value.details == {"station_id": "STATION_9"}

    def test_station_for_stage(self):
        assert DEFAULT_REGISTRY.station_for_stage(WorkflowStage.FRAMING).station_id is StationId.STATION_2
        assert DEFAULT_REGISTRY.station_for_stage(WorkflowStage.REWORK) is None

    def test_criterion_kinds(self):
        assert DEFAULT_REGISTRY.criterion("cellAlignment").kind is CriterionKind.BOOLEAN
        power = DEFAULT_REGISTRY.criterion("powerOutput")
        assert power.kind is CriterionKind.NUMERIC
        assert power.unit == "W"
        assert power.tolerance == 0.05
        assert DEFAULT_REGISTRY.criterion("unknown") is None

    @pytest.mark.parametrize(
        "size,watts",
        [("36", 200.0), ("40", 220.0), ("60", 310.0), ("72", 385.0), ("144", 550.0)],
    )
    def test_power_target_by_panel_size(self, size, watts):
        assert DEFAULT_REGISTRY.criterion("powerOutput").target_for(PanelSize(size)) == watts

    def test_corrective_actions(self):
        assert DEFAULT_REGISTRY.corrective_action("cellAlignment") == "Realign solar cells within tolerance"
        assert DEFAULT_REGISTRY.corrective_action("powerOutput") == "Investigate power output deviation"
        assert DEFAULT_REGISTRY.corrective_action("boxAlignment") == "Review and correct boxAlignment issue"

    def test_registry_is_immutable(self):
        with pytest.raises(ValidationError):
            DEFAULT_REGISTRY.stations = ()


class TestRegistryConsistency:
    """Test alternate registries are checked when built."""

    def _station(self, **overrides):
        values = {
            "station_id": StationId.STATION_1,
            "name": "Assembly",
            "stage": WorkflowStage.ASSEMBLY_EL,
            "next_stage": WorkflowStage.FRAMING,
            "required_criteria": ("cellAlignment",),
            "pass_threshold": 0.5,
        }
        values.update(overrides)
        return StationConfig(**values)

    def test_minimal_registry(self):
        registry = QualityCriteriaRegistry(
            stations=(self._station(),),
            criteria=(BooleanCriterion(name="cellAlignment"),),
        )

        assert registry.station(StationId.STATION_1).pass_threshold == 0.5
        with pytest.raises(UnknownStationError):
            registry.station(StationId.STATION_2)

    def test_undefined_criterion_is_rejected(self):
        with pytest.raises(ValidationError, match="undefined criteria"):
            QualityCriteriaRegistry(stations=(self._station(),), criteria=())

    def test_duplicate_criterion_names_are_rejected(self):
        with pytest.raises(ValidationError, match="unique"):
            QualityCriteriaRegistry(
                stations=(self._station(),),
                criteria=(
                    BooleanCriterion(name="cellAlignment"),
                    NumericCriterion(name="cellAlignment", unit="W", target=1.0, tolerance=0.1),
                ),
            )

    def test_station_next_stage_must_be_reachable(self):
        with pytest.raises(ValidationError, match="cannot advance"):
            self._station(next_stage=WorkflowStage.JUNCTION_BOX)

    def test_pass_threshold_is_a_fraction(self):
        with pytest.raises(ValidationError):
            self._station(pass_threshold=95)

    def test_criteria_parse_by_kind(self):
        """Test criterion definitions are discriminated on their kind."""
        registry = QualityCriteriaRegistry.model_validate(
            {
                "stations": [self._station().model_dump()],
                "criteria": [
                    {"kind": "boolean", "name": "cellAlignment"},
                    {"kind": "numeric", "name": "powerOutput", "unit": "W", "target": 300, "tolerance": 0.05},
                ],
            }
        )

        assert isinstance(registry.criterion("cellAlignment"), BooleanCriterion)
        assert isinstance(registry.criterion("powerOutput"), NumericCriterion)


class TestLineSpecificCriteria:
    """Test criteria that stations require only for one production line."""

    def test_default_stations_add_line_criteria(self):
        assembly = DEFAULT_REGISTRY.station(StationId.STATION_1)
        final = DEFAULT_REGISTRY.station(StationId.STATION_4)

        assert assembly.required_for(1) == assembly.required_criteria
        assert assembly.required_for(2) == assembly.required_criteria + ("largePanelHandling",)
        assert final.required_for(1)[-1] == "secondElTest"
        assert final.required_for(2)[-1] == "extendedPerformanceTest"
        assert final.required_for() == final.required_criteria

    def test_line_criteria_are_defined(self):
        for station in DEFAULT_REGISTRY.stations:
            for name in station.line_specific_criteria:
                assert DEFAULT_REGISTRY.criterion(name) is not None

    def test_undefined_line_criterion_is_rejected(self):
        station = StationConfig(
            station_id=StationId.STATION_1,
            name="Assembly",
            stage=WorkflowStage.ASSEMBLY_EL,
            next_stage=WorkflowStage.FRAMING,
            required_criteria=("cellAlignment",),
            required_by_line={2: ("largePanelHandling",)},
            pass_threshold=0.5,
        )

        with pytest.raises(ValidationError, match="largePanelHandling"):
            QualityCriteriaRegistry(
                stations=(station,), criteria=(BooleanCriterion(name="cellAlignment"),)
            )

    def test_line_criterion_may_not_repeat_a_base_criterion(self):
        with pytest.raises(ValidationError, match="listed twice"):
            StationConfig(
                station_id=StationId.STATION_1,
                name="Assembly",
                stage=WorkflowStage.ASSEMBLY_EL,
                next_stage=WorkflowStage.FRAMING,
                required_criteria=("cellAlignment",),
                required_by_line={1: ("cellAlignment",)},
                pass_threshold=0.5,
            )

    def test_line_numbers_start_at_one(self):
        with pytest.raises(ValidationError, match="invalid line number"):
            StationConfig(
                station_id=StationId.STATION_1,
                name="Assembly",
                stage=WorkflowStage.ASSEMBLY_EL,
                next_stage=WorkflowStage.FRAMING,
                required_criteria=("cellAlignment",),
                required_by_line={0: ("largePanelHandling",)},
                pass_threshold=0.5,
            )
