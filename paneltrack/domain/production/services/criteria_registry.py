"""
Quality Criteria Registry

Static inspection configuration: which criteria each station checks, how
numeric criteria are measured and what an operator should do when one fails.
The registry is immutable and passed into the workflow engine, so tests can
run the engine against alternate configurations.
"""

from typing import Any

from pydantic import PrivateAttr, model_validator
from typing_extensions import Self

from ...shared.base import ValueObject
from ...shared.exceptions import UnknownStationError
from ..value_objects.enums import PanelSize, StationId, WorkflowStage
from ..value_objects.quality import (
    BooleanCriterion,
    NumericCriterion,
    QualityCriterion,
    StationConfig,
)


class QualityCriteriaRegistry(ValueObject):
    """Immutable station and criterion definitions."""

    stations: tuple[StationConfig, ...]
    criteria: tuple[QualityCriterion, ...]

    _stations_by_id: dict[StationId, StationConfig] = PrivateAttr(default_factory=dict)
    _stations_by_stage: dict[WorkflowStage, StationConfig] = PrivateAttr(default_factory=dict)
    _criteria_by_name: dict[str, QualityCriterion] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_consistency(self) -> Self:
        names = [criterion.name for criterion in self.criteria]
        if len(names) != len(set(names)):
            raise ValueError("criterion names must be unique")

        station_ids = [station.station_id for station in self.stations]
        if len(station_ids) != len(set(station_ids)):
            raise ValueError("station ids must be unique")

        stages = [station.stage for station in self.stations]
        if len(stages) != len(set(stages)):
            raise ValueError("each workflow stage may be inspected by one station only")

        known = set(names)
        for station in self.stations:
            undefined = [
                name
                for name in (
                    *station.required_criteria,
                    *station.optional_criteria,
                    *station.line_specific_criteria,
                )
                if name not in known
            ]
            if undefined:
                raise ValueError(
                    f"{station.station_id.value} references undefined criteria: "
                    + ", ".join(undefined)
                )
        return self

    def model_post_init(self, __context: Any) -> None:
        self._stations_by_id = {station.station_id: station for station in self.stations}
        self._stations_by_stage = {station.stage: station for station in self.stations}
        self._criteria_by_name = {criterion.name: criterion for criterion in self.criteria}

    def station(self, station_id: StationId | str) -> StationConfig:
        """
        Configuration for a station.

        Raises:
            UnknownStationError: If the station is not configured
        """
        try:
            key = StationId(station_id)
        except ValueError:
            raise UnknownStationError(station_id) from None
        config = self._stations_by_id.get(key)
        if config is None:
            raise UnknownStationError(station_id)
        return config

    def station_for_stage(self, stage: WorkflowStage) -> StationConfig | None:
        return self._stations_by_stage.get(stage)

    def criterion(self, name: str) -> QualityCriterion | None:
        return self._criteria_by_name.get(name)

    def corrective_action(self, name: str) -> str:
        criterion = self._criteria_by_name.get(name)
        if criterion is not None and criterion.corrective_action:
            return criterion.corrective_action
        return f"Review and correct {name} issue"


def _sized(values: dict[str, float]) -> dict[PanelSize, float]:
    return {PanelSize(size): value for size, value in values.items()}


def build_default_registry() -> QualityCriteriaRegistry:
    """Station and criterion tables of the production line."""
    criteria: list[QualityCriterion] = [
        # Station 1
        BooleanCriterion(
            name="cellAlignment",
            description="Cells aligned within tolerance",
            corrective_action="Realign solar cells within tolerance",
        ),
        BooleanCriterion(
            name="electricalConnection",
            description="String interconnects soldered and continuous",
            corrective_action="Re-solder electrical connections",
        ),
        BooleanCriterion(name="visualInspection", description="No visible defects"),
        BooleanCriterion(name="cellCount", description="Cell count matches panel type"),
        BooleanCriterion(
            name="largePanelHandling",
            description="Large panel handling verified",
            corrective_action="Check large panel handling fixtures",
        ),
        # Station 2
        BooleanCriterion(
            name="frameAlignment",
            description="Frame flush with panel edges",
            corrective_action="Realign frame with panel edges",
        ),
        BooleanCriterion(name="cornerSeals", description="Corner seals intact"),
        BooleanCriterion(name="mountingHoles", description="Mounting holes positioned"),
        BooleanCriterion(name="sealQuality", description="Edge seal continuous"),
        BooleanCriterion(
            name="mirrorExamination",
            description="Mirror examination passed",
            corrective_action="Repeat mirror examination of the frame",
        ),
        # Station 3
        BooleanCriterion(name="boxAlignment", description="Junction box seated"),
        BooleanCriterion(name="cableRouting", description="Cables routed and clipped"),
        BooleanCriterion(name="sealIntegrity", description="Junction box sealed"),
        BooleanCriterion(
            name="largePanelWiring",
            description="Large panel wiring verified",
            corrective_action="Re-verify large panel wiring",
        ),
        # Station 4
        NumericCriterion(
            name="powerOutput",
            unit="W",
            target=310.0,
            tolerance=0.05,
            targets_by_panel_size=_sized(
                {"36": 200.0, "40": 220.0, "60": 310.0, "72": 385.0, "144": 550.0}
            ),
            description="Flash-test power at STC",
            corrective_action="Investigate power output deviation",
        ),
        NumericCriterion(
            name="voltageCheck",
            unit="V",
            target=37.5,
            tolerance=0.03,
            targets_by_panel_size=_sized(
                {"36": 22.0, "40": 24.5, "60": 37.5, "72": 45.0, "144": 49.5}
            ),
            description="Open-circuit voltage",
        ),
        NumericCriterion(
            name="currentCheck",
            unit="A",
            target=8.3,
            tolerance=0.05,
            targets_by_panel_size=_sized(
                {"36": 9.1, "40": 9.0, "60": 8.3, "72": 8.6, "144": 11.1}
            ),
            description="Short-circuit current",
        ),
        NumericCriterion(
            name="efficiencyTest",
            unit="%",
            target=0.18,
            tolerance=0.01,
            description="Module efficiency as a fraction",
        ),
        BooleanCriterion(
            name="secondElTest",
            description="Second EL test passed",
            corrective_action="Repeat electroluminescence test",
        ),
        BooleanCriterion(
            name="extendedPerformanceTest",
            description="Extended performance testing passed",
            corrective_action="Rerun extended performance testing",
        ),
    ]

    stations = [
        StationConfig(
            station_id=StationId.STATION_1,
            name="Assembly & EL",
            stage=WorkflowStage.ASSEMBLY_EL,
            next_stage=WorkflowStage.FRAMING,
            required_criteria=("cellAlignment", "electricalConnection", "visualInspection"),
            optional_criteria=("cellCount", "voltageCheck"),
            required_by_line={2: ("largePanelHandling",)},
            pass_threshold=0.95,
        ),
        StationConfig(
            station_id=StationId.STATION_2,
            name="Framing",
            stage=WorkflowStage.FRAMING,
            next_stage=WorkflowStage.JUNCTION_BOX,
            required_criteria=("frameAlignment", "cornerSeals", "mountingHoles"),
            optional_criteria=("sealQuality",),
            required_by_line={1: ("mirrorExamination",), 2: ("largePanelHandling",)},
            pass_threshold=0.95,
        ),
        StationConfig(
            station_id=StationId.STATION_3,
            name="Junction Box",
            stage=WorkflowStage.JUNCTION_BOX,
            next_stage=WorkflowStage.PERFORMANCE_FINAL,
            required_criteria=("boxAlignment", "cableRouting", "sealIntegrity"),
            required_by_line={2: ("largePanelWiring",)},
            pass_threshold=0.95,
        ),
        StationConfig(
            station_id=StationId.STATION_4,
            name="Performance & Final Inspection",
            stage=WorkflowStage.PERFORMANCE_FINAL,
            next_stage=WorkflowStage.COMPLETED,
            required_criteria=("powerOutput", "voltageCheck", "currentCheck", "efficiencyTest"),
            required_by_line={1: ("secondElTest",), 2: ("extendedPerformanceTest",)},
            pass_threshold=0.98,
            notes_required_on_failure=True,
        ),
    ]

    return QualityCriteriaRegistry(stations=tuple(stations), criteria=tuple(criteria))


DEFAULT_REGISTRY = build_default_registry()
