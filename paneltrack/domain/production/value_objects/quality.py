"""Quality criteria and station configuration value objects."""

from typing import Annotated, Literal

from pydantic import Field, StrictBool, StrictFloat, StrictInt, model_validator
from typing_extensions import Self

from ...shared.base import ValueObject
from .enums import CriterionKind, PanelSize, StationId, WorkflowStage

# Strict: strings such as "yes" or "1" never coerce to a criterion value
CriterionValue = StrictBool | StrictInt | StrictFloat


class CriterionResult(ValueObject):
    """Evaluation of one recorded criterion value."""

    name: str
    kind: CriterionKind
    passed: bool
    value: CriterionValue | None = None
    target: float | None = None
    message: str | None = None


class BooleanCriterion(ValueObject):
    """Criterion that passes only when recorded as ``True``."""

    kind: Literal[CriterionKind.BOOLEAN] = CriterionKind.BOOLEAN
    name: str
    description: str = ""
    corrective_action: str | None = None

    def evaluate(
        self, value: CriterionValue, panel_size: PanelSize | None = None
    ) -> CriterionResult:
        passed = value is True
        return CriterionResult(
            name=self.name,
            kind=self.kind,
            passed=passed,
            value=value,
            message=None if passed else f"{self.name} out of tolerance",
        )


class NumericCriterion(ValueObject):
    """
    Measured criterion compared against a target.

    Passes when ``|value - target| / target <= tolerance``. The target may
    depend on the panel size; ``target`` applies to sizes without an entry.
    """

    kind: Literal[CriterionKind.NUMERIC] = CriterionKind.NUMERIC
    name: str
    unit: str
    target: float = Field(gt=0)
    tolerance: float = Field(ge=0, le=1)
    targets_by_panel_size: dict[PanelSize, float] = Field(default_factory=dict)
    description: str = ""
    corrective_action: str | None = None

    @model_validator(mode="after")
    def _check_size_targets(self) -> Self:
        for size, target in self.targets_by_panel_size.items():
            if target <= 0:
                raise ValueError(f"{self.name} target for {size.value} must be positive")
        return self

    def target_for(self, panel_size: PanelSize | None) -> float:
        if panel_size is None:
            return self.target
        return self.targets_by_panel_size.get(panel_size, self.target)

    def evaluate(
        self, value: CriterionValue, panel_size: PanelSize | None = None
    ) -> CriterionResult:
        target = self.target_for(panel_size)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return CriterionResult(
                name=self.name,
                kind=self.kind,
                passed=False,
                value=value,
                target=target,
                message=f"{self.name} recorded as {value!r}, expected a measurement in {self.unit}",
            )

        deviation = abs(value - target) / target
        passed = deviation <= self.tolerance
        message = None
        if not passed:
            message = (
                f"{self.name} measured {value:g}{self.unit}, target {target:g}{self.unit} "
                f"(±{self.tolerance * 100:g}%, off by {deviation * 100:.1f}%)"
            )
        return CriterionResult(
            name=self.name,
            kind=self.kind,
            passed=passed,
            value=value,
            target=target,
            message=message,
        )


QualityCriterion = Annotated[
    BooleanCriterion | NumericCriterion, Field(discriminator="kind")
]


class StationConfig(ValueObject):
    """
    Static inspection configuration of one station.

    ``required_by_line`` adds required criteria for panels built on a given
    line, on top of ``required_criteria``.
    """

    station_id: StationId
    name: str
    stage: WorkflowStage
    next_stage: WorkflowStage
    required_criteria: tuple[str, ...]
    optional_criteria: tuple[str, ...] = ()
    required_by_line: dict[int, tuple[str, ...]] = Field(default_factory=dict)
    pass_threshold: float = Field(ge=0, le=1)
    notes_required_on_failure: bool = False

    @model_validator(mode="after")
    def _check_stages(self) -> Self:
        if not self.required_criteria:
            raise ValueError(f"{self.station_id.value} needs at least one required criterion")
        if not self.stage.can_transition_to(self.next_stage):
            raise ValueError(
                f"{self.station_id.value}: {self.stage.value} cannot advance to "
                f"{self.next_stage.value}"
            )
        line_required = set(self.line_specific_criteria)
        overlap = (set(self.required_criteria) | line_required) & set(self.optional_criteria)
        overlap |= set(self.required_criteria) & line_required
        if overlap:
            raise ValueError(
                f"{self.station_id.value}: criteria listed twice: "
                + ", ".join(sorted(overlap))
            )
        for line_number in self.required_by_line:
            if line_number < 1:
                raise ValueError(f"{self.station_id.value}: invalid line number {line_number}")
        return self

    @property
    def line_specific_criteria(self) -> tuple[str, ...]:
        return tuple(name for names in self.required_by_line.values() for name in names)

    def required_for(self, line_number: int | None = None) -> tuple[str, ...]:
        """Required criteria for a panel on ``line_number``."""
        if line_number is None:
            return self.required_criteria
        return self.required_criteria + self.required_by_line.get(line_number, ())
