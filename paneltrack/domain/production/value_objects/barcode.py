"""Barcode value objects."""

from pydantic import Field, computed_field

from ...shared.base import ValueObject
from .enums import PanelSize, StationId
from .line_assignment import LineAssignment

SEQUENCE_WIDTH = 5
MIN_SEQUENCE = 1
MAX_SEQUENCE = 99999


class BarcodeComponents(ValueObject):
    """
    Fields sliced out of a barcode.

    Values are kept exactly as read; whether they make business sense is
    decided by validation, so a readable but wrong code still produces
    components.
    """

    company_prefix: str = Field(min_length=3, max_length=3)
    year: str = Field(min_length=2, max_length=2)
    factory_code: str = Field(min_length=1, max_length=1)
    batch_code: str = Field(min_length=1, max_length=1)
    panel_size: str = Field(min_length=2, max_length=3)
    sequence_number: int = Field(ge=0, le=MAX_SEQUENCE)

    @property
    def panel_type(self) -> str:
        return f"TYPE_{self.panel_size}"

    def to_code(self) -> str:
        """Compose the barcode string these components were read from."""
        return (
            f"{self.company_prefix}{self.year}{self.factory_code}"
            f"{self.batch_code}{self.panel_size}"
            f"{self.sequence_number:0{SEQUENCE_WIDTH}d}"
        )


class BarcodeValidationResult(ValueObject):
    """Per-component validity with every error collected in field order."""

    company_prefix_valid: bool
    year_valid: bool
    factory_code_valid: bool
    batch_code_valid: bool
    panel_size_valid: bool
    sequence_valid: bool
    errors: tuple[str, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return (
            self.company_prefix_valid
            and self.year_valid
            and self.factory_code_valid
            and self.batch_code_valid
            and self.panel_size_valid
            and self.sequence_valid
        )


class BarcodeProcessingResult(ValueObject):
    """Output of the parse, validate and assign pipeline for one code."""

    barcode: str
    components: BarcodeComponents
    validation: BarcodeValidationResult
    line_assignment: LineAssignment | None = None
    panel_type: str | None = None
    initial_station: StationId | None = None

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


class PanelDescriptor(ValueObject):
    """Validated panel identity handed to the workflow engine."""

    barcode: str
    components: BarcodeComponents
    panel_size: PanelSize
    line_assignment: LineAssignment
    manual_override: bool = False
    override_reason: str | None = None
    operator_id: str | None = None

    @property
    def line_number(self) -> int:
        return self.line_assignment.line_number
