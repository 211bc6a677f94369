"""
Barcode Service

Parse, validate and route panel barcodes. A barcode is a fixed-width string
with no delimiters::

    CRS 24 W T 36 00001
    |   |  | | |  sequence number (5 digits)
    |   |  | | panel size (2 digits, or 3 for 144-cell panels)
    |   |  | batch code
    |   |  factory code
    |   year (2 digits)
    company prefix

Parsing only checks shape; business rules are checked by validation so a
readable but wrong code can still be corrected by a manual override.
"""

from datetime import datetime, timezone

from pydantic import ValidationError

from ....core.config import settings
from ....core.observability import get_logger
from ...shared.exceptions import (
    BarcodeValidationError,
    MalformedBarcodeError,
    UnknownPanelSizeError,
)
from ..value_objects.barcode import (
    MAX_SEQUENCE,
    MIN_SEQUENCE,
    SEQUENCE_WIDTH,
    BarcodeComponents,
    BarcodeProcessingResult,
    BarcodeValidationResult,
    PanelDescriptor,
)
from ..value_objects.enums import BatchCode, FactoryCode, PanelSize, StationId
from ..value_objects.line_assignment import LineAssignment

logger = get_logger(__name__)

# Fixed-width fields ahead of the panel size: prefix(3) + year(2) + factory(1) + batch(1)
_HEAD_WIDTH = 7
_FIXED_WIDTH = _HEAD_WIDTH + SEQUENCE_WIDTH
BARCODE_LENGTHS = (_FIXED_WIDTH + 2, _FIXED_WIDTH + 3)

_LINE_LAYOUT: dict[PanelSize, tuple[int, tuple[int, int]]] = {
    PanelSize.SIZE_36: (1, (1, 4)),
    PanelSize.SIZE_40: (1, (1, 4)),
    PanelSize.SIZE_60: (1, (1, 4)),
    PanelSize.SIZE_72: (1, (1, 4)),
    PanelSize.SIZE_144: (2, (5, 8)),
}


def current_year() -> int:
    return datetime.now(timezone.utc).year


def accepted_years(reference_year: int | None = None, year_window: int | None = None) -> list[str]:
    """Two-digit years accepted around ``reference_year``."""
    if reference_year is None:
        reference_year = current_year()
    if year_window is None:
        year_window = settings.YEAR_WINDOW
    return [
        f"{(reference_year + offset) % 100:02d}"
        for offset in range(-year_window, year_window + 1)
    ]


def parse_barcode(code: object) -> BarcodeComponents:
    """
    Split a barcode into its components.

    Surrounding whitespace is ignored and letters are upper-cased. Only the
    shape is checked here.

    Raises:
        MalformedBarcodeError: If the length or the sequence slice is wrong
    """
    if not isinstance(code, str):
        raise MalformedBarcodeError(code, "barcode must be a string")

    normalized = code.strip().upper()
    if not normalized.isascii():
        raise MalformedBarcodeError(code, "barcode must be ASCII")
    if len(normalized) not in BARCODE_LENGTHS:
        raise MalformedBarcodeError(
            code,
            f"expected {BARCODE_LENGTHS[0]} or {BARCODE_LENGTHS[1]} characters, "
            f"got {len(normalized)}",
        )

    size_end = len(normalized) - SEQUENCE_WIDTH
    sequence = normalized[size_end:]
    if not sequence.isdigit():
        raise MalformedBarcodeError(code, f"sequence {sequence!r} is not {SEQUENCE_WIDTH} digits")

    return BarcodeComponents(
        company_prefix=normalized[0:3],
        year=normalized[3:5],
        factory_code=normalized[5],
        batch_code=normalized[6],
        panel_size=normalized[_HEAD_WIDTH:size_end],
        sequence_number=int(sequence),
    )


def validate_barcode_components(
    components: BarcodeComponents,
    *,
    reference_year: int | None = None,
    year_window: int | None = None,
    company_prefix: str | None = None,
) -> BarcodeValidationResult:
    """Check every component against the business rules, collecting all errors."""
    expected_prefix = company_prefix or settings.COMPANY_PREFIX
    years = accepted_years(reference_year, year_window)
    errors: list[str] = []

    prefix_valid = components.company_prefix == expected_prefix
    if not prefix_valid:
        errors.append(
            f"Invalid company prefix: {components.company_prefix} (expected {expected_prefix})"
        )

    year_valid = components.year in years
    if not year_valid:
        errors.append(f"Invalid year: {components.year} (expected one of {', '.join(years)})")

    factory_valid = components.factory_code in {code.value for code in FactoryCode}
    if not factory_valid:
        errors.append(
            f"Invalid factory code: {components.factory_code} "
            f"(expected one of {', '.join(code.value for code in FactoryCode)})"
        )

    batch_valid = components.batch_code in {code.value for code in BatchCode}
    if not batch_valid:
        errors.append(
            f"Invalid batch code: {components.batch_code} "
            f"(expected one of {', '.join(code.value for code in BatchCode)})"
        )

    size_valid = components.panel_size in {size.value for size in PanelSize}
    if not size_valid:
        errors.append(
            f"Invalid panel size: {components.panel_size} "
            f"(expected one of {', '.join(size.value for size in PanelSize)})"
        )

    # 00000 has the right shape but is never issued
    sequence_valid = MIN_SEQUENCE <= components.sequence_number <= MAX_SEQUENCE
    if not sequence_valid:
        errors.append(
            f"Invalid sequence number: {components.sequence_number:05d} "
            f"(must be between {MIN_SEQUENCE:05d} and {MAX_SEQUENCE:05d})"
        )

    return BarcodeValidationResult(
        company_prefix_valid=prefix_valid,
        year_valid=year_valid,
        factory_code_valid=factory_valid,
        batch_code_valid=batch_valid,
        panel_size_valid=size_valid,
        sequence_valid=sequence_valid,
        errors=tuple(errors),
    )


def _coerce_panel_size(panel_size: PanelSize | str | int) -> PanelSize:
    if isinstance(panel_size, PanelSize):
        return panel_size
    # Exact values only: "036" and "3_6" are not sizes
    if isinstance(panel_size, bool):
        raise UnknownPanelSizeError(panel_size)
    if isinstance(panel_size, int):
        raw = str(panel_size)
    elif isinstance(panel_size, str):
        raw = panel_size.strip()
    else:
        raise UnknownPanelSizeError(panel_size)
    try:
        return PanelSize(raw)
    except ValueError:
        raise UnknownPanelSizeError(panel_size) from None


def assign_line(panel_size: PanelSize | str | int) -> LineAssignment:
    """
    Map a panel size to its production line and station range.

    Raises:
        UnknownPanelSizeError: If no line serves the size
    """
    size = _coerce_panel_size(panel_size)
    line_number, station_range = _LINE_LAYOUT[size]
    return LineAssignment(
        line_number=line_number,
        line_name=f"LINE_{line_number}",
        station_range=station_range,
        panel_size=size,
    )


def compose_barcode(
    panel_size: PanelSize | str,
    year: str,
    factory_code: FactoryCode | str,
    batch_code: BatchCode | str,
    sequence_number: int,
    *,
    company_prefix: str | None = None,
) -> str:
    """
    Build the barcode string for a set of components.

    Raises:
        MalformedBarcodeError: If a component does not fit its field width
    """
    parts = {
        "company_prefix": company_prefix or settings.COMPANY_PREFIX,
        "year": year,
        "factory_code": getattr(factory_code, "value", factory_code),
        "batch_code": getattr(batch_code, "value", batch_code),
        "panel_size": getattr(panel_size, "value", panel_size),
        "sequence_number": sequence_number,
    }
    try:
        components = BarcodeComponents(**parts)
    except ValidationError as e:
        raise MalformedBarcodeError(parts, f"cannot compose barcode: {e.error_count()} invalid field(s)") from e
    return components.to_code()


def generate_barcode(
    panel_size: PanelSize | str,
    sequence_number: int,
    *,
    year: str | None = None,
    factory_code: FactoryCode | str | None = None,
    batch_code: BatchCode | str | None = None,
) -> str:
    """Compose a barcode using the configured defaults for unspecified fields."""
    return compose_barcode(
        panel_size,
        year if year is not None else f"{current_year() % 100:02d}",
        factory_code or settings.DEFAULT_FACTORY_CODE,
        batch_code or settings.DEFAULT_BATCH_CODE,
        sequence_number,
    )


def process_barcode(
    code: object,
    *,
    reference_year: int | None = None,
) -> BarcodeProcessingResult:
    """
    Run a scanned code through parsing, validation and line assignment.

    Raises:
        MalformedBarcodeError: If the code cannot be parsed
    """
    components = parse_barcode(code)
    validation = validate_barcode_components(components, reference_year=reference_year)
    barcode = components.to_code()

    if not validation.is_valid:
        logger.info(
            "barcode_invalid",
            barcode=barcode,
            errors=list(validation.errors),
        )
        return BarcodeProcessingResult(
            barcode=barcode, components=components, validation=validation
        )

    line_assignment = assign_line(components.panel_size)
    logger.debug(
        "barcode_processed",
        barcode=barcode,
        line_number=line_assignment.line_number,
    )
    return BarcodeProcessingResult(
        barcode=barcode,
        components=components,
        validation=validation,
        line_assignment=line_assignment,
        panel_type=components.panel_type,
        initial_station=StationId.STATION_1,
    )


def resolve_panel(code: object, *, reference_year: int | None = None) -> PanelDescriptor:
    """
    Turn a scanned code into a panel descriptor.

    Raises:
        MalformedBarcodeError: If the code cannot be parsed
        BarcodeValidationError: If the code breaks a business rule
    """
    result = process_barcode(code, reference_year=reference_year)
    if not result.is_valid or result.line_assignment is None:
        raise BarcodeValidationError(result.barcode, list(result.validation.errors))
    return PanelDescriptor(
        barcode=result.barcode,
        components=result.components,
        panel_size=result.line_assignment.panel_size,
        line_assignment=result.line_assignment,
    )


def apply_manual_override(
    barcode: str,
    *,
    panel_size: PanelSize | str,
    year: str,
    factory_code: FactoryCode | str,
    batch_code: BatchCode | str,
    sequence_number: int,
    reason: str,
    operator_id: str,
    reference_year: int | None = None,
) -> PanelDescriptor:
    """
    Replace an unreadable or business-invalid barcode with operator-supplied
    components.

    The corrected components go through the same validation as a scan.

    Raises:
        BarcodeValidationError: If the correction is itself invalid or no
            reason is given
    """
    if not reason or not reason.strip():
        raise BarcodeValidationError(barcode, ["Manual override requires a reason"])

    try:
        components = BarcodeComponents(
            company_prefix=settings.COMPANY_PREFIX,
            year=year,
            factory_code=getattr(factory_code, "value", factory_code),
            batch_code=getattr(batch_code, "value", batch_code),
            panel_size=getattr(panel_size, "value", panel_size),
            sequence_number=sequence_number,
        )
    except ValidationError as e:
        raise BarcodeValidationError(
            barcode,
            [f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()],
        ) from e

    validation = validate_barcode_components(components, reference_year=reference_year)
    if not validation.is_valid:
        raise BarcodeValidationError(barcode, list(validation.errors))

    line_assignment = assign_line(components.panel_size)
    corrected = components.to_code()
    logger.warning(
        "barcode_manual_override",
        original_barcode=barcode,
        corrected_barcode=corrected,
        reason=reason,
        operator_id=operator_id,
    )
    return PanelDescriptor(
        barcode=corrected,
        components=components,
        panel_size=line_assignment.panel_size,
        line_assignment=line_assignment,
        manual_override=True,
        override_reason=reason,
        operator_id=operator_id,
    )
