"""
Domain Exceptions

Error taxonomy for the tracking core. Every error carries a stable ``code``,
an ``error_type`` for coarse discrimination, and a flat ``details`` dict with
the context an operator needs (panel id, attempted action, current state).
None of these errors are retried or swallowed inside the core.
"""

from enum import Enum

DetailValue = str | int | float | bool | None


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CONCURRENCY = "concurrency"
    CONFIGURATION = "configuration"


class ErrorCode(str, Enum):
    """Stable error kinds surfaced to callers."""

    MALFORMED_BARCODE = "MALFORMED_BARCODE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UNKNOWN_PANEL_SIZE = "UNKNOWN_PANEL_SIZE"
    UNKNOWN_STATION = "UNKNOWN_STATION"
    WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
    DUPLICATE_PANEL = "DUPLICATE_PANEL"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_REWORK_TARGET = "INVALID_REWORK_TARGET"
    NOT_AT_FINAL_STATION = "NOT_AT_FINAL_STATION"
    MISSING_CRITERIA = "MISSING_CRITERIA"
    NOTES_REQUIRED = "NOTES_REQUIRED"
    TARGET_EXCEEDED = "TARGET_EXCEEDED"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    DUPLICATE_ORDER = "DUPLICATE_ORDER"
    INVALID_ORDER_STATUS = "INVALID_ORDER_STATUS"
    BARCODE_NOT_IN_ORDER = "BARCODE_NOT_IN_ORDER"
    BARCODE_RANGE_EXHAUSTED = "BARCODE_RANGE_EXHAUSTED"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        error_type: ErrorType,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | dict[str, DetailValue]]:
        """Convert error to dictionary for adapters."""
        return {
            "code": self.code.value,
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


# Barcode errors


class MalformedBarcodeError(DomainError):
    """Raised when a barcode cannot be split into its fixed-width fields."""

    def __init__(self, barcode: object, reason: str) -> None:
        self.barcode = barcode
        self.reason = reason
        super().__init__(
            f"Malformed barcode {barcode!r}: {reason}",
            ErrorCode.MALFORMED_BARCODE,
            ErrorType.VALIDATION,
            {"barcode": str(barcode), "reason": reason},
        )


class BarcodeValidationError(DomainError):
    """Raised when a readable barcode breaks business rules."""

    def __init__(self, barcode: str, errors: list[str]) -> None:
        self.barcode = barcode
        self.errors = list(errors)
        super().__init__(
            f"Barcode {barcode} failed validation: " + "; ".join(self.errors),
            ErrorCode.VALIDATION_FAILED,
            ErrorType.VALIDATION,
            {"barcode": barcode, "error_count": len(self.errors)},
        )


class UnknownPanelSizeError(DomainError):
    """Raised when a panel size is not served by any production line."""

    def __init__(self, panel_size: object) -> None:
        self.panel_size = panel_size
        size = str(getattr(panel_size, "value", panel_size))
        super().__init__(
            f"Unknown panel size: {size}",
            ErrorCode.UNKNOWN_PANEL_SIZE,
            ErrorType.VALIDATION,
            {"panel_size": size},
        )


class UnknownStationError(DomainError):
    """Raised when a station identifier has no configuration."""

    def __init__(self, station_id: object) -> None:
        self.station_id = station_id
        name = str(getattr(station_id, "value", station_id))
        super().__init__(
            f"Unknown station: {name}",
            ErrorCode.UNKNOWN_STATION,
            ErrorType.VALIDATION,
            {"station_id": name},
        )


# Workflow lifecycle errors


class WorkflowNotFoundError(DomainError):
    def __init__(self, panel_id: str, action: str | None = None) -> None:
        self.panel_id = panel_id
        super().__init__(
            f"No workflow found for panel {panel_id}",
            ErrorCode.WORKFLOW_NOT_FOUND,
            ErrorType.NOT_FOUND,
            {"panel_id": panel_id, "action": action},
        )


class DuplicatePanelError(DomainError):
    def __init__(self, panel_id: str) -> None:
        self.panel_id = panel_id
        super().__init__(
            f"Workflow already exists for panel {panel_id}",
            ErrorCode.DUPLICATE_PANEL,
            ErrorType.CONFLICT,
            {"panel_id": panel_id, "action": "initialize"},
        )


class InvalidTransitionError(DomainError):
    """Raised when a state change is not an edge of the workflow graph."""

    def __init__(
        self,
        panel_id: str,
        current_state: str,
        target_state: str,
        action: str = "transition",
    ) -> None:
        self.panel_id = panel_id
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Panel {panel_id} cannot move from {current_state} to {target_state}",
            ErrorCode.INVALID_TRANSITION,
            ErrorType.BUSINESS_RULE,
            {
                "panel_id": panel_id,
                "action": action,
                "current_state": current_state,
                "target_state": target_state,
            },
        )


class InvalidReworkTargetError(DomainError):
    def __init__(self, panel_id: str, current_state: str, target: str) -> None:
        self.panel_id = panel_id
        self.current_state = current_state
        self.target = target
        super().__init__(
            f"Panel {panel_id} cannot be reworked to {target} from {current_state}",
            ErrorCode.INVALID_REWORK_TARGET,
            ErrorType.BUSINESS_RULE,
            {
                "panel_id": panel_id,
                "action": "rework",
                "current_state": current_state,
                "target": target,
            },
        )


class NotAtFinalStationError(DomainError):
    def __init__(self, panel_id: str, current_state: str) -> None:
        self.panel_id = panel_id
        self.current_state = current_state
        super().__init__(
            f"Panel {panel_id} is at {current_state}, not at the final station",
            ErrorCode.NOT_AT_FINAL_STATION,
            ErrorType.BUSINESS_RULE,
            {"panel_id": panel_id, "action": "complete", "current_state": current_state},
        )


# Inspection payload errors


class MissingCriteriaError(DomainError):
    """Raised when an inspection carries none of the station's required criteria."""

    def __init__(self, panel_id: str, station_id: str, missing: list[str]) -> None:
        self.panel_id = panel_id
        self.station_id = station_id
        self.missing = list(missing)
        super().__init__(
            f"Inspection for panel {panel_id} at {station_id} is missing criteria: "
            + ", ".join(self.missing),
            ErrorCode.MISSING_CRITERIA,
            ErrorType.VALIDATION,
            {
                "panel_id": panel_id,
                "station_id": station_id,
                "missing": ",".join(self.missing),
            },
        )


class NotesRequiredError(DomainError):
    def __init__(self, panel_id: str, station_id: str) -> None:
        self.panel_id = panel_id
        self.station_id = station_id
        super().__init__(
            f"Station {station_id} requires notes when panel {panel_id} fails inspection",
            ErrorCode.NOTES_REQUIRED,
            ErrorType.VALIDATION,
            {"panel_id": panel_id, "station_id": station_id},
        )


# Manufacturing order errors


class TargetExceededError(DomainError):
    """Raised when progress would push an order past its target quantity."""

    def __init__(
        self, mo_id: str, target: int, completed: int, failed: int
    ) -> None:
        self.mo_id = mo_id
        self.target = target
        self.completed = completed
        self.failed = failed
        super().__init__(
            f"Order {mo_id} would exceed its target of {target} "
            f"(completed={completed}, failed={failed})",
            ErrorCode.TARGET_EXCEEDED,
            ErrorType.BUSINESS_RULE,
            {
                "mo_id": mo_id,
                "target": target,
                "completed": completed,
                "failed": failed,
            },
        )


class OrderNotFoundError(DomainError):
    def __init__(self, mo_id: str) -> None:
        self.mo_id = mo_id
        super().__init__(
            f"Manufacturing order {mo_id} not found",
            ErrorCode.ORDER_NOT_FOUND,
            ErrorType.NOT_FOUND,
            {"mo_id": mo_id},
        )


class DuplicateOrderError(DomainError):
    def __init__(self, mo_id: str) -> None:
        self.mo_id = mo_id
        super().__init__(
            f"Manufacturing order {mo_id} already registered",
            ErrorCode.DUPLICATE_ORDER,
            ErrorType.CONFLICT,
            {"mo_id": mo_id},
        )


class InvalidOrderStatusError(DomainError):
    def __init__(self, mo_id: str, current_status: str, action: str) -> None:
        self.mo_id = mo_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} order {mo_id} in status {current_status}",
            ErrorCode.INVALID_ORDER_STATUS,
            ErrorType.BUSINESS_RULE,
            {"mo_id": mo_id, "current_status": current_status, "action": action},
        )


class BarcodeNotInOrderError(DomainError):
    def __init__(self, barcode: str, mo_id: str) -> None:
        self.barcode = barcode
        self.mo_id = mo_id
        super().__init__(
            f"Barcode {barcode} does not belong to order {mo_id}",
            ErrorCode.BARCODE_NOT_IN_ORDER,
            ErrorType.BUSINESS_RULE,
            {"barcode": barcode, "mo_id": mo_id},
        )


class BarcodeRangeExhaustedError(DomainError):
    def __init__(self, mo_id: str, barcode_end: int) -> None:
        self.mo_id = mo_id
        self.barcode_end = barcode_end
        super().__init__(
            f"Order {mo_id} has no barcodes left (range ends at {barcode_end})",
            ErrorCode.BARCODE_RANGE_EXHAUSTED,
            ErrorType.BUSINESS_RULE,
            {"mo_id": mo_id, "barcode_end": barcode_end},
        )


# Storage errors


class ConcurrentModificationError(DomainError):
    """Raised when a compare-and-swap finds a newer version than expected."""

    def __init__(self, key: str, expected_version: int, actual_version: int) -> None:
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Record {key} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            ErrorCode.CONCURRENT_MODIFICATION,
            ErrorType.CONCURRENCY,
            {
                "key": key,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
