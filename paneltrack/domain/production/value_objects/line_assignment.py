"""Production line assignment value object."""

from pydantic import Field, model_validator
from typing_extensions import Self

from ...shared.base import ValueObject
from .enums import PanelSize


class LineAssignment(ValueObject):
    """Line and inclusive station range serving a panel size."""

    line_number: int = Field(ge=1, le=2)
    line_name: str
    station_range: tuple[int, int]
    panel_size: PanelSize

    @model_validator(mode="after")
    def _check_station_range(self) -> Self:
        first, last = self.station_range
        if first < 1 or last < first:
            raise ValueError(f"invalid station range {self.station_range}")
        return self

    @property
    def stations(self) -> list[int]:
        first, last = self.station_range
        return list(range(first, last + 1))
