import re
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

VALID_FACTORY_CODES = ("W", "B", "T")
VALID_BATCH_CODES = ("T", "W", "B")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PANELTRACK_",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Barcode rules
    COMPANY_PREFIX: str = "CRS"
    YEAR_WINDOW: int = 1
    DEFAULT_FACTORY_CODE: str = "W"
    DEFAULT_BATCH_CODE: str = "T"

    # Manufacturing order alert thresholds
    MO_PANELS_REMAINING_ALERT: int = 50
    MO_LOW_PROGRESS_ALERT: float = 25.0
    MO_HIGH_FAILURE_RATE_ALERT: float = 10.0

    EVENT_HISTORY_SIZE: int = 1000

    @field_validator("COMPANY_PREFIX")
    @classmethod
    def _check_company_prefix(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Z]{3}", v):
            raise ValueError("COMPANY_PREFIX must be exactly 3 uppercase letters")
        return v

    @field_validator("YEAR_WINDOW", "MO_PANELS_REMAINING_ALERT", "EVENT_HISTORY_SIZE")
    @classmethod
    def _check_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value cannot be negative")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def _check_default_codes(self) -> Self:
        if self.DEFAULT_FACTORY_CODE not in VALID_FACTORY_CODES:
            raise ValueError(
                f"DEFAULT_FACTORY_CODE must be one of {', '.join(VALID_FACTORY_CODES)}"
            )
        if self.DEFAULT_BATCH_CODE not in VALID_BATCH_CODES:
            raise ValueError(
                f"DEFAULT_BATCH_CODE must be one of {', '.join(VALID_BATCH_CODES)}"
            )
        return self

    @property
    def json_logs(self) -> bool:
        # Anything deployed logs machine-readable lines
        return self.LOG_JSON or self.ENVIRONMENT != "local"


settings = Settings()  # type: ignore
