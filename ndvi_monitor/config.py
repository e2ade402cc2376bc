"""Application configuration driven by environment variables."""

from enum import Enum
from functools import lru_cache
from typing import Iterable

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CompositeYearPolicy(str, Enum):
    """Calendar year stamped on the monthly composites.

    ``FOLLOWING_YEAR`` dates the composites of year Y as January..December
    of Y + 1, matching the charts of the Earth Engine dashboard.
    """

    FOLLOWING_YEAR = "following_year"
    ANALYSIS_YEAR = "analysis_year"


class MonthFilterPolicy(str, Enum):
    """How images are assigned to a month before compositing."""

    CALENDAR_MONTH = "calendar_month"
    YEAR_BOUNDED = "year_bounded"


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        enable_decoding=False,
        extra="ignore",
    )

    gcp_project: str | None = None
    google_credentials_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_APPLICATION_CREDENTIALS", "google_credentials_path"
        ),
    )
    cors_origins: list[str] = Field(default_factory=list)

    supported_years: list[int] = Field(
        default_factory=lambda: [2020, 2021, 2022, 2023, 2024]
    )
    default_year: int = 2022
    sample_scale: int = 30
    export_scale: int = 30
    composite_year_policy: CompositeYearPolicy = CompositeYearPolicy.FOLLOWING_YEAR
    month_filter_policy: MonthFilterPolicy = MonthFilterPolicy.CALENDAR_MONTH

    backend_max_retries: int = Field(default=2, ge=0, le=5)
    backend_retry_backoff_seconds: float = Field(default=0.5, ge=0)
    ee_reduce_max_pixels: float = 1e9
    max_pixels_for_direct: float = 3e7
    session_ttl_minutes: int = 120
    log_level: str = "INFO"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | Iterable[str] | None) -> list[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return [origin.strip() for origin in value if origin.strip()]

    @field_validator("supported_years", mode="before")
    @classmethod
    def _split_years(cls, value: str | Iterable[int | str] | None) -> list[int]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            value = [part for part in value.split(",") if part.strip()]
        return sorted({int(str(year).strip()) for year in value})

    @model_validator(mode="after")
    def _default_year_supported(self) -> "Settings":
        if self.supported_years and self.default_year not in self.supported_years:
            raise ValueError(
                f"default_year {self.default_year} is not one of {self.supported_years}"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
