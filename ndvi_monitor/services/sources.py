"""Imagery sources and the analysis date window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Tuple

from ndvi_monitor.config import Settings, get_settings
from ndvi_monitor.utils.errors import UserInputError


class Calibration(str, Enum):
    NONE = "none"
    PER_BAND_GAIN_OFFSET = "per_band_gain_offset"


@dataclass(frozen=True)
class ImageSourceDescriptor:
    code: str
    catalog_id: str
    band_pattern: str
    calibration: Calibration
    nir_band: str
    red_band: str
    gain_property: str | None = None
    offset_property: str | None = None
    scale_factor: float | None = None

    def __post_init__(self) -> None:
        if self.calibration is Calibration.PER_BAND_GAIN_OFFSET:
            if not (self.gain_property and self.offset_property):
                raise ValueError(f"{self.code}: gain/offset properties are required")
        elif self.scale_factor is None:
            raise ValueError(f"{self.code}: scale_factor is required for uncalibrated sources")


LANDSAT8 = ImageSourceDescriptor(
    code="landsat8",
    catalog_id="LANDSAT/LC08/C02/T1_L2",
    band_pattern="SR_B[2-5]",
    calibration=Calibration.PER_BAND_GAIN_OFFSET,
    nir_band="SR_B5",
    red_band="SR_B4",
    gain_property="REFLECTANCE_MULT_BAND_4",
    offset_property="REFLECTANCE_ADD_BAND_4",
)

LANDSAT9 = ImageSourceDescriptor(
    code="landsat9",
    catalog_id="LANDSAT/LC09/C02/T1_L2",
    band_pattern="SR_B[2-5]",
    calibration=Calibration.PER_BAND_GAIN_OFFSET,
    nir_band="SR_B5",
    red_band="SR_B4",
    gain_property="REFLECTANCE_MULT_BAND_4",
    offset_property="REFLECTANCE_ADD_BAND_4",
)

SENTINEL2 = ImageSourceDescriptor(
    code="sentinel2",
    catalog_id="COPERNICUS/S2_SR_HARMONIZED",
    band_pattern="B.*",
    calibration=Calibration.NONE,
    nir_band="B8",
    red_band="B4",
    scale_factor=0.0001,
)

# Merge order of the NDVI collection.
SOURCE_DESCRIPTORS: Tuple[ImageSourceDescriptor, ...] = (LANDSAT8, LANDSAT9, SENTINEL2)


@dataclass(frozen=True)
class AnalysisWindow:
    year: int
    start: date
    end: date
    sources: Tuple[ImageSourceDescriptor, ...]

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()


def validate_year(year: int, supported: list[int]) -> int:
    try:
        value = int(year)
    except (TypeError, ValueError) as exc:
        raise UserInputError("unsupported_year", f"Year must be an integer, got {year!r}") from exc
    if value not in supported:
        raise UserInputError(
            "unsupported_year",
            f"Year {value} is not supported",
            hints=f"Choose one of {', '.join(str(y) for y in supported)}.",
            ctx={"supported_years": list(supported)},
        )
    return value


def select_sources(year: int, settings: Settings | None = None) -> AnalysisWindow:
    """Return the ``[Jan 1 year, Jan 1 year+1)`` window and the imagery sources."""
    settings = settings or get_settings()
    value = validate_year(year, settings.supported_years)
    return AnalysisWindow(
        year=value,
        start=date(value, 1, 1),
        end=date(value + 1, 1, 1),
        sources=SOURCE_DESCRIPTORS,
    )
