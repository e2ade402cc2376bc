from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import ee

from ndvi_monitor.config import Settings, get_settings
from ndvi_monitor.services.earth_engine import get_info, points_feature_collection
from ndvi_monitor.services.monthly import MonthlyStack
from ndvi_monitor.services.ndvi import NDVI_BAND
from ndvi_monitor.utils.geometry import ComparisonPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartSpec:
    title: str
    h_axis: str = "Month"
    v_axis: str = "NDVI"
    legend: str = "none"


AREA_CHART = ChartSpec(title="NDVI Trends Over Time (AOI)", legend="none")
POINTS_CHART = ChartSpec(title="NDVI Comparison for Points", legend="right")


@dataclass(frozen=True)
class SeriesPoint:
    timestamp: datetime
    month: int
    value: Optional[float]


@dataclass
class TimeSeries:
    label: str
    points: List[SeriesPoint] = field(default_factory=list)

    def to_rows(self) -> List[Dict[str, Any]]:
        return [
            {
                "series": self.label,
                "date": point.timestamp.date().isoformat(),
                "month": point.month,
                "ndvi": point.value,
            }
            for point in self.points
        ]


def _safe_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def _extract_value(result: Any, band_name: str) -> Optional[float]:
    if isinstance(result, Mapping):
        for key in (band_name, "mean"):
            if key in result:
                return _safe_number(result[key])
        return None
    return _safe_number(result)


def area_series(
    stack: MonthlyStack,
    geometry: ee.Geometry,
    *,
    scale: int | None = None,
    settings: Settings | None = None,
) -> TimeSeries:
    """Spatial mean NDVI over the AOI, one point per month; masked months are ``None``."""
    settings = settings or get_settings()
    scale = scale or settings.sample_scale
    series = TimeSeries(label="AOI")
    for info, image in stack:
        reduced = image.reduceRegion(
            reducer=ee.Reducer.mean(),
            geometry=geometry,
            scale=scale,
            bestEffort=True,
            maxPixels=settings.ee_reduce_max_pixels,
        )
        result = get_info(reduced, label=f"AOI mean {info.label}", settings=settings)
        value = _extract_value(result, NDVI_BAND)
        if value is None:
            logger.debug("AOI mean for %s is masked", info.label)
        series.points.append(SeriesPoint(info.timestamp, info.month, value))
    return series


def point_series(
    stack: MonthlyStack,
    points: Sequence[ComparisonPoint],
    *,
    scale: int | None = None,
    settings: Settings | None = None,
) -> List[TimeSeries]:
    """One series per comparison point, labelled with the point name."""
    if not points:
        return []
    settings = settings or get_settings()
    scale = scale or settings.sample_scale
    collection = points_feature_collection(points)
    by_name: Dict[str, TimeSeries] = {point.name: TimeSeries(label=point.name) for point in points}

    for info, image in stack:
        sampled = image.reduceRegions(
            collection=collection,
            reducer=ee.Reducer.mean(),
            scale=scale,
        )
        payload = get_info(sampled, label=f"point values {info.label}", settings=settings) or {}
        values: Dict[str, Optional[float]] = {}
        for feature in payload.get("features", []):
            props = feature.get("properties") or {}
            values[props.get("name")] = _extract_value(props, NDVI_BAND)
        for name, series in by_name.items():
            series.points.append(SeriesPoint(info.timestamp, info.month, values.get(name)))

    return [by_name[point.name] for point in points]


__all__ = [
    "AREA_CHART",
    "POINTS_CHART",
    "ChartSpec",
    "SeriesPoint",
    "TimeSeries",
    "area_series",
    "point_series",
]
