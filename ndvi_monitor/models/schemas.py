"""Pydantic schemas for NDVI Monitor API payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ndvi_monitor.services.analysis import AnalysisResult
from ndvi_monitor.services.sampler import ChartSpec, TimeSeries
from ndvi_monitor.services.session import AnalysisSession
from ndvi_monitor.utils.geometry import ComparisonPoint


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)


class YearsResponse(CamelModel):
    supported_years: List[int]
    default_year: int


class CreateSessionRequest(CamelModel):
    year: Optional[int] = None


class AoiRequest(CamelModel):
    aoi: Union[Dict[str, Any], List[float], List[List[float]]] = Field(
        description="GeoJSON Polygon/Feature, [min_lon, min_lat, max_lon, max_lat] or a vertex ring"
    )


class YearRequest(CamelModel):
    year: int


class ClickRequest(CamelModel):
    lon: float
    lat: float


class PointModel(CamelModel):
    name: str
    lon: float
    lat: float

    @classmethod
    def from_point(cls, point: ComparisonPoint) -> "PointModel":
        return cls(name=point.name, lon=point.lon, lat=point.lat)


class AoiModel(CamelModel):
    geometry: Dict[str, Any]
    bounds: List[float]
    area_ha: float


class SessionResponse(CamelModel):
    session_id: str
    state: str
    year: int
    aoi: Optional[AoiModel] = None
    points: List[PointModel] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: AnalysisSession) -> "SessionResponse":
        aoi = None
        if session.aoi is not None:
            aoi = AoiModel(
                geometry=session.aoi.geojson,
                bounds=list(session.aoi.bounds),
                area_ha=session.aoi.area_ha,
            )
        return cls(
            session_id=session.session_id,
            state=session.state.value,
            year=session.year,
            aoi=aoi,
            points=[PointModel.from_point(p) for p in session.points],
        )


class ClickResponse(CamelModel):
    accepted: bool
    point: Optional[PointModel] = None
    total_points: int
    state: str


class ChartModel(CamelModel):
    title: str
    h_axis: str
    v_axis: str
    legend: str

    @classmethod
    def from_spec(cls, spec: ChartSpec) -> "ChartModel":
        return cls(title=spec.title, h_axis=spec.h_axis, v_axis=spec.v_axis, legend=spec.legend)


class SeriesPointModel(CamelModel):
    timestamp: datetime
    month: int
    ndvi: Optional[float] = None


class SeriesModel(CamelModel):
    label: str
    points: List[SeriesPointModel]

    @classmethod
    def from_series(cls, series: TimeSeries) -> "SeriesModel":
        return cls(
            label=series.label,
            points=[
                SeriesPointModel(timestamp=p.timestamp, month=p.month, ndvi=p.value)
                for p in series.points
            ],
        )


class CompositeModel(CamelModel):
    month: int
    label: str
    timestamp: datetime
    image_count: Optional[int] = None


class AnalysisResponse(CamelModel):
    session_id: str
    year: int
    start: date
    end: date
    sources: List[str]
    composites: List[CompositeModel]
    area_chart: ChartModel
    area_series: SeriesModel
    points_chart: ChartModel
    point_series: List[SeriesModel]
    export_url: str
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "AnalysisResponse":
        return cls(
            session_id=result.session_id,
            year=result.year,
            start=result.window.start,
            end=result.window.end,
            sources=[d.catalog_id for d in result.window.sources],
            composites=[
                CompositeModel(
                    month=c.month,
                    label=c.label,
                    timestamp=c.timestamp,
                    image_count=c.image_count,
                )
                for c in result.composites
            ],
            area_chart=ChartModel.from_spec(result.area_chart),
            area_series=SeriesModel.from_series(result.area_series),
            points_chart=ChartModel.from_spec(result.points_chart),
            point_series=[SeriesModel.from_series(s) for s in result.point_series],
            export_url=result.export_url,
            warnings=result.warnings,
        )
