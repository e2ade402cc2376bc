"""End-to-end monthly NDVI analysis for one session."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List

import ee
from google.auth.exceptions import GoogleAuthError

from ndvi_monitor.config import CompositeYearPolicy, Settings, get_settings
from ndvi_monitor.services.earth_engine import (
    EarthEngineCredentialsError,
    ensure_ee,
    to_ee_geometry,
)
from ndvi_monitor.services.export import monthly_geotiff_url
from ndvi_monitor.services.monthly import (
    CompositeInfo,
    aggregate_monthly,
    monthly_image_counts,
)
from ndvi_monitor.services.ndvi import build_ndvi_collection
from ndvi_monitor.services.sampler import (
    AREA_CHART,
    POINTS_CHART,
    ChartSpec,
    TimeSeries,
    area_series,
    point_series,
)
from ndvi_monitor.services.session import AnalysisSession
from ndvi_monitor.services.sources import AnalysisWindow, select_sources
from ndvi_monitor.utils.errors import BackendQueryError, EmptyResultWarning, RunDiagnostics

logger = logging.getLogger(__name__)

MISSING_AOI_MESSAGE = "Please draw an AOI before running the analysis."


@dataclass
class AnalysisResult:
    session_id: str
    year: int
    window: AnalysisWindow
    composites: List[CompositeInfo]
    area_series: TimeSeries
    point_series: List[TimeSeries]
    export_url: str
    area_chart: ChartSpec = AREA_CHART
    points_chart: ChartSpec = POINTS_CHART
    warnings: List[str] = field(default_factory=list)
    diagnostics: Dict[str, Any] = field(default_factory=dict)


def _initialise_backend(settings: Settings) -> None:
    try:
        ensure_ee(settings)
    except (ee.EEException, GoogleAuthError, EarthEngineCredentialsError) as exc:
        logger.error("Earth Engine initialisation failed: %s", exc)
        raise BackendQueryError(
            "backend_unavailable",
            f"Earth Engine initialisation failed: {exc}",
            hints="Check GOOGLE_APPLICATION_CREDENTIALS and GCP_PROJECT.",
        ) from exc


def run_analysis(session: AnalysisSession, settings: Settings | None = None) -> AnalysisResult:
    """Run the monthly NDVI pipeline for ``session`` without mutating it."""
    settings = settings or get_settings()
    diag = RunDiagnostics()
    diag.require(session.aoi is not None, "missing_aoi", MISSING_AOI_MESSAGE)

    window = select_sources(session.year, settings)
    aoi = session.aoi
    points = list(session.points)
    logger.info(
        "Session %s: analysing %s with %d comparison point(s)",
        session.session_id,
        window.year,
        len(points),
    )

    _initialise_backend(settings)
    geometry = to_ee_geometry(aoi)
    collection = build_ndvi_collection(window, geometry)
    stack = aggregate_monthly(
        collection,
        window.year,
        year_policy=settings.composite_year_policy,
        filter_policy=settings.month_filter_policy,
    )
    counts = monthly_image_counts(
        collection,
        window.year,
        filter_policy=settings.month_filter_policy,
        settings=settings,
    )
    stack = stack.with_counts(counts)
    diag.record("composites", counts=counts, composite_year=stack.composite_year)

    if settings.composite_year_policy is CompositeYearPolicy.FOLLOWING_YEAR:
        diag.warn(
            f"Composites for {window.year} are dated {stack.composite_year} "
            "(composite_year_policy=following_year)."
        )
    for info in stack.infos:
        if info.image_count == 0:
            message = f"No images for month {info.month:02d}; composite {info.label} is fully masked."
            logger.warning(message)
            warnings.warn(message, EmptyResultWarning, stacklevel=2)
            diag.warn(message)

    area = area_series(stack, geometry, settings=settings)
    per_point = point_series(stack, points, settings=settings)
    diag.record(
        "sampling",
        area_values=sum(1 for p in area.points if p.value is not None),
        point_series=len(per_point),
    )

    export_url = monthly_geotiff_url(stack, aoi, settings=settings)
    diag.record("export", scale=settings.export_scale, bands=len(stack))

    return AnalysisResult(
        session_id=session.session_id,
        year=window.year,
        window=window,
        composites=list(stack.infos),
        area_series=area,
        point_series=per_point,
        export_url=export_url,
        warnings=diag.warnings,
        diagnostics=diag.diagnostics_payload(),
    )
