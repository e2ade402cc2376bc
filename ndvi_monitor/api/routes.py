from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, HTTPException, Response

from ndvi_monitor.config import get_settings
from ndvi_monitor.models.schemas import (
    AnalysisResponse,
    AoiRequest,
    ClickRequest,
    ClickResponse,
    CreateSessionRequest,
    PointModel,
    SessionResponse,
    YearRequest,
    YearsResponse,
)
from ndvi_monitor.services import analysis
from ndvi_monitor.services.earth_engine import backend_health
from ndvi_monitor.services.session import AnalysisSession, get_session_store
from ndvi_monitor.utils.errors import (
    BackendQueryError,
    NdviMonitorError,
    SessionNotFoundError,
    UserInputError,
)

logger = logging.getLogger(__name__)

health_router = APIRouter()
router = APIRouter(prefix="/api", tags=["ndvi"])


def _raise_http(exc: NdviMonitorError) -> NoReturn:
    if isinstance(exc, SessionNotFoundError):
        status = 404
    elif isinstance(exc, UserInputError):
        status = 400
    elif isinstance(exc, BackendQueryError):
        status = 502
    else:  # pragma: no cover - every subclass is mapped above
        status = 500
    raise HTTPException(status_code=status, detail=exc.payload()) from exc


def _session(session_id: str) -> AnalysisSession:
    try:
        return get_session_store().get(session_id)
    except SessionNotFoundError as exc:
        _raise_http(exc)


@health_router.get("/ee/health")
def ee_health():
    try:
        return backend_health()
    except BackendQueryError as exc:
        _raise_http(exc)


@router.get("/years", response_model=YearsResponse)
def years() -> YearsResponse:
    settings = get_settings()
    return YearsResponse(supported_years=settings.supported_years, default_year=settings.default_year)


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(req: CreateSessionRequest | None = None) -> SessionResponse:
    settings = get_settings()
    session = get_session_store().create(settings.default_year)
    if req is not None and req.year is not None:
        try:
            session.select_year(req.year, settings.supported_years)
        except UserInputError as exc:
            _raise_http(exc)
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str) -> SessionResponse:
    return SessionResponse.from_session(_session(session_id))


@router.put("/sessions/{session_id}/aoi", response_model=SessionResponse)
def draw_aoi(session_id: str, req: AoiRequest) -> SessionResponse:
    session = _session(session_id)
    try:
        session.draw_aoi(req.aoi)
    except UserInputError as exc:
        _raise_http(exc)
    return SessionResponse.from_session(session)


@router.put("/sessions/{session_id}/year", response_model=SessionResponse)
def select_year(session_id: str, req: YearRequest) -> SessionResponse:
    session = _session(session_id)
    try:
        session.select_year(req.year, get_settings().supported_years)
    except UserInputError as exc:
        _raise_http(exc)
    return SessionResponse.from_session(session)


@router.post("/sessions/{session_id}/point-capture", response_model=SessionResponse)
def begin_point_capture(session_id: str) -> SessionResponse:
    session = _session(session_id)
    session.begin_point_capture()
    return SessionResponse.from_session(session)


@router.delete("/sessions/{session_id}/point-capture", response_model=SessionResponse)
def cancel_point_capture(session_id: str) -> SessionResponse:
    session = _session(session_id)
    session.cancel_point_capture()
    return SessionResponse.from_session(session)


@router.post("/sessions/{session_id}/clicks", response_model=ClickResponse)
def map_click(session_id: str, req: ClickRequest) -> ClickResponse:
    session = _session(session_id)
    try:
        point = session.handle_map_click(req.lon, req.lat)
    except UserInputError as exc:
        _raise_http(exc)
    return ClickResponse(
        accepted=point is not None,
        point=PointModel.from_point(point) if point is not None else None,
        total_points=len(session.points),
        state=session.state.value,
    )


@router.post("/sessions/{session_id}/analysis", response_model=AnalysisResponse)
def run_analysis(session_id: str, response: Response) -> AnalysisResponse:
    session = _session(session_id)
    try:
        result = analysis.run_analysis(session)
    except NdviMonitorError as exc:
        logger.info("Analysis for session %s rejected: %s", session_id, exc)
        _raise_http(exc)
    if result.warnings:
        response.headers["X-NDVI-Warnings"] = str(len(result.warnings))
    return AnalysisResponse.from_result(result)
