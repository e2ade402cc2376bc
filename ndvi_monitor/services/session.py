"""Per-analysis session state and the in-memory session store."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from ndvi_monitor.config import Settings, get_settings
from ndvi_monitor.services.sources import validate_year
from ndvi_monitor.utils.errors import SessionNotFoundError
from ndvi_monitor.utils.geometry import AreaOfInterest, ComparisonPoint, validate_lonlat

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_POINT_CLICK = "awaiting_point_click"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AnalysisSession:
    """Everything one user's analysis needs: the AOI, the year and the comparison points.

    Point capture is an explicit state machine. ``begin_point_capture`` arms a
    single click, ``handle_map_click`` consumes it and returns to ``IDLE``.
    """

    session_id: str = field(default_factory=lambda: uuid4().hex)
    year: int = 2022
    aoi: Optional[AreaOfInterest] = None
    points: List[ComparisonPoint] = field(default_factory=list)
    state: SessionState = SessionState.IDLE
    point_counter: int = 0
    created_at: datetime = field(default_factory=_now)
    last_used: datetime = field(default_factory=_now)

    def touch(self) -> None:
        self.last_used = _now()

    def draw_aoi(self, geometry: Any) -> AreaOfInterest:
        aoi = AreaOfInterest.from_input(geometry)
        self.aoi = aoi
        self.touch()
        logger.info("Session %s AOI set (%.2f ha)", self.session_id, aoi.area_ha)
        return aoi

    def select_year(self, year: int, supported: Sequence[int]) -> int:
        self.year = validate_year(year, list(supported))
        self.touch()
        return self.year

    def begin_point_capture(self) -> SessionState:
        # Re-arming while armed must not queue a second click.
        self.state = SessionState.AWAITING_POINT_CLICK
        self.touch()
        return self.state

    def cancel_point_capture(self) -> SessionState:
        self.state = SessionState.IDLE
        self.touch()
        return self.state

    def handle_map_click(self, lon: float, lat: float) -> Optional[ComparisonPoint]:
        self.touch()
        if self.state is not SessionState.AWAITING_POINT_CLICK:
            logger.debug("Session %s ignored click while %s", self.session_id, self.state.value)
            return None
        lon_f, lat_f = validate_lonlat(lon, lat)
        self.point_counter += 1
        point = ComparisonPoint(name=f"Point {self.point_counter}", lon=lon_f, lat=lat_f)
        self.points.append(point)
        self.state = SessionState.IDLE
        logger.info("Session %s added %s; total points: %d", self.session_id, point.name, len(self.points))
        return point


class SessionStore:
    def __init__(self, ttl: timedelta):
        self._ttl = ttl
        self._sessions: Dict[str, AnalysisSession] = {}
        self._lock = threading.Lock()

    def _cleanup(self) -> None:
        cutoff = _now() - self._ttl
        expired = [sid for sid, s in self._sessions.items() if s.last_used < cutoff]
        for sid in expired:
            self._sessions.pop(sid, None)
        if expired:
            logger.info("Expired %d idle session(s)", len(expired))

    def create(self, year: int) -> AnalysisSession:
        session = AnalysisSession(year=year)
        with self._lock:
            self._cleanup()
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> AnalysisSession:
        with self._lock:
            self._cleanup()
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(
                "session_not_found", f"Session {session_id} not found or expired."
            )
        return session

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


_STORE: Optional[SessionStore] = None
_STORE_LOCK = threading.Lock()


def get_session_store(settings: Settings | None = None) -> SessionStore:
    global _STORE
    with _STORE_LOCK:
        if _STORE is None:
            settings = settings or get_settings()
            _STORE = SessionStore(timedelta(minutes=settings.session_ttl_minutes))
        return _STORE


def reset_session_store() -> None:
    global _STORE
    with _STORE_LOCK:
        _STORE = None
