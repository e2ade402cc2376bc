"""Earth Engine initialisation and guarded backend calls."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Sequence, TypeVar

import ee
import requests
from google.oauth2 import service_account

from ndvi_monitor.config import Settings, get_settings
from ndvi_monitor.utils.errors import BackendQueryError
from ndvi_monitor.utils.geometry import AreaOfInterest, ComparisonPoint

_EE_INIT_LOCK = threading.Lock()
_EE_INITIALISED = False

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EarthEngineCredentialsError(RuntimeError):
    """Raised when Earth Engine credentials cannot be loaded."""


def _load_service_account_credentials(settings: Settings) -> service_account.Credentials | None:
    """Service-account credentials, or ``None`` when no key file is configured."""
    credentials_path = settings.google_credentials_path
    if not credentials_path:
        return None

    path = Path(credentials_path)
    if not path.exists():
        raise EarthEngineCredentialsError(
            f"Earth Engine credential file not found: {path}"
        )

    try:
        with path.open("r", encoding="utf-8") as handle:
            info = json.load(handle)
    except (OSError, ValueError) as exc:
        raise EarthEngineCredentialsError(
            f"Earth Engine credential file is unreadable: {path} ({exc})"
        ) from exc
    if not isinstance(info, dict) or not info.get("client_email"):
        raise EarthEngineCredentialsError("Service account key missing client_email.")

    return service_account.Credentials.from_service_account_file(
        str(path), scopes=["https://www.googleapis.com/auth/earthengine"]
    )


def ensure_ee(settings: Settings | None = None) -> None:
    """Initialise the Earth Engine client exactly once."""
    global _EE_INITIALISED
    if _EE_INITIALISED:
        return

    with _EE_INIT_LOCK:
        if _EE_INITIALISED:
            return

        settings = settings or get_settings()
        credentials = _load_service_account_credentials(settings)
        if credentials is None:
            logger.info("GOOGLE_APPLICATION_CREDENTIALS not set; using default Earth Engine credentials")
            ee.Initialize(project=settings.gcp_project)
        else:
            ee.Initialize(credentials, project=settings.gcp_project)
        _EE_INITIALISED = True
        logger.info("Earth Engine initialised (project=%s)", settings.gcp_project)


def reset_ee() -> None:
    global _EE_INITIALISED
    with _EE_INIT_LOCK:
        _EE_INITIALISED = False


def to_ee_geometry(aoi: AreaOfInterest) -> ee.Geometry:
    """Convert a validated AOI into an ee.Geometry polygon."""
    return ee.Geometry(aoi.geojson)


def points_feature_collection(points: Sequence[ComparisonPoint]) -> ee.FeatureCollection:
    features = [
        ee.Feature(ee.Geometry.Point(point.coordinates), {"name": point.name})
        for point in points
    ]
    return ee.FeatureCollection(features)


def _retryable_errors() -> tuple[type[BaseException], ...]:
    return (ee.EEException, requests.RequestException, TimeoutError, ConnectionError)


def call_backend(
    func: Callable[[], T],
    *,
    label: str,
    settings: Settings | None = None,
) -> T:
    """Run an idempotent backend read, retrying transient failures a bounded number of times."""
    settings = settings or get_settings()
    attempts = settings.backend_max_retries + 1
    last_exc: BaseException | None = None
    for attempt in range(attempts):
        try:
            return func()
        except _retryable_errors() as exc:
            last_exc = exc
            if attempt < attempts - 1:
                delay = settings.backend_retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Backend query '%s' failed (attempt %d/%d): %s; retrying in %.1fs",
                    label,
                    attempt + 1,
                    attempts,
                    exc,
                    delay,
                )
                if delay:
                    time.sleep(delay)
    logger.error("Backend query '%s' failed after %d attempts: %s", label, attempts, last_exc)
    raise BackendQueryError(
        "backend_query_failed",
        f"Imagery backend query '{label}' failed: {last_exc}",
        hints="Check the Earth Engine connection and re-run the analysis.",
        ctx={"attempts": attempts},
    ) from last_exc


def get_info(obj: Any, *, label: str, settings: Settings | None = None) -> Any:
    """Evaluate a server-side object with ``getInfo`` through :func:`call_backend`."""
    return call_backend(obj.getInfo, label=label, settings=settings)


def backend_health(settings: Settings | None = None) -> dict[str, Any]:
    ensure_ee(settings)
    formatted = get_info(ee.Date(0).format(), label="health check", settings=settings)
    return {"ok": True, "epoch": formatted}
