"""GeoTIFF export of the monthly composite stack."""

from __future__ import annotations

import json
import logging
import os
import pathlib
import shutil

import ee
import requests

from ndvi_monitor.config import Settings, get_settings
from ndvi_monitor.services.earth_engine import call_backend, to_ee_geometry
from ndvi_monitor.services.monthly import MonthlyStack
from ndvi_monitor.utils.errors import ExportTooLargeError
from ndvi_monitor.utils.geometry import AreaOfInterest

EXPORT_NODATA = -9999.0
CHUNK = int(os.getenv("EXPORT_CHUNK_MB", "1")) * 1024 * 1024

logger = logging.getLogger(__name__)


def band_name(label: str) -> str:
    return f"ndvi_{label.replace('-', '_')}"


def stack_image(stack: MonthlyStack) -> ee.Image:
    """One band per month, in month order."""
    bands = [image.rename(band_name(info.label)) for info, image in stack]
    return ee.Image.cat(bands)


def _check_max_pixels(aoi: AreaOfInterest, scale: float, settings: Settings) -> None:
    pixels = aoi.pixel_estimate(scale)
    if pixels > settings.max_pixels_for_direct:
        raise ExportTooLargeError(
            "export_too_large",
            "AOI too large for direct download; draw a smaller AOI.",
            ctx={"pixels": int(pixels), "limit": int(settings.max_pixels_for_direct)},
        )


def monthly_geotiff_url(
    stack: MonthlyStack,
    aoi: AreaOfInterest,
    *,
    scale: float | None = None,
    name: str | None = None,
    settings: Settings | None = None,
) -> str:
    """Construct a direct download URL for the 12-band GeoTIFF over the AOI bounding box."""
    settings = settings or get_settings()
    scale = scale or settings.export_scale
    _check_max_pixels(aoi, scale, settings)

    image = (
        stack_image(stack)
        .toFloat()
        .clip(to_ee_geometry(aoi))
        .unmask(EXPORT_NODATA, False)
    )
    params: dict[str, object] = {
        "name": name or f"ndvi_monthly_{stack.composite_year}",
        "region": json.dumps(aoi.bbox_geojson),
        "scale": scale,
        "filePerBand": False,
        "format": "GEO_TIFF",
    }
    url = call_backend(
        lambda: image.getDownloadURL(params),
        label="GeoTIFF download URL",
        settings=settings,
    )
    logger.info("GeoTIFF export ready for %s (%d bands)", params["name"], len(stack))
    return url


def download_geotiff(url: str, out_path: str | os.PathLike[str], timeout: int = 600) -> pathlib.Path:
    """Stream a GeoTIFF download to disk without buffering the entire payload."""
    target = pathlib.Path(out_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        with target.open("wb") as handle:
            shutil.copyfileobj(response.raw, handle, length=CHUNK)
    return target


__all__ = [
    "EXPORT_NODATA",
    "band_name",
    "download_geotiff",
    "monthly_geotiff_url",
    "stack_image",
]
