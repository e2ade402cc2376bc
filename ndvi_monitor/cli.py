from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

import requests

from ndvi_monitor.config import get_settings
from ndvi_monitor.models.schemas import AnalysisResponse
from ndvi_monitor.services.analysis import run_analysis
from ndvi_monitor.services.export import download_geotiff
from ndvi_monitor.services.sampler import TimeSeries
from ndvi_monitor.services.session import AnalysisSession
from ndvi_monitor.utils.errors import BackendQueryError, UserInputError
from ndvi_monitor.utils.logging_colors import configure_logging

logger = logging.getLogger("ndvi_monitor.cli")

EXIT_USER_ERROR = 2
EXIT_BACKEND_ERROR = 1


def _parse_aoi(value: str) -> Any:
    path = Path(value)
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    try:
        return [float(part) for part in value.split(",")]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"--aoi must be a GeoJSON file or min_lon,min_lat,max_lon,max_lat: {value}"
        ) from exc


def _parse_point(value: str) -> tuple[float, float]:
    try:
        lon, lat = (float(part) for part in value.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"--point must be LON,LAT: {value}") from exc
    return lon, lat


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        "ndvi-monitor", description="Monthly NDVI composites for an area of interest"
    )
    parser.add_argument("--aoi", required=True, type=_parse_aoi, help="GeoJSON file or bbox")
    parser.add_argument("--year", type=int, default=None, help="Analysis year")
    parser.add_argument(
        "--point",
        action="append",
        type=_parse_point,
        default=[],
        help="Comparison point LON,LAT (repeatable)",
    )
    parser.add_argument("--csv-dir", type=Path, default=None, help="Write chart series as CSV")
    parser.add_argument("--download", type=Path, default=None, help="Save the GeoTIFF here")
    parser.add_argument("--log-level", default=None)
    return parser


def write_series_csv(path: Path, series: Sequence[TimeSeries]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=["series", "date", "month", "ndvi"])
        writer.writeheader()
        for item in series:
            writer.writerows(item.to_rows())
    return path


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    session = AnalysisSession(year=settings.default_year)
    try:
        session.draw_aoi(args.aoi)
        if args.year is not None:
            session.select_year(args.year, settings.supported_years)
        for lon, lat in args.point:
            session.begin_point_capture()
            session.handle_map_click(lon, lat)
        result = run_analysis(session, settings)
    except UserInputError as exc:
        logger.error("%s", exc)
        return EXIT_USER_ERROR
    except BackendQueryError as exc:
        logger.error("%s", exc)
        return EXIT_BACKEND_ERROR

    if args.csv_dir is not None:
        write_series_csv(args.csv_dir / "ndvi_aoi.csv", [result.area_series])
        if result.point_series:
            write_series_csv(args.csv_dir / "ndvi_points.csv", result.point_series)

    if args.download is not None:
        try:
            saved = download_geotiff(result.export_url, args.download)
        except requests.RequestException as exc:
            logger.error("GeoTIFF download failed: %s", exc)
            return EXIT_BACKEND_ERROR
        logger.info("GeoTIFF saved to %s", saved)

    payload = AnalysisResponse.from_result(result).model_dump(mode="json", by_alias=True)
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
