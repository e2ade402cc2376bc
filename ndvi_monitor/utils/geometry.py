"""Geometry helpers for the area of interest and comparison points."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from pyproj import Transformer
from shapely.geometry import Polygon, box, mapping, shape
from shapely.ops import transform as shp_transform

from ndvi_monitor.utils.errors import UserInputError

# World Cylindrical Equal Area, valid for AOIs anywhere on the globe.
_EQUAL_AREA_TRANSFORMER = Transformer.from_crs("EPSG:4326", "EPSG:6933", always_xy=True)


def validate_lonlat(lon: float, lat: float) -> tuple[float, float]:
    try:
        lon_f, lat_f = float(lon), float(lat)
    except (TypeError, ValueError) as exc:
        raise UserInputError("invalid_coordinates", f"Coordinates must be numeric: {lon!r}, {lat!r}") from exc
    if not (-180.0 <= lon_f <= 180.0) or not (-90.0 <= lat_f <= 90.0):
        raise UserInputError(
            "invalid_coordinates",
            f"Coordinates out of range: lon={lon_f}, lat={lat_f}",
            hints="Longitude must be within [-180, 180] and latitude within [-90, 90].",
        )
    return lon_f, lat_f


def _unwrap_geojson(value: Mapping[str, Any]) -> Mapping[str, Any]:
    geo_type = value.get("type")
    if geo_type == "FeatureCollection":
        features = value.get("features") or []
        if len(features) != 1:
            raise UserInputError(
                "invalid_aoi", "AOI FeatureCollection must contain exactly one feature"
            )
        return _unwrap_geojson(features[0])
    if geo_type == "Feature":
        inner = value.get("geometry")
        if not isinstance(inner, Mapping):
            raise UserInputError("invalid_aoi", "AOI feature is missing a geometry")
        return inner
    return value


def _vertex(pt: Any) -> tuple[float, float]:
    if (
        not isinstance(pt, Sequence)
        or isinstance(pt, (str, bytes))
        or len(pt) < 2
        or not all(isinstance(v, (int, float)) for v in pt[:2])
    ):
        raise UserInputError("invalid_aoi", f"AOI vertex must be [lon, lat], got {pt!r}")
    return validate_lonlat(pt[0], pt[1])


def polygon_from_input(value: Any) -> Polygon:
    """Build a validated polygon from GeoJSON, a bbox list or a coordinate ring."""
    if isinstance(value, Mapping):
        geom_input = _unwrap_geojson(value)
        if geom_input.get("type") != "Polygon":
            raise UserInputError(
                "invalid_aoi",
                f"AOI must be a single Polygon, got {geom_input.get('type')!r}",
            )
        try:
            geom = shape(geom_input)
        except (ValueError, TypeError, KeyError, IndexError) as exc:
            raise UserInputError("invalid_aoi", f"Invalid AOI geometry: {exc}") from exc
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        if all(isinstance(v, (int, float)) for v in value):
            if len(value) != 4:
                raise UserInputError(
                    "invalid_aoi",
                    f"Bounding box needs four numbers, got {len(value)}",
                )
            min_lon, min_lat, max_lon, max_lat = (float(v) for v in value)
            if min_lon >= max_lon or min_lat >= max_lat:
                raise UserInputError(
                    "invalid_aoi", "Bounding box must be [min_lon, min_lat, max_lon, max_lat]"
                )
            geom = box(min_lon, min_lat, max_lon, max_lat)
        elif len(value) >= 3:
            geom = Polygon([_vertex(pt) for pt in value])
        else:
            raise UserInputError("invalid_aoi", "AOI list needs a bbox or at least three vertices")
    else:
        raise UserInputError("invalid_aoi", "AOI must be GeoJSON, a bbox or a list of vertices")

    if geom.is_empty or not geom.is_valid or geom.area == 0:
        raise UserInputError("invalid_aoi", "AOI polygon is empty or self-intersecting")
    min_lon, min_lat, max_lon, max_lat = geom.bounds
    validate_lonlat(min_lon, min_lat)
    validate_lonlat(max_lon, max_lat)
    return geom


def area_m2(geom: Polygon) -> float:
    """Area of a lon/lat polygon in square metres using an equal-area CRS."""
    reproj = shp_transform(lambda x, y, z=None: _EQUAL_AREA_TRANSFORMER.transform(x, y), geom)
    return float(reproj.area)


@dataclass(frozen=True)
class AreaOfInterest:
    polygon: Polygon = field(compare=False)
    geojson: dict = field(default_factory=dict)

    @classmethod
    def from_input(cls, value: Any) -> "AreaOfInterest":
        polygon = polygon_from_input(value)
        return cls(polygon=polygon, geojson=_as_plain_dict(mapping(polygon)))

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return tuple(float(v) for v in self.polygon.bounds)  # type: ignore[return-value]

    @property
    def bbox_geojson(self) -> dict:
        return _as_plain_dict(mapping(box(*self.polygon.bounds)))

    @property
    def area_ha(self) -> float:
        return area_m2(self.polygon) / 10000.0

    def pixel_estimate(self, scale: float) -> float:
        bbox = box(*self.polygon.bounds)
        return area_m2(bbox) / float(scale * scale)


@dataclass(frozen=True)
class ComparisonPoint:
    name: str
    lon: float
    lat: float

    @property
    def coordinates(self) -> list[float]:
        return [self.lon, self.lat]


def _as_plain_dict(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _as_plain_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_as_plain_dict(v) for v in value]
    return value
