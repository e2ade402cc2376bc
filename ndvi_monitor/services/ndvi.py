from __future__ import annotations

import logging

import ee

from ndvi_monitor.services.sources import (
    AnalysisWindow,
    Calibration,
    ImageSourceDescriptor,
)

NDVI_BAND = "ndvi"
SOURCE_PROPERTY = "source"

logger = logging.getLogger(__name__)


def _reflectance(image: ee.Image, descriptor: ImageSourceDescriptor) -> ee.Image:
    bands = image.select(descriptor.band_pattern)
    if descriptor.calibration is Calibration.PER_BAND_GAIN_OFFSET:
        # Red-band gain and offset, applied to the whole band window.
        gain = ee.Number(image.get(descriptor.gain_property))
        offset = ee.Number(image.get(descriptor.offset_property))
        return bands.multiply(gain).add(offset)
    return bands.multiply(descriptor.scale_factor)


def compute_ndvi(image: ee.Image, descriptor: ImageSourceDescriptor) -> ee.Image:
    """
    Single-band NDVI for one scene:
      - reflectance from the descriptor's calibration rule
      - NDVI = (NIR - RED) / (NIR + RED); a zero denominator leaves the pixel masked
      - band renamed to 'ndvi', every source property copied forward
    """
    image = ee.Image(image)
    reflectance = _reflectance(image, descriptor)
    nir = reflectance.select(descriptor.nir_band)
    red = reflectance.select(descriptor.red_band)
    ndvi = nir.subtract(red).divide(nir.add(red)).rename(NDVI_BAND)
    return ee.Image(
        ndvi.copyProperties(image, image.propertyNames())
    ).set(SOURCE_PROPERTY, descriptor.catalog_id)


def load_source_collection(
    descriptor: ImageSourceDescriptor,
    window: AnalysisWindow,
    geometry: ee.Geometry,
) -> ee.ImageCollection:
    return (
        ee.ImageCollection(descriptor.catalog_id)
        .filterDate(window.start_iso, window.end_iso)
        .filterBounds(geometry)
        .map(lambda img: compute_ndvi(img, descriptor))
    )


def build_ndvi_collection(window: AnalysisWindow, geometry: ee.Geometry) -> ee.ImageCollection:
    """Merge the NDVI collections of every source, sorted by acquisition time."""
    merged = None
    for descriptor in window.sources:
        collection = load_source_collection(descriptor, window, geometry)
        merged = collection if merged is None else merged.merge(collection)
        logger.debug("Queued %s for %s..%s", descriptor.catalog_id, window.start_iso, window.end_iso)
    if merged is None:
        raise ValueError("Analysis window has no imagery sources")
    return merged.sort("system:time_start")


__all__ = [
    "NDVI_BAND",
    "SOURCE_PROPERTY",
    "build_ndvi_collection",
    "compute_ndvi",
    "load_source_collection",
]
