import numpy as np
import pytest

from fake_ee import sentinel_scene

from ndvi_monitor.config import CompositeYearPolicy
from ndvi_monitor.services import monthly, sampler
from ndvi_monitor.services.ndvi import build_ndvi_collection
from ndvi_monitor.services.sources import SENTINEL2, select_sources
from ndvi_monitor.utils.geometry import ComparisonPoint


@pytest.fixture
def stack(fake_ee, ee_context, settings):
    # Pixel (row, col) maps to (lat, lon) in the fake; NDVI differs per pixel.
    ee_context.catalog = {
        SENTINEL2.catalog_id: [
            sentinel_scene(
                ee_context,
                "2022-04-10",
                nir=[[0.6, 0.5], [0.4, 0.3]],
                red=[[0.2, 0.5], [0.4, 0.1]],
            ),
            sentinel_scene(ee_context, "2022-09-02", nir=0.6, red=0.2),
        ]
    }
    window = select_sources(2022, settings)
    geometry = fake_ee.Geometry({"type": "Polygon"})
    collection = build_ndvi_collection(window, geometry)
    return monthly.aggregate_monthly(
        collection, 2022, year_policy=CompositeYearPolicy.ANALYSIS_YEAR
    )


def test_area_series_has_one_value_per_month(stack, fake_ee, settings, ee_context):
    series = sampler.area_series(stack, fake_ee.Geometry({"type": "Polygon"}), settings=settings)

    assert series.label == "AOI"
    assert [p.month for p in series.points] == list(range(1, 13))
    april = series.points[3].value
    assert april == pytest.approx(np.mean([0.5, 0.0, 0.0, 0.5]))
    assert series.points[8].value == pytest.approx(0.5)
    assert series.points[0].value is None
    assert sum(1 for p in series.points if p.value is not None) == 2
    call = ee_context.log["reduce_region"][0]
    assert call["scale"] == settings.sample_scale
    assert call["bestEffort"] is True


def test_area_series_honours_scale_override(stack, fake_ee, settings, ee_context):
    sampler.area_series(stack, fake_ee.Geometry({"type": "Polygon"}), scale=10, settings=settings)

    assert {call["scale"] for call in ee_context.log["reduce_region"]} == {10}


def test_no_points_means_no_series_and_no_backend_calls(stack, settings, ee_context):
    before = ee_context.get_info_calls

    assert sampler.point_series(stack, [], settings=settings) == []
    assert ee_context.get_info_calls == before
    assert "reduce_regions" not in ee_context.log


def test_point_series_sample_each_location(stack, settings, ee_context):
    points = [
        ComparisonPoint("Point 1", 0.5, 0.5),
        ComparisonPoint("Point 2", 1.5, 1.5),
    ]

    series = sampler.point_series(stack, points, settings=settings)

    assert [s.label for s in series] == ["Point 1", "Point 2"]
    assert all(len(s.points) == 12 for s in series)
    assert series[0].points[3].value == pytest.approx(0.5)
    assert series[1].points[3].value == pytest.approx(0.5)
    assert series[0].points[1].value is None
    assert len(ee_context.log["reduce_regions"]) == 12
    assert ee_context.log["reduce_regions"][0]["size"] == 2


def test_point_on_masked_pixel_is_none(stack, settings):
    points = [ComparisonPoint("Point 1", 1.5, 0.5)]

    series = sampler.point_series(stack, points, settings=settings)

    # nir == red == 0.5 at row 0, col 1 gives 0.0, not a masked pixel
    assert series[0].points[3].value == pytest.approx(0.0)


def test_series_rows_for_csv(stack, fake_ee, settings):
    series = sampler.area_series(stack, fake_ee.Geometry({"type": "Polygon"}), settings=settings)

    rows = series.to_rows()

    assert rows[0] == {"series": "AOI", "date": "2022-01-01", "month": 1, "ndvi": None}
    assert rows[8]["date"] == "2022-09-01"


def test_chart_specs_match_the_dashboard():
    assert sampler.AREA_CHART.title == "NDVI Trends Over Time (AOI)"
    assert sampler.AREA_CHART.legend == "none"
    assert sampler.POINTS_CHART.title == "NDVI Comparison for Points"
    assert sampler.POINTS_CHART.legend == "right"
    assert (sampler.POINTS_CHART.h_axis, sampler.POINTS_CHART.v_axis) == ("Month", "NDVI")


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"ndvi": 0.25}, 0.25),
        ({"mean": 0.1}, 0.1),
        ({"ndvi": None}, None),
        ({"ndvi": float("nan")}, None),
        ({}, None),
        ("0.4", 0.4),
    ],
)
def test_extract_value(payload, expected):
    assert sampler._extract_value(payload, "ndvi") == expected
