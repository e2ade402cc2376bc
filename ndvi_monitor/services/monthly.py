"""Monthly median NDVI composites."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Iterator, List, Sequence

import ee

from ndvi_monitor.config import CompositeYearPolicy, MonthFilterPolicy, Settings
from ndvi_monitor.services.earth_engine import get_info
from ndvi_monitor.services.ndvi import NDVI_BAND
from ndvi_monitor.utils.errors import BackendQueryError

MONTHS: tuple[int, ...] = tuple(range(1, 13))

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositeInfo:
    month: int
    timestamp: datetime
    label: str
    image_count: int | None = None

    @property
    def millis(self) -> int:
        return int(self.timestamp.timestamp() * 1000)


@dataclass
class MonthlyStack:
    year: int
    composite_year: int
    images: List[ee.Image] = field(default_factory=list)
    infos: List[CompositeInfo] = field(default_factory=list)

    def __iter__(self) -> Iterator[tuple[CompositeInfo, ee.Image]]:
        return iter(zip(self.infos, self.images))

    def __len__(self) -> int:
        return len(self.images)

    def with_counts(self, counts: Sequence[int]) -> "MonthlyStack":
        if len(counts) != len(self.infos):
            raise ValueError(f"Expected {len(self.infos)} monthly counts, got {len(counts)}")
        infos = [replace(info, image_count=int(count)) for info, count in zip(self.infos, counts)]
        return MonthlyStack(self.year, self.composite_year, list(self.images), infos)


def composite_year_for(year: int, policy: CompositeYearPolicy) -> int:
    if policy is CompositeYearPolicy.FOLLOWING_YEAR:
        return year + 1
    return year


def month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _next_month(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1)
    return date(year, month + 1, 1)


def filter_month(
    collection: ee.ImageCollection,
    year: int,
    month: int,
    policy: MonthFilterPolicy,
) -> ee.ImageCollection:
    if policy is MonthFilterPolicy.CALENDAR_MONTH:
        return collection.filter(ee.Filter.calendarRange(month, month, "month"))
    start = date(year, month, 1)
    return collection.filterDate(start.isoformat(), _next_month(year, month).isoformat())


def _masked_composite() -> ee.Image:
    return ee.Image.constant(0).toFloat().rename(NDVI_BAND).updateMask(0)


def aggregate_monthly(
    collection: ee.ImageCollection,
    year: int,
    *,
    year_policy: CompositeYearPolicy = CompositeYearPolicy.FOLLOWING_YEAR,
    filter_policy: MonthFilterPolicy = MonthFilterPolicy.CALENDAR_MONTH,
) -> MonthlyStack:
    """
    Reduce ``collection`` to one per-pixel median composite per calendar month.

    Months without images yield a fully masked composite. Output is always
    January..December, stamped with the first day of each month of the
    composite year chosen by ``year_policy``.
    """
    stamp_year = composite_year_for(year, year_policy)
    stack = MonthlyStack(year=year, composite_year=stamp_year)
    for month in MONTHS:
        filtered = filter_month(collection, year, month, filter_policy)
        composite = ee.Image(
            ee.Algorithms.If(
                filtered.size().gt(0),
                filtered.median().rename(NDVI_BAND),
                _masked_composite(),
            )
        )
        timestamp = month_start(stamp_year, month)
        label = timestamp.strftime("%Y-%m")
        info = CompositeInfo(month=month, timestamp=timestamp, label=label)
        composite = composite.set(
            {
                "system:time_start": info.millis,
                "system:index": label,
                "label": label,
                "month": month,
                "year": stamp_year,
            }
        )
        stack.images.append(composite)
        stack.infos.append(info)
    return stack


def monthly_image_counts(
    collection: ee.ImageCollection,
    year: int,
    *,
    filter_policy: MonthFilterPolicy = MonthFilterPolicy.CALENDAR_MONTH,
    settings: Settings | None = None,
) -> list[int]:
    """Number of contributing images per month, evaluated in one backend call."""
    sizes = ee.List(
        [filter_month(collection, year, month, filter_policy).size() for month in MONTHS]
    )
    counts = get_info(sizes, label="monthly image counts", settings=settings) or []
    if len(counts) != len(MONTHS):
        raise BackendQueryError(
            "backend_query_failed",
            f"Expected {len(MONTHS)} monthly image counts, backend returned {len(counts)}",
            ctx={"counts": list(counts)},
        )
    return [int(count or 0) for count in counts]


__all__ = [
    "CompositeInfo",
    "MONTHS",
    "MonthlyStack",
    "aggregate_monthly",
    "composite_year_for",
    "filter_month",
    "month_start",
    "monthly_image_counts",
]
