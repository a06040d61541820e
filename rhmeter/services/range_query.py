from __future__ import annotations

from collections.abc import Iterable
from datetime import date, tzinfo

from rhmeter.models.reading import Reading
from rhmeter.services.bucketing import local_date


def filter_by_date(
    readings: Iterable[Reading], day: date, *, tz: tzinfo | None = None
) -> list[Reading]:
    return [r for r in readings if local_date(r.timestamp, tz) == day]


def filter_by_range(
    readings: Iterable[Reading], start: date, end: date, *, tz: tzinfo | None = None
) -> list[Reading]:
    # An inverted range simply matches nothing.
    if start > end:
        return []
    return [r for r in readings if start <= local_date(r.timestamp, tz) <= end]


def is_same_day(start: date, end: date) -> bool:
    return start == end
